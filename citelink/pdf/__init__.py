"""
PDF Access
==========
pdfplumber-backed page and annotation reader.
"""

from .document import PdfDocument, PageContent, LinkAnnotation

__all__ = ['PdfDocument', 'PageContent', 'LinkAnnotation']
