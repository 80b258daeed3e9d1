"""
Bibliography Module
===================
Locate the bibliography section and its numbered entries.
"""

from .extractor import BibliographyLocator, BibliographyStart, EntryExtent, apply_entry_extents

__all__ = ['BibliographyLocator', 'BibliographyStart', 'EntryExtent', 'apply_entry_extents']
