"""
Storage Module
==============
SQLAlchemy persistence for papers, references, spans and links.
"""

from .connection import create_tables, get_engine, get_session_factory, session_scope
from .models import Base, CitationLinkModel, CitationSpanModel, PaperModel, ReferenceModel
from .repository import CitationRepository

__all__ = [
    'create_tables', 'get_engine', 'get_session_factory', 'session_scope',
    'Base', 'CitationLinkModel', 'CitationSpanModel', 'PaperModel', 'ReferenceModel',
    'CitationRepository',
]
