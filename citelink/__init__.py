"""
Citation Extraction & Linking Engine
====================================
Detects in-text citations in academic PDFs, links them to bibliography
entries and persists the result per paper.

Architecture:
- pdf: pdfplumber page/annotation reader
- page_model: Page data structures and line grouping
- bib: Bibliography start page and entry extents
- channels: Detection channels (annotation, numeric, author-year)
- fusion: Annotation/pattern span fusion
- linking: Span -> Reference cascade
- storage: SQLAlchemy persistence and queries

Usage:
    from citelink import ExtractionOrchestrator, CitationRepository
    orchestrator = ExtractionOrchestrator(repository)
    result = orchestrator.extract(paper_id)
"""

from typing import Optional

from .types import (
    BBox,
    Paper,
    CitationSpan,
    CitationStyle,
    Provenance,
    Reference,
    CitationLink,
    LinkResult,
    ThirdPartyCitation,
    ThirdPartyReference,
    ThirdPartySignal,
    ExtractionStats,
    parse_ref_ids,
)
from .errors import (
    CitationEngineError,
    InputError,
    FileAccessError,
    PaperNotFoundError,
    PersistenceError,
    ExtractionInProgressError,
    ExtractionCancelled,
    PartialExtractionWarning,
)
from .concurrency import CancellationToken, PaperLockRegistry
from .detector import CitationSpanDetector, DetectorConfig, DetectionReport, DetectionResult
from .linking import CitationLinker, LinkerConfig, AuthorYearWeights
from .config import EngineConfig, StorageConfig
from .storage import CitationRepository, create_tables, get_engine, get_session_factory
from .orchestrator import ExtractionOrchestrator, ExtractionResult, ExtractionState

__all__ = [
    'BBox',
    'Paper',
    'CitationSpan',
    'CitationStyle',
    'Provenance',
    'Reference',
    'CitationLink',
    'LinkResult',
    'ThirdPartyCitation',
    'ThirdPartyReference',
    'ThirdPartySignal',
    'ExtractionStats',
    'parse_ref_ids',
    'CitationEngineError',
    'InputError',
    'FileAccessError',
    'PaperNotFoundError',
    'PersistenceError',
    'ExtractionInProgressError',
    'ExtractionCancelled',
    'PartialExtractionWarning',
    'CancellationToken',
    'PaperLockRegistry',
    'CitationSpanDetector',
    'DetectorConfig',
    'DetectionReport',
    'DetectionResult',
    'CitationLinker',
    'LinkerConfig',
    'AuthorYearWeights',
    'EngineConfig',
    'StorageConfig',
    'CitationRepository',
    'ExtractionOrchestrator',
    'ExtractionResult',
    'ExtractionState',
    'build_engine',
]

__version__ = '1.0.0'


def build_engine(config: Optional[EngineConfig] = None) -> ExtractionOrchestrator:
    """
    Wire repository, detector, linker and lock registry from one config.

    Tables are created if missing.
    """
    config = config or EngineConfig.default()
    engine = get_engine(config.storage)
    create_tables(engine)
    return ExtractionOrchestrator(
        repository=CitationRepository(get_session_factory(engine)),
        detector=CitationSpanDetector(config.detector),
        linker=CitationLinker(config.linker),
        locks=PaperLockRegistry(config.lock_policy, config.lock_timeout),
    )
