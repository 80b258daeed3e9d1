"""
Extraction Orchestrator
=======================
Runs one full extraction for a paper:

    lookup -> DETECTING -> LINKING -> PERSISTING -> DONE

Any error moves the paper to FAILED and propagates. A fired cancellation
token moves it to CANCELLED and leaves the previous generation untouched.
Extractions of the same paper are serialized by the injected lock registry.
"""

import logging
import os
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .bib import apply_entry_extents
from .concurrency import CancellationToken, PaperLockRegistry
from .detector import CitationSpanDetector, DetectionReport
from .errors import ExtractionCancelled, FileAccessError, PaperNotFoundError, PartialExtractionWarning
from .linking import CitationLinker
from .types import CitationLink, CitationSpan, ExtractionStats, Reference, ThirdPartySignal

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]
SignalProvider = Callable[[str], Optional[ThirdPartySignal]]


class ExtractionState(str, Enum):
    NOT_STARTED = "not_started"
    DETECTING = "detecting"
    LINKING = "linking"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Progress reported on entering each state
PROGRESS = {
    ExtractionState.DETECTING: (10, "Detecting citation spans"),
    ExtractionState.LINKING: (30, "Linking spans to references"),
    ExtractionState.PERSISTING: (60, "Saving citations"),
    ExtractionState.DONE: (100, "Done"),
}

TERMINAL_STATES = frozenset({ExtractionState.DONE, ExtractionState.FAILED, ExtractionState.CANCELLED})


@dataclass
class ExtractionResult:
    paper_id: str
    state: ExtractionState
    spans: List[CitationSpan] = field(default_factory=list)
    links: List[CitationLink] = field(default_factory=list)
    stats: ExtractionStats = field(default_factory=ExtractionStats)
    warnings: List[PartialExtractionWarning] = field(default_factory=list)
    report: Optional[DetectionReport] = None
    duration: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.state == ExtractionState.DONE


class ExtractionOrchestrator:
    """
    Coordinates detection, linking and persistence for one paper.

    Args:
        repository: Exposes get_paper, get_references, replace_generation
            and compute_stats (CitationRepository)
        detector: Span detector (default CitationSpanDetector())
        linker: Span linker (default CitationLinker())
        locks: Per-paper lock registry (default queue policy)
        signal_provider: Optional paper_id -> ThirdPartySignal callable
        max_tracked_states: Bound on remembered per-paper states; the
            oldest finished ones are evicted first, running ones never
    """

    def __init__(
        self,
        repository,
        detector: Optional[CitationSpanDetector] = None,
        linker: Optional[CitationLinker] = None,
        locks: Optional[PaperLockRegistry] = None,
        signal_provider: Optional[SignalProvider] = None,
        max_tracked_states: int = 1024,
    ):
        self.repository = repository
        self.detector = detector if detector is not None else CitationSpanDetector()
        self.linker = linker if linker is not None else CitationLinker()
        self.locks = locks if locks is not None else PaperLockRegistry()
        self.signal_provider = signal_provider
        self.max_tracked_states = max_tracked_states
        self._states: 'OrderedDict[str, ExtractionState]' = OrderedDict()
        self._states_guard = threading.Lock()

    def state_of(self, paper_id: str) -> ExtractionState:
        with self._states_guard:
            return self._states.get(paper_id, ExtractionState.NOT_STARTED)

    def forget(self, paper_id: str) -> None:
        """Drop the tracked state of a finished extraction"""
        with self._states_guard:
            if self._states.get(paper_id) in TERMINAL_STATES:
                del self._states[paper_id]

    def extract(
        self,
        paper_id: str,
        progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """
        Extract, link and persist all citations of a paper.

        Raises:
            PaperNotFoundError: unknown paper_id
            FileAccessError: PDF missing or unreadable
            PersistenceError: replace failed; prior generation kept
            ExtractionInProgressError: paper busy under the reject policy
        """
        with self.locks.hold(paper_id):
            started = time.monotonic()
            try:
                result = self._run(paper_id, progress, cancel_token)
            except ExtractionCancelled as exc:
                self._enter(paper_id, ExtractionState.CANCELLED)
                logger.info("Extraction for paper %s cancelled: %s", paper_id, exc)
                result = ExtractionResult(paper_id=paper_id, state=ExtractionState.CANCELLED)
            except Exception:
                self._enter(paper_id, ExtractionState.FAILED)
                logger.exception("Extraction for paper %s failed", paper_id)
                raise
            result.duration = time.monotonic() - started
            return result

    def _run(
        self,
        paper_id: str,
        progress: Optional[ProgressCallback],
        cancel_token: Optional[CancellationToken],
    ) -> ExtractionResult:
        paper = self.repository.get_paper(paper_id)
        if paper is None:
            raise PaperNotFoundError(paper_id)
        if not paper.pdf_path or not os.path.isfile(paper.pdf_path):
            raise FileAccessError(paper.pdf_path or "", details={"paper_id": paper_id})
        references = self.repository.get_references(paper_id)

        # 1. Detect
        self._enter(paper_id, ExtractionState.DETECTING, progress)
        detection = self.detector.detect(
            paper.pdf_path,
            references_start_page=self._start_page(references),
            cancel_token=cancel_token,
        )
        spans = detection.spans
        for span in spans:
            span.paper_id = paper_id
        report = detection.report

        # 2. Link
        self._check_cancel(cancel_token, "before linking")
        self._enter(paper_id, ExtractionState.LINKING, progress)
        located = apply_entry_extents(references, report.entry_extents)
        results = self.linker.link(spans, located, report.references_start_page, self._signal(paper_id))
        links = [r.to_link() for r in results]

        # 3. Persist
        self._check_cancel(cancel_token, "before persisting")
        self._enter(paper_id, ExtractionState.PERSISTING, progress)
        self.repository.replace_generation(paper_id, spans, links, page_count=report.page_count)
        stats = self.repository.compute_stats(paper_id)

        self._enter(paper_id, ExtractionState.DONE, progress)
        logger.info(
            "Paper %s: %d spans, %d linked, %d links, avg confidence %.3f, %d warnings",
            paper_id, stats.total_spans, stats.linked_count, stats.link_count,
            stats.avg_confidence, len(report.warnings),
        )
        return ExtractionResult(
            paper_id=paper_id,
            state=ExtractionState.DONE,
            spans=spans,
            links=links,
            stats=stats,
            warnings=list(report.warnings),
            report=report,
        )

    def _start_page(self, references: List[Reference]) -> Optional[int]:
        pages = [r.page_num for r in references if r.page_num and r.page_num > 0]
        return min(pages) if pages else None

    def _signal(self, paper_id: str) -> Optional[ThirdPartySignal]:
        if self.signal_provider is None:
            return None
        try:
            return self.signal_provider(paper_id)
        except Exception as exc:
            # Corroboration is optional; link without it
            logger.warning("Third-party signal unavailable for paper %s: %s", paper_id, exc)
            return None

    def _enter(
        self,
        paper_id: str,
        state: ExtractionState,
        progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._set_state(paper_id, state)
        logger.info("Paper %s -> %s", paper_id, state.value)
        if progress is not None and state in PROGRESS:
            percent, message = PROGRESS[state]
            progress(percent, message)

    def _set_state(self, paper_id: str, state: ExtractionState) -> None:
        """Record a state; oldest finished entries are evicted past max_tracked_states"""
        with self._states_guard:
            self._states.pop(paper_id, None)
            self._states[paper_id] = state
            excess = len(self._states) - self.max_tracked_states
            if excess <= 0:
                return
            stale = [pid for pid, s in self._states.items() if s in TERMINAL_STATES][:excess]
            for pid in stale:
                del self._states[pid]

    def _check_cancel(self, token: Optional[CancellationToken], where: str) -> None:
        if token is not None:
            token.raise_if_cancelled(where)
