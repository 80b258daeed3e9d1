"""
Citation Linker
===============
Links detected spans to the paper's references through an ordered cascade
of strategies. Numeric spans are linked per expanded integer; the first
strategy that clears its threshold wins for each (span, number).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from ..types import (
    CitationSpan, CitationStyle, LinkResult, Reference, ThirdPartySignal, parse_ref_ids,
)
from .strategies import (
    AnnotationDestStrategy, AuthorYearFuzzyStrategy, CorroboratedStrategy,
    LinkContext, LinkStrategy, NumericStrategy,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthorYearWeights:
    """Scoring weights for author-year fuzzy matching"""
    author_overlap: float = 0.6
    first_author: float = 0.1
    exact_year: float = 0.3


@dataclass
class LinkerConfig:
    """Configuration for the linking cascade"""
    # annotation_dest
    annotation_agree_confidence: float = 1.0
    annotation_range_confidence: float = 0.97
    annotation_page_confidence: float = 0.95

    # numeric
    numeric_confidence: float = 0.9
    max_range_span: int = 50

    # corroborated
    enable_corroboration: bool = True
    corroboration_text_threshold: float = 0.8
    corroboration_title_threshold: float = 0.7
    corroboration_min_confidence: float = 0.75
    corroboration_max_confidence: float = 0.85

    # author_year_fuzzy
    author_year_weights: AuthorYearWeights = field(default_factory=AuthorYearWeights)
    author_year_min_score: float = 0.6

    @classmethod
    def strict(cls) -> 'LinkerConfig':
        """Require stronger evidence for the fuzzy steps"""
        return cls(corroboration_text_threshold=0.9, author_year_min_score=0.8)

    @classmethod
    def recall(cls) -> 'LinkerConfig':
        """Accept weaker fuzzy evidence"""
        return cls(
            corroboration_text_threshold=0.7,
            corroboration_title_threshold=0.6,
            author_year_min_score=0.5,
            max_range_span=100,
        )


@dataclass
class LinkerStats:
    spans: int = 0
    targets: int = 0
    linked_spans: int = 0
    unlinked_targets: int = 0
    by_method: Dict[str, int] = field(default_factory=dict)


@dataclass
class LinkRun:
    """Results and counters of one linking pass"""
    results: List[LinkResult]
    stats: LinkerStats


class CitationLinker:
    """
    Link spans to references.

    Usage:
        linker = CitationLinker()
        results = linker.link(spans, references, start_page=12)
        run = linker.run(spans, references)   # results plus LinkerStats
    """

    def __init__(self, config: Optional[LinkerConfig] = None):
        self.config = config or LinkerConfig()
        self.strategies = self._build_cascade()

    def _build_cascade(self) -> List[LinkStrategy]:
        cfg = self.config
        weights = cfg.author_year_weights
        cascade: List[LinkStrategy] = [
            AnnotationDestStrategy(
                agree_confidence=cfg.annotation_agree_confidence,
                range_confidence=cfg.annotation_range_confidence,
                page_confidence=cfg.annotation_page_confidence,
            ),
            NumericStrategy(confidence=cfg.numeric_confidence),
        ]
        if cfg.enable_corroboration:
            cascade.append(CorroboratedStrategy(
                text_threshold=cfg.corroboration_text_threshold,
                title_threshold=cfg.corroboration_title_threshold,
                min_confidence=cfg.corroboration_min_confidence,
                max_confidence=cfg.corroboration_max_confidence,
            ))
        cascade.append(AuthorYearFuzzyStrategy(
            author_weight=weights.author_overlap,
            first_author_weight=weights.first_author,
            year_weight=weights.exact_year,
            min_score=cfg.author_year_min_score,
        ))
        return cascade

    def link(
        self,
        spans: List[CitationSpan],
        references: List[Reference],
        start_page: Optional[int] = None,
        signal: Optional[ThirdPartySignal] = None,
    ) -> List[LinkResult]:
        """One LinkResult per linked (span, expanded number)"""
        return self.run(spans, references, start_page, signal).results

    def run(
        self,
        spans: List[CitationSpan],
        references: List[Reference],
        start_page: Optional[int] = None,
        signal: Optional[ThirdPartySignal] = None,
    ) -> LinkRun:
        """
        Run the cascade over every span in reading order.

        All per-call state lives in the returned LinkRun, so one linker can
        serve concurrent extractions.
        """
        stats = LinkerStats(spans=len(spans))
        if not spans or not references:
            stats.unlinked_targets = sum(len(self.targets(s)) for s in spans)
            return LinkRun(results=[], stats=stats)

        context = LinkContext.build(references, start_page, signal)
        results: List[LinkResult] = []
        seen: Set[Tuple[str, str]] = set()

        for span in sorted(spans, key=lambda s: s.reading_order_key()):
            span_linked = False
            for number in self.targets(span):
                stats.targets += 1
                result = self._cascade(span, number, context)
                if result is None:
                    stats.unlinked_targets += 1
                    continue
                key = (span.id, result.reference.id)
                if key in seen:
                    continue
                seen.add(key)
                results.append(result)
                context.record(span.page_num, result.reference)
                stats.by_method[result.method] = stats.by_method.get(result.method, 0) + 1
                span_linked = True
            if span_linked:
                stats.linked_spans += 1

        logger.info(
            "Linked %d/%d spans (%d links, methods=%s)",
            stats.linked_spans, stats.spans, len(results), stats.by_method,
        )
        return LinkRun(results=results, stats=stats)

    def targets(self, span: CitationSpan) -> List[Optional[int]]:
        """The reference numbers a span stands for; [None] when it has none"""
        if span.marker_number is not None:
            return [span.marker_number]
        if span.style == CitationStyle.NUMERIC:
            numbers = parse_ref_ids(span.raw_text, max_span=self.config.max_range_span)
            if numbers:
                return list(numbers)
        return [None]

    def _cascade(self, span: CitationSpan, number: Optional[int], context: LinkContext) -> Optional[LinkResult]:
        for strategy in self.strategies:
            result = strategy.try_link(span, number, context)
            if result is not None:
                return result
        return None
