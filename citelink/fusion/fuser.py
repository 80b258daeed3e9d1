"""
Span Fusion
===========
Merges annotation and pattern spans: drops exact pattern duplicates, lets
annotation spans win over overlapping pattern spans, and sorts the result in
reading order.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..geometry import overlap_ratio
from ..types import CitationSpan


@dataclass
class FusionConfig:
    """Configuration for fusion"""
    overlap_threshold: float = 0.5   # fraction of the smaller bbox area
    dedup_center_round: float = 1.0


@dataclass
class FusionStats:
    annotation_spans: int = 0
    pattern_spans: int = 0
    duplicates_dropped: int = 0
    overlaps_dropped: int = 0


class SpanFuser:
    """
    Fuse spans from all channels.

    Process:
    1. Deduplicate pattern spans at the same location with the same meaning
    2. Drop pattern spans overlapped by an annotation span on the same page
    3. Sort page -> top -> left
    """

    def __init__(self, config: Optional[FusionConfig] = None):
        self.config = config or FusionConfig()
        self.stats = FusionStats()

    def fuse(
        self,
        annotation_spans: List[CitationSpan],
        pattern_spans: List[CitationSpan],
    ) -> List[CitationSpan]:
        self.stats = FusionStats(
            annotation_spans=len(annotation_spans),
            pattern_spans=len(pattern_spans),
        )

        # 1. Exact duplicates
        unique: Dict[Tuple, CitationSpan] = {}
        for span in pattern_spans:
            key = self._dedup_key(span)
            if key in unique:
                self.stats.duplicates_dropped += 1
                continue
            unique[key] = span

        # 2. Annotation wins over overlapping pattern spans
        by_page: Dict[int, List[CitationSpan]] = {}
        for span in annotation_spans:
            by_page.setdefault(span.page_num, []).append(span)

        kept: List[CitationSpan] = []
        for span in unique.values():
            if any(
                overlap_ratio(span.bbox, a.bbox) > self.config.overlap_threshold
                for a in by_page.get(span.page_num, [])
            ):
                self.stats.overlaps_dropped += 1
                continue
            kept.append(span)

        # 3. Reading order
        fused = list(annotation_spans) + kept
        fused.sort(key=lambda s: s.reading_order_key())
        return fused

    def _dedup_key(self, span: CitationSpan) -> Tuple:
        """(page, rounded center, text, number)"""
        r = self.config.dedup_center_round if self.config.dedup_center_round > 0 else 1.0
        cx, cy = span.bbox.center
        return (
            span.page_num,
            round(cx / r) * r,
            round(cy / r) * r,
            span.raw_text,
            span.marker_number,
            span.style,
        )
