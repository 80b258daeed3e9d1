"""
Annotation Citation Channel
===========================
Turns PDF link annotations that jump into the bibliography into citation
spans. Authors' own hyperlinks are treated as near ground truth.

Only links whose visible text reads like a citation are kept, so figure,
table and section links into an appendix after the bibliography are
ignored. A link split into several rects (wrapped lines, kerning breaks)
is merged back into one span.
"""

from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from ..geometry import union
from ..pdf import PageContent
from ..pdf.document import LinkAnnotation
from ..types import CitationSpan, CitationStyle, Provenance
from .author_year import looks_like_author_year
from .numeric import infer_numeric

# (dest_page, dest_y) -> text of the line at the destination
DestinationText = Callable[[int, Optional[float]], Optional[str]]


@dataclass
class AnnotationConfig:
    """Configuration for the annotation channel"""
    confidence: float = 0.95
    max_text_length: int = 50   # longer link text is prose, not a citation
    merge_gap: float = 3.0      # max horizontal gap between rects of one link


def infer_style(text: str) -> CitationStyle:
    """Citation style from the visible text under an annotation"""
    if not text:
        return CitationStyle.UNKNOWN
    if infer_numeric(text):
        return CitationStyle.NUMERIC
    if looks_like_author_year(text):
        return CitationStyle.AUTHOR_YEAR
    return CitationStyle.UNKNOWN


class AnnotationChannel:
    """
    Emit one span per bibliography-targeting link annotation.

    A destination targets the bibliography when its page is at or after the
    known bibliography start page, or, with no known start page, when the
    text at the destination begins like a numbered entry. The link text must
    then look like a citation: a numeric or author-year marker, or any short
    text whose destination line begins like a numbered entry.
    """

    def __init__(self, config: Optional[AnnotationConfig] = None):
        self.config = config or AnnotationConfig()

    def extract(
        self,
        content: PageContent,
        start_page: Optional[int],
        destination_text: Optional[DestinationText] = None,
        is_entry_start: Optional[Callable[[Optional[str]], bool]] = None,
    ) -> List[CitationSpan]:
        spans: List[CitationSpan] = []
        for annot in self.merge(content.annotations):
            if not self.targets_bibliography(annot, start_page, destination_text, is_entry_start):
                continue
            text = content.page.text_in_bbox(annot.bbox)
            style = infer_style(text)
            if not self.looks_like_citation(annot, text, style, destination_text, is_entry_start):
                continue
            spans.append(CitationSpan(
                page_num=content.page_num,
                bbox=annot.bbox,
                raw_text=text,
                style=style,
                provenance=Provenance.ANNOTATION,
                confidence=self.config.confidence,
                dest_page=annot.dest_page,
                dest_y=annot.dest_y,
            ))
        return spans

    def targets_bibliography(
        self,
        annot: LinkAnnotation,
        start_page: Optional[int],
        destination_text: Optional[DestinationText],
        is_entry_start: Optional[Callable[[Optional[str]], bool]],
    ) -> bool:
        if not annot.is_internal:
            return False
        if start_page is not None:
            return annot.dest_page >= start_page
        return self._lands_on_entry(annot, destination_text, is_entry_start)

    def looks_like_citation(
        self,
        annot: LinkAnnotation,
        text: str,
        style: CitationStyle,
        destination_text: Optional[DestinationText],
        is_entry_start: Optional[Callable[[Optional[str]], bool]],
    ) -> bool:
        if len(text) > self.config.max_text_length:
            return False
        if style != CitationStyle.UNKNOWN:
            return True
        return self._lands_on_entry(annot, destination_text, is_entry_start)

    def merge(self, annotations: List[LinkAnnotation]) -> List[LinkAnnotation]:
        """Join adjacent rects that share one destination"""
        merged: List[LinkAnnotation] = []
        for annot in annotations:
            prev = merged[-1] if merged else None
            if prev is not None and self._continues(prev, annot):
                merged[-1] = replace(prev, bbox=union([prev.bbox, annot.bbox]))
            else:
                merged.append(annot)
        return merged

    def _continues(self, prev: LinkAnnotation, annot: LinkAnnotation) -> bool:
        if not (prev.is_internal and annot.is_internal):
            return False
        if (prev.dest_page, prev.dest_y) != (annot.dest_page, annot.dest_y):
            return False
        a, b = prev.bbox, annot.bbox
        same_line = min(a.y2, b.y2) - max(a.y1, b.y1) > 0
        if same_line:
            return -self.config.merge_gap <= b.x1 - a.x2 <= self.config.merge_gap
        # Wrapped onto the next line: starts left of the first rect, directly below
        return b.y1 >= a.y2 - 1.0 and b.y1 - a.y2 <= a.height and b.x1 < a.x1

    def _lands_on_entry(
        self,
        annot: LinkAnnotation,
        destination_text: Optional[DestinationText],
        is_entry_start: Optional[Callable[[Optional[str]], bool]],
    ) -> bool:
        if destination_text is None or is_entry_start is None:
            return False
        return is_entry_start(destination_text(annot.dest_page, annot.dest_y))
