"""
Linking Strategies
==================
Ordered cascade steps. Each step gets one (span, expanded number) pair and
either returns a LinkResult or None so the next step can try.

Steps:
- annotation_dest: annotation destination inside a reference's extent
- numeric: marker integer equals the reference number
- corroborated: third-party citation/reference pair backs the match
- author_year_fuzzy: surname + year scoring against parsed references
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..geometry import center_distance
from ..types import (
    CitationSpan, CitationStyle, LinkResult, Reference,
    ThirdPartyCitation, ThirdPartyReference, ThirdPartySignal,
)
from .similarity import (
    first_author_tokens, name_tokens, parse_author_year, parse_year,
    text_similarity, title_similarity,
)

# Scores closer than this are ties
SCORE_EPSILON = 1e-9


@dataclass
class LinkContext:
    """Per-run linking state shared by all strategies"""
    references: List[Reference]
    start_page: Optional[int] = None
    signal: Optional[ThirdPartySignal] = None
    by_number: Dict[int, Reference] = field(default_factory=dict)
    linked_numbers: Dict[int, List[int]] = field(default_factory=dict)  # page -> ref numbers

    @classmethod
    def build(
        cls,
        references: List[Reference],
        start_page: Optional[int] = None,
        signal: Optional[ThirdPartySignal] = None,
    ) -> 'LinkContext':
        by_number: Dict[int, Reference] = {}
        for ref in sorted(references, key=lambda r: r.number):
            by_number.setdefault(ref.number, ref)
        if signal is not None and signal.is_empty():
            signal = None
        return cls(references=list(references), start_page=start_page, signal=signal, by_number=by_number)

    def record(self, page_num: int, reference: Reference) -> None:
        self.linked_numbers.setdefault(page_num, []).append(reference.number)

    def references_on_page(self, page_num: int) -> List[Reference]:
        return [r for r in self.references if r.page_num == page_num]


def pick_best(
    candidates: List[Tuple[float, Reference]],
    context: LinkContext,
    page_num: int,
) -> Optional[Tuple[float, Reference]]:
    """
    Highest score wins. Ties go to the reference numerically closest to
    references already linked on the same page, then to the lowest number.
    """
    if not candidates:
        return None
    top = max(score for score, _ in candidates)
    tied = [(s, r) for s, r in candidates if top - s <= SCORE_EPSILON]
    if len(tied) == 1:
        return tied[0]

    neighbors = context.linked_numbers.get(page_num, [])

    def distance(ref: Reference) -> float:
        if not neighbors:
            return 0.0
        return min(abs(ref.number - n) for n in neighbors)

    return min(tied, key=lambda item: (distance(item[1]), item[1].number))


class LinkStrategy:
    """Base class for cascade steps"""
    method = ""

    def try_link(
        self,
        span: CitationSpan,
        number: Optional[int],
        context: LinkContext,
    ) -> Optional[LinkResult]:
        raise NotImplementedError

    def _result(self, span, reference, confidence, number) -> LinkResult:
        return LinkResult(
            span=span,
            reference=reference,
            method=self.method,
            confidence=round(min(1.0, max(0.0, confidence)), 4),
            number=number,
        )


# ============================================================
# annotation_dest
# ============================================================

class AnnotationDestStrategy(LinkStrategy):
    """
    Map an annotation destination (page, y) onto a reference extent.

    Confidence:
    - range hit that agrees with the marker number: agree_confidence
    - range hit alone: range_confidence
    - page-only match (single reference on the page, or the number agrees
      on that page): page_confidence
    """
    method = "annotation_dest"

    def __init__(
        self,
        agree_confidence: float = 1.0,
        range_confidence: float = 0.97,
        page_confidence: float = 0.95,
    ):
        self.agree_confidence = agree_confidence
        self.range_confidence = range_confidence
        self.page_confidence = page_confidence

    def try_link(self, span, number, context):
        if span.dest_page is None:
            return None

        hits = [r for r in context.references if r.contains(span.dest_page, span.dest_y)]
        if hits:
            candidates = [
                (self.agree_confidence if number is not None and r.number == number else self.range_confidence, r)
                for r in hits
            ]
            score, ref = pick_best(candidates, context, span.page_num)
            # A multi-number marker under one link: leave the other numbers
            # to the numeric step
            if number is not None and ref.number != number and number in context.by_number:
                return None
            return self._result(span, ref, score, number)

        on_page = context.references_on_page(span.dest_page)
        if len(on_page) == 1:
            return self._result(span, on_page[0], self.page_confidence, number)
        if number is not None:
            for ref in on_page:
                if ref.number == number:
                    return self._result(span, ref, self.page_confidence, number)
        return None


# ============================================================
# numeric
# ============================================================

class NumericStrategy(LinkStrategy):
    method = "numeric"

    def __init__(self, confidence: float = 0.9):
        self.confidence = confidence

    def try_link(self, span, number, context):
        if span.style != CitationStyle.NUMERIC or number is None:
            return None
        ref = context.by_number.get(number)
        if ref is None:
            return None
        return self._result(span, ref, self.confidence, number)


# ============================================================
# corroborated
# ============================================================

class CorroboratedStrategy(LinkStrategy):
    """
    Use a third-party citation on the same page as a hint.

    The nearest similar third-party citation names a third-party reference;
    that reference is reconciled with the local list by number, then title,
    then author overlap plus year.
    """
    method = "corroborated"

    def __init__(
        self,
        text_threshold: float = 0.8,
        title_threshold: float = 0.7,
        min_confidence: float = 0.75,
        max_confidence: float = 0.85,
    ):
        self.text_threshold = text_threshold
        self.title_threshold = title_threshold
        self.min_confidence = min_confidence
        self.max_confidence = max_confidence

    def try_link(self, span, number, context):
        signal = context.signal
        if signal is None:
            return None

        match = self._nearest_citation(span, signal)
        if match is None:
            return None
        similarity, citation = match

        tp_ref = signal.reference_by_key(citation.target_key)
        if tp_ref is None:
            return None
        local = self._reconcile(tp_ref, context)
        if local is None:
            return None
        if number is not None and local.number != number:
            return None

        return self._result(span, local, self._confidence(similarity), number)

    def _nearest_citation(
        self,
        span: CitationSpan,
        signal: ThirdPartySignal,
    ) -> Optional[Tuple[float, ThirdPartyCitation]]:
        candidates = []
        for citation in signal.citations:
            if citation.page_num != span.page_num or citation.ref_type != "biblio":
                continue
            sim = text_similarity(span.raw_text, citation.raw_text)
            if sim < self.text_threshold:
                continue
            dist = center_distance(span.bbox, citation.bbox) if citation.bbox is not None else float("inf")
            candidates.append((dist, -sim, citation))
        if not candidates:
            return None
        dist, neg_sim, citation = min(candidates, key=lambda c: (c[0], c[1]))
        return -neg_sim, citation

    def _reconcile(self, tp_ref: ThirdPartyReference, context: LinkContext) -> Optional[Reference]:
        if tp_ref.number is not None and tp_ref.number in context.by_number:
            return context.by_number[tp_ref.number]

        if tp_ref.title:
            scored = [(title_similarity(tp_ref.title, r.title), r) for r in context.references if r.title]
            scored = [(s, r) for s, r in scored if s >= self.title_threshold]
            if scored:
                return max(scored, key=lambda item: (item[0], -item[1].number))[1]

        tp_names = set(name_tokens(tp_ref.authors))
        if tp_names and tp_ref.year is not None:
            for ref in sorted(context.references, key=lambda r: r.number):
                ref_year = ref.year if ref.year is not None else parse_year(ref.raw_text)
                if ref_year != tp_ref.year:
                    continue
                if tp_names & set(name_tokens(ref.authors or ref.raw_text[:120])):
                    return ref
        return None

    def _confidence(self, similarity: float) -> float:
        if self.text_threshold >= 1.0:
            return self.max_confidence
        frac = (similarity - self.text_threshold) / (1.0 - self.text_threshold)
        frac = min(1.0, max(0.0, frac))
        return self.min_confidence + frac * (self.max_confidence - self.min_confidence)


# ============================================================
# author_year_fuzzy
# ============================================================

class AuthorYearFuzzyStrategy(LinkStrategy):
    """
    Score = author_weight * surname overlap
          + first_author_weight * [first surname matches first author]
          + year_weight * [exact year]
    """
    method = "author_year_fuzzy"

    def __init__(
        self,
        author_weight: float = 0.6,
        first_author_weight: float = 0.1,
        year_weight: float = 0.3,
        min_score: float = 0.6,
    ):
        self.author_weight = author_weight
        self.first_author_weight = first_author_weight
        self.year_weight = year_weight
        self.min_score = min_score

    def try_link(self, span, number, context):
        if span.style == CitationStyle.NUMERIC:
            return None
        surnames, year = parse_author_year(span.raw_text)
        if not surnames:
            return None

        candidates = []
        for ref in context.references:
            score = self.score(surnames, year, ref)
            if score >= self.min_score:
                candidates.append((score, ref))
        best = pick_best(candidates, context, span.page_num)
        if best is None:
            return None
        score, ref = best
        return self._result(span, ref, score, number)

    def score(self, surnames: List[str], year: Optional[int], ref: Reference) -> float:
        ref_tokens = set(name_tokens(ref.authors or ref.raw_text[:120]))
        if not ref_tokens:
            return 0.0
        overlap = sum(1 for s in surnames if s in ref_tokens) / len(surnames)

        first = first_author_tokens(ref.authors) if ref.authors else set(name_tokens(ref.raw_text[:120])[:1])
        first_hit = 1.0 if surnames[0] in first else 0.0

        ref_year = ref.year if ref.year is not None else parse_year(ref.raw_text)
        year_hit = 1.0 if year is not None and ref_year == year else 0.0

        return (
            self.author_weight * overlap
            + self.first_author_weight * first_hit
            + self.year_weight * year_hit
        )
