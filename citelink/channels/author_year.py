"""
Author-Year Citation Channel
===========================
Detects parenthetical author-year citations such as
(Smith, 2020), (Smith et al., 2020a), (Smith & Jones, 2019; Lee, 2021),
[Brown and Green, 2018, 2020].

Each semicolon-chained group expands into one span per (author-set, year).
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..page_model import PageData
from ..types import CitationSpan, CitationStyle, Provenance

NAME = r"(?:(?:van|von|de|der|den|di|da|la|le|du|del)\s+)*[A-Z][A-Za-zÀ-ɏ'’\-]+"
YEAR = r"(?:19|20)\d{2}[a-z]?"


@dataclass
class AuthorYearConfig:
    """Configuration for the author-year channel"""
    base_confidence: float = 0.75
    specific_author_bonus: float = 0.05    # "et al." or two-author form
    consistent_chain_bonus: float = 0.05   # every group in the enclosure parsed
    inconsistent_chain_penalty: float = 0.1
    max_confidence: float = 0.9


@dataclass
class AuthorYearGroup:
    """One parsed group, e.g. "Smith et al., 2019, 2020" """
    authors: str
    years: List[Tuple[str, int, int]]  # (year text, start, end) relative to the group
    start: int
    end: int

    @property
    def specific(self) -> bool:
        return bool(re.search(r"\bet\s+al\b|&|\band\b", self.authors))


class AuthorYearChannel:
    """Detect author-year citation groups inside parentheses or brackets"""

    ENCLOSURE_PATTERN = re.compile(r"\(([^()]{4,240})\)|\[([^\[\]]{4,240})\]")
    GROUP_PATTERN = re.compile(
        r"^(?:(?i:see also|see|e\.g\.|cf\.|i\.e\.)\s*,?\s+)?"
        r"(?P<authors>" + NAME + r"(?:\s*,\s*" + NAME + r")*"
        r"(?:\s*,?\s+(?:and|&)\s+" + NAME + r")?"
        r"(?:\s+et\s+al\.?)?)"
        r"\s*,?\s+(?P<years>" + YEAR + r"(?:\s*,\s*" + YEAR + r")*)\s*$"
    )
    YEAR_PATTERN = re.compile(YEAR)

    def __init__(self, config: Optional[AuthorYearConfig] = None):
        self.config = config or AuthorYearConfig()

    def extract(self, page: PageData) -> List[CitationSpan]:
        """Extract author-year spans from one page"""
        spans: List[CitationSpan] = []
        for tm in page.locate_text_matches(self.ENCLOSURE_PATTERN):
            line = page.get_line(tm.line_id)
            # Offset of the inner text within the line
            inner_offset = tm.start + 1
            inner = tm.match_text[1:-1]
            groups, total = self.parse_enclosure(inner)
            if not groups:
                continue
            consistent = len(groups) == total

            for group in groups:
                confidence = self._confidence(group, consistent)
                for i, (year_text, ys, ye) in enumerate(group.years):
                    if i == 0:
                        start, end = group.start, group.start + ye
                    else:
                        start, end = group.start + ys, group.start + ye
                    bbox = line.slice_bbox(inner_offset + start, inner_offset + end) if line else tm.bbox
                    spans.append(CitationSpan(
                        page_num=page.page_num,
                        bbox=bbox,
                        raw_text=f"{group.authors}, {year_text}",
                        style=CitationStyle.AUTHOR_YEAR,
                        provenance=Provenance.PATTERN,
                        confidence=confidence,
                    ))
        return spans

    def parse_enclosure(self, inner: str) -> Tuple[List[AuthorYearGroup], int]:
        """
        Split enclosure text on ';' and parse each chunk.

        Returns:
            (parsed groups, number of non-empty chunks)
        """
        groups: List[AuthorYearGroup] = []
        total = 0
        pos = 0
        for chunk in inner.split(";"):
            chunk_start = pos
            pos += len(chunk) + 1
            stripped = chunk.strip()
            if not stripped:
                continue
            total += 1
            lead = chunk_start + (len(chunk) - len(chunk.lstrip()))
            m = self.GROUP_PATTERN.match(stripped)
            if not m:
                continue
            authors = re.sub(r"\s+", " ", m.group("authors")).strip()
            years_start = m.start("years")
            years = [
                (y.group(0), years_start + y.start(), years_start + y.end())
                for y in self.YEAR_PATTERN.finditer(m.group("years"))
            ]
            # Skip the lead-in ("see", "e.g.") so bboxes start at the author
            groups.append(AuthorYearGroup(
                authors=authors,
                years=[(t, s - m.start("authors"), e - m.start("authors")) for t, s, e in years],
                start=lead + m.start("authors"),
                end=lead + m.end("years"),
            ))
        return groups, total

    def _confidence(self, group: AuthorYearGroup, consistent: bool) -> float:
        cfg = self.config
        score = cfg.base_confidence
        if group.specific:
            score += cfg.specific_author_bonus
        score += cfg.consistent_chain_bonus if consistent else -cfg.inconsistent_chain_penalty
        return round(min(cfg.max_confidence, max(0.0, score)), 4)


def looks_like_author_year(text: str) -> bool:
    """True if text carries a capitalized name and a year, or a bare year"""
    t = text.strip()
    if re.fullmatch(r"\(?" + YEAR + r"\)?", t):
        return True
    return bool(re.search(r"[A-Z][a-z]+", t) and re.search(r"\b" + YEAR + r"\b", t))
