"""
Numeric Citation Channel
========================
Detects bracket/paren-enclosed integer lists and ranges like [1], [1-3],
[1,3,5], (4, 7). Each marker expands into one span per integer.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..page_model import PageData
from ..page_model.model import LineData
from ..types import CitationSpan, CitationStyle, Provenance

_DASHES = "-–—−‑"


@dataclass
class NumericConfig:
    """Configuration for the numeric channel"""
    bracket_confidence: float = 0.85
    paren_confidence: float = 0.7
    uniform_separator_bonus: float = 0.05
    glued_context_penalty: float = 0.15
    max_span: int = 50          # widest range expanded, e.g. [1-50]
    max_bracket_id: int = 9999
    max_paren_id: int = 999     # (2020) is a year, not a reference
    enable_paren: bool = True


class NumericChannel:
    """
    Detect numeric citation markers.

    Patterns supported:
    - [1] - single reference
    - [1-3] or [1–3] - range
    - [1,3,5] / [1; 3] - list
    - [1-3,7,9-10] - mixed
    - (1), (2, 5) - parenthesized forms, lower confidence
    """

    BRACKET_PATTERN = re.compile(r"\[\s*\d+(?:\s*[-–—−‑,;]\s*\d+)*\s*\]")
    PAREN_PATTERN = re.compile(r"\(\s*\d+(?:\s*[-–—−‑,;]\s*\d+)*\s*\)")
    SEGMENT_PATTERN = re.compile(r"(\d+)(?:\s*[-–—−‑]\s*(\d+))?")

    def __init__(self, config: Optional[NumericConfig] = None):
        self.config = config or NumericConfig()

    def extract(self, page: PageData) -> List[CitationSpan]:
        """Extract numeric spans from one page"""
        spans: List[CitationSpan] = []
        patterns = [(self.BRACKET_PATTERN, True)]
        if self.config.enable_paren:
            patterns.append((self.PAREN_PATTERN, False))

        for pattern, bracketed in patterns:
            for tm in page.locate_text_matches(pattern):
                line = page.get_line(tm.line_id)
                confidence = self._confidence(line, tm.start, tm.end, tm.match_text, bracketed)
                max_id = self.config.max_bracket_id if bracketed else self.config.max_paren_id
                for number, start, end in self.expand(tm.match_text, max_id=max_id):
                    bbox = line.slice_bbox(tm.start + start, tm.start + end) if line else tm.bbox
                    spans.append(CitationSpan(
                        page_num=page.page_num,
                        bbox=bbox,
                        raw_text=tm.match_text,
                        style=CitationStyle.NUMERIC,
                        provenance=Provenance.PATTERN,
                        confidence=confidence,
                        marker_number=number,
                    ))
        return spans

    def expand(self, marker: str, max_id: Optional[int] = None) -> List[Tuple[int, int, int]]:
        """
        Expand a marker into (number, start, end) triples, where start/end
        locate the text the number came from inside the marker.

        Endpoints of a range point at their own digits; interior numbers
        point at the whole range. Reversed ranges and ranges wider than
        max_span yield nothing.
        """
        max_id = max_id or self.config.max_bracket_id
        out: List[Tuple[int, int, int]] = []
        seen = set()

        def _ok(tok: str) -> bool:
            return not (len(tok) > 1 and tok.startswith("0")) and 0 < int(tok) <= max_id

        for m in self.SEGMENT_PATTERN.finditer(marker):
            a, b = m.group(1), m.group(2)
            if b is None:
                if _ok(a) and int(a) not in seen:
                    seen.add(int(a))
                    out.append((int(a), m.start(1), m.end(1)))
                continue
            if not (_ok(a) and _ok(b)):
                continue
            start, end = int(a), int(b)
            if end < start or end - start > self.config.max_span:
                continue
            for n in range(start, end + 1):
                if n in seen:
                    continue
                seen.add(n)
                if n == start:
                    out.append((n, m.start(1), m.end(1)))
                elif n == end:
                    out.append((n, m.start(2), m.end(2)))
                else:
                    out.append((n, m.start(), m.end()))
        return out

    def _confidence(self, line: Optional[LineData], start: int, end: int,
                    marker: str, bracketed: bool) -> float:
        """Base by enclosure, adjusted for separator uniformity and context"""
        cfg = self.config
        score = cfg.bracket_confidence if bracketed else cfg.paren_confidence

        separators = {",", ";"} & set(marker)
        if len(separators) <= 1:
            score += cfg.uniform_separator_bonus

        # Marker glued to digits/letters on either side ("x[1]2", "f(3)") looks
        # like an index or a function call.
        if line is not None:
            before = line.text[start - 1] if start > 0 else " "
            after = line.text[end] if end < len(line.text) else " "
            if after.isalnum() or before.isdigit() or (not bracketed and before.isalpha()):
                score -= cfg.glued_context_penalty

        return round(min(1.0, max(0.0, score)), 4)


def infer_numeric(text: str) -> bool:
    """True if text looks like a numeric marker or a bare reference number"""
    t = text.strip()
    if NumericChannel.BRACKET_PATTERN.fullmatch(t) or NumericChannel.PAREN_PATTERN.fullmatch(t):
        return True
    return bool(re.fullmatch(r"\d{1,3}(?:\s*[" + _DASHES + r",]\s*\d{1,3})*", t))
