"""
Unified Data Types for the Citation Engine
==========================================
Every module exchanges these types. Coordinates follow pdfplumber's page
space: origin at the top-left corner, y grows downward.

Type Hierarchy:
- BBox: Bounding box of a span or annotation
- Paper: A paper and its PDF location
- CitationSpan: One detected in-text citation occurrence
- Reference: One parsed bibliography entry (read-only input)
- CitationLink: Edge from a span to the reference it cites
- LinkResult: Linker output before persistence
- ThirdPartySignal: Optional external bibliographic structure output
- ExtractionStats: Aggregates recomputed from persisted data
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Dict, Set, Optional, Tuple


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# Enumerations
# ============================================================

class CitationStyle(str, Enum):
    """Marker family of a citation span"""
    NUMERIC = "numeric"          # [1], [1,2,3], [1-5]
    AUTHOR_YEAR = "author_year"  # (Smith et al., 2024)
    UNKNOWN = "unknown"


class Provenance(str, Enum):
    """How the span was detected"""
    ANNOTATION = "annotation"  # PDF link annotation (near ground truth)
    PATTERN = "pattern"        # Text pattern match


# ============================================================
# Primitive Types
# ============================================================

@dataclass(frozen=True)
class BBox:
    """Bounding box (x1, y1) top-left to (x2, y2) bottom-right"""
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return max(0.0, self.x2 - self.x1)

    @property
    def height(self) -> float:
        return max(0.0, self.y2 - self.y1)

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x1, self.y1, self.x2, self.y2)

    @classmethod
    def from_tuple(cls, t: Tuple[float, float, float, float]) -> 'BBox':
        x1, y1, x2, y2 = t
        return cls(min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))


# ============================================================
# Core Data Structures
# ============================================================

@dataclass
class Paper:
    """A paper whose PDF citations are extracted"""
    pdf_path: str
    title: str = ""
    page_count: Optional[int] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class CitationSpan:
    """
    A single in-text citation occurrence.

    Attributes:
        page_num: 1-indexed page number
        bbox: Location on the page
        raw_text: Marker text as it appears (e.g. "[2,3]", "Smith et al., 2020")
        style: Marker family
        provenance: Detection source
        confidence: Detection confidence, comparable only within one run
        dest_page: Annotation jump target page (annotation spans only)
        dest_y: Annotation jump target y, top-origin page space
        marker_number: The single integer a pattern-expanded numeric span
            stands for. None for annotation and author-year spans.
    """
    page_num: int
    bbox: BBox
    raw_text: str
    style: CitationStyle = CitationStyle.UNKNOWN
    provenance: Provenance = Provenance.PATTERN
    confidence: float = 0.5
    dest_page: Optional[int] = None
    dest_y: Optional[float] = None
    marker_number: Optional[int] = None
    paper_id: str = ""
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def reading_order_key(self) -> Tuple[int, float, float]:
        """(page, top, left) ordering key"""
        return (self.page_num, round(self.bbox.y1, 1), round(self.bbox.x1, 1))


@dataclass
class Reference:
    """
    One parsed bibliography entry.

    y_top / y_bottom give the vertical extent of the entry on page_num when
    known (supplied upstream or located from the PDF).
    """
    number: int
    raw_text: str
    paper_id: str = ""
    authors: Optional[str] = None
    title: Optional[str] = None
    venue: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    page_num: int = 0
    y_top: Optional[float] = None
    y_bottom: Optional[float] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def search_query(self) -> str:
        """Query string for looking up this reference elsewhere"""
        return self.title or self.authors or self.raw_text[:100]

    @property
    def has_y_range(self) -> bool:
        return self.y_top is not None and self.y_bottom is not None

    def contains(self, page: int, y: Optional[float]) -> bool:
        """True if (page, y) lies inside this entry's known extent"""
        if page != self.page_num or y is None or not self.has_y_range:
            return False
        return self.y_top <= y <= self.y_bottom


@dataclass
class CitationLink:
    """Persisted edge between a span and a reference"""
    citation_span_id: str
    reference_id: str
    link_method: str
    confidence: float = 0.5
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class LinkResult:
    """
    Linker output for one (span, expanded number).

    Attributes:
        number: The expanded integer this link was made for, if any
    """
    span: CitationSpan
    reference: Reference
    method: str
    confidence: float
    number: Optional[int] = None

    def to_link(self) -> CitationLink:
        return CitationLink(
            citation_span_id=self.span.id,
            reference_id=self.reference.id,
            link_method=self.method,
            confidence=self.confidence,
        )


# ============================================================
# Third-party corroborating signal
# ============================================================

@dataclass
class ThirdPartyCitation:
    """An in-text citation reported by an external structure parser"""
    page_num: int
    raw_text: str
    target_key: Optional[str] = None
    ref_type: str = "biblio"  # biblio | figure | formula | table
    bbox: Optional[BBox] = None


@dataclass
class ThirdPartyReference:
    """A bibliography entry reported by an external structure parser"""
    key: str
    number: Optional[int] = None
    authors: Optional[str] = None
    title: Optional[str] = None
    year: Optional[int] = None


@dataclass
class ThirdPartySignal:
    citations: List[ThirdPartyCitation] = field(default_factory=list)
    references: List[ThirdPartyReference] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.citations or not self.references

    def reference_by_key(self, key: Optional[str]) -> Optional[ThirdPartyReference]:
        if not key:
            return None
        wanted = key.lstrip("#")
        for ref in self.references:
            if ref.key.lstrip("#") == wanted:
                return ref
        return None


# ============================================================
# Statistics
# ============================================================

@dataclass
class ExtractionStats:
    """
    Aggregates over one paper's persisted spans and links.

    linked_count counts spans with at least one link; link_count counts
    link rows.
    """
    total_spans: int = 0
    spans_by_provenance: Dict[str, int] = field(default_factory=dict)
    linked_count: int = 0
    link_count: int = 0
    avg_confidence: float = 0.0

    @property
    def annotation_spans(self) -> int:
        return self.spans_by_provenance.get(Provenance.ANNOTATION.value, 0)

    @property
    def pattern_spans(self) -> int:
        return self.spans_by_provenance.get(Provenance.PATTERN.value, 0)

    @property
    def unlinked_count(self) -> int:
        return self.total_spans - self.linked_count


# ============================================================
# Marker normalization / parsing
# ============================================================

_DASH_TRANSLATION = str.maketrans({
    "–": "-",  # en-dash
    "—": "-",  # em-dash
    "−": "-",  # minus sign
    "‑": "-",  # non-breaking hyphen
})


def normalize_ref_text(raw: str) -> str:
    """
    Normalize numeric marker text into a compact parseable form.

    - Dash variants -> hyphen
    - Remove whitespace
    - Strip one layer of wrapping brackets/parentheses
    """
    if raw is None:
        return ""
    s = str(raw).translate(_DASH_TRANSLATION)
    s = "".join(ch for ch in s if not ch.isspace())
    if len(s) >= 2 and ((s[0] == "[" and s[-1] == "]") or (s[0] == "(" and s[-1] == ")")):
        s = s[1:-1]
    return s


def parse_ref_ids(raw: str, max_span: int = 50, max_id: int = 9999) -> List[int]:
    """
    Parse a numeric marker into the list of reference numbers it denotes.

    Supports:
    - "[12]" -> [12]
    - "[1,3,5]" -> [1,3,5]
    - "[1-3]" -> [1,2,3]
    - "[1-3,7,9-10]" -> [1,2,3,7,9,10]

    Rules:
    - reversed ranges ("7-5") contribute nothing
    - ranges wider than max_span contribute nothing
    - 0, leading-zero numbers and numbers above max_id are rejected
    - duplicates removed, order preserved
    """
    s = normalize_ref_text(raw)
    if not s:
        return []

    out: List[int] = []
    seen: Set[int] = set()

    def _valid(tok: str) -> bool:
        return tok.isdigit() and not (len(tok) > 1 and tok.startswith("0")) and 0 < int(tok) <= max_id

    for part in (p for p in s.split(",") if p):
        m = re.fullmatch(r"(\d+)-(\d+)", part)
        if m:
            a, b = m.group(1), m.group(2)
            if not (_valid(a) and _valid(b)):
                continue
            start, end = int(a), int(b)
            if end < start or end - start > max_span:
                continue
            for n in range(start, end + 1):
                if n not in seen:
                    seen.add(n)
                    out.append(n)
            continue

        if not _valid(part):
            continue
        n = int(part)
        if n not in seen:
            seen.add(n)
            out.append(n)

    return out
