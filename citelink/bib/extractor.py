"""
Bibliography Locator
====================
Finds where the bibliography starts and where each numbered entry sits on
the bibliography pages. Entry extents let annotation destinations
(page, y) be mapped to a Reference.

The start is a position, not just a page: text above the header on the
start page (and the left column when the header sits in the right one) is
still body text.
"""

import re
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from ..page_model import LineData, PageData
from ..types import BBox, Reference


@dataclass(frozen=True)
class EntryExtent:
    """Vertical extent of one numbered bibliography entry"""
    number: int
    page_num: int
    top: float
    bottom: float


@dataclass(frozen=True)
class BibliographyStart:
    """
    Where the bibliography begins.

    Attributes:
        page_num: 1-indexed start page
        top: Top of the header (or first entry) line on that page
        column_x0: Left edge of the bibliography column on the start page;
            0.0 unless the section starts in the right half of the page
        source: header | content | page
    """
    page_num: int
    top: float = 0.0
    column_x0: float = 0.0
    source: str = "header"

    TOLERANCE = 1.0

    def covers(self, page_num: int, box: BBox) -> bool:
        """True if a box on page_num lies inside the bibliography"""
        if page_num != self.page_num:
            return page_num > self.page_num
        return box.y1 >= self.top - self.TOLERANCE and box.x2 > self.column_x0


class BibliographyLocator:
    """
    Locate the bibliography section in a document.

    Supports:
    - Header detection: "References", "Bibliography", "7 References", ...
      anywhere on the page, so mid-column headers are found
    - Fallback: a run of sequential entries [1], [2], [3] (or 1. 2. 3.)
      when no header exists
    - Entry formats: [1], 1., (1)
    """

    # Section header patterns (case-insensitive, whole line)
    HEADER_PATTERNS = [
        r'references',
        r'bibliography',
        r'works\s+cited',
        r'literature\s+cited',
        r'references\s+and\s+notes',
        r'(?:\d+|[ivxlc]+)\.?\s*references',
        r'参考文献',
    ]

    # Entry start patterns - line beginnings only
    ENTRY_PATTERNS = [
        (re.compile(r'^\s*\[(\d{1,4})\]'), 'bracket'),   # [1] Author...
        (re.compile(r'^\s*(\d{1,4})\.\s'), 'dot'),       # 1. Author...
        (re.compile(r'^\s*\((\d{1,4})\)'), 'paren'),     # (1) Author...
    ]

    # Content fallback: entries 1..min_sequence must appear within this many lines
    SEQUENCE_WINDOW = 30

    def __init__(self, scan_pages: int = 15, min_entries: int = 2, min_sequence: int = 3):
        self.scan_pages = scan_pages
        self.min_entries = min_entries
        self.min_sequence = min_sequence
        self._header_regex = re.compile(
            r'^\s*(?:' + '|'.join(self.HEADER_PATTERNS) + r')\s*:?\s*$',
            re.IGNORECASE,
        )

    # ------------------------------------------------------------
    # Start
    # ------------------------------------------------------------

    def find_start(self, pages: List[PageData]) -> Optional[BibliographyStart]:
        """
        Bibliography start among the last `scan_pages` pages: the first
        references header, else the first run of sequential entries.
        """
        tail = self._tail(pages)
        for page in tail:
            line = self._header_line(page)
            if line is not None:
                return self._start_at(page, line, "header")
        return self._detect_by_content(tail)

    def find_start_page(self, pages: List[PageData]) -> Optional[int]:
        start = self.find_start(pages)
        return start.page_num if start else None

    def start_on_page(self, page: PageData) -> BibliographyStart:
        """
        Start position on a page already known to hold the bibliography.
        With no header or entry run on it, the whole page counts.
        """
        line = self._header_line(page)
        if line is not None:
            return self._start_at(page, line, "header")
        found = self._detect_by_content([page])
        if found is not None:
            return found
        return BibliographyStart(page.page_num, source="page")

    def is_entry_start(self, text: Optional[str]) -> bool:
        """True if text begins like a numbered bibliography entry"""
        if not text:
            return False
        return any(p.match(text) for p, _ in self.ENTRY_PATTERNS)

    def _tail(self, pages: List[PageData]) -> List[PageData]:
        if not pages:
            return []
        ordered = sorted(pages, key=lambda p: p.page_num)
        first = ordered[-1].page_num - self.scan_pages + 1
        return [p for p in ordered if p.page_num >= first]

    def _header_line(self, page: PageData) -> Optional[LineData]:
        for line in page.lines:
            if self._header_regex.match(line.text.strip()):
                return line
        return None

    def _start_at(self, page: PageData, line: LineData, source: str) -> BibliographyStart:
        column_x0 = line.x0 if line.x0 >= page.width / 2 else 0.0
        return BibliographyStart(page.page_num, line.top, column_x0, source)

    def _detect_by_content(self, pages: List[PageData]) -> Optional[BibliographyStart]:
        """
        Fallback: the first entry numbered 1 that is followed by entries
        2..min_sequence of the same format within SEQUENCE_WINDOW lines.
        Numbered section headings are too far apart to qualify.
        """
        stream = [(page, line) for page in pages for line in page.lines]
        for pattern, _ in self.ENTRY_PATTERNS:
            for i, (page, line) in enumerate(stream):
                m = pattern.match(line.text)
                if not m or int(m.group(1)) != 1:
                    continue
                if self._has_sequential_entries(pattern, stream[i:i + self.SEQUENCE_WINDOW]):
                    return self._start_at(page, line, "content")
        return None

    def _has_sequential_entries(self, pattern: re.Pattern, window: List[Tuple[PageData, LineData]]) -> bool:
        """Check that entries 1, 2, 3... lead the window"""
        nums = []
        for _, line in window:
            m = pattern.match(line.text)
            if m:
                nums.append(int(m.group(1)))
            if len(nums) == self.min_sequence:
                break
        return nums == list(range(1, self.min_sequence + 1))

    # ------------------------------------------------------------
    # Entry extents
    # ------------------------------------------------------------

    def locate_entries(
        self,
        pages: List[PageData],
        start_page: Optional[int],
        start: Optional[BibliographyStart] = None,
    ) -> Dict[int, EntryExtent]:
        """
        Find the extent of every numbered entry on the bibliography pages.

        An entry spans from the top of its marker line to the top of the next
        entry in the same column, or to the bottom of the page content. On
        the start page only lines inside `start` count.
        """
        if start_page is None:
            return {}
        bib_pages = [p for p in sorted(pages, key=lambda p: p.page_num) if p.page_num >= start_page]
        if start is None:
            start = BibliographyStart(start_page, source="page")
        bib_lines = {
            p.page_num: [ln for ln in p.lines if start.covers(p.page_num, ln.bbox)]
            for p in bib_pages
        }
        pattern = self._dominant_pattern(bib_lines)
        if pattern is None:
            return {}

        starts: List[Tuple[int, int, float, float]] = []  # (number, page, top, x0)
        page_bottoms: Dict[int, float] = {}
        for page in bib_pages:
            lines = bib_lines[page.page_num]
            page_bottoms[page.page_num] = max((ln.bottom for ln in lines), default=page.height)
            for line in lines:
                m = pattern.match(line.text)
                if not m:
                    continue
                number = int(m.group(1))
                if self._is_likely_year(number):
                    continue
                starts.append((number, page.page_num, line.top, line.x0))

        extents: Dict[int, EntryExtent] = {}
        for i, (number, page_num, top, x0) in enumerate(starts):
            if number in extents:
                continue
            bottom = page_bottoms[page_num]
            for next_number, next_page, next_top, next_x0 in starts[i + 1:]:
                if next_page != page_num:
                    break
                # Same column: next entry starts below, left edges roughly aligned
                if next_top > top and abs(next_x0 - x0) < 40.0:
                    bottom = next_top
                    break
            extents[number] = EntryExtent(number, page_num, top, bottom)
        return extents

    def _dominant_pattern(self, bib_lines: Dict[int, List[LineData]]) -> Optional[re.Pattern]:
        """Detect which entry pattern is dominant"""
        best_pattern = None
        best_count = 0
        lines = [ln.text for page_num in sorted(bib_lines) for ln in bib_lines[page_num]][:400]
        for pattern, _ in self.ENTRY_PATTERNS:
            count = sum(1 for text in lines if pattern.match(text))
            if count > best_count:
                best_pattern, best_count = pattern, count
        if best_count < self.min_entries:
            return None
        return best_pattern

    def _is_likely_year(self, num: int) -> bool:
        return 1900 <= num <= 2099


def apply_entry_extents(references: List[Reference], extents: Dict[int, EntryExtent]) -> List[Reference]:
    """
    Fill page/y-range on references that lack them.

    A supplied y-range is never overwritten; a supplied page_num is only
    kept when it agrees with the located entry.
    """
    out: List[Reference] = []
    for ref in references:
        extent = extents.get(ref.number)
        if extent is None or ref.has_y_range:
            out.append(ref)
            continue
        if ref.page_num and ref.page_num != extent.page_num:
            out.append(ref)
            continue
        out.append(replace(ref, page_num=extent.page_num, y_top=extent.top, y_bottom=extent.bottom))
    return out
