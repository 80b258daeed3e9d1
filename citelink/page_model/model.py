"""
Page Data Model
===============
Structures for representing page content with line grouping.
Used by every channel for consistent position analysis.

Lines carry a text layout with synthetic inter-word spaces (most PDFs do not
store space glyphs), plus an index from text positions back to chars so a
regex match can be turned into a bounding box.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import re
import statistics

from ..types import BBox
from ..geometry import contains_point


@dataclass
class CharData:
    """
    Single character with all relevant properties.
    Normalized from pdfplumber char dict.
    """
    text: str
    x0: float
    top: float
    x1: float
    bottom: float
    size: float
    fontname: str = "Unknown"

    @property
    def mid_y(self) -> float:
        return (self.top + self.bottom) / 2

    @property
    def mid_x(self) -> float:
        return (self.x0 + self.x1) / 2

    @property
    def bbox(self) -> BBox:
        return BBox(self.x0, self.top, self.x1, self.bottom)

    @classmethod
    def from_pdfplumber(cls, char_dict: Dict[str, Any]) -> 'CharData':
        """Create from pdfplumber char dictionary"""
        return cls(
            text=char_dict.get('text', ''),
            x0=float(char_dict.get('x0', 0)),
            top=float(char_dict.get('top', 0)),
            x1=float(char_dict.get('x1', 0)),
            bottom=float(char_dict.get('bottom', 0)),
            size=float(char_dict.get('size', 0) or 0),
            fontname=char_dict.get('fontname', 'Unknown'),
        )


@dataclass
class LineData:
    """
    A line (or column segment of a line) of characters grouped by vertical
    position, sorted left to right.

    Attributes:
        text: Line text including synthetic spaces
        char_index: For each position in text, the index of the source char,
            or None for a synthetic space
    """
    line_id: int
    chars: List[CharData] = field(default_factory=list)
    space_ratio: float = 0.2
    text: str = field(default="", init=False)
    char_index: List[Optional[int]] = field(default_factory=list, init=False)

    def __post_init__(self):
        self.reflow()

    def reflow(self) -> None:
        """Rebuild text and char_index from chars"""
        parts: List[str] = []
        index: List[Optional[int]] = []
        prev: Optional[CharData] = None
        for i, c in enumerate(self.chars):
            if prev is not None and not c.text.isspace() and not prev.text.isspace():
                gap = c.x0 - prev.x1
                ref_size = min(c.size, prev.size) or 10.0
                if gap > max(1.0, ref_size * self.space_ratio):
                    parts.append(" ")
                    index.append(None)
            for ch in c.text:
                parts.append(ch)
                index.append(i)
            prev = c
        self.text = "".join(parts)
        self.char_index = index

    @property
    def top(self) -> float:
        return min((c.top for c in self.chars), default=0.0)

    @property
    def bottom(self) -> float:
        return max((c.bottom for c in self.chars), default=0.0)

    @property
    def x0(self) -> float:
        return min((c.x0 for c in self.chars), default=0.0)

    @property
    def x1(self) -> float:
        return max((c.x1 for c in self.chars), default=0.0)

    @property
    def bbox(self) -> BBox:
        return BBox(self.x0, self.top, self.x1, self.bottom)

    def slice_bbox(self, start: int, end: int) -> BBox:
        """Bounding box of text[start:end] using per-char boxes"""
        idxs = sorted({i for i in self.char_index[start:end] if i is not None})
        if not idxs:
            return self.bbox
        chars = [self.chars[i] for i in idxs]
        return BBox(
            min(c.x0 for c in chars),
            min(c.top for c in chars),
            max(c.x1 for c in chars),
            max(c.bottom for c in chars),
        )


@dataclass
class PageData:
    """
    Complete page data with line grouping.
    """
    page_num: int  # 1-indexed
    width: float
    height: float
    lines: List[LineData] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Full page text with newlines"""
        return '\n'.join(line.text for line in self.lines)

    @property
    def char_count(self) -> int:
        return sum(len(line.chars) for line in self.lines)

    def get_line(self, line_id: int) -> Optional[LineData]:
        for line in self.lines:
            if line.line_id == line_id:
                return line
        return None

    @dataclass
    class TextMatch:
        page_num: int
        bbox: BBox
        line_id: int
        match_text: str
        start: int
        end: int
        groups: Dict[str, Optional[str]] = field(default_factory=dict)

    def locate_text_matches(self, pattern: re.Pattern) -> List['PageData.TextMatch']:
        """
        Locate regex matches in line text with bbox from char positions.
        Matches never cross lines.
        """
        matches: List[PageData.TextMatch] = []
        for line in self.lines:
            for m in pattern.finditer(line.text):
                matches.append(PageData.TextMatch(
                    page_num=self.page_num,
                    bbox=line.slice_bbox(m.start(), m.end()),
                    line_id=line.line_id,
                    match_text=m.group(0),
                    start=m.start(),
                    end=m.end(),
                    groups=m.groupdict(),
                ))
        return matches

    def text_in_bbox(self, bbox: BBox, tolerance: float = 1.0) -> str:
        """
        Text whose char centers fall inside bbox, line by line.
        Synthetic spaces between selected chars are kept.
        """
        pieces: List[str] = []
        for line in self.lines:
            if line.bottom < bbox.y1 - tolerance or line.top > bbox.y2 + tolerance:
                continue
            hit = [
                pos for pos, ci in enumerate(line.char_index)
                if ci is not None and contains_point(
                    bbox, line.chars[ci].mid_x, line.chars[ci].mid_y, tolerance)
            ]
            if hit:
                pieces.append(line.text[hit[0]:hit[-1] + 1].strip())
        return re.sub(r"\s+", " ", " ".join(pieces)).strip()

    def line_near(self, y: Optional[float], tolerance: float = 6.0) -> Optional[LineData]:
        """
        The line at y, or the first line starting below it.
        Destination targets usually sit slightly above the entry text.
        """
        if y is None or not self.lines:
            return None
        for line in sorted(self.lines, key=lambda ln: (ln.top, ln.x0)):
            if line.bottom >= y - tolerance:
                return line
        return None


def build_page_data(
    page_chars: List[Dict[str, Any]],
    page_num: int,
    page_width: float = 612.0,
    page_height: float = 792.0,
    space_ratio: float = 0.2,
    column_gap_ratio: float = 2.5,
) -> PageData:
    """
    Build PageData from pdfplumber chars.

    Uses a dynamic line tolerance based on median font size. A horizontal
    gap wider than column_gap_ratio * median size splits a visual line into
    separate column segments so patterns never span columns.

    Args:
        page_chars: List of char dicts from pdfplumber
        page_num: 1-indexed page number
        page_width: Page width in points
        page_height: Page height in points
        space_ratio: Gap (in font sizes) that counts as a word space
        column_gap_ratio: Gap (in font sizes) that counts as a column gutter

    Returns:
        PageData with chars grouped into lines
    """
    if not page_chars:
        return PageData(page_num=page_num, width=page_width, height=page_height)

    # 1) Median font size -> dynamic tolerances
    sizes_all = [c.get('size', 0) for c in page_chars if c.get('size', 0) > 0]
    median_size = statistics.median(sizes_all) if sizes_all else 10.0
    line_tol = max(3.0, median_size * 0.35)
    column_gap = median_size * column_gap_ratio

    def mid_y(ch):
        return (ch.get('top', 0) + ch.get('bottom', 0)) / 2

    sorted_chars = sorted(page_chars, key=lambda c: (mid_y(c), c.get('x0', 0)))

    # 2) Group into visual lines
    raw_lines: List[List[Dict[str, Any]]] = []
    current_line = [sorted_chars[0]]
    for c in sorted_chars[1:]:
        if abs(mid_y(c) - mid_y(current_line[-1])) <= line_tol:
            current_line.append(c)
            continue
        raw_lines.append(current_line)
        current_line = [c]
    raw_lines.append(current_line)

    # 3) Split each visual line at column gutters
    segments: List[List[Dict[str, Any]]] = []
    for raw_line in raw_lines:
        ordered = sorted(raw_line, key=lambda x: x.get('x0', 0))
        segment = [ordered[0]]
        for c in ordered[1:]:
            if c.get('x0', 0) - segment[-1].get('x1', 0) > column_gap:
                segments.append(segment)
                segment = [c]
            else:
                segment.append(c)
        segments.append(segment)

    # top-to-bottom, then left-to-right
    segments.sort(key=lambda seg: (round(min(mid_y(c) for c in seg), 1), seg[0].get('x0', 0)))

    lines: List[LineData] = []
    for seg in segments:
        lines.append(LineData(
            line_id=len(lines),
            chars=[CharData.from_pdfplumber(c) for c in seg],
            space_ratio=space_ratio,
        ))

    return PageData(
        page_num=page_num,
        width=page_width,
        height=page_height,
        lines=lines,
    )
