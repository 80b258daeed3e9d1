"""
PDF Document Reader
===================
Scoped pdfplumber handle that yields one page at a time: the page model
plus its link annotations with resolved jump destinations.

Usage:
    with PdfDocument(path) as doc:
        for page_num in range(1, doc.page_count + 1):
            content = doc.load_page(page_num)
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import pdfplumber
from pdfminer.pdfdocument import PDFDestinationNotFound
from pdfminer.pdftypes import resolve1
from pdfminer.psparser import PSLiteral

from ..errors import FileAccessError
from ..page_model import PageData, build_page_data
from ..types import BBox

logger = logging.getLogger(__name__)


@dataclass
class LinkAnnotation:
    """
    A /Link annotation on a page.

    Attributes:
        bbox: Clickable area, top-origin page space
        dest_page: 1-indexed target page for internal links
        dest_y: Target y, top-origin page space, when the destination has one
        uri: Target of external links
    """
    page_num: int
    bbox: BBox
    dest_page: Optional[int] = None
    dest_y: Optional[float] = None
    uri: Optional[str] = None

    @property
    def is_internal(self) -> bool:
        return self.dest_page is not None


@dataclass
class PageContent:
    page: PageData
    annotations: List[LinkAnnotation] = field(default_factory=list)

    @property
    def page_num(self) -> int:
        return self.page.page_num


def _name(obj: Any) -> Optional[str]:
    """PDF name object -> str"""
    obj = resolve1(obj)
    if isinstance(obj, PSLiteral):
        return obj.name if isinstance(obj.name, str) else obj.name.decode("latin-1")
    if isinstance(obj, bytes):
        return obj.decode("latin-1")
    if isinstance(obj, str):
        return obj
    return None


class PdfDocument:
    """
    pdfplumber-backed document, opened for the lifetime of a `with` block.

    Raises FileAccessError on enter when the file is missing or cannot be
    parsed as a PDF.
    """

    MAX_DEST_DEPTH = 4

    def __init__(self, path: str, space_ratio: float = 0.2, column_gap_ratio: float = 2.5):
        self.path = path
        self.space_ratio = space_ratio
        self.column_gap_ratio = column_gap_ratio
        self._pdf: Optional[pdfplumber.PDF] = None
        self._page_numbers: Dict[int, int] = {}

    def __enter__(self) -> 'PdfDocument':
        if not self.path or not os.path.isfile(self.path):
            raise FileAccessError(str(self.path))
        try:
            self._pdf = pdfplumber.open(self.path)
        except Exception as exc:
            raise FileAccessError(self.path, reason=f"Unreadable PDF ({exc})") from exc
        self._page_numbers = {
            page.page_obj.pageid: page.page_number for page in self._pdf.pages
        }
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._pdf is not None:
            self._pdf.close()
            self._pdf = None
        self._page_numbers = {}

    @property
    def pdf(self) -> pdfplumber.PDF:
        if self._pdf is None:
            raise RuntimeError("PdfDocument used outside of its with-block")
        return self._pdf

    @property
    def page_count(self) -> int:
        return len(self.pdf.pages)

    def load_page(self, page_num: int) -> PageContent:
        """Build the page model and link annotations of one page"""
        page = self.pdf.pages[page_num - 1]
        page_data = build_page_data(
            page.chars,
            page_num=page_num,
            page_width=float(page.width or 612.0),
            page_height=float(page.height or 792.0),
            space_ratio=self.space_ratio,
            column_gap_ratio=self.column_gap_ratio,
        )
        return PageContent(page=page_data, annotations=self._link_annotations(page))

    # ------------------------------------------------------------
    # Annotations
    # ------------------------------------------------------------

    def _link_annotations(self, page: 'pdfplumber.page.Page') -> List[LinkAnnotation]:
        links: List[LinkAnnotation] = []
        for annot in page.annots:
            data = annot.get("data") or {}
            if _name(data.get("Subtype")) != "Link":
                continue
            bbox = BBox.from_tuple((annot["x0"], annot["top"], annot["x1"], annot["bottom"]))
            dest = self._resolve_link(data)
            links.append(LinkAnnotation(
                page_num=page.page_number,
                bbox=bbox,
                dest_page=dest[0] if dest else None,
                dest_y=dest[1] if dest else None,
                uri=annot.get("uri"),
            ))
        return links

    def _resolve_link(self, data: Dict[str, Any]) -> Optional[Tuple[int, Optional[float]]]:
        """GoTo action or direct /Dest -> (page, y). URI actions -> None."""
        action = resolve1(data.get("A"))
        dest = None
        if isinstance(action, dict):
            kind = _name(action.get("S"))
            if kind != "GoTo":
                return None
            dest = action.get("D")
        if dest is None:
            dest = data.get("Dest")
        return self._resolve_destination(dest, 0)

    def _resolve_destination(self, dest: Any, depth: int) -> Optional[Tuple[int, Optional[float]]]:
        dest = resolve1(dest)
        if dest is None or depth > self.MAX_DEST_DEPTH:
            return None

        # Named destination
        if isinstance(dest, (bytes, str, PSLiteral)):
            name = dest.name if isinstance(dest, PSLiteral) else dest
            try:
                target = self.pdf.doc.get_dest(name)
            except PDFDestinationNotFound:
                logger.debug("Named destination not found: %r", name)
                return None
            return self._resolve_destination(target, depth + 1)

        if isinstance(dest, dict):
            return self._resolve_destination(dest.get("D"), depth + 1)

        if isinstance(dest, (list, tuple)) and dest:
            page_ref = dest[0]
            page_num = self._page_numbers.get(getattr(page_ref, "objid", None))
            if page_num is None and isinstance(page_ref, int) and 0 <= page_ref < self.page_count:
                page_num = page_ref + 1
            if page_num is None:
                return None
            return page_num, self._destination_y(page_num, dest)

        return None

    def _destination_y(self, page_num: int, dest: List[Any]) -> Optional[float]:
        """Top coordinate of an explicit destination, converted to top-origin"""
        kind = _name(dest[1]) if len(dest) > 1 else None
        top_index = {"XYZ": 3, "FitH": 2, "FitBH": 2, "FitR": 5}.get(kind or "")
        if top_index is None or len(dest) <= top_index:
            return None
        top = resolve1(dest[top_index])
        if not isinstance(top, (int, float)):
            return None
        page = self.pdf.pages[page_num - 1]
        return float(page.height) - float(top)
