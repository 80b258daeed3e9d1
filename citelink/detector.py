"""
Citation Span Detector
======================
Single entry point for citation span detection on one PDF.
Orchestrates: PdfDocument -> PageModels -> Bibliography -> Channels -> Fusion

Pages are loaded and scanned independently; a page that throws is skipped
with a PartialExtractionWarning and detection continues.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .bib import BibliographyLocator, BibliographyStart, EntryExtent
from .channels import (
    AnnotationChannel, AnnotationConfig,
    NumericChannel, NumericConfig,
    AuthorYearChannel, AuthorYearConfig,
)
from .concurrency import CancellationToken
from .errors import PartialExtractionWarning
from .fusion import SpanFuser, FusionConfig
from .page_model import PageData
from .pdf import PdfDocument, PageContent
from .types import CitationSpan

logger = logging.getLogger(__name__)


@dataclass
class DetectorConfig:
    """Complete detector configuration"""
    numeric_config: NumericConfig = field(default_factory=NumericConfig)
    author_year_config: AuthorYearConfig = field(default_factory=AuthorYearConfig)
    annotation_config: AnnotationConfig = field(default_factory=AnnotationConfig)
    fusion_config: FusionConfig = field(default_factory=FusionConfig)

    # Feature toggles
    enable_annotations: bool = True
    enable_numeric: bool = True
    enable_author_year: bool = True

    # Bibliography header search window (last N pages)
    bib_scan_pages: int = 15

    # Page model
    space_ratio: float = 0.2
    column_gap_ratio: float = 2.5

    debug: bool = False

    @classmethod
    def strict(cls) -> 'DetectorConfig':
        """Brackets only, no parenthesized numbers"""
        return cls(numeric_config=NumericConfig(enable_paren=False, max_span=20))

    @classmethod
    def recall(cls) -> 'DetectorConfig':
        """Wider ranges, parenthesized numbers kept"""
        return cls(numeric_config=NumericConfig(max_span=100))


@dataclass
class DetectionReport:
    """Diagnostics from one detection run"""
    page_count: int = 0
    pages_scanned: int = 0
    references_start_page: Optional[int] = None
    start_page_source: str = "none"  # supplied | header | content | none

    annotation_links: int = 0
    annotation_spans: int = 0
    numeric_spans: int = 0
    author_year_spans: int = 0
    duplicates_dropped: int = 0
    overlaps_dropped: int = 0

    entry_extents: Dict[int, EntryExtent] = field(default_factory=dict)
    warnings: List[PartialExtractionWarning] = field(default_factory=list)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> str:
        lines = [
            "=" * 60,
            "CITATION DETECTION SUMMARY",
            "=" * 60,
            f"Pages: {self.pages_scanned}/{self.page_count} scanned",
            f"Bibliography start page: {self.references_start_page} ({self.start_page_source})",
            f"Located entries: {len(self.entry_extents)}",
            "",
            f"Link annotations: {self.annotation_links}",
            f"Annotation spans: {self.annotation_spans}",
            f"Numeric spans: {self.numeric_spans}",
            f"Author-year spans: {self.author_year_spans}",
            f"Dropped (duplicate/overlap): {self.duplicates_dropped}/{self.overlaps_dropped}",
        ]
        if self.warnings:
            lines.append("")
            lines.append(f"Warnings ({self.warning_count}):")
            for w in self.warnings[:10]:
                lines.append(f"  {w}")
        lines.append("=" * 60)
        return "\n".join(lines)


@dataclass
class DetectionResult:
    spans: List[CitationSpan]
    report: DetectionReport


class CitationSpanDetector:
    """
    Detect citation spans in a PDF.

    Usage:
        detector = CitationSpanDetector()
        result = detector.detect("paper.pdf", references_start_page=12)
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()

        self.locator = BibliographyLocator(scan_pages=self.config.bib_scan_pages)
        self.annotation_channel = AnnotationChannel(self.config.annotation_config)
        self.numeric_channel = NumericChannel(self.config.numeric_config)
        self.author_year_channel = AuthorYearChannel(self.config.author_year_config)

    def detect(
        self,
        pdf_path: str,
        references_start_page: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DetectionResult:
        """
        Open the PDF for the duration of detection.

        Raises:
            FileAccessError: file missing or not a readable PDF
            ExtractionCancelled: token fired between pages
        """
        with PdfDocument(
            pdf_path,
            space_ratio=self.config.space_ratio,
            column_gap_ratio=self.config.column_gap_ratio,
        ) as doc:
            return self.detect_document(doc, references_start_page, cancel_token)

    def detect_document(
        self,
        doc,
        references_start_page: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DetectionResult:
        """
        Run detection on an open document.

        `doc` needs `page_count` and `load_page(page_num) -> PageContent`.
        """
        report = DetectionReport(page_count=doc.page_count)

        # 1. Load pages
        contents: Dict[int, PageContent] = {}
        for page_num in range(1, doc.page_count + 1):
            self._check_cancel(cancel_token, f"loading page {page_num}")
            try:
                contents[page_num] = doc.load_page(page_num)
            except Exception as exc:
                self._warn(report, page_num, f"failed to load: {exc}")

        # 2. Bibliography
        pages = [contents[n].page for n in sorted(contents)]
        start: Optional[BibliographyStart] = None
        if references_start_page is not None:
            report.start_page_source = "supplied"
            known = contents.get(references_start_page)
            start = (self.locator.start_on_page(known.page) if known
                     else BibliographyStart(references_start_page, source="page"))
        else:
            start = self.locator.find_start(pages)
            if start is not None:
                report.start_page_source = start.source
        start_page = start.page_num if start else None
        report.references_start_page = start_page
        report.entry_extents = self.locator.locate_entries(pages, start_page, start)

        def destination_text(dest_page: int, dest_y: Optional[float]) -> Optional[str]:
            content = contents.get(dest_page)
            line = content.page.line_near(dest_y) if content else None
            return line.text if line else None

        # 3. Scan body pages, and the part of the start page above the bibliography
        annotation_spans: List[CitationSpan] = []
        pattern_spans: List[CitationSpan] = []
        for page_num in sorted(contents):
            self._check_cancel(cancel_token, f"scanning page {page_num}")
            content = contents[page_num]
            if start is not None and page_num >= start.page_num:
                if page_num > start.page_num:
                    continue
                content = self._body_part(content, start)
                if not content.page.lines and not content.annotations:
                    continue
            try:
                annots, patterns = self._scan_page(content, start_page, destination_text, report)
            except Exception as exc:
                self._warn(report, page_num, f"failed to scan: {exc}")
                continue
            report.pages_scanned += 1
            annotation_spans.extend(annots)
            pattern_spans.extend(patterns)

        # 4. Fuse
        fuser = SpanFuser(self.config.fusion_config)
        spans = fuser.fuse(annotation_spans, pattern_spans)
        report.duplicates_dropped = fuser.stats.duplicates_dropped
        report.overlaps_dropped = fuser.stats.overlaps_dropped

        logger.info(
            "Detected %d spans (%d annotation, %d numeric, %d author-year) on %d/%d pages, %d warnings",
            len(spans), report.annotation_spans, report.numeric_spans, report.author_year_spans,
            report.pages_scanned, report.page_count, report.warning_count,
        )
        if self.config.debug:
            logger.debug("\n%s", report.summary())

        return DetectionResult(spans=spans, report=report)

    def _scan_page(
        self,
        content: PageContent,
        start_page: Optional[int],
        destination_text,
        report: DetectionReport,
    ) -> Tuple[List[CitationSpan], List[CitationSpan]]:
        annots: List[CitationSpan] = []
        patterns: List[CitationSpan] = []

        if self.config.enable_annotations:
            report.annotation_links += len(content.annotations)
            annots = self.annotation_channel.extract(
                content, start_page, destination_text, self.locator.is_entry_start,
            )
        if self.config.enable_numeric:
            numeric = self.numeric_channel.extract(content.page)
            patterns.extend(numeric)
        if self.config.enable_author_year:
            author_year = self.author_year_channel.extract(content.page)
            patterns.extend(author_year)

        # Counters only after the whole page succeeded
        report.annotation_spans += len(annots)
        if self.config.enable_numeric:
            report.numeric_spans += len(numeric)
        if self.config.enable_author_year:
            report.author_year_spans += len(author_year)

        logger.debug("Page %d: %d annotation, %d pattern spans", content.page_num, len(annots), len(patterns))
        return annots, patterns

    def _body_part(self, content: PageContent, start: BibliographyStart) -> PageContent:
        """Lines and links of the start page that precede the bibliography"""
        page = content.page
        body = PageData(
            page_num=page.page_num,
            width=page.width,
            height=page.height,
            lines=[ln for ln in page.lines if not start.covers(page.page_num, ln.bbox)],
        )
        annots = [a for a in content.annotations if not start.covers(page.page_num, a.bbox)]
        return PageContent(page=body, annotations=annots)

    def _warn(self, report: DetectionReport, page_num: int, message: str) -> None:
        warning = PartialExtractionWarning(page_num=page_num, message=message)
        report.warnings.append(warning)
        logger.warning("Skipping %s", warning)

    def _check_cancel(self, token: Optional[CancellationToken], where: str) -> None:
        if token is not None:
            token.raise_if_cancelled(where)
