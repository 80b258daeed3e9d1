import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.concurrency import CancellationToken
from citelink.detector import CitationSpanDetector, DetectorConfig
from citelink.errors import ExtractionCancelled, FileAccessError
from citelink.pdf import PageContent
from citelink.types import CitationStyle, Provenance
from page_factory import FakeDocument, make_page, text_bbox, link, line_top

BODY = "Prior work [1] and [2,3] agree."
BODY_2 = "Recent results [19-20] differ."


def _bibliography(page_num):
    return PageContent(page=make_page([
        "References",
        "[1] A. Smith. Title one. 2019.",
        "[2] B. Jones. Title two. 2020.",
        "[3] C. Lee. Title three. 2021.",
    ], page_num=page_num))


def _body(page_num, lines=(BODY, BODY_2), annotations=()):
    return PageContent(page=make_page(list(lines), page_num=page_num), annotations=list(annotations))


class TestDetectDocument(unittest.TestCase):
    def setUp(self):
        self.detector = CitationSpanDetector()

    def test_numeric_markers_expand(self):
        doc = FakeDocument({2: _body(2), 3: _bibliography(3)}, page_count=3)
        result = self.detector.detect_document(doc, references_start_page=3)
        self.assertEqual([s.marker_number for s in result.spans], [1, 2, 3, 19, 20])
        for span in result.spans:
            self.assertEqual(span.page_num, 2)
            self.assertEqual(span.style, CitationStyle.NUMERIC)
            self.assertEqual(span.provenance, Provenance.PATTERN)
        self.assertEqual(result.report.start_page_source, "supplied")
        self.assertEqual(result.report.numeric_spans, 5)

    def test_bibliography_pages_not_scanned(self):
        doc = FakeDocument({2: _body(2), 3: _bibliography(3)}, page_count=3)
        result = self.detector.detect_document(doc)
        self.assertEqual(result.report.references_start_page, 3)
        self.assertEqual(result.report.start_page_source, "header")
        self.assertTrue(all(s.page_num == 2 for s in result.spans))
        self.assertEqual(sorted(result.report.entry_extents), [1, 2, 3])

    def test_annotation_replaces_overlapping_pattern_span(self):
        top = line_top(0)
        annots = [link(2, text_bbox(BODY, "[1]", top), dest_page=3, dest_y=90.0)]
        doc = FakeDocument({2: _body(2, lines=[BODY], annotations=annots), 3: _bibliography(3)})
        result = self.detector.detect_document(doc, references_start_page=3)
        provenances = [(s.provenance, s.raw_text) for s in result.spans]
        self.assertIn((Provenance.ANNOTATION, "[1]"), provenances)
        self.assertNotIn((Provenance.PATTERN, "[1]"), provenances)
        self.assertEqual(len(result.spans), 3)
        self.assertEqual(result.report.overlaps_dropped, 1)

    def test_failing_page_is_skipped(self):
        contents = {n: _body(n) for n in range(1, 12)}
        contents[12] = _bibliography(12)
        doc = FakeDocument(contents, page_count=12, failing={10})
        result = self.detector.detect_document(doc, references_start_page=12)

        pages = {s.page_num for s in result.spans}
        self.assertEqual(pages, set(range(1, 10)) | {11})
        self.assertNotIn(10, pages)
        self.assertGreater(result.report.warning_count, 0)
        self.assertEqual(result.report.warnings[0].page_num, 10)
        self.assertEqual(result.report.pages_scanned, 10)

    def test_scan_failure_is_skipped(self):
        doc = FakeDocument({1: _body(1), 2: _body(2), 3: _bibliography(3)})
        original = self.detector.numeric_channel.extract

        def flaky(page):
            if page.page_num == 1:
                raise ValueError("bad glyph widths")
            return original(page)

        self.detector.numeric_channel.extract = flaky
        result = self.detector.detect_document(doc, references_start_page=3)
        self.assertEqual({s.page_num for s in result.spans}, {2})
        self.assertEqual([w.page_num for w in result.report.warnings], [1])
        self.assertEqual(result.report.numeric_spans, 5)

    def test_cancellation_between_pages(self):
        token = CancellationToken()
        token.cancel("user request")
        doc = FakeDocument({1: _body(1), 2: _bibliography(2)})
        with self.assertRaises(ExtractionCancelled):
            self.detector.detect_document(doc, cancel_token=token)
        self.assertEqual(doc.loaded, [])

    def test_channel_toggles(self):
        detector = CitationSpanDetector(DetectorConfig(enable_numeric=False))
        doc = FakeDocument({2: _body(2), 3: _bibliography(3)})
        self.assertEqual(detector.detect_document(doc, references_start_page=3).spans, [])

    def test_summary_mentions_counts(self):
        doc = FakeDocument({2: _body(2), 3: _bibliography(3)})
        summary = self.detector.detect_document(doc, references_start_page=3).report.summary()
        self.assertIn("Numeric spans: 5", summary)


class TestStartPageBody(unittest.TestCase):
    CLOSING = "In conclusion [4] holds."

    def setUp(self):
        self.detector = CitationSpanDetector()

    def _document(self):
        entries = [f"[{n}] Author {n}. Title {n}. 2020." for n in range(1, 5)]
        annots = [link(3, text_bbox(self.CLOSING, "[4]", line_top(0)), dest_page=3, dest_y=line_top(5))]
        page = make_page([self.CLOSING, "References"] + entries, page_num=3)
        return FakeDocument({2: _body(2), 3: PageContent(page=page, annotations=annots)})

    def test_markers_above_header_detected(self):
        for supplied in (None, 3):
            result = self.detector.detect_document(self._document(), references_start_page=supplied)
            on_start_page = [s for s in result.spans if s.page_num == 3]
            self.assertEqual(len(on_start_page), 1)
            self.assertEqual(on_start_page[0].provenance, Provenance.ANNOTATION)
            self.assertEqual(on_start_page[0].raw_text, "[4]")
            self.assertEqual(result.report.pages_scanned, 3)
            self.assertEqual(result.report.entry_extents[4].top, line_top(5))

    def test_left_column_beside_bibliography_detected(self):
        page = make_page([
            ("Left text cites [2].", line_top(0)),
            ("References", line_top(0), 320.0),
            ("[1] A. Smith. 2019.", line_top(1), 320.0),
            ("[2] B. Jones. 2020.", line_top(2), 320.0),
        ], page_num=3)
        result = self.detector.detect_document(FakeDocument({3: PageContent(page=page)}))
        self.assertEqual(result.report.references_start_page, 3)
        self.assertEqual([(s.page_num, s.marker_number) for s in result.spans], [(3, 2)])
        self.assertEqual(sorted(result.report.entry_extents), [1, 2])


class TestDetectPath(unittest.TestCase):
    def test_missing_file(self):
        with self.assertRaises(FileAccessError):
            CitationSpanDetector().detect("/nonexistent/paper.pdf")


if __name__ == "__main__":
    unittest.main()
