import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.bib import BibliographyLocator
from citelink.channels import AnnotationChannel, infer_style
from citelink.pdf import PageContent, LinkAnnotation
from citelink.types import CitationStyle, Provenance
from page_factory import make_page, text_bbox, link

TEXT = "as shown [3] and [4] and Fig. 2"
TOP = 200.0


def _content(annotations):
    return PageContent(page=make_page([(TEXT, TOP)], page_num=2), annotations=annotations)


class TestAnnotationChannel(unittest.TestCase):
    def setUp(self):
        self.channel = AnnotationChannel()
        self.locator = BibliographyLocator()

    def test_bibliography_links_become_spans(self):
        content = _content([
            link(2, text_bbox(TEXT, "[3]", TOP), dest_page=9, dest_y=120.0),
            link(2, text_bbox(TEXT, "[4]", TOP), dest_page=9, dest_y=160.0),
        ])
        spans = self.channel.extract(content, start_page=8)
        self.assertEqual([s.raw_text for s in spans], ["[3]", "[4]"])
        for span in spans:
            self.assertEqual(span.provenance, Provenance.ANNOTATION)
            self.assertEqual(span.style, CitationStyle.NUMERIC)
            self.assertAlmostEqual(span.confidence, 0.95)
            self.assertEqual(span.dest_page, 9)
            self.assertIsNone(span.marker_number)
        self.assertEqual(spans[1].dest_y, 160.0)

    def test_links_before_bibliography_skipped(self):
        content = _content([link(2, text_bbox(TEXT, "Fig. 2", TOP), dest_page=5, dest_y=300.0)])
        self.assertEqual(self.channel.extract(content, start_page=8), [])

    def test_external_links_skipped(self):
        uri = LinkAnnotation(page_num=2, bbox=text_bbox(TEXT, "[3]", TOP), uri="https://example.org")
        self.assertEqual(self.channel.extract(_content([uri]), start_page=8), [])

    def test_every_link_yields_a_span(self):
        for n in range(1, 6):
            annots = [link(2, text_bbox(TEXT, "[3]", TOP), dest_page=9, dest_y=100.0 + i) for i in range(n)]
            spans = self.channel.extract(_content(annots), start_page=9)
            self.assertGreaterEqual(len(spans), n)

    def test_unknown_start_page_uses_destination_text(self):
        content = _content([
            link(2, text_bbox(TEXT, "[3]", TOP), dest_page=9, dest_y=120.0),
            link(2, text_bbox(TEXT, "Fig. 2", TOP), dest_page=5, dest_y=300.0),
        ])
        targets = {9: "[3] A. Smith. A paper title. 2020.", 5: "Figure 2: Results"}

        def destination_text(page, y):
            return targets.get(page)

        spans = self.channel.extract(content, None, destination_text, self.locator.is_entry_start)
        self.assertEqual([s.raw_text for s in spans], ["[3]"])

    def test_unknown_start_page_without_lookup(self):
        content = _content([link(2, text_bbox(TEXT, "[3]", TOP), dest_page=9, dest_y=120.0)])
        self.assertEqual(self.channel.extract(content, start_page=None), [])

    def test_appendix_figure_link_dropped(self):
        text = "see Figure 7 in the appendix"
        content = PageContent(
            page=make_page([(text, TOP)], page_num=2),
            annotations=[link(2, text_bbox(text, "Figure 7", TOP), dest_page=12, dest_y=80.0)],
        )
        self.assertEqual(self.channel.extract(content, start_page=8), [])

        def destination_text(page, y):
            return "Figure 7: Ablation results"

        self.assertEqual(self.channel.extract(content, 8, destination_text, self.locator.is_entry_start), [])

    def test_long_link_text_dropped(self):
        text = "Smith and Jones showed in 2020 that the method works well on every benchmark"
        content = PageContent(
            page=make_page([(text, TOP)], page_num=2),
            annotations=[link(2, text_bbox(text, text, TOP), dest_page=9, dest_y=120.0)],
        )
        self.assertEqual(self.channel.extract(content, start_page=8), [])

    def test_plain_text_landing_on_entry_kept(self):
        text = "described here in detail"
        content = PageContent(
            page=make_page([(text, TOP)], page_num=2),
            annotations=[link(2, text_bbox(text, "here", TOP), dest_page=9, dest_y=120.0)],
        )

        def destination_text(page, y):
            return "[3] A. Smith. A paper title. 2020."

        spans = self.channel.extract(content, 8, destination_text, self.locator.is_entry_start)
        self.assertEqual([(s.raw_text, s.style) for s in spans], [("here", CitationStyle.UNKNOWN)])
        self.assertEqual(self.channel.extract(content, start_page=8), [])


class TestAnnotationMerge(unittest.TestCase):
    def setUp(self):
        self.channel = AnnotationChannel()

    def test_split_rects_merged(self):
        content = _content([
            link(2, text_bbox(TEXT, "[3", TOP), dest_page=9, dest_y=120.0),
            link(2, text_bbox(TEXT, "]", TOP), dest_page=9, dest_y=120.0),
        ])
        spans = self.channel.extract(content, start_page=8)
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0].raw_text, "[3]")
        self.assertEqual(spans[0].bbox, text_bbox(TEXT, "[3]", TOP))

    def test_wrapped_link_merged(self):
        first, second = "as reported by Smith et", "al., 2020 and others"
        page = make_page([(first, TOP), (second, TOP + 14.0)], page_num=2)
        content = PageContent(page=page, annotations=[
            link(2, text_bbox(first, "Smith et", TOP), dest_page=9, dest_y=120.0),
            link(2, text_bbox(second, "al., 2020", TOP + 14.0), dest_page=9, dest_y=120.0),
        ])
        spans = self.channel.extract(content, start_page=8)
        self.assertEqual(len(spans), 1)
        self.assertEqual(spans[0].style, CitationStyle.AUTHOR_YEAR)
        self.assertEqual((spans[0].bbox.y1, spans[0].bbox.y2), (TOP, TOP + 24.0))

    def test_separate_links_to_one_entry_kept_apart(self):
        content = _content([
            link(2, text_bbox(TEXT, "[3]", TOP), dest_page=9, dest_y=120.0),
            link(2, text_bbox(TEXT, "[4]", TOP), dest_page=9, dest_y=120.0),
        ])
        spans = self.channel.extract(content, start_page=8)
        self.assertEqual([s.raw_text for s in spans], ["[3]", "[4]"])


class TestInferStyle(unittest.TestCase):
    def test_styles(self):
        self.assertEqual(infer_style("[12]"), CitationStyle.NUMERIC)
        self.assertEqual(infer_style("7"), CitationStyle.NUMERIC)
        self.assertEqual(infer_style("Smith et al., 2020"), CitationStyle.AUTHOR_YEAR)
        self.assertEqual(infer_style(""), CitationStyle.UNKNOWN)
        self.assertEqual(infer_style("here"), CitationStyle.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
