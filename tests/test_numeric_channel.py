import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.channels import NumericChannel, NumericConfig
from citelink.channels.numeric import infer_numeric
from citelink.types import CitationStyle, Provenance
from page_factory import make_page, text_bbox


class TestNumericChannel(unittest.TestCase):
    def setUp(self):
        self.channel = NumericChannel()

    def _spans(self, text, **config):
        channel = NumericChannel(NumericConfig(**config)) if config else self.channel
        return channel.extract(make_page([(text, 100.0)], page_num=2))

    def test_single_marker(self):
        spans = self._spans("as shown in [1].")
        self.assertEqual(len(spans), 1)
        span = spans[0]
        self.assertEqual(span.marker_number, 1)
        self.assertEqual(span.raw_text, "[1]")
        self.assertEqual(span.page_num, 2)
        self.assertEqual(span.style, CitationStyle.NUMERIC)
        self.assertEqual(span.provenance, Provenance.PATTERN)
        self.assertAlmostEqual(span.confidence, 0.9)

    def test_list_expands_per_integer(self):
        text = "prior work [2,3] found"
        spans = self._spans(text)
        self.assertEqual([s.marker_number for s in spans], [2, 3])
        self.assertTrue(all(s.raw_text == "[2,3]" for s in spans))
        # each number gets the box of its own digits
        self.assertEqual(spans[0].bbox, text_bbox(text, "2", 100.0))
        self.assertEqual(spans[1].bbox, text_bbox(text, "3", 100.0))

    def test_range_expands(self):
        spans = self._spans("see [19-20] and")
        self.assertEqual([s.marker_number for s in spans], [19, 20])

    def test_range_cardinality(self):
        for a, b in [(1, 1), (5, 7), (10, 40)]:
            spans = self._spans(f"text [{a}-{b}] text")
            self.assertEqual(len(spans), b - a + 1, f"[{a}-{b}]")

    def test_reversed_range_yields_nothing(self):
        self.assertEqual(self._spans("text [7-5] text"), [])

    def test_range_wider_than_max_yields_nothing(self):
        self.assertEqual(self._spans("text [1-60] text"), [])
        self.assertEqual(len(self._spans("text [1-60] text", max_span=100)), 60)

    def test_en_dash_range(self):
        spans = self._spans("text [3–4] text")
        self.assertEqual([s.marker_number for s in spans], [3, 4])

    def test_paren_lower_confidence(self):
        spans = self._spans("as in (4) above")
        self.assertEqual(len(spans), 1)
        self.assertAlmostEqual(spans[0].confidence, 0.75)

    def test_paren_year_rejected(self):
        self.assertEqual(self._spans("published (2020) by"), [])

    def test_paren_disabled(self):
        self.assertEqual(self._spans("as in (4) above", enable_paren=False), [])

    def test_glued_context_penalty(self):
        spans = self._spans("value x[1]2 here")
        self.assertEqual(len(spans), 1)
        self.assertAlmostEqual(spans[0].confidence, 0.75)

    def test_garbled_text_has_no_matches(self):
        self.assertEqual(self._spans("#$%@ ~~ ^^ ¤¤"), [])

    def test_expand_positions(self):
        out = self.channel.expand("[1-3]")
        self.assertEqual([n for n, _, _ in out], [1, 2, 3])
        self.assertEqual(out[0][1:], (1, 2))
        self.assertEqual(out[2][1:], (3, 4))
        # interior number covers the whole range
        self.assertEqual(out[1][1:], (1, 4))


class TestInferNumeric(unittest.TestCase):
    def test_markers(self):
        self.assertTrue(infer_numeric("[3]"))
        self.assertTrue(infer_numeric("4, 5"))
        self.assertTrue(infer_numeric("(2-4)"))
        self.assertFalse(infer_numeric("Smith et al."))


if __name__ == "__main__":
    unittest.main()
