import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.errors import FileAccessError, PaperNotFoundError, PartialExtractionWarning, InputError
from citelink.types import (
    BBox, Reference, ExtractionStats, ThirdPartySignal, ThirdPartyReference, ThirdPartyCitation,
    normalize_ref_text, parse_ref_ids,
)


class TestParseRefIds(unittest.TestCase):
    def test_single_and_list(self):
        self.assertEqual(parse_ref_ids("[12]"), [12])
        self.assertEqual(parse_ref_ids("[1, 3,5]"), [1, 3, 5])

    def test_range_expands_inclusive(self):
        self.assertEqual(parse_ref_ids("[5-7]"), [5, 6, 7])
        # en-dash
        self.assertEqual(parse_ref_ids("[5–7]"), [5, 6, 7])

    def test_range_cardinality(self):
        for a, b in [(1, 1), (3, 9), (10, 60)]:
            self.assertEqual(len(parse_ref_ids(f"[{a}-{b}]")), b - a + 1)

    def test_reversed_range_is_empty(self):
        self.assertEqual(parse_ref_ids("[7-5]"), [])

    def test_too_wide_range_is_empty(self):
        self.assertEqual(parse_ref_ids("[1-52]"), [])
        self.assertEqual(len(parse_ref_ids("[1-52]", max_span=100)), 52)

    def test_mixed_and_duplicates(self):
        self.assertEqual(parse_ref_ids("[1-3,2,9-10]"), [1, 2, 3, 9, 10])

    def test_rejects_zero_and_leading_zero(self):
        self.assertEqual(parse_ref_ids("[0]"), [])
        self.assertEqual(parse_ref_ids("[07]"), [])

    def test_normalize(self):
        self.assertEqual(normalize_ref_text(" [ 1 – 3 ] "), "1-3")
        self.assertEqual(normalize_ref_text(None), "")


class TestBBox(unittest.TestCase):
    def test_from_tuple_orders_corners(self):
        box = BBox.from_tuple((20, 30, 10, 5))
        self.assertEqual(box.as_tuple(), (10, 5, 20, 30))
        self.assertEqual(box.area, 250)
        self.assertEqual(box.center, (15, 17.5))


class TestReference(unittest.TestCase):
    def test_search_query_fallbacks(self):
        self.assertEqual(Reference(1, "raw", title="Title", authors="A").search_query, "Title")
        self.assertEqual(Reference(1, "raw", authors="Smith, J.").search_query, "Smith, J.")
        self.assertEqual(Reference(1, "x" * 150).search_query, "x" * 100)

    def test_contains(self):
        ref = Reference(7, "entry", page_num=18, y_top=150, y_bottom=250)
        self.assertTrue(ref.contains(18, 200))
        self.assertFalse(ref.contains(18, 260))
        self.assertFalse(ref.contains(17, 200))
        self.assertFalse(ref.contains(18, None))
        self.assertFalse(Reference(7, "entry", page_num=18).contains(18, 200))


class TestThirdPartySignal(unittest.TestCase):
    def test_reference_by_key_ignores_hash(self):
        signal = ThirdPartySignal(
            citations=[ThirdPartyCitation(page_num=1, raw_text="(Lee, 2020)", target_key="#b3")],
            references=[ThirdPartyReference(key="b3", title="A title")],
        )
        self.assertFalse(signal.is_empty())
        self.assertEqual(signal.reference_by_key("#b3").title, "A title")
        self.assertIsNone(signal.reference_by_key("b9"))
        self.assertIsNone(signal.reference_by_key(None))

    def test_empty(self):
        self.assertTrue(ThirdPartySignal().is_empty())


class TestExtractionStats(unittest.TestCase):
    def test_derived_counts(self):
        stats = ExtractionStats(
            total_spans=10,
            spans_by_provenance={"annotation": 4, "pattern": 6},
            linked_count=7,
            link_count=9,
        )
        self.assertEqual(stats.annotation_spans, 4)
        self.assertEqual(stats.pattern_spans, 6)
        self.assertEqual(stats.unlinked_count, 3)


class TestErrors(unittest.TestCase):
    def test_details_in_message(self):
        err = FileAccessError("/tmp/missing.pdf")
        self.assertIsInstance(err, InputError)
        self.assertIn("/tmp/missing.pdf", str(err))
        self.assertEqual(err.details["path"], "/tmp/missing.pdf")

    def test_paper_not_found(self):
        err = PaperNotFoundError("p1")
        self.assertEqual(err.paper_id, "p1")
        self.assertIn("p1", str(err))

    def test_warning_str(self):
        self.assertEqual(str(PartialExtractionWarning(10, "boom")), "page 10: boom")


if __name__ == "__main__":
    unittest.main()
