import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.fusion import SpanFuser, FusionConfig
from citelink.geometry import overlap_ratio
from citelink.types import BBox, CitationSpan, CitationStyle, Provenance


def _span(page, bbox, text="[1]", provenance=Provenance.PATTERN, number=None, confidence=0.9):
    return CitationSpan(
        page_num=page,
        bbox=BBox(*bbox),
        raw_text=text,
        style=CitationStyle.NUMERIC,
        provenance=provenance,
        confidence=confidence,
        marker_number=number,
    )


class TestOverlapRatio(unittest.TestCase):
    def test_smaller_area_denominator(self):
        big = BBox(0, 0, 100, 10)
        small = BBox(10, 0, 20, 10)
        self.assertAlmostEqual(overlap_ratio(big, small), 1.0)
        self.assertAlmostEqual(overlap_ratio(BBox(0, 0, 10, 10), BBox(5, 0, 15, 10)), 0.5)
        self.assertEqual(overlap_ratio(BBox(0, 0, 10, 10), BBox(20, 0, 30, 10)), 0.0)

    def test_degenerate_box(self):
        self.assertEqual(overlap_ratio(BBox(5, 5, 5, 5), BBox(0, 0, 10, 10)), 1.0)


class TestSpanFuser(unittest.TestCase):
    def setUp(self):
        self.fuser = SpanFuser()

    def test_annotation_wins_on_overlap(self):
        annotation = _span(2, (100, 200, 115, 210), provenance=Provenance.ANNOTATION, confidence=0.95)
        pattern = _span(2, (101, 200, 115, 210), number=1)
        fused = self.fuser.fuse([annotation], [pattern])
        self.assertEqual(fused, [annotation])
        self.assertEqual(self.fuser.stats.overlaps_dropped, 1)

    def test_small_overlap_keeps_both(self):
        annotation = _span(2, (100, 200, 110, 210), provenance=Provenance.ANNOTATION)
        pattern = _span(2, (106, 200, 116, 210), number=1)  # 40% of the smaller box
        self.assertEqual(len(self.fuser.fuse([annotation], [pattern])), 2)

    def test_other_page_not_deduplicated(self):
        annotation = _span(2, (100, 200, 115, 210), provenance=Provenance.ANNOTATION)
        pattern = _span(3, (100, 200, 115, 210), number=1)
        self.assertEqual(len(self.fuser.fuse([annotation], [pattern])), 2)

    def test_exact_pattern_duplicates_dropped(self):
        a = _span(1, (10, 10, 20, 20), number=4)
        b = _span(1, (10, 10, 20, 20), number=4)
        fused = self.fuser.fuse([], [a, b])
        self.assertEqual(len(fused), 1)
        self.assertEqual(self.fuser.stats.duplicates_dropped, 1)

    def test_expanded_numbers_kept(self):
        two = _span(1, (10, 10, 15, 20), text="[2,3]", number=2)
        three = _span(1, (20, 10, 25, 20), text="[2,3]", number=3)
        self.assertEqual(len(self.fuser.fuse([], [two, three])), 2)

    def test_reading_order(self):
        later_page = _span(3, (10, 10, 20, 20), number=1)
        lower = _span(2, (10, 300, 20, 310), number=2)
        right = _span(2, (200, 100, 210, 110), number=3)
        left = _span(2, (10, 100, 20, 110), number=4)
        fused = self.fuser.fuse([], [later_page, lower, right, left])
        self.assertEqual([s.marker_number for s in fused], [4, 3, 2, 1])

    def test_threshold_configurable(self):
        fuser = SpanFuser(FusionConfig(overlap_threshold=0.3))
        annotation = _span(2, (100, 200, 110, 210), provenance=Provenance.ANNOTATION)
        pattern = _span(2, (106, 200, 116, 210), number=1)
        self.assertEqual(len(fuser.fuse([annotation], [pattern])), 1)


if __name__ == "__main__":
    unittest.main()
