import unittest
import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from citelink.bib import BibliographyLocator, EntryExtent, apply_entry_extents
from citelink.types import Reference
from page_factory import make_page, line_top, SIZE


def _paper(header="References"):
    return [
        make_page(["Introduction", "body text [1] and [2]."], page_num=1),
        make_page(["Method", "more text [3]."], page_num=2),
        make_page([
            header,
            "[1] A. Smith. Title one. 2019.",
            "continued entry text.",
            "[2] B. Jones. Title two. 2020.",
        ], page_num=3),
        make_page(["[3] C. Lee. Title three. 2021."], page_num=4),
    ]


class TestFindStartPage(unittest.TestCase):
    def setUp(self):
        self.locator = BibliographyLocator()

    def test_header_found(self):
        self.assertEqual(self.locator.find_start_page(_paper()), 3)

    def test_numbered_header(self):
        self.assertEqual(self.locator.find_start_page(_paper("7 References")), 3)
        self.assertEqual(self.locator.find_start_page(_paper("Bibliography")), 3)

    def test_no_bibliography(self):
        pages = [
            make_page(["Introduction", "body text [1] and [2]."], page_num=1),
            make_page(["Appendix", "Proof of the main lemma."], page_num=2),
        ]
        self.assertIsNone(self.locator.find_start(pages))
        self.assertIsNone(self.locator.find_start_page([]))

    def test_header_far_down_the_page(self):
        lines = [f"discussion line {i}." for i in range(35)]
        lines += ["References", "[1] A. Smith. Title one. 2019.", "[2] B. Jones. Title two. 2020."]
        start = self.locator.find_start([make_page(lines, page_num=6)])
        self.assertEqual((start.page_num, start.top, start.source), (6, line_top(35), "header"))

    def test_content_fallback_without_header(self):
        start = self.locator.find_start(_paper("Appendix"))
        self.assertEqual(start.page_num, 3)
        self.assertEqual(start.top, line_top(1))
        self.assertEqual(start.source, "content")

    def test_numbered_sections_not_mistaken_for_entries(self):
        def section(title, page_num):
            return make_page([title] + [f"body line {i}." for i in range(40)], page_num=page_num)

        pages = [section("1. Introduction", 1), section("2. Method", 2), section("3. Results", 3)]
        self.assertIsNone(self.locator.find_start(pages))

    def test_header_in_right_column(self):
        page = make_page([
            ("Left column text [4].", line_top(0)),
            ("References", line_top(0), 320.0),
            ("[1] A. Smith. 2019.", line_top(1), 320.0),
        ], page_num=5)
        start = self.locator.find_start([page])
        self.assertEqual(start.column_x0, 320.0)
        self.assertFalse(start.covers(5, page.lines[0].bbox))
        self.assertTrue(start.covers(6, page.lines[0].bbox))

    def test_start_on_known_page_without_header(self):
        page = make_page(["continued entry text.", "[7] G. Kim. 2018."], page_num=9)
        start = self.locator.start_on_page(page)
        self.assertEqual((start.page_num, start.top, start.source), (9, 0.0, "page"))

    def test_scan_window(self):
        locator = BibliographyLocator(scan_pages=1)
        self.assertIsNone(locator.find_start_page(_paper()))

    def test_is_entry_start(self):
        self.assertTrue(self.locator.is_entry_start("[12] A. Author"))
        self.assertTrue(self.locator.is_entry_start("12. A. Author"))
        self.assertTrue(self.locator.is_entry_start("(12) A. Author"))
        self.assertFalse(self.locator.is_entry_start("Figure 2: results"))
        self.assertFalse(self.locator.is_entry_start(None))


class TestLocateEntries(unittest.TestCase):
    def setUp(self):
        self.locator = BibliographyLocator()

    def test_extents(self):
        extents = self.locator.locate_entries(_paper(), start_page=3)
        self.assertEqual(sorted(extents), [1, 2, 3])
        self.assertEqual(extents[1], EntryExtent(1, 3, line_top(1), line_top(3)))
        # last entry on a page runs to the bottom of the page content
        self.assertEqual(extents[2], EntryExtent(2, 3, line_top(3), line_top(3) + SIZE))
        self.assertEqual(extents[3].page_num, 4)

    def test_unknown_start_page(self):
        self.assertEqual(self.locator.locate_entries(_paper(), start_page=None), {})

    def test_lines_above_start_ignored(self):
        pages = [make_page([
            "[1] and [2] agree on the claim.",
            "[3] disagrees with both.",
            "References",
            "[1] A. Smith. Title one. 2019.",
            "[2] B. Jones. Title two. 2020.",
        ], page_num=8)]
        start = self.locator.find_start(pages)
        extents = self.locator.locate_entries(pages, start.page_num, start)
        self.assertEqual(sorted(extents), [1, 2])
        self.assertEqual(extents[1].top, line_top(3))

    def test_too_few_entries(self):
        pages = [make_page(["References", "[1] Only one entry."], page_num=1)]
        self.assertEqual(self.locator.locate_entries(pages, start_page=1), {})


class TestApplyEntryExtents(unittest.TestCase):
    def test_fills_missing_ranges(self):
        extents = {1: EntryExtent(1, 3, 86.0, 114.0), 2: EntryExtent(2, 3, 114.0, 124.0)}
        refs = [
            Reference(1, "A. Smith. Title one."),
            Reference(2, "B. Jones.", page_num=3, y_top=110.0, y_bottom=130.0),
            Reference(3, "C. Lee."),
        ]
        out = apply_entry_extents(refs, extents)
        self.assertEqual((out[0].page_num, out[0].y_top, out[0].y_bottom), (3, 86.0, 114.0))
        self.assertEqual(out[0].id, refs[0].id)
        # supplied range kept
        self.assertEqual((out[1].y_top, out[1].y_bottom), (110.0, 130.0))
        self.assertFalse(out[2].has_y_range)

    def test_conflicting_page_kept(self):
        extents = {1: EntryExtent(1, 3, 86.0, 114.0)}
        out = apply_entry_extents([Reference(1, "A.", page_num=5)], extents)
        self.assertEqual(out[0].page_num, 5)
        self.assertFalse(out[0].has_y_range)


if __name__ == "__main__":
    unittest.main()
