"""
Unit tests for platescan.cv.candidate_selector and platescan.cv.regions.

Tests cover:
- Rect validation and derived values
- Plate-shape filter boundaries (strict inequalities)
- Stable, deterministic best-candidate selection
- Window/frame coordinate translation
"""

import unittest

from platescan.cv.candidate_selector import (
    SelectorConfig,
    filter_candidates,
    is_plate_shaped,
    select_candidate,
)
from platescan.cv.regions import Rect, SearchWindow, to_frame_coords, to_window_coords


class TestRect(unittest.TestCase):
    """Test Rect construction and helpers."""

    def test_rejects_non_positive_size(self):
        with self.assertRaises(ValueError):
            Rect(0, 0, 0, 10)
        with self.assertRaises(ValueError):
            Rect(0, 0, 10, -1)

    def test_aspect_and_area(self):
        rect = Rect(5, 5, 300, 100)
        self.assertAlmostEqual(rect.aspect, 3.0)
        self.assertEqual(rect.area, 30000)

    def test_clamp_keeps_one_pixel(self):
        rect = Rect(630, 470, 50, 50).clamp(640, 480)
        self.assertEqual(rect.as_tuple(), (630, 470, 10, 10))

        outside = Rect(700, 500, 20, 20).clamp(640, 480)
        self.assertEqual(outside.width, 1)
        self.assertEqual(outside.height, 1)


class TestShapeFilter(unittest.TestCase):
    """Test the plate-shape predicate."""

    def test_typical_plate_accepted(self):
        self.assertTrue(is_plate_shaped(Rect(0, 0, 200, 60)))

    def test_boundary_aspect_rejected(self):
        # aspect exactly 1.8 and exactly 5.0
        self.assertFalse(is_plate_shaped(Rect(0, 0, 216, 120)))
        self.assertFalse(is_plate_shaped(Rect(0, 0, 250, 50)))

    def test_boundary_width_rejected(self):
        # aspect 3.0 but width exactly 120
        self.assertFalse(is_plate_shaped(Rect(0, 0, 120, 40)))
        self.assertTrue(is_plate_shaped(Rect(0, 0, 121, 40)))

    def test_square_and_tall_rejected(self):
        self.assertFalse(is_plate_shaped(Rect(0, 0, 200, 200)))
        self.assertFalse(is_plate_shaped(Rect(0, 0, 130, 300)))

    def test_custom_config(self):
        config = SelectorConfig(min_aspect=1.0, max_aspect=2.0, min_width=10)
        self.assertTrue(is_plate_shaped(Rect(0, 0, 30, 20), config))
        self.assertFalse(is_plate_shaped(Rect(0, 0, 200, 60), config))

    def test_filter_preserves_order(self):
        rects = [Rect(0, 0, 200, 60), Rect(0, 0, 10, 10), Rect(5, 5, 150, 50)]
        self.assertEqual(filter_candidates(rects), [rects[0], rects[2]])


class TestSelection(unittest.TestCase):
    """Test best-candidate selection."""

    def test_empty_returns_none(self):
        self.assertIsNone(select_candidate([]))
        self.assertIsNone(select_candidate([Rect(0, 0, 50, 50)]))

    def test_largest_area_wins(self):
        small = Rect(0, 0, 130, 50)
        large = Rect(10, 10, 300, 100)
        self.assertEqual(select_candidate([small, large]), large)

    def test_area_ordering_unscaled(self):
        """Areas 5000 vs 4800 pick the first when shape filtering is relaxed."""
        config = SelectorConfig(min_aspect=0.0, max_aspect=10.0, min_width=0)
        first = Rect(0, 0, 100, 50)
        second = Rect(0, 0, 80, 60)
        for _ in range(5):
            self.assertEqual(select_candidate([first, second], config), first)
            self.assertEqual(select_candidate([second, first], config), first)

    def test_equal_area_tie_keeps_enumeration_order(self):
        a = Rect(0, 0, 200, 60)
        b = Rect(300, 300, 200, 60)
        c = Rect(50, 50, 240, 50)  # same area, different shape
        self.assertIs(select_candidate([a, b]), a)
        self.assertIs(select_candidate([b, a]), b)
        self.assertIs(select_candidate([c, a, b]), c)


class TestCoordinates(unittest.TestCase):
    """Test search window resolution and coordinate translation."""

    def test_window_centered_with_margin(self):
        window = SearchWindow(guide_width=300, guide_height=100, margin=20).to_rect(640, 480)
        self.assertEqual(window.as_tuple(), (150, 170, 340, 140))

    def test_window_clamped_to_frame(self):
        window = SearchWindow(guide_width=600, guide_height=400, margin=50).to_rect(640, 480)
        self.assertEqual(window.as_tuple(), (0, 0, 640, 480))

    def test_round_trip(self):
        origin = Rect(150, 170, 340, 140)
        local = [Rect(12, 7, 200, 60), Rect(0, 0, 1, 1)]
        global_rects = to_frame_coords(local, origin)
        self.assertEqual(global_rects[0].as_tuple(), (162, 177, 200, 60))
        self.assertEqual(to_window_coords(global_rects, origin), local)

    def test_window_from_dict(self):
        self.assertIsNone(SearchWindow.from_dict(None))
        window = SearchWindow.from_dict({"guide_width": 300, "guide_height": 100})
        self.assertEqual(window.margin, 0)
        with self.assertRaises(ValueError):
            SearchWindow(guide_width=300, guide_height=100, margin=-1)


if __name__ == '__main__':
    unittest.main(verbosity=2)
