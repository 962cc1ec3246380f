"""
Unit tests for platescan.cv.region_detector.

Tests cover:
- Rectangle discovery on synthetic frames
- Search-window detection in window-local coordinates
- Malformed/empty frame rejection
- Scoped buffer release on success and error
"""

import unittest

import cv2
import numpy as np

from platescan.cv.candidate_selector import select_candidate
from platescan.cv.region_detector import FrameBuffers, FrameProcessingError, RegionDetector
from platescan.cv.regions import SearchWindow


def _frame_with_plate(x, y, w, h, size=(480, 640)):
    """Black BGR frame with one filled white rectangle."""
    frame = np.zeros((size[0], size[1], 3), dtype=np.uint8)
    cv2.rectangle(frame, (x, y), (x + w - 1, y + h - 1), (255, 255, 255), -1)
    return frame


class TestDetection(unittest.TestCase):
    """Test full-frame detection."""

    def setUp(self):
        self.detector = RegionDetector()

    def test_blank_frame_has_no_candidates(self):
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        self.assertEqual(self.detector.detect(frame), [])

    def test_plate_rectangle_found(self):
        frame = _frame_with_plate(100, 200, 200, 60)
        rects = self.detector.detect(frame)
        self.assertGreater(len(rects), 0)

        best = select_candidate(rects)
        self.assertIsNotNone(best)
        self.assertLessEqual(abs(best.x - 100), 2)
        self.assertLessEqual(abs(best.y - 200), 2)
        self.assertLessEqual(abs(best.width - 200), 3)
        self.assertLessEqual(abs(best.height - 60), 3)

    def test_grayscale_and_bgra_input(self):
        bgr = _frame_with_plate(100, 200, 200, 60)
        gray = cv2.cvtColor(bgr, cv2.COLOR_BGR2GRAY)
        bgra = cv2.cvtColor(bgr, cv2.COLOR_BGR2BGRA)
        self.assertEqual(len(self.detector.detect(gray)), len(self.detector.detect(bgr)))
        self.assertEqual(len(self.detector.detect(bgra)), len(self.detector.detect(bgr)))

    def test_performance_stats_tracking(self):
        self.detector.reset_performance_stats()
        frame = _frame_with_plate(100, 200, 200, 60)
        for _ in range(3):
            self.detector.detect(frame)
        stats = self.detector.get_performance_stats()
        self.assertEqual(stats["count"], 3)
        self.assertGreaterEqual(stats["max_ms"], stats["avg_ms"])


class TestSearchWindow(unittest.TestCase):
    """Test detection restricted to the search window."""

    def setUp(self):
        self.detector = RegionDetector()
        # Window resolves to (150, 170, 340, 140) on a 640x480 frame
        self.window = SearchWindow(guide_width=300, guide_height=100, margin=20).to_rect(640, 480)

    def test_rects_are_window_local(self):
        frame = _frame_with_plate(200, 200, 200, 60)
        best = select_candidate(self.detector.detect(frame, self.window))
        self.assertIsNotNone(best)
        self.assertLessEqual(abs(best.x - 50), 2)
        self.assertLessEqual(abs(best.y - 30), 2)

    def test_detect_in_frame_translates_back(self):
        frame = _frame_with_plate(200, 200, 200, 60)
        best = select_candidate(self.detector.detect_in_frame(frame, self.window))
        self.assertIsNotNone(best)
        self.assertLessEqual(abs(best.x - 200), 2)
        self.assertLessEqual(abs(best.y - 200), 2)

    def test_plate_outside_window_ignored(self):
        frame = _frame_with_plate(10, 10, 200, 60)
        self.assertIsNone(select_candidate(self.detector.detect(frame, self.window)))


class TestMalformedFrames(unittest.TestCase):
    """Test frame validation."""

    def setUp(self):
        self.detector = RegionDetector()

    def test_none_frame(self):
        with self.assertRaises(FrameProcessingError):
            self.detector.detect(None)

    def test_empty_frame(self):
        with self.assertRaises(FrameProcessingError):
            self.detector.detect(np.zeros((0, 0, 3), dtype=np.uint8))

    def test_wrong_dtype(self):
        with self.assertRaises(FrameProcessingError):
            self.detector.detect(np.zeros((48, 64, 3), dtype=np.float32))

    def test_wrong_channel_count(self):
        with self.assertRaises(FrameProcessingError):
            self.detector.detect(np.zeros((48, 64, 2), dtype=np.uint8))


class TestFrameBuffers(unittest.TestCase):
    """Test scoped release of intermediates."""

    def test_released_on_normal_exit(self):
        with FrameBuffers() as buffers:
            buffers["gray"] = np.zeros((4, 4), dtype=np.uint8)
            self.assertEqual(len(buffers), 1)
        self.assertEqual(len(buffers), 0)

    def test_released_on_error(self):
        buffers = FrameBuffers()
        with self.assertRaises(RuntimeError):
            with buffers:
                buffers["edges"] = np.zeros((4, 4), dtype=np.uint8)
                raise RuntimeError("boom")
        self.assertEqual(len(buffers), 0)


if __name__ == '__main__':
    unittest.main(verbosity=2)
