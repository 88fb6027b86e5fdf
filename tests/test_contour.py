"""Tests for contour unwrapping module."""

import pytest
import numpy as np
import cv2
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from handshape.contour.unwrapper import ContourUnwrapper, NormalizedContour, PALM_SIDE
from handshape.hand.frame import HandFrame
from handshape.hand.state_store import PalmEstimate

PALM_CENTER = (80, 50)
PALM_RADIUS = 20


def finger_segments(palm=PALM_CENTER):
    """(root, tip) of five fingers fanning out below the palm, left to right."""
    return [
        ((palm[0] + (k - 2) * 8, palm[1]), (palm[0] + (k - 2) * 16, 100))
        for k in range(5)
    ]


def hand_mask(finger_thickness=5):
    mask = np.zeros((120, 160), dtype=np.uint8)
    cv2.circle(mask, PALM_CENTER, PALM_RADIUS, 255, -1)
    cv2.rectangle(mask, (PALM_CENTER[0] - 10, 0), (PALM_CENTER[0] + 10, PALM_CENTER[1]), 255, -1)
    for root, tip in finger_segments():
        cv2.line(mask, root, tip, 255, finger_thickness)
    return mask


def segment_distance(pt, seg):
    (x0, y0), (x1, y1) = seg
    p = np.array(pt, dtype=float)
    a = np.array([x0, y0], dtype=float)
    b = np.array([x1, y1], dtype=float)
    t = np.clip(np.dot(p - a, b - a) / np.dot(b - a, b - a), 0.0, 1.0)
    return float(np.linalg.norm(p - (a + t * (b - a))))


class TestNormalizedContour:
    """Tests for NormalizedContour class."""

    def test_maps_onto_canvas(self):
        points = np.array([[10, 20], [60, 20], [60, 70], [35, 45]])
        normalized = NormalizedContour.from_points(points, (160, 120))

        assert normalized.source_bounds == (10, 60, 20, 70)
        assert normalized.points[:, 0].min() == 0
        assert normalized.points[:, 0].max() == 159
        assert normalized.points[:, 1].min() == 0
        assert normalized.points[:, 1].max() == 119
        assert len(normalized) == 4

    def test_round_trip(self):
        rng = np.random.RandomState(0)
        points = np.column_stack([rng.randint(20, 140, 50), rng.randint(10, 110, 50)])
        normalized = NormalizedContour.from_points(points, (160, 120))

        for source, canonical in zip(points, normalized.points):
            back = normalized.to_source(canonical)
            assert abs(back[0] - source[0]) <= 1
            assert abs(back[1] - source[1]) <= 1

    def test_degenerate_axis(self):
        points = np.array([[10, 30], [20, 30], [40, 30]])
        normalized = NormalizedContour.from_points(points, (160, 120))

        assert (normalized.points[:, 1] == 0).all()
        assert normalized.to_source(normalized.points[1])[1] == 30


class TestPalmMask:
    """Tests for ContourUnwrapper.build_palm_mask."""

    def test_regions(self):
        palm = PalmEstimate(center=PALM_CENTER, radius=PALM_RADIUS)
        mask = ContourUnwrapper().build_palm_mask((120, 160), palm, 0.0)

        # finger side
        assert mask[110, 80] == PALM_SIDE
        assert mask[100, 20] == PALM_SIDE
        assert mask[40, 150] == PALM_SIDE
        # above the guide line
        assert mask[10, 80] != PALM_SIDE
        assert mask[10, 10] != PALM_SIDE
        # forearm corridor
        assert mask[45, 70] != PALM_SIDE
        # palm circle
        assert mask[60, 80] != PALM_SIDE

    def test_shape(self):
        palm = PalmEstimate(center=PALM_CENTER, radius=PALM_RADIUS)
        mask = ContourUnwrapper().build_palm_mask((120, 160), palm, 15.0)
        assert mask.shape == (120, 160)
        assert mask.dtype == np.uint8


class TestContourUnwrapper:
    """Tests for ContourUnwrapper class."""

    @pytest.fixture
    def frame(self):
        return HandFrame.from_mask(hand_mask())

    @pytest.fixture
    def palm(self):
        return PalmEstimate(center=PALM_CENTER, radius=PALM_RADIUS)

    @pytest.fixture
    def tips(self):
        # scrambled on purpose
        return [tip for _, tip in finger_segments()][::-1]

    def test_rank_tips_left_to_right(self, tips):
        ranked = ContourUnwrapper.rank_tips(tips, PALM_CENTER)
        assert [x for x, _ in ranked] == [48, 64, 80, 96, 112]

    def test_unwrap_five_fingers(self, frame, palm, tips):
        result = ContourUnwrapper().unwrap(frame, palm, 0.0, tips)

        assert result is not None
        assert result.tips[0] == (48, 100)
        assert result.tips[-1] == (112, 100)
        assert len(result.normalized) > 0

        thumb, pinky = finger_segments()[0], finger_segments()[-1]
        start = tuple(result.path[0])
        end = tuple(result.path[-1])
        if segment_distance(start, thumb) > segment_distance(end, thumb):
            start, end = end, start
        assert segment_distance(start, thumb) <= 5
        assert segment_distance(end, pinky) <= 5

    def test_path_is_open_and_simplified(self, frame, palm, tips):
        result = ContourUnwrapper().unwrap(frame, palm, 0.0, tips)

        assert not np.array_equal(result.path[0], result.path[-1])
        assert np.array_equal(result.simplified[0], result.path[0])
        assert np.array_equal(result.simplified[-1], result.path[-1])
        assert len(result.simplified) <= len(result.path)

    def test_path_avoids_forearm(self, frame, palm, tips):
        result = ContourUnwrapper().unwrap(frame, palm, 0.0, tips)
        assert result.path[:, 1].max() > 90
        assert result.path[:, 1].min() > PALM_CENTER[1] - PALM_RADIUS

    def test_no_tips(self, frame, palm):
        assert ContourUnwrapper().unwrap(frame, palm, 0.0, []) is None

    def test_empty_palm_side(self, frame, palm):
        contour = ContourUnwrapper().extract_contour(frame)
        empty_mask = np.zeros((120, 160), dtype=np.uint8)
        assert ContourUnwrapper().unwrap_contour(contour, empty_mask, PALM_CENTER) is None

    def test_extract_contour_merges_parts(self):
        mask = np.zeros((120, 160), dtype=np.uint8)
        mask[20:60, 10:50] = 255
        mask[20:60, 90:130] = 255
        frame = HandFrame.from_mask(mask)

        contour = ContourUnwrapper().extract_contour(frame)

        assert contour is not None
        assert contour[:, 0].min() <= 10
        assert contour[:, 0].max() >= 129

    def test_extract_contour_empty(self):
        frame = HandFrame.from_mask(np.zeros((120, 160), dtype=np.uint8))
        assert ContourUnwrapper().extract_contour(frame) is None

    def test_simplify_keeps_endpoints(self):
        path = np.array([[x, 10] for x in range(30)] + [[29, 10 + y] for y in range(1, 20)])
        simplified = ContourUnwrapper().simplify(path)

        assert np.array_equal(simplified[0], path[0])
        assert np.array_equal(simplified[-1], path[-1])
        assert len(simplified) == 3
