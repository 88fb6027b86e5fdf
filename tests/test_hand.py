"""Tests for hand processing module."""

import pytest
import numpy as np
import cv2
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from handshape.hand.state_store import (
    TemporalStateStore,
    PalmEstimate,
    LowPassFilter,
    BaselineAccumulator,
)
from handshape.hand.frame import HandFrame, FOREGROUND
from handshape.raster.blobs import BlobDetector, neighborhood_has
from handshape.hand.palm_localizer import PalmLocalizer
from handshape.hand.orientation import OrientationEstimator
from handshape.hand.fingertip_extractor import (
    FingertipExtractor,
    SkeletonBranch,
    HUB,
    JUNCTION_TRIADS,
    ORTHOGONAL,
    DIAGONAL,
    junction_mask,
)


def disk_mask(center=(80, 60), radius=40, shape=(120, 160)):
    mask = np.zeros(shape, dtype=np.uint8)
    cv2.circle(mask, center, radius, 255, -1)
    return mask


class TestLowPassFilter:
    """Tests for LowPassFilter class."""

    def test_first_value_passes(self):
        lpf = LowPassFilter()
        assert lpf.compute(10.0, 0.5, "a") == 10.0

    def test_smoothing(self):
        lpf = LowPassFilter()
        lpf.compute(10.0, 0.5, "a")
        assert lpf.compute(20.0, 0.5, "a") == pytest.approx(15.0)
        assert lpf.compute(15.0, 0.1, "a") == pytest.approx(15.0)

    def test_keys_are_independent(self):
        lpf = LowPassFilter()
        lpf.compute(10.0, 0.5, "a")
        assert lpf.compute(100.0, 0.5, "b") == 100.0

    def test_points(self):
        lpf = LowPassFilter()
        lpf.compute((0, 0), 0.5, "pt")
        smoothed = lpf.compute((10, 20), 0.5, "pt")
        assert np.allclose(smoothed, [5, 10])

    def test_reset(self):
        lpf = LowPassFilter()
        lpf.compute(10.0, 0.5, "a")
        lpf.reset()
        assert not lpf.has("a")
        assert lpf.compute(30.0, 0.5, "a") == 30.0


class TestBaselineAccumulator:
    """Tests for BaselineAccumulator class."""

    def test_update(self):
        acc = BaselineAccumulator(decay=0.9)
        assert acc.update(100) == 100
        assert acc.update(0) == pytest.approx(90)

    def test_reset(self):
        acc = BaselineAccumulator()
        acc.update(50)
        acc.reset()
        assert acc.baseline is None
        assert acc.update(7) == 7


class TestTemporalStateStore:
    """Tests for TemporalStateStore class."""

    def _snapshot(self, state):
        return (
            state.frame_count,
            state.palm,
            state.hand_angle,
            state.first_pass,
            dict(state._scratch),
            dict(state.low_pass_filter._values),
            state.count_baseline.baseline,
        )

    def test_defaults(self):
        state = TemporalStateStore()
        assert state.frame_count == 0
        assert state.palm == PalmEstimate()
        assert state.hand_angle == 0.0
        assert state.get("missing", 3) == 3

    def test_reset_idempotent(self):
        state = TemporalStateStore()
        state.begin_frame("right")
        state.hand_angle = 12.0
        state.set("extension_lines_y_max", 90)
        state.low_pass_filter.compute(4.0, 0.1, "palm_radius")
        state.count_baseline.update(500)

        state.reset()
        once = self._snapshot(state)
        state.reset()
        twice = self._snapshot(state)

        assert once == twice
        assert state.get("extension_lines_y_max") is None

    def test_same_identity_keeps_state(self):
        state = TemporalStateStore()
        assert state.begin_frame("right") is False
        state.hand_angle = 5.0
        assert state.begin_frame("right") is False

        assert state.frame_count == 2
        assert state.hand_angle == 5.0

    def test_identity_change_resets(self):
        state = TemporalStateStore()
        state.begin_frame("right")
        state.hand_angle = 5.0
        state.palm = PalmEstimate(center=(10, 10), radius=8.0)
        state.low_pass_filter.compute(8.0, 0.1, "palm_radius")
        state.count_baseline.update(1000)

        assert state.begin_frame("left") is True

        assert state.identity == "left"
        assert state.frame_count == 1
        assert state.hand_angle == 0.0
        assert state.palm == PalmEstimate()
        assert not state.low_pass_filter.has("palm_radius")
        assert state.count_baseline.baseline is None

    def test_first_frame_never_resets(self):
        state = TemporalStateStore()
        assert state.begin_frame("anything") is False


class TestHandFrame:
    """Tests for HandFrame class."""

    def test_from_mask(self):
        mask = np.zeros((60, 80), dtype=np.uint8)
        mask[10:20, 10:20] = 255
        mask[40:50, 50:70] = 1

        frame = HandFrame.from_mask(mask, identity="right")

        assert frame.identity == "right"
        assert len(frame.blobs) == 2
        assert frame.pixel_count == 300
        assert frame.bounds == (10, 69, 10, 49)
        assert set(np.unique(frame.silhouette)) == {0, FOREGROUND}

    def test_from_mask_resizes(self):
        mask = disk_mask(shape=(240, 320), center=(160, 120), radius=60)
        frame = HandFrame.from_mask(mask, size=(160, 120))
        assert frame.shape == (120, 160)

    def test_from_mask_drops_small_blobs(self):
        mask = disk_mask()
        mask[0, 0] = 255
        frame = HandFrame.from_mask(mask, min_blob_size=5)
        assert len(frame.blobs) == 1

    def test_empty(self):
        frame = HandFrame.from_mask(np.zeros((120, 160), dtype=np.uint8))
        assert frame.blobs == []
        assert frame.bounds is None


class TestPalmLocalizer:
    """Tests for PalmLocalizer class."""

    def test_disk(self):
        frame = HandFrame.from_mask(disk_mask(radius=30))
        state = TemporalStateStore()

        palm = PalmLocalizer().localize(frame, state)

        assert palm is not None
        assert palm.radius >= 0
        assert 0 <= palm.center[0] < 160
        assert 0 <= palm.center[1] < 120
        assert abs(palm.center[1] - 60) <= 8

    def test_center_stays_in_raster(self):
        mask = np.zeros((120, 160), dtype=np.uint8)
        mask[60:120, 100:160] = 255
        frame = HandFrame.from_mask(mask)
        state = TemporalStateStore()

        for _ in range(3):
            palm = PalmLocalizer().localize(frame, state)
            assert palm is not None
            assert palm.radius >= 0
            assert 0 <= palm.center[0] < 160
            assert 0 <= palm.center[1] < 120

    def test_no_blobs(self):
        frame = HandFrame.from_mask(np.zeros((120, 160), dtype=np.uint8))
        assert PalmLocalizer().localize(frame, TemporalStateStore()) is None

    def test_collapsed_signal(self):
        localizer = PalmLocalizer()
        state = TemporalStateStore()
        assert localizer.localize(HandFrame.from_mask(disk_mask(radius=40)), state) is not None

        tiny = np.zeros((120, 160), dtype=np.uint8)
        tiny[60:63, 80:83] = 255
        assert localizer.localize(HandFrame.from_mask(tiny), state) is None

    def test_no_points_below_previous_palm_top(self):
        mask = np.zeros((120, 160), dtype=np.uint8)
        mask[5:15, 70:90] = 255
        state = TemporalStateStore()
        state.palm = PalmEstimate(center=(80, 100), radius=10)

        assert PalmLocalizer().localize(HandFrame.from_mask(mask), state) is None

    def test_x_offset_depends_on_angle(self):
        frame = HandFrame.from_mask(disk_mask(radius=30))

        tilted = TemporalStateStore()
        tilted.hand_angle = 10.0
        upright = TemporalStateStore()

        palm_tilted = PalmLocalizer().localize(frame, tilted)
        palm_upright = PalmLocalizer().localize(frame, upright)

        assert palm_upright.center[0] > palm_tilted.center[0]
        assert palm_upright.center[1] == palm_tilted.center[1]


class TestOrientationEstimator:
    """Tests for OrientationEstimator class."""

    @staticmethod
    def down_line(x, y, n=20):
        return [(x, y + i) for i in range(n)]

    def test_fingers_down_is_zero(self):
        state = TemporalStateStore()
        lines = [self.down_line(60, 100), self.down_line(80, 100)]

        angle = OrientationEstimator().estimate(lines, (80, 50), state)
        assert angle == pytest.approx(0.0)
        assert state.get("extension_lines_y_max") == 100

    def test_no_lines_keeps_angle(self):
        state = TemporalStateStore()
        state.hand_angle = 7.5
        assert OrientationEstimator().estimate([], (80, 50), state) == 7.5
        assert OrientationEstimator().estimate([[(1, 1)]], (80, 50), state) == 7.5

    def test_cluster_band(self):
        """Only anchors within the band of the lowest anchor vote."""
        state = TemporalStateStore()
        diagonal = [(40 + i, 50 + i) for i in range(20)]
        lines = [self.down_line(80, 100), diagonal]

        angle = OrientationEstimator().estimate(lines, (80, 50), state)
        assert angle == pytest.approx(0.0)

    def test_tilted_line(self):
        state = TemporalStateStore()
        line = [(80 + i, 100 + i) for i in range(20)]

        angle = OrientationEstimator().estimate([line], (80, 50), state)
        assert angle == pytest.approx(45.0)

    def test_smoothing(self):
        state = TemporalStateStore()
        estimator = OrientationEstimator()
        estimator.estimate([self.down_line(80, 100)], (80, 50), state)

        line = [(80 + i, 100 + i) for i in range(20)]
        angle = estimator.estimate([line], (80, 50), state)
        assert angle == pytest.approx(22.5)

    def test_rotate_upright_recenters_palm(self):
        estimator = OrientationEstimator(raster_size=(160, 120))
        assert estimator.rotate_upright((30, 40), (30, 40), -45.0) == (80, 60)

    def test_select_anchor_guard(self):
        estimator = OrientationEstimator()
        assert estimator.select_anchor((10, 20), (80, 50), -20.0) == (10, 20)
        assert estimator.select_anchor((10, 20), (80, 50), -30.0) != (10, 20)

    def test_persisted_angle(self):
        estimator = OrientationEstimator()
        assert estimator.persisted_angle(10.0, "point") == -10.0
        assert estimator.persisted_angle(10.0, "open") == 10.0


class TestJunctionRules:
    """Tests for the junction rule table."""

    @staticmethod
    def pattern(offsets):
        raster = np.zeros((5, 5), dtype=np.uint8)
        raster[2, 2] = 254
        for dx, dy in offsets:
            raster[2 + dy, 2 + dx] = 254
        return raster

    @staticmethod
    def rotate_offset(offset):
        dx, dy = offset
        return (-dy, dx)

    def test_eight_triads(self):
        assert len(JUNCTION_TRIADS) == 8
        assert len({frozenset(t) for t in JUNCTION_TRIADS}) == 8

    def test_table_closed_under_rotation(self):
        table = {frozenset(t) for t in JUNCTION_TRIADS}
        for triad in JUNCTION_TRIADS:
            rotated = frozenset(self.rotate_offset(o) for o in triad)
            assert rotated in table

    @pytest.mark.parametrize("triad", JUNCTION_TRIADS)
    def test_triad_is_junction_in_all_rotations(self, triad):
        center = np.array([[2, 2]])
        raster = self.pattern(triad)
        for k in range(4):
            rotated = np.ascontiguousarray(np.rot90(raster, k))
            assert junction_mask(rotated, center)[0]

    def test_orthogonal_and_diagonal_rules(self):
        center = np.array([[2, 2]])
        assert junction_mask(self.pattern(ORTHOGONAL[:3]), center)[0]
        assert junction_mask(self.pattern(DIAGONAL[1:]), center)[0]

    def test_line_is_not_junction(self):
        center = np.array([[2, 2]])
        assert not junction_mask(self.pattern([(0, -1), (0, 1)]), center)[0]
        assert not junction_mask(self.pattern([(-1, -1), (1, 1)]), center)[0]
        assert not junction_mask(self.pattern([(0, -1), (1, 1)]), center)[0]

    def test_border_points(self):
        raster = np.zeros((3, 3), dtype=np.uint8)
        raster[0, :] = 254
        raster[1, 0] = 254
        points = np.array([[0, 0], [1, 0]])
        assert junction_mask(raster, points).tolist() == [False, False]

    def test_empty(self):
        raster = np.zeros((3, 3), dtype=np.uint8)
        assert junction_mask(raster, np.zeros((0, 2), dtype=np.int32)).shape == (0,)


class TestFingertipExtractor:
    """Tests for FingertipExtractor class."""

    @pytest.fixture
    def one_finger(self):
        mask = np.zeros((120, 160), dtype=np.uint8)
        cv2.circle(mask, (80, 40), 15, 255, -1)
        cv2.line(mask, (80, 40), (80, 100), 255, 3)
        return HandFrame.from_mask(mask)

    def test_round_blob_has_no_fingers(self):
        frame = HandFrame.from_mask(disk_mask(radius=40))
        palm = PalmEstimate(center=(80, 60), radius=30.0)
        assert FingertipExtractor().extract(frame, palm) is None

    def test_single_finger(self, one_finger):
        palm = PalmEstimate(center=(80, 40), radius=15.0)

        result = FingertipExtractor().extract(one_finger, palm)

        assert result is not None
        assert len(result.tips) == 1
        tip = result.tips[0].point
        assert abs(tip[0] - 80) <= 2
        assert tip[1] >= 95
        assert result.dominant_index == 0
        assert result.dominant_score > 0

    def test_extension_line_points_away(self, one_finger):
        palm = PalmEstimate(center=(80, 40), radius=15.0)

        result = FingertipExtractor().extract(one_finger, palm)

        line = result.extension_lines[0]
        assert len(line) == 20
        assert line[0] == result.tips[0].point
        assert line[-1][1] > line[0][1]

    def test_branch_origin_touches_palm_hub(self, one_finger):
        palm = PalmEstimate(center=(80, 40), radius=15.0)

        result = FingertipExtractor().extract(one_finger, palm)

        origin = result.branches[0].origin
        assert abs(origin[0] - 80) <= 2
        assert 50 <= origin[1] <= 60

    def test_render_bridged_connects_blobs(self):
        mask = np.zeros((60, 80), dtype=np.uint8)
        mask[10:20, 10:20] = 255
        mask[10:20, 40:50] = 255
        frame = HandFrame.from_mask(mask)

        raster, subject = FingertipExtractor().render_bridged(frame.blobs, frame.shape)

        assert len(subject) > frame.pixel_count
        assert len(BlobDetector().detect(raster, FOREGROUND)) == 1

    def test_short_finger_kept(self):
        mask = np.zeros((120, 160), dtype=np.uint8)
        cv2.circle(mask, (80, 50), 20, 255, -1)
        cv2.line(mask, (80, 50), (80, 79), 255, 3)
        frame = HandFrame.from_mask(mask)
        palm = PalmEstimate(center=(80, 50), radius=20.0)

        result = FingertipExtractor().extract(frame, palm)

        assert result is not None
        assert len(result.tips) == 1
        assert len(result.branches[0]) < 10
        tip = result.tips[0].point
        assert abs(tip[0] - 80) <= 2
        assert tip[1] >= 74


class TestDistalHubRule:
    """Tests for rejecting skeleton branches that end on a hub."""

    @staticmethod
    def segmented(hubs, x_range):
        raster = np.zeros((120, 160), dtype=np.uint8)
        for center in hubs:
            cv2.circle(raster, center, 3, HUB, -1)
        branch = SkeletonBranch(points=np.array([(x, 60) for x in x_range], dtype=np.int32))
        raster[branch.points[:, 1], branch.points[:, 0]] = FOREGROUND
        return raster, branch

    @pytest.mark.parametrize("x_range", [range(44, 49), range(44, 117)])
    def test_branch_between_hubs_rejected(self, x_range):
        far_hub = (x_range[-1] + 4, 60)
        raster, branch = self.segmented([(40, 60), far_hub], x_range)

        assert FingertipExtractor()._touches_hub_distally(raster, branch)

    @pytest.mark.parametrize("x_range", [range(44, 49), range(44, 117)])
    def test_free_ended_branch_kept(self, x_range):
        raster, branch = self.segmented([(40, 60)], x_range)

        assert neighborhood_has(raster, branch.origin, HUB)
        assert not FingertipExtractor()._touches_hub_distally(raster, branch)
