"""
Unit Tests for Frame History and Motion Metrics
"""

import pytest


class TestFrameHistory:

    def test_history_is_bounded(self, make_frame):
        """Oldest frames are evicted past max_frames"""
        from core.feature_computer import FrameHistory

        history = FrameHistory()
        for i in range(70):
            history.add_frame(make_frame(i / 30, 0.5, 0.5))

        assert len(history) == 60
        assert history.recent(1)[0].timestamp == pytest.approx(69 / 30)
        assert history.recent()[0].timestamp == pytest.approx(60 / 30)

    def test_low_confidence_wrist_not_tracked(self, make_frame):
        """Path only receives wrists above the confidence threshold"""
        from core.feature_computer import FrameHistory

        history = FrameHistory()
        assert history.track_wrist(make_frame(0.0, 0.5, 0.5, confidence=0.9))
        assert not history.track_wrist(make_frame(0.1, 0.6, 0.5, confidence=0.6))
        assert not history.track_wrist(make_frame(0.2, 0.7, 0.5, confidence=0.3))

        assert history.path == ((0.5, 0.5),)

    def test_path_is_bounded(self, make_frame):
        from core.feature_computer import FrameHistory

        history = FrameHistory()
        for i in range(65):
            history.track_wrist(make_frame(i / 30, i / 100, 0.5))

        assert len(history.path) == 60
        assert history.path[0] == (0.05, 0.5)

    def test_clear_path_keeps_frames(self, make_frame):
        from core.feature_computer import FrameHistory

        history = FrameHistory()
        frame = make_frame(0.0, 0.5, 0.5)
        history.add_frame(frame)
        history.track_wrist(frame)
        history.clear_path()

        assert history.path == ()
        assert len(history) == 1


class TestWristSpeed:

    def test_speed_in_reference_pixels(self, make_frame):
        """0.01 of frame width in 1/30s = 19.2px * 30 = 576 px/s"""
        from core.feature_computer import wrist_speed

        frames = [make_frame(0.0, 0.50, 0.5), make_frame(1 / 30, 0.51, 0.5)]
        assert wrist_speed(frames) == pytest.approx(576.0)

    def test_vertical_speed_uses_frame_height(self, make_frame):
        from core.feature_computer import wrist_speed

        frames = [make_frame(0.0, 0.5, 0.50), make_frame(0.1, 0.5, 0.60)]
        assert wrist_speed(frames) == pytest.approx(1080.0)

    def test_low_confidence_gives_zero(self, make_frame):
        from core.feature_computer import wrist_speed

        frames = [make_frame(0.0, 0.5, 0.5), make_frame(1 / 30, 0.6, 0.5, confidence=0.5)]
        assert wrist_speed(frames) == 0.0

    def test_non_increasing_timestamps_give_zero(self, make_frame):
        from core.feature_computer import wrist_speed

        frames = [make_frame(1.0, 0.5, 0.5), make_frame(1.0, 0.6, 0.5)]
        assert wrist_speed(frames) == 0.0

        frames = [make_frame(1.0, 0.5, 0.5), make_frame(0.9, 0.6, 0.5)]
        assert wrist_speed(frames) == 0.0

    def test_invalid_frames_are_skipped(self, make_frame):
        """Speed uses the last two frames that have both wrist and elbow"""
        from core.feature_computer import wrist_speed

        frames = [
            make_frame(0.0, 0.50, 0.5),
            make_frame(0.1, 0.90, 0.5, elbow=False),
            make_frame(0.2, 0.60, 0.5),
        ]
        # 0.1 * 1920 over 0.2s
        assert wrist_speed(frames) == pytest.approx(960.0)

    def test_single_frame(self, make_frame):
        from core.feature_computer import wrist_speed

        assert wrist_speed([make_frame(0.0, 0.5, 0.5)]) == 0.0


class TestMotionDirection:

    @pytest.mark.parametrize("dx,dy,expected", [
        (0.05, 0.01, "right"),
        (-0.05, 0.01, "left"),
        (0.01, -0.05, "up"),
        (0.01, 0.05, "down"),
        (0.0, 0.0, "none"),
    ])
    def test_dominant_axis(self, make_frame, dx, dy, expected):
        """y grows downward, so negative dy is up"""
        from core.feature_computer import motion_direction

        frames = [make_frame(0.0, 0.5, 0.5), make_frame(0.1, 0.5 + dx, 0.5 + dy)]
        assert motion_direction(frames).value == expected

    def test_no_valid_pair(self, make_frame):
        from core.feature_computer import motion_direction
        from core.pose_types import Direction

        frames = [make_frame(0.0, 0.5, 0.5, elbow=False), make_frame(0.1, 0.6, 0.5)]
        assert motion_direction(frames) == Direction.NONE


class TestJointAngles:

    def test_right_angle(self):
        from core.feature_computer import angle_between_points

        assert angle_between_points((0.5, 0.3), (0.5, 0.5), (0.7, 0.5)) == pytest.approx(90.0)

    def test_straight_arm(self):
        from core.feature_computer import angle_between_points

        assert angle_between_points((0.5, 0.1), (0.5, 0.3), (0.5, 0.5)) == pytest.approx(180.0)

    def test_degenerate_points(self):
        from core.feature_computer import angle_between_points

        assert angle_between_points((0.5, 0.5), (0.5, 0.5), (0.7, 0.5)) == 0.0

    def test_elbow_angle_needs_reliable_joints(self, make_frame):
        from core.feature_computer import elbow_angle

        assert elbow_angle(make_frame(0.0, 0.5, 0.5)) > 0
        assert elbow_angle(make_frame(0.0, 0.5, 0.5, confidence=0.4)) == 0.0
        assert elbow_angle(make_frame(0.0, 0.5, 0.5, elbow=False)) == 0.0


class TestMotionMetrics:

    def test_metrics_for_latest_frame(self, make_frame):
        from core.feature_computer import compute_motion_metrics
        from core.pose_types import Direction

        frames = [make_frame(i / 30, 0.5 - 0.01 * i, 0.5) for i in range(5)]
        m = compute_motion_metrics(frames)

        assert m.timestamp == pytest.approx(4 / 30)
        assert m.wrist_speed == pytest.approx(576.0)
        assert m.direction == Direction.LEFT
        assert m.confidence == pytest.approx(0.9)
        # Shoulders are fixed in the fixture frames
        assert m.shoulder_rotation == 0.0

    def test_empty_window(self):
        from core.feature_computer import compute_motion_metrics

        assert compute_motion_metrics([]) is None


class TestPathGeometry:

    def test_horizontal_spread(self):
        from core.feature_computer import horizontal_spread

        path = [(0.5, 0.5), (0.6, 0.4), (0.45, 0.5)]
        assert horizontal_spread(path, 1920.0) == pytest.approx(0.15 * 1920)
        assert horizontal_spread([(0.5, 0.5)], 1920.0) == 0.0

    def test_straight_path_has_unit_curvature(self):
        from core.feature_computer import path_curvature

        path = [(0.1, 0.5), (0.2, 0.5), (0.4, 0.5)]
        assert path_curvature(path) == pytest.approx(1.0)

    def test_detour_raises_curvature(self):
        from core.feature_computer import path_curvature, path_length

        path = [(0.3, 0.2), (0.3, 0.0), (0.3, 0.7)]
        assert path_length(path) == pytest.approx(0.9)
        assert path_curvature(path) == pytest.approx(0.9 / 0.5)

    def test_closed_path_uses_minimum_distance(self):
        from core.feature_computer import path_curvature

        path = [(0.5, 0.5), (0.6, 0.5), (0.5, 0.5)]
        assert path_curvature(path) == pytest.approx(0.2 / 0.01)

    def test_mean_height(self):
        from core.feature_computer import mean_height

        assert mean_height([(0.1, 0.2), (0.2, 0.4)]) == pytest.approx(0.3)
        assert mean_height([]) == 0.0
