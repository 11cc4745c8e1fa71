"""
Shared fixtures for SwingSense tests.

Frames are synthesized from per-frame wrist velocities in pixels/second
against the 1920x1080 reference frame, so expected speeds can be read
straight off the test data.
"""

import os
import tempfile

import pytest

# Keep the default app stores out of the working tree
_DATA_DIR = tempfile.mkdtemp(prefix="swingsense-test-")
os.environ.setdefault("CALIBRATION_DIR", os.path.join(_DATA_DIR, "calibration"))
os.environ.setdefault("TRAINING_DATA_DIR", os.path.join(_DATA_DIR, "training"))

FPS = 30.0
WIDTH = 1920.0
HEIGHT = 1080.0

IDLE = (0.0, 0.0)


def build_frame(t, x, y, confidence=0.9, elbow=True):
    from core.pose_types import JointObservation, PoseFrame

    def joint(jx, jy):
        return JointObservation(x=jx, y=jy, confidence=confidence, timestamp=t)

    return PoseFrame(
        timestamp=t,
        wrist=joint(x, y),
        elbow=joint(x + 0.05, y + 0.1) if elbow else None,
        shoulder=joint(0.5, 0.3),
        hip=joint(0.5, 0.6),
    )


def frames_from_velocities(start, velocities, fps=FPS, confidence=0.9, t0=0.0):
    """
    One frame per velocity entry. Each frame's wrist is the previous
    position moved by that velocity for one frame interval.
    """
    x, y = start
    frames = []
    for i, (vx, vy) in enumerate(velocities):
        x += vx / fps / WIDTH
        y += vy / fps / HEIGHT
        frames.append(build_frame(t0 + i / fps, x, y, confidence))
    return frames


# Right backswing, long left forward swing, settle. Starts at (0.6, 0.5)
# and ends near (0.22, 0.5); completes on frame 35 after 1.0s.
FOREHAND_VELOCITIES = (
    [IDLE] * 5
    + [(600.0, 0.0)] * 3
    + [(-900.0, 0.0)] * 26
    + [(-300.0, 0.0), (-100.0, 0.0)]
    + [IDLE] * 3
)

# Upward backswing from (0.3, 0.2), one fast left frame to enter the
# forward phase, then a long downward stroke ending near y=0.7.
SERVE_VELOCITIES = (
    [IDLE] * 5
    + [(0.0, -900.0)] * 5
    + [(-1200.0, 0.0)]
    + [(0.0, 1200.0)] * 17
    + [(0.0, 400.0), (0.0, 100.0)]
    + [IDLE] * 3
)

# Forward phase kept alive by zig-zagging so the swing lasts 2.5s
LONG_SWING_VELOCITIES = (
    [IDLE] * 5
    + [(600.0, 0.0)] * 3
    + [(-900.0, 0.0)]
    + [(900.0, 0.0), (-900.0, 0.0)] * 35
    + [(-300.0, 0.0), (-100.0, 0.0)]
    + [IDLE] * 3
)


@pytest.fixture
def make_frame():
    return build_frame


@pytest.fixture
def forehand_frames():
    return frames_from_velocities((0.6, 0.5), FOREHAND_VELOCITIES)


@pytest.fixture
def serve_frames():
    return frames_from_velocities((0.3, 0.2), SERVE_VELOCITIES)


@pytest.fixture
def long_swing_frames():
    return frames_from_velocities((0.6, 0.5), LONG_SWING_VELOCITIES)


@pytest.fixture
def motion_frames():
    return frames_from_velocities


@pytest.fixture
def swing_velocities():
    return {
        "forehand": FOREHAND_VELOCITIES,
        "serve": SERVE_VELOCITIES,
        "long": LONG_SWING_VELOCITIES,
    }


class RecordingListener:
    """Collects everything a session emits"""

    def __init__(self):
        self.swings = []
        self.poses = []
        self.statuses = []

    def on_swing_detected(self, event):
        self.swings.append(event)

    def on_pose_detected(self, frame):
        self.poses.append(frame)

    def on_status(self, message):
        self.statuses.append(message)


@pytest.fixture
def listener():
    return RecordingListener()
