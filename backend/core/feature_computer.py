"""
Feature Computation Module
Frame history window and per-frame motion metrics for swing detection.
"""

import math
import numpy as np
from collections import deque
from typing import Deque, List, Optional, Sequence, Tuple
from dataclasses import dataclass

from config import get_thresholds
from config.thresholds import HistoryConfig
from .pose_types import Direction, JointObservation, Point, PoseFrame


@dataclass(frozen=True)
class MotionMetrics:
    """Metrics derived from the most recent frames"""
    timestamp: float
    wrist_speed: float        # pixels / second
    elbow_angle: float        # degrees, 0 when joints unreliable
    shoulder_rotation: float  # pixels of horizontal shoulder travel
    direction: Direction
    confidence: float         # mean arm joint confidence of the latest frame


class FrameHistory:
    """
    Bounded, order-preserving buffers of recent frames and the tracked
    wrist path. Oldest entries are evicted on overflow.
    """

    def __init__(self, config: Optional[HistoryConfig] = None):
        self.config = config or get_thresholds().history
        self._frames: Deque[PoseFrame] = deque(maxlen=self.config.max_frames)
        self._path: Deque[Point] = deque(maxlen=self.config.max_path_points)

    def __len__(self) -> int:
        return len(self._frames)

    def add_frame(self, frame: PoseFrame):
        self._frames.append(frame)

    def add_to_path(self, point: Point):
        self._path.append(point)

    def track_wrist(self, frame: PoseFrame) -> bool:
        """Append the wrist location to the path if it is confident enough"""
        wrist = frame.wrist
        if wrist is None or not wrist.is_confident(self.config.min_confidence):
            return False
        self.add_to_path(wrist.location)
        return True

    def recent(self, n: Optional[int] = None) -> List[PoseFrame]:
        """Last n frames, oldest first"""
        n = n or self.config.metric_window_frames
        if n >= len(self._frames):
            return list(self._frames)
        return list(self._frames)[-n:]

    @property
    def latest(self) -> Optional[PoseFrame]:
        return self._frames[-1] if self._frames else None

    @property
    def path(self) -> Tuple[Point, ...]:
        return tuple(self._path)

    def clear_path(self):
        self._path.clear()

    def clear(self):
        self._frames.clear()
        self._path.clear()


def _confident(joint: Optional[JointObservation], threshold: float) -> bool:
    return joint is not None and joint.is_confident(threshold)


def _last_two_wrists(
    frames: Sequence[PoseFrame]
) -> Optional[Tuple[JointObservation, JointObservation]]:
    # Frames missing wrist or elbow are skipped
    valid = [f for f in frames if f.is_valid]
    if len(valid) < 2:
        return None
    return valid[-2].wrist, valid[-1].wrist


def wrist_speed(frames: Sequence[PoseFrame], config: Optional[HistoryConfig] = None) -> float:
    """
    Pixel-space wrist speed between the last two frames.

    Returns 0 when either wrist is missing or unreliable, or when the
    timestamps do not increase.
    """
    cfg = config or get_thresholds().history
    pair = _last_two_wrists(frames)
    if pair is None:
        return 0.0
    previous, current = pair
    if not (_confident(previous, cfg.min_confidence) and _confident(current, cfg.min_confidence)):
        return 0.0

    dt = current.timestamp - previous.timestamp
    if dt <= 0:
        return 0.0

    dx = (current.x - previous.x) * cfg.reference_width
    dy = (current.y - previous.y) * cfg.reference_height
    return math.sqrt(dx * dx + dy * dy) / dt


def angle_between_points(p1: Point, p2: Point, p3: Point) -> float:
    """
    Compute angle at p2 between p1-p2-p3 in degrees.
    Returns angle in range [0, 180]
    """
    v1 = (p1[0] - p2[0], p1[1] - p2[1])
    v2 = (p3[0] - p2[0], p3[1] - p2[1])

    dot = v1[0] * v2[0] + v1[1] * v2[1]
    mag1 = math.sqrt(v1[0]**2 + v1[1]**2)
    mag2 = math.sqrt(v2[0]**2 + v2[1]**2)

    if mag1 * mag2 == 0:
        return 0.0

    cos_angle = dot / (mag1 * mag2)
    cos_angle = max(-1.0, min(1.0, cos_angle))  # Clamp for numerical stability

    return math.degrees(math.acos(cos_angle))


def elbow_angle(frame: PoseFrame, config: Optional[HistoryConfig] = None) -> float:
    """Shoulder-elbow-wrist angle, 0 unless all three joints are reliable"""
    cfg = config or get_thresholds().history
    joints = (frame.shoulder, frame.elbow, frame.wrist)
    if not all(_confident(j, cfg.min_confidence) for j in joints):
        return 0.0
    return angle_between_points(frame.shoulder.location, frame.elbow.location, frame.wrist.location)


def shoulder_rotation(frames: Sequence[PoseFrame], config: Optional[HistoryConfig] = None) -> float:
    """Horizontal shoulder displacement across the window, in pixels"""
    cfg = config or get_thresholds().history
    if len(frames) < 2:
        return 0.0
    first = frames[0].shoulder
    last = frames[-1].shoulder
    if not (_confident(first, cfg.min_confidence) and _confident(last, cfg.min_confidence)):
        return 0.0
    return abs(last.x - first.x) * cfg.reference_width


def motion_direction(frames: Sequence[PoseFrame]) -> Direction:
    """Dominant axis of wrist displacement between the last two frames"""
    pair = _last_two_wrists(frames)
    if pair is None:
        return Direction.NONE
    previous, current = pair

    dx = current.x - previous.x
    dy = current.y - previous.y
    if dx == 0 and dy == 0:
        return Direction.NONE

    if abs(dx) > abs(dy):
        return Direction.RIGHT if dx > 0 else Direction.LEFT
    # y grows downward in image coordinates
    return Direction.DOWN if dy > 0 else Direction.UP


def compute_motion_metrics(
    frames: Sequence[PoseFrame],
    config: Optional[HistoryConfig] = None
) -> Optional[MotionMetrics]:
    """
    Compute all motion metrics for the latest frame of a window.

    Args:
        frames: Recent frames, oldest first
        config: History thresholds

    Returns:
        MotionMetrics or None if the window is empty
    """
    if not frames:
        return None
    cfg = config or get_thresholds().history
    current = frames[-1]

    return MotionMetrics(
        timestamp=current.timestamp,
        wrist_speed=wrist_speed(frames, cfg),
        elbow_angle=elbow_angle(current, cfg),
        shoulder_rotation=shoulder_rotation(frames, cfg),
        direction=motion_direction(frames),
        confidence=current.average_confidence,
    )


# =============================================================================
# Path geometry
# =============================================================================

def horizontal_spread(path: Sequence[Point], width: float) -> float:
    """Horizontal extent of a path in pixels"""
    if len(path) < 2:
        return 0.0
    xs = np.asarray([p[0] for p in path], dtype=float)
    return float((xs.max() - xs.min()) * width)


def path_length(path: Sequence[Point]) -> float:
    """Summed segment length of a path in normalized units"""
    if len(path) < 2:
        return 0.0
    points = np.asarray(path, dtype=float)
    segments = np.diff(points, axis=0)
    return float(np.sqrt((segments ** 2).sum(axis=1)).sum())


def path_curvature(path: Sequence[Point], min_direct_distance: float = 0.01) -> float:
    """Path length divided by the straight start-to-end distance"""
    if len(path) < 2:
        return 0.0
    first, last = path[0], path[-1]
    direct = math.sqrt((last[0] - first[0])**2 + (last[1] - first[1])**2)
    return path_length(path) / max(direct, min_direct_distance)


def mean_height(path: Sequence[Point]) -> float:
    """Average normalized y of a path"""
    if not path:
        return 0.0
    return float(np.mean([p[1] for p in path]))
