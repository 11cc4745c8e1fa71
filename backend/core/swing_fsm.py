"""
Finite State Machine (FSM) for Swing Phase Detection
Push-driven: every appended frame updates metrics and may advance the phase.
"""

from typing import Optional
from dataclasses import dataclass
import logging

from config import get_thresholds
from config.thresholds import SwingFilterConfig, ThresholdConfig
from .feature_computer import (
    FrameHistory,
    MotionMetrics,
    compute_motion_metrics,
    horizontal_spread,
)
from .pose_types import Direction, PoseFrame, SwingMetrics, SwingPhase

logger = logging.getLogger(__name__)


BACKSWING_DIRECTIONS = (Direction.RIGHT, Direction.UP)


@dataclass(frozen=True)
class DebugInfo:
    """Snapshot of the detector for on-screen diagnostics"""
    wrist_speed: float
    elbow_angle: float
    shoulder_rotation: float
    swing_phase: SwingPhase
    motion_direction: Direction
    confidence: float

    def to_dict(self) -> dict:
        return {
            "wrist_speed": round(self.wrist_speed, 1),
            "elbow_angle": round(self.elbow_angle, 1),
            "shoulder_rotation": round(self.shoulder_rotation, 1),
            "swing_phase": self.swing_phase.name.lower(),
            "motion_direction": self.motion_direction.value,
            "confidence": round(self.confidence, 3),
        }


@dataclass
class SwingContext:
    """Accumulators for the swing in progress"""
    phase: SwingPhase = SwingPhase.IDLE
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    last_timestamp: float = 0.0
    max_speed: float = 0.0
    amplitude: float = 0.0


class SwingDetector:
    """
    Swing phase state machine over a bounded frame history.

    idle -> backswing -> forward -> followThrough -> completed. The
    completed phase is terminal: the owner reads the metrics and must call
    reset() before another swing can start.
    """

    def __init__(self, thresholds: Optional[ThresholdConfig] = None):
        self._thresholds = thresholds or get_thresholds()
        self._history = FrameHistory(self._thresholds.history)
        self._ctx = SwingContext()
        self._last_metrics: Optional[MotionMetrics] = None

    @property
    def phase(self) -> SwingPhase:
        return self._ctx.phase

    @property
    def is_swing_complete(self) -> bool:
        return self._ctx.phase == SwingPhase.COMPLETED

    @property
    def history(self) -> FrameHistory:
        return self._history

    def reset(self):
        """Drop the swing in progress and return to idle (no event)"""
        if self._ctx.phase != SwingPhase.IDLE:
            logger.debug(f"Swing reset from {self._ctx.phase.name}")
        self._ctx = SwingContext(last_timestamp=self._ctx.last_timestamp)
        self._history.clear_path()

    def add_frame(self, frame: PoseFrame) -> SwingPhase:
        """
        Append a frame and advance the state machine.

        Args:
            frame: Next pose frame, in delivery order

        Returns:
            Phase after processing the frame
        """
        self._history.add_frame(frame)
        # The path is frozen once the swing has completed
        if self._ctx.phase != SwingPhase.COMPLETED:
            self._history.track_wrist(frame)
        self._ctx.last_timestamp = frame.timestamp

        if len(self._history) < self._thresholds.history.min_frames_for_analysis:
            return self._ctx.phase

        metrics = compute_motion_metrics(
            self._history.recent(self._thresholds.history.metric_window_frames),
            self._thresholds.history
        )
        self._last_metrics = metrics
        self._advance(metrics)
        return self._ctx.phase

    def _transition_to(self, new_phase: SwingPhase, timestamp: float):
        logger.debug(f"Swing phase: {self._ctx.phase.name} -> {new_phase.name} at {timestamp:.2f}s")
        self._ctx.phase = new_phase

    def _advance(self, m: MotionMetrics):
        cfg = self._thresholds.fsm
        phase = self._ctx.phase
        speed = m.wrist_speed

        if phase == SwingPhase.IDLE:
            if speed > cfg.min_swing_speed and m.direction in BACKSWING_DIRECTIONS:
                self._start_swing(m.timestamp)
                self._transition_to(SwingPhase.BACKSWING, m.timestamp)

        elif phase == SwingPhase.BACKSWING:
            self._ctx.max_speed = max(self._ctx.max_speed, speed)

            if m.timestamp - self._ctx.start_time > cfg.backswing_timeout_sec:
                logger.debug(f"Backswing timed out at {m.timestamp:.2f}s")
                self.reset()
            elif m.direction == Direction.LEFT and speed > cfg.min_forward_speed:
                self._ctx.amplitude = horizontal_spread(
                    self._history.path, self._thresholds.history.reference_width
                )
                self._transition_to(SwingPhase.FORWARD, m.timestamp)

        elif phase == SwingPhase.FORWARD:
            self._ctx.max_speed = max(self._ctx.max_speed, speed)
            if speed < self._ctx.max_speed * cfg.follow_through_speed_ratio:
                self._transition_to(SwingPhase.FOLLOW_THROUGH, m.timestamp)

        elif phase == SwingPhase.FOLLOW_THROUGH:
            self._ctx.max_speed = max(self._ctx.max_speed, speed)
            if speed < cfg.max_idle_speed:
                self._ctx.end_time = m.timestamp
                self._transition_to(SwingPhase.COMPLETED, m.timestamp)

        # COMPLETED waits for the owner to reset

    def _start_swing(self, timestamp: float):
        self._ctx.start_time = timestamp
        self._ctx.end_time = None
        self._ctx.max_speed = 0.0
        self._ctx.amplitude = 0.0
        self._history.clear_path()
        latest = self._history.latest
        if latest is not None:
            self._history.track_wrist(latest)

    def swing_metrics(self) -> SwingMetrics:
        """Snapshot of the in-progress or just-completed swing"""
        ctx = self._ctx
        if ctx.start_time is None:
            duration = 0.0
        else:
            end = ctx.end_time if ctx.end_time is not None else ctx.last_timestamp
            duration = max(0.0, end - ctx.start_time)

        return SwingMetrics(
            max_speed=ctx.max_speed,
            amplitude=ctx.amplitude,
            duration=duration,
            path=self._history.path,
        )

    def debug_info(self) -> Optional[DebugInfo]:
        """Latest metrics and phase, or None before analysis has started"""
        m = self._last_metrics
        if m is None:
            return None
        return DebugInfo(
            wrist_speed=m.wrist_speed,
            elbow_angle=m.elbow_angle,
            shoulder_rotation=m.shoulder_rotation,
            swing_phase=self._ctx.phase,
            motion_direction=m.direction,
            confidence=m.confidence,
        )


def is_plausible_swing(metrics: SwingMetrics, config: Optional[SwingFilterConfig] = None) -> bool:
    """
    False-positive filter for completed swings.

    Too short, too long or too slow swings are discarded before
    classification.
    """
    cfg = config or get_thresholds().swing_filter
    if not (cfg.min_swing_duration_sec <= metrics.duration <= cfg.max_swing_duration_sec):
        return False
    return metrics.max_speed >= cfg.min_peak_speed
