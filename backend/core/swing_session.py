"""
Swing Session
Drives one detector for one capture session: filters completed swings,
labels them and notifies listeners.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass

from config import get_thresholds
from config.thresholds import ThresholdConfig
from .calibration import CalibrationStore
from .motion_classifier import classify_swing
from .pose_types import PoseFrame, SwingMetrics, SwingPhase, SwingType
from .swing_fsm import DebugInfo, SwingDetector, is_plausible_swing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwingDetectedEvent:
    """A completed, filtered and labeled swing"""
    swing_type: SwingType
    duration: float
    metrics: SwingMetrics
    timestamp: float
    calibrated: bool = False

    def to_dict(self) -> dict:
        return {
            "swing_type": self.swing_type.value,
            "duration": self.duration,
            "timestamp": self.timestamp,
            "calibrated": self.calibrated,
            "metrics": self.metrics.to_dict(),
        }


class SwingEventListener:
    """
    Observer for session output. Override the callbacks you need.

    Callbacks receive immutable values only.
    """

    def on_swing_detected(self, event: SwingDetectedEvent) -> None:
        pass

    def on_pose_detected(self, frame: PoseFrame) -> None:
        pass

    def on_status(self, message: str) -> None:
        pass


class SwingSession:
    """
    One live capture session.

    Frames must be delivered in order from a single caller. Starting a new
    capture session means constructing a new SwingSession or calling
    reset().
    """

    def __init__(
        self,
        calibration: Optional[CalibrationStore] = None,
        thresholds: Optional[ThresholdConfig] = None
    ):
        self._thresholds = thresholds or get_thresholds()
        self.detector = SwingDetector(self._thresholds)
        self.calibration = calibration
        self._listeners: List[SwingEventListener] = []
        self._last_swing: Optional[SwingMetrics] = None
        self._frames_processed = 0
        self._swings_detected = 0
        self._swings_discarded = 0

    def add_listener(self, listener: SwingEventListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: SwingEventListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    @property
    def swings_detected(self) -> int:
        return self._swings_detected

    @property
    def swings_discarded(self) -> int:
        return self._swings_discarded

    def reset(self):
        """Cancel any swing in progress without emitting an event"""
        self.detector.reset()

    def process_frame(self, frame: PoseFrame) -> Optional[SwingDetectedEvent]:
        """
        Feed one frame through the detector.

        Args:
            frame: Next pose frame

        Returns:
            The emitted event when this frame completed a plausible swing
        """
        self._frames_processed += 1
        for listener in self._listeners:
            listener.on_pose_detected(frame)

        self.detector.add_frame(frame)
        if not self.detector.is_swing_complete:
            return None

        metrics = self.detector.swing_metrics()
        self._last_swing = metrics
        event = None

        if is_plausible_swing(metrics, self._thresholds.swing_filter):
            calibrated = self.calibration is not None and self.calibration.has_calibration()
            swing_type = classify_swing(metrics, self.calibration, self._thresholds)
            event = SwingDetectedEvent(
                swing_type=swing_type,
                duration=metrics.duration,
                metrics=metrics,
                timestamp=frame.timestamp,
                calibrated=calibrated,
            )
            self._swings_detected += 1
            logger.info(
                f"Swing detected: {swing_type.value} "
                f"(speed {metrics.max_speed:.0f}px/s, {metrics.duration:.2f}s)"
            )
            self._notify_swing(event)
            self._notify_status(f"{swing_type.value} detected! Speed: {int(metrics.max_speed)} px/s")
        else:
            self._swings_discarded += 1
            logger.debug(
                f"Swing discarded: duration {metrics.duration:.2f}s, "
                f"speed {metrics.max_speed:.0f}px/s"
            )

        self.detector.reset()
        return event

    def _notify_swing(self, event: SwingDetectedEvent):
        for listener in self._listeners:
            listener.on_swing_detected(event)

    def _notify_status(self, message: str):
        for listener in self._listeners:
            listener.on_status(message)

    def get_swing_metrics(self) -> SwingMetrics:
        """
        In-progress swing metrics, or the last completed swing when the
        detector is idle.
        """
        current = self.detector.swing_metrics()
        if self.detector.phase == SwingPhase.IDLE and self._last_swing is not None:
            return self._last_swing
        return current

    def debug_info(self) -> Optional[DebugInfo]:
        return self.detector.debug_info()
