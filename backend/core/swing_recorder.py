"""
Labeled Swing Recorder
Captures raw pose sequences with a forced label for offline training data.
"""

import json
import uuid
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Deque, Dict, List, Optional, Tuple
from dataclasses import dataclass, field, asdict

from config import get_thresholds
from config.thresholds import RecorderConfig
from .calibration_storage import CalibrationStorage
from .pose_types import JOINT_NAMES, PoseFrame, SwingType

logger = logging.getLogger(__name__)


TRAINING_DATA_KEY = "labeledTrainingData"


@dataclass
class PoseFrameData:
    """Joint locations of one recorded frame"""
    timestamp: float  # seconds since recording start
    confidence: float  # mean confidence of the joints present
    wrist: Optional[Tuple[float, float]] = None
    elbow: Optional[Tuple[float, float]] = None
    shoulder: Optional[Tuple[float, float]] = None
    hip: Optional[Tuple[float, float]] = None

    @classmethod
    def from_frame(cls, frame: PoseFrame, start_time: float) -> "PoseFrameData":
        joints = {name: getattr(frame, name) for name in JOINT_NAMES}
        present = [j for j in joints.values() if j is not None]
        confidence = sum(j.confidence for j in present) / len(present) if present else 0.0
        return cls(
            timestamp=frame.timestamp - start_time,
            confidence=confidence,
            **{name: (j.location if j is not None else None) for name, j in joints.items()}
        )


@dataclass
class LabeledSwing:
    """A recorded pose sequence and its label"""
    label: str
    pose_frames: List[PoseFrameData]
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_dict(cls, data: Dict) -> "LabeledSwing":
        frames = []
        for f in data["pose_frames"]:
            frames.append(PoseFrameData(
                timestamp=float(f["timestamp"]),
                confidence=float(f["confidence"]),
                **{name: (tuple(f[name]) if f.get(name) else None) for name in JOINT_NAMES}
            ))
        return cls(
            label=data["label"],
            pose_frames=frames,
            session_id=data.get("session_id", str(uuid.uuid4())),
            timestamp=data.get("timestamp", ""),
        )


class SwingRecorder:
    """
    Records one swing at a time.

    Usage:
    1. start() when the user presses record
    2. add_frame() for every incoming pose frame
    3. complete(label) when the user stops; kept if enough frames arrived
    """

    def __init__(
        self,
        storage: Optional[CalibrationStorage] = None,
        config: Optional[RecorderConfig] = None
    ):
        self.config = config or get_thresholds().recorder
        self.storage = storage
        self._frames: Deque[PoseFrameData] = deque(maxlen=self.config.max_frames_per_recording)
        self._recording = False
        self._start_time: Optional[float] = None
        self._recordings: List[LabeledSwing] = []

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def recordings(self) -> List[LabeledSwing]:
        return list(self._recordings)

    def start(self, timestamp: Optional[float] = None):
        """Begin a recording; the first frame's time is used when omitted"""
        self._frames.clear()
        self._recording = True
        self._start_time = timestamp

    def add_frame(self, frame: PoseFrame):
        if not self._recording:
            return
        if self._start_time is None:
            self._start_time = frame.timestamp
        self._frames.append(PoseFrameData.from_frame(frame, self._start_time))

    def cancel(self):
        self._frames.clear()
        self._recording = False
        self._start_time = None

    def complete(self, label: SwingType) -> Optional[LabeledSwing]:
        """
        Finish the recording under a forced label.

        Returns:
            The stored recording, or None if too few frames were captured
            or the label is not calibratable
        """
        frames = list(self._frames)
        self.cancel()

        if label not in SwingType.calibratable():
            logger.debug(f"Recording discarded: label '{label.value}' is not recordable")
            return None
        if len(frames) < self.config.min_frames_per_recording:
            logger.debug(
                f"Recording discarded: {len(frames)}/{self.config.min_frames_per_recording} frames"
            )
            return None

        recording = LabeledSwing(label=label.value, pose_frames=frames)
        self._recordings.append(recording)
        self._evict_oldest(label.value)

        logger.info(f"Recorded {label.value} swing ({len(frames)} frames). {self.summary()}")
        if self.storage is not None:
            self.save()
        return recording

    def _evict_oldest(self, label: str):
        same_label = [i for i, r in enumerate(self._recordings) if r.label == label]
        if len(same_label) > self.config.max_recordings_per_label:
            del self._recordings[same_label[0]]

    def counts(self) -> Dict[str, int]:
        result = {t.value: 0 for t in SwingType.calibratable()}
        for r in self._recordings:
            result[r.label] = result.get(r.label, 0) + 1
        return result

    def summary(self) -> str:
        c = self.counts()
        return (
            f"Training Data - FH: {c[SwingType.FOREHAND.value]}, "
            f"BH: {c[SwingType.BACKHAND.value]}, S: {c[SwingType.SERVE.value]}"
        )

    def export_json(self, indent: int = 2) -> str:
        return json.dumps([asdict(r) for r in self._recordings], indent=indent)

    def clear(self):
        self._recordings = []
        if self.storage is not None:
            self.storage.delete(TRAINING_DATA_KEY)

    def save(self):
        if self.storage is None:
            return
        self.storage.set(TRAINING_DATA_KEY, self.export_json(indent=None))

    def load(self) -> int:
        """Load stored recordings; unreadable data leaves the list empty"""
        self._recordings = []
        if self.storage is None:
            return 0
        raw = self.storage.get(TRAINING_DATA_KEY)
        if raw is None:
            return 0
        try:
            self._recordings = [LabeledSwing.from_dict(d) for d in json.loads(raw)]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored training data is unreadable: {e}")
            self._recordings = []
        return len(self._recordings)
