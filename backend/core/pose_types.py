"""
Pose and Swing Data Types
Shared value types flowing from the pose stream to emitted swing events.

Coordinates are normalized image coordinates: origin top-left,
x grows to the right, y grows downward.
"""

from enum import Enum, auto
from typing import Dict, Optional, Tuple
from dataclasses import dataclass


Point = Tuple[float, float]

JOINT_NAMES = ("wrist", "elbow", "shoulder", "hip")


class SwingPhase(Enum):
    """Phases of one swing cycle"""
    IDLE = auto()
    BACKSWING = auto()
    FORWARD = auto()
    FOLLOW_THROUGH = auto()
    COMPLETED = auto()


class SwingType(str, Enum):
    """Output label vocabulary"""
    FOREHAND = "forehand"
    BACKHAND = "backhand"
    SERVE = "serve"
    UNKNOWN = "unknown"

    @classmethod
    def calibratable(cls) -> Tuple["SwingType", ...]:
        """Labels that can hold calibration exemplars"""
        return (cls.FOREHAND, cls.BACKHAND, cls.SERVE)


class Direction(str, Enum):
    """Dominant wrist motion between the last two frames"""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


@dataclass(frozen=True)
class JointObservation:
    """A single tracked landmark at one instant"""
    x: float
    y: float
    confidence: float
    timestamp: float

    @property
    def location(self) -> Point:
        return (self.x, self.y)

    def is_confident(self, threshold: float) -> bool:
        return self.confidence > threshold

    def to_dict(self) -> Dict:
        return {
            "x": self.x,
            "y": self.y,
            "confidence": self.confidence,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class PoseFrame:
    """
    Joint observations for one processed camera frame.

    A frame is valid for swing analysis only when both wrist and elbow
    are present. Invalid frames still occupy a history slot.
    """
    timestamp: float
    wrist: Optional[JointObservation] = None
    elbow: Optional[JointObservation] = None
    shoulder: Optional[JointObservation] = None
    hip: Optional[JointObservation] = None

    @property
    def is_valid(self) -> bool:
        return self.wrist is not None and self.elbow is not None

    @property
    def average_confidence(self) -> float:
        """Mean confidence of the arm joints that are present"""
        joints = [j for j in (self.wrist, self.elbow, self.shoulder) if j is not None]
        if not joints:
            return 0.0
        return sum(j.confidence for j in joints) / len(joints)

    def to_dict(self) -> Dict:
        data: Dict = {"timestamp": self.timestamp}
        for name in JOINT_NAMES:
            joint = getattr(self, name)
            data[name] = joint.to_dict() if joint else None
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "PoseFrame":
        """
        Build a frame from its JSON form.

        Joint entries may omit their own timestamp, in which case the
        frame timestamp is used.
        """
        timestamp = float(data.get("timestamp", 0.0))
        joints = {}
        for name in JOINT_NAMES:
            raw = data.get(name)
            if not raw:
                joints[name] = None
                continue
            joints[name] = JointObservation(
                x=float(raw["x"]),
                y=float(raw["y"]),
                confidence=float(raw.get("confidence", 0.0)),
                timestamp=float(raw.get("timestamp", timestamp)),
            )
        return cls(timestamp=timestamp, **joints)


@dataclass(frozen=True)
class SwingMetrics:
    """Aggregated metrics of one swing; a read-only snapshot"""
    max_speed: float
    amplitude: float
    duration: float
    path: Tuple[Point, ...] = ()

    @property
    def start_point(self) -> Optional[Point]:
        return self.path[0] if self.path else None

    @property
    def end_point(self) -> Optional[Point]:
        return self.path[-1] if self.path else None

    def to_dict(self) -> Dict:
        return {
            "max_speed": self.max_speed,
            "amplitude": self.amplitude,
            "duration": self.duration,
            "path": [list(p) for p in self.path],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "SwingMetrics":
        return cls(
            max_speed=float(data.get("max_speed", 0.0)),
            amplitude=float(data.get("amplitude", 0.0)),
            duration=float(data.get("duration", 0.0)),
            path=tuple((float(p[0]), float(p[1])) for p in data.get("path", [])),
        )
