"""
Swing Calibration
Per-user bank of labeled exemplar swings and nearest-exemplar scoring.

Usage:
1. User performs a swing and labels it (forced-label capture)
2. The swing summary is stored in that label's bank (last 10 kept)
3. New swings are scored against every exemplar; the best label wins
"""

import json
import logging
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple
from dataclasses import dataclass, asdict

from config import get_thresholds
from config.thresholds import CalibrationMatchConfig, HistoryConfig
from .calibration_storage import CalibrationStorage
from .pose_types import SwingMetrics, SwingType

logger = logging.getLogger(__name__)


CALIBRATION_SCHEMA_VERSION = 1

STORAGE_KEYS = {
    SwingType.FOREHAND: "forehandPatterns",
    SwingType.BACKHAND: "backhandPatterns",
    SwingType.SERVE: "servePatterns",
}

# Persisted field name -> SwingPattern attribute
_FIELD_NAMES = {
    "horizontalChange": "horizontal_change",
    "verticalChange": "vertical_change",
    "maxSpeed": "max_speed",
    "startX": "start_x",
    "startY": "start_y",
    "duration": "duration",
    "amplitude": "amplitude",
}


@dataclass(frozen=True)
class SwingPattern:
    """Compact numeric summary of one labeled swing"""
    horizontal_change: float  # pixels, positive = rightward
    vertical_change: float    # pixels, positive = downward
    max_speed: float
    start_x: float
    start_y: float
    duration: float
    amplitude: float

    @classmethod
    def from_metrics(
        cls,
        metrics: SwingMetrics,
        history: Optional[HistoryConfig] = None
    ) -> Optional["SwingPattern"]:
        """Derive a pattern; None when the path has fewer than 2 points"""
        if len(metrics.path) < 2:
            return None
        cfg = history or get_thresholds().history
        first = metrics.path[0]
        last = metrics.path[-1]
        return cls(
            horizontal_change=(last[0] - first[0]) * cfg.reference_width,
            vertical_change=(last[1] - first[1]) * cfg.reference_height,
            max_speed=metrics.max_speed,
            start_x=first[0],
            start_y=first[1],
            duration=metrics.duration,
            amplitude=metrics.amplitude,
        )

    def to_dict(self) -> Dict[str, float]:
        values = asdict(self)
        return {name: values[attr] for name, attr in _FIELD_NAMES.items()}

    @classmethod
    def from_dict(cls, data: Dict) -> "SwingPattern":
        """Raises KeyError/TypeError/ValueError on a malformed entry"""
        return cls(**{attr: float(data[name]) for name, attr in _FIELD_NAMES.items()})


def _ratio(a: float, b: float) -> float:
    """min/max ratio in [0, 1]; 0 when either side is non-positive"""
    if a <= 0 or b <= 0:
        return 0.0
    return min(a, b) / max(a, b)


def match_score(
    pattern: SwingPattern,
    candidate: SwingPattern,
    config: Optional[CalibrationMatchConfig] = None
) -> float:
    """
    Weighted similarity between a stored pattern and a new swing.

    Each component contributes a value in [0, weight] and only the
    weights of components that apply are counted, so the result is in
    [0, 1].
    """
    cfg = config or get_thresholds().calibration
    score = 0.0
    weights = 0.0

    h_pat = pattern.horizontal_change
    h_new = candidate.horizontal_change

    # Direction agreement matters most
    if h_pat < -cfg.direction_pattern_threshold and h_new < -cfg.direction_swing_threshold:
        direction_match = True
    elif h_pat > cfg.direction_pattern_threshold and h_new > cfg.direction_swing_threshold:
        direction_match = True
    elif abs(h_pat) < cfg.direction_pattern_threshold and abs(h_new) < cfg.direction_pattern_threshold:
        # Both mostly vertical
        direction_match = True
    else:
        direction_match = False

    if direction_match:
        score += cfg.direction_weight
        weights += cfg.direction_weight

    # Horizontal magnitude
    h_diff = abs(h_pat - h_new)
    if h_diff < cfg.horizontal_close_px:
        score += cfg.horizontal_weight * (1.0 - h_diff / cfg.horizontal_close_px)
        weights += cfg.horizontal_weight
    elif h_diff < cfg.horizontal_loose_px:
        score += cfg.horizontal_loose_weight * (1.0 - h_diff / cfg.horizontal_loose_px)
        weights += cfg.horizontal_loose_weight

    # Vertical travel weighs more when either swing looks like a serve
    v_diff = abs(pattern.vertical_change - candidate.vertical_change)
    serve_like = (
        abs(pattern.vertical_change) > cfg.serve_like_vertical_px
        or abs(candidate.vertical_change) > cfg.serve_like_vertical_px
    )
    if serve_like:
        if v_diff < cfg.serve_vertical_close_px:
            score += cfg.serve_vertical_weight * (1.0 - v_diff / cfg.serve_vertical_close_px)
            weights += cfg.serve_vertical_weight
    elif v_diff < cfg.ground_vertical_close_px:
        score += cfg.ground_vertical_weight * (1.0 - v_diff / cfg.ground_vertical_close_px)
        weights += cfg.ground_vertical_weight

    score += cfg.speed_weight * _ratio(candidate.max_speed, pattern.max_speed)
    weights += cfg.speed_weight

    start_diff = abs(pattern.start_x - candidate.start_x)
    if start_diff < cfg.start_x_tolerance:
        score += cfg.start_x_weight * (1.0 - start_diff / cfg.start_x_tolerance)
        weights += cfg.start_x_weight

    duration_ratio = _ratio(candidate.duration, pattern.duration)
    if duration_ratio > cfg.min_duration_ratio:
        score += cfg.duration_weight * duration_ratio
        weights += cfg.duration_weight

    if candidate.amplitude > cfg.min_amplitude_px and pattern.amplitude > cfg.min_amplitude_px:
        score += cfg.amplitude_weight * _ratio(candidate.amplitude, pattern.amplitude)
        weights += cfg.amplitude_weight

    return score / weights if weights > 0 else 0.0


def select_label(scores: Dict[SwingType, float], confidence_floor: float) -> SwingType:
    """
    Highest scoring label, or UNKNOWN unless its score is strictly above
    the floor. Ties resolve in forehand, backhand, serve order.
    """
    best_type = SwingType.UNKNOWN
    best_score = 0.0
    for swing_type in SwingType.calibratable():
        s = scores.get(swing_type, 0.0)
        if s > best_score:
            best_type, best_score = swing_type, s

    if best_score <= confidence_floor:
        return SwingType.UNKNOWN
    return best_type


class CalibrationStore:
    """
    Bounded per-label exemplar banks.

    Banks are FIFO: adding beyond the limit evicts the oldest entry of
    that label. A storage backend is optional; with one attached, every
    successful add() is persisted.
    """

    def __init__(
        self,
        storage: Optional[CalibrationStorage] = None,
        config: Optional[CalibrationMatchConfig] = None,
        history: Optional[HistoryConfig] = None
    ):
        self.config = config or get_thresholds().calibration
        self.history = history or get_thresholds().history
        self.storage = storage
        self._banks: Dict[SwingType, Deque[SwingPattern]] = self._empty_banks()

    def _empty_banks(self) -> Dict[SwingType, Deque[SwingPattern]]:
        return {
            t: deque(maxlen=self.config.max_patterns_per_label)
            for t in SwingType.calibratable()
        }

    # -------------------------------------------------------------------------
    # Bank access
    # -------------------------------------------------------------------------

    def has_calibration(self) -> bool:
        return any(self._banks.values())

    def patterns(self, label: SwingType) -> List[SwingPattern]:
        bank = self._banks.get(label)
        return list(bank) if bank is not None else []

    def counts(self) -> Dict[str, int]:
        return {t.value: len(bank) for t, bank in self._banks.items()}

    @property
    def summary(self) -> str:
        c = self._banks
        return (
            f"FH: {len(c[SwingType.FOREHAND])}, "
            f"BH: {len(c[SwingType.BACKHAND])}, "
            f"S: {len(c[SwingType.SERVE])}"
        )

    def add(self, metrics: SwingMetrics, label: SwingType) -> Optional[SwingPattern]:
        """
        Store a labeled swing.

        Args:
            metrics: Completed swing metrics
            label: Forced label; UNKNOWN is ignored

        Returns:
            The stored pattern, or None when nothing was stored
        """
        if label not in self._banks:
            logger.debug(f"Ignoring calibration swing with label '{label.value}'")
            return None

        pattern = SwingPattern.from_metrics(metrics, self.history)
        if pattern is None:
            logger.debug("Ignoring calibration swing with fewer than 2 path points")
            return None

        self._banks[label].append(pattern)
        logger.info(f"Calibration swing added: {label.value} ({self.summary})")

        if self.storage is not None:
            self.save()
        return pattern

    def clear(self):
        """Empty all banks and delete stored values"""
        self._banks = self._empty_banks()
        if self.storage is not None:
            for key in STORAGE_KEYS.values():
                self.storage.delete(key)
        logger.info("Calibration cleared")

    # -------------------------------------------------------------------------
    # Scoring
    # -------------------------------------------------------------------------

    def scores(self, metrics: SwingMetrics, start_x: Optional[float] = None) -> Dict[SwingType, float]:
        """Best match score per label (0 for an empty bank)"""
        candidate = SwingPattern.from_metrics(metrics, self.history)
        if candidate is None:
            return {t: 0.0 for t in self._banks}
        if start_x is not None:
            candidate = SwingPattern(
                horizontal_change=candidate.horizontal_change,
                vertical_change=candidate.vertical_change,
                max_speed=candidate.max_speed,
                start_x=start_x,
                start_y=candidate.start_y,
                duration=candidate.duration,
                amplitude=candidate.amplitude,
            )

        return {
            t: max((match_score(p, candidate, self.config) for p in bank), default=0.0)
            for t, bank in self._banks.items()
        }

    def classify(self, metrics: SwingMetrics, start_x: Optional[float] = None) -> SwingType:
        """
        Nearest-exemplar label for a swing.

        Returns UNKNOWN for fewer than 2 path points or when no label
        scores above the confidence floor.
        """
        if len(metrics.path) < 2:
            return SwingType.UNKNOWN

        scores = self.scores(metrics, start_x)
        label = select_label(scores, self.config.confidence_floor)
        logger.debug(
            "Calibrated scores - "
            + ", ".join(f"{t.value}: {s:.3f}" for t, s in scores.items())
            + f" -> {label.value}"
        )
        return label

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def serialize(self) -> Dict[str, str]:
        """Storage key -> versioned JSON document per label"""
        return {
            key: json.dumps({
                "version": CALIBRATION_SCHEMA_VERSION,
                "patterns": [p.to_dict() for p in self._banks[label]],
            })
            for label, key in STORAGE_KEYS.items()
        }

    def restore(self, data: Dict[str, Optional[str]]) -> Dict[str, int]:
        """
        Load banks from serialized values.

        A missing, unreadable or mismatched value leaves that label empty.

        Returns:
            Number of patterns loaded per label
        """
        self._banks = self._empty_banks()
        for label, key in STORAGE_KEYS.items():
            raw = data.get(key)
            if raw is None:
                continue
            patterns = self._decode(key, raw)
            self._banks[label].extend(patterns)
        return self.counts()

    def _decode(self, key: str, raw: str) -> List[SwingPattern]:
        try:
            doc = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Calibration value '{key}' is not valid JSON: {e}")
            return []

        # Bare lists predate the versioned format
        if isinstance(doc, list):
            entries = doc
        elif isinstance(doc, dict) and doc.get("version") == CALIBRATION_SCHEMA_VERSION:
            entries = doc.get("patterns")
        else:
            version = doc.get("version") if isinstance(doc, dict) else None
            logger.warning(f"Calibration value '{key}' has unsupported format (version={version})")
            return []

        if not isinstance(entries, list):
            logger.warning(f"Calibration value '{key}' has no pattern list")
            return []

        try:
            return [SwingPattern.from_dict(entry) for entry in entries]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Calibration value '{key}' has a malformed pattern: {e}")
            return []

    def save(self):
        """Write all banks to the attached storage"""
        if self.storage is None:
            return
        for key, value in self.serialize().items():
            self.storage.set(key, value)

    def load(self) -> Dict[str, int]:
        """Read all banks from the attached storage"""
        if self.storage is None:
            return self.counts()
        counts = self.restore({key: self.storage.get(key) for key in STORAGE_KEYS.values()})
        logger.info(f"Calibration loaded ({self.summary})")
        return counts


def summarize_scores(scores: Dict[SwingType, float]) -> Tuple[Tuple[str, float], ...]:
    """Scores sorted best first, for display"""
    return tuple(sorted(((t.value, round(s, 3)) for t, s in scores.items()), key=lambda x: -x[1]))
