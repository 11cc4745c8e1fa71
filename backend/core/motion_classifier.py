"""
Motion Classifier Module
Labels a completed swing from the shape of its wrist path.

Classifies swings into:
- serve: starts high, travels mostly downward along a curved path
- forehand: strong right-to-left travel at mid height
- backhand: strong left-to-right travel at mid height
- unknown: cannot confidently classify

Rules assume a right-handed player facing the camera and image
coordinates with y growing downward.
"""

import logging
from typing import Dict, Optional
from dataclasses import dataclass, field

from config import get_thresholds
from config.thresholds import HeuristicClassifierConfig, HistoryConfig
from .feature_computer import mean_height, path_curvature
from .pose_types import SwingMetrics, SwingType

logger = logging.getLogger(__name__)


@dataclass
class ClassificationResult:
    """Result of swing type classification"""
    swing_type: SwingType
    reason: str = ""  # Human-readable reason for classification
    debug_features: Dict = field(default_factory=dict)


@dataclass
class PathFeatures:
    """Shape features of a wrist path"""
    horizontal_change: float = 0.0  # pixels, positive = rightward
    vertical_change: float = 0.0    # pixels, positive = downward
    first_half_horizontal: float = 0.0
    second_half_horizontal: float = 0.0
    start_x: float = 0.0
    start_y: float = 0.0
    mean_y: float = 0.0
    curvature: float = 0.0
    point_count: int = 0


def extract_path_features(metrics: SwingMetrics, history: Optional[HistoryConfig] = None) -> PathFeatures:
    """
    Extract shape features from the first, middle and last path points.

    Args:
        metrics: Completed swing metrics
        history: Reference frame size

    Returns:
        PathFeatures (all zero when the path has fewer than 2 points)
    """
    features = PathFeatures(point_count=len(metrics.path))
    if len(metrics.path) < 2:
        return features

    cfg = history or get_thresholds().history
    path = metrics.path
    first = path[0]
    mid = path[len(path) // 2]
    last = path[-1]

    features.horizontal_change = (last[0] - first[0]) * cfg.reference_width
    features.vertical_change = (last[1] - first[1]) * cfg.reference_height
    features.first_half_horizontal = (mid[0] - first[0]) * cfg.reference_width
    features.second_half_horizontal = (last[0] - mid[0]) * cfg.reference_width
    features.start_x = first[0]
    features.start_y = first[1]
    features.mean_y = mean_height(path)
    features.curvature = path_curvature(path)
    return features


def _is_serve(f: PathFeatures, cfg: HeuristicClassifierConfig) -> bool:
    return (
        f.start_y < cfg.serve_max_start_y
        and f.vertical_change > cfg.serve_min_vertical_change
        and abs(f.vertical_change) > abs(f.horizontal_change) * cfg.serve_vertical_dominance
        and f.curvature > cfg.serve_min_curvature
    )


def _halves_agree(f: PathFeatures) -> bool:
    """Both halves of the path travel in the direction of the net change"""
    if f.horizontal_change < 0:
        return f.first_half_horizontal < 0 and f.second_half_horizontal < 0
    return f.first_half_horizontal > 0 and f.second_half_horizontal > 0


def _direction_label(horizontal_change: float) -> SwingType:
    return SwingType.FOREHAND if horizontal_change < 0 else SwingType.BACKHAND


def explain_swing(
    metrics: SwingMetrics,
    config: Optional[HeuristicClassifierConfig] = None,
    history: Optional[HistoryConfig] = None
) -> ClassificationResult:
    """
    Classify a swing using rules-based path analysis.

    Args:
        metrics: Completed swing metrics
        config: Heuristic thresholds

    Returns:
        ClassificationResult with swing type, reason and debug features
    """
    cfg = config or get_thresholds().heuristic
    f = extract_path_features(metrics, history)

    if f.point_count < 2:
        return ClassificationResult(
            swing_type=SwingType.UNKNOWN,
            reason=f"Insufficient path points ({f.point_count}/2)",
            debug_features={"point_count": f.point_count}
        )

    debug_features = {
        "horizontal_change": round(f.horizontal_change, 1),
        "vertical_change": round(f.vertical_change, 1),
        "start": (round(f.start_x, 3), round(f.start_y, 3)),
        "mean_y": round(f.mean_y, 3),
        "curvature": round(f.curvature, 3),
        "point_count": f.point_count,
    }

    # Serves are the most distinctive pattern
    if _is_serve(f, cfg):
        return ClassificationResult(
            swing_type=SwingType.SERVE,
            reason=f"High start, downward travel ({f.vertical_change:.0f}px), curved path",
            debug_features=debug_features
        )

    # Ground strokes happen in the middle band of the frame
    if not (cfg.ground_stroke_min_y < f.mean_y < cfg.ground_stroke_max_y):
        return ClassificationResult(
            swing_type=SwingType.UNKNOWN,
            reason=f"Swing height outside ground stroke band (mean y={f.mean_y:.2f})",
            debug_features=debug_features
        )

    h = f.horizontal_change
    if abs(h) > cfg.ground_stroke_min_horizontal and abs(h) > abs(f.vertical_change):
        if _halves_agree(f):
            return ClassificationResult(
                swing_type=_direction_label(h),
                reason=f"Consistent horizontal travel ({h:.0f}px)",
                debug_features=debug_features
            )
        if f.start_x > cfg.midline_x and h < 0:
            return ClassificationResult(
                swing_type=SwingType.FOREHAND,
                reason="Starts right of midline, travels left",
                debug_features=debug_features
            )
        if f.start_x < cfg.midline_x and h > 0:
            return ClassificationResult(
                swing_type=SwingType.BACKHAND,
                reason="Starts left of midline, travels right",
                debug_features=debug_features
            )

    if abs(h) > cfg.fallback_min_horizontal:
        return ClassificationResult(
            swing_type=_direction_label(h),
            reason=f"Horizontal travel only ({h:.0f}px)",
            debug_features=debug_features
        )

    return ClassificationResult(
        swing_type=SwingType.UNKNOWN,
        reason="No distinctive pattern",
        debug_features=debug_features
    )


def classify_swing_heuristic(
    metrics: SwingMetrics,
    config: Optional[HeuristicClassifierConfig] = None,
    history: Optional[HistoryConfig] = None
) -> SwingType:
    """Calibration-free swing label"""
    result = explain_swing(metrics, config, history)
    logger.debug(f"Heuristic swing label '{result.swing_type.value}': {result.reason}")
    return result.swing_type


def classify_swing(metrics: SwingMetrics, store=None, thresholds=None) -> SwingType:
    """
    Label a swing, preferring the calibration bank when it holds exemplars.

    Args:
        metrics: Completed swing metrics
        store: Optional CalibrationStore
        thresholds: Optional ThresholdConfig for the heuristic rules

    Returns:
        SwingType
    """
    if len(metrics.path) < 2:
        return SwingType.UNKNOWN
    if store is not None and store.has_calibration():
        return store.classify(metrics, metrics.path[0][0])
    cfg = thresholds or get_thresholds()
    return classify_swing_heuristic(metrics, cfg.heuristic, cfg.history)
