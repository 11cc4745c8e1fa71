from .thresholds import (
    ThresholdConfig,
    get_thresholds,
    THRESHOLDS,
    MIN_CONFIDENCE,
    CALIBRATION_CONFIDENCE_FLOOR,
    MAX_PATTERNS_PER_LABEL,
)
from .settings import Settings, get_settings, settings

__all__ = [
    "ThresholdConfig",
    "get_thresholds",
    "THRESHOLDS",
    "MIN_CONFIDENCE",
    "CALIBRATION_CONFIDENCE_FLOOR",
    "MAX_PATTERNS_PER_LABEL",
    "Settings", "get_settings", "settings"
]
