"""
SwingSense - Configurable Thresholds
All thresholds can be tuned without code changes by modifying this file.
"""

from dataclasses import dataclass, field


@dataclass
class HistoryConfig:
    """Frame history window sizing"""
    # Frames kept in the rolling history (2 seconds at 30fps)
    max_frames: int = 60
    # Wrist path points kept
    max_path_points: int = 60
    # Frames used for per-frame metric computation
    metric_window_frames: int = 10
    # Frames required before the state machine starts analysing
    min_frames_for_analysis: int = 5
    # Minimum joint confidence to trust a landmark
    min_confidence: float = 0.6
    # Reference pixel frame for normalized -> pixel conversion
    reference_width: float = 1920.0
    reference_height: float = 1080.0


@dataclass
class SwingFSMConfig:
    """Swing phase state machine thresholds (pixels/second)"""
    # Wrist speed to leave idle
    min_swing_speed: float = 500.0
    # Wrist speed to enter the forward swing
    min_forward_speed: float = 800.0
    # Below this the follow-through has settled
    max_idle_speed: float = 200.0
    # Forward -> follow-through when speed drops below this fraction of peak
    follow_through_speed_ratio: float = 0.5
    # Backswing abandoned after this long (seconds)
    backswing_timeout_sec: float = 3.0


@dataclass
class SwingFilterConfig:
    """Plausibility filter applied to completed swings"""
    min_swing_duration_sec: float = 0.3
    max_swing_duration_sec: float = 2.0
    # Peak speed a real swing must reach (pixels/second)
    min_peak_speed: float = 800.0


@dataclass
class HeuristicClassifierConfig:
    """Calibration-free swing type rules"""
    # Serve must start above this height (normalized, y grows downward)
    serve_max_start_y: float = 1.0 / 3.0
    # Minimum downward travel for a serve (pixels)
    serve_min_vertical_change: float = 150.0
    # Vertical travel must exceed horizontal travel by this factor
    serve_vertical_dominance: float = 1.5
    # Path length / direct distance for a curved serve path
    serve_min_curvature: float = 1.3
    # Ground strokes happen in this height band (mean path y)
    ground_stroke_min_y: float = 0.3
    ground_stroke_max_y: float = 0.7
    # Strong horizontal travel for a directional ground stroke (pixels)
    ground_stroke_min_horizontal: float = 200.0
    # Magnitude-only fallback (pixels)
    fallback_min_horizontal: float = 150.0
    # Frame midline for start-position disambiguation
    midline_x: float = 0.5


@dataclass
class CalibrationMatchConfig:
    """Exemplar bank and similarity scoring"""
    # Patterns kept per label (FIFO)
    max_patterns_per_label: int = 10
    # Best score must be strictly above this to return a label
    confidence_floor: float = 0.4

    # Direction agreement
    direction_weight: float = 2.0
    direction_pattern_threshold: float = 100.0
    direction_swing_threshold: float = 50.0

    # Horizontal similarity
    horizontal_weight: float = 1.0
    horizontal_close_px: float = 100.0
    horizontal_loose_weight: float = 0.5
    horizontal_loose_px: float = 300.0

    # Vertical similarity
    serve_like_vertical_px: float = 150.0
    serve_vertical_weight: float = 1.5
    serve_vertical_close_px: float = 100.0
    ground_vertical_weight: float = 0.3
    ground_vertical_close_px: float = 150.0

    # Speed, start position, duration, amplitude
    speed_weight: float = 0.8
    start_x_weight: float = 0.5
    start_x_tolerance: float = 0.15
    duration_weight: float = 0.4
    min_duration_ratio: float = 0.7
    amplitude_weight: float = 0.4
    min_amplitude_px: float = 50.0


@dataclass
class RecorderConfig:
    """Labeled swing recorder limits"""
    max_frames_per_recording: int = 60
    min_frames_per_recording: int = 10
    max_recordings_per_label: int = 50


@dataclass
class ThresholdConfig:
    """Master threshold configuration"""
    history: HistoryConfig = field(default_factory=HistoryConfig)
    fsm: SwingFSMConfig = field(default_factory=SwingFSMConfig)
    swing_filter: SwingFilterConfig = field(default_factory=SwingFilterConfig)
    heuristic: HeuristicClassifierConfig = field(default_factory=HeuristicClassifierConfig)
    calibration: CalibrationMatchConfig = field(default_factory=CalibrationMatchConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)


# Global config instance - modify this to tune thresholds
THRESHOLDS = ThresholdConfig()


def get_thresholds() -> ThresholdConfig:
    """Get the current threshold configuration"""
    return THRESHOLDS


# Commonly referenced thresholds (aliases)
MIN_CONFIDENCE = THRESHOLDS.history.min_confidence
CALIBRATION_CONFIDENCE_FLOOR = THRESHOLDS.calibration.confidence_floor
MAX_PATTERNS_PER_LABEL = THRESHOLDS.calibration.max_patterns_per_label
