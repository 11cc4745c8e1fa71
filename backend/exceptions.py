"""
Custom Exceptions for SwingSense
Provides structured error handling with error codes and HTTP status mapping.

The detection core never raises for degraded input; these are raised at
the API boundary and by storage backends.
"""

from typing import Optional, Dict, Any


class SwingSenseException(Exception):
    """Base exception for all SwingSense errors"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to API response format"""
        result = {
            "error": self.code,
            "detail": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Validation Errors (400, 422)
# =============================================================================

class InvalidSwingLabel(SwingSenseException):
    """Raised when a calibration label is not one of the calibratable types"""
    def __init__(self, label: str, allowed_labels: list):
        super().__init__(
            f"Invalid swing label: {label}. Allowed: {', '.join(allowed_labels)}",
            "INVALID_SWING_LABEL",
            400,
            {"label": label, "allowed_labels": allowed_labels}
        )


class InsufficientSwingData(SwingSenseException):
    """Raised when a swing has too few path points to be stored"""
    def __init__(self, message: str = "Swing path needs at least 2 points"):
        super().__init__(message, "INSUFFICIENT_SWING_DATA", 422)


# =============================================================================
# Resource Errors (404)
# =============================================================================

class SessionNotFound(SwingSenseException):
    """Raised when a live session doesn't exist"""
    def __init__(self, session_id: str):
        super().__init__(
            f"Session not found: {session_id}",
            "SESSION_NOT_FOUND",
            404,
            {"session_id": session_id}
        )


# =============================================================================
# Storage Errors (500)
# =============================================================================

class CalibrationStorageError(SwingSenseException):
    """Raised when calibration data cannot be written or deleted"""
    def __init__(self, message: str, key: Optional[str] = None):
        details = {"key": key} if key else {}
        super().__init__(message, "CALIBRATION_STORAGE_ERROR", 500, details)
