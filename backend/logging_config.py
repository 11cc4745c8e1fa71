"""
Structured Logging Configuration for SwingSense
JSON logs for production, colored lines for development. Every record
carries the request correlation ID and, inside a live session, the
session ID.
"""

import logging
import json
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from contextvars import ContextVar

# Per-request / per-connection context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")


def get_correlation_id() -> str:
    """Get current correlation ID or generate new one"""
    cid = correlation_id_var.get()
    if not cid:
        cid = str(uuid.uuid4())[:8]
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def set_session_id(session_id: str) -> None:
    """Tag subsequent records in this context with a live session ID"""
    session_id_var.set(session_id)


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log aggregators"""

    RESERVED_ATTRS = {
        'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
        'funcName', 'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'message', 'msg', 'name', 'pathname', 'process', 'processName',
        'relativeCreated', 'stack_info', 'thread', 'threadName',
        'taskName', 'correlation_id', 'session_id'
    }

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "") or get_correlation_id(),
        }

        session_id = getattr(record, "session_id", "")
        if session_id:
            log_data["session_id"] = session_id

        if record.levelno >= logging.WARNING:
            log_data["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName
            }

        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith('_'):
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)


class PrettyFormatter(logging.Formatter):
    """Human-readable colored output for development"""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = f"{color}{record.levelname:8}{self.RESET}"

        tags = getattr(record, "correlation_id", "")
        session_id = getattr(record, "session_id", "")
        if session_id:
            tags = f"{tags}/{session_id}" if tags else session_id
        tag_str = f"[{tags}] " if tags else ""

        message = f"{timestamp} {level} {tag_str}{record.name}: {record.getMessage()}"

        extras = [
            f"{key}={value}" for key, value in record.__dict__.items()
            if key not in JSONFormatter.RESERVED_ATTRS and not key.startswith('_')
        ]
        if extras:
            message += f" | {', '.join(extras)}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class ContextFilter(logging.Filter):
    """Stamps correlation and session IDs onto every record"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get()
        record.session_id = session_id_var.get()
        return True


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON format (for production)
        log_file: Optional file path; file output is always JSON
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.handlers.clear()

    context_filter = ContextFilter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.addFilter(context_filter)
    console_handler.setFormatter(JSONFormatter() if json_format else PrettyFormatter())
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Per-frame access logs from the server are noise
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={"level": level, "json_format": json_format, "log_file": log_file}
    )


class StructuredLogger:
    """
    Logger wrapper that merges a fixed context into every record.

        log = StructuredLogger(__name__, {"session_id": sid})
        log.info("Swing detected", swing_type="forehand")
    """

    def __init__(self, name: str, default_context: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.default_context = default_context or {}

    def _log(self, level: int, message: str, exc_info: bool = False, **extra):
        self.logger.log(level, message, exc_info=exc_info, extra={**self.default_context, **extra})

    def debug(self, message: str, **extra):
        self._log(logging.DEBUG, message, **extra)

    def info(self, message: str, **extra):
        self._log(logging.INFO, message, **extra)

    def warning(self, message: str, **extra):
        self._log(logging.WARNING, message, **extra)

    def error(self, message: str, exc_info: bool = False, **extra):
        self._log(logging.ERROR, message, exc_info=exc_info, **extra)

    def with_context(self, **context) -> "StructuredLogger":
        return StructuredLogger(self.logger.name, {**self.default_context, **context})


class LogTimer:
    """Context manager that logs how long a block took"""

    def __init__(self, logger: logging.Logger, operation: str, slow_ms: float = 1000.0, **extra):
        self.logger = logger
        self.operation = operation
        self.slow_ms = slow_ms
        self.extra = extra
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type:
            self.logger.error(
                f"{self.operation} failed after {duration_ms:.2f}ms",
                extra={**self.extra, "duration_ms": duration_ms, "error": str(exc_val)}
            )
        else:
            log_level = logging.WARNING if duration_ms > self.slow_ms else logging.INFO
            self.logger.log(
                log_level,
                f"{self.operation} completed in {duration_ms:.2f}ms",
                extra={**self.extra, "duration_ms": duration_ms}
            )

        return False
