"""
Unit Tests for Structured Logging
"""

import json
import logging


def make_record(msg="hello", level=logging.INFO, **extra):
    record = logging.LogRecord("swingsense.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestFormatters:

    def test_json_formatter_includes_context(self):
        from logging_config import JSONFormatter

        record = make_record(correlation_id="abc", session_id="s1", swing_type="serve")
        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["correlation_id"] == "abc"
        assert data["session_id"] == "s1"
        assert data["swing_type"] == "serve"
        assert "location" not in data

    def test_json_formatter_adds_location_for_warnings(self):
        from logging_config import JSONFormatter

        record = make_record(level=logging.WARNING, correlation_id="abc")
        data = json.loads(JSONFormatter().format(record))
        assert data["location"]["line"] == 10

    def test_pretty_formatter_tags(self):
        from logging_config import PrettyFormatter

        line = PrettyFormatter().format(make_record(correlation_id="abc", session_id="s1"))
        assert "[abc/s1]" in line
        assert "swingsense.test: hello" in line

    def test_context_filter_stamps_ids(self):
        from logging_config import ContextFilter, set_correlation_id, set_session_id

        set_correlation_id("req-1")
        set_session_id("sess-1")
        record = make_record()
        assert ContextFilter().filter(record)
        assert record.correlation_id == "req-1"
        assert record.session_id == "sess-1"


class TestStructuredLogger:

    def test_context_merged_into_records(self, caplog):
        from logging_config import StructuredLogger

        log = StructuredLogger("swingsense.test", {"client": "1.2.3.4"}).with_context(label="serve")
        with caplog.at_level(logging.INFO, logger="swingsense.test"):
            log.info("Calibrating", frames=12)

        record = caplog.records[-1]
        assert record.client == "1.2.3.4"
        assert record.label == "serve"
        assert record.frames == 12

    def test_log_timer_reports_duration(self, caplog):
        from logging_config import LogTimer

        logger = logging.getLogger("swingsense.test")
        with caplog.at_level(logging.INFO, logger="swingsense.test"):
            with LogTimer(logger, "Calibration load"):
                pass

        record = caplog.records[-1]
        assert record.getMessage().startswith("Calibration load completed in")
        assert record.duration_ms >= 0
