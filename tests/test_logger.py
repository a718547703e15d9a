"""Tests for the structured JSON logger."""

import io
import json
import logging
import sys

from portal.logger import REDACTED, JSONFormatter, StructuredLogger, get_logger


def make_record(msg="hello %s", args=("world",), exc_info=None, **extra):
    record = logging.LogRecord(
        name="portal.test", level=logging.INFO, pathname=__file__, lineno=1,
        msg=msg, args=args, exc_info=exc_info,
    )
    record.__dict__.update(extra)
    return record


class TestJSONFormatter:
    """Test the shape of a formatted line."""

    def test_base_fields(self):
        entry = json.loads(JSONFormatter().format(make_record()))
        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger_name"] == "portal.test"
        assert "extra" not in entry
        assert "event" not in entry

    def test_event_is_top_level(self):
        entry = json.loads(JSONFormatter().format(make_record(event="LOGIN", user_id="u1")))
        assert entry["event"] == "LOGIN"
        assert entry["extra"] == {"user_id": "u1"}

    def test_credentials_are_masked(self):
        """Token and password extras never reach the output."""
        line = JSONFormatter().format(
            make_record(token="opaque-token-123", new_password="hunter2", email="a@b.com")
        )
        entry = json.loads(line)
        assert entry["extra"]["token"] == REDACTED
        assert entry["extra"]["new_password"] == REDACTED
        assert entry["extra"]["email"] == "a@b.com"
        assert "opaque-token-123" not in line

    def test_scalars_keep_their_type(self):
        entry = json.loads(JSONFormatter().format(make_record(attempts=3, cached=False, data={"a": 1})))
        assert entry["extra"]["attempts"] == 3
        assert entry["extra"]["cached"] is False
        assert entry["extra"]["data"] == "{'a': 1}"

    def test_exception_is_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(exc_info=sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestStructuredLogger:
    """Test handler setup."""

    def test_writes_json_to_stream_and_file(self, tmp_path):
        stream = io.StringIO()
        log_file = tmp_path / "portal.log"
        log = StructuredLogger(name="portal.tests.stream", stream=stream, log_file=str(log_file))

        log.info("User logged out: %s", "a@b.com", extra={"event": "LOGOUT"})

        console_entry = json.loads(stream.getvalue().strip())
        assert console_entry["event"] == "LOGOUT"
        file_entry = json.loads(log_file.read_text(encoding="utf-8").strip())
        assert file_entry["message"] == "User logged out: a@b.com"

    def test_handlers_attached_once(self, tmp_path):
        first = StructuredLogger(name="portal.tests.once", log_file=str(tmp_path / "a.log"))
        count = len(first.logger.handlers)
        StructuredLogger(name="portal.tests.once", log_file=str(tmp_path / "a.log"))
        assert len(first.logger.handlers) == count

    def test_unwritable_log_file_falls_back_to_console(self, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x")
        log = StructuredLogger(
            name="portal.tests.fallback", stream=io.StringIO(),
            log_file=str(blocker / "portal.log"),
        )
        assert len(log.logger.handlers) == 1

    def test_get_logger_namespaces_channel(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert get_logger("session").logger.name == "portal.session"
        assert get_logger("portal.ui").logger.name == "portal.ui"
