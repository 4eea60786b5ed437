"""
Service Template — Formatter and Rotation Tests
=================================================

What:  Tests for the console/JSON formatters and the size-or-day rotating handler.
How:   Formatters get hand-built LogRecords; rotation runs against tmp_path.
"""

import gzip
import json
import logging
import re
import sys
import time

from service_template.log_handlers import (
    HTTP,
    ConsoleFormatter,
    JSONFormatter,
    SizeAndDayRotatingFileHandler,
    level_name,
)


def make_record(levelno=logging.INFO, msg="hello", exc_info=None, **extra):
    record = logging.LogRecord("service_template.tests", levelno, __file__, 10, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLevelNames:

    def test_names_follow_severity_order(self):
        assert level_name(logging.ERROR) == "error"
        assert level_name(logging.CRITICAL) == "error"
        assert level_name(logging.WARNING) == "warn"
        assert level_name(logging.INFO) == "info"
        assert level_name(HTTP) == "http"
        assert level_name(logging.DEBUG) == "debug"

    def test_http_sits_between_info_and_debug(self):
        assert logging.DEBUG < HTTP < logging.INFO
        assert logging.getLevelName(HTTP) == "HTTP"


class TestConsoleFormatter:

    def test_single_line_with_metadata(self):
        line = ConsoleFormatter().format(
            make_record(logging.WARNING, "Slow request detected", method="GET", path="/slow")
        )
        assert re.fullmatch(
            r"\d{2}:\d{2}:\d{2} \[warn\]: Slow request detected \| method=GET path=/slow",
            line,
        )

    def test_no_metadata_no_separator(self):
        line = ConsoleFormatter().format(make_record(msg="plain"))
        assert line.endswith("[info]: plain")
        assert "|" not in line

    def test_nested_metadata_rendered_as_json(self):
        line = ConsoleFormatter().format(make_record(request={"method": "GET"}))
        assert 'request={"method":"GET"}' in line

    def test_traceback_on_following_lines(self):
        try:
            raise ValueError("bad")
        except ValueError:
            exc_info = sys.exc_info()
        output = ConsoleFormatter().format(make_record(logging.ERROR, "failed", exc_info=exc_info))
        first, rest = output.split("\n", 1)
        assert first.endswith("[error]: failed")
        assert "ValueError: bad" in rest


class TestJSONFormatter:

    def test_fields_and_metadata(self):
        entry = json.loads(
            JSONFormatter().format(make_record(logging.INFO, "Outgoing response", status_code=200))
        )
        assert entry["level"] == "info"
        assert entry["message"] == "Outgoing response"
        assert entry["status_code"] == 200
        assert entry["timestamp"].endswith("+00:00")

    def test_metadata_cannot_replace_core_fields(self):
        record = make_record(
            logging.WARNING, "Server started", timestamp="yesterday", level="debug", message="other"
        )
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "warn"
        assert entry["message"] == "Server started"
        assert entry["timestamp"] != "yesterday"

    def test_single_line(self):
        output = JSONFormatter().format(make_record(msg="multi\nline"))
        assert "\n" not in output

    def test_stack_attached_from_exc_info(self):
        try:
            raise KeyError("k")
        except KeyError:
            exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(make_record(logging.ERROR, exc_info=exc_info)))
        assert "KeyError" in entry["stack"]

    def test_unserializable_values_stringified(self):
        entry = json.loads(JSONFormatter().format(make_record(obj=object())))
        assert entry["obj"].startswith("<object object")


class TestSizeAndDayRotatingFileHandler:

    def _handler(self, path, **kwargs):
        handler = SizeAndDayRotatingFileHandler(str(path), **kwargs)
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    def test_rolls_over_on_size_and_bounds_backups(self, tmp_path):
        path = tmp_path / "combined.log"
        handler = self._handler(path, max_bytes=50, backup_count=2, daily=False)
        try:
            for i in range(10):
                handler.emit(make_record(msg=f"line {i:02d} " + "x" * 30))
        finally:
            handler.close()

        rolled = sorted(p.name for p in tmp_path.iterdir())
        assert rolled == ["combined.log", "combined.log.1", "combined.log.2"]
        assert "line 09" in path.read_text()

    def test_compresses_rolled_files(self, tmp_path):
        path = tmp_path / "error.log"
        handler = self._handler(path, max_bytes=40, backup_count=3, compress=True)
        try:
            handler.emit(make_record(msg="first " + "a" * 30))
            handler.emit(make_record(msg="second " + "b" * 30))
        finally:
            handler.close()

        archive = tmp_path / "error.log.1.gz"
        assert archive.exists()
        with gzip.open(archive, "rt") as f:
            assert "first" in f.read()
        assert not (tmp_path / "error.log.1").exists()

    def test_rolls_over_at_day_boundary(self, tmp_path):
        path = tmp_path / "combined.log"
        handler = self._handler(path, max_bytes=10_000, backup_count=5, daily=True)
        try:
            handler.emit(make_record(msg="today"))
            tomorrow = make_record(msg="tomorrow")
            tomorrow.created = time.time() + 86_400
            handler.emit(tomorrow)
            # Same (new) day again: no further rollover
            later = make_record(msg="later")
            later.created = tomorrow.created + 1
            handler.emit(later)
        finally:
            handler.close()

        assert (tmp_path / "combined.log.1").read_text().strip() == "today"
        assert path.read_text().split() == ["tomorrow", "later"]
        assert not (tmp_path / "combined.log.2").exists()

    def test_daily_rotation_disabled(self, tmp_path):
        path = tmp_path / "combined.log"
        handler = self._handler(path, max_bytes=10_000, backup_count=5, daily=False)
        try:
            handler.emit(make_record(msg="today"))
            tomorrow = make_record(msg="tomorrow")
            tomorrow.created = time.time() + 86_400
            handler.emit(tomorrow)
        finally:
            handler.close()

        assert not (tmp_path / "combined.log.1").exists()
