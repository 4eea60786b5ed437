"""
Service Template — Log Formatters and File Handler
====================================================

What:  The pieces setup_logging() installs on the root logger.
How:   Plain standard-library logging: two Formatter subclasses and a
       RotatingFileHandler subclass.

Severities (highest priority first):
    error (40) → warn (30) → info (20) → http (15) → debug (10)

    HTTP is a custom level between INFO and DEBUG used for access lines.

Formats:
    Console:  14:03:12 [warn]: Slow request detected | method=GET path=/slow
    File:     {"timestamp": "...", "level": "warn", "message": "...", ...}
"""

import gzip
import json
import logging
import os
import shutil
from datetime import date, datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

HTTP = 15
logging.addLevelName(HTTP, "HTTP")

LEVEL_NAMES = {
    logging.CRITICAL: "error",
    logging.ERROR: "error",
    logging.WARNING: "warn",
    logging.INFO: "info",
    HTTP: "http",
    logging.DEBUG: "debug",
}

# Attributes every LogRecord has; anything else on a record came from `extra=`
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


def level_name(levelno: int) -> str:
    """Lower-case severity name for a numeric level."""
    for threshold in sorted(LEVEL_NAMES, reverse=True):
        if levelno >= threshold:
            return LEVEL_NAMES[threshold]
    return "debug"


def record_metadata(record: logging.LogRecord) -> Dict[str, Any]:
    """Structured fields passed through `extra=` on the logging call."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable single-line output for interactive consoles.

    Metadata is appended as `key=value` pairs; mappings and lists are
    rendered as compact JSON. A traceback, when attached, follows on the
    next lines.
    """

    def __init__(self):
        super().__init__(datefmt="%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = "%s [%s]: %s" % (
            self.formatTime(record, self.datefmt),
            level_name(record.levelno),
            record.getMessage(),
        )

        meta = record_metadata(record)
        if meta:
            line += " | " + " ".join(
                f"{key}={_console_value(value)}" for key, value in meta.items()
            )

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        elif record.stack_info:
            line += "\n" + self.formatStack(record.stack_info)
        return line


def _console_value(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str, separators=(",", ":"))
    return str(value)


class JSONFormatter(logging.Formatter):
    """Newline-delimited JSON for file sinks: one object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = record_metadata(record)
        entry.update({
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": level_name(record.levelno),
            "message": record.getMessage(),
        })
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class SizeAndDayRotatingFileHandler(RotatingFileHandler):
    """
    RotatingFileHandler that also rolls over at calendar-day boundaries.

    Rollover triggers:
        - the next record would push the file past max_bytes
        - the record's local date differs from the day the file was opened
          (only when daily=True)

    Rolled files are numbered .1 (newest) to .backup_count (oldest); older
    ones are dropped. With compress=True each rolled file is gzipped and
    named .N.gz.
    """

    def __init__(
        self,
        filename: str,
        max_bytes: int,
        backup_count: int,
        daily: bool = True,
        compress: bool = False,
        encoding: str = "utf-8",
    ):
        super().__init__(
            filename,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding=encoding,
        )
        self.daily = daily
        self.compress = compress
        self.opened_on = self._file_date()
        if compress:
            self.namer = _gzip_namer
            self.rotator = _gzip_rotator

    def _file_date(self) -> date:
        try:
            return date.fromtimestamp(os.path.getmtime(self.baseFilename))
        except OSError:
            return date.today()

    def shouldRollover(self, record: logging.LogRecord) -> bool:
        record_day = date.fromtimestamp(record.created)
        if self.daily and record_day != self.opened_on:
            self.opened_on = record_day
            # An empty file has nothing worth rolling
            if os.path.exists(self.baseFilename) and os.path.getsize(self.baseFilename) > 0:
                return True
        return bool(super().shouldRollover(record))


def _gzip_namer(name: str) -> str:
    return name + ".gz"


def _gzip_rotator(source: str, dest: str) -> None:
    with open(source, "rb") as src, gzip.open(dest, "wb") as dst:
        shutil.copyfileobj(src, dst)
    os.remove(source)
