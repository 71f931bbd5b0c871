"""Structured logging for doawatch analysis runs.

One namespace logger ("doawatch") fans out to:
- a console handler with an optional channel/stage tag per line
- an optional JSON-lines file handler carrying the structured extras

The level comes from the caller, else DOAWATCH_DEBUG / DOAWATCH_LOG_LEVEL.

Usage:
    from doawatch.util.logging import get_logger, configure_logging, timed_stage

    configure_logging(level="INFO", json_file="analysis.log")
    logger = get_logger(__name__)
    with timed_stage(logger, "tonals", channel=0):
        ...
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import IO, Any, Dict, Iterator, Optional

from doawatch.util.time import utc_now_str


_configured = False
_root_logger_name = "doawatch"

# Extra fields copied into JSON records when present.
_EXTRA_FIELDS = ("channel", "stage", "n_frames", "duration_ms", "error_type", "reason")


class JSONFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message and any known extras."""

    def format(self, record: logging.LogRecord) -> str:
        output: Dict[str, Any] = {
            "ts": utc_now_str(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            if hasattr(record, key):
                output[key] = getattr(record, key)
        if record.exc_info:
            output["traceback"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(output, default=str)


class ConsoleFormatter(logging.Formatter):
    """`[time] LEVEL [module ch=N/stage] message`, colourised on a TTY."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True, stream: Optional[IO[str]] = None):
        super().__init__()
        target = stream or sys.stderr
        self.use_color = use_color and hasattr(target, "isatty") and target.isatty()

    @staticmethod
    def _tag(record: logging.LogRecord) -> str:
        name = record.name[len(_root_logger_name) + 1 :] if record.name.startswith(_root_logger_name + ".") else record.name
        parts = []
        channel = getattr(record, "channel", None)
        stage = getattr(record, "stage", None)
        if channel is not None:
            parts.append(f"ch={channel}")
        if stage:
            parts.append(str(stage))
        return f"{name} {'/'.join(parts)}" if parts else name

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now(timezone.utc).strftime("%H:%M:%S")
        level = record.levelname
        if self.use_color:
            level_str = f"{self.LEVEL_COLORS.get(level, '')}{level:8}{self.RESET}"
        else:
            level_str = f"{level:8}"
        base = f"[{ts}] {level_str} [{self._tag(record)}] {record.getMessage()}"
        if record.exc_info:
            base += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return base


def _resolve_level(level: Optional[str]) -> int:
    if level is None:
        if os.environ.get("DOAWATCH_DEBUG", "").strip().lower() in ("1", "true", "yes"):
            level = "DEBUG"
        else:
            level = os.environ.get("DOAWATCH_LOG_LEVEL", "WARNING")
    value = getattr(logging, str(level).upper(), None)
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    *,
    level: Optional[str] = None,
    json_file: Optional[str] = None,
    use_color: bool = True,
    stream: Optional[IO[str]] = None,
) -> None:
    """Install console (and optional JSON file) handlers on the doawatch logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to WARNING, DEBUG when
               DOAWATCH_DEBUG=1, or DOAWATCH_LOG_LEVEL when set.
        json_file: Optional path receiving JSON-formatted records (appended).
        use_color: Colourise console output when the stream is a TTY.
        stream: Console stream, stderr by default.

    Calling it again closes and replaces the handlers of the previous call.
    """
    global _configured

    numeric_level = _resolve_level(level)
    logger = logging.getLogger(_root_logger_name)
    logger.setLevel(numeric_level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(ConsoleFormatter(use_color=use_color, stream=stream))
    logger.addHandler(console)

    if json_file:
        try:
            file_handler = logging.FileHandler(json_file, mode="a", encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to open JSON log file %s: %s", json_file, exc)
        else:
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(JSONFormatter())
            logger.addHandler(file_handler)

    logger.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for `name` under the doawatch namespace, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    if name == "__main__":
        name = f"{_root_logger_name}.main"
    elif name != _root_logger_name and not name.startswith(_root_logger_name + "."):
        name = f"{_root_logger_name}.{name}"
    return logging.getLogger(name)


@contextmanager
def timed_stage(logger: logging.Logger, stage: str, **extra: Any) -> Iterator[Dict[str, Any]]:
    """Time a block and log its duration at DEBUG.

    Yields a dict the block may fill with more extras; duration_ms is added
    to it on exit so callers can reuse the measurement.
    """
    fields: Dict[str, Any] = dict(extra)
    t0 = time.perf_counter()
    try:
        yield fields
    finally:
        fields["duration_ms"] = round((time.perf_counter() - t0) * 1000.0, 1)
        logger.debug("%s finished in %.1f ms", stage, fields["duration_ms"], extra={"stage": stage, **fields})


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    error_type: Optional[str] = None,
    **extra: Any,
) -> None:
    """Log the active exception with structured context; call from an except block."""
    extra_dict = dict(extra)
    if error_type:
        extra_dict["error_type"] = error_type
    logger.exception(message, extra=extra_dict)
