"""
Logging configuration for lxc-cuda.

Console lines carry the same status markers the provisioning shell
tooling printed (⚠️ for warnings, ❌ for errors). The optional log file
can be JSON, one object per line, with the provisioning context
(container id, operation) attached to every record.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Union

_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "lxc_cuda_log_context", default={}
)


class ContextFilter(logging.Filter):
    """Attach the active LogContext values to each record as ``context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = dict(_context.get())
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Marker-prefixed console lines, coloured when writing to a terminal."""

    MARKERS = {
        logging.WARNING: "⚠️  ",
        logging.ERROR: "❌ ",
        logging.CRITICAL: "❌ ",
    }
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__("%(message)s")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        line = self.MARKERS.get(record.levelno, "") + super().format(record)
        if record.levelno == logging.DEBUG:
            line = f"[{record.name}] {line}"
        color = self.COLORS.get(record.levelno) if self.use_color else None
        return f"{color}{line}{self.RESET}" if color else line


def _coerce_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    json_logs: bool = False,
):
    """
    Configure the root logger for a CLI run.

    Args:
        level: Console level, as a number or a name such as "DEBUG"
        log_file: Also write DEBUG and above to this rotating file
        json_logs: Write the log file as JSON lines
    """
    level = _coerce_level(level)
    root_logger = logging.getLogger()
    root_logger.setLevel(min(level, logging.DEBUG) if log_file else level)
    root_logger.handlers.clear()

    context_filter = ContextFilter()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(ConsoleFormatter(use_color=sys.stderr.isatty()))
    console.addFilter(context_filter)
    root_logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            JSONFormatter() if json_logs else logging.Formatter(
                "%(asctime)s %(levelname)s %(name)s: %(message)s %(context)s"
            )
        )
        file_handler.addFilter(context_filter)
        root_logger.addHandler(file_handler)


class LogContext:
    """
    Attach key/value context to every record logged inside the block.

    Nested contexts merge, inner values winning.

    Example:
        with LogContext(ctid="105", operation="provision"):
            logger.info("Configuring GPU passthrough")
    """

    def __init__(self, **values: Any):
        self.values = values
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set({**_context.get(), **self.values})
        return self

    def __exit__(self, *exc_info) -> None:
        _context.reset(self._token)
