"""
Logging setup for schemaforge.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. Applications (and the CLI) call
``setup_logging`` once to get:

- Console output for humans, on stderr so generated documents can be piped
- Optionally, a JSONL file where each line is one complete JSON object
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

ROOT_LOGGER = "schemaforge"


def _use_color(stream: Any) -> bool:
    return not os.environ.get("NO_COLOR") and hasattr(stream, "isatty") and stream.isatty()


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    DIM = "\033[2m"

    DEBUG = "\033[36m"  # Cyan
    INFO = "\033[32m"  # Green
    WARNING = "\033[33m"  # Yellow
    ERROR = "\033[31m"  # Red
    CRITICAL = "\033[35m"  # Magenta

    COMPONENT = "\033[34m"  # Blue


def _component(record: logging.LogRecord) -> str:
    """Short component tag: ``schemaforge.generator.orchestrator`` -> ``orchestrator``."""
    return getattr(record, "component", None) or record.name.rsplit(".", 1)[-1]


class JSONLFormatter(logging.Formatter):
    """
    Formats log records as JSON Lines.

    Each entry carries timestamp, level, component, message, optional
    structured ``context`` (passed via ``extra``), source location for
    warnings and above, and exception details when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            source_info: dict[str, Any] = {}
            if record.pathname:
                source_info["file"] = record.pathname
            if record.lineno:
                source_info["line"] = record.lineno
            if record.funcName and record.funcName != "<module>":
                source_info["function"] = record.funcName
            if source_info:
                entry["source"] = source_info

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output (honours NO_COLOR)."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.DEBUG,
        logging.INFO: Colors.INFO,
        logging.WARNING: Colors.WARNING,
        logging.ERROR: Colors.ERROR,
        logging.CRITICAL: Colors.CRITICAL,
    }

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        component = _component(record)
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        if self.color:
            prefix = (
                f"{Colors.DIM}{timestamp}{Colors.RESET} "
                f"{Colors.COMPONENT}[{component}]{Colors.RESET}"
            )
        else:
            prefix = f"[{timestamp}] [{component}]"

        # Level shown for non-INFO messages only
        if record.levelno != logging.INFO:
            level_name = record.levelname
            if self.color:
                color = self.LEVEL_COLORS.get(record.levelno, "")
                level_name = f"{color}{level_name}{Colors.RESET}"
            prefix = f"{prefix} {level_name}:"

        message = f"{prefix} {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | str | None = None,
    stream: Any = None,
) -> logging.Logger:
    """
    Configure the ``schemaforge`` logger.

    Replaces any handlers installed by an earlier call, so it is safe to call
    more than once.

    Args:
        level: Minimum log level
        log_file: Optional JSONL log file; parent directories are created
        stream: Console stream (defaults to stderr)

    Returns:
        The configured root ``schemaforge`` logger
    """
    stream = stream or sys.stderr
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler(stream)
    console_handler.setFormatter(ConsoleFormatter(color=_use_color(stream)))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setFormatter(JSONLFormatter())
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)
        root_logger.debug(
            "File logging enabled",
            extra={"context": {"log_format": "jsonl", "log_file": str(path)}},
        )

    return root_logger


def get_logger(component: str) -> logging.Logger:
    """Logger for a named component under the ``schemaforge`` namespace."""
    return logging.getLogger(f"{ROOT_LOGGER}.{component.lower().replace(' ', '_')}")
