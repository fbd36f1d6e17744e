"""Logging for vcvars-bridge.

All diagnostics go to stderr. Stdout is reserved for eval-able output from the
CLI, so nothing in this package ever logs there.

Usage:
    from vcvars_bridge.logging import configure_logging, get_logger

    configure_logging(level="DEBUG", format="json")
    logger = get_logger("controller")
    logger.info("Environment initialized", arch="x64")
"""

from __future__ import annotations

import functools
import json
import logging
import os
import sys
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import IO, Any, TypeVar

__all__ = [
    "HumanFormatter",
    "JSONFormatter",
    "StructuredLogger",
    "configure_logging",
    "ensure_logging",
    "get_logger",
    "log_function",
]

ROOT_LOGGER_NAME = "vcvars_bridge"

F = TypeVar("F", bound=Callable[..., Any])

# Attributes every LogRecord has; anything else was passed as an extra
_RESERVED_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """Format records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.ERROR:
            data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        for key, value in _extra_fields(record).items():
            data[key] = value

        return json.dumps(data, default=str)


class HumanFormatter(logging.Formatter):
    """Format records for a terminal: ``LEVEL    logger: message key=value``."""

    def format(self, record: logging.LogRecord) -> str:
        short_name = record.name.removeprefix(f"{ROOT_LOGGER_NAME}.")
        line = f"{record.levelname:<8} {short_name}: {record.getMessage()}"

        extras = _extra_fields(record)
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


# =============================================================================
# Structured Logger
# =============================================================================


class StructuredLogger:
    """Thin wrapper over :class:`logging.Logger` that turns kwargs into extras.

    Example:
        >>> logger = StructuredLogger("vcvars_bridge.bridge")
        >>> logger.info("Driver finished", returncode=0)
    """

    def __init__(self, name: str):
        self.name = name
        self._logger = logging.getLogger(name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(self, level: int, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._logger.log(level, msg, exc_info=exc_info, extra=fields or None, stacklevel=3)

    def debug(self, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, exc_info=exc_info, **fields)

    def info(self, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.INFO, msg, exc_info=exc_info, **fields)

    def warning(self, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.WARNING, msg, exc_info=exc_info, **fields)

    def error(self, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=exc_info, **fields)

    def exception(self, msg: str, **fields: Any) -> None:
        self._log(logging.ERROR, msg, exc_info=True, **fields)

    def log(self, level: int, msg: str, exc_info: Any = None, **fields: Any) -> None:
        self._log(level, msg, exc_info=exc_info, **fields)

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def child(self, suffix: str) -> StructuredLogger:
        """Create a logger nested under this one."""
        return StructuredLogger(f"{self.name}.{suffix}")


def get_logger(name: str) -> StructuredLogger:
    """Get a StructuredLogger in the ``vcvars_bridge`` namespace.

    Args:
        name: Component name, e.g. ``"bridge.external"``. Names already under
            the package namespace are used as-is.

    Returns:
        StructuredLogger for the component.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(f"{ROOT_LOGGER_NAME}."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return StructuredLogger(name)


# =============================================================================
# Configuration
# =============================================================================


def configure_logging(
    level: str | int | None = None,
    format: str = "human",
    stream: IO[str] | None = None,
) -> None:
    """Configure the package logger.

    Replaces any handler previously installed by this function, so it is safe
    to call more than once.

    Args:
        level: Log level name or number. Defaults to ``VCVARS_BRIDGE_LOG_LEVEL``
            or INFO.
        format: ``"human"`` or ``"json"``.
        stream: Output stream. Defaults to stderr.
    """
    if level is None:
        level = os.environ.get("VCVARS_BRIDGE_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_vcvars_bridge", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if format == "json" else HumanFormatter())
    handler._vcvars_bridge = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def ensure_logging(level: int | str | None = None, format: str = "human") -> bool:
    """Install the stderr handler unless the package logger already has one.

    Returns:
        True if a handler was installed.
    """
    if logging.getLogger(ROOT_LOGGER_NAME).handlers:
        return False
    configure_logging(level=level, format=format)
    return True


# =============================================================================
# Decorators
# =============================================================================


def log_function(logger: StructuredLogger | None = None, level: int = logging.DEBUG):
    """Log entry, exit and failure of the decorated function."""

    def decorator(func: F) -> F:
        log = logger or get_logger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log.log(level, f"-> {func.__qualname__}")
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.log(
                    logging.WARNING,
                    f"!! {func.__qualname__} failed: {type(e).__name__}: {e}",
                )
                raise
            elapsed_ms = (time.perf_counter() - start) * 1000
            log.log(level, f"<- {func.__qualname__}", duration_ms=round(elapsed_ms, 2))
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
