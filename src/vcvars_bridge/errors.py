"""Error hierarchy for vcvars-bridge.

Every failure the engine can report derives from :class:`VcvarsBridgeError`
and carries the process exit code the invocation contract maps it to.

Hierarchy:
    VcvarsBridgeError
    ├── ContextError             host context (MSYSTEM) absent
    ├── NotFoundError            initializer cannot be located
    ├── AmbiguousLocationError   several initializers found (warning only)
    ├── InvocationError          external interpreter failed or produced no output
    ├── PathConversionError      path cannot be translated between conventions
    ├── IntegrityError           baseline fingerprint mismatch on revert
    └── ValidationError          toolchain probe failed after import
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

__all__ = [
    "EX_OK",
    "EX_USAGE",
    "AmbiguousLocationError",
    "ContextError",
    "IntegrityError",
    "InvocationError",
    "NotFoundError",
    "PathConversionError",
    "ValidationError",
    "VcvarsBridgeError",
    "log_exception",
]

EX_OK = 0
# sysexits.h "command line usage error"
EX_USAGE = 64


def log_exception(
    logger: logging.Logger | Any,
    message: str,
    exc: BaseException,
    level: str = "warning",
    include_traceback: bool = True,
) -> None:
    """Log an exception with a consistent format.

    Args:
        logger: A stdlib logger or a StructuredLogger.
        message: Context message.
        exc: The exception.
        level: Log level name.
        include_traceback: Attach the traceback to the record.
    """
    log_method = getattr(logger, level, logger.warning)
    text = f"{message}: {type(exc).__name__}: {exc}"
    if include_traceback:
        log_method(text, exc_info=exc)
    else:
        log_method(text)


class VcvarsBridgeError(Exception):
    """Base exception for all vcvars-bridge errors.

    Attributes:
        message: Human-readable error message.
        details: Structured context for logging.
        hint: Suggested fix, if any.
        exit_code: Process exit code for this failure.
    """

    exit_code: int = EX_USAGE

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        hint: str | None = None,
    ):
        self.message = message
        self.details = details or {}
        self.hint = hint
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"  Hint: {self.hint}")
        return "\n".join(parts)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ContextError(VcvarsBridgeError):
    """The required host context marker is absent."""

    def __init__(self, marker: str = "MSYSTEM"):
        self.marker = marker
        super().__init__(
            f"{marker} undefined, aborting",
            details={"marker": marker},
            hint="Run from an MSYS2 shell (msys2_shell.cmd or a Start Menu MSYS2 terminal)",
        )


class NotFoundError(VcvarsBridgeError):
    """The toolchain initializer cannot be located."""

    def __init__(self, name: str, roots: Sequence[str | Path] = ()):
        self.name = name
        self.roots = [str(r) for r in roots]
        super().__init__(
            f"cannot find {name}, aborting",
            details={"name": name, "roots": self.roots},
            hint="Install Visual Studio Build Tools or set VCVARSALL_PATH to its location",
        )


class AmbiguousLocationError(VcvarsBridgeError):
    """More than one initializer candidate was found.

    Recoverable: the locator reports it as a warning and uses the first match.
    """

    def __init__(self, name: str, candidates: Sequence[str | Path]):
        self.name = name
        self.candidates = [str(c) for c in candidates]
        super().__init__(
            f"multiple {name} found, using first",
            details={"candidates": self.candidates},
            hint="Set VCVARSALL_PATH to choose a specific installation",
        )


class InvocationError(VcvarsBridgeError):
    """The external interpreter could not run the initializer."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        self.command = list(command) if command else []
        self.returncode = returncode
        self.stderr = stderr
        details: dict[str, Any] = {"command": self.command}
        if returncode is not None:
            details["returncode"] = returncode
        if stderr:
            details["stderr"] = stderr[-2000:]
        super().__init__(message, details=details)


class PathConversionError(VcvarsBridgeError):
    """A path could not be translated between local and native conventions."""

    def __init__(self, path: str, direction: str, reason: str = ""):
        self.path = path
        self.direction = direction
        message = f"cannot convert path {path!r} to {direction} form"
        if reason:
            message += f": {reason}"
        super().__init__(message, details={"path": path, "direction": direction})


class IntegrityError(VcvarsBridgeError):
    """The persisted baseline does not match its recorded fingerprint."""

    def __init__(self, path: str | Path, expected: str, actual: str | None):
        self.path = str(path)
        self.expected = expected
        self.actual = actual
        reason = "missing" if actual is None else "checksum mismatch"
        super().__init__(
            f"'-clean_env' baseline {reason}: {self.path}",
            details={"path": self.path, "expected": expected, "actual": actual},
            hint="The saved environment was modified or removed; start a fresh MSYS2 shell",
        )


class ValidationError(VcvarsBridgeError):
    """The toolchain is not usable after the import."""

    def __init__(self, message: str, *, tool: str | None = None, output: str | None = None):
        self.tool = tool
        self.output = output
        details: dict[str, Any] = {}
        if tool:
            details["tool"] = tool
        if output:
            details["output"] = output[:500]
        super().__init__(message, details=details)
