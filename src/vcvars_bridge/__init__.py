"""vcvars-bridge: the MSVC build environment inside MSYS2 shells.

Runs ``vcvarsall.bat`` in the native command interpreter, imports the
variables it sets into the current environment, and reverts them exactly once
from a checksum-verified baseline.

Example:
    >>> from vcvars_bridge import vcvarsall
    >>> vcvarsall("x64")
    0
    >>> vcvarsall("-clean_env")
    0
"""

from __future__ import annotations

from vcvars_bridge.controller import (
    ImportController,
    ImportResult,
    ImportStatus,
    RevertResult,
    RevertStatus,
    vcvarsall,
)
from vcvars_bridge.env import (
    Baseline,
    Diff,
    EnvironmentStore,
    MemoryEnvironmentStore,
    ProcessEnvironmentStore,
    Snapshot,
    capture_environment,
    delta,
)
from vcvars_bridge.errors import (
    AmbiguousLocationError,
    ContextError,
    IntegrityError,
    InvocationError,
    NotFoundError,
    PathConversionError,
    ValidationError,
    VcvarsBridgeError,
)
from vcvars_bridge.logging import configure_logging, ensure_logging, get_logger
from vcvars_bridge.settings import BridgeSettings

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "vcvarsall",
    "ImportController",
    "ImportResult",
    "ImportStatus",
    "RevertResult",
    "RevertStatus",
    # Environment
    "Baseline",
    "Diff",
    "EnvironmentStore",
    "MemoryEnvironmentStore",
    "ProcessEnvironmentStore",
    "Snapshot",
    "capture_environment",
    "delta",
    # Errors
    "AmbiguousLocationError",
    "ContextError",
    "IntegrityError",
    "InvocationError",
    "NotFoundError",
    "PathConversionError",
    "ValidationError",
    "VcvarsBridgeError",
    # Configuration
    "BridgeSettings",
    "configure_logging",
    "ensure_logging",
    "get_logger",
]
