"""Environment capture, diffing, persistence and restoration.

This package provides:
- Snapshot capture and canonical serialization
- Set-difference deltas between snapshots
- The EnvironmentStore seam (process and in-memory)
- The fingerprinted pre-import baseline
- Eval-able shell transition scripts
"""

from __future__ import annotations

from vcvars_bridge.env.baseline import Baseline, file_checksum
from vcvars_bridge.env.diff import Diff, delta
from vcvars_bridge.env.script import ScriptResult, render_transition
from vcvars_bridge.env.snapshot import Snapshot, capture_environment
from vcvars_bridge.env.store import (
    EnvironmentStore,
    MemoryEnvironmentStore,
    ProcessEnvironmentStore,
)

__all__ = [
    # Data models
    "Snapshot",
    "Diff",
    "Baseline",
    "ScriptResult",
    # Capture and diff
    "capture_environment",
    "delta",
    # Stores
    "EnvironmentStore",
    "MemoryEnvironmentStore",
    "ProcessEnvironmentStore",
    # Persistence
    "file_checksum",
    # Scripts
    "render_transition",
]
