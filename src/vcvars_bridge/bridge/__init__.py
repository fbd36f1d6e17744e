"""Everything that crosses into the native Windows side.

This package provides:
- Path translation between MSYS2 and native conventions
- The external bridge running the initializer under cmd.exe
- Initializer location with a cached path
- Toolchain resolution and validation
- The scoped work directory
"""

from __future__ import annotations

from vcvars_bridge.bridge.external import BridgeResult, ExternalBridge, parse_transcript
from vcvars_bridge.bridge.locator import LocatorResult, ToolchainLocator
from vcvars_bridge.bridge.paths import (
    LOCAL_PATHSEP,
    NATIVE_PATHSEP,
    CygpathPathBridge,
    MsysPathBridge,
    PathBridge,
    make_path_bridge,
)
from vcvars_bridge.bridge.probe import ProbeResult, ToolchainProbe
from vcvars_bridge.bridge.workdir import work_directory

__all__ = [
    # External bridge
    "BridgeResult",
    "ExternalBridge",
    "parse_transcript",
    # Location
    "LocatorResult",
    "ToolchainLocator",
    # Paths
    "LOCAL_PATHSEP",
    "NATIVE_PATHSEP",
    "CygpathPathBridge",
    "MsysPathBridge",
    "PathBridge",
    "make_path_bridge",
    # Validation
    "ProbeResult",
    "ToolchainProbe",
    # Resources
    "work_directory",
]
