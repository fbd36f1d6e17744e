"""Path translation between the MSYS2 (POSIX) and native Windows conventions.

Local paths look like ``/c/Program Files/...`` or ``/usr/bin``; foreign
(native) paths look like ``C:\\Program Files\\...``. Native search-path lists
are ``;``-separated and local ones ``:``-separated.

Two implementations are provided: :class:`MsysPathBridge` does the mapping in
Python given the native location of the MSYS2 root, and
:class:`CygpathPathBridge` delegates to MSYS2's ``cygpath`` utility.
"""

from __future__ import annotations

import ntpath
import posixpath
import re
import shutil
import subprocess
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from vcvars_bridge.errors import PathConversionError
from vcvars_bridge.logging import get_logger
from vcvars_bridge.settings import BridgeSettings

__all__ = [
    "LOCAL_PATHSEP",
    "NATIVE_PATHSEP",
    "CygpathPathBridge",
    "MsysPathBridge",
    "PathBridge",
    "make_path_bridge",
]

logger = get_logger("bridge.paths")

LOCAL_PATHSEP = ":"
NATIVE_PATHSEP = ";"

_DRIVE_MOUNT_RE = re.compile(r"^/([A-Za-z])(?=/|$)(.*)$")
_NATIVE_ABS_RE = re.compile(r"^([A-Za-z]):[\\/]")
_UNC_RE = re.compile(r"^[\\/]{2}[^\\/]+[\\/][^\\/]+")


@runtime_checkable
class PathBridge(Protocol):
    """Converts paths between the local and the native convention."""

    def to_foreign(self, path: str) -> str:
        """Local (or already native) absolute path -> native path."""
        ...

    def to_local(self, path: str) -> str:
        """Native (or already local) absolute path -> local path."""
        ...

    def to_local_list(self, native_list: str) -> str:
        """``;``-separated native list -> ``:``-separated local list."""
        ...


class MsysPathBridge:
    """Pure-Python MSYS2 path mapping.

    ``/c/x`` maps to ``C:\\x``. Other absolute POSIX paths live under the MSYS2
    installation root, so ``/usr/bin`` maps to ``<msys_root>\\usr\\bin`` and
    back.

    Example:
        >>> bridge = MsysPathBridge("C:\\\\msys64")
        >>> bridge.to_foreign("/c/Program Files")
        'C:\\\\Program Files'
        >>> bridge.to_local("C:\\\\msys64\\\\usr\\\\bin")
        '/usr/bin'
    """

    def __init__(self, msys_root: str = "C:\\msys64"):
        if not _NATIVE_ABS_RE.match(msys_root + "\\"):
            raise PathConversionError(msys_root, "native", "MSYS2 root must be absolute")
        self.msys_root = ntpath.normpath(msys_root).rstrip("\\")

    def to_foreign(self, path: str) -> str:
        if not path:
            raise PathConversionError(path, "native", "empty path")
        if _NATIVE_ABS_RE.match(path) or path.startswith("\\\\"):
            return ntpath.normpath(path)
        if _UNC_RE.match(path):
            return "\\\\" + posixpath.normpath(path).lstrip("/").replace("/", "\\")
        if not path.startswith("/"):
            raise PathConversionError(path, "native", "path is not absolute")

        normalized = posixpath.normpath(path)
        match = _DRIVE_MOUNT_RE.match(normalized)
        if match:
            drive, rest = match.groups()
            return f"{drive.upper()}:" + (rest.replace("/", "\\") or "\\")
        if normalized == "/":
            return self.msys_root
        return self.msys_root + normalized.replace("/", "\\")

    def to_local(self, path: str) -> str:
        if not path:
            raise PathConversionError(path, "local", "empty path")
        if path.startswith("/") and not path.startswith("//"):
            return posixpath.normpath(path)
        if _UNC_RE.match(path):
            return "//" + ntpath.normpath(path).lstrip("\\").replace("\\", "/")
        if not _NATIVE_ABS_RE.match(path):
            raise PathConversionError(path, "local", "path is not absolute")

        normalized = ntpath.normpath(path)
        root = self.msys_root.lower()
        lowered = normalized.lower()
        if lowered == root or lowered.startswith(root + "\\"):
            rest = normalized[len(self.msys_root) :]
            return rest.replace("\\", "/") or "/"

        drive, rest = normalized[0], normalized[2:]
        return f"/{drive.lower()}" + (rest.replace("\\", "/").rstrip("/") or "")

    def to_local_list(self, native_list: str) -> str:
        segments = []
        for segment in native_list.split(NATIVE_PATHSEP):
            segment = segment.strip().strip('"')
            if segment:
                segments.append(self.to_local(segment))
        return LOCAL_PATHSEP.join(segments)


class CygpathPathBridge:
    """Path mapping delegated to MSYS2's ``cygpath``.

    Args:
        executable: ``cygpath`` binary.
        runner: Callable with the signature of :func:`subprocess.run`.
    """

    def __init__(
        self,
        executable: str = "cygpath",
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ):
        self.executable = executable
        self._runner = runner

    def _run(self, flag: str, path: str, direction: str) -> str:
        if not path:
            raise PathConversionError(path, direction, "empty path")
        try:
            result = self._runner(
                [self.executable, flag, path],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise PathConversionError(path, direction, str(e)) from e

        output = result.stdout.strip()
        if result.returncode != 0 or not output:
            raise PathConversionError(path, direction, result.stderr.strip())
        return output

    def to_foreign(self, path: str) -> str:
        return self._run("-awl", path, "native")

    def to_local(self, path: str) -> str:
        return self._run("-au", path, "local")

    def to_local_list(self, native_list: str) -> str:
        if not native_list.strip(NATIVE_PATHSEP + " "):
            return ""
        return self._run("-up", native_list, "local")


def make_path_bridge(settings: BridgeSettings) -> PathBridge:
    """Select the path bridge configured in ``settings``.

    ``auto`` picks ``cygpath`` when it is on the search path (any MSYS2
    install), otherwise the pure-Python mapping.
    """
    choice = settings.path_bridge
    if choice == "auto":
        choice = "cygpath" if shutil.which("cygpath") else "builtin"

    logger.debug(f"Using {choice} path bridge")
    if choice == "cygpath":
        return CygpathPathBridge()
    return MsysPathBridge(settings.msys_root)
