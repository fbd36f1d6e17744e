"""Import and revert of the MSVC build environment.

The controller has two states. ``Clean`` means no baseline marker is set;
``Imported`` means the marker variable holds the fingerprint of the saved
pre-import environment. Import moves Clean to Imported exactly once, revert
moves Imported back to Clean exactly once, and both are no-ops otherwise.

Example:
    >>> from vcvars_bridge import vcvarsall
    >>> vcvarsall("x64")            # import
    0
    >>> vcvarsall("-clean_env")     # revert
    0
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from vcvars_bridge.bridge.external import ExternalBridge
from vcvars_bridge.bridge.locator import ToolchainLocator
from vcvars_bridge.bridge.paths import LOCAL_PATHSEP, PathBridge, make_path_bridge
from vcvars_bridge.bridge.probe import ToolchainProbe
from vcvars_bridge.bridge.workdir import work_directory
from vcvars_bridge.env.baseline import Baseline, file_checksum
from vcvars_bridge.env.diff import Diff, delta
from vcvars_bridge.env.store import EnvironmentStore, ProcessEnvironmentStore
from vcvars_bridge.errors import (
    EX_OK,
    ContextError,
    IntegrityError,
    ValidationError,
    VcvarsBridgeError,
    log_exception,
)
from vcvars_bridge.logging import ensure_logging, get_logger
from vcvars_bridge.settings import BridgeSettings

__all__ = [
    "REVERT_PATTERN",
    "ImportController",
    "ImportResult",
    "ImportStatus",
    "RevertResult",
    "RevertStatus",
    "vcvarsall",
]

logger = get_logger("controller")

REVERT_PATTERN = re.compile(r"[-/]+clean_env")

SEARCH_PATH_VAR = "PATH"


# =============================================================================
# Results
# =============================================================================


class ImportStatus(str, Enum):
    """Outcome of an import."""

    IMPORTED = "imported"
    ALREADY_IMPORTED = "already_imported"


class RevertStatus(str, Enum):
    """Outcome of a revert."""

    REVERTED = "reverted"
    NOTHING_TO_REVERT = "nothing_to_revert"


@dataclass
class ImportResult:
    """Result of an import.

    Attributes:
        status: Whether the toolchain was imported by this call.
        args: Arguments forwarded to the initializer.
        initializer: Initializer that ran (None when nothing ran).
        diff: Assignments applied to the environment.
        baseline: The recorded baseline.
        compiler_dir: Directory prepended to the search path.
        warnings: Non-fatal problems, e.g. several initializers found.
    """

    status: ImportStatus
    args: tuple[str, ...] = ()
    initializer: Path | None = None
    diff: Diff = field(default_factory=Diff)
    baseline: Baseline | None = None
    compiler_dir: Path | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "args": list(self.args),
            "initializer": str(self.initializer) if self.initializer else None,
            "diff": self.diff.to_dict(),
            "baseline": str(self.baseline.path) if self.baseline else None,
            "compiler_dir": str(self.compiler_dir) if self.compiler_dir else None,
            "warnings": self.warnings,
        }

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.status is ImportStatus.ALREADY_IMPORTED:
            return "Import [SKIPPED]: already initialized"
        return f"Import [OK]: '{' '.join(self.args)}', {self.diff.summary()}"


@dataclass
class RevertResult:
    """Result of a revert.

    Attributes:
        status: Whether anything was reverted.
        restored: Number of variables restored from the baseline.
        baseline: The baseline that was restored.
        warnings: Notes for the caller, e.g. a baseline kept in debug mode.
    """

    status: RevertStatus
    restored: int = 0
    baseline: Baseline | None = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status.value,
            "restored": self.restored,
            "baseline": str(self.baseline.path) if self.baseline else None,
            "warnings": self.warnings,
        }

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.status is RevertStatus.NOTHING_TO_REVERT:
            return "Revert [SKIPPED]: nothing to clean"
        return f"Revert [OK]: {self.restored} variables restored"


# =============================================================================
# Controller
# =============================================================================


class ImportController:
    """Imports the initializer's environment changes and reverts them.

    Every collaborator is injectable; the defaults act on the current process.

    Args:
        store: Environment to mutate (default: ``os.environ``).
        settings: Settings (default: read from ``store``).
        bridge: Runs the initializer.
        paths: Path conversion between conventions.
        locator: Finds the initializer.
        probe: Resolves and validates the toolchain.
    """

    def __init__(
        self,
        store: EnvironmentStore | None = None,
        settings: BridgeSettings | None = None,
        bridge: ExternalBridge | None = None,
        paths: PathBridge | None = None,
        locator: ToolchainLocator | None = None,
        probe: ToolchainProbe | None = None,
    ):
        self.store = store if store is not None else ProcessEnvironmentStore()
        self.settings = settings or BridgeSettings.from_environ(self.store.snapshot().as_dict())
        self.paths = paths or make_path_bridge(self.settings)
        self.bridge = bridge or ExternalBridge(self.settings, self.paths)
        self.locator = locator or ToolchainLocator(self.settings, self.paths)
        self.probe = probe or ToolchainProbe(self.settings)

    def _require_host(self) -> str:
        host = self.store.get(self.settings.host_marker)
        if not host:
            raise ContextError(self.settings.host_marker)
        return host

    def is_imported(self) -> bool:
        """True while the baseline marker is set and its file still matches it."""
        try:
            baseline = self.baseline()
        except IntegrityError:
            return False
        return baseline is not None and file_checksum(baseline.path) == baseline.checksum

    def baseline(self) -> Baseline | None:
        """The current baseline, or None when clean.

        Raises:
            IntegrityError: If the marker is malformed.
        """
        marker = self.store.get(self.settings.baseline_var)
        return Baseline.from_marker(marker) if marker else None

    # -------------------------------------------------------------------------
    # Import
    # -------------------------------------------------------------------------

    def import_environment(self, args: Sequence[str] = ()) -> ImportResult:
        """Import the toolchain environment.

        Args:
            args: Initializer arguments, forwarded opaquely. Empty means
                ``settings.default_args``.

        Returns:
            ImportResult; ``ALREADY_IMPORTED`` when a verified baseline is
            already set. A marker whose file is gone or altered is dropped and
            the import proceeds.

        Raises:
            ContextError: Outside an MSYS2 host.
            NotFoundError: If the initializer cannot be located.
            InvocationError: If the initializer cannot be run.
            PathConversionError: If a path cannot be translated.
            ValidationError: If the toolchain is unusable after the import.
        """
        self._require_host()
        if self.is_imported():
            logger.info("Environment already initialized")
            return ImportResult(status=ImportStatus.ALREADY_IMPORTED)

        stale = self.store.get(self.settings.baseline_var)
        if stale:
            logger.warning(f"Discarding stale baseline marker: {stale}")
            self.store.unset(self.settings.baseline_var)

        args = tuple(args) or tuple(self.settings.default_args)
        before = self.store.snapshot()
        baseline = Baseline.record(before, self.settings.tmp_dir)
        warnings: list[str] = []

        try:
            location = self.locator.locate(self.store.get(self.settings.cache_var))
            if location.warning is not None:
                warnings.append(location.warning.message)
            self.store.set(self.settings.cache_var, location.native_path)

            with work_directory(self.settings) as work_dir:
                result = self.bridge.run(
                    location.path, args, work_dir, env=self.store.snapshot().as_dict()
                )

            diff = delta(result.before, result.after).without([SEARCH_PATH_VAR])
            external_path = self.paths.to_local_list(result.native_path)
        except Exception:
            baseline.discard()
            raise

        self.store.set(self.settings.baseline_var, baseline.marker)
        self.store.set(self.settings.native_path_var, result.native_path)
        self.store.set(
            SEARCH_PATH_VAR,
            _join_paths(self.store.get(SEARCH_PATH_VAR), external_path),
        )
        self.store.apply_diff(diff)
        logger.debug(diff.summary(before))

        compiler_dir = self._validate()
        logger.info(f"Environment initialized for: '{' '.join(args)}'")
        return ImportResult(
            status=ImportStatus.IMPORTED,
            args=args,
            initializer=location.path,
            diff=diff,
            baseline=baseline,
            compiler_dir=compiler_dir,
            warnings=warnings,
        )

    def _validate(self) -> Path:
        try:
            search_path = self.store.get(SEARCH_PATH_VAR) or ""
            compiler_dir = self.probe.compiler_dir(search_path)
            search_path = _join_paths(str(compiler_dir), search_path)
            self.store.set(SEARCH_PATH_VAR, search_path)
            self.probe.validate(search_path, self.store.snapshot().as_dict())
        except ValidationError:
            if self.settings.revert_on_validation_failure:
                logger.warning("Validation failed, reverting the import")
                try:
                    self.revert()
                except VcvarsBridgeError as e:
                    logger.error(f"Revert after failed validation failed: {e}")
            raise
        return compiler_dir

    # -------------------------------------------------------------------------
    # Revert
    # -------------------------------------------------------------------------

    def revert(self) -> RevertResult:
        """Restore the environment saved by the last import.

        Returns:
            RevertResult; ``NOTHING_TO_REVERT`` when no baseline is set.

        Raises:
            ContextError: Outside an MSYS2 host.
            IntegrityError: If the baseline is missing or altered. The
                environment is left untouched.
        """
        self._require_host()
        baseline = self.baseline()
        if baseline is None:
            logger.info("No environment to clean")
            return RevertResult(status=RevertStatus.NOTHING_TO_REVERT)

        snapshot = baseline.verify()
        cached = self.store.get(self.settings.cache_var)
        self.store.replace_all(snapshot)
        if cached is not None:
            self.store.set(self.settings.cache_var, cached)

        warnings: list[str] = []
        if self.settings.debug:
            warnings.append(f"Debug mode: baseline kept at {baseline.path}")
        else:
            baseline.discard()

        logger.info(f"Environment reverted to {self.store.get(self.settings.host_marker)}")
        return RevertResult(
            status=RevertStatus.REVERTED,
            restored=len(snapshot),
            baseline=baseline,
            warnings=warnings,
        )

    # -------------------------------------------------------------------------
    # Invocation
    # -------------------------------------------------------------------------

    def run(self, args: Sequence[str] = ()) -> int:
        """Import or revert depending on ``args``; return an exit code.

        Any argument containing ``[-/]+clean_env`` selects revert and the other
        arguments are ignored. Otherwise all arguments go to the initializer.
        """
        args = list(args)
        try:
            if any(REVERT_PATTERN.search(arg) for arg in args):
                ignored = [arg for arg in args if not REVERT_PATTERN.search(arg)]
                if ignored:
                    logger.warning(
                        "'-clean_env' specified, other arguments ignored",
                        ignored=ignored,
                    )
                self.revert()
            else:
                self.import_environment(args)
        except VcvarsBridgeError as e:
            logger.error(f"vcvarsall: {e}")
            log_exception(logger, "vcvarsall failed", e, level="debug")
            return e.exit_code
        return EX_OK


def _join_paths(*parts: str | None) -> str:
    return LOCAL_PATHSEP.join(p for p in parts if p)


def vcvarsall(
    *args: str,
    store: EnvironmentStore | None = None,
    settings: BridgeSettings | None = None,
) -> int:
    """Import the MSVC environment, or revert it with ``-clean_env``.

    Status lines go to stderr, through a handler installed on first use
    unless the ``vcvars_bridge`` logger already has one.

    Args:
        *args: Initializer arguments, e.g. ``"x64"`` or ``"x86_arm64"``.
        store: Environment to act on (default: the current process).
        settings: Settings (default: read from the environment).

    Returns:
        0 on success (including no-op outcomes), 64 on failure.
    """
    controller = ImportController(store=store, settings=settings)
    ensure_logging(controller.settings.log_level, controller.settings.log_format)
    return controller.run(args)
