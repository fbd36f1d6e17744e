"""Locating the toolchain initializer (``vcvarsall.bat``).

A cached location wins when it still names a regular file. Otherwise the
search roots are walked in sorted order and the first match is used; more
than one match is reported as a warning, not an error.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from vcvars_bridge.errors import AmbiguousLocationError, NotFoundError, PathConversionError
from vcvars_bridge.logging import get_logger, log_function
from vcvars_bridge.settings import BridgeSettings

from .paths import PathBridge

__all__ = [
    "LocatorResult",
    "ToolchainLocator",
]

logger = get_logger("bridge.locator")


@dataclass
class LocatorResult:
    """Where the initializer was found.

    Attributes:
        path: Local path to the initializer.
        native_path: Native long form, suitable for caching.
        from_cache: True if the cached location was reused.
        candidates: Every match found by the search (empty when cached).
        warning: Set when several candidates were found.
    """

    path: Path
    native_path: str
    from_cache: bool = False
    candidates: list[Path] = field(default_factory=list)
    warning: AmbiguousLocationError | None = None


class ToolchainLocator:
    """Finds the initializer on disk."""

    def __init__(self, settings: BridgeSettings, paths: PathBridge):
        self.settings = settings
        self.paths = paths

    def _from_cache(self, cached: str | None) -> Path | None:
        if not cached:
            return None
        try:
            path = Path(self.paths.to_local(cached))
        except PathConversionError as e:
            logger.debug(f"Ignoring unusable cached location: {e.message}")
            return None
        return path if path.is_file() else None

    @log_function()
    def search(self) -> list[Path]:
        """Walk every search root and return all matches, in walk order."""
        target = self.settings.initializer_name.lower()
        matches: list[Path] = []

        for root in self.settings.search_roots:
            # Unreadable directories are skipped, like find 2>/dev/null
            for dirpath, dirnames, filenames in os.walk(root, onerror=lambda _: None):
                dirnames.sort()
                for filename in sorted(filenames):
                    if filename.lower() == target:
                        matches.append(Path(dirpath) / filename)

        return matches

    def locate(self, cached: str | None = None) -> LocatorResult:
        """Resolve the initializer location.

        Args:
            cached: Value of the location cache variable, in either convention.

        Returns:
            LocatorResult for the first usable location.

        Raises:
            NotFoundError: If neither the cache nor the search yields a file.
        """
        path = self._from_cache(cached)
        if path is not None:
            logger.debug(f"Using cached initializer {path}")
            return LocatorResult(
                path=path,
                native_path=self.paths.to_foreign(str(path)),
                from_cache=True,
            )

        candidates = self.search()
        if not candidates:
            raise NotFoundError(self.settings.initializer_name, self.settings.search_roots)

        result = LocatorResult(
            path=candidates[0],
            native_path=self.paths.to_foreign(str(candidates[0])),
            candidates=candidates,
        )
        if len(candidates) > 1:
            result.warning = AmbiguousLocationError(self.settings.initializer_name, candidates)
            logger.warning(result.warning.message, candidates=len(candidates))

        logger.info(f"Found {self.settings.initializer_name} at {result.path}")
        return result
