"""Tests for locating vcvarsall.bat."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vcvars_bridge.bridge.locator import ToolchainLocator
from vcvars_bridge.bridge.paths import MsysPathBridge
from vcvars_bridge.errors import AmbiguousLocationError, NotFoundError
from vcvars_bridge.settings import BridgeSettings


@pytest.fixture
def locator(settings: BridgeSettings) -> ToolchainLocator:
    return ToolchainLocator(settings, MsysPathBridge(settings.msys_root))


def _install(root: Path, version: str, name: str = "vcvarsall.bat") -> Path:
    build = root / "Microsoft Visual Studio" / version / "Community" / "VC" / "Auxiliary" / "Build"
    build.mkdir(parents=True)
    path = build / name
    path.write_text("@echo off\r\n")
    return path


# =============================================================================
# Search
# =============================================================================


class TestSearch:
    """Tests for walking the search roots."""

    def test_finds_single_installation(self, locator: ToolchainLocator, vs_root: Path) -> None:
        result = locator.locate()

        assert result.path == next(vs_root.rglob("vcvarsall.bat"))
        assert result.from_cache is False
        assert result.warning is None
        assert result.native_path == MsysPathBridge().to_foreign(str(result.path))

    def test_multiple_installations_warn_and_use_first(
        self,
        locator: ToolchainLocator,
        vs_root: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        older = _install(vs_root, "2019")

        with caplog.at_level(logging.WARNING, logger="vcvars_bridge"):
            result = locator.locate()

        assert result.path == older
        assert len(result.candidates) == 2
        assert isinstance(result.warning, AmbiguousLocationError)
        assert "multiple vcvarsall.bat found, using first" in caplog.text

    def test_name_match_is_case_insensitive(self, tmp_path: Path) -> None:
        root = tmp_path / "roots"
        expected = _install(root, "2017", name="VCVARSALL.BAT")
        settings = BridgeSettings(search_roots=(str(root),))

        result = ToolchainLocator(settings, MsysPathBridge()).locate()

        assert result.path == expected

    def test_searches_every_root(self, tmp_path: Path) -> None:
        first = tmp_path / "x86"
        second = tmp_path / "x64"
        first.mkdir()
        expected = _install(second, "2022")
        settings = BridgeSettings(search_roots=(str(first), str(second)))

        assert ToolchainLocator(settings, MsysPathBridge()).search() == [expected]

    def test_not_found(self, tmp_path: Path) -> None:
        settings = BridgeSettings(search_roots=(str(tmp_path / "missing"),))

        with pytest.raises(NotFoundError, match="cannot find vcvarsall.bat, aborting"):
            ToolchainLocator(settings, MsysPathBridge()).locate()


# =============================================================================
# Cache
# =============================================================================


class TestCache:
    """Tests for reusing VCVARSALL_PATH."""

    def test_native_cached_path_reused(self, locator: ToolchainLocator, vs_root: Path) -> None:
        path = next(vs_root.rglob("vcvarsall.bat"))
        cached = MsysPathBridge().to_foreign(str(path))

        result = locator.locate(cached=cached)

        assert result.from_cache is True
        assert result.path == path
        assert result.candidates == []

    def test_local_cached_path_reused(self, locator: ToolchainLocator, vs_root: Path) -> None:
        path = next(vs_root.rglob("vcvarsall.bat"))

        assert locator.locate(cached=str(path)).from_cache is True

    def test_stale_cache_falls_back_to_search(
        self, locator: ToolchainLocator, tmp_path: Path
    ) -> None:
        result = locator.locate(cached="C:\\gone\\vcvarsall.bat")

        assert result.from_cache is False

    def test_unconvertible_cache_falls_back_to_search(self, locator: ToolchainLocator) -> None:
        assert locator.locate(cached="relative\\vcvarsall.bat").from_cache is False
