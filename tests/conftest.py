"""
Root conftest.py for vcvars-bridge tests.

This file provides:
1. Common pytest markers for test categorization
2. Shared fixtures used across multiple test modules
3. Fake native interpreter and toolchain binaries

Fixtures are organized by category:
- Environment fixtures (MSYS2 host environment, stores)
- Settings fixtures (temp directories, fake Visual Studio layout)
- Native side fakes (cmd.exe, cl/link)
- Controller fixtures
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest

from vcvars_bridge.bridge.external import (
    AFTER_MARKER,
    BEFORE_MARKER,
    END_MARKER,
    PATH_MARKER,
    ExternalBridge,
)
from vcvars_bridge.bridge.locator import ToolchainLocator
from vcvars_bridge.bridge.paths import MsysPathBridge
from vcvars_bridge.bridge.probe import ToolchainProbe
from vcvars_bridge.controller import ImportController
from vcvars_bridge.env.store import EnvironmentStore, MemoryEnvironmentStore
from vcvars_bridge.settings import BridgeSettings

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        norm = str(item.fspath).replace("\\", "/")

        if "/unit/env/" in norm:
            item.add_marker(pytest.mark.env)
        if "/unit/bridge/" in norm:
            item.add_marker(pytest.mark.bridge)
        if "/unit/cli/" in norm:
            item.add_marker(pytest.mark.cli)


def pytest_configure(config):
    """Register custom markers."""
    for name, desc in [
        ("env", "Snapshot, diff, store and baseline tests"),
        ("bridge", "Native side tests (paths, interpreter, locator, probe)"),
        ("cli", "Command-line interface tests"),
    ]:
        config.addinivalue_line("markers", f"{name}: {desc}")


# =============================================================================
# NATIVE SIDE FAKES
# =============================================================================

VS_NATIVE_PATH = "C:\\VS\\bin;C:\\Windows\\system32"

VS_VARIABLES = {
    "INCLUDE": "C:\\VS\\include;C:\\Kits\\10\\include",
    "LIB": "C:\\VS\\lib\\x64",
    "VCINSTALLDIR": "C:\\VS\\VC\\",
    "VSCMD_ARG_TGT_ARCH": "x64",
}


class FakeInterpreter:
    """Stands in for cmd.exe running the driver script.

    Records every command and the driver text it was asked to run, and answers
    with a transcript in which the initializer added ``adds`` and replaced
    ``PATH`` with ``native_path``.
    """

    def __init__(
        self,
        msys_root: str = "C:\\msys64",
        adds: Mapping[str, str] | None = None,
        native_path: str = VS_NATIVE_PATH,
        returncode: int = 0,
        stdout: str | None = None,
    ):
        self.paths = MsysPathBridge(msys_root)
        self.adds = dict(VS_VARIABLES if adds is None else adds)
        self.native_path = native_path
        self.returncode = returncode
        self.stdout = stdout
        self.calls: list[tuple[list[str], dict[str, Any]]] = []
        self.drivers: list[str] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, kwargs))
        driver = Path(self.paths.to_local(command[-1]))
        self.drivers.append(driver.read_bytes().decode("utf-8"))

        stdout = self.stdout
        if stdout is None:
            stdout = self.transcript(kwargs.get("env") or {})
        return subprocess.CompletedProcess(command, self.returncode, stdout=stdout, stderr="")

    def transcript(self, env: Mapping[str, str]) -> str:
        before = dict(env)
        after = {**before, **self.adds, "PATH": self.native_path}
        lines = [
            BEFORE_MARKER,
            "=C:=C:\\msys64\\home\\dev",
            *(f"{k}={v}" for k, v in before.items()),
            PATH_MARKER,
            self.native_path,
            AFTER_MARKER,
            "=C:=C:\\msys64\\home\\dev",
            *(f"{k}={v}" for k, v in after.items()),
            END_MARKER,
        ]
        return "\r\n".join(lines) + "\r\n"


class FakeToolchain:
    """Stands in for ``shutil.which`` and the ``link`` probe."""

    def __init__(
        self,
        bin_dir: str = "/c/VS/bin",
        link_output: str = "Microsoft (R) Incremental Linker Version 14.38.33135.0",
    ):
        self.bin_dir = bin_dir
        self.link_output = link_output
        self.runs: list[list[str]] = []

    def which(self, name: str, path: str | None = None) -> str | None:
        if self.bin_dir in (path or "").split(":"):
            return f"{self.bin_dir}/{name}.exe"
        return None

    def run(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.runs.append(command)
        return subprocess.CompletedProcess(command, 0, stdout=self.link_output, stderr="")


# =============================================================================
# ENVIRONMENT FIXTURES
# =============================================================================


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo handlers installed by the CLI or by vcvarsall()."""
    root = logging.getLogger("vcvars_bridge")
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def msys_env() -> dict[str, str]:
    """A minimal MSYS2 MINGW64 shell environment."""
    return {
        "MSYSTEM": "MINGW64",
        "HOME": "/home/dev",
        "PATH": "/mingw64/bin:/usr/bin",
        "TERM": "xterm-256color",
    }


@pytest.fixture
def store(msys_env: dict[str, str]) -> MemoryEnvironmentStore:
    """In-memory store holding the MSYS2 environment."""
    return MemoryEnvironmentStore(msys_env)


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def vs_root(tmp_path: Path) -> Path:
    """A search root containing one Visual Studio installation."""
    root = tmp_path / "Program Files"
    build = root / "Microsoft Visual Studio" / "2022" / "BuildTools" / "VC" / "Auxiliary" / "Build"
    build.mkdir(parents=True)
    (build / "vcvarsall.bat").write_text("@echo off\r\n")
    return root


@pytest.fixture
def settings(tmp_path: Path, vs_root: Path) -> BridgeSettings:
    """Settings pointed at temp directories and the fake installation."""
    return BridgeSettings(
        tmp_dir=tmp_path / "tmp",
        search_roots=(str(vs_root),),
        path_bridge="builtin",
    )


# =============================================================================
# CONTROLLER FIXTURES
# =============================================================================


@pytest.fixture
def interpreter(settings: BridgeSettings) -> FakeInterpreter:
    return FakeInterpreter(settings.msys_root)


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def controller_factory(
    settings: BridgeSettings,
    interpreter: FakeInterpreter,
    toolchain: FakeToolchain,
) -> Callable[..., ImportController]:
    """Build controllers wired to the fakes, for any store and settings."""

    def factory(
        store: EnvironmentStore,
        settings: BridgeSettings = settings,
    ) -> ImportController:
        paths = MsysPathBridge(settings.msys_root)
        return ImportController(
            store=store,
            settings=settings,
            bridge=ExternalBridge(settings, paths, runner=interpreter),
            paths=paths,
            locator=ToolchainLocator(settings, paths),
            probe=ToolchainProbe(settings, runner=toolchain.run, which=toolchain.which),
        )

    return factory


@pytest.fixture
def controller(
    store: MemoryEnvironmentStore,
    controller_factory: Callable[..., ImportController],
) -> ImportController:
    """Controller over the in-memory MSYS2 store."""
    return controller_factory(store)
