"""Tests for running the initializer under the native interpreter."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from vcvars_bridge.bridge.external import (
    AFTER_MARKER,
    BEFORE_MARKER,
    END_MARKER,
    PATH_MARKER,
    ExternalBridge,
    parse_env_dump,
    parse_transcript,
)
from vcvars_bridge.bridge.paths import MsysPathBridge
from vcvars_bridge.errors import InvocationError
from vcvars_bridge.settings import BridgeSettings

ENV = {"MSYSTEM": "MINGW64", "PATH": "/usr/bin", "HOME": "/home/dev"}


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def initializer(vs_root: Path) -> Path:
    return next(vs_root.rglob("vcvarsall.bat"))


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def bridge(settings: BridgeSettings, interpreter) -> ExternalBridge:
    return ExternalBridge(settings, MsysPathBridge(settings.msys_root), runner=interpreter)


# =============================================================================
# Parsing
# =============================================================================


class TestParsing:
    """Tests for transcript and dump parsing."""

    def test_env_dump_skips_hidden_and_noise(self) -> None:
        lines = ["=C:=C:\\x", "A=1\r", "not a variable", "", "B=x=y"]

        assert parse_env_dump(lines) == {"A": "1", "B": "x=y"}

    def test_transcript_sections(self) -> None:
        text = "\r\n".join(
            [
                "Active code page: 65001",
                BEFORE_MARKER,
                "A=1",
                PATH_MARKER,
                "C:\\Windows",
                AFTER_MARKER,
                "A=1",
                "B=2",
                END_MARKER,
            ]
        )

        sections = parse_transcript(text)

        assert sections["before"] == ["A=1"]
        assert sections["path"] == ["C:\\Windows"]
        assert sections["after"] == ["A=1", "B=2"]
        assert sections["end"] == []

    def test_transcript_missing_sections(self) -> None:
        with pytest.raises(InvocationError, match="path, after, end"):
            parse_transcript(f"{BEFORE_MARKER}\nA=1\n")


# =============================================================================
# Driver
# =============================================================================


class TestDriver:
    """Tests for the generated batch driver."""

    def test_driver_layout(self, bridge: ExternalBridge) -> None:
        driver = bridge.build_driver("C:\\VS\\vcvarsall.bat", ["x64", "10.0.22621.0"])

        assert driver.endswith("\r\n")
        assert driver.split("\r\n")[:-1] == [
            "@echo off",
            "chcp 65001 > nul",
            f"echo {BEFORE_MARKER}",
            "set",
            'call "C:\\VS\\vcvarsall.bat" x64 10.0.22621.0 > nul',
            f"echo {PATH_MARKER}",
            "echo(%PATH%",
            f"echo {AFTER_MARKER}",
            "set",
            f"echo {END_MARKER}",
        ]

    def test_driver_without_args(self, bridge: ExternalBridge) -> None:
        assert 'call "C:\\VS\\vcvarsall.bat" > nul\r\n' in bridge.build_driver(
            "C:\\VS\\vcvarsall.bat", []
        )

    def test_debug_driver_sends_output_to_stderr(self, settings: BridgeSettings) -> None:
        debug = settings.model_copy(update={"debug": True})
        bridge = ExternalBridge(debug, MsysPathBridge())

        assert 'call "C:\\VS\\vcvarsall.bat" x64 1>&2' in bridge.build_driver(
            "C:\\VS\\vcvarsall.bat", ["x64"]
        )


# =============================================================================
# Run
# =============================================================================


class TestRun:
    """Tests for ExternalBridge.run."""

    def test_captures_before_and_after(
        self, bridge: ExternalBridge, interpreter, initializer: Path, work_dir: Path
    ) -> None:
        result = bridge.run(initializer, ["x64"], work_dir, env=ENV)

        assert result.returncode == 0
        assert result.native_path == interpreter.native_path
        assert "INCLUDE" not in result.before
        assert result.after.get("INCLUDE") == interpreter.adds["INCLUDE"]
        assert result.before.get("MSYSTEM") == "MINGW64"
        assert not any(name.startswith("=") for name in result.after.names())

    def test_interpreter_command(
        self, bridge: ExternalBridge, interpreter, initializer: Path, work_dir: Path
    ) -> None:
        bridge.run(initializer, ["x64"], work_dir, env=ENV)

        command, kwargs = interpreter.calls[0]
        assert command[:3] == ["cmd.exe", "/d", "/c"]
        assert command[3].endswith("\\work\\vars.bat")
        assert kwargs["env"]["MSYS2_ARG_CONV_EXCL"] == "*"
        assert kwargs["env"]["MSYSTEM"] == "MINGW64"
        assert kwargs["encoding"] == "utf-8"
        assert kwargs["check"] is False

    def test_driver_calls_native_initializer(
        self, bridge: ExternalBridge, interpreter, initializer: Path, work_dir: Path
    ) -> None:
        bridge.run(initializer, ["x86_arm64"], work_dir, env=ENV)

        native = MsysPathBridge().to_foreign(str(initializer))
        assert f'call "{native}" x86_arm64 > nul\r\n' in interpreter.drivers[0]

    def test_nonzero_exit_with_complete_output_warns(
        self,
        bridge: ExternalBridge,
        interpreter,
        initializer: Path,
        work_dir: Path,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        interpreter.returncode = 1

        with caplog.at_level(logging.WARNING, logger="vcvars_bridge"):
            result = bridge.run(initializer, ["x64"], work_dir, env=ENV)

        assert result.returncode == 1
        assert "exited with status 1" in caplog.text

    def test_missing_output(
        self, bridge: ExternalBridge, interpreter, initializer: Path, work_dir: Path
    ) -> None:
        interpreter.stdout = "The system cannot find the path specified.\r\n"
        interpreter.returncode = 1

        with pytest.raises(InvocationError, match="no output for") as exc_info:
            bridge.run(initializer, ["x64"], work_dir, env=ENV)

        assert exc_info.value.returncode == 1
        assert exc_info.value.command[0] == "cmd.exe"

    def test_interpreter_cannot_start(
        self, settings: BridgeSettings, initializer: Path, work_dir: Path
    ) -> None:
        def runner(command, **kwargs):
            raise FileNotFoundError(2, "No such file or directory", command[0])

        bridge = ExternalBridge(settings, MsysPathBridge(), runner=runner)

        with pytest.raises(InvocationError, match="invocation failed"):
            bridge.run(initializer, ["x64"], work_dir, env=ENV)

    def test_debug_keeps_transcript(
        self, settings: BridgeSettings, interpreter, initializer: Path, work_dir: Path
    ) -> None:
        debug = settings.model_copy(update={"debug": True})
        bridge = ExternalBridge(debug, MsysPathBridge(), runner=interpreter)

        bridge.run(initializer, ["x64"], work_dir, env=ENV)

        assert BEFORE_MARKER in (work_dir / "driver.log").read_text(encoding="utf-8")
        assert (work_dir / "vars.bat").exists()
