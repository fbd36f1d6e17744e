"""Running the initializer inside the native command interpreter.

The bridge writes one batch driver into the work directory and runs it with
a single blocking ``cmd.exe /d /c`` call. The driver dumps every variable,
calls the initializer with the caller's arguments, echoes the native
``%PATH%``, and dumps every variable again. Each part is framed by a marker
line, so the whole handshake travels as one structured block on stdout:

    ::vcvars-bridge:before::
    NAME=value
    ...
    ::vcvars-bridge:path::
    C:\\Windows\\system32;...
    ::vcvars-bridge:after::
    NAME=value
    ...
    ::vcvars-bridge:end::

There is no timeout: a hung initializer hangs the import.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from vcvars_bridge.errors import InvocationError
from vcvars_bridge.logging import get_logger
from vcvars_bridge.settings import BridgeSettings

from ..env.snapshot import Snapshot, capture_environment
from .paths import PathBridge

__all__ = [
    "AFTER_MARKER",
    "BEFORE_MARKER",
    "END_MARKER",
    "PATH_MARKER",
    "BridgeResult",
    "ExternalBridge",
    "parse_env_dump",
    "parse_transcript",
]

logger = get_logger("bridge.external")

BEFORE_MARKER = "::vcvars-bridge:before::"
PATH_MARKER = "::vcvars-bridge:path::"
AFTER_MARKER = "::vcvars-bridge:after::"
END_MARKER = "::vcvars-bridge:end::"

_SECTIONS = {
    BEFORE_MARKER: "before",
    PATH_MARKER: "path",
    AFTER_MARKER: "after",
    END_MARKER: "end",
}

DRIVER_NAME = "vars.bat"


@dataclass(frozen=True)
class BridgeResult:
    """Output of one initializer run.

    Attributes:
        before: Interpreter environment before the initializer ran.
        after: Interpreter environment after it ran.
        native_path: The native ``;``-separated ``%PATH%`` after it ran.
        returncode: Exit status of the interpreter.
    """

    before: Snapshot
    after: Snapshot
    native_path: str
    returncode: int = 0


def parse_env_dump(lines: Sequence[str]) -> dict[str, str]:
    """Parse ``set`` output into a mapping.

    Lines starting with ``=`` are cmd's hidden per-drive variables and lines
    without ``=`` are noise; both are skipped.
    """
    variables: dict[str, str] = {}
    for line in lines:
        line = line.rstrip("\r")
        if not line or line.startswith("=") or "=" not in line:
            continue
        name, _, value = line.partition("=")
        variables[name] = value
    return variables


def parse_transcript(text: str) -> dict[str, list[str]]:
    """Split driver output into its marked sections.

    Raises:
        InvocationError: If any section is missing.
    """
    sections: dict[str, list[str]] = {}
    current: str | None = None

    for raw in text.splitlines():
        line = raw.rstrip("\r")
        section = _SECTIONS.get(line.strip())
        if section is not None:
            current = section
            sections[current] = []
            continue
        if current is not None:
            sections[current].append(line)

    missing = [name for name in _SECTIONS.values() if name not in sections]
    if missing:
        raise InvocationError(
            f"initializer invocation failed, no output for: {', '.join(missing)}"
        )
    return sections


class ExternalBridge:
    """Runs the initializer in the native interpreter and captures its effect.

    Args:
        settings: Interpreter, encoding and debug settings.
        paths: Converts the initializer and driver locations to native form.
        runner: Callable with the signature of :func:`subprocess.run`.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        paths: PathBridge,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
    ):
        self.settings = settings
        self.paths = paths
        self._runner = runner

    def build_driver(self, initializer: str, args: Sequence[str]) -> str:
        """Batch driver text for a native initializer path and opaque args."""
        call = f'call "{initializer}"'
        if args:
            call += " " + " ".join(args)
        # Initializer chatter must stay out of the stdout handshake
        call += " 1>&2" if self.settings.debug else " > nul"

        lines = [
            "@echo off",
            "chcp 65001 > nul",
            f"echo {BEFORE_MARKER}",
            "set",
            call,
            f"echo {PATH_MARKER}",
            "echo(%PATH%",
            f"echo {AFTER_MARKER}",
            "set",
            f"echo {END_MARKER}",
        ]
        return "\r\n".join(lines) + "\r\n"

    def run(
        self,
        initializer_path: str | Path,
        args: Sequence[str],
        work_dir: str | Path,
        env: Mapping[str, str] | None = None,
    ) -> BridgeResult:
        """Run the initializer between two environment captures.

        Args:
            initializer_path: Initializer location, either convention.
            args: Arguments forwarded verbatim.
            work_dir: Scratch directory for the driver.
            env: Environment the interpreter starts with (default: process).

        Returns:
            BridgeResult with both snapshots and the native search path.

        Raises:
            InvocationError: If the interpreter cannot run or its output is
                incomplete.
        """
        work_dir = Path(work_dir)
        initializer = self.paths.to_foreign(str(initializer_path))
        driver = work_dir / DRIVER_NAME
        with driver.open("w", encoding="utf-8", newline="") as f:
            f.write(self.build_driver(initializer, args))

        command = [self.settings.interpreter, "/d", "/c", self.paths.to_foreign(str(driver))]
        child_env = dict(os.environ if env is None else env)
        # Stop MSYS2 from rewriting "/c" and "/d" into paths
        child_env["MSYS2_ARG_CONV_EXCL"] = "*"

        logger.info(f"Running {initializer} {' '.join(args)}".rstrip())
        try:
            result = self._runner(
                command,
                capture_output=True,
                text=True,
                encoding=self.settings.console_encoding,
                errors="replace",
                env=child_env,
                check=False,
            )
        except OSError as e:
            raise InvocationError(
                f"initializer invocation failed: {e}", command=command
            ) from e

        stdout = result.stdout or ""
        if self.settings.debug:
            (work_dir / "driver.log").write_text(stdout, encoding="utf-8")
            (work_dir / "driver.err").write_text(result.stderr or "", encoding="utf-8")

        try:
            sections = parse_transcript(stdout)
        except InvocationError as e:
            raise InvocationError(
                e.message,
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            ) from e

        if result.returncode != 0:
            logger.warning(
                f"{self.settings.interpreter} exited with status {result.returncode}",
                returncode=result.returncode,
            )

        native_path = next((line.strip() for line in sections["path"] if line.strip()), "")
        before = capture_environment(parse_env_dump(sections["before"]))
        after = capture_environment(parse_env_dump(sections["after"]))
        logger.debug(f"Captured {len(before)} variables before and {len(after)} after")

        return BridgeResult(
            before=before,
            after=after,
            native_path=native_path,
            returncode=result.returncode,
        )
