"""Toolchain resolution and post-import validation.

After an import, the compiler must resolve on the new search path, and the
probe binary (the MSVC linker) must identify itself with the vendor
signature. A GNU ``link`` from coreutils resolving first is exactly the
failure this catches.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from vcvars_bridge.errors import ValidationError
from vcvars_bridge.logging import get_logger
from vcvars_bridge.settings import BridgeSettings

__all__ = [
    "ProbeResult",
    "ToolchainProbe",
]

logger = get_logger("bridge.probe")


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a successful validation probe."""

    tool: Path
    output: str


class ToolchainProbe:
    """Resolves toolchain binaries and validates the imported toolchain.

    Args:
        settings: Names of the compiler, probe and expected signature.
        runner: Callable with the signature of :func:`subprocess.run`.
        which: Callable with the signature of :func:`shutil.which`.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        runner: Callable[..., subprocess.CompletedProcess[str]] = subprocess.run,
        which: Callable[..., str | None] = shutil.which,
    ):
        self.settings = settings
        self._runner = runner
        self._which = which

    def resolve(self, name: str, search_path: str) -> Path | None:
        """Find ``name`` on ``search_path`` the way the shell would."""
        found = self._which(name, path=search_path)
        return Path(found) if found else None

    def compiler_dir(self, search_path: str) -> Path:
        """Directory holding the toolchain compiler.

        Raises:
            ValidationError: If the compiler does not resolve.
        """
        compiler = self.resolve(self.settings.compiler, search_path)
        if compiler is None:
            raise ValidationError(
                f"failed, VC {self.settings.compiler} not in PATH",
                tool=self.settings.compiler,
            )
        return compiler.parent

    def validate(self, search_path: str, env: Mapping[str, str]) -> ProbeResult:
        """Run the probe and check its vendor signature.

        Raises:
            ValidationError: If the probe is missing, cannot run, or prints
                something other than the expected signature.
        """
        name = self.settings.probe
        tool = self.resolve(name, search_path)
        if tool is None:
            raise ValidationError(f"failed, VC {name} not in PATH", tool=name)

        try:
            result = self._runner(
                [str(tool)],
                capture_output=True,
                text=True,
                errors="replace",
                env=dict(env),
                check=False,
            )
        except OSError as e:
            raise ValidationError(f"failed, cannot run {tool}: {e}", tool=name) from e

        output = (result.stdout or "") + (result.stderr or "")
        if self.settings.probe_signature not in output:
            signature = self.settings.probe_signature
            raise ValidationError(
                f"failed, VC {name} not in PATH ({tool} is not the {signature} tool)",
                tool=str(tool),
                output=output,
            )

        logger.debug(f"Probe {tool} reported {self.settings.probe_signature}")
        return ProbeResult(tool=tool, output=output)
