"""Configuration for vcvars-bridge.

Settings are read once, when a controller is built, from the environment of
the process being imported into. A ``.env`` file, when present, supplies
lower-priority values; it is read with ``dotenv_values`` and never loaded into
the process environment, since that environment is exactly what gets
snapshotted.

Precedence (highest to lowest):
1. Explicit keyword overrides
2. Environment variables
3. ``.env`` file
4. Defaults
"""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = [
    "DEFAULT_SEARCH_ROOTS",
    "BridgeSettings",
]

DEFAULT_SEARCH_ROOTS = ("/c/Program Files (x86)/", "/c/Program Files/")

_TRUTHY = frozenset({"1", "yes", "true", "on"})

# setting name -> environment variable(s), first set wins
_ENV_SOURCES: dict[str, tuple[str, ...]] = {
    "debug": ("DEBUG",),
    "tmp_dir": ("TMP", "TEMP", "TMPDIR"),
    "search_roots": ("VCVARS_BRIDGE_SEARCH_ROOTS",),
    "interpreter": ("VCVARS_BRIDGE_INTERPRETER", "COMSPEC"),
    "path_bridge": ("VCVARS_BRIDGE_PATH_BRIDGE",),
    "msys_root": ("VCVARS_BRIDGE_MSYS_ROOT",),
    "revert_on_validation_failure": ("VCVARS_BRIDGE_REVERT_ON_FAILURE",),
    "log_level": ("VCVARS_BRIDGE_LOG_LEVEL",),
    "log_format": ("VCVARS_BRIDGE_LOG_FORMAT",),
}


class BridgeSettings(BaseModel):
    """Runtime settings for the import/revert engine.

    Attributes:
        host_marker: Variable whose presence identifies an MSYS2 host.
        cache_var: Variable caching the initializer location.
        baseline_var: Marker variable holding the baseline fingerprint.
        native_path_var: Variable receiving the raw native search path.
        debug: Keep work directories and baseline files for inspection.
        tmp_dir: Parent directory for work directories and baselines.
        search_roots: Directories searched for the initializer.
        initializer_name: File name of the initializer.
        compiler: Toolchain binary whose directory is prepended to PATH.
        probe: Binary run to validate the toolchain.
        probe_signature: Text the probe must print.
        default_args: Initializer arguments used when none are given.
        interpreter: Native command interpreter running the driver.
        console_encoding: Encoding of the interpreter's output.
        path_bridge: ``auto``, ``builtin`` or ``cygpath``.
        msys_root: Native location of the MSYS2 installation root.
        revert_on_validation_failure: Revert when the probe fails after import.
        log_level: Log level for the CLI.
        log_format: ``human`` or ``json``.
    """

    model_config = ConfigDict(frozen=True)

    host_marker: str = "MSYSTEM"
    cache_var: str = "VCVARSALL_PATH"
    baseline_var: str = "_VCVARS_BASELINE"
    native_path_var: str = "_WIN_PATH"

    debug: bool = False
    tmp_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))

    search_roots: tuple[str, ...] = DEFAULT_SEARCH_ROOTS
    initializer_name: str = "vcvarsall.bat"

    compiler: str = "cl"
    probe: str = "link"
    probe_signature: str = "Microsoft"

    default_args: tuple[str, ...] = ("x64",)
    interpreter: str = "cmd.exe"
    console_encoding: str = "utf-8"

    path_bridge: Literal["auto", "builtin", "cygpath"] = "auto"
    msys_root: str = "C:\\msys64"

    revert_on_validation_failure: bool = False

    log_level: str = "INFO"
    log_format: Literal["human", "json"] = "human"

    @field_validator("debug", "revert_on_validation_failure", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() in _TRUTHY
        return value

    @field_validator("search_roots", "default_args", mode="before")
    @classmethod
    def _parse_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            separator = ";" if ";" in value else os.pathsep
            return tuple(part for part in value.split(separator) if part.strip())
        return value

    @field_validator("log_format", mode="before")
    @classmethod
    def _lower(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, str] | None = None,
        env_file: str | Path | None = None,
        **overrides: Any,
    ) -> BridgeSettings:
        """Build settings from an environment mapping.

        Args:
            environ: Variables to read (default: ``os.environ``).
            env_file: Explicit ``.env`` file. When None, the nearest ``.env``
                above the working directory is used if one exists.
            **overrides: Field values that take precedence over everything.

        Returns:
            Frozen BridgeSettings.
        """
        environ = os.environ if environ is None else environ

        file_values: dict[str, str | None] = {}
        path = str(env_file) if env_file else find_dotenv(usecwd=True)
        if path:
            file_values = dict(dotenv_values(path))

        values: dict[str, Any] = {}
        for field_name, sources in _ENV_SOURCES.items():
            for source in sources:
                value = environ.get(source)
                if value is None:
                    value = file_values.get(source)
                if value:
                    values[field_name] = value
                    break

        values.update(overrides)
        return cls.model_validate(values)

    @property
    def debug_dir(self) -> Path:
        """Fixed work directory used in debug mode."""
        return self.tmp_dir / "vcvars-bridge-debug"
