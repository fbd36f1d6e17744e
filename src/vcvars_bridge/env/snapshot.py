"""Exported-variable snapshots.

A :class:`Snapshot` is the canonical form of a process environment: unique
names, sorted by code point (the ``LC_ALL=C sort`` order), serialized as one
``export NAME='value'`` statement per variable. Two snapshots with the same
content serialize to the same bytes, which is what makes checksums and diffs
over them meaningful.
"""

from __future__ import annotations

import hashlib
import re
import shlex
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from vcvars_bridge.logging import get_logger

__all__ = [
    "Snapshot",
    "capture_environment",
]

logger = get_logger("env.snapshot")

_EXPORT = "export"
_NAME_RE = re.compile(r"^[^=]+$")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _quote(value: str) -> str:
    # Always quote so the same value never serializes two different ways
    return "'" + value.replace("'", "'\"'\"'") + "'"


def _quote_name(name: str) -> str:
    # Windows names such as ProgramFiles(x86) are not shell identifiers
    return name if _IDENTIFIER_RE.match(name) else _quote(name)


@dataclass(frozen=True)
class Snapshot:
    """Immutable, sorted set of exported variables.

    Attributes:
        entries: ``(name, value)`` pairs sorted by name.
        captured_at: When the snapshot was taken.
    """

    entries: tuple[tuple[str, str], ...] = ()
    captured_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self) -> None:
        names = [name for name, _ in self.entries]
        if len(set(names)) != len(names):
            raise ValueError("Snapshot names must be unique")
        if names != sorted(names):
            object.__setattr__(self, "entries", tuple(sorted(self.entries)))

    @classmethod
    def from_mapping(cls, variables: Mapping[str, str]) -> Snapshot:
        """Create a snapshot from a name -> value mapping."""
        return cls(entries=tuple(sorted((str(k), str(v)) for k, v in variables.items())))

    # ------------------------------------------------------------------
    # Mapping-like access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.entries)

    def __contains__(self, name: object) -> bool:
        return any(n == name for n, _ in self.entries)

    def get(self, name: str, default: str | None = None) -> str | None:
        for n, v in self.entries:
            if n == name:
                return v
        return default

    def names(self) -> list[str]:
        return [name for name, _ in self.entries]

    def as_dict(self) -> dict[str, str]:
        return dict(self.entries)

    def pairs(self) -> frozenset[tuple[str, str]]:
        return frozenset(self.entries)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> str:
        """Render as sorted ``export NAME='value'`` lines."""
        lines = [
            f"{_EXPORT} {_quote_name(name)}={_quote(value)}" for name, value in self.entries
        ]
        return "\n".join(lines) + "\n" if lines else ""

    @classmethod
    def parse(cls, text: str) -> Snapshot:
        """Parse text produced by :meth:`serialize`.

        Raises:
            ValueError: If the text is not a sequence of export statements.
        """
        tokens = shlex.split(text, posix=True)
        if len(tokens) % 2:
            raise ValueError("Malformed snapshot: dangling token")

        variables: dict[str, str] = {}
        for keyword, assignment in zip(tokens[::2], tokens[1::2], strict=True):
            if keyword != _EXPORT or "=" not in assignment:
                raise ValueError(f"Malformed snapshot statement: {keyword} {assignment[:40]}")
            name, _, value = assignment.partition("=")
            if not _NAME_RE.match(name):
                raise ValueError(f"Invalid variable name in snapshot: {name!r}")
            variables[name] = value

        return cls.from_mapping(variables)

    def checksum(self) -> str:
        """md5 hex digest of the serialized form."""
        return hashlib.md5(self.serialize().encode("utf-8")).hexdigest()

    def write(self, path: str | Path) -> Path:
        """Write the serialized form to ``path``."""
        file_path = Path(path)
        # newline="" keeps the bytes identical on every platform
        with file_path.open("w", encoding="utf-8", newline="") as f:
            f.write(self.serialize())
        logger.debug(f"Wrote snapshot of {len(self)} variables to {file_path}")
        return file_path

    @classmethod
    def read(cls, path: str | Path) -> Snapshot:
        """Load a snapshot written by :meth:`write`."""
        with Path(path).open(encoding="utf-8", newline="") as f:
            return cls.parse(f.read())

    def to_dict(self) -> dict[str, Any]:
        return {
            "variables": self.as_dict(),
            "captured_at": self.captured_at.isoformat(),
        }

    def summary(self) -> str:
        return f"Snapshot: {len(self)} variables"


def capture_environment(source: Mapping[str, str]) -> Snapshot:
    """Capture every exported variable visible in ``source``.

    Args:
        source: The environment of the context being captured, e.g.
            ``os.environ`` or a parsed interpreter dump.

    Returns:
        A fresh Snapshot.
    """
    snapshot = Snapshot.from_mapping(source)
    logger.debug(f"Captured {len(snapshot)} environment variables")
    return snapshot
