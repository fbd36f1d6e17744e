"""Environment stores.

The controller never touches ``os.environ`` directly; it works through an
:class:`EnvironmentStore`. :class:`ProcessEnvironmentStore` is the real
process table, :class:`MemoryEnvironmentStore` an isolated copy used by the
CLI and by tests.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, MutableMapping
from typing import Protocol, runtime_checkable

from vcvars_bridge.logging import get_logger

from .diff import Diff
from .snapshot import Snapshot, capture_environment

__all__ = [
    "EnvironmentStore",
    "MemoryEnvironmentStore",
    "ProcessEnvironmentStore",
]

logger = get_logger("env.store")


@runtime_checkable
class EnvironmentStore(Protocol):
    """Mutable table of exported variables."""

    def snapshot(self) -> Snapshot:
        """Capture every variable currently exported."""
        ...

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str) -> None: ...

    def unset(self, name: str) -> None: ...

    def apply_diff(self, diff: Diff) -> int:
        """Export every assignment in ``diff``; return how many were applied."""
        ...

    def replace_all(self, snapshot: Snapshot) -> None:
        """Clear every variable, then export exactly ``snapshot``."""
        ...


class _MappingStore:
    """Store operations over any mutable str -> str mapping."""

    def __init__(self, table: MutableMapping[str, str]):
        self._table = table

    def snapshot(self) -> Snapshot:
        return capture_environment(self._table)

    def get(self, name: str) -> str | None:
        return self._table.get(name)

    def set(self, name: str, value: str) -> None:
        self._table[name] = value

    def unset(self, name: str) -> None:
        self._table.pop(name, None)

    def apply_diff(self, diff: Diff) -> int:
        for name, value in diff:
            self._table[name] = value
        logger.debug(f"Applied {len(diff)} assignments")
        return len(diff)

    def replace_all(self, snapshot: Snapshot) -> None:
        self._table.clear()
        for name, value in snapshot:
            self._table[name] = value
        logger.debug(f"Replaced environment with {len(snapshot)} variables")

    def __len__(self) -> int:
        return len(self._table)


class ProcessEnvironmentStore(_MappingStore):
    """The current process environment (``os.environ``)."""

    def __init__(self) -> None:
        super().__init__(os.environ)


class MemoryEnvironmentStore(_MappingStore):
    """An in-memory environment, detached from the process."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        super().__init__(dict(initial or {}))

    @classmethod
    def from_process(cls) -> MemoryEnvironmentStore:
        """Copy of the current process environment."""
        return cls(os.environ)

    def as_dict(self) -> dict[str, str]:
        return dict(self._table)
