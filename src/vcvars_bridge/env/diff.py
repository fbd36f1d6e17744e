"""Environment deltas.

:func:`delta` is a set difference over ``(name, value)`` pairs: every pair the
"after" snapshot has and the "before" snapshot lacks. A variable whose value
grew a suffix therefore shows up once, with its complete new value. Removals
are never reported; the initializer only adds and extends variables.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from .snapshot import Snapshot

__all__ = [
    "Diff",
    "delta",
]


@dataclass(frozen=True)
class Diff:
    """Assignments to add to or overwrite in an environment.

    Attributes:
        assignments: ``(name, value)`` pairs sorted by name.
    """

    assignments: tuple[tuple[str, str], ...] = ()

    def __len__(self) -> int:
        return len(self.assignments)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.assignments)

    @property
    def has_changes(self) -> bool:
        return bool(self.assignments)

    def names(self) -> list[str]:
        return [name for name, _ in self.assignments]

    def as_dict(self) -> dict[str, str]:
        return dict(self.assignments)

    def without(self, names: Iterable[str]) -> Diff:
        """Return a copy minus the given names, compared case-insensitively."""
        excluded = {name.upper() for name in names}
        return Diff(tuple((n, v) for n, v in self.assignments if n.upper() not in excluded))

    def added(self, base: Snapshot) -> dict[str, str]:
        """Assignments for names ``base`` does not have."""
        return {n: v for n, v in self.assignments if n not in base}

    def overridden(self, base: Snapshot) -> dict[str, tuple[str, str]]:
        """Assignments replacing a value in ``base``, as ``name -> (old, new)``."""
        changed: dict[str, tuple[str, str]] = {}
        for name, value in self.assignments:
            old = base.get(name)
            if old is not None:
                changed[name] = (old, value)
        return changed

    def summary(self, base: Snapshot | None = None) -> str:
        if not self.assignments:
            return "No changes"
        if base is None:
            return f"env: {len(self)} assignments"
        return f"env: +{len(self.added(base))} ~{len(self.overridden(base))}"

    def to_dict(self) -> dict[str, Any]:
        return {"assignments": self.as_dict()}


def delta(before: Snapshot, after: Snapshot) -> Diff:
    """Compute the assignments present in ``after`` but not in ``before``.

    Args:
        before: Snapshot taken before the initializer ran.
        after: Snapshot taken after it ran.

    Returns:
        Diff of new and changed assignments.
    """
    return Diff(tuple(sorted(after.pairs() - before.pairs())))
