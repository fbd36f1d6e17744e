"""Shell transition scripts.

A child process cannot change its parent's environment, so the CLI runs the
engine against a copy of its own environment and prints a script that, when
``eval``-ed by the calling bash, moves that shell from one snapshot to the
other.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass, field
from typing import Any

from .snapshot import Snapshot

__all__ = [
    "ScriptResult",
    "render_transition",
]

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Managed by bash itself; exporting or unsetting them breaks the shell
SHELL_MANAGED_VARS = frozenset({"_", "SHLVL", "PWD", "OLDPWD"})


@dataclass
class ScriptResult:
    """Counts for a rendered transition script.

    Attributes:
        exported: Variables exported (new or changed).
        unset: Variables removed.
        skipped: Names bash cannot represent, with the reason.
    """

    exported: int = 0
    unset: int = 0
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"exported": self.exported, "unset": self.unset, "skipped": self.skipped}


def render_transition(before: Snapshot, after: Snapshot) -> tuple[str, ScriptResult]:
    """Render bash statements turning ``before`` into ``after``.

    Args:
        before: Environment the script will run in.
        after: Environment the script must produce.

    Returns:
        Tuple of (script_content, ScriptResult).
    """
    result = ScriptResult()
    lines: list[str] = []
    after_vars = after.as_dict()
    before_vars = before.as_dict()

    for name in sorted(set(before_vars) - set(after_vars)):
        if name in SHELL_MANAGED_VARS:
            continue
        if not _IDENTIFIER_RE.match(name):
            result.skipped.append(name)
            lines.append(f"# Skipped non-identifier: {name!r}")
            continue
        lines.append(f"unset {name}")
        result.unset += 1

    for name, value in after:
        if name in SHELL_MANAGED_VARS or before_vars.get(name) == value:
            continue
        if not _IDENTIFIER_RE.match(name):
            result.skipped.append(name)
            lines.append(f"# Skipped non-identifier: {name!r}")
            continue
        lines.append(f"export {name}={shlex.quote(value)}")
        result.exported += 1

    script = "\n".join(lines) + "\n" if lines else ""
    return script, result
