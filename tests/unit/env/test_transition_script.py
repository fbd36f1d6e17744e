"""Tests for eval-able shell transition scripts."""

from __future__ import annotations

from vcvars_bridge.env.script import render_transition
from vcvars_bridge.env.snapshot import Snapshot


class TestRenderTransition:
    """Tests for render_transition."""

    def test_no_changes(self) -> None:
        snapshot = Snapshot.from_mapping({"A": "1"})

        script, result = render_transition(snapshot, snapshot)

        assert script == ""
        assert result.to_dict() == {"exported": 0, "unset": 0, "skipped": []}

    def test_exports_new_and_changed(self) -> None:
        before = Snapshot.from_mapping({"A": "1", "B": "2"})
        after = Snapshot.from_mapping({"A": "1", "B": "two words", "C": "3"})

        script, result = render_transition(before, after)

        assert script == "export B='two words'\nexport C=3\n"
        assert result.exported == 2

    def test_unsets_removed_first(self) -> None:
        before = Snapshot.from_mapping({"A": "1", "INCLUDE": "x"})
        after = Snapshot.from_mapping({"A": "2"})

        script, result = render_transition(before, after)

        assert script.splitlines() == ["unset INCLUDE", "export A=2"]
        assert result.unset == 1

    def test_shell_managed_variables_ignored(self) -> None:
        before = Snapshot.from_mapping({"PWD": "/a", "SHLVL": "1"})
        after = Snapshot.from_mapping({"PWD": "/b", "_": "/usr/bin/python"})

        script, _ = render_transition(before, after)

        assert script == ""

    def test_non_identifiers_skipped(self) -> None:
        before = Snapshot.from_mapping({})
        after = Snapshot.from_mapping({"ProgramFiles(x86)": "C:\\x"})

        script, result = render_transition(before, after)

        assert script.startswith("# Skipped non-identifier")
        assert result.skipped == ["ProgramFiles(x86)"]
