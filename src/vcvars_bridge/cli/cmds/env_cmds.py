"""
CLI commands for importing and reverting the MSVC environment.

A child process cannot change its parent shell, so these commands run the
engine against an in-memory copy of their own environment and report the
outcome.

Usage:
    eval "$(vcvars-bridge env x64)"          # import into the current shell
    eval "$(vcvars-bridge env -clean_env)"   # revert it
    vcvars-bridge exec -- cl /nologo foo.c   # run one command in the toolchain env
    vcvars-bridge exec --vcvars x86 -- nmake
    vcvars-bridge status                     # inspect the current shell
"""

from __future__ import annotations

import subprocess

import typer

from vcvars_bridge.cli.output import print_cli_error, print_status
from vcvars_bridge.controller import ImportController
from vcvars_bridge.env.baseline import file_checksum
from vcvars_bridge.env.script import render_transition
from vcvars_bridge.env.store import EnvironmentStore, MemoryEnvironmentStore
from vcvars_bridge.errors import EX_OK, IntegrityError
from vcvars_bridge.logging import get_logger

logger = get_logger("cli")

_PASSTHROUGH = {"allow_extra_args": True, "ignore_unknown_options": True}


def _controller(store: EnvironmentStore) -> ImportController:
    return ImportController(store=store)


def env_cmd(
    ctx: typer.Context,
    args: list[str] | None = typer.Argument(
        None,
        help="vcvarsall.bat arguments (default: x64), or -clean_env to revert",
        show_default=False,
    ),
):
    """Print shell commands that import (or revert) the MSVC environment."""
    forwarded = list(args or []) + list(ctx.args)
    store = MemoryEnvironmentStore.from_process()
    before = store.snapshot()

    code = _controller(store).run(forwarded)
    if code != EX_OK:
        raise typer.Exit(code)

    script, result = render_transition(before, store.snapshot())
    for name in result.skipped:
        logger.warning(f"Cannot export {name!r} from a POSIX shell, skipped")
    typer.echo(script, nl=False)


def exec_cmd(
    command: list[str] = typer.Argument(
        ...,
        help="Command to run inside the imported environment",
    ),
    vcvars: list[str] = typer.Option(
        [],
        "--vcvars",
        help="vcvarsall.bat argument (repeatable, default: x64)",
    ),
):
    """Run a command with the MSVC environment imported."""
    store = MemoryEnvironmentStore.from_process()
    code = _controller(store).run(vcvars)
    if code != EX_OK:
        raise typer.Exit(code)

    try:
        completed = subprocess.run(command, env=store.as_dict(), check=False)
    except OSError as e:
        print_cli_error(f"cannot run {command[0]}: {e}")
        raise typer.Exit(127)
    raise typer.Exit(completed.returncode)


def status_cmd():
    """Show whether the current shell has the MSVC environment imported."""
    store = MemoryEnvironmentStore.from_process()
    controller = _controller(store)
    settings = controller.settings

    host = store.get(settings.host_marker)
    rows = [(settings.host_marker, host or "[red]undefined[/red]")]

    try:
        baseline = controller.baseline()
    except IntegrityError as e:
        print_cli_error(e.message, hint=e.hint)
        raise typer.Exit(e.exit_code)

    if baseline is None:
        rows.append(("State", "clean"))
    else:
        intact = file_checksum(baseline.path) == baseline.checksum
        rows.append(("State", "imported"))
        rows.append(("Baseline", str(baseline.path)))
        rows.append(("Baseline intact", "[green]yes[/green]" if intact else "[red]no[/red]"))

    rows.append((settings.cache_var, store.get(settings.cache_var) or "-"))
    print_status(rows)


def register(parent: typer.Typer):
    """Register environment commands with the parent CLI app."""
    # Top-level commands, no sub-app
    parent.command("env", context_settings=_PASSTHROUGH, rich_help_panel="Environment")(env_cmd)
    parent.command("exec", context_settings=_PASSTHROUGH, rich_help_panel="Environment")(
        exec_cmd
    )
    parent.command("status", rich_help_panel="Environment")(status_cmd)
