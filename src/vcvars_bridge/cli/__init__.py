from __future__ import annotations

import typer

from vcvars_bridge import __version__
from vcvars_bridge.cli.cmds import register_env
from vcvars_bridge.cli.output import console
from vcvars_bridge.logging import configure_logging


def version_callback(value: bool):
    """Show version and exit."""
    if value:
        console.print(f"vcvars-bridge [dim]v{__version__}[/dim]")
        raise typer.Exit()


_TYPER_HELP = """Import the MSVC build environment into an MSYS2 shell, and revert it.

**Quick start:**

* `eval "$(vcvars-bridge env x64)"`: Import the x64 toolchain
* `eval "$(vcvars-bridge env -clean_env)"`: Revert to the saved environment
* `vcvars-bridge exec -- cl /nologo hello.c`: Run one command with the toolchain
* `vcvars-bridge status`: Show the current state
"""

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=_TYPER_HELP,
    rich_markup_mode="markdown",
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        envvar="VCVARS_BRIDGE_LOG_LEVEL",
        help="Log level (DEBUG, INFO, WARNING, ERROR).",
    ),
    log_format: str = typer.Option(
        "human",
        "--log-format",
        envvar="VCVARS_BRIDGE_LOG_FORMAT",
        help="Log format: human or json.",
    ),
):
    """vcvars-bridge: MSVC environment for MSYS2 shells."""
    configure_logging(level=log_level, format=log_format.lower())


register_env(app)


def main():
    app()


if __name__ == "__main__":
    main()
