"""
Command-line interface for specfleet.

Runs a share of a parallel test run: specs are claimed from the
orchestration service, executed locally and reported back.
"""

from __future__ import annotations

import typer
from rich.console import Console

from sf_common.logging import configure_logging
from sf_ui.cli.commands.run import register_run_command

_console = Console()


def console_provider() -> Console:
    return _console


app = typer.Typer(
    help="Run test specs claimed from the specfleet orchestration service.",
    no_args_is_help=True,
)


@app.callback(invoke_without_command=True)
def entry(
    ctx: typer.Context,
    debug: bool = typer.Option(False, "--debug", help="Enable verbose debug logging."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON lines."),
) -> None:
    """Global entry point configuring logging."""
    configure_logging(debug=debug, json=json_logs or None, force=True)
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


register_run_command(app, console_provider)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
