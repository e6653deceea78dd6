from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich.console import Console

from sf_common.errors import AuthorityError, ConfigurationError
from sf_runner.api import RunnerConfig, RunOutcome, RunParameters, run
from sf_runner.models.config import DEFAULT_CONFIG_FILENAME
from sf_ui.presenters.summary import build_summary_table


def resolve_config(config_path: Optional[Path]) -> RunnerConfig:
    """Load the config file (explicit or ./specfleet.json) and overlay SF_* env."""
    if config_path is not None:
        base = RunnerConfig.load(config_path)
    elif Path(DEFAULT_CONFIG_FILENAME).exists():
        base = RunnerConfig.load(Path(DEFAULT_CONFIG_FILENAME))
    else:
        base = RunnerConfig()
    return base.with_env()


def register_run_command(
    app: typer.Typer,
    console_provider: Callable[[], Console],
    runner: Callable[[RunnerConfig, RunParameters], RunOutcome] = run,
) -> None:
    """Register the run command on the given Typer app."""

    @app.command("run")
    def run_command(
        specs: List[str] = typer.Argument(
            ...,
            help="Spec files to register with the run; machines share the same list.",
        ),
        config: Optional[Path] = typer.Option(
            None,
            "--config",
            "-c",
            help=f"Config file to load; uses ./{DEFAULT_CONFIG_FILENAME} when present.",
        ),
        api_url: Optional[str] = typer.Option(None, "--api-url", help="Orchestration service URL."),
        record_key: Optional[str] = typer.Option(
            None, "--record-key", "-k", help="Record key (or SF_RECORD_KEY)."
        ),
        project_id: Optional[str] = typer.Option(None, "--project", "-p", help="Project id."),
        ci_build_id: Optional[str] = typer.Option(
            None, "--ci-build-id", help="Identifier shared by all machines of this run."
        ),
        group: Optional[str] = typer.Option(None, "--group", "-g", help="Run group name."),
        tags: List[str] = typer.Option([], "--tag", "-t", help="Run tag; repeat for more."),
        batch_size: Optional[int] = typer.Option(
            None, "--batch-size", "-b", min=1, help="Specs claimed per request in batched mode."
        ),
    ) -> None:
        """Claim specs from the service, run them and report results."""
        console = console_provider()
        try:
            resolved = resolve_config(config).with_overrides(
                api_url=api_url, record_key=record_key, project_id=project_id
            )
            params = RunParameters.from_env(
                specs, ci_build_id=ci_build_id, group=group, tags=tags, batch_size=batch_size
            )
        except ConfigurationError as exc:
            console.print(f"[red]Configuration error:[/red] {exc}")
            if exc.__cause__ is not None:
                console.print(str(exc.__cause__))
            raise typer.Exit(2)

        try:
            outcome = runner(resolved, params)
        except AuthorityError as exc:
            console.print(f"[red]Run aborted:[/red] {exc}")
            raise typer.Exit(1)

        if outcome.summary:
            console.print(build_summary_table(outcome.summary))
        else:
            console.print("No specs were executed by this machine.")
        if outcome.run_url:
            console.print(f"Recorded run: {outcome.run_url}")
        raise typer.Exit(outcome.exit_code)
