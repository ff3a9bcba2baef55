"""CLI interface for Octopus."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from octopus import __version__
from octopus.config import OctopusConfig, configure_logging
from octopus.exceptions import OctopusError
from octopus.models import CLONE_ACTION, BatchSummary, RepositoryDescriptor
from octopus.orchestrator import Orchestrator
from octopus.strategies import StrategyResolver
from octopus.ui import (
    BatchProgress,
    print_batch_header,
    print_error,
    print_repositories,
    print_strategies,
    print_summary,
)

app = typer.Typer(
    name="octopus",
    help="Run installs, clones and scripts across many repositories at once.",
    no_args_is_help=True,
)
console = Console()

ConfigOption = Annotated[
    Path | None, typer.Option("--config", "-c", help="Config file path (TOML or JSON)")
]
OnlyOption = Annotated[
    list[str] | None,
    typer.Option("--only", "-o", help="Limit to the named repository (repeatable)"),
]
MaxConcurrentOption = Annotated[
    int | None, typer.Option("--max-concurrent", "-j", min=1, help="Max concurrent repositories")
]
TimeoutOption = Annotated[
    float | None, typer.Option("--timeout", "-t", help="Per-command timeout in seconds")
]
JsonOption = Annotated[
    bool, typer.Option("--json", help="Output the batch summary as machine-readable JSON")
]
DryRunOption = Annotated[
    bool, typer.Option("--dry-run", help="Show the commands that would run without running them")
]
VerboseOption = Annotated[
    bool, typer.Option("--verbose", "-v", help="Show every strategy attempted")
]
LogLevelOption = Annotated[
    str | None, typer.Option("--log-level", help="Override the configured log level")
]


def version_callback(value: bool) -> None:
    if value:
        console.print(f"octopus version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Octopus - coordinate repository operations."""


def _load_config(path: Path | None, log_level: str | None = None) -> OctopusConfig:
    config_path = path or OctopusConfig.default_path()
    try:
        config = OctopusConfig.from_file(config_path)
        if log_level:
            config.log_level = OctopusConfig.model_validate({"log_level": log_level}).log_level
    except OctopusError as exc:
        print_error(console, str(exc))
        raise typer.Exit(1) from None
    except ValueError as exc:
        print_error(console, f"Invalid option: {exc}")
        raise typer.Exit(1) from None
    configure_logging(config)
    return config


def _run_action(
    action: str,
    *,
    config_path: Path | None,
    only: list[str] | None,
    max_concurrent: int | None,
    timeout: float | None,
    json_output: bool,
    dry_run: bool,
    verbose: bool,
    log_level: str | None,
) -> None:
    if timeout is not None and timeout <= 0:
        print_error(console, f"--timeout must be positive, got {timeout:g}")
        raise typer.Exit(1)
    config = _load_config(config_path, log_level)
    try:
        descriptors = config.descriptors(only or None)
    except OctopusError as exc:
        print_error(console, str(exc))
        raise typer.Exit(1) from None

    if not descriptors:
        console.print("[yellow]No active repositories configured.[/yellow]")
        raise typer.Exit(0)

    cap = max_concurrent if max_concurrent is not None else config.concurrency_for(action)
    effective_timeout = timeout if timeout is not None else config.timeout_for(action)

    if dry_run:
        resolver = StrategyResolver(package_manager=config.package_manager)
        plan = [(d.name, resolver.strategies_for(action, d)) for d in descriptors]
        print_batch_header(console, action, len(descriptors), cap, effective_timeout)
        print_strategies(console, plan, action)
        console.print("\n[yellow bold]DRY RUN: No commands executed[/yellow bold]")
        raise typer.Exit(0)

    if json_output:
        orchestrator = Orchestrator(config)
        summary = _run_batch(orchestrator, action, descriptors, cap, effective_timeout)
        typer.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        print_batch_header(console, action, len(descriptors), cap, effective_timeout)
        progress = BatchProgress(console, title=f"{action} progress")
        orchestrator = Orchestrator(config, on_event=progress.handle)
        with progress:
            summary = _run_batch(orchestrator, action, descriptors, cap, effective_timeout)
        print_summary(console, summary, verbose=verbose)

    if not summary.ok:
        raise typer.Exit(1)


def _run_batch(
    orchestrator: Orchestrator,
    action: str,
    descriptors: list[RepositoryDescriptor],
    cap: int,
    timeout: float,
) -> BatchSummary:
    try:
        return asyncio.run(
            orchestrator.run_batch(action, descriptors, cap=cap, timeout=timeout)
        )
    except OctopusError as exc:
        print_error(console, str(exc))
        raise typer.Exit(1) from None


@app.command()
def install(
    config: ConfigOption = None,
    only: OnlyOption = None,
    max_concurrent: MaxConcurrentOption = None,
    timeout: TimeoutOption = None,
    json_output: JsonOption = False,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """Install dependencies in every active repository."""
    _run_action(
        "install",
        config_path=config,
        only=only,
        max_concurrent=max_concurrent,
        timeout=timeout,
        json_output=json_output,
        dry_run=dry_run,
        verbose=verbose,
        log_level=log_level,
    )


@app.command("run")
def run_command(
    action: Annotated[str, typer.Argument(help="Action or script name, e.g. build, sdk-update")],
    config: ConfigOption = None,
    only: OnlyOption = None,
    max_concurrent: MaxConcurrentOption = None,
    timeout: TimeoutOption = None,
    json_output: JsonOption = False,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """
    Run an action in every active repository, with monorepo fallbacks.

    Examples:
        octopus run build
        octopus run sdk-update --only host --max-concurrent 1
        octopus run test --dry-run
    """
    _run_action(
        action,
        config_path=config,
        only=only,
        max_concurrent=max_concurrent,
        timeout=timeout,
        json_output=json_output,
        dry_run=dry_run,
        verbose=verbose,
        log_level=log_level,
    )


@app.command()
def clone(
    config: ConfigOption = None,
    only: OnlyOption = None,
    max_concurrent: MaxConcurrentOption = None,
    timeout: TimeoutOption = None,
    json_output: JsonOption = False,
    dry_run: DryRunOption = False,
    verbose: VerboseOption = False,
    log_level: LogLevelOption = None,
) -> None:
    """Clone every active repository that is not yet present."""
    _run_action(
        CLONE_ACTION,
        config_path=config,
        only=only,
        max_concurrent=max_concurrent,
        timeout=timeout,
        json_output=json_output,
        dry_run=dry_run,
        verbose=verbose,
        log_level=log_level,
    )


@app.command("list")
def list_command(config: ConfigOption = None) -> None:
    """List configured repositories."""
    cfg = _load_config(config)
    if not cfg.repositories:
        console.print("[yellow]No repositories configured. Run 'octopus init' first.[/yellow]")
        return
    print_repositories(console, cfg, show_paths=False)


@app.command()
def status(config: ConfigOption = None) -> None:
    """Show whether each configured repository is present on disk."""
    cfg = _load_config(config)
    if not cfg.repositories:
        console.print("[yellow]No repositories configured. Run 'octopus init' first.[/yellow]")
        return
    print_repositories(console, cfg)


@app.command()
def init(
    path: Annotated[
        Path | None, typer.Option("--path", "-p", help="Config file path")
    ] = None,
    force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing file")] = False,
) -> None:
    """Create a starter config file."""
    import tomli_w

    if path is None:
        path = OctopusConfig.default_path()
    if path.exists() and not force:
        print_error(console, f"Config already exists at {path} (use --force to overwrite)")
        raise typer.Exit(1)
    path.parent.mkdir(parents=True, exist_ok=True)

    defaults = OctopusConfig()
    config = {
        "package_manager": defaults.package_manager,
        "default_concurrency": defaults.default_concurrency,
        "default_timeout": defaults.default_timeout,
        "log_level": defaults.log_level,
        "concurrency": dict(defaults.concurrency),
        "timeouts": dict(defaults.timeouts),
        "repositories": [
            {
                "name": "example-app",
                "local_path": "example-app",
                "url": "git@github.com:example/example-app.git",
                "active": False,
                "description": "Replace with your repository",
            },
        ],
    }

    with open(path, "wb") as f:
        tomli_w.dump(config, f)

    console.print(f"[green]Created config at:[/green] {path}")
