"""Console presentation for batches and repository listings."""

from __future__ import annotations

from pathlib import Path

from rich.box import ROUNDED
from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from octopus.config import OctopusConfig
from octopus.models import BatchEvent, BatchEventType, BatchSummary, Strategy, TaskStatus


class Theme:
    """Color theme for console output."""

    SUCCESS = "green"
    ERROR = "red"


class Icons:
    """Unicode icons for console output."""

    DONE = "✓"
    ERROR = "✗"
    PENDING = "⏳"
    RUNNING = "⚡"
    SKIPPED = "⏭"


_STATUS_BADGES = {
    TaskStatus.PENDING: f"[dim]{Icons.PENDING} pending[/dim]",
    TaskStatus.RUNNING: f"[yellow]{Icons.RUNNING} running[/yellow]",
    TaskStatus.SUCCEEDED: f"[green]{Icons.DONE} done[/green]",
    TaskStatus.FAILED: f"[red]{Icons.ERROR} failed[/red]",
}


class BatchProgress:
    """Live status table fed by orchestrator events.

    Usage:
        progress = BatchProgress(console)
        orchestrator = Orchestrator(config, on_event=progress.handle)
        with progress:
            summary = await orchestrator.run_batch("install", descriptors)
    """

    def __init__(self, console: Console, title: str = "Progress") -> None:
        self.console = console
        self.title = title
        self.statuses: dict[str, TaskStatus] = {}
        self.last_strategy: dict[str, str] = {}
        self.errors: dict[str, str] = {}
        self._live: Live | None = None

    def __enter__(self) -> BatchProgress:
        self._live = Live(self.build_table(), console=self.console, refresh_per_second=4)
        self._live.__enter__()
        return self

    def __exit__(self, *exc: object) -> None:
        if self._live is not None:
            self._live.update(self.build_table())
            self._live.__exit__(None, None, None)
            self._live = None

    def handle(self, event: BatchEvent) -> None:
        name = event.name
        if name is not None:
            if event.event_type == BatchEventType.TASK_QUEUED:
                self.statuses[name] = TaskStatus.PENDING
            elif event.event_type == BatchEventType.TASK_STARTED:
                self.statuses[name] = TaskStatus.RUNNING
            elif event.event_type == BatchEventType.STRATEGY_ATTEMPTED:
                self.last_strategy[name] = event.data.get("command", "")
            elif event.event_type == BatchEventType.TASK_SUCCEEDED:
                self.statuses[name] = TaskStatus.SUCCEEDED
            elif event.event_type == BatchEventType.TASK_FAILED:
                self.statuses[name] = TaskStatus.FAILED
                if event.error:
                    self.errors[name] = event.error
        if self._live is not None:
            self._live.update(self.build_table())

    def build_table(self) -> Table:
        table = Table(title=escape(self.title), expand=True)
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Status", justify="center")
        table.add_column("Command", max_width=60)
        for name, status in self.statuses.items():
            detail = self.errors.get(name) or self.last_strategy.get(name, "")
            table.add_row(Text(name), _STATUS_BADGES[status], Text(detail[:60]))
        return table


def print_batch_header(console: Console, action: str, total: int, cap: int, timeout: float) -> None:
    console.print(
        Panel(
            f"[bold]{escape(action)}[/bold] on {total} repositor{'y' if total == 1 else 'ies'} • "
            f"max concurrent: {cap} • timeout: {timeout:.0f}s",
            title="🐙 Octopus",
            border_style="blue",
        )
    )


def print_summary(console: Console, summary: BatchSummary, *, verbose: bool = False) -> None:
    """Print per-repository results and the aggregate counts."""
    for result in summary.results:
        name = escape(result.descriptor_name)
        if result.skipped:
            console.print(f"[dim]{Icons.SKIPPED} {name}: already present[/dim]")
        elif result.succeeded:
            used = result.attempted_strategies[-1].command if result.attempted_strategies else ""
            console.print(
                f"[{Theme.SUCCESS}]{Icons.DONE} {name}[/{Theme.SUCCESS}]"
                f" [dim]{escape(used)}[/dim]"
            )
        else:
            console.print(
                f"[{Theme.ERROR}]{Icons.ERROR} {name}: "
                f"{escape(result.final_error or '')}[/{Theme.ERROR}]"
            )
        if verbose:
            for attempt in result.attempted_strategies:
                mark = Icons.DONE if attempt.succeeded else Icons.ERROR
                console.print(
                    f"    [dim]{mark} {attempt.label}: {escape(attempt.command)}[/dim]"
                )

    style = Theme.SUCCESS if summary.ok else Theme.ERROR
    console.print(
        f"\n[bold {style}]{summary.succeeded_count}/{summary.total} succeeded"
        f"[/bold {style}]"
        + (f", [red]{summary.failed_count} failed[/red]" if summary.failed_count else "")
    )


def print_strategies(
    console: Console, plan: list[tuple[str, list[Strategy]]], action: str
) -> None:
    """Render the commands a batch would try, without running them."""
    tbl = Table(title=f"Strategies for {escape(action)}", expand=True)
    tbl.add_column("Repository", style="cyan", no_wrap=True)
    tbl.add_column("#", justify="right", style="dim")
    tbl.add_column("Strategy", style="magenta")
    tbl.add_column("Command")
    for name, strategies in plan:
        if not strategies:
            tbl.add_row(Text(name), "—", "—", "[dim]no strategies[/dim]")
        for index, strategy in enumerate(strategies, 1):
            tbl.add_row(
                Text(name if index == 1 else ""),
                str(index),
                strategy.label,
                Text(strategy.command),
            )
    console.print(tbl)


def print_repositories(console: Console, config: OctopusConfig, *, show_paths: bool = True) -> None:
    """Tabular listing of configured repositories and their on-disk state."""
    base = config.resolve_base_dir()
    tbl = Table(title="Repositories", expand=True)
    tbl.add_column("Name", style="cyan", no_wrap=True)
    tbl.add_column("Status", justify="center")
    if show_paths:
        tbl.add_column("Path", style="dim")
    tbl.add_column("Prefix", style="magenta")
    tbl.add_column("Port", justify="right")
    tbl.add_column("Description", max_width=40)
    for repo in config.repositories:
        path = (base / repo.local_path).resolve()
        row = [Text(repo.name), _presence_badge(repo.active, path)]
        if show_paths:
            row.append(Text(str(path)))
        row.extend(
            [
                Text(repo.monorepo_prefix or "—"),
                str(repo.port) if repo.port is not None else "—",
                Text(repo.description),
            ]
        )
        tbl.add_row(*row)
    console.print(tbl)


def _presence_badge(active: bool, path: Path) -> str:
    if not active:
        return "[red]inactive[/red]"
    if path.is_dir():
        return "[green]present[/green]"
    return "[yellow]not cloned[/yellow]"


def print_error(console: Console, error: str) -> None:
    """Print an error message."""
    console.print(
        Panel(
            Text(f"{Icons.ERROR} {error}", style=Theme.ERROR),
            border_style=Theme.ERROR,
            title="Error",
            title_align="left",
            box=ROUNDED,
        )
    )
