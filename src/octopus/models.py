"""Value types shared by the runner, resolver, fallback executor and orchestrator."""

from __future__ import annotations

import shlex
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Union

CLONE_ACTION = "clone"
NOT_FOUND_ERROR = "not found"


@dataclass(frozen=True)
class RepositoryDescriptor:
    """One independent target of a batch operation."""

    name: str
    working_directory: Path
    monorepo_prefix: str | None = None
    active: bool = True
    url: str | None = None


@dataclass(frozen=True)
class Strategy:
    """One candidate way of invoking an action for a descriptor."""

    label: str
    argv: tuple[str, ...]
    cwd: Path | None = None  # overrides the descriptor's working directory

    @property
    def command(self) -> str:
        return shlex.join(self.argv)


@dataclass(frozen=True)
class Success:
    """Child process exited with code 0."""

    stdout: str = ""

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """Child process failed, timed out, or could not be spawned.

    ``exit_code`` is None when the process never produced one: either it was
    killed on timeout (``duration_exceeded``) or it failed to start.
    """

    exit_code: int | None = None
    stderr: str = ""
    duration_exceeded: bool = False
    timeout: float | None = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def summary(self) -> str:
        """One-line description suitable for aggregate reporting."""
        if self.duration_exceeded:
            if self.timeout is not None:
                return f"timed out after {self.timeout:g}s"
            return "timed out"
        for line in self.stderr.splitlines():
            if line.strip():
                if self.exit_code is None:
                    return line.strip()
                return f"exit code {self.exit_code}: {line.strip()}"
        if self.exit_code is None:
            return "failed to start"
        return f"exit code {self.exit_code}"


ExecutionOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class StrategyAttempt:
    """A strategy that was actually run, with what it produced."""

    label: str
    command: str
    outcome: ExecutionOutcome

    @property
    def succeeded(self) -> bool:
        return self.outcome.ok


@dataclass
class TaskResult:
    """Per-descriptor result of a batch."""

    descriptor_name: str
    succeeded: bool
    attempted_strategies: list[StrategyAttempt] = field(default_factory=list)
    final_error: str | None = None
    skipped: bool = False
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.descriptor_name,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "final_error": self.final_error,
            "duration_ms": round(self.duration_ms, 1),
            "attempts": [
                {
                    "label": a.label,
                    "command": a.command,
                    "succeeded": a.succeeded,
                    "outcome": asdict(a.outcome),
                }
                for a in self.attempted_strategies
            ],
        }


class TaskStatus(str, Enum):
    """Lifecycle of one orchestrated task."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class BatchSummary:
    """Aggregate of one orchestration call.

    ``results`` keeps every TaskResult in submission order, so the mapping
    from descriptor to result can be checked after the fact.
    """

    action: str = ""
    total: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    failures: list[tuple[str, str]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    results: list[TaskResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, action: str, results: list[TaskResult]) -> BatchSummary:
        summary = cls(action=action, total=len(results), results=list(results))
        for r in results:
            if r.succeeded:
                summary.succeeded_count += 1
                if r.skipped:
                    summary.skipped.append(r.descriptor_name)
            else:
                summary.failed_count += 1
                summary.failures.append((r.descriptor_name, r.final_error or "unknown error"))
        return summary

    @property
    def ok(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "total": self.total,
            "succeeded": self.succeeded_count,
            "failed": self.failed_count,
            "skipped": list(self.skipped),
            "failures": [{"name": n, "error": e} for n, e in self.failures],
            "results": [r.to_dict() for r in self.results],
        }

    def __str__(self) -> str:
        lines = [
            f"═══ {self.action or 'batch'} summary ═══",
            f"Repositories: {self.succeeded_count}/{self.total} succeeded",
        ]
        if self.skipped:
            lines.append(f"Skipped: {', '.join(self.skipped)}")
        if self.failed_count:
            lines.append(f"Failed: {self.failed_count}")
            for name, error in self.failures:
                lines.append(f"  - {name}: {error}")
        return "\n".join(lines)


class BatchEventType(Enum):
    """Types of progress events emitted during a batch."""

    BATCH_START = "batch_start"
    TASK_QUEUED = "task_queued"
    TASK_STARTED = "task_started"
    STRATEGY_ATTEMPTED = "strategy_attempted"
    TASK_SUCCEEDED = "task_succeeded"
    TASK_FAILED = "task_failed"
    BATCH_COMPLETE = "batch_complete"


@dataclass
class BatchEvent:
    """Progress event for UI layers.

    Attributes:
        event_type: Type of the event
        name: Descriptor name (None for batch-level events)
        timestamp: When the event occurred
        data: Additional event-specific data
        error: Error message for failure events
    """

    event_type: BatchEventType
    name: str | None = None
    timestamp: float = field(default_factory=time.time)
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
