"""
Orchestrator - run one action across many repositories.

Every active repository becomes one named task. Tasks are admitted through a
ConcurrencyLimiter, each runs its strategies through the FallbackExecutor,
and a failing repository never stops its siblings: the batch always runs to
completion and reports failures as data.

Usage:
    from octopus import Orchestrator, OctopusConfig

    config = OctopusConfig.from_file("octopus.toml")
    orchestrator = Orchestrator(config)
    summary = await orchestrator.run_batch("install", config.descriptors())
    if not summary.ok:
        print(summary)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from octopus.config import OctopusConfig
from octopus.exceptions import ValidationError
from octopus.fallback import FallbackExecutor
from octopus.limiter import ConcurrencyLimiter
from octopus.models import (
    CLONE_ACTION,
    NOT_FOUND_ERROR,
    BatchEvent,
    BatchEventType,
    BatchSummary,
    RepositoryDescriptor,
    TaskResult,
    TaskStatus,
)
from octopus.runner import ProcessRunner
from octopus.strategies import StrategyResolver

logger = logging.getLogger(__name__)

NO_URL_ERROR = "no url configured"


class Orchestrator:
    """Runs batches of repository operations under a concurrency cap."""

    def __init__(
        self,
        config: OctopusConfig | None = None,
        *,
        runner: ProcessRunner | None = None,
        resolver: StrategyResolver | None = None,
        on_event: Callable[[BatchEvent], None] | None = None,
    ) -> None:
        self.config = config or OctopusConfig()
        self.runner = runner or ProcessRunner(default_timeout=self.config.default_timeout)
        self.resolver = resolver or StrategyResolver(package_manager=self.config.package_manager)
        self.on_event = on_event
        self._executor = FallbackExecutor(self.runner, self.resolver, on_event=self._emit)
        self._statuses: dict[str, TaskStatus] = {}

    @property
    def statuses(self) -> dict[str, TaskStatus]:
        """Lifecycle status of each task in the current or last batch."""
        return dict(self._statuses)

    def _emit(self, event: BatchEvent) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(event)
        except Exception:  # Catch-all: a broken subscriber must not break the batch
            logger.exception("Progress subscriber failed on %s", event.event_type.value)

    def _set_status(self, name: str, status: TaskStatus, error: str | None = None) -> None:
        self._statuses[name] = status
        event_type = {
            TaskStatus.PENDING: BatchEventType.TASK_QUEUED,
            TaskStatus.RUNNING: BatchEventType.TASK_STARTED,
            TaskStatus.SUCCEEDED: BatchEventType.TASK_SUCCEEDED,
            TaskStatus.FAILED: BatchEventType.TASK_FAILED,
        }[status]
        self._emit(BatchEvent(event_type, name=name, error=error))

    @staticmethod
    def _validate_names(descriptors: list[RepositoryDescriptor]) -> None:
        seen: set[str] = set()
        duplicates: list[str] = []
        for d in descriptors:
            if d.name in seen:
                duplicates.append(d.name)
            seen.add(d.name)
        if duplicates:
            raise ValidationError(
                f"Duplicate repository names: {', '.join(sorted(set(duplicates)))}",
                field_name="name",
                value=sorted(set(duplicates)),
            )

    @staticmethod
    def _precondition(action: str, descriptor: RepositoryDescriptor) -> TaskResult | None:
        """Return an immediate result when the descriptor cannot be scheduled."""
        exists = descriptor.working_directory.is_dir()
        if action == CLONE_ACTION:
            if exists:
                return TaskResult(descriptor_name=descriptor.name, succeeded=True, skipped=True)
            if not descriptor.url:
                return TaskResult(
                    descriptor_name=descriptor.name, succeeded=False, final_error=NO_URL_ERROR
                )
            return None
        if not exists:
            return TaskResult(
                descriptor_name=descriptor.name, succeeded=False, final_error=NOT_FOUND_ERROR
            )
        return None

    async def _run_one(
        self, action: str, descriptor: RepositoryDescriptor, timeout: float
    ) -> TaskResult:
        self._set_status(descriptor.name, TaskStatus.RUNNING)
        start = time.monotonic()
        try:
            if action == CLONE_ACTION:
                descriptor.working_directory.parent.mkdir(parents=True, exist_ok=True)
            result = await self._executor.execute_with_fallback(action, descriptor, timeout)
        except Exception as exc:  # Catch-all: task failures are captured as TaskResult
            logger.exception(
                "%s: unexpected error during %s",
                descriptor.name,
                action,
                extra={"repository": descriptor.name, "action": action},
            )
            result = TaskResult(
                descriptor_name=descriptor.name,
                succeeded=False,
                final_error=f"{type(exc).__name__}: {exc}",
                duration_ms=(time.monotonic() - start) * 1000,
            )
        self._finish(action, result)
        return result

    def _finish(self, action: str, result: TaskResult) -> None:
        if result.succeeded:
            self._set_status(result.descriptor_name, TaskStatus.SUCCEEDED)
        else:
            logger.warning(
                "%s failed: %s",
                result.descriptor_name,
                result.final_error,
                extra={"repository": result.descriptor_name, "action": action},
            )
            self._set_status(result.descriptor_name, TaskStatus.FAILED, error=result.final_error)

    async def run_batch(
        self,
        action: str,
        descriptors: Iterable[RepositoryDescriptor],
        cap: int | None = None,
        timeout: float | None = None,
    ) -> BatchSummary:
        """Run ``action`` for every active descriptor and summarize.

        Args:
            action: Logical action name (``install``, ``clone``, ``build``...).
            descriptors: Repositories to process; inactive ones are dropped.
            cap: Max concurrent tasks (default: config value for the action).
            timeout: Per-process timeout in seconds (default: config value).

        Returns:
            BatchSummary with exactly one result per active descriptor.

        Raises:
            ValidationError: If two active descriptors share a name.
            ValueError: If ``cap`` is less than 1.
        """
        active = [d for d in descriptors if d.active]
        self._validate_names(active)
        cap = self.config.concurrency_for(action) if cap is None else cap
        timeout = self.config.timeout_for(action) if timeout is None else timeout
        limiter = ConcurrencyLimiter(cap)

        self._statuses = {}
        logger.info(
            "Starting %s for %d repositories (cap=%d, timeout=%.0fs)",
            action,
            len(active),
            cap,
            timeout,
        )
        self._emit(
            BatchEvent(
                BatchEventType.BATCH_START,
                data={"action": action, "total": len(active), "cap": cap, "timeout": timeout},
            )
        )

        results: dict[str, TaskResult] = {}
        pending: dict[str, asyncio.Task[TaskResult]] = {}
        for descriptor in active:
            self._set_status(descriptor.name, TaskStatus.PENDING)
            immediate = self._precondition(action, descriptor)
            if immediate is not None:
                results[descriptor.name] = immediate
                self._finish(action, immediate)
                continue
            pending[descriptor.name] = asyncio.create_task(
                limiter.schedule(
                    lambda d=descriptor: self._run_one(action, d, timeout)
                ),
                name=f"octopus-{action}-{descriptor.name}",
            )

        if pending:
            outcomes = await asyncio.gather(*pending.values(), return_exceptions=True)
            for name, outcome in zip(pending, outcomes):
                if isinstance(outcome, BaseException):
                    outcome = TaskResult(
                        descriptor_name=name,
                        succeeded=False,
                        final_error=f"{type(outcome).__name__}: {outcome}",
                    )
                    self._finish(action, outcome)
                results[name] = outcome

        summary = BatchSummary.from_results(action, [results[d.name] for d in active])
        logger.info(
            "Finished %s: %d/%d succeeded",
            action,
            summary.succeeded_count,
            summary.total,
        )
        self._emit(
            BatchEvent(
                BatchEventType.BATCH_COMPLETE,
                data={
                    "action": action,
                    "total": summary.total,
                    "succeeded": summary.succeeded_count,
                    "failed": summary.failed_count,
                },
            )
        )
        return summary

    def run_batch_sync(
        self,
        action: str,
        descriptors: Iterable[RepositoryDescriptor],
        cap: int | None = None,
        timeout: float | None = None,
    ) -> BatchSummary:
        """Blocking wrapper around :meth:`run_batch`."""
        return asyncio.run(self.run_batch(action, descriptors, cap=cap, timeout=timeout))
