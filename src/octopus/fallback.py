"""Try candidate strategies in order until one succeeds."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from octopus.models import (
    BatchEvent,
    BatchEventType,
    RepositoryDescriptor,
    StrategyAttempt,
    TaskResult,
)
from octopus.runner import ProcessRunner
from octopus.strategies import StrategyResolver

logger = logging.getLogger(__name__)

NO_STRATEGIES_ERROR = "no strategies available"


class FallbackExecutor:
    """Runs each candidate strategy sequentially, stopping at first success.

    Earlier failed attempts stay in ``TaskResult.attempted_strategies`` so a
    human can see which layout assumptions broke before the one that worked.
    """

    def __init__(
        self,
        runner: ProcessRunner | None = None,
        resolver: StrategyResolver | None = None,
        on_event: Callable[[BatchEvent], None] | None = None,
    ) -> None:
        self.runner = runner or ProcessRunner()
        self.resolver = resolver or StrategyResolver()
        self.on_event = on_event

    async def execute_with_fallback(
        self,
        action: str,
        descriptor: RepositoryDescriptor,
        timeout: float | None = None,
    ) -> TaskResult:
        start = time.monotonic()
        strategies = self.resolver.strategies_for(action, descriptor)
        attempts: list[StrategyAttempt] = []

        for index, strategy in enumerate(strategies):
            cwd = strategy.cwd if strategy.cwd is not None else descriptor.working_directory
            outcome = await self.runner.run(
                strategy.argv[0],
                strategy.argv[1:],
                working_directory=cwd,
                timeout=timeout,
            )
            attempt = StrategyAttempt(strategy.label, strategy.command, outcome)
            attempts.append(attempt)
            self._emit(descriptor.name, index, attempt)

            if outcome.ok:
                return TaskResult(
                    descriptor_name=descriptor.name,
                    succeeded=True,
                    attempted_strategies=attempts,
                    duration_ms=(time.monotonic() - start) * 1000,
                )
            logger.debug(
                "%s: strategy %s failed (%s)",
                descriptor.name,
                strategy.label,
                outcome.summary,
                extra={
                    "repository": descriptor.name,
                    "action": action,
                    "strategy": strategy.label,
                },
            )

        logger.debug(
            "%s: all %d strategies failed",
            descriptor.name,
            len(attempts),
            extra={"repository": descriptor.name, "action": action},
        )
        return TaskResult(
            descriptor_name=descriptor.name,
            succeeded=False,
            attempted_strategies=attempts,
            final_error=_aggregate_error(attempts),
            duration_ms=(time.monotonic() - start) * 1000,
        )

    def _emit(self, name: str, index: int, attempt: StrategyAttempt) -> None:
        if self.on_event is None:
            return
        self.on_event(
            BatchEvent(
                BatchEventType.STRATEGY_ATTEMPTED,
                name=name,
                data={
                    "index": index,
                    "label": attempt.label,
                    "command": attempt.command,
                    "succeeded": attempt.succeeded,
                },
                error=None if attempt.succeeded else attempt.outcome.summary,
            )
        )


def _aggregate_error(attempts: list[StrategyAttempt]) -> str:
    if not attempts:
        return NO_STRATEGIES_ERROR
    return "; ".join(f"{a.label}: {a.outcome.summary}" for a in attempts)
