"""Run one external command under a timeout and classify the result.

A non-zero exit, a timeout or a spawn error is a normal ``Failure`` outcome,
never an exception, so callers can compose fallbacks with plain loops.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from octopus.models import ExecutionOutcome, Failure, Success

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
# Time allowed for a killed child to be reaped before we stop waiting on it.
KILL_GRACE_PERIOD = 0.5


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


class ProcessRunner:
    """Spawns child processes with ``asyncio.create_subprocess_exec``."""

    def __init__(
        self,
        default_timeout: float = DEFAULT_TIMEOUT,
        kill_grace_period: float = KILL_GRACE_PERIOD,
    ) -> None:
        self.default_timeout = default_timeout
        self.kill_grace_period = kill_grace_period

    async def run(
        self,
        command: str,
        args: Sequence[str] = (),
        working_directory: str | Path | None = None,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ExecutionOutcome:
        """Run ``command`` with ``args`` and return its outcome.

        Args:
            command: Executable name or path.
            args: Argument vector (without the executable).
            working_directory: Directory the child runs in.
            timeout: Seconds before the child is killed (default 300).
            env: Extra environment variables on top of the inherited ones.
        """
        effective_timeout = self.default_timeout if timeout is None else timeout
        child_env = {**os.environ, **env} if env else None
        cwd = str(working_directory) if working_directory is not None else None
        start = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=child_env,
            )
        except OSError as exc:
            logger.debug("Could not spawn %s in %s: %s", command, cwd, exc)
            return Failure(exit_code=None, stderr=str(exc))

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=effective_timeout
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.debug(
                "%s timed out after %.1fs in %s", command, time.monotonic() - start, cwd
            )
            return Failure(
                exit_code=None,
                duration_exceeded=True,
                timeout=effective_timeout,
            )
        except BaseException:
            await self._kill(process)
            raise

        if process.returncode == 0:
            return Success(stdout=_decode(stdout))
        return Failure(exit_code=process.returncode, stderr=_decode(stderr))

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=self.kill_grace_period)
        except asyncio.TimeoutError:
            logger.warning("Process %s did not exit after kill", process.pid)
