from __future__ import annotations

import asyncio
import json
import logging
import shlex
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

import pytest

from octopus.models import ExecutionOutcome, RepositoryDescriptor, Success


@dataclass
class Call:
    command: str
    cwd: Path
    timeout: float | None


class FakeRunner:
    """Stands in for ProcessRunner; outcomes are looked up by command string.

    ``script`` keys are either a command string or a ``(directory name,
    command)`` pair; values are outcomes or exceptions to raise.
    """

    def __init__(
        self,
        script: dict | None = None,
        default: ExecutionOutcome | None = None,
        delay: float = 0.0,
    ) -> None:
        self.script = script or {}
        self.default = default if default is not None else Success("ok")
        self.delay = delay
        self.calls: list[Call] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._per_dir: dict[Path, int] = defaultdict(int)
        self.max_per_dir = 0

    async def run(self, command, args=(), working_directory=None, timeout=None, env=None):
        cmd = shlex.join([command, *args])
        cwd = Path(working_directory)
        self.calls.append(Call(cmd, cwd, timeout))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self._per_dir[cwd] += 1
        self.max_per_dir = max(self.max_per_dir, self._per_dir[cwd])
        try:
            await asyncio.sleep(self.delay)
            outcome = self.script.get((cwd.name, cmd), self.script.get(cmd, self.default))
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1
            self._per_dir[cwd] -= 1

    def commands_in(self, name: str) -> list[str]:
        return [c.command for c in self.calls if c.cwd.name == name]


@pytest.fixture
def fake_runner():
    """Factory for FakeRunner instances."""
    return FakeRunner


@pytest.fixture
def make_repo(tmp_path):
    """Create a repository directory and return its descriptor."""

    def _make(
        name: str,
        *,
        prefix: str | None = None,
        scripts: list[str] | None = None,
        create: bool = True,
        active: bool = True,
        url: str | None = None,
    ) -> RepositoryDescriptor:
        path = tmp_path / name
        if create:
            path.mkdir()
            if scripts is not None:
                manifest = {"name": name, "scripts": {s: "echo" for s in scripts}}
                (path / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
        return RepositoryDescriptor(
            name=name,
            working_directory=path,
            monorepo_prefix=prefix,
            active=active,
            url=url,
        )

    return _make


@pytest.fixture
def restore_logging():
    """Undo root logger changes made by configure_logging."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("octopus.runner").setLevel(logging.NOTSET)
