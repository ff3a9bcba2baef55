from __future__ import annotations

import sys
import time
from pathlib import Path

import pytest

from octopus.models import Failure, Success
from octopus.runner import DEFAULT_TIMEOUT, ProcessRunner

PY = sys.executable


class TestProcessRunner:
    def test_default_timeout(self):
        assert ProcessRunner().default_timeout == DEFAULT_TIMEOUT == 300.0

    @pytest.mark.asyncio
    async def test_success_captures_stdout(self, tmp_path):
        outcome = await ProcessRunner().run(PY, ["-c", "print('hello')"], tmp_path)

        assert isinstance(outcome, Success)
        assert outcome.ok
        assert outcome.stdout.strip() == "hello"

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_failure_not_exception(self, tmp_path):
        code = "import sys; sys.stderr.write('boom\\nsecond line\\n'); sys.exit(3)"
        outcome = await ProcessRunner().run(PY, ["-c", code], tmp_path)

        assert isinstance(outcome, Failure)
        assert not outcome.ok
        assert outcome.exit_code == 3
        assert outcome.duration_exceeded is False
        assert "second line" in outcome.stderr
        assert outcome.summary == "exit code 3: boom"

    @pytest.mark.asyncio
    async def test_runs_in_working_directory(self, tmp_path):
        outcome = await ProcessRunner().run(PY, ["-c", "import os; print(os.getcwd())"], tmp_path)

        assert isinstance(outcome, Success)
        assert Path(outcome.stdout.strip()).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_environment_is_inherited_and_extended(self, tmp_path, monkeypatch):
        monkeypatch.setenv("OCTOPUS_INHERITED", "parent")
        code = "import os; print(os.environ['OCTOPUS_INHERITED'], os.environ['OCTOPUS_EXTRA'])"
        outcome = await ProcessRunner().run(
            PY, ["-c", code], tmp_path, env={"OCTOPUS_EXTRA": "child"}
        )

        assert isinstance(outcome, Success)
        assert outcome.stdout.split() == ["parent", "child"]

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        start = time.monotonic()
        outcome = await ProcessRunner().run(
            PY, ["-c", "import time; time.sleep(30)"], tmp_path, timeout=0.5
        )
        elapsed = time.monotonic() - start

        assert isinstance(outcome, Failure)
        assert outcome.duration_exceeded is True
        assert outcome.exit_code is None
        assert outcome.summary == "timed out after 0.5s"
        assert elapsed < 0.5 + 0.5

    @pytest.mark.asyncio
    async def test_per_call_timeout_overrides_default(self, tmp_path):
        runner = ProcessRunner(default_timeout=0.3)
        outcome = await runner.run(
            PY, ["-c", "import time; time.sleep(0.8); print('late')"], tmp_path, timeout=10
        )
        assert isinstance(outcome, Success)

    @pytest.mark.asyncio
    async def test_missing_executable_is_failure(self, tmp_path):
        outcome = await ProcessRunner().run("octopus-no-such-binary-xyz", ["install"], tmp_path)

        assert isinstance(outcome, Failure)
        assert outcome.exit_code is None
        assert outcome.duration_exceeded is False
        assert outcome.stderr

    @pytest.mark.asyncio
    async def test_missing_working_directory_is_failure(self, tmp_path):
        outcome = await ProcessRunner().run(PY, ["-c", "pass"], tmp_path / "missing")

        assert isinstance(outcome, Failure)
        assert outcome.exit_code is None


class TestFailureSummary:
    def test_exit_code_without_stderr(self):
        assert Failure(exit_code=2).summary == "exit code 2"

    def test_skips_blank_leading_lines(self):
        assert Failure(exit_code=1, stderr="\n\n  oops  \n").summary == "exit code 1: oops"

    def test_timeout_without_value(self):
        assert Failure(duration_exceeded=True).summary == "timed out"

    def test_spawn_error_uses_message(self):
        failure = Failure(stderr="[Errno 2] No such file or directory: 'yarn'")
        assert failure.summary == "[Errno 2] No such file or directory: 'yarn'"

    def test_no_information(self):
        assert Failure().summary == "failed to start"
