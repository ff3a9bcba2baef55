"""Tests for result and summary models."""

from __future__ import annotations

import json
from pathlib import Path

from octopus.models import (
    BatchSummary,
    Failure,
    RepositoryDescriptor,
    StrategyAttempt,
    Success,
    TaskResult,
    TaskStatus,
)


def _ok(name: str, **kwargs) -> TaskResult:
    return TaskResult(descriptor_name=name, succeeded=True, **kwargs)


def _failed(name: str, error: str | None) -> TaskResult:
    return TaskResult(descriptor_name=name, succeeded=False, final_error=error)


class TestOutcomes:
    def test_success_is_ok(self):
        assert Success().ok is True

    def test_failure_is_not_ok(self):
        assert Failure(exit_code=1).ok is False

    def test_attempt_succeeded_follows_outcome(self):
        assert StrategyAttempt("plain", "yarn install", Success()).succeeded
        assert not StrategyAttempt("plain", "yarn install", Failure(exit_code=1)).succeeded

    def test_descriptor_defaults(self):
        descriptor = RepositoryDescriptor("api", Path("/tmp/api"))
        assert descriptor.active is True
        assert descriptor.monorepo_prefix is None
        assert descriptor.url is None


class TestBatchSummary:
    def test_from_results_counts(self):
        results = [_ok("a"), _failed("b", "not found"), _ok("c", skipped=True), _failed("d", None)]

        summary = BatchSummary.from_results("install", results)

        assert summary.total == 4
        assert summary.succeeded_count == 2
        assert summary.failed_count == 2
        assert summary.succeeded_count + summary.failed_count == summary.total
        assert summary.failures == [("b", "not found"), ("d", "unknown error")]
        assert summary.skipped == ["c"]
        assert summary.ok is False

    def test_empty(self):
        summary = BatchSummary.from_results("install", [])
        assert summary.total == 0
        assert summary.ok

    def test_to_dict_is_json_serializable(self):
        attempt = StrategyAttempt(
            "prefixed", "yarn host install", Failure(exit_code=1, stderr="boom")
        )
        result = TaskResult(
            descriptor_name="web",
            succeeded=False,
            attempted_strategies=[attempt],
            final_error="prefixed: exit code 1: boom",
            duration_ms=12.345,
        )

        data = BatchSummary.from_results("build", [result, _ok("api")]).to_dict()

        assert json.loads(json.dumps(data)) == data
        assert data["action"] == "build"
        assert data["succeeded"] == 1
        assert data["failed"] == 1
        assert data["failures"] == [{"name": "web", "error": "prefixed: exit code 1: boom"}]
        web = data["results"][0]
        assert web["duration_ms"] == 12.3
        assert web["attempts"][0]["outcome"] == {
            "exit_code": 1,
            "stderr": "boom",
            "duration_exceeded": False,
            "timeout": None,
        }

    def test_str_lists_failures(self):
        summary = BatchSummary.from_results(
            "install", [_ok("a"), _ok("s", skipped=True), _failed("C", "not found")]
        )

        text = str(summary)

        assert "install summary" in text
        assert "2/3 succeeded" in text
        assert "Skipped: s" in text
        assert "  - C: not found" in text

    def test_str_without_failures(self):
        text = str(BatchSummary.from_results("clone", [_ok("a")]))
        assert "Failed" not in text


class TestTaskStatus:
    def test_values(self):
        assert [s.value for s in TaskStatus] == ["pending", "running", "succeeded", "failed"]
