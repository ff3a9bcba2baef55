"""Octopus - run dependency installs, clones and scripts across many repositories."""

__version__ = "1.0.0"

# Re-export core components for convenience
from .config import OctopusConfig, RepositoryConfig, configure_logging
from .exceptions import ConfigError, OctopusError, ValidationError
from .fallback import FallbackExecutor
from .limiter import ConcurrencyLimiter
from .models import (
    BatchEvent,
    BatchEventType,
    BatchSummary,
    ExecutionOutcome,
    Failure,
    RepositoryDescriptor,
    Strategy,
    StrategyAttempt,
    Success,
    TaskResult,
    TaskStatus,
)
from .orchestrator import Orchestrator
from .runner import ProcessRunner
from .strategies import StrategyResolver, read_manifest_scripts

__all__ = [
    # Core
    "Orchestrator",
    "FallbackExecutor",
    "ConcurrencyLimiter",
    "ProcessRunner",
    "StrategyResolver",
    "read_manifest_scripts",
    # Config
    "OctopusConfig",
    "RepositoryConfig",
    "configure_logging",
    # Models
    "BatchEvent",
    "BatchEventType",
    "BatchSummary",
    "ExecutionOutcome",
    "Failure",
    "RepositoryDescriptor",
    "Strategy",
    "StrategyAttempt",
    "Success",
    "TaskResult",
    "TaskStatus",
    # Exceptions
    "ConfigError",
    "OctopusError",
    "ValidationError",
]
