"""Configuration management for Octopus."""

import json
import logging
import tomllib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from octopus.exceptions import ConfigError, ValidationError
from octopus.models import CLONE_ACTION, RepositoryDescriptor

_LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
# Context attached through ``extra=`` by octopus loggers.
_CONTEXT_FIELDS = ("repository", "action", "strategy", "error_context")

DEFAULT_CONFIG_NAME = "octopus.toml"


def _parse_log_level(level: str) -> int:
    normalized = level.strip().lower()
    if normalized in _LOG_LEVELS:
        return _LOG_LEVELS[normalized]
    valid = ", ".join(sorted({k for k in _LOG_LEVELS if k != "warn"}))
    raise ValueError(f"Invalid log level: {level}. Valid: {valid}")


class _JsonLineFormatter(logging.Formatter):
    """One JSON object per record, carrying the batch context fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        # Orchestrated tasks are named "octopus-<action>-<repository>".
        task = getattr(record, "taskName", None)
        if task and task.startswith("octopus-"):
            payload["task"] = task
        for key in _CONTEXT_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(config: "OctopusConfig") -> None:
    """Send all records to one JSON-lines handler (stderr or ``log_file``)."""
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file)
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(_JsonLineFormatter())
    root_logger.addHandler(handler)

    levels = {name: _parse_log_level(level) for name, level in config.log_levels.items()}
    root_logger.setLevel(min([_parse_log_level(config.log_level), *levels.values()]))
    for name, level in levels.items():
        logging.getLogger(name).setLevel(level)


class RepositoryConfig(BaseModel):
    """One configured repository.

    Keys may be written in snake_case or camelCase (``localPath``), so JSON
    files from older setups load unchanged.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str = Field(min_length=1, description="Unique repository name")
    local_path: str = Field(description="Checkout directory, relative to base_dir")
    url: str | None = Field(default=None, description="Clone URL")
    monorepo_prefix: str | None = Field(
        default=None, description="Workspace prefix for monorepo-style commands"
    )
    active: bool = Field(default=True, description="Include in batch operations")
    description: str = Field(default="", description="Free-form description")
    port: int | None = Field(default=None, description="Dev server port")
    priority: int = Field(default=0, description="Lower runs first")

    @field_validator("monorepo_prefix")
    @classmethod
    def _blank_prefix_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value


class OctopusConfig(BaseModel):
    """Main configuration for Octopus."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    repositories: list[RepositoryConfig] = Field(default_factory=list)
    package_manager: str = Field(default="yarn", description="Package manager executable")
    base_dir: str | None = Field(
        default=None,
        description="Directory local paths are resolved against (default: current directory)",
    )

    concurrency: dict[str, int] = Field(
        default_factory=lambda: {"install": 3, CLONE_ACTION: 2},
        description="Per-action concurrency caps",
    )
    default_concurrency: int = Field(default=3, ge=1, description="Cap for other actions")
    timeouts: dict[str, float] = Field(
        default_factory=lambda: {"install": 180.0},
        description="Per-action process timeouts (seconds)",
    )
    default_timeout: float = Field(default=300.0, gt=0, description="Timeout for other actions")

    log_level: str = Field(default="warning", description="Log level")
    log_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-component log levels (e.g., {'octopus.runner': 'debug'})",
    )
    log_file: str | None = Field(default=None, description="Optional log file (structured JSON)")

    @field_validator("concurrency")
    @classmethod
    def _validate_concurrency(cls, value: dict[str, int]) -> dict[str, int]:
        for action, cap in value.items():
            if cap < 1:
                raise ValueError(f"concurrency for {action!r} must be >= 1")
        return value

    @field_validator("timeouts")
    @classmethod
    def _validate_timeouts(cls, value: dict[str, float]) -> dict[str, float]:
        for action, seconds in value.items():
            if seconds <= 0:
                raise ValueError(f"timeout for {action!r} must be positive")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        _parse_log_level(value)
        return value.strip().lower()

    @field_validator("log_levels")
    @classmethod
    def _validate_log_levels(cls, value: dict[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for name, level in value.items():
            _parse_log_level(level)
            normalized[name] = level.strip().lower()
        return normalized

    @field_validator("repositories")
    @classmethod
    def _validate_unique_names(cls, value: list[RepositoryConfig]) -> list[RepositoryConfig]:
        seen: set[str] = set()
        for repo in value:
            if repo.name in seen:
                raise ValueError(f"duplicate repository name: {repo.name}")
            seen.add(repo.name)
        return value

    @classmethod
    def from_file(cls, path: str | Path) -> "OctopusConfig":
        """Load configuration from a TOML or JSON file.

        A missing file yields the default (empty) configuration. Relative
        ``base_dir`` values are resolved against the file's directory.
        """
        path = Path(path)
        if not path.exists():
            return cls()

        try:
            if path.suffix == ".json":
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            elif path.suffix == ".toml":
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            else:
                raise ConfigError(f"Unsupported config format: {path.suffix}", path=str(path))
        except (OSError, json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Could not read config: {exc}", path=str(path)) from exc

        if not isinstance(data, dict):
            raise ConfigError("Config root must be a table/object", path=str(path))
        # Legacy layout nests tool settings under "settings".
        settings = data.pop("settings", None)
        if isinstance(settings, dict):
            data = {**settings, **data}

        try:
            config = cls.model_validate(data)
        except PydanticValidationError as exc:
            raise ConfigError(f"Invalid config: {exc}", path=str(path)) from exc

        if config.base_dir is not None:
            base = Path(config.base_dir).expanduser()
            if not base.is_absolute():
                base = (path.parent / base).resolve()
            config.base_dir = str(base)
        return config

    @classmethod
    def default_path(cls) -> Path:
        """Get default config file path."""
        return Path.cwd() / DEFAULT_CONFIG_NAME

    def resolve_base_dir(self) -> Path:
        return Path(self.base_dir).expanduser().resolve() if self.base_dir else Path.cwd()

    def concurrency_for(self, action: str) -> int:
        return self.concurrency.get(action, self.default_concurrency)

    def timeout_for(self, action: str) -> float:
        return self.timeouts.get(action, self.default_timeout)

    def descriptors(
        self,
        only: Iterable[str] | None = None,
        *,
        include_inactive: bool = False,
    ) -> list[RepositoryDescriptor]:
        """Build descriptors for configured repositories.

        Inactive repositories are filtered out unless ``include_inactive``.
        Results are ordered by ``priority``, then configuration order.

        Raises:
            ValidationError: If ``only`` names an unknown repository.
        """
        repos = list(self.repositories)
        if only is not None:
            wanted = list(dict.fromkeys(only))
            known = {r.name for r in repos}
            unknown = [name for name in wanted if name not in known]
            if unknown:
                raise ValidationError(
                    f"Unknown repository: {', '.join(unknown)}",
                    field_name="only",
                    value=unknown,
                    context={"known": sorted(known)},
                )
            repos = [r for r in repos if r.name in wanted]

        base = self.resolve_base_dir()
        ordered = sorted(enumerate(repos), key=lambda item: (item[1].priority, item[0]))
        return [
            RepositoryDescriptor(
                name=repo.name,
                working_directory=(base / repo.local_path).resolve(),
                monorepo_prefix=repo.monorepo_prefix,
                active=repo.active,
                url=repo.url,
            )
            for _, repo in ordered
            if include_inactive or repo.active
        ]
