"""
Octopus Exception Hierarchy.

All custom exceptions inherit from OctopusError for unified error handling.

Failures of the external commands themselves are never raised: they are
returned as data (see ``octopus.models.Failure`` and ``TaskResult``). The
exceptions below are reserved for caller and configuration mistakes.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class OctopusError(Exception):
    """Base exception for caller and configuration mistakes.

    ``context`` holds the offending path, field or names; it is appended to
    ``str()`` so the CLI error panel shows it, and logged at debug level as
    ``error_context``.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        logger.debug(
            "%s: %s",
            type(self).__name__,
            message,
            extra={"error_context": self.context},
        )

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{ctx}]"
        return self.message


class ConfigError(OctopusError):
    """Raised for configuration errors.

    Examples:
        - Malformed TOML/JSON config file
        - Repository entry failing validation
        - Unsupported config file extension
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if path:
            ctx["path"] = path
        super().__init__(message, ctx)
        self.path = path


class ValidationError(OctopusError):
    """Raised for input validation errors.

    Examples:
        - Duplicate repository names in one batch
        - Unknown repository name passed to ``--only``
    """

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        value: Any = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = context or {}
        if field_name:
            ctx["field"] = field_name
        if value is not None:
            ctx["value"] = repr(value)
        super().__init__(message, ctx)
        self.field_name = field_name
        self.value = value
