"""Exception hierarchy for the pipeline.

All pipeline exceptions inherit from ``SceError`` so callers can catch the
whole family or a single variant. Each subclass declares its ``kind`` tag
at class level; the classifier reads the tag instead of inspecting types.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType
from typing import Any, ClassVar

from sce_pipeline.utils.time import utc_now

from .codes import ErrorCode, ErrorKind


class SceError(Exception):
    """Base pipeline error.

    Attributes:
        code: Machine-readable code (see ``ErrorCode``).
        message: Human-readable, display-ready message.
        context: Read-only free-form details about the failure.
        timestamp: When the error was created (UTC).
    """

    kind: ClassVar[ErrorKind] = ErrorKind.GENERIC

    def __init__(
        self,
        code: str,
        message: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.context: Mapping[str, Any] = MappingProxyType(dict(context or {}))
        self.timestamp: datetime = utc_now()

    def to_dict(self) -> dict[str, Any]:
        """Serialize for logs and result payloads."""
        return {
            "kind": self.kind.value,
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
            "timestamp": self.timestamp.isoformat(),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NetworkError(SceError):
    """Transient network failure. Always retryable."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.NETWORK_ERROR.value, message, context)


class ScrapingError(SceError):
    """The automation surface could not be driven or read.

    Retryable unless ``reason`` is ``NOT_FOUND``.
    """

    kind = ErrorKind.SCRAPING

    def __init__(
        self,
        url: str,
        reason: str,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.SCRAPING_ERROR.value,
            f"Scraping failed for {url}: {reason}",
            {"url": url, "reason": reason, **(context or {})},
        )

    @property
    def reason(self) -> str:
        return str(self.context.get("reason", ""))


class ValidationError(SceError):
    """A record field failed validation. Never retryable."""

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str) -> None:
        super().__init__(
            ErrorCode.VALIDATION_ERROR.value,
            f"Validation failed for {field}: {message}",
            {"field": field},
        )

    @property
    def field(self) -> str:
        return str(self.context["field"])


class ConfigurationError(SceError):
    """The run cannot succeed with the current configuration.

    Fatal to a whole batch: it propagates out of ``submit_batch``.
    """

    kind = ErrorKind.CONFIGURATION

    def __init__(self, key: str, message: str) -> None:
        super().__init__(
            ErrorCode.CONFIG_ERROR.value,
            f"Configuration error for {key}: {message}",
            {"key": key},
        )

    @property
    def key(self) -> str:
        return str(self.context["key"])


class SurfaceNotReadyError(SceError):
    """The automation surface is not in a state that accepts a fill."""

    def __init__(self, message: str = "Automation surface is not ready") -> None:
        super().__init__(ErrorCode.SURFACE_NOT_READY.value, message)


class BatchInProgressError(SceError):
    """A coordinator was asked to start a batch while another is running."""

    def __init__(self, batch_id: str) -> None:
        super().__init__(
            ErrorCode.BATCH_IN_PROGRESS.value,
            f"Batch {batch_id} is still running on this coordinator",
            {"batch_id": batch_id},
        )
