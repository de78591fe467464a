"""Retry classification for pipeline errors.

Classification is a pure function of an error's kind tag and context:
the same error always classifies the same way.
"""

from __future__ import annotations

from dataclasses import dataclass

from sce_pipeline.core.logging import get_logger

from .codes import ErrorCode, ErrorKind, ScrapingReason

_logger = get_logger("errors")


@dataclass(frozen=True)
class ClassifiedError:
    """An error together with its retry classification."""

    kind: ErrorKind
    code: str
    message: str
    retriable: bool
    original_error: BaseException | None = None

    @property
    def is_fatal(self) -> bool:
        """True when the whole batch must stop."""
        return self.kind is ErrorKind.CONFIGURATION


def classify_error(error: BaseException) -> ClassifiedError:
    """Classify ``error`` for retry purposes.

    NETWORK is always retriable; SCRAPING is retriable unless its reason is
    ``NOT_FOUND``. Every other kind, and every exception that carries no
    kind tag, fails fast.
    """
    kind = getattr(error, "kind", None)
    if not isinstance(kind, ErrorKind):
        return ClassifiedError(
            kind=ErrorKind.GENERIC,
            code=ErrorCode.UNKNOWN.value,
            message=str(error) or type(error).__name__,
            retriable=False,
            original_error=error,
        )

    code = str(getattr(error, "code", ErrorCode.UNKNOWN.value))
    message = str(getattr(error, "message", "") or error)
    context = getattr(error, "context", None) or {}

    if kind is ErrorKind.NETWORK:
        retriable = True
    elif kind is ErrorKind.SCRAPING:
        retriable = context.get("reason") != ScrapingReason.NOT_FOUND
    elif kind in (ErrorKind.VALIDATION, ErrorKind.CONFIGURATION, ErrorKind.GENERIC):
        retriable = False
    else:
        _logger.warning("unhandled_error_kind", kind=str(kind), code=code)
        retriable = False

    return ClassifiedError(
        kind=kind,
        code=code,
        message=message,
        retriable=retriable,
        original_error=error,
    )


def is_retryable(error: BaseException) -> bool:
    """Return True iff ``error`` may be retried under backoff."""
    return classify_error(error).retriable
