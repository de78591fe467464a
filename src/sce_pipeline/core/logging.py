"""Structured logging for the pipeline.

Wraps structlog with pipeline-specific context (batch_id, record_id,
record_index, component) and supports console or JSON output with an
optional rotating log file.

Example usage:
    from sce_pipeline.core.logging import BatchContext, get_logger, with_context

    configure_logging(level="DEBUG", format="console")
    logger = get_logger("coordinator")

    ctx = BatchContext(batch_id="batch_1700000000000_ab12cd34e")
    with with_context(ctx.with_record("APP-001", 1)):
        logger.info("record_started")  # includes batch_id, record_id, record_index
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from sce_pipeline.utils.time import utc_now

if TYPE_CHECKING:
    from sce_pipeline.core.config import LogConfig

# Keys whose values never reach a log sink. Surface options often carry
# portal credentials.
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "token",
    "secret",
    "password",
    "credential",
    "cookie",
    "session",
    "authorization",
})


@dataclass(frozen=True)
class BatchContext:
    """Correlation identifiers merged into every log entry inside ``with_context``.

    Attributes:
        batch_id: Identifier of the running batch.
        run_id: Unique per coordinator invocation (UUID).
        record_id: Identifier of the record being processed, if any.
        record_index: 1-based position of that record in the batch.
        component: Component emitting the log line.
        worker: Worker number when a pool is in use.
    """

    batch_id: str
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    record_id: str | None = None
    record_index: int | None = None
    component: str = "unknown"
    worker: int | None = None

    def with_record(self, record_id: str, record_index: int) -> BatchContext:
        """Return a copy scoped to one record."""
        return replace(self, record_id=record_id, record_index=record_index)

    def with_worker(self, worker: int) -> BatchContext:
        return replace(self, worker=worker)

    def to_dict(self) -> dict[str, Any]:
        """Context fields for a log entry, ``None`` values omitted."""
        result: dict[str, Any] = {
            "batch_id": self.batch_id,
            "run_id": self.run_id,
            "component": self.component,
        }
        if self.record_id is not None:
            result["record_id"] = self.record_id
        if self.record_index is not None:
            result["record_index"] = self.record_index
        if self.worker is not None:
            result["worker"] = self.worker
        return result


# ContextVar keeps concurrent workers' contexts apart.
_current_context: ContextVar[BatchContext | None] = ContextVar(
    "sce_pipeline_context", default=None
)


def get_current_context() -> BatchContext | None:
    return _current_context.get()


@contextmanager
def with_context(ctx: BatchContext) -> Iterator[BatchContext]:
    """Set ``ctx`` as the current BatchContext for the duration of the block."""
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    key_lower = key.lower()
    if any(pattern in key_lower for pattern in SENSITIVE_PATTERNS):
        return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor redacting sensitive keys, one level deep."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {k: _sanitize_value(k, v) for k, v in value.items()}
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["timestamp"] = utc_now().isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor merging the current BatchContext.

    Explicitly bound keys win over context keys.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            event_dict.setdefault(key, value)
    return event_dict


class PipelineLogger:
    """Component-bound wrapper around a structlog logger.

    The structlog logger is fetched on every call so loggers created at
    import time still honour a later ``configure_logging()``.
    """

    def __init__(self, component: str, **initial_context: Any) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> PipelineLogger:
        """Return a new logger with ``context`` added."""
        return PipelineLogger(self._component, **{**self._context, **context})

    def unbind(self, *keys: str) -> PipelineLogger:
        """Return a new logger without ``keys``."""
        remaining = {k: v for k, v in self._context.items() if k not in keys}
        remaining.pop("component", None)
        return PipelineLogger(self._component, **remaining)

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log at error level with the active exception's traceback."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]
    if include_context:
        processors.append(_add_context)
    if include_timestamps:
        processors.append(_add_timestamp)
    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console", "both"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure structured logging for the process.

    Call once at startup. ``format="both"`` writes console output to stderr
    and JSON lines to ``file_path``.

    Raises:
        ValueError: If format="both" and no file_path is given.
    """
    if format == "both" and file_path is None:
        raise ValueError("file_path is required when format='both'")

    log_level = getattr(logging, level)
    handlers: list[logging.Handler] = []

    if format in ("console", "both"):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        handlers.append(console_handler)

    if format in ("json", "both"):
        if file_path is not None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                file_path,
                maxBytes=max_file_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(log_level)
            handlers.append(file_handler)
        else:
            json_handler = logging.StreamHandler(sys.stdout)
            json_handler.setLevel(log_level)
            handlers.append(json_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    # cache_logger_on_first_use=False so module-level loggers pick up
    # reconfiguration.
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def configure_logging_from_config(config: LogConfig) -> None:
    """Apply a ``LogConfig``, usually the ``logging`` section of a pipeline config."""
    configure_logging(
        level=config.level,
        format=config.format,
        file_path=config.file_path,
        max_file_size_mb=config.max_file_size_mb,
        backup_count=config.backup_count,
        include_timestamps=config.include_timestamps,
        include_context=config.include_context,
    )


def get_logger(component: str, **initial_context: Any) -> PipelineLogger:
    """Get a logger bound to ``component``."""
    return PipelineLogger(component, **initial_context)


__all__ = [
    "BatchContext",
    "PipelineLogger",
    "SENSITIVE_PATTERNS",
    "configure_logging",
    "configure_logging_from_config",
    "get_current_context",
    "get_logger",
    "with_context",
]
