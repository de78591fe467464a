"""Single-record processing: validate, fill, capture.

Each record moves through a small state machine::

    PENDING -> VALIDATING -> INVALID
                          -> FILLING -> FILL_FAILED
                                     -> CAPTURING -> COMPLETE
                                                  -> CAPTURE_TIMEOUT

Only the fill stage is retried (through ``RetryExecutor``). Capture is a
bounded, best-effort read: a slow or failing capture degrades to partial
data and never fails the record.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sce_pipeline.core.config import PipelineConfig
from sce_pipeline.core.errors import (
    ConfigurationError,
    ScrapingError,
    ScrapingReason,
    SurfaceNotReadyError,
    ValidationError,
    classify_error,
)
from sce_pipeline.core.logging import get_logger
from sce_pipeline.execution.progress import ProgressEvent, ProgressEventType
from sce_pipeline.execution.retry import RetryExecutor
from sce_pipeline.execution.surface import AutomationSurface, FillOutcome
from sce_pipeline.utils.time import ms_to_seconds, utc_now
from sce_pipeline.validation import RecordValidator, ValidationResult

_logger = get_logger("processor")

EmitFn = Callable[[ProgressEvent], None]


class UnitState(str, Enum):
    """Processing state of one record."""

    PENDING = "pending"
    VALIDATING = "validating"
    INVALID = "invalid"
    FILLING = "filling"
    FILL_FAILED = "fill_failed"
    CAPTURING = "capturing"
    COMPLETE = "complete"
    CAPTURE_TIMEOUT = "capture_timeout"

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self]


_TRANSITIONS: dict[UnitState, frozenset[UnitState]] = {
    UnitState.PENDING: frozenset({UnitState.VALIDATING}),
    UnitState.VALIDATING: frozenset({UnitState.INVALID, UnitState.FILLING}),
    UnitState.FILLING: frozenset({UnitState.FILL_FAILED, UnitState.CAPTURING}),
    UnitState.CAPTURING: frozenset({UnitState.COMPLETE, UnitState.CAPTURE_TIMEOUT}),
    UnitState.INVALID: frozenset(),
    UnitState.FILL_FAILED: frozenset(),
    UnitState.COMPLETE: frozenset(),
    UnitState.CAPTURE_TIMEOUT: frozenset(),
}


class UnitStateError(RuntimeError):
    """Raised on a transition the state machine does not allow."""

    def __init__(self, current: UnitState, target: UnitState) -> None:
        super().__init__(f"Illegal unit transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


class UnitStateMachine:
    """Tracks one record's state and rejects illegal transitions."""

    def __init__(self) -> None:
        self.state = UnitState.PENDING
        self.history: list[UnitState] = [UnitState.PENDING]

    def advance(self, target: UnitState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise UnitStateError(self.state, target)
        self.state = target
        self.history.append(target)


@dataclass
class UnitResult:
    """Outcome of processing one record.

    Exactly one of ``data`` (on success) and ``error`` (on failure) is
    meaningful. A capture that degraded still counts as success, flagged
    with ``partial``.
    """

    success: bool
    record_id: str
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: str | None = None
    state: UnitState = UnitState.PENDING
    attempts: int = 0
    """Fill attempts made, first try included."""
    partial: bool = False
    index: int | None = None
    """1-based position in the batch, when run by a coordinator."""
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "record_id": self.record_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "partial": self.partial,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.success:
            result["data"] = self.data
        else:
            result["error"] = self.error
            result["error_code"] = self.error_code
        if self.index is not None:
            result["index"] = self.index
        return result


def invalid_record_error(validation: ValidationResult) -> ValidationError:
    """The ``ValidationError`` describing why a record is invalid."""
    if validation.missing_required:
        return ValidationError(validation.missing_required[0], "Required field is missing")
    issue = validation.errors[0]
    return ValidationError(issue.field, issue.message)


class UnitProcessor:
    """Drives one record at a time through an automation surface.

    A processor owns no per-record state between calls, but it does own
    its surface: two records must never be processed concurrently by the
    same processor.
    """

    def __init__(
        self,
        surface: AutomationSurface,
        config: PipelineConfig,
        *,
        validator: RecordValidator | None = None,
        retry_executor: RetryExecutor | None = None,
    ) -> None:
        self.surface = surface
        self.config = config
        self.validator = validator or RecordValidator()
        self.retry_executor = retry_executor or RetryExecutor(config.retry)

    async def process(
        self,
        record: Mapping[str, Any],
        *,
        record_id: str,
        emit: EmitFn,
        validation: ValidationResult | None = None,
        index: int | None = None,
    ) -> UnitResult:
        """Process ``record`` and report progress through ``emit``.

        Args:
            record: Input record; never modified.
            record_id: Identifier used in events and the result.
            emit: Receives every progress event for this record.
            validation: Result of an earlier validation, to avoid repeating it.
            index: Batch position copied into the result.

        Returns:
            The record's ``UnitResult``. Failures other than configuration
            errors are reported here rather than raised.

        Raises:
            ConfigurationError: The surface reported that the run cannot
                succeed; the caller must stop the batch.
        """
        machine = UnitStateMachine()
        attempts = 0

        def transition(target: UnitState) -> None:
            machine.advance(target)
            emit(ProgressEvent(
                ProgressEventType.INFO,
                f"Record {record_id}: {target.value.replace('_', ' ')}",
                record_id=record_id,
                state=target.value,
            ))

        def fail(error: str, error_code: str) -> UnitResult:
            emit(ProgressEvent(
                ProgressEventType.ERROR,
                f"Record {record_id} failed: {error}",
                record_id=record_id,
                state=machine.state.value,
                error=error,
                error_code=error_code,
            ))
            return UnitResult(
                success=False,
                record_id=record_id,
                error=error,
                error_code=error_code,
                state=machine.state,
                attempts=attempts,
                index=index,
            )

        emit(ProgressEvent(
            ProgressEventType.START,
            f"Processing record {record_id}",
            record_id=record_id,
            state=machine.state.value,
        ))
        _logger.debug("unit.started", record_id=record_id)

        transition(UnitState.VALIDATING)
        if validation is None:
            validation = self.validator.validate(record)
        if not validation.valid:
            transition(UnitState.INVALID)
            invalid = invalid_record_error(validation)
            _logger.info("unit.invalid", record_id=record_id, error=invalid.message)
            return fail(invalid.message, invalid.code)

        transition(UnitState.FILLING)
        try:
            ready = self.surface.is_automation_surface_ready()
        except Exception as exc:
            classified = classify_error(exc)
            if classified.is_fatal:
                machine.advance(UnitState.FILL_FAILED)
                _logger.error("unit.configuration_error", record_id=record_id, error=classified.message)
                raise
            transition(UnitState.FILL_FAILED)
            _logger.exception(
                "unit.surface_check_failed",
                record_id=record_id,
                surface=self.surface.name,
                error_code=classified.code,
            )
            return fail(classified.message, classified.code)
        if not ready:
            not_ready = SurfaceNotReadyError()
            transition(UnitState.FILL_FAILED)
            _logger.warning("unit.surface_not_ready", record_id=record_id, surface=self.surface.name)
            return fail(not_ready.message, not_ready.code)

        async def fill_once() -> FillOutcome:
            nonlocal attempts
            attempts += 1
            outcome = await self.surface.fill_record(record, self.config)
            if not outcome.success:
                context = {"detail": outcome.error} if outcome.error else None
                raise ScrapingError(
                    record_id,
                    outcome.reason or ScrapingReason.FILL_REJECTED,
                    context,
                )
            return outcome

        def on_retry(attempt: int, error: BaseException, delay_ms: int) -> None:
            classified = classify_error(error)
            emit(ProgressEvent(
                ProgressEventType.WARNING,
                f"Retrying record {record_id} in {delay_ms}ms "
                f"(attempt {attempt} failed: {classified.message})",
                record_id=record_id,
                state=machine.state.value,
                attempt=attempt,
                error=classified.message,
                error_code=classified.code,
            ))

        try:
            outcome = await self.retry_executor.run(fill_once, on_retry=on_retry)
        except Exception as exc:
            classified = classify_error(exc)
            if classified.is_fatal:
                machine.advance(UnitState.FILL_FAILED)
                _logger.error("unit.configuration_error", record_id=record_id, error=classified.message)
                raise
            transition(UnitState.FILL_FAILED)
            _logger.warning(
                "unit.fill_failed",
                record_id=record_id,
                attempts=attempts,
                error_code=classified.code,
                error=classified.message,
            )
            return fail(classified.message, classified.code)

        emit(ProgressEvent(
            ProgressEventType.INFO,
            f"Form filled for record {record_id}",
            record_id=record_id,
            state=machine.state.value,
            attempt=attempts,
        ))

        transition(UnitState.CAPTURING)
        data, complete = await self._capture(record_id, outcome.data)

        emit(ProgressEvent(
            ProgressEventType.DATA_CAPTURED,
            f"Captured {len(data)} values for record {record_id}",
            record_id=record_id,
            state=machine.state.value,
            data=dict(data),
        ))

        if complete:
            transition(UnitState.COMPLETE)
        else:
            transition(UnitState.CAPTURE_TIMEOUT)
            emit(ProgressEvent(
                ProgressEventType.WARNING,
                f"Capture for record {record_id} incomplete, keeping partial data",
                record_id=record_id,
                state=machine.state.value,
            ))

        emit(ProgressEvent(
            ProgressEventType.COMPLETE,
            f"Record {record_id} complete",
            record_id=record_id,
            state=machine.state.value,
            data=dict(data),
        ))
        _logger.info("unit.completed", record_id=record_id, attempts=attempts, partial=not complete)

        return UnitResult(
            success=True,
            record_id=record_id,
            data=data,
            state=machine.state,
            attempts=attempts,
            partial=not complete,
            index=index,
        )

    async def _capture(
        self,
        record_id: str,
        fill_data: Mapping[str, Any],
    ) -> tuple[dict[str, Any], bool]:
        """Read back outcome data, returning ``(data, complete)``.

        Fill data is the fallback when capture times out or fails.
        """
        delay_ms = self.config.capture_delay_ms
        limit = ms_to_seconds(delay_ms + self.config.capture_timeout_ms)
        try:
            captured = await asyncio.wait_for(self.surface.wait_and_capture(delay_ms), limit)
        except TimeoutError:
            _logger.warning("unit.capture_timeout", record_id=record_id, timeout_s=limit)
            return dict(fill_data), False
        except ConfigurationError:
            raise
        except Exception:
            _logger.warning("unit.capture_failed", record_id=record_id, exc_info=True)
            return dict(fill_data), False

        return {**fill_data, **captured.data}, captured.complete


__all__ = [
    "EmitFn",
    "UnitProcessor",
    "UnitResult",
    "UnitState",
    "UnitStateError",
    "UnitStateMachine",
    "invalid_record_error",
]
