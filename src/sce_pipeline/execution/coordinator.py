"""Batch coordination over a sequence of records.

The coordinator validates each record, hands valid ones to a
``UnitProcessor`` and publishes progress for the whole batch. Records run
serially on one automation surface by default; with ``concurrency > 1``
a bounded pool of workers runs, each owning a surface built by
``surface_factory``.

Every batch gets its own ``BatchHandle`` carrying the batch id, the
cancellation flag and the accumulated results, so nothing about a batch
lives in module-level state.

Cancellation is cooperative: the flag is checked between records, and a
record already in flight always runs to completion.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from collections.abc import Callable, Generator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sce_pipeline.core.config import PipelineConfig
from sce_pipeline.core.constants import RECORD_ID_KEYS
from sce_pipeline.core.errors import (
    BatchInProgressError,
    ConfigurationError,
)
from sce_pipeline.core.logging import (
    BatchContext,
    configure_logging_from_config,
    get_logger,
    with_context,
)
from sce_pipeline.execution.processor import (
    UnitProcessor,
    UnitResult,
    UnitState,
    invalid_record_error,
)
from sce_pipeline.execution.progress import (
    EventCallback,
    ProgressEvent,
    ProgressEventType,
    ProgressPublisher,
)
from sce_pipeline.execution.retry import SleepFn
from sce_pipeline.execution.surface import AutomationSurface
from sce_pipeline.utils.time import ms_to_seconds
from sce_pipeline.validation import RecordValidator, ValidationResult

_logger = get_logger("coordinator")

SurfaceFactory = Callable[[], AutomationSurface]


class BatchStatus(str, Enum):
    """Lifecycle of a batch."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchSummary:
    """Aggregate outcome of a batch.

    ``total`` counts started records, so ``total == successful + failed``.
    Records never started because of cancellation are counted in
    ``skipped``.
    """

    total: int
    successful: int
    failed: int
    skipped: int = 0
    cancelled: bool = False
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "duration_seconds": round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class CancelResult:
    """Answer to ``cancel_batch``."""

    cancelled: bool
    batch_id: str | None = None


def new_batch_id() -> str:
    """``batch_<epoch ms>_<9 hex chars>``."""
    return f"batch_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def derive_record_id(record: Mapping[str, Any], position: int) -> str:
    """Identifier for a record: first non-blank id-like key, else ``record-<n>``."""
    for key in RECORD_ID_KEYS:
        value = record.get(key)
        if value is not None and str(value).strip():
            return str(value)
    return f"record-{position}"


class BatchHandle:
    """One running (or finished) batch.

    Await the handle, or call ``wait()``, for the list of ``UnitResult``.
    """

    def __init__(self, batch_id: str, total: int) -> None:
        self.batch_id = batch_id
        self.total = total
        self.status = BatchStatus.PENDING
        self.results: list[UnitResult] = []
        self.summary: BatchSummary | None = None
        self._cancel_requested = False
        self._task: asyncio.Task[list[UnitResult]] | None = None

    @property
    def cancelled(self) -> bool:
        """True once cancellation has been requested."""
        return self._cancel_requested

    @property
    def done(self) -> bool:
        return self.status in (BatchStatus.COMPLETED, BatchStatus.CANCELLED, BatchStatus.FAILED)

    def cancel(self) -> bool:
        """Request cancellation. Returns False if the batch already finished."""
        if self.done:
            return False
        self._cancel_requested = True
        return True

    async def wait(self) -> list[UnitResult]:
        if self._task is None:
            raise RuntimeError(f"Batch {self.batch_id} was never started")
        return await self._task

    def __await__(self) -> Generator[Any, None, list[UnitResult]]:
        return self.wait().__await__()

    def __repr__(self) -> str:
        return (
            f"BatchHandle(batch_id={self.batch_id!r}, status={self.status.value!r}, "
            f"completed={len(self.results)}/{self.total})"
        )


class BatchCoordinator:
    """Runs batches of records through automation surfaces.

    Args:
        surface: Surface used for serial batches.
        surface_factory: Builds one surface per worker. Required when
            ``concurrency > 1``; used for serial batches when ``surface``
            is not given.
        config: Default configuration for batches started without one.
        validator: Record validator; case rules by default.
        publisher: Progress publisher; a new one by default.
        sleep: Awaitable used for the pause between records.
    """

    def __init__(
        self,
        surface: AutomationSurface | None = None,
        *,
        surface_factory: SurfaceFactory | None = None,
        config: PipelineConfig | None = None,
        validator: RecordValidator | None = None,
        publisher: ProgressPublisher | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.config = config or PipelineConfig()
        self.validator = validator or RecordValidator()
        self.publisher = publisher or ProgressPublisher(
            max_queue_size=self.config.progress_queue_size
        )
        self._surface = surface
        self._surface_factory = surface_factory
        self._active: BatchHandle | None = None
        self._last_summary: BatchSummary | None = None
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: PipelineConfig,
        surface: AutomationSurface | None = None,
        *,
        surface_factory: SurfaceFactory | None = None,
        validator: RecordValidator | None = None,
    ) -> BatchCoordinator:
        """Build a coordinator and apply ``config.logging`` to the process."""
        configure_logging_from_config(config.logging)
        return cls(
            surface,
            surface_factory=surface_factory,
            config=config,
            validator=validator,
        )

    @property
    def active_batch(self) -> BatchHandle | None:
        """The batch currently running, if any."""
        if self._active is not None and not self._active.done:
            return self._active
        return None

    @property
    def last_summary(self) -> BatchSummary | None:
        """Summary of the most recently finished batch."""
        return self._last_summary

    def validate_record(self, record: Mapping[str, Any]) -> ValidationResult:
        """Validate ``record`` without processing it."""
        return self.validator.validate(record)

    def start_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        config: PipelineConfig | None = None,
        on_progress: EventCallback | None = None,
    ) -> BatchHandle:
        """Start a batch in the background and return its handle.

        Must be called from a running event loop. Configuration problems
        (empty batch, oversized batch, missing surface) are raised when the
        handle is awaited, after an ``error`` event has been published.

        Raises:
            BatchInProgressError: Another batch is still running here.
        """
        active = self.active_batch
        if active is not None:
            raise BatchInProgressError(active.batch_id)

        records = list(records)
        handle = BatchHandle(new_batch_id(), len(records))
        self._active = handle
        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, records, config or self.config, on_progress),
            name=handle.batch_id,
        )
        return handle

    async def submit_batch(
        self,
        records: Sequence[Mapping[str, Any]],
        config: PipelineConfig | None = None,
        on_progress: EventCallback | None = None,
    ) -> list[UnitResult]:
        """Run a batch to completion.

        Returns:
            One ``UnitResult`` per started record, in input order.

        Raises:
            ConfigurationError: The batch cannot run, or a record reported a
                configuration problem.
            BatchInProgressError: Another batch is still running here.
        """
        return await self.start_batch(records, config, on_progress)

    def cancel_batch(self) -> CancelResult:
        """Ask the running batch to stop before its next record."""
        active = self.active_batch
        if active is None or not active.cancel():
            return CancelResult(cancelled=False)
        _logger.info(
            "batch.cancel_requested",
            batch_id=active.batch_id,
            completed=len(active.results),
            total=active.total,
        )
        return CancelResult(cancelled=True, batch_id=active.batch_id)

    # ─── Batch execution ──────────────────────────────────────────────

    async def _run(
        self,
        handle: BatchHandle,
        records: list[Mapping[str, Any]],
        config: PipelineConfig,
        on_progress: EventCallback | None,
    ) -> list[UnitResult]:
        sub_id = self.publisher.subscribe(on_progress) if on_progress is not None else None
        ctx = BatchContext(batch_id=handle.batch_id, component="coordinator")
        started = time.monotonic()
        handle.status = BatchStatus.RUNNING
        try:
            with with_context(ctx):
                try:
                    self._check_preconditions(records, config)
                    _logger.info(
                        "batch.started",
                        total=len(records),
                        concurrency=config.concurrency,
                    )
                    self.publisher.publish(ProgressEvent(
                        ProgressEventType.BATCH_START,
                        f"Starting batch of {len(records)} records",
                        batch_id=handle.batch_id,
                        total=len(records),
                    ))
                    if config.concurrency > 1:
                        await self._run_pool(handle, records, config, ctx)
                    else:
                        surface = self._serial_surface()
                        await self._run_serial(handle, records, config, surface, ctx)
                except ConfigurationError as exc:
                    handle.status = BatchStatus.FAILED
                    _logger.error("batch.aborted", error=exc.message, completed=len(handle.results))
                    self.publisher.publish(ProgressEvent(
                        ProgressEventType.ERROR,
                        f"Batch aborted: {exc.message}",
                        batch_id=handle.batch_id,
                        error=exc.message,
                        error_code=exc.code,
                    ))
                    raise
                except BaseException:
                    handle.status = BatchStatus.FAILED
                    raise

                return self._finish(handle, len(records), started)
        finally:
            if sub_id is not None:
                await self.publisher.flush(ms_to_seconds(config.progress_flush_timeout_ms))
                self.publisher.unsubscribe(sub_id)

    def _check_preconditions(
        self,
        records: list[Mapping[str, Any]],
        config: PipelineConfig,
    ) -> None:
        if not records:
            raise ConfigurationError("records", "Batch contains no records")
        if len(records) > config.max_batch_size:
            raise ConfigurationError(
                "max_batch_size",
                f"Batch of {len(records)} records exceeds the limit of {config.max_batch_size}",
            )
        if config.concurrency > 1 and self._surface_factory is None:
            raise ConfigurationError(
                "surface_factory",
                f"concurrency={config.concurrency} needs a surface factory so each "
                "worker owns its own surface",
            )
        if self._surface is None and self._surface_factory is None:
            raise ConfigurationError("surface", "No automation surface configured")

    def _build_surface(self) -> AutomationSurface:
        assert self._surface_factory is not None
        return self._surface_factory()

    def _serial_surface(self) -> AutomationSurface:
        if self._surface is not None:
            return self._surface
        return self._build_surface()

    async def _run_serial(
        self,
        handle: BatchHandle,
        records: list[Mapping[str, Any]],
        config: PipelineConfig,
        surface: AutomationSurface,
        ctx: BatchContext,
    ) -> None:
        processor = UnitProcessor(surface, config, validator=self.validator)
        total = len(records)
        for position, record in enumerate(records, start=1):
            if handle.cancelled:
                break
            result, processed = await self._run_one(handle, processor, record, position, ctx)
            handle.results.append(result)
            if processed and position < total and not handle.cancelled:
                await self._pause(config)

    async def _run_pool(
        self,
        handle: BatchHandle,
        records: list[Mapping[str, Any]],
        config: PipelineConfig,
        ctx: BatchContext,
    ) -> None:
        total = len(records)
        next_position = 1
        aborted = False

        async def worker(number: int) -> None:
            nonlocal next_position, aborted
            worker_ctx = ctx.with_worker(number)
            with with_context(worker_ctx):
                try:
                    processor = UnitProcessor(
                        self._build_surface(), config, validator=self.validator
                    )
                    _logger.debug("batch.worker_started")
                    while not handle.cancelled and not aborted and next_position <= total:
                        position = next_position
                        next_position += 1
                        result, processed = await self._run_one(
                            handle, processor, records[position - 1], position, worker_ctx
                        )
                        handle.results.append(result)
                        if processed and next_position <= total and not handle.cancelled:
                            await self._pause(config)
                except ConfigurationError:
                    aborted = True
                    raise

        worker_count = min(config.concurrency, total)
        outcomes = await asyncio.gather(
            *(worker(n) for n in range(1, worker_count + 1)),
            return_exceptions=True,
        )
        handle.results.sort(key=lambda r: r.index or 0)

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        for error in errors:
            if isinstance(error, ConfigurationError):
                raise error
        if errors:
            raise errors[0]

    async def _run_one(
        self,
        handle: BatchHandle,
        processor: UnitProcessor,
        record: Mapping[str, Any],
        position: int,
        ctx: BatchContext,
    ) -> tuple[UnitResult, bool]:
        """Validate and process one record.

        Returns:
            ``(result, processed)``; ``processed`` is False when the record
            was rejected by validation and never reached the surface.
        """
        total = handle.total
        record_id = derive_record_id(record, position)

        def emit(event: ProgressEvent) -> None:
            self.publisher.publish(
                event.tagged(batch_id=handle.batch_id, current=position, total=total)
            )

        self.publisher.publish(ProgressEvent(
            ProgressEventType.PROGRESS,
            f"Processing record {position} of {total}",
            batch_id=handle.batch_id,
            record_id=record_id,
            current=position,
            total=total,
            percent=int(position * 100 / total + 0.5),
        ))

        with with_context(ctx.with_record(record_id, position)):
            validation = self.validator.validate(record)
            if not validation.valid:
                error = invalid_record_error(validation)
                _logger.info("batch.record_invalid", error=error.message)
                emit(ProgressEvent(
                    ProgressEventType.ERROR,
                    f"Record {record_id} failed validation: {error.message}",
                    record_id=record_id,
                    state=UnitState.INVALID.value,
                    error=error.message,
                    error_code=error.code,
                ))
                return UnitResult(
                    success=False,
                    record_id=record_id,
                    error=error.message,
                    error_code=error.code,
                    state=UnitState.INVALID,
                    index=position,
                ), False

            result = await processor.process(
                record,
                record_id=record_id,
                emit=emit,
                validation=validation,
                index=position,
            )
            return result, True

    async def _pause(self, config: PipelineConfig) -> None:
        if config.inter_record_delay_ms > 0:
            await self._sleep(ms_to_seconds(config.inter_record_delay_ms))

    def _finish(self, handle: BatchHandle, record_count: int, started: float) -> list[UnitResult]:
        results = list(handle.results)
        successful = sum(1 for r in results if r.success)
        summary = BatchSummary(
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            skipped=record_count - len(results),
            cancelled=handle.cancelled,
            duration_seconds=time.monotonic() - started,
        )
        handle.summary = summary
        self._last_summary = summary

        if handle.cancelled:
            self.publisher.publish(ProgressEvent(
                ProgressEventType.WARNING,
                f"Batch cancelled after {len(results)} of {record_count} records",
                batch_id=handle.batch_id,
                current=len(results),
                total=record_count,
            ))

        self.publisher.publish(ProgressEvent(
            ProgressEventType.BATCH_COMPLETE,
            f"Batch complete: {summary.successful} succeeded, {summary.failed} failed",
            batch_id=handle.batch_id,
            summary=summary.to_dict(),
            results=[r.to_dict() for r in results],
        ))
        handle.status = BatchStatus.CANCELLED if handle.cancelled else BatchStatus.COMPLETED
        _logger.info("batch.completed", **summary.to_dict())
        return results


__all__ = [
    "BatchCoordinator",
    "BatchHandle",
    "BatchStatus",
    "BatchSummary",
    "CancelResult",
    "SurfaceFactory",
    "derive_record_id",
    "new_batch_id",
]
