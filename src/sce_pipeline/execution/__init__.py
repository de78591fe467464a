"""Batch execution: retry, unit processing, coordination and progress."""

from sce_pipeline.execution.coordinator import (
    BatchCoordinator,
    BatchHandle,
    BatchStatus,
    BatchSummary,
    CancelResult,
)
from sce_pipeline.execution.processor import (
    UnitProcessor,
    UnitResult,
    UnitState,
    UnitStateError,
)
from sce_pipeline.execution.progress import (
    ProgressEvent,
    ProgressEventType,
    ProgressPublisher,
    ProgressReporter,
)
from sce_pipeline.execution.retry import RetryExecutor, retry_with_backoff
from sce_pipeline.execution.surface import AutomationSurface, CapturedData, FillOutcome

__all__ = [
    "AutomationSurface",
    "BatchCoordinator",
    "BatchHandle",
    "BatchStatus",
    "BatchSummary",
    "CancelResult",
    "CapturedData",
    "FillOutcome",
    "ProgressEvent",
    "ProgressEventType",
    "ProgressPublisher",
    "ProgressReporter",
    "RetryExecutor",
    "UnitProcessor",
    "UnitResult",
    "UnitState",
    "UnitStateError",
    "retry_with_backoff",
]
