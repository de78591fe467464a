"""sce-pipeline: batch record processing against an automation surface.

Validates input records against a declarative rule table, drives each one
through a fill/capture workflow with classified retries, and streams
progress events to observers.
"""

from sce_pipeline.core.config import LogConfig, PipelineConfig, RetryPolicy
from sce_pipeline.core.errors import (
    ConfigurationError,
    NetworkError,
    SceError,
    ScrapingError,
    ValidationError,
    is_retryable,
)
from sce_pipeline.execution.coordinator import BatchCoordinator, BatchHandle
from sce_pipeline.execution.surface import AutomationSurface, CapturedData, FillOutcome
from sce_pipeline.validation import validate_record

__version__ = "0.4.0"

__all__ = [
    "AutomationSurface",
    "BatchCoordinator",
    "BatchHandle",
    "CapturedData",
    "ConfigurationError",
    "FillOutcome",
    "LogConfig",
    "NetworkError",
    "PipelineConfig",
    "RetryPolicy",
    "SceError",
    "ScrapingError",
    "ValidationError",
    "is_retryable",
    "validate_record",
    "__version__",
]
