"""Error taxonomy and retry classification."""

from sce_pipeline.core.errors.codes import ErrorCode, ErrorKind, ScrapingReason
from sce_pipeline.core.errors.models import (
    BatchInProgressError,
    ConfigurationError,
    NetworkError,
    SceError,
    ScrapingError,
    SurfaceNotReadyError,
    ValidationError,
)
from sce_pipeline.core.errors.classifier import (
    ClassifiedError,
    classify_error,
    is_retryable,
)

__all__ = [
    "BatchInProgressError",
    "ClassifiedError",
    "ConfigurationError",
    "ErrorCode",
    "ErrorKind",
    "NetworkError",
    "SceError",
    "ScrapingError",
    "ScrapingReason",
    "SurfaceNotReadyError",
    "ValidationError",
    "classify_error",
    "is_retryable",
]
