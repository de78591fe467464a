"""Core configuration, error taxonomy and logging."""

from sce_pipeline.core.config import LogConfig, PipelineConfig, RetryPolicy
from sce_pipeline.core.errors import (
    ClassifiedError,
    ConfigurationError,
    ErrorCode,
    ErrorKind,
    SceError,
    classify_error,
)

__all__ = [
    "ClassifiedError",
    "ConfigurationError",
    "ErrorCode",
    "ErrorKind",
    "LogConfig",
    "PipelineConfig",
    "RetryPolicy",
    "SceError",
    "classify_error",
]
