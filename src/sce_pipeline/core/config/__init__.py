"""Pydantic configuration models.

All models are re-exported here; import from ``sce_pipeline.core.config``.
"""

from sce_pipeline.core.config.execution import RetryPolicy
from sce_pipeline.core.config.observability import LogConfig
from sce_pipeline.core.config.pipeline import PipelineConfig

__all__ = [
    "LogConfig",
    "PipelineConfig",
    "RetryPolicy",
]
