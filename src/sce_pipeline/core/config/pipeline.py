"""Top-level pipeline configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from sce_pipeline.core.config.execution import RetryPolicy
from sce_pipeline.core.config.observability import LogConfig
from sce_pipeline.core.constants import (
    DEFAULT_CAPTURE_DELAY_MS,
    DEFAULT_CAPTURE_TIMEOUT_MS,
    DEFAULT_INTER_RECORD_DELAY_MS,
    DEFAULT_MAX_BATCH_SIZE,
    DEFAULT_PROGRESS_FLUSH_TIMEOUT_MS,
    DEFAULT_PROGRESS_QUEUE_SIZE,
    MAX_CONCURRENCY,
)


class PipelineConfig(BaseModel):
    """Shared configuration for one batch run.

    Passed unchanged to ``AutomationSurface.fill_record`` so surfaces can
    read their own settings from ``surface_options``.

    Example YAML::

        capture_delay_ms: 5000
        inter_record_delay_ms: 2000
        concurrency: 1
        retry:
          max_attempts: 3
          base_delay_ms: 1000
          max_delay_ms: 10000
        surface_options:
          form_url: https://example.invalid/new-customer
    """

    capture_delay_ms: int = Field(
        default=DEFAULT_CAPTURE_DELAY_MS,
        ge=0,
        description="Delay handed to wait_and_capture before data is read back",
    )
    capture_timeout_ms: int = Field(
        default=DEFAULT_CAPTURE_TIMEOUT_MS,
        gt=0,
        description="Grace period beyond capture_delay_ms before capture degrades "
        "to partial data",
    )
    inter_record_delay_ms: int = Field(
        default=DEFAULT_INTER_RECORD_DELAY_MS,
        ge=0,
        description="Pause between processed records on the same worker",
    )
    max_batch_size: int = Field(
        default=DEFAULT_MAX_BATCH_SIZE,
        ge=1,
        description="Largest batch accepted by submit_batch",
    )
    concurrency: int = Field(
        default=1,
        ge=1,
        le=MAX_CONCURRENCY,
        description="Worker count. Values above 1 require a surface factory so "
        "each worker owns its own automation surface",
    )
    progress_queue_size: int = Field(
        default=DEFAULT_PROGRESS_QUEUE_SIZE,
        ge=1,
        description="Per-subscriber event buffer; oldest events drop when full",
    )
    progress_flush_timeout_ms: int = Field(
        default=DEFAULT_PROGRESS_FLUSH_TIMEOUT_MS,
        ge=0,
        description="How long a finished batch waits for its progress "
        "subscribers to drain before detaching them",
    )
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    logging: LogConfig = Field(default_factory=LogConfig)
    surface_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque settings for the automation surface",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> PipelineConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> PipelineConfig:
        """Load configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
