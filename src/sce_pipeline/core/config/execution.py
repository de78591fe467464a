"""Retry configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from sce_pipeline.core.constants import (
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY_MS,
)


class RetryPolicy(BaseModel):
    """Exponential backoff policy for a unit's fill stage.

    The delay before retry ``n`` (1-based) is
    ``min(base_delay_ms * 2 ** (n - 1), max_delay_ms)``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(
        default=DEFAULT_MAX_ATTEMPTS,
        ge=1,
        description="Total attempts, first try included",
    )
    base_delay_ms: int = Field(
        default=DEFAULT_BASE_DELAY_MS,
        ge=0,
        description="Delay before the first retry",
    )
    max_delay_ms: int = Field(
        default=DEFAULT_MAX_DELAY_MS,
        ge=0,
        description="Cap applied to every backoff delay",
    )

    def delay_for(self, attempt: int) -> int:
        """Backoff in milliseconds before retry number ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        return min(self.base_delay_ms * 2 ** (attempt - 1), self.max_delay_ms)
