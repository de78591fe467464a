"""Abstract base for automation surfaces.

An automation surface is the external interactive target a unit drives:
a browser tab on a web form, a headless page, a recorded replay. The
pipeline never reaches past this interface; locating fields on a specific
form is the surface's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sce_pipeline.core.config import PipelineConfig


@dataclass(frozen=True)
class FillOutcome:
    """What the surface reports after filling one record."""

    success: bool
    """Whether every field was accepted."""

    data: dict[str, Any] = field(default_factory=dict)
    """Values observed while filling (e.g. a generated application id)."""

    error: str | None = None
    """Human-readable failure description when ``success`` is False."""

    reason: str | None = None
    """Machine-readable failure reason, e.g. ``NOT_FOUND``."""


@dataclass(frozen=True)
class CapturedData:
    """Outcome data read back from the surface after a fill."""

    data: dict[str, Any] = field(default_factory=dict)

    complete: bool = True
    """False when the surface could only observe part of the outcome."""


class AutomationSurface(ABC):
    """Capabilities the pipeline consumes.

    One instance is bound to a coordinator (or to one worker of a pool) at
    construction and is never shared between concurrently running units.
    """

    @abstractmethod
    async def fill_record(
        self,
        record: Mapping[str, Any],
        config: PipelineConfig,
    ) -> FillOutcome:
        """Fill the surface with ``record``.

        May raise a classified ``SceError``; ``NetworkError`` and
        ``ScrapingError`` (other than NOT_FOUND) are retried.
        """
        ...

    @abstractmethod
    async def wait_and_capture(self, delay_ms: int) -> CapturedData:
        """Wait ``delay_ms`` then read back whatever outcome is observable.

        Best effort: partial data is returned rather than raised.
        """
        ...

    @abstractmethod
    def is_automation_surface_ready(self) -> bool:
        """Whether the surface is in a state that accepts a fill."""
        ...

    @property
    def name(self) -> str:
        """Human-readable surface name for logs."""
        return type(self).__name__
