"""Shared test helpers for pipeline tests."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from sce_pipeline.core.config import PipelineConfig
from sce_pipeline.execution.progress import ProgressEvent
from sce_pipeline.execution.surface import AutomationSurface, CapturedData, FillOutcome


def make_case_record(application_id: str = "APP-001", **overrides: Any) -> dict[str, Any]:
    """A case record that passes the default rule table."""
    record: dict[str, Any] = {
        "applicationId": application_id,
        "Total Sq.Ft.": "1,200",
        "Year Built": "1985",
        "Site Address": "123 Main Street, Springfield",
        "Number of Bedrooms": "3",
        "Number of Bathrooms": "2",
        "Property Type": "Single Family Detached",
        "Foundation Type": "Slab",
        "First Name": "Jordan",
        "Last Name": "Rivera",
        "Email": "jordan@example.com",
        "Phone": "(555) 123-4567",
        "Contractor Name": "Bright Homes",
        "Contractor License": "1234567",
    }
    record.update(overrides)
    return record


def fast_config(**overrides: Any) -> PipelineConfig:
    """Config with every wait set to zero."""
    values: dict[str, Any] = {
        "capture_delay_ms": 0,
        "inter_record_delay_ms": 0,
        "retry": {"max_attempts": 3, "base_delay_ms": 0, "max_delay_ms": 0},
    }
    values.update(overrides)
    return PipelineConfig.model_validate(values)


class FakeSurface(AutomationSurface):
    """Scriptable in-memory automation surface.

    ``fill_script`` maps an applicationId to a list of outcomes consumed one
    per fill attempt; each item is a ``FillOutcome`` or an exception to
    raise. Once a script runs out, fills succeed. ``ready_errors`` are
    raised by successive readiness checks before ``ready`` is consulted.
    """

    def __init__(
        self,
        *,
        fill_script: Mapping[str, list[FillOutcome | BaseException]] | None = None,
        captured: CapturedData | None = None,
        capture_error: BaseException | None = None,
        capture_sleep_s: float = 0.0,
        on_capture: Callable[[Mapping[str, Any]], Awaitable[None] | None] | None = None,
        ready: bool = True,
        ready_errors: list[BaseException] | None = None,
    ) -> None:
        self.fill_script = {key: list(items) for key, items in (fill_script or {}).items()}
        self.captured = captured or CapturedData(data={"status": "submitted"})
        self.capture_error = capture_error
        self.capture_sleep_s = capture_sleep_s
        self.on_capture = on_capture
        self.ready = ready
        self.ready_errors = list(ready_errors or [])
        self.fill_calls: list[Mapping[str, Any]] = []
        self.capture_calls: list[int] = []
        self._current: Mapping[str, Any] | None = None

    async def fill_record(self, record: Mapping[str, Any], config: PipelineConfig) -> FillOutcome:
        self.fill_calls.append(record)
        self._current = record
        await asyncio.sleep(0)
        script = self.fill_script.get(str(record.get("applicationId")), [])
        if script:
            step = script.pop(0)
            if isinstance(step, BaseException):
                raise step
            return step
        return FillOutcome(success=True, data={"applicationId": record.get("applicationId")})

    async def wait_and_capture(self, delay_ms: int) -> CapturedData:
        self.capture_calls.append(delay_ms)
        if self.on_capture is not None and self._current is not None:
            result = self.on_capture(self._current)
            if result is not None:
                await result
        if self.capture_sleep_s:
            await asyncio.sleep(self.capture_sleep_s)
        if self.capture_error is not None:
            raise self.capture_error
        return self.captured

    def is_automation_surface_ready(self) -> bool:
        if self.ready_errors:
            raise self.ready_errors.pop(0)
        return self.ready


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays_ms: list[int] = []

    async def __call__(self, seconds: float) -> None:
        self.delays_ms.append(round(seconds * 1000))


class EventRecorder:
    """Progress subscriber that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.type.value for e in self.events]

    def of_type(self, type_name: str) -> list[ProgressEvent]:
        return [e for e in self.events if e.type.value == type_name]
