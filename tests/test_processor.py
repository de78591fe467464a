"""Tests for sce_pipeline.execution.processor.

Covers the unit state machine, the validate/fill/capture flow, retry of
the fill stage and graceful capture degradation.
"""

from __future__ import annotations

import pytest

from sce_pipeline.core.errors import (
    ConfigurationError,
    ErrorCode,
    NetworkError,
    ScrapingError,
)
from sce_pipeline.execution.processor import (
    UnitProcessor,
    UnitResult,
    UnitState,
    UnitStateError,
    UnitStateMachine,
)
from sce_pipeline.execution.surface import CapturedData, FillOutcome
from tests.helpers import EventRecorder, FakeSurface, fast_config, make_case_record


async def _process(
    surface: FakeSurface,
    record: dict,
    recorder: EventRecorder,
    **config_overrides,
) -> UnitResult:
    processor = UnitProcessor(surface, fast_config(**config_overrides))
    return await processor.process(
        record,
        record_id=str(record.get("applicationId", "record-1")),
        emit=recorder,
    )


# ─── State machine ────────────────────────────────────────────────────


class TestUnitStateMachine:
    """Tests for allowed and rejected transitions."""

    def test_happy_path(self) -> None:
        machine = UnitStateMachine()
        for state in (
            UnitState.VALIDATING,
            UnitState.FILLING,
            UnitState.CAPTURING,
            UnitState.COMPLETE,
        ):
            machine.advance(state)
        assert machine.state is UnitState.COMPLETE
        assert machine.history[0] is UnitState.PENDING

    def test_illegal_transition_raises(self) -> None:
        machine = UnitStateMachine()
        with pytest.raises(UnitStateError) as exc_info:
            machine.advance(UnitState.CAPTURING)
        assert exc_info.value.current is UnitState.PENDING
        assert exc_info.value.target is UnitState.CAPTURING

    def test_terminal_states_allow_nothing(self) -> None:
        machine = UnitStateMachine()
        machine.advance(UnitState.VALIDATING)
        machine.advance(UnitState.INVALID)
        with pytest.raises(UnitStateError):
            machine.advance(UnitState.FILLING)

    @pytest.mark.parametrize(
        "state",
        [UnitState.INVALID, UnitState.FILL_FAILED, UnitState.COMPLETE, UnitState.CAPTURE_TIMEOUT],
    )
    def test_terminal_flag(self, state: UnitState) -> None:
        assert state.is_terminal is True

    def test_non_terminal_flag(self) -> None:
        assert UnitState.FILLING.is_terminal is False


# ─── Happy path ───────────────────────────────────────────────────────


class TestProcessSuccess:
    """Tests for records that complete."""

    @pytest.mark.asyncio
    async def test_complete_result(self, surface: FakeSurface, recorder: EventRecorder) -> None:
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is True
        assert result.state is UnitState.COMPLETE
        assert result.record_id == "APP-001"
        assert result.data == {"applicationId": "APP-001", "status": "submitted"}
        assert result.attempts == 1
        assert result.partial is False
        assert result.error is None

    @pytest.mark.asyncio
    async def test_event_sequence(self, surface: FakeSurface, recorder: EventRecorder) -> None:
        """start, one info per transition, data_captured, complete."""
        await _process(surface, make_case_record(), recorder)
        assert recorder.types == [
            "start",
            "info",  # validating
            "info",  # filling
            "info",  # form filled
            "info",  # capturing
            "data_captured",
            "info",  # complete
            "complete",
        ]
        assert [e.state for e in recorder.of_type("info")] == [
            "validating",
            "filling",
            "filling",
            "capturing",
            "complete",
        ]

    @pytest.mark.asyncio
    async def test_events_carry_record_id(self, surface: FakeSurface, recorder: EventRecorder) -> None:
        await _process(surface, make_case_record("APP-9"), recorder)
        assert {e.record_id for e in recorder.events} == {"APP-9"}

    @pytest.mark.asyncio
    async def test_capture_delay_passed_to_surface(self, recorder: EventRecorder) -> None:
        surface = FakeSurface()
        await _process(surface, make_case_record(), recorder, capture_delay_ms=25)
        assert surface.capture_calls == [25]

    @pytest.mark.asyncio
    async def test_record_not_mutated(self, surface: FakeSurface, recorder: EventRecorder) -> None:
        record = make_case_record()
        snapshot = dict(record)
        await _process(surface, record, recorder)
        assert record == snapshot

    @pytest.mark.asyncio
    async def test_precomputed_validation_is_used(self, surface: FakeSurface, recorder: EventRecorder) -> None:
        """A passed-in validation result is trusted as-is."""
        from sce_pipeline.validation import ValidationResult

        processor = UnitProcessor(surface, fast_config())
        result = await processor.process(
            {"applicationId": "APP-X"},
            record_id="APP-X",
            emit=recorder,
            validation=ValidationResult(),
            index=4,
        )
        assert result.success is True
        assert result.index == 4


# ─── Validation ───────────────────────────────────────────────────────


class TestProcessInvalid:
    """Tests for records that fail validation."""

    @pytest.mark.asyncio
    async def test_invalid_record_never_reaches_surface(
        self, surface: FakeSurface, recorder: EventRecorder
    ) -> None:
        record = make_case_record()
        del record["Email"]
        result = await _process(surface, record, recorder)
        assert result.success is False
        assert result.state is UnitState.INVALID
        assert result.error == "Validation failed for Email: Required field is missing"
        assert result.error_code == ErrorCode.VALIDATION_ERROR.value
        assert result.attempts == 0
        assert surface.fill_calls == []
        assert recorder.types[-1] == "error"


# ─── Fill stage ───────────────────────────────────────────────────────


class TestProcessFill:
    """Tests for fill retries and failures."""

    @pytest.mark.asyncio
    async def test_surface_not_ready(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(ready=False)
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.state is UnitState.FILL_FAILED
        assert result.error_code == ErrorCode.SURFACE_NOT_READY.value
        assert surface.fill_calls == []

    @pytest.mark.asyncio
    async def test_readiness_check_error_fails_unit(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(ready_errors=[RuntimeError("tab crashed")])
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.state is UnitState.FILL_FAILED
        assert result.error == "tab crashed"
        assert result.attempts == 0
        assert surface.fill_calls == []
        assert recorder.of_type("error")[0].state == "fill_failed"

    @pytest.mark.asyncio
    async def test_readiness_configuration_error_propagates(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(ready_errors=[ConfigurationError("surface", "no browser")])
        with pytest.raises(ConfigurationError):
            await _process(surface, make_case_record(), recorder)
        assert surface.fill_calls == []

    @pytest.mark.asyncio
    async def test_network_error_retried_then_succeeds(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(fill_script={"APP-001": [NetworkError("reset")]})
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is True
        assert result.attempts == 2
        warnings = recorder.of_type("warning")
        assert len(warnings) == 1
        assert warnings[0].attempt == 1
        assert warnings[0].error_code == ErrorCode.NETWORK_ERROR.value

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(
            fill_script={"APP-001": [NetworkError("a"), NetworkError("b"), NetworkError("c")]}
        )
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.state is UnitState.FILL_FAILED
        assert result.attempts == 3
        assert result.error == "c"
        assert len(surface.fill_calls) == 3
        assert len(recorder.of_type("warning")) == 2

    @pytest.mark.asyncio
    async def test_not_found_fails_immediately(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(fill_script={"APP-001": [ScrapingError("form", "NOT_FOUND")]})
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.attempts == 1
        assert result.error == "Scraping failed for form: NOT_FOUND"

    @pytest.mark.asyncio
    async def test_rejected_outcome_is_retried(self, recorder: EventRecorder) -> None:
        """A fill that reports success=False is treated as a scraping failure."""
        surface = FakeSurface(
            fill_script={"APP-001": [FillOutcome(success=False, error="field locked")]}
        )
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is True
        assert result.attempts == 2

    @pytest.mark.asyncio
    async def test_rejected_not_found_outcome_is_final(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(
            fill_script={"APP-001": [FillOutcome(success=False, reason="NOT_FOUND")]}
        )
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.error == "Scraping failed for APP-001: NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unclassified_error_fails_unit(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(fill_script={"APP-001": [RuntimeError("driver crashed")]})
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is False
        assert result.attempts == 1
        assert result.error == "driver crashed"
        assert result.error_code == ErrorCode.UNKNOWN.value
        error_event = recorder.of_type("error")[0]
        assert error_event.error == "driver crashed"

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(
            fill_script={"APP-001": [ConfigurationError("form_url", "not set")]}
        )
        with pytest.raises(ConfigurationError):
            await _process(surface, make_case_record(), recorder)


# ─── Capture stage ────────────────────────────────────────────────────


class TestProcessCapture:
    """Tests for capture degradation."""

    @pytest.mark.asyncio
    async def test_incomplete_capture_is_partial(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(captured=CapturedData(data={"status": "pending"}, complete=False))
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is True
        assert result.partial is True
        assert result.state is UnitState.CAPTURE_TIMEOUT
        assert result.data == {"applicationId": "APP-001", "status": "pending"}

    @pytest.mark.asyncio
    async def test_capture_timeout_returns_fill_data(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(capture_sleep_s=1.0)
        result = await _process(
            surface, make_case_record(), recorder, capture_timeout_ms=10
        )
        assert result.success is True
        assert result.partial is True
        assert result.state is UnitState.CAPTURE_TIMEOUT
        assert result.data == {"applicationId": "APP-001"}

    @pytest.mark.asyncio
    async def test_capture_error_degrades(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(capture_error=NetworkError("tab closed"))
        result = await _process(surface, make_case_record(), recorder)
        assert result.success is True
        assert result.partial is True
        assert recorder.types[-1] == "complete"

    @pytest.mark.asyncio
    async def test_capture_is_not_retried(self, recorder: EventRecorder) -> None:
        surface = FakeSurface(capture_error=NetworkError("tab closed"))
        await _process(surface, make_case_record(), recorder)
        assert len(surface.capture_calls) == 1


class TestUnitResult:
    """Tests for UnitResult serialization."""

    def test_success_to_dict(self) -> None:
        result = UnitResult(success=True, record_id="A", data={"x": 1}, state=UnitState.COMPLETE)
        data = result.to_dict()
        assert data["data"] == {"x": 1}
        assert "error" not in data
        assert data["state"] == "complete"

    def test_failure_to_dict(self) -> None:
        result = UnitResult(
            success=False, record_id="A", error="bad", error_code="X", state=UnitState.INVALID, index=2
        )
        data = result.to_dict()
        assert data["error"] == "bad"
        assert data["error_code"] == "X"
        assert data["index"] == 2
        assert "data" not in data
