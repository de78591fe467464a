"""Pytest fixtures for pipeline tests."""

import logging
from typing import Generator

import pytest
import structlog

from sce_pipeline.core.config import PipelineConfig
from tests.helpers import EventRecorder, FakeSurface, fast_config, make_case_record


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    This ensures test isolation for logging configuration.
    """
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def config() -> PipelineConfig:
    """Pipeline config with zero delays."""
    return fast_config()


@pytest.fixture
def surface() -> FakeSurface:
    """A ready surface whose fills and captures always succeed."""
    return FakeSurface()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def case_record() -> dict:
    """A record that passes the default case rules."""
    return make_case_record()
