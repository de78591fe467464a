"""Time helpers."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ms_to_seconds(value_ms: int | float) -> float:
    """Convert a millisecond duration to seconds for ``asyncio.sleep``."""
    return value_ms / 1000.0
