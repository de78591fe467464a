"""Pipeline-wide defaults.

Durations are in milliseconds to match the units used by the automation
surface and the record sources feeding it.
"""

# =============================================================================
# Retry / backoff
# =============================================================================

DEFAULT_MAX_ATTEMPTS = 3
"""Fill attempts per record, first try included."""

DEFAULT_BASE_DELAY_MS = 1000
"""Backoff delay before the first retry."""

DEFAULT_MAX_DELAY_MS = 10000
"""Upper bound for any single backoff delay."""

# =============================================================================
# Batch timing
# =============================================================================

DEFAULT_CAPTURE_DELAY_MS = 5000
"""Time the surface is given to settle before outcome data is read back."""

DEFAULT_CAPTURE_TIMEOUT_MS = 10000
"""Grace period on top of the capture delay before capture is abandoned."""

DEFAULT_INTER_RECORD_DELAY_MS = 2000
"""Pause between consecutive processed records on one worker."""

# =============================================================================
# Batch limits
# =============================================================================

DEFAULT_MAX_BATCH_SIZE = 50
MAX_CONCURRENCY = 16
DEFAULT_PROGRESS_QUEUE_SIZE = 1000

DEFAULT_PROGRESS_FLUSH_TIMEOUT_MS = 5000
"""How long a finished batch waits for its subscribers to drain."""

SUBSCRIBER_MAX_CONSECUTIVE_FAILURES = 10
"""A progress subscriber is disabled after this many failures in a row."""

# =============================================================================
# Records
# =============================================================================

RECORD_ID_KEYS = ("applicationId", "id", "address")
"""Keys consulted, in order, to derive a record's identifier."""

PASSTHROUGH_FIELDS = frozenset({"id", "address", "applicationId", "scrapedAt"})
"""Metadata keys that may appear on a record without a validation rule."""
