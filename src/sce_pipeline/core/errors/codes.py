"""Error kinds, codes and scraping reasons.

Error Taxonomy
==============

Every pipeline failure is an ``SceError`` carrying an ``ErrorKind`` tag.
Retry decisions switch on the tag; no runtime type inspection is needed.

    | Kind          | Code               | Retriable                    |
    |---------------|--------------------|------------------------------|
    | NETWORK       | NETWORK_ERROR      | Yes                          |
    | SCRAPING      | SCRAPING_ERROR     | Yes, unless reason NOT_FOUND |
    | VALIDATION    | VALIDATION_ERROR   | No                           |
    | CONFIGURATION | CONFIG_ERROR       | No (fatal to the batch)      |
    | GENERIC       | any other code     | No                           |

Exceptions that are not ``SceError`` instances classify as GENERIC with
code ``UNKNOWN``.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Tag identifying which branch of the taxonomy an error belongs to."""

    NETWORK = "network"
    """Transient I/O-class condition."""

    SCRAPING = "scraping"
    """The surface could not be read or written; ``reason`` says why."""

    VALIDATION = "validation"
    """Input data is wrong; retrying cannot help."""

    CONFIGURATION = "configuration"
    """The run cannot succeed at all."""

    GENERIC = "generic"
    """Anything else, including non-pipeline exceptions."""


class ErrorCode(str, Enum):
    """Stable machine-readable codes carried on ``SceError.code``."""

    NETWORK_ERROR = "NETWORK_ERROR"
    SCRAPING_ERROR = "SCRAPING_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONFIG_ERROR = "CONFIG_ERROR"
    SURFACE_NOT_READY = "SURFACE_NOT_READY"
    BATCH_IN_PROGRESS = "BATCH_IN_PROGRESS"
    UNKNOWN = "UNKNOWN"


class ScrapingReason:
    """Well-known values for ``ScrapingError`` reasons."""

    NOT_FOUND = "NOT_FOUND"
    """The target does not exist; a permanent absence, never retried."""

    FILL_REJECTED = "FILL_REJECTED"
    """The surface reported an unsuccessful fill without raising."""
