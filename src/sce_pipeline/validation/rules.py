"""Declarative field rules for record validation.

A rule table maps field names to ``FieldRule`` objects. The validator walks
the table in order, so the table order is also the report order.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sce_pipeline.utils.time import utc_now


class FieldType(str, Enum):
    """Type-specific check applied to a field value."""

    NUMBER = "number"
    STRING = "string"
    EMAIL = "email"
    PHONE = "phone"
    SELECT = "select"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class FieldRule:
    """Validation rule for a single field.

    Attributes:
        name: Field name as it appears in the record.
        type: Which type-specific check runs.
        required: Absent required fields are reported as missing.
        min_value: Inclusive lower bound for numbers.
        max_value: Inclusive upper bound for numbers.
        min_length: Minimum string length.
        max_length: Maximum string length.
        options: Allowed values for selects.
        pattern: Regex the value must fully match. For email and phone this
            is the type check itself; for other types it runs after the type
            check against ``str(value)``.
        transform: Applied to the raw value before any check. Raising
            marks the field unparseable.
    """

    name: str
    type: FieldType
    required: bool = False
    min_value: float | None = None
    max_value: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    options: tuple[str, ...] | None = None
    pattern: re.Pattern[str] | None = None
    transform: Callable[[Any], Any] | None = None


def strip_thousands_int(value: Any) -> int:
    """``"1,200"`` -> ``1200``. Raises ValueError when not an integer."""
    return int(str(value).replace(",", "").strip())


def strip_thousands_float(value: Any) -> float:
    """``"12,500.5"`` -> ``12500.5``. Raises ValueError when not numeric."""
    return float(str(value).replace(",", "").strip())


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not an integer")
    return int(str(value).strip())


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    return float(str(value).strip())


def digits_only(value: Any) -> str:
    """Keep only the digits of a phone number."""
    return re.sub(r"\D", "", str(value))


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\d{10}$")
ZIP_PATTERN = re.compile(r"^\d{5}$")


def _table(*rules: FieldRule) -> Mapping[str, FieldRule]:
    return {rule.name: rule for rule in rules}


PROPERTY_TYPES = (
    "Single Family Detached",
    "Single Family Attached",
    "Duplex",
    "Triplex",
    "Fourplex",
    "Mobile Home",
    "Manufactured Home",
    "Condominium",
    "Townhouse",
)

FOUNDATION_TYPES = (
    "Slab",
    "Crawlspace",
    "Basement - Unconditioned",
    "Basement - Conditioned",
    "Other",
)

ATTIC_ACCESS_OPTIONS = ("Easy Access", "Difficult Access", "No Access")

# Evaluated at import; a process that outlives New Year keeps last year's bound.
_LATEST_YEAR_BUILT = utc_now().year + 1

CASE_FIELD_RULES: Mapping[str, FieldRule] = _table(
    # Project information
    FieldRule(
        "Total Sq.Ft.",
        FieldType.NUMBER,
        required=True,
        min_value=100,
        max_value=50000,
        pattern=re.compile(r"^\d{3,5}$"),
        transform=strip_thousands_int,
    ),
    FieldRule(
        "Year Built",
        FieldType.NUMBER,
        required=True,
        min_value=1800,
        max_value=_LATEST_YEAR_BUILT,
        pattern=re.compile(r"^\d{4}$"),
        transform=to_int,
    ),
    FieldRule(
        "Site Address",
        FieldType.STRING,
        required=True,
        min_length=10,
        max_length=200,
    ),
    FieldRule(
        "Lot Size",
        FieldType.NUMBER,
        min_value=1000,
        max_value=1000000,
        transform=strip_thousands_float,
    ),
    FieldRule(
        "Number of Bedrooms",
        FieldType.NUMBER,
        required=True,
        min_value=0,
        max_value=20,
        transform=to_int,
    ),
    FieldRule(
        "Number of Bathrooms",
        FieldType.NUMBER,
        required=True,
        min_value=0,
        max_value=20,
        transform=to_float,
    ),
    # Assessment questionnaire
    FieldRule("Property Type", FieldType.SELECT, required=True, options=PROPERTY_TYPES),
    FieldRule("Foundation Type", FieldType.SELECT, required=True, options=FOUNDATION_TYPES),
    FieldRule("Has Attic", FieldType.BOOLEAN),
    FieldRule("Attic Access", FieldType.SELECT, options=ATTIC_ACCESS_OPTIONS),
    FieldRule("Attic Area", FieldType.NUMBER, min_value=0, max_value=10000),
    # Customer information
    FieldRule("First Name", FieldType.STRING, required=True, min_length=2, max_length=50),
    FieldRule("Last Name", FieldType.STRING, required=True, min_length=2, max_length=50),
    FieldRule("Email", FieldType.EMAIL, required=True, pattern=EMAIL_PATTERN),
    FieldRule(
        "Phone",
        FieldType.PHONE,
        required=True,
        pattern=PHONE_PATTERN,
        transform=digits_only,
    ),
    # Trade ally
    FieldRule("Contractor Name", FieldType.STRING, required=True),
    FieldRule(
        "Contractor License",
        FieldType.STRING,
        required=True,
        pattern=re.compile(r"^\d{6,10}$"),
    ),
)
"""Rules for a full customer case record."""

ROUTE_ADDRESS_RULES: Mapping[str, FieldRule] = _table(
    FieldRule("number", FieldType.STRING, required=True),
    FieldRule("street", FieldType.STRING, required=True),
    FieldRule("zip", FieldType.STRING, required=True, pattern=ZIP_PATTERN),
    FieldRule("full", FieldType.STRING, required=True),
    FieldRule("city", FieldType.STRING),
    FieldRule("state", FieldType.STRING),
)
"""Rules for a route-planning address record."""


__all__ = [
    "CASE_FIELD_RULES",
    "EMAIL_PATTERN",
    "FieldRule",
    "FieldType",
    "PHONE_PATTERN",
    "ROUTE_ADDRESS_RULES",
    "ZIP_PATTERN",
    "digits_only",
    "strip_thousands_float",
    "strip_thousands_int",
    "to_float",
    "to_int",
]
