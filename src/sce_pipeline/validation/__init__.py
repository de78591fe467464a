"""Record validation against declarative field rules.

Provides:
- FieldRule / FieldType: the rule table vocabulary
- CASE_FIELD_RULES, ROUTE_ADDRESS_RULES: built-in rule tables
- RecordValidator / validate_record: pure validation entry points
- ValidationReporter / generate_summary: terminal and Markdown output
"""

from sce_pipeline.validation.models import (
    FieldIssue,
    FieldStatus,
    FieldStatusKind,
    ValidationResult,
)
from sce_pipeline.validation.reporter import ValidationReporter, generate_summary
from sce_pipeline.validation.rules import (
    CASE_FIELD_RULES,
    ROUTE_ADDRESS_RULES,
    FieldRule,
    FieldType,
)
from sce_pipeline.validation.validator import RecordValidator, validate_record

__all__ = [
    "CASE_FIELD_RULES",
    "FieldIssue",
    "FieldRule",
    "FieldStatus",
    "FieldStatusKind",
    "FieldType",
    "ROUTE_ADDRESS_RULES",
    "RecordValidator",
    "ValidationReporter",
    "ValidationResult",
    "generate_summary",
    "validate_record",
]
