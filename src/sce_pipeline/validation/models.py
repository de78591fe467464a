"""Result types for record validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FieldStatusKind(str, Enum):
    """Outcome of validating one field."""

    OK = "ok"
    WARNING = "warning"
    ERROR = "error"
    MISSING = "missing"


@dataclass(frozen=True)
class FieldIssue:
    """An error or warning attached to a field."""

    field: str
    message: str

    def format_short(self) -> str:
        return f"{self.field}: {self.message}"


@dataclass(frozen=True)
class FieldStatus:
    """The value seen for a field and how it fared.

    ``value`` is the raw record value, before any transform.
    """

    value: Any
    status: FieldStatusKind


STATUS_ICONS = {
    FieldStatusKind.OK: "✓",
    FieldStatusKind.WARNING: "!",
    FieldStatusKind.ERROR: "✗",
    FieldStatusKind.MISSING: "✗",
}


@dataclass
class ValidationResult:
    """Aggregate validation outcome for one record.

    A record is valid when it has no errors and no missing required
    fields. Warnings never affect validity.
    """

    errors: list[FieldIssue] = field(default_factory=list)
    warnings: list[FieldIssue] = field(default_factory=list)
    missing_required: list[str] = field(default_factory=list)
    fields: dict[str, FieldStatus] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors and not self.missing_required

    def add_error(self, field_name: str, message: str) -> None:
        self.errors.append(FieldIssue(field_name, message))

    def add_warning(self, field_name: str, message: str) -> None:
        self.warnings.append(FieldIssue(field_name, message))

    def add_missing_required(self, field_name: str) -> None:
        self.missing_required.append(field_name)
        self.fields[field_name] = FieldStatus(None, FieldStatusKind.MISSING)

    def set_field(self, field_name: str, value: Any, status: FieldStatusKind) -> None:
        self.fields[field_name] = FieldStatus(value, status)

    def count(self, status: FieldStatusKind) -> int:
        return sum(1 for f in self.fields.values() if f.status is status)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [{"field": e.field, "message": e.message} for e in self.errors],
            "warnings": [{"field": w.field, "message": w.message} for w in self.warnings],
            "missing_required": list(self.missing_required),
            "fields": {
                name: {"value": f.value, "status": f.status.value}
                for name, f in self.fields.items()
            },
        }

    def format_report(self) -> str:
        """Plain-text report for logs."""
        lines = ["VALIDATION PASSED" if self.valid else "VALIDATION FAILED", ""]

        lines.append("Field Status:")
        for name, status in self.fields.items():
            shown = "(missing)" if status.value is None else f'"{status.value}"'
            lines.append(f"  {STATUS_ICONS[status.status]} {name:<30} {shown}")

        if self.missing_required:
            lines.append("")
            lines.append("Missing Required Fields:")
            lines.extend(f"  - {name}" for name in self.missing_required)

        if self.errors:
            lines.append("")
            lines.append("Errors:")
            lines.extend(f"  - {issue.format_short()}" for issue in self.errors)

        if self.warnings:
            lines.append("")
            lines.append("Warnings:")
            lines.extend(f"  - {issue.format_short()}" for issue in self.warnings)

        lines.append("")
        lines.append(
            f"Summary: {self.count(FieldStatusKind.OK)} ok, "
            f"{self.count(FieldStatusKind.WARNING)} warnings, "
            f"{self.count(FieldStatusKind.ERROR)} errors, "
            f"{len(self.missing_required)} missing"
        )
        return "\n".join(lines)
