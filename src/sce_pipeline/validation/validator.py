"""Rule-table record validation.

Validation is pure: the record is never modified and the same record
always produces the same result.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import Any

from sce_pipeline.core.constants import PASSTHROUGH_FIELDS
from sce_pipeline.validation.models import FieldStatusKind, ValidationResult
from sce_pipeline.validation.rules import CASE_FIELD_RULES, FieldRule, FieldType

_BOOLEAN_LIKE = ("true", "false", 1, 0)


def is_absent(value: Any) -> bool:
    """Missing values: ``None`` or a blank string."""
    return value is None or (isinstance(value, str) and not value.strip())


def _bound(limit: float) -> str:
    if isinstance(limit, float) and limit.is_integer():
        return str(int(limit))
    return str(limit)


def _check_number(rule: FieldRule, value: Any) -> tuple[list[str], Any]:
    if isinstance(value, bool):
        return ["Must be a number"], value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return ["Must be a number"], value
    if not isinstance(value, (int, float)) or math.isnan(value):
        return ["Must be a number"], value

    errors = []
    if rule.min_value is not None and value < rule.min_value:
        errors.append(f"Must be at least {_bound(rule.min_value)}")
    if rule.max_value is not None and value > rule.max_value:
        errors.append(f"Must be at most {_bound(rule.max_value)}")
    return errors, value


def _check_string(rule: FieldRule, value: Any) -> list[str]:
    if not isinstance(value, str):
        return ["Must be a string"]
    errors = []
    if rule.min_length and len(value) < rule.min_length:
        errors.append(f"Must be at least {rule.min_length} characters")
    if rule.max_length and len(value) > rule.max_length:
        errors.append(f"Must be at most {rule.max_length} characters")
    return errors


def _matches(rule: FieldRule, value: Any) -> bool:
    return rule.pattern is None or rule.pattern.match(str(value)) is not None


def validate_field(rule: FieldRule, value: Any) -> tuple[list[str], list[str]]:
    """Run the checks for one present value.

    Returns:
        ``(errors, warnings)`` as message lists.
    """
    if rule.transform is not None:
        try:
            value = rule.transform(value)
        except Exception:
            return ["Invalid format - cannot parse value"], []

    errors: list[str] = []
    warnings: list[str] = []

    if rule.type is FieldType.NUMBER:
        type_errors, value = _check_number(rule, value)
        errors.extend(type_errors)
    elif rule.type is FieldType.STRING:
        errors.extend(_check_string(rule, value))
    elif rule.type is FieldType.EMAIL:
        if not _matches(rule, value):
            errors.append("Invalid email format")
    elif rule.type is FieldType.PHONE:
        if not _matches(rule, value):
            errors.append("Invalid phone number (need 10 digits)")
    elif rule.type is FieldType.SELECT:
        if rule.options is not None and value not in rule.options:
            errors.append(f"Must be one of: {', '.join(rule.options)}")
    elif rule.type is FieldType.BOOLEAN:
        if not isinstance(value, bool) and value not in _BOOLEAN_LIKE:
            warnings.append("Value should be boolean (true/false)")

    # Email and phone patterns already ran as the type check.
    if (
        rule.type not in (FieldType.EMAIL, FieldType.PHONE)
        and value is not None
        and not _matches(rule, _pattern_text(value))
    ):
        errors.append("Format does not match required pattern")

    return errors, warnings


def _pattern_text(value: Any) -> Any:
    # A parsed 1200.0 is matched as "1200".
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class RecordValidator:
    """Validates records against a rule table.

    Args:
        rules: Field rules keyed by field name. Defaults to
            ``CASE_FIELD_RULES``.
        passthrough: Keys that may appear without a rule and are never
            reported as unknown.
    """

    def __init__(
        self,
        rules: Mapping[str, FieldRule] | None = None,
        passthrough: Iterable[str] = PASSTHROUGH_FIELDS,
    ) -> None:
        self.rules = rules if rules is not None else CASE_FIELD_RULES
        self.passthrough = frozenset(passthrough)

    def validate(self, record: Mapping[str, Any]) -> ValidationResult:
        result = ValidationResult()

        for name, rule in self.rules.items():
            value = record.get(name)
            if is_absent(value):
                if rule.required:
                    result.add_missing_required(name)
                continue

            errors, warnings = validate_field(rule, value)
            for message in errors:
                result.add_error(name, message)
            for message in warnings:
                result.add_warning(name, message)

            if errors:
                status = FieldStatusKind.ERROR
            elif warnings:
                status = FieldStatusKind.WARNING
            else:
                status = FieldStatusKind.OK
            result.set_field(name, value, status)

        for name in record:
            if name not in self.rules and name not in self.passthrough:
                result.add_warning(name, "Unknown field - will be ignored")

        if "Site Address" in self.rules:
            self._check_address_consistency(record, result)

        return result

    @staticmethod
    def _check_address_consistency(
        record: Mapping[str, Any],
        result: ValidationResult,
    ) -> None:
        """Warn when the looked-up address and the case address look unrelated."""
        looked_up = record.get("address")
        site = record.get("Site Address")
        if not isinstance(looked_up, str) or not isinstance(site, str):
            return
        if is_absent(looked_up) or is_absent(site):
            return
        looked_up = looked_up.lower()
        site = site.lower()
        if looked_up.split()[0] not in site and site.split()[0] not in looked_up:
            result.add_warning("Site Address", "May not match looked-up address")


_default_validator = RecordValidator()


def validate_record(
    record: Mapping[str, Any],
    rules: Mapping[str, FieldRule] | None = None,
) -> ValidationResult:
    """Validate ``record`` against ``rules`` (case rules by default)."""
    if rules is None:
        return _default_validator.validate(record)
    return RecordValidator(rules).validate(record)


__all__ = ["RecordValidator", "is_absent", "validate_field", "validate_record"]
