"""Tests for sce_pipeline.validation.

Covers required/optional handling, transforms, type checks, standalone
patterns, unknown and passthrough fields, and result formatting.
"""

import re

import pytest

from sce_pipeline.validation import (
    CASE_FIELD_RULES,
    ROUTE_ADDRESS_RULES,
    FieldRule,
    FieldStatusKind,
    FieldType,
    RecordValidator,
    validate_record,
)
from sce_pipeline.validation.validator import is_absent, validate_field
from tests.helpers import make_case_record


def _messages(result, field_name: str) -> list[str]:
    return [e.message for e in result.errors if e.field == field_name]


# ─── Whole records ────────────────────────────────────────────────────


class TestValidateRecord:
    """Tests for validate_record with the case rules."""

    def test_valid_case_record(self) -> None:
        result = validate_record(make_case_record())
        assert result.valid is True
        assert result.errors == []
        assert result.missing_required == []

    def test_thousands_separator_transform(self) -> None:
        """Thousands separators are stripped before the range check."""
        result = validate_record({"Total Sq.Ft.": "1,200"})
        assert _messages(result, "Total Sq.Ft.") == []
        assert result.fields["Total Sq.Ft."].status is FieldStatusKind.OK
        assert result.fields["Total Sq.Ft."].value == "1,200"

    def test_missing_email(self) -> None:
        record = make_case_record()
        del record["Email"]
        result = validate_record(record)
        assert "Email" in result.missing_required
        assert result.valid is False
        assert result.fields["Email"].status is FieldStatusKind.MISSING

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_required_value_is_missing(self, blank) -> None:
        result = validate_record(make_case_record(Phone=blank))
        assert result.missing_required == ["Phone"]
        assert result.valid is False

    def test_optional_absent_fields_are_skipped(self) -> None:
        result = validate_record(make_case_record())
        assert "Lot Size" not in result.fields
        assert "Has Attic" not in result.fields

    def test_validation_does_not_mutate_record(self) -> None:
        record = make_case_record()
        snapshot = dict(record)
        validate_record(record)
        assert record == snapshot

    def test_validation_is_pure(self) -> None:
        record = make_case_record(Email="not-an-email")
        assert validate_record(record).to_dict() == validate_record(record).to_dict()

    def test_unknown_field_warns(self) -> None:
        result = validate_record(make_case_record(Nickname="JR"))
        assert result.valid is True
        assert [(w.field, w.message) for w in result.warnings] == [
            ("Nickname", "Unknown field - will be ignored")
        ]

    def test_passthrough_fields_are_silent(self) -> None:
        record = make_case_record(
            id="42",
            address="123 Main Street",
            scrapedAt="2024-01-01T00:00:00Z",
        )
        result = validate_record(record)
        assert result.warnings == []

    def test_address_mismatch_warns(self) -> None:
        record = make_case_record(address="987 Elm Road")
        result = validate_record(record)
        assert result.valid is True
        assert ("Site Address", "May not match looked-up address") in [
            (w.field, w.message) for w in result.warnings
        ]

    def test_valid_is_false_with_any_error(self) -> None:
        result = validate_record(make_case_record(**{"Number of Bedrooms": "25"}))
        assert result.valid is False
        assert _messages(result, "Number of Bedrooms") == ["Must be at most 20"]


# ─── Field rules ──────────────────────────────────────────────────────


class TestFieldChecks:
    """Tests for individual type checks."""

    def test_number_below_minimum(self) -> None:
        result = validate_record(make_case_record(**{"Total Sq.Ft.": "50"}))
        assert "Must be at least 100" in _messages(result, "Total Sq.Ft.")

    def test_number_above_maximum_shows_plain_bound(self) -> None:
        result = validate_record(make_case_record(**{"Lot Size": "2,000,000"}))
        assert _messages(result, "Lot Size") == ["Must be at most 1000000"]

    def test_unparseable_transform(self) -> None:
        result = validate_record(make_case_record(**{"Year Built": "nineteen"}))
        assert _messages(result, "Year Built") == ["Invalid format - cannot parse value"]

    def test_transform_raising_any_exception_is_a_parse_error(self) -> None:
        """A transform that assumes a string still fails only its field."""
        rules = {
            "Sq": FieldRule(
                "Sq",
                FieldType.NUMBER,
                transform=lambda v: int(v.replace(",", "")),
            )
        }
        result = validate_record({"Sq": 1200}, rules)
        assert result.valid is False
        assert _messages(result, "Sq") == ["Invalid format - cannot parse value"]
        assert result.fields["Sq"].status is FieldStatusKind.ERROR

    def test_number_without_transform_accepts_numeric_string(self) -> None:
        result = validate_record(make_case_record(**{"Attic Area": "450"}))
        assert _messages(result, "Attic Area") == []

    def test_number_without_transform_rejects_text(self) -> None:
        result = validate_record(make_case_record(**{"Attic Area": "lots"}))
        assert _messages(result, "Attic Area") == ["Must be a number"]

    def test_boolean_is_not_a_number(self) -> None:
        result = validate_record(make_case_record(**{"Attic Area": True}))
        assert _messages(result, "Attic Area") == ["Must be a number"]

    def test_string_length(self) -> None:
        result = validate_record(make_case_record(**{"First Name": "J"}))
        assert _messages(result, "First Name") == ["Must be at least 2 characters"]

    def test_string_type(self) -> None:
        result = validate_record(make_case_record(**{"Contractor Name": 42}))
        assert _messages(result, "Contractor Name") == ["Must be a string"]

    def test_invalid_email(self) -> None:
        result = validate_record(make_case_record(Email="jordan@example"))
        assert _messages(result, "Email") == ["Invalid email format"]

    def test_phone_is_normalised_before_check(self) -> None:
        result = validate_record(make_case_record(Phone="555.123.4567"))
        assert _messages(result, "Phone") == []

    def test_short_phone(self) -> None:
        result = validate_record(make_case_record(Phone="555-1234"))
        assert _messages(result, "Phone") == ["Invalid phone number (need 10 digits)"]

    def test_select_membership(self) -> None:
        result = validate_record(make_case_record(**{"Foundation Type": "Stilts"}))
        assert _messages(result, "Foundation Type") == [
            "Must be one of: Slab, Crawlspace, Basement - Unconditioned, "
            "Basement - Conditioned, Other"
        ]

    @pytest.mark.parametrize("value", [True, False, "true", "false", 1, 0])
    def test_boolean_like_values_accepted(self, value) -> None:
        result = validate_record(make_case_record(**{"Has Attic": value}))
        assert not [w for w in result.warnings if w.field == "Has Attic"]

    def test_boolean_is_advisory(self) -> None:
        """A non-boolean value warns but keeps the record valid."""
        result = validate_record(make_case_record(**{"Has Attic": "yes"}))
        assert result.valid is True
        assert result.fields["Has Attic"].status is FieldStatusKind.WARNING
        assert [w.message for w in result.warnings] == ["Value should be boolean (true/false)"]

    def test_standalone_pattern_runs_after_type_check(self) -> None:
        """A license in range for a string but not all digits fails the pattern."""
        result = validate_record(make_case_record(**{"Contractor License": "AB12345"}))
        assert _messages(result, "Contractor License") == [
            "Format does not match required pattern"
        ]

    def test_year_built_requires_integer_literal(self) -> None:
        """A decimal year cannot be parsed as an integer."""
        result = validate_record(make_case_record(**{"Year Built": "1985.0"}))
        assert _messages(result, "Year Built") == ["Invalid format - cannot parse value"]

    def test_validate_field_with_custom_rule(self) -> None:
        rule = FieldRule("Code", FieldType.STRING, pattern=re.compile(r"^[A-Z]{3}$"))
        assert validate_field(rule, "ABC") == ([], [])
        assert validate_field(rule, "abc") == (["Format does not match required pattern"], [])


class TestIsAbsent:
    """Tests for the absence predicate."""

    @pytest.mark.parametrize("value", [None, "", "  \t"])
    def test_absent(self, value) -> None:
        assert is_absent(value) is True

    @pytest.mark.parametrize("value", [0, False, "x", []])
    def test_present(self, value) -> None:
        assert is_absent(value) is False


# ─── Other rule tables ────────────────────────────────────────────────


class TestRouteAddressRules:
    """Tests for ROUTE_ADDRESS_RULES."""

    def test_valid_route_address(self) -> None:
        record = {"number": "123", "street": "Main St", "zip": "90210", "full": "123 Main St, 90210"}
        assert validate_record(record, ROUTE_ADDRESS_RULES).valid is True

    def test_bad_zip(self) -> None:
        record = {"number": "123", "street": "Main St", "zip": "9021", "full": "123 Main St"}
        result = validate_record(record, ROUTE_ADDRESS_RULES)
        assert result.valid is False
        assert _messages(result, "zip") == ["Format does not match required pattern"]

    def test_missing_parts(self) -> None:
        result = validate_record({"zip": "90210"}, ROUTE_ADDRESS_RULES)
        assert result.missing_required == ["number", "street", "full"]


class TestRecordValidator:
    """Tests for RecordValidator configuration."""

    def test_default_rules(self) -> None:
        assert RecordValidator().rules is CASE_FIELD_RULES

    def test_custom_passthrough(self) -> None:
        validator = RecordValidator(ROUTE_ADDRESS_RULES, passthrough={"routeId"})
        record = {
            "routeId": "R-1",
            "number": "1",
            "street": "Elm",
            "zip": "12345",
            "full": "1 Elm 12345",
        }
        result = validator.validate(record)
        assert result.warnings == []


# ─── Results ──────────────────────────────────────────────────────────


class TestValidationResult:
    """Tests for ValidationResult helpers."""

    def test_to_dict(self) -> None:
        record = make_case_record()
        del record["Email"]
        data = validate_record(record).to_dict()
        assert data["valid"] is False
        assert data["missing_required"] == ["Email"]
        assert data["fields"]["Email"] == {"value": None, "status": "missing"}

    def test_format_report_failed(self) -> None:
        record = make_case_record(Email="broken")
        report = validate_record(record).format_report()
        assert report.startswith("VALIDATION FAILED")
        assert "Email: Invalid email format" in report
        assert "Summary:" in report

    def test_format_report_passed(self) -> None:
        report = validate_record(make_case_record()).format_report()
        assert report.startswith("VALIDATION PASSED")
