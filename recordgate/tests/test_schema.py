"""
Tests for schema validation.
"""
import pytest

from recordgate.errors import UnknownFieldTypeError
from recordgate.models.record import Record
from recordgate.models.verdicts import VerdictStatus
from recordgate.pipeline.schema import SchemaValidator


class TestSchemaValidator:
    """Tests for SchemaValidator."""

    @pytest.fixture
    def validator(self) -> SchemaValidator:
        return SchemaValidator(
            field_types={
                "name": "string",
                "employees": "integer",
                "revenue": "number",
                "remote": "boolean",
                "skills": "list",
                "founded": "datetime",
            },
            required_fields=["name", "email"],
        )

    def test_complete_record_passes(self, validator):
        record = Record.from_raw({
            "name": "Maria Garcia",
            "email": "maria@northwind.io",
            "employees": 120,
            "revenue": 1.5e6,
            "remote": True,
            "skills": ["sql"],
            "founded": "2015-03-01T00:00:00+00:00",
        })
        result = validator.validate(record)
        assert result.status == VerdictStatus.PASS
        assert result.required_ok

    def test_missing_and_empty_are_separate(self, validator):
        record = Record.from_raw({"name": "   "})
        result = validator.validate(record)
        assert result.missing_fields == ["email"]
        assert result.empty_fields == ["name"]
        assert result.status == VerdictStatus.FAIL

    def test_null_counts_as_missing(self, validator):
        record = Record.from_raw({"name": "Maria", "email": None})
        assert validator.validate(record).missing_fields == ["email"]

    def test_type_errors(self, validator):
        record = Record.from_raw({
            "name": "Maria",
            "email": "maria@northwind.io",
            "employees": "120",
            "revenue": True,
            "founded": "last spring",
        })
        result = validator.validate(record)
        assert result.required_ok
        assert {e.field for e in result.type_errors} == {"employees", "revenue", "founded"}
        assert result.status == VerdictStatus.FAIL

    def test_bool_is_not_an_integer(self, validator):
        record = Record.from_raw({"name": "Maria", "email": "m@n.io", "employees": False})
        errors = validator.validate(record).type_errors
        assert errors[0].expected == "integer"
        assert errors[0].actual == "bool"

    def test_unknown_type_tag_raises(self):
        with pytest.raises(UnknownFieldTypeError):
            SchemaValidator(field_types={"zip": "postal"})

    def test_completeness(self, validator):
        record = Record.from_raw({"name": "Maria", "email": "m@n.io", "employees": 12})
        # 3 of 7 declared or required fields populated
        assert validator.completeness(record) == pytest.approx(42.9)
