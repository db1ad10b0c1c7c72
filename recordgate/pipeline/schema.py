"""
Schema validator - field presence and type checks against a declared schema.

Reports problems but never rejects; the gate is the only place a record is
turned away.
"""
import logging
from datetime import date, datetime
from typing import Any, Mapping, Sequence

from ..errors import UnknownFieldTypeError
from ..models.record import Record, is_blank
from ..models.verdicts import SchemaResult, TypeErrorDetail, VerdictStatus


logger = logging.getLogger(__name__)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_datetime(value: Any) -> bool:
    if isinstance(value, (datetime, date)):
        return True
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value.replace("Z", "+00:00"))
            return True
        except ValueError:
            return False
    return False


TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": _is_integer,
    "number": _is_number,
    "boolean": lambda v: isinstance(v, bool),
    "list": lambda v: isinstance(v, (list, tuple)),
    "dict": lambda v: isinstance(v, dict),
    "datetime": _is_datetime,
}


class SchemaValidator:
    """Checks required fields and declared types of a record."""

    def __init__(
        self,
        field_types: Mapping[str, str],
        required_fields: Sequence[str] = (),
    ):
        for tag in field_types.values():
            if tag not in TYPE_CHECKS:
                raise UnknownFieldTypeError(tag)
        self.field_types = dict(field_types)
        self.required_fields = tuple(required_fields)

    def validate(self, record: Record) -> SchemaResult:
        result = SchemaResult()

        for name in self.required_fields:
            value = record.get(name)
            if value is None:
                result.missing_fields.append(name)
            elif is_blank(value):
                result.empty_fields.append(name)

        for name, tag in self.field_types.items():
            value = record.get(name)
            if value is None:
                continue
            if not TYPE_CHECKS[tag](value):
                result.type_errors.append(TypeErrorDetail(
                    field=name,
                    expected=tag,
                    actual=type(value).__name__,
                ))

        if result.status != VerdictStatus.PASS:
            logger.debug(
                f"Record {record.record_id}: missing={result.missing_fields} "
                f"empty={result.empty_fields} type_errors={len(result.type_errors)}"
            )
        return result

    def completeness(self, record: Record) -> float:
        """Percent of declared and required fields that are populated."""
        names = set(self.field_types) | set(self.required_fields)
        if not names:
            names = set(record.fields)
        if not names:
            return 0.0
        filled = sum(1 for name in names if record.has(name))
        return round(filled / len(names) * 100, 1)
