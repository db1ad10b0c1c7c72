"""
Exceptions for configuration and programming errors.

Constraint violations and failed verifications are not exceptions; they are
reported as verdicts. Everything raised from here is fatal to a run.
"""


class RecordGateError(Exception):
    """Base class for recordgate errors."""


class SpecificationError(RecordGateError):
    """The caller supplied an invalid pipeline or constraint specification."""


class UnknownConstraintTypeError(SpecificationError):
    """A constraint declared a type no evaluator exists for."""

    def __init__(self, constraint_type: str, name: str = ""):
        self.constraint_type = constraint_type
        self.name = name
        label = f" (constraint '{name}')" if name else ""
        super().__init__(f"Unknown constraint type: {constraint_type!r}{label}")


class UnknownFieldTypeError(SpecificationError):
    """A field-type tag was requested that no normalizer or type check knows."""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Unknown field type tag: {tag!r}")


class SealedRecordError(RecordGateError):
    """A record was modified after the gate decided on it."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record {record_id} is sealed; the gate has already decided on it")
