"""
Constraint models - user-defined rules and the per-run pipeline specification.
"""
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..errors import SpecificationError, UnknownConstraintTypeError


class ConstraintType(str, Enum):
    """Supported constraint kinds."""
    REQUIRED_FIELDS = "required_fields"
    FORMAT = "format"
    LOCATION = "location"
    EXPERIENCE = "experience"
    SENIORITY = "seniority"
    NUMERIC = "numeric"
    CUSTOM = "custom"


class ConstraintSpec(BaseModel):
    """
    A named hard rule applied to one field of every record.

    Only the parameters relevant to ``type`` are read:

    - required_fields: ``fields`` (falls back to ``[field]``)
    - format: ``pattern`` (named pattern) or ``regex``
    - location: ``allowed_values``
    - numeric: ``minimum``, ``maximum``, ``preferred_minimum``
    - experience: ``minimum``, ``history_field``, ``home_region``;
      ``field`` is an optional pre-computed duration in years
    - seniority: ``levels``
    - custom: ``check`` receives the record's fields and returns
      True (PASS), False (FAIL) or None (UNCERTAIN)
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    type: ConstraintType
    field: Optional[str] = None
    fields: tuple[str, ...] = ()
    allowed_values: tuple[str, ...] = ()
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    preferred_minimum: Optional[float] = None
    pattern: Optional[str] = None
    regex: Optional[str] = None
    levels: tuple[str, ...] = ()
    history_field: str = "work_history"
    home_region: Optional[str] = None
    check: Optional[Callable[[dict[str, Any]], Optional[bool]]] = Field(default=None, exclude=True)
    description: str = ""

    @model_validator(mode="after")
    def _check_target(self) -> "ConstraintSpec":
        needs_field = {
            ConstraintType.FORMAT,
            ConstraintType.LOCATION,
            ConstraintType.NUMERIC,
            ConstraintType.SENIORITY,
        }
        if self.type in needs_field and not self.field:
            raise ValueError(f"constraint '{self.name}' of type {self.type.value} needs a field")
        if self.type == ConstraintType.REQUIRED_FIELDS and not (self.fields or self.field):
            raise ValueError(f"constraint '{self.name}' lists no required fields")
        return self

    @property
    def target_fields(self) -> tuple[str, ...]:
        if self.fields:
            return self.fields
        return (self.field,) if self.field else ()


class PipelineSpec(BaseModel):
    """Everything the caller supplies once per run."""
    model_config = ConfigDict(frozen=True)

    field_types: dict[str, str] = Field(
        default_factory=dict,
        description="Field -> type tag checked by the schema validator",
    )
    required_fields: tuple[str, ...] = ()
    normalizers: dict[str, str] = Field(
        default_factory=dict,
        description="Field -> normalizer tag (url, social, date, country, phone, email, company_size, text)",
    )
    constraints: tuple[ConstraintSpec, ...] = ()

    # Deduplication
    dedup_key: tuple[str, ...] = ("canonical_url",)
    source_priority: tuple[str, ...] = ()
    fuzzy_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    fuzzy_fields: tuple[str, ...] = ("name", "company", "title", "location", "email")
    block_field: Optional[str] = None

    # Anomaly detection; empty means every numeric field
    outlier_fields: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _unique_constraint_names(self) -> "PipelineSpec":
        names = [c.name for c in self.constraints]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ValueError(f"constraint names must be unique: {sorted(duplicates)}")
        return self

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "PipelineSpec":
        """Build a spec from plain data, turning validation problems into SpecificationError."""
        known = {t.value for t in ConstraintType}
        for raw in data.get("constraints", ()):
            kind = raw.get("type") if isinstance(raw, dict) else None
            if isinstance(kind, ConstraintType):
                continue
            if kind is not None and str(kind) not in known:
                raise UnknownConstraintTypeError(str(kind), raw.get("name", ""))
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise SpecificationError(f"Invalid pipeline specification: {e}") from e
