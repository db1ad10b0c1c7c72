"""
Verdict models - outcomes of every check a record goes through.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class VerdictStatus(str, Enum):
    """Outcome of a single check."""
    PASS = "PASS"
    FAIL = "FAIL"
    UNCERTAIN = "UNCERTAIN"


class Severity(str, Enum):
    """How serious a mismatch or quality issue is."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class RejectionCategory(str, Enum):
    """Machine-readable reason a record was kept out of the clean set."""
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    SCHEMA_TYPE_ERROR = "SCHEMA_TYPE_ERROR"
    CONSTRAINT_FAILED = "CONSTRAINT_FAILED"
    SYNTHETIC_DATA = "SYNTHETIC_DATA"
    UNVERIFIABLE_EVIDENCE = "UNVERIFIABLE_EVIDENCE"
    AUTHENTICITY_FAILED = "AUTHENTICITY_FAILED"


class RecordStatus(str, Enum):
    """Lifecycle state of a record's validation block."""
    PENDING = "pending"
    PASSED = "passed"
    REJECTED = "rejected"


class ConstraintVerdict(BaseModel):
    """Result of evaluating one constraint against one record."""
    constraint: str = Field(description="Name of the constraint (join key for reports)")
    constraint_type: str
    status: VerdictStatus
    expected: Any = None
    actual: Any = None
    confidence: float = Field(ge=0, le=100)
    note: str = ""

    @property
    def passed(self) -> bool:
        return self.status == VerdictStatus.PASS


class TypeErrorDetail(BaseModel):
    """A field whose value has the wrong type."""
    field: str
    expected: str
    actual: str


class SchemaResult(BaseModel):
    """Structural check of a record against the declared schema."""
    missing_fields: list[str] = Field(default_factory=list)
    empty_fields: list[str] = Field(default_factory=list)
    type_errors: list[TypeErrorDetail] = Field(default_factory=list)

    @property
    def required_ok(self) -> bool:
        return not self.missing_fields and not self.empty_fields

    @property
    def status(self) -> VerdictStatus:
        if self.required_ok and not self.type_errors:
            return VerdictStatus.PASS
        return VerdictStatus.FAIL


class SyntheticFinding(BaseModel):
    """A placeholder or template marker found in a field."""
    field: str
    marker: str
    note: str = ""


class Mismatch(BaseModel):
    """Disagreement between a record and external evidence."""
    field: str
    severity: Severity
    check: str = Field(description="Which verification produced it: 'profile' or 'cross_source'")
    claimed: Any = None
    observed: Any = None
    note: str = ""


class CheckResult(BaseModel):
    """Outcome of one authenticity sub-check."""
    status: VerdictStatus
    confidence: float = Field(ge=0, le=100)
    ratio: Optional[float] = None
    note: str = ""


class AuthenticityVerdict(BaseModel):
    """
    Combined synthetic-data and external-verification result for a record.

    ``status`` is always PASS or FAIL: uncertain sub-checks collapse to FAIL.
    ``checks`` keeps the uncollapsed status of every sub-check that ran.
    """
    status: VerdictStatus
    confidence: float = Field(ge=0, le=100)
    checks: dict[str, CheckResult] = Field(default_factory=dict)
    mismatches: list[Mismatch] = Field(default_factory=list)
    synthetic_findings: list[SyntheticFinding] = Field(default_factory=list)
    unreachable: list[str] = Field(
        default_factory=list,
        description="Evidence kinds that were declared but could not be fetched",
    )

    @property
    def passed(self) -> bool:
        return self.status == VerdictStatus.PASS

    @property
    def uncertain(self) -> bool:
        return any(c.status == VerdictStatus.UNCERTAIN for c in self.checks.values())


class QualityIssue(BaseModel):
    """Non-fatal data quality signal (outlier, HTML remnant, etc.)."""
    field: str
    kind: str = Field(description="'outlier', 'html_remnant', 'block_page' or 'too_short'")
    severity: Severity
    note: str = ""


class RejectionReason(BaseModel):
    """Why the gate rejected a record; one per failing check."""
    category: RejectionCategory
    check: str = Field(description="'schema', 'constraints' or 'authenticity'")
    message: str
    details: list[dict[str, Any]] = Field(default_factory=list)


class ValidationBlock(BaseModel):
    """Everything the pipeline learned about a record, attached to it."""
    status: RecordStatus = RecordStatus.PENDING
    schema_result: Optional[SchemaResult] = None
    constraint_status: Optional[VerdictStatus] = None
    constraint_verdicts: list[ConstraintVerdict] = Field(default_factory=list)
    authenticity: Optional[AuthenticityVerdict] = None
    quality_issues: list[QualityIssue] = Field(default_factory=list)
    batch_flags: list[str] = Field(default_factory=list)
    rejection_reasons: list[RejectionReason] = Field(default_factory=list)
    completeness: float = Field(default=0.0, ge=0, le=100)
    confidence: float = Field(default=0.0, ge=0, le=100)

    @property
    def categories(self) -> list[RejectionCategory]:
        return [r.category for r in self.rejection_reasons]
