"""
Pydantic models for recordgate.
All data contracts are defined here for strict validation.
"""

from .verdicts import (
    VerdictStatus,
    Severity,
    RejectionCategory,
    RecordStatus,
    ConstraintVerdict,
    TypeErrorDetail,
    SchemaResult,
    SyntheticFinding,
    Mismatch,
    CheckResult,
    AuthenticityVerdict,
    QualityIssue,
    RejectionReason,
    ValidationBlock,
)
from .record import Record, is_blank
from .constraints import ConstraintType, ConstraintSpec, PipelineSpec
from .evidence import (
    EvidenceStatus,
    PageEvidence,
    ProfileEvidence,
    SourceBundle,
    RecordEvidence,
)
from .merge import SourcedValue, FieldConflict, DuplicateLink, MergeGroup, DedupResult
from .report import BatchUniformity, ConstraintStats, ValidationReport, PipelineResult

__all__ = [
    # Verdicts
    "VerdictStatus",
    "Severity",
    "RejectionCategory",
    "RecordStatus",
    "ConstraintVerdict",
    "TypeErrorDetail",
    "SchemaResult",
    "SyntheticFinding",
    "Mismatch",
    "CheckResult",
    "AuthenticityVerdict",
    "QualityIssue",
    "RejectionReason",
    "ValidationBlock",
    # Record
    "Record",
    "is_blank",
    # Constraints
    "ConstraintType",
    "ConstraintSpec",
    "PipelineSpec",
    # Evidence
    "EvidenceStatus",
    "PageEvidence",
    "ProfileEvidence",
    "SourceBundle",
    "RecordEvidence",
    # Merge
    "SourcedValue",
    "FieldConflict",
    "DuplicateLink",
    "MergeGroup",
    "DedupResult",
    # Report
    "BatchUniformity",
    "ConstraintStats",
    "ValidationReport",
    "PipelineResult",
]
