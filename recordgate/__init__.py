"""
recordgate - validation and constraint enforcement for scraped records.
"""

from .config import Config, configure_logging, get_config
from .errors import (
    RecordGateError,
    SealedRecordError,
    SpecificationError,
    UnknownConstraintTypeError,
    UnknownFieldTypeError,
)
from .models import (
    ConstraintSpec,
    ConstraintType,
    PipelineResult,
    PipelineSpec,
    Record,
    RecordEvidence,
    ValidationReport,
)
from .pipeline import run_pipeline

__all__ = [
    "Config",
    "configure_logging",
    "get_config",
    "RecordGateError",
    "SealedRecordError",
    "SpecificationError",
    "UnknownConstraintTypeError",
    "UnknownFieldTypeError",
    "ConstraintSpec",
    "ConstraintType",
    "PipelineResult",
    "PipelineSpec",
    "Record",
    "RecordEvidence",
    "ValidationReport",
    "run_pipeline",
]
