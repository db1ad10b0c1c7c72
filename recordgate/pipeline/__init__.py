"""Pipeline stages for record validation."""

from .normalizer import Normalizer, SocialProfile
from .experience import ExperienceCalculator, ExperienceSummary
from .schema import SchemaValidator
from .authenticity import AuthenticityChecker
from .constraints import ConstraintEngine
from .anomaly import AnomalyDetector
from .dedup import Deduplicator
from .enrichment import RecordEnricher
from .gate import ValidationGate
from .report import build_report
from .orchestrator import run_pipeline

__all__ = [
    "Normalizer",
    "SocialProfile",
    "ExperienceCalculator",
    "ExperienceSummary",
    "SchemaValidator",
    "AuthenticityChecker",
    "ConstraintEngine",
    "AnomalyDetector",
    "Deduplicator",
    "RecordEnricher",
    "ValidationGate",
    "build_report",
    "run_pipeline",
]
