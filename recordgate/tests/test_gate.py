"""
Tests for the final validation gate.
"""
import pytest
from datetime import datetime, timezone

from recordgate.errors import SealedRecordError
from recordgate.models.constraints import ConstraintSpec
from recordgate.models.evidence import EvidenceStatus, PageEvidence, ProfileEvidence, RecordEvidence
from recordgate.models.record import Record
from recordgate.models.verdicts import QualityIssue, RecordStatus, RejectionCategory, Severity
from recordgate.pipeline.authenticity import AuthenticityChecker
from recordgate.pipeline.constraints import ConstraintEngine
from recordgate.pipeline.experience import ExperienceCalculator
from recordgate.pipeline.gate import ValidationGate
from recordgate.pipeline.normalizer import Normalizer
from recordgate.pipeline.schema import SchemaValidator


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def gate() -> ValidationGate:
    normalizer = Normalizer(now=NOW)
    experience = ExperienceCalculator(normalizer)
    return ValidationGate(
        SchemaValidator(
            {"name": "string", "email": "string", "experience_years": "number"},
            required_fields=["name", "email"],
        ),
        ConstraintEngine(normalizer, experience),
        AuthenticityChecker(normalizer, experience),
        constraints=[
            ConstraintSpec(name="us_only", type="location", field="location", allowed_values=("United States",)),
        ],
    )


def make_record(**overrides) -> Record:
    fields = {
        "record_id": "r1",
        "name": "Maria Garcia",
        "email": "maria.garcia@northwind.io",
        "location": "Austin, TX",
    }
    fields.update(overrides)
    return Record.from_raw({k: v for k, v in fields.items() if v is not None})


class TestAdmission:
    """Tests for admitted records."""

    def test_passing_record_is_admitted(self, gate):
        record = make_record()
        assert gate.decide(record) is True
        block = record.validation
        assert block.status == RecordStatus.PASSED
        assert block.rejection_reasons == []
        # mean of unverified authenticity (70) and the location verdict (95)
        assert block.confidence == 82.5
        assert block.completeness == 66.7

    def test_decided_record_is_sealed(self, gate):
        record = make_record()
        gate.decide(record)
        assert record.sealed
        with pytest.raises(SealedRecordError):
            record.set("name", "Someone Else")
        with pytest.raises(SealedRecordError):
            gate.decide(record)

    def test_quality_issues_do_not_reject(self, gate):
        record = make_record()
        issues = [QualityIssue(field="bio", kind="too_short", severity=Severity.LOW)]
        assert gate.decide(record, quality_issues=issues, batch_flags=["complete_uniformity"])
        assert record.validation.quality_issues == issues
        assert record.validation.batch_flags == ["complete_uniformity"]


class TestRejection:
    """Tests for rejection reasons."""

    def test_every_failing_check_adds_a_reason(self, gate):
        record = make_record(email=None, location="London, UK")
        assert gate.decide(record) is False
        assert record.validation.status == RecordStatus.REJECTED
        assert record.validation.categories == [
            RejectionCategory.MISSING_REQUIRED_FIELDS,
            RejectionCategory.CONSTRAINT_FAILED,
        ]

    def test_empty_required_field(self, gate):
        record = make_record(email="  ")
        gate.decide(record)
        reason = record.validation.rejection_reasons[0]
        assert reason.category == RejectionCategory.MISSING_REQUIRED_FIELDS
        assert {"field": "email", "problem": "empty"} in reason.details

    def test_type_error(self, gate):
        record = make_record(experience_years="ten")
        gate.decide(record)
        reason = record.validation.rejection_reasons[0]
        assert reason.category == RejectionCategory.SCHEMA_TYPE_ERROR
        assert reason.details[0]["field"] == "experience_years"

    def test_synthetic_data(self, gate):
        record = make_record(name="Test User")
        assert gate.decide(record) is False
        assert record.validation.categories == [RejectionCategory.SYNTHETIC_DATA]
        assert record.validation.confidence == pytest.approx(47.5)

    def test_unreachable_evidence(self, gate):
        record = make_record()
        evidence = RecordEvidence(page=PageEvidence(status=EvidenceStatus.UNREACHABLE, error="HTTP 503"))
        assert gate.decide(record, evidence) is False
        reason = record.validation.rejection_reasons[0]
        assert reason.category == RejectionCategory.UNVERIFIABLE_EVIDENCE
        assert "source_page" in reason.message

    def test_profile_mismatch(self, gate):
        record = make_record()
        evidence = RecordEvidence(profile=ProfileEvidence(
            status=EvidenceStatus.FETCHED, data={"name": "Robert Chen"},
        ))
        assert gate.decide(record, evidence) is False
        reason = record.validation.rejection_reasons[0]
        assert reason.category == RejectionCategory.AUTHENTICITY_FAILED
        assert reason.details[0]["field"] == "name"
