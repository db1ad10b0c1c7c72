"""
Tests for synthetic-data detection and evidence verification.
"""
import pytest
from datetime import datetime, timezone

from recordgate.models.evidence import (
    EvidenceStatus,
    PageEvidence,
    ProfileEvidence,
    RecordEvidence,
    SourceBundle,
)
from recordgate.models.record import Record
from recordgate.models.verdicts import Severity, VerdictStatus
from recordgate.pipeline.authenticity import AuthenticityChecker
from recordgate.pipeline.experience import ExperienceCalculator
from recordgate.pipeline.normalizer import Normalizer


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def checker() -> AuthenticityChecker:
    normalizer = Normalizer(now=NOW)
    return AuthenticityChecker(normalizer, ExperienceCalculator(normalizer))


@pytest.fixture
def record() -> Record:
    return Record.from_raw({
        "record_id": "r1",
        "source_url": "https://northwind.io/team/maria-garcia",
        "name": "Maria Garcia",
        "company": "Northwind Analytics",
        "title": "Senior Data Engineer",
        "location": "Austin, TX",
        "phone": "+15125550147",
    })


def fetched_page(text: str) -> PageEvidence:
    return PageEvidence(status=EvidenceStatus.FETCHED, url="https://northwind.io/team/maria-garcia", text=text)


def fetched_profile(**data) -> ProfileEvidence:
    return ProfileEvidence(status=EvidenceStatus.FETCHED, url="https://linkedin.com/in/maria-garcia", data=data)


class TestSyntheticDetection:
    """Tests for placeholder and template detection."""

    def test_placeholders_and_generic_names(self, checker):
        record = Record.from_raw({"name": "Test User", "email": "test@example.com"})
        markers = {(f.field, f.marker) for f in checker.detect_synthetic(record)}
        assert ("name", "test user") in markers
        assert ("email", "example.com") in markers
        assert ("email", "test@") in markers

    def test_case_insensitive(self, checker):
        record = Record.from_raw({"bio": "LOREM IPSUM dolor sit amet"})
        assert checker.detect_synthetic(record)[0].marker == "lorem ipsum"

    def test_markers_do_not_match_inside_words(self, checker):
        record = Record.from_raw({"email": "contest@northwind.io", "company": "Counterexample.company"})
        assert checker.detect_synthetic(record) == []

    def test_template_markup(self, checker):
        record = Record.from_raw({"greeting": "Hello {{first_name}}", "company": "[Company Name]"})
        markers = {f.marker for f in checker.detect_synthetic(record)}
        assert "{{first_name}}" in markers
        assert "[Company Name]" in markers

    def test_nested_values_are_scanned(self, checker):
        record = Record.from_raw({"work_history": [{"company": "Lorem Ipsum LLC"}]})
        assert checker.detect_synthetic(record)[0].field == "work_history"

    def test_clean_record(self, checker, record):
        assert checker.detect_synthetic(record) == []


class TestBatchUniformity:
    """Tests for the batch-level uniformity heuristic."""

    def test_small_batch_is_never_flagged(self, checker):
        records = [Record.from_raw({"name": "Ann Lee", "email": "ann@a.io"}) for _ in range(3)]
        assert checker.detect_batch_uniformity(records).flagged is False

    def test_identical_formatting_is_flagged(self, checker):
        records = [
            Record.from_raw({"name": f"User {i}", "phone": f"555-010{i}"})
            for i in range(6)
        ]
        result = checker.detect_batch_uniformity(records)
        assert result.flagged
        assert "complete_uniformity" in result.flags
        assert "identical_formatting" in result.flags

    def test_realistic_batch_is_not_flagged(self, checker):
        records = [
            Record.from_raw({"name": "Maria Garcia", "phone": "+1 512 555 0147"}),
            Record.from_raw({"name": "Daniel Okafor", "phone": None}),
            Record.from_raw({"name": "Li Wei", "phone": "(312) 555-0199"}),
            Record.from_raw({"name": "Anna-Lena Berg", "phone": "030 1234567"}),
            Record.from_raw({"name": "Sam O'Neil"}),
        ]
        result = checker.detect_batch_uniformity(records)
        assert result.flagged is False
        assert result.complete_share == pytest.approx(0.6)


class TestSourcePage:
    """Tests for source page verification."""

    def test_all_fields_on_page(self, checker, record):
        page = fetched_page(
            "Maria Garcia - Senior Data Engineer at Northwind Analytics. "
            "Based in Austin, TX. Call (512) 555-0147."
        )
        result = checker.verify_source_page(record, page)
        assert result.status == VerdictStatus.PASS
        assert result.ratio == 1.0

    def test_normalized_value_matches_raw_form(self, checker, record):
        record.set("location", "United States")
        page = fetched_page("Maria Garcia, Senior Data Engineer, Northwind Analytics, Austin, TX, 512-555-0147")
        assert checker.verify_source_page(record, page).status == VerdictStatus.PASS

    def test_partial_match_is_uncertain(self, checker, record):
        page = fetched_page("Maria Garcia, Senior Data Engineer at Northwind Analytics, Austin, TX")
        result = checker.verify_source_page(record, page)
        assert result.ratio == 0.8
        assert result.status == VerdictStatus.PASS

        page = fetched_page("Maria Garcia, Senior Data Engineer at Northwind Analytics")
        result = checker.verify_source_page(record, page)
        assert result.ratio == 0.6
        assert result.status == VerdictStatus.UNCERTAIN

    def test_low_match_fails(self, checker, record):
        result = checker.verify_source_page(record, fetched_page("Maria Garcia"))
        assert result.status == VerdictStatus.FAIL
        assert "company" in result.note

    def test_unreachable_page_fails(self, checker, record):
        page = PageEvidence(status=EvidenceStatus.UNREACHABLE, error="timeout")
        result = checker.verify_source_page(record, page)
        assert result.status == VerdictStatus.FAIL
        assert "timeout" in result.note

    def test_not_requested_is_skipped(self, checker, record):
        assert checker.verify_source_page(record, PageEvidence()) is None


class TestProfile:
    """Tests for profile verification."""

    def test_matching_profile(self, checker, record):
        profile = fetched_profile(
            name="Maria Garcia", company="Northwind Analytics, Inc.",
            title="Senior Data Engineer", location="Austin, Texas",
        )
        result, mismatches = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.PASS
        assert mismatches == []
        assert result.confidence == 100

    def test_name_mismatch_is_critical(self, checker, record):
        result, mismatches = checker.verify_profile(record, fetched_profile(name="Robert Chen"))
        assert result.status == VerdictStatus.FAIL
        assert mismatches[0].severity == Severity.CRITICAL

    def test_one_high_mismatch_is_uncertain(self, checker, record):
        profile = fetched_profile(name="Maria Garcia", title="Marketing Coordinator")
        result, mismatches = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.UNCERTAIN
        assert [m.field for m in mismatches] == ["title"]

    def test_two_high_mismatches_fail(self, checker, record):
        profile = fetched_profile(name="Maria Garcia", company="Globex Corporation", title="Marketing Coordinator")
        result, _ = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.FAIL

    def test_location_mismatch_only_lowers_confidence(self, checker, record):
        profile = fetched_profile(name="Maria Garcia", location="Berlin, Germany")
        result, mismatches = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.PASS
        assert mismatches[0].severity == Severity.MEDIUM
        assert result.confidence == 90

    def test_duration_mismatch_is_critical(self, checker, record):
        record.set("experience_years", 10)
        profile = fetched_profile(
            name="Maria Garcia",
            work_history=[{"location": "Mountain View, CA", "start_date": "2012-01", "end_date": "2015-06"}],
        )
        result, mismatches = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.FAIL
        assert mismatches[0].field == "experience_years"

    def test_duration_within_tolerance(self, checker, record):
        record.set("experience_years", 3)
        profile = fetched_profile(
            name="Maria Garcia",
            work_history=[{"location": "Mountain View, CA", "start_date": "2012-01", "end_date": "2015-06"}],
        )
        result, _ = checker.verify_profile(record, profile)
        assert result.status == VerdictStatus.PASS

    def test_unreachable_profile_fails(self, checker, record):
        result, _ = checker.verify_profile(record, ProfileEvidence(status=EvidenceStatus.UNREACHABLE))
        assert result.status == VerdictStatus.FAIL


class TestCrossSource:
    """Tests for cross-source consistency."""

    def test_single_disagreeing_field_fails_alone(self, checker):
        bundle = SourceBundle(status=EvidenceStatus.FETCHED, sources={
            "a": {"company": "Acme Inc"},
            "b": {"company": "Acme Inc"},
            "c": {"company": "Acme Corp"},
        })
        result, mismatches = checker.verify_cross_source(bundle)
        assert result.status == VerdictStatus.FAIL
        assert mismatches[0].field == "company"

    def test_ratio_over_all_compared_fields(self, checker):
        agreeing = {"name": "Maria Garcia", "title": "Data Engineer", "location": "Austin", "email": "m@n.io"}
        bundle = SourceBundle(status=EvidenceStatus.FETCHED, sources={
            "a": {**agreeing, "company": "Acme Inc"},
            "b": {**agreeing, "company": "Acme Inc"},
            "c": {**agreeing, "company": "Acme Corp"},
        })
        result, _ = checker.verify_cross_source(bundle)
        assert result.ratio == 0.8
        assert result.status == VerdictStatus.PASS

    def test_half_agreement_is_uncertain(self, checker):
        bundle = SourceBundle(status=EvidenceStatus.FETCHED, sources={
            "a": {"name": "Maria Garcia", "company": "Acme Inc", "phone": None},
            "b": {"name": "maria  garcia", "company": "Acme Corp"},
        })
        result, _ = checker.verify_cross_source(bundle)
        assert result.ratio == 0.5
        assert result.status == VerdictStatus.UNCERTAIN


class TestCombinedCheck:
    """Tests for the combined authenticity verdict."""

    def test_no_evidence_passes_unverified(self, checker, record):
        verdict = checker.check(record)
        assert verdict.passed
        assert verdict.confidence == 70

    def test_synthetic_record_fails(self, checker):
        verdict = checker.check(Record.from_raw({"name": "Test User", "company": "example.com"}))
        assert verdict.status == VerdictStatus.FAIL
        assert verdict.confidence == 0
        assert verdict.synthetic_findings

    def test_uncertain_collapses_to_fail(self, checker, record):
        evidence = RecordEvidence(profile=fetched_profile(name="Maria Garcia", title="Marketing Coordinator"))
        verdict = checker.check(record, evidence)
        assert verdict.status == VerdictStatus.FAIL
        assert verdict.checks["profile"].status == VerdictStatus.UNCERTAIN
        assert verdict.uncertain

    def test_unreachable_evidence_fails(self, checker, record):
        evidence = RecordEvidence(page=PageEvidence(status=EvidenceStatus.UNREACHABLE, error="HTTP 503"))
        verdict = checker.check(record, evidence)
        assert verdict.status == VerdictStatus.FAIL
        assert verdict.unreachable == ["source_page"]

    def test_all_checks_pass(self, checker, record):
        evidence = RecordEvidence(
            page=fetched_page("Maria Garcia | Senior Data Engineer | Northwind Analytics | Austin, TX | 512.555.0147"),
            profile=fetched_profile(name="Maria Garcia", company="Northwind Analytics", title="Senior Data Engineer"),
        )
        verdict = checker.check(record, evidence)
        assert verdict.passed
        assert verdict.confidence == 100
