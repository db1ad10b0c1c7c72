"""
Tests for the constraint engine.
"""
import pytest
from datetime import datetime, timezone

from recordgate.errors import SpecificationError
from recordgate.models.constraints import ConstraintSpec, ConstraintType
from recordgate.models.record import Record
from recordgate.models.verdicts import VerdictStatus
from recordgate.pipeline.constraints import ConstraintEngine
from recordgate.pipeline.experience import ExperienceCalculator
from recordgate.pipeline.normalizer import Normalizer


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

HISTORY = [{"location": "Mountain View, CA", "start_date": "2012-01", "end_date": "2015-06"}]


@pytest.fixture
def engine() -> ConstraintEngine:
    normalizer = Normalizer(now=NOW)
    return ConstraintEngine(normalizer, ExperienceCalculator(normalizer))


def make_record(**fields) -> Record:
    return Record.from_raw({"record_id": "r1", **fields})


class TestBasicConstraints:
    """Tests for required_fields, format and location constraints."""

    def test_required_fields(self, engine):
        spec = ConstraintSpec(name="req", type="required_fields", fields=("name", "email"))
        assert engine.evaluate(make_record(name="Maria", email="m@n.io"), spec).passed

        verdict = engine.evaluate(make_record(name="Maria", email=" "), spec)
        assert verdict.status == VerdictStatus.FAIL
        assert verdict.actual == ["email"]

    def test_named_format(self, engine):
        spec = ConstraintSpec(name="mail", type="format", field="email", pattern="email")
        assert engine.evaluate(make_record(email="maria@northwind.io"), spec).passed
        assert not engine.evaluate(make_record(email="maria at northwind"), spec).passed
        assert not engine.evaluate(make_record(), spec).passed

    def test_postal_and_linkedin_formats(self, engine):
        zip_spec = ConstraintSpec(name="zip", type="format", field="zip", pattern="us_postal_code")
        assert engine.evaluate(make_record(zip="94043-1351"), zip_spec).passed
        uk_spec = ConstraintSpec(name="uk", type="format", field="zip", pattern="uk_postal_code")
        assert engine.evaluate(make_record(zip="SW1A 1AA"), uk_spec).passed
        li_spec = ConstraintSpec(name="li", type="format", field="linkedin_url", pattern="linkedin_person")
        assert engine.evaluate(make_record(linkedin_url="https://linkedin.com/in/maria-garcia"), li_spec).passed
        assert not engine.evaluate(make_record(linkedin_url="https://linkedin.com/company/northwind"), li_spec).passed

    def test_custom_regex_format(self, engine):
        spec = ConstraintSpec(name="sku", type="format", field="sku", regex=r"^[A-Z]{3}-\d{4}$")
        assert engine.evaluate(make_record(sku="ABC-1234"), spec).passed

    def test_unknown_format_pattern_raises(self, engine):
        spec = ConstraintSpec(name="bad", type="format", field="zip", pattern="martian_postcode")
        with pytest.raises(SpecificationError):
            engine.validate_specs([spec])
        with pytest.raises(SpecificationError):
            engine.evaluate(make_record(zip="123"), spec)

    def test_location_membership(self, engine):
        spec = ConstraintSpec(
            name="us", type="location", field="location", allowed_values=("United States", "Canada")
        )
        verdict = engine.evaluate(make_record(location="Austin, TX"), spec)
        assert verdict.passed
        assert verdict.actual == "United States"

        verdict = engine.evaluate(make_record(location="London"), spec)
        assert verdict.status == VerdictStatus.FAIL
        assert "London" in verdict.note

    def test_location_allowed_values_are_normalized(self, engine):
        spec = ConstraintSpec(name="us", type="location", field="location", allowed_values=("USA",))
        assert engine.evaluate(make_record(location="Toronto, ON"), spec).status == VerdictStatus.FAIL
        assert engine.evaluate(make_record(location="Seattle, WA"), spec).passed

    def test_missing_location_fails(self, engine):
        spec = ConstraintSpec(name="us", type="location", field="location", allowed_values=("United States",))
        assert engine.evaluate(make_record(), spec).status == VerdictStatus.FAIL

    @pytest.mark.parametrize("location", [
        "Berlin, DE",
        "Bangalore, IN",
        "Vancouver, BC, CA",
        "Chennai, TN",
        "Remote, can relocate",
    ])
    def test_foreign_locations_with_state_like_codes_fail(self, engine, location):
        spec = ConstraintSpec(name="us_only", type="location", field="location", allowed_values=("United States",))
        verdict = engine.evaluate(make_record(location=location), spec)
        assert verdict.status == VerdictStatus.FAIL


class TestNumericConstraints:
    """Tests for numeric thresholds."""

    def test_preferred_minimum_raises_confidence(self, engine):
        spec = ConstraintSpec(
            name="size", type="numeric", field="company_size", minimum=500, preferred_minimum=1000
        )
        verdict = engine.evaluate(make_record(company_size="1,001-5,000"), spec)
        assert verdict.passed
        assert verdict.actual == 1001
        assert verdict.confidence == 95

    def test_minimum_only(self, engine):
        spec = ConstraintSpec(
            name="size", type="numeric", field="company_size", minimum=500, preferred_minimum=5000
        )
        verdict = engine.evaluate(make_record(company_size="501-1000"), spec)
        assert verdict.passed
        assert verdict.confidence == 90

    def test_bounds(self, engine):
        spec = ConstraintSpec(name="rev", type="numeric", field="revenue", minimum=10, maximum=100)
        assert not engine.evaluate(make_record(revenue=5), spec).passed
        assert not engine.evaluate(make_record(revenue="1,000"), spec).passed
        assert engine.evaluate(make_record(revenue="55"), spec).passed

    def test_non_numeric_fails(self, engine):
        spec = ConstraintSpec(name="rev", type="numeric", field="revenue", minimum=10)
        assert engine.evaluate(make_record(revenue="lots"), spec).status == VerdictStatus.FAIL
        assert engine.evaluate(make_record(), spec).status == VerdictStatus.FAIL

    def test_unbounded_numeric_is_a_specification_error(self, engine):
        spec = ConstraintSpec(name="size", type="numeric", field="company_size", preferred_minimum=1000)
        with pytest.raises(SpecificationError):
            engine.validate_specs([spec])
        with pytest.raises(SpecificationError):
            engine.evaluate(make_record(company_size=5000), spec)

    def test_maximum_only_is_enough(self, engine):
        spec = ConstraintSpec(name="size", type="numeric", field="company_size", maximum=200)
        engine.validate_specs([spec])
        assert engine.evaluate(make_record(company_size=50), spec).passed


class TestExperienceConstraints:
    """Tests for experience constraints."""

    def test_history_meets_minimum(self, engine):
        spec = ConstraintSpec(name="exp", type="experience", minimum=3.0)
        verdict = engine.evaluate(make_record(work_history=HISTORY), spec)
        assert verdict.passed
        assert verdict.actual == pytest.approx(3.41)

    def test_history_below_minimum(self, engine):
        spec = ConstraintSpec(name="exp", type="experience", minimum=4.0)
        assert engine.evaluate(make_record(work_history=HISTORY), spec).status == VerdictStatus.FAIL

    def test_only_home_region_counts(self, engine):
        history = HISTORY + [{"location": "London, UK", "start_date": "2015-06", "end_date": "2020-06"}]
        spec = ConstraintSpec(name="exp", type="experience", minimum=4.0)
        assert not engine.evaluate(make_record(work_history=history), spec).passed

        anywhere = ConstraintSpec(name="exp_uk", type="experience", minimum=4.0, home_region="United Kingdom")
        assert engine.evaluate(make_record(work_history=history), anywhere).passed

    def test_duration_field_takes_precedence(self, engine):
        spec = ConstraintSpec(name="exp", type="experience", field="experience_years", minimum=3.0)
        verdict = engine.evaluate(make_record(experience_years=5, work_history=[]), spec)
        assert verdict.passed
        assert verdict.confidence == 85

    def test_nothing_to_verify_fails(self, engine):
        spec = ConstraintSpec(name="exp", type="experience", field="experience_years", minimum=1.0)
        verdict = engine.evaluate(make_record(), spec)
        assert verdict.status == VerdictStatus.FAIL
        assert verdict.confidence == 100

    def test_missing_minimum_is_a_specification_error(self, engine):
        spec = ConstraintSpec(name="exp", type="experience")
        with pytest.raises(SpecificationError):
            engine.validate_specs([spec])
        with pytest.raises(SpecificationError):
            engine.evaluate(make_record(work_history=HISTORY), spec)


class TestSeniorityConstraints:
    """Tests for seniority classification."""

    def test_junior_marker_overrides(self, engine):
        spec = ConstraintSpec(name="senior", type="seniority", field="title", levels=("senior_specialist",))
        verdict = engine.evaluate(make_record(title="Junior Software Engineer"), spec)
        assert verdict.status == VerdictStatus.FAIL
        assert "junior" in verdict.note.lower()

    def test_junior_marker_beats_senior_marker(self, engine):
        spec = ConstraintSpec(name="senior", type="seniority", field="title", levels=("senior_specialist",))
        assert not engine.evaluate(make_record(title="Senior Analyst"), spec).passed

    def test_requested_level_matches(self, engine):
        spec = ConstraintSpec(name="senior", type="seniority", field="title", levels=("senior_specialist",))
        verdict = engine.evaluate(make_record(title="Senior Software Engineer"), spec)
        assert verdict.passed
        assert verdict.actual == "senior_specialist"

    def test_only_requested_levels_count(self, engine):
        spec = ConstraintSpec(name="exec", type="seniority", field="title", levels=("c_suite",))
        assert engine.evaluate(make_record(title="Chief Technology Officer"), spec).passed
        assert not engine.evaluate(make_record(title="Director of Engineering"), spec).passed
        assert not engine.evaluate(make_record(title="Vice President, Sales"), spec).passed

    def test_vp_level(self, engine):
        spec = ConstraintSpec(name="vp", type="seniority", field="title", levels=("vp",))
        assert engine.evaluate(make_record(title="VP of Engineering"), spec).passed
        assert engine.evaluate(make_record(title="Head of Data"), spec).passed

    def test_unknown_level_raises(self, engine):
        spec = ConstraintSpec(name="x", type="seniority", field="title", levels=("wizard",))
        with pytest.raises(SpecificationError):
            engine.validate_specs([spec])


class TestCustomAndAggregate:
    """Tests for custom constraints and the conjunctive aggregate."""

    def test_custom_outcomes(self, engine):
        passing = ConstraintSpec(name="p", type="custom", check=lambda f: f.get("verified") is True)
        undecided = ConstraintSpec(name="u", type="custom", check=lambda f: None)
        record = make_record(verified=True)
        assert engine.evaluate(record, passing).passed
        assert engine.evaluate(record, undecided).status == VerdictStatus.UNCERTAIN

    def test_custom_without_check_raises(self, engine):
        with pytest.raises(SpecificationError):
            engine.validate_specs([ConstraintSpec(name="c", type=ConstraintType.CUSTOM)])

    def test_aggregate_is_conjunctive(self, engine):
        record = make_record(title="Senior Engineer", location="Austin, TX", verified=None)
        specs = [
            ConstraintSpec(name="senior", type="seniority", field="title", levels=("senior_specialist",)),
            ConstraintSpec(name="us", type="location", field="location", allowed_values=("United States",)),
        ]
        verdicts = engine.evaluate_all(record, specs)
        assert engine.aggregate(verdicts) == VerdictStatus.PASS

        specs.append(ConstraintSpec(name="u", type="custom", check=lambda f: None))
        verdicts = engine.evaluate_all(record, specs)
        assert engine.aggregate(verdicts) == VerdictStatus.FAIL

    def test_empty_constraint_set_passes(self, engine):
        assert engine.aggregate([]) == VerdictStatus.PASS
