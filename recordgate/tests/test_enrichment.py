"""
Tests for record enrichment.
"""
import hashlib
import pytest
from datetime import datetime, timezone

from recordgate.models.record import Record
from recordgate.pipeline.enrichment import RecordEnricher
from recordgate.pipeline.experience import ExperienceCalculator
from recordgate.pipeline.normalizer import Normalizer


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestRecordEnricher:
    """Tests for RecordEnricher."""

    @pytest.fixture
    def enricher(self) -> RecordEnricher:
        normalizer = Normalizer(now=NOW)
        return RecordEnricher(normalizer, ExperienceCalculator(normalizer))

    def test_email_derivations(self, enricher):
        record = enricher.enrich(Record.from_raw({"email": "Maria.Garcia@Northwind.io"}))
        assert record.get("email_domain") == "northwind.io"
        assert record.get("email_hash") == hashlib.sha256(b"maria.garcia@northwind.io").hexdigest()
        assert record.get("email") == "Maria.Garcia@Northwind.io"

    def test_website_domain(self, enricher):
        record = enricher.enrich(Record.from_raw({"website": "https://www.northwind.io/about/"}))
        assert record.get("website_domain") == "northwind.io"

    def test_website_domain_from_canonical_url(self, enricher):
        record = enricher.enrich(Record.from_raw({"canonical_url": "https://careers.globex.com/jobs"}))
        assert record.get("website_domain") == "careers.globex.com"

    def test_experience_totals(self, enricher):
        record = enricher.enrich(Record.from_raw({
            "work_history": [
                {"location": "Mountain View, CA", "start_date": "2012-01", "end_date": "2015-06"},
                {"location": "London, UK", "start_date": "2015-06", "end_date": "2018-06"},
            ],
        }))
        assert record.get("derived_home_experience_years") == pytest.approx(3.41)
        assert record.get("derived_experience_years") > record.get("derived_home_experience_years")

    def test_never_overwrites(self, enricher):
        record = enricher.enrich(Record.from_raw({
            "email": "maria@northwind.io",
            "email_domain": "corp.northwind.io",
        }))
        assert record.get("email_domain") == "corp.northwind.io"
        assert "email_domain" not in record.derived_fields
        assert "email_hash" in record.derived_fields

    def test_record_hash_ignores_key_order_and_derived_fields(self, enricher):
        first = enricher.enrich(Record.from_raw({"name": "Maria", "title": "Engineer"}))
        second = Record.from_raw({"title": "Engineer", "name": "Maria"})
        assert enricher.record_hash(second) == first.get("record_hash")

    def test_invalid_email_derives_nothing(self, enricher):
        record = enricher.enrich(Record.from_raw({"email": "not-an-email"}))
        assert not record.has("email_domain")
        assert record.derived_fields == ["record_hash"]
