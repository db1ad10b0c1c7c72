"""
Record enrichment - derive fields from data the record already carries.

Derived values are written under their own names and never overwrite a
scraped field, so the gate's checks see the same inputs as before.
"""
import hashlib
import json
import logging
from typing import Sequence

from ..models.record import Record, is_blank
from .experience import ExperienceCalculator
from .normalizer import Normalizer


logger = logging.getLogger(__name__)


DERIVED_FIELDS = (
    "email_domain",
    "website_domain",
    "email_hash",
    "record_hash",
    "derived_experience_years",
    "derived_home_experience_years",
)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class RecordEnricher:
    """
    Adds domains, hashes and experience totals to a record.

    Args:
        normalizer: Used for domain extraction and email normalization
        experience: Used for work-history totals
        home_region: Region for ``derived_home_experience_years``
        history_field: Field holding the work-history list
    """

    def __init__(
        self,
        normalizer: Normalizer,
        experience: ExperienceCalculator,
        home_region: str = "United States",
        history_field: str = "work_history",
    ):
        self.normalizer = normalizer
        self.experience = experience
        self.home_region = home_region
        self.history_field = history_field

    def enrich(self, record: Record) -> Record:
        derived = {}

        email = self.normalizer.normalize_email(record.get("email"))
        if email:
            derived["email_domain"] = email.split("@", 1)[1]
            derived["email_hash"] = sha256_hex(email)

        website = record.get("website") or record.get("canonical_url")
        domain = self.normalizer.extract_domain(website) if website else None
        if domain:
            derived["website_domain"] = domain

        history = record.get(self.history_field)
        if isinstance(history, (list, tuple)) and history:
            derived["derived_experience_years"] = round(self.experience.years(history), 2)
            derived["derived_home_experience_years"] = round(
                self.experience.years(history, region=self.home_region), 2
            )

        derived["record_hash"] = self.record_hash(record)

        written = []
        for name, value in derived.items():
            if record.has(name):
                continue
            record.set(name, value)
            if name not in record.derived_fields:
                record.derived_fields.append(name)
            written.append(name)

        logger.debug(f"Record {record.record_id}: derived {written}")
        return record

    def record_hash(self, record: Record) -> str:
        """Content hash over the scraped fields, independent of key order."""
        payload = {
            name: value
            for name, value in record.fields.items()
            if name not in record.derived_fields and name not in DERIVED_FIELDS
            and not is_blank(value)
        }
        return sha256_hex(json.dumps(payload, sort_keys=True, default=str))

    def enrich_batch(self, records: Sequence[Record]) -> list[Record]:
        enriched = [self.enrich(record) for record in records]
        logger.info(f"Enriched {len(enriched)} records")
        return enriched

