"""
Waterfall enrichment providers.

An ordered chain of lookups (data vendors, then pattern guessing) that stops
at the first provider returning the wanted fields. Runs before the pipeline;
the validation core never calls it.
"""
import logging
import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional, Sequence

import requests
from pydantic import BaseModel, Field
from tenacity import RetryError

from ..models.record import Record, is_blank
from ..pipeline.normalizer import Normalizer
from .fetcher import EvidenceFetcher


logger = logging.getLogger(__name__)


class ProviderAttempt(BaseModel):
    """One provider call in a waterfall."""
    provider: str
    found: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class EnrichmentOutcome(BaseModel):
    """Which provider filled which fields for a record."""
    record_id: str
    provider: Optional[str] = None
    fields: dict[str, Any] = Field(default_factory=dict)
    attempts: list[ProviderAttempt] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.provider is not None


class EnrichmentProvider(ABC):
    """A single lookup in the waterfall."""

    name: str = "provider"

    @abstractmethod
    def lookup(self, record: Record) -> dict[str, Any]:
        """Fields found for ``record``; empty when nothing was found."""


class HttpJsonProvider(EnrichmentProvider):
    """
    Vendor API returning a JSON object per lookup.

    Args:
        name: Provider label used in outcomes and logs
        endpoint: Lookup URL
        fetcher: Shared fetcher (retries live there)
        query_fields: Record field -> query parameter name
        field_map: Response key -> record field name
        api_key: Sent as the ``api_key`` query parameter when set
    """

    def __init__(
        self,
        name: str,
        endpoint: str,
        fetcher: EvidenceFetcher,
        query_fields: Mapping[str, str],
        field_map: Optional[Mapping[str, str]] = None,
        api_key: Optional[str] = None,
    ):
        self.name = name
        self.endpoint = endpoint
        self.fetcher = fetcher
        self.query_fields = dict(query_fields)
        self.field_map = dict(field_map or {})
        self.api_key = api_key

    def build_url(self, record: Record) -> Optional[str]:
        params = {
            param: str(record.get(field))
            for field, param in self.query_fields.items()
            if record.has(field)
        }
        if not params:
            return None
        if self.api_key:
            params["api_key"] = self.api_key
        return requests.Request("GET", self.endpoint, params=params).prepare().url

    def lookup(self, record: Record) -> dict[str, Any]:
        url = self.build_url(record)
        if url is None:
            return {}
        payload = self.fetcher.fetch_json(url)
        if not self.field_map:
            return payload
        return {
            target: payload[key]
            for key, target in self.field_map.items()
            if key in payload
        }


def _ascii_token(text: str) -> str:
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z]", "", text.lower())


class EmailPatternProvider(EnrichmentProvider):
    """
    Last resort: guess a work email from name and company domain.

    Patterns use ``{first}``, ``{last}``, ``{f}`` (first initial) and
    ``{l}`` (last initial). Only the first pattern is returned.
    """

    name = "email_pattern"

    def __init__(
        self,
        normalizer: Normalizer,
        patterns: Sequence[str] = ("{first}.{last}", "{first}{last}", "{f}{last}", "{first}"),
    ):
        self.normalizer = normalizer
        self.patterns = tuple(patterns)

    def _domain(self, record: Record) -> Optional[str]:
        for field in ("website_domain", "website", "canonical_url"):
            value = record.get(field)
            if is_blank(value):
                continue
            domain = self.normalizer.extract_domain(value)
            if domain:
                return domain
        return None

    def candidates(self, record: Record) -> list[str]:
        name = record.get("name")
        domain = self._domain(record)
        if not isinstance(name, str) or not domain:
            return []
        parts = [_ascii_token(p) for p in name.split()]
        parts = [p for p in parts if p]
        if len(parts) < 2:
            return []
        first, last = parts[0], parts[-1]
        tokens = {"first": first, "last": last, "f": first[0], "l": last[0]}
        return [f"{pattern.format(**tokens)}@{domain}" for pattern in self.patterns]

    def lookup(self, record: Record) -> dict[str, Any]:
        guesses = self.candidates(record)
        if not guesses:
            return {}
        return {"email": guesses[0], "email_guessed": True}


class WaterfallEnricher:
    """
    Calls providers in order and stops at the first that supplies any of the
    target fields. Existing values are never overwritten.
    """

    def __init__(
        self,
        providers: Sequence[EnrichmentProvider],
        target_fields: Sequence[str] = ("email",),
    ):
        self.providers = list(providers)
        self.target_fields = tuple(target_fields)

    def enrich(self, record: Record) -> EnrichmentOutcome:
        outcome = EnrichmentOutcome(record_id=record.record_id)
        missing = [f for f in self.target_fields if not record.has(f)]
        if not missing:
            return outcome

        for provider in self.providers:
            attempt = ProviderAttempt(provider=provider.name)
            outcome.attempts.append(attempt)
            try:
                found = provider.lookup(record)
            except (requests.RequestException, RetryError) as e:
                attempt.error = str(e)
                logger.warning(f"Provider {provider.name} failed for {record.record_id}: {e}")
                continue

            useful = {
                name: value for name, value in found.items()
                if not is_blank(value) and not record.has(name)
            }
            attempt.found = sorted(useful)
            if not any(name in useful for name in missing):
                continue

            for name, value in useful.items():
                record.set(name, value)
            outcome.provider = provider.name
            outcome.fields = useful
            logger.info(f"Record {record.record_id}: {provider.name} supplied {sorted(useful)}")
            break

        return outcome

    def enrich_batch(self, records: Sequence[Record]) -> list[EnrichmentOutcome]:
        outcomes = [self.enrich(record) for record in records]
        filled = sum(1 for o in outcomes if o.succeeded)
        logger.info(f"Waterfall enrichment filled {filled}/{len(records)} records")
        return outcomes
