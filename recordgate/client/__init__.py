"""I/O adapters: evidence fetching and waterfall enrichment."""

from .fetcher import EvidenceFetcher, TransientHTTPError, html_to_text
from .providers import (
    EmailPatternProvider,
    EnrichmentOutcome,
    EnrichmentProvider,
    HttpJsonProvider,
    ProviderAttempt,
    WaterfallEnricher,
)

__all__ = [
    "EvidenceFetcher",
    "TransientHTTPError",
    "html_to_text",
    "EnrichmentProvider",
    "HttpJsonProvider",
    "EmailPatternProvider",
    "WaterfallEnricher",
    "EnrichmentOutcome",
    "ProviderAttempt",
]
