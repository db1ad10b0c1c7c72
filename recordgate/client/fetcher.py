"""
Evidence fetcher with retry logic.

Fetches source pages, profile data and per-source field bundles ahead of a
pipeline run. Transient failures are retried; once retries are exhausted the
evidence comes back as ``unreachable`` instead of raising, so the
authenticity checker can fail the record.
"""
import logging
import re
from typing import Any, Callable, Mapping, Optional

import requests
from bs4 import BeautifulSoup, Comment
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import FetchConfig, get_config
from ..models.evidence import (
    EvidenceStatus,
    PageEvidence,
    ProfileEvidence,
    RecordEvidence,
    SourceBundle,
)
from ..models.record import Record


logger = logging.getLogger(__name__)


class TransientHTTPError(requests.RequestException):
    """Server-side or rate-limit response worth retrying."""


def html_to_text(markup: str) -> str:
    """Visible text of an HTML document, whitespace collapsed."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    text = soup.get_text(separator=" ", strip=True)
    return re.sub(r"\s+", " ", text).strip()


class EvidenceFetcher:
    """
    HTTP evidence collaborator for the pipeline.

    Args:
        config: Fetch settings (timeout, attempts, user agent)
        session: Optional requests session to reuse
        wait: tenacity wait strategy between attempts
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        session: Optional[requests.Session] = None,
        wait: Any = None,
    ):
        self.config = config or get_config().fetch
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": self.config.user_agent})
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, min=2, max=10)
        logger.info("EvidenceFetcher initialized")

    def _request(self, url: str) -> requests.Response:
        response = self.session.get(url, timeout=self.config.timeout_seconds)
        if response.status_code >= 500 or response.status_code == 429:
            raise TransientHTTPError(f"HTTP {response.status_code} from {url}")
        response.raise_for_status()
        return response

    def get(self, url: str) -> requests.Response:
        """GET with retries on connection errors, timeouts and 5xx/429."""
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(
                (requests.ConnectionError, requests.Timeout, TransientHTTPError)
            ),
            before_sleep=lambda retry_state: logger.warning(
                f"Retry attempt {retry_state.attempt_number} for {url}"
            ),
        )
        return retrying(self._request, url)

    def _failure(self, url: str, error: Exception) -> str:
        if isinstance(error, RetryError):
            error = error.last_attempt.exception()
        logger.warning(f"Evidence unreachable at {url}: {error}")
        return str(error)

    def fetch_page(self, url: str) -> PageEvidence:
        """Text of the page a record was scraped from."""
        try:
            response = self.get(url)
        except (requests.RequestException, RetryError) as e:
            return PageEvidence(status=EvidenceStatus.UNREACHABLE, url=url, error=self._failure(url, e))
        return PageEvidence(status=EvidenceStatus.FETCHED, url=url, text=html_to_text(response.text))

    def fetch_json(self, url: str) -> dict[str, Any]:
        response = self.get(url)
        try:
            payload = response.json()
        except ValueError as e:
            raise requests.RequestException(f"Invalid JSON from {url}: {e}") from e
        if not isinstance(payload, dict):
            raise requests.RequestException(f"Expected a JSON object from {url}")
        return payload

    def fetch_profile(
        self,
        url: str,
        parse: Optional[Callable[[dict[str, Any]], dict[str, Any]]] = None,
    ) -> ProfileEvidence:
        """
        Structured profile data from a JSON endpoint.

        ``parse`` maps the provider's payload to profile fields (name,
        company, title, location, work_history).
        """
        try:
            payload = self.fetch_json(url)
        except (requests.RequestException, RetryError) as e:
            return ProfileEvidence(status=EvidenceStatus.UNREACHABLE, url=url, error=self._failure(url, e))
        data = parse(payload) if parse else payload
        return ProfileEvidence(status=EvidenceStatus.FETCHED, url=url, data=data)

    def fetch_sources(self, urls: Mapping[str, str]) -> SourceBundle:
        """
        Field values reported by each named source.

        Any source that cannot be fetched makes the whole bundle unreachable.
        """
        sources: dict[str, dict[str, Any]] = {}
        errors = []
        for name, url in urls.items():
            try:
                sources[name] = self.fetch_json(url)
            except (requests.RequestException, RetryError) as e:
                errors.append(f"{name}: {self._failure(url, e)}")
        if errors:
            return SourceBundle(status=EvidenceStatus.UNREACHABLE, sources=sources, error="; ".join(errors))
        return SourceBundle(status=EvidenceStatus.FETCHED, sources=sources)

    def collect(
        self,
        record: Record,
        profile_url: Optional[str] = None,
        source_urls: Optional[Mapping[str, str]] = None,
        parse_profile: Optional[Callable[[dict[str, Any]], dict[str, Any]]] = None,
    ) -> RecordEvidence:
        """Evidence for one record; only what is declared gets fetched."""
        evidence = RecordEvidence()
        if record.source_url:
            evidence.page = self.fetch_page(record.source_url)
        if profile_url:
            evidence.profile = self.fetch_profile(profile_url, parse_profile)
        if source_urls:
            evidence.sources = self.fetch_sources(source_urls)
        return evidence
