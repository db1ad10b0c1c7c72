"""
Normalizer - canonicalize URLs, profiles, dates, locations, phones, emails and sizes.

Every normalizer takes one raw value and returns the normalized value, or
None when the input cannot be parsed. Malformed input never raises; asking
for a field-type tag that does not exist does.
"""
import logging
import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import phonenumbers
from dateutil import parser as date_parser
from pydantic import BaseModel

from ..errors import UnknownFieldTypeError
from ..models.record import Record
from ..rules import DEFAULT_NORMALIZATION_RULES, NormalizationRules


logger = logging.getLogger(__name__)


EMAIL_RE = re.compile(r"^[a-z0-9._%+-]+@[a-z0-9-]+(\.[a-z0-9-]+)*\.[a-z]{2,}$")

HANDLE_RE = re.compile(r"^[A-Za-z0-9_]{1,15}$")
GITHUB_USER_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

# First path segments that are site pages, not accounts
X_RESERVED = frozenset({"home", "share", "intent", "i", "search", "explore", "hashtag", "settings", "login"})
GITHUB_RESERVED = frozenset({"orgs", "settings", "features", "marketplace", "topics", "explore", "login", "about"})

DEFAULT_PORTS = {"http": 80, "https": 443}


class SocialProfile(BaseModel):
    """Result of social-profile normalization."""
    url: str
    platform: Optional[str] = None
    kind: Optional[str] = None  # person, company, user
    slug: Optional[str] = None
    normalized: bool = False


def _clean_location_key(text: str) -> str:
    text = text.lower().replace(".", " ")
    return re.sub(r"\s+", " ", text).strip()


class Normalizer:
    """
    Pure value normalizers, configured with immutable rule tables.

    ``now`` is the processing time used for "present"/"current" dates; fix it
    per run so every record sees the same clock.
    """

    TAGS = ("text", "url", "social", "date", "country", "location", "phone", "email", "company_size")

    def __init__(
        self,
        rules: NormalizationRules = DEFAULT_NORMALIZATION_RULES,
        now: Optional[datetime] = None,
    ):
        self.rules = rules
        now = now or datetime.now(timezone.utc)
        self.now = now if now.tzinfo else now.replace(tzinfo=timezone.utc)

        self._dispatch: dict[str, Callable[[Any], Any]] = {
            "text": self.normalize_text,
            "url": self.canonicalize_url,
            "social": self._social_url,
            "date": self.normalize_date,
            "country": self.normalize_location,
            "location": self.normalize_location,
            "phone": self.normalize_phone,
            "email": self.normalize_email,
            "company_size": self.parse_company_size,
        }

        # Longest names first so "northern ireland" wins over "ireland"
        names = {**rules.region_names, **rules.country_names}
        self._substring_aliases = [
            (re.compile(rf"\b{re.escape(name)}\b"), canonical)
            for name, canonical in sorted(names.items(), key=lambda item: len(item[0]), reverse=True)
            if len(name) >= rules.min_substring_alias_length
        ]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def check_tag(self, tag: str) -> None:
        if tag not in self._dispatch:
            raise UnknownFieldTypeError(tag)

    def normalize(self, value: Any, tag: str) -> Any:
        """Normalize ``value`` as field type ``tag``."""
        self.check_tag(tag)
        if value is None:
            return None
        return self._dispatch[tag](value)

    def normalize_record(self, record: Record, tags: Mapping[str, str]) -> Record:
        """
        Rewrite tagged fields of ``record`` in place.

        Also derives ``canonical_url`` from ``source_url`` when the record has
        none, so URL-keyed deduplication works on raw scraper output.
        """
        for tag in tags.values():
            self.check_tag(tag)

        for field_name, tag in tags.items():
            raw = record.get(field_name)
            if raw is None:
                continue

            if tag == "social":
                profile = self.normalize_social(raw)
                record.set(field_name, profile.url if profile else None)
                if profile and not profile.normalized and field_name not in record.unnormalized_fields:
                    record.unnormalized_fields.append(field_name)
                continue

            value = self.normalize(raw, tag)
            if value is None:
                logger.debug(f"Record {record.record_id}: could not parse {field_name}={raw!r} as {tag}")
            record.set(field_name, value)

        if record.source_url and not record.has("canonical_url"):
            record.set("canonical_url", self.canonicalize_url(record.source_url))

        return record

    # ------------------------------------------------------------------
    # Text
    # ------------------------------------------------------------------

    def normalize_text(self, value: Any) -> Optional[str]:
        if value is None:
            return None
        text = unicodedata.normalize("NFKC", value if isinstance(value, str) else str(value))
        text = re.sub(r"\s+", " ", text).strip()
        return text or None

    # ------------------------------------------------------------------
    # URLs
    # ------------------------------------------------------------------

    def _is_tracking_param(self, key: str) -> bool:
        key = key.lower()
        if key in self.rules.tracking_params:
            return True
        return any(key.startswith(prefix) for prefix in self.rules.tracking_param_prefixes)

    def canonicalize_url(self, value: Any) -> Optional[str]:
        """
        Canonical URL: lower-case scheme and host, no tracking parameters,
        no fragment, no trailing slash (the root path stays "/").
        """
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text or any(ch.isspace() for ch in text):
            return None
        if text.startswith("//"):
            text = f"https:{text}"
        elif "://" not in text:
            text = f"https://{text}"

        try:
            parts = urlsplit(text)
            hostname = parts.hostname
            port = parts.port
        except ValueError:
            return None

        scheme = parts.scheme.lower()
        if scheme not in ("http", "https") or not hostname:
            return None
        if "." not in hostname and hostname != "localhost":
            return None

        netloc = hostname
        if port and DEFAULT_PORTS.get(scheme) != port:
            netloc = f"{hostname}:{port}"

        query = urlencode([
            (key, val)
            for key, val in parse_qsl(parts.query, keep_blank_values=True)
            if not self._is_tracking_param(key)
        ])
        path = parts.path.rstrip("/") or "/"

        return urlunsplit((scheme, netloc, path, query, ""))

    def extract_domain(self, value: Any) -> Optional[str]:
        """Registrable-looking host of a URL, without ``www.``."""
        url = self.canonicalize_url(value)
        if url is None:
            return None
        host = urlsplit(url).hostname or ""
        if host.startswith("www."):
            host = host[4:]
        return host or None

    # ------------------------------------------------------------------
    # Social profiles
    # ------------------------------------------------------------------

    def normalize_social(self, value: Any) -> Optional[SocialProfile]:
        """
        Canonical ``https://<platform>/<path>`` for LinkedIn, X/Twitter and
        GitHub. Anything else is passed through with ``normalized=False``.
        """
        if not isinstance(value, str) or not value.strip():
            return None
        text = value.strip()

        if text.startswith("@") and HANDLE_RE.match(text[1:]):
            handle = text[1:].lower()
            return SocialProfile(
                url=f"https://x.com/{handle}", platform="x", kind="user", slug=handle, normalized=True
            )

        url = self.canonicalize_url(text)
        if url is None:
            return SocialProfile(url=text)

        parts = urlsplit(url)
        host = parts.hostname or ""
        for prefix in ("www.", "mobile.", "m."):
            if host.startswith(prefix):
                host = host[len(prefix):]
        segments = [s for s in parts.path.split("/") if s]

        if host == "linkedin.com" or host.endswith(".linkedin.com"):
            if len(segments) >= 2 and segments[0] in ("in", "pub"):
                slug = segments[1].lower()
                return SocialProfile(
                    url=f"https://linkedin.com/in/{slug}",
                    platform="linkedin", kind="person", slug=slug, normalized=True,
                )
            if len(segments) >= 2 and segments[0] == "company":
                slug = segments[1].lower()
                return SocialProfile(
                    url=f"https://linkedin.com/company/{slug}",
                    platform="linkedin", kind="company", slug=slug, normalized=True,
                )

        elif host in ("twitter.com", "x.com"):
            if segments and HANDLE_RE.match(segments[0]) and segments[0].lower() not in X_RESERVED:
                handle = segments[0].lower()
                return SocialProfile(
                    url=f"https://x.com/{handle}", platform="x", kind="user", slug=handle, normalized=True
                )

        elif host == "github.com":
            if segments and GITHUB_USER_RE.match(segments[0]) and segments[0].lower() not in GITHUB_RESERVED:
                user = segments[0].lower()
                return SocialProfile(
                    url=f"https://github.com/{user}", platform="github", kind="user", slug=user, normalized=True
                )

        return SocialProfile(url=text)

    def _social_url(self, value: Any) -> Optional[str]:
        profile = self.normalize_social(value)
        return profile.url if profile else None

    # ------------------------------------------------------------------
    # Dates
    # ------------------------------------------------------------------

    def is_present_token(self, value: Any) -> bool:
        return isinstance(value, str) and value.strip().lower() in self.rules.present_tokens

    def parse_date(self, value: Any) -> Optional[datetime]:
        """Parse free-text dates; "present"/"current"/"now" mean the processing time."""
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, int):
            if not 1000 <= value <= 9999:
                return None
            parsed = datetime(value, 1, 1)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if self.is_present_token(text):
                return self.now
            try:
                parsed = date_parser.parse(
                    text,
                    default=datetime(self.now.year, 1, 1),
                    dayfirst=self.rules.dayfirst,
                )
            except (ValueError, OverflowError, TypeError):
                return None
        else:
            return None

        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def normalize_date(self, value: Any) -> Optional[str]:
        parsed = self.parse_date(value)
        return parsed.isoformat() if parsed else None

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def normalize_location(self, value: Any) -> Optional[str]:
        """
        Resolve a free-text location to a canonical country name.

        Tries the whole string as a country or region name, then the
        comma-separated parts, then a word-boundary substring search over
        spelled-out names. Unresolved text is returned unchanged.
        """
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text:
            return None

        rules = self.rules
        key = _clean_location_key(text)
        for table in (rules.country_names, rules.country_abbreviations, rules.region_names):
            if key in table:
                return table[key]

        parts = [_clean_location_key(p) for p in re.split(r"[,/|;]", text)]
        resolved = self._resolve_parts([p for p in parts if p])
        if resolved:
            return resolved

        for pattern, canonical in self._substring_aliases:
            if pattern.search(key):
                return canonical

        return text

    def _resolve_parts(self, parts: list[str]) -> Optional[str]:
        """
        Pick a country from location parts, strongest evidence first.

        An explicit country beats a region name, which beats a region code,
        which beats a known city. A region code that is also an ISO country
        code ("CA", "DE", "IN") never decides on its own.
        """
        rules = self.rules
        countries: list[str] = []
        regions: list[str] = []
        region_codes: list[str] = []
        cities: list[str] = []
        for part in parts:
            if part in rules.country_names:
                countries.append(rules.country_names[part])
            elif part in rules.country_abbreviations:
                countries.append(rules.country_abbreviations[part])
            elif part in rules.region_names:
                regions.append(rules.region_names[part])
            elif part in rules.region_codes:
                if part not in rules.iso_country_codes:
                    region_codes.append(rules.region_codes[part])
            elif part in rules.iso_country_codes:
                countries.append(rules.iso_country_codes[part])
            elif part in rules.city_countries:
                cities.append(rules.city_countries[part])

        for found in (countries, regions, region_codes, cities):
            if found:
                return found[-1]
        return None

    def in_region(self, location: Any, region: str) -> bool:
        """True when ``location`` resolves to the same place as ``region``."""
        normalized = self.normalize_location(location)
        target = self.normalize_location(region)
        if not normalized or not target:
            return False
        return normalized.lower() == target.lower()

    # ------------------------------------------------------------------
    # Phones and emails
    # ------------------------------------------------------------------

    def normalize_phone(self, value: Any, region: Optional[str] = None) -> Optional[str]:
        """
        E.164 when the number parses for ``region``; otherwise the plus sign
        and digits only, or an empty string if fewer than 7 digits remain.
        A blank string is already empty and stays that way.
        """
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            value = str(value)
        if not isinstance(value, str):
            return None
        text = value.strip()
        if not text:
            return ""

        try:
            parsed = phonenumbers.parse(text, region or self.rules.default_phone_region)
            if phonenumbers.is_valid_number(parsed):
                return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
        except phonenumbers.NumberParseException:
            pass

        digits = re.sub(r"\D", "", text)
        if len(digits) < self.rules.min_phone_digits:
            return ""
        return f"+{digits}" if text.startswith("+") else digits

    def normalize_email(self, value: Any) -> Optional[str]:
        if not isinstance(value, str):
            return None
        text = value.strip().strip("<>").strip().lower()
        if text.startswith("mailto:"):
            text = text[len("mailto:"):]
        if ".." in text or not EMAIL_RE.match(text):
            return None
        return text

    # ------------------------------------------------------------------
    # Company size
    # ------------------------------------------------------------------

    def parse_company_size(self, value: Any) -> Optional[int]:
        """Lower bound of a size: "1001-5000" -> 1001, "500+" -> 500, "about 40" -> 40."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value)
        if not isinstance(value, str):
            return None

        text = value.replace(",", "").strip()
        match = re.search(r"(\d+)\s*(?:-|–|—|to)\s*(\d+)", text)
        if match:
            return int(match.group(1))
        match = re.search(r"(\d+)\s*\+", text)
        if match:
            return int(match.group(1))
        match = re.search(r"\d+", text)
        if match:
            return int(match.group(0))
        return None
