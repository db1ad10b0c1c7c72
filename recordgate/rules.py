"""
Default rule tables.

Everything here is immutable and is handed to the pipeline components at
construction time, so two runs with different rule sets never share state.
"""
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping


def _freeze(table: dict) -> Mapping:
    return MappingProxyType(dict(table))


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------

# Spelled-out names; these also drive the substring fallback.
COUNTRY_NAMES: dict[str, tuple[str, ...]] = {
    "United States": (
        "usa", "u s a", "united states of america",
        "the united states", "the usa", "estados unidos",
    ),
    "United Kingdom": (
        "great britain", "britain", "england", "scotland", "wales",
        "northern ireland", "the uk", "united kingdom of great britain and northern ireland",
    ),
    "Canada": (),
    "Germany": ("deutschland", "federal republic of germany"),
    "France": ("république française", "republique francaise"),
    "India": ("bharat", "republic of india"),
    "Australia": ("commonwealth of australia",),
    "Netherlands": ("the netherlands", "holland", "nederland"),
    "Spain": ("españa", "espana"),
    "Italy": ("italia",),
    "Ireland": ("eire", "republic of ireland"),
    "Sweden": ("sverige",),
    "Switzerland": ("schweiz", "suisse", "svizzera"),
    "Brazil": ("brasil",),
    "Mexico": ("méxico",),
    "Japan": ("nippon",),
    "China": ("people's republic of china", "mainland china"),
    "Singapore": ("republic of singapore",),
    "Israel": (),
    "United Arab Emirates": ("emirates",),
    "South Korea": ("republic of korea",),
    "New Zealand": ("aotearoa",),
    "Poland": ("polska",),
    "Portugal": (),
    "Argentina": (),
    "Colombia": (),
    "Indonesia": (),
    "Morocco": (),
    "Tunisia": (),
    "Gabon": (),
    "Panama": (),
    "Malta": (),
    "Moldova": (),
    "Albania": (),
    "Azerbaijan": (),
    "Laos": (),
    "Slovakia": (),
    "Peru": (),
}

# Short forms; only ever matched as a whole location part, never inside text.
COUNTRY_ABBREVIATIONS: dict[str, str] = {
    "us": "United States", "u s": "United States",
    "uk": "United Kingdom", "gb": "United Kingdom",
    "can": "Canada", "aus": "Australia", "isr": "Israel",
    "prc": "China", "rok": "South Korea", "sg": "Singapore",
    "uae": "United Arab Emirates", "u a e": "United Arab Emirates",
    "nz": "New Zealand",
}

# ISO 3166-1 alpha-2 codes. Several collide with state and province codes.
ISO_COUNTRY_CODES: dict[str, str] = {
    "us": "United States", "gb": "United Kingdom", "ca": "Canada",
    "de": "Germany", "fr": "France", "in": "India", "au": "Australia",
    "nl": "Netherlands", "es": "Spain", "it": "Italy", "ie": "Ireland",
    "se": "Sweden", "ch": "Switzerland", "br": "Brazil", "mx": "Mexico",
    "jp": "Japan", "cn": "China", "sg": "Singapore", "il": "Israel",
    "ae": "United Arab Emirates", "kr": "South Korea", "nz": "New Zealand",
    "pl": "Poland", "pt": "Portugal", "ar": "Argentina", "co": "Colombia",
    "id": "Indonesia", "ma": "Morocco", "tn": "Tunisia", "ga": "Gabon",
    "pa": "Panama", "mt": "Malta", "md": "Moldova", "al": "Albania",
    "az": "Azerbaijan", "la": "Laos", "sk": "Slovakia", "pe": "Peru",
}

US_STATES: dict[str, str] = {
    "al": "alabama", "ak": "alaska", "az": "arizona", "ar": "arkansas",
    "ca": "california", "co": "colorado", "ct": "connecticut", "de": "delaware",
    "fl": "florida", "ga": "georgia", "hi": "hawaii", "id": "idaho",
    "il": "illinois", "in": "indiana", "ia": "iowa", "ks": "kansas",
    "ky": "kentucky", "la": "louisiana", "me": "maine", "md": "maryland",
    "ma": "massachusetts", "mi": "michigan", "mn": "minnesota", "ms": "mississippi",
    "mo": "missouri", "mt": "montana", "ne": "nebraska", "nv": "nevada",
    "nh": "new hampshire", "nj": "new jersey", "nm": "new mexico", "ny": "new york",
    "nc": "north carolina", "nd": "north dakota", "oh": "ohio", "ok": "oklahoma",
    "or": "oregon", "pa": "pennsylvania", "ri": "rhode island", "sc": "south carolina",
    "sd": "south dakota", "tn": "tennessee", "tx": "texas", "ut": "utah",
    "vt": "vermont", "va": "virginia", "wa": "washington", "wv": "west virginia",
    "wi": "wisconsin", "wy": "wyoming", "dc": "district of columbia",
}

CANADIAN_PROVINCES: dict[str, str] = {
    "on": "ontario", "qc": "quebec", "bc": "british columbia", "ab": "alberta",
    "mb": "manitoba", "sk": "saskatchewan", "ns": "nova scotia",
    "nb": "new brunswick", "nl": "newfoundland and labrador",
    "pe": "prince edward island", "yt": "yukon", "nt": "northwest territories",
    "nu": "nunavut",
}

# Cities that settle an otherwise ambiguous region code ("Berlin, DE").
CITY_COUNTRIES: dict[str, tuple[str, ...]] = {
    "United States": (
        "new york", "nyc", "new york city", "san francisco", "los angeles",
        "chicago", "austin", "seattle", "boston", "mountain view", "palo alto",
        "san jose", "atlanta", "denver", "miami", "dallas", "houston",
        "indianapolis", "philadelphia", "wilmington", "nashville", "memphis",
    ),
    "Canada": ("toronto", "vancouver", "montreal", "ottawa", "calgary"),
    "United Kingdom": ("london", "manchester", "edinburgh"),
    "Germany": ("berlin", "munich", "münchen", "hamburg", "frankfurt"),
    "India": (
        "bangalore", "bengaluru", "mumbai", "delhi", "new delhi",
        "chennai", "hyderabad", "pune",
    ),
    "France": ("paris",),
    "Netherlands": ("amsterdam",),
    "Spain": ("madrid", "barcelona"),
    "Ireland": ("dublin",),
    "Israel": ("tel aviv",),
    "Australia": ("sydney", "melbourne"),
    "Japan": ("tokyo",),
    "Sweden": ("stockholm",),
    "Switzerland": ("zurich", "zürich"),
    "Brazil": ("sao paulo", "são paulo"),
    "Mexico": ("mexico city",),
    "China": ("beijing", "shanghai"),
    "United Arab Emirates": ("dubai", "abu dhabi"),
    "Tunisia": ("tunis",),
}


def _build_country_names() -> dict[str, str]:
    names: dict[str, str] = {}
    for country, aliases in COUNTRY_NAMES.items():
        names[country.lower()] = country
        for alias in aliases:
            names[alias] = country
    return names


def _build_region_codes() -> dict[str, str]:
    codes = {code: "United States" for code in US_STATES}
    codes.update({code: "Canada" for code in CANADIAN_PROVINCES})
    return codes


def _build_region_names() -> dict[str, str]:
    names = {name: "United States" for name in US_STATES.values()}
    names.update({name: "Canada" for name in CANADIAN_PROVINCES.values()})
    return names


def _build_city_countries() -> dict[str, str]:
    return {city: country for country, cities in CITY_COUNTRIES.items() for city in cities}


COUNTRY_NAME_TABLE: Mapping[str, str] = _freeze(_build_country_names())
COUNTRY_ABBREVIATION_TABLE: Mapping[str, str] = _freeze(COUNTRY_ABBREVIATIONS)
ISO_COUNTRY_CODE_TABLE: Mapping[str, str] = _freeze(ISO_COUNTRY_CODES)
REGION_CODE_TABLE: Mapping[str, str] = _freeze(_build_region_codes())
REGION_NAME_TABLE: Mapping[str, str] = _freeze(_build_region_names())
CITY_COUNTRY_TABLE: Mapping[str, str] = _freeze(_build_city_countries())


def _table(default: Mapping[str, str]):
    return field(default_factory=lambda: default)


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NormalizationRules:
    """
    Tables used by the normalizer.

    Location tables are split by how much a match can be trusted: spelled-out
    country names and region names resolve anywhere, abbreviations and codes
    only as a whole part, and region codes that double as ISO country codes
    need another part (a country, a province, or a known city) to settle them.
    """
    tracking_param_prefixes: tuple[str, ...] = ("utm_",)
    tracking_params: frozenset[str] = frozenset({"gclid", "fbclid", "mc_cid", "mc_eid"})
    present_tokens: frozenset[str] = frozenset({"present", "current", "now", "today", "ongoing"})
    country_names: Mapping[str, str] = _table(COUNTRY_NAME_TABLE)
    country_abbreviations: Mapping[str, str] = _table(COUNTRY_ABBREVIATION_TABLE)
    iso_country_codes: Mapping[str, str] = _table(ISO_COUNTRY_CODE_TABLE)
    region_codes: Mapping[str, str] = _table(REGION_CODE_TABLE)
    region_names: Mapping[str, str] = _table(REGION_NAME_TABLE)
    city_countries: Mapping[str, str] = _table(CITY_COUNTRY_TABLE)
    min_substring_alias_length: int = 3
    default_phone_region: str = "US"
    dayfirst: bool = False
    min_phone_digits: int = 7

    def with_overrides(self, **changes) -> "NormalizationRules":
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Constraint patterns
# ---------------------------------------------------------------------------

FORMAT_PATTERNS: Mapping[str, str] = _freeze({
    "email": r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$",
    "us_phone": r"^(\+?1[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}$",
    "us_postal_code": r"^\d{5}(-\d{4})?$",
    "uk_postal_code": r"^[A-Za-z]{1,2}\d[A-Za-z\d]?\s*\d[A-Za-z]{2}$",
    "linkedin_person": r"^https?://([a-z]{2,3}\.)?(www\.)?linkedin\.com/in/[\w\-%]+/?$",
    "linkedin_company": r"^https?://([a-z]{2,3}\.)?(www\.)?linkedin\.com/company/[\w\-%]+/?$",
})


@dataclass(frozen=True)
class SeniorityRules:
    """
    Regex families for title classification.

    ``junior_pattern`` is a disqualifying signal and is checked before any
    level. ``levels`` is ordered; the first requested level that matches wins.
    """
    junior_pattern: str = (
        r"\b(junior|jr\.?|entry[\s-]level|entry|associate|analyst|"
        r"intern|internship|trainee|graduate)\b"
    )
    levels: tuple[tuple[str, str], ...] = (
        ("c_suite", r"\b(chief\s+\w+(\s+\w+)?\s+officer|ceo|cto|cfo|coo|cmo|cio|ciso|cpo|"
                    r"founder|co-founder|cofounder|owner)\b|(?<!vice\s)(?<!vice-)\bpresident\b"),
        ("vp", r"\b(vp|svp|evp|avp|vice[\s-]president|head\s+of)\b"),
        ("director", r"\b(director|directeur)\b"),
        ("manager", r"\b(manager|management|supervisor|team\s+lead)\b"),
        ("senior_specialist", r"\b(senior|sr\.?|staff|principal|lead|architect|expert|specialist)\b"),
    )

    @property
    def level_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.levels)


# ---------------------------------------------------------------------------
# Authenticity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthenticityRules:
    """Synthetic-data markers and verification thresholds."""
    placeholder_markers: tuple[str, ...] = (
        "lorem ipsum", "example.com", "example.org", "test@", "your name",
        "placeholder", "dummy data", "sample text", "asdf",
    )
    generic_names: tuple[str, ...] = (
        "john doe", "jane doe", "john smith test", "test user", "test account",
        "first last", "firstname lastname",
    )
    template_patterns: tuple[str, ...] = (
        r"\[[^\[\]]+\]",
        r"\{\{[^{}]*\}\}",
        r"\{%[^%]*%\}",
    )
    page_pass_ratio: float = 0.80
    page_uncertain_ratio: float = 0.60
    cross_source_pass_ratio: float = 0.70
    cross_source_uncertain_ratio: float = 0.50
    profile_match_ratio: float = 0.85
    duration_tolerance_years: float = 1.0
    duration_field: str = "experience_years"
    history_field: str = "work_history"
    profile_fields: tuple[str, ...] = ("name", "company", "title", "location")
    page_exclude_fields: frozenset[str] = frozenset({
        "record_id", "source", "source_url", "canonical_url", "scraped_at", "work_history",
    })
    uniformity_min_batch: int = 5
    uniformity_shape_share: float = 0.9
    unverified_confidence: float = 70.0


# ---------------------------------------------------------------------------
# Content sanity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ContentRules:
    """Markers for scraped content that is not real data."""
    html_pattern: str = r"</?[a-zA-Z][a-zA-Z0-9]*(\s[^<>]*)?/?>|&(nbsp|amp|lt|gt|quot|#\d+);"
    block_page_markers: tuple[str, ...] = (
        "access denied", "verify you are human", "are you a robot", "captcha",
        "unusual traffic", "enable javascript", "checking your browser",
        "403 forbidden", "request blocked", "temporarily unavailable",
    )
    description_field_markers: tuple[str, ...] = (
        "description", "bio", "summary", "about", "overview",
    )
    min_description_length: int = 10
    iqr_multiplier: float = 1.5
    min_outlier_samples: int = 4


DEFAULT_NORMALIZATION_RULES = NormalizationRules()
DEFAULT_SENIORITY_RULES = SeniorityRules()
DEFAULT_AUTHENTICITY_RULES = AuthenticityRules()
DEFAULT_CONTENT_RULES = ContentRules()
