"""
Authenticity checker - synthetic-data detection and verification against evidence.

Two concerns, both of which must pass:

1. Synthetic patterns: placeholder text, generic names and template markup in
   a record, plus a batch-level uniformity heuristic (advisory).
2. External verification against pre-fetched evidence: the source page, a
   structured profile and multi-source field bundles. Evidence that was
   declared but could not be fetched is a failure, never a skip.

Uncertain outcomes collapse to FAIL for the overall verdict (strict mode)
while the per-check result keeps UNCERTAIN for reporting.
"""
import logging
import re
import unicodedata
from collections import Counter
from typing import Any, Iterator, Optional, Sequence
from urllib.parse import urlsplit

from rapidfuzz import fuzz, utils

from ..models.evidence import (
    EvidenceStatus,
    PageEvidence,
    ProfileEvidence,
    RecordEvidence,
    SourceBundle,
)
from ..models.record import Record, is_blank
from ..models.report import BatchUniformity
from ..models.verdicts import (
    AuthenticityVerdict,
    CheckResult,
    Mismatch,
    Severity,
    SyntheticFinding,
    VerdictStatus,
)
from ..rules import DEFAULT_AUTHENTICITY_RULES, AuthenticityRules
from .experience import ExperienceCalculator
from .normalizer import Normalizer


logger = logging.getLogger(__name__)


PROFILE_SEVERITY = {
    "name": Severity.CRITICAL,
    "company": Severity.HIGH,
    "title": Severity.HIGH,
    "location": Severity.MEDIUM,
}

# Confidence lost per mismatch of each severity
SEVERITY_PENALTY = {
    Severity.CRITICAL: 50,
    Severity.HIGH: 25,
    Severity.MEDIUM: 10,
    Severity.LOW: 0,
}


def _marker_regex(marker: str) -> re.Pattern:
    """Case-insensitive marker that does not match inside a longer word."""
    pattern = re.escape(marker.lower())
    if marker[:1].isalnum():
        pattern = rf"(?<![a-z0-9]){pattern}"
    if marker[-1:].isalnum():
        pattern = rf"{pattern}(?![a-z0-9])"
    return re.compile(pattern, re.IGNORECASE)


def _iter_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, (list, tuple, set)):
        for item in value:
            yield from _iter_strings(item)


def _match_text(text: str) -> str:
    text = unicodedata.normalize("NFKC", text).lower()
    return re.sub(r"\s+", " ", text).strip()


def _scalar_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else str(value)
    if isinstance(value, (int, str)):
        return str(value)
    return None


def classify_ratio(ratio: float, pass_ratio: float, uncertain_ratio: float) -> VerdictStatus:
    if ratio >= pass_ratio:
        return VerdictStatus.PASS
    if ratio >= uncertain_ratio:
        return VerdictStatus.UNCERTAIN
    return VerdictStatus.FAIL


class AuthenticityChecker:
    """Detects fabricated records and verifies records against evidence."""

    def __init__(
        self,
        normalizer: Normalizer,
        experience: ExperienceCalculator,
        rules: AuthenticityRules = DEFAULT_AUTHENTICITY_RULES,
    ):
        self.normalizer = normalizer
        self.experience = experience
        self.rules = rules

        self._placeholders = [(m, _marker_regex(m)) for m in rules.placeholder_markers]
        self._generic_names = [(m, _marker_regex(m)) for m in rules.generic_names]
        self._templates = [re.compile(p) for p in rules.template_patterns]

    # ------------------------------------------------------------------
    # Synthetic patterns
    # ------------------------------------------------------------------

    def detect_synthetic(self, record: Record) -> list[SyntheticFinding]:
        """Placeholder text, generic names and template markup in any field."""
        findings: list[SyntheticFinding] = []
        seen: set[tuple[str, str]] = set()

        def add(field_name: str, marker: str, note: str) -> None:
            if (field_name, marker) not in seen:
                seen.add((field_name, marker))
                findings.append(SyntheticFinding(field=field_name, marker=marker, note=note))

        for name, value in record.fields.items():
            for text in _iter_strings(value):
                for marker, pattern in self._placeholders:
                    if pattern.search(text):
                        add(name, marker, "placeholder text")
                for marker, pattern in self._generic_names:
                    if pattern.search(text):
                        add(name, marker, "generic placeholder name")
                for pattern in self._templates:
                    match = pattern.search(text)
                    if match:
                        add(name, match.group(0), "template markup")

        if findings:
            logger.debug(f"Record {record.record_id}: {len(findings)} synthetic markers")
        return findings

    def _shape(self, record: Record, names: Sequence[str]) -> tuple:
        shape = []
        for name in names:
            value = record.get(name)
            if is_blank(value):
                shape.append("")
            elif isinstance(value, str):
                text = re.sub(r"[0-9]", "9", value)
                shape.append(re.sub(r"[^\W\d_]", "a", text))
            elif isinstance(value, (list, tuple)):
                shape.append(f"list:{len(value)}")
            else:
                shape.append(type(value).__name__)
        return tuple(shape)

    def detect_batch_uniformity(self, records: Sequence[Record]) -> BatchUniformity:
        """
        Batch-level heuristic, run once per pipeline invocation.

        Flags a batch in which every record has every field populated, or in
        which nearly all records share the exact same value formatting. Real
        scraped data is rarely this tidy, but clean data can be, so the result
        is advisory and never rejects a record on its own.
        """
        result = BatchUniformity(batch_size=len(records))
        if len(records) < self.rules.uniformity_min_batch:
            return result

        names = sorted({
            name
            for record in records
            for name in record.fields
            if name not in record.derived_fields and name != "canonical_url"
        })
        if not names:
            return result

        complete = sum(1 for r in records if all(r.has(name) for name in names))
        result.complete_share = round(complete / len(records), 3)
        if complete == len(records):
            result.flags.append("complete_uniformity")

        shapes = Counter(self._shape(r, names) for r in records)
        dominant = shapes.most_common(1)[0][1]
        result.dominant_shape_share = round(dominant / len(records), 3)
        if result.dominant_shape_share >= self.rules.uniformity_shape_share:
            result.flags.append("identical_formatting")

        result.flagged = bool(result.flags)
        if result.flagged:
            logger.warning(f"Batch of {len(records)} records looks synthetic: {result.flags}")
        return result

    # ------------------------------------------------------------------
    # Source page
    # ------------------------------------------------------------------

    def _page_values(self, record: Record) -> dict[str, list[str]]:
        """Normalized and as-scraped text of each populated scalar field."""
        values = {}
        for name, value in record.fields.items():
            if name in self.rules.page_exclude_fields or name in record.derived_fields:
                continue
            forms = []
            for candidate in (value, record.raw_fields.get(name)):
                text = _scalar_text(candidate)
                if text is not None and text.strip() and text not in forms:
                    forms.append(text)
            if forms and not is_blank(value):
                values[name] = forms
        return values

    def _value_on_page(self, value: str, page_text: str, page_digits: str) -> bool:
        needle = _match_text(value)
        if needle in page_text:
            return True

        if needle.startswith(("http://", "https://")):
            parts = urlsplit(needle)
            host = (parts.hostname or "").removeprefix("www.")
            bare = f"{host}{parts.path}".rstrip("/")
            if bare and bare in page_text:
                return True

        digits = re.sub(r"\D", "", value)
        if len(digits) >= 7 and re.fullmatch(r"[\d\s()+.\-]+", value.strip()):
            if digits in page_digits:
                return True
            # E.164 values carry a country code the page may omit
            if value.strip().startswith("+") and digits[1:] in page_digits:
                return True
        return False

    def verify_source_page(self, record: Record, page: PageEvidence) -> Optional[CheckResult]:
        """Share of populated fields whose value appears on the source page."""
        if page.status == EvidenceStatus.NOT_REQUESTED:
            return None
        if page.status == EvidenceStatus.UNREACHABLE or page.text is None:
            return CheckResult(
                status=VerdictStatus.FAIL,
                confidence=0,
                note=f"source page unreachable: {page.error or 'no content'}",
            )

        values = self._page_values(record)
        if not values:
            return CheckResult(
                status=VerdictStatus.FAIL, confidence=0, note="no populated fields to verify"
            )

        page_text = _match_text(page.text)
        page_digits = re.sub(r"\D", "", page.text)
        missing = [
            name for name, forms in values.items()
            if not any(self._value_on_page(form, page_text, page_digits) for form in forms)
        ]
        ratio = (len(values) - len(missing)) / len(values)
        status = classify_ratio(ratio, self.rules.page_pass_ratio, self.rules.page_uncertain_ratio)

        note = f"{len(values) - len(missing)}/{len(values)} fields found on source page"
        if missing:
            note += f"; not found: {', '.join(sorted(missing))}"
        return CheckResult(
            status=status,
            confidence=round(ratio * 100, 1),
            ratio=round(ratio, 3),
            note=note,
        )

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def _similarity(self, field_name: str, claimed: Any, observed: Any) -> float:
        a = _scalar_text(claimed) or ""
        b = _scalar_text(observed) or ""
        if field_name == "name":
            return fuzz.token_sort_ratio(a, b, processor=utils.default_process) / 100
        return fuzz.token_set_ratio(a, b, processor=utils.default_process) / 100

    def _same_location(self, claimed: Any, observed: Any) -> bool:
        left = self.normalizer.normalize_location(claimed)
        right = self.normalizer.normalize_location(observed)
        if left and right and left.lower() == right.lower():
            return True
        return self._similarity("location", claimed, observed) >= self.rules.profile_match_ratio

    def verify_profile(
        self,
        record: Record,
        profile: ProfileEvidence,
    ) -> tuple[Optional[CheckResult], list[Mismatch]]:
        """
        Compare the record with structured profile data.

        Name or duration mismatch is CRITICAL (FAIL); company or title is HIGH
        (two FAIL, one UNCERTAIN); location is MEDIUM (confidence only).
        """
        if profile.status == EvidenceStatus.NOT_REQUESTED:
            return None, []
        if profile.status == EvidenceStatus.UNREACHABLE:
            return CheckResult(
                status=VerdictStatus.FAIL,
                confidence=0,
                note=f"profile unreachable: {profile.error or 'no content'}",
            ), []

        data = profile.data
        mismatches: list[Mismatch] = []
        compared = 0

        for name in self.rules.profile_fields:
            claimed = record.get(name)
            observed = data.get(name)
            if is_blank(claimed) or is_blank(observed):
                continue
            compared += 1
            if name == "location":
                same = self._same_location(claimed, observed)
            else:
                same = self._similarity(name, claimed, observed) >= self.rules.profile_match_ratio
            if not same:
                mismatches.append(Mismatch(
                    field=name,
                    severity=PROFILE_SEVERITY.get(name, Severity.MEDIUM),
                    check="profile",
                    claimed=claimed,
                    observed=observed,
                    note=f"{name} differs from profile",
                ))

        claimed_years = record.get(self.rules.duration_field)
        history = data.get(self.rules.history_field)
        if isinstance(claimed_years, (int, float)) and not isinstance(claimed_years, bool) and history:
            computed = self.experience.years(history)
            compared += 1
            if abs(computed - claimed_years) > self.rules.duration_tolerance_years:
                mismatches.append(Mismatch(
                    field=self.rules.duration_field,
                    severity=Severity.CRITICAL,
                    check="profile",
                    claimed=claimed_years,
                    observed=round(computed, 2),
                    note=f"claimed {claimed_years} years, profile history shows {computed:.2f}",
                ))

        if compared == 0:
            return CheckResult(
                status=VerdictStatus.UNCERTAIN,
                confidence=0,
                note="profile shares no comparable fields with the record",
            ), []

        counts = Counter(m.severity for m in mismatches)
        if counts[Severity.CRITICAL]:
            status = VerdictStatus.FAIL
        elif counts[Severity.HIGH] >= 2:
            status = VerdictStatus.FAIL
        elif counts[Severity.HIGH] == 1:
            status = VerdictStatus.UNCERTAIN
        else:
            status = VerdictStatus.PASS

        confidence = 100 - sum(SEVERITY_PENALTY[m.severity] for m in mismatches)
        note = (
            f"{len(mismatches)} mismatches over {compared} compared fields"
            if mismatches else f"{compared} fields match profile"
        )
        return CheckResult(status=status, confidence=max(0, confidence), note=note), mismatches

    # ------------------------------------------------------------------
    # Cross-source consistency
    # ------------------------------------------------------------------

    def _consistency_key(self, value: Any) -> str:
        text = _scalar_text(value)
        if text is None:
            text = repr(value)
        return " ".join(utils.default_process(text).split())

    def verify_cross_source(self, bundle: SourceBundle) -> tuple[Optional[CheckResult], list[Mismatch]]:
        """
        Agreement ratio: fields on which every reporting source agrees, over
        fields at least one source reported.
        """
        if bundle.status == EvidenceStatus.NOT_REQUESTED:
            return None, []
        if bundle.status == EvidenceStatus.UNREACHABLE:
            return CheckResult(
                status=VerdictStatus.FAIL,
                confidence=0,
                note=f"sources unreachable: {bundle.error or 'no content'}",
            ), []

        names = sorted({name for values in bundle.sources.values() for name in values})
        compared = 0
        agreeing = 0
        mismatches: list[Mismatch] = []

        for name in names:
            reported = {
                source: values[name]
                for source, values in bundle.sources.items()
                if not is_blank(values.get(name))
            }
            if not reported:
                continue
            compared += 1
            distinct = {self._consistency_key(v) for v in reported.values()}
            if len(distinct) == 1:
                agreeing += 1
            else:
                mismatches.append(Mismatch(
                    field=name,
                    severity=Severity.MEDIUM,
                    check="cross_source",
                    observed=reported,
                    note=f"{len(distinct)} distinct values across {len(reported)} sources",
                ))

        if compared == 0:
            return CheckResult(
                status=VerdictStatus.FAIL, confidence=0, note="no source reported any field"
            ), []

        ratio = agreeing / compared
        status = classify_ratio(
            ratio, self.rules.cross_source_pass_ratio, self.rules.cross_source_uncertain_ratio
        )
        return CheckResult(
            status=status,
            confidence=round(ratio * 100, 1),
            ratio=round(ratio, 3),
            note=f"sources agree on {agreeing}/{compared} fields",
        ), mismatches

    # ------------------------------------------------------------------
    # Combined verdict
    # ------------------------------------------------------------------

    def check(self, record: Record, evidence: Optional[RecordEvidence] = None) -> AuthenticityVerdict:
        """All sub-checks, combined with AND semantics."""
        evidence = evidence or RecordEvidence()
        checks: dict[str, CheckResult] = {}
        mismatches: list[Mismatch] = []
        unreachable: list[str] = []

        findings = self.detect_synthetic(record)
        checks["synthetic"] = CheckResult(
            status=VerdictStatus.FAIL if findings else VerdictStatus.PASS,
            confidence=0 if findings else 100,
            note=f"{len(findings)} synthetic markers" if findings else "no synthetic markers",
        )

        page = self.verify_source_page(record, evidence.page)
        if page is not None:
            checks["source_page"] = page
        profile, profile_mismatches = self.verify_profile(record, evidence.profile)
        if profile is not None:
            checks["profile"] = profile
            mismatches.extend(profile_mismatches)
        sources, source_mismatches = self.verify_cross_source(evidence.sources)
        if sources is not None:
            checks["cross_source"] = sources
            mismatches.extend(source_mismatches)

        for kind, item in (
            ("source_page", evidence.page),
            ("profile", evidence.profile),
            ("cross_source", evidence.sources),
        ):
            if item.status == EvidenceStatus.UNREACHABLE:
                unreachable.append(kind)

        passed = all(c.status == VerdictStatus.PASS for c in checks.values())
        external = [c.confidence for kind, c in checks.items() if kind != "synthetic"]
        if findings:
            confidence = 0.0
        elif external:
            confidence = min(external)
        else:
            confidence = self.rules.unverified_confidence

        verdict = AuthenticityVerdict(
            status=VerdictStatus.PASS if passed else VerdictStatus.FAIL,
            confidence=confidence,
            checks=checks,
            mismatches=mismatches,
            synthetic_findings=findings,
            unreachable=unreachable,
        )
        logger.debug(
            f"Record {record.record_id}: authenticity {verdict.status.value} "
            f"({', '.join(f'{k}={c.status.value}' for k, c in checks.items())})"
        )
        return verdict
