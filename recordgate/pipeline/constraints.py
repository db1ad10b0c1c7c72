"""
Constraint engine - evaluates user-defined hard constraints against a record.

Evaluation is stateless per (record, constraint) pair. The aggregate is
conjunctive: one FAIL or UNCERTAIN verdict fails the record.
"""
import logging
import re
from typing import Any, Callable, Mapping, Optional, Sequence

from ..errors import SpecificationError, UnknownConstraintTypeError
from ..models.constraints import ConstraintSpec, ConstraintType
from ..models.record import Record, is_blank
from ..models.verdicts import ConstraintVerdict, VerdictStatus
from ..rules import DEFAULT_SENIORITY_RULES, FORMAT_PATTERNS, SeniorityRules
from .experience import ExperienceCalculator
from .normalizer import Normalizer


logger = logging.getLogger(__name__)


class ConstraintEngine:
    """Dispatches each constraint to the evaluator for its type."""

    def __init__(
        self,
        normalizer: Normalizer,
        experience: ExperienceCalculator,
        format_patterns: Mapping[str, str] = FORMAT_PATTERNS,
        seniority_rules: SeniorityRules = DEFAULT_SENIORITY_RULES,
        home_region: str = "United States",
    ):
        self.normalizer = normalizer
        self.experience = experience
        self.format_patterns = format_patterns
        self.seniority_rules = seniority_rules
        self.home_region = home_region

        self._junior = re.compile(seniority_rules.junior_pattern, re.IGNORECASE)
        self._levels = {
            name: re.compile(pattern, re.IGNORECASE)
            for name, pattern in seniority_rules.levels
        }
        self._evaluators: dict[ConstraintType, Callable[[Record, ConstraintSpec], ConstraintVerdict]] = {
            ConstraintType.REQUIRED_FIELDS: self._required_fields,
            ConstraintType.FORMAT: self._format,
            ConstraintType.LOCATION: self._location,
            ConstraintType.NUMERIC: self._numeric,
            ConstraintType.EXPERIENCE: self._experience,
            ConstraintType.SENIORITY: self._seniority,
            ConstraintType.CUSTOM: self._custom,
        }

    def validate_specs(self, specs: Sequence[ConstraintSpec]) -> None:
        """Fail fast on constraints the engine cannot evaluate."""
        for spec in specs:
            if spec.type not in self._evaluators:
                raise UnknownConstraintTypeError(str(spec.type), spec.name)
            if spec.type == ConstraintType.FORMAT:
                self._compile_format(spec)
            if spec.type == ConstraintType.SENIORITY:
                unknown = [level for level in spec.levels if level not in self._levels]
                if unknown:
                    raise SpecificationError(
                        f"constraint '{spec.name}' requests unknown seniority levels {unknown}; "
                        f"known: {list(self._levels)}"
                    )
            if spec.type == ConstraintType.CUSTOM and spec.check is None:
                raise SpecificationError(f"custom constraint '{spec.name}' has no check callable")
            if spec.type in (ConstraintType.EXPERIENCE, ConstraintType.NUMERIC):
                self._require_bounds(spec)

    def evaluate(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        evaluator = self._evaluators.get(spec.type)
        if evaluator is None:
            raise UnknownConstraintTypeError(str(spec.type), spec.name)
        verdict = evaluator(record, spec)
        logger.debug(
            f"Record {record.record_id}: {spec.name} -> {verdict.status.value} ({verdict.note})"
        )
        return verdict

    def evaluate_all(self, record: Record, specs: Sequence[ConstraintSpec]) -> list[ConstraintVerdict]:
        return [self.evaluate(record, spec) for spec in specs]

    @staticmethod
    def aggregate(verdicts: Sequence[ConstraintVerdict]) -> VerdictStatus:
        """PASS iff every verdict is PASS; an empty set passes."""
        if all(v.status == VerdictStatus.PASS for v in verdicts):
            return VerdictStatus.PASS
        return VerdictStatus.FAIL

    # ------------------------------------------------------------------
    # Evaluators
    # ------------------------------------------------------------------

    @staticmethod
    def _verdict(
        spec: ConstraintSpec,
        status: VerdictStatus,
        confidence: float,
        expected: Any = None,
        actual: Any = None,
        note: str = "",
    ) -> ConstraintVerdict:
        return ConstraintVerdict(
            constraint=spec.name,
            constraint_type=spec.type.value,
            status=status,
            expected=expected,
            actual=actual,
            confidence=confidence,
            note=note,
        )

    def _required_fields(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        missing = [name for name in spec.target_fields if not record.has(name)]
        if missing:
            return self._verdict(
                spec, VerdictStatus.FAIL, 100,
                expected=list(spec.target_fields), actual=missing,
                note=f"missing or blank: {', '.join(missing)}",
            )
        return self._verdict(
            spec, VerdictStatus.PASS, 100,
            expected=list(spec.target_fields), note="all required fields present",
        )

    def _compile_format(self, spec: ConstraintSpec) -> re.Pattern:
        if spec.regex:
            source = spec.regex
        elif spec.pattern:
            if spec.pattern not in self.format_patterns:
                raise SpecificationError(
                    f"constraint '{spec.name}' names unknown format pattern '{spec.pattern}'"
                )
            source = self.format_patterns[spec.pattern]
        else:
            raise SpecificationError(f"format constraint '{spec.name}' has no pattern or regex")
        try:
            return re.compile(source)
        except re.error as e:
            raise SpecificationError(f"constraint '{spec.name}' has an invalid regex: {e}") from e

    def _format(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        pattern = self._compile_format(spec)
        expected = spec.pattern or spec.regex
        value = record.get(spec.field)
        if is_blank(value):
            return self._verdict(
                spec, VerdictStatus.FAIL, 100, expected=expected, note=f"{spec.field} is missing"
            )
        text = str(value).strip()
        if pattern.match(text):
            return self._verdict(spec, VerdictStatus.PASS, 95, expected=expected, actual=text)
        return self._verdict(
            spec, VerdictStatus.FAIL, 95, expected=expected, actual=text,
            note=f"{spec.field} does not match {expected}",
        )

    def _location(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        allowed = [self.normalizer.normalize_location(v) or v for v in spec.allowed_values]
        value = record.get(spec.field)
        normalized = self.normalizer.normalize_location(value)
        if not normalized:
            return self._verdict(
                spec, VerdictStatus.FAIL, 100, expected=allowed,
                note=f"{spec.field} is missing or not a place name",
            )
        if normalized.lower() in {a.lower() for a in allowed}:
            return self._verdict(spec, VerdictStatus.PASS, 95, expected=allowed, actual=normalized)
        return self._verdict(
            spec, VerdictStatus.FAIL, 95, expected=allowed, actual=normalized,
            note=f"{value!r} normalizes to {normalized!r}, not in allowed values",
        )

    def _coerce_number(self, name: str, value: Any) -> Optional[float]:
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, (int, float)):
            return float(value)
        if name == "company_size":
            size = self.normalizer.parse_company_size(value)
            return float(size) if size is not None else None
        if isinstance(value, str):
            try:
                return float(value.replace(",", "").strip())
            except ValueError:
                return None
        return None

    @staticmethod
    def _require_bounds(spec: ConstraintSpec) -> None:
        if spec.type == ConstraintType.EXPERIENCE and spec.minimum is None:
            raise SpecificationError(f"experience constraint '{spec.name}' has no minimum")
        if spec.type == ConstraintType.NUMERIC and spec.minimum is None and spec.maximum is None:
            raise SpecificationError(f"numeric constraint '{spec.name}' has neither minimum nor maximum")

    def _numeric(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        self._require_bounds(spec)
        expected = {"minimum": spec.minimum, "maximum": spec.maximum}
        raw = record.get(spec.field)
        number = self._coerce_number(spec.field, raw)
        if number is None:
            return self._verdict(
                spec, VerdictStatus.FAIL, 100, expected=expected, actual=raw,
                note=f"{spec.field} is missing or not numeric",
            )
        if spec.minimum is not None and number < spec.minimum:
            return self._verdict(
                spec, VerdictStatus.FAIL, 95, expected=expected, actual=number,
                note=f"{number:g} is below minimum {spec.minimum:g}",
            )
        if spec.maximum is not None and number > spec.maximum:
            return self._verdict(
                spec, VerdictStatus.FAIL, 95, expected=expected, actual=number,
                note=f"{number:g} is above maximum {spec.maximum:g}",
            )
        if spec.preferred_minimum is not None and number >= spec.preferred_minimum:
            return self._verdict(
                spec, VerdictStatus.PASS, 95, expected=expected, actual=number,
                note=f"meets preferred minimum {spec.preferred_minimum:g}",
            )
        return self._verdict(spec, VerdictStatus.PASS, 90, expected=expected, actual=number)

    def _experience(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        self._require_bounds(spec)
        minimum = spec.minimum
        expected = {"minimum": minimum}

        if spec.field and record.has(spec.field):
            years = self._coerce_number(spec.field, record.get(spec.field))
            if years is None:
                return self._verdict(
                    spec, VerdictStatus.FAIL, 100, expected=expected, actual=record.get(spec.field),
                    note=f"{spec.field} is not a number of years",
                )
            source = spec.field
            confidence = 85
        else:
            history = record.get(spec.history_field)
            if not isinstance(history, (list, tuple)) or not history:
                return self._verdict(
                    spec, VerdictStatus.FAIL, 100, expected=expected,
                    note="no experience duration or work history to verify",
                )
            region = spec.home_region or self.home_region
            years = self.experience.years(history, region=region)
            source = f"{spec.history_field} in {region}"
            confidence = 90

        years = round(years, 2)
        if years >= minimum:
            return self._verdict(
                spec, VerdictStatus.PASS, confidence, expected=expected, actual=years,
                note=f"{years:g} years from {source}",
            )
        return self._verdict(
            spec, VerdictStatus.FAIL, confidence, expected=expected, actual=years,
            note=f"{years:g} years from {source}, below {minimum:g}",
        )

    def _seniority(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        levels = list(spec.levels) or list(self._levels)
        title = record.get(spec.field)
        if is_blank(title) or not isinstance(title, str):
            return self._verdict(
                spec, VerdictStatus.FAIL, 100, expected=levels, note=f"{spec.field} is missing"
            )

        junior = self._junior.search(title)
        if junior:
            return self._verdict(
                spec, VerdictStatus.FAIL, 95, expected=levels, actual=title,
                note=f"junior marker '{junior.group(0)}' disqualifies",
            )

        for level in levels:
            if level not in self._levels:
                raise SpecificationError(f"constraint '{spec.name}' requests unknown seniority level '{level}'")
            if self._levels[level].search(title):
                return self._verdict(
                    spec, VerdictStatus.PASS, 90, expected=levels, actual=level,
                    note=f"title matches {level}",
                )

        return self._verdict(
            spec, VerdictStatus.FAIL, 85, expected=levels, actual=title,
            note="title matches none of the requested levels",
        )

    def _custom(self, record: Record, spec: ConstraintSpec) -> ConstraintVerdict:
        if spec.check is None:
            raise SpecificationError(f"custom constraint '{spec.name}' has no check callable")
        outcome = spec.check(dict(record.fields))
        if outcome is None:
            return self._verdict(spec, VerdictStatus.UNCERTAIN, 50, note="check could not decide")
        if outcome:
            return self._verdict(spec, VerdictStatus.PASS, 90)
        return self._verdict(spec, VerdictStatus.FAIL, 90, note=spec.description or "custom check failed")
