"""
Anomaly detector - batch outliers and content sanity checks.

Everything here is advisory: issues are attached to the record's validation
block and counted in the report, but never reject a record.
"""
import logging
import re
from typing import Optional, Sequence

import numpy as np

from ..models.record import Record
from ..models.verdicts import QualityIssue, Severity
from ..rules import DEFAULT_CONTENT_RULES, ContentRules


logger = logging.getLogger(__name__)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class AnomalyDetector:
    """IQR outliers across a batch and per-record content sanity."""

    def __init__(self, rules: ContentRules = DEFAULT_CONTENT_RULES):
        self.rules = rules
        self._html = re.compile(rules.html_pattern)
        self._block_markers = tuple(m.lower() for m in rules.block_page_markers)

    def numeric_fields(self, records: Sequence[Record]) -> list[str]:
        """Fields holding a number in at least one record."""
        names = set()
        for record in records:
            for name, value in record.fields.items():
                if _is_number(value) and name not in record.derived_fields:
                    names.add(name)
        return sorted(names)

    def detect_outliers(
        self,
        records: Sequence[Record],
        fields: Optional[Sequence[str]] = None,
    ) -> dict[str, list[QualityIssue]]:
        """
        Flag values outside [Q1 - k*IQR, Q3 + k*IQR] per numeric field.

        Returns record_id -> issues. Fields with fewer than
        ``min_outlier_samples`` values are skipped.
        """
        issues: dict[str, list[QualityIssue]] = {}
        k = self.rules.iqr_multiplier

        for name in fields or self.numeric_fields(records):
            samples = [(r, float(r.get(name))) for r in records if _is_number(r.get(name))]
            if len(samples) < self.rules.min_outlier_samples:
                continue

            values = np.array([value for _, value in samples])
            q1 = float(np.percentile(values, 25))
            q3 = float(np.percentile(values, 75))
            iqr = q3 - q1
            lower_bound = q1 - k * iqr
            upper_bound = q3 + k * iqr

            for record, value in samples:
                if lower_bound <= value <= upper_bound:
                    continue
                issues.setdefault(record.record_id, []).append(QualityIssue(
                    field=name,
                    kind="outlier",
                    severity=Severity.HIGH if value < 0 else Severity.MEDIUM,
                    note=f"{value:g} outside [{lower_bound:g}, {upper_bound:g}]",
                ))

        if issues:
            logger.info(f"Outliers found in {len(issues)} records")
        return issues

    def _is_description(self, name: str) -> bool:
        lowered = name.lower()
        return any(marker in lowered for marker in self.rules.description_field_markers)

    def check_content(self, record: Record) -> list[QualityIssue]:
        """HTML remnants, block-page text and too-short descriptions."""
        issues: list[QualityIssue] = []
        for name, value in record.fields.items():
            if not isinstance(value, str) or name in record.derived_fields:
                continue

            if self._html.search(value):
                issues.append(QualityIssue(
                    field=name, kind="html_remnant", severity=Severity.MEDIUM,
                    note="contains HTML markup",
                ))

            lowered = value.lower()
            marker = next((m for m in self._block_markers if m in lowered), None)
            if marker:
                issues.append(QualityIssue(
                    field=name, kind="block_page", severity=Severity.HIGH,
                    note=f"looks like a block page ('{marker}')",
                ))

            if self._is_description(name) and len(value.strip()) < self.rules.min_description_length:
                issues.append(QualityIssue(
                    field=name, kind="too_short", severity=Severity.LOW,
                    note=f"{len(value.strip())} characters, minimum {self.rules.min_description_length}",
                ))

        return issues
