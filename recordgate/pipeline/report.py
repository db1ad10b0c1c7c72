"""
Run report - aggregate statistics over the gate's decisions.
"""
import logging
from collections import Counter
from datetime import datetime, timezone
from statistics import mean
from typing import Optional, Sequence

from ..models.merge import DuplicateLink
from ..models.record import Record
from ..models.report import BatchUniformity, ConstraintStats, ValidationReport
from ..models.verdicts import VerdictStatus


logger = logging.getLogger(__name__)


def build_report(
    run_id: str,
    started_at: datetime,
    total_input: int,
    clean: Sequence[Record],
    rejected: Sequence[Record],
    duplicates: Sequence[DuplicateLink] = (),
    batch_uniformity: Optional[BatchUniformity] = None,
) -> ValidationReport:
    """Statistics for one run. Works for an empty clean set."""
    decided = [r for r in list(clean) + list(rejected) if r.validation is not None]

    constraint_stats: dict[str, ConstraintStats] = {}
    authenticity_failures: Counter = Counter()
    categories: Counter = Counter()
    quality: Counter = Counter()

    for record in decided:
        block = record.validation
        for verdict in block.constraint_verdicts:
            stats = constraint_stats.setdefault(verdict.constraint, ConstraintStats(name=verdict.constraint))
            if verdict.status == VerdictStatus.PASS:
                stats.passed += 1
            elif verdict.status == VerdictStatus.FAIL:
                stats.failed += 1
            else:
                stats.uncertain += 1

        if block.authenticity is not None:
            for kind, check in block.authenticity.checks.items():
                if check.status != VerdictStatus.PASS:
                    authenticity_failures[kind] += 1

        for reason in block.rejection_reasons:
            categories[reason.category.value] += 1
        for issue in block.quality_issues:
            quality[issue.kind] += 1

    candidates = len(clean) + len(rejected)
    report = ValidationReport(
        run_id=run_id,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
        total_input=total_input,
        total_candidates=candidates,
        duplicates_merged=len(duplicates),
        passed=len(clean),
        rejected=len(rejected),
        pass_rate=round(len(clean) / candidates * 100, 1) if candidates else 0.0,
        constraint_stats=constraint_stats,
        authenticity_failures=dict(authenticity_failures),
        rejection_categories=dict(categories),
        quality_issues=dict(quality),
        avg_completeness=round(mean(r.validation.completeness for r in decided), 1) if decided else 0.0,
        avg_confidence=round(mean(r.validation.confidence for r in decided), 1) if decided else 0.0,
        batch_uniformity=batch_uniformity or BatchUniformity(),
    )
    logger.info(
        f"Run {run_id}: {report.passed}/{candidates} passed ({report.pass_rate:.1f}%)"
    )
    return report
