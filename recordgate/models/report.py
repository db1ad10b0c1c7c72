"""
Report models - run statistics and the final pipeline result.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .merge import DuplicateLink, MergeGroup
from .record import Record


class BatchUniformity(BaseModel):
    """Batch-level synthetic-uniformity heuristic. Advisory only."""
    flagged: bool = False
    batch_size: int = 0
    complete_share: float = 0.0
    dominant_shape_share: float = 0.0
    flags: list[str] = Field(default_factory=list)


class ConstraintStats(BaseModel):
    """Pass/fail counts for one constraint across the run."""
    name: str
    passed: int = 0
    failed: int = 0
    uncertain: int = 0

    @property
    def evaluated(self) -> int:
        return self.passed + self.failed + self.uncertain

    @property
    def pass_rate(self) -> float:
        if not self.evaluated:
            return 0.0
        return round(self.passed / self.evaluated * 100, 1)


class ValidationReport(BaseModel):
    """Aggregate statistics, computed once per run after the gate."""
    run_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None

    total_input: int = 0
    total_candidates: int = Field(default=0, description="Records reaching the gate after merging")
    duplicates_merged: int = 0
    passed: int = 0
    rejected: int = 0
    pass_rate: float = Field(default=0.0, description="Percent of gate candidates admitted")

    constraint_stats: dict[str, ConstraintStats] = Field(default_factory=dict)
    authenticity_failures: dict[str, int] = Field(
        default_factory=dict,
        description="Failed authenticity sub-checks by kind",
    )
    rejection_categories: dict[str, int] = Field(default_factory=dict)
    quality_issues: dict[str, int] = Field(default_factory=dict)

    avg_completeness: float = 0.0
    avg_confidence: float = 0.0
    batch_uniformity: BatchUniformity = Field(default_factory=BatchUniformity)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Run {self.run_id}",
            f"  Input: {self.total_input} records ({self.duplicates_merged} merged as duplicates)",
            f"  Passed: {self.passed}  Rejected: {self.rejected}  Pass rate: {self.pass_rate:.1f}%",
            f"  Avg completeness: {self.avg_completeness:.1f}  Avg confidence: {self.avg_confidence:.1f}",
        ]
        for name, stats in self.constraint_stats.items():
            lines.append(f"  - {name}: {stats.pass_rate:.1f}% pass ({stats.passed}/{stats.evaluated})")
        for category, count in sorted(self.rejection_categories.items()):
            lines.append(f"  ! {category}: {count}")
        if self.batch_uniformity.flagged:
            lines.append(f"  ? batch uniformity: {', '.join(self.batch_uniformity.flags)}")
        return "\n".join(lines)


class PipelineResult(BaseModel):
    """Clean and rejected records plus the run report."""
    clean: list[Record] = Field(default_factory=list)
    rejected: list[Record] = Field(default_factory=list)
    report: ValidationReport
    merge_groups: list[MergeGroup] = Field(default_factory=list)
    duplicates: list[DuplicateLink] = Field(default_factory=list)

    def accounted_ids(self) -> set[str]:
        """Every input record id: gate decisions plus ids folded in by merging."""
        ids: set[str] = set()
        for record in self.clean + self.rejected:
            ids.add(record.record_id)
            ids.update(record.merged_from)
        return ids
