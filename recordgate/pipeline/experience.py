"""
Experience computation from a work-history list.
"""
import logging
from typing import Any, Optional

from pydantic import BaseModel, Field

from .normalizer import Normalizer


logger = logging.getLogger(__name__)

DAYS_PER_YEAR = 365.25


class PositionSpan(BaseModel):
    """One counted position."""
    start: str
    end: str
    days: int
    open_ended: bool = False
    location: Optional[str] = None


class ExperienceSummary(BaseModel):
    """Years of experience plus the positions that contributed."""
    years: float = 0.0
    positions: list[PositionSpan] = Field(default_factory=list)
    skipped: int = Field(default=0, description="Positions ignored (region, unparseable or reversed dates)")


class ExperienceCalculator:
    """
    Sums the elapsed time of work-history positions.

    A position without an end date, or ending "present"/"current", is closed
    at the normalizer's processing time. Overlapping positions are summed
    as-is.
    """

    def __init__(
        self,
        normalizer: Normalizer,
        location_key: str = "location",
        start_key: str = "start_date",
        end_key: str = "end_date",
    ):
        self.normalizer = normalizer
        self.location_key = location_key
        self.start_key = start_key
        self.end_key = end_key

    def summarize(self, history: Any, region: Optional[str] = None) -> ExperienceSummary:
        """
        Summarize ``history``; when ``region`` is given only positions located
        in that region are counted.
        """
        summary = ExperienceSummary()
        if not isinstance(history, (list, tuple)):
            return summary

        total_days = 0
        for position in history:
            if not isinstance(position, dict):
                summary.skipped += 1
                continue

            location = position.get(self.location_key)
            if region is not None and not self.normalizer.in_region(location, region):
                summary.skipped += 1
                continue

            start = self.normalizer.parse_date(position.get(self.start_key))
            if start is None:
                summary.skipped += 1
                continue

            raw_end = position.get(self.end_key)
            open_ended = raw_end is None or (isinstance(raw_end, str) and not raw_end.strip())
            open_ended = open_ended or self.normalizer.is_present_token(raw_end)
            end = self.normalizer.now if open_ended else self.normalizer.parse_date(raw_end)
            if end is None or end < start:
                summary.skipped += 1
                continue

            days = (end - start).days
            total_days += days
            summary.positions.append(PositionSpan(
                start=start.isoformat(),
                end=end.isoformat(),
                days=days,
                open_ended=open_ended,
                location=location if isinstance(location, str) else None,
            ))

        summary.years = total_days / DAYS_PER_YEAR
        logger.debug(
            f"Experience: {summary.years:.2f} years from {len(summary.positions)} positions "
            f"({summary.skipped} skipped)"
        )
        return summary

    def years(self, history: Any, region: Optional[str] = None) -> float:
        return self.summarize(history, region).years
