"""
Merge models - duplicate links, field conflicts and merge groups.
"""
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from .record import Record


class SourcedValue(BaseModel):
    """A field value together with where it came from."""
    record_id: str
    source: Optional[str] = None
    value: Any = None


class FieldConflict(BaseModel):
    """A field the merged records disagreed on, and how it was resolved."""
    field: str
    values: list[SourcedValue]
    resolved_value: Any = None
    winning_record_id: str
    winning_source: Optional[str] = None
    resolution: Literal["source_priority", "longest_value"]


class DuplicateLink(BaseModel):
    """A record folded into a canonical record."""
    record_id: str
    canonical_id: str
    phase: Literal["exact", "fuzzy"]
    key: Optional[str] = Field(default=None, description="Composite key for exact matches")
    similarity: Optional[float] = Field(default=None, description="Matched-field share for fuzzy matches")


class MergeGroup(BaseModel):
    """Records believed to denote one entity, and their merged result."""
    canonical_id: str
    members: list[Record]
    merged: Record
    source_priority: list[str] = Field(default_factory=list)
    conflicts: list[FieldConflict] = Field(default_factory=list)

    @property
    def member_ids(self) -> list[str]:
        return [m.record_id for m in self.members]


class DedupResult(BaseModel):
    """Output of deduplication: one record per entity."""
    records: list[Record] = Field(default_factory=list)
    groups: list[MergeGroup] = Field(default_factory=list)
    duplicates: list[DuplicateLink] = Field(default_factory=list)
