"""
Evidence models - pre-fetched verification payloads handed to the core.

Fetching happens outside the core; each payload only records what came back.
"""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EvidenceStatus(str, Enum):
    """Availability of a piece of evidence."""
    FETCHED = "fetched"
    UNREACHABLE = "unreachable"
    NOT_REQUESTED = "not_requested"


class PageEvidence(BaseModel):
    """Text of the page a record was scraped from."""
    status: EvidenceStatus = EvidenceStatus.NOT_REQUESTED
    url: Optional[str] = None
    text: Optional[str] = None
    error: Optional[str] = None


class ProfileEvidence(BaseModel):
    """Structured data from a social/professional profile."""
    status: EvidenceStatus = EvidenceStatus.NOT_REQUESTED
    url: Optional[str] = None
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Profile fields: name, company, title, location, work_history",
    )
    error: Optional[str] = None


class SourceBundle(BaseModel):
    """The same record's fields as reported by several independent sources."""
    status: EvidenceStatus = EvidenceStatus.NOT_REQUESTED
    sources: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        description="Source name -> field values that source reported",
    )
    error: Optional[str] = None


class RecordEvidence(BaseModel):
    """All evidence available for one record."""
    page: PageEvidence = Field(default_factory=PageEvidence)
    profile: ProfileEvidence = Field(default_factory=ProfileEvidence)
    sources: SourceBundle = Field(default_factory=SourceBundle)
