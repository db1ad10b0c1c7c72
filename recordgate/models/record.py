"""
Record model - one scraped entity candidate moving through the pipeline.
"""
import hashlib
import json
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from ..errors import SealedRecordError
from .verdicts import ValidationBlock


PROVENANCE_FIELDS = ("record_id", "source_url", "scraped_at")


def is_blank(value: Any) -> bool:
    """True for None, whitespace-only strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def generate_record_id(source_url: Optional[str], fields: Mapping[str, Any]) -> str:
    """Stable id derived from provenance and content."""
    payload = json.dumps(
        {"source_url": source_url, "fields": fields},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class Record(BaseModel):
    """
    A scraped record with provenance and an evolving validation block.

    Stages rewrite field values through ``set``; the gate seals the record
    once it has decided, after which any write raises ``SealedRecordError``.
    """
    record_id: str = ""
    source_url: Optional[str] = None
    scraped_at: Optional[datetime] = None
    fields: dict[str, Any] = Field(default_factory=dict)
    validation: Optional[ValidationBlock] = None

    # Ids of duplicates folded into this record
    merged_from: list[str] = Field(default_factory=list)

    # Social-profile fields the normalizer passed through unchanged
    unnormalized_fields: list[str] = Field(default_factory=list)

    # Field values as scraped, before normalization
    raw_fields: dict[str, Any] = Field(default_factory=dict, repr=False)

    # Fields written by the enricher rather than scraped
    derived_fields: list[str] = Field(default_factory=list)

    _sealed: bool = PrivateAttr(default=False)

    @field_validator("scraped_at", mode="before")
    @classmethod
    def parse_scraped_at(cls, v: Any) -> Optional[datetime]:
        """Accept ISO strings and epoch milliseconds."""
        if v is None or v == "":
            return None
        if isinstance(v, datetime):
            return v
        if isinstance(v, (int, float)):
            try:
                return datetime.fromtimestamp(v / 1000, tz=timezone.utc)
            except (ValueError, OSError):
                return None
        if isinstance(v, str):
            try:
                return datetime.fromisoformat(v.replace("Z", "+00:00"))
            except ValueError:
                return None
        return None

    def model_post_init(self, __context: Any) -> None:
        """Generate an id when the scraper did not supply one."""
        if not self.record_id:
            self.record_id = generate_record_id(self.source_url, self.fields)

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self._sealed:
            raise SealedRecordError(self.record_id)
        super().__setattr__(name, value)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "Record":
        """Build a record from a flat scraped mapping."""
        data = dict(raw)
        record_id = data.pop("record_id", None)
        source_url = data.pop("source_url", None)
        scraped_at = data.pop("scraped_at", None)
        data.pop("validation", None)
        return cls(
            record_id=str(record_id) if record_id else "",
            source_url=source_url,
            scraped_at=scraped_at,
            fields=data,
            raw_fields=dict(data),
        )

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self) -> None:
        self._sealed = True

    @property
    def source_name(self) -> Optional[str]:
        """Source label used for priority resolution: 'source' field, else URL host."""
        source = self.fields.get("source")
        if isinstance(source, str) and source.strip():
            return source.strip().lower()
        if self.source_url:
            host = urlsplit(self.source_url).hostname or ""
            host = host.lower()
            if host.startswith("www."):
                host = host[4:]
            return host or None
        return None

    def get(self, name: str, default: Any = None) -> Any:
        if name in PROVENANCE_FIELDS:
            value = getattr(self, name)
            return default if value is None else value
        return self.fields.get(name, default)

    def has(self, name: str) -> bool:
        """True when the field is present and not blank."""
        return not is_blank(self.get(name))

    def set(self, name: str, value: Any) -> None:
        if self._sealed:
            raise SealedRecordError(self.record_id)
        if name in PROVENANCE_FIELDS:
            setattr(self, name, value)
        else:
            self.fields[name] = value

    def populated_fields(self) -> dict[str, Any]:
        """Domain fields with a non-blank value."""
        return {k: v for k, v in self.fields.items() if not is_blank(v)}

    def to_flat_dict(self) -> dict[str, Any]:
        """Flat mapping for delivery adapters (CSV/JSON writers)."""
        flat: dict[str, Any] = {
            "record_id": self.record_id,
            "source_url": self.source_url,
            "scraped_at": self.scraped_at.isoformat() if self.scraped_at else None,
        }
        flat.update(self.fields)
        if self.merged_from:
            flat["merged_from"] = list(self.merged_from)
        if self.validation is not None:
            flat["validation"] = self.validation.model_dump(mode="json")
        return flat
