"""
Deduplicator - exact and fuzzy entity resolution with an audited merge.

Exact phase groups records by a composite key; the fuzzy phase compares the
records the exact phase left alone, pairwise within optional blocks. Matched
groups are merged field by field: agreement, then source priority, then the
longest value. Every disagreement is recorded as a FieldConflict.
"""
import logging
import re
from typing import Any, Optional, Sequence

from rapidfuzz import utils
from rapidfuzz.distance import Levenshtein

from ..models.merge import DedupResult, DuplicateLink, FieldConflict, MergeGroup, SourcedValue
from ..models.record import Record, is_blank


logger = logging.getLogger(__name__)


DEFAULT_COMPARE_FIELDS = ("name", "company", "title", "location", "email")


def _agreement_key(value: Any) -> Any:
    """Form in which two values are considered equal."""
    if isinstance(value, str):
        return re.sub(r"\s+", " ", value).strip().casefold()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (list, dict)):
        return repr(value)
    return value


def _value_length(value: Any) -> int:
    if isinstance(value, (list, tuple, dict, set)):
        return len(value)
    return len(str(value))


class _UnionFind:
    def __init__(self, size: int):
        self.parent = list(range(size))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return
        # Lowest index stays root so the first-seen record is canonical
        if root_a < root_b:
            self.parent[root_b] = root_a
        else:
            self.parent[root_a] = root_b


class Deduplicator:
    """Resolves duplicate records within one batch."""

    def __init__(
        self,
        key_fields: Sequence[str] = ("canonical_url",),
        source_priority: Sequence[str] = (),
        fuzzy_threshold: Optional[float] = 0.85,
        compare_fields: Sequence[str] = DEFAULT_COMPARE_FIELDS,
        block_field: Optional[str] = None,
    ):
        self.key_fields = tuple(key_fields)
        self.source_priority = [s.lower() for s in source_priority]
        self.fuzzy_threshold = fuzzy_threshold
        self.compare_fields = tuple(compare_fields)
        self.block_field = block_field

    # ------------------------------------------------------------------
    # Exact phase
    # ------------------------------------------------------------------

    def exact_key(self, record: Record) -> Optional[str]:
        """Composite key, or None when any component is missing."""
        if not self.key_fields:
            return None
        parts = []
        for name in self.key_fields:
            value = record.get(name)
            if is_blank(value):
                return None
            parts.append(str(_agreement_key(value)))
        return "|".join(parts)

    def _exact_groups(self, records: Sequence[Record]) -> list[list[int]]:
        groups: dict[str, list[int]] = {}
        order: list[list[int]] = []
        for i, record in enumerate(records):
            key = self.exact_key(record)
            if key is None:
                order.append([i])
                continue
            if key not in groups:
                groups[key] = []
                order.append(groups[key])
            groups[key].append(i)
        return order

    # ------------------------------------------------------------------
    # Fuzzy phase
    # ------------------------------------------------------------------

    def similarity(self, a: Any, b: Any) -> float:
        """Normalized edit-distance similarity in [0, 1]."""
        return Levenshtein.normalized_similarity(str(a), str(b), processor=utils.default_process)

    def fuzzy_match(self, left: Record, right: Record) -> tuple[bool, float]:
        """
        Match when strictly more than half of the fields both records carry
        are at least ``fuzzy_threshold`` similar.
        """
        if self.fuzzy_threshold is None:
            return False, 0.0
        compared = 0
        matched = 0
        for name in self.compare_fields:
            a, b = left.get(name), right.get(name)
            if is_blank(a) or is_blank(b):
                continue
            compared += 1
            if self.similarity(a, b) >= self.fuzzy_threshold:
                matched += 1
        if compared == 0:
            return False, 0.0
        share = matched / compared
        return matched * 2 > compared, share

    def _block_of(self, record: Record) -> Any:
        if not self.block_field:
            return None
        value = record.get(self.block_field)
        return None if is_blank(value) else _agreement_key(value)

    def _fuzzy_groups(self, records: Sequence[Record], candidates: list[int]) -> tuple[list[list[int]], dict[int, float]]:
        blocks: dict[Any, list[int]] = {}
        for i in candidates:
            blocks.setdefault(self._block_of(records[i]), []).append(i)

        position = {index: n for n, index in enumerate(candidates)}
        uf = _UnionFind(len(candidates))
        scores: dict[int, float] = {}

        for members in blocks.values():
            for x in range(len(members)):
                for y in range(x + 1, len(members)):
                    i, j = members[x], members[y]
                    is_match, share = self.fuzzy_match(records[i], records[j])
                    if is_match:
                        uf.union(position[i], position[j])
                        for k in (i, j):
                            scores[k] = max(scores.get(k, 0.0), share)

        grouped: dict[int, list[int]] = {}
        for n, index in enumerate(candidates):
            grouped.setdefault(uf.find(n), []).append(index)
        return list(grouped.values()), scores

    # ------------------------------------------------------------------
    # Merge
    # ------------------------------------------------------------------

    def _priority_winner(self, values: list[tuple[Record, Any]]) -> Optional[tuple[Record, Any]]:
        for source in self.source_priority:
            for record, value in values:
                if record.source_name == source:
                    return record, value
        return None

    def merge(self, members: Sequence[Record]) -> MergeGroup:
        """Merge ``members`` into one record keyed by the first member."""
        canonical = members[0]
        merged_from = []
        for member in members[1:]:
            merged_from.append(member.record_id)
            merged_from.extend(member.merged_from)

        names: list[str] = []
        for member in members:
            for name in member.fields:
                if name not in names:
                    names.append(name)

        fields: dict[str, Any] = {}
        conflicts: list[FieldConflict] = []
        for name in names:
            values = [(m, m.fields[name]) for m in members if not is_blank(m.fields.get(name))]
            if not values:
                fields[name] = canonical.fields.get(name)
                continue

            distinct = {repr(_agreement_key(v)) for _, v in values}
            if len(distinct) == 1:
                fields[name] = values[0][1]
                continue

            winner = self._priority_winner(values)
            resolution = "source_priority"
            if winner is None:
                winner = max(values, key=lambda item: _value_length(item[1]))
                resolution = "longest_value"
            record, value = winner
            fields[name] = value
            conflicts.append(FieldConflict(
                field=name,
                values=[
                    SourcedValue(record_id=m.record_id, source=m.source_name, value=v)
                    for m, v in values
                ],
                resolved_value=value,
                winning_record_id=record.record_id,
                winning_source=record.source_name,
                resolution=resolution,
            ))

        unnormalized = []
        raw_fields: dict[str, Any] = {}
        for member in members:
            unnormalized.extend(f for f in member.unnormalized_fields if f not in unnormalized)
            for name, value in member.raw_fields.items():
                raw_fields.setdefault(name, value)

        merged = Record(
            record_id=canonical.record_id,
            source_url=canonical.source_url,
            scraped_at=canonical.scraped_at,
            fields=fields,
            merged_from=merged_from,
            unnormalized_fields=unnormalized,
            raw_fields=raw_fields,
        )
        return MergeGroup(
            canonical_id=canonical.record_id,
            members=list(members),
            merged=merged,
            source_priority=list(self.source_priority),
            conflicts=conflicts,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def deduplicate(self, records: Sequence[Record]) -> DedupResult:
        result = DedupResult()
        exact = self._exact_groups(records)

        links: list[DuplicateLink] = []
        singles = [group[0] for group in exact if len(group) == 1]
        groups: list[tuple[list[int], str]] = [(g, "exact") for g in exact if len(g) > 1]

        fuzzy, scores = self._fuzzy_groups(records, singles)
        groups.extend((g, "fuzzy") for g in fuzzy)

        # First-seen order of canonical records
        groups.sort(key=lambda item: item[0][0])

        for indices, phase in groups:
            if len(indices) == 1:
                result.records.append(records[indices[0]])
                continue

            members = [records[i] for i in indices]
            group = self.merge(members)
            result.groups.append(group)
            result.records.append(group.merged)

            for i in indices[1:]:
                links.append(DuplicateLink(
                    record_id=records[i].record_id,
                    canonical_id=group.canonical_id,
                    phase=phase,
                    key=self.exact_key(records[i]) if phase == "exact" else None,
                    similarity=round(scores[i], 3) if phase == "fuzzy" and i in scores else None,
                ))
            logger.debug(
                f"Merged {len(indices)} records into {group.canonical_id} "
                f"({phase}, {len(group.conflicts)} conflicts)"
            )

        result.duplicates = links
        logger.info(
            f"Deduplicated {len(records)} records -> {len(result.records)} "
            f"({len(links)} duplicates)"
        )
        return result
