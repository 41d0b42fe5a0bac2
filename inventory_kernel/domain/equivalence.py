"""
Equivalence Resolver.

Responsibility:
    Decide whether two inventory rows hold "the same stock" and find the
    existing bulk row a candidate must merge into.

Architecture position:
    Kernel > Domain -- pure functions over InventoryRecord snapshots.  The
    caller supplies the rows to search; nothing here touches the store.

Invariants enforced:
    - Serialized rows (either serial number present) never match anything.
    - Optional crew/area: presence versus absence is distinguishing.  A
      candidate without a crew matches only rows without a crew.
    - When several rows match, the lowest id is the primary match.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Union

from inventory_kernel.domain.records import (
    EQUIVALENCE_FIELDS,
    EquivalenceSignature,
    InventoryCandidate,
    InventoryRecord,
)

Candidate = Union[InventoryCandidate, InventoryRecord]


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of an equivalence search.

    ``matches`` holds every matching row ordered by id.  More than one match
    means the store already violates the single-bulk-record rule; the first
    row is the deterministic merge target and the rest are ``excess``.
    """

    signature: EquivalenceSignature
    matches: tuple[InventoryRecord, ...] = ()

    @property
    def match(self) -> InventoryRecord | None:
        return self.matches[0] if self.matches else None

    @property
    def found(self) -> bool:
        return bool(self.matches)

    @property
    def is_ambiguous(self) -> bool:
        return len(self.matches) > 1

    @property
    def excess(self) -> tuple[InventoryRecord, ...]:
        return self.matches[1:]


@dataclass(frozen=True)
class DuplicateGroup:
    """Bulk rows sharing one signature; ``survivor`` is the lowest id."""

    signature: EquivalenceSignature
    survivor: InventoryRecord
    duplicates: tuple[InventoryRecord, ...]

    @property
    def total_quantity(self) -> Decimal:
        return self.survivor.quantity + sum(
            (r.quantity for r in self.duplicates), Decimal(0)
        )

    @property
    def record_ids(self) -> list[int]:
        return [self.survivor.id] + [r.id for r in self.duplicates]


def signature_of(record: Candidate) -> EquivalenceSignature:
    return record.signature


def is_serialized(record: Candidate) -> bool:
    return record.is_serialized


def equivalence_key(record: Candidate) -> str | None:
    """Stored equivalence key, or None for serialized rows (always unique)."""
    if record.is_serialized:
        return None
    return record.signature.key()


def matches_signature(record: InventoryRecord, signature: EquivalenceSignature) -> bool:
    if record.is_serialized:
        return False
    return record.signature == signature


def find_equivalent(
    candidate: Candidate,
    existing_records: Iterable[InventoryRecord],
    exclude_id: int | None = None,
) -> MatchResult:
    """
    Find existing bulk rows equivalent to ``candidate``.

    Args:
        candidate: Row (or would-be row) to resolve.
        existing_records: Rows to search.
        exclude_id: Row to leave out, used when a row searches for a merge
            target other than itself.

    Returns:
        MatchResult; empty when the candidate is serialized.
    """
    signature = candidate.signature
    if candidate.is_serialized:
        return MatchResult(signature=signature)

    matches = sorted(
        (
            r
            for r in existing_records
            if r.id != exclude_id and matches_signature(r, signature)
        ),
        key=lambda r: r.id,
    )
    return MatchResult(signature=signature, matches=tuple(matches))


def touches_equivalence(field_updates: Mapping[str, object]) -> bool:
    """True if any updated field is part of the equivalence signature."""
    return any(name in EQUIVALENCE_FIELDS for name in field_updates)


def changes_equivalence(record: InventoryRecord, field_updates: Mapping[str, object]) -> bool:
    """True if applying ``field_updates`` would change the record's signature."""
    return any(
        name in EQUIVALENCE_FIELDS and getattr(record, name) != value
        for name, value in field_updates.items()
    )


def group_duplicates(records: Iterable[InventoryRecord]) -> tuple[DuplicateGroup, ...]:
    """
    Group bulk rows by signature and return only signatures with more
    than one row, ordered by survivor id.
    """
    by_signature: dict[EquivalenceSignature, list[InventoryRecord]] = defaultdict(list)
    for record in records:
        if record.is_serialized:
            continue
        by_signature[record.signature].append(record)

    groups = []
    for signature, rows in by_signature.items():
        if len(rows) < 2:
            continue
        rows.sort(key=lambda r: r.id)
        groups.append(
            DuplicateGroup(
                signature=signature,
                survivor=rows[0],
                duplicates=tuple(rows[1:]),
            )
        )
    groups.sort(key=lambda g: g.survivor.id)
    return tuple(groups)
