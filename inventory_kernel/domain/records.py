"""
Inventory record value objects.

Responsibility:
    Immutable representations of inventory rows, candidate rows and the
    equivalence signature that decides whether two bulk rows are "the same
    stock".

Architecture position:
    Kernel > Domain -- pure, no ORM, no I/O.

Invariants enforced:
    - EquivalenceSignature requires location, item type, status and sloc.
    - Optional crew/area take part in equality as-is: an absent value is a
      distinct value, not a wildcard.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from inventory_kernel.exceptions import InvalidFieldError, InvalidQuantityError

# Fields that together identify "the same stock" for bulk records.
REQUIRED_SIGNATURE_FIELDS: tuple[str, ...] = (
    "location_id",
    "item_type_id",
    "status_id",
    "sloc_id",
)
OPTIONAL_SIGNATURE_FIELDS: tuple[str, ...] = ("assigned_crew_id", "area_id")
EQUIVALENCE_FIELDS: tuple[str, ...] = REQUIRED_SIGNATURE_FIELDS + OPTIONAL_SIGNATURE_FIELDS

SERIAL_FIELDS: tuple[str, ...] = ("mfgr_serial_number", "tilson_serial_number")

# Fields callers may patch through the record store.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    EQUIVALENCE_FIELDS + SERIAL_FIELDS + ("quantity",)
)


def to_quantity(value: Any) -> Decimal:
    """
    Coerce an int/str/Decimal quantity to Decimal.

    Raises:
        InvalidQuantityError: value is not a finite number.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        quantity = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidQuantityError(value, "not a number") from exc
    if not quantity.is_finite():
        raise InvalidQuantityError(value, "not a finite number")
    return quantity


def format_quantity(value: Decimal) -> str:
    """Render a quantity without trailing zeros or exponent notation."""
    if value == value.to_integral_value():
        return str(value.quantize(Decimal(1)))
    return format(value.normalize(), "f")


def _has_serial(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class EquivalenceSignature:
    """
    The bulk equivalence key of an inventory row.

    Two bulk rows with equal signatures must never coexist in the store.
    """

    location_id: int
    item_type_id: int
    status_id: int
    sloc_id: int
    assigned_crew_id: int | None = None
    area_id: int | None = None

    def __post_init__(self) -> None:
        missing = [name for name in REQUIRED_SIGNATURE_FIELDS if getattr(self, name) is None]
        if missing:
            raise InvalidFieldError(missing, "Equivalence signature missing fields")

    def key(self) -> str:
        """Canonical text form, stored in the UNIQUE equivalence_key column."""

        def part(value: int | None) -> str:
            return "-" if value is None else str(value)

        return (
            f"loc={self.location_id}|item={self.item_type_id}|"
            f"status={self.status_id}|sloc={self.sloc_id}|"
            f"crew={part(self.assigned_crew_id)}|area={part(self.area_id)}"
        )

    def as_filter(self) -> dict[str, int | None]:
        return {name: getattr(self, name) for name in EQUIVALENCE_FIELDS}

    def __str__(self) -> str:
        return self.key()


@dataclass(frozen=True)
class InventoryCandidate:
    """
    A would-be inventory row: what a receipt, split or transfer wants to
    place in the store.

    Carries the equivalence fields and optional serial numbers but no id
    and no quantity (the quantity travels separately as a delta).
    """

    location_id: int
    item_type_id: int
    status_id: int
    sloc_id: int
    assigned_crew_id: int | None = None
    area_id: int | None = None
    mfgr_serial_number: str | None = None
    tilson_serial_number: str | None = None

    @property
    def is_serialized(self) -> bool:
        return _has_serial(self.mfgr_serial_number) or _has_serial(self.tilson_serial_number)

    @property
    def signature(self) -> EquivalenceSignature:
        return EquivalenceSignature(
            location_id=self.location_id,
            item_type_id=self.item_type_id,
            status_id=self.status_id,
            sloc_id=self.sloc_id,
            assigned_crew_id=self.assigned_crew_id,
            area_id=self.area_id,
        )

    def with_changes(self, **changes: Any) -> InventoryCandidate:
        return replace(self, **changes)

    def as_values(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class InventoryRecord:
    """
    Immutable snapshot of one persisted inventory row.

    Contract:
        Produced by the record store from ORM rows; services reason over
        these snapshots and never over live ORM objects.

    Guarantees:
        - Immutable (frozen dataclass).
        - ``quantity`` is a Decimal.
        - ``version`` is the optimistic concurrency token read with the row.
    """

    id: int
    location_id: int
    item_type_id: int
    status_id: int
    sloc_id: int
    quantity: Decimal
    assigned_crew_id: int | None = None
    area_id: int | None = None
    mfgr_serial_number: str | None = None
    tilson_serial_number: str | None = None
    version: int = 1
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_serialized(self) -> bool:
        return _has_serial(self.mfgr_serial_number) or _has_serial(self.tilson_serial_number)

    @property
    def signature(self) -> EquivalenceSignature:
        return EquivalenceSignature(
            location_id=self.location_id,
            item_type_id=self.item_type_id,
            status_id=self.status_id,
            sloc_id=self.sloc_id,
            assigned_crew_id=self.assigned_crew_id,
            area_id=self.area_id,
        )

    def as_candidate(self) -> InventoryCandidate:
        return InventoryCandidate(
            location_id=self.location_id,
            item_type_id=self.item_type_id,
            status_id=self.status_id,
            sloc_id=self.sloc_id,
            assigned_crew_id=self.assigned_crew_id,
            area_id=self.area_id,
            mfgr_serial_number=self.mfgr_serial_number,
            tilson_serial_number=self.tilson_serial_number,
        )

    def with_updates(self, updates: Mapping[str, Any]) -> InventoryRecord:
        """Return the record as it would look after ``updates`` are applied."""
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidFieldError(unknown, "Fields not updatable")
        if "quantity" in updates:
            updates = {**updates, "quantity": to_quantity(updates["quantity"])}
        return replace(self, **updates)

    def to_state(self) -> dict[str, Any]:
        """JSON-ready dict for transaction before/after snapshots."""
        return {
            "id": self.id,
            "location_id": self.location_id,
            "item_type_id": self.item_type_id,
            "status_id": self.status_id,
            "sloc_id": self.sloc_id,
            "assigned_crew_id": self.assigned_crew_id,
            "area_id": self.area_id,
            "quantity": format_quantity(self.quantity),
            "mfgr_serial_number": self.mfgr_serial_number,
            "tilson_serial_number": self.tilson_serial_number,
        }
