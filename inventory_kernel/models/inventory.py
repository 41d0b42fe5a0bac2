"""
Module: inventory_kernel.models.inventory
Responsibility: ORM persistence for inventory rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - At most one bulk row per equivalence signature: ``equivalence_key`` is
      UNIQUE and holds the canonical signature text for bulk rows (NULL for
      serialized rows, which are always distinct).
    - quantity >= 0 (CHECK constraint, backed by the conditional increment
      in RecordStore).
    - ``version`` increments on every write (optimistic concurrency token).
    - Ids are never reused, so a deleted record's history cannot be
      attributed to a later row (AUTOINCREMENT on SQLite).

Failure modes:
    - IntegrityError on a second bulk row with the same signature.  The
      QuantityLedger treats it as a lost creation race and retries as an
      increment.
"""

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class InventoryRow(TrackedBase):
    """
    A quantity of one item type at one place and condition.

    Contract:
        Rows are written only through RecordStore, which keeps
        ``equivalence_key`` and ``version`` consistent with the other columns.
        Rows inserted directly (imports, legacy data) may carry a NULL key;
        the IntegrityService scan finds duplicates among those.
    """

    __tablename__ = "inventory"

    __table_args__ = (
        Index("idx_inventory_equivalence_key", "equivalence_key", unique=True),
        Index(
            "idx_inventory_signature",
            "location_id",
            "item_type_id",
            "status_id",
            "sloc_id",
        ),
        Index("idx_inventory_sloc", "sloc_id"),
        CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    item_type_id: Mapped[int] = mapped_column(ForeignKey("item_types.id"), nullable=False)
    status_id: Mapped[int] = mapped_column(ForeignKey("statuses.id"), nullable=False)
    sloc_id: Mapped[int] = mapped_column(ForeignKey("slocs.id"), nullable=False)
    assigned_crew_id: Mapped[int | None] = mapped_column(ForeignKey("crews.id"), nullable=True)
    area_id: Mapped[int | None] = mapped_column(ForeignKey("areas.id"), nullable=True)

    quantity: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal(0))

    mfgr_serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tilson_serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    equivalence_key: Mapped[str | None] = mapped_column(String(120), nullable=True)

    version: Mapped[int] = mapped_column(nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<InventoryRow {self.id} item={self.item_type_id} qty={self.quantity}>"
