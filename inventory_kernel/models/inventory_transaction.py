"""
Module: inventory_kernel.models.inventory_transaction
Responsibility: ORM persistence for the append-only inventory transaction log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - Denormalized: names (not ids) of every referenced entity are stored so
      history stays readable after reference data changes or the inventory
      row itself is deleted.

Audit relevance:
    InventoryTransaction IS the audit trail.  Every successful ledger
    operation and transition produces exactly one row.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class InventoryTransaction(Base):
    """
    One audit row per completed inventory action.

    Contract:
        Rows are never updated or deleted.  ``inventory_id`` is a plain
        integer (no foreign key) so history outlives the inventory row.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        Index("idx_inv_txn_inventory", "inventory_id"),
        Index("idx_inv_txn_date_time", "date_time"),
        Index("idx_inv_txn_type", "transaction_type"),
        {"sqlite_autoincrement": True},
    )

    inventory_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    transaction_type: Mapped[str] = mapped_column(String(30), nullable=False)
    action: Mapped[str] = mapped_column(String(100), nullable=False)

    # Hierarchy
    client: Mapped[str | None] = mapped_column(String(200), nullable=True)
    market: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sloc: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Item
    item_type_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    inventory_type_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(200), nullable=True)
    part_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    unit_of_measure: Mapped[str | None] = mapped_column(String(50), nullable=True)
    units_per_package: Mapped[int | None] = mapped_column(Integer, nullable=True)
    provider_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    category_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    mfgr_serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tilson_serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Where / who
    from_location_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    from_location_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_location_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    to_location_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_crew_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    area_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # State change
    status_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    old_status_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    old_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)
    before_state: Mapped[str | None] = mapped_column(Text, nullable=True)
    after_state: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Actor
    user_name: Mapped[str] = mapped_column(Text, nullable=False)
    session_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    date_time: Mapped[datetime] = mapped_column(nullable=False)
    created_timezone: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction {self.id} {self.transaction_type} "
            f"inventory={self.inventory_id}>"
        )
