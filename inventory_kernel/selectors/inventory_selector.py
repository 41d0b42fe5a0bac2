"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Read-only access to inventory records as InventoryRecord
    snapshots.

Failure modes:
    - Returns None or an empty list when nothing matches (never raises on
      absence of data).
"""

from decimal import Decimal

from sqlalchemy import func, select

from inventory_kernel.domain.records import InventoryRecord, to_quantity
from inventory_kernel.models.inventory import InventoryRow
from inventory_kernel.selectors.base import BaseSelector


def record_from_row(row: InventoryRow) -> InventoryRecord:
    return InventoryRecord(
        id=row.id,
        location_id=row.location_id,
        item_type_id=row.item_type_id,
        status_id=row.status_id,
        sloc_id=row.sloc_id,
        assigned_crew_id=row.assigned_crew_id,
        area_id=row.area_id,
        quantity=to_quantity(row.quantity),
        mfgr_serial_number=row.mfgr_serial_number,
        tilson_serial_number=row.tilson_serial_number,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class InventorySelector(BaseSelector[InventoryRow]):
    """Queries over the ``inventory`` table."""

    def get(self, inventory_id: int) -> InventoryRecord | None:
        row = self.session.get(InventoryRow, inventory_id, populate_existing=True)
        return record_from_row(row) if row is not None else None

    def list_by_sloc(self, sloc_id: int) -> list[InventoryRecord]:
        stmt = (
            select(InventoryRow)
            .where(InventoryRow.sloc_id == sloc_id)
            .order_by(InventoryRow.id)
            .execution_options(populate_existing=True)
        )
        return [record_from_row(row) for row in self.session.scalars(stmt)]

    def list_by_item_type(self, item_type_id: int, sloc_id: int | None = None) -> list[InventoryRecord]:
        stmt = select(InventoryRow).where(InventoryRow.item_type_id == item_type_id)
        if sloc_id is not None:
            stmt = stmt.where(InventoryRow.sloc_id == sloc_id)
        stmt = stmt.order_by(InventoryRow.id).execution_options(populate_existing=True)
        return [record_from_row(row) for row in self.session.scalars(stmt)]

    def total_quantity(self, item_type_id: int, sloc_id: int | None = None) -> Decimal:
        """Sum of quantities for an item type, optionally within one SLOC."""
        stmt = select(func.coalesce(func.sum(InventoryRow.quantity), 0)).where(
            InventoryRow.item_type_id == item_type_id
        )
        if sloc_id is not None:
            stmt = stmt.where(InventoryRow.sloc_id == sloc_id)
        return to_quantity(self.session.scalar(stmt))

    def count(self) -> int:
        return self.session.scalar(select(func.count()).select_from(InventoryRow)) or 0
