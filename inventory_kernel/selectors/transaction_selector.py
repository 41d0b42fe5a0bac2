"""
Module: inventory_kernel.selectors.transaction_selector
Responsibility: Read-only access to the append-only transaction log.

Audit relevance:
    The canonical read path for inventory history.  Rows are returned as
    frozen TransactionInfo DTOs with before/after state decoded from JSON.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select

from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TransactionInfo:
    """One transaction log row."""

    id: int
    inventory_id: int | None
    transaction_type: str
    action: str
    item_type_name: str | None
    from_location_name: str | None
    to_location_name: str | None
    status_name: str | None
    old_status_name: str | None
    assigned_crew_name: str | None
    area_name: str | None
    sloc: str | None
    quantity: Decimal | None
    old_quantity: Decimal | None
    before_state: dict[str, Any] | None
    after_state: dict[str, Any] | None
    user_name: str
    session_id: str | None
    notes: str | None
    date_time: datetime
    created_timezone: str | None


def _load(text: str | None) -> dict[str, Any] | None:
    return json.loads(text) if text else None


def _to_info(row: InventoryTransaction) -> TransactionInfo:
    return TransactionInfo(
        id=row.id,
        inventory_id=row.inventory_id,
        transaction_type=row.transaction_type,
        action=row.action,
        item_type_name=row.item_type_name,
        from_location_name=row.from_location_name,
        to_location_name=row.to_location_name,
        status_name=row.status_name,
        old_status_name=row.old_status_name,
        assigned_crew_name=row.assigned_crew_name,
        area_name=row.area_name,
        sloc=row.sloc,
        quantity=row.quantity,
        old_quantity=row.old_quantity,
        before_state=_load(row.before_state),
        after_state=_load(row.after_state),
        user_name=row.user_name,
        session_id=row.session_id,
        notes=row.notes,
        date_time=row.date_time,
        created_timezone=row.created_timezone,
    )


class TransactionSelector(BaseSelector[InventoryTransaction]):
    """
    Queries over ``inventory_transactions``.

    Guarantees:
        - Ordering is by id, which follows insertion order.
    """

    def get(self, transaction_id: int) -> TransactionInfo | None:
        row = self.session.get(InventoryTransaction, transaction_id)
        return _to_info(row) if row is not None else None

    def history(self, inventory_id: int) -> list[TransactionInfo]:
        """All transactions for one inventory id, oldest first."""
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.inventory_id == inventory_id)
            .order_by(InventoryTransaction.id)
        )
        return [_to_info(row) for row in self.session.scalars(stmt)]

    def recent(self, limit: int = 50) -> list[TransactionInfo]:
        """The ``limit`` most recent transactions, newest first."""
        stmt = (
            select(InventoryTransaction)
            .order_by(InventoryTransaction.id.desc())
            .limit(limit)
        )
        return [_to_info(row) for row in self.session.scalars(stmt)]

    def count(self, inventory_id: int | None = None) -> int:
        stmt = select(func.count()).select_from(InventoryTransaction)
        if inventory_id is not None:
            stmt = stmt.where(InventoryTransaction.inventory_id == inventory_id)
        return self.session.scalar(stmt) or 0
