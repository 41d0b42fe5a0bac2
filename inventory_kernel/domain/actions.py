"""
Action vocabulary and mutation descriptors.

``InventoryAction`` names what a caller asked for (the action catalogue uses
the same display names).  ``TransactionType`` is what the transaction log
records.  ``MutationDescriptor`` is the hand-off from a service to the
Transaction Recorder: the before and after state of one action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from inventory_kernel.domain.records import InventoryRecord


class InventoryAction(str, Enum):
    """Named actions; values match the action catalogue names."""

    RECEIVE = "Receive"
    SUBTRACT = "Subtract"
    UPDATE = "Update"
    TRANSFER = "Transfer"
    ADJUST = "Adjust"
    REMOVE = "Remove"
    ISSUE = "Issue"
    RETURN_AS_RESERVED = "Return Material As Reserved"
    ASSIGN_AREA = "Assign Area"
    INSPECT = "Inspect"
    RESERVE = "Reserve"
    UNRESERVE = "Unreserve"
    FIELD_INSTALL = "Field Install"
    ALLOCATE = "Allocate"
    MOVE = "Move"
    REJECT = "Reject"
    RETURN_MATERIAL = "Return Material"
    CONSOLIDATE = "Consolidate"


class TransactionType(str, Enum):
    RECEIVE = "RECEIVE"
    SUBTRACT = "SUBTRACT"
    UPDATE = "UPDATE"
    TRANSFER = "TRANSFER"
    ADJUST = "ADJUST"
    REMOVE = "REMOVE"
    ISSUE = "ISSUE"
    RETURN = "RETURN"
    ASSIGN_AREA = "ASSIGN_AREA"
    INSPECT = "INSPECT"
    RESERVE = "RESERVE"
    UNRESERVE = "UNRESERVE"
    INSTALL = "INSTALL"
    ALLOCATE = "ALLOCATE"
    MOVE = "MOVE"
    REJECT = "REJECT"
    CONSOLIDATE = "CONSOLIDATE"


# Transaction type recorded for each action.
ACTION_TRANSACTION_TYPES: dict[InventoryAction, TransactionType] = {
    InventoryAction.RECEIVE: TransactionType.RECEIVE,
    InventoryAction.SUBTRACT: TransactionType.SUBTRACT,
    InventoryAction.UPDATE: TransactionType.UPDATE,
    InventoryAction.TRANSFER: TransactionType.TRANSFER,
    InventoryAction.ADJUST: TransactionType.ADJUST,
    InventoryAction.REMOVE: TransactionType.REMOVE,
    InventoryAction.ISSUE: TransactionType.ISSUE,
    InventoryAction.RETURN_AS_RESERVED: TransactionType.RETURN,
    InventoryAction.ASSIGN_AREA: TransactionType.ASSIGN_AREA,
    InventoryAction.INSPECT: TransactionType.INSPECT,
    InventoryAction.RESERVE: TransactionType.RESERVE,
    InventoryAction.UNRESERVE: TransactionType.UNRESERVE,
    InventoryAction.FIELD_INSTALL: TransactionType.INSTALL,
    InventoryAction.ALLOCATE: TransactionType.ALLOCATE,
    InventoryAction.MOVE: TransactionType.MOVE,
    InventoryAction.REJECT: TransactionType.REJECT,
    InventoryAction.RETURN_MATERIAL: TransactionType.RETURN,
    InventoryAction.CONSOLIDATE: TransactionType.CONSOLIDATE,
}


class LedgerOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"


class LedgerAction(str, Enum):
    """What the ledger did to the store."""

    CREATED = "created"
    UPDATED = "updated"
    CONSOLIDATED = "consolidated"
    DELETED = "deleted"


@dataclass(frozen=True)
class MutationDescriptor:
    """
    Everything the Transaction Recorder needs about one completed action.

    ``before``/``after`` are the primary record's snapshots (None when the
    record did not exist before, or no longer exists after).  ``created``
    lists additional records the action produced (allocation or inspection
    splits).  ``quantity`` is the quantity the action moved or set;
    ``old_quantity`` the primary record's quantity before.
    """

    action: InventoryAction
    inventory_id: int | None
    before: InventoryRecord | None = None
    after: InventoryRecord | None = None
    created: tuple[InventoryRecord, ...] = ()
    quantity: Decimal | None = None
    old_quantity: Decimal | None = None
    notes: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def transaction_type(self) -> TransactionType:
        return ACTION_TRANSACTION_TYPES[self.action]
