"""
ORM-Level Immutability Enforcement for the transaction log.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events for InventoryTransaction
rows:

    session.flush()
         |
         v
    [before_update event] --> _check_transaction_update() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_transaction_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush is aborted and the database is never modified.

Usage:

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_transaction import InventoryTransaction

logger = get_logger("db.immutability")


def _block(target, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": KernelInvariant.APPEND_ONLY_TRANSACTIONS.value,
            "entity_type": "InventoryTransaction",
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="InventoryTransaction",
        entity_id=str(target.id),
        reason="Inventory transactions are append-only",
    )


def _check_transaction_update(mapper, connection, target):
    """Prevent any updates to InventoryTransaction records."""
    _block(target, "UPDATE")


def _check_transaction_delete(mapper, connection, target):
    """Prevent deletion of InventoryTransaction records."""
    _block(target, "DELETE")


def register_immutability_listeners() -> None:
    """
    Register immutability enforcement event listeners.

    Idempotent: registering twice does not install duplicate listeners.
    """
    if not event.contains(InventoryTransaction, "before_update", _check_transaction_update):
        event.listen(InventoryTransaction, "before_update", _check_transaction_update)
    if not event.contains(InventoryTransaction, "before_delete", _check_transaction_delete):
        event.listen(InventoryTransaction, "before_delete", _check_transaction_delete)


def unregister_immutability_listeners() -> None:
    """Remove immutability enforcement event listeners. FOR TESTING ONLY."""
    if event.contains(InventoryTransaction, "before_update", _check_transaction_update):
        event.remove(InventoryTransaction, "before_update", _check_transaction_update)
    if event.contains(InventoryTransaction, "before_delete", _check_transaction_delete):
        event.remove(InventoryTransaction, "before_delete", _check_transaction_delete)


def immutability_listeners_registered() -> bool:
    return event.contains(InventoryTransaction, "before_update", _check_transaction_update)
