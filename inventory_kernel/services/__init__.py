"""
Write-side services.

Services receive a session, flush, and never commit; InventoryService is the
facade that owns the unit of work.
"""

from inventory_kernel.services.base import BaseService
from inventory_kernel.services.integrity_service import (
    IntegrityService,
    RepairedGroup,
    RepairReport,
)
from inventory_kernel.services.inventory_service import (
    ActionResult,
    ActionStatus,
    InventoryService,
)
from inventory_kernel.services.quantity_ledger import (
    LedgerOutcome,
    QuantityLedger,
    TransferOutcome,
)
from inventory_kernel.services.record_store import RecordStore
from inventory_kernel.services.transaction_recorder import TransactionRecorder
from inventory_kernel.services.transition_engine import (
    Allocation,
    TransitionEngine,
    TransitionOutcome,
)

__all__ = [
    "ActionResult",
    "ActionStatus",
    "Allocation",
    "BaseService",
    "IntegrityService",
    "InventoryService",
    "LedgerOutcome",
    "QuantityLedger",
    "RecordStore",
    "RepairReport",
    "RepairedGroup",
    "TransactionRecorder",
    "TransferOutcome",
    "TransitionEngine",
    "TransitionOutcome",
]
