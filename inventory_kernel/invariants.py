"""
Kernel Invariants Contract.

These invariants hold at every observation point of the record store. No
configuration value may switch them off; configuration only decides how a
violation discovered in pre-existing data is reported.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across QuantityLedger, TransitionEngine,
RecordStore, the transaction immutability listeners and InventoryService.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    SINGLE_BULK_RECORD = "single_bulk_record"
    """At most one bulk (non-serialized) record per equivalence signature.
    Enforced by QuantityLedger consolidation and the UNIQUE
    equivalence_key column."""

    NON_NEGATIVE_QUANTITY = "non_negative_quantity"
    """Quantities are never persisted below zero. Enforced by
    QuantityLedger validation and the conditional increment in
    RecordStore."""

    SERIALIZED_NEVER_MERGED = "serialized_never_merged"
    """Records carrying a serial number are never consolidated."""

    ONE_TRANSACTION_PER_ACTION = "one_transaction_per_action"
    """Each successful action appends exactly one transaction record."""

    APPEND_ONLY_TRANSACTIONS = "append_only_transactions"
    """Transaction records are never updated or deleted. Enforced by
    inventory_kernel.db.immutability."""

    ATOMIC_ACTION = "atomic_action"
    """Multi-step actions commit all of their writes or none. Enforced by
    the InventoryService unit of work."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)
