"""
IntegrityService -- detects and repairs duplicate bulk signatures.

Responsibility:
    Scans the store (optionally one SLOC) for bulk records that share an
    equivalence signature and, on request, folds each group into its
    lowest-id record.

Architecture position:
    Kernel > Services.  A startup/background pass, not part of any action.
    Duplicates can only exist in stores populated before the UNIQUE
    equivalence key existed or by writers that bypass the kernel.

Invariants enforced:
    - SINGLE_BULK_RECORD: after ``repair`` every scanned signature has one
      record holding the group's total quantity.
    - ONE_TRANSACTION_PER_ACTION: each repaired group records one
      CONSOLIDATE transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from inventory_kernel.domain.actions import InventoryAction, MutationDescriptor
from inventory_kernel.domain.actor import ActorContext
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.equivalence import DuplicateGroup, group_duplicates
from inventory_kernel.domain.lookup import LookupSnapshot
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import InventoryRecord
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.record_store import RecordStore
from inventory_kernel.services.transaction_recorder import TransactionRecorder

logger = get_logger("services.integrity")


@dataclass(frozen=True)
class RepairedGroup:
    survivor: InventoryRecord
    removed_ids: tuple[int, ...]
    total_quantity: Decimal
    transaction_id: int | None


@dataclass(frozen=True)
class RepairReport:
    groups_found: int
    repaired: tuple[RepairedGroup, ...]

    @property
    def records_removed(self) -> int:
        return sum(len(g.removed_ids) for g in self.repaired)


class IntegrityService:
    """Finds duplicate bulk signatures and merges them."""

    def __init__(
        self,
        session: Session,
        clock: Clock,
        snapshot: LookupSnapshot,
        actor: ActorContext,
        policy: KernelPolicy | None = None,
        store: RecordStore | None = None,
        recorder: TransactionRecorder | None = None,
    ):
        self._store = store or RecordStore(session, clock)
        self._recorder = recorder or TransactionRecorder(
            session, clock, snapshot, actor, policy
        )

    def scan(self, sloc_id: int | None = None) -> tuple[DuplicateGroup, ...]:
        groups = group_duplicates(self._store.list_records(sloc_id))
        if groups:
            logger.warning(
                "duplicate_signatures_found",
                extra={
                    "invariant": KernelInvariant.SINGLE_BULK_RECORD.value,
                    "sloc_id": sloc_id,
                    "group_count": len(groups),
                    "record_ids": [g.record_ids for g in groups],
                },
            )
        return groups

    def repair(self, sloc_id: int | None = None) -> RepairReport:
        """Merge every duplicate group into its lowest-id record."""
        groups = self.scan(sloc_id)
        repaired = tuple(self._repair_group(group) for group in groups)
        logger.info(
            "duplicate_repair_completed",
            extra={
                "sloc_id": sloc_id,
                "groups_repaired": len(repaired),
                "records_removed": sum(len(g.removed_ids) for g in repaired),
            },
        )
        return RepairReport(groups_found=len(groups), repaired=repaired)

    def _repair_group(self, group: DuplicateGroup) -> RepairedGroup:
        survivor = group.survivor
        total = group.total_quantity

        # Duplicates go first: the survivor's key update must not collide.
        for duplicate in group.duplicates:
            self._store.delete(duplicate.id, expected_version=duplicate.version)
        merged = self._store.update(
            survivor.id, {"quantity": total}, expected_version=survivor.version
        )

        removed = tuple(d.id for d in group.duplicates)
        transaction_id = self._recorder.record(
            MutationDescriptor(
                action=InventoryAction.CONSOLIDATE,
                inventory_id=survivor.id,
                before=survivor,
                after=merged,
                quantity=total,
                old_quantity=survivor.quantity,
                notes=f"Merged duplicate records {list(removed)}",
                details={"removed_ids": list(removed)},
            )
        )
        logger.info(
            "records_consolidated",
            extra={
                "invariant": KernelInvariant.SINGLE_BULK_RECORD.value,
                "target_id": survivor.id,
                "source_ids": list(removed),
                "combined_quantity": str(total),
            },
        )
        return RepairedGroup(
            survivor=merged,
            removed_ids=removed,
            total_quantity=total,
            transaction_id=transaction_id,
        )
