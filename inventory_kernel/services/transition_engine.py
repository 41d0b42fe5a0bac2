"""
TransitionEngine -- the named inventory actions.

Responsibility:
    Implements each action (Adjust, Remove, Issue, Return Material As
    Reserved, Assign Area, Inspect, Reserve, Unreserve, Field Install,
    Allocate, Move, Reject, Return Material) as a guarded transition over
    (status, location, crew, area), then hands the before/after state to the
    TransactionRecorder.

Architecture position:
    Kernel > Services.  Validates preconditions against the record and the
    LookupSnapshot, writes through QuantityLedger/RecordStore, records
    through TransactionRecorder.  Runs inside the caller's transaction.

Invariants enforced:
    - SINGLE_BULK_RECORD: every change to an equivalence field goes through
      ``update_with_consolidation_check``; every split lands through
      ``apply_delta``.
    - ONE_TRANSACTION_PER_ACTION: each public action records exactly once,
      after all of its writes.
    - Multi-step actions (Allocate, split Inspect, partial Issue) perform all
      writes in the caller's transaction so a failure rolls back every step.

Failure modes:
    - InventoryNotFoundError, ReferenceNotFoundError,
      LocationTypeMissingError, StatusMissingError.
    - InvalidStatusTransitionError, NoCrewAssignedError.
    - InvalidQuantityError, OverAllocationError, NegativeQuantityError.
    - Store errors (OptimisticLockError, WriteError) propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Sequence

from sqlalchemy.orm import Session

from inventory_kernel.domain.actions import (
    InventoryAction,
    LedgerAction,
    LedgerOperation,
    MutationDescriptor,
)
from inventory_kernel.domain.actor import ActorContext
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.lookup import LookupSnapshot
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import InventoryRecord, to_quantity
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStatusTransitionError,
    LocationTypeMissingError,
    NoCrewAssignedError,
    OverAllocationError,
    ReferenceNotFoundError,
    StatusMissingError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.quantity_ledger import LedgerOutcome, QuantityLedger
from inventory_kernel.services.transaction_recorder import TransactionRecorder

logger = get_logger("services.transition_engine")


@dataclass(frozen=True)
class Allocation:
    """A portion of a record assigned to an area."""

    area_id: int
    quantity: Decimal

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", to_quantity(self.quantity))


@dataclass(frozen=True)
class TransitionOutcome:
    """
    What a completed action did.

    ``record`` is the primary record afterwards (None when it was deleted
    or merged away; for a merge, ``consolidated_into`` holds the survivor).
    ``created`` holds records produced or topped up by splits.
    """

    action: InventoryAction
    inventory_id: int
    before: InventoryRecord
    record: InventoryRecord | None
    ledger_action: LedgerAction
    created: tuple[InventoryRecord, ...] = ()
    consolidated_from: int | None = None
    consolidated_into: InventoryRecord | None = None
    transaction_id: int | None = None
    details: dict[str, Any] = field(default_factory=dict)


class TransitionEngine:
    """
    Guarded state transitions for inventory records.

    Contract:
        Each public method reads the record, validates preconditions, writes
        the new state, records one transaction, and returns a
        TransitionOutcome.  Nothing is written when a precondition fails.

    Non-goals:
        - Does NOT commit (InventoryService owns the unit of work).
        - Does NOT decide which actions a status offers
          (see domain.action_availability).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        snapshot: LookupSnapshot,
        actor: ActorContext,
        policy: KernelPolicy | None = None,
        ledger: QuantityLedger | None = None,
        recorder: TransactionRecorder | None = None,
    ):
        self._policy = policy or KernelPolicy()
        self._snapshot = snapshot
        self._ledger = ledger or QuantityLedger(session, clock, self._policy)
        self._store = self._ledger.store
        self._recorder = recorder or TransactionRecorder(
            session, clock, snapshot, actor, self._policy
        )

    # =====================================================================
    # Quantity actions
    # =====================================================================

    def adjust(
        self, inventory_id: int, new_quantity: Decimal, reason: str | None = None
    ) -> TransitionOutcome:
        """Set the record's quantity to ``new_quantity``."""
        quantity = to_quantity(new_quantity)
        if quantity < 0:
            raise InvalidQuantityError(quantity, "quantity cannot be negative")

        before = self._store.require(inventory_id)
        after = self._store.update(
            inventory_id, {"quantity": quantity}, expected_version=before.version
        )
        return self._finish(
            InventoryAction.ADJUST,
            before,
            after,
            LedgerAction.UPDATED,
            quantity=quantity,
            notes=reason,
        )

    def remove(self, inventory_id: int, notes: str | None = None) -> TransitionOutcome:
        """Delete the record."""
        before = self._store.require(inventory_id)
        self._store.delete(inventory_id, expected_version=before.version)
        return self._finish(
            InventoryAction.REMOVE,
            before,
            None,
            LedgerAction.DELETED,
            quantity=before.quantity,
            notes=notes,
        )

    def return_material(self, inventory_id: int, notes: str | None = None) -> TransitionOutcome:
        """Delete the record: the stock leaves the system."""
        before = self._store.require(inventory_id)
        self._store.delete(inventory_id, expected_version=before.version)
        return self._finish(
            InventoryAction.RETURN_MATERIAL,
            before,
            None,
            LedgerAction.DELETED,
            quantity=before.quantity,
            notes=notes,
        )

    # =====================================================================
    # Location / crew / area actions
    # =====================================================================

    def issue(
        self,
        inventory_id: int,
        crew_id: int | None = None,
        area_id: int | None = None,
        location_id: int | None = None,
        quantity: Decimal | None = None,
        notes: str | None = None,
    ) -> TransitionOutcome:
        """
        Issue the record to a crew: location becomes "With Crew" (or
        ``location_id``), crew becomes ``crew_id`` or stays the existing one.

        With ``quantity`` below a bulk record's quantity only that much is
        issued; the rest stays where it is.
        """
        before = self._store.require(inventory_id)

        crew = crew_id if crew_id is not None else before.assigned_crew_id
        if crew is None:
            raise NoCrewAssignedError(inventory_id)
        self._require_crew(crew)

        if location_id is not None:
            self._require_location(location_id)
            target_location = location_id
        else:
            with_crew = self._snapshot.with_crew_location()
            if with_crew is None:
                wk = self._snapshot.well_known
                raise LocationTypeMissingError(
                    wk.location_with_crew, wk.with_crew_location_type_id
                )
            target_location = with_crew.id

        updates: dict[str, Any] = {"location_id": target_location, "assigned_crew_id": crew}
        if area_id is not None:
            self._require_area(area_id)
            updates["area_id"] = area_id

        if quantity is not None:
            moved = to_quantity(quantity)
            if moved <= 0:
                raise InvalidQuantityError(moved, "issue quantity must be positive")
            if moved > before.quantity:
                raise OverAllocationError(inventory_id, before.quantity, moved)
            if moved < before.quantity:
                return self._transfer(InventoryAction.ISSUE, before, updates, moved, notes)

        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, updates, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.ISSUE, before, outcome, notes=notes)

    def return_as_reserved(
        self, inventory_id: int, sloc_id: int, notes: str | None = None
    ) -> TransitionOutcome:
        """Return the record to a SLOC's storage location, keeping its crew."""
        before = self._store.require(inventory_id)
        if self._snapshot.sloc(sloc_id) is None:
            raise ReferenceNotFoundError("Sloc", sloc_id)
        sloc_location = self._snapshot.sloc_location()
        if sloc_location is None:
            wk = self._snapshot.well_known
            raise LocationTypeMissingError(wk.location_sloc, wk.sloc_location_type_id)

        outcome = self._ledger.update_with_consolidation_check(
            inventory_id,
            {"location_id": sloc_location.id, "sloc_id": sloc_id},
            expected_version=before.version,
        )
        return self._finish_ledger(InventoryAction.RETURN_AS_RESERVED, before, outcome, notes=notes)

    def assign_area(
        self, inventory_id: int, area_id: int, notes: str | None = None
    ) -> TransitionOutcome:
        before = self._store.require(inventory_id)
        self._require_area(area_id)
        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, {"area_id": area_id}, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.ASSIGN_AREA, before, outcome, notes=notes)

    def reserve(self, inventory_id: int, crew_id: int, notes: str | None = None) -> TransitionOutcome:
        before = self._store.require(inventory_id)
        self._require_crew(crew_id)
        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, {"assigned_crew_id": crew_id}, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.RESERVE, before, outcome, notes=notes)

    def unreserve(self, inventory_id: int, notes: str | None = None) -> TransitionOutcome:
        before = self._store.require(inventory_id)
        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, {"assigned_crew_id": None}, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.UNRESERVE, before, outcome, notes=notes)

    def field_install(self, inventory_id: int, notes: str | None = None) -> TransitionOutcome:
        """Move the record to the Installed location (and status, if defined)."""
        before = self._store.require(inventory_id)
        installed = self._snapshot.installed_location()
        if installed is None:
            wk = self._snapshot.well_known
            raise LocationTypeMissingError(wk.location_installed, wk.installed_location_type_id)

        updates: dict[str, Any] = {"location_id": installed.id}
        installed_status = self._snapshot.status_named(self._snapshot.well_known.status_installed)
        if installed_status is not None:
            updates["status_id"] = installed_status.id

        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, updates, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.FIELD_INSTALL, before, outcome, notes=notes)

    def move(self, inventory_id: int, location_id: int, notes: str | None = None) -> TransitionOutcome:
        before = self._store.require(inventory_id)
        self._require_location(location_id)
        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, {"location_id": location_id}, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.MOVE, before, outcome, notes=notes)

    # =====================================================================
    # Status actions
    # =====================================================================

    def reject(self, inventory_id: int, notes: str | None = None) -> TransitionOutcome:
        before = self._store.require(inventory_id)
        rejected = self._require_status(self._snapshot.well_known.status_rejected)
        outcome = self._ledger.update_with_consolidation_check(
            inventory_id, {"status_id": rejected.id}, expected_version=before.version
        )
        return self._finish_ledger(InventoryAction.REJECT, before, outcome, notes=notes)

    def inspect(
        self,
        inventory_id: int,
        passed_units: Decimal | None = None,
        rejected_units: Decimal | None = None,
        notes: str | None = None,
    ) -> TransitionOutcome:
        """
        Inspect a Received record.

        Without unit counts the whole record becomes Available.  With counts,
        passed units become Available, rejected units become Rejected, and
        the uninspected remainder stays Received (the record is deleted when
        nothing remains).
        """
        before = self._store.require(inventory_id)
        wk = self._snapshot.well_known
        current = self._snapshot.status(before.status_id)
        current_name = current.name if current else None
        if current_name != wk.status_received:
            raise InvalidStatusTransitionError(
                inventory_id, InventoryAction.INSPECT.value, current_name, wk.status_received
            )
        available = self._require_status(wk.status_available)

        if passed_units is None and rejected_units is None:
            outcome = self._ledger.update_with_consolidation_check(
                inventory_id, {"status_id": available.id}, expected_version=before.version
            )
            return self._finish_ledger(InventoryAction.INSPECT, before, outcome, notes=notes)

        passed = to_quantity(passed_units or 0)
        rejected = to_quantity(rejected_units or 0)
        if passed < 0 or rejected < 0:
            raise InvalidQuantityError(min(passed, rejected), "inspected units cannot be negative")
        inspected = passed + rejected
        if inspected == 0:
            raise InvalidQuantityError(inspected, "no units inspected")
        if inspected > before.quantity:
            raise InvalidQuantityError(
                inspected, f"only {before.quantity} units awaiting inspection"
            )
        rejected_status = self._require_status(wk.status_rejected) if rejected > 0 else None

        if before.is_serialized:
            if passed > 0 and rejected > 0:
                raise InvalidQuantityError(inspected, "a serialized record cannot be split")
            target_status = available if passed > 0 else rejected_status
            outcome = self._ledger.update_with_consolidation_check(
                inventory_id, {"status_id": target_status.id}, expected_version=before.version
            )
            return self._finish_ledger(InventoryAction.INSPECT, before, outcome, notes=notes)

        remaining = self._reduce_source(before, inspected)
        created: list[InventoryRecord] = []
        base = before.as_candidate()
        if passed > 0:
            created.append(
                self._ledger.apply_delta(
                    base.with_changes(status_id=available.id), passed, LedgerOperation.ADD
                ).record
            )
        if rejected > 0:
            created.append(
                self._ledger.apply_delta(
                    base.with_changes(status_id=rejected_status.id), rejected, LedgerOperation.ADD
                ).record
            )

        return self._finish(
            InventoryAction.INSPECT,
            before,
            remaining,
            LedgerAction.UPDATED if remaining is not None else LedgerAction.DELETED,
            created=tuple(created),
            quantity=inspected,
            notes=notes,
            details={"passed_units": str(passed), "rejected_units": str(rejected)},
        )

    # =====================================================================
    # Allocation
    # =====================================================================

    def allocate(
        self,
        inventory_id: int,
        allocations: Sequence[Allocation],
        notes: str | None = None,
    ) -> TransitionOutcome:
        """
        Split the record into one area-tagged record per allocation.

        The source record keeps the unallocated remainder, or is deleted when the
        allocations consume it entirely.
        """
        before = self._store.require(inventory_id)
        if not allocations:
            raise InvalidQuantityError(Decimal(0), "no allocations given")
        for allocation in allocations:
            if allocation.quantity <= 0:
                raise InvalidQuantityError(allocation.quantity, "allocation must be positive")
            self._require_area(allocation.area_id)

        total = sum((a.quantity for a in allocations), Decimal(0))
        if total > before.quantity:
            raise OverAllocationError(inventory_id, before.quantity, total)

        details = {
            "allocations": [
                {"area_id": a.area_id, "quantity": str(a.quantity)} for a in allocations
            ]
        }

        if before.is_serialized:
            if len(allocations) != 1 or total != before.quantity:
                raise InvalidQuantityError(total, "a serialized record cannot be split")
            outcome = self._ledger.update_with_consolidation_check(
                inventory_id, {"area_id": allocations[0].area_id}, expected_version=before.version
            )
            return self._finish_ledger(
                InventoryAction.ALLOCATE, before, outcome, notes=notes, quantity=total, details=details
            )

        remaining = self._reduce_source(before, total)
        created = []
        base = before.as_candidate()
        for allocation in allocations:
            outcome = self._ledger.apply_delta(
                base.with_changes(area_id=allocation.area_id),
                allocation.quantity,
                LedgerOperation.ADD,
            )
            created.append(outcome.record)
            if remaining is not None and outcome.record.id == remaining.id:
                remaining = outcome.record

        return self._finish(
            InventoryAction.ALLOCATE,
            before,
            remaining,
            LedgerAction.UPDATED if remaining is not None else LedgerAction.DELETED,
            created=tuple(created),
            quantity=total,
            notes=notes,
            details=details,
        )

    # =====================================================================
    # Helpers
    # =====================================================================

    def _reduce_source(self, before: InventoryRecord, amount: Decimal) -> InventoryRecord | None:
        """Take ``amount`` off the source; delete it when nothing remains."""
        if amount == before.quantity:
            self._store.delete(before.id, expected_version=before.version)
            return None
        return self._store.increment_quantity(before.id, -amount)

    def _transfer(
        self,
        action: InventoryAction,
        before: InventoryRecord,
        updates: Mapping[str, Any],
        quantity: Decimal,
        notes: str | None,
    ) -> TransitionOutcome:
        transfer = self._ledger.transfer(
            before.id, updates, quantity, expected_version=before.version
        )
        return self._finish(
            action,
            before,
            transfer.source_after,
            LedgerAction.UPDATED,
            created=(transfer.target.record,),
            quantity=quantity,
            notes=notes,
        )

    def _require_crew(self, crew_id: int) -> None:
        if self._snapshot.crew(crew_id) is None:
            raise ReferenceNotFoundError("Crew", crew_id)

    def _require_area(self, area_id: int) -> None:
        if self._snapshot.area(area_id) is None:
            raise ReferenceNotFoundError("Area", area_id)

    def _require_location(self, location_id: int) -> None:
        if self._snapshot.location(location_id) is None:
            raise ReferenceNotFoundError("Location", location_id)

    def _require_status(self, name: str):
        status = self._snapshot.status_named(name)
        if status is None:
            raise StatusMissingError(name)
        return status

    def _finish_ledger(
        self,
        action: InventoryAction,
        before: InventoryRecord,
        outcome: LedgerOutcome,
        notes: str | None = None,
        quantity: Decimal | None = None,
        details: dict[str, Any] | None = None,
    ) -> TransitionOutcome:
        consolidated = outcome.action is LedgerAction.CONSOLIDATED
        return self._finish(
            action,
            before,
            None if consolidated else outcome.record,
            outcome.action,
            quantity=quantity if quantity is not None else before.quantity,
            notes=notes,
            consolidated_from=outcome.consolidated_from,
            consolidated_into=outcome.record if consolidated else None,
            details=details,
        )

    def _finish(
        self,
        action: InventoryAction,
        before: InventoryRecord,
        after: InventoryRecord | None,
        ledger_action: LedgerAction,
        created: tuple[InventoryRecord, ...] = (),
        quantity: Decimal | None = None,
        notes: str | None = None,
        consolidated_from: int | None = None,
        consolidated_into: InventoryRecord | None = None,
        details: dict[str, Any] | None = None,
    ) -> TransitionOutcome:
        details = dict(details or {})
        if consolidated_into is not None:
            details["consolidated_into"] = consolidated_into.id

        recorded_after = after if after is not None else consolidated_into
        transaction_id = self._recorder.record(
            MutationDescriptor(
                action=action,
                inventory_id=before.id,
                before=before,
                after=recorded_after,
                created=created,
                quantity=quantity,
                old_quantity=before.quantity,
                notes=notes,
                details=details,
            )
        )

        logger.info(
            "transition_applied",
            extra={
                "action": action.value,
                "inventory_id": before.id,
                "ledger_action": ledger_action.value,
                "created_ids": [r.id for r in created],
                "consolidated_from": consolidated_from,
                "transaction_id": transaction_id,
            },
        )
        return TransitionOutcome(
            action=action,
            inventory_id=before.id,
            before=before,
            record=after,
            ledger_action=ledger_action,
            created=created,
            consolidated_from=consolidated_from,
            consolidated_into=consolidated_into,
            transaction_id=transaction_id,
            details=details,
        )
