"""
TransactionRecorder -- appends the audit row for each completed action.

Responsibility:
    Turns a ``MutationDescriptor`` into an ``InventoryTransaction`` row:
    resolves every id against the lookup snapshot into names, stamps actor,
    session, timestamp and timezone, and serializes before/after state.

Architecture position:
    Kernel > Services.  Called by TransitionEngine and InventoryService
    after the business writes of an action have been flushed.

Invariants enforced:
    - ONE_TRANSACTION_PER_ACTION: callers invoke ``record`` exactly once per
      successful action.
    - APPEND_ONLY_TRANSACTIONS: rows are only ever inserted.

Failure modes:
    - Default (availability): the insert runs in a SAVEPOINT; a failure is
      rolled back to the savepoint, logged as ``transaction_record_failed``
      and the action proceeds without an audit row (``record`` returns None).
    - ``require_transaction_record``: the failure raises AuditWriteError and
      the whole action is rolled back by its unit of work.
"""

from __future__ import annotations

import json
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.domain.actions import MutationDescriptor
from inventory_kernel.domain.actor import ActorContext
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.lookup import LookupSnapshot
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import InventoryRecord
from inventory_kernel.exceptions import AuditWriteError
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_transaction import InventoryTransaction
from inventory_kernel.services.base import BaseService

logger = get_logger("services.transaction_recorder")


def _dump(state: Any) -> str | None:
    if state is None:
        return None
    return json.dumps(state, sort_keys=True, default=str)


class TransactionRecorder(BaseService[InventoryTransaction]):
    """
    Writes denormalized transaction rows.

    Contract:
        ``record`` is called after the action's writes; it never modifies
        inventory rows.

    Guarantees:
        - Names are resolved from the snapshot given at construction, so
          history reads the same even after reference data changes.
        - In availability mode a failed insert never aborts the caller's
          transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        snapshot: LookupSnapshot,
        actor: ActorContext,
        policy: KernelPolicy | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._snapshot = snapshot
        self._actor = actor
        self._policy = policy or KernelPolicy()

    def record(self, descriptor: MutationDescriptor) -> int | None:
        """
        Append the transaction row for ``descriptor``.

        Returns:
            The new transaction id, or None if the write failed in
            availability mode.

        Raises:
            AuditWriteError: write failed and transaction records are required.
        """
        try:
            with self.session.begin_nested():
                row = self.build_row(descriptor)
                self.session.add(row)
                self.session.flush()
        except SQLAlchemyError as exc:
            if self._policy.require_transaction_record:
                logger.error(
                    "transaction_record_failed",
                    extra={
                        "invariant": KernelInvariant.ONE_TRANSACTION_PER_ACTION.value,
                        "transaction_type": descriptor.transaction_type.value,
                        "required": True,
                    },
                    exc_info=True,
                )
                raise AuditWriteError(
                    descriptor.transaction_type.value,
                    descriptor.inventory_id,
                    str(exc),
                ) from exc
            logger.warning(
                "transaction_record_failed",
                extra={
                    "invariant": KernelInvariant.ONE_TRANSACTION_PER_ACTION.value,
                    "transaction_type": descriptor.transaction_type.value,
                    "required": False,
                },
                exc_info=True,
            )
            return None

        logger.info(
            "transaction_recorded",
            extra={
                "transaction_id": row.id,
                "transaction_type": row.transaction_type,
                "inventory_id": descriptor.inventory_id,
            },
        )
        return row.id

    def build_row(self, descriptor: MutationDescriptor) -> InventoryTransaction:
        """Denormalize ``descriptor`` into an unsaved transaction row."""
        snap = self._snapshot
        before = descriptor.before
        after = descriptor.after or (descriptor.created[0] if descriptor.created else None)
        primary = after or before

        item = snap.item_type(primary.item_type_id) if primary else None
        sloc, market, client = snap.hierarchy_for_sloc(primary.sloc_id if primary else None)

        from_location = snap.location(before.location_id) if before else None
        to_location = snap.location(after.location_id) if after else None
        crew = snap.crew(primary.assigned_crew_id) if primary else None
        area = snap.area(primary.area_id) if primary else None
        status = snap.status(after.status_id) if after else None
        old_status = snap.status(before.status_id) if before else None

        def type_name(location) -> str | None:
            if location is None:
                return None
            location_type = snap.location_type(location.location_type_id)
            return location_type.name if location_type else None

        return InventoryTransaction(
            inventory_id=descriptor.inventory_id,
            transaction_type=descriptor.transaction_type.value,
            action=descriptor.action.value,
            client=client.name if client else None,
            market=market.name if market else None,
            sloc=sloc.name if sloc else None,
            item_type_name=item.name if item else None,
            inventory_type_name=self._name(snap.inventory_type(item.inventory_type_id) if item else None),
            manufacturer=item.manufacturer if item else None,
            part_number=item.part_number if item else None,
            description=item.description if item else None,
            unit_of_measure=self._name(snap.unit_of_measure(item.unit_of_measure_id) if item else None),
            units_per_package=item.units_per_package if item else None,
            provider_name=self._name(snap.provider(item.provider_id) if item else None),
            category_name=self._name(snap.category(item.category_id) if item else None),
            mfgr_serial_number=primary.mfgr_serial_number if primary else None,
            tilson_serial_number=primary.tilson_serial_number if primary else None,
            from_location_name=from_location.name if from_location else None,
            from_location_type=type_name(from_location),
            to_location_name=to_location.name if to_location else None,
            to_location_type=type_name(to_location),
            assigned_crew_name=crew.name if crew else None,
            area_name=area.name if area else None,
            status_name=status.name if status else None,
            old_status_name=old_status.name if old_status else None,
            quantity=descriptor.quantity,
            old_quantity=descriptor.old_quantity,
            before_state=_dump(before.to_state() if before else None),
            after_state=_dump(self._after_state(descriptor)),
            user_name=self._actor.user_name(),
            session_id=self._actor.session_id,
            notes=descriptor.notes,
            date_time=self._clock.now(),
            created_timezone=self._policy.timezone_name,
        )

    @staticmethod
    def _name(entity) -> str | None:
        return entity.name if entity is not None else None

    @staticmethod
    def _after_state(descriptor: MutationDescriptor) -> dict[str, Any] | None:
        after: InventoryRecord | None = descriptor.after
        if not descriptor.created and not descriptor.details:
            return after.to_state() if after else None

        state: dict[str, Any] = after.to_state() if after else {}
        if descriptor.created:
            state["created"] = [r.to_state() for r in descriptor.created]
        if descriptor.details:
            state["details"] = descriptor.details
        return state
