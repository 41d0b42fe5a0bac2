"""
InventoryService -- the public facade over the inventory kernel.

Responsibility:
    Runs every inventory operation as one unit of work: binds the log
    context, optionally delegates to a remote procedure, executes the local
    algorithm inside a SAVEPOINT with optimistic-lock retries, commits,
    notifies the refresh callback, and reports the outcome as an
    ``ActionResult``.

Architecture position:
    Kernel > Services.  The only kernel class that commits.  Composes
    QuantityLedger, TransitionEngine, TransactionRecorder and
    IntegrityService over one session.

Invariants enforced:
    - ATOMIC_ACTION: each attempt runs in a SAVEPOINT; a failed attempt
      leaves nothing behind, a successful one is committed as a whole
      (when ``auto_commit``).
    - ONE_TRANSACTION_PER_ACTION: ledger operations called through the
      facade record exactly one transaction.

Failure modes:
    - Kernel errors never escape the public methods; they become
      ``ActionResult(status=FAILED, error_code=...)``.  SQLAlchemy errors
      become WRITE_ERROR results.
    - Unexpected exceptions roll back (when ``auto_commit``), are logged as
      ``action_failed`` and re-raised.
    - Refresh callback failures are logged, never propagated.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Sequence
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.clients.edge_functions import RemoteProcedures
from inventory_kernel.domain.action_availability import available_actions
from inventory_kernel.domain.actions import (
    InventoryAction,
    LedgerAction,
    LedgerOperation,
    MutationDescriptor,
)
from inventory_kernel.domain.actor import ActorContext
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.equivalence import DuplicateGroup
from inventory_kernel.domain.lookup import ActionTypeInfo, LookupSnapshot
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import InventoryCandidate, InventoryRecord, to_quantity
from inventory_kernel.exceptions import (
    InventoryKernelError,
    OptimisticLockError,
    RemoteProcedureError,
    WriteError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.integrity_service import IntegrityService, RepairReport
from inventory_kernel.services.quantity_ledger import QuantityLedger
from inventory_kernel.services.transaction_recorder import TransactionRecorder
from inventory_kernel.services.transition_engine import (
    Allocation,
    TransitionEngine,
    TransitionOutcome,
)

logger = get_logger("services.inventory")


class ActionStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    """
    Outcome of one facade call.

    ``record`` is the primary record afterwards (for a consolidation, the
    surviving record).  ``remote`` is True when the remote procedure
    performed the action; local record fields are then empty and the
    response payload is in ``details["data"]``.
    """

    action: InventoryAction
    status: ActionStatus
    inventory_id: int | None = None
    record: InventoryRecord | None = None
    created: tuple[InventoryRecord, ...] = ()
    ledger_action: LedgerAction | None = None
    consolidated_from: int | None = None
    transaction_id: int | None = None
    remote: bool = False
    error_code: str | None = None
    message: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.status is ActionStatus.SUCCEEDED

    @classmethod
    def failure(
        cls,
        action: InventoryAction,
        inventory_id: int | None,
        error_code: str,
        message: str,
    ) -> ActionResult:
        return cls(
            action=action,
            status=ActionStatus.FAILED,
            inventory_id=inventory_id,
            error_code=error_code,
            message=message,
        )


def _from_transition(outcome: TransitionOutcome) -> ActionResult:
    return ActionResult(
        action=outcome.action,
        status=ActionStatus.SUCCEEDED,
        inventory_id=outcome.inventory_id,
        record=outcome.record or outcome.consolidated_into,
        created=outcome.created,
        ledger_action=outcome.ledger_action,
        consolidated_from=outcome.consolidated_from,
        transaction_id=outcome.transaction_id,
        details=outcome.details,
    )


class InventoryService:
    """
    Facade for inventory operations.

    Contract:
        Every public mutating method returns an ActionResult and, on
        success, has committed its writes (when ``auto_commit``) before the
        ``on_change`` callback runs.

    Guarantees:
        - Optimistic lock conflicts are retried up to
          ``policy.max_conflict_retries`` attempts, each on fresh reads.
        - For actions listed in ``policy.remote_actions`` the remote
          procedure is tried first; RemoteProcedureError falls back to the
          local algorithm.

    Non-goals:
        - Does NOT load lookups or configuration (callers pass a snapshot
          and a policy; see ``inventory_config.bridges``).
    """

    def __init__(
        self,
        session: Session,
        snapshot: LookupSnapshot,
        actor: ActorContext,
        clock: Clock | None = None,
        policy: KernelPolicy | None = None,
        remote: RemoteProcedures | None = None,
        on_change: Callable[[ActionResult], None] | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._snapshot = snapshot
        self._actor = actor
        self._clock = clock or SystemClock()
        self._policy = policy or KernelPolicy()
        self._remote = remote
        self._on_change = on_change
        self._auto_commit = auto_commit

        self._ledger = QuantityLedger(session, self._clock, self._policy)
        self._recorder = TransactionRecorder(
            session, self._clock, snapshot, actor, self._policy
        )
        self._engine = TransitionEngine(
            session,
            self._clock,
            snapshot,
            actor,
            self._policy,
            ledger=self._ledger,
            recorder=self._recorder,
        )
        self._integrity = IntegrityService(
            session,
            self._clock,
            snapshot,
            actor,
            self._policy,
            store=self._ledger.store,
            recorder=self._recorder,
        )

    # =====================================================================
    # Ledger operations
    # =====================================================================

    def apply_delta(
        self,
        candidate: InventoryCandidate,
        delta: Decimal,
        operation: LedgerOperation = LedgerOperation.ADD,
        notes: str | None = None,
    ) -> ActionResult:
        """Receive (add) or subtract stock for a signature."""
        operation = LedgerOperation(operation)
        action = (
            InventoryAction.RECEIVE
            if operation is LedgerOperation.ADD
            else InventoryAction.SUBTRACT
        )

        def local() -> ActionResult:
            outcome = self._ledger.apply_delta(candidate, delta, operation)
            previous = outcome.previous
            transaction_id = self._recorder.record(
                MutationDescriptor(
                    action=action,
                    inventory_id=outcome.record.id,
                    before=previous,
                    after=outcome.record,
                    quantity=to_quantity(delta),
                    old_quantity=previous.quantity if previous else Decimal(0),
                    notes=notes,
                )
            )
            return ActionResult(
                action=action,
                status=ActionStatus.SUCCEEDED,
                inventory_id=outcome.record.id,
                record=outcome.record,
                ledger_action=outcome.action,
                transaction_id=transaction_id,
                details={"duplicate_ids": list(outcome.duplicate_ids)}
                if outcome.duplicate_ids
                else {},
            )

        def remote(client: RemoteProcedures) -> Any:
            return client.receive_bulk_inventory(
                {**candidate.as_values(), "quantity": to_quantity(delta), "notes": notes or ""},
                operation.value,
            )

        return self._run(action, None, local, remote)

    def update_with_consolidation_check(
        self,
        inventory_id: int,
        field_updates: Mapping[str, Any],
        notes: str | None = None,
    ) -> ActionResult:
        """Update a record's fields, merging it into an equivalent record."""
        action = InventoryAction.UPDATE

        def local() -> ActionResult:
            before = self._ledger.store.require(inventory_id)
            outcome = self._ledger.update_with_consolidation_check(
                inventory_id, field_updates, expected_version=before.version
            )
            transaction_id = self._recorder.record(
                MutationDescriptor(
                    action=action,
                    inventory_id=inventory_id,
                    before=before,
                    after=outcome.record,
                    quantity=outcome.record.quantity,
                    old_quantity=before.quantity,
                    notes=notes,
                    details={"consolidated_into": outcome.record.id}
                    if outcome.consolidated_from is not None
                    else {},
                )
            )
            return ActionResult(
                action=action,
                status=ActionStatus.SUCCEEDED,
                inventory_id=inventory_id,
                record=outcome.record,
                ledger_action=outcome.action,
                consolidated_from=outcome.consolidated_from,
                transaction_id=transaction_id,
            )

        return self._run(action, inventory_id, local)

    def transfer(
        self,
        inventory_id: int,
        target_updates: Mapping[str, Any],
        quantity: Decimal,
        notes: str | None = None,
    ) -> ActionResult:
        """Move ``quantity`` of a record onto another signature."""
        action = InventoryAction.TRANSFER

        def local() -> ActionResult:
            before = self._ledger.store.require(inventory_id)
            outcome = self._ledger.transfer(
                inventory_id, target_updates, quantity, expected_version=before.version
            )
            transaction_id = self._recorder.record(
                MutationDescriptor(
                    action=action,
                    inventory_id=inventory_id,
                    before=before,
                    after=outcome.source_after,
                    created=(outcome.target.record,)
                    if outcome.source_after is not None
                    else (),
                    quantity=outcome.quantity,
                    old_quantity=before.quantity,
                    notes=notes,
                )
            )
            return ActionResult(
                action=action,
                status=ActionStatus.SUCCEEDED,
                inventory_id=inventory_id,
                record=outcome.source_after or outcome.target.record,
                created=(outcome.target.record,) if outcome.source_after is not None else (),
                ledger_action=outcome.target.action,
                consolidated_from=outcome.target.consolidated_from,
                transaction_id=transaction_id,
            )

        return self._run(action, inventory_id, local)

    # =====================================================================
    # Transitions
    # =====================================================================

    def adjust(
        self, inventory_id: int, new_quantity: Decimal, reason: str | None = None
    ) -> ActionResult:
        return self._run(
            InventoryAction.ADJUST,
            inventory_id,
            lambda: _from_transition(self._engine.adjust(inventory_id, new_quantity, reason)),
            lambda client: client.adjust_inventory(
                inventory_id, to_quantity(new_quantity), reason or ""
            ),
        )

    def remove(self, inventory_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.REMOVE,
            inventory_id,
            lambda: _from_transition(self._engine.remove(inventory_id, notes)),
        )

    def issue(
        self,
        inventory_id: int,
        crew_id: int | None = None,
        area_id: int | None = None,
        location_id: int | None = None,
        quantity: Decimal | None = None,
        notes: str | None = None,
    ) -> ActionResult:
        def remote(client: RemoteProcedures) -> Any:
            return client.issue_inventory(
                inventory_id, crew_id, area_id, location_id, notes or ""
            )

        return self._run(
            InventoryAction.ISSUE,
            inventory_id,
            lambda: _from_transition(
                self._engine.issue(inventory_id, crew_id, area_id, location_id, quantity, notes)
            ),
            # The remote function issues whole records only.
            remote if quantity is None else None,
        )

    def return_as_reserved(
        self, inventory_id: int, sloc_id: int, notes: str | None = None
    ) -> ActionResult:
        return self._run(
            InventoryAction.RETURN_AS_RESERVED,
            inventory_id,
            lambda: _from_transition(self._engine.return_as_reserved(inventory_id, sloc_id, notes)),
        )

    def assign_area(self, inventory_id: int, area_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.ASSIGN_AREA,
            inventory_id,
            lambda: _from_transition(self._engine.assign_area(inventory_id, area_id, notes)),
        )

    def inspect(
        self,
        inventory_id: int,
        passed_units: Decimal | None = None,
        rejected_units: Decimal | None = None,
        notes: str | None = None,
    ) -> ActionResult:
        return self._run(
            InventoryAction.INSPECT,
            inventory_id,
            lambda: _from_transition(
                self._engine.inspect(inventory_id, passed_units, rejected_units, notes)
            ),
        )

    def reserve(self, inventory_id: int, crew_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.RESERVE,
            inventory_id,
            lambda: _from_transition(self._engine.reserve(inventory_id, crew_id, notes)),
        )

    def unreserve(self, inventory_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.UNRESERVE,
            inventory_id,
            lambda: _from_transition(self._engine.unreserve(inventory_id, notes)),
        )

    def field_install(self, inventory_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.FIELD_INSTALL,
            inventory_id,
            lambda: _from_transition(self._engine.field_install(inventory_id, notes)),
        )

    def allocate(
        self,
        inventory_id: int,
        allocations: Sequence[Allocation],
        notes: str | None = None,
    ) -> ActionResult:
        return self._run(
            InventoryAction.ALLOCATE,
            inventory_id,
            lambda: _from_transition(self._engine.allocate(inventory_id, allocations, notes)),
        )

    def move(self, inventory_id: int, location_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.MOVE,
            inventory_id,
            lambda: _from_transition(self._engine.move(inventory_id, location_id, notes)),
        )

    def reject(self, inventory_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.REJECT,
            inventory_id,
            lambda: _from_transition(self._engine.reject(inventory_id, notes)),
        )

    def return_material(self, inventory_id: int, notes: str | None = None) -> ActionResult:
        return self._run(
            InventoryAction.RETURN_MATERIAL,
            inventory_id,
            lambda: _from_transition(self._engine.return_material(inventory_id, notes)),
        )

    # =====================================================================
    # Queries and maintenance
    # =====================================================================

    def available_actions(self, inventory_id: int) -> tuple[ActionTypeInfo, ...]:
        """Actions offered for the record's current status; empty if it is gone."""
        record = self._ledger.store.get(inventory_id)
        if record is None:
            return ()
        return available_actions(
            record.status_id, self._snapshot.action_statuses, self._snapshot.action_types
        )

    def scan_duplicates(self, sloc_id: int | None = None) -> tuple[DuplicateGroup, ...]:
        return self._integrity.scan(sloc_id)

    def repair_duplicates(self, sloc_id: int | None = None) -> RepairReport:
        """Merge duplicate bulk records and commit (when ``auto_commit``)."""
        try:
            report = self._integrity.repair(sloc_id)
            if self._auto_commit:
                self._session.commit()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            logger.error("duplicate_repair_failed", extra={"sloc_id": sloc_id}, exc_info=True)
            raise
        return report

    # =====================================================================
    # Unit of work
    # =====================================================================

    def _run(
        self,
        action: InventoryAction,
        inventory_id: int | None,
        local: Callable[[], ActionResult],
        remote: Callable[[RemoteProcedures], Any] | None = None,
    ) -> ActionResult:
        correlation_id = str(uuid4())
        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=self._actor.log_id,
            session_id=self._actor.session_id,
            inventory_id=inventory_id,
            action=action.value,
        ):
            logger.info("action_started")
            t0 = time.monotonic()

            try:
                result = self._execute(action, inventory_id, local, remote)

                if self._auto_commit:
                    if result.is_success:
                        self._session.commit()
                    else:
                        self._session.rollback()

                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                logger.info(
                    "action_completed",
                    extra={
                        "status": result.status.value,
                        "error_code": result.error_code,
                        "remote": result.remote,
                        "transaction_id": result.transaction_id,
                        "duration_ms": duration_ms,
                    },
                )
            except Exception:
                duration_ms = round((time.monotonic() - t0) * 1000, 2)
                if self._auto_commit:
                    self._session.rollback()
                logger.error(
                    "action_failed",
                    extra={"duration_ms": duration_ms},
                    exc_info=True,
                )
                raise

            if result.is_success:
                self._notify(result)
            return result

    def _execute(
        self,
        action: InventoryAction,
        inventory_id: int | None,
        local: Callable[[], ActionResult],
        remote: Callable[[RemoteProcedures], Any] | None,
    ) -> ActionResult:
        if remote is not None and self._remote is not None and action in self._policy.remote_actions:
            try:
                data = remote(self._remote)
            except RemoteProcedureError as exc:
                logger.warning(
                    "remote_procedure_fallback",
                    extra={
                        "function_name": exc.function_name,
                        "status_code": exc.status_code,
                        "error": exc.detail,
                    },
                )
            except InventoryKernelError as exc:
                return self._failed(action, inventory_id, exc)
            else:
                return ActionResult(
                    action=action,
                    status=ActionStatus.SUCCEEDED,
                    inventory_id=inventory_id,
                    remote=True,
                    details={"data": data},
                )

        attempts = self._policy.max_conflict_retries
        attempt = 1
        while True:
            try:
                with self._session.begin_nested():
                    return local()
            except OptimisticLockError as exc:
                if attempt >= attempts:
                    return self._failed(action, inventory_id, exc)
                logger.warning(
                    "optimistic_lock_retry",
                    extra={"attempt": attempt, "max_attempts": attempts},
                )
                attempt += 1
            except InventoryKernelError as exc:
                return self._failed(action, inventory_id, exc)
            except SQLAlchemyError as exc:
                return self._failed(
                    action, inventory_id, WriteError(action.value, "Inventory", str(exc))
                )

    def _failed(
        self,
        action: InventoryAction,
        inventory_id: int | None,
        exc: InventoryKernelError,
    ) -> ActionResult:
        logger.warning(
            "action_rejected",
            extra={"error_code": exc.code, "error": str(exc)},
        )
        return ActionResult.failure(action, inventory_id, exc.code, str(exc))

    def _notify(self, result: ActionResult) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(result)
        except Exception:
            logger.error(
                "refresh_callback_failed",
                extra={"action": result.action.value},
                exc_info=True,
            )
