"""
QuantityLedger -- quantity changes that preserve the bulk invariants.

Responsibility:
    Applies quantity deltas to the record equivalent to a candidate (or
    creates it), moves records onto new signatures with consolidation, and
    transfers part of a record's quantity to another signature.

Architecture position:
    Kernel > Services.  Built on RecordStore and the Equivalence Resolver.
    Used by TransitionEngine, IntegrityService and InventoryService.  Writes
    no transaction records; callers record one per completed action.

Invariants enforced:
    - SINGLE_BULK_RECORD: adds land on the existing equivalent record;
      signature changes merge into an existing equivalent record.
    - NON_NEGATIVE_QUANTITY: negative outcomes are refused before any write
      and again by the store's conditional increment.
    - SERIALIZED_NEVER_MERGED: serialized candidates always insert and
      serialized records always update in place.

Failure modes:
    - NegativeQuantityError, NoStockError, InvalidQuantityError.
    - ConsolidationAmbiguityError (strict consolidation only).
    - InventoryNotFoundError, OptimisticLockError, WriteError from the store.

Audit relevance:
    Every consolidation logs ``records_consolidated`` with both ids so a
    merged-away id can be traced to its surviving record.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy.orm import Session

from inventory_kernel.domain.actions import LedgerAction, LedgerOperation
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.equivalence import MatchResult, find_equivalent, touches_equivalence
from inventory_kernel.domain.policy import KernelPolicy
from inventory_kernel.domain.records import InventoryCandidate, InventoryRecord, to_quantity
from inventory_kernel.exceptions import (
    ConsolidationAmbiguityError,
    DuplicateSignatureError,
    InvalidQuantityError,
    NegativeQuantityError,
    NoStockError,
    OptimisticLockError,
)
from inventory_kernel.invariants import KernelInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.record_store import RecordStore

logger = get_logger("services.quantity_ledger")


@dataclass(frozen=True)
class LedgerOutcome:
    """
    Result of one ledger operation.

    ``record`` is the surviving record after the operation.  ``previous`` is
    the record the operation started from (None when one was created).
    ``consolidated_from`` is the id merged away by a consolidation.
    ``duplicate_ids`` lists excess matches seen when the store already held
    duplicates for the signature.
    """

    record: InventoryRecord
    action: LedgerAction
    previous: InventoryRecord | None = None
    consolidated_from: int | None = None
    duplicate_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class TransferOutcome:
    """Result of moving part (or all) of a record to another signature."""

    source_before: InventoryRecord
    source_after: InventoryRecord | None
    target: LedgerOutcome
    quantity: Decimal


class QuantityLedger:
    """
    Applies quantity changes under the consolidation rules.

    Contract:
        All writes go through the RecordStore in the caller's transaction;
        the ledger never commits.

    Non-goals:
        - Does NOT check status/location preconditions (TransitionEngine).
        - Does NOT record transactions.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        policy: KernelPolicy | None = None,
        store: RecordStore | None = None,
    ):
        self._session = session
        self._policy = policy or KernelPolicy()
        self._store = store or RecordStore(session, clock)

    @property
    def store(self) -> RecordStore:
        return self._store

    # -- resolution --------------------------------------------------------

    def resolve(
        self,
        candidate: InventoryCandidate | InventoryRecord,
        exclude_id: int | None = None,
    ) -> MatchResult:
        """
        Find the existing record equivalent to ``candidate``.

        Duplicates already in the store are reported, and the lowest id is
        used as the target unless strict consolidation is configured.
        """
        if candidate.is_serialized:
            return MatchResult(signature=candidate.signature)

        rows = self._store.find_by_signature(candidate.signature)
        result = find_equivalent(candidate, rows, exclude_id=exclude_id)
        if result.is_ambiguous:
            matching_ids = [r.id for r in result.matches]
            logger.warning(
                "consolidation_ambiguity",
                extra={
                    "invariant": KernelInvariant.SINGLE_BULK_RECORD.value,
                    "signature": str(result.signature),
                    "matching_ids": matching_ids,
                    "target_id": result.match.id,
                    "strict": self._policy.strict_consolidation,
                },
            )
            if self._policy.strict_consolidation:
                raise ConsolidationAmbiguityError(str(result.signature), matching_ids)
        return result

    # -- apply_delta -------------------------------------------------------

    def apply_delta(
        self,
        candidate: InventoryCandidate,
        delta: Decimal,
        operation: LedgerOperation,
    ) -> LedgerOutcome:
        """
        Add to or subtract from the record equivalent to ``candidate``.

        Args:
            candidate: Signature (and optional serials) to resolve.
            delta: Non-negative amount; direction comes from ``operation``.
            operation: ADD or SUBTRACT.

        Returns:
            LedgerOutcome with action CREATED or UPDATED.

        Raises:
            NegativeQuantityError: ``delta`` < 0, or the result would be < 0.
            NoStockError: SUBTRACT and no equivalent record exists.
            InvalidQuantityError: ``delta`` is not a number.
            InvalidFieldError: ``candidate`` lacks a required signature field.
        """
        delta = to_quantity(delta)
        operation = LedgerOperation(operation)
        if delta < 0:
            raise NegativeQuantityError(None, None, delta)

        if candidate.is_serialized:
            if operation is LedgerOperation.SUBTRACT:
                raise NoStockError(str(candidate.signature), delta)
            record = self._store.insert(candidate, delta)
            self._log_delta(record, operation, delta, LedgerAction.CREATED)
            return LedgerOutcome(record=record, action=LedgerAction.CREATED)

        match = self.resolve(candidate)
        if match.found:
            return self._apply_to_existing(match, operation, delta)

        if operation is LedgerOperation.SUBTRACT:
            raise NoStockError(str(candidate.signature), delta)

        try:
            record = self._store.insert(candidate, delta)
        except DuplicateSignatureError:
            # Another transaction created the signature first.
            logger.info(
                "creation_race_resolved_as_update",
                extra={"signature": str(candidate.signature)},
            )
            match = self.resolve(candidate)
            if not match.found:
                raise
            return self._apply_to_existing(match, operation, delta)

        self._log_delta(record, operation, delta, LedgerAction.CREATED)
        return LedgerOutcome(record=record, action=LedgerAction.CREATED)

    def _apply_to_existing(
        self,
        match: MatchResult,
        operation: LedgerOperation,
        delta: Decimal,
    ) -> LedgerOutcome:
        existing = match.match
        signed = delta if operation is LedgerOperation.ADD else -delta
        if existing.quantity + signed < 0:
            raise NegativeQuantityError(existing.id, existing.quantity, signed)

        record = self._store.increment_quantity(existing.id, signed)
        self._log_delta(record, operation, delta, LedgerAction.UPDATED)
        return LedgerOutcome(
            record=record,
            action=LedgerAction.UPDATED,
            previous=existing,
            duplicate_ids=tuple(r.id for r in match.excess),
        )

    def _log_delta(
        self,
        record: InventoryRecord,
        operation: LedgerOperation,
        delta: Decimal,
        action: LedgerAction,
    ) -> None:
        logger.info(
            "delta_applied",
            extra={
                "inventory_id": record.id,
                "operation": operation.value,
                "delta": str(delta),
                "quantity": str(record.quantity),
                "ledger_action": action.value,
            },
        )

    # -- update with consolidation ----------------------------------------

    def update_with_consolidation_check(
        self,
        inventory_id: int,
        field_updates: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> LedgerOutcome:
        """
        Update a record; merge it into an equivalent record if the update
        moves it onto an existing bulk signature.

        Returns:
            LedgerOutcome with action UPDATED (in place) or CONSOLIDATED
            (``record`` is the merge target, the source row is gone).
        """
        current = self._store.require(inventory_id)
        version = expected_version if expected_version is not None else current.version
        proposed = current.with_updates(field_updates)

        # A record that loses its serials becomes bulk and must merge like one.
        becomes_bulk = current.is_serialized and not proposed.is_serialized
        if proposed.is_serialized or not (becomes_bulk or touches_equivalence(field_updates)):
            record = self._store.update(inventory_id, field_updates, expected_version=version)
            return LedgerOutcome(record=record, action=LedgerAction.UPDATED, previous=current)

        match = self.resolve(proposed, exclude_id=inventory_id)
        if match.found:
            return self._consolidate(current, proposed, match, version)

        try:
            record = self._store.update(inventory_id, field_updates, expected_version=version)
        except DuplicateSignatureError:
            match = self.resolve(proposed, exclude_id=inventory_id)
            if not match.found:
                raise
            return self._consolidate(current, proposed, match, version)
        return LedgerOutcome(record=record, action=LedgerAction.UPDATED, previous=current)

    def _consolidate(
        self,
        current: InventoryRecord,
        proposed: InventoryRecord,
        match: MatchResult,
        version: int,
    ) -> LedgerOutcome:
        target = match.match
        # Delete first so the source's key is free before the target changes.
        self._store.delete(current.id, expected_version=version)
        merged = self._store.increment_quantity(target.id, proposed.quantity)

        logger.info(
            "records_consolidated",
            extra={
                "invariant": KernelInvariant.SINGLE_BULK_RECORD.value,
                "source_id": current.id,
                "target_id": target.id,
                "moved_quantity": str(proposed.quantity),
                "combined_quantity": str(merged.quantity),
            },
        )
        return LedgerOutcome(
            record=merged,
            action=LedgerAction.CONSOLIDATED,
            previous=current,
            consolidated_from=current.id,
            duplicate_ids=tuple(r.id for r in match.excess),
        )

    # -- transfer ----------------------------------------------------------

    def transfer(
        self,
        source_id: int,
        target_updates: Mapping[str, Any],
        quantity: Decimal,
        expected_version: int | None = None,
    ) -> TransferOutcome:
        """
        Move ``quantity`` from a record to the signature obtained by applying
        ``target_updates`` to it.

        Moving the full quantity relocates the record itself (with
        consolidation); a partial move subtracts from the source and adds to
        the target signature.
        """
        quantity = to_quantity(quantity)
        source = self._store.require(source_id)
        if expected_version is not None and source.version != expected_version:
            raise OptimisticLockError("Inventory", source_id, expected_version)
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "transfer quantity must be positive")
        if quantity > source.quantity:
            raise NegativeQuantityError(source.id, source.quantity, -quantity)

        if quantity == source.quantity:
            target = self.update_with_consolidation_check(
                source_id, target_updates, expected_version=source.version
            )
            return TransferOutcome(
                source_before=source,
                source_after=None if target.action is LedgerAction.CONSOLIDATED else target.record,
                target=target,
                quantity=quantity,
            )

        if source.is_serialized:
            raise InvalidQuantityError(quantity, "serialized records move whole")

        remaining = self._store.increment_quantity(source.id, -quantity)
        candidate = source.as_candidate().with_changes(**target_updates)
        target = self.apply_delta(candidate, quantity, LedgerOperation.ADD)
        if target.record.id == source.id:
            remaining = target.record

        logger.info(
            "quantity_transferred",
            extra={
                "source_id": source.id,
                "target_id": target.record.id,
                "quantity": str(quantity),
                "remaining": str(remaining.quantity),
            },
        )
        return TransferOutcome(
            source_before=source,
            source_after=remaining,
            target=target,
            quantity=quantity,
        )
