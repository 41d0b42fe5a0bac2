"""
RecordStore -- persistence gateway for inventory rows.

Responsibility:
    The only code that writes ``inventory`` rows.  Converts ORM rows to
    immutable ``InventoryRecord`` snapshots and offers the primitives the
    ledger and transition engine build on: get, find, insert, update,
    delete, and an atomic conditional quantity increment.

Architecture position:
    Kernel > Services.  Used by QuantityLedger, TransitionEngine and
    IntegrityService.

Invariants enforced:
    - NON_NEGATIVE_QUANTITY: ``increment_quantity`` is a single
      ``UPDATE ... SET quantity = quantity + :delta WHERE quantity + :delta >= 0``
      so concurrent deltas compose instead of overwriting each other.
    - SINGLE_BULK_RECORD: every insert/update recomputes ``equivalence_key``;
      the UNIQUE index rejects a second bulk row with the same signature
      (surfaced as DuplicateSignatureError).
    - Every write bumps ``version``; ``expected_version`` turns an update or
      delete into a compare-and-set.

Failure modes:
    - InventoryNotFoundError: id does not exist.
    - NegativeQuantityError: conditional increment refused.
    - OptimisticLockError: ``expected_version`` did not match.
    - DuplicateSignatureError: equivalence key already taken.
    - WriteError: any other SQLAlchemy error.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.equivalence import equivalence_key
from inventory_kernel.domain.records import (
    EQUIVALENCE_FIELDS,
    UPDATABLE_FIELDS,
    EquivalenceSignature,
    InventoryCandidate,
    InventoryRecord,
    to_quantity,
)
from inventory_kernel.exceptions import (
    DuplicateSignatureError,
    InvalidFieldError,
    InventoryNotFoundError,
    NegativeQuantityError,
    OptimisticLockError,
    WriteError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory import InventoryRow
from inventory_kernel.selectors.inventory_selector import record_from_row
from inventory_kernel.services.base import BaseService

logger = get_logger("services.record_store")

_FILTERABLE_FIELDS = frozenset(EQUIVALENCE_FIELDS + ("id", "equivalence_key"))


def _is_key_violation(exc: IntegrityError) -> bool:
    return "equivalence_key" in str(exc.orig)


class RecordStore(BaseService[InventoryRow]):
    """
    Read/write access to inventory rows.

    Contract:
        Returns ``InventoryRecord`` snapshots, never ORM objects.  Reads
        always go to the database (identity map is refreshed) because rows
        are changed with set-based UPDATEs.

    Non-goals:
        - Does NOT decide whether to merge or create (QuantityLedger does).
        - Does NOT write transaction records.
    """

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session)
        self._clock = clock

    # -- reads -------------------------------------------------------------

    def get(self, inventory_id: int) -> InventoryRecord | None:
        row = self.session.get(InventoryRow, inventory_id, populate_existing=True)
        return record_from_row(row) if row is not None else None

    def require(self, inventory_id: int) -> InventoryRecord:
        record = self.get(inventory_id)
        if record is None:
            raise InventoryNotFoundError(inventory_id)
        return record

    def find(self, criteria: Mapping[str, Any]) -> list[InventoryRecord]:
        """
        Rows whose columns equal ``criteria`` (None matches NULL), by id.
        """
        unknown = set(criteria) - _FILTERABLE_FIELDS
        if unknown:
            raise InvalidFieldError(unknown, "Cannot filter inventory on")

        stmt = select(InventoryRow)
        for name, value in criteria.items():
            column = getattr(InventoryRow, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.order_by(InventoryRow.id).execution_options(populate_existing=True)
        return [record_from_row(row) for row in self.session.scalars(stmt)]

    def find_by_signature(self, signature: EquivalenceSignature) -> list[InventoryRecord]:
        """All rows (serialized included) carrying ``signature``'s fields."""
        return self.find(signature.as_filter())

    def list_records(self, sloc_id: int | None = None) -> list[InventoryRecord]:
        stmt = select(InventoryRow)
        if sloc_id is not None:
            stmt = stmt.where(InventoryRow.sloc_id == sloc_id)
        stmt = stmt.order_by(InventoryRow.id).execution_options(populate_existing=True)
        return [record_from_row(row) for row in self.session.scalars(stmt)]

    # -- writes ------------------------------------------------------------

    def insert(self, candidate: InventoryCandidate, quantity: Decimal) -> InventoryRecord:
        """Insert a new row with ``quantity`` and return its snapshot."""
        quantity = to_quantity(quantity)
        if quantity < 0:
            raise NegativeQuantityError(None, Decimal(0), quantity)

        now = self._clock.now()
        row = InventoryRow(
            **candidate.as_values(),
            quantity=quantity,
            equivalence_key=equivalence_key(candidate),
            version=1,
            created_at=now,
            updated_at=now,
        )
        try:
            with self.session.begin_nested():
                self.session.add(row)
                self.session.flush()
        except IntegrityError as exc:
            if _is_key_violation(exc):
                raise DuplicateSignatureError("insert", str(candidate.signature)) from exc
            raise WriteError("insert", "Inventory", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise WriteError("insert", "Inventory", str(exc)) from exc

        logger.debug(
            "inventory_inserted",
            extra={"inventory_id": row.id, "quantity": str(quantity)},
        )
        return record_from_row(row)

    def update(
        self,
        inventory_id: int,
        patch: Mapping[str, Any],
        expected_version: int | None = None,
    ) -> InventoryRecord:
        """
        Apply ``patch`` to a row, recomputing its equivalence key.

        With ``expected_version`` the write only happens if the row still
        has that version.
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidFieldError(unknown, "Fields not updatable")

        current = self.require(inventory_id)
        if expected_version is not None and current.version != expected_version:
            raise OptimisticLockError("Inventory", inventory_id, expected_version)

        proposed = current.with_updates(patch)
        if proposed.quantity < 0:
            raise NegativeQuantityError(inventory_id, current.quantity, proposed.quantity - current.quantity)

        values = dict(patch)
        if "quantity" in values:
            values["quantity"] = proposed.quantity
        values["equivalence_key"] = equivalence_key(proposed)
        values["version"] = InventoryRow.version + 1
        values["updated_at"] = self._clock.now()

        stmt = (
            update(InventoryRow)
            .where(InventoryRow.id == inventory_id)
            .where(InventoryRow.version == current.version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        rowcount = self._execute_write("update", stmt, str(proposed.signature))
        if rowcount == 0:
            self._raise_missing_or_stale(inventory_id, current.version)

        logger.debug(
            "inventory_updated",
            extra={"inventory_id": inventory_id, "fields": sorted(patch)},
        )
        return self.require(inventory_id)

    def increment_quantity(self, inventory_id: int, delta: Decimal) -> InventoryRecord:
        """
        Atomically add ``delta`` (may be negative) to a row's quantity.

        The guard ``quantity + delta >= 0`` is evaluated by the database
        against the committed value, so two concurrent increments both land.
        """
        delta = to_quantity(delta)
        stmt = (
            update(InventoryRow)
            .where(InventoryRow.id == inventory_id)
            .where(InventoryRow.quantity + delta >= 0)
            .values(
                quantity=InventoryRow.quantity + delta,
                version=InventoryRow.version + 1,
                updated_at=self._clock.now(),
            )
            .execution_options(synchronize_session=False)
        )
        rowcount = self._execute_write("increment", stmt, str(inventory_id))
        if rowcount == 0:
            current = self.require(inventory_id)
            raise NegativeQuantityError(inventory_id, current.quantity, delta)

        logger.debug(
            "inventory_quantity_incremented",
            extra={"inventory_id": inventory_id, "delta": str(delta)},
        )
        return self.require(inventory_id)

    def delete(self, inventory_id: int, expected_version: int | None = None) -> None:
        stmt = delete(InventoryRow).where(InventoryRow.id == inventory_id)
        if expected_version is not None:
            stmt = stmt.where(InventoryRow.version == expected_version)
        stmt = stmt.execution_options(synchronize_session=False)

        rowcount = self._execute_write("delete", stmt, str(inventory_id))
        if rowcount == 0:
            self._raise_missing_or_stale(inventory_id, expected_version)

        row = self.session.identity_map.get(self.session.identity_key(InventoryRow, inventory_id))
        if row is not None:
            self.session.expunge(row)

        logger.debug("inventory_deleted", extra={"inventory_id": inventory_id})

    # -- helpers -----------------------------------------------------------

    def _execute_write(self, operation: str, stmt, signature: str) -> int:
        try:
            with self.session.begin_nested():
                result = self.session.execute(stmt)
        except IntegrityError as exc:
            if _is_key_violation(exc):
                raise DuplicateSignatureError(operation, signature) from exc
            raise WriteError(operation, "Inventory", str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            raise WriteError(operation, "Inventory", str(exc)) from exc
        return result.rowcount

    def _raise_missing_or_stale(self, inventory_id: int, expected_version: int | None) -> None:
        if self.get(inventory_id) is None:
            raise InventoryNotFoundError(inventory_id)
        raise OptimisticLockError("Inventory", inventory_id, expected_version)
