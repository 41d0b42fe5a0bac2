"""
Tests for TransitionEngine.

Verifies each named action:
- Applies its documented field changes
- Merges into an existing equivalent record instead of duplicating
- Records exactly one transaction
- Rejects bad preconditions without writing anything
"""

from decimal import Decimal

import pytest

from inventory_kernel.domain.actions import InventoryAction, LedgerAction
from inventory_kernel.domain.lookup import LocationInfo, LookupSnapshot, StatusInfo, WellKnownNames
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvalidStatusTransitionError,
    InventoryNotFoundError,
    LocationTypeMissingError,
    NoCrewAssignedError,
    OverAllocationError,
    ReferenceNotFoundError,
    StatusMissingError,
)
from inventory_kernel.services.transition_engine import Allocation, TransitionEngine


@pytest.fixture
def txn_count(transaction_selector):
    return transaction_selector.count


def _engine_with(session, deterministic_clock, actor, snapshot):
    return TransitionEngine(session, deterministic_clock, snapshot, actor)


class TestQuantityActions:
    def test_adjust(self, engine, make_record, transaction_selector):
        record = make_record(10)
        outcome = engine.adjust(record.id, Decimal(7), reason="count")

        assert outcome.record.quantity == Decimal(7)
        assert outcome.before.quantity == Decimal(10)
        history = transaction_selector.history(record.id)
        assert [t.transaction_type for t in history] == ["ADJUST"]
        assert history[0].old_quantity == Decimal(10)
        assert history[0].notes == "count"

    def test_adjust_negative(self, engine, make_record, txn_count):
        record = make_record(10)
        with pytest.raises(InvalidQuantityError):
            engine.adjust(record.id, Decimal(-1))
        assert txn_count() == 0

    def test_adjust_missing(self, engine, ref_ids):
        with pytest.raises(InventoryNotFoundError):
            engine.adjust(999999, Decimal(1))

    def test_remove(self, engine, store, make_record, transaction_selector):
        record = make_record(10)
        outcome = engine.remove(record.id, notes="damaged")

        assert outcome.record is None
        assert outcome.ledger_action is LedgerAction.DELETED
        assert store.get(record.id) is None
        assert transaction_selector.history(record.id)[0].transaction_type == "REMOVE"

    def test_return_material(self, engine, store, make_record, ref_ids, transaction_selector):
        record = make_record(2, status_id=ref_ids.installed)
        engine.return_material(record.id)

        assert store.get(record.id) is None
        txn = transaction_selector.history(record.id)[0]
        assert (txn.transaction_type, txn.action) == ("RETURN", "Return Material")


class TestIssue:
    def test_issue_whole_record(self, engine, make_record, ref_ids, txn_count):
        record = make_record(10)
        outcome = engine.issue(record.id, crew_id=ref_ids.crew, area_id=ref_ids.area)

        assert outcome.record.id == record.id
        assert outcome.record.location_id == ref_ids.loc_with_crew
        assert outcome.record.assigned_crew_id == ref_ids.crew
        assert outcome.record.area_id == ref_ids.area
        assert txn_count() == 1

    def test_issue_keeps_existing_crew(self, engine, make_record, ref_ids):
        record = make_record(10, assigned_crew_id=ref_ids.crew_2)
        outcome = engine.issue(record.id)
        assert outcome.record.assigned_crew_id == ref_ids.crew_2

    def test_issue_to_explicit_location(self, engine, make_record, ref_ids):
        record = make_record(10)
        outcome = engine.issue(record.id, crew_id=ref_ids.crew, location_id=ref_ids.loc_outgoing)
        assert outcome.record.location_id == ref_ids.loc_outgoing

    def test_issue_merges_into_crew_stock(self, engine, store, make_record, ref_ids, txn_count):
        held = make_record(3, location_id=ref_ids.loc_with_crew, assigned_crew_id=ref_ids.crew)
        record = make_record(10)

        outcome = engine.issue(record.id, crew_id=ref_ids.crew)

        assert outcome.record is None
        assert outcome.ledger_action is LedgerAction.CONSOLIDATED
        assert outcome.consolidated_into.id == held.id
        assert outcome.consolidated_into.quantity == Decimal(13)
        assert outcome.details["consolidated_into"] == held.id
        assert store.get(record.id) is None
        assert txn_count() == 1

    def test_partial_issue(self, engine, make_record, ref_ids, transaction_selector):
        record = make_record(10)
        outcome = engine.issue(record.id, crew_id=ref_ids.crew, quantity=Decimal(4))

        assert outcome.record.quantity == Decimal(6)
        assert outcome.record.location_id == ref_ids.loc_sloc
        (issued,) = outcome.created
        assert issued.quantity == Decimal(4)
        assert issued.location_id == ref_ids.loc_with_crew
        assert transaction_selector.count() == 1

    def test_issue_without_crew(self, engine, make_record, txn_count):
        record = make_record(10)
        with pytest.raises(NoCrewAssignedError):
            engine.issue(record.id)
        assert txn_count() == 0

    def test_issue_unknown_crew(self, engine, make_record):
        record = make_record(10)
        with pytest.raises(ReferenceNotFoundError):
            engine.issue(record.id, crew_id=424242)

    def test_issue_over_quantity(self, engine, make_record, ref_ids):
        record = make_record(10)
        with pytest.raises(OverAllocationError):
            engine.issue(record.id, crew_id=ref_ids.crew, quantity=Decimal(11))

    def test_issue_without_with_crew_location(
        self, session, deterministic_clock, actor, snapshot, make_record, ref_ids
    ):
        bare = LookupSnapshot(
            crews=snapshot.crews,
            locations=[LocationInfo(ref_ids.loc_sloc, "SLOC", location_type_id=None)],
            well_known=WellKnownNames(with_crew_location_type_id=None),
        )
        record = make_record(10)
        with pytest.raises(LocationTypeMissingError):
            _engine_with(session, deterministic_clock, actor, bare).issue(
                record.id, crew_id=ref_ids.crew
            )


class TestLocationActions:
    def test_return_as_reserved(self, engine, make_record, ref_ids):
        record = make_record(
            5, location_id=ref_ids.loc_with_crew, assigned_crew_id=ref_ids.crew
        )
        outcome = engine.return_as_reserved(record.id, ref_ids.sloc_b)

        assert outcome.record.location_id == ref_ids.loc_sloc
        assert outcome.record.sloc_id == ref_ids.sloc_b
        assert outcome.record.assigned_crew_id == ref_ids.crew

    def test_return_as_reserved_unknown_sloc(self, engine, make_record):
        record = make_record(5)
        with pytest.raises(ReferenceNotFoundError):
            engine.return_as_reserved(record.id, 777)

    def test_assign_area(self, engine, make_record, ref_ids):
        record = make_record(5)
        assert engine.assign_area(record.id, ref_ids.area).record.area_id == ref_ids.area

    def test_assign_area_merges(self, engine, make_record, ref_ids):
        target = make_record(1, area_id=ref_ids.area)
        record = make_record(5)

        outcome = engine.assign_area(record.id, ref_ids.area)
        assert outcome.consolidated_into.id == target.id
        assert outcome.consolidated_from == record.id

    def test_reserve_and_unreserve(self, engine, make_record, ref_ids, txn_count):
        record = make_record(5)
        reserved = engine.reserve(record.id, ref_ids.crew)
        assert reserved.record.assigned_crew_id == ref_ids.crew

        released = engine.unreserve(record.id)
        assert released.record.assigned_crew_id is None
        assert txn_count() == 2

    def test_field_install(self, engine, make_record, ref_ids):
        record = make_record(5, location_id=ref_ids.loc_with_crew, status_id=ref_ids.issued)
        outcome = engine.field_install(record.id)

        assert outcome.record.location_id == ref_ids.loc_installed
        assert outcome.record.status_id == ref_ids.installed

    def test_move(self, engine, make_record, ref_ids):
        record = make_record(5)
        assert engine.move(record.id, ref_ids.loc_outgoing).record.location_id == ref_ids.loc_outgoing

    def test_move_unknown_location(self, engine, make_record):
        record = make_record(5)
        with pytest.raises(ReferenceNotFoundError):
            engine.move(record.id, 31337)


class TestStatusActions:
    def test_reject(self, engine, make_record, ref_ids, transaction_selector):
        record = make_record(5, status_id=ref_ids.received)
        outcome = engine.reject(record.id)

        assert outcome.record.status_id == ref_ids.rejected
        txn = transaction_selector.history(record.id)[0]
        assert (txn.old_status_name, txn.status_name) == ("Received", "Rejected")

    def test_reject_without_status(self, session, deterministic_clock, actor, make_record):
        record = make_record(5)
        bare = LookupSnapshot(statuses=[StatusInfo(1, "Received")])
        with pytest.raises(StatusMissingError):
            _engine_with(session, deterministic_clock, actor, bare).reject(record.id)

    def test_inspect_whole(self, engine, make_record, ref_ids):
        record = make_record(10, status_id=ref_ids.received)
        outcome = engine.inspect(record.id)

        assert outcome.record.id == record.id
        assert outcome.record.status_id == ref_ids.available

    def test_inspect_requires_received(self, engine, make_record, txn_count):
        record = make_record(10)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            engine.inspect(record.id)
        assert exc_info.value.current_status == "Available"
        assert txn_count() == 0

    def test_inspect_split(self, engine, store, make_record, ref_ids, transaction_selector):
        record = make_record(10, status_id=ref_ids.received)
        outcome = engine.inspect(record.id, passed_units=Decimal(6), rejected_units=Decimal(1))

        assert outcome.record.quantity == Decimal(3)
        assert outcome.record.status_id == ref_ids.received
        passed, rejected = outcome.created
        assert (passed.status_id, passed.quantity) == (ref_ids.available, Decimal(6))
        assert (rejected.status_id, rejected.quantity) == (ref_ids.rejected, Decimal(1))

        (txn,) = transaction_selector.history(record.id)
        assert txn.after_state["details"] == {"passed_units": "6", "rejected_units": "1"}
        assert len(txn.after_state["created"]) == 2

    def test_inspect_all_units_deletes_source(self, engine, store, make_record, ref_ids):
        existing = make_record(4)
        record = make_record(10, status_id=ref_ids.received)

        outcome = engine.inspect(record.id, passed_units=Decimal(10))

        assert outcome.record is None
        assert outcome.ledger_action is LedgerAction.DELETED
        assert outcome.created[0].id == existing.id
        assert outcome.created[0].quantity == Decimal(14)
        assert store.get(record.id) is None

    def test_inspect_too_many_units(self, engine, make_record, ref_ids):
        record = make_record(5, status_id=ref_ids.received)
        with pytest.raises(InvalidQuantityError):
            engine.inspect(record.id, passed_units=Decimal(4), rejected_units=Decimal(2))

    def test_inspect_zero_units(self, engine, make_record, ref_ids):
        record = make_record(5, status_id=ref_ids.received)
        with pytest.raises(InvalidQuantityError):
            engine.inspect(record.id, passed_units=Decimal(0))

    def test_inspect_serialized_cannot_split(self, engine, make_record, ref_ids):
        record = make_record(1, status_id=ref_ids.received, mfgr_serial_number="SN-5")
        with pytest.raises(InvalidQuantityError):
            engine.inspect(record.id, passed_units=Decimal(1), rejected_units=Decimal(1))

    def test_inspect_serialized_rejected(self, engine, make_record, ref_ids):
        record = make_record(1, status_id=ref_ids.received, mfgr_serial_number="SN-5")
        outcome = engine.inspect(record.id, rejected_units=Decimal(1))

        assert outcome.record.id == record.id
        assert outcome.record.status_id == ref_ids.rejected


class TestAllocate:
    def test_allocate_with_remainder(self, engine, make_record, ref_ids, txn_count):
        record = make_record(10)
        outcome = engine.allocate(
            record.id,
            [Allocation(ref_ids.area, Decimal(3)), Allocation(ref_ids.area_2, "2")],
        )

        assert outcome.record.quantity == Decimal(5)
        assert [(r.area_id, r.quantity) for r in outcome.created] == [
            (ref_ids.area, Decimal(3)),
            (ref_ids.area_2, Decimal(2)),
        ]
        assert outcome.details["allocations"][1] == {"area_id": ref_ids.area_2, "quantity": "2"}
        assert txn_count() == 1

    def test_allocate_everything_deletes_source(self, engine, store, make_record, ref_ids):
        record = make_record(4)
        outcome = engine.allocate(record.id, [Allocation(ref_ids.area, Decimal(4))])

        assert outcome.record is None
        assert store.get(record.id) is None

    def test_allocated_records_never_reuse_source_id(
        self, engine, store, make_record, ref_ids, transaction_selector
    ):
        record = make_record(4)
        outcome = engine.allocate(
            record.id,
            [Allocation(ref_ids.area, Decimal(1)), Allocation(ref_ids.area_2, Decimal(3))],
        )

        created_ids = [r.id for r in outcome.created]
        assert record.id not in created_ids
        assert all(new_id > record.id for new_id in created_ids)
        assert [t.transaction_type for t in transaction_selector.history(record.id)] == [
            "ALLOCATE"
        ]

    def test_allocate_merges_into_area_stock(self, engine, make_record, ref_ids):
        tagged = make_record(1, area_id=ref_ids.area)
        record = make_record(10)

        outcome = engine.allocate(record.id, [Allocation(ref_ids.area, Decimal(3))])
        assert outcome.created[0].id == tagged.id
        assert outcome.created[0].quantity == Decimal(4)

    def test_over_allocation_writes_nothing(self, engine, store, make_record, ref_ids, txn_count):
        record = make_record(5)
        with pytest.raises(OverAllocationError):
            engine.allocate(
                record.id,
                [Allocation(ref_ids.area, Decimal(3)), Allocation(ref_ids.area_2, Decimal(3))],
            )
        assert store.require(record.id).quantity == Decimal(5)
        assert txn_count() == 0

    def test_empty_allocations(self, engine, make_record):
        record = make_record(5)
        with pytest.raises(InvalidQuantityError):
            engine.allocate(record.id, [])

    def test_unknown_area(self, engine, make_record):
        record = make_record(5)
        with pytest.raises(ReferenceNotFoundError):
            engine.allocate(record.id, [Allocation(98765, Decimal(1))])

    def test_serialized_allocated_whole(self, engine, make_record, ref_ids):
        record = make_record(1, tilson_serial_number="T-77")
        outcome = engine.allocate(record.id, [Allocation(ref_ids.area, Decimal(1))])

        assert outcome.record.id == record.id
        assert outcome.record.area_id == ref_ids.area

    def test_serialized_cannot_split(self, engine, make_record, ref_ids):
        record = make_record(2, tilson_serial_number="T-78")
        with pytest.raises(InvalidQuantityError):
            engine.allocate(record.id, [Allocation(ref_ids.area, Decimal(1))])


def test_every_transition_logged(engine, make_record, captured_logs, ref_ids):
    record = make_record(5)
    engine.assign_area(record.id, ref_ids.area)

    applied = [r for r in captured_logs() if r["message"] == "transition_applied"]
    assert applied[0]["action"] == InventoryAction.ASSIGN_AREA.value
