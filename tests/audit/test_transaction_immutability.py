"""
Audit trail tests.

Verifies:
- Transaction rows cannot be updated or deleted through the ORM
- Every successful action appends exactly one row; failed actions append none
- History survives deletion of the inventory row
"""

from decimal import Decimal

import pytest

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.inventory_transaction import InventoryTransaction


@pytest.fixture
def recorded(engine, make_record, session):
    record = make_record(10)
    outcome = engine.adjust(record.id, Decimal(8), reason="cycle count")
    return session.get(InventoryTransaction, outcome.transaction_id)


class TestAppendOnly:
    def test_update_blocked(self, session, recorded, captured_logs):
        recorded.notes = "rewritten"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        blocked = next(r for r in captured_logs() if r["message"] == "immutability_violation_blocked")
        assert blocked["operation"] == "UPDATE"
        assert blocked["invariant"] == "append_only_transactions"

    def test_delete_blocked(self, session, recorded):
        session.delete(recorded)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestOneTransactionPerAction:
    def test_success_appends_one(self, inventory_service, make_candidate, transaction_selector, ref_ids):
        received = inventory_service.apply_delta(make_candidate(), Decimal(10))
        inventory_service.assign_area(received.record.id, ref_ids.area)
        inventory_service.adjust(received.record.id, Decimal(12))

        assert transaction_selector.count() == 3

    def test_failure_appends_none(self, inventory_service, make_candidate, transaction_selector, ref_ids):
        received = inventory_service.apply_delta(make_candidate(), Decimal(10))
        inventory_service.issue(received.record.id)
        inventory_service.adjust(received.record.id, Decimal(-1))
        inventory_service.assign_area(received.record.id, 55555)

        assert transaction_selector.count() == 1

    def test_history_outlives_record(self, inventory_service, make_candidate, transaction_selector, inventory_selector):
        received = inventory_service.apply_delta(make_candidate(), Decimal(10))
        inventory_service.remove(received.record.id, notes="scrapped")

        assert inventory_selector.get(received.record.id) is None
        history = transaction_selector.history(received.record.id)
        assert [t.transaction_type for t in history] == ["RECEIVE", "REMOVE"]
        assert history[-1].item_type_name == "Fiber 144ct"
        assert history[-1].notes == "scrapped"
