"""
ORM-level immutability of royalty records.

Royalty info on a transaction is frozen from creation; audit entries and
refund records are frozen entirely; none of them can be deleted.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from royalty_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from royalty_kernel.exceptions import ImmutabilityViolationError
from royalty_kernel.models.audit_trail import RoyaltyAuditEntry
from royalty_kernel.models.refund import RoyaltyRefund
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction


@pytest.fixture
def transaction(session, recorded_play) -> RoyaltyTransaction:
    return session.get(RoyaltyTransaction, recorded_play(play_type="commercial"))


class TestRoyaltyTransaction:
    @pytest.mark.parametrize(
        "field,value",
        [
            ("calculated_amount", Decimal("1")),
            ("artist_amount", Decimal("1")),
            ("base_rate", Decimal("1")),
            ("play_type", "background"),
            ("currency", "USD"),
        ],
    )
    def test_royalty_info_is_frozen(self, session, transaction, field, value):
        setattr(transaction, field, value)

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "RoyaltyTransaction"
        assert field in exc_info.value.reason

    def test_lifecycle_columns_may_change(self, session, transaction):
        transaction.compliance_notes = "checked by operator"
        session.flush()

    def test_delete_blocked(self, session, transaction, captured_logs):
        session.delete(transaction)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        assert any(r["message"] == "immutability_violation_blocked" for r in captured_logs())


class TestAuditEntry:
    @pytest.fixture
    def entry(self, session, payments, recorded_play, admin_actor) -> RoyaltyAuditEntry:
        payments.initiate_payment([recorded_play()], admin_actor)
        return session.execute(select(RoyaltyAuditEntry)).scalar_one()

    def test_update_blocked(self, session, entry):
        entry.detail = "rewritten history"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked(self, session, entry):
        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestRefund:
    @pytest.fixture
    def refund(self, session, payments, completed_play, admin_actor) -> RoyaltyRefund:
        transaction_id = completed_play()
        payments.open_dispute(transaction_id, admin_actor, "double charge")
        payments.refund_payment(transaction_id, admin_actor, "double charge")
        return session.execute(select(RoyaltyRefund)).scalar_one()

    def test_amount_frozen(self, session, refund):
        refund.amount = Decimal("1")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_audit_metadata_may_change(self, session, refund, admin_actor):
        refund.updated_by_id = admin_actor.id
        session.flush()

    def test_delete_blocked(self, session, refund):
        session.delete(refund)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


def test_listeners_can_be_removed_and_restored(session, transaction):
    unregister_immutability_listeners()
    try:
        transaction.notes = "maintenance fix"
        transaction.duration = 1
        session.flush()
    finally:
        register_immutability_listeners()

    transaction.duration = 2
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
