"""
PaymentService: batch initiation, settlement signals, dispute and refund.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from royalty_kernel.domain.authorization import Action
from royalty_kernel.domain.policy import RoyaltyPolicy
from royalty_kernel.domain.values import (
    AuditAction,
    PaymentMethod,
    PaymentStatus,
    ReportingStatus,
)
from royalty_kernel.exceptions import (
    AuthorizationError,
    InvalidPaymentMethodError,
    InvalidTransitionError,
    TransactionNotFoundError,
    ValidationError,
)
from royalty_kernel.models.refund import RoyaltyRefund
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.services.payment_service import PaymentService, build_reference

EPOCH_MS = 1704110400000  # DeterministicClock default, 2024-01-01T12:00:00Z


def _row(session, transaction_id) -> RoyaltyTransaction:
    return session.execute(
        select(RoyaltyTransaction)
        .where(RoyaltyTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    ).scalar_one()


def _actions(selector, transaction_id) -> list[str]:
    return [e.action.value for e in selector.get_audit_trail(transaction_id)]


def test_build_reference():
    transaction_id = uuid4()
    reference = build_reference("PAY", transaction_id, 42)
    assert reference == f"PAY_42_{transaction_id.hex[-6:]}"


class TestInitiatePayment:
    def test_pending_batch_moves_to_processing(
        self, payments, recorded_play, admin_actor, session, selector, deterministic_clock,
    ):
        first = recorded_play(play_type="commercial")
        second = recorded_play()

        result = payments.initiate_payment([first, second], admin_actor)

        assert result.processed_count == 2
        assert result.total_amount == Decimal("6000")
        assert result.currency == "IDR"
        assert result.transaction_ids == (first, second)
        assert result.skipped_ids == ()

        row = _row(session, first)
        assert row.payment_status == PaymentStatus.PROCESSING
        assert row.payment_method == PaymentMethod.BANK_TRANSFER
        assert row.payment_date == deterministic_clock.now()
        assert row.payment_reference == f"PAY_{EPOCH_MS}_{first.hex[-6:]}"
        assert row.updated_by_id == admin_actor.id

        trail = selector.get_audit_trail(first)
        assert [e.action for e in trail] == [AuditAction.PAYMENT_INITIATED]
        assert trail[0].detail == "Payment processing initiated for 5000 IDR"
        assert trail[0].actor_id == admin_actor.id

    def test_non_pending_ids_are_skipped(self, payments, recorded_play, completed_play, admin_actor):
        done = completed_play()
        fresh = recorded_play()
        unknown = uuid4()

        result = payments.initiate_payment([done, fresh, unknown], admin_actor)

        assert result.processed_count == 1
        assert result.transaction_ids == (fresh,)
        assert set(result.skipped_ids) == {done, unknown}
        assert result.total_amount == Decimal("1000")

    def test_duplicate_ids_count_once(self, payments, recorded_play, admin_actor, selector):
        transaction_id = recorded_play()

        result = payments.initiate_payment([transaction_id, transaction_id], admin_actor)

        assert result.processed_count == 1
        assert _actions(selector, transaction_id) == ["payment_initiated"]

    def test_second_initiation_is_noop(self, payments, recorded_play, admin_actor, selector):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)

        again = payments.initiate_payment([transaction_id], admin_actor)

        assert again.processed_count == 0
        assert again.skipped_ids == (transaction_id,)
        assert _actions(selector, transaction_id) == ["payment_initiated"]

    def test_string_ids_and_method(self, payments, recorded_play, admin_actor, session):
        transaction_id = recorded_play()

        payments.initiate_payment([str(transaction_id)], admin_actor, payment_method="digital_wallet")

        assert _row(session, transaction_id).payment_method == "digital_wallet"

    def test_policy_prefix(self, session, recorded_play, admin_actor, deterministic_clock):
        service = PaymentService(
            session,
            clock=deterministic_clock,
            policy=RoyaltyPolicy(payment_reference_prefix="ROY"),
        )
        transaction_id = recorded_play()

        service.initiate_payment([transaction_id], admin_actor)

        assert _row(session, transaction_id).payment_reference.startswith(f"ROY_{EPOCH_MS}_")

    @pytest.mark.parametrize("ids", [[], (), None, "not-a-list"])
    def test_rejects_empty_or_non_list(self, payments, admin_actor, ids):
        with pytest.raises(ValidationError):
            payments.initiate_payment(ids, admin_actor)

    def test_rejects_malformed_id(self, payments, admin_actor):
        with pytest.raises(ValidationError):
            payments.initiate_payment(["abc"], admin_actor)

    def test_rejects_unknown_method(self, payments, recorded_play, admin_actor, session):
        transaction_id = recorded_play()
        with pytest.raises(InvalidPaymentMethodError) as exc_info:
            payments.initiate_payment([transaction_id], admin_actor, payment_method="cash")
        assert "bank_transfer" in exc_info.value.allowed
        assert _row(session, transaction_id).payment_status == PaymentStatus.PENDING

    def test_non_admin_is_denied_before_validation(
        self, payments, business_actor, recorded_play, captured_logs,
    ):
        transaction_id = recorded_play()
        with pytest.raises(AuthorizationError) as exc_info:
            payments.initiate_payment([transaction_id], business_actor, payment_method="cash")

        assert exc_info.value.action == Action.INITIATE_PAYMENT
        assert any(r["message"] == "payment_action_denied" for r in captured_logs())

    def test_batch_log_carries_batch_id(self, payments, recorded_play, admin_actor, captured_logs):
        payments.initiate_payment([recorded_play()], admin_actor)

        records = [r for r in captured_logs() if r["message"] == "payment_batch_initiated"]
        assert len(records) == 1
        assert records[0]["processed_count"] == 1
        assert records[0]["batch_id"]


class TestSettlementSignals:
    def test_complete_moves_reporting_forward(
        self, payments, recorded_play, admin_actor, session, selector, deterministic_clock,
    ):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)
        deterministic_clock.advance(5)

        assert payments.complete_payment(transaction_id) is True

        row = _row(session, transaction_id)
        assert row.payment_status == PaymentStatus.COMPLETED
        assert row.reporting_status == ReportingStatus.REPORTED
        assert row.reported_at == deterministic_clock.now()
        assert _actions(selector, transaction_id) == ["payment_initiated", "payment_completed"]
        assert selector.get_audit_trail(transaction_id)[1].detail == (
            "Payment completed and reported to LMK"
        )

    def test_complete_without_initiation_is_dropped(self, payments, recorded_play, session, selector):
        transaction_id = recorded_play()

        assert payments.complete_payment(transaction_id) is False

        row = _row(session, transaction_id)
        assert row.payment_status == PaymentStatus.PENDING
        assert row.reporting_status == ReportingStatus.PENDING
        assert _actions(selector, transaction_id) == []

    def test_duplicate_completion_is_dropped(self, payments, completed_play, selector, captured_logs):
        transaction_id = completed_play()

        assert payments.complete_payment(transaction_id) is False
        assert _actions(selector, transaction_id) == ["payment_initiated", "payment_completed"]
        assert any(r["message"] == "payment_completion_dropped" for r in captured_logs())

    def test_complete_unknown_id(self, payments):
        assert payments.complete_payment(uuid4()) is False

    def test_fail_records_reason(self, payments, recorded_play, admin_actor, session, selector):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)

        assert payments.fail_payment(transaction_id, "bank rejected transfer") is True

        row = _row(session, transaction_id)
        assert row.payment_status == PaymentStatus.FAILED
        assert row.failure_reason == "bank rejected transfer"
        assert row.reporting_status == ReportingStatus.PENDING
        assert selector.get_audit_trail(transaction_id)[-1].detail == (
            "Payment failed: bank rejected transfer"
        )

    def test_fail_after_complete_is_dropped(self, payments, completed_play, session):
        transaction_id = completed_play()

        assert payments.fail_payment(transaction_id, "late failure") is False
        assert _row(session, transaction_id).payment_status == PaymentStatus.COMPLETED

    def test_complete_after_fail_is_dropped(self, payments, recorded_play, admin_actor, session):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)
        payments.fail_payment(transaction_id, "timeout")

        assert payments.complete_payment(transaction_id) is False
        assert _row(session, transaction_id).payment_status == PaymentStatus.FAILED

    def test_failed_transaction_cannot_be_reinitiated(self, payments, recorded_play, admin_actor):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)
        payments.fail_payment(transaction_id, "timeout")

        result = payments.initiate_payment([transaction_id], admin_actor)
        assert result.processed_count == 0


class TestDispute:
    def test_open_dispute(self, payments, completed_play, admin_actor, selector):
        transaction_id = completed_play()

        info = payments.open_dispute(transaction_id, admin_actor, "wrong business charged")

        assert info.payment_status == PaymentStatus.DISPUTED
        assert info.reporting_status == ReportingStatus.REPORTED
        assert _actions(selector, transaction_id)[-1] == "payment_disputed"

    def test_dispute_requires_completed(self, payments, recorded_play, admin_actor):
        transaction_id = recorded_play()
        with pytest.raises(InvalidTransitionError) as exc_info:
            payments.open_dispute(transaction_id, admin_actor, "too early")
        assert exc_info.value.current_state == "pending"
        assert exc_info.value.action == "dispute"

    def test_dispute_unknown(self, payments, admin_actor):
        with pytest.raises(TransactionNotFoundError):
            payments.open_dispute(uuid4(), admin_actor, "who?")

    def test_dispute_needs_reason(self, payments, completed_play, admin_actor):
        with pytest.raises(ValidationError):
            payments.open_dispute(completed_play(), admin_actor, "")

    def test_dispute_needs_admin(self, payments, completed_play, artist_actor):
        with pytest.raises(AuthorizationError):
            payments.open_dispute(completed_play(), artist_actor, "not mine")


class TestRefund:
    def _disputed(self, completed_play, payments, admin_actor, **kwargs):
        transaction_id = completed_play(**kwargs)
        payments.open_dispute(transaction_id, admin_actor, "duplicate play")
        return transaction_id

    def test_full_refund(self, payments, completed_play, admin_actor, session, selector):
        transaction_id = self._disputed(completed_play, payments, admin_actor, play_type="commercial")

        refund = payments.refund_payment(transaction_id, admin_actor, "duplicate play")

        assert refund.amount == Decimal("5000")
        assert refund.original_transaction_id == transaction_id
        assert refund.refund_reference == f"REF_{EPOCH_MS}_{transaction_id.hex[-6:]}"

        row = _row(session, transaction_id)
        assert row.payment_status == PaymentStatus.REFUNDED
        assert row.refund_amount == Decimal("5000")
        assert row.calculated_amount == Decimal("5000")

        stored = session.execute(select(RoyaltyRefund)).scalar_one()
        assert stored.id == refund.refund_id
        assert stored.created_by_id == admin_actor.id

        assert selector.get_audit_trail(transaction_id)[-1].detail == (
            "Refunded 5000 IDR: duplicate play"
        )

    def test_partial_refund(self, payments, completed_play, admin_actor):
        transaction_id = self._disputed(completed_play, payments, admin_actor, play_type="commercial")

        refund = payments.refund_payment(transaction_id, admin_actor, "partial", amount=2000)

        assert refund.amount == Decimal("2000")

    @pytest.mark.parametrize("amount", [0, -1, 5001])
    def test_amount_out_of_range(self, payments, completed_play, admin_actor, session, amount):
        transaction_id = self._disputed(completed_play, payments, admin_actor, play_type="commercial")

        with pytest.raises(ValidationError):
            payments.refund_payment(transaction_id, admin_actor, "bad amount", amount=amount)
        assert _row(session, transaction_id).payment_status == PaymentStatus.DISPUTED

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "lots", Decimal("NaN")])
    def test_amount_not_a_number(self, payments, completed_play, admin_actor, session, amount):
        transaction_id = self._disputed(completed_play, payments, admin_actor, play_type="commercial")

        with pytest.raises(ValidationError) as exc_info:
            payments.refund_payment(transaction_id, admin_actor, "bad amount", amount=amount)
        assert exc_info.value.field == "amount"
        assert _row(session, transaction_id).payment_status == PaymentStatus.DISPUTED
        assert session.execute(select(RoyaltyRefund)).first() is None

    def test_refund_requires_dispute(self, payments, completed_play, admin_actor, session):
        transaction_id = completed_play()

        with pytest.raises(InvalidTransitionError):
            payments.refund_payment(transaction_id, admin_actor, "skip dispute")
        assert session.execute(select(RoyaltyRefund)).first() is None

    def test_refund_twice(self, payments, completed_play, admin_actor):
        transaction_id = self._disputed(completed_play, payments, admin_actor)
        payments.refund_payment(transaction_id, admin_actor, "first")

        with pytest.raises(InvalidTransitionError) as exc_info:
            payments.refund_payment(transaction_id, admin_actor, "second")
        assert exc_info.value.current_state == "refunded"

    def test_refund_unknown(self, payments, admin_actor):
        with pytest.raises(TransactionNotFoundError):
            payments.refund_payment(uuid4(), admin_actor, "nothing there")
