"""
Collaborator callbacks run in their own session and commit on their own.

The fixture session commits its setup first so the callback's session
sees it.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from royalty_kernel.domain.values import PaymentStatus, ReportingStatus
from royalty_kernel.exceptions import ExternalServiceError
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.services.callbacks import ComplianceCallbacks, SettlementCallbacks


def _status(session, transaction_id):
    row = session.execute(
        select(RoyaltyTransaction)
        .where(RoyaltyTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    ).scalar_one()
    return row.payment_status, row.reporting_status


@pytest.fixture
def settlement(session_factory, deterministic_clock):
    return SettlementCallbacks(session_factory, clock=deterministic_clock)


@pytest.fixture
def lmk(session_factory, deterministic_clock):
    return ComplianceCallbacks(session_factory, clock=deterministic_clock)


@pytest.fixture
def processing_play(recorded_play, payments, admin_actor, session):
    transaction_id = recorded_play()
    payments.initiate_payment([transaction_id], admin_actor)
    session.commit()
    return transaction_id


class TestSettlementCallbacks:
    def test_on_complete_commits(self, settlement, processing_play, session):
        assert settlement.on_complete(processing_play) is True
        assert _status(session, processing_play) == ("completed", "reported")

    def test_on_complete_twice(self, settlement, processing_play, session, selector):
        settlement.on_complete(processing_play)

        assert settlement.on_complete(processing_play) is False
        actions = [e.action.value for e in selector.get_audit_trail(processing_play)]
        assert actions.count("payment_completed") == 1

    def test_on_fail(self, settlement, processing_play, session):
        assert settlement.on_fail(processing_play, "insufficient funds") is True
        assert _status(session, processing_play) == (
            PaymentStatus.FAILED, ReportingStatus.PENDING,
        )

    def test_on_fail_with_gateway_error(self, settlement, processing_play, session, captured_logs):
        error = ExternalServiceError("payment gateway", "card declined")

        assert settlement.on_fail(processing_play, error) is True

        row = session.execute(
            select(RoyaltyTransaction)
            .where(RoyaltyTransaction.id == processing_play)
            .execution_options(populate_existing=True)
        ).scalar_one()
        assert row.payment_status == PaymentStatus.FAILED
        assert row.failure_reason == "payment gateway failed: card declined"

        [record] = [r for r in captured_logs() if r["message"] == "settlement_gateway_error"]
        assert record["error_code"] == "EXTERNAL_SERVICE_ERROR"
        assert record["service"] == "payment gateway"
        assert record["transaction_id"] == str(processing_play)

    def test_fail_then_complete(self, settlement, processing_play, session):
        settlement.on_fail(processing_play)

        assert settlement.on_complete(processing_play) is False
        assert _status(session, processing_play)[0] == "failed"

    def test_unknown_transaction(self, settlement):
        assert settlement.on_complete(uuid4()) is False

    def test_callback_logs_carry_transaction_id(self, settlement, processing_play, captured_logs):
        settlement.on_complete(processing_play)

        records = [r for r in captured_logs() if r["message"] == "payment_completed"]
        assert records[0]["transaction_id"] == str(processing_play)


class TestComplianceCallbacks:
    def test_confirm_after_settlement(self, settlement, lmk, processing_play, session):
        settlement.on_complete(processing_play)

        assert lmk.on_confirm(processing_play, "LMK-77", lmk_report_id="R-1") is True
        assert _status(session, processing_play) == ("completed", "confirmed")

    def test_confirm_before_settlement_is_dropped(self, lmk, processing_play, session):
        assert lmk.on_confirm(processing_play, "LMK-77") is False
        assert _status(session, processing_play) == ("processing", "pending")

    def test_dispute(self, settlement, lmk, processing_play, session):
        settlement.on_complete(processing_play)

        assert lmk.on_dispute(processing_play, "unknown outlet") is True
        assert _status(session, processing_play)[1] == "disputed"


class TestCallbackScope:
    def test_error_rolls_back_and_propagates(self, session_factory, deterministic_clock, captured_logs):
        class Boom(Exception):
            pass

        callbacks = SettlementCallbacks(session_factory, clock=deterministic_clock)
        with pytest.raises(Boom):
            with callbacks._scope():
                raise Boom("gateway exploded")

        assert any(r["message"] == "callback_rolled_back" for r in captured_logs())
