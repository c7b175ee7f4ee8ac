"""
ComplianceService: the LMK answer to a reported transaction.

Reporting can only leave PENDING through payment completion, and the LMK
answer only applies to REPORTED transactions.
"""

from uuid import uuid4

from sqlalchemy import select

from royalty_kernel.domain.values import PaymentStatus, ReportingStatus
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction


def _row(session, transaction_id) -> RoyaltyTransaction:
    return session.execute(
        select(RoyaltyTransaction)
        .where(RoyaltyTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    ).scalar_one()


class TestConfirmReport:
    def test_confirm_reported(self, compliance, completed_play, session, selector):
        transaction_id = completed_play()

        assert compliance.confirm_report(transaction_id, "LMK-2024-0001", lmk_report_id="R-9") is True

        row = _row(session, transaction_id)
        assert row.reporting_status == ReportingStatus.CONFIRMED
        assert row.lmk_confirmation_number == "LMK-2024-0001"
        assert row.lmk_report_id == "R-9"
        trail = selector.get_audit_trail(transaction_id)
        assert trail[-1].detail == "LMK confirmed report (LMK-2024-0001)"

    def test_report_id_is_optional(self, compliance, completed_play, session):
        transaction_id = completed_play()

        compliance.confirm_report(transaction_id, "LMK-2")

        assert _row(session, transaction_id).lmk_report_id is None

    def test_cannot_confirm_before_settlement(self, compliance, recorded_play, session, selector):
        transaction_id = recorded_play()

        assert compliance.confirm_report(transaction_id, "LMK-early") is False

        row = _row(session, transaction_id)
        assert row.reporting_status == ReportingStatus.PENDING
        assert row.lmk_confirmation_number is None
        assert selector.get_audit_trail(transaction_id) == ()

    def test_cannot_confirm_while_processing(
        self, compliance, payments, recorded_play, admin_actor, session,
    ):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)

        assert compliance.confirm_report(transaction_id, "LMK-early") is False
        assert _row(session, transaction_id).reporting_status == ReportingStatus.PENDING

    def test_duplicate_confirmation_is_dropped(self, compliance, completed_play, session, captured_logs):
        transaction_id = completed_play()
        compliance.confirm_report(transaction_id, "LMK-1")

        assert compliance.confirm_report(transaction_id, "LMK-2") is False
        assert _row(session, transaction_id).lmk_confirmation_number == "LMK-1"
        assert any(r["message"] == "lmk_confirmation_dropped" for r in captured_logs())

    def test_unknown_transaction(self, compliance):
        assert compliance.confirm_report(uuid4(), "LMK-1") is False

    def test_confirm_after_payment_dispute(
        self, compliance, payments, completed_play, admin_actor, session,
    ):
        transaction_id = completed_play()
        payments.open_dispute(transaction_id, admin_actor, "wrong outlet")

        assert compliance.confirm_report(transaction_id, "LMK-3") is True
        row = _row(session, transaction_id)
        assert row.payment_status == PaymentStatus.DISPUTED
        assert row.reporting_status == ReportingStatus.CONFIRMED


class TestDisputeReport:
    def test_dispute_reported(self, compliance, completed_play, session, selector):
        transaction_id = completed_play()

        assert compliance.dispute_report(transaction_id, "rate mismatch") is True

        row = _row(session, transaction_id)
        assert row.reporting_status == ReportingStatus.DISPUTED
        assert row.compliance_notes == "rate mismatch"
        assert selector.get_audit_trail(transaction_id)[-1].detail == (
            "LMK disputed report: rate mismatch"
        )

    def test_confirmed_cannot_be_disputed(self, compliance, completed_play, session):
        transaction_id = completed_play()
        compliance.confirm_report(transaction_id, "LMK-1")

        assert compliance.dispute_report(transaction_id, "too late") is False
        assert _row(session, transaction_id).reporting_status == ReportingStatus.CONFIRMED

    def test_failed_payment_never_reaches_lmk(
        self, compliance, payments, recorded_play, admin_actor, session,
    ):
        transaction_id = recorded_play()
        payments.initiate_payment([transaction_id], admin_actor)
        payments.fail_payment(transaction_id, "bank offline")

        assert compliance.dispute_report(transaction_id, "n/a") is False
        assert _row(session, transaction_id).reporting_status == ReportingStatus.PENDING
