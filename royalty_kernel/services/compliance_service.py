"""
ComplianceService -- LMK reporting lifecycle.

Responsibility:
    Applies the regulator's answer to a reported transaction:
    REPORTED -> CONFIRMED or REPORTED -> DISPUTED.  The earlier
    PENDING -> REPORTED move belongs to PaymentService.complete_payment.

Architecture position:
    Kernel > Services.  Called by the compliance collaborator through
    services/callbacks.py.

Invariants enforced:
    - Both transitions are single UPDATEs guarded on
      reporting_status == REPORTED and a settled payment_status, so the
      reporting lifecycle can never run ahead of settlement.
    - A stale or duplicate signal changes nothing and returns False.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.values import AuditAction, ReportingStatus
from royalty_kernel.domain.workflows import REPORTING_WORKFLOW, SETTLED_PAYMENT_STATES
from royalty_kernel.logging_config import get_logger
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.services.audit_trail_service import AuditTrailService
from royalty_kernel.services.base import TransactionStateService

logger = get_logger("services.compliance")

_SETTLED = tuple(s.value for s in SETTLED_PAYMENT_STATES)


class ComplianceService(TransactionStateService):
    """Reporting state machine over RoyaltyTransaction.reporting_status."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._audit = audit or AuditTrailService(session, self._clock)

    def _advance(self, transaction_id: UUID, action: str, **values) -> bool:
        transition = REPORTING_WORKFLOW.transition_for(action)
        return self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.reporting_status == transition.from_state,
            RoyaltyTransaction.payment_status.in_(_SETTLED),
            reporting_status=transition.to_state,
            **values,
        )

    def confirm_report(
        self,
        transaction_id: UUID,
        confirmation_number: str,
        lmk_report_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> bool:
        """REPORTED -> CONFIRMED.  False when the signal is stale."""
        values = {
            "lmk_confirmation_number": confirmation_number,
            "updated_by_id": actor_id,
        }
        if lmk_report_id is not None:
            values["lmk_report_id"] = lmk_report_id

        if not self._advance(transaction_id, "confirm", **values):
            logger.info(
                "lmk_confirmation_dropped",
                extra={"transaction_id": str(transaction_id)},
            )
            return False

        self._audit.append(
            transaction_id,
            AuditAction.LMK_CONFIRMED,
            actor_id=actor_id,
            detail=f"LMK confirmed report ({confirmation_number})",
        )
        logger.info(
            "lmk_report_confirmed",
            extra={
                "transaction_id": str(transaction_id),
                "confirmation_number": confirmation_number,
            },
        )
        return True

    def dispute_report(
        self,
        transaction_id: UUID,
        notes: str,
        actor_id: UUID | None = None,
    ) -> bool:
        """REPORTED -> DISPUTED, keeping the regulator's notes."""
        if not self._advance(
            transaction_id,
            "dispute",
            compliance_notes=notes,
            updated_by_id=actor_id,
        ):
            logger.info(
                "lmk_dispute_dropped",
                extra={"transaction_id": str(transaction_id)},
            )
            return False

        self._audit.append(
            transaction_id,
            AuditAction.LMK_DISPUTED,
            actor_id=actor_id,
            detail=f"LMK disputed report: {notes}",
        )
        logger.warning(
            "lmk_report_disputed",
            extra={"transaction_id": str(transaction_id), "status": ReportingStatus.DISPUTED.value},
        )
        return True
