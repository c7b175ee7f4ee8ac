"""
PaymentService -- settlement lifecycle of royalty transactions.

Responsibility:
    Drives PAYMENT_WORKFLOW: batch initiation, settlement completion or
    failure, and the manual dispute/refund path.  Completion also moves
    the reporting lifecycle from PENDING to REPORTED.

Architecture position:
    Kernel > Services.  Called by administrators (initiate, dispute,
    refund) and by the settlement collaborator through
    services/callbacks.py (complete, fail).

Invariants enforced:
    - First writer wins: each transition is a single UPDATE guarded on the
      expected current payment_status.  A loser sees zero rows affected.
    - initiate_payment never touches an id that is not PENDING; such ids
      are left out of the batch result, not raised.
    - complete_payment / fail_payment on an id that is not PROCESSING is a
      no-op returning False (stale or duplicate settlement signal).
    - reporting_status leaves PENDING in the same UPDATE that sets
      payment_status to COMPLETED, so reporting never runs ahead of
      settlement.
    - Every successful transition appends exactly one audit entry.
    - Refunds are written as a new RoyaltyRefund row; the original's
      royalty info is never rewritten.

Failure modes:
    - AuthorizationError: caller lacks the admin capability.
    - ValidationError / InvalidPaymentMethodError: malformed request.
    - TransactionNotFoundError, InvalidTransitionError: only from the
      single-record operator actions (dispute, refund).

Audit relevance:
    Audit details match what operators see in the ledger:
    "Payment processing initiated for <amount> <currency>" and
    "Payment completed and reported to LMK".
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from royalty_kernel.db.types import money_to_str, to_decimal
from royalty_kernel.domain.authorization import (
    Action,
    Authorizer,
    RoleCapabilityAuthorizer,
)
from royalty_kernel.domain.catalog import Actor
from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.dtos import PaymentBatchResult, RefundInfo, TransactionInfo
from royalty_kernel.domain.policy import DEFAULT_POLICY, RoyaltyPolicy
from royalty_kernel.domain.values import (
    AuditAction,
    PaymentMethod,
    PaymentStatus,
    ReportingStatus,
    parse_enum,
)
from royalty_kernel.domain.workflows import PAYMENT_WORKFLOW
from royalty_kernel.exceptions import (
    AuthorizationError,
    InvalidPaymentMethodError,
    InvalidTransitionError,
    TransactionNotFoundError,
    ValidationError,
)
from royalty_kernel.logging_config import LogContext, get_logger
from royalty_kernel.models.refund import RoyaltyRefund
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.services.audit_trail_service import AuditTrailService
from royalty_kernel.services.base import TransactionStateService

logger = get_logger("services.payment")

_ZERO = Decimal("0")


def build_reference(prefix: str, transaction_id: UUID, epoch_ms: int) -> str:
    """``<prefix>_<epoch-ms>_<last 6 hex digits of the id>``."""
    return f"{prefix}_{epoch_ms}_{transaction_id.hex[-6:]}"


class PaymentService(TransactionStateService):
    """Settlement state machine over RoyaltyTransaction.payment_status."""

    def __init__(
        self,
        session: Session,
        authorizer: Authorizer | None = None,
        clock: Clock | None = None,
        policy: RoyaltyPolicy | None = None,
        audit: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._authorizer = authorizer or RoleCapabilityAuthorizer()
        self._policy = policy or DEFAULT_POLICY
        self._audit = audit or AuditTrailService(session, self._clock)

    def _require(self, actor: Actor, action: str) -> None:
        if not self._authorizer.authorize(actor, action):
            logger.warning(
                "payment_action_denied",
                extra={"actor_id": str(actor.id), "action": action},
            )
            raise AuthorizationError(str(actor.id), action, reason="admin role required")

    def _parse_method(self, payment_method: PaymentMethod | str | None) -> PaymentMethod:
        if payment_method is None:
            return self._policy.default_payment_method
        method = parse_enum(PaymentMethod, payment_method)
        if method is None:
            raise InvalidPaymentMethodError(
                str(payment_method), tuple(m.value for m in PaymentMethod),
            )
        return method

    # ------------------------------------------------------------------
    # Batch initiation
    # ------------------------------------------------------------------

    def initiate_payment(
        self,
        transaction_ids: list[UUID],
        actor: Actor,
        payment_method: PaymentMethod | str | None = None,
    ) -> PaymentBatchResult:
        """
        Move every PENDING id in the batch to PROCESSING.

        Ids that are not PENDING (or unknown) are skipped: they do not
        count toward ``processed_count`` and are listed in ``skipped_ids``.
        Duplicate ids count once.
        """
        self._require(actor, Action.INITIATE_PAYMENT)
        if not isinstance(transaction_ids, (list, tuple)) or not transaction_ids:
            raise ValidationError(
                "transaction_ids must be a non-empty list", field="transaction_ids",
            )
        method = self._parse_method(payment_method)
        try:
            ids = [t if isinstance(t, UUID) else UUID(str(t)) for t in transaction_ids]
        except ValueError as exc:
            raise ValidationError(
                f"malformed transaction id in batch: {exc}", field="transaction_ids",
            ) from exc

        now = self._clock.now()
        epoch_ms = int(now.timestamp() * 1000)
        batch_id = uuid4()
        processed: list[UUID] = []
        skipped: list[UUID] = []
        total = _ZERO

        with LogContext.bind(batch_id=str(batch_id), actor_id=str(actor.id)):
            for transaction_id in dict.fromkeys(ids):
                won = self._compare_and_swap(
                    transaction_id,
                    RoyaltyTransaction.payment_status == PaymentStatus.PENDING.value,
                    payment_status=PaymentStatus.PROCESSING.value,
                    payment_date=now,
                    payment_method=method.value,
                    payment_reference=build_reference(
                        self._policy.payment_reference_prefix, transaction_id, epoch_ms,
                    ),
                    updated_by_id=actor.id,
                )
                if not won:
                    skipped.append(transaction_id)
                    logger.info(
                        "payment_initiation_skipped",
                        extra={"transaction_id": str(transaction_id)},
                    )
                    continue

                row = self._load(transaction_id)
                total += row.calculated_amount
                processed.append(transaction_id)
                self._audit.append(
                    transaction_id,
                    AuditAction.PAYMENT_INITIATED,
                    actor_id=actor.id,
                    detail=(
                        f"Payment processing initiated for "
                        f"{money_to_str(row.calculated_amount)} {row.currency}"
                    ),
                    occurred_at=now,
                )

            logger.info(
                "payment_batch_initiated",
                extra={
                    "requested": len(transaction_ids),
                    "processed_count": len(processed),
                    "skipped_count": len(skipped),
                    "total_amount": str(total),
                    "payment_method": method.value,
                },
            )

        return PaymentBatchResult(
            processed_count=len(processed),
            total_amount=total,
            currency=self._policy.currency,
            transaction_ids=tuple(processed),
            skipped_ids=tuple(skipped),
        )

    # ------------------------------------------------------------------
    # Settlement signals
    # ------------------------------------------------------------------

    def complete_payment(self, transaction_id: UUID, actor_id: UUID | None = None) -> bool:
        """
        PROCESSING -> COMPLETED, and reporting PENDING -> REPORTED.

        Returns False without changing anything when the transaction is no
        longer PROCESSING (or does not exist).
        """
        now = self._clock.now()
        won = self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.payment_status == PaymentStatus.PROCESSING.value,
            payment_status=PaymentStatus.COMPLETED.value,
            payment_date=now,
            reporting_status=ReportingStatus.REPORTED.value,
            reported_at=now,
            updated_by_id=actor_id,
        )
        if not won:
            logger.info(
                "payment_completion_dropped",
                extra={"transaction_id": str(transaction_id)},
            )
            return False

        self._audit.append(
            transaction_id,
            AuditAction.PAYMENT_COMPLETED,
            actor_id=actor_id,
            detail="Payment completed and reported to LMK",
        )
        logger.info("payment_completed", extra={"transaction_id": str(transaction_id)})
        return True

    def fail_payment(
        self,
        transaction_id: UUID,
        reason: str,
        actor_id: UUID | None = None,
    ) -> bool:
        """PROCESSING -> FAILED, storing ``reason``.  False if stale."""
        won = self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.payment_status == PaymentStatus.PROCESSING.value,
            payment_status=PaymentStatus.FAILED.value,
            failure_reason=reason,
            updated_by_id=actor_id,
        )
        if not won:
            logger.info(
                "payment_failure_dropped",
                extra={"transaction_id": str(transaction_id)},
            )
            return False

        self._audit.append(
            transaction_id,
            AuditAction.PAYMENT_FAILED,
            actor_id=actor_id,
            detail=f"Payment failed: {reason}",
        )
        logger.warning(
            "payment_failed",
            extra={"transaction_id": str(transaction_id), "reason": reason},
        )
        return True

    # ------------------------------------------------------------------
    # Manual operator actions
    # ------------------------------------------------------------------

    def _raise_for_miss(self, transaction_id: UUID, action: str) -> None:
        row = self._load(transaction_id)
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))
        raise InvalidTransitionError(
            str(transaction_id), PAYMENT_WORKFLOW.name, row.payment_status, action,
        )

    def open_dispute(self, transaction_id: UUID, actor: Actor, reason: str) -> TransactionInfo:
        """
        COMPLETED -> DISPUTED.

        Raises:
            AuthorizationError, ValidationError, TransactionNotFoundError,
            InvalidTransitionError.
        """
        self._require(actor, Action.RESOLVE_DISPUTE)
        if not reason:
            raise ValidationError("dispute reason is required", field="reason")

        transition = PAYMENT_WORKFLOW.transition_for("dispute")
        now = self._clock.now()
        won = self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.payment_status == transition.from_state,
            payment_status=transition.to_state,
            dispute_reason=reason,
            updated_by_id=actor.id,
        )
        if not won:
            self._raise_for_miss(transaction_id, transition.action)

        self._audit.append(
            transaction_id,
            AuditAction.PAYMENT_DISPUTED,
            actor_id=actor.id,
            detail=f"Payment disputed: {reason}",
        )
        logger.info(
            "payment_disputed",
            extra={"transaction_id": str(transaction_id), "actor_id": str(actor.id)},
        )
        return self._load(transaction_id).to_dto(now, self._policy.payment_term_days)

    def refund_payment(
        self,
        transaction_id: UUID,
        actor: Actor,
        reason: str,
        amount: Decimal | int | str | None = None,
    ) -> RefundInfo:
        """
        DISPUTED -> REFUNDED, writing a RoyaltyRefund correction record.

        ``amount`` defaults to the full calculated amount and must lie in
        (0, calculated_amount].
        """
        self._require(actor, Action.RESOLVE_DISPUTE)
        if not reason:
            raise ValidationError("refund reason is required", field="reason")

        row = self._load(transaction_id)
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))

        if amount is None:
            refund_amount = row.calculated_amount
        else:
            try:
                refund_amount = to_decimal(amount)
            except ValueError as exc:
                raise ValidationError(str(exc), field="amount") from exc
        if refund_amount <= _ZERO or refund_amount > row.calculated_amount:
            raise ValidationError(
                f"refund amount {refund_amount} must be positive and at most "
                f"{row.calculated_amount}",
                field="amount",
            )

        transition = PAYMENT_WORKFLOW.transition_for("refund")
        now = self._clock.now()
        reference = build_reference("REF", transaction_id, int(now.timestamp() * 1000))
        won = self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.payment_status == transition.from_state,
            payment_status=transition.to_state,
            refund_date=now,
            refund_amount=refund_amount,
            refund_reason=reason,
            refund_reference=reference,
            updated_by_id=actor.id,
        )
        if not won:
            self._raise_for_miss(transaction_id, transition.action)

        refund = RoyaltyRefund(
            original_transaction_id=transaction_id,
            amount=refund_amount,
            currency=row.currency,
            reason=reason,
            refund_reference=reference,
            refunded_at=now,
            created_by_id=actor.id,
        )
        self.session.add(refund)
        self.session.flush()

        self._audit.append(
            transaction_id,
            AuditAction.PAYMENT_REFUNDED,
            actor_id=actor.id,
            detail=f"Refunded {money_to_str(refund_amount)} {row.currency}: {reason}",
        )
        logger.info(
            "payment_refunded",
            extra={
                "transaction_id": str(transaction_id),
                "refund_reference": reference,
                "amount": str(refund_amount),
            },
        )
        return RefundInfo(
            refund_id=refund.id,
            original_transaction_id=transaction_id,
            amount=refund_amount,
            currency=row.currency,
            reason=reason,
            refund_reference=reference,
            refunded_at=now,
        )
