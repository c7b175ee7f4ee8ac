"""
Collaborator callback adapters.

The settlement gateway and the LMK confirmation service call back
asynchronously, possibly long after the request that triggered them and
possibly more than once.  Each callback runs in its own transaction and
reports a stale signal as ``False`` rather than raising.
"""

from contextlib import contextmanager
from typing import Callable, Iterator
from uuid import UUID

from sqlalchemy.orm import Session

from royalty_kernel.db.engine import session_scope
from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.policy import RoyaltyPolicy
from royalty_kernel.exceptions import ExternalServiceError
from royalty_kernel.logging_config import LogContext, get_logger
from royalty_kernel.services.compliance_service import ComplianceService
from royalty_kernel.services.payment_service import PaymentService

logger = get_logger("services.callbacks")


class _ScopedCallbacks:
    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._session_factory is None:
            with session_scope() as session:
                yield session
            return

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            logger.warning("callback_rolled_back", exc_info=True)
            raise
        finally:
            session.close()


class SettlementCallbacks(_ScopedCallbacks):
    """Entry points for the payment gateway's completion signals."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        clock: Clock | None = None,
        policy: RoyaltyPolicy | None = None,
    ):
        super().__init__(session_factory, clock)
        self._policy = policy

    def on_complete(self, transaction_id: UUID) -> bool:
        with LogContext.bind(transaction_id=str(transaction_id)), self._scope() as session:
            service = PaymentService(session, clock=self._clock, policy=self._policy)
            return service.complete_payment(transaction_id)

    def on_fail(
        self,
        transaction_id: UUID,
        reason: str | ExternalServiceError = "settlement failed",
    ) -> bool:
        """
        Record a failed settlement.

        ``reason`` may be the gateway's ExternalServiceError; its message
        becomes the stored failure reason and its code is logged.
        """
        with LogContext.bind(transaction_id=str(transaction_id)), self._scope() as session:
            if isinstance(reason, ExternalServiceError):
                logger.warning(
                    "settlement_gateway_error",
                    extra={"error_code": reason.code, "service": reason.service},
                )
                reason = str(reason)
            service = PaymentService(session, clock=self._clock, policy=self._policy)
            return service.fail_payment(transaction_id, reason)


class ComplianceCallbacks(_ScopedCallbacks):
    """Entry points for the LMK's confirmation and dispute signals."""

    def on_confirm(
        self,
        transaction_id: UUID,
        confirmation_number: str,
        lmk_report_id: str | None = None,
    ) -> bool:
        with LogContext.bind(transaction_id=str(transaction_id)), self._scope() as session:
            service = ComplianceService(session, clock=self._clock)
            return service.confirm_report(transaction_id, confirmation_number, lmk_report_id)

    def on_dispute(self, transaction_id: UUID, notes: str) -> bool:
        with LogContext.bind(transaction_id=str(transaction_id)), self._scope() as session:
            service = ComplianceService(session, clock=self._clock)
            return service.dispute_report(transaction_id, notes)
