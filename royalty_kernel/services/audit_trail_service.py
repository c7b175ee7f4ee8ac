"""
AuditTrailService -- append-only per-transaction history.

Responsibility:
    Appends ordered, immutable entries to a royalty transaction's audit
    trail and reads them back in order.

Architecture position:
    Kernel > Services -- called by PaymentService, ComplianceService and
    RoyaltyLedgerService in the same database transaction as the state
    change being recorded.

Invariants enforced:
    - Append-only: entries are inserted, never updated or deleted (ORM
      listeners on RoyaltyAuditEntry).
    - Ordering: seq is 1-based and contiguous per transaction; the unique
      (transaction_id, seq) constraint rejects a concurrent duplicate.
    - occurred_at is non-decreasing along seq: a clock reading earlier than
      the previous entry is clamped up to the previous entry's timestamp.

Failure modes:
    - IntegrityError if two writers append the same seq concurrently.  The
      guarded status UPDATE that precedes every append admits only one
      writer per transition, so this indicates a caller bug.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.dtos import AuditEntryInfo
from royalty_kernel.domain.values import AuditAction
from royalty_kernel.logging_config import get_logger
from royalty_kernel.models.audit_trail import RoyaltyAuditEntry
from royalty_kernel.services.base import BaseService

logger = get_logger("services.audit_trail")


class AuditTrailService(BaseService[RoyaltyAuditEntry]):
    """Writes and reads the audit trail of royalty transactions."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def _last_entry(self, transaction_id: UUID) -> RoyaltyAuditEntry | None:
        return self.session.execute(
            select(RoyaltyAuditEntry)
            .where(RoyaltyAuditEntry.transaction_id == transaction_id)
            .order_by(RoyaltyAuditEntry.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def append(
        self,
        transaction_id: UUID,
        action: AuditAction,
        actor_id: UUID | None = None,
        detail: str | None = None,
        occurred_at: datetime | None = None,
    ) -> AuditEntryInfo:
        """
        Append one entry to the end of a transaction's trail.

        Postconditions:
            - New entry has seq = previous seq + 1 (1 for the first entry).
            - occurred_at >= previous entry's occurred_at.
        """
        last = self._last_entry(transaction_id)
        seq = 1 if last is None else last.seq + 1
        when = occurred_at or self._clock.now()
        if last is not None and when < last.occurred_at:
            when = last.occurred_at

        entry = RoyaltyAuditEntry(
            transaction_id=transaction_id,
            seq=seq,
            action=AuditAction(action).value,
            actor_id=actor_id,
            occurred_at=when,
            detail=detail,
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "audit_entry_appended",
            extra={
                "transaction_id": str(transaction_id),
                "seq": seq,
                "action": AuditAction(action).value,
            },
        )
        return self._to_dto(entry)

    def trail(self, transaction_id: UUID) -> tuple[AuditEntryInfo, ...]:
        """All entries for a transaction in append order."""
        rows = self.session.execute(
            select(RoyaltyAuditEntry)
            .where(RoyaltyAuditEntry.transaction_id == transaction_id)
            .order_by(RoyaltyAuditEntry.seq)
        ).scalars().all()
        return tuple(self._to_dto(r) for r in rows)

    @staticmethod
    def _to_dto(entry: RoyaltyAuditEntry) -> AuditEntryInfo:
        return AuditEntryInfo(
            seq=entry.seq,
            action=AuditAction(entry.action),
            actor_id=entry.actor_id,
            occurred_at=entry.occurred_at,
            detail=entry.detail,
        )
