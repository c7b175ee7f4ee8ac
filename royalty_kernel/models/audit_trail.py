"""
Module: royalty_kernel.models.audit_trail
Responsibility: ORM persistence for the per-transaction audit trail.
Architecture position: Kernel > Models.  May import from db/ and domain/values only.

Invariants enforced:
    - Append-only: no UPDATE or DELETE (ORM listeners in db/immutability.py).
    - Ordered: (transaction_id, seq) is unique and seq starts at 1.
    - occurred_at never decreases along a transaction's seq order
      (AuditTrailService clamps to the previous entry's timestamp).

Audit relevance:
    This IS the audit trail of a royalty transaction.  One row per lifecycle
    step: payment initiated, completed, failed, disputed, refunded; LMK
    confirmation or dispute; verification.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import Base, UUIDString
from royalty_kernel.domain.values import AuditAction


class RoyaltyAuditEntry(Base):
    """
    One immutable step in a transaction's history.

    Contract:
        Rows are only ever inserted by AuditTrailService.append().
    """

    __tablename__ = "royalty_audit_entries"

    __table_args__ = (
        UniqueConstraint("transaction_id", "seq", name="uq_audit_entry_seq"),
        Index("idx_audit_entry_action", "action"),
        Index("idx_audit_entry_occurred", "occurred_at"),
    )

    transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # 1-based position within the transaction's trail
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)

    # None for system-driven steps (e.g. settlement callbacks without an actor)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    detail: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return f"<RoyaltyAuditEntry {self.transaction_id}#{self.seq} {self.action}>"
