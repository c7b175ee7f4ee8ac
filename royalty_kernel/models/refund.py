"""
Module: royalty_kernel.models.refund
Responsibility: Correction records for refunded royalty transactions.
Architecture position: Kernel > Models.

Invariants enforced:
    - A refund never rewrites the original transaction's royalty info; it
      is a new row pointing at the original.
    - At most one refund per original transaction (unique constraint).
    - Append-only (ORM listeners in db/immutability.py).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import TrackedBase, UUIDString


class RoyaltyRefund(TrackedBase):
    """Refund issued against a disputed royalty transaction."""

    __tablename__ = "royalty_refunds"

    __table_args__ = (
        UniqueConstraint("original_transaction_id", name="uq_refund_original"),
    )

    original_transaction_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    reason: Mapped[str] = mapped_column(String(4000), nullable=False)
    refund_reference: Mapped[str] = mapped_column(String(50), nullable=False)
    refunded_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<RoyaltyRefund {self.refund_reference} {self.amount} {self.currency}>"
