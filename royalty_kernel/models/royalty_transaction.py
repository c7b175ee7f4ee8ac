"""
Module: royalty_kernel.models.royalty_transaction
Responsibility: ORM persistence for the royalty transaction -- one row per
    recorded play, carrying its frozen royalty calculation and its two
    mutable lifecycles (payment settlement, LMK reporting).
Architecture position: Kernel > Models.  May import from db/ and domain/values only.

Invariants enforced:
    - Identity, play info and royalty info columns are write-once
      (ORM listener in db/immutability.py; see MUTABLE_AFTER_CREATE).
    - Rows are never deleted.  Corrections are RoyaltyRefund rows.
    - reporting_status leaves PENDING only in the same UPDATE that moves
      payment_status to COMPLETED (PaymentService.complete_payment).

Failure modes:
    - ImmutabilityViolationError on any write to a frozen column or DELETE.

Audit relevance:
    The per-transaction audit trail lives in royalty_audit_entries
    (models/audit_trail.py), keyed by this row's id.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import TrackedBase, UUIDString
from royalty_kernel.domain.calculator import PayeeShare
from royalty_kernel.domain.dtos import TransactionInfo
from royalty_kernel.domain.overdue import DEFAULT_PAYMENT_TERM_DAYS, is_overdue
from royalty_kernel.domain.values import (
    BillingPeriodType,
    PaymentMethod,
    PaymentStatus,
    PlaySource,
    PlayType,
    ReportingStatus,
)

# Columns that may change after the row is inserted.  Everything else is
# identity, play info or royalty info and is frozen at creation.
MUTABLE_AFTER_CREATE: frozenset[str] = frozenset({
    # payment state
    "payment_status",
    "payment_date",
    "payment_method",
    "payment_reference",
    "failure_reason",
    "dispute_reason",
    "refund_date",
    "refund_amount",
    "refund_reason",
    "refund_reference",
    # compliance state
    "reporting_status",
    "reported_at",
    "lmk_report_id",
    "lmk_confirmation_number",
    "compliance_notes",
    # verification
    "is_verified",
    "verified_by_id",
    "verified_at",
    # audit metadata
    "updated_at",
    "updated_by_id",
})


class RoyaltyTransaction(TrackedBase):
    """
    A single monetised play of a licensed work at a business.

    Contract:
        Created by RoyaltyLedgerService.record_play with payment_status and
        reporting_status PENDING.  Afterwards only the payment, compliance
        and verification column groups change, and only through guarded
        UPDATEs keyed on the expected current status.

    Non-goals:
        - Does not store overdue status; see domain/overdue.py.
        - Does not hold the audit trail inline.
    """

    __tablename__ = "royalty_transactions"

    __table_args__ = (
        Index("idx_royalty_business_play_date", "business_id", "play_date"),
        Index("idx_royalty_artist_payment", "artist_id", "payment_status", "play_date"),
        Index("idx_royalty_work_play_date", "work_id", "play_date"),
        Index("idx_royalty_reporting_status", "reporting_status"),
        Index("idx_royalty_payment_status", "payment_status"),
        Index("idx_royalty_billing_period", "billing_period_start", "billing_period_end"),
    )

    # -- identity ---------------------------------------------------------
    work_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    business_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    artist_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # -- play info --------------------------------------------------------
    play_type: Mapped[PlayType] = mapped_column(String(20), nullable=False)
    play_date: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    device_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # -- royalty info -----------------------------------------------------
    base_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    calculated_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    artist_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    artist_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    lmk_fee_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    lmk_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    platform_fee_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    platform_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(9, 4), nullable=False)
    # {"publishers": [...], "composers": [...], "lyricists": [...]}, amounts as strings
    rights_holders: Mapped[dict] = mapped_column(JSON, nullable=False)

    # -- payment state ----------------------------------------------------
    payment_status: Mapped[PaymentStatus] = mapped_column(
        String(20), nullable=False, default=PaymentStatus.PENDING.value,
    )
    payment_date: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_method: Mapped[PaymentMethod | None] = mapped_column(String(20), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    dispute_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    refund_date: Mapped[datetime | None] = mapped_column(nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    refund_reason: Mapped[str | None] = mapped_column(String(4000), nullable=True)
    refund_reference: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # -- compliance state -------------------------------------------------
    reporting_status: Mapped[ReportingStatus] = mapped_column(
        String(20), nullable=False, default=ReportingStatus.PENDING.value,
    )
    reported_at: Mapped[datetime | None] = mapped_column(nullable=True)
    lmk_report_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    lmk_confirmation_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    compliance_notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    # -- billing period ---------------------------------------------------
    billing_period_start: Mapped[datetime | None] = mapped_column(nullable=True)
    billing_period_end: Mapped[datetime | None] = mapped_column(nullable=True)
    billing_period_type: Mapped[BillingPeriodType | None] = mapped_column(String(20), nullable=True)

    # -- verification -----------------------------------------------------
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    verified_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    # -- metadata ---------------------------------------------------------
    source: Mapped[PlaySource] = mapped_column(
        String(20), nullable=False, default=PlaySource.WEB_PLAYER.value,
    )
    session_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    playlist_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<RoyaltyTransaction {self.id} {self.calculated_amount} {self.currency} "
            f"payment={self.payment_status} reporting={self.reporting_status}>"
        )

    def to_dto(
        self,
        now: datetime,
        payment_term_days: int = DEFAULT_PAYMENT_TERM_DAYS,
    ) -> TransactionInfo:
        """Frozen read view.  Overdue status is derived against ``now``."""
        holders = self.rights_holders or {}
        return TransactionInfo(
            id=self.id,
            work_id=self.work_id,
            business_id=self.business_id,
            artist_id=self.artist_id,
            play_type=PlayType(self.play_type),
            play_date=self.play_date,
            duration=self.duration,
            location=self.location,
            device_info=self.device_info,
            base_rate=self.base_rate,
            calculated_amount=self.calculated_amount,
            currency=self.currency,
            artist_amount=self.artist_amount,
            lmk_fee_amount=self.lmk_fee_amount,
            platform_fee_amount=self.platform_fee_amount,
            publishers=tuple(PayeeShare.from_snapshot(p) for p in holders.get("publishers", ())),
            composers=tuple(PayeeShare.from_snapshot(p) for p in holders.get("composers", ())),
            lyricists=tuple(PayeeShare.from_snapshot(p) for p in holders.get("lyricists", ())),
            payment_status=PaymentStatus(self.payment_status),
            payment_date=self.payment_date,
            payment_method=PaymentMethod(self.payment_method) if self.payment_method else None,
            payment_reference=self.payment_reference,
            failure_reason=self.failure_reason,
            reporting_status=ReportingStatus(self.reporting_status),
            reported_at=self.reported_at,
            lmk_confirmation_number=self.lmk_confirmation_number,
            is_overdue=is_overdue(self, now, payment_term_days),
            created_at=self.created_at,
        )
