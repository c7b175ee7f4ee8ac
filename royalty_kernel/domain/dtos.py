"""
Data Transfer Objects (``royalty_kernel.domain.dtos``).

Responsibility
--------------
Frozen request/result shapes passed across the kernel boundary.  Services
and selectors return these, never ORM instances, so callers cannot mutate
ledger state by accident.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from royalty_kernel.domain.calculator import PayeeShare
from royalty_kernel.domain.values import (
    AuditAction,
    BillingPeriodType,
    PaymentMethod,
    PaymentStatus,
    PlayType,
    ReportingStatus,
)
from royalty_kernel.exceptions import ValidationError

_ZERO = Decimal("0")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive [start, end] range over play dates."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        for name in ("start", "end"):
            moment = getattr(self, name)
            if moment.tzinfo is None or moment.utcoffset() is None:
                raise ValidationError(f"{name} must be timezone-aware: {moment!r}", field=name)
        if self.start > self.end:
            raise ValidationError(
                f"start ({self.start}) cannot be after end ({self.end})", field="window",
            )

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class ScopeFilter:
    """
    Restricts a query to one business and/or one artist.  Empty = all.

    A filter built by ``scope_for_actor`` also carries the actor and the
    view capabilities granted to it; selectors refuse reads outside
    ``granted``.  A filter built directly (``granted=None``) is trusted.
    """

    business_id: UUID | None = None
    artist_id: UUID | None = None
    work_id: UUID | None = None
    actor_id: UUID | None = None
    granted: frozenset[str] | None = None

    @property
    def is_unrestricted(self) -> bool:
        return self.business_id is None and self.artist_id is None and self.work_id is None

    def allows(self, action: str) -> bool:
        return self.granted is None or action in self.granted


@dataclass(frozen=True)
class PlayLocation:
    business_name: str | None = None
    address: str | None = None
    city: str | None = None
    province: str | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "business_name": self.business_name,
            "address": self.address,
            "city": self.city,
            "province": self.province,
        }


@dataclass(frozen=True)
class DeviceInfo:
    device_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
        }


@dataclass(frozen=True)
class BillingPeriod:
    start: datetime
    end: datetime
    period_type: BillingPeriodType = BillingPeriodType.MONTHLY


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecordedPlay:
    """What a business caller gets back after a play is recorded."""

    transaction_id: UUID
    calculated_amount: Decimal
    currency: str
    play_type: PlayType
    reporting_status: ReportingStatus


@dataclass(frozen=True)
class PaymentBatchResult:
    processed_count: int
    total_amount: Decimal
    currency: str
    transaction_ids: tuple[UUID, ...] = ()
    skipped_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True)
class RefundInfo:
    refund_id: UUID
    original_transaction_id: UUID
    amount: Decimal
    currency: str
    reason: str
    refund_reference: str
    refunded_at: datetime


@dataclass(frozen=True)
class AuditEntryInfo:
    seq: int
    action: AuditAction
    actor_id: UUID | None
    occurred_at: datetime
    detail: str | None


@dataclass(frozen=True)
class TransactionInfo:
    """Read-only view of one royalty transaction."""

    id: UUID
    work_id: UUID
    business_id: UUID
    artist_id: UUID
    play_type: PlayType
    play_date: datetime
    duration: int | None
    location: dict[str, Any] | None
    device_info: dict[str, Any] | None
    base_rate: Decimal
    calculated_amount: Decimal
    currency: str
    artist_amount: Decimal
    lmk_fee_amount: Decimal
    platform_fee_amount: Decimal
    publishers: tuple[PayeeShare, ...]
    composers: tuple[PayeeShare, ...]
    lyricists: tuple[PayeeShare, ...]
    payment_status: PaymentStatus
    payment_date: datetime | None
    payment_method: PaymentMethod | None
    payment_reference: str | None
    failure_reason: str | None
    reporting_status: ReportingStatus
    reported_at: datetime | None
    lmk_confirmation_number: str | None
    is_overdue: bool
    created_at: datetime


@dataclass(frozen=True)
class RoyaltySummary:
    total_transactions: int = 0
    total_royalties: Decimal = _ZERO
    total_plays: int = 0
    average_royalty_per_play: Decimal = _ZERO
    unique_business_count: int = 0
    unique_artist_count: int = 0
    unique_song_count: int = 0


@dataclass(frozen=True)
class PaymentTotals:
    total: Decimal = _ZERO
    count: int = 0


@dataclass(frozen=True)
class BusinessOverview:
    summary: RoyaltySummary
    pending_payments: PaymentTotals
    overdue_payments: PaymentTotals
    window: TimeWindow


@dataclass(frozen=True)
class ComplianceReportRow:
    status: ReportingStatus
    count: int
    total_royalties: Decimal
    total_lmk_fees: Decimal


@dataclass(frozen=True)
class ComplianceSummary:
    total_transactions: int = 0
    total_royalties: Decimal = _ZERO
    total_lmk_fees: Decimal = _ZERO
    unique_artist_count: int = 0
    unique_business_count: int = 0
    unique_song_count: int = 0


@dataclass(frozen=True)
class ComplianceReport:
    rows: tuple[ComplianceReportRow, ...]
    summary: ComplianceSummary
    window: TimeWindow


@dataclass(frozen=True)
class Pagination:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


@dataclass(frozen=True)
class TransactionPage:
    transactions: tuple[TransactionInfo, ...]
    pagination: Pagination


@dataclass(frozen=True)
class EarningsPage:
    transactions: tuple[TransactionInfo, ...]
    total_earnings: Decimal
    pagination: Pagination
