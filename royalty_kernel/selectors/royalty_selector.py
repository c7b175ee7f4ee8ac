"""
Module: royalty_kernel.selectors.royalty_selector
Responsibility: Read-only aggregation over the royalty ledger: windowed
    summaries, the business overview, the LMK submission queue, compliance
    reports, artist earnings and paginated transaction listings.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Time windows are inclusive at both ends.
    - Every query honours the caller's ScopeFilter (see
      domain/visibility.py for how a filter is derived from an actor).
    - Overdue status is derived against the selector's clock, never read
      from storage.
    - Empty result sets produce zeroed summaries, not None.

Failure modes:
    - ValidationError for a page or limit below 1.
    - AuthorizationError when a ScopeFilter from scope_for_actor does not
      grant the view the entry point serves.
    - Reads are not required to be consistent with concurrent writers;
      read-committed visibility is enough.
"""

import math
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Select, distinct, func, select

from royalty_kernel.domain.authorization import Action
from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.dtos import (
    AuditEntryInfo,
    BusinessOverview,
    ComplianceReport,
    ComplianceReportRow,
    ComplianceSummary,
    EarningsPage,
    Pagination,
    PaymentTotals,
    RoyaltySummary,
    ScopeFilter,
    TimeWindow,
    TransactionInfo,
    TransactionPage,
)
from royalty_kernel.domain.overdue import overdue_cutoff
from royalty_kernel.domain.policy import DEFAULT_POLICY, RoyaltyPolicy
from royalty_kernel.domain.values import AuditAction, PaymentStatus, ReportingStatus
from royalty_kernel.domain.visibility import require_view
from royalty_kernel.exceptions import ValidationError
from royalty_kernel.models.audit_trail import RoyaltyAuditEntry
from royalty_kernel.models.play_stats import WorkPlayStats
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0")

RT = RoyaltyTransaction


def _dec(value) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _status_value(status) -> str:
    return getattr(status, "value", status)


class RoyaltySelector(BaseSelector[RoyaltyTransaction]):
    """
    Read side of the royalty ledger.

    Contract:
        All public methods return frozen DTOs from royalty_kernel.domain.dtos.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        policy: RoyaltyPolicy | None = None,
    ):
        super().__init__(session, clock)
        self._policy = policy or DEFAULT_POLICY

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def default_window(self, now: datetime | None = None) -> TimeWindow:
        """The last payment term, ending now."""
        now = now or self._clock.now()
        return TimeWindow(now - timedelta(days=self._policy.payment_term_days), now)

    @staticmethod
    def _apply(
        stmt: Select,
        window: TimeWindow | None,
        scope: ScopeFilter | None,
    ) -> Select:
        if window is not None:
            stmt = stmt.where(RT.play_date >= window.start, RT.play_date <= window.end)
        if scope is not None:
            if scope.business_id is not None:
                stmt = stmt.where(RT.business_id == scope.business_id)
            if scope.artist_id is not None:
                stmt = stmt.where(RT.artist_id == scope.artist_id)
            if scope.work_id is not None:
                stmt = stmt.where(RT.work_id == scope.work_id)
        return stmt

    def _info(self, row: RoyaltyTransaction, now: datetime) -> TransactionInfo:
        return row.to_dto(now, self._policy.payment_term_days)

    @staticmethod
    def _check_paging(page: int, limit: int) -> None:
        if page < 1:
            raise ValidationError("page must be >= 1", field="page")
        if limit < 1:
            raise ValidationError("limit must be >= 1", field="limit")

    def _page(
        self,
        stmt: Select,
        page: int,
        limit: int,
    ) -> tuple[tuple[TransactionInfo, ...], Pagination]:
        total = self.session.execute(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.offset((page - 1) * limit).limit(limit)
        ).scalars().all()
        now = self._clock.now()
        pagination = Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit),
            total_items=total,
            items_per_page=limit,
        )
        return tuple(self._info(r, now) for r in rows), pagination

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def get_summary(
        self,
        window: TimeWindow | None = None,
        scope: ScopeFilter | None = None,
    ) -> RoyaltySummary:
        """
        Totals over plays in ``window`` (default: the last payment term).

        total_plays counts one per transaction; the average is
        total_royalties / total_transactions.
        """
        require_view(scope, Action.VIEW_SUMMARY)
        window = window or self.default_window()
        stmt = self._apply(
            select(
                func.count(RT.id),
                func.sum(RT.calculated_amount),
                func.count(distinct(RT.business_id)),
                func.count(distinct(RT.artist_id)),
                func.count(distinct(RT.work_id)),
            ),
            window,
            scope,
        )
        count, total, businesses, artists, songs = self.session.execute(stmt).one()
        if not count:
            return RoyaltySummary()

        total = _dec(total)
        return RoyaltySummary(
            total_transactions=count,
            total_royalties=total,
            total_plays=count,
            average_royalty_per_play=total / count,
            unique_business_count=businesses,
            unique_artist_count=artists,
            unique_song_count=songs,
        )

    def _payment_totals(self, stmt: Select) -> PaymentTotals:
        total, count = self.session.execute(stmt).one()
        return PaymentTotals(total=_dec(total), count=count or 0)

    def get_business_overview(
        self,
        window: TimeWindow | None = None,
        scope: ScopeFilter | None = None,
        now: datetime | None = None,
    ) -> BusinessOverview:
        """
        Summary for ``window`` plus unpaid totals for the whole scope.

        Pending and overdue totals are not limited to the window: an old
        unpaid play is still owed.  Overdue means PENDING and played more
        than one payment term before ``now``.
        """
        require_view(scope, Action.VIEW_BUSINESS_LEDGER)
        now = now or self._clock.now()
        window = window or self.default_window(now)
        base = select(func.sum(RT.calculated_amount), func.count(RT.id)).where(
            RT.payment_status == PaymentStatus.PENDING.value,
        )
        pending = self._payment_totals(self._apply(base, None, scope))
        overdue = self._payment_totals(
            self._apply(
                base.where(RT.play_date < overdue_cutoff(now, self._policy.payment_term_days)),
                None,
                scope,
            )
        )
        return BusinessOverview(
            summary=self.get_summary(window, scope),
            pending_payments=pending,
            overdue_payments=overdue,
            window=window,
        )

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def get_pending_reports(self, scope: ScopeFilter | None = None) -> list[TransactionInfo]:
        """Settled transactions still waiting for LMK reporting, oldest play first."""
        require_view(scope, Action.VIEW_COMPLIANCE_REPORT)
        stmt = self._apply(
            select(RT).where(
                RT.reporting_status == ReportingStatus.PENDING.value,
                RT.payment_status == PaymentStatus.COMPLETED.value,
            ),
            None,
            scope,
        ).order_by(RT.play_date, RT.id)
        now = self._clock.now()
        return [self._info(r, now) for r in self.session.execute(stmt).scalars()]

    def get_compliance_report(
        self,
        window: TimeWindow | None = None,
        scope: ScopeFilter | None = None,
        reporting_status: ReportingStatus | str | None = None,
    ) -> ComplianceReport:
        """Per-reporting-status breakdown, sorted by status, plus overall totals."""
        require_view(scope, Action.VIEW_COMPLIANCE_REPORT)
        window = window or self.default_window()

        def scoped(stmt: Select) -> Select:
            stmt = self._apply(stmt, window, scope)
            if reporting_status is not None:
                stmt = stmt.where(RT.reporting_status == _status_value(reporting_status))
            return stmt

        grouped = self.session.execute(
            scoped(
                select(
                    RT.reporting_status,
                    func.count(RT.id),
                    func.sum(RT.calculated_amount),
                    func.sum(RT.lmk_fee_amount),
                )
            )
            .group_by(RT.reporting_status)
            .order_by(RT.reporting_status)
        ).all()
        rows = tuple(
            ComplianceReportRow(
                status=ReportingStatus(status),
                count=count,
                total_royalties=_dec(royalties),
                total_lmk_fees=_dec(fees),
            )
            for status, count, royalties, fees in grouped
        )

        count, royalties, fees, artists, businesses, songs = self.session.execute(
            scoped(
                select(
                    func.count(RT.id),
                    func.sum(RT.calculated_amount),
                    func.sum(RT.lmk_fee_amount),
                    func.count(distinct(RT.artist_id)),
                    func.count(distinct(RT.business_id)),
                    func.count(distinct(RT.work_id)),
                )
            )
        ).one()
        summary = ComplianceSummary(
            total_transactions=count or 0,
            total_royalties=_dec(royalties),
            total_lmk_fees=_dec(fees),
            unique_artist_count=artists or 0,
            unique_business_count=businesses or 0,
            unique_song_count=songs or 0,
        )
        return ComplianceReport(rows=rows, summary=summary, window=window)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    def get_earnings(
        self,
        window: TimeWindow | None = None,
        scope: ScopeFilter | None = None,
        payment_status: PaymentStatus | str | None = PaymentStatus.COMPLETED,
        page: int = 1,
        limit: int | None = None,
    ) -> EarningsPage:
        """
        An artist's transactions, newest play first, with total earnings.

        ``total_earnings`` is the artist share of every COMPLETED
        transaction in scope, regardless of ``window``, page or
        ``payment_status``.
        """
        require_view(scope, Action.VIEW_EARNINGS)
        limit = limit or self._policy.page_size
        self._check_paging(page, limit)

        stmt = self._apply(select(RT), window, scope)
        if payment_status is not None:
            stmt = stmt.where(RT.payment_status == _status_value(payment_status))
        stmt = stmt.order_by(RT.play_date.desc(), RT.id)
        transactions, pagination = self._page(stmt, page, limit)

        total = self.session.execute(
            self._apply(
                select(func.sum(RT.artist_amount)).where(
                    RT.payment_status == PaymentStatus.COMPLETED.value,
                ),
                None,
                scope,
            )
        ).scalar_one()

        return EarningsPage(
            transactions=transactions,
            total_earnings=_dec(total),
            pagination=pagination,
        )

    def list_transactions(
        self,
        window: TimeWindow | None = None,
        scope: ScopeFilter | None = None,
        payment_status: PaymentStatus | str | None = None,
        work_id: UUID | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> TransactionPage:
        """Transactions in scope, newest play first."""
        require_view(scope, Action.VIEW_SUMMARY)
        limit = limit or self._policy.page_size
        self._check_paging(page, limit)

        stmt = self._apply(select(RT), window, scope)
        if payment_status is not None:
            stmt = stmt.where(RT.payment_status == _status_value(payment_status))
        if work_id is not None:
            stmt = stmt.where(RT.work_id == work_id)
        stmt = stmt.order_by(RT.play_date.desc(), RT.id)
        transactions, pagination = self._page(stmt, page, limit)
        return TransactionPage(transactions=transactions, pagination=pagination)

    # ------------------------------------------------------------------
    # Single records
    # ------------------------------------------------------------------

    def get_transaction(
        self,
        transaction_id: UUID,
        scope: ScopeFilter | None = None,
    ) -> TransactionInfo | None:
        """One transaction, or None when unknown or outside ``scope``."""
        require_view(scope, Action.VIEW_SUMMARY)
        row = self.session.execute(
            self._apply(select(RT).where(RT.id == transaction_id), None, scope)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            return None
        return self._info(row, self._clock.now())

    def get_audit_trail(self, transaction_id: UUID) -> tuple[AuditEntryInfo, ...]:
        rows = self.session.execute(
            select(RoyaltyAuditEntry)
            .where(RoyaltyAuditEntry.transaction_id == transaction_id)
            .order_by(RoyaltyAuditEntry.seq)
        ).scalars().all()
        return tuple(
            AuditEntryInfo(
                seq=r.seq,
                action=AuditAction(r.action),
                actor_id=r.actor_id,
                occurred_at=r.occurred_at,
                detail=r.detail,
            )
            for r in rows
        )

    def find_stuck_processing(
        self,
        older_than: timedelta,
        now: datetime | None = None,
    ) -> list[TransactionInfo]:
        """
        PROCESSING transactions whose payment started more than
        ``older_than`` ago.  Nothing moves them out of PROCESSING
        automatically; this only lists them for an operator.
        """
        now = now or self._clock.now()
        stmt = (
            select(RT)
            .where(
                RT.payment_status == PaymentStatus.PROCESSING.value,
                RT.payment_date < now - older_than,
            )
            .order_by(RT.payment_date, RT.id)
        )
        return [self._info(r, now) for r in self.session.execute(stmt).scalars()]

    def get_play_stats(self, work_id: UUID) -> tuple[int, int, datetime | None]:
        """(total_plays, business_plays, last_played_at) for a work; zeros if never played."""
        row = self.session.execute(
            select(
                WorkPlayStats.total_plays,
                WorkPlayStats.business_plays,
                WorkPlayStats.last_played_at,
            ).where(WorkPlayStats.work_id == work_id)
        ).one_or_none()
        if row is None:
            return 0, 0, None
        return row[0], row[1], row[2]
