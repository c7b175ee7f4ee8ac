"""
RoyaltyLedgerService -- records monetised plays.

Responsibility:
    Turns one "work played at a business" event into a RoyaltyTransaction:
    validates the request, checks availability and licensing, runs the
    royalty calculator, persists the frozen result and bumps the work's
    play counters.

Architecture position:
    Kernel > Services -- imperative shell around domain/calculator.py.
    Reads works through the CatalogLookup collaborator and asks the
    Authorizer collaborator whether the actor may record plays.

Invariants enforced:
    - Preconditions are checked in a fixed order and each failure is a
      distinct typed error: input, unknown work, unusable work, license,
      business type.
    - calculated_amount is exactly the base rate for the play type.
    - New transactions start with payment and reporting status PENDING
      and an empty audit trail.
    - Play counters are updated only after the ledger row is flushed, in
      a SAVEPOINT of their own, so a counter failure never removes the
      ledger row and a ledger failure never bumps a counter.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ValidationError / InvalidPlayTypeError: missing work id, bad play
      type or source.
    - WorkNotFoundError: catalog has no such work.
    - MusicNotAvailableError: work unpublished, inactive, not approved,
      or the actor's business type is not allowed.
    - LicenseRequiredError: the Authorizer denied ``record_play``.
    - InvalidConfigurationError: the work has no rate for the play type.

Audit relevance:
    Every recorded play logs ``play_recorded`` with the amount and the
    work, business and artist ids.
"""

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from royalty_kernel.domain.authorization import (
    Action,
    Authorizer,
    RoleCapabilityAuthorizer,
)
from royalty_kernel.domain.calculator import compute_distribution, select_base_rate
from royalty_kernel.domain.catalog import Actor, CatalogLookup, Work
from royalty_kernel.domain.clock import Clock
from royalty_kernel.domain.dtos import (
    BillingPeriod,
    DeviceInfo,
    PlayLocation,
    RecordedPlay,
    TransactionInfo,
)
from royalty_kernel.domain.policy import DEFAULT_POLICY, RoyaltyPolicy
from royalty_kernel.domain.values import (
    AuditAction,
    PlaySource,
    PlayType,
    ReportingStatus,
    parse_enum,
)
from royalty_kernel.exceptions import (
    AuthorizationError,
    InvalidPlayTypeError,
    InvalidTransitionError,
    LicenseRequiredError,
    MusicNotAvailableError,
    TransactionNotFoundError,
    ValidationError,
    WorkNotFoundError,
)
from royalty_kernel.logging_config import LogContext, get_logger
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction
from royalty_kernel.services.audit_trail_service import AuditTrailService
from royalty_kernel.services.base import TransactionStateService
from royalty_kernel.services.play_stats_service import PlayStatsService

logger = get_logger("services.ledger")


class RoyaltyLedgerService(TransactionStateService):
    """
    Creates royalty transactions from play events.

    Contract:
        ``record_play`` either flushes exactly one new RoyaltyTransaction
        or raises before anything is written.
    """

    def __init__(
        self,
        session: Session,
        catalog: CatalogLookup,
        authorizer: Authorizer | None = None,
        clock: Clock | None = None,
        policy: RoyaltyPolicy | None = None,
        play_stats: PlayStatsService | None = None,
        audit: AuditTrailService | None = None,
    ):
        super().__init__(session, clock)
        self._catalog = catalog
        self._authorizer = authorizer or RoleCapabilityAuthorizer()
        self._policy = policy or DEFAULT_POLICY
        self._play_stats = play_stats or PlayStatsService(session, self._clock)
        self._audit = audit or AuditTrailService(session, self._clock)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_play_type(play_type: PlayType | str | None) -> PlayType:
        if play_type is None or play_type == "":
            return PlayType.BACKGROUND
        parsed = parse_enum(PlayType, play_type)
        if parsed is None:
            raise InvalidPlayTypeError(str(play_type), tuple(p.value for p in PlayType))
        return parsed

    def _require_work(self, work_id: UUID) -> Work:
        work = self._catalog.get_work(work_id)
        if work is None:
            logger.info("play_rejected_work_not_found", extra={"work_id": str(work_id)})
            raise WorkNotFoundError(str(work_id))
        return work

    def _check_usable(self, work: Work, actor: Actor) -> None:
        if not work.is_usable:
            raise MusicNotAvailableError(
                work_id=str(work.id),
                actor_id=str(actor.id),
                reason="is not published, active and compliance-approved",
            )

    def _check_license(self, work: Work, actor: Actor) -> None:
        if not self._authorizer.authorize(actor, Action.RECORD_PLAY, work):
            status = actor.license_status.value if actor.license_status else None
            logger.warning(
                "play_rejected_license",
                extra={"actor_id": str(actor.id), "license_status": status},
            )
            raise LicenseRequiredError(str(actor.id), status)

    def _check_business_type(self, work: Work, actor: Actor) -> None:
        if not work.allows_business_type(actor.business_type):
            raise MusicNotAvailableError(
                work_id=str(work.id),
                actor_id=str(actor.id),
                reason=f"is not available for business type '{actor.business_type}'",
                business_type=actor.business_type,
                allowed_types=tuple(work.allowed_business_types),
            )

    @staticmethod
    def _default_location(actor: Actor) -> PlayLocation:
        address = actor.address
        return PlayLocation(
            business_name=actor.company_name,
            address=address.street if address else None,
            city=address.city if address else None,
            province=address.province if address else None,
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def record_play(
        self,
        work_id: UUID | None,
        actor: Actor,
        play_type: PlayType | str | None = PlayType.BACKGROUND,
        duration: int | None = None,
        location: PlayLocation | None = None,
        device_info: DeviceInfo | None = None,
        source: PlaySource | str = PlaySource.WEB_PLAYER,
        billing_period: BillingPeriod | None = None,
        session_id: str | None = None,
        playlist_id: UUID | None = None,
    ) -> RecordedPlay:
        """
        Record one play of ``work_id`` by the business ``actor``.

        Preconditions (checked in this order):
            1. work_id present, play type and source known.
            2. The work exists.
            3. The work is published, active and compliance-approved.
            4. The Authorizer allows ``record_play`` (active license).
            5. The actor's business type is allowed for the work.

        Postconditions:
            One RoyaltyTransaction flushed with payment and reporting
            status PENDING.  Play counters bumped on a best-effort basis.
        """
        if work_id is None:
            raise ValidationError(
                "work_id is required", field="work_id", reason_code="MISSING_WORK_ID",
            )
        if actor is None:
            raise ValidationError("actor is required", field="actor")
        parsed_type = self._parse_play_type(play_type)
        parsed_source = parse_enum(PlaySource, source)
        if parsed_source is None:
            raise ValidationError(f"Unknown play source '{source}'", field="source")
        if duration is not None and duration < 0:
            raise ValidationError("duration cannot be negative", field="duration")

        with LogContext.bind(work_id=str(work_id), actor_id=str(actor.id)):
            work = self._require_work(work_id)
            self._check_usable(work, actor)
            self._check_license(work, actor)
            self._check_business_type(work, actor)

            base_rate = select_base_rate(work.royalty_rate, parsed_type)
            shares = self._policy.shares
            distribution = compute_distribution(
                base_rate,
                publishers=work.publishers,
                composers=work.composers,
                lyricists=work.lyricists,
                shares=shares,
            )

            played_at = self._clock.now()
            location = location or self._default_location(actor)

            transaction = RoyaltyTransaction(
                work_id=work.id,
                business_id=actor.id,
                artist_id=work.artist_id,
                play_type=parsed_type.value,
                play_date=played_at,
                duration=duration if duration is not None else work.duration,
                location=location.to_snapshot(),
                device_info=device_info.to_snapshot() if device_info else None,
                base_rate=base_rate,
                calculated_amount=base_rate,
                currency=self._policy.currency,
                artist_amount=distribution.artist.amount,
                artist_percentage=distribution.artist.percentage,
                lmk_fee_amount=distribution.lmk_fee.amount,
                lmk_fee_percentage=distribution.lmk_fee.percentage,
                platform_fee_amount=distribution.platform_fee.amount,
                platform_fee_percentage=distribution.platform_fee.percentage,
                rights_holders=distribution.rights_holders_snapshot(),
                billing_period_start=billing_period.start if billing_period else None,
                billing_period_end=billing_period.end if billing_period else None,
                billing_period_type=(
                    billing_period.period_type.value if billing_period else None
                ),
                source=parsed_source.value,
                session_id=session_id,
                playlist_id=playlist_id,
                created_by_id=actor.id,
            )
            self.session.add(transaction)
            self.session.flush()

            self._bump_play_stats(work.id, played_at)

            logger.info(
                "play_recorded",
                extra={
                    "transaction_id": str(transaction.id),
                    "business_id": str(actor.id),
                    "artist_id": str(work.artist_id),
                    "play_type": parsed_type.value,
                    "calculated_amount": str(base_rate),
                    "currency": self._policy.currency,
                },
            )

        return RecordedPlay(
            transaction_id=transaction.id,
            calculated_amount=base_rate,
            currency=self._policy.currency,
            play_type=parsed_type,
            reporting_status=ReportingStatus.PENDING,
        )

    def _bump_play_stats(self, work_id: UUID, played_at) -> None:
        try:
            with self.session.begin_nested():
                self._play_stats.increment(work_id, played_at)
        except SQLAlchemyError:
            logger.warning(
                "play_stats_update_failed",
                exc_info=True,
                extra={"work_id": str(work_id)},
            )

    def verify_transaction(
        self,
        transaction_id: UUID,
        actor: Actor,
        notes: str | None = None,
    ) -> TransactionInfo:
        """
        Mark a transaction as verified by an administrator.

        Raises:
            AuthorizationError: actor is not allowed to verify.
            TransactionNotFoundError: unknown id.
            InvalidTransitionError: already verified.
        """
        if not self._authorizer.authorize(actor, Action.VERIFY_TRANSACTION, transaction_id):
            raise AuthorizationError(str(actor.id), Action.VERIFY_TRANSACTION)

        now = self._clock.now()
        won = self._compare_and_swap(
            transaction_id,
            RoyaltyTransaction.is_verified.is_(False),
            is_verified=True,
            verified_by_id=actor.id,
            verified_at=now,
            updated_by_id=actor.id,
        )
        row = self._load(transaction_id)
        if row is None:
            raise TransactionNotFoundError(str(transaction_id))
        if not won:
            raise InvalidTransitionError(
                str(transaction_id), "verification", "verified", "verify",
            )

        self._audit.append(
            transaction_id,
            AuditAction.TRANSACTION_VERIFIED,
            actor_id=actor.id,
            detail=notes or "Transaction verified",
        )
        logger.info(
            "transaction_verified",
            extra={"transaction_id": str(transaction_id), "actor_id": str(actor.id)},
        )
        return row.to_dto(now, self._policy.payment_term_days)
