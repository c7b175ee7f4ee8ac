"""
PlayStatsService -- per-work play counters.

Responsibility:
    Increments a work's total plays, business plays and last-played
    timestamp after a play has been written to the ledger.

Architecture position:
    Kernel > Services.  Called by RoyaltyLedgerService.record_play inside
    a SAVEPOINT, after the ledger row has been flushed.

Invariants enforced:
    - Counters only ever grow: the UPDATE adds to the stored value instead
      of writing a value read earlier.
    - last_played_at never moves backwards.

Failure modes:
    - IntegrityError when two writers create the first stats row for a
      work at the same time.  The caller treats counter failures as
      non-fatal.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import case, literal, update
from sqlalchemy.orm import Session

from royalty_kernel.db.base import UTCDateTime
from royalty_kernel.domain.clock import Clock
from royalty_kernel.logging_config import get_logger
from royalty_kernel.models.play_stats import WorkPlayStats
from royalty_kernel.services.base import BaseService

logger = get_logger("services.play_stats")


class PlayStatsService(BaseService[WorkPlayStats]):
    """Maintains WorkPlayStats rows."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    def increment(
        self,
        work_id: UUID,
        played_at: datetime | None = None,
        business_play: bool = True,
    ) -> None:
        """
        Count one play of ``work_id``.

        Updates the existing row in place; creates it on the first play.
        """
        played_at = played_at or self._clock.now()
        business_increment = 1 if business_play else 0
        played = literal(played_at, UTCDateTime())

        result = self.session.execute(
            update(WorkPlayStats)
            .where(WorkPlayStats.work_id == work_id)
            .values(
                total_plays=WorkPlayStats.total_plays + 1,
                business_plays=WorkPlayStats.business_plays + business_increment,
                last_played_at=case(
                    (WorkPlayStats.last_played_at.is_(None), played),
                    (WorkPlayStats.last_played_at < played, played),
                    else_=WorkPlayStats.last_played_at,
                ),
            )
        )

        if result.rowcount == 0:
            self.session.add(
                WorkPlayStats(
                    work_id=work_id,
                    total_plays=1,
                    business_plays=business_increment,
                    last_played_at=played_at,
                )
            )
            self.session.flush()

        logger.debug(
            "play_stats_incremented",
            extra={"work_id": str(work_id), "business_play": business_play},
        )
