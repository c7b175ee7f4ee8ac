"""
Module: royalty_kernel.models.play_stats
Responsibility: Per-work play counters updated after each recorded play.
Architecture position: Kernel > Models.

Counters are best-effort analytics, not financial data: they are not
required to be atomic with the ledger write and are not protected by the
immutability listeners.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from royalty_kernel.db.base import Base, UUIDString


class WorkPlayStats(Base):
    """Play counters for one work."""

    __tablename__ = "work_play_stats"

    work_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    total_plays: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    business_plays: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    last_played_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<WorkPlayStats {self.work_id} plays={self.total_plays}>"
