"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  Services receive a SQLAlchemy ``Session``
    and use ``session.flush()`` -- never ``session.commit()``.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller (a collaborator
    adapter using ``session_scope()``, or the test harness) owns
    commit/rollback.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from royalty_kernel.db.base import Base
from royalty_kernel.domain.clock import Clock, SystemClock
from royalty_kernel.models.royalty_transaction import RoyaltyTransaction

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only methods -- those belong in
          ``royalty_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()


class TransactionStateService(BaseService[RoyaltyTransaction]):
    """
    Base for services that move a RoyaltyTransaction between states.

    Every transition is one UPDATE whose WHERE clause names the expected
    current state.  The affected row count decides the winner: 1 means
    this caller made the move, 0 means the precondition no longer held.
    """

    def _compare_and_swap(self, transaction_id: UUID, *expected, **values) -> bool:
        result = self.session.execute(
            update(RoyaltyTransaction)
            .where(RoyaltyTransaction.id == transaction_id, *expected)
            .values(**values)
        )
        return result.rowcount == 1

    def _load(self, transaction_id: UUID) -> RoyaltyTransaction | None:
        return self.session.execute(
            select(RoyaltyTransaction)
            .where(RoyaltyTransaction.id == transaction_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
