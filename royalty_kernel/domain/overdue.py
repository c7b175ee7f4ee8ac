"""Derived overdue status.  Never stored: always computed against a clock."""

from datetime import datetime, timedelta
from typing import Protocol

from royalty_kernel.domain.values import PaymentStatus

DEFAULT_PAYMENT_TERM_DAYS = 30


class _Settleable(Protocol):
    payment_status: PaymentStatus
    play_date: datetime


def overdue_cutoff(now: datetime, payment_term_days: int = DEFAULT_PAYMENT_TERM_DAYS) -> datetime:
    """Plays strictly before this instant are past the payment term."""
    return now - timedelta(days=payment_term_days)


def is_overdue(
    transaction: _Settleable,
    now: datetime,
    payment_term_days: int = DEFAULT_PAYMENT_TERM_DAYS,
) -> bool:
    """
    True iff the transaction is unsettled and older than the payment term.

    Exactly ``payment_term_days`` after the play it is NOT yet overdue; one
    microsecond later it is.
    """
    if transaction.payment_status == PaymentStatus.COMPLETED:
        return False
    return now - transaction.play_date > timedelta(days=payment_term_days)
