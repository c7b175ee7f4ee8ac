"""ORM models for the royalty kernel."""

from royalty_kernel.models.audit_trail import RoyaltyAuditEntry
from royalty_kernel.models.play_stats import WorkPlayStats
from royalty_kernel.models.refund import RoyaltyRefund
from royalty_kernel.models.royalty_transaction import (
    MUTABLE_AFTER_CREATE,
    RoyaltyTransaction,
)

__all__ = [
    "MUTABLE_AFTER_CREATE",
    "RoyaltyAuditEntry",
    "RoyaltyRefund",
    "RoyaltyTransaction",
    "WorkPlayStats",
]
