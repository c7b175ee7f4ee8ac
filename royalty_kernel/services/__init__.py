"""Write-side services.  Each flushes into the caller's transaction."""

from royalty_kernel.services.audit_trail_service import AuditTrailService
from royalty_kernel.services.callbacks import ComplianceCallbacks, SettlementCallbacks
from royalty_kernel.services.compliance_service import ComplianceService
from royalty_kernel.services.ledger_service import RoyaltyLedgerService
from royalty_kernel.services.payment_service import PaymentService
from royalty_kernel.services.play_stats_service import PlayStatsService

__all__ = [
    "AuditTrailService",
    "ComplianceCallbacks",
    "ComplianceService",
    "PaymentService",
    "PlayStatsService",
    "RoyaltyLedgerService",
    "SettlementCallbacks",
]
