"""
Royalty policy (``royalty_kernel.domain.policy``).

The kernel-side view of configuration: a frozen value handed to services
at construction.  The kernel never reads configuration files itself;
``royalty_config.bridges.build_royalty_policy`` turns a loaded
``RoyaltyConfig`` into one of these.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from royalty_kernel.domain.calculator import DEFAULT_SHARES, DistributionShares
from royalty_kernel.domain.overdue import DEFAULT_PAYMENT_TERM_DAYS
from royalty_kernel.domain.values import PaymentMethod


@dataclass(frozen=True)
class RoyaltyPolicy:
    currency: str = "IDR"
    shares: DistributionShares = field(default_factory=lambda: DEFAULT_SHARES)
    payment_term_days: int = DEFAULT_PAYMENT_TERM_DAYS
    default_payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    payment_reference_prefix: str = "PAY"
    page_size: int = 20

    def __post_init__(self) -> None:
        if len(self.currency) != 3:
            raise ValueError(f"currency must be a 3-letter code: {self.currency!r}")
        if self.payment_term_days <= 0:
            raise ValueError("payment_term_days must be positive")
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")


DEFAULT_POLICY = RoyaltyPolicy()
