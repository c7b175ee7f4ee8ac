"""
Kernel bridge (``royalty_config.bridges``).

Translates a ``RoyaltyConfig`` into the kernel's ``RoyaltyPolicy`` so the
kernel never has to import this package.
"""

from __future__ import annotations

from royalty_config.schema import RoyaltyConfig
from royalty_kernel.domain.calculator import DistributionShares
from royalty_kernel.domain.policy import RoyaltyPolicy
from royalty_kernel.domain.values import PaymentMethod


def build_royalty_policy(config: RoyaltyConfig) -> RoyaltyPolicy:
    return RoyaltyPolicy(
        currency=config.currency,
        shares=DistributionShares(**config.shares.as_dict()),
        payment_term_days=config.payment_term_days,
        default_payment_method=PaymentMethod(config.default_payment_method),
        payment_reference_prefix=config.payment_reference_prefix,
        page_size=config.page_size,
    )
