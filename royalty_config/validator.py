"""
Configuration validator (``royalty_config.validator``).

Checks a parsed ``RoyaltyConfig`` before it is handed out.  Errors block
the configuration; warnings are logged and allowed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal

from royalty_config.schema import RoyaltyConfig

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")
_PAYMENT_METHODS = frozenset({"bank_transfer", "digital_wallet", "credit_card", "debit"})
_HUNDRED = Decimal("100")


@dataclass
class ConfigValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_configuration(config: RoyaltyConfig) -> ConfigValidationResult:
    result = ConfigValidationResult()

    if not _CURRENCY_RE.match(config.currency):
        result.add_error(f"currency must be a 3-letter upper-case code, got {config.currency!r}")
    if config.payment_term_days <= 0:
        result.add_error("payment_term_days must be positive")
    if config.page_size <= 0:
        result.add_error("page_size must be positive")
    if config.default_payment_method not in _PAYMENT_METHODS:
        result.add_error(f"unknown default_payment_method {config.default_payment_method!r}")
    if not config.payment_reference_prefix or "_" in config.payment_reference_prefix:
        result.add_error("payment_reference_prefix must be non-empty and contain no '_'")

    for name, value in config.shares.as_dict().items():
        if value < 0 or value > _HUNDRED:
            result.add_error(f"shares.{name} must be between 0 and 100, got {value}")

    total = sum(config.shares.as_dict().values(), Decimal("0"))
    if total != _HUNDRED:
        result.add_warning(f"distribution buckets sum to {total}%, not 100%")

    return result
