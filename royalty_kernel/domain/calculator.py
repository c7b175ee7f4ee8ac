"""
Royalty Calculator (``royalty_kernel.domain.calculator``).

Responsibility
--------------
Selects the per-play base rate for a play type and splits the resulting
amount into stakeholder buckets.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen values.  ZERO I/O.

Invariants enforced
-------------------
* ``calculated_amount`` is exactly the selected base rate.  No audience,
  duration or location multiplier exists.
* Bucket amounts are computed independently.  Payee shares inside a
  bucket are NOT normalised, and the top-level buckets add up to 115%
  with the default shares, so the total disbursed can exceed (or fall
  short of) the calculated amount.  Callers that need the discrepancy
  read ``RoyaltyDistribution.total_disbursed``; nothing here corrects it.

Failure modes
-------------
* ``InvalidConfigurationError`` -- the rate field selected by the play type
  is missing from the work's rate configuration.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from royalty_kernel.db.types import money_to_str
from royalty_kernel.domain.catalog import RoyaltyRateConfig, Stakeholder
from royalty_kernel.exceptions import InvalidConfigurationError

_HUNDRED = Decimal("100")

# play type -> rate field; anything else falls back to mechanical
_RATE_FIELD_BY_PLAY_TYPE = {
    "commercial": "synchronization",
    "performance": "performance",
}


@dataclass(frozen=True)
class DistributionShares:
    """Top-level bucket percentages (0-100)."""

    artist: Decimal = Decimal("70")
    publisher: Decimal = Decimal("15")
    composer: Decimal = Decimal("10")
    lyricist: Decimal = Decimal("5")
    lmk_fee: Decimal = Decimal("5")
    platform_fee: Decimal = Decimal("10")

    @property
    def total(self) -> Decimal:
        return (
            self.artist + self.publisher + self.composer
            + self.lyricist + self.lmk_fee + self.platform_fee
        )


DEFAULT_SHARES = DistributionShares()


@dataclass(frozen=True)
class BucketShare:
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class PayeeShare:
    """One rights holder's cut within a publisher/composer/lyricist bucket."""

    member_number: str | None
    name: str
    amount: Decimal
    percentage: Decimal

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "member_number": self.member_number,
            "name": self.name,
            "amount": money_to_str(self.amount),
            "percentage": money_to_str(self.percentage),
        }

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "PayeeShare":
        return cls(
            member_number=data.get("member_number"),
            name=data.get("name", ""),
            amount=Decimal(data["amount"]),
            percentage=Decimal(data["percentage"]),
        )


@dataclass(frozen=True)
class RoyaltyDistribution:
    """Breakdown of a royalty amount across all recipients."""

    artist: BucketShare
    publishers: tuple[PayeeShare, ...]
    composers: tuple[PayeeShare, ...]
    lyricists: tuple[PayeeShare, ...]
    lmk_fee: BucketShare
    platform_fee: BucketShare

    @property
    def publisher_total(self) -> Decimal:
        return sum((p.amount for p in self.publishers), Decimal("0"))

    @property
    def composer_total(self) -> Decimal:
        return sum((p.amount for p in self.composers), Decimal("0"))

    @property
    def lyricist_total(self) -> Decimal:
        return sum((p.amount for p in self.lyricists), Decimal("0"))

    @property
    def rights_holder_total(self) -> Decimal:
        """Artist plus every listed publisher, composer and lyricist."""
        return (
            self.artist.amount + self.publisher_total
            + self.composer_total + self.lyricist_total
        )

    @property
    def total_disbursed(self) -> Decimal:
        """Everything paid out, fees included."""
        return self.rights_holder_total + self.lmk_fee.amount + self.platform_fee.amount

    def rights_holders_snapshot(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "publishers": [p.to_snapshot() for p in self.publishers],
            "composers": [p.to_snapshot() for p in self.composers],
            "lyricists": [p.to_snapshot() for p in self.lyricists],
        }


def select_base_rate(rate_config: RoyaltyRateConfig, play_type: str) -> Decimal:
    """
    Pick the per-play rate for ``play_type``.

    ``commercial`` -> synchronization, ``performance`` -> performance,
    everything else (background, foreground, promotional, unset) ->
    mechanical.

    Raises:
        InvalidConfigurationError: If the selected rate is not configured.
    """
    key = getattr(play_type, "value", play_type) or "background"
    field_name = _RATE_FIELD_BY_PLAY_TYPE.get(key, "mechanical")
    rate = getattr(rate_config, field_name, None)
    if rate is None:
        raise InvalidConfigurationError(field=field_name, play_type=key)
    return rate


def _payee_shares(
    amount: Decimal,
    stakeholders: Iterable[Stakeholder],
    bucket_pct: Decimal,
) -> tuple[PayeeShare, ...]:
    return tuple(
        PayeeShare(
            member_number=s.member_number,
            name=s.name,
            amount=amount * (s.share_percentage / _HUNDRED) * (bucket_pct / _HUNDRED),
            percentage=s.share_percentage,
        )
        for s in stakeholders
    )


def compute_distribution(
    amount: Decimal,
    publishers: Iterable[Stakeholder] = (),
    composers: Iterable[Stakeholder] = (),
    lyricists: Iterable[Stakeholder] = (),
    shares: DistributionShares = DEFAULT_SHARES,
) -> RoyaltyDistribution:
    """
    Split ``amount`` into artist, rights-holder and fee buckets.

    artist = amount * 70%; each publisher = amount * pct/100 * 15%;
    each composer = amount * pct/100 * 10%; each lyricist =
    amount * pct/100 * 5%; LMK fee = amount * 5%; platform fee =
    amount * 10%.  Percentages come from ``shares``.
    """
    return RoyaltyDistribution(
        artist=BucketShare(amount * shares.artist / _HUNDRED, shares.artist),
        publishers=_payee_shares(amount, publishers, shares.publisher),
        composers=_payee_shares(amount, composers, shares.composer),
        lyricists=_payee_shares(amount, lyricists, shares.lyricist),
        lmk_fee=BucketShare(amount * shares.lmk_fee / _HUNDRED, shares.lmk_fee),
        platform_fee=BucketShare(amount * shares.platform_fee / _HUNDRED, shares.platform_fee),
    )
