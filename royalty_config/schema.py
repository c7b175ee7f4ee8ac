"""
Configuration schema (``royalty_config.schema``).

Frozen dataclasses describing a royalty configuration set as written in
YAML.  No behaviour beyond basic construction-time checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class SharesDef:
    """Distribution bucket percentages (0-100)."""

    artist: Decimal = Decimal("70")
    publisher: Decimal = Decimal("15")
    composer: Decimal = Decimal("10")
    lyricist: Decimal = Decimal("5")
    lmk_fee: Decimal = Decimal("5")
    platform_fee: Decimal = Decimal("10")

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "artist": self.artist,
            "publisher": self.publisher,
            "composer": self.composer,
            "lyricist": self.lyricist,
            "lmk_fee": self.lmk_fee,
            "platform_fee": self.platform_fee,
        }


@dataclass(frozen=True)
class RoyaltyConfig:
    """A loaded, validated configuration set."""

    config_id: str
    version: int
    currency: str = "IDR"
    payment_term_days: int = 30
    default_payment_method: str = "bank_transfer"
    payment_reference_prefix: str = "PAY"
    page_size: int = 20
    shares: SharesDef = field(default_factory=SharesDef)
    description: str = ""
    checksum: str = ""
