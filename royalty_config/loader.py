"""
Configuration loader (``royalty_config.loader``).

Responsibility
--------------
Reads a YAML configuration set and parses it into ``RoyaltyConfig``.
Internal tooling: runtime callers go through
``royalty_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``config_id``  -> ``KeyError`` propagates.
* Non-numeric share  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from royalty_config.schema import RoyaltyConfig, SharesDef


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load one YAML file; an empty file yields ``{}``."""
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """YAML numbers arrive as int/float; go through str so 0.1 stays 0.1."""
    if isinstance(value, bool):
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc


def parse_shares(data: dict[str, Any] | None) -> SharesDef:
    if not data:
        return SharesDef()
    defaults = SharesDef().as_dict()
    unknown = set(data) - set(defaults)
    if unknown:
        raise ValueError(f"shares: unknown bucket(s) {sorted(unknown)}")
    return SharesDef(**{
        key: parse_decimal(data.get(key, default), f"shares.{key}")
        for key, default in defaults.items()
    })


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_config(data: dict[str, Any]) -> RoyaltyConfig:
    return RoyaltyConfig(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        currency=str(data.get("currency", "IDR")),
        payment_term_days=int(data.get("payment_term_days", 30)),
        default_payment_method=str(data.get("default_payment_method", "bank_transfer")),
        payment_reference_prefix=str(data.get("payment_reference_prefix", "PAY")),
        page_size=int(data.get("page_size", 20)),
        shares=parse_shares(data.get("shares")),
        description=data.get("description", ""),
        checksum=compute_checksum(data),
    )


def load_config_file(path: Path) -> RoyaltyConfig:
    return parse_config(load_yaml_file(path))
