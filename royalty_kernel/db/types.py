"""
Module: royalty_kernel.db.types
Responsibility: Decimal helpers shared by models, domain and services so
    every royalty amount is built and serialised the same way.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, and selectors/.  MUST NOT import from any of those layers.

Invariants enforced:
    CRITICAL: No floats for money.  All amounts are Decimal, stored as
    Numeric(38, 9).
"""

from decimal import Decimal, InvalidOperation

MONEY_DECIMAL_PLACES = 9


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a rate or amount to Decimal without going through float.

    Raises:
        ValueError: If value is a float/bool, not a number, NaN or infinite.
    """
    if isinstance(value, (bool, float)):
        raise ValueError(f"Refusing to build money from {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation as exc:
            raise ValueError(f"Not a decimal value: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Not a finite decimal value: {value!r}")
    return result


def money_to_str(value: Decimal) -> str:
    """Canonical string form for JSON snapshots (no exponent, no trailing zeros)."""
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
