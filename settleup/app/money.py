"""
money.py — Exact conversion between API/DB amounts and ledger minor units.

Amounts are NUMERIC(12, 2) in the database and decimal strings on the wire.
The ledger core works on integer minor units (cents) so equal splits can use
integer division with an explicit remainder. Floats never appear here.
"""

from __future__ import annotations

from decimal import Decimal

from settleup.app.errors import AppError, ErrorCode

MINOR_UNIT_EXPONENT = 2
CENT = Decimal(1).scaleb(-MINOR_UNIT_EXPONENT)   # Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """
    Converts a Decimal amount to integer minor units: Decimal("10.50") -> 1050.

    Values with more than two decimal places are rejected, never rounded.
    """
    scaled = amount.scaleb(MINOR_UNIT_EXPONENT)
    if scaled != scaled.to_integral_value():
        raise AppError(
            ErrorCode.INVALID_AMOUNT_PRECISION,
            f"Amount {amount} has more than {MINOR_UNIT_EXPONENT} decimal places.",
            400,
            field="amount",
        )
    return int(scaled)


def from_minor_units(value: int) -> Decimal:
    """Converts integer minor units back to a 2-dp Decimal: 1050 -> Decimal("10.50")."""
    return Decimal(value).scaleb(-MINOR_UNIT_EXPONENT).quantize(CENT)


def format_minor_units(value: int) -> str:
    """Wire format for a minor-unit amount. Amounts always leave the API as strings."""
    return str(from_minor_units(value))
