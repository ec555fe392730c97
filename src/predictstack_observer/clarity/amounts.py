"""Fixed-point amount helpers.

Every monetary field emitted by the contracts is an integer with 6 implied
decimal digits (micro-USDCx, micro-STX).
"""

from __future__ import annotations

from decimal import Decimal

MICRO = 1_000_000


def to_display(raw: int) -> Decimal:
    """Scale a raw micro-unit amount: 12_340_000 -> Decimal("12.34")."""
    return Decimal(int(raw)) / Decimal(MICRO)


def format_amount(raw: int, symbol: str = "USDCx") -> str:
    return f"{to_display(raw)} {symbol}"
