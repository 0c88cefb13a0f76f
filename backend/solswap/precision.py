"""
Amount conversion between human units and on-chain smallest units

All conversions go through these two functions so rounding is applied in one
place. Amounts are handled as Decimal (floats are converted through str() to
avoid binary artifacts such as 0.01 * 10**9 == 9999999.999...).
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from solswap.constants import SOL_DECIMALS

Number = Union[int, float, str, Decimal]


def _to_decimal(amount: Number) -> Decimal:
    if isinstance(amount, bool):
        raise TypeError("amount must be a number, not bool")
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def to_smallest_unit(amount: Number, decimals: int) -> int:
    """
    Convert a human-readable amount to an integer smallest-unit amount.

    Rounds half-up to the nearest smallest unit.

    Examples:
        >>> to_smallest_unit(0.01, 9)
        10000000
        >>> to_smallest_unit("1.5", 6)
        1500000
    """
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    scaled = _to_decimal(amount) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_smallest_unit(amount: int, decimals: int) -> Decimal:
    """Convert an integer smallest-unit amount back to human units"""
    if decimals < 0:
        raise ValueError(f"decimals must be >= 0, got {decimals}")
    return Decimal(int(amount)) / (Decimal(10) ** decimals)


def sol_to_lamports(amount_sol: Number) -> int:
    return to_smallest_unit(amount_sol, SOL_DECIMALS)


def lamports_to_sol(lamports: int) -> Decimal:
    return from_smallest_unit(lamports, SOL_DECIMALS)
