"""
Compact sqrt ratio encoding and price movement formulas.

A sqrt ratio is computed as a 64.128 fixed-point integer but stored in 96 bits:
the top two bits select a window and the remaining 94 bits hold a mantissa
shifted into place by that window:

    00 → mantissa << 2     (values below 2**96, i.e. sqrt price < 2**-32)
    01 → mantissa << 34    (values below 2**128, sqrt price < 1)
    10 → mantissa << 66    (values below 2**160, sqrt price < 2**32)
    11 → mantissa << 98    (values below 2**192, sqrt price < 2**64)

Precision is therefore relative: about 94 significant bits everywhere, which
bounds worst-case rounding far below one tick.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from typing import Optional

from ..constants import (
    MAX_FIXED_SQRT_RATIO,
    SQRT_RATIO_MANTISSA_BITS,
    SQRT_RATIO_WINDOW_SHIFTS,
)
from ..exceptions import InvariantViolation, SqrtRatioOverflow
from .checked import div_round_up

MANTISSA_LIMIT = 1 << SQRT_RATIO_MANTISSA_BITS
MANTISSA_MASK = MANTISSA_LIMIT - 1
ONE_X128 = 1 << 128


@total_ordering
@dataclass(frozen=True)
class SqrtRatio:
    """A 96-bit compact sqrt ratio. Compare and hash by encoded value."""
    raw: int

    def __post_init__(self) -> None:
        if not 0 <= self.raw < (1 << 96):
            raise SqrtRatioOverflow(f"compact sqrt ratio {self.raw} does not fit in 96 bits")

    @property
    def window(self) -> int:
        return self.raw >> SQRT_RATIO_MANTISSA_BITS

    @property
    def mantissa(self) -> int:
        return self.raw & MANTISSA_MASK

    def to_fixed(self) -> int:
        """Decode to a 64.128 fixed-point integer."""
        return self.mantissa << SQRT_RATIO_WINDOW_SHIFTS[self.window]

    @classmethod
    def from_fixed(cls, value: int, round_up: bool = False) -> "SqrtRatio":
        """
        Encode a 64.128 fixed-point value in the smallest window that holds it.

        Raises:
            SqrtRatioOverflow: value is negative or does not fit below 2**192.
        """
        if value < 0:
            raise SqrtRatioOverflow(f"negative sqrt ratio {value}")
        for window, shift in enumerate(SQRT_RATIO_WINDOW_SHIFTS):
            if round_up:
                mantissa = div_round_up(value, 1 << shift)
            else:
                mantissa = value >> shift
            if mantissa < MANTISSA_LIMIT:
                return cls((window << SQRT_RATIO_MANTISSA_BITS) | mantissa)
        raise SqrtRatioOverflow(f"sqrt ratio {value} does not fit below 2**192")

    def __lt__(self, other: "SqrtRatio") -> bool:
        if not isinstance(other, SqrtRatio):
            return NotImplemented
        return self.to_fixed() < other.to_fixed()

    def __repr__(self) -> str:
        return f"SqrtRatio(0x{self.raw:024x}, price={self.price:.12g})"

    @property
    def price(self) -> float:
        """Approximate token1/token0 price, for display only."""
        return (self.to_fixed() / ONE_X128) ** 2


def _encode_or_none(value: int, round_up: bool) -> Optional[SqrtRatio]:
    if value >= MAX_FIXED_SQRT_RATIO:
        return None
    try:
        return SqrtRatio.from_fixed(value, round_up=round_up)
    except SqrtRatioOverflow:
        return None


def next_sqrt_ratio_from_amount0(
    sqrt_ratio: SqrtRatio,
    liquidity: int,
    amount: int,
) -> Optional[SqrtRatio]:
    """
    Price after adding (amount > 0) or removing (amount < 0) token0.

    Adding token0 lowers the price; the result is rounded up so the trader
    receives less. Removing token0 raises the price; also rounded up so the
    trader pays more. Returns None when the result leaves the domain.
    """
    if amount == 0:
        return sqrt_ratio
    if liquidity == 0:
        raise InvariantViolation("next sqrt ratio from amount0 with zero liquidity")

    s = sqrt_ratio.to_fixed()
    liquidity_x128 = liquidity << 128
    amount_abs = abs(amount)

    if amount < 0:
        product = s * amount_abs
        if product >= liquidity_x128:
            return None
        result = div_round_up(liquidity_x128 * s, liquidity_x128 - product)
    else:
        # floor on the virtual reserve rounds the resulting price up
        denominator = liquidity_x128 // s + amount_abs
        result = div_round_up(liquidity_x128, denominator)

    return _encode_or_none(result, round_up=True)


def next_sqrt_ratio_from_amount1(
    sqrt_ratio: SqrtRatio,
    liquidity: int,
    amount: int,
) -> Optional[SqrtRatio]:
    """
    Price after adding (amount > 0) or removing (amount < 0) token1.

    Adding token1 raises the price, rounded down so the trader receives less.
    Removing token1 lowers the price, rounded down so the trader pays more.
    Returns None when the result leaves the domain.
    """
    if amount == 0:
        return sqrt_ratio
    if liquidity == 0:
        raise InvariantViolation("next sqrt ratio from amount1 with zero liquidity")

    s = sqrt_ratio.to_fixed()
    shifted = abs(amount) << 128

    if amount < 0:
        quotient = div_round_up(shifted, liquidity)
        if quotient >= s:
            return None
        result = s - quotient
    else:
        result = s + shifted // liquidity

    return _encode_or_none(result, round_up=False)
