"""
Tick ↔ sqrt ratio conversion.

price = 1.000001 ** tick, so the sqrt ratio at a tick is 1.000001 ** (tick / 2).
tick_to_sqrt_ratio decomposes |tick| into bits and multiplies together
pre-computed Q128 factors floor(2**128 / sqrt(1.000001) ** (2**i)); positive
ticks invert the product. The factors are derived once at import from exact
decimal arithmetic, so the result for a given tick never varies.
"""

from __future__ import annotations

import math
from decimal import Decimal, ROUND_FLOOR, localcontext
from functools import lru_cache
from typing import Tuple

from ..constants import (
    MAX_TICK,
    MIN_TICK,
    TICK_BASE_DENOMINATOR,
    TICK_BASE_NUMERATOR,
    U128_MAX,
)
from ..exceptions import InvalidSqrtRatio, InvalidTick
from .sqrt_ratio import ONE_X128, SqrtRatio

_TICK_BITS = MAX_TICK.bit_length()


def _build_tick_factors() -> Tuple[int, ...]:
    with localcontext() as ctx:
        ctx.prec = 120
        inverse_sqrt_base = (Decimal(TICK_BASE_DENOMINATOR) / Decimal(TICK_BASE_NUMERATOR)).sqrt()
        factors = []
        for i in range(_TICK_BITS):
            factor = inverse_sqrt_base ** (2**i) * ONE_X128
            factors.append(int(factor.to_integral_value(rounding=ROUND_FLOOR)))
    return tuple(factors)


_TICK_FACTORS = _build_tick_factors()

# ln(sqrt(1.000001)) and ln(2**128), used only to seed the exact search
_LN_SQRT_BASE = math.log1p((TICK_BASE_NUMERATOR - TICK_BASE_DENOMINATOR) / TICK_BASE_DENOMINATOR) / 2
_LN_ONE_X128 = 128 * math.log(2)


def check_tick(tick: int) -> int:
    if not isinstance(tick, int) or isinstance(tick, bool):
        raise InvalidTick(f"Tick must be an integer (got {tick!r})")
    if not MIN_TICK <= tick <= MAX_TICK:
        raise InvalidTick(f"Tick {tick} outside [{MIN_TICK}, {MAX_TICK}]")
    return tick


@lru_cache(maxsize=8192, typed=True)
def tick_to_sqrt_ratio(tick: int) -> SqrtRatio:
    """Exact sqrt ratio at a tick, rounded down into the compact encoding."""
    check_tick(tick)
    t = abs(tick)
    ratio = ONE_X128
    for i, factor in enumerate(_TICK_FACTORS):
        if t & (1 << i):
            ratio = (ratio * factor) >> 128
    if tick > 0:
        ratio = ((1 << 256) - 1) // ratio
    return SqrtRatio.from_fixed(ratio, round_up=False)


MIN_SQRT_RATIO = tick_to_sqrt_ratio(MIN_TICK)
MAX_SQRT_RATIO = tick_to_sqrt_ratio(MAX_TICK)


def sqrt_ratio_to_tick(sqrt_ratio: SqrtRatio) -> int:
    """
    Floor tick of a sqrt ratio: the largest tick whose ratio is <= sqrt_ratio.

    A floating-point logarithm gives the starting estimate; the answer is then
    pinned down by comparing against exact tick_to_sqrt_ratio values.
    """
    if not MIN_SQRT_RATIO <= sqrt_ratio <= MAX_SQRT_RATIO:
        raise InvalidSqrtRatio(f"{sqrt_ratio!r} outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO]")

    estimate = math.floor((math.log(sqrt_ratio.to_fixed()) - _LN_ONE_X128) / _LN_SQRT_BASE)
    tick = max(MIN_TICK, min(MAX_TICK, estimate))

    while tick > MIN_TICK and tick_to_sqrt_ratio(tick) > sqrt_ratio:
        tick -= 1
    while tick < MAX_TICK and tick_to_sqrt_ratio(tick + 1) <= sqrt_ratio:
        tick += 1
    return tick


def min_usable_tick(tick_spacing: int) -> int:
    """Smallest multiple of tick_spacing that is >= MIN_TICK."""
    return -((-MIN_TICK) // tick_spacing) * tick_spacing


def max_usable_tick(tick_spacing: int) -> int:
    """Largest multiple of tick_spacing that is <= MAX_TICK."""
    return (MAX_TICK // tick_spacing) * tick_spacing


def max_liquidity_per_tick(tick_spacing: int) -> int:
    """Per-tick gross liquidity cap so that every usable tick together fits in u128."""
    usable = (max_usable_tick(tick_spacing) - min_usable_tick(tick_spacing)) // tick_spacing + 1
    return U128_MAX // usable
