"""Token amounts spanned by a liquidity position between two sqrt ratios."""

from __future__ import annotations

from ..exceptions import Amount0DeltaOverflow, Amount1DeltaOverflow
from .checked import check_u128, div_round_up
from .sqrt_ratio import SqrtRatio


def _ordered(a: SqrtRatio, b: SqrtRatio):
    lower, upper = sorted((a.to_fixed(), b.to_fixed()))
    return lower, upper


def amount0_delta(a: SqrtRatio, b: SqrtRatio, liquidity: int, round_up: bool) -> int:
    """
    Token0 amount for moving `liquidity` between two sqrt ratios.

    amount0 = L * (upper - lower) / (upper * lower), computed as two
    successive divisions so each one rounds in the requested direction.
    """
    lower, upper = _ordered(a, b)
    if liquidity == 0 or lower == upper:
        return 0

    numerator = (liquidity << 128) * (upper - lower)
    if round_up:
        result = div_round_up(div_round_up(numerator, upper), lower)
    else:
        result = (numerator // upper) // lower
    return check_u128(result, Amount0DeltaOverflow, "amount0 delta")


def amount1_delta(a: SqrtRatio, b: SqrtRatio, liquidity: int, round_up: bool) -> int:
    """Token1 amount for moving `liquidity` between two sqrt ratios: L * (upper - lower)."""
    lower, upper = _ordered(a, b)
    if liquidity == 0 or lower == upper:
        return 0

    product = liquidity * (upper - lower)
    result = div_round_up(product, 1 << 128) if round_up else product >> 128
    return check_u128(result, Amount1DeltaOverflow, "amount1 delta")
