"""Token amounts owed or returned for a change in position liquidity."""

from __future__ import annotations

from typing import Tuple

from ..exceptions import ArithmeticOverflow
from .checked import check_i128
from .delta import amount0_delta, amount1_delta
from .sqrt_ratio import SqrtRatio


def liquidity_delta_to_amount_delta(
    sqrt_ratio: SqrtRatio,
    liquidity_delta: int,
    sqrt_ratio_lower: SqrtRatio,
    sqrt_ratio_upper: SqrtRatio,
) -> Tuple[int, int]:
    """
    Signed (amount0, amount1) for adding or removing liquidity at the current price.

    Deposits (delta > 0) round up and are positive: the locker owes them.
    Withdrawals (delta < 0) round down and are negative: the ledger owes them.
    """
    if liquidity_delta == 0:
        return 0, 0

    round_up = liquidity_delta > 0
    liquidity = abs(liquidity_delta)
    sign = 1 if round_up else -1

    if sqrt_ratio <= sqrt_ratio_lower:
        amount0 = amount0_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity, round_up)
        amount1 = 0
    elif sqrt_ratio < sqrt_ratio_upper:
        amount0 = amount0_delta(sqrt_ratio, sqrt_ratio_upper, liquidity, round_up)
        amount1 = amount1_delta(sqrt_ratio_lower, sqrt_ratio, liquidity, round_up)
    else:
        amount0 = 0
        amount1 = amount1_delta(sqrt_ratio_lower, sqrt_ratio_upper, liquidity, round_up)

    return (
        check_i128(sign * amount0, ArithmeticOverflow, "amount0"),
        check_i128(sign * amount1, ArithmeticOverflow, "amount1"),
    )
