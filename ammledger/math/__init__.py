"""
Fixed-point price, tick, fee and liquidity arithmetic.

Everything here is exact integer arithmetic; floats appear only as display
helpers and as a search seed in sqrt_ratio_to_tick.
"""

from .checked import (
    add_liquidity_delta,
    check_i128,
    check_i256,
    check_u64,
    check_u128,
    div_round_up,
    sub_liquidity_delta,
)
from .delta import amount0_delta, amount1_delta
from .fee import (
    FeeTier,
    amount_before_fee,
    check_fee,
    compute_fee,
    fee_from_rate,
    fee_to_rate,
)
from .liquidity import liquidity_delta_to_amount_delta
from .sqrt_ratio import (
    ONE_X128,
    SqrtRatio,
    next_sqrt_ratio_from_amount0,
    next_sqrt_ratio_from_amount1,
)
from .ticks import (
    MAX_SQRT_RATIO,
    MIN_SQRT_RATIO,
    check_tick,
    max_liquidity_per_tick,
    max_usable_tick,
    min_usable_tick,
    sqrt_ratio_to_tick,
    tick_to_sqrt_ratio,
)

__all__ = [
    "ONE_X128",
    "MIN_SQRT_RATIO",
    "MAX_SQRT_RATIO",
    "SqrtRatio",
    "FeeTier",
    "add_liquidity_delta",
    "sub_liquidity_delta",
    "check_u64",
    "check_u128",
    "check_i128",
    "check_i256",
    "div_round_up",
    "amount0_delta",
    "amount1_delta",
    "amount_before_fee",
    "check_fee",
    "compute_fee",
    "fee_from_rate",
    "fee_to_rate",
    "liquidity_delta_to_amount_delta",
    "next_sqrt_ratio_from_amount0",
    "next_sqrt_ratio_from_amount1",
    "check_tick",
    "max_liquidity_per_tick",
    "max_usable_tick",
    "min_usable_tick",
    "sqrt_ratio_to_tick",
    "tick_to_sqrt_ratio",
]
