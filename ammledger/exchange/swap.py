"""
Concentrated-liquidity swap engine.

swap_result computes a single step against constant liquidity; swap walks
initialized ticks, applying one step per tick range until the amount is used
up or the price limit is reached.

Rounding always favours the pool: exact inputs produce rounded-down outputs,
exact outputs require rounded-up inputs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Tuple

from ..constants import MAX_TICK, MIN_TICK
from ..exceptions import (
    ArithmeticOverflow,
    FeesPerLiquidityOverflow,
    SqrtRatioLimitOutOfRange,
    SqrtRatioLimitWrongDirection,
    SwapInvariantViolation,
)
from ..math.checked import add_liquidity_delta, check_i128, check_i256
from ..math.delta import amount0_delta, amount1_delta
from ..math.fee import amount_before_fee, compute_fee
from ..math.sqrt_ratio import SqrtRatio, next_sqrt_ratio_from_amount0, next_sqrt_ratio_from_amount1
from ..math.ticks import MAX_SQRT_RATIO, MIN_SQRT_RATIO, sqrt_ratio_to_tick, tick_to_sqrt_ratio
from .pool_store import PoolStore
from .tick_bitmap import TickBitmap
from .types import FeesPerLiquidity, PoolKey, PoolState, SwapParameters

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwapResult:
    """
    One swap step.

    consumed_amount has the sign of the specified amount; calculated_amount
    is the unsigned amount of the other token; fee_amount is charged on the
    input token and already included in whichever amount is the input.
    """
    consumed_amount: int
    calculated_amount: int
    sqrt_ratio_next: SqrtRatio
    fee_amount: int


def is_price_increasing(amount: int, is_token1: bool) -> bool:
    return is_token1 != (amount < 0)


def swap_result(
    sqrt_ratio: SqrtRatio,
    liquidity: int,
    sqrt_ratio_limit: SqrtRatio,
    amount: int,
    is_token1: bool,
    fee: int,
) -> SwapResult:
    """Swap `amount` against constant liquidity, never moving past sqrt_ratio_limit."""
    if amount == 0 or sqrt_ratio == sqrt_ratio_limit:
        return SwapResult(0, 0, sqrt_ratio, 0)

    is_exact_out = amount < 0
    increasing = is_price_increasing(amount, is_token1)
    if (sqrt_ratio_limit < sqrt_ratio) if increasing else (sqrt_ratio_limit > sqrt_ratio):
        raise SqrtRatioLimitWrongDirection(
            f"Limit {sqrt_ratio_limit!r} is on the wrong side of {sqrt_ratio!r}"
        )

    if liquidity == 0:
        return SwapResult(0, 0, sqrt_ratio_limit, 0)

    if is_exact_out:
        price_impact_amount = amount
        fee_amount = 0
    else:
        fee_amount = compute_fee(amount, fee)
        price_impact_amount = amount - fee_amount

    if is_token1:
        sqrt_ratio_next = next_sqrt_ratio_from_amount1(sqrt_ratio, liquidity, price_impact_amount)
    else:
        sqrt_ratio_next = next_sqrt_ratio_from_amount0(sqrt_ratio, liquidity, price_impact_amount)

    within_limit = sqrt_ratio_next is not None and (
        sqrt_ratio_next <= sqrt_ratio_limit if increasing else sqrt_ratio_next >= sqrt_ratio_limit
    )

    if within_limit:
        if sqrt_ratio_next == sqrt_ratio:
            if is_exact_out:
                raise SwapInvariantViolation(
                    f"Exact output of {-amount} did not move the price from {sqrt_ratio!r}"
                )
            # too small to move the price: the whole amount is kept as fee
            return SwapResult(amount, 0, sqrt_ratio, amount)

        if is_token1:
            calculated = amount0_delta(sqrt_ratio, sqrt_ratio_next, liquidity, is_exact_out)
        else:
            calculated = amount1_delta(sqrt_ratio, sqrt_ratio_next, liquidity, is_exact_out)

        if is_exact_out:
            including_fee = amount_before_fee(calculated, fee)
            return SwapResult(amount, including_fee, sqrt_ratio_next, including_fee - calculated)
        return SwapResult(amount, calculated, sqrt_ratio_next, fee_amount)

    # the limit is reached before the amount is used up
    if is_token1:
        specified = amount1_delta(sqrt_ratio, sqrt_ratio_limit, liquidity, not is_exact_out)
        calculated = amount0_delta(sqrt_ratio, sqrt_ratio_limit, liquidity, is_exact_out)
    else:
        specified = amount0_delta(sqrt_ratio, sqrt_ratio_limit, liquidity, not is_exact_out)
        calculated = amount1_delta(sqrt_ratio, sqrt_ratio_limit, liquidity, is_exact_out)

    if is_exact_out:
        including_fee = amount_before_fee(calculated, fee)
        return SwapResult(-specified, including_fee, sqrt_ratio_limit, including_fee - calculated)

    including_fee = amount_before_fee(specified, fee)
    return SwapResult(including_fee, calculated, sqrt_ratio_limit, including_fee - specified)


def _resolve_limit(params: SwapParameters, state: PoolState) -> SqrtRatio:
    increasing = is_price_increasing(params.amount, params.is_token1)
    limit = params.sqrt_ratio_limit
    if limit is None:
        return MAX_SQRT_RATIO if increasing else MIN_SQRT_RATIO
    if not MIN_SQRT_RATIO <= limit <= MAX_SQRT_RATIO:
        raise SqrtRatioLimitOutOfRange(f"Limit {limit!r} outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO]")
    if (limit < state.sqrt_ratio) if increasing else (limit > state.sqrt_ratio):
        raise SqrtRatioLimitWrongDirection(
            f"Limit {limit!r} is on the wrong side of the pool price {state.sqrt_ratio!r}"
        )
    return limit


def swap(
    store: PoolStore,
    bitmap: TickBitmap,
    key: PoolKey,
    params: SwapParameters,
) -> Tuple[int, int, PoolState]:
    """
    Run a swap against an initialized pool and persist the result.

    Returns:
        (delta0, delta1, new_state), deltas from the ledger's point of view:
        positive amounts are owed to the ledger by the locker.
    """
    pool_id = key.pool_id
    state = store.require_pool_state(pool_id)
    limit = _resolve_limit(params, state)
    increasing = is_price_increasing(params.amount, params.is_token1)
    is_exact_out = params.amount < 0
    config = key.config
    input_index = 1 if increasing else 0

    fees = store.get_fees_per_liquidity(pool_id)
    global_fees = [fees.value0, fees.value1]

    sqrt_ratio, tick, liquidity = state.sqrt_ratio, state.tick, state.liquidity
    amount_remaining = params.amount
    calculated_total = 0

    while amount_remaining != 0 and sqrt_ratio != limit:
        if config.is_full_range:
            next_tick, initialized = (MAX_TICK if increasing else MIN_TICK), False
        elif increasing:
            next_tick, initialized = bitmap.next_initialized_tick(pool_id, tick, config.tick_spacing)
        else:
            next_tick, initialized = bitmap.prev_initialized_tick(pool_id, tick, config.tick_spacing)

        next_tick_sqrt_ratio = tick_to_sqrt_ratio(next_tick)
        if increasing:
            step_limit = min(next_tick_sqrt_ratio, limit)
        else:
            step_limit = max(next_tick_sqrt_ratio, limit)

        step = swap_result(sqrt_ratio, liquidity, step_limit, amount_remaining, params.is_token1, config.fee)

        amount_remaining -= step.consumed_amount
        calculated_total += step.calculated_amount

        if step.fee_amount and liquidity:
            global_fees[input_index] = check_i256(
                global_fees[input_index] + (step.fee_amount << 128) // liquidity,
                FeesPerLiquidityOverflow,
                "global fees per liquidity",
            )

        if step.sqrt_ratio_next == next_tick_sqrt_ratio:
            sqrt_ratio = next_tick_sqrt_ratio
            if increasing:
                tick = next_tick
            elif next_tick == MIN_TICK:
                # nothing lies below MIN_TICK, so it is never crossed
                tick = MIN_TICK
                continue
            else:
                tick = next_tick - 1

            if initialized:
                liquidity = _cross_tick(store, pool_id, next_tick, increasing, liquidity, global_fees)
        elif step.sqrt_ratio_next != sqrt_ratio:
            # a step that leaves the price in place keeps the stored tick
            sqrt_ratio = step.sqrt_ratio_next
            tick = sqrt_ratio_to_tick(sqrt_ratio)

    new_state = PoolState(sqrt_ratio, tick, liquidity)
    store.set_pool_state(pool_id, new_state)
    store.set_fees_per_liquidity(pool_id, FeesPerLiquidity(*global_fees))

    specified_delta = params.amount - amount_remaining
    calculated_delta = calculated_total if is_exact_out else -calculated_total
    if params.is_token1:
        delta0, delta1 = calculated_delta, specified_delta
    else:
        delta0, delta1 = specified_delta, calculated_delta

    logger.debug(
        "Swap on %s: amount=%d is_token1=%s → delta0=%d delta1=%d tick=%d",
        pool_id, params.amount, params.is_token1, delta0, delta1, tick,
    )
    return (
        check_i128(delta0, ArithmeticOverflow, "swap delta0"),
        check_i128(delta1, ArithmeticOverflow, "swap delta1"),
        new_state,
    )


def _cross_tick(
    store: PoolStore,
    pool_id: str,
    tick: int,
    increasing: bool,
    liquidity: int,
    global_fees: list,
) -> int:
    """Apply a tick's net liquidity and flip its outside accumulator to global - outside."""
    info = store.get_tick(pool_id, tick)
    liquidity = add_liquidity_delta(liquidity, info.liquidity_net if increasing else -info.liquidity_net)
    outside = info.fees_per_liquidity_outside
    flipped = FeesPerLiquidity(global_fees[0] - outside.value0, global_fees[1] - outside.value1)
    store.set_tick(pool_id, tick, replace(info, fees_per_liquidity_outside=flipped))
    return liquidity
