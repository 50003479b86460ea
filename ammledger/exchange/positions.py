"""
Position and fee checkpoint accounting.

A position earns the growth of the fees-per-liquidity accumulator *inside*
its bounds. Ticks store the growth on their far side ("outside"), which the
swap engine flips to global - outside every time a tick is crossed, so the
inside value can always be derived from the current tick alone.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Tuple

from ..exceptions import InsufficientLiquidity, LiquidityOverflow, MaxLiquidityPerTickExceeded
from ..math.checked import add_liquidity_delta, check_i128
from ..math.liquidity import liquidity_delta_to_amount_delta
from ..math.ticks import max_liquidity_per_tick, tick_to_sqrt_ratio
from .pool_store import PoolStore
from .tick_bitmap import TickBitmap
from .types import Bounds, FeesPerLiquidity, PoolKey, TickInfo, UpdatePositionParameters

logger = logging.getLogger(__name__)


def fees_per_liquidity_inside(
    current_tick: int,
    global_fees: FeesPerLiquidity,
    lower_outside: FeesPerLiquidity,
    upper_outside: FeesPerLiquidity,
    bounds: Bounds,
) -> FeesPerLiquidity:
    if current_tick < bounds.lower:
        return lower_outside - upper_outside
    if current_tick < bounds.upper:
        return global_fees - lower_outside - upper_outside
    return upper_outside - lower_outside


def _initial_outside(tick: int, current_tick: int, global_fees: FeesPerLiquidity) -> FeesPerLiquidity:
    # all growth so far is treated as having happened below the current tick
    return global_fees if current_tick >= tick else FeesPerLiquidity()


def _outside(info: TickInfo, tick: int, current_tick: int, global_fees: FeesPerLiquidity) -> FeesPerLiquidity:
    if info.liquidity_gross:
        return info.fees_per_liquidity_outside
    return _initial_outside(tick, current_tick, global_fees)


def get_fees_per_liquidity_inside(store: PoolStore, key: PoolKey, bounds: Bounds) -> FeesPerLiquidity:
    """Inside accumulator for a range of an initialized pool."""
    pool_id = key.pool_id
    state = store.require_pool_state(pool_id)
    global_fees = store.get_fees_per_liquidity(pool_id)
    if key.config.is_full_range:
        return global_fees
    lower = store.get_tick(pool_id, bounds.lower)
    upper = store.get_tick(pool_id, bounds.upper)
    return fees_per_liquidity_inside(
        state.tick,
        global_fees,
        _outside(lower, bounds.lower, state.tick, global_fees),
        _outside(upper, bounds.upper, state.tick, global_fees),
        bounds,
    )


def _next_tick_info(
    info: TickInfo,
    tick: int,
    current_tick: int,
    global_fees: FeesPerLiquidity,
    liquidity_delta: int,
    is_upper: bool,
    cap: int,
) -> TickInfo:
    gross = add_liquidity_delta(info.liquidity_gross, liquidity_delta)
    if liquidity_delta > 0 and gross > cap:
        raise MaxLiquidityPerTickExceeded(f"Tick {tick} would reference {gross} liquidity (cap {cap})")
    net = info.liquidity_net - liquidity_delta if is_upper else info.liquidity_net + liquidity_delta
    check_i128(net, LiquidityOverflow, f"net liquidity at tick {tick}")
    return TickInfo(
        liquidity_net=net,
        liquidity_gross=gross,
        fees_per_liquidity_outside=_outside(info, tick, current_tick, global_fees),
    )


def _store_tick(
    store: PoolStore,
    bitmap: TickBitmap,
    pool_id: str,
    tick: int,
    tick_spacing: int,
    previous: TickInfo,
    info: TickInfo,
) -> None:
    if info.liquidity_gross == 0:
        store.delete_tick(pool_id, tick)
        bitmap.set_initialized(pool_id, tick, tick_spacing, False)
        return
    store.set_tick(pool_id, tick, info)
    if previous.liquidity_gross == 0:
        bitmap.set_initialized(pool_id, tick, tick_spacing, True)


def update_position(
    store: PoolStore,
    bitmap: TickBitmap,
    key: PoolKey,
    owner: str,
    params: UpdatePositionParameters,
) -> Tuple[int, int]:
    """
    Add (delta > 0) or remove (delta < 0) liquidity from a position.

    Returns:
        (delta0, delta1) owed to the ledger; negative when tokens are released.
    """
    pool_id = key.pool_id
    config = key.config
    state = store.require_pool_state(pool_id)
    bounds = params.bounds
    bounds.validate(config.tick_spacing)
    delta = params.liquidity_delta

    position = store.get_position(pool_id, owner, params.salt, bounds)
    if delta < 0 and -delta > position.liquidity:
        raise InsufficientLiquidity(
            f"Position holds {position.liquidity} liquidity, cannot remove {-delta}"
        )

    global_fees = store.get_fees_per_liquidity(pool_id)

    if config.is_full_range:
        inside = global_fees
    else:
        cap = max_liquidity_per_tick(config.tick_spacing)
        lower = store.get_tick(pool_id, bounds.lower)
        upper = store.get_tick(pool_id, bounds.upper)
        lower_next = _next_tick_info(lower, bounds.lower, state.tick, global_fees, delta, False, cap)
        upper_next = _next_tick_info(upper, bounds.upper, state.tick, global_fees, delta, True, cap)
        inside = fees_per_liquidity_inside(
            state.tick,
            global_fees,
            lower_next.fees_per_liquidity_outside,
            upper_next.fees_per_liquidity_outside,
            bounds,
        )
        if delta:
            _store_tick(store, bitmap, pool_id, bounds.lower, config.tick_spacing, lower, lower_next)
            _store_tick(store, bitmap, pool_id, bounds.upper, config.tick_spacing, upper, upper_next)

    store.set_position(pool_id, owner, params.salt, bounds, position.updated(inside, delta))

    if delta and (config.is_full_range or bounds.lower <= state.tick < bounds.upper):
        state = replace(state, liquidity=add_liquidity_delta(state.liquidity, delta))
        store.set_pool_state(pool_id, state)

    amounts = liquidity_delta_to_amount_delta(
        state.sqrt_ratio,
        delta,
        tick_to_sqrt_ratio(bounds.lower),
        tick_to_sqrt_ratio(bounds.upper),
    )
    logger.debug(
        "Position %s/%s salt=%d [%d, %d] liquidity %+d → amounts %s",
        pool_id, owner, params.salt, bounds.lower, bounds.upper, delta, amounts,
    )
    return amounts


def collect_fees(
    store: PoolStore,
    key: PoolKey,
    owner: str,
    salt: int,
    bounds: Bounds,
) -> Tuple[int, int]:
    """Return the fees a position has earned and move its checkpoint to the current inside value."""
    bounds.validate(key.config.tick_spacing)
    pool_id = key.pool_id
    inside = get_fees_per_liquidity_inside(store, key, bounds)
    position = store.get_position(pool_id, owner, salt, bounds)
    fees = position.fees(inside)
    store.set_position(pool_id, owner, salt, bounds, replace(position, fees_per_liquidity_inside_last=inside))
    return fees
