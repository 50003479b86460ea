"""Range checks for the fixed-width quantities the ledger stores."""

from __future__ import annotations

from typing import Type

from ..constants import I128_MAX, I128_MIN, I256_MAX, I256_MIN, U128_MAX, U64_MAX
from ..exceptions import ArithmeticOverflow, LiquidityOverflow


def check_u128(value: int, error: Type[ArithmeticOverflow] = ArithmeticOverflow, what: str = "value") -> int:
    if not 0 <= value <= U128_MAX:
        raise error(f"{what} {value} does not fit in u128")
    return value


def check_i128(value: int, error: Type[ArithmeticOverflow] = ArithmeticOverflow, what: str = "value") -> int:
    if not I128_MIN <= value <= I128_MAX:
        raise error(f"{what} {value} does not fit in i128")
    return value


def check_u64(value: int, error: Type[ArithmeticOverflow] = ArithmeticOverflow, what: str = "value") -> int:
    if not 0 <= value <= U64_MAX:
        raise error(f"{what} {value} does not fit in u64")
    return value


def check_i256(value: int, error: Type[ArithmeticOverflow] = ArithmeticOverflow, what: str = "value") -> int:
    if not I256_MIN <= value <= I256_MAX:
        raise error(f"{what} {value} does not fit in i256")
    return value


def add_liquidity_delta(liquidity: int, delta: int) -> int:
    """Apply a signed delta to an unsigned liquidity value, refusing to leave u128."""
    result = liquidity + delta
    if result < 0:
        raise LiquidityOverflow(f"liquidity underflow: {liquidity} + ({delta})")
    if result > U128_MAX:
        raise LiquidityOverflow(f"liquidity overflow: {liquidity} + {delta}")
    return result


def sub_liquidity_delta(liquidity: int, delta: int) -> int:
    return add_liquidity_delta(liquidity, -delta)


def div_round_up(numerator: int, denominator: int) -> int:
    """Ceiling division for non-negative numerators."""
    return -(-numerator // denominator)
