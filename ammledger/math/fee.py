"""
Swap fee arithmetic.

Fees are 0.64 fixed-point fractions of the input amount: a fee of 2**63 is
50 %. compute_fee rounds up and amount_before_fee rounds up, so
``b - compute_fee(b, fee) == after`` holds for ``b = amount_before_fee(after, fee)``
and the pool never undercharges.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR
from enum import IntEnum

from ..constants import FEE_DENOMINATOR
from ..exceptions import AmountBeforeFeeOverflow, ValidationError
from .checked import check_u128, div_round_up


def check_fee(fee: int) -> int:
    if not isinstance(fee, int) or isinstance(fee, bool) or not 0 <= fee < FEE_DENOMINATOR:
        raise ValidationError(f"Fee must be an integer in [0, 2**64) (got {fee!r})")
    return fee


def compute_fee(amount: int, fee: int) -> int:
    """Fee taken from an input amount, rounded up."""
    return div_round_up(amount * fee, FEE_DENOMINATOR)


def amount_before_fee(after_fee: int, fee: int) -> int:
    """Smallest input that leaves at least `after_fee` once the fee is taken."""
    result = div_round_up(after_fee * FEE_DENOMINATOR, FEE_DENOMINATOR - fee)
    return check_u128(result, AmountBeforeFeeOverflow, "amount before fee")


def fee_from_rate(rate: Decimal) -> int:
    """Convert a fractional rate (e.g. Decimal('0.003')) to a 0.64 fee, rounding down."""
    rate = Decimal(rate)
    if not Decimal(0) <= rate < Decimal(1):
        raise ValidationError(f"Fee rate must be within [0, 1) (got {rate})")
    return int((rate * FEE_DENOMINATOR).to_integral_value(rounding=ROUND_FLOOR))


def fee_to_rate(fee: int) -> Decimal:
    return Decimal(check_fee(fee)) / Decimal(FEE_DENOMINATOR)


class FeeTier(IntEnum):
    """Common fee tiers in hundredths of a basis point."""
    ULTRA_LOW = 100      # 0.01 %
    LOW = 500            # 0.05 %
    MEDIUM = 3000        # 0.30 %
    HIGH = 10000         # 1.00 %

    @property
    def rate(self) -> Decimal:
        return Decimal(int(self)) / Decimal("1000000")

    @property
    def fee(self) -> int:
        return fee_from_rate(self.rate)

    @property
    def tick_spacing(self) -> int:
        return _TICK_SPACINGS[int(self)]


# ticks are 1.000001 apart; spacings are one hundred times the usual 1.0001-tick values
_TICK_SPACINGS = {
    100: 100,
    500: 1000,
    3000: 6000,
    10000: 20000,
}
