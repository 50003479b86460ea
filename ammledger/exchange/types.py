"""
Value types shared by the ledger, the swap engine and position accounting.

Every stored record is an immutable dataclass; updates go through
dataclasses.replace so the journaled storage can restore the previous value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Optional, Tuple

from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

from ..constants import (
    FULL_RANGE_ONLY_TICK_SPACING,
    MAX_TICK,
    MAX_TICK_SPACING,
    MIN_TICK,
)
from ..exceptions import (
    FeeAccountingError,
    FeesOverflow,
    FeesPerLiquidityOverflow,
    InvalidAddressError,
    InvalidBounds,
    InvalidPoolKey,
    MustCollectFeesBeforeWithdrawingAllLiquidity,
    ValidationError,
)
from ..math.checked import add_liquidity_delta, check_i256, check_u128
from ..math.fee import check_fee
from ..math.sqrt_ratio import SqrtRatio

_ZERO_ADDRESS_BYTES = b"\x00" * 20


def to_address(value: str) -> str:
    """Validate an address and return its EIP-55 checksum form."""
    if not isinstance(value, str) or not is_address(value):
        raise InvalidAddressError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


def address_order(address: str) -> int:
    return int(address, 16)


# ---------------------------------------------------------------------------
# Pool identity
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PoolConfig:
    """Fee (0.64 fixed point), tick spacing (0 = full range only) and optional extension."""
    fee: int
    tick_spacing: int
    extension: Optional[str] = None

    def __post_init__(self) -> None:
        if self.extension is not None and is_address(self.extension):
            object.__setattr__(self, "extension", to_checksum_address(self.extension))

    @property
    def is_full_range(self) -> bool:
        return self.tick_spacing == FULL_RANGE_ONLY_TICK_SPACING


@dataclass(frozen=True)
class PoolKey:
    """
    Identity of a pool: an ordered token pair plus its configuration.

    Addresses are checksummed on construction when they are valid; the
    remaining rules are enforced by validate() when the pool is initialized.
    """
    token0: str
    token1: str
    config: PoolConfig

    def __post_init__(self) -> None:
        for name in ("token0", "token1"):
            value = getattr(self, name)
            if isinstance(value, str) and is_address(value):
                object.__setattr__(self, name, to_checksum_address(value))

    def validate(self, max_tick_spacing: int = MAX_TICK_SPACING) -> None:
        """
        Raises:
            InvalidPoolKey: on bad tokens, ordering, fee, tick spacing or extension.
        """
        for name in ("token0", "token1"):
            value = getattr(self, name)
            if not isinstance(value, str) or not is_address(value):
                raise InvalidPoolKey(f"{name} is not an address: {value!r}")
        if address_order(self.token0) >= address_order(self.token1):
            raise InvalidPoolKey(f"Tokens must be sorted and distinct: {self.token0} >= {self.token1}")

        try:
            check_fee(self.config.fee)
        except ValidationError as e:
            raise InvalidPoolKey(str(e)) from e

        spacing = self.config.tick_spacing
        if not isinstance(spacing, int) or isinstance(spacing, bool):
            raise InvalidPoolKey(f"Tick spacing must be an integer (got {spacing!r})")
        if spacing != FULL_RANGE_ONLY_TICK_SPACING and not 1 <= spacing <= max_tick_spacing:
            raise InvalidPoolKey(f"Tick spacing {spacing} outside [1, {max_tick_spacing}]")

        extension = self.config.extension
        if extension is not None and not is_address(extension):
            raise InvalidPoolKey(f"Extension is not an address: {extension!r}")

    def encode(self) -> bytes:
        """token0 ‖ token1 ‖ fee (8 bytes) ‖ tick spacing (4 bytes) ‖ extension."""
        extension = self.config.extension
        return (
            to_canonical_address(self.token0)
            + to_canonical_address(self.token1)
            + self.config.fee.to_bytes(8, "big")
            + self.config.tick_spacing.to_bytes(4, "big")
            + (to_canonical_address(extension) if extension else _ZERO_ADDRESS_BYTES)
        )

    @cached_property
    def pool_id(self) -> str:
        return "0x" + keccak(self.encode()).hex()


# ---------------------------------------------------------------------------
# Accumulators
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FeesPerLiquidity:
    """Per-token fee growth per unit of liquidity, Q128, held as checked signed 256-bit words."""
    value0: int = 0
    value1: int = 0

    def __post_init__(self) -> None:
        check_i256(self.value0, FeesPerLiquidityOverflow, "fees per liquidity (token0)")
        check_i256(self.value1, FeesPerLiquidityOverflow, "fees per liquidity (token1)")

    def __add__(self, other: "FeesPerLiquidity") -> "FeesPerLiquidity":
        return FeesPerLiquidity(self.value0 + other.value0, self.value1 + other.value1)

    def __sub__(self, other: "FeesPerLiquidity") -> "FeesPerLiquidity":
        return FeesPerLiquidity(self.value0 - other.value0, self.value1 - other.value1)

    @classmethod
    def from_amounts(cls, amount0: int, amount1: int, liquidity: int) -> "FeesPerLiquidity":
        """Fee amounts spread over liquidity, rounded down."""
        if liquidity == 0:
            return cls()
        return cls((amount0 << 128) // liquidity, (amount1 << 128) // liquidity)


# ---------------------------------------------------------------------------
# Pool, tick and position records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PoolState:
    sqrt_ratio: SqrtRatio
    tick: int
    liquidity: int = 0


@dataclass(frozen=True)
class TickInfo:
    """Liquidity referencing a tick and the fee growth on its far side."""
    liquidity_net: int = 0
    liquidity_gross: int = 0
    fees_per_liquidity_outside: FeesPerLiquidity = field(default_factory=FeesPerLiquidity)


@dataclass(frozen=True)
class Bounds:
    lower: int
    upper: int

    def validate(self, tick_spacing: int) -> None:
        """
        Raises:
            InvalidBounds: unordered, out of range, off the spacing grid, or not
                full range on a full-range-only pool.
        """
        if tick_spacing == FULL_RANGE_ONLY_TICK_SPACING:
            if (self.lower, self.upper) != (MIN_TICK, MAX_TICK):
                raise InvalidBounds(
                    f"Full-range pools only accept bounds ({MIN_TICK}, {MAX_TICK}), "
                    f"got ({self.lower}, {self.upper})"
                )
            return
        if self.lower >= self.upper:
            raise InvalidBounds(f"Lower tick {self.lower} must be below upper tick {self.upper}")
        if self.lower < MIN_TICK or self.upper > MAX_TICK:
            raise InvalidBounds(f"Bounds ({self.lower}, {self.upper}) outside [{MIN_TICK}, {MAX_TICK}]")
        if self.lower % tick_spacing or self.upper % tick_spacing:
            raise InvalidBounds(
                f"Bounds ({self.lower}, {self.upper}) are not multiples of tick spacing {tick_spacing}"
            )

    @classmethod
    def full_range(cls) -> "Bounds":
        return cls(MIN_TICK, MAX_TICK)


@dataclass(frozen=True)
class Position:
    liquidity: int = 0
    fees_per_liquidity_inside_last: FeesPerLiquidity = field(default_factory=FeesPerLiquidity)

    def fees(self, inside: FeesPerLiquidity) -> Tuple[int, int]:
        """
        Fees owed since the last checkpoint.

        Raises:
            FeeAccountingError: the checkpoint is ahead of the inside accumulator.
            FeesOverflow: the owed amount does not fit in u128.
        """
        growth = inside - self.fees_per_liquidity_inside_last
        fee0 = (growth.value0 * self.liquidity) >> 128
        fee1 = (growth.value1 * self.liquidity) >> 128
        if fee0 < 0 or fee1 < 0:
            raise FeeAccountingError(f"Negative owed fees ({fee0}, {fee1})")
        return (
            check_u128(fee0, FeesOverflow, "owed fees (token0)"),
            check_u128(fee1, FeesOverflow, "owed fees (token1)"),
        )

    def updated(self, inside: FeesPerLiquidity, liquidity_delta: int) -> "Position":
        """
        Apply a liquidity change while keeping the fees owed so far.

        The checkpoint is re-based to inside - fees / liquidity_next, so the
        new liquidity sees exactly the fees already earned. Withdrawing all
        liquidity requires the fees to be collected first.

        Checkpoints are signed i256 values, so the re-based checkpoint may be
        negative: only differences against later inside values are ever
        used, and those stay exact. Leaving the i256 range raises
        FeesPerLiquidityOverflow instead of wrapping.
        """
        fee0, fee1 = self.fees(inside)
        liquidity_next = add_liquidity_delta(self.liquidity, liquidity_delta)

        if liquidity_next == 0:
            if fee0 or fee1:
                raise MustCollectFeesBeforeWithdrawingAllLiquidity(
                    f"Uncollected fees ({fee0}, {fee1}) on a position being emptied"
                )
            return Position(0, inside)

        owed = FeesPerLiquidity.from_amounts(fee0, fee1, liquidity_next)
        return Position(liquidity_next, inside - owed)


# ---------------------------------------------------------------------------
# Parameters and identities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapParameters:
    """
    amount > 0 is an exact input, amount < 0 an exact output, of token1 when
    is_token1 else token0. A missing limit means the price may move to the
    end of the domain.
    """
    amount: int
    is_token1: bool
    sqrt_ratio_limit: Optional[SqrtRatio] = None


@dataclass(frozen=True)
class UpdatePositionParameters:
    bounds: Bounds
    liquidity_delta: int
    salt: int = 0


@dataclass(frozen=True)
class Locker:
    """The scope currently holding the lock and the address authorized to act for it."""
    scope_id: int
    address: str
