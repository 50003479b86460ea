"""
AMM Ledger Core

The singleton surface every caller goes through. It holds the state of every
pool and settles each caller's token movements through flash accounting:
  - Pool initialization with optional extension
  - Swaps and position updates that only record debt in the caller's scope
  - Fee collection and extension-injected fees
  - Ledger primitives (enter, forward, adjust_debt, payments, withdraw)

Every mutating operation runs atomically: if anything raises, all storage
writes and debt changes made by the operation are undone.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

from ..constants import AMMLEDGER_ADDRESS, MAX_TICK_SPACING
from ..exceptions import (
    ArithmeticOverflow,
    DebtAdjustmentRejected,
    ExtensionNotRegistered,
    NotLocker,
    PoolAlreadyInitialized,
)
from ..logger import configure_logging
from ..math.checked import check_u128
from ..math.sqrt_ratio import SqrtRatio
from ..math.ticks import check_tick, tick_to_sqrt_ratio
from . import positions
from .accountant import Forwardee, Ledger
from .hooks import CallPoints, Extension, ExtensionRegistration, HookDispatcher
from .pool_store import PoolStore
from .storage import JournaledStorage, TokenBank
from .swap import swap as run_swap
from .tick_bitmap import TickBitmap
from .types import (
    Bounds,
    FeesPerLiquidity,
    Locker,
    PoolKey,
    PoolState,
    Position,
    SwapParameters,
    TickInfo,
    UpdatePositionParameters,
    to_address,
)

if TYPE_CHECKING:
    from ..config import LedgerConfig

logger = logging.getLogger(__name__)


class Core:
    """
    Singleton AMM ledger.

    Deltas returned by swap and update_position are from the ledger's point
    of view: positive amounts are owed to the ledger by the current locker and
    have already been added to its scope's debt.
    """

    def __init__(
        self,
        address: str = str(AMMLEDGER_ADDRESS),
        storage: Optional[JournaledStorage] = None,
        max_tick_spacing: int = MAX_TICK_SPACING,
        require_completed_payments: bool = True,
    ) -> None:
        self.storage = storage if storage is not None else JournaledStorage()
        self.bank = TokenBank(self.storage)
        self.ledger = Ledger(address, self.storage, self.bank, require_completed_payments)
        self.pools = PoolStore(self.storage)
        self.bitmap = TickBitmap(self.storage)
        self.hooks = HookDispatcher(self.pools)
        self.max_tick_spacing = max_tick_spacing

    @classmethod
    def from_config(cls, config: "LedgerConfig", configure_logs: bool = True) -> "Core":
        """Build a core from a loaded LedgerConfig, configuring logging first."""
        if configure_logs:
            configure_logging(
                level=config.logging.level,
                log_file=config.logging.file or None,
                console_output=config.logging.console_output,
                file_output=config.logging.file_output,
            )
        core = cls(
            address=config.ledger.address,
            max_tick_spacing=config.ledger.max_tick_spacing,
            require_completed_payments=config.ledger.require_completed_payments,
        )
        logger.info("Ledger core ready at %s", core.address)
        return core

    @property
    def address(self) -> str:
        return self.ledger.address

    # ------------------------------------------------------------------
    # Extensions and pools
    # ------------------------------------------------------------------

    def register_extension(self, extension: Extension) -> ExtensionRegistration:
        with self.ledger.atomic():
            return self.hooks.register(extension)

    def _require_pool(self, key: PoolKey) -> PoolState:
        key.validate(self.max_tick_spacing)
        return self.pools.require_pool_state(key.pool_id)

    def initialize_pool(self, sender: str, key: PoolKey, tick: int) -> SqrtRatio:
        """
        Create a pool at `tick` with no liquidity.

        Raises:
            InvalidPoolKey / InvalidTick: malformed input.
            ExtensionNotRegistered: the key names an extension that never registered.
            PoolAlreadyInitialized: the pool exists.
        """
        caller = to_address(sender)
        key.validate(self.max_tick_spacing)
        check_tick(tick)
        if key.config.extension is not None and not self.hooks.is_registered(key.config.extension):
            raise ExtensionNotRegistered(f"Pool extension {key.config.extension} is not registered")

        pool_id = key.pool_id
        with self.ledger.atomic():
            if self.pools.get_pool_state(pool_id) is not None:
                raise PoolAlreadyInitialized(f"Pool {pool_id} is already initialized")

            self.hooks.dispatch(
                CallPoints.BEFORE_INITIALIZE_POOL, "before_initialize_pool", key, caller,
                self, caller, key, tick,
            )

            sqrt_ratio = tick_to_sqrt_ratio(tick)
            self.pools.set_pool_state(pool_id, PoolState(sqrt_ratio, tick, 0))
            self.pools.set_pool_key(key)
            self.pools.set_fees_per_liquidity(pool_id, FeesPerLiquidity())
            logger.info(
                "Pool initialized: pool_id=%s %s/%s fee=%d tick_spacing=%d tick=%d",
                pool_id, key.token0, key.token1, key.config.fee, key.config.tick_spacing, tick,
            )

            self.hooks.dispatch(
                CallPoints.AFTER_INITIALIZE_POOL, "after_initialize_pool", key, caller,
                self, caller, key, tick, sqrt_ratio,
            )
        return sqrt_ratio

    # ------------------------------------------------------------------
    # Pool operations (require the lock)
    # ------------------------------------------------------------------

    def swap(self, sender: str, key: PoolKey, params: SwapParameters) -> Tuple[int, int]:
        locker = self.ledger.require_locker(sender)
        with self.ledger.atomic():
            self._require_pool(key)
            self.hooks.dispatch(CallPoints.BEFORE_SWAP, "before_swap", key, locker.address, self, locker, key, params)

            delta0, delta1, _ = run_swap(self.pools, self.bitmap, key, params)
            self.ledger.adjust_debt(locker, key.token0, delta0)
            self.ledger.adjust_debt(locker, key.token1, delta1)

            self.hooks.dispatch(
                CallPoints.AFTER_SWAP, "after_swap", key, locker.address,
                self, locker, key, params, delta0, delta1,
            )
        return delta0, delta1

    def update_position(self, sender: str, key: PoolKey, params: UpdatePositionParameters) -> Tuple[int, int]:
        """Change the liquidity of the locker's position identified by (salt, bounds)."""
        locker = self.ledger.require_locker(sender)
        with self.ledger.atomic():
            self._require_pool(key)
            self.hooks.dispatch(
                CallPoints.BEFORE_UPDATE_POSITION, "before_update_position", key, locker.address,
                self, locker, key, params,
            )

            delta0, delta1 = positions.update_position(self.pools, self.bitmap, key, locker.address, params)
            self.ledger.adjust_debt(locker, key.token0, delta0)
            self.ledger.adjust_debt(locker, key.token1, delta1)

            self.hooks.dispatch(
                CallPoints.AFTER_UPDATE_POSITION, "after_update_position", key, locker.address,
                self, locker, key, params, delta0, delta1,
            )
        return delta0, delta1

    def collect_fees(self, sender: str, key: PoolKey, salt: int, bounds: Bounds) -> Tuple[int, int]:
        """Credit the locker with the fees its position has earned since the last checkpoint."""
        locker = self.ledger.require_locker(sender)
        with self.ledger.atomic():
            self._require_pool(key)
            self.hooks.dispatch(
                CallPoints.BEFORE_COLLECT_FEES, "before_collect_fees", key, locker.address,
                self, locker, key, salt, bounds,
            )

            amount0, amount1 = positions.collect_fees(self.pools, key, locker.address, salt, bounds)
            self.ledger.adjust_debt(locker, key.token0, -amount0)
            self.ledger.adjust_debt(locker, key.token1, -amount1)

            self.hooks.dispatch(
                CallPoints.AFTER_COLLECT_FEES, "after_collect_fees", key, locker.address,
                self, locker, key, salt, bounds, amount0, amount1,
            )
        return amount0, amount1

    def accumulate_as_fees(self, sender: str, key: PoolKey, amount0: int, amount1: int) -> None:
        """
        Add fees to a pool without a swap. Only the pool's extension may call
        this, and it owes the amounts to the ledger.
        """
        locker = self.ledger.require_locker(sender)
        extension = key.config.extension
        if extension is None or locker.address != to_address(extension):
            raise NotLocker(f"Only the pool extension may accumulate fees (locker is {locker.address})")
        check_u128(amount0, ArithmeticOverflow, "amount0")
        check_u128(amount1, ArithmeticOverflow, "amount1")
        if amount0 == 0 and amount1 == 0:
            return

        with self.ledger.atomic():
            state = self._require_pool(key)
            self.ledger.adjust_debt(locker, key.token0, amount0)
            self.ledger.adjust_debt(locker, key.token1, amount1)

            if state.liquidity:
                pool_id = key.pool_id
                fees = self.pools.get_fees_per_liquidity(pool_id)
                added = FeesPerLiquidity.from_amounts(amount0, amount1, state.liquidity)
                self.pools.set_fees_per_liquidity(pool_id, fees + added)
                logger.debug("Extension %s accumulated fees (%d, %d) on %s", extension, amount0, amount1, pool_id)
            else:
                logger.warning(
                    "Fees (%d, %d) accumulated on %s with no active liquidity are kept by the ledger",
                    amount0, amount1, key.pool_id,
                )

    # ------------------------------------------------------------------
    # Ledger primitives
    # ------------------------------------------------------------------

    def enter(self, sender: str, callback: Callable[[int], Any]) -> Any:
        return self.ledger.enter(sender, callback)

    def forward(self, sender: str, target: Forwardee, data: Any = None) -> Any:
        return self.ledger.forward(sender, target, data)

    def adjust_debt(self, sender: str, token: str, delta: int) -> int:
        """
        Add to the current scope's debt. Credits only arise from payments,
        withdrawn liquidity and collected fees, so negative deltas are refused.
        """
        if delta < 0:
            raise DebtAdjustmentRejected(f"Debt can only be increased directly (got {delta})")
        locker = self.ledger.require_locker(sender)
        with self.ledger.atomic():
            return self.ledger.adjust_debt(locker, token, delta)

    def start_payment(self, sender: str, token: str) -> int:
        return self.ledger.start_payment(sender, token)

    def complete_payment(self, sender: str, token: str) -> int:
        return self.ledger.complete_payment(sender, token)

    def pay(self, sender: str, token: str, amount: int) -> int:
        """Transfer `amount` of `token` from the locker to the ledger and credit it."""
        with self.ledger.atomic():
            self.ledger.start_payment(sender, token)
            self.bank.transfer(token, sender, self.address, amount)
            return self.ledger.complete_payment(sender, token)

    def withdraw(self, sender: str, token: str, recipient: str, amount: int) -> None:
        self.ledger.withdraw(sender, token, recipient, amount)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_pool_state(self, key: PoolKey) -> Optional[PoolState]:
        return self.pools.get_pool_state(key.pool_id)

    def get_pool_fees_per_liquidity(self, key: PoolKey) -> FeesPerLiquidity:
        return self.pools.get_fees_per_liquidity(key.pool_id)

    def get_tick_info(self, key: PoolKey, tick: int) -> TickInfo:
        return self.pools.get_tick(key.pool_id, tick)

    def get_position(self, key: PoolKey, owner: str, bounds: Bounds, salt: int = 0) -> Position:
        return self.pools.get_position(key.pool_id, to_address(owner), salt, bounds)

    def get_pool_fees_per_liquidity_inside(self, key: PoolKey, bounds: Bounds) -> FeesPerLiquidity:
        bounds.validate(key.config.tick_spacing)
        return positions.get_fees_per_liquidity_inside(self.pools, key, bounds)

    def debt(self, scope_id: int, token: str) -> int:
        return self.ledger.debt(scope_id, token)

    def current_locker(self) -> Locker:
        return self.ledger.current_locker()

    def balance_of(self, token: str, owner: str) -> int:
        return self.bank.balance_of(token, owner)
