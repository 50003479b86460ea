"""
AMM Ledger Exchange Core

Singleton ledger holding every pool's state, settled by flash accounting.

Components:
  - Accountant (lock scopes, per-scope token debt, forwarding, payments)
  - Swap Engine (concentrated liquidity, tick walking, exact fee rounding)
  - Position Accounting (fees-per-liquidity checkpoints)
  - Extension Hooks (before/after call points with veto)
  - Host model (journaled storage, token bank)
"""

from .types import (
    Bounds,
    FeesPerLiquidity,
    Locker,
    PoolConfig,
    PoolKey,
    PoolState,
    Position,
    SwapParameters,
    TickInfo,
    UpdatePositionParameters,
    to_address,
)
from .storage import (
    JournaledStorage,
    TokenBank,
)
from .pool_store import PoolStore
from .tick_bitmap import TickBitmap
from .accountant import (
    CallContext,
    Forwardee,
    Ledger,
    ScopeState,
)
from .swap import (
    SwapResult,
    swap,
    swap_result,
)
from .positions import (
    collect_fees,
    fees_per_liquidity_inside,
    update_position,
)
from .hooks import (
    BaseExtension,
    CallPoints,
    Extension,
    ExtensionRegistration,
    HookDispatcher,
    HookResult,
)
from .core import Core

__all__ = [
    # Types
    "Bounds",
    "FeesPerLiquidity",
    "Locker",
    "PoolConfig",
    "PoolKey",
    "PoolState",
    "Position",
    "SwapParameters",
    "TickInfo",
    "UpdatePositionParameters",
    "to_address",
    # Host
    "JournaledStorage",
    "TokenBank",
    "PoolStore",
    "TickBitmap",
    # Accountant
    "CallContext",
    "Forwardee",
    "Ledger",
    "ScopeState",
    # Swap
    "SwapResult",
    "swap",
    "swap_result",
    # Positions
    "collect_fees",
    "fees_per_liquidity_inside",
    "update_position",
    # Hooks
    "BaseExtension",
    "CallPoints",
    "Extension",
    "ExtensionRegistration",
    "HookDispatcher",
    "HookResult",
    # Core
    "Core",
]
