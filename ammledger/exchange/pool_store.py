"""
Typed access to pool records in journaled storage.

Layout:
    ("pool", pool_id)                                  → PoolState
    ("pool_key", pool_id)                              → PoolKey
    ("pool_fees", pool_id)                             → FeesPerLiquidity (global)
    ("tick", pool_id, tick)                            → TickInfo, while liquidity_gross > 0
    ("position", pool_id, owner, salt, lower, upper)   → Position
    ("extension", address)                             → ExtensionRegistration
"""

from __future__ import annotations

from typing import Any, Optional

from ..exceptions import PoolNotInitialized
from .storage import JournaledStorage
from .types import Bounds, FeesPerLiquidity, PoolKey, PoolState, Position, TickInfo

_EMPTY_TICK = TickInfo()
_EMPTY_POSITION = Position()
_ZERO_FEES = FeesPerLiquidity()


class PoolStore:

    def __init__(self, storage: JournaledStorage) -> None:
        self.storage = storage

    # -- pools -------------------------------------------------------------

    def get_pool_state(self, pool_id: str) -> Optional[PoolState]:
        return self.storage.get(("pool", pool_id))

    def require_pool_state(self, pool_id: str) -> PoolState:
        state = self.get_pool_state(pool_id)
        if state is None:
            raise PoolNotInitialized(f"Pool {pool_id} is not initialized")
        return state

    def set_pool_state(self, pool_id: str, state: PoolState) -> None:
        self.storage.set(("pool", pool_id), state)

    def get_pool_key(self, pool_id: str) -> Optional[PoolKey]:
        return self.storage.get(("pool_key", pool_id))

    def set_pool_key(self, key: PoolKey) -> None:
        self.storage.set(("pool_key", key.pool_id), key)

    def get_fees_per_liquidity(self, pool_id: str) -> FeesPerLiquidity:
        return self.storage.get(("pool_fees", pool_id), _ZERO_FEES)

    def set_fees_per_liquidity(self, pool_id: str, fees: FeesPerLiquidity) -> None:
        self.storage.set(("pool_fees", pool_id), fees)

    # -- ticks -------------------------------------------------------------

    def get_tick(self, pool_id: str, tick: int) -> TickInfo:
        return self.storage.get(("tick", pool_id, tick), _EMPTY_TICK)

    def set_tick(self, pool_id: str, tick: int, info: TickInfo) -> None:
        self.storage.set(("tick", pool_id, tick), info)

    def delete_tick(self, pool_id: str, tick: int) -> None:
        self.storage.delete(("tick", pool_id, tick))

    # -- positions ---------------------------------------------------------

    @staticmethod
    def _position_key(pool_id: str, owner: str, salt: int, bounds: Bounds) -> tuple:
        return ("position", pool_id, owner, salt, bounds.lower, bounds.upper)

    def get_position(self, pool_id: str, owner: str, salt: int, bounds: Bounds) -> Position:
        return self.storage.get(self._position_key(pool_id, owner, salt, bounds), _EMPTY_POSITION)

    def set_position(self, pool_id: str, owner: str, salt: int, bounds: Bounds, position: Position) -> None:
        self.storage.set(self._position_key(pool_id, owner, salt, bounds), position)

    # -- extensions --------------------------------------------------------

    def get_extension(self, address: str) -> Optional[Any]:
        return self.storage.get(("extension", address))

    def set_extension(self, address: str, registration: Any) -> None:
        self.storage.set(("extension", address), registration)
