"""
Extension hook dispatch.

A pool may name one extension in its PoolConfig. Extensions register once
with the core, declaring which call points they want; the dispatcher invokes
the matching before/after hook around each pool lifecycle event.

Hooks run synchronously inside the caller's scope and can:
  - Inspect parameters and veto the operation (raise, or return
    HookResult(allow=False))
  - Re-enter the core in a nested scope of their own, e.g. to inject fees

A hook is never invoked when the acting address is the extension itself, so
an extension that re-enters the core for its own bookkeeping does not
trigger itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Flag, auto
from typing import TYPE_CHECKING, Any, Optional, Protocol

from ..exceptions import ExtensionAlreadyRegistered, ExtensionNotRegistered, ExtensionVeto
from .pool_store import PoolStore
from .types import Bounds, Locker, PoolKey, SwapParameters, UpdatePositionParameters, to_address

if TYPE_CHECKING:
    from ..math.sqrt_ratio import SqrtRatio
    from .core import Core

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Call points — which hooks an extension wants to receive
# ---------------------------------------------------------------------------

class CallPoints(Flag):
    NONE = 0
    BEFORE_INITIALIZE_POOL = auto()
    AFTER_INITIALIZE_POOL = auto()
    BEFORE_SWAP = auto()
    AFTER_SWAP = auto()
    BEFORE_UPDATE_POSITION = auto()
    AFTER_UPDATE_POSITION = auto()
    BEFORE_COLLECT_FEES = auto()
    AFTER_COLLECT_FEES = auto()
    ALL = (
        BEFORE_INITIALIZE_POOL | AFTER_INITIALIZE_POOL
        | BEFORE_SWAP | AFTER_SWAP
        | BEFORE_UPDATE_POSITION | AFTER_UPDATE_POSITION
        | BEFORE_COLLECT_FEES | AFTER_COLLECT_FEES
    )


@dataclass
class HookResult:
    """Result from a hook execution."""
    allow: bool = True        # False = veto the operation
    reason: str = ""          # reason for the veto (if allow=False)


# ---------------------------------------------------------------------------
# Extension interface (Protocol for structural typing)
# ---------------------------------------------------------------------------

class Extension(Protocol):
    """Protocol that extensions must implement."""

    address: str

    @property
    def call_points(self) -> CallPoints: ...

    def before_initialize_pool(self, core: "Core", caller: str, key: PoolKey, tick: int) -> Optional[HookResult]: ...
    def after_initialize_pool(
        self, core: "Core", caller: str, key: PoolKey, tick: int, sqrt_ratio: "SqrtRatio"
    ) -> Optional[HookResult]: ...
    def before_swap(self, core: "Core", locker: Locker, key: PoolKey, params: SwapParameters) -> Optional[HookResult]: ...
    def after_swap(
        self, core: "Core", locker: Locker, key: PoolKey, params: SwapParameters, delta0: int, delta1: int
    ) -> Optional[HookResult]: ...
    def before_update_position(
        self, core: "Core", locker: Locker, key: PoolKey, params: UpdatePositionParameters
    ) -> Optional[HookResult]: ...
    def after_update_position(
        self, core: "Core", locker: Locker, key: PoolKey, params: UpdatePositionParameters, delta0: int, delta1: int
    ) -> Optional[HookResult]: ...
    def before_collect_fees(
        self, core: "Core", locker: Locker, key: PoolKey, salt: int, bounds: Bounds
    ) -> Optional[HookResult]: ...
    def after_collect_fees(
        self, core: "Core", locker: Locker, key: PoolKey, salt: int, bounds: Bounds, amount0: int, amount1: int
    ) -> Optional[HookResult]: ...


class BaseExtension:
    """
    No-op extension. Subclasses override the hooks they need and set
    call_points accordingly.
    """

    call_points: CallPoints = CallPoints.NONE

    def __init__(self, address: str) -> None:
        self.address = to_address(address)

    def before_initialize_pool(self, core, caller, key, tick):
        return HookResult()

    def after_initialize_pool(self, core, caller, key, tick, sqrt_ratio):
        return HookResult()

    def before_swap(self, core, locker, key, params):
        return HookResult()

    def after_swap(self, core, locker, key, params, delta0, delta1):
        return HookResult()

    def before_update_position(self, core, locker, key, params):
        return HookResult()

    def after_update_position(self, core, locker, key, params, delta0, delta1):
        return HookResult()

    def before_collect_fees(self, core, locker, key, salt, bounds):
        return HookResult()

    def after_collect_fees(self, core, locker, key, salt, bounds, amount0, amount1):
        return HookResult()


@dataclass(frozen=True)
class ExtensionRegistration:
    extension: Any
    call_points: CallPoints


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

class HookDispatcher:
    """
    Resolves a pool's extension and invokes its hooks.

    Registrations live in journaled storage, so a registration made inside a
    failed call is rolled back with everything else.
    """

    def __init__(self, store: PoolStore) -> None:
        self.store = store

    def register(self, extension: Extension) -> ExtensionRegistration:
        address = to_address(extension.address)
        if self.store.get_extension(address) is not None:
            raise ExtensionAlreadyRegistered(f"Extension {address} is already registered")
        registration = ExtensionRegistration(extension, CallPoints(extension.call_points))
        self.store.set_extension(address, registration)
        logger.info("Extension registered: %s %s (call points=%s)", type(extension).__name__, address, registration.call_points)
        return registration

    def registration(self, address: str) -> ExtensionRegistration:
        registration = self.store.get_extension(to_address(address))
        if registration is None:
            raise ExtensionNotRegistered(f"Extension {address} is not registered")
        return registration

    def is_registered(self, address: str) -> bool:
        return self.store.get_extension(to_address(address)) is not None

    def dispatch(
        self,
        point: CallPoints,
        method: str,
        key: PoolKey,
        acting_address: str,
        *args: Any,
    ) -> None:
        """
        Invoke `method` on the pool's extension if it asked for `point`.

        Raises:
            ExtensionVeto: the hook returned HookResult(allow=False).
        """
        extension_address = key.config.extension
        if extension_address is None:
            return
        registration = self.registration(extension_address)
        if point not in registration.call_points:
            return
        if to_address(acting_address) == to_address(extension_address):
            logger.debug("Skipping %s on %s: the extension is the acting address", method, extension_address)
            return

        result = getattr(registration.extension, method)(*args)
        if isinstance(result, HookResult) and not result.allow:
            reason = result.reason or "no reason given"
            logger.info("Extension %s vetoed %s: %s", extension_address, method, reason)
            raise ExtensionVeto(f"{method} vetoed by {extension_address}: {reason}")
