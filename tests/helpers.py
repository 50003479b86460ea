"""
Shared constants and helpers for the ledger test suites.
"""

from eth_utils import to_checksum_address

from ammledger.exchange import (
    BaseExtension,
    Bounds,
    CallPoints,
    Core,
    HookResult,
    PoolConfig,
    PoolKey,
    UpdatePositionParameters,
)
from ammledger.math import FeeTier


def _addr(suffix: str) -> str:
    return to_checksum_address("0x" + suffix.rjust(40, "0"))


TOKEN0 = _addr("10")
TOKEN1 = _addr("20")
TOKEN2 = _addr("30")
ALICE = _addr("a11ce")
BOB = _addr("b0b")
CAROL = _addr("ca201")
EXTENSION = _addr("e0e0")

FEE_30_BPS = FeeTier.MEDIUM.fee
INITIAL_BALANCE = 10**30


def full_range_key(fee: int = FEE_30_BPS, extension=None) -> PoolKey:
    return PoolKey(TOKEN0, TOKEN1, PoolConfig(fee=fee, tick_spacing=0, extension=extension))


def concentrated_key(tick_spacing: int = 100, fee: int = FEE_30_BPS, extension=None) -> PoolKey:
    return PoolKey(TOKEN0, TOKEN1, PoolConfig(fee=fee, tick_spacing=tick_spacing, extension=extension))


def settle(core: Core, sender: str, tokens=(TOKEN0, TOKEN1)) -> None:
    """Pay what the current scope owes and withdraw what it is owed."""
    scope_id = core.current_locker().scope_id
    for token in tokens:
        owed = core.debt(scope_id, token)
        if owed > 0:
            core.pay(sender, token, owed)
        elif owed < 0:
            core.withdraw(sender, token, sender, -owed)


def in_scope(core: Core, sender: str, action):
    """Run action() inside a lock scope held by sender, settling afterwards."""
    def callback(scope_id):
        result = action()
        settle(core, sender)
        return result
    return core.enter(sender, callback)


def add_liquidity(core: Core, owner: str, key: PoolKey, bounds: Bounds, liquidity: int, salt: int = 0):
    params = UpdatePositionParameters(bounds=bounds, liquidity_delta=liquidity, salt=salt)
    return in_scope(core, owner, lambda: core.update_position(owner, key, params))


def remove_liquidity(core: Core, owner: str, key: PoolKey, bounds: Bounds, liquidity: int, salt: int = 0):
    params = UpdatePositionParameters(bounds=bounds, liquidity_delta=-liquidity, salt=salt)
    return in_scope(core, owner, lambda: core.update_position(owner, key, params))


class RecordingExtension(BaseExtension):
    """Extension that records every hook it receives and can veto on demand."""

    def __init__(self, address: str = EXTENSION, call_points: CallPoints = CallPoints.ALL):
        super().__init__(address)
        self.call_points = call_points
        self.calls = []
        self.veto = set()

    def _record(self, name, *args):
        self.calls.append((name,) + args)
        if name in self.veto:
            return HookResult(allow=False, reason=f"{name} blocked")
        return None

    def before_initialize_pool(self, core, caller, key, tick):
        return self._record("before_initialize_pool", caller, tick)

    def after_initialize_pool(self, core, caller, key, tick, sqrt_ratio):
        return self._record("after_initialize_pool", caller, tick)

    def before_swap(self, core, locker, key, params):
        return self._record("before_swap", locker)

    def after_swap(self, core, locker, key, params, delta0, delta1):
        return self._record("after_swap", locker, delta0, delta1)

    def before_update_position(self, core, locker, key, params):
        return self._record("before_update_position", locker)

    def after_update_position(self, core, locker, key, params, delta0, delta1):
        return self._record("after_update_position", locker, delta0, delta1)

    def before_collect_fees(self, core, locker, key, salt, bounds):
        return self._record("before_collect_fees", locker)

    def after_collect_fees(self, core, locker, key, salt, bounds, amount0, amount1):
        return self._record("after_collect_fees", locker, amount0, amount1)

    def hook_names(self):
        return [call[0] for call in self.calls]
