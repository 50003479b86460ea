"""
Test suite for end-to-end ledger flows

Covers:
  - Solvency and token conservation across mixed operations
  - Netting several operations inside one scope
  - Routers acting for a scope through forward()
  - Whole-scope rollback
  - Building a core from configuration
"""

import random

import pytest

from ammledger.config import LedgerConfig
from ammledger.constants import MAX_TICK, MIN_TICK
from ammledger.exceptions import InvalidPoolKey
from ammledger.exchange import Bounds, Core, SwapParameters, UpdatePositionParameters
from ammledger.math import sqrt_ratio_to_tick, tick_to_sqrt_ratio

from helpers import (
    ALICE,
    BOB,
    CAROL,
    EXTENSION,
    INITIAL_BALANCE,
    TOKEN0,
    TOKEN1,
    add_liquidity,
    concentrated_key,
    full_range_key,
    in_scope,
    remove_liquidity,
    settle,
)

ACTORS = (ALICE, BOB, CAROL, EXTENSION)


def swap(core, sender, key, amount, is_token1, limit=None):
    params = SwapParameters(amount=amount, is_token1=is_token1, sqrt_ratio_limit=limit)
    return in_scope(core, sender, lambda: core.swap(sender, key, params))


def total_supply(core, token):
    return sum(core.balance_of(token, owner) for owner in ACTORS + (core.address,))


class Router:
    """Forwarding target that swaps for whichever scope forwarded to it."""

    def __init__(self, core, address, key):
        self.core = core
        self.address = address
        self.key = key

    def forwarded(self, original_locker, data):
        amount, is_token1 = data
        return self.core.swap(self.address, self.key, SwapParameters(amount, is_token1))


# ============================================================================
#  SOLVENCY
# ============================================================================

class TestSolvency:
    """The ledger can always pay out every position and its fees."""

    def test_everyone_can_exit(self, funded_core):
        core = funded_core
        key = concentrated_key(100)
        wide, narrow = Bounds(-20000, 20000), Bounds(-500, 1500)

        core.initialize_pool(ALICE, key, 0)
        add_liquidity(core, ALICE, key, wide, 10**12)
        add_liquidity(core, BOB, key, narrow, 5 * 10**12)
        add_liquidity(core, BOB, key, wide, 10**11, salt=7)

        for amount, is_token1 in [(10**9, True), (3 * 10**9, False), (-10**8, True), (-2 * 10**9, False), (10**9, True)]:
            swap(core, CAROL, key, amount, is_token1)

        for owner, bounds, salt, liquidity in [
            (ALICE, wide, 0, 10**12),
            (BOB, narrow, 0, 5 * 10**12),
            (BOB, wide, 7, 10**11),
        ]:
            in_scope(core, owner, lambda: core.collect_fees(owner, key, salt, bounds))
            remove_liquidity(core, owner, key, bounds, liquidity, salt=salt)

        assert core.get_pool_state(key).liquidity == 0
        for token in (TOKEN0, TOKEN1):
            assert total_supply(core, token) == len(ACTORS) * INITIAL_BALANCE
            assert 0 <= core.balance_of(token, core.address) < 1000

    def test_pools_share_one_balance_sheet(self, funded_core):
        core = funded_core
        full, ranged = full_range_key(), concentrated_key(100)
        for key in (full, ranged):
            core.initialize_pool(ALICE, key, 0)
        add_liquidity(core, ALICE, full, Bounds.full_range(), 10**9)
        add_liquidity(core, ALICE, ranged, Bounds(-1000, 1000), 10**9)

        swap(core, CAROL, full, 10**6, True)
        swap(core, CAROL, ranged, 10**6, False)

        held0 = core.balance_of(TOKEN0, core.address)
        out_full = remove_liquidity(core, ALICE, full, Bounds.full_range(), 10**9 // 2)
        out_ranged = remove_liquidity(core, ALICE, ranged, Bounds(-1000, 1000), 10**9 // 2)
        assert core.balance_of(TOKEN0, core.address) == held0 + out_full[0] + out_ranged[0]

    @pytest.mark.parametrize("tick_spacing", [0, 1, 100, 1000])
    @pytest.mark.parametrize("seed", range(10))
    def test_random_operations(self, funded_core, seed, tick_spacing):
        core = funded_core
        rng = random.Random(seed * 7919 + tick_spacing)
        key = full_range_key() if tick_spacing == 0 else concentrated_key(tick_spacing)
        core.initialize_pool(ALICE, key, 0)

        positions = {}
        next_salt = [0]

        def random_bounds():
            if tick_spacing == 0:
                return Bounds.full_range()
            top = 30000 // tick_spacing
            lower = rng.randint(-top, top - 1)
            upper = min(top, lower + rng.randint(1, max(1, top // 4)))
            return Bounds(lower * tick_spacing, upper * tick_spacing)

        def deposit(owner, bounds, liquidity):
            salt = next_salt[0]
            next_salt[0] += 1
            add_liquidity(core, owner, key, bounds, liquidity, salt=salt)
            positions[(owner, salt)] = (bounds, liquidity)

        def pay_out(action):
            held = core.balance_of(TOKEN0, core.address), core.balance_of(TOKEN1, core.address)
            amount0, amount1 = action()
            assert amount0 <= held[0] and amount1 <= held[1]

        def collect(owner, salt):
            bounds = positions[(owner, salt)][0]
            pay_out(lambda: in_scope(core, owner, lambda: core.collect_fees(owner, key, salt, bounds)))

        def exit_position(owner, salt):
            collect(owner, salt)
            bounds, liquidity = positions.pop((owner, salt))
            pay_out(lambda: tuple(-d for d in remove_liquidity(core, owner, key, bounds, liquidity, salt=salt)))

        def swap_towards_tick():
            state = core.get_pool_state(key)
            ticks = [0] + [t for bounds, _ in positions.values() for t in (bounds.lower, bounds.upper)]
            limit = tick_to_sqrt_ratio(rng.choice(ticks))
            if limit == state.sqrt_ratio:
                return
            increasing = limit > state.sqrt_ratio
            is_token1 = rng.random() < 0.5
            amount = rng.randint(1, 9) * 10 ** rng.randint(3, 11)
            # exact input of token1 or exact output of token0 raises the price
            if increasing != is_token1:
                amount = -min(amount, 10**9)
            swap(core, CAROL, key, amount, is_token1, limit)

        def check_pool():
            state = core.get_pool_state(key)
            assert MIN_TICK <= state.tick <= MAX_TICK
            # the floor tick, or one below a tick boundary reached moving down
            assert (
                state.tick == sqrt_ratio_to_tick(state.sqrt_ratio)
                or state.sqrt_ratio == tick_to_sqrt_ratio(state.tick + 1)
            )
            active = sum(
                liquidity for bounds, liquidity in positions.values()
                if tick_spacing == 0 or bounds.lower <= state.tick < bounds.upper
            )
            assert state.liquidity == active

        deposit(ALICE, random_bounds(), 10**12)
        base = (ALICE, 0)

        for _ in range(40):
            action = rng.choice(["swap", "limit_swap", "dust", "deposit", "collect", "exit"])
            others = [owner_salt for owner_salt in positions if owner_salt != base]
            if action == "swap":
                is_token1 = rng.random() < 0.5
                if rng.random() < 0.5:
                    swap(core, CAROL, key, rng.randint(1, 9) * 10 ** rng.randint(0, 11), is_token1)
                else:
                    swap(core, CAROL, key, -rng.randint(1, 10**9), is_token1)
            elif action == "limit_swap":
                swap_towards_tick()
            elif action == "dust":
                swap(core, CAROL, key, 1, rng.random() < 0.5)
            elif action == "deposit":
                deposit(rng.choice([ALICE, BOB]), random_bounds(), 10 ** rng.randint(6, 12))
            elif action == "collect":
                collect(*rng.choice(list(positions)))
            elif others:
                exit_position(*rng.choice(others))
            check_pool()

        for owner, salt in list(positions):
            exit_position(owner, salt)
            check_pool()

        assert core.get_pool_state(key).liquidity == 0
        for token in (TOKEN0, TOKEN1):
            assert total_supply(core, token) == len(ACTORS) * INITIAL_BALANCE


# ============================================================================
#  NETTING
# ============================================================================

class TestNetting:
    """Only the net of a scope's operations moves tokens."""

    def test_swap_proceeds_fund_a_deposit(self, funded_core):
        core = funded_core
        key = concentrated_key(100)
        core.initialize_pool(ALICE, key, 0)
        add_liquidity(core, ALICE, key, Bounds(-10000, 10000), 10**12)

        before0, before1 = core.balance_of(TOKEN0, BOB), core.balance_of(TOKEN1, BOB)
        deposit = UpdatePositionParameters(bounds=Bounds(5000, 6000), liquidity_delta=10**9)

        def callback(scope_id):
            swapped = core.swap(BOB, key, SwapParameters(10**8, True))
            deposited = core.update_position(BOB, key, deposit)
            owed = core.debt(scope_id, TOKEN0), core.debt(scope_id, TOKEN1)
            settle(core, BOB)
            return swapped, deposited, owed

        swapped, deposited, owed = core.enter(BOB, callback)
        assert owed == (swapped[0] + deposited[0], swapped[1] + deposited[1])
        assert deposited[1] == 0
        assert core.balance_of(TOKEN0, BOB) == before0 - owed[0]
        assert core.balance_of(TOKEN1, BOB) == before1 - owed[1]

    def test_round_trip_in_one_scope(self, funded_core):
        core = funded_core
        key = full_range_key()
        core.initialize_pool(ALICE, key, 0)
        bounds = Bounds.full_range()

        def callback(scope_id):
            added = core.update_position(ALICE, key, UpdatePositionParameters(bounds, 10**9))
            removed = core.update_position(ALICE, key, UpdatePositionParameters(bounds, -10**9))
            settle(core, ALICE)
            return added, removed

        added, removed = core.enter(ALICE, callback)
        # deposits round up and withdrawals round down
        assert 0 <= added[0] + removed[0] <= 1
        assert 0 <= added[1] + removed[1] <= 1


# ============================================================================
#  ROUTING
# ============================================================================

class TestRouting:
    """A router swaps for the forwarding scope; the original locker settles."""

    def test_router_swap_settled_by_forwarder(self, funded_core):
        core = funded_core
        key = full_range_key()
        core.initialize_pool(ALICE, key, 0)
        add_liquidity(core, ALICE, key, Bounds.full_range(), 10**9)
        router = Router(core, CAROL, key)
        router_balance = core.balance_of(TOKEN1, CAROL)

        def callback(scope_id):
            delta0, delta1 = core.forward(BOB, router, (10**5, True))
            assert core.debt(scope_id, TOKEN1) == delta1
            settle(core, BOB)
            return delta0, delta1

        delta0, delta1 = core.enter(BOB, callback)
        assert delta1 == 10**5 and delta0 < 0
        assert core.balance_of(TOKEN1, CAROL) == router_balance
        assert core.balance_of(TOKEN0, BOB) == INITIAL_BALANCE - delta0


# ============================================================================
#  ROLLBACK
# ============================================================================

class TestScopeRollback:

    def test_failure_after_several_operations(self, funded_core):
        core = funded_core
        key = full_range_key()
        core.initialize_pool(ALICE, key, 0)
        add_liquidity(core, ALICE, key, Bounds.full_range(), 10**9)
        state, fees = core.get_pool_state(key), core.get_pool_fees_per_liquidity(key)
        held = core.balance_of(TOKEN0, core.address), core.balance_of(TOKEN1, core.address)

        def callback(scope_id):
            core.swap(BOB, key, SwapParameters(10**6, True))
            core.update_position(BOB, key, UpdatePositionParameters(Bounds.full_range(), 10**6))
            settle(core, BOB)
            raise RuntimeError("abort after settling")

        with pytest.raises(RuntimeError):
            core.enter(BOB, callback)

        assert core.get_pool_state(key) == state
        assert core.get_pool_fees_per_liquidity(key) == fees
        assert core.get_position(key, BOB, Bounds.full_range()).liquidity == 0
        assert (core.balance_of(TOKEN0, core.address), core.balance_of(TOKEN1, core.address)) == held
        assert core.balance_of(TOKEN1, BOB) == INITIAL_BALANCE


# ============================================================================
#  CONFIGURATION
# ============================================================================

class TestCoreFromConfig:

    def test_settings_applied(self):
        config = LedgerConfig()
        config.ledger.address = "0x" + "42" * 20
        config.ledger.max_tick_spacing = 1000
        config.ledger.require_completed_payments = False
        config.validate()

        core = Core.from_config(config, configure_logs=False)
        assert core.address == config.ledger.address
        assert core.max_tick_spacing == 1000
        assert core.ledger.require_completed_payments is False

    def test_max_tick_spacing_enforced(self):
        config = LedgerConfig()
        config.ledger.max_tick_spacing = 1000
        core = Core.from_config(config, configure_logs=False)
        with pytest.raises(InvalidPoolKey, match="Tick spacing 6000"):
            core.initialize_pool(ALICE, concentrated_key(6000), 0)
        assert core.initialize_pool(ALICE, concentrated_key(1000), 0) == tick_to_sqrt_ratio(0)
