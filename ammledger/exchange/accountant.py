"""
Flash accounting.

A top-level call opens a CallContext holding transient state: the stack of
lock scopes, the address authorized to act for each scope, per-scope token
debt and pending payment baselines. Any number of balance-affecting operations
may run inside a scope; the scope only closes once every token debt it holds
is back to zero.

Scope ids are nesting depths. Debt is always keyed by scope id, never by
address, so forwarding changes who may act for a scope without moving the debt
it has accumulated.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from ..exceptions import (
    DebtOverflow,
    DebtsNotSettled,
    InvalidScopeTransition,
    NotLocked,
    NotLocker,
    PaymentAlreadyStarted,
    PaymentNotStarted,
    PaymentsNotCompleted,
    ValidationError,
)
from ..math.checked import check_i128, check_u128
from .storage import JournaledStorage, TokenBank
from .types import Locker, to_address

logger = logging.getLogger(__name__)


class ScopeState(Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
    REVERTED = "reverted"


_TRANSITIONS = {
    ScopeState.OPEN: {ScopeState.CLOSING, ScopeState.REVERTED},
    ScopeState.CLOSING: {ScopeState.CLOSED, ScopeState.REVERTED},
    ScopeState.CLOSED: set(),
    ScopeState.REVERTED: set(),
}


def transition(current: ScopeState, target: ScopeState) -> ScopeState:
    if target not in _TRANSITIONS[current]:
        raise InvalidScopeTransition(f"Scope cannot move from {current.value} to {target.value}")
    return target


class Forwardee(Protocol):
    """Target of Ledger.forward: acts for the forwarding scope while it runs."""
    address: str

    def forwarded(self, original_locker: Locker, data: Any) -> Any: ...


@dataclass
class CallContext:
    """Transient state of one top-level call. Never persisted."""
    lockers: List[str] = field(default_factory=list)
    states: List[ScopeState] = field(default_factory=list)
    debts: Dict[Tuple[int, str], int] = field(default_factory=dict)
    nonzero_debt_count: Dict[int, int] = field(default_factory=dict)
    payments: Dict[Tuple[int, str], int] = field(default_factory=dict)

    @property
    def depth(self) -> int:
        return len(self.lockers)

    def snapshot(self) -> "CallContext":
        return CallContext(
            lockers=list(self.lockers),
            states=list(self.states),
            debts=dict(self.debts),
            nonzero_debt_count=dict(self.nonzero_debt_count),
            payments=dict(self.payments),
        )

    def restore(self, snapshot: "CallContext") -> None:
        """Restore in place, so every holder of this context sees the rollback."""
        self.lockers = list(snapshot.lockers)
        self.states = list(snapshot.states)
        self.debts = dict(snapshot.debts)
        self.nonzero_debt_count = dict(snapshot.nonzero_debt_count)
        self.payments = dict(snapshot.payments)

    def set_state(self, scope_id: int, target: ScopeState) -> None:
        self.states[scope_id] = transition(self.states[scope_id], target)


class Ledger:
    """
    Lock scopes, debt and payment tracking for a single ledger address.

    Every mutating entry point runs inside atomic(), which snapshots the
    journaled storage and the call context and restores both if anything
    raises.
    """

    def __init__(
        self,
        address: str,
        storage: JournaledStorage,
        bank: TokenBank,
        require_completed_payments: bool = True,
    ) -> None:
        self.address = to_address(address)
        self.storage = storage
        self.bank = bank
        self.require_completed_payments = require_completed_payments
        self._context: Optional[CallContext] = None

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        snapshot_id = self.storage.snapshot()
        context_snapshot = self._context.snapshot() if self._context is not None else None
        try:
            yield
        except Exception:
            self.storage.revert(snapshot_id)
            if self._context is not None and context_snapshot is not None:
                self._context.restore(context_snapshot)
            raise
        else:
            self.storage.commit(snapshot_id)

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    @property
    def is_locked(self) -> bool:
        return self._context is not None and self._context.depth > 0

    def enter(self, sender: str, callback: Callable[[int], Any]) -> Any:
        """
        Open a lock scope for `sender`, run `callback(scope_id)` and close it.

        Raises:
            DebtsNotSettled: the scope still holds non-zero debt after the callback.
            PaymentsNotCompleted: a payment started in the scope was never completed.
        """
        sender = to_address(sender)
        top_level = self._context is None
        if top_level:
            self._context = CallContext()

        try:
            with self.atomic():
                context = self._context
                scope_id = context.depth
                context.lockers.append(sender)
                context.states.append(ScopeState.OPEN)
                logger.debug("Scope %d opened by %s", scope_id, sender)

                try:
                    result = callback(scope_id)
                    context.set_state(scope_id, ScopeState.CLOSING)
                    self._verify_settled(scope_id)
                    context.set_state(scope_id, ScopeState.CLOSED)
                except Exception as e:
                    context.set_state(scope_id, ScopeState.REVERTED)
                    logger.debug("Scope %d reverted: %s", scope_id, e)
                    raise

                context.lockers.pop()
                context.states.pop()
                logger.debug("Scope %d closed", scope_id)
                return result
        finally:
            if top_level:
                self._context = None

    def _verify_settled(self, scope_id: int) -> None:
        context = self._context
        nonzero = context.nonzero_debt_count.get(scope_id, 0)
        if nonzero:
            raise DebtsNotSettled(scope_id, nonzero)

        pending = [token for (scope, token) in context.payments if scope == scope_id]
        if pending:
            if self.require_completed_payments:
                raise PaymentsNotCompleted(
                    f"Scope {scope_id} closed with pending payments for {', '.join(pending)}"
                )
            for token in pending:
                del context.payments[(scope_id, token)]

        context.nonzero_debt_count.pop(scope_id, None)
        for key in [key for key in context.debts if key[0] == scope_id]:
            del context.debts[key]

    def current_locker(self) -> Locker:
        if not self.is_locked:
            raise NotLocked("No lock scope is open")
        scope_id = self._context.depth - 1
        return Locker(scope_id, self._context.lockers[scope_id])

    def require_locker(self, sender: str) -> Locker:
        """The current locker, provided `sender` is the address authorized to act for it."""
        locker = self.current_locker()
        if to_address(sender) != locker.address:
            raise NotLocker(f"{sender} is not the locker of scope {locker.scope_id} ({locker.address})")
        return locker

    def forward(self, sender: str, target: Forwardee, data: Any = None) -> Any:
        """Let `target` act for the current scope while target.forwarded() runs."""
        original = self.require_locker(sender)
        target_address = to_address(target.address)
        with self.atomic():
            context = self._context
            context.lockers[original.scope_id] = target_address
            logger.debug("Scope %d forwarded to %s", original.scope_id, target_address)
            try:
                return target.forwarded(original, data)
            finally:
                context.lockers[original.scope_id] = original.address

    # ------------------------------------------------------------------
    # Debt
    # ------------------------------------------------------------------

    def debt(self, scope_id: int, token: str) -> int:
        if self._context is None:
            return 0
        return self._context.debts.get((scope_id, to_address(token)), 0)

    def adjust_debt(self, locker: Locker, token: str, delta: int) -> int:
        """
        Change what `locker`'s scope owes in `token`; positive means the scope owes more.

        This is the only place debt changes. The locker must be the one
        currently holding the lock.
        """
        if locker != self.current_locker():
            raise NotLocker(f"{locker} does not hold the lock")
        if delta == 0:
            return self.debt(locker.scope_id, token)

        context = self._context
        key = (locker.scope_id, to_address(token))
        previous = context.debts.get(key, 0)
        updated = check_i128(previous + delta, DebtOverflow, "debt")

        if previous == 0:
            context.nonzero_debt_count[locker.scope_id] = context.nonzero_debt_count.get(locker.scope_id, 0) + 1
        elif updated == 0:
            context.nonzero_debt_count[locker.scope_id] -= 1

        if updated:
            context.debts[key] = updated
        else:
            del context.debts[key]
        return updated

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def start_payment(self, sender: str, token: str) -> int:
        """Record the ledger's balance of `token` for the current scope."""
        locker = self.require_locker(sender)
        token = to_address(token)
        key = (locker.scope_id, token)
        if key in self._context.payments:
            raise PaymentAlreadyStarted(f"Payment of {token} already started in scope {locker.scope_id}")
        baseline = self.bank.balance_of(token, self.address)
        self._context.payments[key] = baseline
        return baseline

    def complete_payment(self, sender: str, token: str) -> int:
        """
        Credit the scope with what the ledger received since start_payment.

        Returns:
            The amount paid.
        """
        locker = self.require_locker(sender)
        token = to_address(token)
        key = (locker.scope_id, token)
        if key not in self._context.payments:
            raise PaymentNotStarted(f"No payment of {token} started in scope {locker.scope_id}")

        with self.atomic():
            baseline = self._context.payments.pop(key)
            paid = self.bank.balance_of(token, self.address) - baseline
            if paid < 0:
                raise ValidationError(f"Ledger balance of {token} fell below the payment baseline")
            check_u128(paid, DebtOverflow, "payment")
            if paid:
                self.adjust_debt(locker, token, -paid)
                self._shift_baselines(token, paid)
            logger.debug("Scope %d paid %d of %s", locker.scope_id, paid, token)
        return paid

    def withdraw(self, sender: str, token: str, recipient: str, amount: int) -> None:
        """Send `amount` of `token` out of the ledger, charging it to the current scope."""
        locker = self.require_locker(sender)
        token = to_address(token)
        recipient = to_address(recipient)
        check_u128(amount, DebtOverflow, "withdrawal")
        if amount == 0:
            return

        with self.atomic():
            self.adjust_debt(locker, token, amount)
            self.bank.transfer(token, self.address, recipient, amount)
            self._shift_baselines(token, -amount)
            logger.debug("Scope %d withdrew %d of %s to %s", locker.scope_id, amount, token, recipient)

    def _shift_baselines(self, token: str, amount: int) -> None:
        # Tracked movements never show up as another scope's payment
        payments = self._context.payments
        for key in [key for key in payments if key[1] == token]:
            payments[key] += amount
