"""
AMM Ledger Exceptions

Custom exception classes for the ledger. Every failure unwinds to the nearest
scope boundary, which restores state and re-raises; nothing here is retried.
"""


class LedgerError(Exception):
    """Base exception for the ledger."""
    pass


# ---------------------------------------------------------------------------
# Validation errors
# ---------------------------------------------------------------------------

class ValidationError(LedgerError):
    """Caller supplied parameters the ledger refuses."""
    pass


class InvalidAddressError(ValidationError):
    """Invalid address format."""
    pass


class InvalidPoolKey(ValidationError):
    """Pool key is malformed (token order, fee, tick spacing, extension)."""
    pass


class InvalidTick(ValidationError):
    """Tick outside [MIN_TICK, MAX_TICK]."""
    pass


class InvalidBounds(ValidationError):
    """Position bounds are unordered, out of range or off the tick spacing."""
    pass


class InvalidSqrtRatio(ValidationError):
    """Sqrt ratio outside [MIN_SQRT_RATIO, MAX_SQRT_RATIO]."""
    pass


class SqrtRatioLimitOutOfRange(ValidationError):
    """Swap price limit outside the valid sqrt ratio range."""
    pass


class SqrtRatioLimitWrongDirection(ValidationError):
    """Swap price limit lies behind the current price."""
    pass


class PoolNotInitialized(ValidationError):
    """Operation on a pool that has no state yet."""
    pass


class PoolAlreadyInitialized(ValidationError):
    """Pool state already exists for this key."""
    pass


class ExtensionNotRegistered(ValidationError):
    """Pool references an extension that never registered."""
    pass


class ExtensionAlreadyRegistered(ValidationError):
    """Extension tried to register twice."""
    pass


class InsufficientLiquidity(ValidationError):
    """Withdrawal exceeds the liquidity held by the position."""
    pass


class MustCollectFeesBeforeWithdrawingAllLiquidity(ValidationError):
    """Position still has owed fees and is being emptied."""
    pass


class MaxLiquidityPerTickExceeded(ValidationError):
    """Gross liquidity referencing a tick exceeds the per-tick cap."""
    pass


class InsufficientBalance(ValidationError):
    """Token transfer exceeds the sender's balance."""
    pass


class DebtAdjustmentRejected(ValidationError):
    """External debt adjustments may only add to what a scope owes."""
    pass


# ---------------------------------------------------------------------------
# Arithmetic overflow
# ---------------------------------------------------------------------------

class ArithmeticOverflow(LedgerError):
    """A fixed-width quantity left its container. Never wrapped."""
    pass


class Amount0DeltaOverflow(ArithmeticOverflow):
    """Token0 amount for a price range does not fit in 128 bits."""
    pass


class Amount1DeltaOverflow(ArithmeticOverflow):
    """Token1 amount for a price range does not fit in 128 bits."""
    pass


class AmountBeforeFeeOverflow(ArithmeticOverflow):
    """Fee-inclusive amount does not fit in 128 bits."""
    pass


class LiquidityOverflow(ArithmeticOverflow):
    """Liquidity left the unsigned 128-bit range."""
    pass


class SqrtRatioOverflow(ArithmeticOverflow):
    """Fixed-point sqrt ratio cannot be encoded."""
    pass


class FeesPerLiquidityOverflow(ArithmeticOverflow):
    """Fees-per-liquidity word left the signed 256-bit range."""
    pass


class FeesOverflow(ArithmeticOverflow):
    """Owed fee amount does not fit in 128 bits."""
    pass


class DebtOverflow(ArithmeticOverflow):
    """Debt or delta left the signed 128-bit range."""
    pass


# ---------------------------------------------------------------------------
# Lock / scope errors
# ---------------------------------------------------------------------------

class LockError(LedgerError):
    """Misuse of the scoped lock."""
    pass


class NotLocked(LockError):
    """Operation requires an open scope."""
    pass


class NotLocker(LockError):
    """Caller is not the address currently authorized for the scope."""
    pass


class DebtsNotSettled(LockError):
    """Scope closed with at least one non-zero token debt."""

    def __init__(self, scope_id: int, nonzero_count: int):
        super().__init__(
            f"Debts not settled: scope {scope_id} has {nonzero_count} non-zero token debt(s)"
        )
        self.scope_id = scope_id
        self.nonzero_count = nonzero_count


class PaymentNotStarted(LockError):
    """complete_payment without a matching start_payment."""
    pass


class PaymentAlreadyStarted(LockError):
    """start_payment twice for the same scope and token."""
    pass


class PaymentsNotCompleted(LockError):
    """Scope closed with a payment snapshot still open."""
    pass


class InvalidScopeTransition(LockError):
    """Scope state machine moved along an edge that does not exist."""
    pass


# ---------------------------------------------------------------------------
# Extensions / invariants / configuration
# ---------------------------------------------------------------------------

class ExtensionVeto(LedgerError):
    """Extension hook refused the operation."""
    pass


class InvariantViolation(LedgerError):
    """Internal invariant broken. Indicates a bug, never a user error."""
    pass


class SwapInvariantViolation(InvariantViolation):
    """Exact-output swap step failed to move the price."""
    pass


class FeeAccountingError(InvariantViolation):
    """Owed fees computed negative."""
    pass


class ConfigurationError(LedgerError):
    """Configuration error."""
    pass
