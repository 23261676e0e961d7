"""
Core types and pure functions for the ledger engine.

This module provides the foundational pieces shared by every domain ledger:
1. Constants: tax and fee rates, money precision, market defaults
2. Enums: ExecuteResult and ErrorKind
3. Exceptions: LedgerError, the ValidationError family and PersistenceError
4. Result type: MutationResult returned by every mutation
5. Money helpers: round_money and apply_rate

Nothing in this module holds state.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import Any, Optional, Tuple, Union


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Money is always Decimal. Precision is generous so that intermediate
# products (price x quantity x rate) never lose digits before rounding.
#
_ENGINE_DECIMAL_CONTEXT = getcontext()
_ENGINE_DECIMAL_CONTEXT.prec = 28
_ENGINE_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Goods and services tax applied to every hotel booking.
HOTEL_TAX_RATE = Decimal("0.18")

# Brokerage fee on trades. Zero, but kept explicit so totals share one formula.
TRADE_FEE_RATE = Decimal("0")

# Money is kept to whole cents.
MONEY_PLACES = 2
_MONEY_QUANTIZER = Decimal(10) ** -MONEY_PLACES

# Cash a new portfolio starts with.
DEFAULT_STARTING_BALANCE = Decimal("10000.00")

# Market simulation defaults.
MARKET_TICK_SECONDS = 2.0
MARKET_VOLATILITY = 0.015
INITIAL_VOLUME = 1_000_000
VOLUME_RANGE = (10_000, 1_010_000)

# Grade bounds (inclusive).
MIN_GRADE = 0.0
MAX_GRADE = 100.0

# Snapshot file format.
SNAPSHOT_FORMAT = "ledger-engine-snapshot"
SNAPSHOT_SCHEMA_VERSION = 1


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a mutation attempt.

    APPLIED: Preconditions held and the mutation is now visible.
    REJECTED: A precondition failed; nothing changed.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


class ErrorKind(Enum):
    """Classification of every failure the engine reports."""
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    INVALID_RANGE = "invalid_range"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_HOLDINGS = "insufficient_holdings"
    INVALID_STATE = "invalid_state"
    DUPLICATE_ID = "duplicate_id"
    MALFORMED_INPUT = "malformed_input"
    PERSISTENCE = "persistence"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger engine errors."""
    pass


class ValidationError(LedgerError):
    """
    A precondition of an operation did not hold.

    Raised inside the engine before any state is touched. Mutations convert
    it into a REJECTED MutationResult; queries let it propagate.
    """
    kind: ErrorKind = ErrorKind.MALFORMED_INPUT


class NotFound(ValidationError):
    """Raised when an identifier does not match any record."""
    kind = ErrorKind.NOT_FOUND


class Unavailable(ValidationError):
    """Raised when a resource is already committed to another record."""
    kind = ErrorKind.UNAVAILABLE


class InvalidRange(ValidationError):
    """Raised when a range is empty or reversed, or a value is out of bounds."""
    kind = ErrorKind.INVALID_RANGE


class InsufficientFunds(ValidationError):
    """Raised when a purchase costs more than the available balance."""
    kind = ErrorKind.INSUFFICIENT_FUNDS


class InsufficientHoldings(ValidationError):
    """Raised when a sale asks for more units than are held."""
    kind = ErrorKind.INSUFFICIENT_HOLDINGS


class InvalidState(ValidationError):
    """Raised when a record is not in a state that allows the transition."""
    kind = ErrorKind.INVALID_STATE


class DuplicateId(ValidationError):
    """Raised when a new record reuses an existing identifier."""
    kind = ErrorKind.DUPLICATE_ID


class MalformedInput(ValidationError):
    """Raised when raw input cannot be parsed into the expected type."""
    kind = ErrorKind.MALFORMED_INPUT


class PersistenceError(LedgerError):
    """
    Raised when a snapshot cannot be written or read.

    Never rolls back in-memory state; the engine reports it as a warning.
    """
    kind = ErrorKind.PERSISTENCE


# ============================================================================
# MUTATION RESULT
# ============================================================================

@dataclass(frozen=True, slots=True)
class MutationResult:
    """
    Typed outcome of a mutation, returned instead of raising.

    Attributes:
        status: APPLIED or REJECTED
        kind: Name of the operation that produced this result (e.g. "book")
        record: The created or modified transaction record (None if rejected)
        error: The validation failure (None if applied)
        warnings: Non-fatal problems, e.g. a snapshot write that failed
    """
    status: ExecuteResult
    kind: str
    record: Any = None
    error: Optional[ValidationError] = None
    warnings: Tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.status is ExecuteResult.APPLIED

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> Any:
        """Return the record, or raise the validation error of a rejected result."""
        if self.error is not None:
            raise self.error
        return self.record

    @classmethod
    def applied(cls, kind: str, record: Any, warnings: Tuple[str, ...] = ()) -> MutationResult:
        return cls(ExecuteResult.APPLIED, kind, record=record, warnings=warnings)

    @classmethod
    def rejected(cls, kind: str, error: ValidationError) -> MutationResult:
        return cls(ExecuteResult.REJECTED, kind, error=error)

    def __repr__(self) -> str:
        if self.ok:
            suffix = f", warnings={list(self.warnings)}" if self.warnings else ""
            return f"MutationResult(APPLIED {self.kind}: {self.record!r}{suffix})"
        return f"MutationResult(REJECTED {self.kind}: {self.error_kind.value}: {self.error})"


# ============================================================================
# MONEY
# ============================================================================

Number = Union[int, float, str, Decimal]


def to_decimal(value: Number) -> Decimal:
    """
    Convert a number to Decimal without binary float artifacts.

    Floats go through repr() so that 175.25 becomes Decimal("175.25")
    rather than its exact binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def round_money(value: Number) -> Decimal:
    """Round a value to whole cents using banker's rounding."""
    return to_decimal(value).quantize(_MONEY_QUANTIZER, rounding=ROUND_HALF_EVEN)


def apply_rate(base: Number, rate: Number) -> Decimal:
    """
    Add a proportional rate (tax or fee) to a base amount.

    Example:
        apply_rate(Decimal("5000"), HOTEL_TAX_RATE)  # Decimal("5900.00")
    """
    return round_money(to_decimal(base) * (Decimal(1) + to_decimal(rate)))
