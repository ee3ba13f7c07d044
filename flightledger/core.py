"""
Core types and pure functions for the flight-booking ledger.

This module provides the foundational data structures and protocols for the ledger:
1. Protocols: LedgerView for read-only ledger access
2. Immutable data structures: Move, PendingTransaction, Transaction, Unit
3. Exceptions: LedgerError and the booking error kinds
4. Type aliases: Positions, UnitState, Clock
5. Content-addressed identifiers for newly created entities
6. Unit factories: the ledger currency

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_EVEN, getcontext
from enum import Enum
import copy
import hashlib
from typing import (
    Dict, List, Set, Optional, Callable, Any, Protocol,
    Tuple, runtime_checkable,
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Balances and prices are Decimal. The global context is configured once at
# import time; code needing another context must use decimal.localcontext().
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Reserved wallet for value entering (top-ups) and tokens being issued or consumed.
# The system wallet is exempt from balance validation.
SYSTEM_WALLET = "system"

# The single currency balances are kept in.
DEFAULT_CURRENCY = "USD"
CURRENCY_DECIMAL_PLACES = 2

# Seats on a newly listed flight.
INITIAL_SEATS = 100

UNIT_TYPE_CASH = "CASH"
UNIT_TYPE_AIRLINE = "AIRLINE"
UNIT_TYPE_PASSENGER = "PASSENGER"
UNIT_TYPE_FLIGHT = "FLIGHT"
UNIT_TYPE_BOOKING_RECORD = "BOOKING_RECORD"

# Units whose state is fixed at creation. The ledger rejects state changes on them.
IMMUTABLE_UNIT_TYPES = frozenset({UNIT_TYPE_BOOKING_RECORD})

# Fields fixed at creation on units whose other fields may change.
IMMUTABLE_FIELDS = {
    UNIT_TYPE_AIRLINE: frozenset({'airline', 'currency'}),
    UNIT_TYPE_PASSENGER: frozenset({'passenger', 'airline_id', 'currency'}),
    UNIT_TYPE_FLIGHT: frozenset({'airline', 'airline_id', 'capacity'}),
}

# Identifier prefixes per entity type.
ID_PREFIXES = {
    UNIT_TYPE_AIRLINE: "AIRLINE",
    UNIT_TYPE_PASSENGER: "PAX",
    UNIT_TYPE_FLIGHT: "FLT",
    UNIT_TYPE_BOOKING_RECORD: "BKG",
}

# Quantities with absolute value below this threshold are treated as zero.
QUANTITY_EPSILON = Decimal("1e-12")


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from wallet ID to quantity held by that wallet for a specific unit.
Positions = Dict[str, Decimal]

# Internal state for a unit (entity fields, version counter, etc.)
UnitState = Dict[str, Any]

# Millisecond timestamp source used to stamp booking records.
Clock = Callable[[], int]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Transition functions accept a LedgerView to declare their read-only intent.
    They validate against it and return a PendingTransaction; only
    Ledger.execute() applies changes.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current logical time of the ledger."""
        ...

    def get_balance(self, wallet_id: str, unit_symbol: str) -> Decimal:
        """Return the balance of a unit in a wallet (Decimal("0") if none)."""
        ...

    def get_unit_state(self, unit_symbol: str) -> UnitState:
        """Return a copy of the unit's internal state."""
        ...

    def get_positions(self, unit_symbol: str) -> Positions:
        """Return all non-zero positions for a unit across all wallets."""
        ...

    def list_wallets(self) -> Set[str]:
        """Return the set of all registered wallet IDs."""
        ...

    def list_units(self) -> List[str]:
        """Return the sorted list of registered unit symbols."""
        ...

    def get_unit(self, symbol: str) -> 'Unit':
        """Return the Unit object for a given symbol."""
        ...


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of a transaction execution attempt.

    APPLIED: Transaction was validated and applied to the ledger.
    ALREADY_APPLIED: Same intent_id was processed before (idempotent behavior).
    REJECTED: Transaction failed validation; nothing was applied.
    """
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"
    REJECTED = "rejected"


class OriginType(Enum):
    """Classification of where a transaction originated."""
    AIRLINE = "airline"        # Initiated by an airline owner
    PASSENGER = "passenger"    # Initiated by a passenger owner
    CAPABILITY = "capability"  # Authorized by holding a booking record
    SYSTEM = "system"          # Ledger setup


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger-related errors."""
    pass


class NotAirline(LedgerError):
    """Raised when the caller is not the owner of the airline being acted on."""
    pass


class NotPassenger(LedgerError):
    """Raised when the caller does not own the passenger, or the passenger is not registered with the airline."""
    pass


class InvalidFlight(LedgerError):
    """Raised when a flight does not belong to the airline or has no seat to give or take back."""
    pass


class InvalidFlightBooking(LedgerError):
    """Raised when a price memo or booking record does not exist or does not match the request."""
    pass


class InsufficientFunds(LedgerError):
    """Raised when a balance is below the amount required."""
    pass


class InvalidCoin(LedgerError):
    """Raised when a payment amount is not positive or is finer than the currency allows."""
    pass


class TransferRuleViolation(LedgerError):
    """Raised when a move violates the unit's transfer rule."""
    pass


class UnitNotRegistered(LedgerError):
    """Raised when an entity or unit is not registered with the ledger."""
    pass


class WalletNotRegistered(LedgerError):
    """Raised when a wallet is not registered with the ledger."""
    pass


class TransactionRejected(LedgerError):
    """Raised by BookingDesk when the ledger rejects a transaction."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Transaction rejected: {reason}")


# ============================================================================
# TRANSACTION ORIGIN
# ============================================================================

@dataclass(frozen=True, slots=True)
class TransactionOrigin:
    """
    Immutable record of who initiated a transaction and which operation it was.

    Attributes:
        origin_type: AIRLINE, PASSENGER, CAPABILITY or SYSTEM
        source_id: Caller identity (or booking record id for capabilities)
        unit_symbol: Primary entity the operation acted on
        event_type: Operation name, e.g. "BOOK_FLIGHT"
    """
    origin_type: OriginType
    source_id: str
    unit_symbol: Optional[str] = None
    event_type: Optional[str] = None

    def __repr__(self) -> str:
        parts = [f"{self.origin_type.value}:{self.source_id}"]
        if self.unit_symbol:
            parts.append(f"unit={self.unit_symbol}")
        if self.event_type:
            parts.append(f"event={self.event_type}")
        return f"Origin({', '.join(parts)})"


# ============================================================================
# UNIT STATE CHANGE
# ============================================================================

@dataclass(frozen=True, slots=True)
class UnitStateChange:
    """
    Record of a unit state change.

    old_state is the state the change was computed against. The ledger
    rejects the change if the stored state differs (optimistic concurrency).
    """
    unit: str
    old_state: Any
    new_state: Any

    def changed_fields(self) -> Dict[str, Tuple[Any, Any]]:
        """Return {field: (old_value, new_value)} for fields that differ."""
        old = self.old_state if isinstance(self.old_state, dict) else {}
        new = self.new_state if isinstance(self.new_state, dict) else {}
        changes = {}
        for key in set(old.keys()) | set(new.keys()):
            old_val = old.get(key)
            new_val = new.get(key)
            if old_val != new_val:
                changes[key] = (old_val, new_val)
        return changes


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Move:
    """
    A single transfer of value between two wallets.

    Attributes:
        quantity: The amount to transfer (must be finite and non-zero).
        unit_symbol: The unit being transferred (currency, flight or booking record token).
        source: The wallet ID from which value is debited.
        dest: The wallet ID to which value is credited.
        contract_id: Identifier of the operation generating this move.
    """
    quantity: Decimal
    unit_symbol: str
    source: str
    dest: str
    contract_id: str

    def __post_init__(self):
        if not self.source or not self.source.strip():
            raise ValueError("Move source cannot be empty")
        if not self.dest or not self.dest.strip():
            raise ValueError("Move dest cannot be empty")
        if not self.unit_symbol or not self.unit_symbol.strip():
            raise ValueError("Move unit_symbol cannot be empty")
        if not self.contract_id or not self.contract_id.strip():
            raise ValueError("Move contract_id cannot be empty")
        if not isinstance(self.quantity, Decimal):
            raise ValueError(f"Move quantity must be Decimal, got {type(self.quantity)}")
        if self.quantity.is_infinite() or self.quantity.is_nan():
            raise ValueError(f"Move quantity must be finite, got {self.quantity}")
        if abs(self.quantity) < QUANTITY_EPSILON:
            raise ValueError("Move quantity is effectively zero")
        if self.source == self.dest:
            raise ValueError("Source and dest must be different")

    def __repr__(self) -> str:
        return f"Move({self.quantity} {self.unit_symbol}: {self.source}→{self.dest})"


def _normalize_decimal(d: Decimal) -> str:
    """
    Normalize a Decimal to a canonical string.

    Decimal("1.0") and Decimal("1.00") both become "1".
    """
    normalized = d.normalize()
    if normalized == normalized.to_integral_value():
        return str(int(normalized))
    return format(normalized, 'f')


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Independent of dict insertion order and Decimal representation, so that
    semantically equal content always hashes the same.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return f"D:{_normalize_decimal(value)}"
    if isinstance(value, (int, float)):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    return f"R:{repr(value)}"


def content_id(unit_type: str, content: Dict[str, Any]) -> str:
    """
    Compute a content-addressed identifier for a new entity.

    The content must include a nonce (a version counter or the number of
    registered units) so that two otherwise identical creations get
    different identifiers.

    Example:
        content_id(UNIT_TYPE_FLIGHT, {"airline_id": "AIRLINE_ab12", "version": 3, ...})
        # -> "FLT_5d0c6a1f9be2c3e4"
    """
    prefix = ID_PREFIXES.get(unit_type, unit_type)
    digest = hashlib.sha256(_canonicalize(content).encode()).hexdigest()[:16]
    return f"{prefix}_{digest}"


def _compute_intent_id(
    moves: Tuple[Move, ...],
    state_changes: Tuple[UnitStateChange, ...],
    origin: TransactionOrigin,
    units_to_create: Tuple['Unit', ...] = (),
    wallets_to_create: Tuple[str, ...] = (),
) -> str:
    """
    Compute a deterministic content hash for a transaction's intent.

    Based solely on semantic content, never on timestamps. Used for
    idempotency: the same intent is applied at most once.
    """
    sorted_moves = tuple(sorted(
        moves,
        key=lambda m: (_normalize_decimal(m.quantity), m.unit_symbol, m.source, m.dest, m.contract_id)
    ))

    content_parts = [f"origin:{origin.origin_type.value}:{origin.source_id}"]
    if origin.unit_symbol:
        content_parts.append(f"unit:{origin.unit_symbol}")
    if origin.event_type:
        content_parts.append(f"event:{origin.event_type}")

    for unit in sorted(units_to_create, key=lambda u: u.symbol):
        content_parts.append(f"unit_create:{unit.symbol}|{unit.unit_type}")

    for wallet in sorted(wallets_to_create):
        content_parts.append(f"wallet_create:{wallet}")

    for m in sorted_moves:
        qty = _normalize_decimal(m.quantity)
        content_parts.append(f"move:{qty}|{m.unit_symbol}|{m.source}|{m.dest}|{m.contract_id}")

    for sc in sorted(state_changes, key=lambda s: s.unit):
        old_canonical = _canonicalize(sc.old_state)
        new_canonical = _canonicalize(sc.new_state)
        content_parts.append(f"state_change:{sc.unit}|{old_canonical}|{new_canonical}")

    content = "|".join(content_parts)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class PendingTransaction:
    """
    A transaction specification before execution - represents INTENT.

    Built by the transition functions and submitted to Ledger.execute().

    Attributes:
        moves: Value and token transfers between wallets
        state_changes: Entity state changes (old_state and new_state)
        origin: Who initiated this and which operation it is
        timestamp: When this pending transaction was built
        units_to_create: Entities to register atomically with the moves
        wallets_to_create: Wallets to register atomically with the moves
        intent_id: Content hash of the intent (auto-computed)
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()
    intent_id: str = field(default="")

    def __post_init__(self):
        if not self.intent_id:
            computed_id = _compute_intent_id(
                self.moves, self.state_changes, self.origin,
                self.units_to_create, self.wallets_to_create,
            )
            object.__setattr__(self, 'intent_id', computed_id)

    def is_empty(self) -> bool:
        """Return True if nothing would change."""
        return (
            not self.moves and not self.state_changes
            and not self.units_to_create and not self.wallets_to_create
        )

    def created_symbol(self, unit_type: str) -> Optional[str]:
        """Return the symbol of the first unit of unit_type this transaction creates."""
        for unit in self.units_to_create:
            if unit.unit_type == unit_type:
                return unit.symbol
        return None

    def __repr__(self) -> str:
        return f"PendingTransaction({len(self.moves)} moves, {len(self.state_changes)} deltas, {self.origin})"


def build_transaction(
    view: LedgerView,
    moves: List[Move],
    state_changes: Optional[List[UnitStateChange]] = None,
    origin: Optional[TransactionOrigin] = None,
    units_to_create: Optional[Tuple['Unit', ...]] = None,
    wallets_to_create: Optional[Tuple[str, ...]] = None,
) -> PendingTransaction:
    """
    Build a PendingTransaction from moves and state changes.

    State changes are deep-copied so later mutation of the caller's dicts
    cannot alter the transaction.

    Example:
        old_state = view.get_unit_state(flight_id)
        new_state = {**old_state, "available_seats": old_state["available_seats"] - 1}
        pending = build_transaction(
            view,
            [Move(Decimal("500"), "USD", passenger_id, airline_id, "fare")],
            [UnitStateChange(flight_id, old_state, new_state)],
        )
    """
    if origin is None:
        origin = TransactionOrigin(
            origin_type=OriginType.SYSTEM,
            source_id=SYSTEM_WALLET,
        )

    copied_changes: Tuple[UnitStateChange, ...] = ()
    if state_changes:
        copied_changes = tuple(
            UnitStateChange(
                unit=sc.unit,
                old_state=copy.deepcopy(sc.old_state),
                new_state=copy.deepcopy(sc.new_state),
            )
            for sc in state_changes
        )

    return PendingTransaction(
        moves=tuple(moves),
        state_changes=copied_changes,
        origin=origin,
        timestamp=view.current_time,
        units_to_create=units_to_create or (),
        wallets_to_create=tuple(wallets_to_create or ()),
    )


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    An executed, immutable record of ledger state changes - represents FACT.

    Created by the ledger when executing a PendingTransaction and appended to
    the transaction log, which is never rewritten.
    """
    moves: Tuple[Move, ...]
    state_changes: Tuple[UnitStateChange, ...]
    origin: TransactionOrigin
    timestamp: datetime           # When PendingTransaction was built
    intent_id: str                # Content hash (from PendingTransaction)
    exec_id: str                  # Unique execution instance ID
    ledger_name: str
    execution_time: datetime      # When executed
    sequence_number: int          # Monotonic within ledger
    units_to_create: Tuple['Unit', ...] = ()
    wallets_to_create: Tuple[str, ...] = ()

    def __post_init__(self):
        if (not self.moves and not self.state_changes
                and not self.units_to_create and not self.wallets_to_create):
            raise ValueError("Transaction must change something")

    def __repr__(self) -> str:
        w = 100
        bar = "─" * w

        def pad(text: str) -> str:
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            "",
            f"┌{bar}┐",
            f"│{pad(' Transaction: ' + self.exec_id)}│",
            f"├{bar}┤",
            f"│{pad('   intent_id      : ' + self.intent_id)}│",
            f"│{pad('   execution_time : ' + str(self.execution_time))}│",
            f"│{pad('   sequence       : ' + str(self.sequence_number))}│",
            f"│{pad('   origin         : ' + str(self.origin))}│",
        ]
        if self.units_to_create or self.wallets_to_create:
            lines.append(f"├{bar}┤")
            for unit in self.units_to_create:
                lines.append(f"│{pad('   + ' + unit.symbol + ' (' + unit.name + ')')}│")
            for wallet in self.wallets_to_create:
                lines.append(f"│{pad('   + wallet ' + wallet)}│")
        if self.moves:
            lines.append(f"├{bar}┤")
            for i, move in enumerate(self.moves):
                move_str = f"   [{i}] {move.quantity} {move.unit_symbol}: {move.source} → {move.dest}"
                lines.append(f"│{pad(move_str)}│")
        if self.state_changes:
            lines.append(f"├{bar}┤")
            for sc in self.state_changes:
                lines.append(f"│{pad('   [' + sc.unit + ']')}│")
                for field_name, (old_val, new_val) in sc.changed_fields().items():
                    lines.append(f"│{pad(f'      {field_name}: {old_val!r} → {new_val!r}')}│")
        lines.append(f"└{bar}┘")
        return "\n".join(lines)


# Transfer rules validate moves and raise TransferRuleViolation if invalid.
TransferRule = Callable[[LedgerView, Move], None]


def _freeze_state(state: Optional[UnitState]) -> Tuple[Tuple[str, Any], ...]:
    """Convert a state dict to a tuple of (key, value) pairs sorted by key."""
    if not state:
        return ()
    return tuple(sorted(state.items()))


def _thaw_state(frozen_state: Tuple[Tuple[str, Any], ...]) -> UnitState:
    """Convert a frozen state back to a dict."""
    return dict(frozen_state)


@dataclass(frozen=True, slots=True)
class Unit:
    """
    Definition of a unit registered in the ledger.

    Currencies are units; so are airlines, passengers, flights and booking
    records, whose entity fields live in the frozen state.

    Attributes:
        symbol: Identifier (e.g. "USD", "FLT_5d0c6a1f9be2c3e4").
        name: Human-readable name.
        unit_type: CASH, AIRLINE, PASSENGER, FLIGHT or BOOKING_RECORD.
        min_balance: Minimum allowed balance in any non-system wallet.
        max_balance: Maximum allowed balance in any non-system wallet.
        decimal_places: Rounding precision (None = no rounding).
        transfer_rule: Optional function to validate moves of this unit.
        _frozen_state: Internal frozen state representation.
    """
    symbol: str
    name: str
    unit_type: str
    min_balance: Decimal = Decimal("0")
    max_balance: Decimal = Decimal("Infinity")
    decimal_places: Optional[int] = None
    transfer_rule: Optional[TransferRule] = None
    _frozen_state: Tuple[Tuple[str, Any], ...] = field(default_factory=tuple)

    @property
    def state(self) -> UnitState:
        """Return the unit's state as a new dict."""
        return _thaw_state(self._frozen_state)

    def round(self, value: Decimal) -> Decimal:
        """Round a value to this unit's decimal precision (half-even)."""
        if self.decimal_places is None:
            return value
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        quantizer = Decimal(10) ** -self.decimal_places
        return value.quantize(quantizer, rounding=ROUND_HALF_EVEN)


# ============================================================================
# UNIT FACTORIES
# ============================================================================

def cash(symbol: str, name: str, decimal_places: int = CURRENCY_DECIMAL_PLACES) -> Unit:
    """
    Create the currency unit balances are kept in.

    Balances may not go below zero; the system wallet is exempt and acts as
    the counterparty for value entering the ledger.
    """
    return Unit(
        symbol=symbol,
        name=name,
        unit_type=UNIT_TYPE_CASH,
        decimal_places=decimal_places,
        min_balance=Decimal("0"),
    )


def entity_state(view: LedgerView, symbol: str, unit_type: str) -> UnitState:
    """
    Read an entity's state, checking it is of the expected type.

    Raises:
        UnitNotRegistered: If symbol is not registered or is another kind of unit
    """
    unit = view.get_unit(symbol)
    if unit.unit_type != unit_type:
        raise UnitNotRegistered(f"{symbol} is not a registered {unit_type.lower()}")
    return view.get_unit_state(symbol)


def bump_version(state: UnitState, **updates: Any) -> UnitState:
    """Return a copy of state with updates applied and its version incremented."""
    return {**state, **updates, 'version': state.get('version', 0) + 1}


def ledger_clock(view: LedgerView) -> Clock:
    """
    Return a clock reading the view's logical time in milliseconds.

    Naive ledger times are read as UTC, so the reading does not depend on the
    host's time zone.
    """
    def clock() -> int:
        now = view.current_time
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return int(now.timestamp() * 1000)
    return clock


def to_decimal(value: Any) -> Decimal:
    """Convert an int, str or Decimal amount to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"amount must be numeric, got {value!r}")
    if isinstance(value, (int, float, str)):
        return Decimal(str(value))
    raise ValueError(f"amount must be numeric, got {value!r}")
