"""
flightledger - Flight-Booking Ledger

Airlines list flights with price memos, passengers keep prepaid balances, and
every booking is one atomic ledger transaction that moves the fare, takes a
seat and creates an immutable booking record.

Usage:
    from flightledger import Ledger, BookingDesk

    desk = BookingDesk(Ledger("main", verbose=False))
    airline = desk.create_airline("Skyways", caller="0xA1")
    pax = desk.register_passenger(airline.id, "Ada", caller="0xP1")
    flight = desk.create_flight_memo(
        airline.id, 500, "SK101", "LIS", datetime(2025, 6, 1, 9, 30), caller="0xA1"
    )
    desk.top_up_passenger_balance(pax.id, 500, caller="0xP1")
    record = desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller="0xA1")

The transition functions (book_flight, return_flight, ...) can also be used
directly: they take a read-only LedgerView and return a PendingTransaction
for Ledger.execute().
"""

# Core types
from .core import (
    LedgerView,
    Move,
    Transaction,
    PendingTransaction,
    TransactionOrigin,
    OriginType,
    build_transaction,
    Unit,
    UnitStateChange,
    ExecuteResult,
    Clock,
    LedgerError,
    NotAirline,
    NotPassenger,
    InvalidFlight,
    InvalidFlightBooking,
    InsufficientFunds,
    InvalidCoin,
    TransferRuleViolation,
    UnitNotRegistered,
    WalletNotRegistered,
    TransactionRejected,
    cash,
    content_id,
    ledger_clock,
    SYSTEM_WALLET,
    DEFAULT_CURRENCY,
    INITIAL_SEATS,
    UNIT_TYPE_CASH,
    UNIT_TYPE_AIRLINE,
    UNIT_TYPE_PASSENGER,
    UNIT_TYPE_FLIGHT,
    UNIT_TYPE_BOOKING_RECORD,
)

# Ledger
from .ledger import Ledger

# Payment instrument
from .coin import Coin, mint, take, join

# Entities
from .units import (
    Airline,
    FlightMemo,
    Passenger,
    Flight,
    BookingRecord,
    create_airline,
    register_passenger,
    load_airline,
    load_passenger,
    load_flight,
    load_booking_record,
)

# Engine
from .booking import (
    create_flight_memo,
    book_flight,
    top_up_airline_balance,
    return_flight,
)

from .accounts import (
    top_up_passenger_balance,
    withdraw_funds,
    transfer_flight_ownership,
    get_airline_balance,
    get_passenger_balance,
)

# Desk
from .desk import BookingDesk

__all__ = [
    # Core
    'LedgerView', 'Move', 'Transaction', 'PendingTransaction',
    'TransactionOrigin', 'OriginType', 'build_transaction',
    'Unit', 'UnitStateChange', 'ExecuteResult', 'Clock',
    'cash', 'content_id', 'ledger_clock',
    'SYSTEM_WALLET', 'DEFAULT_CURRENCY', 'INITIAL_SEATS',
    'UNIT_TYPE_CASH', 'UNIT_TYPE_AIRLINE', 'UNIT_TYPE_PASSENGER',
    'UNIT_TYPE_FLIGHT', 'UNIT_TYPE_BOOKING_RECORD',
    # Exceptions
    'LedgerError', 'NotAirline', 'NotPassenger', 'InvalidFlight',
    'InvalidFlightBooking', 'InsufficientFunds', 'InvalidCoin',
    'TransferRuleViolation', 'UnitNotRegistered', 'WalletNotRegistered',
    'TransactionRejected',
    # Ledger
    'Ledger',
    # Payment instrument
    'Coin', 'mint', 'take', 'join',
    # Entities
    'Airline', 'FlightMemo', 'Passenger', 'Flight', 'BookingRecord',
    'create_airline', 'register_passenger',
    'load_airline', 'load_passenger', 'load_flight', 'load_booking_record',
    # Engine
    'create_flight_memo', 'book_flight', 'top_up_airline_balance', 'return_flight',
    'top_up_passenger_balance', 'withdraw_funds', 'transfer_flight_ownership',
    'get_airline_balance', 'get_passenger_balance',
    # Desk
    'BookingDesk',
]
