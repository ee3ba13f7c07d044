"""
desk.py - Booking Desk

Stateful front end over a Ledger. Each method runs one transition function
against the ledger, executes the resulting transaction, and returns the
entity it produced. The caller identity is passed explicitly to every call.

    desk = BookingDesk(Ledger("main", verbose=False))
    airline = desk.create_airline("Skyways", caller="0xA1")
    pax = desk.register_passenger(airline.id, "Ada", caller="0xP1")
    flight = desk.create_flight_memo(airline.id, 500, "SK101", "LIS", departure, caller="0xA1")
    desk.top_up_passenger_balance(pax.id, 500, caller="0xP1")
    record = desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller="0xA1")
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from .core import (
    PendingTransaction, ExecuteResult, Clock,
    DEFAULT_CURRENCY, UNIT_TYPE_AIRLINE, UNIT_TYPE_PASSENGER,
    UNIT_TYPE_FLIGHT, UNIT_TYPE_BOOKING_RECORD,
    TransactionRejected,
    cash,
)
from .ledger import Ledger
from .coin import Coin
from .booking import create_flight_memo, book_flight, top_up_airline_balance, return_flight
from .accounts import (
    top_up_passenger_balance, withdraw_funds, transfer_flight_ownership,
    get_airline_balance, get_passenger_balance,
)
from .units.airline import Airline, create_airline, load_airline
from .units.passenger import Passenger, register_passenger, load_passenger
from .units.flight import Flight, load_flight
from .units.booking_record import BookingRecord, load_booking_record


class BookingDesk:
    """
    Executes booking and account operations against a ledger.

    Features:
    - One atomic ledger transaction per operation
    - Precondition failures raised as the booking error kinds
    - Ledger rejections (stale state, balance limits) raised as TransactionRejected
    - Audit queries over booking records
    """

    def __init__(
        self,
        ledger: Ledger,
        currency: str = DEFAULT_CURRENCY,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the desk.

        Args:
            ledger: The ledger to operate on
            currency: Currency unit for all balances (registered if missing)
            clock: Millisecond timestamp source for booking records
                   (default: the ledger's logical time)
        """
        self.ledger = ledger
        self.currency = currency
        self.clock = clock
        self.verbose = ledger.verbose

        if currency not in ledger.units:
            ledger.register_unit(cash(currency, f"{currency} balance"))

    def _submit(self, pending: PendingTransaction) -> ExecuteResult:
        result = self.ledger.execute(pending)
        if result == ExecuteResult.REJECTED:
            raise TransactionRejected(self.ledger.last_rejection or "rejected")
        if self.verbose:
            print(f"[BOOKING] {pending.origin.event_type}: {result.value}")
        return result

    # ========================================================================
    # ENTITY CREATION
    # ========================================================================

    def create_airline(self, name: str, caller: str) -> Airline:
        pending = create_airline(self.ledger, name, caller, self.currency)
        self._submit(pending)
        return load_airline(self.ledger, pending.created_symbol(UNIT_TYPE_AIRLINE))

    def register_passenger(self, airline_id: str, name: str, caller: str) -> Passenger:
        pending = register_passenger(self.ledger, airline_id, name, caller)
        self._submit(pending)
        return load_passenger(self.ledger, pending.created_symbol(UNIT_TYPE_PASSENGER))

    def create_flight_memo(
        self,
        airline_id: str,
        ticket_price: Any,
        flight_number: str,
        destination: str,
        departure_time: datetime,
        caller: str,
    ) -> Flight:
        """List a flight. The returned flight's id is also its memo id."""
        pending = create_flight_memo(
            self.ledger, airline_id, ticket_price,
            flight_number, destination, departure_time, caller,
        )
        self._submit(pending)
        return load_flight(self.ledger, pending.created_symbol(UNIT_TYPE_FLIGHT))

    # ========================================================================
    # BOOKING
    # ========================================================================

    def book_flight(
        self,
        airline_id: str,
        passenger_id: str,
        flight_id: str,
        memo_id: str,
        caller: str,
    ) -> BookingRecord:
        pending = book_flight(
            self.ledger, airline_id, passenger_id, flight_id, memo_id, caller, self.clock,
        )
        self._submit(pending)
        return load_booking_record(self.ledger, pending.created_symbol(UNIT_TYPE_BOOKING_RECORD))

    def top_up_airline_balance(
        self,
        airline_id: str,
        passenger_id: str,
        flight_id: str,
        memo_id: str,
        caller: str,
    ) -> BookingRecord:
        pending = top_up_airline_balance(
            self.ledger, airline_id, passenger_id, flight_id, memo_id, caller, self.clock,
        )
        self._submit(pending)
        return load_booking_record(self.ledger, pending.created_symbol(UNIT_TYPE_BOOKING_RECORD))

    def return_flight(
        self,
        airline_id: str,
        passenger_id: str,
        flight_id: str,
        caller: str,
        booking_record_id: Optional[str] = None,
    ) -> Flight:
        pending = return_flight(
            self.ledger, airline_id, passenger_id, flight_id, caller, booking_record_id,
        )
        self._submit(pending)
        return load_flight(self.ledger, flight_id)

    # ========================================================================
    # BALANCES AND OWNERSHIP
    # ========================================================================

    def top_up_passenger_balance(self, passenger_id: str, amount: Any, caller: str) -> Decimal:
        """Credit a passenger and return the new balance."""
        self._submit(top_up_passenger_balance(self.ledger, passenger_id, amount, caller))
        return get_passenger_balance(self.ledger, passenger_id)

    def withdraw_funds(self, airline_id: str, amount: Any, caller: str) -> Coin:
        """Pay out of an airline's balance and return the coin that left it."""
        pending = withdraw_funds(self.ledger, airline_id, amount, caller)
        self._submit(pending)
        move = pending.moves[0]
        return Coin(move.quantity, move.unit_symbol, move.source)

    def transfer_flight_ownership(self, passenger_id: str, flight_id: str, booking_record_id: str) -> Flight:
        self._submit(transfer_flight_ownership(self.ledger, passenger_id, flight_id, booking_record_id))
        return load_flight(self.ledger, flight_id)

    def get_airline_balance(self, airline_id: str) -> Decimal:
        return get_airline_balance(self.ledger, airline_id)

    def get_passenger_balance(self, passenger_id: str) -> Decimal:
        return get_passenger_balance(self.ledger, passenger_id)

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_airline(self, airline_id: str) -> Airline:
        return load_airline(self.ledger, airline_id)

    def get_passenger(self, passenger_id: str) -> Passenger:
        return load_passenger(self.ledger, passenger_id)

    def get_flight(self, flight_id: str) -> Flight:
        return load_flight(self.ledger, flight_id)

    def get_booking_record(self, record_id: str) -> BookingRecord:
        return load_booking_record(self.ledger, record_id)

    def booking_records(
        self,
        passenger_id: Optional[str] = None,
        flight_id: Optional[str] = None,
    ) -> List[BookingRecord]:
        """
        All booking records in booking order, optionally filtered.

        Records come from the transaction log, so the order is the order in
        which bookings were applied.
        """
        records = []
        for tx in self.ledger.transaction_log:
            for unit in tx.units_to_create:
                if unit.unit_type != UNIT_TYPE_BOOKING_RECORD:
                    continue
                record = load_booking_record(self.ledger, unit.symbol)
                if passenger_id is not None and record.passenger_id != passenger_id:
                    continue
                if flight_id is not None and record.flight_id != flight_id:
                    continue
                records.append(record)
        return records
