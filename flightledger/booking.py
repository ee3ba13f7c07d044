"""
booking.py - Listing and Booking Engine

Pure transition functions for the flight lifecycle:
1. create_flight_memo() - list a flight with its price memo
2. book_flight() - airline books a seat for one of its passengers
3. top_up_airline_balance() - passenger books a seat and pays the airline
4. return_flight() - airline releases a seat

Seat states per flight:

    Listed (seats > 0) --book--> Booked (seats - 1) --return--> Returned (seats + 1)

Every function validates against a read-only LedgerView and returns a
PendingTransaction. Failed checks raise before anything is built, so a
failure leaves the ledger untouched. A booking is one transaction: fare
moved once from passenger to airline, seat taken, record created and its
token issued to the passenger.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from .core import (
    LedgerView, Move, PendingTransaction, UnitStateChange,
    TransactionOrigin, OriginType, Clock,
    SYSTEM_WALLET, UNIT_TYPE_FLIGHT, UNIT_TYPE_BOOKING_RECORD,
    NotAirline, NotPassenger, InvalidFlight, InvalidFlightBooking,
    build_transaction, bump_version, content_id, ledger_clock, to_decimal,
)
from .coin import take, join
from .units.airline import Airline, FlightMemo, load_airline
from .units.passenger import Passenger, load_passenger
from .units.flight import create_flight_unit, load_flight
from .units.booking_record import create_booking_record_unit, require_unconsumed_record


def create_flight_memo(
    view: LedgerView,
    airline_id: str,
    ticket_price: Any,
    flight_number: str,
    destination: str,
    departure_time: datetime,
    caller: str,
) -> PendingTransaction:
    """
    List a new flight and record its price memo with the airline.

    Args:
        view: Read-only ledger access
        airline_id: Listing airline
        ticket_price: Fare, rounded to the currency's precision
        flight_number: e.g. "SK101"
        destination: e.g. "LIS"
        departure_time: Scheduled departure
        caller: Identity of the account making the call

    Returns:
        PendingTransaction that:
        - creates the flight unit (all seats available)
        - issues the flight token to the airline's wallet
        - adds the memo and price, keyed by the new flight id, to the airline

    Raises:
        NotAirline: If caller does not own the airline
        ValueError: If the price is not positive or the schedule data is empty
    """
    airline = load_airline(view, airline_id)
    if caller != airline.airline:
        raise NotAirline(f"{caller} does not own airline {airline_id}")

    try:
        price = to_decimal(ticket_price)
    except ArithmeticError as e:
        raise ValueError(f"ticket_price must be numeric, got {ticket_price!r}") from e
    if not price.is_finite() or view.get_unit(airline.currency).round(price) <= 0:
        raise ValueError(f"ticket_price must be positive, got {ticket_price}")
    price = view.get_unit(airline.currency).round(price)

    old_state = view.get_unit_state(airline_id)
    flight_id = content_id(UNIT_TYPE_FLIGHT, {
        'airline_id': airline_id,
        'version': old_state['version'],
        'flight_number': flight_number,
        'destination': destination,
        'departure_time': departure_time,
    })
    flight_unit = create_flight_unit(
        flight_id, flight_number, destination, departure_time,
        airline=airline.airline, airline_id=airline_id,
    )
    memo = FlightMemo(flight_id=flight_id, ticket_price=price, airline=airline.airline)

    new_state = bump_version(
        old_state,
        prices={**old_state['prices'], flight_id: price},
        memos={**old_state['memos'], flight_id: memo.to_state()},
    )

    moves = [
        Move(Decimal("1"), flight_id, SYSTEM_WALLET, airline_id, f"list_{flight_id}"),
    ]
    origin = TransactionOrigin(OriginType.AIRLINE, caller, airline_id, "CREATE_FLIGHT_MEMO")
    return build_transaction(
        view, moves,
        [UnitStateChange(airline_id, old_state, new_state)],
        origin=origin,
        units_to_create=(flight_unit,),
    )


def _settle_booking(
    view: LedgerView,
    airline: Airline,
    passenger: Passenger,
    flight_id: str,
    memo_id: str,
    origin: TransactionOrigin,
    clock: Optional[Clock],
) -> PendingTransaction:
    """Checks 3 onwards of a booking, then the settlement transaction itself."""
    memo = airline.memos.get(memo_id)
    if memo is None:
        raise InvalidFlightBooking(f"Airline {airline.id} has no price memo {memo_id}")

    flight = load_flight(view, flight_id)
    if flight.airline_id != airline.id or flight.airline != airline.airline:
        raise InvalidFlight(f"Flight {flight_id} is not operated by {airline.id}")
    if flight.available_seats <= 0:
        raise InvalidFlight(f"Flight {flight_id} has no seats available")
    if memo.flight_id != flight_id:
        raise InvalidFlightBooking(f"Memo {memo_id} quotes {memo.flight_id}, not {flight_id}")

    fare = take(view, passenger.id, passenger.currency, memo.ticket_price)

    booked_at_ms = (clock or ledger_clock(view))()
    passenger_state = view.get_unit_state(passenger.id)
    flight_state = view.get_unit_state(flight_id)

    record_id = content_id(UNIT_TYPE_BOOKING_RECORD, {
        'passenger_id': passenger.id,
        'passenger_version': passenger_state['version'],
        'flight_id': flight_id,
        'flight_version': flight_state['version'],
        'memo_id': memo_id,
        'booked_at_ms': booked_at_ms,
    })
    record = create_booking_record_unit(
        record_id,
        passenger_id=passenger.id,
        flight_id=flight_id,
        memo_id=memo_id,
        passenger=passenger.passenger,
        airline=airline.airline,
        airline_id=airline.id,
        paid_amount=fare.value(),
        ticket_price=memo.ticket_price,
        currency=fare.currency,
        booked_at_ms=booked_at_ms,
    )

    moves = [
        join(fare, airline.id, f"fare_{record_id}"),
        Move(Decimal("1"), record_id, SYSTEM_WALLET, passenger.id, f"issue_{record_id}"),
    ]
    state_changes = [
        UnitStateChange(
            flight_id, flight_state,
            bump_version(flight_state, available_seats=flight_state['available_seats'] - 1),
        ),
        UnitStateChange(passenger.id, passenger_state, bump_version(passenger_state)),
    ]
    return build_transaction(view, moves, state_changes, origin=origin, units_to_create=(record,))


def book_flight(
    view: LedgerView,
    airline_id: str,
    passenger_id: str,
    flight_id: str,
    memo_id: str,
    caller: str,
    clock: Optional[Clock] = None,
) -> PendingTransaction:
    """
    Book a seat for a passenger, on the airline's authority.

    Checks, in order:
        1. caller owns the airline                      NotAirline
        2. passenger is registered with the airline     NotPassenger
        3. the airline holds memo_id                    InvalidFlightBooking
        4. the flight is operated by the airline        InvalidFlight
        5. the flight has a seat left                   InvalidFlight
        6. the memo quotes this flight                  InvalidFlightBooking
        7. passenger balance covers the memo price      InsufficientFunds

    Args:
        clock: Millisecond timestamp source for the record (default: ledger time)

    Returns:
        PendingTransaction that moves the fare once from passenger to airline,
        takes one seat, creates the booking record and issues its token to
        the passenger.
    """
    airline = load_airline(view, airline_id)
    if caller != airline.airline:
        raise NotAirline(f"{caller} does not own airline {airline_id}")

    passenger = load_passenger(view, passenger_id)
    if passenger.airline_id != airline.id:
        raise NotPassenger(f"Passenger {passenger_id} is not registered with {airline_id}")

    origin = TransactionOrigin(OriginType.AIRLINE, caller, flight_id, "BOOK_FLIGHT")
    return _settle_booking(view, airline, passenger, flight_id, memo_id, origin, clock)


def top_up_airline_balance(
    view: LedgerView,
    airline_id: str,
    passenger_id: str,
    flight_id: str,
    memo_id: str,
    caller: str,
    clock: Optional[Clock] = None,
) -> PendingTransaction:
    """
    Book a seat on the passenger's own authority, paying into the airline balance.

    Same settlement as book_flight(); only the authorization differs:
        1. caller owns the passenger                    NotPassenger
        2. passenger is registered with the airline     NotPassenger
    followed by checks 3-7 of book_flight().
    """
    passenger = load_passenger(view, passenger_id)
    if caller != passenger.passenger:
        raise NotPassenger(f"{caller} does not own passenger {passenger_id}")

    airline = load_airline(view, airline_id)
    if passenger.airline_id != airline.id:
        raise NotPassenger(f"Passenger {passenger_id} is not registered with {airline_id}")

    origin = TransactionOrigin(OriginType.PASSENGER, caller, flight_id, "TOP_UP_AIRLINE_BALANCE")
    return _settle_booking(view, airline, passenger, flight_id, memo_id, origin, clock)


def return_flight(
    view: LedgerView,
    airline_id: str,
    passenger_id: str,
    flight_id: str,
    caller: str,
    booking_record_id: Optional[str] = None,
) -> PendingTransaction:
    """
    Release one seat on a flight.

    Money does not move: returning a seat is not a refund. When the booking
    record being reversed is given, its token is consumed so it can no
    longer be used to claim the flight.

    Raises:
        NotAirline: If caller does not own the airline
        NotPassenger: If the passenger is not registered with the airline
        InvalidFlight: If the flight is not the airline's or no seat is taken
        InvalidFlightBooking: If booking_record_id is not an unused record of
                              this passenger on this flight
    """
    airline = load_airline(view, airline_id)
    if caller != airline.airline:
        raise NotAirline(f"{caller} does not own airline {airline_id}")

    passenger = load_passenger(view, passenger_id)
    if passenger.airline_id != airline.id:
        raise NotPassenger(f"Passenger {passenger_id} is not registered with {airline_id}")

    flight = load_flight(view, flight_id)
    if flight.airline_id != airline.id or flight.airline != airline.airline:
        raise InvalidFlight(f"Flight {flight_id} is not operated by {airline_id}")
    if flight.available_seats >= flight.capacity:
        raise InvalidFlight(f"Flight {flight_id} has no booked seat to return")

    moves = []
    if booking_record_id is not None:
        require_unconsumed_record(view, booking_record_id, passenger_id, flight_id)
        moves.append(Move(
            Decimal("1"), booking_record_id, passenger_id, SYSTEM_WALLET,
            f"return_{booking_record_id}",
        ))

    flight_state = view.get_unit_state(flight_id)
    new_state = bump_version(flight_state, available_seats=flight_state['available_seats'] + 1)

    origin = TransactionOrigin(OriginType.AIRLINE, caller, flight_id, "RETURN_FLIGHT")
    return build_transaction(
        view, moves,
        [UnitStateChange(flight_id, flight_state, new_state)],
        origin=origin,
    )
