"""
accounts.py - Balance and Ticket Ownership Operations

1. top_up_passenger_balance() - value enters a passenger's prepaid balance
2. withdraw_funds() - an airline pays out to its owner's account wallet
3. transfer_flight_ownership() - ticket custody moves to a passenger who
   presents an unused booking record
4. get_airline_balance() / get_passenger_balance() - read-only accessors

Only the owner of an account can change its balance here; bookings are the
other way balances move (see booking.py).
"""

from __future__ import annotations
from decimal import Decimal
from typing import Any

from .core import (
    LedgerView, Move, PendingTransaction, UnitStateChange,
    TransactionOrigin, OriginType,
    SYSTEM_WALLET,
    NotAirline, NotPassenger, InvalidFlight,
    build_transaction, bump_version,
)
from .coin import mint, take, join
from .units.airline import load_airline
from .units.passenger import load_passenger
from .units.flight import load_flight
from .units.booking_record import require_unconsumed_record


def top_up_passenger_balance(
    view: LedgerView,
    passenger_id: str,
    amount: Any,
    caller: str,
) -> PendingTransaction:
    """
    Credit amount to a passenger's balance.

    The value comes from the system wallet: it is money entering the ledger.

    Raises:
        NotPassenger: If caller does not own the passenger
        InvalidCoin: If amount is not positive
    """
    passenger = load_passenger(view, passenger_id)
    if caller != passenger.passenger:
        raise NotPassenger(f"{caller} does not own passenger {passenger_id}")

    coin = mint(view, passenger.currency, amount)
    state = view.get_unit_state(passenger_id)

    origin = TransactionOrigin(OriginType.PASSENGER, caller, passenger_id, "TOP_UP")
    return build_transaction(
        view,
        [join(coin, passenger_id, f"topup_{passenger_id}_{state['version']}")],
        [UnitStateChange(passenger_id, state, bump_version(state))],
        origin=origin,
    )


def withdraw_funds(
    view: LedgerView,
    airline_id: str,
    amount: Any,
    caller: str,
) -> PendingTransaction:
    """
    Pay amount out of an airline's balance into its owner's account wallet.

    Raises:
        NotAirline: If caller does not own the airline
        InvalidCoin: If amount is not positive
        InsufficientFunds: If amount exceeds the airline's balance
    """
    airline = load_airline(view, airline_id)
    if caller != airline.airline:
        raise NotAirline(f"{caller} does not own airline {airline_id}")

    coin = take(view, airline_id, airline.currency, amount)
    state = view.get_unit_state(airline_id)

    origin = TransactionOrigin(OriginType.AIRLINE, caller, airline_id, "WITHDRAW")
    return build_transaction(
        view,
        [join(coin, airline.airline, f"withdraw_{airline_id}_{state['version']}")],
        [UnitStateChange(airline_id, state, bump_version(state))],
        origin=origin,
    )


def transfer_flight_ownership(
    view: LedgerView,
    passenger_id: str,
    flight_id: str,
    booking_record_id: str,
) -> PendingTransaction:
    """
    Move custody of a flight to a passenger.

    The booking record is the authorization: it must link this passenger to
    this flight and must not have been used before. It is consumed by the
    transfer. Custody only leaves the issuing airline; a flight a passenger
    already holds cannot be taken by another. Balances and seats are unaffected.

    Raises:
        InvalidFlightBooking: If the record does not entitle the passenger
        InvalidFlight: If the airline no longer holds the flight
    """
    passenger = load_passenger(view, passenger_id)
    flight = load_flight(view, flight_id)
    require_unconsumed_record(view, booking_record_id, passenger.id, flight.id)

    if flight.holder is None:
        raise InvalidFlight(f"Flight {flight_id} has no holder")
    if flight.holder == passenger.id:
        raise InvalidFlight(f"Passenger {passenger_id} already holds {flight_id}")
    if flight.holder != flight.airline_id:
        raise InvalidFlight(f"Flight {flight_id} is held by {flight.holder}, not its airline")

    moves = [
        Move(Decimal("1"), flight_id, flight.airline_id, passenger_id, f"custody_{booking_record_id}"),
        Move(Decimal("1"), booking_record_id, passenger_id, SYSTEM_WALLET, f"redeem_{booking_record_id}"),
    ]
    origin = TransactionOrigin(OriginType.CAPABILITY, booking_record_id, flight_id, "TRANSFER_FLIGHT")
    return build_transaction(view, moves, origin=origin)


def get_airline_balance(view: LedgerView, airline_id: str) -> Decimal:
    """Return an airline's balance. Raises UnitNotRegistered for unknown airlines."""
    return load_airline(view, airline_id).balance


def get_passenger_balance(view: LedgerView, passenger_id: str) -> Decimal:
    """Return a passenger's balance. Raises UnitNotRegistered for unknown passengers."""
    return load_passenger(view, passenger_id).balance
