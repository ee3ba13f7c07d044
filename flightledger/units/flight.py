"""
flight.py - Flight Unit

A flight is a ledger unit carrying its schedule data and seat count. Custody
of the flight is one token of the unit: listing issues it to the airline's
wallet, and transfer_flight_ownership() moves it to a passenger.

    available_seats: 100 at listing, -1 per booking, +1 per return,
                     always within [0, capacity]
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..core import (
    LedgerView, Unit,
    UNIT_TYPE_FLIGHT, INITIAL_SEATS, QUANTITY_EPSILON,
    entity_state, _freeze_state,
)


@dataclass(frozen=True)
class Flight:
    """Read model of a flight unit plus its current holder."""
    id: str
    flight_number: str
    destination: str
    departure_time: datetime
    airline: str
    airline_id: str
    available_seats: int
    capacity: int
    version: int
    holder: Optional[str] = None


def create_flight_unit(
    flight_id: str,
    flight_number: str,
    destination: str,
    departure_time: datetime,
    airline: str,
    airline_id: str,
    seats: int = INITIAL_SEATS,
) -> Unit:
    """
    Create a flight unit with all seats available.

    Raises:
        ValueError: If flight_number or destination is empty, or seats < 1
    """
    if not flight_number or not flight_number.strip():
        raise ValueError("flight_number cannot be empty")
    if not destination or not destination.strip():
        raise ValueError("destination cannot be empty")
    if seats < 1:
        raise ValueError(f"seats must be positive, got {seats}")

    return Unit(
        symbol=flight_id,
        name=f"Flight {flight_number} to {destination}",
        unit_type=UNIT_TYPE_FLIGHT,
        min_balance=Decimal("0"),
        max_balance=Decimal("1"),
        decimal_places=0,
        _frozen_state=_freeze_state({
            'flight_number': flight_number,
            'destination': destination,
            'departure_time': departure_time,
            'airline': airline,
            'airline_id': airline_id,
            'available_seats': seats,
            'capacity': seats,
            'version': 0,
        }),
    )


def flight_holder(view: LedgerView, flight_id: str) -> Optional[str]:
    """Return the wallet holding the flight token, or None if nobody does."""
    for wallet, qty in sorted(view.get_positions(flight_id).items()):
        if qty > QUANTITY_EPSILON:
            return wallet
    return None


def load_flight(view: LedgerView, flight_id: str) -> Flight:
    """
    Read a flight and its current holder.

    Raises:
        UnitNotRegistered: If flight_id is not a registered flight
    """
    state = entity_state(view, flight_id, UNIT_TYPE_FLIGHT)
    return Flight(
        id=flight_id,
        flight_number=state['flight_number'],
        destination=state['destination'],
        departure_time=state['departure_time'],
        airline=state['airline'],
        airline_id=state['airline_id'],
        available_seats=state['available_seats'],
        capacity=state['capacity'],
        version=state['version'],
        holder=flight_holder(view, flight_id),
    )
