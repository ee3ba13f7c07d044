"""
booking_record.py - Booking Record Unit (immutable receipt)

=== RECORD MODEL ===

Every successful booking creates one BOOKING_RECORD unit. Its state is the
receipt (who paid what for which flight, when) and is fixed at creation:
the ledger rejects any later state change on this unit type.

One token of the record is issued to the passenger in the booking
transaction. The token is the passenger's proof of entitlement:

    Booking:   Move(1, BKG_x, system -> passenger)        token issued
    Transfer:  Move(1, BKG_x, passenger -> system)        token consumed,
               Move(1, FLT_y, holder -> passenger)        ticket custody moves
    Return:    Move(1, BKG_x, passenger -> system)        token consumed (optional)

A record whose token is back in the system wallet is consumed. The receipt
itself stays registered, and the booking transaction stays in the log.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from ..core import (
    LedgerView, Move, Unit,
    UNIT_TYPE_BOOKING_RECORD, SYSTEM_WALLET, QUANTITY_EPSILON,
    InvalidFlightBooking, TransferRuleViolation, UnitNotRegistered,
    entity_state, _freeze_state,
)


@dataclass(frozen=True)
class BookingRecord:
    """Read model of a booking record."""
    id: str
    passenger_id: str
    flight_id: str
    memo_id: str
    passenger: str
    airline: str
    airline_id: str
    paid_amount: Decimal
    ticket_price: Decimal
    currency: str
    booked_at_ms: int
    consumed: bool


def booking_record_transfer_rule(view: LedgerView, move: Move) -> None:
    """
    A record token only moves between the system wallet and its passenger.

    Raises:
        TransferRuleViolation: If either side of the move is another wallet
    """
    state = view.get_unit_state(move.unit_symbol)
    authorized = {state.get('passenger_id'), SYSTEM_WALLET}
    if move.source not in authorized:
        raise TransferRuleViolation(
            f"Booking record {move.unit_symbol}: {move.source} not authorized"
        )
    if move.dest not in authorized:
        raise TransferRuleViolation(
            f"Booking record {move.unit_symbol}: {move.dest} not authorized"
        )


def create_booking_record_unit(
    record_id: str,
    passenger_id: str,
    flight_id: str,
    memo_id: str,
    passenger: str,
    airline: str,
    airline_id: str,
    paid_amount: Decimal,
    ticket_price: Decimal,
    currency: str,
    booked_at_ms: int,
) -> Unit:
    """
    Create a booking record unit.

    Raises:
        ValueError: If paid_amount is not positive
    """
    if paid_amount <= 0:
        raise ValueError(f"paid_amount must be positive, got {paid_amount}")

    return Unit(
        symbol=record_id,
        name=f"Booking: {passenger_id} on {flight_id}",
        unit_type=UNIT_TYPE_BOOKING_RECORD,
        min_balance=Decimal("0"),
        max_balance=Decimal("1"),
        decimal_places=0,
        transfer_rule=booking_record_transfer_rule,
        _frozen_state=_freeze_state({
            'passenger_id': passenger_id,
            'flight_id': flight_id,
            'memo_id': memo_id,
            'passenger': passenger,
            'airline': airline,
            'airline_id': airline_id,
            'paid_amount': paid_amount,
            'ticket_price': ticket_price,
            'currency': currency,
            'booked_at_ms': booked_at_ms,
        }),
    )


def load_booking_record(view: LedgerView, record_id: str) -> BookingRecord:
    """
    Read a booking record.

    Raises:
        UnitNotRegistered: If record_id is not a registered booking record
    """
    state = entity_state(view, record_id, UNIT_TYPE_BOOKING_RECORD)
    held = view.get_balance(state['passenger_id'], record_id)
    return BookingRecord(
        id=record_id,
        consumed=held < QUANTITY_EPSILON,
        **state,
    )


def require_unconsumed_record(
    view: LedgerView,
    record_id: str,
    passenger_id: str,
    flight_id: str,
) -> BookingRecord:
    """
    Check record_id proves passenger_id booked flight_id and is not spent yet.

    Raises:
        InvalidFlightBooking: If the record is unknown, belongs to another
                              passenger or flight, or was already consumed
    """
    try:
        record = load_booking_record(view, record_id)
    except UnitNotRegistered as e:
        raise InvalidFlightBooking(f"Unknown booking record {record_id}") from e

    if record.passenger_id != passenger_id:
        raise InvalidFlightBooking(
            f"Booking record {record_id} belongs to {record.passenger_id}, not {passenger_id}"
        )
    if record.flight_id != flight_id:
        raise InvalidFlightBooking(
            f"Booking record {record_id} is for {record.flight_id}, not {flight_id}"
        )
    if record.consumed:
        raise InvalidFlightBooking(f"Booking record {record_id} was already used")
    return record
