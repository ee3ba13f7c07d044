"""
Seat Invariant Conformance Tests

INVARIANT: For every flight f, at all times:
    0 <= available_seats(f) <= capacity(f)

and the seats taken equal bookings minus returns:

    capacity(f) - available_seats(f) = #bookings(f) - #returns(f)

Bookings and returns are driven in arbitrary order; every rejected
operation must leave the seat count where it was.
"""

import pytest
from dataclasses import replace
from hypothesis import given, settings
from hypothesis import strategies as st

from flightledger import (
    ExecuteResult, InvalidFlight, InsufficientFunds,
    INITIAL_SEATS, UNIT_TYPE_FLIGHT, create_flight_memo,
)
from flightledger.units import create_flight_unit

from tests.scenario import AIRLINE_OWNER, PASSENGER_OWNER, DEPARTURE, FARE, new_desk


CABIN = 3


def list_small_flight(desk, airline_id, seats):
    """List a flight whose cabin holds only `seats`, so both bounds are reachable."""
    pending = create_flight_memo(desk.ledger, airline_id, FARE, "SK101", "LIS", DEPARTURE, AIRLINE_OWNER)
    flight_id = pending.created_symbol(UNIT_TYPE_FLIGHT)
    small = create_flight_unit(flight_id, "SK101", "LIS", DEPARTURE, AIRLINE_OWNER, airline_id, seats=seats)
    units = tuple(small if u.symbol == flight_id else u for u in pending.units_to_create)
    tx = replace(pending, units_to_create=units, intent_id="")
    assert desk.ledger.execute(tx) == ExecuteResult.APPLIED
    return desk.get_flight(flight_id)


def small_world():
    desk = new_desk("seats")
    airline = desk.create_airline("Skyways", caller=AIRLINE_OWNER)
    flight = list_small_flight(desk, airline.id, CABIN)
    pax = desk.register_passenger(airline.id, "Ada", caller=PASSENGER_OWNER)
    desk.top_up_passenger_balance(pax.id, FARE * 20, caller=PASSENGER_OWNER)
    return desk, airline, flight, pax


seat_ops = st.lists(
    st.tuples(st.sampled_from(["book", "self_book", "return"]), st.booleans()),
    min_size=1,
    max_size=25,
)


class TestSeatBounds:

    @given(seat_ops)
    @settings(max_examples=60, deadline=None)
    def test_seats_stay_within_cabin(self, ops):
        """
        PROPERTY: No sequence of bookings and returns leaves the cabin range.
        """
        desk, airline, flight, pax = small_world()
        booked = 0

        for op, with_record in ops:
            before = desk.get_flight(flight.id).available_seats
            try:
                if op == "book":
                    desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller=AIRLINE_OWNER)
                    booked += 1
                elif op == "self_book":
                    desk.top_up_airline_balance(airline.id, pax.id, flight.id, flight.id, caller=PASSENGER_OWNER)
                    booked += 1
                else:
                    record_id = None
                    if with_record:
                        open_records = [r for r in desk.booking_records(pax.id) if not r.consumed]
                        record_id = open_records[0].id if open_records else None
                    desk.return_flight(
                        airline.id, pax.id, flight.id, caller=AIRLINE_OWNER, booking_record_id=record_id,
                    )
                    booked -= 1
            except (InvalidFlight, InsufficientFunds):
                assert desk.get_flight(flight.id).available_seats == before

            seats = desk.get_flight(flight.id).available_seats
            assert 0 <= seats <= CABIN
            assert CABIN - seats == booked

    def test_full_flight_rejects_booking(self):
        desk, airline, flight, pax = small_world()
        for _ in range(CABIN):
            desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller=AIRLINE_OWNER)
        balance = desk.get_passenger_balance(pax.id)

        with pytest.raises(InvalidFlight, match="no seats"):
            desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller=AIRLINE_OWNER)
        assert desk.get_passenger_balance(pax.id) == balance
        assert desk.get_flight(flight.id).available_seats == 0

    def test_empty_flight_rejects_return(self):
        desk, airline, flight, pax = small_world()
        with pytest.raises(InvalidFlight, match="no booked seat"):
            desk.return_flight(airline.id, pax.id, flight.id, caller=AIRLINE_OWNER)
        assert desk.get_flight(flight.id).available_seats == CABIN

    def test_listing_starts_with_initial_seats(self):
        desk = new_desk()
        airline = desk.create_airline("Skyways", caller=AIRLINE_OWNER)
        flight = desk.create_flight_memo(airline.id, FARE, "SK101", "LIS", DEPARTURE, caller=AIRLINE_OWNER)
        assert flight.available_seats == flight.capacity == INITIAL_SEATS
