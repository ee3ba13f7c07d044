"""
conftest.py - Shared pytest fixtures for flightledger tests

Provides common fixtures used across unit, functional and conformance tests:
- Empty ledger and desk
- An airline with one listed flight and a registered passenger
- A funded passenger ready to book
"""

import pytest

from flightledger import Ledger, BookingDesk

from tests.scenario import (
    AIRLINE_OWNER, OTHER_AIRLINE_OWNER, PASSENGER_OWNER,
    START, DEPARTURE, FARE,
)


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Fresh quiet ledger."""
    return Ledger("test", START, verbose=False)


@pytest.fixture
def desk(ledger):
    """Desk with the USD currency registered."""
    return BookingDesk(ledger)


# =============================================================================
# BOOKING FIXTURES
# =============================================================================

@pytest.fixture
def airline(desk):
    return desk.create_airline("Skyways", caller=AIRLINE_OWNER)


@pytest.fixture
def passenger(desk, airline):
    return desk.register_passenger(airline.id, "Ada", caller=PASSENGER_OWNER)


@pytest.fixture
def flight(desk, airline):
    return desk.create_flight_memo(
        airline.id, FARE, "SK101", "LIS", DEPARTURE, caller=AIRLINE_OWNER,
    )


@pytest.fixture
def funded_passenger(desk, passenger):
    """Passenger holding exactly one fare."""
    desk.top_up_passenger_balance(passenger.id, FARE, caller=PASSENGER_OWNER)
    return desk.get_passenger(passenger.id)


@pytest.fixture
def other_airline(desk):
    return desk.create_airline("Cloudjet", caller=OTHER_AIRLINE_OWNER)
