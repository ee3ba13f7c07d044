"""
test_entities.py - Tests for airline, passenger, flight and booking record units

Tests:
- Unit factories and their validation
- Creation transactions (ids, wallets, owners)
- Loaders and their type checks
- Booking record transfer rule and consumption
"""

import pytest
from decimal import Decimal

from flightledger import (
    Move, ExecuteResult, SYSTEM_WALLET, INITIAL_SEATS,
    UNIT_TYPE_AIRLINE, UNIT_TYPE_PASSENGER,
    InvalidFlightBooking, TransferRuleViolation, UnitNotRegistered,
    build_transaction,
)
from flightledger.units import (
    create_airline_unit, create_airline, load_airline,
    create_passenger_unit, register_passenger, load_passenger,
    create_flight_unit, load_flight, flight_holder,
    create_booking_record_unit, load_booking_record,
    require_unconsumed_record, booking_record_transfer_rule,
)

from tests.fake_view import FakeView
from tests.scenario import AIRLINE_OWNER, PASSENGER_OWNER, DEPARTURE, FARE


def record_unit(record_id="BKG_1", passenger_id="PAX_1", flight_id="FLT_1"):
    return create_booking_record_unit(
        record_id,
        passenger_id=passenger_id,
        flight_id=flight_id,
        memo_id=flight_id,
        passenger=PASSENGER_OWNER,
        airline=AIRLINE_OWNER,
        airline_id="AIRLINE_1",
        paid_amount=FARE,
        ticket_price=FARE,
        currency="USD",
        booked_at_ms=1_735_722_000_000,
    )


# =============================================================================
# AIRLINES
# =============================================================================

class TestAirline:

    def test_unit_starts_without_memos(self):
        unit = create_airline_unit("AIRLINE_1", AIRLINE_OWNER, "Skyways")
        assert unit.unit_type == UNIT_TYPE_AIRLINE
        assert unit.state == {
            'airline': AIRLINE_OWNER, 'name': "Skyways", 'currency': "USD",
            'prices': {}, 'memos': {}, 'version': 0,
        }

    @pytest.mark.parametrize("owner,name", [("", "Skyways"), (AIRLINE_OWNER, "  ")])
    def test_unit_requires_owner_and_name(self, owner, name):
        with pytest.raises(ValueError):
            create_airline_unit("AIRLINE_1", owner, name)

    def test_create_registers_airline_and_owner_wallets(self):
        view = FakeView(balances={})
        pending = create_airline(view, "Skyways", caller=AIRLINE_OWNER)
        airline_id = pending.created_symbol(UNIT_TYPE_AIRLINE)
        assert airline_id.startswith("AIRLINE_")
        assert pending.wallets_to_create == (airline_id, AIRLINE_OWNER)
        assert pending.moves == ()

    def test_known_owner_wallet_not_recreated(self):
        view = FakeView(balances={AIRLINE_OWNER: {}})
        pending = create_airline(view, "Skyways", caller=AIRLINE_OWNER)
        assert AIRLINE_OWNER not in pending.wallets_to_create

    def test_each_creation_gets_fresh_id(self, desk):
        first = desk.create_airline("Skyways", caller=AIRLINE_OWNER)
        second = desk.create_airline("Skyways", caller=AIRLINE_OWNER)
        assert first.id != second.id
        assert desk.get_airline_balance(second.id) == Decimal("0")

    def test_load_checks_unit_type(self, desk, airline, passenger):
        with pytest.raises(UnitNotRegistered, match="not a registered airline"):
            load_airline(desk.ledger, passenger.id)
        with pytest.raises(UnitNotRegistered):
            load_airline(desk.ledger, "AIRLINE_missing")


# =============================================================================
# PASSENGERS
# =============================================================================

class TestPassenger:

    def test_unit_links_airline(self):
        unit = create_passenger_unit("PAX_1", PASSENGER_OWNER, "Ada", "AIRLINE_1")
        assert unit.unit_type == UNIT_TYPE_PASSENGER
        assert unit.state['airline_id'] == "AIRLINE_1"
        assert unit.state['version'] == 0

    def test_unit_requires_airline(self):
        with pytest.raises(ValueError, match="airline_id"):
            create_passenger_unit("PAX_1", PASSENGER_OWNER, "Ada", "")

    def test_register_requires_existing_airline(self):
        view = FakeView(balances={})
        with pytest.raises(UnitNotRegistered):
            register_passenger(view, "AIRLINE_missing", "Ada", caller=PASSENGER_OWNER)

    def test_registered_passenger_starts_empty(self, desk, airline, passenger):
        assert passenger.id.startswith("PAX_")
        assert passenger.airline_id == airline.id
        assert passenger.passenger == PASSENGER_OWNER
        assert passenger.balance == Decimal("0")
        assert desk.ledger.is_registered(PASSENGER_OWNER)

    def test_load_checks_unit_type(self, desk, airline):
        with pytest.raises(UnitNotRegistered, match="not a registered passenger"):
            load_passenger(desk.ledger, airline.id)


# =============================================================================
# FLIGHTS
# =============================================================================

class TestFlight:

    def test_unit_starts_full(self):
        unit = create_flight_unit("FLT_1", "SK101", "LIS", DEPARTURE, AIRLINE_OWNER, "AIRLINE_1")
        assert unit.state['available_seats'] == INITIAL_SEATS
        assert unit.state['capacity'] == INITIAL_SEATS
        assert unit.max_balance == Decimal("1")

    @pytest.mark.parametrize("number,destination,seats", [
        ("", "LIS", 100),
        ("SK101", "", 100),
        ("SK101", "LIS", 0),
    ])
    def test_unit_validation(self, number, destination, seats):
        with pytest.raises(ValueError):
            create_flight_unit("FLT_1", number, destination, DEPARTURE, AIRLINE_OWNER, "AIRLINE_1", seats)

    def test_holder(self):
        unit = create_flight_unit("FLT_1", "SK101", "LIS", DEPARTURE, AIRLINE_OWNER, "AIRLINE_1")
        view = FakeView(
            balances={SYSTEM_WALLET: {'FLT_1': Decimal("-1")}, 'AIRLINE_1': {'FLT_1': Decimal("1")}},
            units={'FLT_1': unit},
        )
        assert flight_holder(view, 'FLT_1') == 'AIRLINE_1'
        assert load_flight(view, 'FLT_1').holder == 'AIRLINE_1'

    def test_no_holder(self):
        unit = create_flight_unit("FLT_1", "SK101", "LIS", DEPARTURE, AIRLINE_OWNER, "AIRLINE_1")
        view = FakeView(balances={}, units={'FLT_1': unit})
        assert flight_holder(view, 'FLT_1') is None


# =============================================================================
# BOOKING RECORDS
# =============================================================================

class TestBookingRecord:

    def test_paid_amount_must_be_positive(self):
        with pytest.raises(ValueError, match="paid_amount"):
            create_booking_record_unit(
                "BKG_1", "PAX_1", "FLT_1", "FLT_1", PASSENGER_OWNER, AIRLINE_OWNER,
                "AIRLINE_1", Decimal("0"), FARE, "USD", 0,
            )

    def test_transfer_rule_allows_passenger_and_system(self):
        view = FakeView(balances={}, units={'BKG_1': record_unit()})
        booking_record_transfer_rule(view, Move(Decimal("1"), 'BKG_1', SYSTEM_WALLET, 'PAX_1', "issue"))
        booking_record_transfer_rule(view, Move(Decimal("1"), 'BKG_1', 'PAX_1', SYSTEM_WALLET, "redeem"))

    def test_transfer_rule_blocks_other_wallets(self):
        view = FakeView(balances={}, units={'BKG_1': record_unit()})
        with pytest.raises(TransferRuleViolation, match="PAX_2 not authorized"):
            booking_record_transfer_rule(view, Move(Decimal("1"), 'BKG_1', 'PAX_1', 'PAX_2', "resell"))

    def test_token_cannot_be_handed_to_another_passenger(self, desk, funded_passenger, flight):
        record = desk.book_flight(flight.airline_id, funded_passenger.id, flight.id, flight.id, caller=AIRLINE_OWNER)
        desk.ledger.register_wallet("PAX_other")
        tx = build_transaction(desk.ledger, [Move(Decimal("1"), record.id, funded_passenger.id, "PAX_other", "resell")])
        assert desk.ledger.execute(tx) == ExecuteResult.REJECTED
        assert "not authorized" in desk.ledger.last_rejection

    def test_consumed_follows_token(self):
        unit = record_unit()
        held = FakeView(balances={'PAX_1': {'BKG_1': Decimal("1")}}, units={'BKG_1': unit})
        spent = FakeView(balances={'PAX_1': {'BKG_1': Decimal("0")}}, units={'BKG_1': unit})
        assert not load_booking_record(held, 'BKG_1').consumed
        assert load_booking_record(spent, 'BKG_1').consumed

    def test_require_unconsumed_record(self):
        view = FakeView(balances={'PAX_1': {'BKG_1': Decimal("1")}}, units={'BKG_1': record_unit()})
        record = require_unconsumed_record(view, 'BKG_1', 'PAX_1', 'FLT_1')
        assert record.paid_amount == FARE
        assert record.memo_id == 'FLT_1'

    @pytest.mark.parametrize("record_id,passenger_id,flight_id,message", [
        ('BKG_missing', 'PAX_1', 'FLT_1', "Unknown"),
        ('BKG_1', 'PAX_2', 'FLT_1', "belongs to PAX_1"),
        ('BKG_1', 'PAX_1', 'FLT_2', "is for FLT_1"),
    ])
    def test_require_rejects_mismatch(self, record_id, passenger_id, flight_id, message):
        view = FakeView(balances={'PAX_1': {'BKG_1': Decimal("1")}}, units={'BKG_1': record_unit()})
        with pytest.raises(InvalidFlightBooking, match=message):
            require_unconsumed_record(view, record_id, passenger_id, flight_id)

    def test_require_rejects_used_record(self):
        view = FakeView(balances={}, units={'BKG_1': record_unit()})
        with pytest.raises(InvalidFlightBooking, match="already used"):
            require_unconsumed_record(view, 'BKG_1', 'PAX_1', 'FLT_1')
