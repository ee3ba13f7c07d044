"""
Conservation Law Conformance Tests

INVARIANT: For every unit u, at all times:
    Σ_{w ∈ wallets} balance(w, u) = 0        (system wallet included)

Value enters user wallets only through top-ups, so the USD held outside the
system wallet always equals the total topped up. Bookings move the fare
from passenger to airline; withdrawals move it to the owner's account.

These tests drive arbitrary operation sequences, valid and invalid, and
check the books after every step.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from decimal import Decimal

from flightledger import LedgerError, SYSTEM_WALLET

from tests.scenario import AIRLINE_OWNER, OTHER_AIRLINE_OWNER, PASSENGER_OWNER, DEPARTURE, new_desk


# =============================================================================
# STRATEGIES FOR PROPERTY-BASED TESTING
# =============================================================================

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("2000"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

operation = st.one_of(
    st.tuples(st.just("top_up"), st.integers(0, 2), amounts),
    st.tuples(st.just("book"), st.integers(0, 2), st.integers(0, 1)),
    st.tuples(st.just("self_book"), st.integers(0, 2), st.integers(0, 1)),
    st.tuples(st.just("withdraw"), st.integers(0, 1), amounts),
    st.tuples(st.just("transfer"), st.integers(0, 2), st.integers(0, 1)),
)


def two_airline_world():
    """Two airlines with one flight each; passengers 0 and 2 fly Skyways, 1 flies Cloudjet."""
    desk = new_desk("conservation")
    owners = [AIRLINE_OWNER, OTHER_AIRLINE_OWNER]
    airlines = [
        desk.create_airline("Skyways", caller=owners[0]),
        desk.create_airline("Cloudjet", caller=owners[1]),
    ]
    flights = [
        desk.create_flight_memo(airlines[0].id, "420", "SK101", "LIS", DEPARTURE, caller=owners[0]),
        desk.create_flight_memo(airlines[1].id, "99.95", "CJ7", "OPO", DEPARTURE, caller=owners[1]),
    ]
    passengers = [
        desk.register_passenger(airlines[0].id, "Ada", caller=PASSENGER_OWNER),
        desk.register_passenger(airlines[1].id, "Bob", caller=PASSENGER_OWNER),
        desk.register_passenger(airlines[0].id, "Cy", caller=PASSENGER_OWNER),
    ]
    return desk, owners, airlines, flights, passengers


def usd_outside_system(ledger):
    return sum(
        (ledger.get_balance(w, "USD") for w in ledger.list_wallets() if w != SYSTEM_WALLET),
        Decimal("0"),
    )


class TestConservationProperties:

    @given(st.lists(operation, min_size=1, max_size=30))
    @settings(max_examples=60, deadline=None)
    def test_books_balance_after_every_operation(self, ops):
        """
        PROPERTY: Every unit sums to zero and USD outside the system wallet
        equals the total topped up.
        """
        desk, owners, airlines, flights, passengers = two_airline_world()
        ledger = desk.ledger
        topped_up = Decimal("0")

        for op in ops:
            kind = op[0]
            try:
                if kind == "top_up":
                    _, p, amount = op
                    desk.top_up_passenger_balance(passengers[p].id, amount, caller=PASSENGER_OWNER)
                    topped_up += amount
                elif kind in ("book", "self_book"):
                    _, p, f = op
                    airline = airlines[f]
                    if kind == "book":
                        desk.book_flight(airline.id, passengers[p].id, flights[f].id, flights[f].id, caller=owners[f])
                    else:
                        desk.top_up_airline_balance(
                            airline.id, passengers[p].id, flights[f].id, flights[f].id, caller=PASSENGER_OWNER,
                        )
                elif kind == "withdraw":
                    _, a, amount = op
                    desk.withdraw_funds(airlines[a].id, amount, caller=owners[a])
                else:
                    _, p, f = op
                    open_records = [
                        r for r in desk.booking_records(passengers[p].id, flights[f].id) if not r.consumed
                    ]
                    if open_records:
                        desk.transfer_flight_ownership(passengers[p].id, flights[f].id, open_records[0].id)
            except LedgerError:
                pass

            result = ledger.verify_double_entry()
            assert result['valid'], result['discrepancies']
            assert usd_outside_system(ledger) == topped_up
            assert ledger.get_balance(SYSTEM_WALLET, "USD") == -topped_up

    @given(st.lists(st.tuples(st.integers(0, 2), st.integers(0, 1)), min_size=1, max_size=15))
    @settings(max_examples=40, deadline=None)
    def test_fare_moves_from_passenger_to_airline(self, bookings):
        """
        PROPERTY: A successful booking moves exactly the memo price, once.
        """
        desk, owners, airlines, flights, passengers = two_airline_world()
        for pax in passengers:
            desk.top_up_passenger_balance(pax.id, 1000, caller=PASSENGER_OWNER)

        for p, f in bookings:
            pax_before = desk.get_passenger_balance(passengers[p].id)
            airline_before = desk.get_airline_balance(airlines[f].id)
            price = desk.get_airline(airlines[f].id).prices[flights[f].id]
            try:
                desk.book_flight(airlines[f].id, passengers[p].id, flights[f].id, flights[f].id, caller=owners[f])
            except LedgerError:
                assert desk.get_passenger_balance(passengers[p].id) == pax_before
                assert desk.get_airline_balance(airlines[f].id) == airline_before
                continue
            assert pax_before - desk.get_passenger_balance(passengers[p].id) == price
            assert desk.get_airline_balance(airlines[f].id) - airline_before == price


class TestConservationExamples:

    def test_flight_and_record_tokens_net_to_zero(self):
        desk, owners, airlines, flights, passengers = two_airline_world()
        desk.top_up_passenger_balance(passengers[0].id, 420, caller=PASSENGER_OWNER)
        record = desk.book_flight(airlines[0].id, passengers[0].id, flights[0].id, flights[0].id, caller=owners[0])
        desk.transfer_flight_ownership(passengers[0].id, flights[0].id, record.id)

        ledger = desk.ledger
        assert ledger.total_supply(flights[0].id) == Decimal("0")
        assert ledger.total_supply(record.id) == Decimal("0")
        assert ledger.get_positions(record.id) == {}
        assert ledger.get_positions(flights[0].id) == {
            SYSTEM_WALLET: Decimal("-1"), passengers[0].id: Decimal("1"),
        }
