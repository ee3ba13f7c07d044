#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Booking Flights on the Ledger

A step-by-step walkthrough of the booking ledger. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-4:   Setup          - The desk, airlines, passengers, flight listings
  5-8:   Booking        - Top-ups, one-transaction bookings, rejections, races
  9-11:  After booking  - Ticket custody, returns, withdrawals
  12:    Audit          - Booking records, conservation proof, replay

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from flightledger import (
    Ledger, BookingDesk, LedgerError, TransactionRejected,
    book_flight, top_up_airline_balance,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Timing
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    departure: datetime = datetime(2025, 6, 1, 9, 30, 0)

    # Identities
    airline_owner: str = "0xA1"
    passenger_owner: str = "0xP1"
    stranger: str = "0xEE"

    # Listing
    flight_number: str = "SK101"
    destination: str = "LIS"
    ticket_price: Decimal = Decimal("500.00")

    # Funding
    passenger_top_up: Decimal = Decimal("1200.00")
    withdrawal: Decimal = Decimal("300.00")


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


def show_failure(label: str, call):
    """Run call, expecting a LedgerError, and print what was raised."""
    try:
        call()
    except LedgerError as e:
        print(f"{label:<32} -> {type(e).__name__}: {e}")
    else:
        print(f"{label:<32} -> unexpectedly succeeded")


# ============================================================================
# PHASE 1: SETUP (Steps 1-4)
# ============================================================================

def step_01_desk():
    step_header(1, "The Booking Desk",
        "A desk executes booking operations against one ledger.")

    print("""
    Every airline, passenger, flight and booking record is a UNIT in the
    ledger. Balances are wallet balances in one currency (USD). The desk
    runs each operation as exactly one atomic ledger transaction.
    """)
    wait_for_enter()

    print(">>> desk = BookingDesk(Ledger('tutorial', initial_time=...))")
    desk = BookingDesk(Ledger("tutorial", initial_time=CONFIG.start_time, verbose=True))

    section_header("Initial State")
    print(f"Registered units:   {desk.ledger.list_units()}")
    print(f"Registered wallets: {sorted(desk.ledger.list_wallets())}")
    return desk


def step_02_airline(desk: BookingDesk):
    step_header(2, "Creating an Airline",
        "The caller that creates an airline owns it.")
    wait_for_enter()

    print(f'>>> airline = desk.create_airline("Skyways", caller="{CONFIG.airline_owner}")')
    airline = desk.create_airline("Skyways", caller=CONFIG.airline_owner)

    section_header("Airline")
    print(f"Id:       {airline.id}")
    print(f"Owner:    {airline.airline}")
    print(f"Balance:  {airline.balance} {airline.currency}")
    return airline


def step_03_passenger(desk: BookingDesk, airline):
    step_header(3, "Registering a Passenger",
        "Passengers belong to one airline and keep a prepaid balance.")
    wait_for_enter()

    print(f'>>> pax = desk.register_passenger(airline.id, "Ada", caller="{CONFIG.passenger_owner}")')
    pax = desk.register_passenger(airline.id, "Ada", caller=CONFIG.passenger_owner)
    print(f"\nPassenger {pax.id} registered with {pax.airline_id}, balance {pax.balance}")
    return pax


def step_04_listing(desk: BookingDesk, airline):
    step_header(4, "Listing a Flight",
        "Listing creates the flight and the airline's price memo together.")
    wait_for_enter()

    flight = desk.create_flight_memo(
        airline.id, CONFIG.ticket_price, CONFIG.flight_number,
        CONFIG.destination, CONFIG.departure, caller=CONFIG.airline_owner,
    )

    section_header("Flight")
    print(f"Id:              {flight.id}")
    print(f"Available seats: {flight.available_seats}")
    print(f"Held by:         {flight.holder}")
    print(f"Memo price:      {desk.get_airline(airline.id).prices[flight.id]}")
    return flight


# ============================================================================
# PHASE 2: BOOKING (Steps 5-8)
# ============================================================================

def step_05_top_up(desk: BookingDesk, pax):
    step_header(5, "Topping Up",
        "Value enters a passenger balance from the system wallet.")
    wait_for_enter()

    balance = desk.top_up_passenger_balance(pax.id, CONFIG.passenger_top_up, caller=CONFIG.passenger_owner)
    print(f"\nPassenger balance: {balance}")
    print(f"System wallet USD: {desk.ledger.get_balance('system', 'USD')}")


def step_06_booking(desk: BookingDesk, airline, pax, flight):
    step_header(6, "Booking a Seat",
        "One transaction: fare moved once, seat taken, record created.")
    wait_for_enter()

    record = desk.book_flight(airline.id, pax.id, flight.id, flight.id, caller=CONFIG.airline_owner)

    section_header("After Booking")
    print(f"Passenger balance: {desk.get_passenger_balance(pax.id)}")
    print(f"Airline balance:   {desk.get_airline_balance(airline.id)}")
    print(f"Seats left:        {desk.get_flight(flight.id).available_seats}")
    print(f"Booking record:    {record.id} paid {record.paid_amount} at {record.booked_at_ms}")
    return record


def step_07_rejections(desk: BookingDesk, airline, pax, flight):
    step_header(7, "Failed Preconditions",
        "A failed check raises before anything is built; nothing changes.")
    wait_for_enter()

    log_size = len(desk.ledger.transaction_log)
    show_failure("stranger books", lambda: desk.book_flight(
        airline.id, pax.id, flight.id, flight.id, caller=CONFIG.stranger))
    show_failure("unknown memo", lambda: desk.book_flight(
        airline.id, pax.id, flight.id, "FLT_missing", caller=CONFIG.airline_owner))
    show_failure("withdraw too much", lambda: desk.withdraw_funds(
        airline.id, Decimal("1000000"), caller=CONFIG.airline_owner))
    show_failure("zero top-up", lambda: desk.top_up_passenger_balance(
        pax.id, 0, caller=CONFIG.passenger_owner))
    print(f"\nLog entries before: {log_size}, after: {len(desk.ledger.transaction_log)}")


def step_08_race(desk: BookingDesk, airline, pax, flight):
    step_header(8, "Two Bookings, One Seat Count",
        "Transactions computed on the same flight state cannot both apply.")
    wait_for_enter()

    grace = desk.register_passenger(airline.id, "Grace", caller=CONFIG.passenger_owner)
    desk.top_up_passenger_balance(grace.id, CONFIG.ticket_price, caller=CONFIG.passenger_owner)

    first = book_flight(desk.ledger, airline.id, pax.id, flight.id, flight.id, CONFIG.airline_owner)
    second = top_up_airline_balance(desk.ledger, airline.id, grace.id, flight.id, flight.id, CONFIG.passenger_owner)

    print(f"First:  {desk.ledger.execute(first).value}")
    try:
        desk._submit(second)
    except TransactionRejected as e:
        print(f"Second: {e}")
    print(f"Seats left: {desk.get_flight(flight.id).available_seats}")


# ============================================================================
# PHASE 3: AFTER BOOKING (Steps 9-11)
# ============================================================================

def step_09_custody(desk: BookingDesk, pax, flight, record):
    step_header(9, "Ticket Custody",
        "The booking record is the capability to take custody of the flight.")
    wait_for_enter()

    moved = desk.transfer_flight_ownership(pax.id, flight.id, record.id)
    print(f"\nFlight held by: {moved.holder}")
    print(f"Record consumed: {desk.get_booking_record(record.id).consumed}")
    show_failure("reuse the record", lambda: desk.transfer_flight_ownership(pax.id, flight.id, record.id))


def step_10_return(desk: BookingDesk, airline, pax, flight):
    step_header(10, "Returning a Seat",
        "A return adds exactly one seat. It is not a refund.")
    wait_for_enter()

    before = desk.get_flight(flight.id).available_seats
    after = desk.return_flight(airline.id, pax.id, flight.id, caller=CONFIG.airline_owner).available_seats
    print(f"\nSeats: {before} -> {after}")
    print(f"Passenger balance unchanged: {desk.get_passenger_balance(pax.id)}")


def step_11_withdraw(desk: BookingDesk, airline):
    step_header(11, "Withdrawing Funds",
        "The airline owner pays out of the airline balance.")
    wait_for_enter()

    coin = desk.withdraw_funds(airline.id, CONFIG.withdrawal, caller=CONFIG.airline_owner)
    print(f"\nWithdrew {coin.value()} {coin.currency} from {coin.source}")
    print(f"Airline balance:   {desk.get_airline_balance(airline.id)}")
    print(f"Owner account USD: {desk.ledger.get_balance(CONFIG.airline_owner, 'USD')}")


# ============================================================================
# PHASE 4: AUDIT (Step 12)
# ============================================================================

def step_12_audit(desk: BookingDesk):
    step_header(12, "Audit Trail",
        "Records are immutable, totals net to zero, the log rebuilds everything.")
    wait_for_enter()

    section_header("Booking Records")
    for record in desk.booking_records():
        status = "consumed" if record.consumed else "open"
        print(f"{record.id}  {record.passenger_id}  {record.paid_amount}  {status}")

    section_header("Conservation")
    result = desk.ledger.verify_double_entry()
    print(f"All units net to zero: {result['valid']}")

    section_header("Replay")
    replayed = desk.ledger.replay()
    same = all(
        replayed.get_positions(u) == desk.ledger.get_positions(u)
        for u in desk.ledger.list_units()
    )
    print(f"Replayed {len(replayed.transaction_log)} transactions, balances match: {same}")


def main():
    print("=" * 70)
    print("       FLIGHT BOOKING LEDGER TUTORIAL")
    print("=" * 70)

    desk = step_01_desk()
    airline = step_02_airline(desk)
    pax = step_03_passenger(desk, airline)
    flight = step_04_listing(desk, airline)

    step_05_top_up(desk, pax)
    record = step_06_booking(desk, airline, pax, flight)
    step_07_rejections(desk, airline, pax, flight)
    desk.ledger.advance_time(CONFIG.start_time + timedelta(minutes=5))
    step_08_race(desk, airline, pax, flight)

    step_09_custody(desk, pax, flight, record)
    step_10_return(desk, airline, pax, flight)
    step_11_withdraw(desk, airline)

    step_12_audit(desk)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See flightledger/booking.py for the booking transitions
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
