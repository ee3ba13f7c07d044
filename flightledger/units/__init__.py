"""
Units module - Entities of the booking ledger.

Each entity is a ledger unit whose state holds its fields:
- Airlines with their price lists and price memos
- Passengers linked to an airline
- Flights with their seat count; the flight token is ticket custody
- Booking records, immutable receipts whose token proves a booking

Factories, loaders and read models are re-exported here for convenience.
"""

from .airline import (
    Airline,
    FlightMemo,
    create_airline_unit,
    create_airline,
    load_airline,
)

from .passenger import (
    Passenger,
    create_passenger_unit,
    register_passenger,
    load_passenger,
)

from .flight import (
    Flight,
    create_flight_unit,
    load_flight,
    flight_holder,
)

from .booking_record import (
    BookingRecord,
    create_booking_record_unit,
    load_booking_record,
    require_unconsumed_record,
    booking_record_transfer_rule,
)

__all__ = [
    # Airlines
    'Airline',
    'FlightMemo',
    'create_airline_unit',
    'create_airline',
    'load_airline',
    # Passengers
    'Passenger',
    'create_passenger_unit',
    'register_passenger',
    'load_passenger',
    # Flights
    'Flight',
    'create_flight_unit',
    'load_flight',
    'flight_holder',
    # Booking records
    'BookingRecord',
    'create_booking_record_unit',
    'load_booking_record',
    'require_unconsumed_record',
    'booking_record_transfer_rule',
]
