"""
passenger.py - Passenger Unit

A passenger is a ledger unit owned by the account that registered it and
linked to one airline. The passenger's prepaid balance is its wallet in the
ledger currency, which can never go below zero.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal

from ..core import (
    LedgerView, PendingTransaction, Unit, TransactionOrigin, OriginType,
    UNIT_TYPE_PASSENGER, DEFAULT_CURRENCY,
    build_transaction, content_id, entity_state, _freeze_state,
)
from .airline import load_airline


@dataclass(frozen=True)
class Passenger:
    """Read model of a passenger unit plus its current balance."""
    id: str
    passenger: str
    name: str
    airline_id: str
    currency: str
    balance: Decimal
    version: int


def create_passenger_unit(
    passenger_id: str,
    owner: str,
    name: str,
    airline_id: str,
    currency: str = DEFAULT_CURRENCY,
) -> Unit:
    """
    Create a passenger unit registered with airline_id.

    Raises:
        ValueError: If owner, name or airline_id is empty
    """
    if not owner or not owner.strip():
        raise ValueError("owner cannot be empty")
    if not name or not name.strip():
        raise ValueError("name cannot be empty")
    if not airline_id or not airline_id.strip():
        raise ValueError("airline_id cannot be empty")

    return Unit(
        symbol=passenger_id,
        name=f"Passenger: {name}",
        unit_type=UNIT_TYPE_PASSENGER,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({
            'passenger': owner,
            'name': name,
            'airline_id': airline_id,
            'currency': currency,
            'version': 0,
        }),
    )


def load_passenger(view: LedgerView, passenger_id: str) -> Passenger:
    """
    Read a passenger and its balance.

    Raises:
        UnitNotRegistered: If passenger_id is not a registered passenger
    """
    state = entity_state(view, passenger_id, UNIT_TYPE_PASSENGER)
    return Passenger(
        id=passenger_id,
        passenger=state['passenger'],
        name=state['name'],
        airline_id=state['airline_id'],
        currency=state['currency'],
        balance=view.get_balance(passenger_id, state['currency']),
        version=state['version'],
    )


def register_passenger(
    view: LedgerView,
    airline_id: str,
    name: str,
    caller: str,
) -> PendingTransaction:
    """
    Register a new passenger owned by caller with an existing airline.

    The passenger keeps its balance in the airline's currency.

    Raises:
        UnitNotRegistered: If airline_id is not a registered airline
    """
    airline = load_airline(view, airline_id)
    passenger_id = content_id(UNIT_TYPE_PASSENGER, {
        'passenger': caller,
        'name': name,
        'airline_id': airline_id,
        'created_at': view.current_time,
        'nonce': len(view.list_units()),
    })
    unit = create_passenger_unit(passenger_id, caller, name, airline_id, airline.currency)

    wallets = [passenger_id]
    if caller not in view.list_wallets():
        wallets.append(caller)

    origin = TransactionOrigin(OriginType.PASSENGER, caller, passenger_id, "REGISTER_PASSENGER")
    return build_transaction(
        view, [], origin=origin,
        units_to_create=(unit,), wallets_to_create=tuple(wallets),
    )
