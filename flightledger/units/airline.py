"""
airline.py - Airline Unit and Flight Price Memos

An airline is a ledger unit owned by the account that created it. Its state
holds the price list and the price memos of every flight it listed; its
balance is the airline's wallet (same id as the unit) in the ledger currency.

    create_airline(view, "Skyways", caller="0xA1")
        units_to_create: AIRLINE_<hash>
        wallets_to_create: AIRLINE_<hash>, 0xA1 (the owner's account wallet)

Memos are written once by create_flight_memo() and never changed or removed.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Any

from ..core import (
    LedgerView, PendingTransaction, Unit, TransactionOrigin, OriginType,
    UNIT_TYPE_AIRLINE, DEFAULT_CURRENCY,
    build_transaction, content_id, entity_state, _freeze_state,
)


@dataclass(frozen=True, slots=True)
class FlightMemo:
    """A price quote for one flight, issued by its airline at listing time."""
    flight_id: str
    ticket_price: Decimal
    airline: str

    def to_state(self) -> Dict[str, Any]:
        return {
            'flight_id': self.flight_id,
            'ticket_price': self.ticket_price,
            'airline': self.airline,
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> FlightMemo:
        return cls(state['flight_id'], state['ticket_price'], state['airline'])


@dataclass(frozen=True)
class Airline:
    """Read model of an airline unit plus its current balance."""
    id: str
    airline: str
    name: str
    currency: str
    balance: Decimal
    version: int
    prices: Dict[str, Decimal] = field(default_factory=dict)
    memos: Dict[str, FlightMemo] = field(default_factory=dict)


def create_airline_unit(airline_id: str, owner: str, name: str, currency: str = DEFAULT_CURRENCY) -> Unit:
    """
    Create an airline unit.

    Airline units are never held by any wallet; only their state is used.

    Raises:
        ValueError: If owner or name is empty
    """
    if not owner or not owner.strip():
        raise ValueError("owner cannot be empty")
    if not name or not name.strip():
        raise ValueError("name cannot be empty")

    return Unit(
        symbol=airline_id,
        name=f"Airline: {name}",
        unit_type=UNIT_TYPE_AIRLINE,
        min_balance=Decimal("0"),
        max_balance=Decimal("0"),
        decimal_places=0,
        _frozen_state=_freeze_state({
            'airline': owner,
            'name': name,
            'currency': currency,
            'prices': {},
            'memos': {},
            'version': 0,
        }),
    )


def load_airline(view: LedgerView, airline_id: str) -> Airline:
    """
    Read an airline and its balance.

    Raises:
        UnitNotRegistered: If airline_id is not a registered airline
    """
    state = entity_state(view, airline_id, UNIT_TYPE_AIRLINE)
    return Airline(
        id=airline_id,
        airline=state['airline'],
        name=state['name'],
        currency=state['currency'],
        balance=view.get_balance(airline_id, state['currency']),
        version=state['version'],
        prices=dict(state['prices']),
        memos={fid: FlightMemo.from_state(m) for fid, m in state['memos'].items()},
    )


def create_airline(
    view: LedgerView,
    name: str,
    caller: str,
    currency: str = DEFAULT_CURRENCY,
) -> PendingTransaction:
    """
    Register a new airline owned by caller.

    The identifier is derived from the content and the number of registered
    units, so each creation gets a fresh id.

    Returns:
        PendingTransaction creating the airline unit, its wallet, and the
        caller's account wallet if it does not exist yet.
    """
    airline_id = content_id(UNIT_TYPE_AIRLINE, {
        'airline': caller,
        'name': name,
        'currency': currency,
        'created_at': view.current_time,
        'nonce': len(view.list_units()),
    })
    unit = create_airline_unit(airline_id, caller, name, currency)

    wallets = [airline_id]
    if caller not in view.list_wallets():
        wallets.append(caller)

    origin = TransactionOrigin(OriginType.AIRLINE, caller, airline_id, "CREATE_AIRLINE")
    return build_transaction(
        view, [], origin=origin,
        units_to_create=(unit,), wallets_to_create=tuple(wallets),
    )
