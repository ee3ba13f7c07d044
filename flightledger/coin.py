"""
coin.py - Payment Instrument

A Coin is value taken out of one wallet and not yet put into another. The
transition functions never move money with a bare Move; they take() a Coin
from the payer, then join() it into the payee, so the amount credited is by
construction the amount debited.

    coin = take(view, passenger_id, "USD", Decimal("500"))   # checks funds
    move = join(coin, airline_id, "fare_BKG_...")             # exactly 500 moves

Top-ups mint() a Coin out of the system wallet, which is how value enters
the ledger. A withdrawal joins a Coin into the owner's account wallet, which
is how value leaves it.
"""

from __future__ import annotations
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from .core import (
    LedgerView, Move,
    SYSTEM_WALLET, QUANTITY_EPSILON,
    InsufficientFunds, InvalidCoin,
    to_decimal,
)


@dataclass(frozen=True, slots=True)
class Coin:
    """
    Value taken from a wallet, waiting to be joined into another.

    Attributes:
        amount: Positive value carried
        currency: Currency unit symbol
        source: Wallet the value was taken from
    """
    amount: Decimal
    currency: str
    source: str

    def value(self) -> Decimal:
        return self.amount


def _positive(view: LedgerView, currency: str, amount: Any) -> Decimal:
    """Convert amount to a Decimal at the currency's precision; it must be positive."""
    try:
        value = to_decimal(amount)
    except (ValueError, ArithmeticError) as e:
        raise InvalidCoin(f"invalid amount {amount!r}") from e
    if not value.is_finite():
        raise InvalidCoin(f"payment must carry a positive value, got {amount!r}")
    rounded = view.get_unit(currency).round(value)
    if rounded != value:
        raise InvalidCoin(f"{amount!r} is finer than {currency} allows")
    if rounded < QUANTITY_EPSILON:
        raise InvalidCoin(f"payment must carry a positive value, got {amount!r}")
    return rounded


def mint(view: LedgerView, currency: str, amount: Any) -> Coin:
    """
    Create a Coin for value entering the ledger from outside.

    Raises:
        InvalidCoin: If amount is not positive or has more places than the currency
    """
    return Coin(_positive(view, currency, amount), currency, SYSTEM_WALLET)


def take(view: LedgerView, wallet: str, currency: str, amount: Any) -> Coin:
    """
    Take amount out of wallet's balance.

    Nothing moves until the Coin is joined and the transaction executed; this
    only checks the balance covers the amount.

    Raises:
        InvalidCoin: If amount is not positive
        InsufficientFunds: If the wallet holds less than amount
    """
    value = _positive(view, currency, amount)
    balance = view.get_balance(wallet, currency)
    if value > balance:
        raise InsufficientFunds(
            f"{wallet} holds {balance} {currency}, {value} required"
        )
    return Coin(value, currency, wallet)


def join(coin: Coin, dest: str, contract_id: str) -> Move:
    """
    Build the Move putting coin's whole value into dest.

    Raises:
        InvalidCoin: If the coin carries no value
    """
    if coin.amount < QUANTITY_EPSILON:
        raise InvalidCoin("cannot join a zero-value coin")
    return Move(
        quantity=coin.amount,
        unit_symbol=coin.currency,
        source=coin.source,
        dest=dest,
        contract_id=contract_id,
    )
