from dataclasses import dataclass
from functools import singledispatchmethod

from msgspec import Struct

from dispatchwise.messages import Command, Event


# App Layer
class BankCommand(Command, frozen=True, kw_only=True):
    account_id: str


class OpenAccount(BankCommand, frozen=True, kw_only=True):
    owner: str


class Deposit(BankCommand, frozen=True, kw_only=True):
    amount: int


class Withdraw(BankCommand, frozen=True, kw_only=True):
    amount: int


class CloseAccount(BankCommand, frozen=True, kw_only=True):
    reason: str = ""


class Money(Struct, frozen=True):
    amount: int
    currency: str = "EUR"


class AccountOpened(Event, frozen=True, kw_only=True):
    owner: str


class MoneyDeposited(Event, frozen=True, kw_only=True):
    money: Money


class MoneyWithdrawn(Event, frozen=True, kw_only=True):
    money: Money


class AccountClosed(Event, frozen=True, kw_only=True):
    reason: str


@dataclass
class Account:
    account_id: str
    owner: str
    balance: int = 0
    is_closed: bool = False

    @classmethod
    def open(cls, event: AccountOpened) -> "Account":
        return cls(account_id=event.aggregate_id, owner=event.owner)

    @singledispatchmethod
    def apply(self, event: Event) -> None:
        raise NotImplementedError

    @apply.register
    def _(self, event: MoneyDeposited) -> None:
        self.balance += event.money.amount

    @apply.register
    def _(self, event: MoneyWithdrawn) -> None:
        self.balance -= event.money.amount

    @apply.register
    def _(self, event: AccountClosed) -> None:
        self.is_closed = True
