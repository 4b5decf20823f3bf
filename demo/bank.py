from loguru import logger

from dispatchwise import SubscriberRegistry, ValidationFailure
from dispatchwise.messages import Event

from .message import (
    Account,
    AccountClosed,
    AccountOpened,
    BankCommand,
    CloseAccount,
    Deposit,
    Money,
    MoneyDeposited,
    MoneyWithdrawn,
    OpenAccount,
    Withdraw,
)

registry = SubscriberRegistry(command_base=BankCommand)


class AccountNotFound(Exception): ...


class AccountAlreadyOpened(Exception): ...


class AccountClosedError(Exception): ...


class InsufficientFunds(Exception): ...


class AccountIdRequired(ValidationFailure): ...


class OwnerRequired(ValidationFailure): ...


class AmountNotPositive(ValidationFailure): ...


class AccountLedger:
    "accounts of the demo, kept in memory and only touched from the event loop"

    def __init__(self):
        self._accounts: dict[str, Account] = {}

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._accounts

    def add(self, account: Account) -> None:
        self._accounts[account.account_id] = account

    def get(self, account_id: str) -> Account:
        try:
            account = self._accounts[account_id]
        except KeyError:
            raise AccountNotFound(f"account {account_id} not found")
        if account.is_closed:
            raise AccountClosedError(f"account {account_id} is closed")
        return account


ledger = AccountLedger()


@registry.validator
def account_id_required(command: BankCommand) -> None:
    if not command.account_id.strip():
        raise AccountIdRequired("account id required")


@registry.validator
def owner_required(command: OpenAccount) -> None:
    if not command.owner.strip():
        raise OwnerRequired("name required")


@registry.validator
async def amount_positive(command: Deposit | Withdraw) -> None:
    if command.amount <= 0:
        raise AmountNotPositive("amount>0")


@registry
async def open_account(command: OpenAccount) -> AccountOpened:
    if command.account_id in ledger:
        raise AccountAlreadyOpened(f"account {command.account_id} already opened")

    event = AccountOpened(aggregate_id=command.account_id, owner=command.owner)
    ledger.add(Account.open(event))
    logger.success(f"account {command.account_id} opened for {command.owner}")
    return event


@registry
async def deposit(command: Deposit) -> MoneyDeposited:
    account = ledger.get(command.account_id)
    event = MoneyDeposited(aggregate_id=account.account_id, money=Money(command.amount))
    account.apply(event)
    return event


@registry
class TellerService:
    async def withdraw(self, command: Withdraw) -> MoneyWithdrawn:
        account = ledger.get(command.account_id)
        if account.balance < command.amount:
            raise InsufficientFunds(
                f"balance {account.balance} is less than {command.amount}"
            )

        event = MoneyWithdrawn(aggregate_id=account.account_id, money=Money(command.amount))
        account.apply(event)
        return event

    async def close_account(self, command: CloseAccount) -> list[Event]:
        account = ledger.get(command.account_id)
        events: list[Event] = []
        if account.balance:
            events.append(
                MoneyWithdrawn(aggregate_id=account.account_id, money=Money(account.balance))
            )
        events.append(AccountClosed(aggregate_id=account.account_id, reason=command.reason))

        for e in events:
            account.apply(e)
        return events
