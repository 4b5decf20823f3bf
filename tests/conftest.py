from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from loguru import logger

from dispatchwise import CommandAdapter, CommandDispatcher, SubscriberRegistry
from dispatchwise.integration.fastapi import app_factory
from dispatchwise.messages import Command, Event, EventWithMetaData, with_metadata


class UserCommand(Command, frozen=True, kw_only=True):
    user_id: str


class CreateUser(UserCommand, frozen=True, kw_only=True):
    user_name: str


class RemoveUser(UserCommand, frozen=True, kw_only=True): ...


class RenameUser(UserCommand, frozen=True, kw_only=True):
    old_name: str
    new_name: str


class UserEvent(Event, frozen=True, kw_only=True): ...


class UserCreated(UserEvent, frozen=True, kw_only=True):
    user_name: str


class UserRemoved(UserEvent, frozen=True, kw_only=True): ...


class UserRenamed(UserEvent, frozen=True, kw_only=True):
    new_name: str


class CreateFoo(Command, frozen=True, kw_only=True):
    id: str


class NegativeAmount(Exception): ...


class AddFunds(Command, frozen=True, kw_only=True):
    id: str
    amount: int

    def __post_init__(self):
        if self.amount < 0:
            raise NegativeAmount("negative amount")


class E1(Event, frozen=True, kw_only=True):
    seq: int


class E2(Event, frozen=True, kw_only=True):
    seq: int


class StubDispatcher:
    "returns `events` or raises `error`, records every command it receives"

    def __init__(self, events: list[EventWithMetaData] | None = None, error: Exception | None = None):
        self.events = events or []
        self.error = error
        self.received: list[Any] = []

    async def dispatch(self, command: Any) -> list[EventWithMetaData]:
        self.received.append(command)
        if self.error is not None:
            raise self.error
        return self.events


user_registry = SubscriberRegistry(command_base=UserCommand)


@user_registry
async def create_user(command: CreateUser) -> UserCreated:
    return UserCreated(aggregate_id=command.user_id, user_name=command.user_name)


@user_registry
class UserService:
    async def remove_user(self, command: RemoveUser) -> UserRemoved:
        return UserRemoved(aggregate_id=command.user_id)

    def rename_user(self, command: RenameUser) -> UserRenamed:
        return UserRenamed(aggregate_id=command.user_id, new_name=command.new_name)


foo_registry = SubscriberRegistry()


@foo_registry
async def create_foo(command: CreateFoo) -> None: ...


@foo_registry
async def add_funds(command: AddFunds) -> None: ...


def foo_events(aggregate_id: str = "X") -> list[EventWithMetaData]:
    return [
        with_metadata(E1(aggregate_id=aggregate_id, seq=1), sequence=1),
        with_metadata(E2(aggregate_id=aggregate_id, seq=2), sequence=2),
    ]


@pytest.fixture
def dispatcher() -> CommandDispatcher:
    return CommandDispatcher(user_registry)


@pytest.fixture
def adapter(dispatcher: CommandDispatcher) -> CommandAdapter:
    return CommandAdapter(user_registry, dispatcher)


@pytest.fixture
def stub() -> StubDispatcher:
    return StubDispatcher()


@pytest.fixture
def client(stub: StubDispatcher) -> Iterator[TestClient]:
    app = app_factory(CommandAdapter(foo_registry, stub))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="INFO")
    yield messages
    logger.remove(handler_id)
