from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from msgspec import Struct, field


def uuid_factory() -> str:
    return str(uuid4())


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def type_id(cls: type) -> str:
    """
    fully-qualified name of a class, used as the wire identity of
    commands, events and errors

    e.g.
    "demo.bank.AccountOpened"
    """
    return f"{cls.__module__}.{cls.__qualname__}"


def all_subclasses(cls: type) -> set[type]:
    return set(cls.__subclasses__()).union(
        *[all_subclasses(c) for c in cls.__subclasses__()]
    )


class Command(Struct, frozen=True, kw_only=True):
    "base of every command variant, subclasses only declare data fields"

    @classmethod
    def __type_id__(cls) -> str:
        return type_id(cls)


class Event(Struct, frozen=True, kw_only=True):
    aggregate_id: str

    @classmethod
    def __type_id__(cls) -> str:
        return type_id(cls)


class EventMetaData(Struct, frozen=True, kw_only=True):
    aggregate_id: str
    sequence: int
    command_type: str = ""
    event_id: str = field(default_factory=uuid_factory)
    timestamp: str = field(default_factory=utc_now)


class EventWithMetaData(Struct, frozen=True):
    event: Event
    metadata: EventMetaData


class CommandEnvelope(Struct, frozen=True):
    """
    request body of both command endpoints

    `payload` is itself a json document transported as a string
    """

    type: str
    payload: str


class ErrorResponse(Struct, frozen=True):
    type: str
    message: str

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ErrorResponse":
        return cls(type=type_id(exc.__class__), message=str(exc))


def with_metadata(
    event: Event, *, sequence: int, command_type: str = "", **meta: Any
) -> EventWithMetaData:
    metadata = EventMetaData(
        aggregate_id=event.aggregate_id,
        sequence=sequence,
        command_type=command_type,
        **meta,
    )
    return EventWithMetaData(event, metadata)
