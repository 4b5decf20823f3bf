"Interface, types, type alias, and related stuff"

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, Sequence

from .messages import Event, EventWithMetaData

type HandlerOutput = None | Event | EventWithMetaData | Sequence[Event | EventWithMetaData]
type CommandHandler = Callable[[Any], Awaitable[HandlerOutput]]


class IValidator(Protocol):
    """
    a validator receives the command before it reaches its handler,
    it rejects the command by raising, the raised exception is the reason.
    """

    def __call__(self, command: Any, /) -> Awaitable[None] | None: ...


type ValidateStrategy = Callable[[Any, Sequence[IValidator]], Awaitable[list[Exception]]]


class ISubscriberRegistry(Protocol):
    def lookup(self, type_name: str) -> "FuncMeta[Any] | None": ...

    def validators_for(self, msg_type: type) -> list[IValidator]: ...


@dataclass(frozen=True, slots=True, kw_only=True)
class FuncMeta[Message]:
    """
    type_name:
    wire identity of `message_type`, key of the subscriber registry
    is_async:
    whether the handler is a coroutine function
    """

    message_type: type[Message]
    type_name: str
    handler: Callable[..., Any]
    is_async: bool


@dataclass(frozen=True, slots=True, kw_only=True)
class MethodMeta[Message](FuncMeta[Message]):
    owner_type: type


@dataclass(frozen=True, slots=True, kw_only=True)
class ValidatorMeta:
    validate_target: type
    validator: IValidator


type HandlerMapping = Mapping[str, FuncMeta[Any]]
