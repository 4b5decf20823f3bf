from asyncio import to_thread
from collections import defaultdict
from functools import partial
from types import MethodType
from typing import Any, Protocol, Sequence

from ididi import Graph

from ._itypes import (
    CommandHandler,
    FuncMeta,
    HandlerOutput,
    ISubscriberRegistry,
    MethodMeta,
    ValidateStrategy,
)
from .errors import (
    AggregateCommandHandlingError,
    CommandRejectedByValidators,
    InvalidHandlerOutputError,
    UnregisteredMessageError,
)
from .messages import Event, EventWithMetaData, type_id, with_metadata
from .strategies import default_validate


class ICommandDispatcher(Protocol):
    """
    Receives a decoded command and returns the events it produced, in order.

    Signals failures by raising:
    - `AggregateCommandHandlingError`, the handler raised, see `cause`
    - `CommandRejectedByValidators`, see `errors`
    - anything else
    """

    async def dispatch(self, command: Any) -> list[EventWithMetaData]: ...


class CommandDispatcher:
    """
    An in-process dispatcher that runs the handlers of a `SubscriberRegistry`.

    - graph: `ididi.Graph`, resolves the owner of method handlers

    - validate: `Callable[[Any, Sequence[IValidator]], Awaitable[list[Exception]]]`

    Sequence numbers of events are counted per aggregate for the lifetime
    of the dispatcher, one counter per aggregate id that ever produced a plain
    `Event`. Call `forget` once an aggregate is gone to drop its counter,
    handlers that track versions themselves should return `EventWithMetaData`,
    which never creates a counter.
    """

    def __init__(
        self,
        registry: ISubscriberRegistry,
        *,
        graph: Graph | None = None,
        validate: ValidateStrategy = default_validate,
    ):
        self._registry = registry
        self._dg = graph or Graph()
        self._validate = validate
        self._sequences: defaultdict[str, int] = defaultdict(int)

    @property
    def registry(self) -> ISubscriberRegistry:
        return self._registry

    @property
    def graph(self) -> Graph:
        return self._dg

    @property
    def validate(self) -> ValidateStrategy:
        return self._validate

    def forget(self, aggregate_id: str) -> None:
        "drop the sequence counter of `aggregate_id`, its next event starts at 1"
        self._sequences.pop(aggregate_id, None)

    def _resolve_meta(self, meta: FuncMeta[Any]) -> CommandHandler:
        handler = meta.handler

        if isinstance(meta, MethodMeta):
            instance = self._dg.resolve(meta.owner_type)
            handler = MethodType(handler, instance)

        if not meta.is_async:
            handler = partial(to_thread, handler)
        return handler

    def _collect(self, command: Any, output: HandlerOutput) -> list[EventWithMetaData]:
        if output is None:
            return []

        if isinstance(output, (Event, EventWithMetaData)):
            output = [output]
        elif not isinstance(output, Sequence):
            raise InvalidHandlerOutputError(output)

        command_type = type_id(type(command))
        records: list[EventWithMetaData] = []
        for item in output:
            if isinstance(item, EventWithMetaData):
                records.append(item)
            elif isinstance(item, Event):
                self._sequences[item.aggregate_id] += 1
                seq = self._sequences[item.aggregate_id]
                records.append(
                    with_metadata(item, sequence=seq, command_type=command_type)
                )
            else:
                raise InvalidHandlerOutputError(item)
        return records

    async def dispatch(self, command: Any) -> list[EventWithMetaData]:
        msg_type = type(command)
        meta = self._registry.lookup(type_id(msg_type))
        if meta is None:
            raise UnregisteredMessageError(msg_type)

        if validators := self._registry.validators_for(msg_type):
            if failures := await self._validate(command, validators):
                raise CommandRejectedByValidators(failures)

        handler = self._resolve_meta(meta)
        try:
            output = await handler(command)
        except Exception as exc:
            raise AggregateCommandHandlingError(exc) from exc

        return self._collect(command, output)
