from asyncio import CancelledError, Future, ensure_future, shield
from dataclasses import dataclass
from functools import partial, singledispatchmethod
from http import HTTPStatus
from typing import Any

from loguru import logger

from ._itypes import FuncMeta, ISubscriberRegistry
from .codec import CommandDecoder, EventEncoder
from .dispatcher import ICommandDispatcher
from .errors import (
    AggregateCommandHandlingError,
    CommandRejectedByValidators,
    InvalidParameterError,
)
from .messages import CommandEnvelope, ErrorResponse, EventWithMetaData


@dataclass(frozen=True, slots=True)
class Dispatched:
    events: list[EventWithMetaData]


@dataclass(frozen=True, slots=True)
class UnknownCommandType:
    error: InvalidParameterError


@dataclass(frozen=True, slots=True)
class DeserializationFailure:
    error: Exception


@dataclass(frozen=True, slots=True)
class AggregateHandlingFailure:
    "`cause` is what the handler raised, never the wrapping error"

    cause: BaseException


@dataclass(frozen=True, slots=True)
class ValidatorRejection:
    failures: list[Exception]


@dataclass(frozen=True, slots=True)
class OtherFailure:
    error: Exception


type Failure = (
    UnknownCommandType
    | DeserializationFailure
    | AggregateHandlingFailure
    | ValidatorRejection
    | OtherFailure
)
type DispatchResult = Dispatched | Failure
type ErrorBody = ErrorResponse | list[ErrorResponse]


def _log_detached(type_name: str, task: "Future[list[EventWithMetaData]]") -> None:
    "outcome of a dispatch whose request went away before it finished"
    if task.cancelled():
        logger.warning(f"detached dispatch of {type_name} cancelled")
    elif (exc := task.exception()) is not None:
        logger.opt(exception=exc).error(f"detached dispatch of {type_name} failed: {exc!r}")
    else:
        logger.info(f"detached dispatch of {type_name} finished, events: {len(task.result())}")


class CommandAdapter:
    """
    Turns command envelopes into dispatched commands.

    envelope -> type resolved -> decoded -> dispatched -> `DispatchResult`

    the adapter never raises for a failed request, every failure is
    returned as one of the `Failure` variants and rendered with `error_response`.

    - client_error_status: status of unknown command types and validator rejections
    """

    def __init__(
        self,
        registry: ISubscriberRegistry,
        dispatcher: ICommandDispatcher,
        *,
        decoder: CommandDecoder | None = None,
        encoder: EventEncoder | None = None,
        client_error_status: int = HTTPStatus.BAD_REQUEST,
    ):
        self._registry = registry
        self._dispatcher = dispatcher
        self._decoder = decoder or CommandDecoder()
        self._encoder = encoder or EventEncoder()
        self._client_error_status = client_error_status

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(registry={self._registry}, dispatcher={self._dispatcher})"

    @property
    def registry(self) -> ISubscriberRegistry:
        return self._registry

    @property
    def dispatcher(self) -> ICommandDispatcher:
        return self._dispatcher

    @property
    def encoder(self) -> EventEncoder:
        return self._encoder

    @property
    def client_error_status(self) -> int:
        return self._client_error_status

    def resolve(self, type_name: str) -> FuncMeta[Any]:
        if (meta := self._registry.lookup(type_name)) is None:
            raise InvalidParameterError("Command class not valid")
        return meta

    def decode(self, payload: str, meta: FuncMeta[Any]) -> Any:
        return self._decoder.decode(payload, meta.message_type)

    async def dispatch(self, envelope: CommandEnvelope) -> DispatchResult:
        try:
            meta = self.resolve(envelope.type)
        except InvalidParameterError as exc:
            logger.warning(f"unknown command type {envelope.type!r}")
            return UnknownCommandType(exc)

        try:
            command = self.decode(envelope.payload, meta)
        except Exception as exc:
            # msgspec errors, `CommandTypeMismatchError`, or whatever `__post_init__` raised
            logger.warning(f"failed to decode {envelope.type}: {exc!r}")
            return DeserializationFailure(exc)

        logger.info(f"dispatching command {envelope.type}")
        # a dispatched command may already have effects, never cancel it
        task = ensure_future(self._dispatcher.dispatch(command))
        try:
            events = await shield(task)
        except CancelledError:
            task.add_done_callback(partial(_log_detached, envelope.type))
            raise
        except AggregateCommandHandlingError as exc:
            logger.opt(exception=exc.cause).error(
                f"handler of {envelope.type} failed: {exc.cause!r}"
            )
            return AggregateHandlingFailure(exc.cause)
        except CommandRejectedByValidators as exc:
            logger.warning(f"{envelope.type} rejected by validators: {exc.errors}")
            return ValidatorRejection(exc.errors)
        except Exception as exc:
            logger.exception(f"failed to dispatch {envelope.type}")
            return OtherFailure(exc)

        logger.success(f"command dispatched, events: {len(events)}")
        return Dispatched(events)

    def encode_events(self, events: list[EventWithMetaData]) -> bytes:
        return self._encoder.encode_many(events)

    @singledispatchmethod
    def error_response(self, failure: Any) -> tuple[int, ErrorBody]:
        raise NotImplementedError(f"{failure!r} is not a failure")

    @error_response.register
    def _(self, failure: UnknownCommandType) -> tuple[int, ErrorBody]:
        return self._client_error_status, ErrorResponse.from_exception(failure.error)

    @error_response.register
    def _(self, failure: DeserializationFailure) -> tuple[int, ErrorBody]:
        return HTTPStatus.INTERNAL_SERVER_ERROR, ErrorResponse.from_exception(
            failure.error
        )

    @error_response.register
    def _(self, failure: AggregateHandlingFailure) -> tuple[int, ErrorBody]:
        return HTTPStatus.INTERNAL_SERVER_ERROR, ErrorResponse.from_exception(
            failure.cause
        )

    @error_response.register
    def _(self, failure: ValidatorRejection) -> tuple[int, ErrorBody]:
        return self._client_error_status, [
            ErrorResponse.from_exception(e) for e in failure.failures
        ]

    @error_response.register
    def _(self, failure: OtherFailure) -> tuple[int, ErrorBody]:
        return HTTPStatus.INTERNAL_SERVER_ERROR, ErrorResponse.from_exception(
            failure.error
        )
