import importlib
from contextlib import asynccontextmanager
from typing import Annotated, AsyncGenerator, TypedDict

import msgspec
from fastapi import APIRouter, Depends, FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from .. import VERSION
from ..adapter import CommandAdapter, Dispatched, ErrorBody, OtherFailure
from ..codec import EventEncoder
from ..config import AdapterConfig
from ..dispatcher import CommandDispatcher
from ..errors import InvalidAppStateError, InvalidRegistryPathError
from ..messages import CommandEnvelope, ErrorResponse
from ..registry import SubscriberRegistry

JSON_MEDIA_TYPE = "application/json"

envelope_decoder = msgspec.json.Decoder(CommandEnvelope)


class AppState(TypedDict):
    adapter: CommandAdapter


def get_adapter(r: Request) -> CommandAdapter:
    try:
        adapter = r.scope["state"]["adapter"]
    except KeyError:
        raise InvalidAppStateError()
    return adapter


FastAdapter = Annotated[CommandAdapter, Depends(get_adapter)]


def error_json(status: int, body: ErrorBody) -> Response:
    return Response(
        content=msgspec.json.encode(body),
        status_code=status,
        media_type=JSON_MEDIA_TYPE,
    )


async def dispatch_request(request: Request, adapter: CommandAdapter) -> Dispatched | Response:
    "returns the dispatched events, or the error response to send back"
    try:
        envelope = envelope_decoder.decode(await request.body())
    except msgspec.MsgspecError as exc:
        return error_json(adapter.client_error_status, ErrorResponse.from_exception(exc))

    result = await adapter.dispatch(envelope)
    if isinstance(result, Dispatched):
        return result
    return error_json(*adapter.error_response(result))


def command_router(prefix: str = "/commands") -> APIRouter:
    router = APIRouter(prefix=prefix)

    @router.post("/dispatch")
    async def dispatch(request: Request, adapter: FastAdapter) -> Response:
        result = await dispatch_request(request, adapter)
        if isinstance(result, Response):
            return result
        return Response(status_code=200)

    @router.post("/dispatchAndReturnEvents")
    async def dispatch_and_return_events(
        request: Request, adapter: FastAdapter
    ) -> Response:
        result = await dispatch_request(request, adapter)
        if isinstance(result, Response):
            return result

        try:
            content = adapter.encode_events(result.events)
        except (msgspec.EncodeError, TypeError) as exc:
            logger.exception("failed to encode events")
            return error_json(*adapter.error_response(OtherFailure(exc)))
        return Response(content=content, status_code=200, media_type=JSON_MEDIA_TYPE)

    return router


def load_registry(path: str) -> SubscriberRegistry:
    "import a registry from a `module:attribute` path, e.g. `demo.bank:registry`"
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise InvalidRegistryPathError(path)

    registry = getattr(importlib.import_module(module_name), attr, None)
    if not isinstance(registry, SubscriberRegistry):
        raise InvalidRegistryPathError(path)
    return registry


def adapter_factory(registry: SubscriberRegistry, config: AdapterConfig) -> CommandAdapter:
    return CommandAdapter(
        registry,
        CommandDispatcher(registry),
        encoder=EventEncoder(config.discriminator),
        client_error_status=config.client_error_status,
    )


def app_factory(
    adapter: CommandAdapter | None = None,
    *,
    config: AdapterConfig | None = None,
) -> FastAPI:
    """
    build an app serving the command endpoints,
    without `adapter` one is built for the registry named by `config.registry`
    """
    config = config or AdapterConfig.from_env()
    if adapter is None:
        adapter = adapter_factory(load_registry(config.registry), config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[AppState, None]:
        logger.info(f"serving {adapter.registry} under {config.prefix}")
        yield {"adapter": adapter}

    app = FastAPI(lifespan=lifespan, version=VERSION)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["POST"],
        allow_headers=["*"],
    )
    app.include_router(command_router(config.prefix))
    return app
