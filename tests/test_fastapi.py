import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from dispatchwise import AdapterConfig, CommandAdapter, ValidationFailure
from dispatchwise.errors import (
    AggregateCommandHandlingError,
    CommandRejectedByValidators,
    InvalidAppStateError,
    InvalidRegistryPathError,
)
from dispatchwise.integration.fastapi import app_factory, command_router, load_registry
from dispatchwise.messages import Event, type_id, with_metadata
from tests.conftest import (
    E1,
    E2,
    AddFunds,
    CreateFoo,
    NegativeAmount,
    StubDispatcher,
    foo_events,
    foo_registry,
)

DISPATCH = "/commands/dispatch"
DISPATCH_AND_RETURN = "/commands/dispatchAndReturnEvents"


class IllegalStateFailure(Exception): ...


class V1(ValidationFailure): ...


class V2(ValidationFailure): ...


class Unencodable(Event, frozen=True, kw_only=True):
    blob: object


def envelope(payload: str = '{"id":"X"}', type_name: str = type_id(CreateFoo)) -> dict[str, str]:
    return {"type": type_name, "payload": payload}


def test_unknown_type(client: TestClient, stub: StubDispatcher):
    response = client.post(DISPATCH, json=envelope("{}", type_name="com.example.DoesNotExist"))

    assert response.status_code == 400
    assert response.json() == {
        "type": "dispatchwise.errors.InvalidParameterError",
        "message": "Command class not valid",
    }
    assert stub.received == []


def test_dispatch_without_events(client: TestClient, stub: StubDispatcher):
    response = client.post(DISPATCH, json=envelope())

    assert response.status_code == 200
    assert response.content == b""
    assert stub.received == [CreateFoo(id="X")]


def test_dispatch_ignores_returned_events(client: TestClient, stub: StubDispatcher):
    stub.events = foo_events()
    response = client.post(DISPATCH, json=envelope())

    assert response.status_code == 200
    assert response.content == b""


def test_dispatch_and_return_events(client: TestClient, stub: StubDispatcher):
    stub.events = foo_events()
    response = client.post(DISPATCH_AND_RETURN, json=envelope())

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/json"
    body = response.json()
    assert len(body) == 2
    assert [e["event"]["@class"] for e in body] == [type_id(E1), type_id(E2)]
    assert [e["event"]["seq"] for e in body] == [1, 2]
    assert body[0]["metadata"]["aggregate_id"] == "X"


def test_dispatch_and_return_no_events(client: TestClient):
    response = client.post(DISPATCH_AND_RETURN, json=envelope())

    assert response.status_code == 200
    assert response.json() == []


def test_aggregate_failure(client: TestClient, stub: StubDispatcher):
    stub.error = AggregateCommandHandlingError(IllegalStateFailure("aggregate closed"))

    for url in (DISPATCH, DISPATCH_AND_RETURN):
        response = client.post(url, json=envelope())
        assert response.status_code == 500
        assert response.json() == {
            "type": type_id(IllegalStateFailure),
            "message": "aggregate closed",
        }


def test_validator_rejection(client: TestClient, stub: StubDispatcher):
    stub.error = CommandRejectedByValidators([V1("name required"), V2("amount>0")])
    response = client.post(DISPATCH, json=envelope())

    assert response.status_code == 400
    body = response.json()
    assert len(body) == 2
    assert body[0] == {"type": type_id(V1), "message": "name required"}
    assert body[1] == {"type": type_id(V2), "message": "amount>0"}


def test_malformed_payload(client: TestClient, stub: StubDispatcher):
    response = client.post(DISPATCH, json=envelope("not-json"))

    assert response.status_code == 500
    body = response.json()
    assert set(body) == {"type", "message"}
    assert body["type"].startswith("msgspec.")
    assert stub.received == []


def test_command_rejecting_its_own_payload(client: TestClient, stub: StubDispatcher):
    response = client.post(
        DISPATCH, json=envelope('{"id": "X", "amount": -1}', type_name=type_id(AddFunds))
    )

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"type": type_id(NegativeAmount), "message": "negative amount"}
    assert stub.received == []


@pytest.mark.parametrize("content", [b"nope", b'{"type": "app.CreateFoo"}', b"[]"])
def test_malformed_envelope(client: TestClient, stub: StubDispatcher, content: bytes):
    response = client.post(DISPATCH, content=content)

    assert response.status_code == 400
    assert set(response.json()) == {"type", "message"}
    assert stub.received == []


def test_unencodable_events(client: TestClient, stub: StubDispatcher):
    stub.events = [with_metadata(Unencodable(aggregate_id="X", blob=object()), sequence=1)]
    response = client.post(DISPATCH_AND_RETURN, json=envelope())

    assert response.status_code == 500
    assert set(response.json()) == {"type", "message"}


def test_server_error_status_for_client_errors():
    config = AdapterConfig(
        registry="tests.conftest:foo_registry", client_error_status=500
    )
    with TestClient(app_factory(config=config)) as client:
        unknown = client.post(DISPATCH, json=envelope("{}", type_name="com.example.DoesNotExist"))
        dispatched = client.post(DISPATCH, json=envelope())

    assert unknown.status_code == 500
    assert unknown.json()["message"] == "Command class not valid"
    assert dispatched.status_code == 200


def test_custom_prefix():
    adapter = CommandAdapter(foo_registry, StubDispatcher())
    config = AdapterConfig(prefix="/api/v1/commands")
    with TestClient(app_factory(adapter, config=config)) as client:
        assert client.post("/api/v1/commands/dispatch", json=envelope()).status_code == 200
        assert client.post(DISPATCH, json=envelope()).status_code == 404


@pytest.mark.parametrize("url", [DISPATCH, DISPATCH_AND_RETURN])
def test_cors_preflight(url: str):
    adapter = CommandAdapter(foo_registry, StubDispatcher())
    config = AdapterConfig(cors_origins=["https://a.example"])
    with TestClient(app_factory(adapter, config=config)) as client:
        allowed = client.options(
            url,
            headers={
                "Origin": "https://a.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        denied = client.options(
            url,
            headers={
                "Origin": "https://b.example",
                "Access-Control-Request-Method": "POST",
            },
        )

    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == "https://a.example"
    assert "POST" in allowed.headers["access-control-allow-methods"]
    assert denied.status_code == 400


def test_cors_any_origin(client: TestClient):
    response = client.post(
        DISPATCH, json=envelope(), headers={"Origin": "https://a.example"}
    )
    assert response.headers["access-control-allow-origin"] == "*"


def test_adapter_missing_from_state():
    app = FastAPI()
    app.include_router(command_router())
    client = TestClient(app)

    with pytest.raises(InvalidAppStateError):
        client.post(DISPATCH, json=envelope())


def test_load_registry():
    assert load_registry("tests.conftest:foo_registry") is foo_registry

    for path in ("tests.conftest", ":foo_registry", "tests.conftest:foo_events"):
        with pytest.raises(InvalidRegistryPathError):
            load_registry(path)
