"""Scenario 2: Key Reused for a Different Request

A client creates an address with key "xyz", then sends a request with the
same key but a different address. The key belongs to the first request:
the second one is rejected as an invalid intent whether the first request
is still in flight or already completed, and the stored response is never
leaked to it. An identical request while the first is in flight is told
to retry later instead.
"""

import asyncio

import pytest
from fastapi import FastAPI, Request
from pydantic import BaseModel

from idempotency_engine.adapters.asgi import IdempotencyASGIMiddleware, is_replay
from idempotency_engine.core.engine import IdempotencyEngine
from idempotency_engine.exceptions import ConflictError, InvalidIntentError
from idempotency_engine.models import ResourceState

FIRST_ADDRESS = {"street": "1 Main St", "city": "Springfield"}
OTHER_ADDRESS = {"street": "9 Elm St", "city": "Springfield"}


class Address(BaseModel):
    street: str
    city: str


def build_app(engine: IdempotencyEngine) -> tuple[FastAPI, dict]:
    app = FastAPI()
    app.add_middleware(IdempotencyASGIMiddleware, engine=engine)
    control = {
        "executions": 0,
        "entered": asyncio.Event(),
        "release": asyncio.Event(),
        "hold": False,
    }

    @app.post("/api/addresses", status_code=201)
    async def create_address(address: Address, request: Request):
        if is_replay(request):
            return None
        control["executions"] += 1
        if control["hold"]:
            control["entered"].set()
            await control["release"].wait()
        return {"id": control["executions"], "street": address.street}

    return app, control


@pytest.mark.asyncio
async def test_engine_rejects_reuse_after_completion(
    engine, store, make_request, sink_factory, downstream_factory
):
    downstream = downstream_factory()
    await engine.admit(
        make_request("xyz", path="/api/addresses", body=b'{"street": "1 Main St"}'),
        sink_factory(),
        downstream,
    )
    await engine.wait_until_idle()

    sink = sink_factory()
    with pytest.raises(InvalidIntentError):
        await engine.admit(
            make_request("xyz", path="/api/addresses", body=b'{"street": "9 Elm St"}'),
            sink,
            downstream,
        )

    assert sink.chunks == []
    assert downstream.executions == 1
    assert (await store.find_by_key("xyz")).state == ResourceState.COMPLETED


@pytest.mark.asyncio
async def test_engine_distinguishes_conflict_from_invalid_intent(
    engine, make_request, sink_factory, downstream_factory
):
    slow = downstream_factory(delay=0.05)
    original = make_request("xyz", path="/api/addresses", body=b'{"street": "1 Main St"}')
    first = asyncio.create_task(engine.admit(original, sink_factory(), slow))
    await asyncio.sleep(0.01)

    with pytest.raises(ConflictError):
        await engine.admit(
            make_request("xyz", path="/api/addresses", body=b'{"street": "1 Main St"}'),
            sink_factory(),
            slow,
        )
    with pytest.raises(InvalidIntentError):
        await engine.admit(
            make_request("xyz", path="/api/addresses", body=b'{"street": "9 Elm St"}'),
            sink_factory(),
            slow,
        )

    await first
    await engine.wait_until_idle()
    assert slow.executions == 1


@pytest.mark.asyncio
async def test_http_reuse_after_completion_returns_417(engine, client_factory):
    app, control = build_app(engine)
    headers = {"Idempotency-Key": "xyz"}

    async with client_factory(app) as client:
        first = await client.post("/api/addresses", json=FIRST_ADDRESS, headers=headers)
        await engine.wait_until_idle()
        reused = await client.post("/api/addresses", json=OTHER_ADDRESS, headers=headers)

    assert first.status_code == 201
    assert reused.status_code == 417
    assert "different request" in reused.text
    assert "1 Main St" not in reused.text
    assert reused.headers["idempotency-key"] == "xyz"
    assert control["executions"] == 1


@pytest.mark.asyncio
async def test_http_reuse_while_pending(engine, client_factory):
    app, control = build_app(engine)
    control["hold"] = True
    headers = {"Idempotency-Key": "xyz"}

    async with client_factory(app) as client:
        first = asyncio.create_task(
            client.post("/api/addresses", json=FIRST_ADDRESS, headers=headers)
        )
        await control["entered"].wait()

        reused = await client.post("/api/addresses", json=OTHER_ADDRESS, headers=headers)
        duplicate = await client.post("/api/addresses", json=FIRST_ADDRESS, headers=headers)

        control["release"].set()
        completed = await first
        await engine.wait_until_idle()

    assert reused.status_code == 417
    assert duplicate.status_code == 409
    assert completed.status_code == 201
    assert control["executions"] == 1


@pytest.mark.asyncio
async def test_http_different_path_is_a_different_intent(engine, client_factory):
    app, _ = build_app(engine)

    @app.post("/api/billing-addresses", status_code=201)
    async def create_billing_address(address: Address):
        return {"id": 99}

    headers = {"Idempotency-Key": "xyz"}
    async with client_factory(app) as client:
        await client.post("/api/addresses", json=FIRST_ADDRESS, headers=headers)
        await engine.wait_until_idle()
        other = await client.post("/api/billing-addresses", json=FIRST_ADDRESS, headers=headers)

    assert other.status_code == 417
