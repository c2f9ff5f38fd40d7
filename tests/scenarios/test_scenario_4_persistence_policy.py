"""Scenario 4: Persistence Policy

Only outcomes accepted by the persistence policy are retained. With the
default policy a 404 response is delivered to the caller, then the
resource is deleted: the key becomes free and the next request with it is
admitted as new. A custom policy can retain failures for replay.
"""

import pytest
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from idempotency_engine.adapters.asgi import IdempotencyASGIMiddleware, is_replay
from idempotency_engine.core.engine import IdempotencyEngine
from idempotency_engine.models import ResponseSnapshot
from idempotency_engine.storage.memory import MemoryResourceStore


class PersistClientErrors:
    """Retain successes and 4xx outcomes, never 5xx."""

    def should_persist(self, response: ResponseSnapshot) -> bool:
        return response.status < 500


def build_app(engine: IdempotencyEngine) -> tuple[FastAPI, dict]:
    app = FastAPI()
    app.add_middleware(IdempotencyASGIMiddleware, engine=engine)
    state = {"calls": 0, "known": set()}

    @app.post("/api/shipments/{order_id}", status_code=201)
    async def ship(order_id: str, request: Request):
        if is_replay(request):
            return None
        state["calls"] += 1
        if order_id not in state["known"]:
            raise HTTPException(status_code=404, detail="order not found")
        return {"shipment": order_id}

    @app.post("/api/unstable")
    async def unstable(request: Request):
        if is_replay(request):
            return None
        state["calls"] += 1
        return JSONResponse({"error": "upstream down"}, status_code=502)

    return app, state


@pytest.mark.asyncio
async def test_engine_discards_404_then_admits_fresh(
    engine, store, make_request, sink_factory, downstream_factory
):
    missing = downstream_factory(status=404, body=b'{"detail":"not found"}')
    sink = sink_factory()

    await engine.admit(make_request("abc"), sink, missing)
    await engine.wait_until_idle()

    assert sink.status == 404
    assert await store.find_by_key("abc") is None

    found = downstream_factory(status=201)
    retry_sink = sink_factory()
    retry = make_request("abc")
    await engine.admit(retry, retry_sink, found)
    await engine.wait_until_idle()

    assert not engine.is_hit(retry)
    assert retry_sink.status == 201
    assert found.executions == 1
    assert (await store.find_by_key("abc")).response.status == 201


@pytest.mark.asyncio
async def test_http_404_is_not_retained(engine, store, client_factory):
    app, state = build_app(engine)
    headers = {"Idempotency-Key": "abc"}

    async with client_factory(app) as client:
        first = await client.post("/api/shipments/o-1", headers=headers)
        await engine.wait_until_idle()
        assert await store.find_by_key("abc") is None

        state["known"].add("o-1")
        second = await client.post("/api/shipments/o-1", headers=headers)
        await engine.wait_until_idle()
        third = await client.post("/api/shipments/o-1", headers=headers)

    assert first.status_code == 404
    assert first.json() == {"detail": "order not found"}
    assert second.status_code == 201
    assert third.status_code == 201
    assert third.json() == {"shipment": "o-1"}
    assert state["calls"] == 2


@pytest.mark.asyncio
async def test_http_5xx_is_not_retained(engine, store, client_factory):
    app, state = build_app(engine)
    headers = {"Idempotency-Key": "unstable-1"}

    async with client_factory(app) as client:
        for _ in range(2):
            response = await client.post("/api/unstable", headers=headers)
            await engine.wait_until_idle()
            assert response.status_code == 502

    assert state["calls"] == 2
    assert len(store) == 0


@pytest.mark.asyncio
async def test_http_custom_policy_retains_client_errors(client_factory):
    store = MemoryResourceStore()
    engine = IdempotencyEngine(store=store, persistence_policy=PersistClientErrors())
    app, state = build_app(engine)

    async with client_factory(app) as client:
        first = await client.post("/api/shipments/o-9", headers={"Idempotency-Key": "k-404"})
        await engine.wait_until_idle()
        state["known"].add("o-9")
        replayed = await client.post("/api/shipments/o-9", headers={"Idempotency-Key": "k-404"})

        await client.post("/api/unstable", headers={"Idempotency-Key": "k-502"})
        await engine.wait_until_idle()

    assert first.status_code == 404
    assert replayed.status_code == 404
    assert replayed.json() == first.json()
    assert await store.find_by_key("k-404") is not None
    assert await store.find_by_key("k-502") is None
    assert state["calls"] == 2
