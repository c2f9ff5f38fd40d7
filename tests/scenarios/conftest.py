"""Shared helpers for scenario tests."""

from collections.abc import Callable

import httpx
import pytest
from fastapi import FastAPI


@pytest.fixture
def client_factory() -> Callable[..., httpx.AsyncClient]:
    """Build an in-process HTTP client for an application.

    The client shares the test's event loop, so capture tasks spawned while
    serving a request can be awaited with ``engine.wait_until_idle()``.
    """

    def _make(app: FastAPI, raise_app_exceptions: bool = True) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=raise_app_exceptions)
        return httpx.AsyncClient(transport=transport, base_url="http://test")

    return _make
