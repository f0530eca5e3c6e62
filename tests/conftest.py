"""Shared fixtures: temp-dir record store, controllable clock, ASGI client.

Invariants:
    - Every test gets a fresh data directory under tmp_path
    - The token service uses FakeClock, so expiry is driven by the test
    - The app's dispatcher is rebuilt around the test's store and clock
"""
from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from pingwatch.api.dispatcher import Dispatcher
from pingwatch.config import Settings
from pingwatch.main import build_handlers, create_app
from pingwatch.service.auth import TokenService
from pingwatch.service.store import RecordStore
from tests.helpers import FakeClock, signup


@pytest.fixture
def settings(tmp_path):
    return Settings(hashing_secret="test-secret", data_dir=tmp_path / "data", max_checks=5)


@pytest.fixture
def store(settings):
    return RecordStore(settings.data_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def auth(store, clock):
    return TokenService(store, clock=clock)


@pytest.fixture
def client_factory(settings, store, auth):
    """Build clients over the shared store and clock; settings may be overridden."""

    def _make(**overrides) -> AsyncClient:
        cfg = settings.model_copy(update=overrides)
        app = create_app(cfg)
        app.state.dispatcher = Dispatcher(build_handlers(cfg, store, auth).routes())
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    return _make


@pytest.fixture
async def client(client_factory):
    async with client_factory() as c:
        yield c


@pytest.fixture
async def token(client):
    return await signup(client)
