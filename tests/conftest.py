from typing import Optional

import pytest
from fastapi.testclient import TestClient

from spotmap.core.config import Settings
from spotmap.main import create_app
from spotmap.services.rate_limiter import InMemoryRateLimiter
from spotmap.services.spot_store import build_engine, create_schema, import_spots


def make_spot(
    spot_id: int,
    title: str,
    lat: Optional[float] = None,
    lon: Optional[float] = None,
    address: Optional[str] = None,
    **details,
) -> dict:
    record = {"id": spot_id, "title": title, "lat": lat, "lon": lon, "address": address}
    if details:
        record["details"] = details
    return record


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    create_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def seed(engine):
    def _seed(*records):
        return import_spots(engine, records)
    return _seed


@pytest.fixture
def make_client(engine):
    clients = []

    def _make(rate_limiter=None, **overrides):
        cfg = Settings(**{"ENV": "production", **overrides})
        app = create_app(cfg, engine=engine, rate_limiter=rate_limiter or InMemoryRateLimiter())
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()
