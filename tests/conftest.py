from __future__ import annotations

import pytest
import requests

from cable_erp.config import Settings
from cable_erp.context import build_context
from cable_erp.db import connect, ensure_schema
from cable_erp.storage import DurableStore
from cable_erp.services.stores import IdGenerator


class FakeResponse:
    def __init__(self, status_code: int = 201, payload=None):
        self.status_code = status_code
        self._payload = payload if payload is not None else []

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        return self._payload


class FakeSession:
    """Records requests; ``fail_on`` makes posts to that table return 500."""

    def __init__(self):
        self.posts: list[dict] = []
        self.gets: list[dict] = []
        self.fail_on: set[str] = set()
        self.on_post = None

    def post(self, url, **kwargs):
        self.posts.append({"url": url, **kwargs})
        if self.on_post is not None:
            self.on_post(url)
        table = url.rsplit("/", 1)[-1]
        return FakeResponse(500 if table in self.fail_on else 201)

    def get(self, url, **kwargs):
        self.gets.append({"url": url, **kwargs})
        return FakeResponse(200, [{"id": 1}])


class Probe:
    def __init__(self):
        self.online = True

    def __call__(self) -> bool:
        return self.online


@pytest.fixture
def conn(tmp_path):
    c = connect(tmp_path / "app.db")
    yield c
    c.close()


@pytest.fixture
def durable(conn):
    ensure_schema(conn)
    return DurableStore(conn)


@pytest.fixture
def ids():
    return IdGenerator()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        db_path=tmp_path / "app.db",
        sync_url="https://example.supabase.co",
        sync_key="test-key",
        sync_timeout=5.0,
    )


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def probe():
    return Probe()


@pytest.fixture
def ctx(conn, settings, session, probe):
    return build_context(conn, settings, session=session, online_probe=probe)
