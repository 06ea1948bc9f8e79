import os
os.environ["TESTING"] = "1"

import asyncio
import time
from typing import Any, Callable, Optional

import pytest
from fakeredis import FakeServer, aioredis
from fastapi.testclient import TestClient

from auradash.config import AppConfig, StoreConfig
from auradash.identity import LocalIdentityProvider
from auradash.main import create_app
from auradash.schemas import Principal
from auradash.session import SyncContext
from auradash.store import MemoryDocumentStore, RedisDocumentStore
from auradash.streams import Stream, first_matching

APP_ID = "test-app"
SETTINGS_PATH = f"artifacts/{APP_ID}/users/tech-1/settings/theme"
INSPECTIONS_PATH = f"artifacts/{APP_ID}/public/data/inspections"


@pytest.fixture
def principal():
    return Principal(id="tech-1")


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def redis_store():
    client = aioredis.FakeRedis(server=FakeServer(), decode_responses=True)
    return RedisDocumentStore(client)


@pytest.fixture
def memory_config():
    return AppConfig(app_id=APP_ID, store=StoreConfig(backend="memory"))


@pytest.fixture
def client(store, memory_config):
    def factory():
        return SyncContext(config=memory_config, store=store, identity=LocalIdentityProvider())

    with TestClient(create_app(factory)) as c:
        wait_for_http(c, "/api/session", lambda body: body["ready"])
        yield c


async def next_value(stream: Stream, predicate: Optional[Callable[[Any], bool]] = None, timeout: float = 2.0):
    """Return the first value from ``stream`` matching ``predicate`` within ``timeout``."""

    return await asyncio.wait_for(first_matching(stream, predicate or (lambda _value: True)), timeout)


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def wait_for_http(client, path: str, predicate: Callable[[Any], bool], timeout: float = 3.0):
    """Poll a GET endpoint until its JSON body satisfies ``predicate``."""

    deadline = time.monotonic() + timeout
    while True:
        response = client.get(path)
        if response.status_code == 200 and predicate(response.json()):
            return response.json()
        if time.monotonic() > deadline:
            raise AssertionError(f"{path} never satisfied predicate: {response.status_code} {response.text}")
        time.sleep(0.02)


class ScriptedStore(MemoryDocumentStore):
    """Memory store whose subscription streams are driven by the test."""

    def __init__(self) -> None:
        super().__init__()
        self.document_stream: Stream = Stream()
        self.collection_stream: Stream = Stream()

    async def subscribe_document(self, path):
        return self.document_stream

    async def subscribe_collection(self, path):
        return self.collection_stream


@pytest.fixture
def manager_client(store, memory_config):
    """Client whose session signs in as ``tech-1`` with a stored Manager role."""

    store.put_external(SETTINGS_PATH, {"role": "Manager", "isDark": True, "lastUpdated": "2024-01-01T00:00:00+00:00"})
    config = memory_config.model_copy(update={"bootstrap_token": "tok-1"})

    def factory():
        return SyncContext(config=config, store=store, identity=LocalIdentityProvider({"tok-1": "tech-1"}))

    with TestClient(create_app(factory)) as c:
        wait_for_http(c, "/api/session", lambda body: body["ready"] and body["role"] == "Manager")
        yield c
