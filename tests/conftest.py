"""Shared fixtures: in-memory store, frozen clock, wired application"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.core.dependencies import get_gemini_service, get_keys_service
from app.core.redis import RedisStore
from app.core.security import create_access_token
from app.main import app
from app.services.gemini_service import GeminiClient, GeminiService
from app.services.keys.service import GeminiKeysService


class InMemoryRedis:
    """Async stand-in for the handful of redis commands the app uses"""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.lists: Dict[str, List[str]] = {}
        self.fail = False
        # Suspend on every read and write, like a networked client would
        self.yield_on_io = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("store is down")

    async def _io(self):
        if self.yield_on_io:
            await asyncio.sleep(0)
        self._check()

    async def ping(self):
        self._check()
        return True

    async def get(self, key):
        await self._io()
        return self.data.get(key)

    async def set(self, key, value):
        await self._io()
        self.data[key] = value
        return True

    async def setex(self, key, ttl, value):
        return await self.set(key, value)

    async def delete(self, key):
        self._check()
        found = self.data.pop(key, None) is not None
        found = self.lists.pop(key, None) is not None or found
        return 1 if found else 0

    async def lpush(self, key, *values):
        await self._io()
        items = self.lists.setdefault(key, [])
        for value in values:
            items.insert(0, value)
        return len(items)

    async def ltrim(self, key, start, end):
        self._check()
        items = self.lists.get(key, [])
        self.lists[key] = items[start:] if end == -1 else items[start:end + 1]
        return True

    async def lrange(self, key, start, end):
        await self._io()
        items = self.lists.get(key, [])
        return items[start:] if end == -1 else items[start:end + 1]

    async def aclose(self):
        pass


class FrozenClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: Optional[datetime] = None):
        # A Sunday
        self.now = start or datetime(2024, 1, 7, 10, 30, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def gemini_reply(text: str = "Hello there!", tokens: int = 12) -> Dict:
    return {
        "candidates": [
            {"content": {"parts": [{"text": text}]}, "finishReason": "STOP"}
        ],
        "usageMetadata": {"totalTokenCount": tokens}
    }


class GeminiStub:
    """httpx handler recording which key each call used"""

    def __init__(self):
        self.status_code = 200
        self.used_keys = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.used_keys.append(request.headers.get("x-goog-api-key"))
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "upstream"}})
        return httpx.Response(200, json=gemini_reply())


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def store(fake_redis):
    redis_store = RedisStore(client=fake_redis)
    redis_store.is_connected = True
    return redis_store


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def keys_service(store, clock):
    return GeminiKeysService(store, fallback_keys=[], clock=clock)


@pytest.fixture
def gemini_stub():
    return GeminiStub()


@pytest.fixture
def gemini_service(keys_service, gemini_stub):
    client = GeminiClient(base_url="https://gemini.test/v1beta/models", transport=httpx.MockTransport(gemini_stub))
    return GeminiService(keys_service, client)


@pytest.fixture
def wired_app(keys_service, gemini_service):
    app.dependency_overrides[get_keys_service] = lambda: keys_service
    app.dependency_overrides[get_gemini_service] = lambda: gemini_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def api_client(wired_app):
    """Unopened client; use as ``async with api_client as client``"""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=wired_app), base_url="http://test")


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "user_admin", "username": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_headers():
    token = create_access_token({"sub": "user_demo", "username": "demo_user", "role": "user"})
    return {"Authorization": f"Bearer {token}"}
