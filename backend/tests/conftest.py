"""Shared fixtures: an in-memory Redis double, a wired cache, and test settings."""

from unittest.mock import AsyncMock

import pytest

from staygenie.config import Settings
from staygenie.services.cache_service import CacheService


class FakeRedis:
    """Just enough of redis.asyncio.Redis for CacheService, with call recording."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.calls: list[tuple] = []
        self.ping_count = 0
        self.closed = False
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis down")

    async def ping(self):
        self.ping_count += 1
        self._check()
        return True

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.calls.append(("set", key, ex))
        self.store[key] = value
        self.ttls[key] = ex
        return True

    async def delete(self, *keys):
        self._check()
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                self.ttls.pop(key, None)
                removed += 1
        return removed

    async def exists(self, *keys):
        self._check()
        return sum(1 for key in keys if key in self.store)

    async def mget(self, keys):
        self._check()
        return [self.store.get(key) for key in keys]

    async def mset(self, mapping):
        self._check()
        self.calls.append(("mset", tuple(mapping)))
        for key, value in mapping.items():
            self.store[key] = value
            self.ttls[key] = None
        return True

    async def aclose(self):
        self.closed = True


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis) -> CacheService:
    return CacheService("redis://test", client_factory=lambda: fake_redis)


@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any local .env, with delays removed."""
    return Settings(
        _env_file=None,
        liteapi_key="test-key",
        openai_api_key="",
        anthropic_api_key="",
        match_seed=7,
        background_stagger_seconds=0,
        rate_limit_retry_delay=0,
        fast_enrich_timeout=2.0,
    )


@pytest.fixture
def llm() -> AsyncMock:
    """LLM client double; set `llm.complete` side effects per test."""
    client = AsyncMock()
    client.complete = AsyncMock(side_effect=RuntimeError("All LLM providers failed: no provider configured"))
    return client
