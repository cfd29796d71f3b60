"""Redis cache service for hotel details, guest sentiment, and staged search records."""

import asyncio
import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis
from pydantic import TypeAdapter, ValidationError

from staygenie.errors import EnrichmentValidationError
from staygenie.schemas.search import EnrichmentPayload
from staygenie.services.cache_normalizer import normalize_for_cache

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_HOTEL_DETAILS = 24 * 60 * 60    # 24 hours
TTL_HOTEL_SENTIMENT = 12 * 60 * 60  # 12 hours
TTL_SEARCH_RESULTS = 60 * 60        # 1 hour, staged search records

_enrichment_adapter = TypeAdapter(dict[str, EnrichmentPayload])


@dataclass
class CacheEntry:
    key: str
    value: Any
    ttl: int | None = None


class CacheService:
    """Redis-backed cache with typed TTLs. Every operation degrades to a miss or no-op."""

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        client_factory: Callable[[], redis.Redis] | None = None,
    ):
        self._redis_url = redis_url
        self._client_factory = client_factory
        self._redis: redis.Redis | None = None
        self._connected = False
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._connected

    def _create_client(self) -> redis.Redis:
        if self._client_factory is not None:
            return self._client_factory()
        return redis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )

    async def connect(self) -> bool:
        """Open the Redis connection once. Returns False when Redis is unreachable."""
        if self._connected:
            return True
        async with self._connect_lock:
            if self._connected:
                return True
            try:
                client = self._create_client()
                await client.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                return False
            self._redis = client
            self._connected = True
            logger.info("Redis cache connected")
            return True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        client, self._redis = self._redis, None
        self._connected = False
        try:
            await client.aclose()
            logger.info("Redis cache disconnected")
        except Exception as e:
            logger.warning(f"Redis close failed: {e}")

    async def _get_redis(self) -> redis.Redis | None:
        if not self._connected and not await self.connect():
            return None
        return self._redis

    async def ping(self) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            return bool(await r.ping())
        except Exception as e:
            logger.warning(f"Cache ping error: {e}")
            return False

    @staticmethod
    def _serialize(value: Any) -> str:
        return json.dumps(normalize_for_cache(value))

    @staticmethod
    def _decode(key: str, raw: str | bytes | None) -> Any | None:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Failed to decode cached value for key {key}: {e}")
            return None

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None
        return self._decode(key, raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Normalize and store a value, with TTL when given. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            payload = self._serialize(value)
            if ttl:
                await r.set(key, payload, ex=ttl)
            else:
                await r.set(key, payload)
            return True
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            return await r.delete(key) > 0
        except Exception as e:
            logger.warning(f"Cache delete error for key {key}: {e}")
            return False

    async def exists(self, key: str) -> bool:
        try:
            r = await self._get_redis()
            if r is None:
                return False
            return await r.exists(key) > 0
        except Exception as e:
            logger.warning(f"Cache exists error for key {key}: {e}")
            return False

    async def mget(self, keys: list[str]) -> list[Any | None]:
        """Batch get. The result is aligned with keys; failures read as misses."""
        if not keys:
            return []
        try:
            r = await self._get_redis()
            if r is None:
                return [None] * len(keys)
            values = await r.mget(keys)
        except Exception as e:
            logger.warning(f"Cache mget error for {len(keys)} keys: {e}")
            return [None] * len(keys)
        return [self._decode(key, raw) for key, raw in zip(keys, values)]

    async def mset(self, entries: list[CacheEntry]) -> bool:
        """Batch set. Entries with a TTL are written individually, the rest in one MSET."""
        if not entries:
            return True
        try:
            r = await self._get_redis()
            if r is None:
                return False

            with_ttl = [e for e in entries if e.ttl]
            without_ttl = [e for e in entries if not e.ttl]

            if without_ttl:
                await r.mset({e.key: self._serialize(e.value) for e in without_ttl})
            if with_ttl:
                await asyncio.gather(*(
                    r.set(e.key, self._serialize(e.value), ex=e.ttl) for e in with_ttl
                ))
            return True
        except Exception as e:
            logger.warning(f"Cache mset error for {len(entries)} entries: {e}")
            return False

    # Typed helpers

    def hotel_key(self, hotel_id: str) -> str:
        return f"hotel:{hotel_id}"

    def sentiment_key(self, hotel_id: str) -> str:
        return f"sentiment:{hotel_id}"

    def search_key(self, search_id: str) -> str:
        return f"search:{search_id}"

    async def get_hotel_details(self, hotel_id: str) -> dict | None:
        return await self.get(self.hotel_key(hotel_id))

    async def set_hotel_details(self, hotel_id: str, details: dict) -> bool:
        return await self.set(self.hotel_key(hotel_id), details, TTL_HOTEL_DETAILS)

    async def get_hotel_sentiment(self, hotel_id: str) -> dict | None:
        return await self.get(self.sentiment_key(hotel_id))

    async def set_hotel_sentiment(self, hotel_id: str, sentiment: dict) -> bool:
        return await self.set(self.sentiment_key(hotel_id), sentiment, TTL_HOTEL_SENTIMENT)

    async def get_batch_hotel_details(self, hotel_ids: list[str]) -> list[dict | None]:
        return await self.mget([self.hotel_key(h) for h in hotel_ids])

    async def set_batch_hotel_details(self, details_by_id: Mapping[str, dict]) -> bool:
        return await self.mset([
            CacheEntry(self.hotel_key(h), details, TTL_HOTEL_DETAILS)
            for h, details in details_by_id.items()
        ])

    async def get_batch_hotel_sentiment(self, hotel_ids: list[str]) -> list[dict | None]:
        return await self.mget([self.sentiment_key(h) for h in hotel_ids])

    async def set_batch_hotel_sentiment(self, sentiment_by_id: Mapping[str, dict]) -> bool:
        return await self.mset([
            CacheEntry(self.sentiment_key(h), sentiment, TTL_HOTEL_SENTIMENT)
            for h, sentiment in sentiment_by_id.items()
        ])

    # Staged search records

    async def get_search_results(self, search_id: str) -> dict | None:
        record = await self.get(self.search_key(search_id))
        return record if isinstance(record, dict) else None

    async def set_search_results(self, search_id: str, record: Any) -> bool:
        return await self.set(self.search_key(search_id), record, TTL_SEARCH_RESULTS)

    async def update_search_enrichment(self, search_id: str, enrichment: Any) -> bool:
        """Merge per-hotel enrichment into a stored search record and mark insights complete.

        Read, validate, merge, write. A missing (expired) record or an invalid
        payload leaves the cache untouched and returns False.
        """
        existing = await self.get_search_results(search_id)
        if existing is None:
            logger.info(f"No search record for {search_id}, enrichment dropped")
            return False

        try:
            payloads = self._validate_enrichment(enrichment)
        except EnrichmentValidationError as e:
            logger.error(f"Invalid enrichment data for {search_id}: {e}")
            return False

        incoming = {
            hotel_id: payload.model_dump(mode="json", by_alias=True)
            for hotel_id, payload in payloads.items()
        }
        insights = dict(existing.get("insights") or {})
        insights.update(incoming)

        recommendations = []
        for hotel in existing.get("recommendations") or []:
            payload = incoming.get(hotel.get("hotelId")) if isinstance(hotel, dict) else None
            if payload:
                hotel = {
                    **hotel,
                    "guestInsights": payload["guestInsights"],
                    "sentimentData": {
                        "categories": payload["sentimentCategories"],
                        "pros": payload["pros"],
                        "cons": payload["cons"],
                    },
                }
            recommendations.append(hotel)

        updated = {
            **existing,
            "recommendations": recommendations,
            "insights": insights,
            "insightsPending": False,
            "updatedAt": datetime.now(timezone.utc).isoformat(),
        }

        logger.info(f"Updating search enrichment for {search_id} with {len(incoming)} hotels")
        return await self.set_search_results(search_id, updated)

    @staticmethod
    def _validate_enrichment(enrichment: Any) -> dict[str, EnrichmentPayload]:
        if not isinstance(enrichment, Mapping):
            raise EnrichmentValidationError(
                f"expected a mapping of hotel id to payload, got {type(enrichment).__name__}"
            )
        try:
            return _enrichment_adapter.validate_python(dict(enrichment))
        except ValidationError as e:
            raise EnrichmentValidationError(str(e)) from e
