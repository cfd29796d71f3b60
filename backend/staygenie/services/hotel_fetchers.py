"""Cache-first hotel fetchers — read-through wrappers over the cache and the bounded pools."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from staygenie.services.cache_service import CacheService
from staygenie.services.concurrency import BoundedPool, ConcurrencyPools
from staygenie.services.liteapi_client import LiteAPIClient

logger = logging.getLogger(__name__)


class CachedHotelFetcher:
    """Fetches per-hotel details and sentiment, cache first.

    A cache hit costs no external call and no pool slot. A miss takes a slot in
    the category's pool, calls LiteAPI under a fixed timeout and stores the
    result. Any failure yields None: enrichment unavailable, never fatal.
    """

    def __init__(
        self,
        cache: CacheService,
        api: LiteAPIClient,
        pools: ConcurrencyPools,
        detail_timeout: float = 8.0,
        sentiment_timeout: float = 8.0,
        retry_delay: float = 2.0,
    ):
        self._cache = cache
        self._api = api
        self._pools = pools
        self._detail_timeout = detail_timeout
        self._sentiment_timeout = sentiment_timeout
        self._retry_delay = retry_delay

    async def fetch_details(self, hotel_id: str) -> dict | None:
        return await self._fetch(
            "details",
            hotel_id,
            read=self._cache.get_hotel_details,
            write=self._cache.set_hotel_details,
            pool=self._pools.detail,
            call=self._api.get_hotel_details,
            timeout=self._detail_timeout,
        )

    async def fetch_sentiment(self, hotel_id: str) -> dict | None:
        return await self._fetch(
            "sentiment",
            hotel_id,
            read=self._cache.get_hotel_sentiment,
            write=self._cache.set_hotel_sentiment,
            pool=self._pools.sentiment,
            call=self._api.get_hotel_sentiment,
            timeout=self._sentiment_timeout,
        )

    async def _fetch(
        self,
        kind: str,
        hotel_id: str,
        *,
        read: Callable[[str], Awaitable[dict | None]],
        write: Callable[[str, dict], Awaitable[bool]],
        pool: BoundedPool,
        call: Callable[..., Awaitable[dict]],
        timeout: float,
    ) -> dict | None:
        cached = await read(hotel_id)
        if cached is not None:
            logger.debug(f"Cache hit for hotel {kind}: {hotel_id}")
            return cached

        try:
            result = await pool.run(self._call_with_retry, kind, hotel_id, call, timeout)
        except Exception as e:
            logger.warning(f"Failed to get hotel {kind} for {hotel_id}: {type(e).__name__}: {e}")
            return None

        await write(hotel_id, result)
        return result

    async def _call_with_retry(
        self,
        kind: str,
        hotel_id: str,
        call: Callable[..., Awaitable[dict]],
        timeout: float,
    ) -> dict:
        try:
            return await call(hotel_id, timeout=timeout)
        except httpx.HTTPStatusError as e:
            if e.response.status_code != 429:
                raise
            logger.warning(
                f"Rate limited fetching hotel {kind} for {hotel_id}, retrying once in {self._retry_delay}s"
            )

        await asyncio.sleep(self._retry_delay)
        return await call(hotel_id, timeout=timeout)
