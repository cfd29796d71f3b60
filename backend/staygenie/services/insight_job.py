"""Insight completion job — enriches a stored search with guest sentiment in the background."""

import asyncio
import logging
import time
from datetime import datetime, timezone

from staygenie.schemas.search import EnrichmentPayload, HotelMatch
from staygenie.services.cache_service import CacheService
from staygenie.services.guest_insights import GuestInsightGenerator, template_insight
from staygenie.services.hotel_fetchers import CachedHotelFetcher

logger = logging.getLogger(__name__)


class InsightCompletionJob:
    """Fetches sentiment for each shortlisted hotel and merges the results once.

    Items are staggered by index to spread load on the reviews endpoint; each
    item always produces a payload (LLM insight or template), and the record is
    updated with a single merge after every item settles.
    """

    def __init__(
        self,
        cache: CacheService,
        fetcher: CachedHotelFetcher,
        insights: GuestInsightGenerator,
        stagger_seconds: float = 0.3,
    ):
        self._cache = cache
        self._fetcher = fetcher
        self._insights = insights
        self._stagger_seconds = stagger_seconds

    async def run(self, search_id: str, hotels: list[HotelMatch]) -> bool:
        start = time.monotonic()
        logger.info(f"Insight job for {search_id}: enriching {len(hotels)} hotels")

        results = await asyncio.gather(
            *[self._enrich(index, hotel) for index, hotel in enumerate(hotels)],
            return_exceptions=True,
        )

        enrichment: dict[str, EnrichmentPayload] = {}
        for hotel, result in zip(hotels, results):
            if isinstance(result, BaseException):
                logger.warning(f"Insight for {hotel.hotel_id} failed, using template: {result}")
                result = EnrichmentPayload(
                    guest_insights=template_insight(hotel.hotel_id),
                    source="template",
                    updated_at=datetime.now(timezone.utc),
                )
            enrichment[hotel.hotel_id] = result

        updated = await self._cache.update_search_enrichment(search_id, enrichment)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        if updated:
            llm_count = sum(1 for p in enrichment.values() if p.source == "llm")
            logger.info(
                f"Insight job for {search_id} done in {elapsed_ms}ms "
                f"({llm_count} llm, {len(enrichment) - llm_count} template)"
            )
        else:
            logger.info(f"Insight job for {search_id}: record expired or rejected, nothing merged")
        return updated

    async def _enrich(self, index: int, hotel: HotelMatch) -> EnrichmentPayload:
        if index and self._stagger_seconds:
            await asyncio.sleep(index * self._stagger_seconds)
        sentiment = await self._fetcher.fetch_sentiment(hotel.hotel_id)
        return await self._insights.build_payload(hotel.hotel_id, hotel.name, sentiment)
