"""Search poller — read-only views of a stored search for progressive completion."""

import logging

from pydantic import ValidationError

from staygenie.errors import SearchNotFound
from staygenie.schemas.search import SearchRecord, SearchResultResponse, SearchStatusResponse
from staygenie.services.cache_service import CacheService

logger = logging.getLogger(__name__)


class SearchPoller:
    def __init__(self, cache: CacheService):
        self._cache = cache

    async def _load(self, search_id: str) -> SearchRecord:
        raw = await self._cache.get_search_results(search_id)
        if raw is None:
            raise SearchNotFound(search_id)
        try:
            return SearchRecord.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Stored search {search_id} is unreadable: {e}")
            raise SearchNotFound(search_id) from e

    async def get_result(self, search_id: str) -> SearchResultResponse:
        record = await self._load(search_id)
        return SearchResultResponse(
            search_id=search_id,
            insights_pending=record.insights_pending,
            insights=record.insights,
            updated_at=record.updated_at,
            recommendations=record.recommendations,
        )

    async def get_status(self, search_id: str) -> SearchStatusResponse:
        record = await self._load(search_id)
        return SearchStatusResponse(
            search_id=search_id,
            completed=not record.insights_pending,
            updated_at=record.updated_at,
            hotel_count=len(record.recommendations),
        )
