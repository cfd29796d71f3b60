"""Search orchestrator — runs the staged smart hotel search and dispatches background enrichment."""

import asyncio
import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone

import httpx

from staygenie.config import Settings
from staygenie.errors import NoAvailabilityError, UpstreamUnavailable
from staygenie.schemas.search import HotelMatch, PerformanceInfo, SearchParams, SearchRecord, StepTiming
from staygenie.services.cache_service import CacheService
from staygenie.services.hotel_fetchers import CachedHotelFetcher
from staygenie.services.hotel_summary import (
    apply_budget_filter,
    build_candidate_summaries,
    calculate_price_info,
    extract_images,
    has_offers,
    refundable_policy,
)
from staygenie.services.insight_job import InsightCompletionJob
from staygenie.services.liteapi_client import LiteAPIClient, hotel_id_of
from staygenie.services.match_selector import MatchSelector, RankedPick
from staygenie.services.query_parser import HotelQueryParser
from staygenie.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


class StageTimer:
    """Times pipeline stages and collects the breakdown stored as `performance`."""

    def __init__(self):
        self._start = time.monotonic()
        self.steps: list[StepTiming] = []

    @contextmanager
    def stage(self, step: str):
        timing = StepTiming(step=step)
        self.steps.append(timing)
        started = time.monotonic()
        logger.info(f"Stage {step} started")
        try:
            yield timing
        except Exception as e:
            timing.status = "failed"
            timing.duration_ms = int((time.monotonic() - started) * 1000)
            timing.details.setdefault("error", str(e))
            logger.warning(f"Stage {step} failed after {timing.duration_ms}ms: {e}")
            raise
        timing.status = "completed"
        timing.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"Stage {step} completed in {timing.duration_ms}ms {timing.details}")

    def total_ms(self) -> int:
        return int((time.monotonic() - self._start) * 1000)

    def performance(self) -> PerformanceInfo:
        return PerformanceInfo(
            total_time_ms=self.total_ms(),
            steps=[s.model_copy() for s in self.steps],
        )


class SearchOrchestrator:
    """Staged search: parse, candidates, rates, match, fast enrich, persist, dispatch."""

    def __init__(
        self,
        settings: Settings,
        parser: HotelQueryParser,
        api: LiteAPIClient,
        cache: CacheService,
        selector: MatchSelector,
        fetcher: CachedHotelFetcher,
        job: InsightCompletionJob,
        runner: BackgroundTaskRunner,
    ):
        self._settings = settings
        self._parser = parser
        self._api = api
        self._cache = cache
        self._selector = selector
        self._fetcher = fetcher
        self._job = job
        self._runner = runner

    async def search(self, user_input: str) -> SearchRecord:
        """Run the fast path and return the record with insights still pending.

        The performance block is taken once, before the record is persisted, so
        the response and later polls report the same breakdown; persist timing
        only appears in the stage log.

        Raises SearchPipelineError subclasses for failures without a fallback.
        Nothing is cached when the search fails.
        """
        timer = StageTimer()
        logger.info(f"Smart search: {user_input[:200]!r}")

        with timer.stage("parsing") as step:
            params = await self._parser.parse(user_input)
            step.details.update(city=params.city_name, country=params.country_code, nights=params.nights)

        with timer.stage("hotel_search") as step:
            candidates = await self._fetch_candidates(params)
            step.details["candidates"] = len(candidates)

        with timer.stage("rates_search") as step:
            bookable = await self._fetch_bookable(params, candidates)
            step.details["bookable"] = len(bookable)

        with timer.stage("summary_build") as step:
            summaries = build_candidate_summaries(candidates, bookable, params.nights)
            if not summaries:
                raise NoAvailabilityError(
                    "No available hotels could be matched to directory data", step="rates_search",
                )
            pool = apply_budget_filter(
                summaries, params.min_cost, params.max_cost, min_pool=self._settings.budget_min_pool,
            )
            step.details.update(summaries=len(summaries), matchPool=len(pool))

        with timer.stage("match_select") as step:
            picks = await self._selector.select(pool, params)
            step.details["selected"] = len(picks)

        with timer.stage("fast_enrich") as step:
            recommendations = await self._fast_enrich(picks, candidates, bookable, params)
            step.details["hotels"] = len(recommendations)

        search_id = str(uuid.uuid4())
        record = SearchRecord(
            search_id=search_id,
            search_params=params,
            recommendations=recommendations,
            insights_pending=True,
            generated_at=datetime.now(timezone.utc),
            total_hotels_found=len(candidates),
            hotels_with_rates=len(bookable),
            ai_recommendations_count=len(recommendations),
            performance=timer.performance(),
        )

        with timer.stage("persist") as step:
            stored = await self._cache.set_search_results(
                search_id, record.model_dump(mode="json", by_alias=True),
            )
            step.details["stored"] = stored
        if not stored:
            logger.warning(f"Search {search_id} could not be cached; polling will not find it")

        self._runner.submit(f"insights:{search_id}", self._job.run(search_id, recommendations))

        logger.info(
            f"Smart search {search_id} returned {len(recommendations)} hotels in "
            f"{timer.total_ms()}ms, insights loading in background"
        )
        return record

    async def _fetch_candidates(self, params: SearchParams) -> list[dict]:
        try:
            candidates = await self._api.search_hotels(
                params.country_code,
                params.city_name,
                limit=self._settings.smart_hotel_limit,
                timeout=self._settings.directory_timeout,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"Hotel directory lookup failed: {e}", step="hotel_search") from e

        candidates = [c for c in candidates if hotel_id_of(c)]
        if not candidates:
            raise NoAvailabilityError(
                f"No hotels found in {params.city_name}, {params.country_code}", step="hotel_search",
            )
        return candidates

    async def _fetch_bookable(self, params: SearchParams, candidates: list[dict]) -> list[dict]:
        try:
            rates = await self._api.fetch_rates(
                [hotel_id_of(c) for c in candidates],
                params.checkin,
                params.checkout,
                adults=params.adults,
                children=params.children,
                timeout=self._settings.rates_timeout,
            )
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamUnavailable(f"Rate lookup failed: {e}", step="rates_search") from e

        bookable = [r for r in rates if hotel_id_of(r) and has_offers(r)]
        if not bookable:
            raise NoAvailabilityError(
                "No hotels have availability for the selected dates", step="rates_search",
            )
        return bookable

    async def _fast_enrich(
        self,
        picks: list[RankedPick],
        candidates: list[dict],
        bookable: list[dict],
        params: SearchParams,
    ) -> list[HotelMatch]:
        """Fetch details for the shortlist only; late fetches are left running, not awaited."""
        tasks = {
            pick.hotel_id: asyncio.create_task(
                self._fetcher.fetch_details(pick.hotel_id), name=f"details:{pick.hotel_id}",
            )
            for pick in picks
        }
        details: dict[str, dict] = {}
        if tasks:
            done, pending = await asyncio.wait(
                tasks.values(), timeout=self._settings.fast_enrich_timeout,
            )
            if pending:
                logger.warning(
                    f"{len(pending)} detail fetches still running after "
                    f"{self._settings.fast_enrich_timeout}s, using directory data"
                )
                for task in pending:
                    self._runner.adopt(task.get_name(), task)
            for hotel_id, task in tasks.items():
                if task in done and not task.cancelled() and task.exception() is None and task.result():
                    details[hotel_id] = task.result()

        metadata_by_id = {hotel_id_of(c): c for c in candidates}
        rates_by_id = {hotel_id_of(r): r for r in bookable}

        return [
            self._build_match(pick, metadata_by_id.get(pick.hotel_id, {}), rates_by_id.get(pick.hotel_id, {}),
                              details.get(pick.hotel_id), params.nights)
            for pick in picks
        ]

    @staticmethod
    def _build_match(
        pick: RankedPick,
        metadata: dict,
        rate_hotel: dict,
        details: dict | None,
        nights: int,
    ) -> HotelMatch:
        summary = pick.summary
        price = calculate_price_info(rate_hotel, nights)
        is_refundable, refundable_info = refundable_policy(rate_hotel)
        address = summary.address
        if details and isinstance(details.get("address"), str) and details["address"]:
            address = details["address"]

        return HotelMatch(
            hotel_id=summary.hotel_id,
            name=summary.name,
            match_score=int(pick.match_score),
            score_source=pick.score_source,
            star_rating=summary.star_rating,
            price_per_night=price.price_per_night,
            price_range=price.price_range,
            why_it_matches=pick.why_it_matches,
            fun_facts=pick.fun_facts,
            nearby_attractions=pick.nearby_attractions,
            location_highlight=pick.location_highlight,
            images=extract_images(metadata, details),
            address=address,
            city=summary.city,
            country=summary.country,
            latitude=summary.latitude,
            longitude=summary.longitude,
            top_amenities=summary.top_amenities,
            is_refundable=is_refundable,
            refundable_info=refundable_info,
        )

