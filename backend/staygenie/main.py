import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from staygenie.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", settings.log_level).upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "staygenie.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from staygenie.dependencies import get_cache
from staygenie.routers import search
from staygenie.services.cache_service import CacheService
from staygenie.services.concurrency import ConcurrencyPools
from staygenie.services.guest_insights import GuestInsightGenerator
from staygenie.services.hotel_fetchers import CachedHotelFetcher
from staygenie.services.insight_job import InsightCompletionJob
from staygenie.services.liteapi_client import LiteAPIClient
from staygenie.services.llm_client import LLMClient
from staygenie.services.match_selector import MatchSelector
from staygenie.services.query_parser import HotelQueryParser
from staygenie.services.search_orchestrator import SearchOrchestrator
from staygenie.services.search_poller import SearchPoller
from staygenie.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: build the pipeline and connect the cache
    cache = CacheService(settings.redis_url)
    if not await cache.connect():
        logger.warning("Redis unavailable at startup, will retry lazily on first use")

    api = LiteAPIClient(settings.liteapi_key, settings.liteapi_base_url)
    llm = LLMClient(settings)
    pools = ConcurrencyPools(settings.detail_concurrency, settings.sentiment_concurrency)
    fetcher = CachedHotelFetcher(
        cache,
        api,
        pools,
        detail_timeout=settings.detail_fetch_timeout,
        sentiment_timeout=settings.sentiment_fetch_timeout,
        retry_delay=settings.rate_limit_retry_delay,
    )
    runner = BackgroundTaskRunner()
    job = InsightCompletionJob(
        cache, fetcher, GuestInsightGenerator(llm), stagger_seconds=settings.background_stagger_seconds,
    )
    selector = MatchSelector(
        llm, k=settings.shortlist_size, batch_size=settings.match_batch_size, seed=settings.match_seed,
    )

    app.state.cache = cache
    app.state.runner = runner
    app.state.orchestrator = SearchOrchestrator(
        settings, HotelQueryParser(llm), api, cache, selector, fetcher, job, runner,
    )
    app.state.poller = SearchPoller(cache)

    yield

    # Shutdown
    await runner.shutdown()
    logger.info(f"Background tasks stopped ({runner.completed} completed, {runner.failed} failed)")
    await api.close()
    await cache.disconnect()


app = FastAPI(
    title="StayGenie",
    description="Smart hotel search with progressive guest insights",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router, prefix="/api/hotels", tags=["smart-search"])


@app.get("/api/health")
async def health_check(cache: CacheService = Depends(get_cache)):
    return {
        "status": "ok",
        "service": "staygenie",
        "cache": "connected" if await cache.ping() else "unavailable",
    }
