"""Request dependencies — hand out the services built in the application lifespan."""

from fastapi import Request

from staygenie.services.cache_service import CacheService
from staygenie.services.search_orchestrator import SearchOrchestrator
from staygenie.services.search_poller import SearchPoller


def get_orchestrator(request: Request) -> SearchOrchestrator:
    return request.app.state.orchestrator


def get_poller(request: Request) -> SearchPoller:
    return request.app.state.poller


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache
