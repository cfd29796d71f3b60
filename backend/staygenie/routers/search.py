"""Smart search router — staged hotel search and insight polling."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from staygenie.dependencies import get_orchestrator, get_poller
from staygenie.errors import SearchPipelineError
from staygenie.schemas.search import (
    SearchRecord,
    SearchResultResponse,
    SearchStatusResponse,
    SmartSearchRequest,
)
from staygenie.services.search_orchestrator import SearchOrchestrator
from staygenie.services.search_poller import SearchPoller

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/smart-search", response_model=SearchRecord, response_model_by_alias=True)
async def smart_search(
    req: SmartSearchRequest,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
):
    """Return the shortlist immediately; guest insights arrive via polling."""
    try:
        return await orchestrator.search(req.user_input)
    except SearchPipelineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
    except Exception as e:
        logger.exception(f"Smart search failed unexpectedly: {e}")
        raise HTTPException(
            status_code=500,
            detail={"error": "Smart search failed", "message": str(e)},
        )


@router.get("/sentiment/{search_id}", response_model=SearchResultResponse, response_model_by_alias=True)
async def get_search_insights(
    search_id: str,
    poller: SearchPoller = Depends(get_poller),
):
    try:
        return await poller.get_result(search_id)
    except SearchPipelineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get("/sentiment/{search_id}/status", response_model=SearchStatusResponse, response_model_by_alias=True)
async def get_search_status(
    search_id: str,
    poller: SearchPoller = Depends(get_poller),
):
    try:
        return await poller.get_status(search_id)
    except SearchPipelineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
