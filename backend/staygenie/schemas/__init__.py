from staygenie.schemas.search import (
    INSIGHTS_PLACEHOLDER,
    EnrichmentPayload,
    HotelMatch,
    PerformanceInfo,
    PriceRange,
    PriceSnapshot,
    SearchParams,
    SearchRecord,
    SearchResultResponse,
    SearchStatusResponse,
    SentimentCategory,
    SmartSearchRequest,
    StepTiming,
)

__all__ = [
    "INSIGHTS_PLACEHOLDER",
    "EnrichmentPayload",
    "HotelMatch",
    "PerformanceInfo",
    "PriceRange",
    "PriceSnapshot",
    "SearchParams",
    "SearchRecord",
    "SearchResultResponse",
    "SearchStatusResponse",
    "SentimentCategory",
    "SmartSearchRequest",
    "StepTiming",
]
