from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

INSIGHTS_PLACEHOLDER = "Loading insights..."


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SmartSearchRequest(CamelModel):
    user_input: str = Field(min_length=1)


class SearchParams(CamelModel):
    checkin: date
    checkout: date
    city_name: str
    country_code: str
    adults: int = 2
    children: int = 0
    min_cost: float | None = None
    max_cost: float | None = None
    ai_search: str = ""
    nights: int = 1
    currency: str = "USD"


class PriceRange(CamelModel):
    min: float
    max: float
    currency: str = "USD"
    display: str


class PriceSnapshot(CamelModel):
    amount: int
    total_amount: float
    currency: str = "USD"
    display: str
    provider: str | None = None
    is_supplier_price: bool = False


class SentimentCategory(CamelModel):
    name: str
    rating: float
    description: str = ""


class EnrichmentPayload(CamelModel):
    guest_insights: str
    sentiment_categories: list[SentimentCategory] = Field(default_factory=list)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    source: Literal["llm", "template"] = "template"
    updated_at: datetime


class HotelMatch(CamelModel):
    hotel_id: str
    name: str
    match_score: int = Field(ge=0, le=100)
    score_source: Literal["llm", "heuristic"] = "llm"
    star_rating: float = 0
    price_per_night: PriceSnapshot | None = None
    price_range: PriceRange | None = None
    why_it_matches: str = ""
    fun_facts: list[str] = Field(default_factory=list)
    nearby_attractions: list[str] = Field(default_factory=list)
    location_highlight: str = "Great location"
    images: list[str] = Field(default_factory=list)
    address: str = "Address not available"
    city: str = "Unknown City"
    country: str = "Unknown Country"
    latitude: float | None = None
    longitude: float | None = None
    top_amenities: list[str] = Field(default_factory=list)
    is_refundable: bool = False
    refundable_info: str = "Refund policy not specified"
    guest_insights: str = INSIGHTS_PLACEHOLDER
    sentiment_data: dict | None = None


class StepTiming(CamelModel):
    step: str
    duration_ms: int | None = None
    status: Literal["started", "completed", "failed"] = "started"
    details: dict = Field(default_factory=dict)


class PerformanceInfo(CamelModel):
    total_time_ms: int
    staged: bool = True
    steps: list[StepTiming] = Field(default_factory=list)


class SearchRecord(CamelModel):
    search_id: str
    search_params: SearchParams
    recommendations: list[HotelMatch]
    insights_pending: bool = True
    insights: dict[str, EnrichmentPayload] | None = None
    generated_at: datetime
    updated_at: datetime | None = None
    total_hotels_found: int = 0
    hotels_with_rates: int = 0
    ai_recommendations_count: int = 0
    performance: PerformanceInfo | None = None


class SearchResultResponse(CamelModel):
    search_id: str
    insights_pending: bool
    insights: dict[str, EnrichmentPayload] | None = None
    updated_at: datetime | None = None
    recommendations: list[HotelMatch] = Field(default_factory=list)


class SearchStatusResponse(CamelModel):
    search_id: str
    completed: bool
    updated_at: datetime | None = None
    hotel_count: int = 0
