"""HTTP surface tests with the pipeline services replaced by doubles."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from staygenie.dependencies import get_cache, get_orchestrator, get_poller
from staygenie.errors import NoAvailabilityError, QueryValidationError, SearchNotFound, UpstreamUnavailable
from staygenie.main import app
from staygenie.schemas.search import (
    HotelMatch,
    SearchParams,
    SearchRecord,
    SearchResultResponse,
    SearchStatusResponse,
)


def _record() -> SearchRecord:
    return SearchRecord(
        search_id="3f1c1f0e-8a39-4b55-9b53-0b1f7c2b9d10",
        search_params=SearchParams(
            checkin=date(2026, 11, 5), checkout=date(2026, 11, 8), city_name="Lisbon", country_code="PT", nights=3,
        ),
        recommendations=[HotelMatch(hotel_id="H1", name="Hotel 1", match_score=91)],
        generated_at=datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc),
        total_hotels_found=40,
        hotels_with_rates=25,
        ai_recommendations_count=1,
    )


@pytest.fixture
def orchestrator() -> AsyncMock:
    mock = AsyncMock()
    mock.search = AsyncMock(return_value=_record())
    return mock


@pytest.fixture
def poller() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def client(orchestrator, poller, cache):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_poller] = lambda: poller
    app.dependency_overrides[get_cache] = lambda: cache
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSmartSearch:
    def test_returns_camel_case_record(self, client, orchestrator):
        response = client.post("/api/hotels/smart-search", json={"userInput": "Lisbon rooftop pool"})

        assert response.status_code == 200
        body = response.json()
        assert body["searchId"] == "3f1c1f0e-8a39-4b55-9b53-0b1f7c2b9d10"
        assert body["insightsPending"] is True
        assert body["totalHotelsFound"] == 40
        assert body["recommendations"][0]["guestInsights"] == "Loading insights..."
        assert body["recommendations"][0]["matchScore"] == 91
        orchestrator.search.assert_awaited_once_with("Lisbon rooftop pool")

    def test_empty_input_rejected(self, client):
        assert client.post("/api/hotels/smart-search", json={"userInput": ""}).status_code == 422

    @pytest.mark.parametrize(
        "error, status",
        [
            (QueryValidationError("missing city", step="parsing"), 400),
            (NoAvailabilityError("no availability", step="rates_search"), 404),
            (UpstreamUnavailable("directory down", step="hotel_search"), 502),
        ],
    )
    def test_pipeline_errors_mapped(self, client, orchestrator, error, status):
        orchestrator.search.side_effect = error

        response = client.post("/api/hotels/smart-search", json={"userInput": "somewhere"})

        assert response.status_code == status
        detail = response.json()["detail"]
        assert detail["error"] == error.error
        assert detail["message"] == error.message
        assert detail["step"] == error.step

    def test_unexpected_error_is_500(self, client, orchestrator):
        orchestrator.search.side_effect = KeyError("oops")

        response = client.post("/api/hotels/smart-search", json={"userInput": "Lisbon"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "Smart search failed"


class TestPolling:
    def test_result(self, client, poller):
        poller.get_result.return_value = SearchResultResponse(
            search_id="s1",
            insights_pending=False,
            insights={},
            updated_at=datetime(2026, 10, 18, 9, 1, tzinfo=timezone.utc),
            recommendations=[HotelMatch(hotel_id="H1", name="Hotel 1", match_score=91)],
        )

        response = client.get("/api/hotels/sentiment/s1")

        assert response.status_code == 200
        body = response.json()
        assert body["insightsPending"] is False
        assert body["updatedAt"].startswith("2026-10-18T09:01")
        assert body["recommendations"][0]["hotelId"] == "H1"

    def test_status(self, client, poller):
        poller.get_status.return_value = SearchStatusResponse(search_id="s1", completed=False, hotel_count=5)

        response = client.get("/api/hotels/sentiment/s1/status")

        assert response.json() == {"searchId": "s1", "completed": False, "updatedAt": None, "hotelCount": 5}

    def test_unknown_search_is_404(self, client, poller):
        poller.get_result.side_effect = SearchNotFound("missing")
        poller.get_status.side_effect = SearchNotFound("missing")

        result = client.get("/api/hotels/sentiment/missing")
        status = client.get("/api/hotels/sentiment/missing/status")

        assert result.status_code == 404
        assert result.json()["detail"]["message"] == "Search results not found or expired"
        assert status.status_code == 404


class TestHealth:
    def test_reports_cache_state(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "service": "staygenie", "cache": "connected"}

    def test_cache_unavailable(self, client, fake_redis):
        fake_redis.fail = True

        assert client.get("/api/health").json()["cache"] == "unavailable"
