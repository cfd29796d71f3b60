"""Unit tests for the LiteAPI adapter using httpx.MockTransport."""

import json
from datetime import date

import httpx
import pytest

from staygenie.services.liteapi_client import LiteAPIClient, extract_hotel_list, hotel_id_of

BASE_URL = "https://api.test/v3.0"


def _client(handler) -> LiteAPIClient:
    http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=BASE_URL,
        headers={"X-API-Key": "test-key"},
    )
    return LiteAPIClient("test-key", BASE_URL, http_client=http_client)


class TestEnvelopeHelpers:
    def test_extract_hotel_list_shapes(self):
        assert extract_hotel_list({"data": [{"id": "H1"}, "junk"]}) == [{"id": "H1"}]
        assert extract_hotel_list({"data": {"hotels": [{"id": "H2"}]}}) == [{"id": "H2"}]
        assert extract_hotel_list([{"id": "H3"}]) == [{"id": "H3"}]
        assert extract_hotel_list({"data": {"id": "H4"}}) == [{"id": "H4"}]
        assert extract_hotel_list({"data": None}) == []
        assert extract_hotel_list("nope") == []

    def test_hotel_id_of(self):
        assert hotel_id_of({"hotelId": "lp1"}) == "lp1"
        assert hotel_id_of({"id": 42}) == "42"
        assert hotel_id_of({"name": "No id"}) is None


class TestLiteAPIClient:
    async def test_search_hotels_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": [{"id": "H1", "name": "Hotel 1"}]})

        hotels = await _client(handler).search_hotels("PT", "Lisbon", limit=50)

        assert hotels == [{"id": "H1", "name": "Hotel 1"}]
        params = seen[0].url.params
        assert seen[0].url.path == "/v3.0/data/hotels"
        assert params["countryCode"] == "PT"
        assert params["cityName"] == "Lisbon"
        assert params["limit"] == "50"
        assert seen[0].headers["X-API-Key"] == "test-key"

    async def test_fetch_rates_body(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"data": [{"hotelId": "H1", "roomTypes": []}]})

        rates = await _client(handler).fetch_rates(
            ["H1", "H2"], date(2026, 11, 5), date(2026, 11, 8), adults=2, children=2,
        )

        assert rates == [{"hotelId": "H1", "roomTypes": []}]
        body = seen[0]
        assert body["checkin"] == "2026-11-05"
        assert body["checkout"] == "2026-11-08"
        assert body["currency"] == "USD"
        assert body["occupancies"] == [{"adults": 2, "children": [10, 10]}]
        assert body["hotelIds"] == ["H1", "H2"]

    async def test_hotel_details_unwraps_data(self):
        def handler(request):
            assert request.url.params["hotelId"] == "H1"
            return httpx.Response(200, json={"data": {"id": "H1", "main_photo": "m.jpg"}})

        assert await _client(handler).get_hotel_details("H1") == {"id": "H1", "main_photo": "m.jpg"}

    async def test_hotel_details_unexpected_payload(self):
        with pytest.raises(ValueError):
            await _client(lambda request: httpx.Response(200, json={"data": []})).get_hotel_details("H1")

    async def test_sentiment_query(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"sentimentAnalysis": {"pros": ["staff"]}})

        payload = await _client(handler).get_hotel_sentiment("H1")

        assert payload["sentimentAnalysis"]["pros"] == ["staff"]
        assert seen[0].url.params["getSentiment"] == "true"
        assert seen[0].url.params["limit"] == "1"

    async def test_error_status_raises(self):
        client = _client(lambda request: httpx.Response(429))

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            await client.get_hotel_sentiment("H1")

        assert exc_info.value.response.status_code == 429

    async def test_close_is_idempotent(self):
        client = _client(lambda request: httpx.Response(200, json={}))
        await client.close()
        await client.close()
