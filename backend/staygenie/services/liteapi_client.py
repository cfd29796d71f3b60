"""LiteAPI client — adapter for hotel directory, rates, details, and review sentiment."""

import logging
from datetime import date
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Age assumed for each child in an occupancy
DEFAULT_CHILD_AGE = 10


def extract_hotel_list(payload: Any) -> list[dict]:
    """Pull the hotel array out of a LiteAPI response, whatever envelope it came in."""
    data = payload.get("data", payload) if isinstance(payload, dict) else payload
    if isinstance(data, list):
        return [h for h in data if isinstance(h, dict)]
    if isinstance(data, dict):
        for key in ("hotels", "data", "results"):
            if isinstance(data.get(key), list):
                return [h for h in data[key] if isinstance(h, dict)]
        if data:
            return [data]
    return []


def hotel_id_of(hotel: dict) -> str | None:
    hotel_id = hotel.get("hotelId") or hotel.get("id") or hotel.get("hotel_id") or hotel.get("code")
    return str(hotel_id) if hotel_id else None


class LiteAPIClient:
    """Adapter for the LiteAPI v3 hotel endpoints."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.liteapi.travel/v3.0",
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "X-API-Key": self._api_key,
                    "Content-Type": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search_hotels(
        self,
        country_code: str,
        city_name: str,
        limit: int = 50,
        timeout: float = 12.0,
    ) -> list[dict]:
        """List candidate hotels with static metadata for a destination."""
        client = await self._get_client()
        resp = await client.get(
            "/data/hotels",
            params={
                "countryCode": country_code,
                "cityName": city_name,
                "language": "en",
                "limit": limit,
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        return extract_hotel_list(resp.json())

    async def fetch_rates(
        self,
        hotel_ids: list[str],
        checkin: date,
        checkout: date,
        adults: int = 2,
        children: int = 0,
        timeout: float = 20.0,
    ) -> list[dict]:
        """Fetch offers for the given hotels. Hotels without offers are absent from the result."""
        client = await self._get_client()
        resp = await client.post(
            "/hotels/rates",
            json={
                "checkin": checkin.isoformat(),
                "checkout": checkout.isoformat(),
                "currency": "USD",
                "guestNationality": "US",
                "occupancies": [
                    {
                        "adults": adults,
                        "children": [DEFAULT_CHILD_AGE] * children,
                    }
                ],
                "timeout": 10,
                "hotelIds": hotel_ids,
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        return extract_hotel_list(resp.json())

    async def get_hotel_details(self, hotel_id: str, timeout: float = 8.0) -> dict:
        client = await self._get_client()
        resp = await client.get("/data/hotel", params={"hotelId": hotel_id}, timeout=timeout)
        resp.raise_for_status()
        payload = resp.json()
        details = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(details, dict):
            raise ValueError(f"Unexpected hotel details payload for {hotel_id}")
        return details

    async def get_hotel_sentiment(self, hotel_id: str, timeout: float = 8.0) -> dict:
        client = await self._get_client()
        resp = await client.get(
            "/data/reviews",
            params={
                "hotelId": hotel_id,
                "limit": 1,
                "timeout": 3,
                "getSentiment": "true",
            },
            timeout=timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected sentiment payload for {hotel_id}")
        return payload
