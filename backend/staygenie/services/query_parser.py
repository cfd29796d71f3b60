"""Query parser — uses the LLM to turn a free-text hotel request into search parameters."""

import json
import logging
import math
from collections.abc import Callable
from datetime import date, timedelta

from staygenie.errors import QueryValidationError, UpstreamUnavailable
from staygenie.schemas.search import SearchParams
from staygenie.services.llm_client import LLMClient, strip_code_fences

logger = logging.getLogger(__name__)

MAX_STAY_NIGHTS = 30
MAX_ADULTS = 10
MAX_CHILDREN = 8
REQUIRED_FIELDS = ("checkin", "checkout", "countryCode", "cityName")

SYSTEM_PROMPT = """You are a hotel search query parser. Given a natural language hotel request,
extract structured search parameters. Today's date is {today}.

Rules:
- Resolve relative dates ("next weekend", "this Friday") against today's date
- If only a check-in date and a length of stay are given, compute the checkout
- If no dates are given at all, use check-in 30 days from today for 2 nights
- countryCode is the ISO 3166-1 alpha-2 code of the destination country
- cityName is the city to search; map landmarks and regions to the nearest gateway city
- Default adults: 2. Default children: 0
- minCost / maxCost are per-night budget bounds in USD, null when not mentioned
  ("budget" alone means maxCost 150, "luxury" alone means minCost 300)
- aiSearch holds every preference that is not a date, place, guest count or budget
  (amenities, vibe, neighbourhood, "near the beach"), as a short phrase; "" if none

Respond ONLY with valid JSON, no markdown, no preamble:
{{
    "checkin": "YYYY-MM-DD",
    "checkout": "YYYY-MM-DD",
    "countryCode": "PT",
    "cityName": "Lisbon",
    "adults": 2,
    "children": 0,
    "minCost": null,
    "maxCost": 150,
    "aiSearch": "with pool"
}}"""


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 rolled into a non-leap year
        return d.replace(year=d.year + years, day=28)


def ensure_future_dates(checkin: date, checkout: date, today: date) -> tuple[date, date]:
    """Roll past stays forward a year, keep checkout after checkin, cap the stay length."""
    tomorrow = today + timedelta(days=1)
    if checkin < tomorrow:
        nights = max(1, (checkout - checkin).days)
        checkin = _add_years(checkin, 1)
        checkout = checkin + timedelta(days=nights)

    if checkout <= checkin:
        checkout = checkin + timedelta(days=1)

    max_checkout = checkin + timedelta(days=MAX_STAY_NIGHTS)
    if checkout > max_checkout:
        checkout = max_checkout

    return checkin, checkout


class HotelQueryParser:
    """Parses natural language hotel requests into SearchParams."""

    def __init__(self, llm: LLMClient, today: Callable[[], date] = date.today):
        self._llm = llm
        self._today = today

    async def parse(self, text: str, max_retries: int = 1) -> SearchParams:
        """Parse a free-text request.

        Raises QueryValidationError when required fields cannot be extracted and
        UpstreamUnavailable when the LLM itself is down.
        """
        today = self._today()
        system = SYSTEM_PROMPT.format(today=today.isoformat())

        parsed: dict | None = None
        llm_error: Exception | None = None
        for attempt in range(max_retries + 1):
            raw = ""
            try:
                raw = await self._llm.complete(
                    system=system, user=text, max_tokens=400, temperature=0, json_mode=True,
                )
                candidate = json.loads(strip_code_fences(raw))
                if not isinstance(candidate, dict):
                    raise ValueError("Parser output is not a JSON object")
                parsed = candidate
                break
            except RuntimeError as e:
                llm_error = e
                logger.error(f"Query parse attempt {attempt + 1}: LLM error: {e}")
            except ValueError as e:
                logger.warning(f"Query parse attempt {attempt + 1}: invalid JSON response: {e}\nRaw: {raw[:500]}")

        if parsed is None:
            if llm_error is not None:
                raise UpstreamUnavailable(f"Query parser unavailable: {llm_error}", step="parsing")
            raise QueryValidationError(
                "Could not extract search parameters from your input", step="parsing",
            )

        return self._to_search_params(parsed, today)

    @staticmethod
    def _to_search_params(parsed: dict, today: date) -> SearchParams:
        missing = [f for f in REQUIRED_FIELDS if not parsed.get(f)]
        if missing:
            raise QueryValidationError(
                f"Could not extract all required search parameters from your input (missing: {', '.join(missing)})",
                step="parsing",
            )

        try:
            checkin = date.fromisoformat(str(parsed["checkin"]))
            checkout = date.fromisoformat(str(parsed["checkout"]))
        except ValueError as e:
            raise QueryValidationError(f"Invalid stay dates: {e}", step="parsing") from e

        checkin, checkout = ensure_future_dates(checkin, checkout, today)

        min_cost = _as_cost(parsed.get("minCost"))
        max_cost = _as_cost(parsed.get("maxCost"))
        if min_cost is not None and max_cost is not None and min_cost > max_cost:
            min_cost, max_cost = max_cost, min_cost

        return SearchParams(
            checkin=checkin,
            checkout=checkout,
            city_name=str(parsed["cityName"]).strip(),
            country_code=str(parsed["countryCode"]).strip().upper(),
            adults=min(MAX_ADULTS, max(1, _as_int(parsed.get("adults"), 2))),
            children=min(MAX_CHILDREN, max(0, _as_int(parsed.get("children"), 0))),
            min_cost=min_cost,
            max_cost=max_cost,
            ai_search=str(parsed.get("aiSearch") or "").strip(),
            nights=(checkout - checkin).days,
        )


def _as_int(value, default: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return int(number) if math.isfinite(number) else default


def _as_cost(value) -> float | None:
    try:
        cost = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    # negative, zero, NaN and infinite budgets mean "not given"
    return cost if math.isfinite(cost) and cost > 0 else None
