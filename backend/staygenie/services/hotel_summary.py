"""Hotel summary helpers — compact candidate summaries and display data from LiteAPI payloads."""

import logging
from dataclasses import dataclass, field

from staygenie.schemas.search import PriceRange, PriceSnapshot
from staygenie.services.liteapi_client import hotel_id_of

logger = logging.getLogger(__name__)

DEFAULT_AMENITIES = ["Wi-Fi", "Air Conditioning", "Private Bathroom"]
MAX_IMAGES = 8
DESCRIPTION_CHARS = 100

# Upper bound (exclusive) of nightly USD price for each bracket
PRICE_BRACKETS = [(100, "$"), (200, "$$"), (350, "$$$")]


@dataclass
class PriceInfo:
    nightly_price: float | None = None
    display: str = "Price not available"
    price_range: PriceRange | None = None
    price_per_night: PriceSnapshot | None = None


@dataclass
class CandidateSummary:
    index: int
    hotel_id: str
    name: str
    star_rating: float = 0
    city: str = "Unknown City"
    country: str = "Unknown Country"
    address: str = "Location not available"
    latitude: float | None = None
    longitude: float | None = None
    description: str = "No description available"
    top_amenities: list[str] = field(default_factory=list)
    price_display: str = "Price not available"
    nightly_price: float | None = None

    @property
    def price_bracket(self) -> str:
        return price_bracket(self.nightly_price)


def price_bracket(nightly_price: float | None) -> str:
    if nightly_price is None:
        return "?"
    for ceiling, label in PRICE_BRACKETS:
        if nightly_price < ceiling:
            return label
    return "$$$$"


def star_rating_of(info: dict) -> float:
    for key in ("stars", "starRating", "rating"):
        value = info.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return 0.0


def _as_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coordinates_of(info: dict) -> tuple[float | None, float | None]:
    for source in (info, info.get("location"), info.get("coordinates")):
        if isinstance(source, dict) and _as_float(source.get("latitude")) is not None:
            return _as_float(source.get("latitude")), _as_float(source.get("longitude"))
    return None, None


def top_amenities(info: dict) -> list[str]:
    """First three amenity names, padded with common defaults."""
    amenities: list[str] = []
    for amenity in info.get("amenities") or []:
        if isinstance(amenity, str):
            amenities.append(amenity)
        elif isinstance(amenity, dict) and amenity.get("name"):
            amenities.append(str(amenity["name"]))
        if len(amenities) == 3:
            break

    for default in DEFAULT_AMENITIES:
        if len(amenities) >= 3:
            break
        if default not in amenities:
            amenities.append(default)
    return amenities[:3]


def extract_images(metadata: dict, details: dict | None = None) -> list[str]:
    """Gallery URLs: main photo and thumbnail first, then detail images, deduplicated."""
    images: list[str] = []
    for info in (details or {}, metadata):
        for key in ("main_photo", "thumbnail"):
            if isinstance(info.get(key), str):
                images.append(info[key])
        for image in (info.get("hotelImages") or [])[:6]:
            if isinstance(image, str):
                images.append(image)
            elif isinstance(image, dict):
                url = image.get("urlHd") or image.get("url")
                if url:
                    images.append(url)
        for image in info.get("images") or []:
            if isinstance(image, str):
                images.append(image)

    return list(dict.fromkeys(images))[:MAX_IMAGES]


def _rates_of(rate_hotel: dict) -> list[dict]:
    rates = []
    for room in rate_hotel.get("roomTypes") or []:
        if isinstance(room, dict):
            rates.extend(r for r in room.get("rates") or [] if isinstance(r, dict))
    return rates


def has_offers(rate_hotel: dict) -> bool:
    return bool(_rates_of(rate_hotel))


def _first_amount(entries) -> tuple[float | None, dict]:
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        amount = entries[0].get("amount")
        if isinstance(amount, (int, float)):
            return float(amount), entries[0]
    return None, {}


def calculate_price_info(rate_hotel: dict, nights: int) -> PriceInfo:
    """Nightly price, range, and display string from a hotel's offers."""
    totals = []
    currency = "USD"
    suggested: tuple[float, str] | None = None

    for rate in _rates_of(rate_hotel):
        retail = rate.get("retailRate") or {}
        total, total_entry = _first_amount(retail.get("total"))
        if total is None:
            continue
        if not totals:
            currency = total_entry.get("currency") or "USD"
        totals.append(total)

        ssp, ssp_entry = _first_amount(retail.get("suggestedSellingPrice"))
        if suggested is None and ssp is not None and ssp_entry.get("source"):
            suggested = (ssp, ssp_entry["source"])

    if not totals:
        return PriceInfo()

    low, high = min(totals), max(totals)
    price_range = PriceRange(
        min=low,
        max=high,
        currency=currency,
        display=f"{low:g}" if low == high else f"{low:g} - {high:g}",
    )
    if nights <= 0:
        return PriceInfo(price_range=price_range)

    if suggested is not None:
        total_amount, provider = suggested
        snapshot = PriceSnapshot(
            amount=round(total_amount / nights),
            total_amount=total_amount,
            currency=currency,
            display=f"{round(total_amount / nights)}/night",
            provider=provider,
            is_supplier_price=True,
        )
    else:
        snapshot = PriceSnapshot(
            amount=round(low / nights),
            total_amount=low,
            currency=currency,
            display=f"{round(low / nights)}/night",
        )

    display = snapshot.display
    if snapshot.provider:
        display = f"{display} ({snapshot.provider})"

    return PriceInfo(
        nightly_price=float(snapshot.amount),
        display=display,
        price_range=price_range,
        price_per_night=snapshot,
    )


def refundable_policy(rate_hotel: dict) -> tuple[bool, str]:
    """Whether any offer is refundable, plus a human-readable summary."""
    refundable = non_refundable = False
    for rate in _rates_of(rate_hotel):
        tag = str((rate.get("cancellationPolicies") or {}).get("refundableTag") or "")
        if not tag:
            continue
        if tag == "RFN" or ("refund" in tag.lower() and "non" not in tag.lower()):
            refundable = True
        elif tag == "NRF" or "non" in tag.lower():
            non_refundable = True

    if refundable and non_refundable:
        return True, "Mixed refund policies available"
    if refundable:
        return True, "Refundable rates available"
    if non_refundable:
        return False, "Non-refundable rates only"
    if not _rates_of(rate_hotel):
        return False, "No rate information available"
    return False, "Refund policy not specified"


def build_candidate_summaries(
    candidates: list[dict],
    bookable: list[dict],
    nights: int,
) -> list[CandidateSummary]:
    """Join directory metadata with rate offers into compact summaries for matching."""
    metadata_by_id = {}
    for hotel in candidates:
        hotel_id = hotel_id_of(hotel)
        if hotel_id:
            metadata_by_id[hotel_id] = hotel

    summaries = []
    seen: set[str] = set()
    for rate_hotel in bookable:
        hotel_id = hotel_id_of(rate_hotel)
        if not hotel_id:
            logger.warning("Skipping rate entry without a hotel id")
            continue
        if hotel_id in seen:
            logger.debug(f"Skipping duplicate rate entry for {hotel_id}")
            continue
        seen.add(hotel_id)
        metadata = metadata_by_id.get(hotel_id)
        if metadata is None:
            logger.warning(f"No directory metadata for bookable hotel {hotel_id}")
            continue

        price = calculate_price_info(rate_hotel, nights)
        latitude, longitude = coordinates_of(metadata)
        description = metadata.get("hotelDescription") or metadata.get("description")
        if description:
            description = str(description)[:DESCRIPTION_CHARS].strip() + "..."

        summaries.append(CandidateSummary(
            index=len(summaries) + 1,
            hotel_id=hotel_id,
            name=str(metadata.get("name") or hotel_id),
            star_rating=star_rating_of(metadata),
            city=metadata.get("city") or "Unknown City",
            country=metadata.get("country") or "Unknown Country",
            address=metadata.get("address") or "Location not available",
            latitude=latitude,
            longitude=longitude,
            description=description or "No description available",
            top_amenities=top_amenities(metadata),
            price_display=price.display,
            nightly_price=price.nightly_price,
        ))
    return summaries


def apply_budget_filter(
    summaries: list[CandidateSummary],
    min_cost: float | None,
    max_cost: float | None,
    min_pool: int = 20,
) -> list[CandidateSummary]:
    """Keep within-budget hotels; top up with the closest out-of-budget ones to min_pool."""
    if not min_cost and not max_cost:
        return summaries

    within: list[CandidateSummary] = []
    outside: list[tuple[float, CandidateSummary]] = []
    for summary in summaries:
        price = summary.nightly_price
        if price is None:
            outside.append((float("inf"), summary))
            continue
        if min_cost and price < min_cost:
            outside.append((min_cost - price, summary))
        elif max_cost and price > max_cost:
            outside.append((price - max_cost, summary))
        else:
            within.append(summary)

    if len(within) >= min_pool:
        logger.info(f"Budget filter: {len(within)} hotels within budget, using only these")
        return within

    outside.sort(key=lambda pair: pair[0])
    extra = [summary for _, summary in outside[: min_pool - len(within)]]
    logger.info(
        f"Budget filter: only {len(within)} within budget, adding {len(extra)} closest hotels"
    )
    return within + extra
