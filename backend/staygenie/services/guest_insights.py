"""Guest insights — two-sentence review summaries from LiteAPI sentiment, template fallback."""

import hashlib
import logging
from datetime import datetime, timezone

from staygenie.schemas.search import EnrichmentPayload, SentimentCategory
from staygenie.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

INSIGHT_TEMPLATES = [
    "Guests appreciate the comfortable accommodations, helpful staff, and excellent location. Some mention room maintenance could be improved.",
    "Visitors enjoy the convenient location, clean facilities, and modern amenities. Common feedback includes slow WiFi.",
    "Travelers love the central location, friendly service, and comfortable beds. Areas for improvement include noise levels.",
    "Guests praise the excellent breakfast, spacious rooms, and attentive staff. Minor issues reported include outdated decor.",
    "Visitors value the great location, good amenities, and comfortable atmosphere. Some note that parking can be limited.",
]

SYSTEM_PROMPT = (
    "You are a hotel review analyst. Create guest insights that emphasize positive aspects "
    "while mentioning only one main concern. Keep it balanced but positive-leaning."
)

USER_PROMPT = """Create guest insights for "{name}" based on this sentiment data:

POSITIVE FEEDBACK: {pros}
NEGATIVE FEEDBACK: {con}

Requirements:
- Write exactly 2 sentences
- First sentence: "Guests love [3-4 main positives from the list]"
- Second sentence: "The main concern mentioned is [single most common negative]"
- Keep each sentence under 25 words
- Do not mention the hotel name

Example: "Guests love the spacious rooms, attentive staff, and excellent location. The main concern mentioned is slow elevator service.\""""


def template_insight(hotel_id: str) -> str:
    """Pick a fixed template; the same hotel always gets the same one."""
    digest = hashlib.md5(hotel_id.encode("utf-8")).hexdigest()
    return INSIGHT_TEMPLATES[int(digest, 16) % len(INSIGHT_TEMPLATES)]


def sentiment_analysis_of(sentiment: dict | None) -> dict | None:
    """The `sentimentAnalysis` block of a reviews payload, wherever it sits."""
    if not isinstance(sentiment, dict):
        return None
    for source in (sentiment, sentiment.get("data")):
        if isinstance(source, dict) and isinstance(source.get("sentimentAnalysis"), dict):
            return source["sentimentAnalysis"]
    return None


def _categories(analysis: dict) -> list[SentimentCategory]:
    categories = []
    for raw in analysis.get("categories") or []:
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        try:
            rating = float(raw.get("rating") or 0)
        except (TypeError, ValueError):
            rating = 0.0
        categories.append(SentimentCategory(
            name=str(raw["name"]),
            rating=rating,
            description=str(raw.get("description") or ""),
        ))
    return categories


def _strings(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class GuestInsightGenerator:
    """Builds the EnrichmentPayload for one hotel."""

    def __init__(self, llm: LLMClient):
        self._llm = llm

    async def build_payload(self, hotel_id: str, hotel_name: str, sentiment: dict | None) -> EnrichmentPayload:
        analysis = sentiment_analysis_of(sentiment)
        now = datetime.now(timezone.utc)

        if analysis is None:
            logger.info(f"No sentiment for {hotel_name} ({hotel_id}), using template insight")
            return EnrichmentPayload(
                guest_insights=template_insight(hotel_id),
                source="template",
                updated_at=now,
            )

        pros = _strings(analysis.get("pros"))
        cons = _strings(analysis.get("cons"))
        insight = await self.generate(hotel_id, hotel_name, pros, cons)

        return EnrichmentPayload(
            guest_insights=insight or template_insight(hotel_id),
            sentiment_categories=_categories(analysis),
            pros=pros,
            cons=cons,
            source="llm" if insight else "template",
            updated_at=now,
        )

    async def generate(self, hotel_id: str, hotel_name: str, pros: list[str], cons: list[str]) -> str | None:
        """Two-sentence insight text, or None when the LLM cannot produce one."""
        if not pros and not cons:
            return None

        prompt = USER_PROMPT.format(
            name=hotel_name,
            pros=", ".join(pros) or "none reported",
            con=cons[0] if cons else "minor operational details",
        )
        try:
            text = await self._llm.complete(
                system=SYSTEM_PROMPT, user=prompt, max_tokens=120, temperature=0.4,
            )
        except RuntimeError as e:
            logger.warning(f"Insight generation failed for {hotel_name} ({hotel_id}): {e}")
            return None

        text = text.strip().strip('"').strip()
        return text or None
