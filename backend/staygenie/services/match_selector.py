"""Match selector — ranks bookable hotels against user intent with the LLM, heuristic fallback per batch."""

import asyncio
import json
import logging
import random
from dataclasses import dataclass, field

from staygenie.schemas.search import SearchParams
from staygenie.services.hotel_summary import CandidateSummary
from staygenie.services.llm_client import LLMClient, strip_code_fences

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Expert hotel consultant. Return valid JSON only. Use exact names or numbers "
    "from the list. Assign varied, realistic percentages."
)

# Keys an LLM tends to wrap an array in when it answers with an object
WRAPPER_KEYS = ("hotels", "recommendations", "matches", "results", "picks")


@dataclass
class RankedPick:
    summary: CandidateSummary
    match_score: float
    score_source: str = "llm"
    why_it_matches: str = ""
    fun_facts: list[str] = field(default_factory=list)
    nearby_attractions: list[str] = field(default_factory=list)
    location_highlight: str = "Great location"

    @property
    def hotel_id(self) -> str:
        return self.summary.hotel_id


def heuristic_score(stars: float, rng: random.Random) -> float:
    """Star-driven score in [30, 95] with a little jitter so ties are rare."""
    stars = max(0.0, min(float(stars or 0), 5.0))
    score = 30 + (stars / 5) * 55 + rng.uniform(0, 10)
    return max(0.0, min(score, 100.0))


def spread_scores(scores: list[float]) -> list[int]:
    """Make descending-sorted scores strictly decreasing integers without reordering.

    Each score is capped one below its predecessor and floored at the number of
    items left after it, so the last one never goes below 0.
    """
    spread: list[int] = []
    count = len(scores)
    for i, score in enumerate(scores):
        value = int(max(0, min(100, round(score))))
        if spread:
            value = min(value, spread[-1] - 1)
        value = max(value, count - 1 - i)
        spread.append(value)
    return spread


def _clean_list(value, limit: int = 3) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()][:limit]


def _as_score(value) -> float | None:
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return max(0.0, min(score, 100.0))


def parse_picks(raw: str, batch: list[CandidateSummary]) -> list[RankedPick]:
    """Defensively turn an LLM answer into picks resolved against the batch.

    Picks naming a hotel outside the batch or carrying no usable score are
    dropped. Raises ValueError when the answer is not JSON at all.
    """
    data = json.loads(strip_code_fences(raw))
    if isinstance(data, dict):
        for key in WRAPPER_KEYS:
            if isinstance(data.get(key), list):
                data = data[key]
                break
        else:
            data = next((v for v in data.values() if isinstance(v, list)), [data])
    if not isinstance(data, list):
        return []

    by_name = {summary.name.strip().casefold(): summary for summary in batch}
    picks: list[RankedPick] = []
    seen: set[str] = set()

    for item in data:
        if not isinstance(item, dict):
            continue

        summary = None
        index = item.get("index")
        if isinstance(index, (int, str)) and str(index).strip().isdigit():
            position = int(str(index).strip())
            if 1 <= position <= len(batch):
                summary = batch[position - 1]
        if summary is None and item.get("hotelName"):
            summary = by_name.get(str(item["hotelName"]).strip().casefold())
        if summary is None or summary.hotel_id in seen:
            continue

        score = _as_score(item.get("aiMatchPercent"))
        if score is None:
            continue

        seen.add(summary.hotel_id)
        picks.append(RankedPick(
            summary=summary,
            match_score=score,
            score_source="llm",
            why_it_matches=str(item.get("whyItMatches") or "").strip(),
            fun_facts=_clean_list(item.get("funFacts")),
            nearby_attractions=_clean_list(item.get("nearbyAttractions")),
            location_highlight=str(item.get("locationHighlight") or "").strip() or "Great location",
        ))
    return picks


def _heuristic_rationale(summary: CandidateSummary) -> str:
    stars = f"{summary.star_rating:g}-star " if summary.star_rating else ""
    return (
        f"A {stars}option in {summary.city} with {', '.join(summary.top_amenities).lower()}, "
        f"priced at {summary.price_display}."
    )


class MatchSelector:
    """Picks the k best candidates for a search.

    Candidates go to the LLM in concurrent batches. A batch that errors or
    yields nothing usable is scored by the heuristic instead, so selection
    never fails and always returns min(k, len(candidates)) picks with
    distinct integer scores.
    """

    def __init__(
        self,
        llm: LLMClient,
        k: int = 5,
        batch_size: int = 30,
        seed: int | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._llm = llm
        self._k = k
        self._batch_size = batch_size
        self._rng = random.Random(seed)

    async def select(
        self,
        candidates: list[CandidateSummary],
        params: SearchParams,
    ) -> list[RankedPick]:
        if not candidates or self._k < 1:
            return []

        batches = [
            candidates[i:i + self._batch_size]
            for i in range(0, len(candidates), self._batch_size)
        ]
        results = await asyncio.gather(*[
            self._score_batch(n, batch, params) for n, batch in enumerate(batches)
        ])

        # Heuristic scoring happens here, in batch order, so a seeded rng is reproducible
        scored: dict[str, RankedPick] = {}
        for batch, picks in zip(batches, results):
            if not picks:
                picks = [self._heuristic_pick(summary) for summary in batch]
            for pick in picks:
                scored.setdefault(pick.hotel_id, pick)

        ranked = sorted(scored.values(), key=lambda p: p.match_score, reverse=True)[: self._k]

        unique: dict[str, CandidateSummary] = {}
        for summary in candidates:
            unique.setdefault(summary.hotel_id, summary)
        wanted = min(self._k, len(unique))
        if len(ranked) < wanted:
            chosen = {pick.hotel_id for pick in ranked}
            extra = sorted(
                (self._heuristic_pick(s) for s in unique.values() if s.hotel_id not in chosen),
                key=lambda p: p.match_score,
                reverse=True,
            )
            logger.info(f"Topping up shortlist with {wanted - len(ranked)} heuristic picks")
            ranked.extend(extra[: wanted - len(ranked)])

        scores = [int(max(0, min(100, round(p.match_score)))) for p in ranked]
        if len(set(scores)) != len(scores) or scores != sorted(scores, reverse=True):
            logger.debug(f"Spreading non-distinct match scores: {scores}")
            scores = spread_scores([p.match_score for p in ranked])
        for pick, score in zip(ranked, scores):
            pick.match_score = score

        sources = [p.score_source for p in ranked]
        logger.info(
            f"Selected {len(ranked)} of {len(candidates)} hotels "
            f"({sources.count('llm')} llm, {sources.count('heuristic')} heuristic)"
        )
        return ranked

    def _heuristic_pick(self, summary: CandidateSummary) -> RankedPick:
        return RankedPick(
            summary=summary,
            match_score=heuristic_score(summary.star_rating, self._rng),
            score_source="heuristic",
            why_it_matches=_heuristic_rationale(summary),
        )

    async def _score_batch(
        self,
        batch_number: int,
        batch: list[CandidateSummary],
        params: SearchParams,
    ) -> list[RankedPick]:
        raw = ""
        try:
            raw = await self._llm.complete(
                system=SYSTEM_PROMPT,
                user=self._build_prompt(batch, params),
                max_tokens=1500,
                temperature=0.6,
            )
            picks = parse_picks(raw, batch)
        except RuntimeError as e:
            logger.warning(f"Match batch {batch_number + 1}: LLM unavailable, using heuristic: {e}")
            return []
        except ValueError as e:
            logger.warning(
                f"Match batch {batch_number + 1}: unparseable LLM output, using heuristic: {e}\nRaw: {raw[:300]}"
            )
            return []

        if not picks:
            logger.warning(f"Match batch {batch_number + 1}: no valid picks, using heuristic")
        return picks

    def _build_prompt(self, batch: list[CandidateSummary], params: SearchParams) -> str:
        lines = []
        for position, summary in enumerate(batch, start=1):
            stars = f"{summary.star_rating:g}★" if summary.star_rating else "unrated"
            lines.append(
                f"{position}. {summary.name} | {stars} | {summary.price_bracket} {summary.price_display} | "
                f"{summary.city}, {summary.country} | {', '.join(summary.top_amenities)} | {summary.description}"
            )

        budget = ""
        if params.min_cost and params.max_cost:
            budget = f"\nBUDGET: {params.min_cost:g} - {params.max_cost:g}/night"
        elif params.min_cost:
            budget = f"\nBUDGET: {params.min_cost:g}+ minimum"
        elif params.max_cost:
            budget = f"\nBUDGET: Under {params.max_cost:g}"

        if params.ai_search:
            focus = f'USER REQUEST: "{params.ai_search}"'
            guidance = f'Base percentages on actual alignment with "{params.ai_search}".'
        else:
            focus = f"DESTINATION: {params.city_name}, {params.country_code}"
            guidance = "Rank by location, amenities, value."

        count = min(self._k, len(batch))
        return f"""{focus}
STAY: {params.nights} nights{budget}

HOTELS:
{chr(10).join(lines)}

Return the {count} best matches as a JSON array:
[{{"index":1,"hotelName":"exact name","aiMatchPercent":60-95,"whyItMatches":"why it matches the request (max 40 words)","funFacts":["fact1","fact2"],"nearbyAttractions":["place1","place2"],"locationHighlight":"advantage"}}]

{guidance} Use exact hotel names. Different percentages for each."""
