# audiotour/services/scorer.py
# Hand-weighted touristic/historical significance score (0-100) per landmark.

import asyncio
from typing import Iterable, List, Optional, Tuple

import structlog

from audiotour.core.config import Settings
from audiotour.models.domain import EntityFacts, Landmark, ReverseGeocodeResult
from audiotour.services.encyclopedia import EncyclopediaClient
from audiotour.services.geocoding import GeocodingClient, LANDMARK_ZOOM
from audiotour.services.knowledge_graph import KnowledgeGraphClient
from audiotour.utils.timebox import isolate

logger = structlog.get_logger(__name__)

MAX_SCORE = 100

# Encyclopedic signal
ENCYCLOPEDIA_CAP = 40
ENCYCLOPEDIA_BASE = 20
ENCYCLOPEDIA_DISAMBIGUATION_BASE = 5
ENCYCLOPEDIA_KEYWORD_POINTS = 2
ENCYCLOPEDIA_KEYWORD_CAP = 20
ENCYCLOPEDIA_KEYWORDS = (
    "famous",
    "historic",
    "landmark",
    "heritage",
    "unesco",
    "monument",
    "tourist",
    "attraction",
    "significant",
    "important",
)

# Knowledge-graph signal
KNOWLEDGE_GRAPH_CAP = 30
KNOWLEDGE_GRAPH_BASE = 10
KNOWLEDGE_GRAPH_KEYWORD_POINTS = 3
KNOWLEDGE_GRAPH_KEYWORD_CAP = 20
KNOWLEDGE_GRAPH_HERITAGE_BONUS = 10
KNOWLEDGE_GRAPH_KEYWORDS = (
    "heritage",
    "monument",
    "landmark",
    "historic",
    "unesco",
    "tourist",
    "attraction",
)

# Geodata signal
GEODATA_CAP = 20
TOURISM_MAJOR_VALUES = ("attraction", "museum", "monument", "artwork", "viewpoint")
TOURISM_MAJOR_POINTS = 10
TOURISM_INFORMATION_POINTS = 3
HISTORIC_POINTS = 8
HERITAGE_POINTS = 5
WIKIPEDIA_TAG_POINTS = 2

# Landmark's own attributes
RATING_HIGH, RATING_HIGH_BONUS = 8.0, 10
RATING_GOOD, RATING_GOOD_BONUS = 7.0, 5
CATEGORY_BONUS = 10
CATEGORY_KEYWORDS = (
    "monument",
    "historic",
    "landmark",
    "museum",
    "memorial",
    "cathedral",
    "church",
    "temple",
    "palace",
    "castle",
    "tower",
    "bridge",
)


def count_keywords(text: str, keywords: Iterable[str]) -> int:
    lowered = text.lower()
    return sum(1 for kw in keywords if kw in lowered)


def clamp(value: int, low: int = 0, high: int = MAX_SCORE) -> int:
    return max(low, min(high, value))


def encyclopedia_points(snippet: Optional[str]) -> int:
    """Points for the top encyclopedic hit; None means no page matched."""
    if snippet is None:
        return 0
    score = ENCYCLOPEDIA_BASE
    if "disambiguation" in snippet.lower():
        score = ENCYCLOPEDIA_DISAMBIGUATION_BASE
    matches = count_keywords(snippet, ENCYCLOPEDIA_KEYWORDS)
    score += min(matches * ENCYCLOPEDIA_KEYWORD_POINTS, ENCYCLOPEDIA_KEYWORD_CAP)
    return min(score, ENCYCLOPEDIA_CAP)


def knowledge_graph_points(description: Optional[str], facts: Optional[EntityFacts], found: bool) -> int:
    if not found:
        return 0
    score = KNOWLEDGE_GRAPH_BASE
    if description:
        matches = count_keywords(description, KNOWLEDGE_GRAPH_KEYWORDS)
        score += min(matches * KNOWLEDGE_GRAPH_KEYWORD_POINTS, KNOWLEDGE_GRAPH_KEYWORD_CAP)
    if facts is not None and facts.heritage_designation:
        score += KNOWLEDGE_GRAPH_HERITAGE_BONUS
    return min(score, KNOWLEDGE_GRAPH_CAP)


def geodata_points(place: Optional[ReverseGeocodeResult]) -> int:
    if place is None or not place.extratags:
        return 0
    tags = place.extratags
    score = 0

    tourism = (tags.get("tourism") or "").lower()
    if tourism in TOURISM_MAJOR_VALUES:
        score += TOURISM_MAJOR_POINTS
    elif tourism == "information":
        score += TOURISM_INFORMATION_POINTS

    if tags.get("historic"):
        score += HISTORIC_POINTS
    if tags.get("heritage") or tags.get("heritage:operator"):
        score += HERITAGE_POINTS
    if tags.get("wikipedia"):
        score += WIKIPEDIA_TAG_POINTS

    return min(score, GEODATA_CAP)


def rating_bonus(rating: Optional[float]) -> int:
    if rating is None:
        return 0
    if rating >= RATING_HIGH:
        return RATING_HIGH_BONUS
    if rating >= RATING_GOOD:
        return RATING_GOOD_BONUS
    return 0


def category_bonus(category: Optional[str]) -> int:
    if category and count_keywords(category, CATEGORY_KEYWORDS):
        return CATEGORY_BONUS
    return 0


class SignificanceScorer:
    """Scores landmarks from public encyclopedic, knowledge-graph and map signals.

    Every provider-backed signal is time-boxed on its own and degrades to 0
    on failure. Scoring holds no per-request state, so one scorer can serve
    any number of concurrent ``score`` calls.
    """

    def __init__(
        self,
        settings: Settings,
        encyclopedia: Optional[EncyclopediaClient] = None,
        knowledge_graph: Optional[KnowledgeGraphClient] = None,
        geocoding: Optional[GeocodingClient] = None,
    ):
        self.settings = settings
        self.encyclopedia = encyclopedia or EncyclopediaClient(settings)
        self.knowledge_graph = knowledge_graph or KnowledgeGraphClient(settings)
        self.geocoding = geocoding or GeocodingClient(settings)
        self.signal_timeout = settings.PROVIDER_TIMEOUT_SECONDS

    async def score(self, landmark: Landmark) -> int:
        query = landmark.query_seed()
        encyclopedic, knowledge, geodata = await asyncio.gather(
            isolate(self._encyclopedia_signal(query), default=0, label="score.encyclopedia", timeout=self.signal_timeout),
            # search + facts lookup are two sequential calls
            isolate(self._knowledge_graph_signal(query), default=0, label="score.knowledge_graph", timeout=self.signal_timeout * 2),
            isolate(self._geodata_signal(landmark), default=0, label="score.geodata", timeout=self.signal_timeout),
        )
        rating = rating_bonus(landmark.rating)
        category = category_bonus(landmark.category)
        total = clamp(encyclopedic + knowledge + geodata + rating + category)

        logger.info(
            "landmark_scored",
            landmark_id=landmark.id,
            landmark=landmark.name,
            encyclopedia=encyclopedic,
            knowledge_graph=knowledge,
            geodata=geodata,
            rating=rating,
            category=category,
            score=total,
        )
        return total

    async def score_all(self, landmarks: List[Landmark]) -> List[Tuple[Landmark, int]]:
        """Score every landmark concurrently; output order matches input order."""
        scores = await asyncio.gather(*(self.score(landmark) for landmark in landmarks))
        return list(zip(landmarks, scores))

    async def _encyclopedia_signal(self, query: str) -> int:
        hits = await self.encyclopedia.search(query, limit=1)
        return encyclopedia_points(hits[0].snippet if hits else None)

    async def _knowledge_graph_signal(self, query: str) -> int:
        entities = await self.knowledge_graph.search(query, limit=1)
        if not entities:
            return 0
        entity = entities[0]
        # A failed facts lookup only forfeits the heritage bonus.
        facts = await isolate(
            self.knowledge_graph.facts(entity.id),
            default=None,
            label="score.knowledge_graph.facts",
            timeout=self.signal_timeout,
        )
        return knowledge_graph_points(entity.description, facts, found=True)

    async def _geodata_signal(self, landmark: Landmark) -> int:
        place = await self.geocoding.reverse(landmark.location, zoom=LANDMARK_ZOOM)
        return geodata_points(place)
