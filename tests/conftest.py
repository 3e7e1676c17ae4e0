import asyncio
from typing import Dict, List, Optional

import pytest

from audiotour.core.config import Settings
from audiotour.core.errors import ProviderError
from audiotour.models.domain import (
    AreaInfo,
    Coordinates,
    EncyclopediaHit,
    EncyclopediaSummary,
    EntityFacts,
    KnowledgeGraphEntity,
    Landmark,
    ReverseGeocodeResult,
)
from audiotour.services.aggregator import SourceAggregator
from audiotour.services.geocoding import area_info_from_place
from audiotour.services.narrative import NarrativeSynthesizer, TemplateStrategy
from audiotour.services.pipeline import TourPipeline

ROME = Coordinates(lat=41.8902, lng=12.4922)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        ENV="test",
        FOURSQUARE_API_KEY="test-key",
        OPENAI_API_KEY=None,
        PROVIDER_TIMEOUT_SECONDS=0.2,
        PLACES_TIMEOUT_SECONDS=0.2,
        GENERATION_TIMEOUT_SECONDS=0.2,
    )


def make_landmark(
    id: str = "fsq-1",
    name: str = "Colosseum",
    category: str = "Monument",
    distance: float = 120.0,
    rating: Optional[float] = None,
    address: Optional[str] = "Piazza del Colosseo, Rome",
    description: Optional[str] = None,
    location: Coordinates = ROME,
) -> Landmark:
    return Landmark(
        id=id,
        name=name,
        category=category,
        distance=distance,
        location=location,
        rating=rating,
        address=address,
        description=description,
    )


def rome_place(**extratags) -> ReverseGeocodeResult:
    return ReverseGeocodeResult(
        display_name="Colosseo, Piazza del Colosseo, Monti, Rome, Italy",
        category="historic",
        type="monument",
        osm_type="way",
        osm_id=27315936,
        address={"suburb": "Monti", "city": "Rome", "country": "Italy"},
        extratags=extratags,
    )


def trastevere_area() -> AreaInfo:
    place = ReverseGeocodeResult(
        display_name="Trastevere, Rome, Lazio, Italy",
        osm_type="relation",
        osm_id=123,
        address={"suburb": "Trastevere", "city": "Rome", "country": "Italy"},
    )
    return area_info_from_place(place)


class FakeEncyclopedia:
    def __init__(
        self,
        hits: Optional[List[EncyclopediaHit]] = None,
        summaries: Optional[Dict[str, object]] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.hits = hits or []
        self.summaries = summaries or {}
        self.error = error
        self.delay = delay
        self.queries: List[str] = []

    async def search(self, query: str, limit: int = 3) -> List[EncyclopediaHit]:
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.hits[:limit]

    async def summary(self, title: str) -> EncyclopediaSummary:
        value = self.summaries.get(title)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise ProviderError("wikipedia", "HTTP 404", status_code=404)
        return value


class FakeKnowledgeGraph:
    def __init__(
        self,
        entities: Optional[List[KnowledgeGraphEntity]] = None,
        facts: Optional[Dict[str, object]] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.entities = entities or []
        self.facts_by_id = facts or {}
        self.error = error
        self.delay = delay
        self.queries: List[str] = []

    async def search(self, query: str, limit: int = 2) -> List[KnowledgeGraphEntity]:
        self.queries.append(query)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.entities[:limit]

    async def facts(self, entity_id: str) -> EntityFacts:
        value = self.facts_by_id.get(entity_id, EntityFacts())
        if isinstance(value, Exception):
            raise value
        return value


class FakeGeocoding:
    def __init__(
        self,
        place: Optional[ReverseGeocodeResult] = None,
        error: Optional[Exception] = None,
        delay: float = 0,
    ):
        self.place = place or ReverseGeocodeResult()
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def reverse(self, coordinates: Coordinates, zoom: int = 18) -> ReverseGeocodeResult:
        self.calls.append((coordinates, zoom))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.place

    async def describe_area(self, coordinates: Coordinates) -> AreaInfo:
        return area_info_from_place(await self.reverse(coordinates, zoom=16))


class FakePlaces:
    def __init__(self, landmarks: Optional[List[Landmark]] = None, error: Optional[Exception] = None):
        self.landmarks = landmarks or []
        self.error = error
        self.calls: List[tuple] = []

    async def search_places(self, coordinates, radius_m=None, limit=None) -> List[Landmark]:
        self.calls.append((coordinates, radius_m))
        if self.error:
            raise self.error
        return list(self.landmarks)


class FakeGeneration:
    def __init__(self, text: Optional[str] = None, error: Optional[Exception] = None):
        self.text = text
        self.error = error
        self.prompts: List[tuple] = []

    async def generate(self, prompt: str, system_prompt: str, timeout=None) -> str:
        self.prompts.append((prompt, system_prompt))
        if self.error:
            raise self.error
        return self.text


class StubScorer:
    """Returns fixed scores by landmark id."""

    def __init__(self, scores: Dict[str, int], error: Optional[Exception] = None):
        self.scores = scores
        self.error = error

    async def score(self, landmark: Landmark) -> int:
        return self.scores.get(landmark.id, 0)

    async def score_all(self, landmarks):
        if self.error:
            raise self.error
        return [(landmark, self.scores.get(landmark.id, 0)) for landmark in landmarks]


def build_pipeline(settings, landmarks=None, places_error=None, scores=None, geocoding=None, **kwargs):
    """A TourPipeline wired to fakes; narration defaults to the template strategy only."""
    geocoding = geocoding or FakeGeocoding(place=trastevere_area().place)
    aggregator = SourceAggregator(settings, FakeEncyclopedia(), FakeKnowledgeGraph(), geocoding)
    kwargs.setdefault("scorer", StubScorer(scores or {}))
    kwargs.setdefault("synthesizer", NarrativeSynthesizer([TemplateStrategy()]))
    return TourPipeline(
        settings=settings,
        places=FakePlaces(landmarks=landmarks, error=places_error),
        geocoding=geocoding,
        aggregator=aggregator,
        **kwargs,
    )
