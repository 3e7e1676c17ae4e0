# audiotour/services/pipeline.py
# End-to-end flow: search -> score -> select -> aggregate -> narrate, with the
# area narration branch when no landmark qualifies.

import time
from contextlib import contextmanager
from typing import Any, Dict, List, Optional, Union

import httpx
import structlog
from pydantic import ValidationError

from audiotour.core.config import Settings
from audiotour.core.errors import AudioTourError, ConfigurationError, InvalidSubjectError, ProviderError
from audiotour.models.domain import (
    AreaSubject,
    Coordinates,
    Landmark,
    LandmarkSubject,
    NarrativeResult,
    NoResult,
    PipelineStage,
    SelectionKind,
    SelectionOutcome,
    StageTiming,
    TourResult,
)
from audiotour.services.aggregator import SourceAggregator
from audiotour.services.encyclopedia import EncyclopediaClient
from audiotour.services.generation import GenerationClient
from audiotour.services.geocoding import GeocodingClient
from audiotour.services.knowledge_graph import KnowledgeGraphClient
from audiotour.services.narrative import NarrativeSynthesizer
from audiotour.services.places import PlacesClient
from audiotour.services.scorer import SignificanceScorer
from audiotour.services.selector import select_by_heuristic, select_with_relaxation

logger = structlog.get_logger(__name__)


def coerce_coordinates(raw: Union[Coordinates, Dict[str, Any], Any]) -> Coordinates:
    """Validate user-supplied coordinates before any provider is contacted."""
    if isinstance(raw, Coordinates):
        return raw
    try:
        return Coordinates.model_validate(raw)
    except ValidationError as e:
        raise InvalidSubjectError(f"invalid coordinates: {e.errors(include_url=False)}")


class StageClock:
    """Records how long each pipeline stage took."""

    def __init__(self):
        self.timings: List[StageTiming] = []

    @contextmanager
    def stage(self, stage: PipelineStage):
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            self.timings.append(StageTiming(stage=stage, elapsed_ms=elapsed_ms))
            logger.info("stage_completed", stage=stage.value, elapsed_ms=elapsed_ms)

    def done(self) -> List[StageTiming]:
        self.timings.append(StageTiming(stage=PipelineStage.DONE, elapsed_ms=0.0))
        return self.timings


class TourPipeline:
    """One request's worth of discovery and narration.

    Built per request from an explicit Settings object; it keeps no state
    between runs. ``scorer=None`` switches selection to the rating/distance
    heuristic.
    """

    def __init__(
        self,
        settings: Settings,
        places: PlacesClient,
        geocoding: GeocodingClient,
        aggregator: SourceAggregator,
        synthesizer: NarrativeSynthesizer,
        scorer: Optional[SignificanceScorer] = None,
        area_fallback: bool = True,
        threshold: Optional[int] = None,
    ):
        self.settings = settings
        self.places = places
        self.geocoding = geocoding
        self.aggregator = aggregator
        self.synthesizer = synthesizer
        self.scorer = scorer
        self.area_fallback = area_fallback
        self.threshold = threshold if threshold is not None else settings.SIGNIFICANCE_THRESHOLD

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        **kwargs,
    ) -> "TourPipeline":
        encyclopedia = EncyclopediaClient(settings, transport=transport)
        knowledge_graph = KnowledgeGraphClient(settings, transport=transport)
        geocoding = GeocodingClient(settings, transport=transport)
        generation = GenerationClient(settings, transport=transport)
        if "scorer" not in kwargs:
            kwargs["scorer"] = SignificanceScorer(settings, encyclopedia, knowledge_graph, geocoding)
        return cls(
            settings=settings,
            places=PlacesClient(settings, transport=transport),
            geocoding=geocoding,
            aggregator=SourceAggregator(settings, encyclopedia, knowledge_graph, geocoding),
            synthesizer=NarrativeSynthesizer.with_generation(generation, timeout=settings.GENERATION_TIMEOUT_SECONDS),
            **kwargs,
        )

    # --- Single steps ---

    async def narrate_landmark(self, landmark: Landmark) -> NarrativeResult:
        subject = LandmarkSubject(landmark=landmark)
        sources = await self.aggregator.gather_sources(subject)
        draft = await self.synthesizer.synthesize(subject, sources)
        return NarrativeResult(
            text=draft.text,
            sources=sources,
            used_generative_path=draft.used_generative_path,
            skipped=draft.skipped,
        )

    async def narrate_area(self, coordinates: Union[Coordinates, Dict[str, Any]]) -> NarrativeResult:
        """Narrate the area around a point. Raises ProviderError if the area cannot be resolved."""
        coordinates = coerce_coordinates(coordinates)
        area = await self.geocoding.describe_area(coordinates)
        subject = AreaSubject(coordinates=coordinates, area=area)
        sources = await self.aggregator.gather_sources(subject)
        draft = await self.synthesizer.synthesize(subject, sources)
        return NarrativeResult(
            text=draft.text,
            sources=sources,
            used_generative_path=draft.used_generative_path,
            area_name=area.area_name,
            skipped=draft.skipped,
        )

    # --- Full run ---

    async def run(
        self,
        coordinates: Union[Coordinates, Dict[str, Any]],
        radius_m: Optional[int] = None,
    ) -> Union[TourResult, NoResult]:
        coordinates = coerce_coordinates(coordinates)
        clock = StageClock()

        search_error: Optional[AudioTourError] = None
        with clock.stage(PipelineStage.SEARCHING):
            try:
                landmarks = await self.places.search_places(coordinates, radius_m=radius_m)
            except (ConfigurationError, ProviderError) as e:
                logger.error("place_search_failed", error=str(e))
                search_error = e
        if search_error is not None:
            return NoResult(reason=f"Place search failed: {search_error}", stages=clock.done())

        if not landmarks:
            selection = SelectionOutcome(kind=SelectionKind.NO_LANDMARKS)
            return await self._area_fallback(coordinates, clock, selection)

        scores: Optional[Dict[str, int]] = None
        if self.scorer is not None:
            with clock.stage(PipelineStage.SCORING):
                try:
                    scored = await self.scorer.score_all(landmarks)
                    scores = {landmark.id: score for landmark, score in scored}
                except Exception as e:
                    logger.error("scoring_failed", error=str(e), exc_info=True)

        with clock.stage(PipelineStage.SELECTING):
            if scores is not None:
                selection = select_with_relaxation(landmarks, scores, self.threshold)
            else:
                selection = SelectionOutcome(kind=SelectionKind.CHOSEN, landmark=select_by_heuristic(landmarks))

        if selection.kind != SelectionKind.CHOSEN:
            return await self._area_fallback(coordinates, clock, selection)

        landmark = selection.landmark
        subject = LandmarkSubject(landmark=landmark)
        with clock.stage(PipelineStage.AGGREGATING):
            sources = await self.aggregator.gather_sources(subject)
        with clock.stage(PipelineStage.SYNTHESIZING):
            draft = await self.synthesizer.synthesize(subject, sources)

        logger.info(
            "tour_ready",
            landmark=landmark.name,
            used_generative_path=draft.used_generative_path,
            sources=len(sources),
        )
        return TourResult(
            landmark=landmark,
            narrative=draft.text,
            sources=sources,
            used_generative_path=draft.used_generative_path,
            score=scores.get(landmark.id) if scores is not None else None,
            selection=selection,
            stages=clock.done(),
        )

    async def _area_fallback(
        self,
        coordinates: Coordinates,
        clock: StageClock,
        selection: SelectionOutcome,
    ) -> Union[TourResult, NoResult]:
        if not self.area_fallback:
            return NoResult(reason=f"No landmark selected ({selection.kind.value})", stages=clock.done())

        area_error: Optional[AudioTourError] = None
        with clock.stage(PipelineStage.AREA_FALLBACK):
            try:
                narrative = await self.narrate_area(coordinates)
            except AudioTourError as e:
                logger.error("area_fallback_failed", error=str(e))
                area_error = e
        if area_error is not None:
            return NoResult(reason=f"Area lookup failed: {area_error}", stages=clock.done())

        return TourResult(
            landmark=None,
            narrative=narrative.text,
            sources=narrative.sources,
            used_generative_path=narrative.used_generative_path,
            area_name=narrative.area_name,
            selection=selection,
            stages=clock.done(),
        )
