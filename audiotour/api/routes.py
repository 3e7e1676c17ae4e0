# audiotour/api/routes.py
# Thin HTTP layer over TourPipeline: validates input, maps errors to
# ErrorResponse bodies, and reshapes results for the web client.

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
import logging
from typing import List, Optional

from audiotour.core.config import Settings
from audiotour.core.errors import ConfigurationError, InvalidSubjectError, ProviderError
from audiotour.models.domain import NoResult
from audiotour.models.dto import (
    AreaRequest,
    AreaResponse,
    BatchScoreResponse,
    ErrorResponse,
    LandmarkBatchRequest,
    LandmarkRequest,
    NarrativeResponse,
    PlacesResponse,
    ScoredLandmark,
    ScoreResponse,
    SourceLink,
    StageTimingOut,
    TourRequest,
    TourResponse,
)
from audiotour.services.pipeline import TourPipeline, coerce_coordinates
from audiotour.services.scorer import SignificanceScorer

router = APIRouter()
logger = logging.getLogger(__name__)

# ----------------------------------------------------------------------
# Dependencies
# ----------------------------------------------------------------------
def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_pipeline(settings: Settings = Depends(get_settings)) -> TourPipeline:
    """A fresh pipeline per request; nothing is shared between requests."""
    return TourPipeline.from_settings(settings)

def _error(status_code: int, code: str, detail: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error=code, detail=detail).model_dump(),
    )

def _links(sources) -> List[SourceLink]:
    return [SourceLink.from_document(s) for s in sources]

# ----------------------------------------------------------------------
# Places
# ----------------------------------------------------------------------
@router.get(
    "/places",
    response_model=PlacesResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def places(
    lat: float = Query(...),
    lng: float = Query(...),
    radius: Optional[int] = Query(None, gt=0, le=50000),
    pipeline: TourPipeline = Depends(get_pipeline),
):
    """Landmarks near a coordinate, as returned by the place provider."""
    try:
        coordinates = coerce_coordinates({"lat": lat, "lng": lng})
    except InvalidSubjectError:
        raise _error(status.HTTP_400_BAD_REQUEST, "INVALID_REQUEST", "Invalid coordinates")

    try:
        landmarks = await pipeline.places.search_places(coordinates, radius_m=radius)
    except ConfigurationError as e:
        logger.error(f"Place search is not configured: {e}")
        raise _error(status.HTTP_503_SERVICE_UNAVAILABLE, "PLACES_UNAVAILABLE", str(e))
    except ProviderError as e:
        logger.error(f"Place search failed: {e}")
        raise _error(status.HTTP_502_BAD_GATEWAY, "PLACES_UNAVAILABLE", f"Failed to fetch places: {e}")
    return PlacesResponse(landmarks=landmarks)

# ----------------------------------------------------------------------
# Significance
# ----------------------------------------------------------------------
def _scorer(pipeline: TourPipeline) -> SignificanceScorer:
    return pipeline.scorer or SignificanceScorer(pipeline.settings)

@router.post("/significance", response_model=ScoreResponse)
async def score_landmark(data: LandmarkRequest, pipeline: TourPipeline = Depends(get_pipeline)):
    """Touristic significance (0-100) of one landmark."""
    score = await _scorer(pipeline).score(data.landmark)
    return ScoreResponse(score=score)

@router.put("/significance", response_model=BatchScoreResponse)
async def score_landmarks(data: LandmarkBatchRequest, pipeline: TourPipeline = Depends(get_pipeline)):
    """Scores a batch concurrently; results keep the request order."""
    pairs = await _scorer(pipeline).score_all(data.landmarks)
    return BatchScoreResponse(results=[ScoredLandmark(landmark=l, score=s) for l, s in pairs])

# ----------------------------------------------------------------------
# Narratives
# ----------------------------------------------------------------------
@router.post("/narrative", response_model=NarrativeResponse, response_model_by_alias=True)
async def landmark_narrative(data: LandmarkRequest, pipeline: TourPipeline = Depends(get_pipeline)):
    result = await pipeline.narrate_landmark(data.landmark)
    return NarrativeResponse(
        narrative=result.text,
        sources=_links(result.sources),
        used_llm=result.used_generative_path,
    )

@router.post(
    "/area",
    response_model=AreaResponse,
    response_model_by_alias=True,
    responses={502: {"model": ErrorResponse}},
)
async def area_narrative(data: AreaRequest, pipeline: TourPipeline = Depends(get_pipeline)):
    try:
        result = await pipeline.narrate_area(data.coordinates)
    except ProviderError as e:
        logger.error(f"Area lookup failed: {e}")
        raise _error(status.HTTP_502_BAD_GATEWAY, "AREA_UNAVAILABLE", "Failed to fetch area information")
    return AreaResponse(
        narrative=result.text,
        sources=_links(result.sources),
        used_llm=result.used_generative_path,
        area_name=result.area_name,
    )

# ----------------------------------------------------------------------
# End-to-end tour
# ----------------------------------------------------------------------
@router.post(
    "/tour",
    response_model=TourResponse,
    response_model_by_alias=True,
    responses={404: {"model": ErrorResponse}},
)
async def tour(data: TourRequest, pipeline: TourPipeline = Depends(get_pipeline)):
    """Find, pick and narrate the most significant landmark around a coordinate."""
    outcome = await pipeline.run(data.coordinates, radius_m=data.radius)
    if isinstance(outcome, NoResult):
        raise _error(status.HTTP_404_NOT_FOUND, "NO_RESULT", outcome.reason)

    return TourResponse(
        landmark=outcome.landmark,
        narrative=outcome.narrative,
        sources=_links(outcome.sources),
        used_llm=outcome.used_generative_path,
        area_name=outcome.area_name,
        score=outcome.score,
        stages=[StageTimingOut(stage=t.stage, elapsed_ms=t.elapsed_ms) for t in outcome.stages],
    )
