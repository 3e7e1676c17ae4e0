# audiotour/models/dto.py
# Request/response bodies of the HTTP API. Field names follow the JSON the
# web client already speaks (usedLLM, areaName).

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from audiotour.models.domain import Coordinates, Landmark, PipelineStage, SourceDocument

# --- Shared ---

class SourceLink(BaseModel):
    """Public view of a source: title and link only."""
    title: str = Field(..., description="Source title.")
    url: str = Field(..., description="Canonical URL of the source.")

    @classmethod
    def from_document(cls, document: SourceDocument) -> "SourceLink":
        return cls(title=document.title, url=document.url)


class StageTimingOut(BaseModel):
    stage: PipelineStage
    elapsed_ms: float

# --- API Request Models ---

class LandmarkRequest(BaseModel):
    """Body of POST /api/significance and POST /api/narrative."""
    landmark: Landmark


class LandmarkBatchRequest(BaseModel):
    """Body of PUT /api/significance."""
    landmarks: List[Landmark] = Field(..., min_length=1, description="Landmarks to score, at least one.")


class AreaRequest(BaseModel):
    """Body of POST /api/area."""
    coordinates: Coordinates


class TourRequest(BaseModel):
    """Body of POST /api/tour."""
    coordinates: Coordinates
    radius: Optional[int] = Field(None, gt=0, le=50000, description="Search radius in meters.")

# --- Public Response DTOs ---

class PlacesResponse(BaseModel):
    landmarks: List[Landmark]


class ScoreResponse(BaseModel):
    score: int = Field(..., ge=0, le=100, description="Significance score, 0-100.")


class ScoredLandmark(BaseModel):
    landmark: Landmark
    score: int = Field(..., ge=0, le=100)


class BatchScoreResponse(BaseModel):
    results: List[ScoredLandmark] = Field(..., description="Same order as the request.")


class NarrativeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    narrative: str
    sources: List[SourceLink]
    used_llm: bool = Field(..., alias="usedLLM", description="Whether the generative path produced the text.")


class AreaResponse(NarrativeResponse):
    area_name: Optional[str] = Field(None, alias="areaName")


class TourResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    landmark: Optional[Landmark] = Field(None, description="Null when the area narration was used.")
    narrative: str
    sources: List[SourceLink]
    used_llm: bool = Field(..., alias="usedLLM")
    area_name: Optional[str] = Field(None, alias="areaName")
    score: Optional[int] = None
    stages: List[StageTimingOut] = Field(default_factory=list)

# --- Error Response Model ---

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")
