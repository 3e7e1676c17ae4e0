# audiotour/models/domain.py
# Internal models shared by the providers, the scoring/selection/narration
# services and the pipeline. Everything here lives for a single request.

from enum import Enum
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# --- Geography ---

class Coordinates(BaseModel):
    """A WGS84 point."""
    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90, allow_inf_nan=False, description="Latitude in decimal degrees.")
    lng: float = Field(..., ge=-180, le=180, allow_inf_nan=False, description="Longitude in decimal degrees.")


class Landmark(BaseModel):
    """A point of interest returned by place search. Read-only downstream."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Provider identity of the place.")
    name: str = Field(..., min_length=1, description="Display name.")
    category: str = Field("Landmark", description="Primary provider category name.")
    distance: float = Field(0.0, ge=0, description="Distance from the user in meters.")
    location: Coordinates
    rating: Optional[float] = Field(None, description="Provider rating, 0-10 scale.")
    address: Optional[str] = Field(None, description="Formatted address.")
    description: Optional[str] = Field(None, description="Provider description.")

    def query_seed(self) -> str:
        """Free-text query used against encyclopedic and knowledge-graph search."""
        parts = [self.name, self.address, self.category]
        return " ".join(p for p in parts if p)


class ReverseGeocodeResult(BaseModel):
    """Nominatim reverse lookup, reduced to the fields the service reads."""
    display_name: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    osm_type: Optional[str] = None
    osm_id: Optional[int] = None
    address: Dict[str, str] = Field(default_factory=dict)
    extratags: Dict[str, str] = Field(default_factory=dict)


class AreaInfo(BaseModel):
    """The enclosing area of a coordinate, used when no landmark qualifies."""
    area_name: str
    address: Dict[str, str] = Field(default_factory=dict)
    display_name: str
    place: ReverseGeocodeResult = Field(default_factory=ReverseGeocodeResult)

    @property
    def city(self) -> Optional[str]:
        return self.address.get("city") or self.address.get("town") or None

# --- Narration subjects ---

class LandmarkSubject(BaseModel):
    landmark: Landmark

    @property
    def coordinates(self) -> Coordinates:
        return self.landmark.location

    @property
    def query(self) -> str:
        return self.landmark.query_seed()


class AreaSubject(BaseModel):
    coordinates: Coordinates
    area: AreaInfo

    @property
    def query(self) -> str:
        # Wider context than AreaInfo.city: a county also disambiguates well.
        context = self.area.address.get("city") or self.area.address.get("town") or self.area.address.get("county")
        return f"{self.area.area_name}, {context}" if context else self.area.area_name


Subject = Union[LandmarkSubject, AreaSubject]

# --- Provider payloads ---

class EncyclopediaHit(BaseModel):
    title: str
    snippet: str = ""


class EncyclopediaSummary(BaseModel):
    title: str
    url: Optional[str] = None
    extract: Optional[str] = None
    is_disambiguation: bool = False


class KnowledgeGraphEntity(BaseModel):
    id: str
    label: Optional[str] = None
    description: Optional[str] = None


class EntityFacts(BaseModel):
    official_website: Optional[str] = None
    inception: Optional[str] = None
    architect: Optional[str] = None
    country: Optional[str] = None
    located_in: Optional[str] = None
    heritage_designation: Optional[str] = None


class SourceDocument(BaseModel):
    """A reference backing a narrative. (title, url) is the identity."""
    model_config = ConfigDict(frozen=True)

    title: str
    url: str
    excerpt: Optional[str] = None

    @property
    def key(self) -> tuple:
        return (self.title, self.url)

# --- Selection ---

class SelectionKind(str, Enum):
    CHOSEN = "chosen"
    NO_CANDIDATE = "no_candidate"
    NO_LANDMARKS = "no_landmarks"


class SelectionOutcome(BaseModel):
    kind: SelectionKind
    landmark: Optional[Landmark] = None
    threshold: Optional[int] = Field(None, description="Threshold that produced the outcome.")
    relaxed: bool = False

# --- Narration ---

class StrategySkip(BaseModel):
    strategy: str
    reason: str


class NarrativeDraft(BaseModel):
    text: str
    used_generative_path: bool
    skipped: List[StrategySkip] = Field(default_factory=list)


class NarrativeResult(BaseModel):
    text: str
    sources: List[SourceDocument] = Field(default_factory=list)
    used_generative_path: bool = False
    area_name: Optional[str] = None
    skipped: List[StrategySkip] = Field(default_factory=list)

# --- Pipeline ---

class PipelineStage(str, Enum):
    SEARCHING = "SEARCHING"
    SCORING = "SCORING"
    SELECTING = "SELECTING"
    AGGREGATING = "AGGREGATING"
    SYNTHESIZING = "SYNTHESIZING"
    AREA_FALLBACK = "AREA_FALLBACK"
    DONE = "DONE"


class StageTiming(BaseModel):
    stage: PipelineStage
    elapsed_ms: float


class TourResult(BaseModel):
    landmark: Optional[Landmark] = None
    narrative: str
    sources: List[SourceDocument] = Field(default_factory=list)
    used_generative_path: bool = False
    area_name: Optional[str] = None
    score: Optional[int] = None
    selection: Optional[SelectionOutcome] = None
    stages: List[StageTiming] = Field(default_factory=list)


class NoResult(BaseModel):
    reason: str
    stages: List[StageTiming] = Field(default_factory=list)
