# audiotour/services/places.py
# Place search through the Foursquare Places API, mapped into Landmark models.

import structlog
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from audiotour.core.errors import ConfigurationError, ProviderError
from audiotour.models.domain import Coordinates, Landmark
from audiotour.services.http_client import ProviderClient
from audiotour.utils.haversine import haversine_m

logger = structlog.get_logger(__name__)

# Foursquare "Landmarks and Outdoors" subtree: historic sites, monuments, landmarks.
LANDMARK_CATEGORY_IDS = ",".join(str(c) for c in range(16000, 16101))


def bearer(raw_token: str) -> str:
    token = raw_token.strip()
    return token if token.lower().startswith("bearer ") else f"Bearer {token}"


class PlacesClient(ProviderClient):
    """Search nearby places.

    Unlike the enrichment providers, a failure here is fatal to the pipeline,
    so errors propagate as ConfigurationError/ProviderError.
    """

    provider_name = "foursquare"

    def __init__(self, settings, timeout: Optional[float] = None, transport=None):
        super().__init__(
            settings,
            timeout=timeout if timeout is not None else settings.PLACES_TIMEOUT_SECONDS,
            transport=transport,
        )

    def _default_headers(self) -> Dict[str, str]:
        if not self.settings.has_places_credential:
            raise ConfigurationError(self.provider_name, "FOURSQUARE_API_KEY is not configured")
        return {
            "Accept": "application/json",
            "Authorization": bearer(self.settings.FOURSQUARE_API_KEY),
            "X-Places-Api-Version": self.settings.FOURSQUARE_PLACES_API_VERSION,
            "Accept-Language": "en",
        }

    async def search_places(
        self,
        coordinates: Coordinates,
        radius_m: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Landmark]:
        radius_m = radius_m or self.settings.SEARCH_RADIUS_M
        limit = limit or self.settings.SEARCH_LIMIT
        data = await self.get_json(
            f"{self.settings.FOURSQUARE_API_BASE}/places/search",
            params={
                "ll": f"{coordinates.lat},{coordinates.lng}",
                "radius": radius_m,
                "limit": limit,
                "categories": LANDMARK_CATEGORY_IDS,
            },
        )
        if not isinstance(data, dict):
            raise ProviderError(self.provider_name, "unexpected search payload")

        results = data.get("results")
        if results is None:
            results = []
        if not isinstance(results, list):
            raise ProviderError(self.provider_name, "unexpected search payload")

        landmarks: List[Landmark] = []
        for place in results:
            landmark = to_landmark(place, origin=coordinates)
            if landmark is None:
                logger.warning(
                    "place_skipped",
                    reason="unmappable",
                    place_name=place.get("name") if isinstance(place, dict) else None,
                )
                continue
            landmarks.append(landmark)
        logger.info("places_found", count=len(landmarks), radius_m=radius_m)
        return landmarks

    async def get_place(self, place_id: str) -> Optional[Landmark]:
        data = await self.get_json(f"{self.settings.FOURSQUARE_API_BASE}/places/{place_id}")
        if not isinstance(data, dict):
            return None
        return to_landmark(data)


def _place_coordinates(place: Dict[str, Any]) -> Optional[Coordinates]:
    lat = place.get("latitude")
    lng = place.get("longitude")
    if lat is None or lng is None:
        main = ((place.get("geocodes") or {}).get("main")) or {}
        lat, lng = main.get("latitude"), main.get("longitude")
    if lat is None or lng is None:
        return None
    return Coordinates(lat=lat, lng=lng)


def to_landmark(place: Any, origin: Optional[Coordinates] = None) -> Optional[Landmark]:
    """Map one Foursquare result (places-api or v3 shape) to a Landmark.

    Returns None when the payload lacks a name or usable coordinates.
    """
    if not isinstance(place, dict) or not place.get("name"):
        return None
    try:
        location = _place_coordinates(place)
        if location is None:
            return None

        categories = place.get("categories") or []
        category = (categories[0] or {}).get("name") if categories else None

        distance = place.get("distance")
        if distance is None and origin is not None:
            distance = haversine_m(origin.lat, origin.lng, location.lat, location.lng)

        place_id = place.get("fsq_place_id") or place.get("fsq_id") or f"{place['name']}@{location.lat},{location.lng}"

        return Landmark(
            id=str(place_id),
            name=place["name"],
            category=category or "Landmark",
            distance=float(distance or 0),
            location=location,
            address=(place.get("location") or {}).get("formatted_address"),
            rating=place.get("rating"),
            description=place.get("description"),
        )
    except (ValidationError, TypeError, ValueError, AttributeError, KeyError, IndexError):
        return None
