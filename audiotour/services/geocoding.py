# audiotour/services/geocoding.py
# Reverse geocoding through Nominatim (OpenStreetMap).

import structlog
from typing import Any, Dict, Optional

from pydantic import ValidationError

from audiotour.core.errors import ProviderError
from audiotour.models.domain import AreaInfo, Coordinates, ReverseGeocodeResult
from audiotour.services.http_client import ProviderClient

logger = structlog.get_logger(__name__)

# Zoom 18 resolves the building/feature itself, 16 the surrounding neighbourhood.
LANDMARK_ZOOM = 18
AREA_ZOOM = 16

# Most specific first.
AREA_NAME_KEYS = (
    "neighbourhood",
    "suburb",
    "district",
    "city_district",
    "city",
    "town",
    "village",
    "county",
)

# Tags that say something about a place's history or status.
SELECTED_EXTRA_TAGS = (
    "wikipedia",
    "wikidata",
    "website",
    "start_date",
    "architect",
    "heritage",
    "heritage:operator",
    "historic",
    "tourism",
)


def _string_map(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, dict):
        return {}
    return {str(k): str(v) for k, v in raw.items() if isinstance(v, (str, int, float))}


class GeocodingClient(ProviderClient):
    provider_name = "nominatim"

    def _default_headers(self) -> Dict[str, str]:
        # Nominatim usage policy asks for a User-Agent identifying the application.
        return {
            "Accept": "application/json",
            "User-Agent": self.settings.PUBLIC_SOURCES_USER_AGENT,
        }

    async def reverse(self, coordinates: Coordinates, zoom: int = LANDMARK_ZOOM) -> ReverseGeocodeResult:
        """Reverse geocode a point. Raises ProviderError when Nominatim has nothing usable."""
        data = await self.get_json(
            f"{self.settings.NOMINATIM_BASE_URL}/reverse",
            params={
                "format": "jsonv2",
                "lat": coordinates.lat,
                "lon": coordinates.lng,
                "zoom": zoom,
                "addressdetails": 1,
                "extratags": 1,
                "namedetails": 1,
            },
        )
        if not isinstance(data, dict) or "error" in data:
            detail = data.get("error") if isinstance(data, dict) else "unexpected payload"
            raise ProviderError(self.provider_name, f"no reverse geocoding result: {detail}")

        osm_id = data.get("osm_id")
        try:
            return ReverseGeocodeResult(
                display_name=data.get("display_name"),
                category=data.get("category"),
                type=data.get("type"),
                osm_type=data.get("osm_type"),
                osm_id=int(osm_id) if osm_id is not None else None,
                address=_string_map(data.get("address")),
                extratags=_string_map(data.get("extratags")),
            )
        except (ValidationError, TypeError, ValueError) as e:
            raise ProviderError(self.provider_name, f"malformed payload: {e}")

    async def describe_area(self, coordinates: Coordinates) -> AreaInfo:
        place = await self.reverse(coordinates, zoom=AREA_ZOOM)
        return area_info_from_place(place)


def area_info_from_place(place: ReverseGeocodeResult) -> AreaInfo:
    """Pick the most specific area name Nominatim gave us."""
    area_name: Optional[str] = None
    for key in AREA_NAME_KEYS:
        if place.address.get(key):
            area_name = place.address[key]
            break
    if not area_name and place.display_name:
        area_name = place.display_name.split(",")[0].strip() or None
    area_name = area_name or "this area"

    return AreaInfo(
        area_name=area_name,
        address=place.address,
        display_name=place.display_name or area_name,
        place=place,
    )


def selected_extratags(place: ReverseGeocodeResult) -> Dict[str, str]:
    """The allow-listed, non-blank tags of a place, trimmed."""
    selected: Dict[str, str] = {}
    for key in SELECTED_EXTRA_TAGS:
        value = place.extratags.get(key)
        if isinstance(value, str) and value.strip():
            selected[key] = value.strip()
    return selected


def osm_url(place: ReverseGeocodeResult, coordinates: Coordinates) -> str:
    if place.osm_type and place.osm_id:
        return f"https://www.openstreetmap.org/{place.osm_type}/{place.osm_id}"
    return f"https://www.openstreetmap.org/#map=19/{coordinates.lat}/{coordinates.lng}"
