"""Google Geocoding API provider."""
from typing import Any, Dict, Iterable, List, Optional
import requests
from campfire.core.errors import EmptyResultError, HttpStatusError, ProviderUnavailableError
from campfire.core.models import GeocodeHit, GeocodeProvider
from campfire.providers.base import GeocodingProvider, ProviderResult, require_coordinates


# Street/premise-level results are never a forest
REJECTED_RESULT_TYPES = {
    "street_address", "route", "intersection", "premise", "subpremise",
    "floor", "room", "post_box", "parking", "bus_station", "train_station",
    "transit_station", "airport",
}

FEATURE_RESULT_TYPES = {
    "natural_feature", "park", "point_of_interest", "establishment", "campground",
}

AREA_RESULT_TYPES = {
    "locality", "sublocality", "administrative_area_level_1",
    "administrative_area_level_2", "administrative_area_level_3",
    "administrative_area_level_4", "postal_code", "colloquial_area",
    "neighborhood",
}

FEATURE_CONFIDENCE = 1.0
AREA_CONFIDENCE = 0.5
DEFAULT_CONFIDENCE = 0.3

# Status values that mean "nothing found" rather than a failure
_EMPTY_STATUSES = {"OK", "ZERO_RESULTS"}


def confidence_for_types(result_types: Iterable[str]) -> float:
    """
    Map Google place types to a confidence score.

    Args:
        result_types: The "types" list of a geocoding result

    Returns:
        1 for natural features and parks, 0.5 for administrative areas, 0.3 otherwise
    """
    types = set(result_types or [])
    if types & FEATURE_RESULT_TYPES:
        return FEATURE_CONFIDENCE
    if types & AREA_RESULT_TYPES:
        return AREA_CONFIDENCE
    return DEFAULT_CONFIDENCE


class GoogleGeocodingProvider(GeocodingProvider):
    """Commercial geocoder; only used when an API key is configured."""

    provider = GeocodeProvider.GOOGLE_GEOCODING

    def __init__(
        self,
        api_key: Optional[str],
        url: str = "https://maps.googleapis.com/maps/api/geocode/json",
        session: Optional[requests.Session] = None,
        timeout: float = 15.0
    ):
        super().__init__(session=session, timeout=timeout)
        self.api_key = api_key
        self.url = url

    def is_available(self) -> bool:
        return bool(self.api_key)

    def lookup(self, query: str) -> ProviderResult:
        if not self.api_key:
            raise ProviderUnavailableError("GOOGLE_MAPS_API_KEY is not set")

        payload = self._get_json(self.url, params={
            "address": query,
            "region": "au",
            "language": "en",
            "key": self.api_key,
        })
        if not isinstance(payload, dict):
            raise EmptyResultError("Google response was not an object")

        status = payload.get("status")
        if status and status not in _EMPTY_STATUSES:
            message = payload.get("error_message") or status
            raise HttpStatusError(f"Google geocoding failed: {message}")

        results: List[Dict[str, Any]] = [
            result for result in payload.get("results") or [] if isinstance(result, dict)
        ]
        if not results:
            raise EmptyResultError("Google returned no results", result_count=0)

        top = results[0]
        result_types = [str(value) for value in top.get("types") or []]
        rejected = sorted(set(result_types) & REJECTED_RESULT_TYPES)
        if rejected:
            raise EmptyResultError(
                f"Rejected street-level Google result type: {', '.join(rejected)}",
                result_count=len(results),
            )

        location = (top.get("geometry") or {}).get("location") or {}
        latitude, longitude = require_coordinates(location.get("lat"), location.get("lng"), len(results))

        hit = GeocodeHit(
            latitude=latitude,
            longitude=longitude,
            display_name=str(top.get("formatted_address") or query),
            confidence=confidence_for_types(result_types),
            provider=self.provider,
        )
        return ProviderResult(hit=hit, result_count=len(results))
