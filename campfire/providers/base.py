"""Base class for geocoding providers."""
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
import requests
from campfire.core.errors import (
    HttpStatusError,
    InvalidCoordinatesError,
    RequestFailedError,
)
from campfire.core.models import GeocodeHit, GeocodeProvider


@dataclass
class ProviderResult:
    """A usable hit plus how many raw results the provider returned."""
    hit: GeocodeHit
    result_count: int


class GeocodingProvider(ABC):
    """Base class for coordinate providers in the resolution cascade."""

    provider = None  # GeocodeProvider member, set by subclasses

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 15.0):
        self.session = session
        self.timeout = timeout

    @abstractmethod
    def lookup(self, query: str) -> ProviderResult:
        """
        Geocode one query string.

        Args:
            query: Full query text, e.g. "Badja State Forest, New South Wales, Australia"

        Returns:
            ProviderResult with the best hit

        Raises:
            GeocodeProviderError: When the provider has nothing usable
        """
        pass

    def is_available(self) -> bool:
        """Whether the provider is configured well enough to be called."""
        return True

    def get_name(self) -> str:
        """Get provider name."""
        return self.provider.value if isinstance(self.provider, GeocodeProvider) else type(self).__name__

    def _get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None
    ) -> Any:
        """
        GET a URL and decode its JSON body.

        Raises:
            RequestFailedError: Network failure, timeout or undecodable body
            HttpStatusError: Non-2xx status after the session's retries
        """
        session = session or self.session
        try:
            response = session.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.RequestException as error:
            raise RequestFailedError(f"{self.get_name()} request failed: {error}") from error

        if not response.ok:
            raise HttpStatusError(
                f"{self.get_name()} returned HTTP {response.status_code}",
                http_status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as error:
            raise RequestFailedError(
                f"{self.get_name()} returned invalid JSON: {error}"
            ) from error


def parse_number(value: Any) -> Optional[float]:
    """Parse a numeric provider value, returning None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def require_coordinates(latitude: Any, longitude: Any, count: int):
    """
    Validate a latitude/longitude pair.

    Returns:
        Tuple of (latitude, longitude) floats

    Raises:
        InvalidCoordinatesError: Missing, non-numeric or out-of-range values
    """
    lat = parse_number(latitude)
    lon = parse_number(longitude)
    if lat is None or lon is None or not -90 <= lat <= 90 or not -180 <= lon <= 180:
        raise InvalidCoordinatesError(
            f"Invalid coordinates in top result: {latitude!r}, {longitude!r}",
            result_count=count,
        )
    return lat, lon
