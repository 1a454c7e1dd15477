"""Data models for forest matching, coordinate resolution and zone lookup."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


COORDINATE_DECIMALS = 6


class MatchType(str, Enum):
    """How a source name was resolved against the target universe."""
    EXACT = "EXACT"
    FUZZY = "FUZZY"
    UNMATCHED = "UNMATCHED"


class GeocodeProvider(str, Enum):
    """Providers that can produce a cached coordinate hit."""
    FORESTRY_ARCGIS = "FORESTRY_ARCGIS"
    GOOGLE_GEOCODING = "GOOGLE_GEOCODING"
    OSM_NOMINATIM = "OSM_NOMINATIM"


# Provider names written by earlier cache schemas
LEGACY_PROVIDER_NAMES = {
    "FCNSW_ARCGIS": GeocodeProvider.FORESTRY_ARCGIS,
    "GOOGLE_PLACES": GeocodeProvider.GOOGLE_GEOCODING,
    "GOOGLE": GeocodeProvider.GOOGLE_GEOCODING,
    "NOMINATIM": GeocodeProvider.OSM_NOMINATIM,
}

CACHE_ATTEMPT_PROVIDER = "CACHE"


class LookupOutcome(str, Enum):
    """Outcome of one provider try for one query candidate."""
    CACHE_HIT = "CACHE_HIT"
    LOOKUP_SUCCESS = "LOOKUP_SUCCESS"
    LIMIT_REACHED = "LIMIT_REACHED"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    HTTP_ERROR = "HTTP_ERROR"
    REQUEST_FAILED = "REQUEST_FAILED"
    EMPTY_RESULT = "EMPTY_RESULT"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    MULTIPLE_MATCHES = "MULTIPLE_MATCHES"
    IMPLAUSIBLE_RESULT = "IMPLAUSIBLE_RESULT"


def normalize_provider(value: Any) -> GeocodeProvider:
    """
    Map a stored provider name (including legacy names) to a provider.

    Unknown names fall back to the open geocoder, which was the only
    provider before the cascade existed.
    """
    if isinstance(value, GeocodeProvider):
        return value
    text = str(value or "").strip().upper()
    if text in LEGACY_PROVIDER_NAMES:
        return LEGACY_PROVIDER_NAMES[text]
    try:
        return GeocodeProvider(text)
    except ValueError:
        return GeocodeProvider.OSM_NOMINATIM


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CanonicalName:
    """A raw forest name together with its comparison key."""
    raw: str
    key: str


@dataclass
class MatchResult:
    """Result of matching one source name."""
    match_type: MatchType
    matched_name: Optional[str] = None
    score: Optional[float] = None

    def __post_init__(self):
        if self.match_type == MatchType.EXACT:
            self.score = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_type": self.match_type.value,
            "matched_name": self.matched_name,
            "score": self.score,
        }


@dataclass
class GeocodeHit:
    """A coordinate produced by one provider."""
    latitude: float
    longitude: float
    display_name: str
    confidence: Optional[float]
    provider: GeocodeProvider
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        """Round coordinates and coerce stored values."""
        self.latitude = round(float(self.latitude), COORDINATE_DECIMALS)
        self.longitude = round(float(self.longitude), COORDINATE_DECIMALS)
        self.provider = normalize_provider(self.provider)
        if isinstance(self.updated_at, str):
            self.updated_at = datetime.fromisoformat(self.updated_at)
        if self.updated_at.tzinfo is None:
            self.updated_at = self.updated_at.replace(tzinfo=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-serialisable dictionary."""
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "display_name": self.display_name,
            "confidence": self.confidence,
            "provider": self.provider.value,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeocodeHit":
        return cls(
            latitude=data["latitude"],
            longitude=data["longitude"],
            display_name=data.get("display_name") or "",
            confidence=data.get("confidence"),
            provider=data.get("provider"),
            updated_at=data.get("updated_at") or utc_now(),
        )


@dataclass
class LookupAttempt:
    """One entry in the diagnostic trail of a coordinate resolution."""
    provider: str
    query: str
    outcome: LookupOutcome
    http_status: Optional[int] = None
    result_count: Optional[int] = None
    error_message: Optional[str] = None
    cache_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "query": self.query,
            "outcome": self.outcome.value,
            "http_status": self.http_status,
            "result_count": self.result_count,
            "error_message": self.error_message,
            "cache_key": self.cache_key,
        }


@dataclass
class ForestGeocodeResult:
    """Resolved coordinate for one forest, or the trail explaining its absence."""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    display_name: Optional[str] = None
    confidence: Optional[float] = None
    provider: Optional[GeocodeProvider] = None
    attempts: List[LookupAttempt] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_hit(
        cls,
        hit: GeocodeHit,
        attempts: List[LookupAttempt],
        warnings: List[str]
    ) -> "ForestGeocodeResult":
        return cls(
            latitude=hit.latitude,
            longitude=hit.longitude,
            display_name=hit.display_name,
            confidence=hit.confidence,
            provider=hit.provider,
            attempts=attempts,
            warnings=warnings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "display_name": self.display_name,
            "confidence": self.confidence,
            "provider": self.provider.value if self.provider else None,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
            "warnings": list(self.warnings),
        }
