"""Human-readable explanations for unresolved coordinates and zones."""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from campfire.core.models import (
    ForestGeocodeResult,
    GeocodeProvider,
    LookupAttempt,
    LookupOutcome,
)
from campfire.core.spatial import ZoneLookupCode, ZoneLookupResult


NO_ATTEMPTS_MESSAGE = "No geocoding attempt diagnostics were captured for this forest."

ZONE_REASONS = {
    ZoneLookupCode.NO_COORDINATES: "Coordinates were unavailable, so the fire-weather zone lookup could not run.",
    ZoneLookupCode.NO_AREA_MATCH: "Coordinates did not match a fire-weather area polygon.",
    ZoneLookupCode.MISSING_AREA_STATUS: (
        "A fire-weather area was matched, but the status feed had no entry for that area."
    ),
    ZoneLookupCode.DATA_UNAVAILABLE: "Fire-weather zone data was unavailable or incomplete during lookup.",
}


@dataclass
class GeocodeDiagnostics:
    reason: str
    debug: List[str] = field(default_factory=list)


@dataclass
class ZoneDiagnostics:
    reason: str
    lookup_code: ZoneLookupCode
    zone_name: Optional[str] = None
    debug: List[str] = field(default_factory=list)


def describe_attempt(prefix: str, attempt: LookupAttempt) -> str:
    """
    One debug line for a lookup attempt.

    Example: "Forest lookup: EMPTY_RESULT | provider=GOOGLE_GEOCODING | query=... | results=0"
    """
    details = [
        f"{prefix}: {attempt.outcome.value}",
        f"provider={attempt.provider}",
        f"query={attempt.query}",
    ]
    if attempt.http_status is not None:
        details.append(f"http={attempt.http_status}")
    if attempt.result_count is not None:
        details.append(f"results={attempt.result_count}")
    if attempt.error_message:
        details.append(f"error={attempt.error_message}")
    return " | ".join(details)


def select_failure_reason(attempts: Iterable[LookupAttempt]) -> str:
    """Pick the most relevant explanation for why no coordinate was resolved."""
    attempts = list(attempts)
    outcomes = {attempt.outcome for attempt in attempts}

    if LookupOutcome.LIMIT_REACHED in outcomes:
        return "Geocoding lookup limit reached before coordinates were resolved."

    if any(
        attempt.outcome == LookupOutcome.PROVIDER_UNAVAILABLE
        and attempt.provider == GeocodeProvider.GOOGLE_GEOCODING.value
        for attempt in attempts
    ):
        return "Google geocoding is unavailable because GOOGLE_MAPS_API_KEY is missing."

    if outcomes & {LookupOutcome.HTTP_ERROR, LookupOutcome.REQUEST_FAILED}:
        return "Geocoding request failed before coordinates were resolved."

    if outcomes & {LookupOutcome.EMPTY_RESULT, LookupOutcome.INVALID_COORDINATES}:
        return "No usable geocoding results were returned for this forest."

    return "Coordinates were unavailable after forest geocoding."


def build_geocode_diagnostics(
    result: ForestGeocodeResult,
    prefix: str = "Forest lookup"
) -> Optional[GeocodeDiagnostics]:
    """
    Explain an unresolved coordinate.

    Returns:
        None when the forest was resolved
    """
    if result.resolved:
        return None

    debug = [describe_attempt(prefix, attempt) for attempt in result.attempts]
    if not debug:
        debug.append(NO_ATTEMPTS_MESSAGE)

    return GeocodeDiagnostics(reason=select_failure_reason(result.attempts), debug=debug)


def build_zone_diagnostics(
    lookup: ZoneLookupResult,
    latitude: Optional[float],
    longitude: Optional[float]
) -> Optional[ZoneDiagnostics]:
    """Explain a zone lookup that did not produce a status. None when matched."""
    if lookup.code == ZoneLookupCode.MATCHED:
        return None

    debug = [
        f"lookupCode={lookup.code.value}",
        f"latitude={latitude}",
        f"longitude={longitude}",
        f"zoneName={lookup.zone_name}",
    ]
    if lookup.overlapping_zone_ids:
        debug.append(f"overlappingZones={','.join(lookup.overlapping_zone_ids)}")

    return ZoneDiagnostics(
        reason=ZONE_REASONS[lookup.code],
        lookup_code=lookup.code,
        zone_name=lookup.zone_name,
        debug=debug,
    )
