"""Exception hierarchy for coordinate resolution and cache storage."""
from typing import Optional
from campfire.core.models import LookupOutcome


class CampfireError(Exception):
    """Base class for all errors raised by this package."""


class GeocodeProviderError(CampfireError):
    """
    A provider could not produce a usable hit for one query.

    The resolver catches these, records a lookup attempt and moves on to
    the next provider or query candidate.
    """

    outcome = LookupOutcome.REQUEST_FAILED

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        result_count: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.result_count = result_count


class ProviderUnavailableError(GeocodeProviderError):
    """Provider is not configured (missing credentials or URL)."""
    outcome = LookupOutcome.PROVIDER_UNAVAILABLE


class RequestFailedError(GeocodeProviderError):
    """Network failure or timeout after retries."""
    outcome = LookupOutcome.REQUEST_FAILED


class HttpStatusError(GeocodeProviderError):
    """Provider answered with a non-success status or an error payload."""
    outcome = LookupOutcome.HTTP_ERROR


class EmptyResultError(GeocodeProviderError):
    """Provider answered but returned nothing usable."""
    outcome = LookupOutcome.EMPTY_RESULT


class InvalidCoordinatesError(GeocodeProviderError):
    """Top result carried missing or non-numeric coordinates."""
    outcome = LookupOutcome.INVALID_COORDINATES


class MultipleMatchesError(GeocodeProviderError):
    """Authoritative service matched several distinct forests."""
    outcome = LookupOutcome.MULTIPLE_MATCHES


class ImplausibleResultError(GeocodeProviderError):
    """Result does not textually correspond to the queried forest."""
    outcome = LookupOutcome.IMPLAUSIBLE_RESULT


class StorageCorruptionError(CampfireError):
    """Cache backing store became read-only or inconsistent."""
