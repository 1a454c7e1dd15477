"""OpenStreetMap Nominatim provider (self-hosted first, then public)."""
import time
from typing import Any, Callable, List, Optional
from urllib.parse import urlparse
import requests
from campfire.core.errors import (
    EmptyResultError,
    GeocodeProviderError,
    HttpStatusError,
    ProviderUnavailableError,
)
from campfire.core.models import GeocodeHit, GeocodeProvider
from campfire.providers.base import (
    GeocodingProvider,
    ProviderResult,
    parse_number,
    require_coordinates,
)
from campfire.utils.logging import log_structured


LOCAL_HOSTNAMES = {"localhost", "127.0.0.1", "::1", "host.docker.internal"}


def is_local_nominatim(base_url: str) -> bool:
    """Whether a base URL points at a self-hosted instance."""
    return (urlparse(base_url).hostname or "").lower() in LOCAL_HOSTNAMES


class NominatimProvider(GeocodingProvider):
    """
    Open geocoder. Each configured base URL is tried in order within one
    lookup; the top result's importance is used as confidence.
    """

    provider = GeocodeProvider.OSM_NOMINATIM

    def __init__(
        self,
        base_urls: List[str],
        user_agent: str,
        session: Optional[requests.Session] = None,
        local_session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        request_delay: float = 1.2,
        local_delay: float = 0.2,
        local_429_retries: int = 4,
        local_429_retry_delay: float = 1.5,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Args:
            base_urls: Nominatim roots, self-hosted first
            user_agent: User-Agent required by the public usage policy
            session: Session for public instances (retries 429 with backoff)
            local_session: Session for self-hosted instances (429 handled here)
            timeout: Request timeout in seconds
            request_delay: Pause after each public request
            local_delay: Pause after each self-hosted request
            local_429_retries: Extra tries when a self-hosted instance answers 429
            local_429_retry_delay: Fixed pause before each of those tries
            sleep: Sleep function, replaceable in tests
        """
        super().__init__(session=session, timeout=timeout)
        self.base_urls = [url.rstrip("/") for url in dict.fromkeys(base_urls) if url]
        self.user_agent = user_agent
        self.local_session = local_session or session
        self.request_delay = request_delay
        self.local_delay = local_delay
        self.local_429_retries = local_429_retries
        self.local_429_retry_delay = local_429_retry_delay
        self.sleep = sleep

    def is_available(self) -> bool:
        return bool(self.base_urls)

    def lookup(self, query: str) -> ProviderResult:
        if not self.base_urls:
            raise ProviderUnavailableError("No Nominatim base URL configured")

        last_error: Optional[GeocodeProviderError] = None
        for base_url in self.base_urls:
            try:
                return self._lookup_at(base_url, query)
            except GeocodeProviderError as error:
                log_structured(
                    "debug",
                    "Nominatim lookup failed",
                    base_url=base_url,
                    query=query,
                    outcome=error.outcome.value,
                    error=str(error),
                )
                last_error = error

        raise last_error

    def _lookup_at(self, base_url: str, query: str) -> ProviderResult:
        local = is_local_nominatim(base_url)
        session = self.local_session if local else self.session
        delay = self.local_delay if local else self.request_delay

        retries = 0
        while True:
            try:
                payload = self._get_json(
                    f"{base_url}/search",
                    params={"q": query, "format": "jsonv2", "countrycodes": "au", "limit": 1},
                    headers={"User-Agent": self.user_agent, "Accept-Language": "en"},
                    session=session,
                )
            except HttpStatusError as error:
                if local and error.http_status == 429 and retries < self.local_429_retries:
                    retries += 1
                    self.sleep(self.local_429_retry_delay)
                    continue
                raise
            finally:
                if delay > 0:
                    self.sleep(delay)
            break

        return self._parse(payload, query)

    def _parse(self, payload: Any, query: str) -> ProviderResult:
        rows = [row for row in payload if isinstance(row, dict)] if isinstance(payload, list) else []
        if not rows:
            raise EmptyResultError("Nominatim returned no results", result_count=0)

        top = rows[0]
        latitude, longitude = require_coordinates(top.get("lat"), top.get("lon"), len(rows))

        hit = GeocodeHit(
            latitude=latitude,
            longitude=longitude,
            display_name=str(top.get("display_name") or query),
            confidence=parse_number(top.get("importance")),
            provider=self.provider,
        )
        return ProviderResult(hit=hit, result_count=len(rows))
