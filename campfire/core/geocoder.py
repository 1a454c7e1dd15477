"""Forest coordinate resolution through a cached provider cascade."""
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple
from campfire.core.config import GeocoderConfig
from campfire.core.errors import GeocodeProviderError, ImplausibleResultError
from campfire.core.geocode_cache import GeocodeCache, alias_cache_key, query_cache_key
from campfire.core.models import (
    CACHE_ATTEMPT_PROVIDER,
    ForestGeocodeResult,
    GeocodeHit,
    GeocodeProvider,
    LookupAttempt,
    LookupOutcome,
)
from campfire.core.normalization import (
    collapse_whitespace,
    strip_state_forest_suffix,
    with_state_forest_suffix,
)
from campfire.providers.arcgis import ForestryArcGISProvider, arcgis_query_name
from campfire.providers.base import GeocodingProvider
from campfire.providers.google import GoogleGeocodingProvider
from campfire.providers.nominatim import NominatimProvider
from campfire.utils.http import build_session
from campfire.utils.logging import log_structured


# Words that never identify a particular forest in a geocoder display name
GEOCODE_STOP_WORDS = {
    "state", "forest", "forests", "national", "park", "reserve", "new",
    "south", "wales", "australia", "nsw", "near", "around", "the", "of",
    "and", "pine", "native", "region", "road", "council", "shire", "city",
    "area",
}

# Display names of known false positives (e.g. the agency's own offices)
GEOCODE_BLACKLISTED_NAMES = ("forestry corporation",)

STATE_FOREST_TERM = "state forest"

NOMINATIM_FALLBACK_WARNING = (
    "Google Geocoding failed for one or more lookups; OpenStreetMap Nominatim "
    "fallback coordinates were used where available."
)
GOOGLE_KEY_MISSING_WARNING = (
    "Google Geocoding is unavailable because GOOGLE_MAPS_API_KEY is not configured; "
    "OpenStreetMap Nominatim fallback geocoding is active."
)


def bare_forest_name(name: Optional[str]) -> str:
    """Forest name without parenthetical qualifiers or the "State Forest" suffix."""
    return strip_state_forest_suffix(name or "")


def build_query_candidates(
    forest_name: str,
    directory_name_hint: Optional[str] = None,
    region_suffix: str = "New South Wales, Australia"
) -> List[str]:
    """
    Build the ordered, de-duplicated geocoder queries for a forest.

    Args:
        forest_name: Canonical forest name
        directory_name_hint: Name the facilities directory uses, if different
        region_suffix: Region qualifier appended to every query

    Returns:
        Query strings, most specific first
    """
    names = [collapse_whitespace(forest_name)]
    hint = collapse_whitespace(directory_name_hint)
    if hint and hint.lower() != names[0].lower():
        names.append(hint)

    candidates = []
    for name in names:
        if not name:
            continue
        for variant in (with_state_forest_suffix(name), name, strip_state_forest_suffix(name)):
            if variant:
                candidates.append(f"{variant}, {region_suffix}" if region_suffix else variant)

    return list(dict.fromkeys(candidates))


def extract_significant_words(forest_name: str, directory_name_hint: Optional[str] = None) -> Set[str]:
    """
    Words a plausible geocoder result must mention.

    Parenthetical qualifiers and the "State Forest" suffix are dropped;
    words from the directory name count too.
    """
    parts = [forest_name or "", directory_name_hint or ""]
    words = set()
    for part in parts:
        text = bare_forest_name(part).lower()
        for word in text.split():
            word = word.strip(".,;:'\"")
            if len(word) >= 3 and word not in GEOCODE_STOP_WORDS:
                words.add(word)
    return words


def is_plausible_forest_match(display_name: str, significant_words: Set[str]) -> bool:
    if not significant_words:
        return True
    lowered = (display_name or "").lower()
    return all(word in lowered for word in significant_words)


def validate_plausibility(hit: GeocodeHit, significant_words: Set[str], forest_name: str):
    """
    Raises:
        ImplausibleResultError: The display name misses a significant word
    """
    if not is_plausible_forest_match(hit.display_name, significant_words):
        raise ImplausibleResultError(
            f'Rejected implausible {hit.provider.value} result "{hit.display_name}" '
            f'for forest "{forest_name}"'
        )


def is_blacklisted_result(display_name: str) -> bool:
    lowered = (display_name or "").lower()
    return any(name in lowered for name in GEOCODE_BLACKLISTED_NAMES)


def mentions_state_forest(display_name: Optional[str]) -> bool:
    return STATE_FOREST_TERM in (display_name or "").lower()


class LookupBudget:
    """Per-run allowance of new commercial geocoder calls."""

    def __init__(self, limit: int):
        self.limit = limit
        self.used = 0
        self._lock = threading.Lock()

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    def try_consume(self) -> bool:
        """Take one call from the budget; False when it is exhausted."""
        with self._lock:
            if self.used >= self.limit:
                return False
            self.used += 1
            return True

    def reset(self):
        with self._lock:
            self.used = 0


@dataclass
class _LookupContext:
    """Mutable state for one forest's resolution."""
    forest_name: str
    directory_name_hint: Optional[str]
    alias_key: str
    significant_words: Set[str]
    budget: LookupBudget
    attempts: List[LookupAttempt] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    arcgis_names: Set[str] = field(default_factory=set)


class ForestGeocoder:
    """
    Resolves one coordinate per forest.

    Query candidates are tried in order. For each candidate the query
    cache is checked, then the ArcGIS boundary service, the Google
    geocoder (within the per-run budget) and Nominatim. The first result
    that passes the plausibility filter wins and is cached under both the
    query key and the forest alias key.
    """

    def __init__(
        self,
        cache: GeocodeCache,
        config: Optional[GeocoderConfig] = None,
        arcgis: Optional[GeocodingProvider] = None,
        google: Optional[GeocodingProvider] = None,
        nominatim: Optional[GeocodingProvider] = None,
        session=None
    ):
        """
        Initialize the resolver.

        Args:
            cache: Geocode cache
            config: Resolver settings (environment defaults when omitted)
            arcgis: Authoritative boundary provider override
            google: Commercial geocoder override
            nominatim: Open geocoder override
            session: HTTP session shared by the default providers
        """
        self.cache = cache
        self.config = config or GeocoderConfig.from_env()
        config = self.config

        if session is None:
            session = build_session(config.retry_attempts, config.retry_base_delay_seconds)
            local_session = build_session(
                config.retry_attempts,
                config.retry_base_delay_seconds,
                retry_rate_limited=False,
            )
        else:
            local_session = session

        self.arcgis = arcgis or ForestryArcGISProvider(
            config.arcgis_url,
            session=session,
            timeout=config.request_timeout_seconds,
            centroid_crs=config.centroid_crs,
        )
        self.google = google or GoogleGeocodingProvider(
            config.google_api_key,
            url=config.google_geocoding_url,
            session=session,
            timeout=config.request_timeout_seconds,
        )
        self.nominatim = nominatim or NominatimProvider(
            [url for url in (config.nominatim_base_url, config.nominatim_public_url) if url],
            user_agent=config.nominatim_user_agent,
            session=session,
            local_session=local_session,
            timeout=config.request_timeout_seconds,
            request_delay=config.nominatim_request_delay_seconds,
            local_delay=config.nominatim_local_delay_seconds,
            local_429_retries=config.nominatim_local_429_retries,
            local_429_retry_delay=config.nominatim_local_429_retry_delay_seconds,
        )
        self.budget = LookupBudget(config.max_new_lookups_per_run)

    def reset_budget(self):
        """Start a new pipeline run with a full commercial lookup budget."""
        self.budget.reset()

    def resolve_forest_coordinates(
        self,
        forest_name: str,
        directory_name_hint: Optional[str] = None,
        budget: Optional[LookupBudget] = None
    ) -> ForestGeocodeResult:
        """
        Resolve a coordinate for one forest.

        Args:
            forest_name: Canonical forest name
            directory_name_hint: Directory spelling of the same forest
            budget: Commercial lookup budget (the resolver's run budget by default)

        Returns:
            ForestGeocodeResult; unresolved results carry the attempt trail
            and warnings explaining why
        """
        name = collapse_whitespace(forest_name)
        hint = collapse_whitespace(directory_name_hint) or None
        if hint and hint.lower() == name.lower():
            hint = None

        context = _LookupContext(
            forest_name=name,
            directory_name_hint=hint,
            alias_key=alias_cache_key(name),
            significant_words=extract_significant_words(name, hint),
            budget=budget or self.budget,
        )

        cached = self._cached_alias_hit(context)
        if cached is not None:
            return ForestGeocodeResult.from_hit(cached, context.attempts, context.warnings)

        for query in build_query_candidates(name, hint, self.config.region_suffix):
            found = self._lookup_candidate(query, context)
            if found is None:
                continue
            hit, from_cache = found

            try:
                validate_plausibility(hit, context.significant_words, name)
            except ImplausibleResultError as error:
                self._warn(context, str(error), query=query)
                if from_cache:
                    self.cache.delete(query_cache_key(query))
                if hit.provider != GeocodeProvider.OSM_NOMINATIM:
                    retry = self._try_provider(self.nominatim, query, context)
                    if retry is not None:
                        try:
                            validate_plausibility(retry, context.significant_words, name)
                            return self._accept(query, retry, context)
                        except ImplausibleResultError as retry_error:
                            self._warn(context, str(retry_error), query=query)
                continue

            if (
                not from_cache
                and hit.provider == GeocodeProvider.GOOGLE_GEOCODING
                and not mentions_state_forest(hit.display_name)
            ):
                supplement = self._try_provider(self.nominatim, query, context)
                if (
                    supplement is not None
                    and mentions_state_forest(supplement.display_name)
                    and is_plausible_forest_match(supplement.display_name, context.significant_words)
                ):
                    hit = supplement

            if from_cache:
                self.cache.promote(query_cache_key(query), context.alias_key)
                return ForestGeocodeResult.from_hit(hit, context.attempts, self._warnings(context))
            return self._accept(query, hit, context)

        log_structured(
            "info",
            "No coordinates resolved for forest",
            forest_name=name,
            attempts=len(context.attempts),
        )
        return ForestGeocodeResult(attempts=context.attempts, warnings=self._warnings(context))

    def _cached_alias_hit(self, context: _LookupContext) -> Optional[GeocodeHit]:
        hit = self.cache.get(context.alias_key)
        if hit is None:
            return None

        display = hit.display_name.lower()
        names = [context.forest_name, context.directory_name_hint]
        if any(name and bare_forest_name(name).lower() in display for name in names):
            context.attempts.append(LookupAttempt(
                provider=CACHE_ATTEMPT_PROVIDER,
                query=context.forest_name,
                outcome=LookupOutcome.CACHE_HIT,
                cache_key=context.alias_key,
            ))
            return hit

        log_structured(
            "warning",
            "Discarding stale forest alias cache entry",
            forest_name=context.forest_name,
            display_name=hit.display_name,
        )
        self.cache.delete(context.alias_key)
        return None

    def _lookup_candidate(
        self,
        query: str,
        context: _LookupContext
    ) -> Optional[Tuple[GeocodeHit, bool]]:
        """
        Run the provider cascade for one query.

        Returns:
            (hit, from_cache) for the first usable hit, or None
        """
        cache_key = query_cache_key(query)
        cached = self.cache.get(cache_key)
        if cached is not None:
            context.attempts.append(LookupAttempt(
                provider=CACHE_ATTEMPT_PROVIDER,
                query=query,
                outcome=LookupOutcome.CACHE_HIT,
                cache_key=cache_key,
            ))
            return cached, True

        arcgis_name = arcgis_query_name(query)
        if arcgis_name and arcgis_name not in context.arcgis_names:
            context.arcgis_names.add(arcgis_name)
            hit = self._try_provider(self.arcgis, query, context)
            if hit is not None:
                return hit, False

        if self.google.is_available() and not context.budget.try_consume():
            context.attempts.append(LookupAttempt(
                provider=self.google.get_name(),
                query=query,
                outcome=LookupOutcome.LIMIT_REACHED,
                error_message=f"Reached Google lookup limit ({context.budget.limit}) for this run",
            ))
        else:
            hit = self._try_provider(self.google, query, context)
            if hit is not None:
                return hit, False

        context.warnings.append(
            NOMINATIM_FALLBACK_WARNING if self.google.is_available() else GOOGLE_KEY_MISSING_WARNING
        )
        hit = self._try_provider(self.nominatim, query, context)
        if hit is not None:
            return hit, False
        return None

    def _try_provider(
        self,
        provider: GeocodingProvider,
        query: str,
        context: _LookupContext
    ) -> Optional[GeocodeHit]:
        """Call one provider, recording the attempt. Blacklisted hits are dropped."""
        try:
            result = provider.lookup(query)
        except GeocodeProviderError as error:
            context.attempts.append(LookupAttempt(
                provider=provider.get_name(),
                query=query,
                outcome=error.outcome,
                http_status=error.http_status,
                result_count=error.result_count,
                error_message=str(error),
            ))
            log_structured(
                "debug",
                "Geocode provider attempt failed",
                provider=provider.get_name(),
                query=query,
                outcome=error.outcome.value,
                error=str(error),
            )
            return None

        context.attempts.append(LookupAttempt(
            provider=provider.get_name(),
            query=query,
            outcome=LookupOutcome.LOOKUP_SUCCESS,
            result_count=result.result_count,
        ))
        log_structured(
            "debug",
            "Geocode provider attempt succeeded",
            provider=provider.get_name(),
            query=query,
            display_name=result.hit.display_name,
        )

        if is_blacklisted_result(result.hit.display_name):
            self._warn(
                context,
                f'Rejected blacklisted {provider.get_name()} result "{result.hit.display_name}" '
                f'for query "{query}"',
                query=query,
            )
            return None

        return result.hit

    def _accept(self, query: str, hit: GeocodeHit, context: _LookupContext) -> ForestGeocodeResult:
        query_key = query_cache_key(query)
        self.cache.put(query_key, hit)
        self.cache.promote(query_key, context.alias_key)

        log_structured(
            "info",
            "Resolved forest coordinates",
            forest_name=context.forest_name,
            provider=hit.provider.value,
            query=query,
            latitude=hit.latitude,
            longitude=hit.longitude,
        )
        return ForestGeocodeResult.from_hit(hit, context.attempts, self._warnings(context))

    def _warn(self, context: _LookupContext, message: str, **fields):
        context.warnings.append(message)
        log_structured("warning", message, forest_name=context.forest_name, **fields)

    @staticmethod
    def _warnings(context: _LookupContext) -> List[str]:
        return list(dict.fromkeys(context.warnings))
