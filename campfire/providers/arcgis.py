"""Forestry Corporation ArcGIS feature service provider (authoritative boundaries)."""
from typing import Any, Dict, List, Optional
import requests
from campfire.core.centroids import compute_centroid, rings_to_geometry
from campfire.core.config import CENTROID_CRS
from campfire.core.errors import (
    EmptyResultError,
    HttpStatusError,
    InvalidCoordinatesError,
    MultipleMatchesError,
    ProviderUnavailableError,
)
from campfire.core.models import GeocodeHit, GeocodeProvider
from campfire.core.normalization import (
    normalize_forest_name,
    strip_parentheticals,
    strip_state_forest_suffix,
)
from campfire.providers.base import GeocodingProvider, ProviderResult


def arcgis_query_name(query: str) -> str:
    """
    Derive the forest name sent to the feature service from a query.

    "Badja State Forest (pine plantations), New South Wales, Australia"
    becomes "BADJA".
    """
    name = strip_parentheticals(query).split(",")[0]
    return strip_state_forest_suffix(name).upper()


def build_where_clause(name: str) -> str:
    escaped = name.replace("'", "''")
    return f"UPPER(SFName) LIKE '%{escaped}%'"


class ForestryArcGISProvider(GeocodingProvider):
    """
    Looks up official state forest boundaries by name and returns the
    boundary centroid. Results carry confidence 1.
    """

    provider = GeocodeProvider.FORESTRY_ARCGIS

    def __init__(
        self,
        url: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        centroid_crs: str = CENTROID_CRS
    ):
        """
        Args:
            url: Feature layer query endpoint (".../FeatureServer/0/query")
            session: HTTP session with retry policy
            timeout: Request timeout in seconds
            centroid_crs: Projected CRS used for centroids
        """
        super().__init__(session=session, timeout=timeout)
        self.url = url
        self.centroid_crs = centroid_crs

    def is_available(self) -> bool:
        return bool(self.url)

    def lookup(self, query: str) -> ProviderResult:
        if not self.url:
            raise ProviderUnavailableError("Forestry ArcGIS service URL is not configured")

        name = arcgis_query_name(query)
        if not name:
            raise EmptyResultError("No forest name to query")

        payload = self._get_json(self.url, params={
            "where": build_where_clause(name),
            "outFields": "SFName,SFNo",
            "returnGeometry": "true",
            "outSR": "4326",
            "f": "json",
        })

        if not isinstance(payload, dict):
            raise EmptyResultError("ArcGIS response was not an object")

        error = payload.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            raise HttpStatusError(
                f"ArcGIS error: {error.get('message') or 'unknown error'}",
                http_status=code if isinstance(code, int) else None,
            )

        features = [
            feature for feature in payload.get("features") or []
            if isinstance(feature, dict) and isinstance(feature.get("attributes"), dict)
        ]
        if not features:
            raise EmptyResultError("No ArcGIS features matched", result_count=0)

        selected = self._select_forest(name, features)
        return ProviderResult(hit=self._to_hit(selected, len(features)), result_count=len(features))

    def _select_forest(self, name: str, features: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Group features by forest and pick one forest.

        A forest may be split across several features; they are merged.
        Among several forests, only a unique exact name match is accepted.
        """
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for feature in features:
            forest_key = normalize_forest_name(str(feature["attributes"].get("SFName") or ""))
            groups.setdefault(forest_key, []).append(feature)

        if len(groups) == 1:
            return next(iter(groups.values()))

        exact = groups.get(normalize_forest_name(name))
        if exact is not None:
            return exact

        raise MultipleMatchesError(
            f"ArcGIS matched {len(groups)} forests for {name!r}: "
            + ", ".join(sorted(key for key in groups if key)),
            result_count=len(features),
        )

    def _to_hit(self, features: List[Dict[str, Any]], count: int) -> GeocodeHit:
        rings = []
        for feature in features:
            geometry = feature.get("geometry") or {}
            rings.extend(ring for ring in geometry.get("rings") or [] if isinstance(ring, list))

        shape = rings_to_geometry(rings)
        if shape is None:
            raise InvalidCoordinatesError("ArcGIS feature has no usable boundary rings", result_count=count)

        longitude, latitude = compute_centroid(shape, target_crs=self.centroid_crs)

        attributes = features[0]["attributes"]
        forest_name = str(attributes.get("SFName") or "").strip()
        forest_number = attributes.get("SFNo")
        display_name = f"{forest_name} State Forest"
        if forest_number not in (None, ""):
            display_name = f"{display_name} (SF{forest_number})"

        return GeocodeHit(
            latitude=latitude,
            longitude=longitude,
            display_name=display_name,
            confidence=1.0,
            provider=self.provider,
        )
