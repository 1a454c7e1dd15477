"""Point-in-polygon lookup of fire-weather zones."""
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple
import geopandas as gpd
from shapely.geometry import mapping
from campfire.utils.logging import log_structured


ON_SEGMENT_EPSILON = 1e-12
MIN_RING_POINTS = 4

# (longitude, latitude), GeoJSON order
Position = Tuple[float, float]
Ring = List[Position]
PolygonRings = List[Ring]


class GeoPoint(NamedTuple):
    latitude: float
    longitude: float


@dataclass
class GeoBounds:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float


@dataclass
class GeoArea:
    """A fire-weather zone. Every polygon is a list of rings, outer ring first."""
    id: str
    name: str
    geometry_type: str
    polygons: List[PolygonRings]
    bounds: GeoBounds


@dataclass
class ZoneStatus:
    """Regulatory status declared for one zone (e.g. total fire ban)."""
    area_id: str
    area_name: str
    status: str
    status_text: str = ""


class ZoneLookupCode(str, Enum):
    NO_COORDINATES = "NO_COORDINATES"
    DATA_UNAVAILABLE = "DATA_UNAVAILABLE"
    NO_AREA_MATCH = "NO_AREA_MATCH"
    MISSING_AREA_STATUS = "MISSING_AREA_STATUS"
    MATCHED = "MATCHED"


@dataclass
class ZoneLookupResult:
    code: ZoneLookupCode
    zone_name: Optional[str] = None
    status: Optional[ZoneStatus] = None
    overlapping_zone_ids: List[str] = field(default_factory=list)


def parse_position(value: Any) -> Optional[Position]:
    """Parse a GeoJSON [lon, lat] position; None unless both are finite numbers."""
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    lon, lat = value[0], value[1]
    if isinstance(lon, bool) or isinstance(lat, bool):
        return None
    if not isinstance(lon, (int, float)) or not isinstance(lat, (int, float)):
        return None
    if not math.isfinite(lon) or not math.isfinite(lat):
        return None
    return float(lon), float(lat)


def parse_ring(value: Any) -> Optional[Ring]:
    if not isinstance(value, list):
        return None
    ring = [position for position in (parse_position(item) for item in value) if position]
    return ring if len(ring) >= MIN_RING_POINTS else None


def parse_polygon(value: Any) -> Optional[PolygonRings]:
    """
    Parse polygon rings. Rings shorter than 4 points are dropped; a polygon
    whose outer ring is unusable is dropped entirely.
    """
    if not isinstance(value, list) or not value:
        return None
    outer = parse_ring(value[0])
    if outer is None:
        return None
    holes = [ring for ring in (parse_ring(item) for item in value[1:]) if ring]
    return [outer] + holes


def parse_geometry(geometry: Any) -> Optional[Tuple[str, List[PolygonRings]]]:
    if not isinstance(geometry, dict):
        return None
    geometry_type = geometry.get("type")
    coordinates = geometry.get("coordinates")

    if geometry_type == "Polygon":
        polygon = parse_polygon(coordinates)
        return (geometry_type, [polygon]) if polygon else None

    if geometry_type == "MultiPolygon" and isinstance(coordinates, list):
        polygons = [polygon for polygon in (parse_polygon(item) for item in coordinates) if polygon]
        return (geometry_type, polygons) if polygons else None

    return None


def compute_bounds(polygons: Iterable[PolygonRings]) -> GeoBounds:
    lons, lats = [], []
    for polygon in polygons:
        for ring in polygon:
            for lon, lat in ring:
                lons.append(lon)
                lats.append(lat)
    return GeoBounds(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))


def is_within_bounds(point: GeoPoint, bounds: GeoBounds) -> bool:
    return (
        bounds.min_lat <= point.latitude <= bounds.max_lat
        and bounds.min_lon <= point.longitude <= bounds.max_lon
    )


def is_point_on_segment(point: GeoPoint, start: Position, end: Position) -> bool:
    """Whether a point lies on the segment start-end (within a small epsilon)."""
    x, y = point.longitude, point.latitude
    x1, y1 = start
    x2, y2 = end

    squared_length = (x2 - x1) ** 2 + (y2 - y1) ** 2
    if squared_length <= ON_SEGMENT_EPSILON:
        # Zero-length edge, e.g. the closing pair of a closed ring
        return abs(x - x1) <= ON_SEGMENT_EPSILON and abs(y - y1) <= ON_SEGMENT_EPSILON

    cross = (y - y1) * (x2 - x1) - (x - x1) * (y2 - y1)
    if abs(cross) > ON_SEGMENT_EPSILON:
        return False

    dot = (x - x1) * (x2 - x1) + (y - y1) * (y2 - y1)
    if dot < 0:
        return False

    return dot <= squared_length


def is_point_in_ring(point: GeoPoint, ring: Sequence[Position]) -> bool:
    """
    Even-odd ray casting. Points on an edge or vertex count as inside.
    """
    x, y = point.longitude, point.latitude
    inside = False
    count = len(ring)
    j = count - 1
    for i in range(count):
        xi, yi = ring[i]
        xj, yj = ring[j]

        if is_point_on_segment(point, ring[j], ring[i]):
            return True

        if (yi > y) != (yj > y):
            crossing_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < crossing_x:
                inside = not inside
        j = i
    return inside


def is_point_in_polygon(point: GeoPoint, polygon: PolygonRings) -> bool:
    if not polygon or not is_point_in_ring(point, polygon[0]):
        return False
    return not any(is_point_in_ring(point, hole) for hole in polygon[1:])


def is_point_in_geometry(point: GeoPoint, area: GeoArea) -> bool:
    return any(is_point_in_polygon(point, polygon) for polygon in area.polygons)


def find_zones(point: GeoPoint, zones: Iterable[GeoArea]) -> List[GeoArea]:
    """All zones containing a point, in feed order."""
    return [
        zone for zone in zones
        if is_within_bounds(point, zone.bounds) and is_point_in_geometry(point, zone)
    ]


def find_zone(point: GeoPoint, zones: Iterable[GeoArea]) -> Optional[str]:
    """
    Id of the zone containing a point.

    The feed is expected to be non-overlapping; when several zones contain
    the point the first in feed order wins and the overlap is logged.
    """
    matches = find_zones(point, zones)
    if not matches:
        return None
    return _first_zone(point, matches).id


def _first_zone(point: GeoPoint, matches: List[GeoArea]) -> GeoArea:
    if len(matches) > 1:
        log_structured(
            "warning",
            "Point falls in overlapping fire-weather zones",
            latitude=point.latitude,
            longitude=point.longitude,
            zone_ids=[zone.id for zone in matches],
            selected_zone_id=matches[0].id,
        )
    return matches[0]


def _feature_property(properties: Dict[str, Any], *names: str) -> str:
    for name in names:
        value = properties.get(name)
        if value is None or (isinstance(value, float) and math.isnan(value)):
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def parse_zone_feed(payload: Any) -> List[GeoArea]:
    """
    Build zones from a GeoJSON FeatureCollection.

    Features without an id, a name or a usable polygon are skipped, ids
    are de-duplicated (first wins) and zones are sorted by name.

    Args:
        payload: Decoded GeoJSON

    Returns:
        List of GeoArea
    """
    features = payload.get("features") if isinstance(payload, dict) else None
    if not isinstance(features, list):
        return []

    zones: Dict[str, GeoArea] = {}
    for feature in features:
        if not isinstance(feature, dict):
            continue
        properties = feature.get("properties") or {}
        area_id = _feature_property(properties, "FIREAREAID", "id", "ID")
        area_name = _feature_property(properties, "FIREAREA", "name", "NAME")
        if not area_id or not area_name or area_id in zones:
            continue

        parsed = parse_geometry(feature.get("geometry"))
        if parsed is None:
            continue
        geometry_type, polygons = parsed

        zones[area_id] = GeoArea(
            id=area_id,
            name=area_name,
            geometry_type=geometry_type,
            polygons=polygons,
            bounds=compute_bounds(polygons),
        )

    return sorted(zones.values(), key=lambda zone: zone.name)


def load_zone_file(path: Path) -> List[GeoArea]:
    """
    Load zones from a GeoJSON (or any OGR-readable) file.

    Geometries are reprojected to WGS84 when the file declares another CRS.
    """
    gdf = gpd.read_file(path)
    if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs("EPSG:4326")

    features = []
    for _, row in gdf.iterrows():
        geometry = row.geometry
        if geometry is None or geometry.is_empty:
            continue
        properties = {
            column: row[column] for column in gdf.columns
            if column != gdf.geometry.name
        }
        features.append({
            "type": "Feature",
            "properties": properties,
            "geometry": _to_lists(mapping(geometry)),
        })

    zones = parse_zone_feed({"type": "FeatureCollection", "features": features})
    log_structured("info", "Loaded fire-weather zones", path=str(path), zones=len(zones))
    return zones


def _to_lists(value: Any) -> Any:
    """Convert shapely's nested coordinate tuples into lists."""
    if isinstance(value, dict):
        return {key: _to_lists(item) for key, item in value.items()}
    if isinstance(value, tuple) and value and isinstance(value[0], (int, float)):
        return list(value)
    if isinstance(value, (list, tuple)):
        return [_to_lists(item) for item in value]
    return value


def normalize_area_name(value: str) -> str:
    text = (value or "").lower()
    text = re.sub(r"[&/]", " and ", text)
    text = re.sub(r"[^a-z0-9\s-]", " ", text)
    return " ".join(text.split())


def lookup_zone_status(
    zones: List[GeoArea],
    statuses: List[ZoneStatus],
    latitude: Optional[float],
    longitude: Optional[float]
) -> ZoneLookupResult:
    """
    Find the regulatory status for a coordinate.

    The zone's status is looked up by id, then by normalized zone name.

    Returns:
        ZoneLookupResult with a lookup code explaining any gap
    """
    if latitude is None or longitude is None:
        return ZoneLookupResult(ZoneLookupCode.NO_COORDINATES)

    if not zones or not statuses:
        return ZoneLookupResult(ZoneLookupCode.DATA_UNAVAILABLE)

    point = GeoPoint(latitude=latitude, longitude=longitude)
    matches = find_zones(point, zones)
    if not matches:
        return ZoneLookupResult(ZoneLookupCode.NO_AREA_MATCH)

    zone = _first_zone(point, matches)
    overlaps = [match.id for match in matches] if len(matches) > 1 else []

    by_id = {status.area_id: status for status in statuses}
    by_name = {normalize_area_name(status.area_name): status for status in statuses}
    status = by_id.get(zone.id) or by_name.get(normalize_area_name(zone.name))

    if status is None:
        return ZoneLookupResult(
            ZoneLookupCode.MISSING_AREA_STATUS,
            zone_name=zone.name,
            overlapping_zone_ids=overlaps,
        )

    return ZoneLookupResult(
        ZoneLookupCode.MATCHED,
        zone_name=status.area_name,
        status=status,
        overlapping_zone_ids=overlaps,
    )
