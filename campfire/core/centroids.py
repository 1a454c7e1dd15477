"""Centroid computation for forest boundary rings."""
from typing import List, Sequence, Tuple
from pyproj import Transformer
from shapely.geometry import LinearRing, MultiPolygon, Polygon
from shapely.ops import transform
from campfire.core.config import CENTROID_CRS


def rings_to_geometry(rings: Sequence[Sequence[Sequence[float]]]):
    """
    Build a shapely geometry from ArcGIS-style [x, y] rings.

    The first ring is an outer ring. Later rings wound the same way start a
    new outer ring; rings wound the other way are holes of the current one.

    Args:
        rings: Rings of [lon, lat] pairs

    Returns:
        Polygon or MultiPolygon, or None when no ring is usable
    """
    polygons: List[Tuple[list, List[list]]] = []
    outer_ccw = None

    for ring in rings:
        points = [
            (float(point[0]), float(point[1])) for point in ring
            if isinstance(point, (list, tuple)) and len(point) >= 2
            and all(isinstance(value, (int, float)) for value in point[:2])
        ]
        if len(points) < 3:
            continue
        ccw = LinearRing(points).is_ccw
        if outer_ccw is None:
            outer_ccw = ccw
        if ccw == outer_ccw:
            polygons.append((points, []))
        else:
            polygons[-1][1].append(points)

    shapes = [Polygon(shell, holes) for shell, holes in polygons]
    shapes = [shape for shape in shapes if not shape.is_empty and shape.area > 0]
    if not shapes:
        return None
    if len(shapes) == 1:
        return shapes[0]
    return MultiPolygon(shapes)


def compute_centroid(
    geometry,
    source_crs: str = "EPSG:4326",
    target_crs: str = CENTROID_CRS
) -> Tuple[float, float]:
    """
    Compute centroid in a projected CRS, return in the source CRS.

    Args:
        geometry: Shapely geometry in source_crs
        source_crs: Source CRS (default WGS84)
        target_crs: Projected CRS for the area-weighted centroid

    Returns:
        Tuple of (longitude, latitude) in source CRS
    """
    to_projected = Transformer.from_crs(source_crs, target_crs, always_xy=True)
    to_source = Transformer.from_crs(target_crs, source_crs, always_xy=True)

    projected = transform(to_projected.transform, geometry)
    centroid = projected.centroid
    lon, lat = to_source.transform(centroid.x, centroid.y)

    return lon, lat
