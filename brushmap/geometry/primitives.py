"""
Geometry primitives for the brush editor.

Pure functions over lng/lat geometry - no state, no I/O. Every boolean
operation returns a cleaned result: polygonal parts only, exterior rings
counter-clockwise, zero-area members dropped, and ``None`` instead of an
empty geometry.

GEOS failures never escape as library exceptions. An operation that fails
is retried once on repaired (``make_valid``) inputs; if it still fails a
``GeometryOperationError`` is raised for the caller to turn into a
"did not apply" result.
"""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

import shapely
import structlog
from shapely.affinity import translate
from shapely.errors import GEOSException
from shapely.geometry import LineString, MultiPolygon, Polygon, box
from shapely.geometry.base import BaseGeometry
from shapely.geometry.polygon import orient
from shapely.validation import make_valid

from brushmap.utils.exceptions import GeometryOperationError
from brushmap.utils.monitoring import timed_geometry

logger = structlog.get_logger(__name__)

Polygonal = Union[Polygon, MultiPolygon]

# Mean earth radius, the same sphere used for great-circle destinations
EARTH_RADIUS_KM = 6371.0088
KM_PER_DEGREE = math.pi * EARTH_RADIUS_KM / 180.0

DEFAULT_STEPS = 64
MIN_STEPS = 32

# Anything smaller (in square degrees) is floating-point debris
MIN_POLYGON_AREA = 1e-12

WORLD = box(-180.0, -90.0, 180.0, 90.0)


def wrap_lng(lng: float) -> float:
    """Normalize a longitude into [-180, 180)."""
    if -180.0 <= lng < 180.0:
        return lng
    return (lng + 180.0) % 360.0 - 180.0


@dataclass(frozen=True)
class Point:
    """A WGS84 coordinate in degrees."""

    lng: float
    lat: float

    def __post_init__(self):
        if not (math.isfinite(self.lng) and math.isfinite(self.lat)):
            raise ValueError(f"Coordinates must be finite, got ({self.lng}, {self.lat})")
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude must be within [-90, 90], got {self.lat}")
        object.__setattr__(self, "lng", wrap_lng(self.lng))

    @classmethod
    def of(cls, value) -> "Point":
        """Build a Point from a Point, a (lng, lat) pair or a {"lng", "lat"} mapping."""
        if isinstance(value, Point):
            return value
        if isinstance(value, dict):
            lng = value.get("lng", value.get("lon"))
            lat = value.get("lat")
            if lng is None or lat is None:
                raise ValueError(f"Mapping needs 'lng' and 'lat' keys, got {sorted(value)}")
            return cls(float(lng), float(lat))
        lng, lat = value
        return cls(float(lng), float(lat))

    def as_tuple(self):
        return (self.lng, self.lat)


def _iter_polygons(geom: BaseGeometry) -> Iterable[Polygon]:
    if isinstance(geom, Polygon):
        yield geom
    elif hasattr(geom, "geoms"):
        for part in geom.geoms:
            yield from _iter_polygons(part)


def clean(geom: Optional[BaseGeometry]) -> Optional[Polygonal]:
    """Reduce any geometry to a valid Polygon/MultiPolygon, or None when nothing is left."""
    if geom is None or geom.is_empty:
        return None

    if not geom.is_valid:
        geom = make_valid(geom)

    polygons = [
        orient(p, sign=1.0)
        for p in _iter_polygons(geom)
        if not p.is_empty and p.area > MIN_POLYGON_AREA
    ]
    if not polygons:
        return None
    if len(polygons) == 1:
        return polygons[0]
    return MultiPolygon(polygons)


def _check_operand(geom, name: str) -> Optional[BaseGeometry]:
    if geom is None:
        return None
    if not isinstance(geom, BaseGeometry):
        raise GeometryOperationError(f"{name} operand must be a geometry, got {type(geom).__name__}")
    return clean(geom)


def _apply(operation: str, a: BaseGeometry, b: BaseGeometry) -> BaseGeometry:
    op = getattr(BaseGeometry, operation)
    try:
        return op(a, b)
    except GEOSException as e:
        logger.warning("Geometry operation failed, retrying on repaired input",
                       operation=operation, error=str(e))

    try:
        return op(make_valid(a), make_valid(b))
    except GEOSException as e:
        raise GeometryOperationError(f"{operation} failed: {e}") from e


def _wrap_antimeridian(geom: BaseGeometry) -> Optional[BaseGeometry]:
    # Overflow past +/-180 is clipped off and shifted a full turn back onto the map
    minx, _, maxx, _ = geom.bounds
    if minx >= -180.0 and maxx <= 180.0:
        return geom

    parts = [geom.intersection(WORLD)]
    if maxx > 180.0:
        parts.append(translate(geom.intersection(box(180.0, -90.0, 540.0, 90.0)), xoff=-360.0))
    if minx < -180.0:
        parts.append(translate(geom.intersection(box(-540.0, -90.0, -180.0, 90.0)), xoff=360.0))
    return clean(shapely.union_all(parts))


def _polar_cap(coords, north: bool) -> Optional[Polygonal]:
    # The ring winds once around the pole; close it along the +/-180 meridians
    ring = sorted((wrap_lng(lng), lat) for lng, lat in coords)
    first, last = ring[0], ring[-1]
    t = (180.0 - last[0]) / (first[0] + 360.0 - last[0])
    seam_lat = last[1] + t * (first[1] - last[1])
    pole = 90.0 if north else -90.0

    ring.extend([(180.0, seam_lat), (180.0, pole), (-180.0, pole), (-180.0, seam_lat)])
    return clean(Polygon(ring))


@timed_geometry
def circle(center, radius_km: float, steps: int = DEFAULT_STEPS) -> Polygonal:
    """
    Approximate a geodesic circle.

    Each vertex is the great-circle destination from ``center`` at
    ``radius_km`` along evenly spaced bearings, so circles drawn at any
    latitude cover the same ground distance.

    A circle reaching a pole becomes a cap bounded by the +/-180 meridians,
    and a circle crossing the antimeridian is split into a MultiPolygon
    with both halves inside [-180, 180].

    Args:
        center: Point (or anything ``Point.of`` accepts)
        radius_km: Strictly positive radius in kilometers
        steps: Number of vertices (at least MIN_STEPS)

    Returns:
        Polygon (or MultiPolygon when split) with counter-clockwise exterior rings
    """
    if not radius_km > 0:
        raise ValueError(f"radius_km must be positive, got {radius_km}")

    center = Point.of(center)
    steps = max(int(steps), MIN_STEPS)

    lng1 = math.radians(center.lng)
    lat1 = math.radians(center.lat)
    delta = radius_km / EARTH_RADIUS_KM

    if math.cos(lat1) < 1e-12:
        # Centred on a pole: every bearing is a meridian
        lat2 = math.copysign(90.0 - math.degrees(delta), center.lat)
        coords = [(-180.0 + i * 360.0 / steps, lat2) for i in range(steps)]
        return _polar_cap(coords, north=center.lat > 0)

    coords = []
    for i in range(steps):
        # Negative bearings walk the ring counter-clockwise
        bearing = math.radians(i * -360.0 / steps)
        lat2 = math.asin(
            math.sin(lat1) * math.cos(delta)
            + math.cos(lat1) * math.sin(delta) * math.cos(bearing)
        )
        lng2 = lng1 + math.atan2(
            math.sin(bearing) * math.sin(delta) * math.cos(lat1),
            math.cos(delta) - math.sin(lat1) * math.sin(lat2)
        )
        coords.append((math.degrees(lng2), math.degrees(lat2)))

    to_north = math.radians(90.0 - center.lat) * EARTH_RADIUS_KM
    to_south = math.radians(90.0 + center.lat) * EARTH_RADIUS_KM
    if radius_km >= to_north:
        return _polar_cap(coords, north=True)
    if radius_km >= to_south:
        return _polar_cap(coords, north=False)

    coords.append(coords[0])
    return _wrap_antimeridian(Polygon(coords))


def _plane_scale(origin_lat: float):
    # Equirectangular: km per degree of longitude shrinks with latitude
    kx = KM_PER_DEGREE * max(math.cos(math.radians(origin_lat)), 1e-6)
    return kx, KM_PER_DEGREE


def to_local_km(geom: BaseGeometry, lng0: float, lat0: float) -> BaseGeometry:
    """Project lng/lat geometry into a kilometre plane centred on (lng0, lat0)."""
    kx, ky = _plane_scale(lat0)
    return shapely.transform(geom, lambda c: (c - [lng0, lat0]) * [kx, ky])


def from_local_km(geom: BaseGeometry, lng0: float, lat0: float) -> BaseGeometry:
    """Inverse of ``to_local_km``."""
    kx, ky = _plane_scale(lat0)
    return shapely.transform(geom, lambda c: c / [kx, ky] + [lng0, lat0])


@timed_geometry
def buffer_line(points: Sequence, radius_km: float,
                steps: int = DEFAULT_STEPS) -> Optional[Polygonal]:
    """
    Build the capsule within ``radius_km`` of the polyline through ``points``.

    Returns None when there are fewer than two points or all points
    coincide; callers fall back to ``circle`` in that case.
    """
    if not radius_km > 0:
        raise ValueError(f"radius_km must be positive, got {radius_km}")

    pts: List[Point] = [Point.of(p) for p in points]
    if len(pts) < 2 or len({p.as_tuple() for p in pts}) < 2:
        return None

    # Keep consecutive points on the same side of the antimeridian
    coords = [pts[0].as_tuple()]
    for p in pts[1:]:
        lng = p.lng
        prev = coords[-1][0]
        while lng - prev > 180.0:
            lng -= 360.0
        while lng - prev < -180.0:
            lng += 360.0
        coords.append((lng, p.lat))

    lng0 = sum(c[0] for c in coords) / len(coords)
    lat0 = sum(p.lat for p in pts) / len(pts)

    line = LineString(coords)
    try:
        planar = to_local_km(line, lng0, lat0).buffer(
            radius_km, quad_segs=max(int(steps) // 4, MIN_STEPS // 4)
        )
    except GEOSException as e:
        raise GeometryOperationError(f"buffer failed: {e}") from e

    return clean(_wrap_antimeridian(from_local_km(planar, lng0, lat0)))


@timed_geometry
def union(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> Optional[Polygonal]:
    """Merged region of ``a`` and ``b``; None only if both are empty."""
    a = _check_operand(a, "union")
    b = _check_operand(b, "union")

    if a is None:
        return b
    if b is None:
        return a

    return clean(_apply("union", a, b))


@timed_geometry
def difference(a: Optional[BaseGeometry], b: Optional[BaseGeometry]) -> Optional[Polygonal]:
    """Region of ``a`` not covered by ``b``; None when ``b`` covers all of ``a``."""
    a = _check_operand(a, "difference")
    b = _check_operand(b, "difference")

    if a is None:
        return None
    if b is None:
        return a

    return clean(_apply("difference", a, b))


def simplify(geom: Optional[Polygonal], tolerance: float) -> Optional[Polygonal]:
    """Topology-preserving simplification, cleaned."""
    if geom is None:
        return None
    return clean(geom.simplify(tolerance, preserve_topology=True))


def area_km2(geom: Optional[BaseGeometry]) -> float:
    """Approximate area in square kilometers (local equirectangular projection)."""
    if geom is None or geom.is_empty:
        return 0.0
    centre = geom.centroid
    return to_local_km(geom, centre.x, centre.y).area


def vertex_count(geom: Optional[BaseGeometry]) -> int:
    if geom is None:
        return 0
    return int(shapely.get_num_coordinates(geom))


def ring_count(geom: Optional[BaseGeometry]) -> int:
    """Exterior plus interior rings across all polygon members."""
    if geom is None:
        return 0
    return sum(1 + len(p.interiors) for p in _iter_polygons(geom))
