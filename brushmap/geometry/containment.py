"""
Spatial containment: which territories contain a clicked point.

Every boundary is tested on its own - territories may overlap, so this is
never a first-match search. Containment is strict, like PostGIS
``ST_Contains``: a point exactly on a boundary edge is not inside.
"""

import json
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional

import structlog
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry.base import BaseGeometry

from brushmap.geometry.normalizer import from_persisted, to_multipolygon
from brushmap.geometry.primitives import Point, clean

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class BoundaryRecord:
    """A territory id, its display name and its boundary geometry."""

    id: str
    name: str
    geometry: Any

    def shape(self) -> Optional[BaseGeometry]:
        """Boundary as a shapely geometry; GeoJSON/WKT text and mappings are parsed."""
        if self.geometry is None:
            return None
        if isinstance(self.geometry, BaseGeometry):
            return to_multipolygon(clean(self.geometry))
        if isinstance(self.geometry, dict):
            return from_persisted(json.dumps(self.geometry))
        return from_persisted(self.geometry)


def _record_of(item) -> BoundaryRecord:
    if isinstance(item, BoundaryRecord):
        return item
    if isinstance(item, dict):
        return BoundaryRecord(str(item["id"]), str(item.get("name") or ""), item.get("geometry"))
    return BoundaryRecord(str(item.id), str(getattr(item, "name", "") or ""), item.geometry)


def containing(point, boundaries: Iterable) -> List[str]:
    """
    Return the ids of all boundaries containing ``point``.

    Args:
        point: Point, (lng, lat) pair or {"lng", "lat"} mapping
        boundaries: BoundaryRecords, {"id", "name", "geometry"} mappings,
            or objects with ``id``/``name``/``geometry`` attributes

    Returns:
        Matching ids ordered by name ascending (ties by id)
    """
    point = Point.of(point)
    target = ShapelyPoint(point.lng, point.lat)

    matches = []
    for item in boundaries:
        record = _record_of(item)
        geom = record.shape()
        if geom is None:
            continue
        if geom.contains(target):
            matches.append(record)

    matches.sort(key=lambda r: (r.name, r.id))
    logger.debug("Containment query", lng=point.lng, lat=point.lat, matches=len(matches))
    return [r.id for r in matches]
