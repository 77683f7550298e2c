"""Shape normalizer: editor shapes <-> the always-MultiPolygon persisted form"""

import json
from typing import Any, Dict, Optional

import structlog
from shapely import wkt
from shapely.errors import GEOSException, ShapelyError
from shapely.geometry import MultiPolygon, Polygon, mapping, shape
from shapely.geometry.base import BaseGeometry

from brushmap.geometry.primitives import Polygonal, clean

logger = structlog.get_logger(__name__)


def to_multipolygon(geom: Optional[Polygonal]) -> Optional[MultiPolygon]:
    """Wrap a Polygon as a one-member MultiPolygon; None stays None."""
    if geom is None:
        return None
    if isinstance(geom, MultiPolygon):
        return geom
    if isinstance(geom, Polygon):
        return MultiPolygon([geom])
    raise TypeError(f"Expected Polygon or MultiPolygon, got {geom.geom_type}")


def _geometry_mapping(data: Any) -> Optional[Dict]:
    """Dig the geometry out of a GeoJSON geometry, Feature or one-feature collection."""
    if not isinstance(data, dict):
        return None

    kind = data.get("type")
    if kind == "Feature":
        return _geometry_mapping(data.get("geometry"))
    if kind == "FeatureCollection":
        features = data.get("features") or []
        if len(features) != 1:
            return None
        return _geometry_mapping(features[0])
    if kind in ("Polygon", "MultiPolygon"):
        return data
    return None


def parse_geometry(value: Any) -> Optional[BaseGeometry]:
    """
    Parse GeoJSON (text or mapping) or WKT text into a shapely geometry.

    Returns None for anything that is not a Polygon/MultiPolygon. Raises
    ValueError on text that is neither JSON nor WKT.
    """
    if value is None:
        return None
    if isinstance(value, BaseGeometry):
        return value

    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8")

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text[0] in "{[":
            value = json.loads(text)
        else:
            return wkt.loads(text)

    geometry = _geometry_mapping(value)
    if geometry is None:
        return None
    return shape(geometry)


def from_persisted(text: Optional[str]) -> Optional[MultiPolygon]:
    """
    Parse stored geometry text into the MultiPolygon used to seed the editor.

    Never raises: malformed, empty or non-polygonal input yields None and a
    warning in the log. Invalid rings are repaired.
    """
    if text is None:
        return None

    try:
        geom = parse_geometry(text)
    except (ValueError, TypeError, KeyError, IndexError, AttributeError,
            ShapelyError, GEOSException) as e:
        logger.warning("Malformed persisted geometry", error=str(e))
        return None

    if geom is None:
        if isinstance(text, str) and text.strip():
            logger.warning("Persisted geometry is not polygonal")
        return None

    try:
        return to_multipolygon(clean(geom))
    except (ShapelyError, GEOSException, TypeError) as e:
        logger.warning("Persisted geometry could not be repaired", error=str(e))
        return None


def to_geojson(geom: Optional[Polygonal]) -> Optional[str]:
    """GeoJSON geometry text of the MultiPolygon form (what the store writes)."""
    multi = to_multipolygon(geom)
    if multi is None:
        return None
    return json.dumps(mapping(multi))


def to_feature(geom: Optional[Polygonal], properties: Optional[Dict] = None) -> Optional[Dict]:
    """GeoJSON Feature wrapping the MultiPolygon form."""
    multi = to_multipolygon(geom)
    if multi is None:
        return None
    return {
        "type": "Feature",
        "properties": dict(properties or {}),
        "geometry": json.loads(json.dumps(mapping(multi))),
    }


def shape_feature(geom: Optional[Polygonal], properties: Optional[Dict] = None) -> Optional[Dict]:
    """GeoJSON Feature of a shape as-is (Polygon stays Polygon), for live previews."""
    if geom is None:
        return None
    return {
        "type": "Feature",
        "properties": dict(properties or {}),
        "geometry": json.loads(json.dumps(mapping(geom))),
    }
