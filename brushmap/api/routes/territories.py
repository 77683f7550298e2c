"""Territory boundary endpoints: containment lookup, public GeoJSON, boundary storage"""

import json

from flask import current_app, request
from flask_restx import Namespace, Resource, fields
import structlog

from brushmap.geometry.containment import containing
from brushmap.geometry.normalizer import from_persisted
from brushmap.geometry.primitives import Point
from brushmap.services.boundary_store import boundary_payload
from brushmap.utils.exceptions import ValidationError

logger = structlog.get_logger(__name__)

territories_ns = Namespace("territories", description="Territory boundary operations")

GEOJSON_CACHE_KEY = "territories:geojson"

boundary_update_model = territories_ns.model("BoundaryUpdate", {
    "boundaryGeoJson": fields.String(description="GeoJSON Feature or geometry text; null clears the boundary")
})


@territories_ns.route("/at-point")
class TerritoriesAtPoint(Resource):
    """Which territories contain a map click"""

    @territories_ns.doc("territories_at_point",
        params={
            'lng': 'Longitude',
            'lat': 'Latitude',
        })
    def get(self):
        """All approved territories containing the point, ordered by name"""
        lng = request.args.get('lng')
        lat = request.args.get('lat')
        if lng is None or lat is None:
            raise ValidationError("lng and lat query parameters are required")

        try:
            point = Point(float(lng), float(lat))
        except ValueError as e:
            raise ValidationError(f"Invalid coordinates: {e}")

        store = current_app.boundary_store

        if current_app.config.get("CONTAINMENT_BACKEND") == "memory":
            records = store.list_boundaries()
            by_id = {r.id: r for r in records}
            territories = [
                {"id": tid, "name": by_id[tid].name}
                for tid in containing(point, records)
            ]
        else:
            territories = store.territories_at_point(point)

        return {
            "territories": territories,
            "count": len(territories),
            "lng": point.lng,
            "lat": point.lat
        }


@territories_ns.route("/geojson")
class TerritoriesGeoJSON(Resource):
    """Public map boundaries"""

    @territories_ns.doc("territories_geojson")
    def get(self):
        """FeatureCollection of every approved territory with a boundary"""
        cached = current_app.cache.get(GEOJSON_CACHE_KEY)
        if cached is not None:
            return cached

        collection = current_app.boundary_store.feature_collection()
        current_app.cache.set(GEOJSON_CACHE_KEY, collection)
        return collection


@territories_ns.route("/<string:territory_id>/boundary")
class TerritoryBoundary(Resource):
    """One territory's stored boundary"""

    @territories_ns.doc("get_boundary")
    def get(self, territory_id):
        """Stored boundary as a MultiPolygon Feature (null when none)"""
        boundary = current_app.boundary_store.load_boundary(territory_id)
        return boundary_payload(territory_id, boundary)

    @territories_ns.doc("put_boundary")
    @territories_ns.expect(boundary_update_model)
    def put(self, territory_id):
        """Replace the stored boundary; null clears it"""
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "boundaryGeoJson" not in data:
            raise ValidationError("boundaryGeoJson is required (null clears the boundary)")

        text = data["boundaryGeoJson"]
        if isinstance(text, dict):
            text = json.dumps(text)
        if text is not None and not isinstance(text, str):
            raise ValidationError("boundaryGeoJson must be a string, an object or null")

        boundary = from_persisted(text)
        if text is not None and text.strip() and boundary is None:
            raise ValidationError("boundaryGeoJson is not a Polygon or MultiPolygon")

        current_app.boundary_store.save_boundary(territory_id, boundary)
        current_app.cache.delete(GEOJSON_CACHE_KEY)
        return boundary_payload(territory_id, boundary)

    @territories_ns.doc("clear_boundary")
    def delete(self, territory_id):
        """Clear the stored boundary"""
        current_app.boundary_store.save_boundary(territory_id, None)
        current_app.cache.delete(GEOJSON_CACHE_KEY)
        return boundary_payload(territory_id, None)


@territories_ns.route("/<string:territory_id>")
class TerritoryDetail(Resource):
    """A territory row"""

    @territories_ns.doc("delete_territory")
    def delete(self, territory_id):
        """Delete the territory together with its boundary"""
        current_app.boundary_store.delete_territory(territory_id)
        current_app.cache.delete(GEOJSON_CACHE_KEY)
        logger.info("Territory deleted", territory_id=territory_id)
        return "", 204
