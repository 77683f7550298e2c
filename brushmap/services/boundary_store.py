"""PostGIS-backed boundary store - the editor's persistence bridge"""

import json
from datetime import datetime
from typing import Dict, List, Optional

import psycopg2
import structlog

from brushmap.database.connection_pool import db_pool
from brushmap.geometry.containment import BoundaryRecord
from brushmap.geometry.normalizer import from_persisted, to_feature, to_geojson
from brushmap.geometry.primitives import Point, Polygonal
from brushmap.utils.exceptions import PersistenceError, TerritoryNotFoundError

logger = structlog.get_logger(__name__)

class BoundaryStore:
    """Read and write territory boundaries as MultiPolygon geometry in PostGIS"""

    def __init__(self, pool=None):
        self.pool = pool or db_pool

    def _run(self, action: str, fn, *args):
        """Run a pool call, turning driver errors into PersistenceError"""
        start_time = datetime.now()
        try:
            return fn(*args)
        except psycopg2.Error as e:
            logger.error("Boundary store failure", action=action, error=str(e))
            raise PersistenceError(f"Could not {action}: {e}") from e
        finally:
            elapsed = (datetime.now() - start_time).total_seconds()
            logger.debug("Boundary store call", action=action, elapsed=round(elapsed, 4))

    def pool_status(self) -> Dict:
        """Connection pool state, reported by /health"""
        return self.pool.get_pool_status()

    def ensure_schema(self) -> bool:
        """Check that the territories table exists"""
        row = self._run("check schema", self.pool.execute_one, """
            SELECT EXISTS (
                SELECT FROM information_schema.tables
                WHERE table_name = 'territories'
            ) AS present
        """)

        present = bool(row and row["present"])
        if not present:
            logger.warning("Territories table doesn't exist. Please run brushmap/database/schema.sql")
        return present

    def load_boundary_text(self, territory_id: str) -> Optional[str]:
        """Raw GeoJSON text of a territory's boundary (None when it has none)"""
        row = self._run("load boundary", self.pool.execute_one, """
            SELECT id, ST_AsGeoJSON(boundary) AS boundary_geojson
            FROM territories
            WHERE id = %s
        """, (territory_id,))

        if not row:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")
        return row.get("boundary_geojson")

    def load_boundary(self, territory_id: str) -> Optional[Polygonal]:
        """Load a territory's boundary for editing (None when it has none)"""
        text = self.load_boundary_text(territory_id)
        boundary = from_persisted(text)
        if text and boundary is None:
            logger.warning("Stored boundary could not be parsed", territory_id=territory_id)
        return boundary

    def save_boundary(self, territory_id: str, shape: Optional[Polygonal]) -> None:
        """Write a finished boundary; None clears the stored geometry"""
        geojson = to_geojson(shape)

        if geojson is None:
            updated = self._run("clear boundary", self.pool.execute, """
                UPDATE territories
                SET boundary = NULL, updated_at = now()
                WHERE id = %s
            """, (territory_id,))
        else:
            updated = self._run("save boundary", self.pool.execute, """
                UPDATE territories
                SET boundary = ST_Multi(ST_SetSRID(ST_GeomFromGeoJSON(%s), 4326)),
                    updated_at = now()
                WHERE id = %s
            """, (geojson, territory_id))

        if not updated:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")

        logger.info("Boundary saved", territory_id=territory_id, cleared=geojson is None)

    def delete_territory(self, territory_id: str) -> None:
        """Delete a territory row and, with it, its boundary"""
        deleted = self._run("delete territory", self.pool.execute,
                            "DELETE FROM territories WHERE id = %s", (territory_id,))
        if not deleted:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")

    def territories_at_point(self, point, approved_only: bool = True) -> List[Dict]:
        """All territories whose boundary contains the point, ordered by name"""
        point = Point.of(point)
        rows = self._run("query territories at point", self.pool.execute_query, """
            SELECT id, name, slug
            FROM territories
            WHERE boundary IS NOT NULL
              AND (%s = FALSE OR state = 'approved')
              AND ST_Contains(boundary, ST_SetSRID(ST_Point(%s, %s), 4326))
            ORDER BY name ASC, id ASC
        """, (approved_only, point.lng, point.lat))

        return [dict(row) for row in rows]

    def list_boundaries(self, approved_only: bool = True) -> List[BoundaryRecord]:
        """Every territory that has a boundary, as records for in-process queries"""
        rows = self._run("list boundaries", self.pool.execute_query, """
            SELECT id, name, slug, ST_AsGeoJSON(boundary) AS boundary_geojson
            FROM territories
            WHERE boundary IS NOT NULL
              AND (%s = FALSE OR state = 'approved')
            ORDER BY name ASC, id ASC
        """, (approved_only,))

        records = []
        for row in rows:
            boundary = from_persisted(row.get("boundary_geojson"))
            if boundary is None:
                logger.warning("Skipping unparsable boundary", territory_id=row["id"])
                continue
            records.append(BoundaryRecord(str(row["id"]), row["name"], boundary))
        return records

    def feature_collection(self, approved_only: bool = True) -> Dict:
        """GeoJSON FeatureCollection of all boundaries for the public map"""
        features = []
        for record in self.list_boundaries(approved_only=approved_only):
            feature = to_feature(record.geometry, {"id": record.id, "name": record.name})
            feature["id"] = record.id
            features.append(feature)

        return {"type": "FeatureCollection", "features": features}


def boundary_payload(territory_id: str, shape: Optional[Polygonal]) -> Dict:
    """API representation of a stored boundary"""
    feature = to_feature(shape, {"id": territory_id})
    return {
        "territory_id": territory_id,
        "boundary": feature,
        "boundaryGeoJson": json.dumps(feature) if feature else None,
    }
