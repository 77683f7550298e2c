"""Shared fixtures for the brushmap test suite."""
import pytest
from shapely.geometry import Polygon, box

from brushmap.app import create_app
from brushmap.geometry.containment import BoundaryRecord, containing
from brushmap.geometry.editor import BoundaryEditor
from brushmap.geometry.normalizer import from_persisted, to_geojson
from brushmap.geometry.sizing import BrushSizing
from brushmap.geometry.stroke import StrokeAccumulator
from brushmap.services.boundary_store import BoundaryStore
from brushmap.utils.exceptions import PersistenceError, TerritoryNotFoundError


class FakeBoundaryStore(BoundaryStore):
    """In-memory stand-in for the PostGIS store: same contract, no SQL."""

    def __init__(self):
        super().__init__(pool=object())
        self.rows = {}
        self.fail_writes = False
        self.saves = []

    def add(self, territory_id, name, boundary=None, state="approved", raw=None):
        self.rows[territory_id] = {
            "name": name,
            "slug": name.lower().replace(" ", "-"),
            "state": state,
            "boundary": raw if raw is not None else to_geojson(boundary),
        }

    def pool_status(self):
        return {"status": "in-memory"}

    def ensure_schema(self):
        return True

    def load_boundary_text(self, territory_id):
        if territory_id not in self.rows:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")
        return self.rows[territory_id]["boundary"]

    def save_boundary(self, territory_id, shape):
        if self.fail_writes:
            raise PersistenceError("Could not save boundary: connection refused")
        if territory_id not in self.rows:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")
        self.rows[territory_id]["boundary"] = to_geojson(shape)
        self.saves.append((territory_id, shape))

    def delete_territory(self, territory_id):
        if self.rows.pop(territory_id, None) is None:
            raise TerritoryNotFoundError(f"Territory {territory_id} not found")

    def list_boundaries(self, approved_only=True):
        records = []
        for tid, row in sorted(self.rows.items(), key=lambda kv: (kv[1]["name"], kv[0])):
            if approved_only and row["state"] != "approved":
                continue
            boundary = from_persisted(row["boundary"])
            if boundary is not None:
                records.append(BoundaryRecord(tid, row["name"], boundary))
        return records

    def territories_at_point(self, point, approved_only=True):
        records = self.list_boundaries(approved_only)
        ids = containing(point, records)
        return [
            {"id": tid, "name": self.rows[tid]["name"], "slug": self.rows[tid]["slug"]}
            for tid in ids
        ]


@pytest.fixture
def editor():
    return BoundaryEditor()


@pytest.fixture
def sizing():
    return BrushSizing(1.0, 200.0)


@pytest.fixture
def accumulator():
    return StrokeAccumulator(steps=64, spacing_factor=0.002)


@pytest.fixture
def square():
    """One-degree square near the equator."""
    return box(0.0, 0.0, 1.0, 1.0)


@pytest.fixture
def donut():
    """Square with a square hole in the middle."""
    return Polygon(
        [(0, 0), (4, 0), (4, 4), (0, 4), (0, 0)],
        holes=[[(1, 1), (1, 3), (3, 3), (3, 1), (1, 1)]],
    )


@pytest.fixture
def store():
    return FakeBoundaryStore()


@pytest.fixture
def app(store):
    app = create_app("testing", boundary_store=store)
    yield app
    app.cache.clear()


@pytest.fixture
def client(app):
    return app.test_client()
