"""Tests for the HTTP surface: sessions and territories namespaces."""
import json
import logging

import pytest
from shapely.geometry import box

from brushmap.app import configure_logging
from brushmap.config.settings import settings

API = f"/api/{settings.API_VERSION}"


def _open(client, **payload):
    response = client.post(f"{API}/sessions", json=payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def _click(client, session_id, lng, lat):
    for event in ("down", "up"):
        response = client.post(f"{API}/sessions/{session_id}/pointer",
                               json={"event": event, "lng": lng, "lat": lat})
        assert response.status_code == 200
    return response.get_json()


class TestSessions:
    def test_create_freehand(self, client):
        snapshot = _open(client)
        assert snapshot["profile"] == "freehand"
        assert snapshot["state"] == "empty"
        assert snapshot["mode"] == "add"

    def test_draw_and_undo(self, client):
        sid = _open(client)["session_id"]
        snapshot = _click(client, sid, 10, 10)
        assert snapshot["state"] == "has_territory"
        assert snapshot["can_undo"] is True

        response = client.post(f"{API}/sessions/{sid}/undo")
        body = response.get_json()
        assert body["undone"] is True
        assert body["state"] == "empty"

    def test_drag(self, client):
        sid = _open(client, brush_value=20)["session_id"]
        client.post(f"{API}/sessions/{sid}/pointer", json={"event": "down", "lng": 0, "lat": 0})
        for i in range(1, 6):
            response = client.post(f"{API}/sessions/{sid}/pointer",
                                   json={"event": "move", "lng": i * 0.2, "lat": 0})
            assert response.get_json()["pointer_state"] == "dragging"
        response = client.post(f"{API}/sessions/{sid}/pointer", json={"event": "up", "lng": 1, "lat": 0})
        body = response.get_json()
        assert body["pointer_state"] == "idle"
        assert body["committed"]["geometry"]["type"] == "MultiPolygon"
        assert len(body["committed"]["geometry"]["coordinates"]) == 1

    def test_bad_pointer_event(self, client):
        sid = _open(client)["session_id"]
        response = client.post(f"{API}/sessions/{sid}/pointer",
                               json={"event": "wiggle", "lng": 0, "lat": 0})
        assert response.status_code == 400
        assert response.get_json()["error"] == "ValidationError"

    def test_bad_coordinates(self, client):
        sid = _open(client)["session_id"]
        response = client.post(f"{API}/sessions/{sid}/pointer",
                               json={"event": "down", "lng": 0, "lat": 120})
        assert response.status_code == 400

    def test_brush_update(self, client):
        sid = _open(client)["session_id"]
        response = client.put(f"{API}/sessions/{sid}/brush", json={"mode": "erase", "value": 150})
        body = response.get_json()
        assert body["mode"] == "erase"
        assert body["brush_value"] == 100
        assert body["radius_km"] == pytest.approx(200.0)

    def test_unknown_mode(self, client):
        sid = _open(client)["session_id"]
        response = client.put(f"{API}/sessions/{sid}/brush", json={"mode": "smudge"})
        assert response.status_code == 400

    def test_keys(self, client):
        sid = _open(client)["session_id"]
        _click(client, sid, 0, 0)
        body = client.post(f"{API}/sessions/{sid}/keys", json={"key": "z", "ctrl": True}).get_json()
        assert body["action"] == "undo"
        assert body["state"] == "empty"

        body = client.post(f"{API}/sessions/{sid}/keys", json={"key": "]"}).get_json()
        assert body["action"] == "grow"

    def test_escape_closes_session(self, client):
        sid = _open(client)["session_id"]
        body = client.post(f"{API}/sessions/{sid}/keys", json={"key": "Escape"}).get_json()
        assert body["action"] == "cancel"
        assert client.get(f"{API}/sessions/{sid}").status_code == 404

    def test_unknown_session(self, client):
        response = client.get(f"{API}/sessions/missing")
        assert response.status_code == 404
        assert response.get_json()["error"] == "SessionNotFoundError"

    def test_delete(self, client):
        sid = _open(client)["session_id"]
        assert client.delete(f"{API}/sessions/{sid}").status_code == 204
        assert client.get(f"{API}/sessions/{sid}").status_code == 404


class TestEditExisting:
    def test_seeded_from_store(self, client, store, square):
        store.add("t1", "Square", square)
        snapshot = _open(client, territory_id="t1")
        assert snapshot["profile"] == "boundary_editor"
        assert snapshot["state"] == "has_territory"
        assert snapshot["can_undo"] is False

    def test_unknown_territory(self, client):
        response = client.post(f"{API}/sessions", json={"territory_id": "nope"})
        assert response.status_code == 404
        assert response.get_json()["error"] == "TerritoryNotFoundError"

    def test_corrupt_boundary_starts_empty(self, client, store):
        store.add("t1", "Broken", raw="{not geojson")
        snapshot = _open(client, territory_id="t1")
        assert snapshot["state"] == "empty"
        assert snapshot["warnings"]

    def test_finish_saves_and_closes(self, client, store, square):
        store.add("t1", "Square", square)
        sid = _open(client, territory_id="t1")["session_id"]
        _click(client, sid, 3, 3)

        response = client.post(f"{API}/sessions/{sid}/finish", json={})
        body = response.get_json()
        assert response.status_code == 200
        assert body["saved"] is True
        assert len(body["boundary"]["geometry"]["coordinates"]) == 2
        assert store.saves and store.saves[0][0] == "t1"
        assert client.get(f"{API}/sessions/{sid}").status_code == 404

    def test_persistence_failure_keeps_session(self, client, store, square):
        store.add("t1", "Square", square)
        sid = _open(client, territory_id="t1")["session_id"]
        _click(client, sid, 3, 3)

        store.fail_writes = True
        response = client.post(f"{API}/sessions/{sid}/finish", json={"save": True})
        assert response.status_code == 503
        assert response.get_json()["error"] == "PersistenceError"

        kept = client.get(f"{API}/sessions/{sid}")
        assert kept.status_code == 200
        assert kept.get_json()["state"] == "has_territory"

        store.fail_writes = False
        retry = client.post(f"{API}/sessions/{sid}/finish", json={"save": True})
        assert retry.status_code == 200
        assert retry.get_json()["saved"] is True

    def test_enter_key_saves_and_closes(self, client, store, square):
        store.add("t1", "Square", square)
        sid = _open(client, territory_id="t1")["session_id"]
        _click(client, sid, 3, 3)

        response = client.post(f"{API}/sessions/{sid}/keys", json={"key": "Enter"})
        body = response.get_json()
        assert response.status_code == 200
        assert body["action"] == "finish"
        assert body["saved"] is True
        assert body["boundary"]["geometry"]["type"] == "MultiPolygon"
        assert len(body["boundary"]["geometry"]["coordinates"]) == 2
        assert [tid for tid, _ in store.saves] == ["t1"]
        assert client.get(f"{API}/sessions/{sid}").status_code == 404

    def test_enter_key_persistence_failure_keeps_session(self, client, store, square):
        store.add("t1", "Square", square)
        sid = _open(client, territory_id="t1")["session_id"]
        _click(client, sid, 3, 3)

        store.fail_writes = True
        response = client.post(f"{API}/sessions/{sid}/keys", json={"key": "Enter"})
        assert response.status_code == 503
        assert client.get(f"{API}/sessions/{sid}").get_json()["state"] == "has_territory"

    def test_enter_key_without_territory(self, client):
        sid = _open(client)["session_id"]
        _click(client, sid, 0, 0)
        body = client.post(f"{API}/sessions/{sid}/keys", json={"key": "Enter"}).get_json()
        assert body["action"] == "finish"
        assert body["saved"] is False
        assert body["boundary"]["geometry"]["type"] == "MultiPolygon"
        assert client.get(f"{API}/sessions/{sid}").status_code == 404

    def test_finish_without_territory(self, client):
        sid = _open(client)["session_id"]
        _click(client, sid, 0, 0)
        body = client.post(f"{API}/sessions/{sid}/finish", json={}).get_json()
        assert body["saved"] is False
        assert body["boundary"]["geometry"]["type"] == "MultiPolygon"

        sid = _open(client)["session_id"]
        response = client.post(f"{API}/sessions/{sid}/finish", json={"save": True})
        assert response.status_code == 400


class TestTerritories:
    @pytest.fixture(autouse=True)
    def overlapping(self, store):
        store.add("1", "Beta", box(0, 0, 2, 2))
        store.add("2", "Alpha", box(1, 1, 3, 3))
        store.add("3", "Pending", box(0, 0, 3, 3), state="pending")

    def test_at_point(self, client):
        body = client.get(f"{API}/territories/at-point?lng=1.5&lat=1.5").get_json()
        assert [t["id"] for t in body["territories"]] == ["2", "1"]
        assert body["count"] == 2

    def test_at_point_memory_backend(self, app, client):
        app.config["CONTAINMENT_BACKEND"] = "memory"
        body = client.get(f"{API}/territories/at-point?lng=1.5&lat=1.5").get_json()
        assert body["territories"] == [{"id": "2", "name": "Alpha"}, {"id": "1", "name": "Beta"}]

    def test_at_point_requires_coordinates(self, client):
        assert client.get(f"{API}/territories/at-point?lng=1").status_code == 400
        assert client.get(f"{API}/territories/at-point?lng=a&lat=b").status_code == 400

    def test_geojson(self, client):
        body = client.get(f"{API}/territories/geojson").get_json()
        assert body["type"] == "FeatureCollection"
        assert [f["id"] for f in body["features"]] == ["2", "1"]

    def test_geojson_invalidated_on_write(self, client):
        client.get(f"{API}/territories/geojson")
        client.delete(f"{API}/territories/1/boundary")
        body = client.get(f"{API}/territories/geojson").get_json()
        assert [f["id"] for f in body["features"]] == ["2"]

    def test_get_boundary(self, client):
        body = client.get(f"{API}/territories/1/boundary").get_json()
        assert body["boundary"]["geometry"]["type"] == "MultiPolygon"
        assert json.loads(body["boundaryGeoJson"])["type"] == "Feature"

    def test_put_boundary(self, client, store):
        text = json.dumps({"type": "Polygon",
                           "coordinates": [[[5, 5], [6, 5], [6, 6], [5, 6], [5, 5]]]})
        response = client.put(f"{API}/territories/1/boundary", json={"boundaryGeoJson": text})
        assert response.status_code == 200
        body = client.get(f"{API}/territories/at-point?lng=5.5&lat=5.5").get_json()
        assert [t["id"] for t in body["territories"]] == ["1"]

    def test_put_invalid_boundary(self, client):
        response = client.put(f"{API}/territories/1/boundary",
                              json={"boundaryGeoJson": '{"type": "Point", "coordinates": [0, 0]}'})
        assert response.status_code == 400

    def test_put_null_clears(self, client):
        response = client.put(f"{API}/territories/1/boundary", json={"boundaryGeoJson": None})
        assert response.get_json()["boundary"] is None

    def test_unknown_territory(self, client):
        assert client.get(f"{API}/territories/nope/boundary").status_code == 404

    def test_delete_territory(self, client, store):
        client.get(f"{API}/territories/geojson")
        assert client.delete(f"{API}/territories/1").status_code == 204
        assert "1" not in store.rows
        assert client.get(f"{API}/territories/1/boundary").status_code == 404
        body = client.get(f"{API}/territories/geojson").get_json()
        assert [f["id"] for f in body["features"]] == ["2"]

    def test_delete_unknown_territory(self, client):
        response = client.delete(f"{API}/territories/nope")
        assert response.status_code == 404
        assert response.get_json()["error"] == "TerritoryNotFoundError"


class TestService:
    def test_health(self, client):
        body = client.get("/health").get_json()
        assert body["status"] == "healthy"
        assert body["services"]["database"]["status"] == "healthy"
        assert body["services"]["database"]["pool"] == {"status": "in-memory"}

    def test_performance_metrics(self, client):
        client.get("/health")
        response = client.get("/metrics/performance")
        assert response.status_code == 200
        assert "requests" in response.get_json()
        assert "X-Response-Time" in response.headers

    def test_log_level_applied(self):
        root = logging.getLogger()
        previous = root.level
        try:
            configure_logging("DEBUG")
            assert root.level == logging.DEBUG
            configure_logging("warning")
            assert root.level == logging.WARNING
        finally:
            configure_logging()
            root.setLevel(previous)
