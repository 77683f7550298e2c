"""Tests for brushmap/geometry/containment.py."""
import json

from shapely.geometry import box, mapping

from brushmap.geometry.containment import BoundaryRecord, containing
from brushmap.geometry.primitives import Point


class TestContaining:
    def test_overlap_returns_all_ordered_by_name(self):
        boundaries = [
            BoundaryRecord("1", "Beta", box(0, 0, 2, 2)),
            BoundaryRecord("2", "Alpha", box(1, 1, 3, 3)),
        ]
        assert containing((1.5, 1.5), boundaries) == ["2", "1"]

    def test_only_one_contains(self):
        boundaries = [
            BoundaryRecord("1", "Beta", box(0, 0, 2, 2)),
            BoundaryRecord("2", "Alpha", box(1, 1, 3, 3)),
        ]
        assert containing(Point(0.5, 0.5), boundaries) == ["1"]

    def test_ties_broken_by_id(self):
        boundaries = [
            BoundaryRecord("b", "Same", box(0, 0, 2, 2)),
            BoundaryRecord("a", "Same", box(0, 0, 2, 2)),
        ]
        assert containing((1, 1), boundaries) == ["a", "b"]

    def test_hole_excluded(self, donut):
        boundaries = [BoundaryRecord("1", "Ring", donut)]
        assert containing((2, 2), boundaries) == []
        assert containing((0.5, 0.5), boundaries) == ["1"]

    def test_edge_not_contained(self, square):
        boundaries = [BoundaryRecord("1", "Square", square)]
        assert containing((1.0, 0.5), boundaries) == []
        assert containing((0.0, 0.0), boundaries) == []

    def test_missing_geometry_skipped(self, square):
        boundaries = [
            BoundaryRecord("1", "Empty", None),
            BoundaryRecord("2", "Broken", "not geometry"),
            BoundaryRecord("3", "Square", square),
        ]
        assert containing((0.5, 0.5), boundaries) == ["3"]

    def test_no_boundaries(self):
        assert containing((0, 0), []) == []

    def test_mapping_and_text_geometries(self, square):
        boundaries = [
            {"id": 7, "name": "Mapping", "geometry": mapping(square)},
            {"id": 8, "name": "Text", "geometry": json.dumps(mapping(square))},
            BoundaryRecord("9", "Wkt", square.wkt),
        ]
        assert containing({"lng": 0.5, "lat": 0.5}, boundaries) == ["7", "8", "9"]
