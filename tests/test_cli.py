"""Tests for brushmap_cli.py with the HTTP session mocked out."""
import json
from unittest.mock import MagicMock

import pytest
import requests

import brushmap_cli
from brushmap.geometry.normalizer import to_feature


def _response(payload, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        error = requests.HTTPError(f"{status} Error")
        error.response = response
        response.raise_for_status.side_effect = error
    return response


@pytest.fixture
def cli():
    cli = brushmap_cli.BrushMapCli("http://api.test/api/v1/")
    cli.session = MagicMock()
    return cli


class TestAtPoint:
    def test_table(self, cli, capsys):
        cli.session.get.return_value = _response({
            "territories": [{"id": "2", "name": "Alpha", "slug": "alpha"}],
            "count": 1,
        })
        assert cli.at_point(1.5, 2.5) == 0
        out = capsys.readouterr().out
        assert "Alpha" in out
        cli.session.get.assert_called_once_with(
            "http://api.test/api/v1/territories/at-point", params={"lng": 1.5, "lat": 2.5}
        )

    def test_none(self, cli, capsys):
        cli.session.get.return_value = _response({"territories": [], "count": 0})
        assert cli.at_point(0, 0) == 0
        assert "No territory" in capsys.readouterr().out

    def test_api_error_message(self, cli, capsys):
        cli.session.get.return_value = _response(
            {"error": "ValidationError", "message": "Invalid coordinates"}, status=400
        )
        assert cli.at_point(0, 0) == 1
        assert "Invalid coordinates" in capsys.readouterr().out


class TestBoundary:
    def test_summary(self, cli, capsys, square):
        feature = to_feature(square, {"id": "t1"})
        cli.session.get.return_value = _response({
            "territory_id": "t1",
            "boundary": feature,
            "boundaryGeoJson": json.dumps(feature),
        })
        assert cli.boundary("t1") == 0
        out = capsys.readouterr().out
        assert "Polygons" in out
        assert "Area" in out

    def test_export_to_file(self, cli, tmp_path, square):
        feature = to_feature(square)
        cli.session.get.return_value = _response({"boundary": feature, "boundaryGeoJson": json.dumps(feature)})
        target = tmp_path / "out.geojson"
        assert cli.export("t1", str(target)) == 0
        assert json.loads(target.read_text())["geometry"]["type"] == "MultiPolygon"

    def test_export_without_boundary(self, cli):
        cli.session.get.return_value = _response({"boundary": None, "boundaryGeoJson": None})
        assert cli.export("t1") == 1

    def test_import(self, cli, tmp_path):
        source = tmp_path / "in.wkt"
        source.write_text("POLYGON ((0 0, 1 0, 1 1, 0 1, 0 0))")
        cli.session.put.return_value = _response({})
        assert cli.import_boundary("t1", str(source)) == 0
        url = cli.session.put.call_args[0][0]
        assert url.endswith("/territories/t1/boundary")

    def test_import_rejects_non_polygon(self, cli, tmp_path):
        source = tmp_path / "in.wkt"
        source.write_text("POINT (0 0)")
        assert cli.import_boundary("t1", str(source)) == 1
        cli.session.put.assert_not_called()

    def test_clear(self, cli):
        cli.session.delete.return_value = _response({"boundary": None})
        assert cli.clear("t1") == 0

    def test_delete(self, cli, capsys):
        cli.session.delete.return_value = _response({}, status=204)
        assert cli.delete("t1") == 0
        cli.session.delete.assert_called_once_with("http://api.test/api/v1/territories/t1")
        assert "deleted" in capsys.readouterr().out

    def test_delete_unknown(self, cli, capsys):
        cli.session.delete.return_value = _response(
            {"error": "TerritoryNotFoundError", "message": "Territory t9 not found"}, status=404
        )
        assert cli.delete("t9") == 1
        assert "Territory t9 not found" in capsys.readouterr().out


class TestRadius:
    def test_single_value(self, capsys):
        assert brushmap_cli.main(["radius", "100", "--profile", "boundary_editor"]) == 0
        assert "200.00 km" in capsys.readouterr().out

    def test_curve(self, capsys):
        assert brushmap_cli.main(["radius"]) == 0
        out = capsys.readouterr().out
        assert "0.10" in out
        assert "200.00" in out

    def test_curve_keeps_two_decimals(self, capsys):
        assert brushmap_cli.main(["radius", "--profile", "boundary_editor"]) == 0
        rows = capsys.readouterr().out.splitlines()
        first = next(line for line in rows if line.split()[:1] == ["0"])
        last = next(line for line in rows if line.split()[:1] == ["100"])
        assert first.split() == ["0", "1.00"]
        assert last.split() == ["100", "200.00"]

    def test_no_command(self, capsys):
        assert brushmap_cli.main([]) == 0
        assert "usage" in capsys.readouterr().out
