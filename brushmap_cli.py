#!/usr/bin/env python3
"""brushmap Command Line Interface for territory boundaries"""

import argparse
import json
import sys
from typing import Optional

import requests
from tabulate import tabulate

from brushmap.geometry.normalizer import from_persisted
from brushmap.geometry.primitives import area_km2, ring_count, vertex_count
from brushmap.geometry.sizing import BOUNDARY_EDITOR, FREEHAND, RESIZE_STEP, sizing_profile
from brushmap.utils.exceptions import ValidationError

# Default API endpoint
DEFAULT_API_URL = "http://localhost:5000/api/v1"

class BrushMapCli:
    """Command line interface for brushmap"""

    def __init__(self, api_url: str = DEFAULT_API_URL):
        self.api_url = api_url.rstrip('/')
        self.session = requests.Session()

    def _error(self, e: Exception) -> int:
        message = str(e)
        response = getattr(e, "response", None)
        if response is not None:
            try:
                message = response.json().get("message", message)
            except ValueError:
                pass
        print(f"❌ Error: {message}")
        return 1

    def at_point(self, lng: float, lat: float) -> int:
        """Territories containing a point"""
        print(f"📍 Territories at ({lng}, {lat})\n")

        try:
            response = self.session.get(
                f"{self.api_url}/territories/at-point",
                params={"lng": lng, "lat": lat}
            )
            response.raise_for_status()
        except requests.RequestException as e:
            return self._error(e)

        territories = response.json().get("territories", [])
        if not territories:
            print("No territory contains this point")
            return 0

        rows = [[t.get("name"), t.get("id"), t.get("slug", "")] for t in territories]
        print(tabulate(rows, headers=["Name", "ID", "Slug"], tablefmt="simple", disable_numparse=True))
        return 0

    def _fetch_boundary(self, territory_id: str) -> Optional[dict]:
        response = self.session.get(f"{self.api_url}/territories/{territory_id}/boundary")
        response.raise_for_status()
        return response.json()

    def boundary(self, territory_id: str) -> int:
        """Summarize a territory's stored boundary"""
        print(f"🗺️  Boundary of {territory_id}\n")

        try:
            data = self._fetch_boundary(territory_id)
        except requests.RequestException as e:
            return self._error(e)

        shape = from_persisted(data.get("boundaryGeoJson"))
        if shape is None:
            print("No boundary drawn yet")
            return 0

        rows = [
            ["Polygons", len(shape.geoms)],
            ["Rings", ring_count(shape)],
            ["Vertices", vertex_count(shape)],
            ["Area (km²)", f"{area_km2(shape):,.1f}"],
            ["Bounds", ", ".join(f"{v:.4f}" for v in shape.bounds)],
        ]
        print(tabulate(rows, tablefmt="plain"))
        return 0

    def export(self, territory_id: str, output: Optional[str] = None) -> int:
        """Write a territory's boundary Feature as GeoJSON"""
        try:
            data = self._fetch_boundary(territory_id)
        except requests.RequestException as e:
            return self._error(e)

        feature = data.get("boundary")
        if feature is None:
            print("❌ Territory has no boundary to export")
            return 1

        text = json.dumps(feature, indent=2)
        if output:
            with open(output, 'w') as f:
                f.write(text)
            print(f"📁 Boundary saved to: {output}")
        else:
            print(text)
        return 0

    def import_boundary(self, territory_id: str, path: str) -> int:
        """Replace a territory's boundary with GeoJSON or WKT from a file"""
        with open(path, 'r') as f:
            text = f.read()

        shape = from_persisted(text)
        if shape is None:
            print(f"❌ {path} does not hold a Polygon or MultiPolygon")
            return 1

        print(f"📦 Importing {len(shape.geoms)} polygon(s) into {territory_id}")

        try:
            response = self.session.put(
                f"{self.api_url}/territories/{territory_id}/boundary",
                json={"boundaryGeoJson": text}
            )
            response.raise_for_status()
        except requests.RequestException as e:
            return self._error(e)

        print(f"✅ Boundary saved ({area_km2(shape):,.1f} km²)")
        return 0

    def clear(self, territory_id: str) -> int:
        """Clear a territory's boundary"""
        try:
            response = self.session.delete(f"{self.api_url}/territories/{territory_id}/boundary")
            response.raise_for_status()
        except requests.RequestException as e:
            return self._error(e)

        print(f"✅ Boundary of {territory_id} cleared")
        return 0

    def delete(self, territory_id: str) -> int:
        """Delete a territory and its boundary"""
        try:
            response = self.session.delete(f"{self.api_url}/territories/{territory_id}")
            response.raise_for_status()
        except requests.RequestException as e:
            return self._error(e)

        print(f"🗑️  Territory {territory_id} deleted")
        return 0

    def radius(self, value: Optional[float], profile: str) -> int:
        """Show brush radius for a control value, or the whole curve"""
        try:
            sizing = sizing_profile(profile)
        except ValidationError as e:
            return self._error(e)

        if value is not None:
            value = sizing.clamp_value(value)
            print(f"🖌️  {profile}: value {value:g} -> {sizing.radius_km(value):.2f} km")
            return 0

        rows = []
        value = 0.0
        while value <= 100:
            rows.append([f"{value:g}", f"{sizing.radius_km(value):.2f}"])
            value += RESIZE_STEP
        print(f"🖌️  {profile} brush ({sizing.min_radius_km:g}-{sizing.max_radius_km:g} km)\n")
        print(tabulate(rows, headers=["Value", "Radius (km)"], tablefmt="simple",
                       disable_numparse=True))
        return 0


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="brushmap - territory boundary CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  brushmap at-point 2.35 48.85
  brushmap boundary 42
  brushmap export 42 -o france.geojson
  brushmap import 42 france.geojson
  brushmap clear 42
  brushmap delete 42
  brushmap radius 50 --profile boundary_editor
        """
    )

    parser.add_argument(
        "--api-url",
        default=DEFAULT_API_URL,
        help="API endpoint URL"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # At-point command
    at_point_parser = subparsers.add_parser("at-point", help="Territories containing a point")
    at_point_parser.add_argument("lng", type=float, help="Longitude")
    at_point_parser.add_argument("lat", type=float, help="Latitude")

    # Boundary command
    boundary_parser = subparsers.add_parser("boundary", help="Summarize a territory's boundary")
    boundary_parser.add_argument("territory_id", help="Territory ID")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a boundary as GeoJSON")
    export_parser.add_argument("territory_id", help="Territory ID")
    export_parser.add_argument("-o", "--output", help="Output file (default: stdout)")

    # Import command
    import_parser = subparsers.add_parser("import", help="Import a boundary from GeoJSON or WKT")
    import_parser.add_argument("territory_id", help="Territory ID")
    import_parser.add_argument("file", help="GeoJSON or WKT file")

    # Clear command
    clear_parser = subparsers.add_parser("clear", help="Clear a territory's boundary")
    clear_parser.add_argument("territory_id", help="Territory ID")

    # Delete command
    delete_parser = subparsers.add_parser("delete", help="Delete a territory")
    delete_parser.add_argument("territory_id", help="Territory ID")

    # Radius command
    radius_parser = subparsers.add_parser("radius", help="Brush radius for a control value")
    radius_parser.add_argument("value", type=float, nargs="?", help="Control value (0-100)")
    radius_parser.add_argument("--profile", choices=[FREEHAND, BOUNDARY_EDITOR],
                               default=FREEHAND, help="Brush profile")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Initialize CLI
    cli = BrushMapCli(args.api_url)

    # Execute command
    if args.command == "at-point":
        return cli.at_point(args.lng, args.lat)
    elif args.command == "boundary":
        return cli.boundary(args.territory_id)
    elif args.command == "export":
        return cli.export(args.territory_id, args.output)
    elif args.command == "import":
        return cli.import_boundary(args.territory_id, args.file)
    elif args.command == "clear":
        return cli.clear(args.territory_id)
    elif args.command == "delete":
        return cli.delete(args.territory_id)
    elif args.command == "radius":
        return cli.radius(args.value, args.profile)

    parser.print_help()
    return 0

if __name__ == "__main__":
    sys.exit(main())
