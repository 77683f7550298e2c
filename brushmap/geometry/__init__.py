"""Brush geometry engine: primitives, strokes, the boundary editor and containment"""

from brushmap.geometry.primitives import Point, circle, buffer_line, union, difference
from brushmap.geometry.sizing import BrushSizing, sizing_profile
from brushmap.geometry.stroke import BrushMode, Stroke, StrokeAccumulator
from brushmap.geometry.editor import BoundaryEditor, CommitResult, CommitStatus, EditorState
from brushmap.geometry.normalizer import to_multipolygon, from_persisted, to_geojson, to_feature
from brushmap.geometry.containment import BoundaryRecord, containing

__all__ = [
    "Point",
    "circle",
    "buffer_line",
    "union",
    "difference",
    "BrushSizing",
    "sizing_profile",
    "BrushMode",
    "Stroke",
    "StrokeAccumulator",
    "BoundaryEditor",
    "CommitResult",
    "CommitStatus",
    "EditorState",
    "to_multipolygon",
    "from_persisted",
    "to_geojson",
    "to_feature",
    "BoundaryRecord",
    "containing",
]
