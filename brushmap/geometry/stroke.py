"""
Stroke accumulation: one pointer-down-to-pointer-up gesture at a time.

The live StrokeShape is a pure function of the current Stroke: a circle
while the stroke has a single point, the buffered polyline afterwards.
It is recomputed on every accepted sample, never accumulated.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import structlog

from brushmap.geometry.primitives import (
    DEFAULT_STEPS,
    Point,
    Polygonal,
    buffer_line,
    circle,
)
from brushmap.utils.exceptions import GeometryOperationError, ValidationError

logger = structlog.get_logger(__name__)

# Minimum sample spacing, in lng/lat degrees, per km of radius
DEFAULT_SPACING_FACTOR = 0.002


class BrushMode(str, Enum):
    ADD = "add"
    ERASE = "erase"

    @classmethod
    def parse(cls, value) -> "BrushMode":
        if isinstance(value, BrushMode):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValidationError(f"Unknown brush mode '{value}', expected 'add' or 'erase'")

    def toggled(self) -> "BrushMode":
        return BrushMode.ERASE if self is BrushMode.ADD else BrushMode.ADD


@dataclass
class Stroke:
    """An in-progress gesture: ordered samples, a fixed radius and a mode."""

    radius_km: float
    mode: BrushMode
    points: List[Point] = field(default_factory=list)

    def __post_init__(self):
        if not self.radius_km > 0:
            raise ValueError(f"Stroke radius must be positive, got {self.radius_km}")

    @property
    def last_point(self) -> Optional[Point]:
        return self.points[-1] if self.points else None


def stroke_shape(stroke: Stroke, steps: int = DEFAULT_STEPS) -> Optional[Polygonal]:
    """Circle for a single sample, capsule through all samples otherwise."""
    if not stroke.points:
        return None

    if len(stroke.points) > 1:
        capsule = buffer_line(stroke.points, stroke.radius_km, steps=steps)
        if capsule is not None:
            return capsule

    return circle(stroke.points[0], stroke.radius_km, steps=steps)


class StrokeAccumulator:
    """
    Manage the single live stroke of an editing session.

    Args:
        steps: Vertex count for circles and buffer round caps
        spacing_factor: Samples closer than ``radius_km * spacing_factor``
            degrees (plain Euclidean lng/lat distance) to the last recorded
            sample are dropped
    """

    def __init__(self, steps: int = DEFAULT_STEPS,
                 spacing_factor: float = DEFAULT_SPACING_FACTOR):
        self.steps = steps
        self.spacing_factor = spacing_factor
        self._stroke: Optional[Stroke] = None
        self._shape: Optional[Polygonal] = None

    @property
    def is_active(self) -> bool:
        return self._stroke is not None

    @property
    def stroke(self) -> Optional[Stroke]:
        return self._stroke

    @property
    def shape(self) -> Optional[Polygonal]:
        """Live StrokeShape for preview rendering."""
        return self._shape

    def begin(self, point, radius_km: float, mode=BrushMode.ADD) -> Optional[Polygonal]:
        """Start a stroke at ``point``. An unfinished stroke is discarded first."""
        if self._stroke is not None:
            logger.info("Discarding unfinished stroke",
                        samples=len(self._stroke.points))

        self._stroke = Stroke(radius_km=radius_km, mode=BrushMode.parse(mode),
                              points=[Point.of(point)])
        self._shape = None
        self._recompute()
        return self._shape

    def extend(self, point) -> Optional[Polygonal]:
        """Add a sample if it is far enough from the last one; return the live shape."""
        if self._stroke is None:
            return None

        point = Point.of(point)
        last = self._stroke.last_point
        threshold = self._stroke.radius_km * self.spacing_factor

        if math.hypot(point.lng - last.lng, point.lat - last.lat) > threshold:
            self._stroke.points.append(point)
            self._recompute()

        return self._shape

    def end(self) -> Optional[Polygonal]:
        """Finish the stroke and hand back its shape for commit."""
        if self._stroke is None:
            return None

        shape = self._shape if self._stroke.points else None
        logger.debug("Stroke finished",
                     samples=len(self._stroke.points),
                     mode=self._stroke.mode.value,
                     radius_km=self._stroke.radius_km)
        self._stroke = None
        self._shape = None
        return shape

    def cancel(self) -> None:
        self._stroke = None
        self._shape = None

    def _recompute(self) -> None:
        try:
            self._shape = stroke_shape(self._stroke, steps=self.steps)
        except GeometryOperationError as e:
            # Keep the previous preview; the next sample gets another try
            logger.warning("Stroke shape computation failed",
                           samples=len(self._stroke.points), error=str(e))
