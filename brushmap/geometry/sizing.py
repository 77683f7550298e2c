"""Brush sizing: map a bounded 0-100 control value to a radius in kilometers"""

from dataclasses import dataclass
from typing import Dict

from brushmap.config.settings import settings
from brushmap.utils.exceptions import ConfigurationError, ValidationError

CONTROL_MIN = 0.0
CONTROL_MAX = 100.0

# Keyboard "[" / "]" resize by this many control units
RESIZE_STEP = 10.0


@dataclass(frozen=True)
class BrushSizing:
    """
    Quadratic brush curve: fine control at small sizes, coarse at large ones.

        radius = min + (max - min) * (value / 100) ** 2

    Attributes:
        min_radius_km: Radius at control value 0 (strictly positive floor)
        max_radius_km: Radius at control value 100
    """

    min_radius_km: float
    max_radius_km: float

    def __post_init__(self):
        if not self.min_radius_km > 0:
            raise ConfigurationError(f"min_radius_km must be positive, got {self.min_radius_km}")
        if not self.max_radius_km > self.min_radius_km:
            raise ConfigurationError(
                f"max_radius_km ({self.max_radius_km}) must exceed min_radius_km ({self.min_radius_km})"
            )

    @staticmethod
    def clamp_value(value: float) -> float:
        """Clamp a control value into [0, 100]; NaN maps to 0."""
        value = float(value)
        if value != value:
            return CONTROL_MIN
        return max(CONTROL_MIN, min(CONTROL_MAX, value))

    def radius_km(self, value: float) -> float:
        t = self.clamp_value(value) / CONTROL_MAX
        return self.min_radius_km + (self.max_radius_km - self.min_radius_km) * (t * t)

    def step(self, value: float, delta: float = RESIZE_STEP) -> float:
        """Move the control value by ``delta`` and clamp."""
        return self.clamp_value(self.clamp_value(value) + delta)


FREEHAND = "freehand"
BOUNDARY_EDITOR = "boundary_editor"


def sizing_profiles() -> Dict[str, BrushSizing]:
    """Sizing profiles built from the configured bounds."""
    return {
        FREEHAND: BrushSizing(settings.BRUSH_FREEHAND_MIN_KM, settings.BRUSH_FREEHAND_MAX_KM),
        BOUNDARY_EDITOR: BrushSizing(settings.BRUSH_EDITOR_MIN_KM, settings.BRUSH_EDITOR_MAX_KM),
    }


def sizing_profile(name: str) -> BrushSizing:
    profiles = sizing_profiles()
    if name not in profiles:
        raise ValidationError(f"Unknown brush profile '{name}', expected one of {sorted(profiles)}")
    return profiles[name]
