"""
Pointer coordinates <-> percentage space for the plan and elevation views.

All functions are pure: the result depends on the pointer, the on-screen
bounding box of the drawing surface and, for the elevation view, the
greenhouse height.
"""
from dataclasses import dataclass
from typing import Tuple

from core.models.greenhouse import GreenhouseConfig

PLAN_CANVAS_WIDTH = 400.0
PLAN_CANVAS_HEIGHT = 300.0

ELEVATION_CANVAS_WIDTH = 400.0
ELEVATION_BASE_HEIGHT = 300.0
ELEVATION_BASE_GROUND_Y = 250.0
ELEVATION_BASE_MIN_Y = 50.0
REFERENCE_HEIGHT_M = 4.0


@dataclass(frozen=True)
class BoundingBox:
    """On-screen rectangle of a drawing surface, in pointer units."""
    left: float
    top: float
    width: float
    height: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Bounding box must have a positive size, got {self.width}x{self.height}")


@dataclass(frozen=True)
class GreenhouseBounds:
    """Drawable greenhouse rectangle inside the logical canvas."""
    left: float
    top: float
    width: float
    height: float


PLAN_GREENHOUSE_BOUNDS = GreenhouseBounds(left=10.0, top=10.0, width=380.0, height=280.0)
ELEVATION_GREENHOUSE_X = 10.0
ELEVATION_GREENHOUSE_WIDTH = 380.0


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def plan_pointer_to_percent(client_x: float, client_y: float, box: BoundingBox) -> Tuple[float, float]:
    """Map a pointer to floor-plan (x, y) percentages."""
    view_x = (client_x - box.left) * (PLAN_CANVAS_WIDTH / box.width)
    view_y = (client_y - box.top) * (PLAN_CANVAS_HEIGHT / box.height)

    relative_x = (view_x - PLAN_GREENHOUSE_BOUNDS.left) / PLAN_GREENHOUSE_BOUNDS.width
    relative_y = (view_y - PLAN_GREENHOUSE_BOUNDS.top) / PLAN_GREENHOUSE_BOUNDS.height
    return clamp_percent(relative_x * 100.0), clamp_percent(relative_y * 100.0)


def plan_percent_to_pointer(x: float, y: float, box: BoundingBox) -> Tuple[float, float]:
    """Inverse of `plan_pointer_to_percent` for in-range percentages."""
    view_x = PLAN_GREENHOUSE_BOUNDS.left + (x / 100.0) * PLAN_GREENHOUSE_BOUNDS.width
    view_y = PLAN_GREENHOUSE_BOUNDS.top + (y / 100.0) * PLAN_GREENHOUSE_BOUNDS.height
    return (
        box.left + view_x * (box.width / PLAN_CANVAS_WIDTH),
        box.top + view_y * (box.height / PLAN_CANVAS_HEIGHT),
    )


@dataclass(frozen=True)
class ElevationGeometry:
    """
    Logical-canvas geometry of the side view for a given greenhouse height.

    `min_y`..`ground_y` is the band dragged sensors are mapped into; `apex_y`
    is where the structure's roof is drawn, which stops rising once the
    greenhouse is taller than the reference height.
    """
    height_multiplier: float
    canvas_height: float
    ground_y: float
    available_height: float
    min_y: float
    apex_y: float

    @classmethod
    def for_height(cls, height_m: float) -> "ElevationGeometry":
        multiplier = max(1.0, height_m / REFERENCE_HEIGHT_M)
        ground_y = ELEVATION_BASE_GROUND_Y * multiplier
        available = (ELEVATION_BASE_GROUND_Y - ELEVATION_BASE_MIN_Y) * multiplier
        progress = min(height_m / REFERENCE_HEIGHT_M, 1.0)
        return cls(
            height_multiplier=multiplier,
            canvas_height=ELEVATION_BASE_HEIGHT * multiplier,
            ground_y=ground_y,
            available_height=available,
            min_y=ground_y - available,
            apex_y=ground_y - available * progress,
        )


def elevation_pointer_to_percent(
    client_x: float, client_y: float, box: BoundingBox, config: GreenhouseConfig
) -> Tuple[float, float]:
    """Map a pointer to side-view (x, z) percentages. z grows upwards."""
    geometry = ElevationGeometry.for_height(config.height)

    normalized_x = max(0.0, min(1.0, (client_x - box.left) / box.width))
    normalized_y = max(0.0, min(1.0, (client_y - box.top) / box.height))

    view_x = normalized_x * ELEVATION_CANVAS_WIDTH
    view_y = normalized_y * geometry.canvas_height

    relative_x = (view_x - ELEVATION_GREENHOUSE_X) / ELEVATION_GREENHOUSE_WIDTH
    relative_y = (view_y - geometry.min_y) / geometry.available_height
    return clamp_percent(relative_x * 100.0), clamp_percent(100.0 - relative_y * 100.0)


def elevation_percent_to_pointer(
    x: float, z: float, box: BoundingBox, config: GreenhouseConfig
) -> Tuple[float, float]:
    """Inverse of `elevation_pointer_to_percent` for in-range percentages."""
    geometry = ElevationGeometry.for_height(config.height)

    view_x = ELEVATION_GREENHOUSE_X + (x / 100.0) * ELEVATION_GREENHOUSE_WIDTH
    view_y = geometry.min_y + (1.0 - z / 100.0) * geometry.available_height
    return (
        box.left + (view_x / ELEVATION_CANVAS_WIDTH) * box.width,
        box.top + (view_y / geometry.canvas_height) * box.height,
    )
