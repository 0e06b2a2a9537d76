"""View types and the per-view persisted aggregate."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Union

from core.models.greenhouse import GreenhouseConfig
from core.models.sensor_position import SensorPosition


class ViewType(Enum):
    """The two persisted views. The value is the positions endpoint segment."""
    FLOOR_PLAN = "floor_plan"
    SIDE_VIEW = "side_view"

    @property
    def filter_path(self) -> str:
        return "floor-plan" if self is ViewType.FLOOR_PLAN else "side-view"

    def cache_key(self, device_id: str) -> str:
        return f"{self.filter_path}-{device_id}"


@dataclass
class FloorPlanViewSettings:
    zoom: float = 1.0
    center_x: float = 50.0
    center_y: float = 50.0
    show_grid: bool = True
    show_labels: bool = True


@dataclass
class SideViewSettings:
    show_grid: bool = True
    show_labels: bool = True
    show_height_guides: bool = True
    show_ground_line: bool = True


ViewSettings = Union[FloorPlanViewSettings, SideViewSettings]


def default_view_settings(view: ViewType) -> ViewSettings:
    if view is ViewType.FLOOR_PLAN:
        return FloorPlanViewSettings()
    return SideViewSettings()


@dataclass
class PersistedAggregate:
    """{config, sensors, view_settings} for one (device, view) pair."""
    view: ViewType
    config: GreenhouseConfig
    sensors: List[SensorPosition] = field(default_factory=list)
    view_settings: ViewSettings = field(default_factory=FloorPlanViewSettings)
