"""Payloads exchanged with the remote filters API (camelCase on the wire)."""
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.sensor_types import coerce_sensor_type


def coerce_number(value: Any) -> float:
    """Missing, garbled or non-finite numbers become 0."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class RemoteGreenhouseConfig(CamelModel):
    """Config as stored remotely. The side view only carries width, height and type."""
    type: str = "vinyl"
    width: float = 20.0
    length: Optional[float] = None
    height: float = 4.0
    name: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, value: Any) -> str:
        return "vinyl" if value is None else str(value)

    @field_validator("width", "height", mode="before")
    @classmethod
    def _numeric(cls, value: Any) -> float:
        return coerce_number(value)

    @field_validator("length", mode="before")
    @classmethod
    def _optional_numeric(cls, value: Any) -> Optional[float]:
        return None if value is None else coerce_number(value)


class RemoteFloorPlanSettings(CamelModel):
    zoom: float = 1.0
    center_x: float = 50.0
    center_y: float = 50.0
    show_grid: bool = True
    show_labels: bool = True


class RemoteSideViewSettings(CamelModel):
    show_grid: bool = True
    show_labels: bool = True
    show_height_guides: bool = True
    show_ground_line: bool = True


class RemoteFilter(CamelModel):
    greenhouse_config: RemoteGreenhouseConfig = Field(default_factory=RemoteGreenhouseConfig)
    view_settings: Dict[str, Any] = Field(default_factory=dict)


class FilterResponse(CamelModel):
    success: bool = True
    has_filter: bool = False
    filter: Optional[RemoteFilter] = None
    default_filter: Optional[RemoteFilter] = None
    message: str = ""

    def effective_filter(self) -> Optional[RemoteFilter]:
        return self.filter if self.has_filter else self.default_filter


class RemotePosition(BaseModel):
    """Positions use snake_case keys on the wire."""
    model_config = ConfigDict(extra="ignore")

    sensor_id: str
    device_name: str = ""
    sensor_type: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    rotation: float = 0.0

    @field_validator("sensor_type", mode="before")
    @classmethod
    def _sensor_type(cls, value: Any) -> int:
        return coerce_sensor_type(value)

    @field_validator("x", "y", "z", "rotation", mode="before")
    @classmethod
    def _numeric(cls, value: Any) -> float:
        return coerce_number(value)

    @field_validator("sensor_id", mode="before")
    @classmethod
    def _sensor_id(cls, value: Any) -> Any:
        return value if value is None else str(value)

    @field_validator("device_name", mode="before")
    @classmethod
    def _name(cls, value: Any) -> str:
        return "" if value is None else str(value)


class PositionsResponse(CamelModel):
    success: bool = False
    positions: List[RemotePosition] = Field(default_factory=list)
    count: int = 0
    message: str = ""


class MutationResponse(CamelModel):
    success: bool = False
    message: str = ""
    error: Optional[str] = None


class GlobalSettingsResponse(CamelModel):
    success: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)
