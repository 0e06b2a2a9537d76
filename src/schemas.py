from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.models.device import DeviceSensors
from core.models.greenhouse import GreenhouseConfig
from core.models.sensor_position import SensorPosition
from core.models.view import ViewType


class AppHealthOK(BaseModel):
    status: str
    app: str


class OpenRequest(BaseModel):
    devices: List[DeviceSensors]


class Bounds(BaseModel):
    """On-screen rectangle of the drawing surface, in client pixels."""
    left: float = 0.0
    top: float = 0.0
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class PointerDownRequest(BaseModel):
    view: ViewType
    sensor_id: str


class PointerMoveRequest(BaseModel):
    client_x: float
    client_y: float
    bounds: Bounds


class SelectionRequest(BaseModel):
    sensor_id: Optional[str] = None


class SelectionResponse(BaseModel):
    selected_sensor_id: Optional[str] = None


class SensorUpdateRequest(BaseModel):
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None


class ConnectivityRequest(BaseModel):
    online: bool


class SyncStatus(BaseModel):
    online: bool
    loading: bool
    saving: bool
    save_state: str
    save_scheduled: bool
    pending: bool
    error: Optional[str] = None
    message: Optional[str] = None
    last_saved: Optional[datetime] = None


class LayoutResponse(BaseModel):
    device_id: str
    config: GreenhouseConfig
    positions: List[SensorPosition]
    selected_sensor_id: Optional[str] = None
    drag_target_id: Optional[str] = None
    dragging_view: Optional[ViewType] = None
    load_source: Optional[str] = None
    status: SyncStatus


class SaveResponse(BaseModel):
    saved: bool
    status: SyncStatus


class StatsResponse(BaseModel):
    device_count: int
    sensor_count: int
    area_per_sensor: float
    device_sensor_counts: Dict[str, int]
    sensor_type_counts: Dict[str, int]
