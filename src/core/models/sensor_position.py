"""Sensor position model shared by both views."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Union


@dataclass
class SensorInfo:
    type: int = 0
    channel: int = 0
    value_index: int = 0
    unit: str = ""
    color: str = ""
    all_values: List[Union[float, str]] = field(default_factory=list)
    all_labels: List[str] = field(default_factory=list)


@dataclass
class SensorPosition:
    """
    One sensor placed in percentage space.
    x and y are the floor-plan axes, z is the height shown on the side view.
    """
    device_id: str
    device_name: str
    sensor_type: str
    sensor_id: str
    x: float = 50.0
    y: float = 50.0
    z: float = 50.0
    sensor_info: Optional[SensorInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SensorPosition":
        info = data.get("sensor_info")
        return cls(
            device_id=str(data.get("device_id", "")),
            device_name=str(data.get("device_name", "")),
            sensor_type=str(data.get("sensor_type", "")),
            sensor_id=str(data["sensor_id"]),
            x=float(data.get("x", 0.0)),
            y=float(data.get("y", 0.0)),
            z=float(data.get("z", 0.0)),
            sensor_info=SensorInfo(**info) if isinstance(info, dict) else None,
        )


def sensor_id_for(device_id: str, sensor_name: str) -> str:
    """Composite key of a sensor within a position set."""
    return f"{device_id}_{sensor_name}"
