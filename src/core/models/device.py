"""Device input used to build a layout."""
from typing import List, Union

from pydantic import Field
from pydantic.dataclasses import dataclass


@dataclass
class DetectedSensor:
    """A sensor reported by a device. Only active sensors are placed."""
    name: str
    type: int = 0
    channel: int = 0
    active: bool = True
    values: List[Union[float, str]] = Field(default_factory=list)


@dataclass
class DeviceSensors:
    device_id: str
    device_name: str = ""
    sensors: List[DetectedSensor] = Field(default_factory=list)

    def active_sensors(self) -> List[DetectedSensor]:
        return [sensor for sensor in self.sensors if sensor.active]
