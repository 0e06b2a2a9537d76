"""Helpers over a position set: distances, grouping and layout statistics."""
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from core.models.device import DeviceSensors
from core.models.greenhouse import GreenhouseConfig
from core.models.sensor_position import SensorPosition
from core.sensor_types import SENSOR_METADATA


def calculate_distance(first: SensorPosition, second: SensorPosition) -> float:
    """Euclidean distance in percentage space, height included."""
    return math.sqrt((first.x - second.x) ** 2 + (first.y - second.y) ** 2 + (first.z - second.z) ** 2)


def find_nearest_sensors(
    target: SensorPosition, positions: Sequence[SensorPosition], max_distance: float = 20.0
) -> List[Tuple[SensorPosition, float]]:
    """Other sensors within `max_distance`, nearest first."""
    candidates = [
        (position, calculate_distance(target, position))
        for position in positions
        if position.sensor_id != target.sensor_id
    ]
    return sorted(
        [(position, distance) for position, distance in candidates if distance <= max_distance],
        key=lambda item: item[1],
    )


def group_by_device(positions: Sequence[SensorPosition]) -> Dict[str, List[SensorPosition]]:
    groups: Dict[str, List[SensorPosition]] = {}
    for position in positions:
        groups.setdefault(position.device_id, []).append(position)
    return groups


def is_valid_position(position: SensorPosition) -> bool:
    return (
        0 <= position.x <= 100
        and 0 <= position.y <= 100
        and 0 <= position.z <= 100
        and len(position.device_id) > 0
        and len(position.sensor_id) > 0
    )


@dataclass
class LayoutStats:
    device_count: int
    sensor_count: int
    # Floor area per placed sensor in m², 0 when nothing is placed
    area_per_sensor: float
    device_sensor_counts: Dict[str, int] = field(default_factory=dict)
    sensor_type_counts: Dict[str, int] = field(default_factory=dict)


def layout_stats(
    devices: Sequence[DeviceSensors], positions: Sequence[SensorPosition], config: GreenhouseConfig
) -> LayoutStats:
    device_counts: Dict[str, int] = {}
    type_counts: Dict[str, int] = {}
    for device in devices:
        active = device.active_sensors()
        device_counts[device.device_name or device.device_id] = len(active)
        for sensor in active:
            metadata = SENSOR_METADATA.get(sensor.type)
            type_name = metadata.name if metadata else sensor.name
            type_counts[type_name] = type_counts.get(type_name, 0) + 1

    sensor_count = len(positions)
    area = round(config.floor_area / sensor_count, 1) if sensor_count > 0 else 0.0
    return LayoutStats(
        device_count=len(devices),
        sensor_count=sensor_count,
        area_per_sensor=area,
        device_sensor_counts=device_counts,
        sensor_type_counts=type_counts,
    )
