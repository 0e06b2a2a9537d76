"""
Deterministic initial layout for sensors that have no persisted position.

Devices get an anchor point (one row for up to three devices, a 3-column grid
beyond that) and their active sensors are spread on a circle around it.
Heights are stacked from 40% upwards.
"""
import logging
import math
from typing import List, Sequence, Set, Tuple

from core.models.device import DetectedSensor, DeviceSensors
from core.models.sensor_position import SensorInfo, SensorPosition, sensor_id_for
from core.sensor_types import GENERIC_ICON, SENSOR_METADATA

logger = logging.getLogger(__name__)

DEVICE_COLORS = ["#3b82f6", "#10b981", "#f59e0b", "#ef4444", "#8b5cf6", "#06b6d4"]

POSITION_MIN = 5.0
POSITION_MAX = 95.0
HEIGHT_MIN = 15.0
HEIGHT_MAX = 85.0
BASE_HEIGHT = 40.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def device_color(device_index: int) -> str:
    return DEVICE_COLORS[device_index % len(DEVICE_COLORS)]


def device_anchor(device_index: int, device_count: int) -> Tuple[float, float]:
    """Return (baseX, baseY) for a device."""
    if device_count <= 3:
        return 25.0 + device_index * 50.0, 50.0
    row = device_index // 3
    col = device_index % 3
    return 20.0 + col * 30.0, 30.0 + row * 40.0


def circle_radius(sensor_count: int) -> float:
    return min(15.0, 8.0 + sensor_count * 2.0)


def height_increment(sensor_count: int) -> float:
    return min(10.0, 40.0 / max(sensor_count, 1))


def build_sensor_info(sensor: DetectedSensor, device_index: int) -> Tuple[str, SensorInfo]:
    """Resolve the display label and marker info for a detected sensor."""
    metadata = SENSOR_METADATA.get(sensor.type)
    label = metadata.name if metadata else sensor.name
    info = SensorInfo(
        type=sensor.type,
        channel=sensor.channel,
        value_index=0,
        unit=metadata.unit if metadata else "",
        color=device_color(device_index),
        all_values=list(sensor.values),
        all_labels=list(metadata.value_labels) if metadata else [],
    )
    return label, info


def marker_icon(position: SensorPosition) -> str:
    if position.sensor_info is not None and position.sensor_info.type in SENSOR_METADATA:
        return SENSOR_METADATA[position.sensor_info.type].icon
    return GENERIC_ICON


def generate_initial_positions(devices: Sequence[DeviceSensors]) -> List[SensorPosition]:
    """
    Build one position per active sensor of every device.

    The output depends only on the device order and their active sensors.
    A sensor whose composite id was already produced is skipped.
    """
    positions: List[SensorPosition] = []
    seen: Set[str] = set()
    device_count = len(devices)

    for device_index, device in enumerate(devices):
        active = device.active_sensors()
        count = len(active)
        base_x, base_y = device_anchor(device_index, device_count)
        radius = circle_radius(count)
        increment = height_increment(count)

        for sensor_index, sensor in enumerate(active):
            sensor_id = sensor_id_for(device.device_id, sensor.name)
            if sensor_id in seen:
                logger.warning(f"Duplicate sensor {sensor_id} on device {device.device_id}, skipping")
                continue
            seen.add(sensor_id)

            angle = math.radians(sensor_index * 360.0 / count)
            label, info = build_sensor_info(sensor, device_index)
            positions.append(SensorPosition(
                device_id=device.device_id,
                device_name=device.device_name,
                sensor_type=label,
                sensor_id=sensor_id,
                x=_clamp(base_x + radius * math.cos(angle), POSITION_MIN, POSITION_MAX),
                y=_clamp(base_y + radius * math.sin(angle), POSITION_MIN, POSITION_MAX),
                z=_clamp(BASE_HEIGHT + sensor_index * increment, HEIGHT_MIN, HEIGHT_MAX),
                sensor_info=info,
            ))

    logger.info(f"Generated layout for {len(positions)} sensors across {device_count} devices")
    return positions


def reconcile_positions(devices: Sequence[DeviceSensors], saved: Sequence[SensorPosition]) -> List[SensorPosition]:
    """
    Keep saved coordinates for sensors that are still active.

    Display metadata is refreshed from the current devices; saved entries with
    no active counterpart are dropped.
    """
    by_id = {position.sensor_id: position for position in saved}
    merged: List[SensorPosition] = []
    for device_index, device in enumerate(devices):
        for sensor in device.active_sensors():
            saved_position = by_id.pop(sensor_id_for(device.device_id, sensor.name), None)
            if saved_position is None:
                continue
            label, info = build_sensor_info(sensor, device_index)
            merged.append(SensorPosition(
                device_id=device.device_id,
                device_name=saved_position.device_name or device.device_name,
                sensor_type=label,
                sensor_id=saved_position.sensor_id,
                x=saved_position.x,
                y=saved_position.y,
                z=saved_position.z,
                sensor_info=info,
            ))
    if by_id:
        logger.debug(f"Dropped {len(by_id)} saved positions with no active sensor")
    return merged
