"""
Sensor type metadata and the label/code coercion used at the remote boundary.

The remote API stores sensor types as numeric codes while the UI shows labels,
so every payload going out is normalized with `coerce_sensor_type`.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Union

logger = logging.getLogger(__name__)

GENERIC_ICON = "📊"
GENERIC_COLOR = "#6b7280"


@dataclass(frozen=True)
class SensorMetadata:
    code: int
    name: str
    unit: str
    color: str
    icon: str
    value_labels: List[str] = field(default_factory=list)
    protocol: str = "unknown"


UNKNOWN_SENSOR = SensorMetadata(0, "Unknown", "", GENERIC_COLOR, "❓", [], "unknown")

SENSOR_METADATA: Dict[int, SensorMetadata] = {
    0: UNKNOWN_SENSOR,
    1: SensorMetadata(1, "Temp/Humidity", "°C, %", "#2563eb", "🌡️", ["Temperature (°C)", "Humidity (%)"], "i2c"),
    2: SensorMetadata(2, "Light", "lux", "#d97706", "☀️", ["Illuminance (lux)"], "i2c"),
    3: SensorMetadata(3, "Nutrient", "pH, dS/m", "#7c3aed", "🔬", ["Nutrient pH", "Nutrient EC (dS/m)"], "i2c"),
    4: SensorMetadata(4, "CO2", "ppm", "#16a34a", "🌤️", ["CO2 (ppm)"], "i2c"),
    5: SensorMetadata(5, "Temperature", "°C", "#dc2626", "🌡️", ["Temperature (°C)"], "digital"),
    11: SensorMetadata(11, "Modbus Temp/Humidity", "°C, %", "#2563eb", "🌡️", ["Temperature (°C)", "Humidity (%)"], "modbus"),
    12: SensorMetadata(12, "Modbus Pressure", "bar", "#8b5cf6", "🧭", ["Pressure (bar)"], "modbus"),
    13: SensorMetadata(13, "Modbus Flow", "L/min", "#06b6d4", "💧", ["Flow (L/min)"], "modbus"),
    14: SensorMetadata(14, "Modbus Relay", "", "#ef4444", "🔌", ["State"], "modbus"),
    15: SensorMetadata(15, "Modbus Energy", "V, A", "#f59e0b", "⚡", ["Voltage (V)", "Current (A)"], "modbus"),
    16: SensorMetadata(16, "Wind Direction", "°", "#10b981", "🧭", ["Gear direction", "Angle (°)", "Direction"], "analog"),
    17: SensorMetadata(17, "Wind Speed", "m/s", "#3b82f6", "🌬️", ["Wind speed (m/s)", "Beaufort", "State"], "analog"),
    18: SensorMetadata(18, "Rain/Snow", "°C, %, level", "#6366f1", "🌧️",
                       ["Precipitation", "Precipitation text", "Moisture level", "Moisture intensity",
                        "Temperature (°C)", "Humidity (%)", "Temperature state", "Icon"], "analog"),
    19: SensorMetadata(19, "Soil", "pH, dS/m, °C, %", "#84cc16", "🌱",
                       ["Soil pH", "Soil EC (dS/m)", "Soil temperature (°C)", "Soil moisture (%)"], "modbus"),
    21: SensorMetadata(21, "SHT20 (Modbus)", "°C, %", "#2563eb", "🌡️", ["Temperature (°C)", "Humidity (%)"], "modbus"),
}

# Chip names and legacy labels the remote has seen over time
SENSOR_TYPE_ALIASES: Dict[str, int] = {
    "SHT20": 1,
    "Temp/Humidity Sensor": 1,
    "BH1750": 2,
    "Light Sensor": 2,
    "ADS1115": 3,
    "SCD30": 4,
    "CO2 Sensor": 4,
    "DS18B20": 5,
    "Temperature Sensor": 5,
    "MODBUS_TH": 11,
    "MODBUS_PRESSURE": 12,
    "MODBUS_FLOW": 13,
    "MODBUS_RELAY": 14,
    "MODBUS_ENERGY": 15,
    "Wind Direction Sensor": 16,
    "Wind Speed Sensor": 17,
    "Rain Sensor": 18,
    "Soil Sensor": 19,
}


def get_sensor_metadata(code: int) -> SensorMetadata:
    return SENSOR_METADATA.get(code, UNKNOWN_SENSOR)


def is_known_sensor_type(code: int) -> bool:
    return code in SENSOR_METADATA


def coerce_sensor_type(sensor_type: Union[int, float, str, None]) -> int:
    """
    Normalize a sensor type to its numeric code.

    Numeric codes pass through, numeric strings are parsed, labels are looked up
    among metadata names and aliases. Anything else maps to 0.
    """
    if isinstance(sensor_type, bool) or sensor_type is None:
        return 0
    if isinstance(sensor_type, int):
        return sensor_type
    if isinstance(sensor_type, float):
        return 0 if math.isnan(sensor_type) or math.isinf(sensor_type) else int(sensor_type)

    text = str(sensor_type).strip()
    try:
        return int(text)
    except ValueError:
        pass
    try:
        value = float(text)
        if not (math.isnan(value) or math.isinf(value)):
            return int(value)
    except ValueError:
        pass

    if text in SENSOR_TYPE_ALIASES:
        return SENSOR_TYPE_ALIASES[text]
    for metadata in SENSOR_METADATA.values():
        if metadata.name == text:
            return metadata.code

    logger.debug(f"Unknown sensor type label {text!r}, using code 0")
    return 0


def sensor_type_label(code: int) -> str:
    """Display label for a numeric code; unknown codes get a generic label."""
    if code in SENSOR_METADATA and code != 0:
        return SENSOR_METADATA[code].name
    return f"Sensor {code}"


def sensor_icon(code: int) -> str:
    if code in SENSOR_METADATA:
        return SENSOR_METADATA[code].icon
    return GENERIC_ICON
