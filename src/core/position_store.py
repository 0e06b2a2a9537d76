import logging
from dataclasses import replace
from typing import Dict, Iterable, Iterator, List, Optional

from core.models.sensor_position import SensorPosition

logger = logging.getLogger(__name__)


def _clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, float(value)))


class PositionStore:
    """
    Canonical in-memory list of sensor positions for one workspace.

    Also holds the single selection slot and the current drag target.
    Mutations are synchronous and never touch the network.
    """

    def __init__(self, positions: Optional[Iterable[SensorPosition]] = None):
        self._positions: List[SensorPosition] = []
        self._index: Dict[str, int] = {}
        self.selected_sensor_id: Optional[str] = None
        self.drag_target_id: Optional[str] = None
        # Incremented on every mutation so callers can tell snapshots apart
        self.revision = 0
        if positions is not None:
            self.replace_all(positions)

    def __len__(self) -> int:
        return len(self._positions)

    def __iter__(self) -> Iterator[SensorPosition]:
        return iter(self.snapshot())

    def __contains__(self, sensor_id: object) -> bool:
        return sensor_id in self._index

    @property
    def positions(self) -> List[SensorPosition]:
        return self.snapshot()

    def snapshot(self) -> List[SensorPosition]:
        """Copies of the current positions, safe to hand to a save."""
        return [replace(position) for position in self._positions]

    def get(self, sensor_id: str) -> Optional[SensorPosition]:
        idx = self._index.get(sensor_id)
        return replace(self._positions[idx]) if idx is not None else None

    def add(self, position: SensorPosition) -> None:
        if position.sensor_id in self._index:
            raise ValueError(f"Duplicate sensor_id: {position.sensor_id}")
        self._index[position.sensor_id] = len(self._positions)
        self._positions.append(self._clamped(position))
        self.revision += 1

    def replace_all(self, positions: Iterable[SensorPosition]) -> None:
        """Swap in a whole new set. Fails without side effects on duplicate ids."""
        new_positions = [self._clamped(position) for position in positions]
        new_index: Dict[str, int] = {}
        for idx, position in enumerate(new_positions):
            if position.sensor_id in new_index:
                raise ValueError(f"Duplicate sensor_id: {position.sensor_id}")
            new_index[position.sensor_id] = idx

        self._positions = new_positions
        self._index = new_index
        if self.selected_sensor_id not in self._index:
            self.selected_sensor_id = None
        if self.drag_target_id not in self._index:
            self.drag_target_id = None
        self.revision += 1

    def clear(self) -> None:
        self._positions = []
        self._index = {}
        self.selected_sensor_id = None
        self.drag_target_id = None
        self.revision += 1

    def move(self, sensor_id: str, x: Optional[float] = None, y: Optional[float] = None,
             z: Optional[float] = None) -> SensorPosition:
        """Update coordinates of one sensor. Values are clamped to [0, 100]."""
        idx = self._index.get(sensor_id)
        if idx is None:
            raise KeyError(sensor_id)
        position = self._positions[idx]
        if x is not None:
            position.x = _clamp_percent(x)
        if y is not None:
            position.y = _clamp_percent(y)
        if z is not None:
            position.z = _clamp_percent(z)
        self.revision += 1
        return replace(position)

    # Selection

    def toggle_selection(self, sensor_id: str) -> Optional[str]:
        """Select a sensor, or deselect it if it is already selected."""
        if sensor_id not in self._index:
            raise KeyError(sensor_id)
        self.selected_sensor_id = None if self.selected_sensor_id == sensor_id else sensor_id
        return self.selected_sensor_id

    def set_selection(self, sensor_id: Optional[str]) -> None:
        if sensor_id is not None and sensor_id not in self._index:
            raise KeyError(sensor_id)
        self.selected_sensor_id = sensor_id

    def begin_drag(self, sensor_id: str) -> None:
        if sensor_id not in self._index:
            raise KeyError(sensor_id)
        self.selected_sensor_id = sensor_id
        self.drag_target_id = sensor_id

    def end_drag(self) -> None:
        self.drag_target_id = None

    @staticmethod
    def _clamped(position: SensorPosition) -> SensorPosition:
        return replace(
            position,
            x=_clamp_percent(position.x),
            y=_clamp_percent(position.y),
            z=_clamp_percent(position.z),
        )
