import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from core.event_hub import EventHub, POINTER_LEAVE, POINTER_MOVE, POINTER_UP
from core.layout.transform import BoundingBox, elevation_pointer_to_percent, plan_pointer_to_percent
from core.models.greenhouse import GreenhouseConfig
from core.models.view import ViewType
from core.position_store import PositionStore

logger = logging.getLogger(__name__)

# Releases at or under this many seconds are clicks, not drags
CLICK_THRESHOLD = 0.1


class DragState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class PointerEvent:
    """A pointer (mouse or first touch) position with the surface it was measured against."""
    client_x: float
    client_y: float
    bounds: BoundingBox


class DragController:
    """
    Drag interaction state machine for one view.

    While dragging, the controller listens to the hub's pointer topics (so moves
    anywhere on the page are seen) and writes transient coordinates into the
    store. On release it emits a commit unless the press was a click.
    """

    def __init__(
        self,
        view: ViewType,
        store: PositionStore,
        hub: EventHub,
        config_provider: Callable[[], GreenhouseConfig],
        on_commit: Optional[Callable[[ViewType], None]] = None,
        on_drag_start: Optional[Callable[[ViewType], None]] = None,
        click_threshold: float = CLICK_THRESHOLD,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.view = view
        self.store = store
        self.hub = hub
        self.config_provider = config_provider
        self.on_commit = on_commit
        self.on_drag_start = on_drag_start
        self.click_threshold = click_threshold
        self.clock = clock

        self.state = DragState.IDLE
        self.drag_sensor_id: Optional[str] = None
        self.drag_started_at = 0.0

    @property
    def is_dragging(self) -> bool:
        return self.state == DragState.DRAGGING

    def pointer_down(self, sensor_id: str) -> None:
        """Mouse-down or touch-start over a sensor marker."""
        if self.is_dragging:
            logger.debug(f"[{self.view.value}] pointer down while dragging {self.drag_sensor_id}, ignored")
            return

        self.store.begin_drag(sensor_id)
        self.drag_started_at = self.clock()
        self.drag_sensor_id = sensor_id
        self.state = DragState.DRAGGING

        self.hub.subscribe(POINTER_MOVE, self._on_pointer_move)
        self.hub.subscribe(POINTER_UP, self._on_pointer_release)
        self.hub.subscribe(POINTER_LEAVE, self._on_pointer_release)

        if self.on_drag_start:
            self.on_drag_start(self.view)

    touch_start = pointer_down

    def pointer_move(self, event: PointerEvent) -> None:
        if not self.is_dragging or self.drag_sensor_id is None:
            return
        if self.drag_sensor_id not in self.store:
            # Store was replaced under us (reset or reload)
            self.teardown()
            return
        if self.view is ViewType.FLOOR_PLAN:
            x, y = plan_pointer_to_percent(event.client_x, event.client_y, event.bounds)
            self.store.move(self.drag_sensor_id, x=x, y=y)
        else:
            x, z = elevation_pointer_to_percent(event.client_x, event.client_y, event.bounds, self.config_provider())
            self.store.move(self.drag_sensor_id, x=x, z=z)

    def release(self) -> bool:
        """
        End the interaction. Returns True when a commit was emitted.
        The selection applied at pointer-down stays either way.
        """
        if not self.is_dragging:
            return False

        elapsed = self.clock() - self.drag_started_at
        sensor_id = self.drag_sensor_id
        self._reset()

        if elapsed > self.click_threshold:
            logger.debug(f"[{self.view.value}] drag of {sensor_id} ended after {elapsed * 1000:.0f} ms, committing")
            if self.on_commit:
                self.on_commit(self.view)
            return True
        return False

    def teardown(self) -> None:
        """Drop subscriptions without committing."""
        self._reset()

    def _reset(self) -> None:
        self.hub.unsubscribe(POINTER_MOVE, self._on_pointer_move)
        self.hub.unsubscribe(POINTER_UP, self._on_pointer_release)
        self.hub.unsubscribe(POINTER_LEAVE, self._on_pointer_release)
        if self.drag_sensor_id is not None and self.store.drag_target_id == self.drag_sensor_id:
            self.store.end_drag()
        self.state = DragState.IDLE
        self.drag_sensor_id = None

    def _on_pointer_move(self, topic: str, event: PointerEvent) -> None:
        self.pointer_move(event)

    def _on_pointer_release(self, topic: str, message: object) -> None:
        self.release()
