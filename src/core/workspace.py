import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Set

from core.drag_controller import DragController, PointerEvent
from core.event_hub import EventHub, POINTER_LEAVE, POINTER_MOVE, POINTER_UP
from core.layout.analysis import LayoutStats, layout_stats
from core.layout.generator import generate_initial_positions, reconcile_positions
from core.models.config_data import TimingConfig
from core.models.device import DeviceSensors
from core.models.greenhouse import ConfigContext, GreenhouseConfig, is_valid_greenhouse_config
from core.models.sensor_position import SensorPosition
from core.models.view import ViewType
from core.persistence.errors import SyncError
from core.persistence.gateway import PersistenceGateway
from core.position_store import PositionStore

logger = logging.getLogger(__name__)

RESET_MESSAGE = "Layout reset"


class LoadSource(Enum):
    REMOTE = "remote"
    LOCAL = "local"
    GENERATED = "generated"


class WorkspaceStateError(Exception):
    """Operation not allowed in the workspace's current state."""


class GreenhouseWorkspace:
    """
    Placement session for one device group.

    Ties the position store, the two drag controllers and the persistence
    gateway together. Pointer input is published on the hub so that an active
    drag sees moves wherever they happen.
    """

    def __init__(
        self,
        device_id: str,
        devices: Sequence[DeviceSensors],
        gateway: PersistenceGateway,
        hub: EventHub,
        timing: Optional[TimingConfig] = None,
        default_config: Optional[GreenhouseConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.device_id = device_id
        self.devices = list(devices)
        self.gateway = gateway
        self.hub = hub
        self.timing = timing or TimingConfig()
        self.config = default_config or GreenhouseConfig()
        self.store = PositionStore()
        self.load_source: Optional[LoadSource] = None

        self.controllers: Dict[ViewType, DragController] = {
            view: DragController(
                view,
                self.store,
                hub,
                config_provider=lambda: self.config,
                on_commit=self._on_commit,
                on_drag_start=self._on_drag_start,
                click_threshold=self.timing.drag_click_threshold,
                clock=clock,
            )
            for view in ViewType
        }
        self._save_tasks: Set[asyncio.Task] = set()

    @property
    def positions(self) -> List[SensorPosition]:
        return self.store.snapshot()

    @property
    def dragging_view(self) -> Optional[ViewType]:
        for view, controller in self.controllers.items():
            if controller.is_dragging:
                return view
        return None

    async def load(self) -> LoadSource:
        """
        Fill the store from the remote floor plan, falling back to the local
        mirror, and generate (then persist) a layout when nothing matches.
        """
        saved: List[SensorPosition] = []
        try:
            aggregate = await self.gateway.load_view(ViewType.FLOOR_PLAN)
            self.config = aggregate.config
            saved = aggregate.sensors
            source = LoadSource.REMOTE
        except SyncError as e:
            logger.error(f"Remote load failed for {self.device_id}: {e}")
            self.gateway.report_error(e)
            local = self.gateway.load_local()
            source = LoadSource.LOCAL
            if local is not None:
                self.config, saved = local
                logger.info(f"Using local fallback for {self.device_id} ({len(saved)} positions)")

        for controller in self.controllers.values():
            controller.teardown()

        merged = reconcile_positions(self.devices, saved)
        if merged:
            self.store.replace_all(merged)
        else:
            self.store.replace_all(generate_initial_positions(self.devices))
            source = LoadSource.GENERATED
            await self.gateway.save(self.config, self.store.snapshot())

        self.load_source = source
        logger.info(f"Workspace {self.device_id} loaded from {source.value}: {len(self.store)} sensors")
        return source

    # Pointer input

    def pointer_down(self, view: ViewType, sensor_id: str):
        if sensor_id not in self.store:
            raise WorkspaceStateError(f"Unknown sensor {sensor_id}")
        busy = self.dragging_view
        if busy is not None:
            raise WorkspaceStateError(f"A drag is already in progress on the {busy.value} view")
        self.controllers[view].pointer_down(sensor_id)

    def pointer_move(self, event: PointerEvent):
        self.hub.send_all_on_topic(POINTER_MOVE, event)

    def pointer_up(self):
        self.hub.send_all_on_topic(POINTER_UP, None)

    def pointer_leave(self):
        self.hub.send_all_on_topic(POINTER_LEAVE, None)

    # Selection and edits

    def select(self, sensor_id: Optional[str]):
        self.store.set_selection(sensor_id)

    def toggle_selection(self, sensor_id: str) -> Optional[str]:
        return self.store.toggle_selection(sensor_id)

    def update_sensor(self, sensor_id: str, x: Optional[float] = None, y: Optional[float] = None,
                      z: Optional[float] = None) -> SensorPosition:
        """Numeric edit of one sensor; persisted through the debounced save."""
        position = self.store.move(sensor_id, x=x, y=y, z=z)
        self.gateway.schedule_save(self.config, self.store.snapshot())
        return position

    async def update_config(self, config: GreenhouseConfig) -> bool:
        if not is_valid_greenhouse_config(config, ConfigContext.EDITOR):
            raise ValueError(f"Invalid greenhouse config: {config}")
        self.config = config
        logger.info(f"Config for {self.device_id} changed to {config}")
        return await self.gateway.save(self.config, self.store.snapshot())

    async def reset(self) -> bool:
        """Throw away all positions, regenerate them and persist the result."""
        for controller in self.controllers.values():
            controller.teardown()
        self.gateway.cancel_scheduled()
        self.store.clear()
        self.store.replace_all(generate_initial_positions(self.devices))
        saved = await self.gateway.save(self.config, self.store.snapshot())
        if saved:
            self.gateway.announce(RESET_MESSAGE, self.timing.reset_message_duration)
        logger.info(f"Workspace {self.device_id} reset, {len(self.store)} sensors regenerated")
        return saved

    async def refresh(self) -> LoadSource:
        self.gateway.refresh()
        return await self.load()

    async def save_now(self) -> bool:
        """Save the current state; a scheduled save is dropped only once this one lands."""
        saved = await self.gateway.save(self.config, self.store.snapshot())
        if saved:
            self.gateway.cancel_scheduled()
        return saved

    def clear_error(self):
        self.gateway.clear_error()

    def set_online(self, online: bool):
        self.gateway.set_online(online)

    def stats(self) -> LayoutStats:
        return layout_stats(self.devices, self.store.snapshot(), self.config)

    # Drag callbacks

    def _on_drag_start(self, view: ViewType):
        self.gateway.suspend_status_message()

    def _on_commit(self, view: ViewType):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"Drag commit on {view.value} outside of an event loop, not saved")
            return
        task = loop.create_task(self.gateway.save(self.config, self.store.snapshot()))
        self._save_tasks.add(task)
        task.add_done_callback(self._save_tasks.discard)

    async def wait_idle(self):
        """Wait for commit saves and the debounced save started so far."""
        if self._save_tasks:
            await asyncio.gather(*list(self._save_tasks))
        await self.gateway.wait_scheduled()

    async def close(self):
        for controller in self.controllers.values():
            controller.teardown()
        await self.wait_idle()
        await self.gateway.close()
        logger.info(f"Workspace {self.device_id} closed")
