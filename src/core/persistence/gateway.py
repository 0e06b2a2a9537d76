"""
Read/write path between a workspace and the remote filters API.

Reads go through a TTL cache. Writes are throttled, optionally debounced,
retried with backoff and written to both view records concurrently. While
offline a write lands in a single pending slot (mirrored to the local store)
and is flushed once when connectivity comes back.
"""
import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from core.event_hub import CONNECTIVITY_CHANGED, EventHub
from core.models.config_data import TimingConfig
from core.models.greenhouse import MAX_HEIGHT, MAX_LENGTH_STORED, MAX_WIDTH, GreenhouseConfig
from core.models.remote import (
    FilterResponse,
    PositionsResponse,
    RemoteFloorPlanSettings,
    RemoteGreenhouseConfig,
    RemotePosition,
    RemoteSideViewSettings,
)
from core.models.sensor_position import SensorInfo, SensorPosition
from core.models.view import (
    FloorPlanViewSettings,
    PersistedAggregate,
    SideViewSettings,
    ViewSettings,
    ViewType,
    default_view_settings,
)
from core.persistence.api_client import RemoteApiClient
from core.persistence.cache import TTLCache
from core.persistence.debounce import Debouncer
from core.persistence.errors import NetworkError, PartialSaveError, ServerError, SyncError, describe_error
from core.persistence.local_store import LocalStore, fallback_key
from core.persistence.retry import call_with_retry
from core.sensor_types import get_sensor_metadata, sensor_type_label

logger = logging.getLogger(__name__)

SAVING_MESSAGE = "Saving..."
SAVED_MESSAGE = "Saved"
OFFLINE_MESSAGE = "Offline: changes stored locally"


class SaveState(Enum):
    IDLE = "idle"
    SAVING = "saving"
    SUCCESS = "success"
    OFFLINE_QUEUED = "offline_queued"
    ERROR_REPORTED = "error_reported"


@dataclass
class PendingSave:
    config: GreenhouseConfig
    sensors: List[SensorPosition]


def _dimension(value: Optional[float], limit: float, fallback: float) -> float:
    if value is None or not (0 < value <= limit):
        return fallback
    return value


def config_from_remote(remote: RemoteGreenhouseConfig, fallback: GreenhouseConfig) -> GreenhouseConfig:
    """Merge a remote config into `fallback`; out-of-range or missing fields keep the fallback's value."""
    return GreenhouseConfig(
        type=remote.type if remote.type in ("vinyl", "glass") else fallback.type,
        width=_dimension(remote.width, MAX_WIDTH, fallback.width),
        length=_dimension(remote.length, MAX_LENGTH_STORED, fallback.length),
        height=_dimension(remote.height, MAX_HEIGHT, fallback.height),
        name=remote.name or fallback.name,
    )


def position_from_remote(remote: RemotePosition, device_id: str) -> SensorPosition:
    metadata = get_sensor_metadata(remote.sensor_type)
    return SensorPosition(
        device_id=device_id,
        device_name=remote.device_name,
        sensor_type=sensor_type_label(remote.sensor_type),
        sensor_id=remote.sensor_id,
        x=remote.x,
        y=remote.y,
        z=remote.z,
        sensor_info=SensorInfo(type=remote.sensor_type, unit=metadata.unit, color=metadata.color),
    )


def view_settings_from_remote(view: ViewType, raw: Dict) -> ViewSettings:
    try:
        if view is ViewType.FLOOR_PLAN:
            return FloorPlanViewSettings(**RemoteFloorPlanSettings.model_validate(raw).model_dump())
        return SideViewSettings(**RemoteSideViewSettings.model_validate(raw).model_dump())
    except ValidationError as e:
        logger.warning(f"Unreadable {view.value} view settings, using defaults: {e}")
        return default_view_settings(view)


def filter_payload(view: ViewType, config: GreenhouseConfig, settings: ViewSettings) -> Dict:
    """Body of a filter write. The side view only stores width, height and type; no selection is stored."""
    if view is ViewType.FLOOR_PLAN:
        greenhouse = {
            "type": config.type,
            "width": config.width,
            "length": config.length,
            "height": config.height,
            "name": config.name,
        }
        remote_settings = RemoteFloorPlanSettings(**asdict(settings))
    else:
        greenhouse = {"width": config.width, "height": config.height, "type": config.type}
        remote_settings = RemoteSideViewSettings(**asdict(settings))
    return {
        "greenhouseConfig": greenhouse,
        "selectedSensor": "",
        "viewSettings": remote_settings.model_dump(by_alias=True),
    }


class PersistenceGateway:
    """
    Persistence for one device identity.

    Owns the read cache, the throttle timestamp, the debounce timer, the
    pending offline slot and the user-facing status (error and transient
    message). Connectivity changes arrive on the hub's CONNECTIVITY_CHANGED
    topic with a bool payload.
    """

    def __init__(
        self,
        device_id: str,
        client: RemoteApiClient,
        local_store: LocalStore,
        hub: EventHub,
        timing: Optional[TimingConfig] = None,
        default_config: Optional[GreenhouseConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        online: bool = True,
    ):
        self.device_id = device_id
        self.client = client
        self.local_store = local_store
        self.hub = hub
        self.timing = timing or TimingConfig()
        self.default_config = default_config or GreenhouseConfig()
        self.clock = clock
        self.sleep = sleep

        self.cache = TTLCache(self.timing.cache_ttl, clock=clock)
        self.view_settings: Dict[ViewType, ViewSettings] = {
            view: default_view_settings(view) for view in ViewType
        }

        self.is_online = online
        self.is_loading = False
        self.save_state = SaveState.IDLE
        self.error: Optional[str] = None
        self.status_message: Optional[str] = None
        self.last_saved: Optional[datetime] = None
        self.pending: Optional[PendingSave] = None

        self._saving_count = 0
        self._last_save_started: Optional[float] = None
        self._debouncer = Debouncer(self._save_debounced, self.timing.save_debounce)
        self._flush_task: Optional[asyncio.Task] = None
        self._dismiss_task: Optional[asyncio.Task] = None

        self.hub.subscribe(CONNECTIVITY_CHANGED, self._on_connectivity_changed)

    @property
    def is_saving(self) -> bool:
        return self._saving_count > 0

    @property
    def save_scheduled(self) -> bool:
        return self._debouncer.pending

    # Reads

    async def load_view(self, view: ViewType) -> PersistedAggregate:
        """Filter and positions of one view, from cache when fresh."""
        key = view.cache_key(self.device_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for {key}")
            return cached

        self.is_loading = True
        try:
            filter_response, positions_response = await call_with_retry(
                lambda: self._fetch_view(view),
                max_retries=self.timing.retry_attempts,
                initial_delay=self.timing.retry_delay,
                backoff_multiplier=self.timing.retry_backoff,
                sleep=self.sleep,
            )
        finally:
            self.is_loading = False

        remote_filter = filter_response.effective_filter()
        if remote_filter is not None:
            config = config_from_remote(remote_filter.greenhouse_config, self.default_config)
            settings = view_settings_from_remote(view, remote_filter.view_settings)
        else:
            config = self.default_config
            settings = default_view_settings(view)

        sensors: List[SensorPosition] = []
        if positions_response.success:
            sensors = [position_from_remote(position, self.device_id) for position in positions_response.positions]

        self.view_settings[view] = settings
        aggregate = PersistedAggregate(view=view, config=config, sensors=sensors, view_settings=settings)
        self.cache.set(key, aggregate)
        logger.info(f"Loaded {view.value} for {self.device_id}: {len(sensors)} positions")
        return aggregate

    async def _fetch_view(self, view: ViewType) -> Tuple[FilterResponse, PositionsResponse]:
        """Both reads of one view; the first failure is raised once both have finished."""
        results = await asyncio.gather(
            self.client.get_filter(self.device_id, view),
            self.client.get_positions(self.device_id, view),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        filter_response, positions_response = results
        return filter_response, positions_response

    def load_local(self) -> Optional[Tuple[GreenhouseConfig, List[SensorPosition]]]:
        """The locally mirrored {config, sensors} blob, if one is readable."""
        blob = self.local_store.get_json(fallback_key(self.device_id))
        if not isinstance(blob, dict):
            return None
        try:
            config = GreenhouseConfig(**blob.get("config", {}))
            sensors = [SensorPosition.from_dict(item) for item in blob.get("sensors", [])]
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.warning(f"Local fallback for {self.device_id} is unreadable: {e}")
            return None
        return config, sensors

    def refresh(self):
        """Drop cached reads so the next load hits the network."""
        self.cache.clear()
        logger.info(f"Cache cleared for {self.device_id}")

    def invalidate(self, view: ViewType):
        self.cache.invalidate(view.cache_key(self.device_id))

    # Writes

    async def save(self, config: GreenhouseConfig, sensors: List[SensorPosition]) -> bool:
        """
        Write both view records. Returns True only when both succeeded.

        Any save within the throttle window of the previous attempt's start is
        a no-op, whoever issues it. Offline or network failures queue the
        payload instead.
        """
        return await self._write(config, sensors, throttled=True)

    async def _write(self, config: GreenhouseConfig, sensors: List[SensorPosition], throttled: bool) -> bool:
        sensors = [SensorPosition.from_dict(sensor.to_dict()) for sensor in sensors]

        if not self.is_online:
            self._queue(config, sensors)
            logger.warning(f"Offline, queued save of {len(sensors)} positions for {self.device_id}")
            return False

        now = self.clock()
        if (
            throttled
            and self._last_save_started is not None
            and now - self._last_save_started < self.timing.save_throttle
        ):
            logger.warning(f"Save for {self.device_id} throttled")
            return False
        self._last_save_started = now

        self._saving_count += 1
        self.save_state = SaveState.SAVING
        self._set_message(SAVING_MESSAGE)
        try:
            await self._save_both(config, sensors)
        except NetworkError as e:
            logger.warning(f"Save for {self.device_id} hit a network error, queued locally: {e}")
            self._queue(config, sensors)
            return False
        except SyncError as e:
            logger.error(f"Save for {self.device_id} failed: {e}")
            self.error = describe_error(e)
            self._queue(config, sensors)
            self.save_state = SaveState.ERROR_REPORTED
            self._set_message(None)
            return False
        finally:
            self._saving_count -= 1

        self.pending = None
        self._mirror(config, sensors)
        self.last_saved = datetime.now(timezone.utc)
        self.save_state = SaveState.SUCCESS
        self.announce(SAVED_MESSAGE, self.timing.success_message_duration)
        logger.info(f"Saved {len(sensors)} positions for {self.device_id}")
        return True

    def schedule_save(self, config: GreenhouseConfig, sensors: List[SensorPosition]):
        """Debounced save; only the latest payload of a burst is written."""
        self._debouncer.trigger(config, sensors)

    def cancel_scheduled(self):
        self._debouncer.cancel()

    async def flush_scheduled(self):
        await self._debouncer.flush()

    async def wait_scheduled(self):
        await self._debouncer.wait()

    async def flush_pending(self) -> bool:
        """
        Retry the queued payload once.

        The only write that skips the throttle: a reconnect always gets its
        single flush attempt.
        """
        pending = self.pending
        if pending is None:
            return False
        logger.info(f"Flushing pending save for {self.device_id}")
        return await self._write(pending.config, pending.sensors, throttled=False)

    async def _save_debounced(self, config: GreenhouseConfig, sensors: List[SensorPosition]):
        await self.save(config, sensors)

    async def _save_record(self, view: ViewType, config: GreenhouseConfig, sensors: List[SensorPosition]):
        payload = filter_payload(view, config, self.view_settings[view])

        async def attempt():
            filter_result = await self.client.save_filter(self.device_id, view, payload)
            if not filter_result.success:
                raise ServerError(filter_result.error or filter_result.message or f"{view.value} filter rejected")
            positions_result = await self.client.save_positions(self.device_id, view, sensors)
            if not positions_result.success:
                raise ServerError(
                    positions_result.error or positions_result.message or f"{view.value} positions rejected"
                )

        await call_with_retry(
            attempt,
            max_retries=self.timing.retry_attempts,
            initial_delay=self.timing.retry_delay,
            backoff_multiplier=self.timing.retry_backoff,
            sleep=self.sleep,
        )

    async def _save_both(self, config: GreenhouseConfig, sensors: List[SensorPosition]):
        views = [ViewType.FLOOR_PLAN, ViewType.SIDE_VIEW]
        results = await asyncio.gather(
            *(self._save_record(view, config, sensors) for view in views), return_exceptions=True
        )

        succeeded: List[ViewType] = []
        failures: Dict[ViewType, Exception] = {}
        for view, result in zip(views, results):
            if isinstance(result, Exception):
                failures[view] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                succeeded.append(view)
                self.invalidate(view)

        if not failures:
            return
        if not succeeded:
            raise next(iter(failures.values()))
        raise PartialSaveError(succeeded, failures)

    def _queue(self, config: GreenhouseConfig, sensors: List[SensorPosition]):
        self.pending = PendingSave(config=config, sensors=sensors)
        self._mirror(config, sensors)
        self.save_state = SaveState.OFFLINE_QUEUED
        self._set_message(OFFLINE_MESSAGE)

    def _mirror(self, config: GreenhouseConfig, sensors: List[SensorPosition]):
        try:
            self.local_store.set_json(
                fallback_key(self.device_id),
                {"config": asdict(config), "sensors": [sensor.to_dict() for sensor in sensors]},
            )
        except OSError as e:
            logger.error(f"Could not write local fallback for {self.device_id}: {e}")

    # Connectivity

    def set_online(self, online: bool):
        self.hub.send_all_on_topic(CONNECTIVITY_CHANGED, online)

    def _on_connectivity_changed(self, topic: str, online: bool):
        was_online = self.is_online
        self.is_online = bool(online)
        logger.info(f"{self.device_id} is now {'online' if self.is_online else 'offline'}")
        if was_online or not self.is_online or self.pending is None:
            return
        if self._flush_task is not None and not self._flush_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop, pending save for {self.device_id} stays queued")
            return
        self._flush_task = loop.create_task(self.flush_pending())

    async def wait_flush(self):
        if self._flush_task is not None:
            await self._flush_task

    # Status

    def announce(self, message: str, dismiss_after: float):
        """Show a transient message that clears itself after `dismiss_after` seconds."""
        self._set_message(message)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._dismiss_task = loop.create_task(self._dismiss(message, dismiss_after))

    def suspend_status_message(self):
        self._set_message(None)
        if self.save_state is SaveState.SUCCESS:
            self.save_state = SaveState.IDLE

    def report_error(self, error: BaseException):
        self.error = describe_error(error)
        self.save_state = SaveState.ERROR_REPORTED

    def clear_error(self):
        self.error = None
        if self.save_state is SaveState.ERROR_REPORTED:
            self.save_state = SaveState.IDLE

    def _set_message(self, message: Optional[str]):
        if self._dismiss_task is not None and not self._dismiss_task.done():
            self._dismiss_task.cancel()
        self._dismiss_task = None
        self.status_message = message

    async def _dismiss(self, message: str, delay: float):
        await asyncio.sleep(delay)
        if self.status_message == message:
            self.status_message = None
            if self.save_state is SaveState.SUCCESS:
                self.save_state = SaveState.IDLE

    async def close(self):
        """Write out a scheduled save, wait for a running flush and detach from the hub."""
        await self._debouncer.flush()
        await self._debouncer.wait()
        await self.wait_flush()
        self._set_message(None)
        self.hub.unsubscribe(CONNECTIVITY_CHANGED, self._on_connectivity_changed)
