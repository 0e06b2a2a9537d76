# External libs
import asyncio
import logging
import time
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Sequence

import httpx

# Internal libs
from core.config_loader import config_loader
from core.event_hub import EventHub
from core.models.config_data import SyncConfigData
from core.models.device import DeviceSensors
from core.persistence.api_client import DEFAULT_TIMEOUT, RemoteApiClient
from core.persistence.errors import SyncError
from core.persistence.gateway import PersistenceGateway
from core.persistence.local_store import LocalStore, find_auth_token
from core.workspace import GreenhouseWorkspace

logger = logging.getLogger(__name__)

LOCAL_STORE_FILE = "local_store.json"
LAST_SELECTED_DEVICE_FIELD = "lastSelectedDeviceId"


class WorkspaceManager:
    """
    Owns one workspace (with its hub, gateway and API client) per device identity.

    Workspaces are created by `open` and torn down by `close` or `stop_all`.
    The local store is shared by all of them.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        storage_dir: Optional[Path] = None,
        config: Optional[SyncConfigData] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.config = config or config_loader.get_config()
        self.transport = transport
        self.clock = clock
        self.sleep = sleep
        store_path = Path(storage_dir) / LOCAL_STORE_FILE if storage_dir is not None else None
        self.local_store = LocalStore(store_path)

        self._workspaces: Dict[str, GreenhouseWorkspace] = {}
        self._clients: Dict[str, RemoteApiClient] = {}

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._workspaces

    def get(self, device_id: str) -> GreenhouseWorkspace:
        """Raises KeyError when no workspace is open for the device."""
        return self._workspaces[device_id]

    def _token(self) -> Optional[str]:
        return find_auth_token(self.local_store, self.config.token_keys)

    async def open(self, device_id: str, devices: Sequence[DeviceSensors]) -> GreenhouseWorkspace:
        """Create (or replace) the workspace for a device group and load it."""
        if device_id in self._workspaces:
            logger.info(f"Replacing workspace for {device_id}")
            await self.close(device_id)

        client = RemoteApiClient(
            self.base_url, token_provider=self._token, timeout=self.timeout, transport=self.transport
        )
        hub = EventHub(asyncio.get_running_loop())
        gateway = PersistenceGateway(
            device_id,
            client,
            self.local_store,
            hub,
            timing=self.config.timing,
            default_config=self.config.default_greenhouse,
            clock=self.clock,
            sleep=self.sleep,
        )
        workspace = GreenhouseWorkspace(
            device_id,
            devices,
            gateway,
            hub,
            timing=self.config.timing,
            default_config=self.config.default_greenhouse,
            clock=self.clock,
        )
        self._clients[device_id] = client
        self._workspaces[device_id] = workspace

        await workspace.load()
        await self._record_last_selected(client, device_id)
        logger.info(f"Opened workspace for {device_id} with {len(devices)} devices")
        return workspace

    async def _record_last_selected(self, client: RemoteApiClient, device_id: str):
        try:
            await client.patch_global_setting(LAST_SELECTED_DEVICE_FIELD, device_id)
        except SyncError as e:
            logger.warning(f"Could not record last selected device {device_id}: {e}")

    async def close(self, device_id: str):
        workspace = self._workspaces.pop(device_id, None)
        client = self._clients.pop(device_id, None)
        if workspace is not None:
            await workspace.close()
            workspace.hub.unsubscribe_all()
        if client is not None:
            await client.aclose()

    async def stop_all(self):
        logger.info("Stopping all workspaces...")
        for device_id in list(self._workspaces.keys()):
            try:
                await self.close(device_id)
            except Exception as e:
                logger.error(f"Error closing workspace {device_id}: {e}")
        logger.info("All workspaces stopped")
