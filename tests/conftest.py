"""Pytest configuration and fixtures for test suite."""

import asyncio
import json
from typing import Dict, List, Tuple

import httpx
import pytest

from core.event_hub import EventHub
from core.models.config_data import TimingConfig
from core.models.device import DetectedSensor, DeviceSensors
from core.persistence.api_client import RemoteApiClient
from core.persistence.gateway import PersistenceGateway
from core.persistence.local_store import LocalStore

BASE_URL = "http://remote.test"
API_PREFIX = "/api/filters/"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class RecordingSleep:
    """Replacement for asyncio.sleep that records the delay and only yields."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)
        await asyncio.sleep(0)


class FakeRemote:
    """
    In-memory stand-in for the filters API, served through httpx.MockTransport.

    `offline` makes every request fail at the transport level; `fail` maps a
    "METHOD /path" fragment to the HTTP status returned for matching requests;
    `reject` answers matching requests with 200 and success=false.
    """

    def __init__(self):
        self.filters: Dict[Tuple[str, str], dict] = {}
        self.positions: Dict[Tuple[str, str], List[dict]] = {}
        self.global_settings: Dict[str, object] = {}
        self.requests: List[httpx.Request] = []
        self.offline = False
        self.fail: Dict[str, int] = {}
        self.reject: Dict[str, str] = {}

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def writes(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    def write_paths(self) -> List[str]:
        return [r.url.path for r in self.writes()]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("network unreachable", request=request)

        signature = f"{request.method} {request.url.path}"
        for fragment, status in self.fail.items():
            if fragment in signature:
                return httpx.Response(status, json={"success": False, "error": f"forced {status}"})
        for fragment, error in self.reject.items():
            if fragment in signature:
                return httpx.Response(200, json={"success": False, "error": error})

        parts = request.url.path[len(API_PREFIX):].split("/")
        body = json.loads(request.content) if request.content else {}

        if parts[0] == "global":
            if request.method == "GET":
                return httpx.Response(200, json={"success": True, "data": self.global_settings})
            self.global_settings[parts[1]] = body.get("value")
            return httpx.Response(200, json={"success": True})

        device_id = parts[0]
        if parts[1] in ("floor-plan", "side-view"):
            key = (device_id, parts[1])
            if request.method == "POST":
                self.filters[key] = body
                return httpx.Response(200, json={"success": True, "message": "saved"})
            if key in self.filters:
                return httpx.Response(200, json={"success": True, "hasFilter": True, "filter": self.filters[key]})
            return httpx.Response(200, json={
                "success": True,
                "hasFilter": False,
                "defaultFilter": {
                    "greenhouseConfig": {"type": "vinyl", "width": 20, "length": 50, "height": 4, "name": "Greenhouse"},
                    "selectedSensor": "",
                    "viewSettings": {},
                },
            })

        if parts[1] == "sensor-positions":
            key = (device_id, parts[2])
            if request.method == "POST":
                self.positions[key] = body["positions"]
                return httpx.Response(200, json={"success": True, "count": len(body["positions"])})
            stored = self.positions.get(key, [])
            return httpx.Response(200, json={"success": True, "positions": stored, "count": len(stored)})

        return httpx.Response(404, json={"success": False, "error": "not found"})


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def timing() -> TimingConfig:
    return TimingConfig(save_debounce=0.05)


@pytest.fixture
def devices() -> List[DeviceSensors]:
    return [
        DeviceSensors(
            device_id="dev-1",
            device_name="North bench",
            sensors=[
                DetectedSensor(name="sht20_0", type=1, channel=0, values=[21.5, 60.0]),
                DetectedSensor(name="bh1750_1", type=2, channel=1, values=[1200.0]),
                DetectedSensor(name="ds18b20_2", type=5, channel=2, active=False),
            ],
        ),
        DeviceSensors(
            device_id="dev-2",
            device_name="South bench",
            sensors=[DetectedSensor(name="scd30_0", type=4, values=[450.0])],
        ),
    ]


@pytest.fixture
def make_gateway(remote, clock, recording_sleep, timing):
    """Build a gateway wired to the fake remote."""

    def factory(device_id: str = "dev-1", store: LocalStore = None, hub: EventHub = None) -> PersistenceGateway:
        client = RemoteApiClient(BASE_URL, transport=remote.transport())
        return PersistenceGateway(
            device_id,
            client,
            store if store is not None else LocalStore(),
            hub if hub is not None else EventHub(),
            timing=timing,
            clock=clock,
            sleep=recording_sleep,
        )

    return factory
