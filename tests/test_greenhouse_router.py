import pytest
from fastapi.testclient import TestClient

from conftest import BASE_URL, RecordingSleep
from core.models.config_data import SyncConfigData, TimingConfig
from core.workspace_manager import WorkspaceManager
from main import app

DEVICES_BODY = {
    "devices": [
        {
            "device_id": "dev-1",
            "device_name": "North bench",
            "sensors": [
                {"name": "sht20_0", "type": 1, "channel": 0, "values": [21.5, 60.0]},
                {"name": "bh1750_1", "type": 2, "channel": 1},
            ],
        },
        {"device_id": "dev-2", "device_name": "South bench", "sensors": [{"name": "scd30_0", "type": 4}]},
    ]
}
SURFACE = {"left": 0, "top": 0, "width": 400, "height": 300}


def _install_manager(remote, clock) -> WorkspaceManager:
    manager = WorkspaceManager(
        BASE_URL,
        config=SyncConfigData(timing=TimingConfig(save_debounce=0.05)),
        transport=remote.transport(),
        clock=clock,
        sleep=RecordingSleep(),
    )
    app.state.workspace_manager = manager
    return manager


@pytest.fixture
def client(remote, clock):
    _install_manager(remote, clock)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def opened(client, clock):
    response = client.post("/api/greenhouse/dev-1/open", json=DEVICES_BODY)
    assert response.status_code == 200
    clock.advance(5.0)
    return client


def test_meta_routes(client):
    assert client.get("/").json() == {"message": "Greenhouse Sync API"}
    assert client.get("/health").json() == {"status": "ok", "app": "Greenhouse Sync API"}


def test_open_generates_layout_and_records_device(client, remote):
    response = client.post("/api/greenhouse/dev-1/open", json=DEVICES_BODY)
    assert response.status_code == 200

    body = response.json()
    assert body["load_source"] == "generated"
    assert [p["sensor_id"] for p in body["positions"]] == ["dev-1_sht20_0", "dev-1_bh1750_1", "dev-2_scd30_0"]
    assert body["config"]["name"] == "Greenhouse"
    assert body["status"]["online"] is True
    assert remote.global_settings == {"lastSelectedDeviceId": "dev-1"}


def test_unknown_workspace_is_404(client):
    response = client.get("/api/greenhouse/missing/layout")
    assert response.status_code == 404


def test_drag_over_http(remote, clock):
    _install_manager(remote, clock)
    with TestClient(app) as client:
        client.post("/api/greenhouse/dev-1/open", json=DEVICES_BODY)
        clock.advance(5.0)

        down = client.post("/api/greenhouse/dev-1/pointer/down", json={"view": "floor_plan", "sensor_id": "dev-1_sht20_0"})
        assert down.status_code == 204
        assert client.get("/api/greenhouse/dev-1/layout").json()["dragging_view"] == "floor_plan"

        move = client.post("/api/greenhouse/dev-1/pointer/move",
                           json={"client_x": 200, "client_y": 150, "bounds": SURFACE})
        assert move.status_code == 204
        clock.advance(0.3)
        assert client.post("/api/greenhouse/dev-1/pointer/up").status_code == 204

        layout = client.get("/api/greenhouse/dev-1/layout").json()
        dragged = next(p for p in layout["positions"] if p["sensor_id"] == "dev-1_sht20_0")
        assert dragged["x"] == pytest.approx(50.0)
        assert layout["selected_sensor_id"] == "dev-1_sht20_0"
        assert layout["drag_target_id"] is None

    # shutdown waits for the commit save
    saved = {p["sensor_id"]: p for p in remote.positions[("dev-1", "floor_plan")]}
    assert saved["dev-1_sht20_0"]["x"] == pytest.approx(50.0)


def test_pointer_down_conflicts(opened):
    url = "/api/greenhouse/dev-1/pointer/down"
    assert opened.post(url, json={"view": "floor_plan", "sensor_id": "nope"}).status_code == 409
    assert opened.post(url, json={"view": "floor_plan", "sensor_id": "dev-1_sht20_0"}).status_code == 204
    assert opened.post(url, json={"view": "side_view", "sensor_id": "dev-2_scd30_0"}).status_code == 409
    assert opened.post(url, json={"view": "top", "sensor_id": "dev-2_scd30_0"}).status_code == 422


def test_selection(opened):
    url = "/api/greenhouse/dev-1/selection"
    assert opened.put(url, json={"sensor_id": "dev-2_scd30_0"}).json() == {"selected_sensor_id": "dev-2_scd30_0"}
    assert opened.post(f"{url}/toggle", json={"sensor_id": "dev-2_scd30_0"}).json() == {"selected_sensor_id": None}
    assert opened.put(url, json={"sensor_id": "nope"}).status_code == 404
    assert opened.put(url, json={"sensor_id": None}).json() == {"selected_sensor_id": None}


def test_numeric_edit(opened):
    response = opened.patch("/api/greenhouse/dev-1/sensors/dev-2_scd30_0", json={"x": 12.0, "z": 140.0})
    assert response.status_code == 200
    edited = next(p for p in response.json()["positions"] if p["sensor_id"] == "dev-2_scd30_0")
    assert (edited["x"], edited["z"]) == (12.0, 100.0)

    assert opened.patch("/api/greenhouse/dev-1/sensors/nope", json={"x": 1.0}).status_code == 404


def test_config_validation(opened):
    url = "/api/greenhouse/dev-1/config"
    too_long = {"type": "vinyl", "width": 20, "length": 300, "height": 4, "name": "Long"}
    assert opened.put(url, json=too_long).status_code == 400
    assert opened.put(url, json={**too_long, "length": 0}).status_code == 422

    response = opened.put(url, json={**too_long, "length": 80})
    assert response.status_code == 200
    assert response.json()["saved"] is True
    assert opened.get("/api/greenhouse/dev-1/layout").json()["config"]["length"] == 80


def test_reset_refresh_and_save(opened, clock):
    reset = opened.post("/api/greenhouse/dev-1/reset")
    assert reset.status_code == 200
    assert reset.json()["saved"] is True
    assert reset.json()["status"]["message"] == "Layout reset"

    refresh = opened.post("/api/greenhouse/dev-1/refresh")
    assert refresh.json()["load_source"] == "remote"

    throttled = opened.post("/api/greenhouse/dev-1/save")
    assert throttled.json()["saved"] is False

    clock.advance(1.5)
    save = opened.post("/api/greenhouse/dev-1/save")
    assert save.json()["saved"] is True


def test_offline_save_is_queued(opened):
    status = opened.put("/api/greenhouse/dev-1/connectivity", json={"online": False}).json()
    assert status["online"] is False

    save = opened.post("/api/greenhouse/dev-1/save").json()
    assert save["saved"] is False
    assert save["status"]["pending"] is True
    assert save["status"]["save_state"] == "offline_queued"


def test_error_can_be_cleared(opened, remote):
    remote.fail["POST /api/filters/dev-1/side-view"] = 500
    save = opened.post("/api/greenhouse/dev-1/save").json()
    assert save["status"]["error"] is not None

    assert opened.delete("/api/greenhouse/dev-1/error").status_code == 204
    assert opened.get("/api/greenhouse/dev-1/layout").json()["status"]["error"] is None


def test_stats(opened):
    stats = opened.get("/api/greenhouse/dev-1/stats").json()
    assert stats["device_count"] == 2
    assert stats["sensor_count"] == 3
    assert stats["sensor_type_counts"] == {"Temp/Humidity": 1, "Light": 1, "CO2": 1}
