import pytest

from core.drag_controller import PointerEvent
from core.event_hub import CONNECTIVITY_CHANGED, EventHub, POINTER_MOVE
from core.layout.transform import BoundingBox
from core.models.greenhouse import GreenhouseConfig
from core.models.view import ViewType
from core.persistence.local_store import LocalStore
from core.workspace import GreenhouseWorkspace, LoadSource, WorkspaceStateError

SURFACE = BoundingBox(0.0, 0.0, 400.0, 300.0)
SHT20 = "dev-1_sht20_0"
BH1750 = "dev-1_bh1750_1"
SCD30 = "dev-2_scd30_0"


@pytest.fixture
def hub() -> EventHub:
    return EventHub()


@pytest.fixture
def store() -> LocalStore:
    return LocalStore()


@pytest.fixture
def workspace(make_gateway, hub, store, devices, timing, clock) -> GreenhouseWorkspace:
    gateway = make_gateway(hub=hub, store=store)
    return GreenhouseWorkspace("dev-1", devices, gateway, hub, timing=timing, clock=clock)


def _position_writes(remote):
    return [path for path in remote.write_paths() if "sensor-positions" in path]


class TestLoad:

    @pytest.mark.asyncio
    async def test_empty_remote_generates_and_writes_back(self, workspace, remote):
        assert await workspace.load() is LoadSource.GENERATED

        ids = [p.sensor_id for p in workspace.positions]
        assert ids == [SHT20, BH1750, SCD30]
        assert len(_position_writes(remote)) == 2
        saved_ids = [p["sensor_id"] for p in remote.positions[("dev-1", "floor_plan")]]
        assert saved_ids == ids

    @pytest.mark.asyncio
    async def test_generated_coordinates(self, workspace):
        await workspace.load()
        by_id = {p.sensor_id: p for p in workspace.positions}
        assert (by_id[SHT20].x, by_id[SHT20].y, by_id[SHT20].z) == pytest.approx((37.0, 50.0, 40.0))
        assert (by_id[BH1750].x, by_id[BH1750].z) == pytest.approx((13.0, 50.0))
        assert (by_id[SCD30].x, by_id[SCD30].z) == pytest.approx((85.0, 40.0))

    @pytest.mark.asyncio
    async def test_saved_positions_are_kept(self, workspace, remote):
        remote.positions[("dev-1", "floor_plan")] = [
            {"sensor_id": SHT20, "device_name": "North bench", "sensor_type": 1, "x": 11, "y": 22, "z": 33},
            {"sensor_id": "dev-9_gone", "device_name": "Old", "sensor_type": 2, "x": 1, "y": 1, "z": 1},
        ]

        assert await workspace.load() is LoadSource.REMOTE
        assert [p.sensor_id for p in workspace.positions] == [SHT20]
        assert remote.writes() == []

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_to_local_blob(self, workspace, remote, store):
        store.set_json("greenhouse_dev-1", {
            "config": {"type": "glass", "width": 10.0, "length": 30.0, "height": 3.0, "name": "Local"},
            "sensors": [{"device_id": "dev-2", "device_name": "South bench", "sensor_type": "CO2",
                         "sensor_id": SCD30, "x": 5.0, "y": 6.0, "z": 7.0}],
        })
        remote.offline = True

        assert await workspace.load() is LoadSource.LOCAL
        assert workspace.config.name == "Local"
        assert [(p.sensor_id, p.x) for p in workspace.positions] == [(SCD30, 5.0)]
        assert workspace.gateway.error is not None

    @pytest.mark.asyncio
    async def test_refresh_reloads_from_remote(self, workspace, remote):
        await workspace.load()
        reads = len([r for r in remote.requests if r.method == "GET"])
        assert await workspace.refresh() is LoadSource.REMOTE
        assert len([r for r in remote.requests if r.method == "GET"]) == reads + 2


class TestDrag:

    @pytest.mark.asyncio
    async def test_drag_commits_through_gateway(self, workspace, remote, clock, hub):
        await workspace.load()
        clock.advance(5.0)
        writes_before = len(_position_writes(remote))

        workspace.pointer_down(ViewType.FLOOR_PLAN, SHT20)
        workspace.pointer_move(PointerEvent(200.0, 150.0, SURFACE))
        clock.advance(0.3)
        workspace.pointer_up()
        await workspace.wait_idle()

        assert len(_position_writes(remote)) == writes_before + 2
        saved = {p["sensor_id"]: p for p in remote.positions[("dev-1", "floor_plan")]}
        assert saved[SHT20]["x"] == pytest.approx(50.0)
        assert hub.subscriber_count(POINTER_MOVE) == 0

    @pytest.mark.asyncio
    async def test_click_does_not_save(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)
        writes_before = len(remote.writes())

        workspace.pointer_down(ViewType.SIDE_VIEW, BH1750)
        clock.advance(0.05)
        workspace.pointer_leave()
        await workspace.wait_idle()

        assert len(remote.writes()) == writes_before
        assert workspace.store.selected_sensor_id == BH1750

    @pytest.mark.asyncio
    async def test_second_pointer_down_is_rejected(self, workspace):
        await workspace.load()
        workspace.pointer_down(ViewType.FLOOR_PLAN, SHT20)
        with pytest.raises(WorkspaceStateError):
            workspace.pointer_down(ViewType.SIDE_VIEW, BH1750)
        assert workspace.dragging_view is ViewType.FLOOR_PLAN

    @pytest.mark.asyncio
    async def test_unknown_sensor_is_rejected(self, workspace):
        await workspace.load()
        with pytest.raises(WorkspaceStateError):
            workspace.pointer_down(ViewType.FLOOR_PLAN, "nope")


class TestEdits:

    @pytest.mark.asyncio
    async def test_numeric_edits_are_debounced(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)
        writes_before = len(_position_writes(remote))

        workspace.update_sensor(SCD30, x=10.0)
        workspace.update_sensor(SCD30, y=20.0)
        workspace.update_sensor(SCD30, z=130.0)
        await workspace.wait_idle()

        assert len(_position_writes(remote)) == writes_before + 2
        saved = {p["sensor_id"]: p for p in remote.positions[("dev-1", "side_view")]}
        assert (saved[SCD30]["x"], saved[SCD30]["y"], saved[SCD30]["z"]) == (10.0, 20.0, 100.0)

    @pytest.mark.asyncio
    async def test_config_change_saves_immediately(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)

        assert await workspace.update_config(GreenhouseConfig(type="glass", width=12.0, length=40.0, height=6.0))
        assert remote.filters[("dev-1", "side-view")]["greenhouseConfig"] == {
            "width": 12.0, "height": 6.0, "type": "glass",
        }

    @pytest.mark.asyncio
    async def test_selection_is_not_written_to_filters(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)
        workspace.select(SCD30)

        assert await workspace.save_now()
        assert remote.filters[("dev-1", "floor-plan")]["selectedSensor"] == ""
        assert remote.filters[("dev-1", "side-view")]["selectedSensor"] == ""

    @pytest.mark.asyncio
    async def test_config_over_editor_limit_is_rejected(self, workspace):
        await workspace.load()
        with pytest.raises(ValueError):
            await workspace.update_config(GreenhouseConfig(length=300.0))
        assert workspace.config.length == 50.0

    @pytest.mark.asyncio
    async def test_reset_regenerates_and_saves(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)
        workspace.update_sensor(SHT20, x=99.0)
        workspace.gateway.cancel_scheduled()

        assert await workspace.reset()
        assert workspace.store.get(SHT20).x == pytest.approx(37.0)
        assert workspace.gateway.status_message == "Layout reset"
        saved = {p["sensor_id"]: p for p in remote.positions[("dev-1", "floor_plan")]}
        assert saved[SHT20]["x"] == pytest.approx(37.0)

    @pytest.mark.asyncio
    async def test_save_now_after_window(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(1.5)
        writes_before = len(_position_writes(remote))
        assert await workspace.save_now()
        assert len(_position_writes(remote)) == writes_before + 2


class TestThrottle:

    @pytest.mark.asyncio
    async def test_every_caller_is_throttled(self, workspace, remote, clock):
        await workspace.load()
        clock.advance(5.0)
        assert await workspace.update_config(GreenhouseConfig(width=25.0, length=60.0, height=5.0))
        requests_after_config = len(remote.requests)

        clock.advance(0.2)
        assert await workspace.save_now() is False
        clock.advance(0.2)
        assert await workspace.reset() is False

        assert len(remote.requests) == requests_after_config
        assert workspace.gateway.status_message != "Layout reset"

    @pytest.mark.asyncio
    async def test_generated_write_back_is_throttled_after_recent_save(self, workspace, remote, clock):
        await workspace.load()
        remote.positions.clear()
        clock.advance(0.5)

        assert await workspace.refresh() is LoadSource.GENERATED
        assert ("dev-1", "floor_plan") not in remote.positions

    @pytest.mark.asyncio
    async def test_throttled_save_now_keeps_scheduled_edit(self, workspace, remote, clock):
        await workspace.load()
        workspace.update_sensor(SCD30, x=12.0)

        assert await workspace.save_now() is False
        assert workspace.gateway.save_scheduled
        clock.advance(5.0)
        await workspace.wait_idle()

        saved = {p["sensor_id"]: p for p in remote.positions[("dev-1", "floor_plan")]}
        assert saved[SCD30]["x"] == 12.0


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_stats(self, workspace):
        await workspace.load()
        stats = workspace.stats()
        assert stats.device_count == 2
        assert stats.sensor_count == 3
        assert stats.area_per_sensor == pytest.approx(333.3)
        assert stats.device_sensor_counts == {"North bench": 2, "South bench": 1}

    @pytest.mark.asyncio
    async def test_close_detaches_from_hub(self, workspace, hub):
        await workspace.load()
        workspace.pointer_down(ViewType.FLOOR_PLAN, SHT20)
        await workspace.close()

        assert hub.subscriber_count(CONNECTIVITY_CHANGED) == 0
        assert hub.subscriber_count(POINTER_MOVE) == 0

    @pytest.mark.asyncio
    async def test_connectivity_goes_through_hub(self, workspace):
        await workspace.load()
        workspace.set_online(False)
        assert workspace.gateway.is_online is False
