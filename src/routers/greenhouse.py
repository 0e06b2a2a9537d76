from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request

from core.drag_controller import PointerEvent
from core.layout.transform import BoundingBox
from core.models.greenhouse import ConfigContext, GreenhouseConfig, is_valid_greenhouse_config
from core.workspace import GreenhouseWorkspace, WorkspaceStateError
from core.workspace_manager import WorkspaceManager
from schemas import (
    ConnectivityRequest,
    LayoutResponse,
    OpenRequest,
    PointerDownRequest,
    PointerMoveRequest,
    SaveResponse,
    SelectionRequest,
    SelectionResponse,
    SensorUpdateRequest,
    StatsResponse,
    SyncStatus,
)

router = APIRouter(prefix="/greenhouse/{device_id}", tags=["greenhouse"])

NOT_OPEN_RESPONSE = {
    404: {
        "description": "No workspace is open for this device. Call POST /open first.",
        "content": {"application/json": {"example": {"detail": "No workspace open for device 'dev-1'"}}},
    }
}


def get_manager(request: Request) -> WorkspaceManager:
    return request.app.state.workspace_manager


def get_workspace(device_id: str, manager: WorkspaceManager = Depends(get_manager)) -> GreenhouseWorkspace:
    try:
        return manager.get(device_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No workspace open for device '{device_id}'")


def _status(workspace: GreenhouseWorkspace) -> SyncStatus:
    gateway = workspace.gateway
    return SyncStatus(
        online=gateway.is_online,
        loading=gateway.is_loading,
        saving=gateway.is_saving,
        save_state=gateway.save_state.value,
        save_scheduled=gateway.save_scheduled,
        pending=gateway.pending is not None,
        error=gateway.error,
        message=gateway.status_message,
        last_saved=gateway.last_saved,
    )


def _layout(workspace: GreenhouseWorkspace) -> LayoutResponse:
    return LayoutResponse(
        device_id=workspace.device_id,
        config=workspace.config,
        positions=workspace.positions,
        selected_sensor_id=workspace.store.selected_sensor_id,
        drag_target_id=workspace.store.drag_target_id,
        dragging_view=workspace.dragging_view,
        load_source=workspace.load_source.value if workspace.load_source else None,
        status=_status(workspace),
    )


@router.post("/open", response_model=LayoutResponse)
async def open_workspace(device_id: str, body: OpenRequest,
                         manager: WorkspaceManager = Depends(get_manager)) -> LayoutResponse:
    """
    Create (or replace) the workspace for a device group and load its layout.

    Saved positions are matched to the active sensors; when nothing matches a
    layout is generated and written back immediately.
    """
    workspace = await manager.open(device_id, body.devices)
    return _layout(workspace)


@router.get("/layout", response_model=LayoutResponse, responses=NOT_OPEN_RESPONSE)
async def get_layout(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> LayoutResponse:
    return _layout(workspace)


# Pointer input

@router.post("/pointer/down", status_code=204, responses={
    **NOT_OPEN_RESPONSE,
    409: {
        "description": "Unknown sensor, or a drag is already in progress.",
        "content": {"application/json": {"example": {"detail": "Unknown sensor dev-1_temp"}}},
    },
})
async def pointer_down(body: PointerDownRequest, workspace: GreenhouseWorkspace = Depends(get_workspace)) -> None:
    """Mouse-down or touch-start on a sensor marker: selects it and starts a drag."""
    try:
        workspace.pointer_down(body.view, body.sensor_id)
    except WorkspaceStateError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/pointer/move", status_code=204, responses=NOT_OPEN_RESPONSE)
async def pointer_move(body: PointerMoveRequest, workspace: GreenhouseWorkspace = Depends(get_workspace)) -> None:
    bounds = BoundingBox(body.bounds.left, body.bounds.top, body.bounds.width, body.bounds.height)
    workspace.pointer_move(PointerEvent(body.client_x, body.client_y, bounds))


@router.post("/pointer/up", status_code=204, responses=NOT_OPEN_RESPONSE)
async def pointer_up(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> None:
    """Ends a drag. Presses shorter than the click threshold do not save."""
    workspace.pointer_up()


@router.post("/pointer/leave", status_code=204, responses=NOT_OPEN_RESPONSE)
async def pointer_leave(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> None:
    workspace.pointer_leave()


# Selection

@router.put("/selection", response_model=SelectionResponse, responses=NOT_OPEN_RESPONSE)
async def set_selection(body: SelectionRequest,
                        workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SelectionResponse:
    try:
        workspace.select(body.sensor_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown sensor {body.sensor_id}")
    return SelectionResponse(selected_sensor_id=workspace.store.selected_sensor_id)


@router.post("/selection/toggle", response_model=SelectionResponse, responses=NOT_OPEN_RESPONSE)
async def toggle_selection(body: SelectionRequest,
                           workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SelectionResponse:
    if body.sensor_id is None:
        raise HTTPException(status_code=400, detail="sensor_id is required")
    try:
        selected = workspace.toggle_selection(body.sensor_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown sensor {body.sensor_id}")
    return SelectionResponse(selected_sensor_id=selected)


# Edits

@router.patch("/sensors/{sensor_id}", response_model=LayoutResponse, responses=NOT_OPEN_RESPONSE)
async def update_sensor(sensor_id: str, body: SensorUpdateRequest,
                        workspace: GreenhouseWorkspace = Depends(get_workspace)) -> LayoutResponse:
    """Set coordinates of one sensor. The save is debounced."""
    try:
        workspace.update_sensor(sensor_id, x=body.x, y=body.y, z=body.z)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown sensor {sensor_id}")
    return _layout(workspace)


@router.put("/config", response_model=SaveResponse, responses={
    **NOT_OPEN_RESPONSE,
    400: {
        "description": "Dimensions outside the editor limits.",
        "content": {"application/json": {"example": {"detail": "Invalid greenhouse config"}}},
    },
})
async def update_config(config: GreenhouseConfig,
                        workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SaveResponse:
    if not is_valid_greenhouse_config(config, ConfigContext.EDITOR):
        raise HTTPException(status_code=400, detail=f"Invalid greenhouse config: {asdict(config)}")
    saved = await workspace.update_config(config)
    return SaveResponse(saved=saved, status=_status(workspace))


@router.post("/reset", response_model=SaveResponse, responses=NOT_OPEN_RESPONSE)
async def reset_layout(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SaveResponse:
    """Regenerate every position from the device list and persist it."""
    saved = await workspace.reset()
    return SaveResponse(saved=saved, status=_status(workspace))


@router.post("/refresh", response_model=LayoutResponse, responses=NOT_OPEN_RESPONSE)
async def refresh_layout(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> LayoutResponse:
    await workspace.refresh()
    return _layout(workspace)


@router.post("/save", response_model=SaveResponse, responses=NOT_OPEN_RESPONSE)
async def save_now(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SaveResponse:
    saved = await workspace.save_now()
    return SaveResponse(saved=saved, status=_status(workspace))


@router.delete("/error", status_code=204, responses=NOT_OPEN_RESPONSE)
async def clear_error(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> None:
    workspace.clear_error()


@router.put("/connectivity", response_model=SyncStatus, responses=NOT_OPEN_RESPONSE)
async def set_connectivity(body: ConnectivityRequest,
                           workspace: GreenhouseWorkspace = Depends(get_workspace)) -> SyncStatus:
    """Push an online/offline notification. Going back online flushes a queued save."""
    workspace.set_online(body.online)
    return _status(workspace)


@router.get("/stats", response_model=StatsResponse, responses=NOT_OPEN_RESPONSE)
async def get_stats(workspace: GreenhouseWorkspace = Depends(get_workspace)) -> StatsResponse:
    return StatsResponse(**asdict(workspace.stats()))
