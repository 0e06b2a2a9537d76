import logging
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from core.models.remote import (
    FilterResponse,
    GlobalSettingsResponse,
    MutationResponse,
    PositionsResponse,
    coerce_number,
)
from core.models.sensor_position import SensorPosition
from core.models.view import ViewType
from core.persistence.errors import NetworkError, ServerError
from core.sensor_types import coerce_sensor_type

logger = logging.getLogger(__name__)

API_PREFIX = "/api/filters"
DEFAULT_TIMEOUT = 10.0

ResponseT = TypeVar("ResponseT", bound=BaseModel)


def position_payload(position: SensorPosition) -> Dict[str, Any]:
    """Wire form of a position; sensor_type is always sent as a numeric code."""
    sensor_type = position.sensor_type
    if position.sensor_info is not None and position.sensor_info.type:
        sensor_type = position.sensor_info.type
    return {
        "sensor_id": position.sensor_id,
        "device_name": position.device_name,
        "sensor_type": coerce_sensor_type(sensor_type),
        "x": coerce_number(position.x),
        "y": coerce_number(position.y),
        "z": coerce_number(position.z),
        "rotation": 0,
    }


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("message") or "")
    return ""


class RemoteApiClient:
    """
    Async client for the filters API of one backend.

    Transport failures surface as NetworkError, HTTP error statuses and
    unreadable bodies as ServerError.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_provider = token_provider
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def aclose(self):
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _request(self, method: str, path: str, model: Type[ResponseT], json: Any = None) -> ResponseT:
        url = f"{API_PREFIX}{path}"
        try:
            response = await self._client.request(method, url, json=json, headers=self._headers())
        except httpx.TransportError as e:
            logger.warning(f"{method} {url} failed: {e!r}")
            raise NetworkError(f"Network error on {method} {url}: {e}") from e

        if response.is_error:
            detail = _error_detail(response)
            logger.warning(f"{method} {url} returned HTTP {response.status_code}: {detail}")
            raise ServerError(
                detail or f"HTTP {response.status_code}",
                status_code=response.status_code,
                detail=detail,
            )

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"{method} {url} returned an unreadable body: {e}")
            raise ServerError(f"Invalid response from {url}", status_code=response.status_code) from e

    # Filters

    async def get_filter(self, device_id: str, view: ViewType) -> FilterResponse:
        return await self._request("GET", f"/{device_id}/{view.filter_path}", FilterResponse)

    async def save_filter(self, device_id: str, view: ViewType, payload: Dict[str, Any]) -> MutationResponse:
        return await self._request("POST", f"/{device_id}/{view.filter_path}", MutationResponse, json=payload)

    async def get_floor_plan_filter(self, device_id: str) -> FilterResponse:
        return await self.get_filter(device_id, ViewType.FLOOR_PLAN)

    async def get_side_view_filter(self, device_id: str) -> FilterResponse:
        return await self.get_filter(device_id, ViewType.SIDE_VIEW)

    # Positions

    async def get_positions(self, device_id: str, view: ViewType) -> PositionsResponse:
        return await self._request("GET", f"/{device_id}/sensor-positions/{view.value}", PositionsResponse)

    async def save_positions(
        self, device_id: str, view: ViewType, positions: List[SensorPosition]
    ) -> MutationResponse:
        body = {"positions": [position_payload(position) for position in positions]}
        logger.debug(f"Saving {len(positions)} {view.value} positions for {device_id}")
        return await self._request(
            "POST", f"/{device_id}/sensor-positions/{view.value}", MutationResponse, json=body
        )

    # Global settings

    async def get_global_settings(self) -> GlobalSettingsResponse:
        return await self._request("GET", "/global", GlobalSettingsResponse)

    async def patch_global_setting(self, field: str, value: Any) -> MutationResponse:
        return await self._request("PATCH", f"/global/{field}", MutationResponse, json={"value": value})
