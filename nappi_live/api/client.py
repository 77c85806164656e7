"""HTTP client for the Nappi backend: alerts, sleep override and push registration.

Every response body is validated into a pydantic model before it leaves this
module. Transport failures, non-2xx statuses and malformed bodies all surface
as NappiApiError so callers handle one exception type.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import aiohttp
from pydantic import BaseModel, ValidationError

from nappi_live.api.models import (
    AlertListResponse,
    CooldownStatusResponse,
    DeleteAlertsRequest,
    DeleteAlertsResponse,
    InterventionAction,
    InterventionRequest,
    InterventionResponse,
    MarkAllReadResponse,
    MarkReadResponse,
    PushStatusResponse,
    PushSubscription,
    PushSubscriptionResponse,
    SleepStatusResponse,
    UnreadCountResponse,
    VapidKeyResponse,
)
from nappi_live.core.constants import API_ROUTES, ALERTS_DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class NappiApiError(Exception):
    """Raised for any failed backend call."""

    def __init__(self, message: str, status: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status = status
        self.detail = detail


# Used by: main.py (one per NappiLive), alert_stream.py, alert_service.py, sleep_state.py, push_subscription.py
class NappiApiClient:
    """Shares one aiohttp session across calls. Call close() on shutdown."""

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "NappiApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def url_for(self, route: str, **path_params: Any) -> str:
        return self.base_url + API_ROUTES[route].format(**path_params)

    # Used by: every public call below
    async def _request(
        self,
        method: str,
        route: str,
        model: Type[ModelT],
        path_params: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[BaseModel] = None,
    ) -> ModelT:
        url = self.url_for(route, **(path_params or {}))
        payload = json_body.model_dump(mode="json") if json_body is not None else None

        try:
            async with self.session.request(method, url, params=params, json=payload) as response:
                if response.status >= 400:
                    detail = await self._read_detail(response)
                    logger.warning(f"{method} {url} returned status {response.status}: {detail}")
                    raise NappiApiError(
                        f"{method} {route} failed with status {response.status}",
                        status=response.status,
                        detail=detail,
                    )
                data = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling {method} {url}: {e}")
            raise NappiApiError(f"{method} {route} failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out calling {method} {url}")
            raise NappiApiError(f"{method} {route} timed out") from e
        except ValueError as e:
            logger.error(f"Invalid JSON from {method} {url}: {e}")
            raise NappiApiError(f"{method} {route} returned invalid JSON") from e

        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected response shape from {method} {url}: {e}")
            raise NappiApiError(f"{method} {route} returned an unexpected body", detail=data) from e

    @staticmethod
    async def _read_detail(response: aiohttp.ClientResponse) -> Any:
        try:
            body = await response.json(content_type=None)
        except ValueError:
            return await response.text()
        if isinstance(body, dict) and "detail" in body:
            return body["detail"]
        return body

    # ── Alerts ───────────────────────────────────────────────────────────────

    # Used by: alert_stream.py
    def alerts_stream_url(self, user_id: int) -> str:
        return f"{self.url_for('alerts_stream')}?user_id={user_id}"

    # Used by: alert_service.py (load_history)
    async def fetch_alerts(
        self,
        user_id: int,
        limit: int = ALERTS_DEFAULT_PAGE_SIZE,
        offset: int = 0,
        unread_only: bool = False,
    ) -> AlertListResponse:
        return await self._request(
            "GET",
            "alerts_history",
            AlertListResponse,
            params={
                "user_id": user_id,
                "limit": limit,
                "offset": offset,
                "unread_only": "true" if unread_only else "false",
            },
        )

    # Used by: main.py (badge on startup)
    async def fetch_unread_count(self, user_id: int) -> int:
        result = await self._request(
            "GET", "alerts_unread_count", UnreadCountResponse, params={"user_id": user_id}
        )
        return result.count

    # Used by: alert_service.py (mark_read)
    async def mark_alert_as_read(self, alert_id: int, user_id: int) -> bool:
        result = await self._request(
            "POST",
            "alerts_mark_read",
            MarkReadResponse,
            path_params={"alert_id": alert_id},
            params={"user_id": user_id},
        )
        return result.success

    # Used by: alert_service.py (mark_all_read)
    async def mark_all_alerts_as_read(self, user_id: int) -> int:
        result = await self._request(
            "POST", "alerts_mark_all_read", MarkAllReadResponse, params={"user_id": user_id}
        )
        return result.updated_count

    # Used by: alert_service.py (delete_alerts)
    async def delete_alerts(self, alert_ids: List[int], user_id: int) -> int:
        result = await self._request(
            "DELETE",
            "alerts_delete",
            DeleteAlertsResponse,
            params={"user_id": user_id},
            json_body=DeleteAlertsRequest(alert_ids=alert_ids),
        )
        return result.deleted_count

    # ── Sleep override ───────────────────────────────────────────────────────

    # Used by: sleep_state.py (refresh)
    async def fetch_sleep_status(self, baby_id: int) -> SleepStatusResponse:
        return await self._request(
            "GET", "sleep_status", SleepStatusResponse, path_params={"baby_id": baby_id}
        )

    # Used by: sleep_state.py (refresh)
    async def fetch_cooldown_status(self, baby_id: int) -> CooldownStatusResponse:
        return await self._request(
            "GET", "cooldown_status", CooldownStatusResponse, path_params={"baby_id": baby_id}
        )

    # Used by: sleep_state.py (submit_intervention)
    async def submit_intervention(
        self, baby_id: int, action: InterventionAction
    ) -> InterventionResponse:
        return await self._request(
            "POST",
            "intervention",
            InterventionResponse,
            json_body=InterventionRequest(baby_id=baby_id, action=action),
        )

    # ── Push registration ────────────────────────────────────────────────────

    # Used by: push_subscription.py
    async def fetch_vapid_key(self) -> VapidKeyResponse:
        return await self._request("GET", "push_vapid_key", VapidKeyResponse)

    # Used by: push_subscription.py (status)
    async def fetch_push_status(self, user_id: int) -> PushStatusResponse:
        return await self._request(
            "GET", "push_status", PushStatusResponse, params={"user_id": user_id}
        )

    # Used by: push_subscription.py (subscribe)
    async def subscribe_to_push(self, user_id: int, subscription: PushSubscription) -> bool:
        result = await self._request(
            "POST",
            "push_subscribe",
            PushSubscriptionResponse,
            params={"user_id": user_id},
            json_body=subscription,
        )
        return result.success

    # Used by: push_subscription.py (subscribe, unsubscribe)
    async def unsubscribe_from_push(self, user_id: int) -> bool:
        result = await self._request(
            "POST", "push_unsubscribe", PushSubscriptionResponse, params={"user_id": user_id}
        )
        return result.success
