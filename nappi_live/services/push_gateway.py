"""Background push delivery: renders push messages and routes notification clicks.

The three handlers keep no state between events, so the host can run each one
in a fresh worker generation. The host platform (notification surface, window
list) is reached only through the protocols below.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from pydantic import ValidationError

from nappi_live.api.models import PushPayload
from nappi_live.core.constants import (
    APP_ROOT_URL,
    FALLBACK_NOTIFICATION_BODY,
    FALLBACK_NOTIFICATION_TITLE,
    NOTIFICATION_ACTION_DISMISS,
    NOTIFICATION_ACTIONS,
    NOTIFICATION_BADGE,
    NOTIFICATION_VIBRATE_PATTERN,
)
from nappi_live.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class NotificationOptions:
    body: str
    icon: str
    badge: str = NOTIFICATION_BADGE
    vibrate: List[int] = field(default_factory=lambda: list(NOTIFICATION_VIBRATE_PATTERN))
    data: Dict[str, Any] = field(default_factory=dict)
    actions: List[Dict[str, str]] = field(default_factory=lambda: [dict(a) for a in NOTIFICATION_ACTIONS])


class Notification(Protocol):
    data: Dict[str, Any]

    def close(self) -> None:
        ...


class NotificationSurface(Protocol):
    async def show_notification(self, title: str, options: NotificationOptions) -> None:
        """Resolves once the notification is visible."""
        ...


class WindowClient(Protocol):
    async def focus(self) -> Any:
        ...


class WindowClients(Protocol):
    async def match_all(self, include_uncontrolled: bool = False) -> List[WindowClient]:
        ...

    async def open_window(self, url: str) -> Optional[WindowClient]:
        ...

    async def claim(self) -> None:
        ...


# Used by: PushNotificationGateway.on_push
def parse_push_payload(
    raw: Optional[Union[bytes, str]],
    default_icon: str = settings.DEFAULT_NOTIFICATION_ICON,
) -> PushPayload:
    """Never fails: anything unusable becomes the generic Nappi notification."""
    fallback = PushPayload(
        title=FALLBACK_NOTIFICATION_TITLE,
        body=FALLBACK_NOTIFICATION_BODY,
        icon=default_icon,
    )
    if raw is None or len(raw) == 0:
        return fallback

    try:
        payload = PushPayload.model_validate(json.loads(raw))
    except (ValueError, TypeError, ValidationError) as e:
        logger.error(f"Failed to parse push data: {e}")
        return fallback

    if payload.icon is None:
        payload.icon = default_icon
    return payload


# Used by: host push worker (push, notificationclick, activate events)
class PushNotificationGateway:
    def __init__(
        self,
        surface: NotificationSurface,
        clients: WindowClients,
        default_icon: str = settings.DEFAULT_NOTIFICATION_ICON,
    ):
        self.surface = surface
        self.clients = clients
        self.default_icon = default_icon

    async def on_push(self, raw: Optional[Union[bytes, str]]) -> PushPayload:
        """Returns only after the notification has been rendered."""
        logger.info("Push event received")
        payload = parse_push_payload(raw, self.default_icon)
        options = NotificationOptions(
            body=payload.body,
            icon=payload.icon or self.default_icon,
            data=payload.data or {},
        )
        await self.surface.show_notification(payload.title, options)
        return payload

    async def on_notification_click(
        self, notification: Notification, action: Optional[str] = None
    ) -> Optional[WindowClient]:
        """Focuses an open window or opens a new one; 'dismiss' only closes."""
        logger.info(f"Notification clicked: {action or 'default'}")
        notification.close()

        if action == NOTIFICATION_ACTION_DISMISS:
            return None

        windows = await self.clients.match_all(include_uncontrolled=True)
        if windows:
            await windows[0].focus()
            return windows[0]

        return await self.clients.open_window(APP_ROOT_URL)

    async def on_activate(self) -> None:
        logger.info("Push worker activated, claiming open clients")
        await self.clients.claim()
