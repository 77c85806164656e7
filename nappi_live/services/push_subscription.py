"""Push subscription management against the backend registration API."""

import base64
import logging
from typing import Optional, Protocol

from nappi_live.api.client import NappiApiClient, NappiApiError
from nappi_live.api.models import PushStatusResponse, PushSubscription
from nappi_live.core.constants import PERMISSION_DENIED, PERMISSION_GRANTED
from nappi_live.core.session import AppSession

logger = logging.getLogger(__name__)


class PushNotConfiguredError(Exception):
    """Backend has no VAPID keys; push must stay hidden."""


class PushPermissionDeniedError(Exception):
    """The user refused notification permission."""


class HostSubscription(Protocol):
    def to_subscription(self) -> PushSubscription:
        ...

    async def unsubscribe(self) -> bool:
        ...


class PushManager(Protocol):
    @property
    def permission(self) -> str:
        """'granted', 'denied' or 'default'."""
        ...

    async def request_permission(self) -> str:
        ...

    async def get_subscription(self) -> Optional[HostSubscription]:
        ...

    async def subscribe(self, application_server_key: bytes) -> HostSubscription:
        ...


# Used by: PushSubscriptionManager.subscribe
def application_server_key(public_key: str) -> bytes:
    """Decodes the URL-safe base64 VAPID public key (padding optional)."""
    padded = public_key + "=" * (-len(public_key) % 4)
    return base64.urlsafe_b64decode(padded)


# Used by: main.py (NappiLive.push)
class PushSubscriptionManager:
    def __init__(self, api: NappiApiClient, push_manager: PushManager, session: AppSession):
        self.api = api
        self.push_manager = push_manager
        self.session = session
        self._permission_denied = False

    @property
    def permission_denied(self) -> bool:
        return self._permission_denied

    async def status(self) -> PushStatusResponse:
        return await self.api.fetch_push_status(self.session.user_id)

    async def is_available(self) -> bool:
        """False when the backend is unconfigured or the user already said no."""
        if self._permission_denied:
            return False
        try:
            vapid = await self.api.fetch_vapid_key()
        except NappiApiError as e:
            logger.warning(f"Could not check push configuration: {e}")
            return False
        return vapid.configured and bool(vapid.public_key)

    async def subscribe(self) -> PushSubscription:
        """Registers this device, replacing any previous registration for the user."""
        if self._permission_denied:
            raise PushPermissionDeniedError("Notification permission was denied")

        vapid = await self.api.fetch_vapid_key()
        if not vapid.configured or not vapid.public_key:
            logger.info("Push notifications are not configured on the server")
            raise PushNotConfiguredError("Push notifications are not configured on this server")

        await self._ensure_permission()

        existing = await self.push_manager.get_subscription()
        if existing is not None:
            await self._drop_previous(existing)

        host_subscription = await self.push_manager.subscribe(
            application_server_key(vapid.public_key)
        )
        subscription = host_subscription.to_subscription()

        try:
            accepted = await self.api.subscribe_to_push(self.session.user_id, subscription)
        except NappiApiError:
            await self._discard_host(host_subscription)
            raise
        if not accepted:
            await self._discard_host(host_subscription)
            raise NappiApiError("Backend rejected push subscription")

        logger.info(f"Subscribed user {self.session.user_id} to push notifications")
        return subscription

    async def unsubscribe(self) -> bool:
        existing = await self.push_manager.get_subscription()
        if existing is not None:
            await existing.unsubscribe()
        success = await self.api.unsubscribe_from_push(self.session.user_id)
        logger.info(f"Unsubscribed user {self.session.user_id} from push notifications")
        return success

    async def _ensure_permission(self) -> None:
        permission = self.push_manager.permission
        if permission == PERMISSION_GRANTED:
            return
        if permission != PERMISSION_DENIED:
            permission = await self.push_manager.request_permission()
        if permission == PERMISSION_GRANTED:
            return
        if permission == PERMISSION_DENIED:
            self._permission_denied = True
            logger.warning("Notification permission denied, push disabled")
        raise PushPermissionDeniedError(f"Notification permission is '{permission}'")

    # Used by: subscribe (backend did not register the new subscription)
    async def _discard_host(self, host_subscription: HostSubscription) -> None:
        if not await host_subscription.unsubscribe():
            logger.warning("New push registration did not unsubscribe cleanly")
        else:
            logger.info("Removed device push registration the backend did not accept")

    async def _drop_previous(self, existing: HostSubscription) -> None:
        if not await existing.unsubscribe():
            logger.warning("Previous push registration did not unsubscribe cleanly")
        try:
            await self.api.unsubscribe_from_push(self.session.user_id)
        except NappiApiError as e:
            logger.warning(f"Failed to remove previous push subscription on server: {e}")
