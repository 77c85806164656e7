"""Live-notification lifespan: API client, alert stream, sleep override and scheduler."""

import asyncio
import logging
from typing import Callable, Optional

from .api.client import NappiApiClient
from .api.models import AlertRecord
from .core.session import AppSession
from .core.settings import settings
from .services.alert_buffer import AlertBuffer
from .services.alert_service import AlertService
from .services.alert_stream import AlertStreamClient
from .services.push_subscription import PushManager, PushSubscriptionManager
from .services.scheduler import get_scheduler_status, start_scheduler, stop_scheduler
from .services.sleep_state import SleepStateCoordinator
from .utils.observable import Observable

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


class NappiLive:
    """Owns every live component for one signed-in session.

    Use as: async with NappiLive(session) as live: ...
    """

    def __init__(
        self,
        session: AppSession,
        api: Optional[NappiApiClient] = None,
        push_manager: Optional[PushManager] = None,
        on_new_alert: Optional[Callable[[AlertRecord], None]] = None,
        refresh_interval_seconds: int = settings.SLEEP_STATUS_REFRESH_SECONDS,
    ):
        self.session = session
        self.api = api or NappiApiClient(
            settings.NAPPI_API_BASE_URL, timeout_seconds=settings.NAPPI_HTTP_TIMEOUT_SECONDS
        )
        self.refresh_interval_seconds = refresh_interval_seconds

        self.buffer = AlertBuffer(settings.ALERT_BUFFER_CAPACITY)
        self.stream = AlertStreamClient(self.api, self.buffer, on_new_alert=on_new_alert)
        self.alerts = AlertService(self.api, self.buffer, session)
        self.sleep = SleepStateCoordinator(self.api)
        self.push: Optional[PushSubscriptionManager] = (
            PushSubscriptionManager(self.api, push_manager, session) if push_manager else None
        )

        # Layout state shared by the host UI; NappiLive is its only writer
        self.menu_open: Observable[bool] = Observable(False)

    async def __aenter__(self) -> "NappiLive":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # Used by: __aenter__, run()
    async def start(self) -> None:
        logger.info(f"Starting live notifications for user {self.session.user_id}")
        await self.alerts.load_history()
        self.stream.connect(self.session.user_id)
        await self.sleep.set_baby(self.session.baby_id)
        await start_scheduler(self.sleep, self.refresh_interval_seconds)

    # Used by: __aexit__, run()
    async def stop(self) -> None:
        await stop_scheduler()
        await self.stream.aclose()
        await self.api.close()
        logger.info("Live notifications stopped")

    async def switch_user(self, session: AppSession) -> None:
        """Tears down the stream for the old owner before anything for the new one starts."""
        self.stream.disconnect()
        self.stream.clear_alerts()
        self.session = session
        self.alerts.rebind(session)
        if self.push is not None:
            self.push.session = session

        await self.alerts.load_history()
        self.stream.connect(session.user_id)
        await self.sleep.set_baby(session.baby_id)

    def set_menu_open(self, open_: bool) -> None:
        self.menu_open.set(open_)

    def toggle_menu(self) -> None:
        self.menu_open.set(not self.menu_open.value)

    def status(self) -> dict:
        return {
            "user_id": self.session.user_id,
            "baby_id": self.session.baby_id,
            "connected": self.stream.connected,
            "buffered_alerts": len(self.buffer),
            "unread_count": self.alerts.unread_count(),
            "is_sleeping": self.sleep.is_sleeping,
            "cooldown_remaining_minutes": self.sleep.cooldown_remaining_minutes,
            "scheduler": get_scheduler_status(),
        }


def _log_alert(alert: AlertRecord) -> None:
    logger.info(f"[{alert.severity.value}] {alert.title}: {alert.message}")


async def _listen(session: AppSession) -> None:
    async with NappiLive(session, on_new_alert=_log_alert):
        await asyncio.Event().wait()


# Used by: nappi-live console script
def run() -> None:
    session = AppSession.from_settings()
    if session is None:
        raise SystemExit("NAPPI_USER_ID is not set")
    try:
        asyncio.run(_listen(session))
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    run()
