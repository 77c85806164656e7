"""Live alert stream: one SSE connection per client instance with fixed-delay reconnect."""

import asyncio
import contextlib
import logging
from enum import Enum
from typing import Callable, Optional

import aiohttp
from pydantic import ValidationError

from nappi_live.api.client import NappiApiClient, NappiApiError
from nappi_live.api.models import AlertRecord
from nappi_live.core.constants import SSE_CONNECTED_EVENT, SSE_READ_TIMEOUT_SECONDS
from nappi_live.core.settings import settings
from nappi_live.services.alert_buffer import AlertBuffer
from nappi_live.utils.observable import HandlerSlot, Observable
from nappi_live.utils.sse import DEFAULT_EVENT, ServerSentEvent, iter_sse_events

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# Used by: main.py (NappiLive), alert_service.py (shares the buffer)
class AlertStreamClient:
    """Keeps a live alert subscription for one owner and feeds an AlertBuffer.

    Each connect() starts a new generation; callbacks and timers from an older
    generation are ignored, so a disconnect or owner change can never produce
    a late alert or a duplicate connection.
    """

    def __init__(
        self,
        api: NappiApiClient,
        buffer: Optional[AlertBuffer] = None,
        on_new_alert: Optional[Callable[[AlertRecord], None]] = None,
        reconnect_delay: float = settings.SSE_RECONNECT_DELAY_SECONDS,
        read_timeout: float = SSE_READ_TIMEOUT_SECONDS,
    ):
        self.api = api
        self.buffer = buffer if buffer is not None else AlertBuffer(settings.ALERT_BUFFER_CAPACITY)
        self.reconnect_delay = reconnect_delay
        self.read_timeout = read_timeout
        self.state: Observable[ConnectionState] = Observable(ConnectionState.DISCONNECTED)
        self.latest_alert: Optional[AlertRecord] = None
        self.reconnect_attempts = 0

        self._on_new_alert: HandlerSlot[AlertRecord] = HandlerSlot(on_new_alert)
        self._owner_id: Optional[int] = None
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None

    @property
    def connected(self) -> bool:
        return self.state.value == ConnectionState.CONNECTED

    @property
    def owner_id(self) -> Optional[int]:
        return self._owner_id

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    # Used by: main.py (swap the UI handler without touching the connection)
    def set_alert_handler(self, handler: Optional[Callable[[AlertRecord], None]]) -> None:
        self._on_new_alert.set(handler)

    # Used by: main.py (start, switch_user)
    def connect(self, owner_id: int) -> None:
        """Replace any existing connection with a new one for owner_id."""
        self._close_current()
        self._owner_id = owner_id
        self._open()

    # Used by: main.py (stop, switch_user)
    def disconnect(self) -> None:
        self._owner_id = None
        self._close_current()
        logger.info("Disconnected from alerts stream")

    async def aclose(self) -> None:
        """disconnect() and wait for the read loop to finish unwinding."""
        task = self._task
        self.disconnect()
        if task is not None and not task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # Used by: main.py
    def clear_alerts(self) -> None:
        self.buffer.clear()
        self.latest_alert = None

    def _close_current(self) -> None:
        self._generation += 1
        self._cancel_reconnect()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.state.set(ConnectionState.DISCONNECTED)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _open(self) -> None:
        loop = asyncio.get_running_loop()
        owner_id = self._owner_id
        generation = self._generation
        self.state.set(ConnectionState.CONNECTING)
        self._task = loop.create_task(self._run(generation, owner_id))

    # Used by: _open (one task per connection generation)
    async def _run(self, generation: int, owner_id: int) -> None:
        url = self.api.alerts_stream_url(owner_id)
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.read_timeout)
        try:
            async with self.api.session.get(
                url, timeout=timeout, headers={"Accept": "text/event-stream"}
            ) as response:
                if response.status != 200:
                    raise NappiApiError(
                        f"Alerts stream returned status {response.status}",
                        status=response.status,
                    )
                if generation != self._generation:
                    return
                logger.info(f"Connected to alerts stream for user {owner_id}")
                self.state.set(ConnectionState.CONNECTED)

                async for event in iter_sse_events(response.content):
                    if generation != self._generation:
                        return
                    self._handle_event(event)

            logger.warning(f"Alerts stream for user {owner_id} closed by server")
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, NappiApiError) as e:
            logger.error(f"Alerts stream connection error for user {owner_id}: {e!r}")
        except Exception as e:
            logger.error(f"Unexpected alerts stream failure for user {owner_id}: {e}", exc_info=True)

        if generation == self._generation:
            self._connection_lost(generation)

    def _handle_event(self, event: ServerSentEvent) -> None:
        if event.event == SSE_CONNECTED_EVENT:
            logger.debug("Received connected event")
            self.state.set(ConnectionState.CONNECTED)
            return

        if event.event != DEFAULT_EVENT:
            logger.debug(f"Ignoring stream event '{event.event}'")
            return

        try:
            alert = AlertRecord.model_validate_json(event.data)
        except ValidationError as e:
            logger.error(f"Failed to parse alert, dropping message: {e}")
            return

        logger.info(f"Received alert {alert.id}: {alert.title}")

        try:
            self._on_new_alert(alert)
        except Exception as e:
            logger.error(f"New-alert handler failed for alert {alert.id}: {e}", exc_info=True)

        self.buffer.push(alert)
        self.latest_alert = alert

    def _connection_lost(self, generation: int) -> None:
        self._task = None
        self.state.set(ConnectionState.DISCONNECTED)
        if self._owner_id is None:
            return
        self._cancel_reconnect()
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(
            self.reconnect_delay, self._reconnect, generation
        )
        logger.info(f"Reconnecting to alerts stream in {self.reconnect_delay}s")

    def _reconnect(self, generation: int) -> None:
        self._reconnect_handle = None
        if generation != self._generation or self._owner_id is None:
            return
        self.reconnect_attempts += 1
        logger.info("Attempting to reconnect to alerts stream...")
        self._open()
