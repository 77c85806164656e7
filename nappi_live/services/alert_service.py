"""Alert inbox operations: optimistic read/delete with rollback, history backfill."""

import logging
from typing import List, Optional

from nappi_live.api.client import NappiApiClient, NappiApiError
from nappi_live.api.models import AlertRecord
from nappi_live.core.constants import ALERTS_MAX_BULK_DELETE, ALERTS_MAX_PAGE_SIZE
from nappi_live.core.session import AppSession
from nappi_live.services.alert_buffer import AlertBuffer

logger = logging.getLogger(__name__)


# Used by: main.py (NappiLive)
class AlertService:
    def __init__(self, api: NappiApiClient, buffer: AlertBuffer, session: AppSession):
        self.api = api
        self.buffer = buffer
        self.session = session

    @property
    def alerts(self) -> List[AlertRecord]:
        return self.buffer.items()

    def unread_count(self) -> int:
        return self.buffer.unread_count()

    # Used by: main.py (start)
    async def load_history(self, unread_only: bool = False) -> int:
        """Backfill the buffer tail from alert history. Returns how many were added."""
        limit = self.buffer.capacity - len(self.buffer)
        if limit <= 0:
            return 0
        try:
            history = await self.api.fetch_alerts(
                self.session.user_id,
                limit=min(limit, ALERTS_MAX_PAGE_SIZE),
                unread_only=unread_only,
            )
        except NappiApiError as e:
            logger.warning(f"Failed to load alert history for user {self.session.user_id}: {e}")
            return 0

        added = self.buffer.extend_older(history.alerts)
        logger.info(f"Loaded {added} alerts from history for user {self.session.user_id}")
        return added

    # Used by: UI hosts (tapping a single alert)
    async def mark_read(self, alert_id: int) -> bool:
        """Optimistically marks one alert read; reverts that alert if the backend refuses."""
        previous = self.buffer.set_read(alert_id, True)
        if previous is None or previous is True:
            return True

        try:
            success = await self.api.mark_alert_as_read(alert_id, self.session.user_id)
        except NappiApiError as e:
            logger.warning(f"Failed to mark alert {alert_id} as read: {e}")
            success = False

        if not success:
            self.buffer.set_read(alert_id, previous)
            logger.info(f"Rolled back read state of alert {alert_id}")
        return success

    # Used by: UI hosts ("mark all as read")
    async def mark_all_read(self) -> bool:
        """All-or-nothing: on failure every alert this call marked goes back to unread."""
        changed = self.buffer.mark_all_read()

        try:
            updated = await self.api.mark_all_alerts_as_read(self.session.user_id)
        except NappiApiError as e:
            logger.warning(f"Failed to mark all alerts as read for user {self.session.user_id}: {e}")
            self.buffer.mark_unread(changed)
            return False

        logger.info(f"Marked {updated} alerts as read for user {self.session.user_id}")
        return True

    # Used by: UI hosts (single or bulk delete)
    async def delete_alerts(self, alert_ids: List[int]) -> bool:
        if not alert_ids:
            raise ValueError("alert_ids must not be empty")
        if len(alert_ids) > ALERTS_MAX_BULK_DELETE:
            raise ValueError(f"Cannot delete more than {ALERTS_MAX_BULK_DELETE} alerts at once")

        removed = self.buffer.remove(alert_ids)
        try:
            deleted = await self.api.delete_alerts(alert_ids, self.session.user_id)
        except NappiApiError as e:
            logger.warning(f"Failed to delete alerts {alert_ids}: {e}")
            self.buffer.reinsert(removed)
            return False

        logger.info(f"Deleted {deleted} alerts for user {self.session.user_id}")
        return True

    # Used by: main.py (switch_user)
    def rebind(self, session: AppSession, buffer: Optional[AlertBuffer] = None) -> None:
        self.session = session
        if buffer is not None:
            self.buffer = buffer
