"""Bounded newest-first store of alerts received by this client.

All mutations run on the event loop thread; nothing here awaits, so an insert
from the stream and a mark-read from the user can never interleave.
"""

import logging
from collections import deque
from typing import Deque, Iterable, Iterator, List, Optional, Tuple

from nappi_live.api.models import AlertRecord
from nappi_live.core.constants import ALERT_BUFFER_CAPACITY

logger = logging.getLogger(__name__)


class AlertBuffer:
    def __init__(self, capacity: int = ALERT_BUFFER_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._alerts: Deque[AlertRecord] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._alerts)

    def __iter__(self) -> Iterator[AlertRecord]:
        return iter(list(self._alerts))

    def items(self) -> List[AlertRecord]:
        return list(self._alerts)

    def get(self, alert_id: int) -> Optional[AlertRecord]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    # Used by: alert_stream.py (every parsed stream message)
    def push(self, alert: AlertRecord) -> Optional[AlertRecord]:
        """Prepend; returns the evicted tail record when full."""
        evicted = self._alerts[-1] if len(self._alerts) == self.capacity else None
        self._alerts.appendleft(alert)
        if evicted is not None:
            logger.debug(f"Alert buffer full, evicted alert {evicted.id}")
        return evicted

    # Used by: alert_service.py (load_history)
    def extend_older(self, alerts: Iterable[AlertRecord]) -> int:
        """Append older alerts at the tail without evicting anything newer."""
        known = {a.id for a in self._alerts}
        added = 0
        for alert in alerts:
            if len(self._alerts) >= self.capacity:
                break
            if alert.id in known:
                continue
            self._alerts.append(alert)
            known.add(alert.id)
            added += 1
        return added

    # Used by: alert_service.py (mark_read + rollback)
    def set_read(self, alert_id: int, read: bool) -> Optional[bool]:
        """Returns the previous value, or None when the alert is not buffered."""
        alert = self.get(alert_id)
        if alert is None:
            return None
        previous = alert.read
        alert.read = read
        return previous

    # Used by: alert_service.py (mark_all_read)
    def mark_all_read(self) -> List[int]:
        """Returns the ids that were unread, so the change can be undone in place."""
        changed = []
        for alert in self._alerts:
            if not alert.read:
                alert.read = True
                changed.append(alert.id)
        return changed

    # Used by: alert_service.py (mark_all_read rollback)
    def mark_unread(self, alert_ids: Iterable[int]) -> None:
        ids = set(alert_ids)
        for alert in self._alerts:
            if alert.id in ids:
                alert.read = False

    def unread_count(self) -> int:
        return sum(1 for alert in self._alerts if not alert.read)

    # Used by: alert_service.py (delete_alerts)
    def remove(self, alert_ids: Iterable[int]) -> List[Tuple[int, AlertRecord]]:
        """Returns (position, record) pairs for whatever was removed."""
        ids = set(alert_ids)
        removed = [(i, a) for i, a in enumerate(self._alerts) if a.id in ids]
        if removed:
            self._alerts = deque((a for a in self._alerts if a.id not in ids), maxlen=self.capacity)
        return removed

    # Used by: alert_service.py (delete_alerts rollback)
    def reinsert(self, removed: List[Tuple[int, AlertRecord]]) -> None:
        """Put back records from remove() at their old positions, capacity permitting."""
        alerts = list(self._alerts)
        for position, alert in sorted(removed, key=lambda pair: pair[0]):
            if any(a.id == alert.id for a in alerts):
                continue
            alerts.insert(min(position, len(alerts)), alert)
        self._alerts = deque(alerts[: self.capacity], maxlen=self.capacity)

    def clear(self) -> None:
        self._alerts.clear()
