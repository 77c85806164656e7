"""Client tuning constants, notification rendering defaults, and backend route table."""

from typing import Dict, List

# ── LIVE ALERT STREAM ────────────────────────────────────────────────────────
# Backend sends a keep-alive comment every 30s; the read timeout must exceed it.
SSE_RECONNECT_DELAY_SECONDS = 5
SSE_READ_TIMEOUT_SECONDS = 90
SSE_CONNECTED_EVENT = "connected"

# Newest-first, oldest evicted on overflow.
ALERT_BUFFER_CAPACITY = 100

# Backend refuses bulk deletes above this size.
ALERTS_MAX_BULK_DELETE = 100
ALERTS_DEFAULT_PAGE_SIZE = 50
ALERTS_MAX_PAGE_SIZE = 100


# ── SLEEP OVERRIDE ───────────────────────────────────────────────────────────
# The cooldown length itself is chosen by the backend and returned with each
# intervention; the client never assumes a duration.
SLEEP_STATUS_REFRESH_SECONDS = 60

ACTION_MARK_ASLEEP = "mark_asleep"
ACTION_MARK_AWAKE = "mark_awake"


# ── PUSH NOTIFICATIONS ───────────────────────────────────────────────────────
DEFAULT_NOTIFICATION_ICON = "/logo.svg"
NOTIFICATION_BADGE = "/logo.svg"
FALLBACK_NOTIFICATION_TITLE = "Nappi"
FALLBACK_NOTIFICATION_BODY = "New notification"
NOTIFICATION_VIBRATE_PATTERN: List[int] = [200, 100, 200]

NOTIFICATION_ACTION_OPEN = "open"
NOTIFICATION_ACTION_DISMISS = "dismiss"
NOTIFICATION_ACTIONS: List[Dict[str, str]] = [
    {"action": NOTIFICATION_ACTION_OPEN, "title": "Open App"},
    {"action": NOTIFICATION_ACTION_DISMISS, "title": "Dismiss"},
]

APP_ROOT_URL = "/"

PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"
PERMISSION_DEFAULT = "default"


# ── BACKEND ROUTES ───────────────────────────────────────────────────────────
# Used by: api/client.py (operation name to path template)
API_ROUTES: Dict[str, str] = {
    "alerts_stream": "/alerts/stream",
    "alerts_history": "/alerts/history",
    "alerts_unread_count": "/alerts/unread-count",
    "alerts_mark_read": "/alerts/{alert_id}/read",
    "alerts_mark_all_read": "/alerts/read-all",
    "alerts_delete": "/alerts",
    "sleep_status": "/sensor/sleep-status/{baby_id}",
    "cooldown_status": "/sensor/cooldown-status/{baby_id}",
    "intervention": "/sensor/intervention",
    "push_vapid_key": "/push/vapid-key",
    "push_status": "/push/status",
    "push_subscribe": "/push/subscribe",
    "push_unsubscribe": "/push/unsubscribe",
}
