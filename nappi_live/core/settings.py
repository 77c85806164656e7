"""Client settings: loaded from environment variables with defaults."""

import os
from typing import Optional
from dotenv import load_dotenv
from nappi_live.core.constants import (
    ALERT_BUFFER_CAPACITY as _DEFAULT_BUFFER_CAPACITY,
    SSE_RECONNECT_DELAY_SECONDS as _DEFAULT_RECONNECT_DELAY,
    SLEEP_STATUS_REFRESH_SECONDS as _DEFAULT_REFRESH_SECONDS,
    DEFAULT_NOTIFICATION_ICON as _DEFAULT_ICON,
)

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return int(value)


class Settings:
    NAPPI_API_BASE_URL: str = os.getenv("NAPPI_API_BASE_URL", "http://localhost:8000")
    NAPPI_HTTP_TIMEOUT_SECONDS: float = float(os.getenv("NAPPI_HTTP_TIMEOUT_SECONDS", "10"))

    # Signed-in context for the headless listener; a UI host builds its own AppSession
    NAPPI_USER_ID: Optional[int] = _optional_int("NAPPI_USER_ID")
    NAPPI_BABY_ID: Optional[int] = _optional_int("NAPPI_BABY_ID")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Defaults from constants.py, overridable via env
    SSE_RECONNECT_DELAY_SECONDS: float = float(
        os.getenv("SSE_RECONNECT_DELAY_SECONDS", str(_DEFAULT_RECONNECT_DELAY))
    )
    ALERT_BUFFER_CAPACITY: int = int(
        os.getenv("ALERT_BUFFER_CAPACITY", str(_DEFAULT_BUFFER_CAPACITY))
    )
    # 0 disables the periodic sleep/cooldown refresh job
    SLEEP_STATUS_REFRESH_SECONDS: int = int(
        os.getenv("SLEEP_STATUS_REFRESH_SECONDS", str(_DEFAULT_REFRESH_SECONDS))
    )

    DEFAULT_NOTIFICATION_ICON: str = os.getenv("DEFAULT_NOTIFICATION_ICON", _DEFAULT_ICON)


settings = Settings()
