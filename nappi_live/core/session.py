"""Signed-in context: built once at startup and handed to every component."""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from nappi_live.core.settings import settings


@dataclass(frozen=True)
class AppSession:
    user_id: int
    baby_id: Optional[int] = None
    username: Optional[str] = None
    first_name: Optional[str] = None

    @property
    def has_baby(self) -> bool:
        return self.baby_id is not None

    # Used by: main.py (UI hosts after sign-in)
    @classmethod
    def from_sign_in(cls, payload: Dict[str, Any]) -> "AppSession":
        """Accepts the backend sign-in / sign-up response body."""
        baby_id = payload.get("baby_id")
        if baby_id is None and payload.get("baby"):
            baby_id = payload["baby"].get("id")
        return cls(
            user_id=int(payload["user_id"]),
            baby_id=int(baby_id) if baby_id is not None else None,
            username=payload.get("username"),
            first_name=payload.get("first_name"),
        )

    # Used by: main.py (headless listener)
    @classmethod
    def from_settings(cls) -> Optional["AppSession"]:
        if settings.NAPPI_USER_ID is None:
            return None
        return cls(user_id=settings.NAPPI_USER_ID, baby_id=settings.NAPPI_BABY_ID)
