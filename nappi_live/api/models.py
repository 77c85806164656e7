"""Pydantic models for every backend payload the client consumes or sends."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlertType(str, Enum):
    AWAKENING = "awakening"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    NOISE = "noise"
    OTHER = "other"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertRecord(BaseModel):
    """Server-created alert. Only `read` may change on the client."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(frozen=True)
    subject_id: int = Field(alias="baby_id", frozen=True)
    owner_id: Optional[int] = Field(default=None, alias="user_id", frozen=True)
    type: AlertType = Field(default=AlertType.OTHER, frozen=True)
    title: str = Field(frozen=True)
    message: str = Field(default="", frozen=True)
    severity: AlertSeverity = Field(default=AlertSeverity.INFO, frozen=True)
    metadata: Optional[Dict[str, Any]] = Field(default=None, frozen=True)
    read: bool = False
    created_at: datetime = Field(frozen=True)

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_unknown_type(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in {t.value for t in AlertType}:
            return AlertType.OTHER
        return value


# Alert endpoints

class AlertListResponse(BaseModel):
    alerts: List[AlertRecord]
    total_count: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    success: bool


class MarkAllReadResponse(BaseModel):
    updated_count: int


class DeleteAlertsRequest(BaseModel):
    alert_ids: List[int]


class DeleteAlertsResponse(BaseModel):
    deleted_count: int


# Sleep / intervention endpoints

class SleepStatusResponse(BaseModel):
    baby_id: int
    is_sleeping: bool
    sleep_started_at: Optional[datetime] = None
    sleep_duration_minutes: Optional[float] = None


class CooldownStatusResponse(BaseModel):
    baby_id: int
    in_cooldown: bool
    cooldown_remaining_minutes: Optional[int] = None
    message: Optional[str] = None


InterventionAction = Literal["mark_asleep", "mark_awake"]


class InterventionRequest(BaseModel):
    baby_id: int
    action: InterventionAction


class InterventionResponse(BaseModel):
    baby_id: int
    status: Literal["sleeping", "awake"]
    cooldown_minutes: int
    cooldown_until: Optional[datetime] = None
    message: Optional[str] = None


# Push endpoints

class VapidKeyResponse(BaseModel):
    public_key: Optional[str] = None
    configured: bool


class PushStatusResponse(BaseModel):
    subscribed: bool
    push_configured: bool


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscription(BaseModel):
    endpoint: str
    keys: PushSubscriptionKeys


class PushSubscriptionResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class PushPayload(BaseModel):
    """Body of a push message as sent by the backend push service."""

    title: str
    body: str
    icon: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
