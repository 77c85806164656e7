"""Displayed sleep state for one baby, and the parent's manual override.

State is {awake, asleep} x {no cooldown, cooling down}. The backend owns both
the truth and the cooldown length; this side only fetches, submits one
intervention at a time, and counts the cooldown down locally.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from nappi_live.api.client import NappiApiClient, NappiApiError
from nappi_live.api.models import InterventionAction, InterventionResponse
from nappi_live.core.constants import ACTION_MARK_ASLEEP, ACTION_MARK_AWAKE
from nappi_live.utils.observable import Observable

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SleepPhase(str, Enum):
    AWAKE = "awake"
    ASLEEP = "asleep"


@dataclass(frozen=True)
class SleepSnapshot:
    baby_id: int
    is_sleeping: bool
    cooldown_until: Optional[datetime] = None
    sleep_started_at: Optional[datetime] = None


class InterventionInFlightError(Exception):
    """Another intervention is still waiting for the backend."""


class InvalidInterventionError(Exception):
    """The action does not invert the displayed state, or no state is loaded."""


class InterventionFailedError(Exception):
    """The backend did not accept the intervention; displayed state is unchanged."""


# Used by: main.py (NappiLive), scheduler.py (periodic refresh)
class SleepStateCoordinator:
    def __init__(self, api: NappiApiClient, clock: Callable[[], datetime] = _utcnow):
        self.api = api
        self._clock = clock
        self.state: Observable[Optional[SleepSnapshot]] = Observable(None)
        self.last_error: Optional[str] = None
        self._in_flight = False
        # Bumped on applied interventions and baby changes; older fetches are dropped
        self._version = 0
        self._subject_id: Optional[int] = None

    @property
    def baby_id(self) -> Optional[int]:
        snapshot = self.state.value
        return snapshot.baby_id if snapshot else None

    @property
    def is_sleeping(self) -> Optional[bool]:
        snapshot = self.state.value
        return snapshot.is_sleeping if snapshot else None

    @property
    def phase(self) -> Optional[SleepPhase]:
        if self.is_sleeping is None:
            return None
        return SleepPhase.ASLEEP if self.is_sleeping else SleepPhase.AWAKE

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def cooldown_until(self) -> Optional[datetime]:
        snapshot = self.state.value
        if snapshot is None or snapshot.cooldown_until is None:
            return None
        if snapshot.cooldown_until <= self._clock():
            return None
        return snapshot.cooldown_until

    @property
    def cooldown_remaining_minutes(self) -> Optional[int]:
        cooldown_until = self.cooldown_until
        if cooldown_until is None:
            return None
        remaining = (cooldown_until - self._clock()).total_seconds() / 60.0
        return math.ceil(remaining)

    @property
    def in_cooldown(self) -> bool:
        return self.cooldown_until is not None

    @property
    def automation_suppressed(self) -> bool:
        """True while sensor-driven changes are being ignored by the backend."""
        return self.in_cooldown

    @property
    def available_action(self) -> Optional[InterventionAction]:
        """The only intervention offered: the inverse of what is displayed."""
        if self.is_sleeping is None:
            return None
        return ACTION_MARK_AWAKE if self.is_sleeping else ACTION_MARK_ASLEEP

    # Used by: main.py (start, switch_user)
    async def set_baby(self, baby_id: Optional[int]) -> bool:
        if baby_id == self._subject_id:
            return await self.refresh()
        self._subject_id = baby_id
        self._version += 1
        self.state.set(None)
        self.last_error = None
        if baby_id is None:
            return False
        return await self.refresh(baby_id)

    # Used by: set_baby, scheduler.py (interval job), hosts on window focus
    async def refresh(self, baby_id: Optional[int] = None) -> bool:
        """Fetches sleep and cooldown status; keeps the current state on failure."""
        if baby_id is None:
            baby_id = self._subject_id if self._subject_id is not None else self.baby_id
        if baby_id is None:
            return False
        if self._in_flight:
            logger.debug(f"Skipping sleep status refresh for baby {baby_id}, intervention in flight")
            return False

        version = self._version
        try:
            sleep_status, cooldown_status = await asyncio.gather(
                self.api.fetch_sleep_status(baby_id),
                self.api.fetch_cooldown_status(baby_id),
            )
        except NappiApiError as e:
            logger.warning(f"Failed to refresh sleep status for baby {baby_id}: {e}")
            return False

        if version != self._version or self._subject_id not in (None, baby_id):
            logger.debug(f"Discarding stale sleep status for baby {baby_id}")
            return False

        cooldown_until = None
        if cooldown_status.in_cooldown and cooldown_status.cooldown_remaining_minutes:
            cooldown_until = self._clock() + timedelta(
                minutes=cooldown_status.cooldown_remaining_minutes
            )

        self.state.set(
            SleepSnapshot(
                baby_id=baby_id,
                is_sleeping=sleep_status.is_sleeping,
                cooldown_until=cooldown_until,
                sleep_started_at=sleep_status.sleep_started_at,
            )
        )
        return True

    async def submit_intervention(
        self, baby_id: int, action: InterventionAction
    ) -> InterventionResponse:
        """Single-flight: a second call while one is pending is rejected, not queued."""
        if self._in_flight:
            raise InterventionInFlightError("An intervention is already in progress")
        if baby_id != self.baby_id or action != self.available_action:
            raise InvalidInterventionError(
                f"Action '{action}' is not available for baby {baby_id} "
                f"(offered: {self.available_action})"
            )

        self._in_flight = True
        self.last_error = None
        logger.info(f"Submitting intervention for baby {baby_id}: {action}")
        try:
            response = await self.api.submit_intervention(baby_id, action)
        except NappiApiError as e:
            self.last_error = "Failed to update sleep state. Please try again."
            logger.warning(f"Intervention {action} for baby {baby_id} failed: {e}")
            raise InterventionFailedError(self.last_error) from e
        finally:
            self._in_flight = False

        if self.baby_id != baby_id:
            logger.info(f"Baby changed while intervention for baby {baby_id} was pending, not applying")
            return response

        self._version += 1
        is_sleeping = response.status == "sleeping"
        cooldown_until = self._clock() + timedelta(minutes=response.cooldown_minutes)
        previous = self.state.value
        self.state.set(
            SleepSnapshot(
                baby_id=baby_id,
                is_sleeping=is_sleeping,
                cooldown_until=cooldown_until,
                sleep_started_at=self._clock() if is_sleeping else None,
            )
        )
        logger.info(
            f"Baby {baby_id} marked as {response.status}, cooldown "
            f"{response.cooldown_minutes} minutes (was sleeping={previous.is_sleeping if previous else None})"
        )
        return response
