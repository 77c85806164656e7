"""Shared fixtures: a scripted aiohttp backend that speaks the Nappi API."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from nappi_live.api.client import NappiApiClient
from nappi_live.core.session import AppSession

USER_ID = 42
BABY_ID = 7


def make_alert(alert_id: int, **overrides: Any) -> Dict[str, Any]:
    alert = {
        "id": alert_id,
        "baby_id": BABY_ID,
        "user_id": USER_ID,
        "type": "temperature",
        "title": "Room temperature update",
        "message": "We noticed the temperature is at 26.5°C",
        "severity": "warning",
        "metadata": {"value": 26.5, "threshold": 26.0, "direction": "high"},
        "read": False,
        "created_at": (
            datetime(2024, 1, 1, 3, 0, tzinfo=timezone.utc) + timedelta(minutes=alert_id)
        ).isoformat(),
    }
    alert.update(overrides)
    return alert


def sse_data(payload: Any) -> str:
    body = payload if isinstance(payload, str) else json.dumps(payload)
    return f"data: {body}\n\n"


async def wait_for(predicate, timeout: float = 2.0, interval: float = 0.01) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


class StreamConnection:
    def __init__(self, user_id: int, opened_at: float):
        self.user_id = user_id
        self.opened_at = opened_at
        self.closed_at: Optional[float] = None
        self.queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()

    def send(self, frame: str) -> None:
        self.queue.put_nowait(frame)

    def close(self) -> None:
        self.closed_at = asyncio.get_running_loop().time()
        self.queue.put_nowait(None)


class FakeBackend:
    """In-process stand-in for the Nappi backend routes the client uses."""

    def __init__(self):
        self.url = ""
        self.calls: List[tuple] = []

        self.streams: List[StreamConnection] = []
        self.stream_status = 200
        self.send_connected_event = True

        self.history: List[Dict[str, Any]] = []
        self.fail_mark_read = False
        self.fail_mark_all = False
        self.fail_delete = False

        self.sleeping: Dict[int, bool] = {BABY_ID: False}
        self.cooldown_remaining: Dict[int, Optional[int]] = {}
        self.intervention_cooldown_minutes = 30
        self.fail_intervention = False
        self.intervention_gate: Optional[asyncio.Event] = None
        self.sleep_status_gates: Dict[int, asyncio.Event] = {}

        self.vapid_public_key: Optional[str] = "BEl62iUYgUivxIkv69yViEuiBIa-Ib9-SkvMeAtA3LFgDzkrxZJjSgSnfckjBJuBkr3qBUYIHBQFLXYp5Nksh8U"
        self.push_subscriptions: Dict[int, Dict[str, Any]] = {}
        self.reject_push_subscribe = False

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/alerts/stream", self.alerts_stream)
        app.router.add_get("/alerts/history", self.alerts_history)
        app.router.add_get("/alerts/unread-count", self.unread_count)
        app.router.add_post("/alerts/read-all", self.mark_all_read)
        app.router.add_post("/alerts/{alert_id}/read", self.mark_read)
        app.router.add_delete("/alerts", self.delete_alerts)
        app.router.add_get("/sensor/sleep-status/{baby_id}", self.sleep_status)
        app.router.add_get("/sensor/cooldown-status/{baby_id}", self.cooldown_status)
        app.router.add_post("/sensor/intervention", self.intervention)
        app.router.add_get("/push/vapid-key", self.vapid_key)
        app.router.add_get("/push/status", self.push_status)
        app.router.add_post("/push/subscribe", self.push_subscribe)
        app.router.add_post("/push/unsubscribe", self.push_unsubscribe)
        return app

    def _record(self, request: web.Request) -> None:
        self.calls.append((request.method, request.path, dict(request.query)))

    def calls_to(self, path: str) -> List[tuple]:
        return [c for c in self.calls if c[1] == path]

    @property
    def open_streams(self) -> List[StreamConnection]:
        return [s for s in self.streams if s.closed_at is None]

    async def alerts_stream(self, request: web.Request) -> web.StreamResponse:
        self._record(request)
        if self.stream_status != 200:
            return web.json_response({"detail": "unavailable"}, status=self.stream_status)

        connection = StreamConnection(int(request.query["user_id"]), asyncio.get_running_loop().time())
        self.streams.append(connection)

        response = web.StreamResponse(headers={"Content-Type": "text/event-stream", "Cache-Control": "no-cache"})
        await response.prepare(request)
        if self.send_connected_event:
            await response.write(b"event: connected\ndata: {}\n\n")
        try:
            while True:
                frame = await connection.queue.get()
                if frame is None:
                    break
                await response.write(frame.encode("utf-8"))
        except (ConnectionResetError, asyncio.CancelledError):
            pass
        finally:
            if connection.closed_at is None:
                connection.closed_at = asyncio.get_running_loop().time()
        return response

    async def alerts_history(self, request: web.Request) -> web.Response:
        self._record(request)
        limit = int(request.query.get("limit", 50))
        offset = int(request.query.get("offset", 0))
        alerts = self.history
        if request.query.get("unread_only") == "true":
            alerts = [a for a in alerts if not a["read"]]
        page = alerts[offset:offset + limit]
        return web.json_response({"alerts": page, "total_count": len(page)})

    async def unread_count(self, request: web.Request) -> web.Response:
        self._record(request)
        return web.json_response({"count": sum(1 for a in self.history if not a["read"])})

    async def mark_read(self, request: web.Request) -> web.Response:
        self._record(request)
        if self.fail_mark_read:
            return web.json_response({"detail": "Alert not found or doesn't belong to user"}, status=404)
        return web.json_response({"success": True})

    async def mark_all_read(self, request: web.Request) -> web.Response:
        self._record(request)
        if self.fail_mark_all:
            return web.json_response({"detail": "database unavailable"}, status=500)
        return web.json_response({"updated_count": 3})

    async def delete_alerts(self, request: web.Request) -> web.Response:
        self._record(request)
        body = await request.json()
        if self.fail_delete:
            return web.json_response({"detail": "database unavailable"}, status=500)
        return web.json_response({"deleted_count": len(body["alert_ids"])})

    async def sleep_status(self, request: web.Request) -> web.Response:
        self._record(request)
        baby_id = int(request.match_info["baby_id"])
        if baby_id in self.sleep_status_gates:
            await self.sleep_status_gates[baby_id].wait()
        if self.sleeping.get(baby_id):
            return web.json_response({
                "baby_id": baby_id,
                "is_sleeping": True,
                "sleep_started_at": "2024-01-01T01:00:00",
                "sleep_duration_minutes": 45.5,
            })
        return web.json_response({"baby_id": baby_id, "is_sleeping": False})

    async def cooldown_status(self, request: web.Request) -> web.Response:
        self._record(request)
        baby_id = int(request.match_info["baby_id"])
        remaining = self.cooldown_remaining.get(baby_id)
        return web.json_response({
            "baby_id": baby_id,
            "in_cooldown": remaining is not None,
            "cooldown_remaining_minutes": remaining,
            "message": "No active cooldown" if remaining is None else f"{remaining} more minutes",
        })

    async def intervention(self, request: web.Request) -> web.Response:
        self._record(request)
        body = await request.json()
        if self.intervention_gate is not None:
            await self.intervention_gate.wait()
        if self.fail_intervention:
            return web.json_response({"detail": "Baby with id 7 not found"}, status=404)
        baby_id = body["baby_id"]
        asleep = body["action"] == "mark_asleep"
        self.sleeping[baby_id] = asleep
        self.cooldown_remaining[baby_id] = self.intervention_cooldown_minutes
        return web.json_response({
            "baby_id": baby_id,
            "status": "sleeping" if asleep else "awake",
            "cooldown_minutes": self.intervention_cooldown_minutes,
            "cooldown_until": "2024-01-01T03:42:00",
            "message": "ok",
        })

    async def vapid_key(self, request: web.Request) -> web.Response:
        self._record(request)
        return web.json_response({
            "public_key": self.vapid_public_key,
            "configured": self.vapid_public_key is not None,
        })

    async def push_status(self, request: web.Request) -> web.Response:
        self._record(request)
        user_id = int(request.query["user_id"])
        return web.json_response({
            "subscribed": user_id in self.push_subscriptions,
            "push_configured": self.vapid_public_key is not None,
        })

    async def push_subscribe(self, request: web.Request) -> web.Response:
        self._record(request)
        if self.reject_push_subscribe:
            return web.json_response({"success": False, "message": "Failed to save subscription"})
        self.push_subscriptions[int(request.query["user_id"])] = await request.json()
        return web.json_response({"success": True, "message": "Successfully subscribed to push notifications"})

    async def push_unsubscribe(self, request: web.Request) -> web.Response:
        self._record(request)
        removed = self.push_subscriptions.pop(int(request.query["user_id"]), None)
        return web.json_response({
            "success": True,
            "message": "Successfully unsubscribed from push notifications" if removed else "No subscription found",
        })


@pytest_asyncio.fixture
async def backend():
    fake = FakeBackend()
    server = TestServer(fake.app())
    await server.start_server()
    fake.url = f"http://{server.host}:{server.port}"
    yield fake
    for stream in fake.open_streams:
        stream.close()
    await server.close()


@pytest_asyncio.fixture
async def api(backend):
    client = NappiApiClient(backend.url, timeout_seconds=5)
    yield client
    await client.close()


@pytest.fixture
def session():
    return AppSession(user_id=USER_ID, baby_id=BABY_ID, username="noa.parent")
