"""Server-Sent Events line decoder.

Frames look like the backend's /alerts/stream output:

    event: connected
    data: {}

    data: {"id": 1, ...}

    : keepalive
"""

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, List, Optional, Union

DEFAULT_EVENT = "message"


@dataclass
class ServerSentEvent:
    event: str = DEFAULT_EVENT
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


class SSEDecoder:
    """Feed one line at a time; a blank line completes an event."""

    def __init__(self):
        self._event: Optional[str] = None
        self._data: List[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None

    def decode(self, line: Union[str, bytes]) -> Optional[ServerSentEvent]:
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r\n")

        if line == "":
            return self._dispatch()

        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            if "\0" not in value:
                self._id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[ServerSentEvent]:
        # Named events carry meaning on their own; unnamed ones need data.
        if not self._data and self._event is None:
            self._retry = None
            return None

        event = ServerSentEvent(
            event=self._event or DEFAULT_EVENT,
            data="\n".join(self._data),
            id=self._id,
            retry=self._retry,
        )
        self._event = None
        self._data = []
        self._retry = None
        return event


# Used by: alert_stream.py (read loop)
async def iter_sse_events(lines: AsyncIterable[bytes]) -> AsyncIterator[ServerSentEvent]:
    decoder = SSEDecoder()
    async for line in lines:
        event = decoder.decode(line)
        if event is not None:
            yield event
