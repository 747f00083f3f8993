"""Process-wide presence event source.

All push paths (MQTT, tests, embedding applications) publish
:class:`PresenceEvent`s into a :class:`PresenceEventHub`; live views consume
them through listeners.  The hub is loop-bound: ``publish`` must be called
from the event loop thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

from pydantic import ValidationError

from pylivepeople._constants import PRESENCE_UPDATE_EVENT
from pylivepeople.models.presence import PresenceEvent

_logger = logging.getLogger(__name__)

_CLOSED = object()


class PresenceEventListener:
    """One consumer's view of the hub: an async iterator of events."""

    def __init__(self, hub: PresenceEventHub) -> None:
        self._hub = hub
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: PresenceEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop receiving events. Pending iteration ends cleanly."""
        if self._closed:
            return
        self._closed = True
        self._hub._discard(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> PresenceEventListener:
        return self

    async def __anext__(self) -> PresenceEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any other waiter on this listener.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item


class EventSource(Protocol):
    """Shared, never-completing stream of presence events."""

    def listen(self) -> PresenceEventListener:
        ...


class PresenceEventHub:
    """In-process fan-out of presence events to every open listener."""

    def __init__(self) -> None:
        self._listeners: list[PresenceEventListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def listen(self) -> PresenceEventListener:
        listener = PresenceEventListener(self)
        self._listeners.append(listener)
        return listener

    def _discard(self, listener: PresenceEventListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def publish(self, event: PresenceEvent) -> None:
        """Deliver *event* to every listener in registration order."""
        for listener in list(self._listeners):
            listener._deliver(event)

    def close(self) -> None:
        """End every listener."""
        for listener in list(self._listeners):
            listener.close()


def parse_presence_message(payload: bytes | str) -> PresenceEvent | None:
    """Decode a push message into a :class:`PresenceEvent`.

    Expected shape::

        {"event": "presence.subscription_update",
         "data": {"subject": "<id>", "status": "<raw>"}}

    Messages for other events, or without a subject, return ``None``.
    Malformed JSON raises ``ValueError``.
    """
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Presence message is not a JSON object")

    if parsed.get("event") != PRESENCE_UPDATE_EVENT:
        return None
    data = parsed.get("data")
    if not isinstance(data, dict):
        return None
    subject = data.get("subject")
    if not isinstance(subject, str) or not subject:
        return None
    try:
        return PresenceEvent(subject=subject, status=data.get("status"))
    except ValidationError:
        _logger.debug("Presence message rejected", exc_info=True)
        return None
