"""Shared, reference-counted live views of people presence.

A :class:`LiveView` composes three asynchronous sources for one person:

1. the one-shot person fetch,
2. the presence subscribe handshake (whose acknowledgement carries the
   initial status),
3. the process-wide presence event stream.

It emits one initial :class:`PersonSnapshot` followed by one snapshot per
matching presence event, replays the latest snapshot to late subscribers,
and keeps exactly one remote subscription alive for as long as at least one
consumer is attached.  Views of different keys that resolve to the same
internal id share that remote subscription.

The :class:`LiveViewMultiplexer` owns the key → view table.  Every table
mutation happens in synchronous code on the event loop thread, so lookups,
inserts and removals for a key can never interleave with each other.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Mapping, Sequence
from enum import StrEnum
from typing import Any, Protocol

from pylivepeople._constants import SELF_KEY
from pylivepeople.events import EventSource, PresenceEventListener
from pylivepeople.exceptions import LiveViewClosedError, PeopleError
from pylivepeople.ids import KeyResolver, to_internal_id
from pylivepeople.models.person import Person, PersonSnapshot, assemble_snapshot
from pylivepeople.models.presence import SubscriptionAck
from pylivepeople.models.status import PersonStatus, map_status

_logger = logging.getLogger(__name__)

_END = object()


class EntityFetcher(Protocol):
    async def fetch(self, key: str) -> Person:
        ...


class PresenceClient(Protocol):
    async def get(self, subjects: Sequence[str]) -> Mapping[str, Any]:
        ...

    async def subscribe(self, subject: str) -> SubscriptionAck:
        ...

    async def unsubscribe(self, subject: str) -> None:
        ...


class LiveViewState(StrEnum):
    PENDING = "pending"
    """In the table, no subscriber has attached yet."""
    ACTIVE = "active"
    """Composition running; at least one subscriber attached."""
    TORN_DOWN = "torn_down"
    """Out of the table for good; never revived."""


def _retrieve(task: asyncio.Task[Any]) -> None:
    """Mark a finished task's exception as retrieved."""
    if task.done() and not task.cancelled():
        task.exception()


class _RemoteSubscription:
    """One presence subscription, shared by every view of an internal id.

    Views of different keys that resolve to the same id hold references to
    the same instance; only the first issues ``subscribe`` and only the
    last to release it issues ``unsubscribe``.
    """

    def __init__(self, internal_id: str) -> None:
        self.internal_id = internal_id
        self.refs = 0
        self.subscribe_issued = False
        self.status = PersonStatus.UNKNOWN
        self.task: asyncio.Task[None] | None = None

    async def current_status(self) -> PersonStatus:
        """Status from the ack, or the newest pushed status once views have seen updates."""
        assert self.task is not None
        # Shielded: one view going away must not abort a handshake others wait on.
        await asyncio.shield(self.task)
        return self.status


class LiveViewSubscription:
    """A consumer's handle on a :class:`LiveView`.

    Iterate it to receive snapshots::

        async with view.subscribe() as sub:
            async for snapshot in sub:
                ...

    Iteration ends when the subscription is closed (by the consumer or
    by the multiplexer shutting down) and raises the fetch error if the
    view could not load its person.
    """

    def __init__(self, view: LiveView) -> None:
        self._view = view
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False

    @property
    def view(self) -> LiveView:
        return self._view

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, snapshot: PersonSnapshot) -> None:
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def _end(self, error: BaseException | None = None) -> None:
        """Finish from the view's side, without detaching again."""
        if self._closed:
            return
        self._closed = True
        if error is not None:
            self._queue.put_nowait(error)
        self._queue.put_nowait(_END)

    def close(self) -> None:
        """Detach from the view. Idempotent.

        Detaching the last subscriber tears the view down.
        """
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END)
        self._view._detach(self)

    def __aiter__(self) -> LiveViewSubscription:
        return self

    async def __anext__(self) -> PersonSnapshot:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item

    async def __aenter__(self) -> LiveViewSubscription:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class LiveView:
    """Multicast, replaying stream of snapshots for one person key.

    Obtain instances from :meth:`LiveViewMultiplexer.get_live_view`; the
    composition starts when the first subscriber attaches.
    """

    def __init__(
        self,
        owner: LiveViewMultiplexer,
        *,
        key: str,
        internal_id: str,
    ) -> None:
        self._owner = owner
        self.key = key
        self.internal_id = internal_id
        self._state = LiveViewState.PENDING
        self._subscribers: list[LiveViewSubscription] = []
        self._latest: PersonSnapshot | None = None
        self._person: Person | None = None
        self._listener: PresenceEventListener | None = None
        self._task: asyncio.Task[None] | None = None
        self._remote: _RemoteSubscription | None = None

    def __repr__(self) -> str:
        return (
            f"LiveView(key={self.key!r}, internal_id={self.internal_id!r}, "
            f"state={self._state.value}, subscribers={len(self._subscribers)})"
        )

    @property
    def state(self) -> LiveViewState:
        return self._state

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def latest(self) -> PersonSnapshot | None:
        """Most recently emitted snapshot, replayed to new subscribers."""
        return self._latest

    @property
    def person(self) -> Person | None:
        """Person captured by the initial fetch."""
        return self._person

    @property
    def subscribe_issued(self) -> bool:
        """Whether a presence subscribe call was started for this view's id."""
        return self._remote is not None and self._remote.subscribe_issued

    def subscribe(self) -> LiveViewSubscription:
        """Attach a new consumer.

        The latest snapshot, if any, is delivered immediately.

        Raises
        ------
        LiveViewClosedError
            If the view has been torn down. Request a new view instead.
        """
        if self._state is LiveViewState.TORN_DOWN:
            raise LiveViewClosedError(f"Live view for {self.key} has been torn down")

        sub = LiveViewSubscription(self)
        self._subscribers.append(sub)
        if self._latest is not None:
            sub._push(self._latest)

        if self._state is LiveViewState.PENDING:
            self._state = LiveViewState.ACTIVE
            self._start()
        return sub

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _start(self) -> None:
        _logger.debug("Live view start key=%s internal_id=%s", self.key, self.internal_id)
        # Listen before subscribing so no update sent after the ack is lost.
        self._listener = self._owner._events.listen()
        self._remote = self._owner._acquire_remote(self.internal_id)
        self._task = asyncio.get_running_loop().create_task(self._run(self._listener))

    async def _initial(self) -> tuple[Person, PersonStatus]:
        assert self._remote is not None
        # Fetch and subscribe run concurrently; neither depends on the other.
        fetch_task = asyncio.ensure_future(self._owner._fetcher.fetch(self.key))
        status_task = asyncio.ensure_future(self._remote.current_status())
        tasks = {fetch_task, status_task}
        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            # Both children finish before the view task does.
            await asyncio.wait(tasks)
            for task in tasks:
                _retrieve(task)
            raise

        return fetch_task.result(), status_task.result()

    async def _run(self, listener: PresenceEventListener) -> None:
        try:
            person, status = await self._initial()
        except Exception as exc:
            _logger.debug("Live view initial load failed key=%s", self.key, exc_info=True)
            self._fail(exc)
            return

        self._person = person
        self._emit(assemble_snapshot(person, status))

        async for event in listener:
            if event.subject != self.internal_id:
                continue
            status = map_status(event.status)
            if self._remote is not None:
                self._remote.status = status
            self._emit(assemble_snapshot(person, status))

        # The event source ended; nothing more can arrive for this view.
        if self._state is LiveViewState.ACTIVE:
            _logger.debug("Event source ended for live view key=%s", self.key)
            self._shutdown()

    def _emit(self, snapshot: PersonSnapshot) -> None:
        self._latest = snapshot
        for sub in list(self._subscribers):
            sub._push(snapshot)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _detach(self, sub: LiveViewSubscription) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            return
        if not self._subscribers and self._state is LiveViewState.ACTIVE:
            self._teardown()

    def _fail(self, error: BaseException) -> None:
        subscribers = list(self._subscribers)
        self._subscribers.clear()
        for sub in subscribers:
            sub._end(error)
        self._teardown()

    def _shutdown(self) -> None:
        """End every subscription and tear down regardless of the count."""
        subscribers = list(self._subscribers)
        self._subscribers.clear()
        for sub in subscribers:
            sub._end()
        if self._state is LiveViewState.PENDING:
            self._state = LiveViewState.TORN_DOWN
            self._owner._forget(self)
            return
        self._teardown()

    def _teardown(self) -> None:
        if self._state is LiveViewState.TORN_DOWN:
            return
        self._state = LiveViewState.TORN_DOWN
        _logger.debug("Live view teardown key=%s internal_id=%s", self.key, self.internal_id)

        if self._listener is not None:
            self._listener.close()
        task = self._task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
        self._owner._release(self)

    async def _wait_stopped(self) -> None:
        task = self._task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.wait({task})
        _retrieve(task)


class LiveViewMultiplexer:
    """Owner of the key → :class:`LiveView` table.

    Usage::

        async with LiveViewMultiplexer(fetcher, presence, hub) as mux:
            async with mux.watch(person_key) as sub:
                async for snapshot in sub:
                    print(snapshot.display_name, snapshot.status)
    """

    def __init__(
        self,
        fetcher: EntityFetcher,
        presence: PresenceClient,
        events: EventSource,
        *,
        resolve_key: KeyResolver = to_internal_id,
    ) -> None:
        self._fetcher = fetcher
        self._presence = presence
        self._events = events
        self._resolve_key = resolve_key
        self._views: dict[str, LiveView] = {}
        self._remotes: dict[str, _RemoteSubscription] = {}
        self._teardowns: dict[str, asyncio.Task[None]] = {}
        self._closed = False

    async def __aenter__(self) -> LiveViewMultiplexer:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    @property
    def active_keys(self) -> list[str]:
        return list(self._views)

    def get_live_view(self, key: str) -> LiveView:
        """Return the shared live view for *key*, creating it if needed.

        Subsequent calls return the same view until its last subscriber
        detaches; after that a fresh view (and remote subscription) is
        created.

        A view nobody subscribes to stays in the table as ``PENDING``
        without touching the remote service, and is dropped by
        :meth:`close`. Use :meth:`watch` to look up and subscribe in one
        step.
        """
        if self._closed:
            raise PeopleError("Live view multiplexer is closed")
        view = self._views.get(key)
        if view is None:
            view = LiveView(self, key=key, internal_id=self._resolve_key(key))
            self._views[key] = view
            _logger.debug("Live view created key=%s internal_id=%s", key, view.internal_id)
        return view

    def watch(self, key: str) -> LiveViewSubscription:
        """Subscribe to the live view for *key* in one step."""
        return self.get_live_view(key).subscribe()

    async def get_self_snapshot(self) -> PersonSnapshot:
        """Fetch the access-token bearer with a best-effort status.

        Presence failures degrade to ``unknown``; a failed person fetch
        propagates.
        """
        person = await self._fetcher.fetch(SELF_KEY)
        internal_id = self._resolve_key(person.id)
        raw: Any = None
        try:
            statuses = await self._presence.get([internal_id])
            raw = statuses.get(internal_id)
        except Exception:
            _logger.debug("Presence lookup failed for self; status degraded to unknown", exc_info=True)
        return assemble_snapshot(person, map_status(raw))

    async def close(self) -> None:
        """Tear down every view and wait for pending unsubscribes."""
        self._closed = True
        for view in list(self._views.values()):
            view._shutdown()
        self._views.clear()
        pending = [task for task in self._teardowns.values() if not task.done()]
        if pending:
            await asyncio.wait(pending)

    # ------------------------------------------------------------------
    # Internal lifecycle hooks used by LiveView
    # ------------------------------------------------------------------

    def _forget(self, view: LiveView) -> None:
        if self._views.get(view.key) is view:
            del self._views[view.key]

    def _acquire_remote(self, internal_id: str) -> _RemoteSubscription:
        remote = self._remotes.get(internal_id)
        if remote is None:
            remote = _RemoteSubscription(internal_id)
            remote.task = asyncio.get_running_loop().create_task(self._open_remote(remote))
            self._remotes[internal_id] = remote
        remote.refs += 1
        return remote

    async def _open_remote(self, remote: _RemoteSubscription) -> None:
        await self._settle_teardown(remote.internal_id)
        remote.subscribe_issued = True
        try:
            ack = await self._presence.subscribe(remote.internal_id)
            if not isinstance(ack, SubscriptionAck):
                ack = SubscriptionAck.model_validate(ack)
            remote.status = map_status(ack.first_status)
        except Exception:
            _logger.debug(
                "Presence subscribe failed for %s; status degraded to unknown",
                remote.internal_id,
                exc_info=True,
            )

    def _release(self, view: LiveView) -> None:
        self._forget(view)
        remote = view._remote
        closing: _RemoteSubscription | None = None
        if remote is not None:
            remote.refs -= 1
            if remote.refs == 0:
                if self._remotes.get(remote.internal_id) is remote:
                    del self._remotes[remote.internal_id]
                closing = remote
        previous = self._teardowns.get(view.internal_id)
        task = asyncio.get_running_loop().create_task(self._finish_teardown(view, closing, previous))
        self._teardowns[view.internal_id] = task
        task.add_done_callback(functools.partial(self._teardown_done, view.internal_id))

    def _teardown_done(self, internal_id: str, task: asyncio.Task[None]) -> None:
        if self._teardowns.get(internal_id) is task:
            del self._teardowns[internal_id]

    async def _finish_teardown(
        self,
        view: LiveView,
        remote: _RemoteSubscription | None,
        previous: asyncio.Task[None] | None,
    ) -> None:
        # Teardowns of one internal id complete in order.
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        await view._wait_stopped()
        # Other views of this id still hold the remote subscription.
        if remote is None or remote.task is None:
            return

        remote.task.cancel()
        # Let an in-flight subscribe settle before unsubscribing.
        await asyncio.wait({remote.task})
        _retrieve(remote.task)
        if not remote.subscribe_issued:
            return
        try:
            await self._presence.unsubscribe(remote.internal_id)
        except Exception:
            # Fails e.g. when the person has presence sharing turned off.
            _logger.debug("Presence unsubscribe failed for %s (ignored)", remote.internal_id, exc_info=True)

    async def _settle_teardown(self, internal_id: str) -> None:
        """Wait for a previous unsubscribe of *internal_id* to finish."""
        pending = self._teardowns.get(internal_id)
        if pending is not None and not pending.done():
            _logger.debug("Waiting for pending unsubscribe of %s", internal_id)
            await asyncio.wait({pending})
