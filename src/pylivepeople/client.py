"""High-level async client for people and live presence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

import aiohttp

from pylivepeople._api.people import PeopleApi
from pylivepeople._api.presence import PresenceApi
from pylivepeople._constants import SELF_KEY
from pylivepeople._mqtt import PresenceMqttRuntime, build_mqtt_bootstrap
from pylivepeople._transport import HttpTransport, Transport
from pylivepeople.config import PeopleConfig
from pylivepeople.events import PresenceEventHub
from pylivepeople.exceptions import PeopleError
from pylivepeople.ids import KeyResolver, to_internal_id
from pylivepeople.live import LiveView, LiveViewMultiplexer, LiveViewSubscription
from pylivepeople.models.person import Person, PersonSnapshot
from pylivepeople.models.presence import PresenceEvent

_logger = logging.getLogger(__name__)


class PeopleClient:
    """Async client for people lookups and live presence views.

    Usage::

        async with PeopleClient(config) as client:
            me = await client.get_self_snapshot()
            async with client.watch(person_key) as sub:
                async for snapshot in sub:
                    print(snapshot.display_name, snapshot.status)
    """

    def __init__(
        self,
        config: PeopleConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        event_hub: PresenceEventHub | None = None,
        resolve_key: KeyResolver = to_internal_id,
        on_presence_event: Callable[[PresenceEvent], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._injected_transport = transport
        self._transport: Transport | None = None
        self._hub = event_hub if event_hub is not None else PresenceEventHub()
        self._resolve_key = resolve_key
        self._on_presence_event_cb = on_presence_event
        self._mqtt_runtime: PresenceMqttRuntime | None = None
        self._people: PeopleApi | None = None
        self._presence: PresenceApi | None = None
        self._live: LiveViewMultiplexer | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PeopleClient:
        if self._injected_transport is not None:
            self._transport = self._injected_transport
        else:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        self._people = PeopleApi(self._config, self._transport)
        self._presence = PresenceApi(self._config, self._transport)
        self._live = LiveViewMultiplexer(
            self._people,
            self._presence,
            self._hub,
            resolve_key=self._resolve_key,
        )
        await self._ensure_mqtt_started()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._live is not None:
            await self._live.close()
            self._live = None
        self._stop_mqtt()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._people = None
        self._presence = None

    @property
    def event_hub(self) -> PresenceEventHub:
        """Hub that live views listen on; publish events here to inject them."""
        return self._hub

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_live(self) -> LiveViewMultiplexer:
        if self._live is None:
            raise PeopleError("Client not initialized. Use 'async with PeopleClient(...) as client:'")
        return self._live

    def _require_people(self) -> PeopleApi:
        if self._people is None:
            raise PeopleError("Client not initialized. Use 'async with PeopleClient(...) as client:'")
        return self._people

    def _require_presence(self) -> PresenceApi:
        if self._presence is None:
            raise PeopleError("Client not initialized. Use 'async with PeopleClient(...) as client:'")
        return self._presence

    # ------------------------------------------------------------------
    # MQTT
    # ------------------------------------------------------------------

    async def _ensure_mqtt_started(self) -> None:
        """Best-effort MQTT startup (failures must not break REST flow)."""
        if not self._config.mqtt_enabled:
            return
        if self._mqtt_runtime is not None and self._mqtt_runtime.is_running:
            return
        bootstrap = build_mqtt_bootstrap(self._config)
        if bootstrap is None:
            _logger.debug("MQTT enabled but no broker configured; push updates disabled")
            return
        loop = asyncio.get_running_loop()
        try:
            runtime = PresenceMqttRuntime(
                loop=loop,
                on_event=self._on_presence_event,
                keepalive=self._config.mqtt_keepalive,
                logger=_logger,
            )
            await loop.run_in_executor(None, runtime.start, bootstrap)
            self._mqtt_runtime = runtime
        except Exception:
            _logger.debug("MQTT startup failed", exc_info=True)

    def _stop_mqtt(self) -> None:
        runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if runtime is not None:
            runtime.stop()

    def _on_presence_event(self, event: PresenceEvent) -> None:
        """Handle a parsed push event (called on the loop via call_soon_threadsafe)."""
        if self._on_presence_event_cb is not None:
            try:
                self._on_presence_event_cb(event)
            except Exception:
                _logger.debug("on_presence_event callback failed", exc_info=True)
        self._hub.publish(event)

    # ------------------------------------------------------------------
    # One-shot reads
    # ------------------------------------------------------------------

    async def get_person(self, key: str) -> Person:
        """Fetch a person's base attributes."""
        return await self._require_people().fetch(key)

    async def get_me(self) -> Person:
        """Fetch the access token bearer."""
        return await self._require_people().fetch(SELF_KEY)

    async def get_presence(self, keys: Sequence[str]) -> dict[str, Any]:
        """Look up raw presence status for *keys*, keyed by presence id."""
        subjects = [self._resolve_key(key) for key in keys]
        return await self._require_presence().get(subjects)

    async def get_self_snapshot(self) -> PersonSnapshot:
        """Access token bearer with best-effort presence status."""
        return await self._require_live().get_self_snapshot()

    # ------------------------------------------------------------------
    # Live views
    # ------------------------------------------------------------------

    def live_view(self, key: str) -> LiveView:
        """Shared live view for *key*."""
        return self._require_live().get_live_view(key)

    def watch(self, key: str) -> LiveViewSubscription:
        """Subscribe to the shared live view for *key*."""
        return self._require_live().watch(key)
