from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pylivepeople.client import PeopleClient
from pylivepeople.config import PeopleConfig
from pylivepeople.exceptions import PeopleError, PeopleTransportError
from pylivepeople.ids import build_key
from pylivepeople.models.presence import PresenceEvent
from pylivepeople.models.status import PersonStatus

PEOPLE = "https://people.test/v1"
PRESENCE = "https://presence.test/v1"


@dataclass
class FakeBackend:
    """In-memory people + presence services speaking the HTTP JSON shape."""

    people: dict[str, dict[str, Any]] = field(
        default_factory=lambda: {
            "me": {"id": "self-1", "displayName": "Me", "emails": ["me@example.com"]},
            "u1": {"id": "u1", "displayName": "A"},
        }
    )
    presence: dict[str, str] = field(default_factory=lambda: {"self-1": "active", "u1": "call"})
    calls: dict[str, int] = field(default_factory=dict)
    presence_down: bool = False

    def _record_call(self, key: str) -> None:
        self.calls[key] = self.calls.get(key, 0) + 1

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        if url.startswith(f"{PEOPLE}/people/"):
            self._record_call("GET people")
            key = url.rsplit("/", 1)[1]
            if key not in self.people:
                raise PeopleTransportError("HTTP 404", status_code=404, endpoint=url)
            return self.people[key]

        if url.startswith(PRESENCE) and self.presence_down:
            raise PeopleTransportError("HTTP 503", status_code=503, endpoint=url)

        if method == "POST" and url == f"{PRESENCE}/compositions":
            self._record_call("POST compositions")
            assert payload is not None
            return {"statusList": [{"subject": s, "status": self.presence.get(s)} for s in payload["subjects"]]}

        if method == "POST" and url == f"{PRESENCE}/subscriptions":
            self._record_call("POST subscriptions")
            assert payload is not None
            subject = payload["subject"]
            return {"responses": [{"subject": subject, "status": {"status": self.presence.get(subject)}}]}

        if method == "DELETE" and url.startswith(f"{PRESENCE}/subscriptions/"):
            self._record_call("DELETE subscriptions")
            return None

        raise AssertionError(f"Unexpected request in fake backend: {method} {url}")


@pytest.fixture
def config() -> PeopleConfig:
    return PeopleConfig(
        access_token="tok",
        people_url=PEOPLE,
        presence_url=PRESENCE,
        mqtt_enabled=False,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.mark.asyncio
async def test_one_shot_reads(config: PeopleConfig, backend: FakeBackend) -> None:
    async with PeopleClient(config, transport=backend) as client:
        me = await client.get_me()
        person = await client.get_person("u1")
        statuses = await client.get_presence(["u1", build_key("self-1")])
        snapshot = await client.get_self_snapshot()

    assert me.id == "self-1"
    assert person.display_name == "A"
    assert statuses == {"u1": "call", "self-1": "active"}
    assert snapshot.status is PersonStatus.ACTIVE
    assert snapshot.emails == ["me@example.com"]


@pytest.mark.asyncio
async def test_self_snapshot_survives_presence_outage(config: PeopleConfig, backend: FakeBackend) -> None:
    backend.presence_down = True
    async with PeopleClient(config, transport=backend) as client:
        snapshot = await client.get_self_snapshot()
    assert snapshot.id == "self-1"
    assert snapshot.status is PersonStatus.UNKNOWN


@pytest.mark.asyncio
async def test_live_view_end_to_end(config: PeopleConfig, backend: FakeBackend) -> None:
    seen: list[PresenceEvent] = []

    def _boom(event: PresenceEvent) -> None:
        seen.append(event)
        raise RuntimeError("callback failures are logged, not raised")

    async with PeopleClient(config, transport=backend, on_presence_event=_boom) as client:
        sub = client.watch("u1")
        assert client.live_view("u1") is sub.view

        initial = await asyncio.wait_for(anext(sub), 1.0)
        assert initial.status is PersonStatus.CALL

        client._on_presence_event(PresenceEvent(subject="u1", status="inactive"))  # noqa: SLF001
        update = await asyncio.wait_for(anext(sub), 1.0)
        assert update.status is PersonStatus.INACTIVE
        assert update.display_name == "A"
        assert len(seen) == 1

    assert backend.calls["POST subscriptions"] == 1
    assert backend.calls["DELETE subscriptions"] == 1
    assert backend.calls["GET people"] == 1
    with pytest.raises(StopAsyncIteration):
        await anext(sub)


@pytest.mark.asyncio
async def test_presence_outage_degrades_live_view(config: PeopleConfig, backend: FakeBackend) -> None:
    backend.presence_down = True
    async with PeopleClient(config, transport=backend) as client:
        async with client.watch("u1") as sub:
            snapshot = await asyncio.wait_for(anext(sub), 1.0)
    assert snapshot.status is PersonStatus.UNKNOWN
    assert snapshot.id == "u1"


@pytest.mark.asyncio
async def test_uninitialized_client_raises(config: PeopleConfig) -> None:
    client = PeopleClient(config)
    with pytest.raises(PeopleError):
        client.watch("u1")
    with pytest.raises(PeopleError):
        await client.get_me()


@pytest.mark.asyncio
async def test_mqtt_runtime_started_and_stopped(
    monkeypatch: pytest.MonkeyPatch,
    backend: FakeBackend,
) -> None:
    started: list[Any] = []

    def fake_mqtt_start(self: Any, bootstrap: Any) -> None:
        started.append(bootstrap)
        self._running = True

    def fake_mqtt_stop(self: Any) -> None:
        self._running = False

    monkeypatch.setattr("pylivepeople._mqtt.PresenceMqttRuntime.start", fake_mqtt_start)
    monkeypatch.setattr("pylivepeople._mqtt.PresenceMqttRuntime.stop", fake_mqtt_stop)

    config = PeopleConfig(
        access_token="tok",
        people_url=PEOPLE,
        presence_url=PRESENCE,
        mqtt_host="mqtt.test",
    )
    async with PeopleClient(config, transport=backend) as client:
        runtime = client._mqtt_runtime  # noqa: SLF001
        assert runtime is not None
        assert runtime.is_running
    assert started[0].broker_host == "mqtt.test"
    assert not runtime.is_running


@pytest.mark.asyncio
async def test_mqtt_start_failure_does_not_break_client(
    monkeypatch: pytest.MonkeyPatch,
    backend: FakeBackend,
) -> None:
    def failing_start(self: Any, _bootstrap: Any) -> None:
        raise OSError("broker unreachable")

    monkeypatch.setattr("pylivepeople._mqtt.PresenceMqttRuntime.start", failing_start)

    config = PeopleConfig(access_token="tok", people_url=PEOPLE, presence_url=PRESENCE, mqtt_host="mqtt.test")
    async with PeopleClient(config, transport=backend) as client:
        assert client._mqtt_runtime is None  # noqa: SLF001
        assert (await client.get_person("u1")).id == "u1"
