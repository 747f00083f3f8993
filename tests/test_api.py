from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pylivepeople._api.people import PeopleApi, fetch_person
from pylivepeople._api.presence import PresenceApi, parse_status_list
from pylivepeople.config import PeopleConfig
from pylivepeople.exceptions import (
    PeopleFetchError,
    PeopleTransportError,
    PresenceLookupError,
    PresenceSubscribeError,
    PresenceUnsubscribeError,
)


@dataclass
class FakeTransport:
    responses: dict[tuple[str, str], Any] = field(default_factory=dict)
    calls: list[tuple[str, str, Mapping[str, Any] | None]] = field(default_factory=list)

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        self.calls.append((method, url, payload))
        result = self.responses.get((method, url))
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def config() -> PeopleConfig:
    return PeopleConfig(
        access_token="tok",
        people_url="https://people.test/v1/",
        presence_url="https://presence.test/v1",
        mqtt_enabled=False,
    )


@pytest.mark.asyncio
async def test_fetch_person_parses_payload(config: PeopleConfig) -> None:
    transport = FakeTransport(
        responses={
            ("GET", "https://people.test/v1/people/u1"): {"id": "u1", "displayName": "A", "orgId": "org-1"},
        }
    )
    person = await PeopleApi(config, transport).fetch("u1")

    assert person.id == "u1"
    assert person.display_name == "A"
    assert person.org_id == "org-1"


@pytest.mark.asyncio
async def test_fetch_person_quotes_key(config: PeopleConfig) -> None:
    transport = FakeTransport(responses={("GET", "https://people.test/v1/people/a%2Fb%3D"): {"id": "x"}})
    await fetch_person(config, transport, "a/b=")
    assert transport.calls[0][1] == "https://people.test/v1/people/a%2Fb%3D"


@pytest.mark.asyncio
async def test_fetch_person_not_found(config: PeopleConfig) -> None:
    transport = FakeTransport(
        responses={
            ("GET", "https://people.test/v1/people/nope"): PeopleTransportError("HTTP 404", status_code=404),
        }
    )
    with pytest.raises(PeopleFetchError) as excinfo:
        await fetch_person(config, transport, "nope")
    assert excinfo.value.status_code == 404
    assert excinfo.value.key == "nope"


@pytest.mark.asyncio
async def test_fetch_person_transport_failure_and_empty_body(config: PeopleConfig) -> None:
    transport = FakeTransport(
        responses={
            ("GET", "https://people.test/v1/people/down"): PeopleTransportError("boom", status_code=503),
            ("GET", "https://people.test/v1/people/empty"): None,
            ("GET", "https://people.test/v1/people/bad"): {"displayName": "no id"},
        }
    )
    with pytest.raises(PeopleFetchError) as excinfo:
        await fetch_person(config, transport, "down")
    assert excinfo.value.status_code == 503
    with pytest.raises(PeopleFetchError):
        await fetch_person(config, transport, "empty")
    with pytest.raises(PeopleFetchError):
        await fetch_person(config, transport, "bad")


@pytest.mark.asyncio
async def test_presence_subscribe_and_unsubscribe(config: PeopleConfig) -> None:
    transport = FakeTransport(
        responses={
            ("POST", "https://presence.test/v1/subscriptions"): {
                "responses": [{"subject": "u1", "status": {"status": "active"}}]
            },
            ("DELETE", "https://presence.test/v1/subscriptions/u1"): None,
        }
    )
    api = PresenceApi(config, transport)

    ack = await api.subscribe("u1")
    await api.unsubscribe("u1")

    assert ack.first_status == "active"
    assert transport.calls == [
        ("POST", "https://presence.test/v1/subscriptions", {"subject": "u1"}),
        ("DELETE", "https://presence.test/v1/subscriptions/u1", None),
    ]


@pytest.mark.asyncio
async def test_presence_failures_map_to_presence_errors(config: PeopleConfig) -> None:
    failure = PeopleTransportError("HTTP 403", status_code=403)
    transport = FakeTransport(
        responses={
            ("POST", "https://presence.test/v1/subscriptions"): failure,
            ("DELETE", "https://presence.test/v1/subscriptions/u1"): failure,
            ("POST", "https://presence.test/v1/compositions"): failure,
        }
    )
    api = PresenceApi(config, transport)

    with pytest.raises(PresenceSubscribeError) as sub_info:
        await api.subscribe("u1")
    assert sub_info.value.subject == "u1"
    with pytest.raises(PresenceUnsubscribeError):
        await api.unsubscribe("u1")
    with pytest.raises(PresenceLookupError):
        await api.get(["u1"])


@pytest.mark.asyncio
async def test_presence_get_returns_status_by_subject(config: PeopleConfig) -> None:
    transport = FakeTransport(
        responses={
            ("POST", "https://presence.test/v1/compositions"): {
                "statusList": [{"subject": "u1", "status": "dnd"}, {"subject": "u2"}],
            },
        }
    )
    statuses = await PresenceApi(config, transport).get(["u1", "u2"])

    assert statuses == {"u1": "dnd", "u2": None}
    assert transport.calls[0][2] == {"subjects": ["u1", "u2"]}


def test_parse_status_list_skips_malformed_entries() -> None:
    assert parse_status_list(None) == {}
    assert parse_status_list({"statusList": "nope"}) == {}
    assert parse_status_list({"statusList": [1, {"status": "x"}, {"subject": "", "status": "y"}]}) == {}
