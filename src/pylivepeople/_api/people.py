"""People endpoint: GET /people/{key}."""

from __future__ import annotations

import logging
from urllib.parse import quote

from pydantic import ValidationError

from pylivepeople._transport import Transport
from pylivepeople.config import PeopleConfig
from pylivepeople.exceptions import PeopleFetchError, PeopleTransportError
from pylivepeople.models.person import Person

_logger = logging.getLogger(__name__)


def person_url(config: PeopleConfig, key: str) -> str:
    return f"{config.people_url.rstrip('/')}/people/{quote(key, safe='')}"


async def fetch_person(
    config: PeopleConfig,
    transport: Transport,
    key: str,
) -> Person:
    """Read the base attributes of the person identified by *key*.

    Raises
    ------
    PeopleFetchError
        If the request failed, the person does not exist, or the
        response could not be parsed.
    """
    url = person_url(config, key)
    try:
        data = await transport.request_json("GET", url)
    except PeopleTransportError as exc:
        if exc.status_code == 404:
            raise PeopleFetchError(f"Person {key} not found", key=key, status_code=404) from exc
        raise PeopleFetchError(
            f"Fetching person {key} failed: {exc}",
            key=key,
            status_code=exc.status_code,
        ) from exc

    if not isinstance(data, dict) or not data:
        raise PeopleFetchError(f"Person {key} not found", key=key)

    try:
        person = Person.model_validate(data)
    except ValidationError as exc:
        raise PeopleFetchError(f"Invalid person payload for {key}: {exc}", key=key) from exc

    _logger.debug("Fetched person key=%s id=%s", key, person.id)
    return person


class PeopleApi:
    """Entity fetcher backed by the people service."""

    def __init__(self, config: PeopleConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def fetch(self, key: str) -> Person:
        return await fetch_person(self._config, self._transport, key)
