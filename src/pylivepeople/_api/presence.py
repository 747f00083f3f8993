"""Presence endpoints: status lookup and subscription handshake.

- ``POST /compositions``          one-shot status lookup for several ids
- ``POST /subscriptions``         subscribe to push updates for one id
- ``DELETE /subscriptions/{id}``  drop that subscription again
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from pylivepeople._transport import Transport
from pylivepeople.config import PeopleConfig
from pylivepeople.exceptions import (
    PeopleTransportError,
    PresenceLookupError,
    PresenceSubscribeError,
    PresenceUnsubscribeError,
)
from pylivepeople.models.presence import SubscriptionAck

_logger = logging.getLogger(__name__)


def _base(config: PeopleConfig) -> str:
    return config.presence_url.rstrip("/")


def parse_status_list(data: Any) -> dict[str, Any]:
    """Map ``{"statusList": [{"subject": .., "status": ..}]}`` to ``{subject: status}``."""
    if not isinstance(data, dict):
        return {}
    entries = data.get("statusList")
    if not isinstance(entries, list):
        return {}
    statuses: dict[str, Any] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        subject = entry.get("subject")
        if isinstance(subject, str) and subject:
            statuses[subject] = entry.get("status")
    return statuses


async def get_statuses(
    config: PeopleConfig,
    transport: Transport,
    subjects: Sequence[str],
) -> dict[str, Any]:
    """Look up the current raw status of each subject."""
    url = f"{_base(config)}/compositions"
    try:
        data = await transport.request_json("POST", url, payload={"subjects": list(subjects)})
    except PeopleTransportError as exc:
        raise PresenceLookupError(
            f"Presence lookup failed: {exc}",
            subject=",".join(subjects),
        ) from exc
    return parse_status_list(data)


async def subscribe(
    config: PeopleConfig,
    transport: Transport,
    subject: str,
) -> SubscriptionAck:
    """Subscribe to presence updates for *subject*."""
    url = f"{_base(config)}/subscriptions"
    try:
        data = await transport.request_json("POST", url, payload={"subject": subject})
    except PeopleTransportError as exc:
        raise PresenceSubscribeError(f"Subscribe to {subject} failed: {exc}", subject=subject) from exc

    try:
        ack = SubscriptionAck.model_validate(data if isinstance(data, dict) else {})
    except ValidationError as exc:
        raise PresenceSubscribeError(f"Invalid subscription ack for {subject}: {exc}", subject=subject) from exc

    _logger.debug("Presence subscribed subject=%s responses=%d", subject, len(ack.responses))
    return ack


async def unsubscribe(
    config: PeopleConfig,
    transport: Transport,
    subject: str,
) -> None:
    """Drop the presence subscription for *subject*."""
    url = f"{_base(config)}/subscriptions/{quote(subject, safe='')}"
    try:
        await transport.request_json("DELETE", url)
    except PeopleTransportError as exc:
        raise PresenceUnsubscribeError(f"Unsubscribe from {subject} failed: {exc}", subject=subject) from exc
    _logger.debug("Presence unsubscribed subject=%s", subject)


class PresenceApi:
    """Presence client backed by the presence service."""

    def __init__(self, config: PeopleConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport

    async def get(self, subjects: Sequence[str]) -> dict[str, Any]:
        return await get_statuses(self._config, self._transport, subjects)

    async def subscribe(self, subject: str) -> SubscriptionAck:
        return await subscribe(self._config, self._transport, subject)

    async def unsubscribe(self, subject: str) -> None:
        await unsubscribe(self._config, self._transport, subject)
