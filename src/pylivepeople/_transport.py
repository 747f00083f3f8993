"""HTTP transport for the people and presence services."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pylivepeople._constants import USER_AGENT
from pylivepeople._redact import redact_for_log
from pylivepeople.config import PeopleConfig
from pylivepeople.exceptions import PeopleTransportError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles/mocks while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        ...


class HttpTransport:
    """Bearer-authenticated JSON transport on top of an aiohttp session."""

    def __init__(
        self,
        config: PeopleConfig,
        http_session: aiohttp.ClientSession,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _headers(self) -> dict[str, str]:
        return {
            "accept": "application/json",
            "authorization": f"Bearer {self._config.access_token}",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        payload: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send a JSON request and return the decoded JSON body.

        Empty bodies (e.g. ``204 No Content``) decode to ``None``.
        Non-2xx responses raise :class:`PeopleTransportError` carrying the
        status code so endpoint modules can map them to domain errors.
        """
        body = json.dumps(payload, separators=(",", ":")) if payload is not None else None

        _logger.debug("%s %s", method, url)
        if self._config.api_trace_enabled and payload is not None:
            _logger.debug("Request body %s %s", url, redact_for_log(dict(payload)))

        try:
            async with self._http.request(
                method,
                url,
                data=body,
                headers=self._headers(),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if not 200 <= resp.status < 300:
                    raise PeopleTransportError(
                        f"HTTP {resp.status} from {method} {url}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=url,
                    )
        except PeopleTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise PeopleTransportError(
                f"Request to {url} failed: {exc}",
                endpoint=url,
            ) from exc

        if not text.strip():
            return None

        try:
            result = json.loads(text)
        except json.JSONDecodeError as exc:
            raise PeopleTransportError(
                f"Invalid JSON from {url}: {text[:200]}",
                endpoint=url,
            ) from exc

        if self._config.api_trace_enabled:
            _logger.debug("Response body %s %s", url, redact_for_log(result))
        return result
