"""Custom exception hierarchy for pylivepeople."""

from __future__ import annotations


class PeopleError(Exception):
    """Base exception for all pylivepeople errors."""


class PeopleConfigError(PeopleError):
    """Invalid or missing configuration."""


class PeopleTransportError(PeopleError):
    """HTTP-level failure (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class PeopleFetchError(PeopleError):
    """Reading a person's base attributes failed.

    Covers transport failures, error responses and unknown keys.  This is
    the only failure a live view propagates to its consumers, because a
    view of the wrong person is not useful.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str = "",
        status_code: int | None = None,
    ) -> None:
        self.key = key
        self.status_code = status_code
        super().__init__(message)


class PresenceError(PeopleError):
    """Base for presence service failures."""

    def __init__(self, message: str, *, subject: str = "") -> None:
        self.subject = subject
        super().__init__(message)


class PresenceLookupError(PresenceError):
    """One-shot presence status lookup failed."""


class PresenceSubscribeError(PresenceError):
    """Presence subscription could not be established.

    Live views degrade this to an ``unknown`` status instead of failing.
    """


class PresenceUnsubscribeError(PresenceError):
    """Removing a presence subscription failed.

    Raised by the presence API; swallowed during live view teardown.
    Commonly seen when the user has presence sharing turned off.
    """


class LiveViewClosedError(PeopleError):
    """Subscribed to a live view that has already been torn down.

    Request a fresh view from the multiplexer instead.
    """
