"""pylivepeople - Async people lookups with shared live presence views."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylivepeople")
except PackageNotFoundError:
    __version__ = "0+local"
from pylivepeople.client import PeopleClient
from pylivepeople.config import PeopleConfig
from pylivepeople.events import EventSource, PresenceEventHub, PresenceEventListener, parse_presence_message
from pylivepeople.exceptions import (
    LiveViewClosedError,
    PeopleConfigError,
    PeopleError,
    PeopleFetchError,
    PeopleTransportError,
    PresenceError,
    PresenceLookupError,
    PresenceSubscribeError,
    PresenceUnsubscribeError,
)
from pylivepeople.ids import to_internal_id
from pylivepeople.live import (
    EntityFetcher,
    LiveView,
    LiveViewMultiplexer,
    LiveViewState,
    LiveViewSubscription,
    PresenceClient,
)
from pylivepeople.models import (
    Person,
    PersonSnapshot,
    PersonStatus,
    PresenceEvent,
    SubscriptionAck,
    assemble_snapshot,
    map_status,
)

__all__ = [
    "__version__",
    "EntityFetcher",
    "EventSource",
    "LiveView",
    "LiveViewClosedError",
    "LiveViewMultiplexer",
    "LiveViewState",
    "LiveViewSubscription",
    "PeopleClient",
    "PeopleConfig",
    "PeopleConfigError",
    "PeopleError",
    "PeopleFetchError",
    "PeopleTransportError",
    "Person",
    "PersonSnapshot",
    "PersonStatus",
    "PresenceClient",
    "PresenceError",
    "PresenceEvent",
    "PresenceEventHub",
    "PresenceEventListener",
    "PresenceLookupError",
    "PresenceSubscribeError",
    "PresenceUnsubscribeError",
    "SubscriptionAck",
    "assemble_snapshot",
    "map_status",
    "parse_presence_message",
    "to_internal_id",
]
