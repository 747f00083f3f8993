"""Data models for people and presence payloads."""

from pylivepeople.models._base import PeopleBaseModel
from pylivepeople.models.person import Person, PersonSnapshot, assemble_snapshot
from pylivepeople.models.presence import PresenceEvent, SubscriptionAck, SubscriptionResponse
from pylivepeople.models.status import PersonStatus, map_status

__all__ = [
    "PeopleBaseModel",
    "Person",
    "PersonSnapshot",
    "PersonStatus",
    "PresenceEvent",
    "SubscriptionAck",
    "SubscriptionResponse",
    "assemble_snapshot",
    "map_status",
]
