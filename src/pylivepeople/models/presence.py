"""Presence service payload models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pylivepeople.models._base import PeopleBaseModel


class PresenceStatusValue(BaseModel):
    """Inner ``{"status": <raw>}`` wrapper."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    status: Any = None


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: str | None = None
    status: PresenceStatusValue = Field(default_factory=PresenceStatusValue)


class SubscriptionAck(PeopleBaseModel):
    """Acknowledgement of a presence subscribe call.

    Shape: ``{"responses": [{"status": {"status": "<raw>"}}]}``.
    """

    responses: list[SubscriptionResponse] = Field(default_factory=list)

    @property
    def first_status(self) -> Any:
        """Raw status of the first response, or ``None`` when absent."""
        if not self.responses:
            return None
        return self.responses[0].status.status


class PresenceEvent(BaseModel):
    """A presence-change notification from the push channel."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    subject: str
    """Internal id of the person whose presence changed."""
    status: Any = None
    """Raw status value, mapped by consumers."""
