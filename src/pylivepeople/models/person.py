"""Person entity and live snapshot models."""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from pylivepeople.models._base import PeopleBaseModel
from pylivepeople.models.status import PersonStatus, map_status


class Person(PeopleBaseModel):
    """Base attributes of a person as returned by the people service."""

    id: str
    """Stable person identifier (public key format)."""
    emails: list[str] = Field(default_factory=list)
    """Contact addresses."""
    display_name: str = ""
    """Full display name."""
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    """Avatar image URL."""
    org_id: str | None = None
    """Organization identifier."""

    @field_validator("emails", mode="before")
    @classmethod
    def _coerce_emails(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            return [value]
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item]


class PersonSnapshot(Person):
    """A person together with their current presence status."""

    status: PersonStatus = PersonStatus.UNKNOWN

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> PersonStatus:
        if isinstance(value, PersonStatus):
            return value
        return map_status(value)


def assemble_snapshot(person: Person, status: PersonStatus) -> PersonSnapshot:
    """Merge *person* with *status* into the outward-facing snapshot.

    The status field is always fully replaced; person fields are taken
    from the captured base entity as-is.
    """
    values = person.model_dump()
    values["status"] = status
    return PersonSnapshot.model_validate(values)
