"""Presence status enumeration and raw value mapping."""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class PersonStatus(StrEnum):
    """Closed set of presence states a person can be in.

    Raw values the presence service sends that have no mapped member
    resolve to ``UNKNOWN`` instead of raising ``ValueError``.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"
    DND = "dnd"
    OOO = "ooo"
    CALL = "call"
    MEETING = "meeting"
    PRESENTING = "presenting"
    BOT = "bot"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> PersonStatus:
        return cls.UNKNOWN


def map_status(raw: Any) -> PersonStatus:
    """Translate a raw presence value into a :class:`PersonStatus`.

    Exact, case-sensitive match against the enumeration values. Anything
    else, ``None`` and non-strings included, maps to ``UNKNOWN``.
    """
    if not isinstance(raw, str):
        return PersonStatus.UNKNOWN
    return PersonStatus(raw)
