"""Public key ↔ presence id resolution.

Public person keys are opaque, base64-encoded URIs of the form
``<scheme>://<cluster>/PEOPLE/<uuid>``.  The presence service and its push
events address people by the bare ``<uuid>`` instead.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable

KeyResolver = Callable[[str], str]
"""Pure, synchronous mapping from a public key to a presence id."""


def _b64decode(value: str) -> str | None:
    padded = value + "=" * (-len(value) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None
    try:
        return decoded.decode("utf-8")
    except UnicodeDecodeError:
        return None


def deconstruct_key(key: str) -> tuple[str, str, str] | None:
    """Split an opaque key into ``(cluster, type, id)``.

    Returns ``None`` when *key* is not an encoded ``scheme://...`` URI.
    """
    text = _b64decode(key.strip())
    if text is None or "://" not in text:
        return None
    _, _, path = text.partition("://")
    parts = [part for part in path.split("/") if part]
    if len(parts) < 3:
        return None
    cluster = "/".join(parts[:-2])
    return cluster, parts[-2], parts[-1]


def to_internal_id(key: str) -> str:
    """Resolve the presence id for a public person key.

    Keys that are not encoded URIs are assumed to already be presence ids
    and are returned stripped but otherwise unchanged.
    """
    parts = deconstruct_key(key)
    if parts is None:
        return key.strip()
    return parts[2]


def build_key(internal_id: str, *, cluster: str = "us", kind: str = "PEOPLE", scheme: str = "people") -> str:
    """Encode a presence id back into the public key format."""
    uri = f"{scheme}://{cluster}/{kind}/{internal_id}"
    return base64.urlsafe_b64encode(uri.encode("utf-8")).decode("ascii").rstrip("=")
