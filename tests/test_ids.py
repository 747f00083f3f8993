from __future__ import annotations

import base64

from pylivepeople.ids import build_key, deconstruct_key, to_internal_id


def test_encoded_key_resolves_to_trailing_id() -> None:
    key = base64.b64encode(b"people://us/PEOPLE/7f0c1c3e-1111-2222-3333-444455556666").decode()
    assert to_internal_id(key) == "7f0c1c3e-1111-2222-3333-444455556666"


def test_unpadded_urlsafe_key_resolves() -> None:
    key = build_key("abc-123")
    assert "=" not in key
    assert to_internal_id(key) == "abc-123"
    assert deconstruct_key(key) == ("us", "PEOPLE", "abc-123")


def test_plain_ids_pass_through() -> None:
    assert to_internal_id("u1") == "u1"
    assert to_internal_id("  7f0c1c3e-1111  ") == "7f0c1c3e-1111"
    assert deconstruct_key("u1") is None


def test_encoded_text_without_uri_is_not_deconstructed() -> None:
    key = base64.urlsafe_b64encode(b"just some text").decode()
    assert deconstruct_key(key) is None
    assert to_internal_id(key) == key
