from datetime import datetime, timedelta, timezone

import pytest
from factories import build_store
from fastapi import HTTPException

from apps.api.guildboard.auth_tokens import create_access_token, decode_access_token
from apps.api.guildboard.auth_utils import current_user, extract_bearer_token, require_role, resolve_user


def test_token_round_trip_carries_uid_and_email():
    token, expires_at = create_access_token(uid=" abc ", email="Boss@Example.com")
    payload = decode_access_token(token)
    assert payload["uid"] == "abc"
    assert payload["email"] == "boss@example.com"
    assert expires_at > datetime.now(timezone.utc)


def test_expired_token_is_rejected():
    token, _ = create_access_token(uid="abc", now=datetime.now(timezone.utc) - timedelta(hours=2))
    with pytest.raises(ValueError, match="expired"):
        decode_access_token(token)


def test_token_signed_with_other_secret_is_rejected():
    token, _ = create_access_token(uid="abc", secret="other")
    with pytest.raises(ValueError, match="signature"):
        decode_access_token(token)


@pytest.mark.parametrize("header", [None, "", "Token abc", "Bearer   "])
def test_extract_bearer_token_rejects_malformed_headers(header):
    assert extract_bearer_token(header) is None


def test_resolve_user_prefers_uid_field_then_document_id():
    store = build_store()
    store.set("users", "101", {"uid": "abc", "role": "admin"})
    store.set("users", "xyz", {"nickname": "plain"})

    admin = resolve_user({"uid": "abc", "email": "a@b.c"}, store)
    assert (admin.player_id, admin.role) == ("101", "admin")

    plain = resolve_user({"uid": "xyz"}, store)
    assert (plain.player_id, plain.role) == ("xyz", "user")

    stranger = resolve_user({"uid": "nobody"}, store)
    assert stranger.player_id is None


def test_current_user_requires_valid_bearer():
    store = build_store()
    with pytest.raises(HTTPException) as exc:
        current_user(authorization=None, store=store)
    assert exc.value.status_code == 401

    with pytest.raises(HTTPException) as exc:
        current_user(authorization="Bearer not.valid", store=store)
    assert exc.value.status_code == 401


def test_require_role_blocks_other_roles():
    store = build_store()
    store.set("users", "1", {"uid": "abc"})
    token, _ = create_access_token(uid="abc")
    user = current_user(authorization=f"Bearer {token}", store=store)

    with pytest.raises(HTTPException) as exc:
        require_role("admin")(user=user)
    assert exc.value.status_code == 403
    assert require_role("user")(user=user) is user
