import time

import pytest
from jose import jwt

from app import auth

SECRET = "test-jwt-secret"


def token(email="owner@accent.test", secret=SECRET, **claims):
    payload = {"sub": "user-1", "email": email, "aud": "authenticated", "exp": int(time.time()) + 600}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def jwt_secret(monkeypatch):
    monkeypatch.setattr(auth, "SUPABASE_JWT_SECRET", SECRET)
    monkeypatch.setattr(auth, "ADMIN_EMAILS", ["owner@accent.test"])


def bearer(value):
    return {"Authorization": f"Bearer {value}"}


def test_admin_token_is_accepted(anonymous_client, jwt_secret):
    response = anonymous_client.get("/admin/events", headers=bearer(token()))
    assert response.status_code == 200


def test_email_outside_allow_list_is_forbidden(anonymous_client, jwt_secret):
    response = anonymous_client.get("/admin/events", headers=bearer(token(email="someone@else.com")))
    assert response.status_code == 403


def test_bad_tokens_are_rejected(anonymous_client, jwt_secret):
    assert anonymous_client.get("/admin/events", headers=bearer(token(secret="other"))).status_code == 401
    assert anonymous_client.get("/admin/events", headers=bearer(token(exp=int(time.time()) - 60))).status_code == 401
    assert anonymous_client.get("/admin/events", headers=bearer(token(sub=None))).status_code == 401


def test_any_signed_in_user_when_no_allow_list(anonymous_client, jwt_secret, monkeypatch):
    monkeypatch.setattr(auth, "ADMIN_EMAILS", [])
    response = anonymous_client.get("/admin/events", headers=bearer(token(email="crew@accent.test")))
    assert response.status_code == 200


def test_missing_secret_is_a_server_error(anonymous_client, monkeypatch):
    monkeypatch.setattr(auth, "SUPABASE_JWT_SECRET", None)
    assert anonymous_client.get("/admin/events", headers=bearer(token())).status_code == 500
