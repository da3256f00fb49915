import pathlib
import sys
from datetime import timedelta

import psycopg2
import pytest
from fastapi import HTTPException


ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import backend.main as backend_main


def test_get_optional_current_user_missing_cookie_returns_none():
    assert backend_main.get_optional_current_user(None) is None


def test_get_optional_current_user_invalid_token_returns_none():
    assert backend_main.get_optional_current_user("not-a-valid-token") is None


def test_get_optional_current_user_expired_token_returns_none(monkeypatch):
    expired_token = backend_main.create_access_token(
        subject="google-42", expires_delta=timedelta(minutes=-5)
    )

    def _unexpected_get_user_by_id(_uid: str):
        raise AssertionError("get_user_by_id should not be called for expired tokens")

    monkeypatch.setattr(backend_main, "get_user_by_id", _unexpected_get_user_by_id)

    assert backend_main.get_optional_current_user(expired_token) is None


def test_get_optional_current_user_valid_token_returns_user(monkeypatch):
    user = backend_main.UserOut(id="google-123", email="alice@example.com", name="Alice")

    monkeypatch.setattr(backend_main, "get_user_by_id", lambda uid: user if uid == "google-123" else None)

    token = backend_main.create_access_token(subject=user.id)

    result = backend_main.get_optional_current_user(token)

    assert result is user


def test_session_claims_stand_in_for_a_missing_user_row(monkeypatch):
    monkeypatch.setattr(backend_main, "get_user_by_id", lambda uid: None)
    token = backend_main.create_access_token(
        subject="google-7",
        claims={"email": "bob@example.com", "name": "Bob", "picture": "https://img.example.com/bob.png"},
    )

    user = backend_main.get_current_user(token)

    assert user.id == "google-7"
    assert user.email == "bob@example.com"
    assert user.image == "https://img.example.com/bob.png"


def test_user_lookup_failure_falls_back_to_claims(monkeypatch):
    def _broken_lookup(_uid: str):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(backend_main, "get_user_by_id", _broken_lookup)
    token = backend_main.create_access_token(subject="google-8", claims={"email": "carol@example.com"})

    assert backend_main.get_current_user(token).email == "carol@example.com"


def test_token_without_row_or_email_is_rejected(monkeypatch):
    monkeypatch.setattr(backend_main, "get_user_by_id", lambda uid: None)
    token = backend_main.create_access_token(subject="google-9")

    assert backend_main.get_optional_current_user(token) is None
    with pytest.raises(HTTPException) as exc:
        backend_main.get_current_user(token)
    assert exc.value.status_code == 401


def test_get_current_user_requires_cookie():
    with pytest.raises(HTTPException) as exc:
        backend_main.get_current_user(None)

    assert exc.value.status_code == 401


def test_upsert_user_failure_does_not_raise(monkeypatch):
    def _refuse():
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(backend_main, "get_conn", _refuse)

    backend_main.upsert_user(backend_main.UserOut(id="google-10", email="Dana@Example.com"))


def test_router_dependencies_resolve_through_app_context(monkeypatch):
    from backend.app.routes import invites as invite_routes
    from backend.app.routes import subscription as subscription_routes

    user = backend_main.UserOut(id="google-11", email="erin@example.com")
    monkeypatch.setattr(backend_main, "get_user_by_id", lambda uid: user if uid == user.id else None)
    token = backend_main.create_access_token(subject=user.id)

    assert invite_routes._get_current_user(session_token=token) is user
    assert subscription_routes._get_optional_current_user(session_token=None) is None
    with pytest.raises(HTTPException) as exc:
        invite_routes._get_current_user(session_token=None)
    assert exc.value.status_code == 401


def test_app_context_requires_registration(monkeypatch):
    from backend import app_context

    monkeypatch.setattr(app_context, "_hooks", {})

    with pytest.raises(RuntimeError):
        app_context.get_conn()
    with pytest.raises(RuntimeError):
        app_context.get_current_user("token")
