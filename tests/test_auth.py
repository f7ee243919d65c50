from datetime import timedelta

import pytest
from werkzeug.security import generate_password_hash

import app.fintrack.auth as auth_module
from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import Base, OAuthAccount, User, UserSession
from app.fintrack.oauth import GoogleOAuthError
from app.fintrack.utils import utcnow


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        s.add(User(email="alice@example.com", password_hash=generate_password_hash("password1"), is_active=True))
        s.add(User(email="disabled@example.com", password_hash=generate_password_hash("password1"), is_active=False))
    _login_attempts.clear()
    return app


def _sign_in(client, email="alice@example.com", password="password1"):
    return client.post("/api/auth/sign-in", json={"email": email, "password": password})


def test_sign_up_creates_user_and_session(app):
    c = app.test_client()
    r = c.post("/api/auth/sign-up", json={"email": "New@Example.com", "password": "longenough", "name": "New"})
    assert r.status_code == 201
    assert r.json["user"]["email"] == "new@example.com"
    assert r.json["csrfToken"]

    r = c.get("/api/auth/session")
    assert r.status_code == 200
    assert r.json["user"]["name"] == "New"


def test_sign_up_rejects_duplicate_and_short_password(app):
    c = app.test_client()
    r = c.post("/api/auth/sign-up", json={"email": "alice@example.com", "password": "longenough"})
    assert r.status_code == 400

    r = c.post("/api/auth/sign-up", json={"email": "bad", "password": "short"})
    assert r.status_code == 400
    paths = {tuple(e["path"]) for e in r.json["error"]}
    assert paths == {("email",), ("password",)}


def test_sign_in_wrong_password_is_401(app):
    c = app.test_client()
    r = _sign_in(c, password="nope")
    assert r.status_code == 401
    assert r.json["error"] == "Invalid credentials"


def test_inactive_user_cannot_sign_in(app):
    r = _sign_in(app.test_client(), email="disabled@example.com")
    assert r.status_code == 401


def test_sign_in_rate_limited(app):
    c = app.test_client()
    for _ in range(5):
        assert _sign_in(c, password="nope").status_code == 401
    r = _sign_in(c)
    assert r.status_code == 429


def test_sign_out_ends_session(app):
    c = app.test_client()
    csrf = _sign_in(c).json["csrfToken"]
    r = c.post("/api/auth/sign-out", headers={"X-CSRF-Token": csrf})
    assert r.status_code == 200
    assert c.get("/api/auth/session").status_code == 401
    with session_scope(app) as s:
        assert s.query(UserSession).count() == 0


def test_mutation_without_csrf_token_is_rejected(app):
    c = app.test_client()
    _sign_in(c)
    r = c.post("/api/tags", json={"name": "food"})
    assert r.status_code == 400
    assert r.json["error"] == "CSRF token missing or invalid."


def test_expired_session_is_401(app):
    c = app.test_client()
    _sign_in(c)
    with session_scope(app) as s:
        for us in s.query(UserSession).all():
            us.expires_at = utcnow() - timedelta(minutes=1)
    assert c.get("/api/profile").status_code == 401


def test_stale_session_is_refreshed(app):
    c = app.test_client()
    _sign_in(c)
    stale = utcnow() - timedelta(hours=25)
    with session_scope(app) as s:
        us = s.query(UserSession).one()
        us.updated_at = stale
        us.expires_at = utcnow() + timedelta(hours=1)

    assert c.get("/api/profile").status_code == 200
    with session_scope(app) as s:
        us = s.query(UserSession).one()
        assert us.updated_at > stale
        assert us.expires_at > utcnow() + timedelta(days=6)


class _FakeGoogle:
    def __init__(self, profile=None, fail=False):
        self.profile = profile or {
            "sub": "google-123",
            "email": "gina@example.com",
            "email_verified": True,
            "name": "Gina",
        }
        self.fail = fail

    def authorization_url(self, state):
        return f"https://accounts.example.test/auth?state={state}"

    def exchange_code(self, code):
        if self.fail:
            raise GoogleOAuthError("HTTP 400 from Google (token exchange)")
        return {"access_token": "at", "refresh_token": "rt", "expires_in": 3600, "scope": "openid email"}

    def fetch_userinfo(self, access_token):
        return self.profile


def test_google_sign_in_redirects_with_state(app, monkeypatch):
    monkeypatch.setattr(auth_module, "google_client_from_config", lambda config, default: _FakeGoogle())
    c = app.test_client()
    r = c.get("/api/auth/sign-in/google")
    assert r.status_code == 302
    with c.session_transaction() as sess:
        state = sess["oauth_state"]
    assert f"state={state}" in r.headers["Location"]


def test_google_sign_in_not_configured(app):
    r = app.test_client().get("/api/auth/sign-in/google")
    assert r.status_code == 500
    assert r.json["error"] == "Google sign-in is not configured"


def test_google_callback_creates_user_and_sets_refresh_cookies(app, monkeypatch):
    monkeypatch.setattr(auth_module, "google_client_from_config", lambda config, default: _FakeGoogle())
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["oauth_state"] = "st-1"

    r = c.get("/api/auth/callback/google?code=abc&state=st-1")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/dashboard")
    cookies = r.headers.getlist("Set-Cookie")
    refresh = [h for h in cookies if h.startswith("auth_refresh_required=true")]
    stamp = [h for h in cookies if h.startswith("auth_timestamp=")]
    assert refresh and "Max-Age=60" in refresh[0]
    assert stamp and "Max-Age=60" in stamp[0]

    r = c.get("/api/auth/session")
    assert r.status_code == 200
    assert r.json["user"]["email"] == "gina@example.com"
    assert r.json["user"]["emailVerified"] is True

    with session_scope(app) as s:
        link = s.query(OAuthAccount).one()
        assert link.account_id == "google-123"
        assert link.refresh_token == "rt"


def test_google_callback_links_existing_email(app, monkeypatch):
    profile = {"sub": "g-alice", "email": "alice@example.com", "email_verified": True}
    monkeypatch.setattr(auth_module, "google_client_from_config", lambda config, default: _FakeGoogle(profile))
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["oauth_state"] = "st-2"
    r = c.get("/api/auth/callback/google?code=abc&state=st-2")
    assert r.status_code == 302

    with session_scope(app) as s:
        alice = s.query(User).filter(User.email == "alice@example.com").one()
        assert s.query(OAuthAccount).one().user_id == alice.id
        assert alice.email_verified is True


def test_google_callback_state_mismatch_redirects_to_login(app, monkeypatch):
    monkeypatch.setattr(auth_module, "google_client_from_config", lambda config, default: _FakeGoogle())
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["oauth_state"] = "expected"
    r = c.get("/api/auth/callback/google?code=abc&state=other")
    assert r.status_code == 302
    assert "/auth/login?error=" in r.headers["Location"]
    assert c.get("/api/auth/session").status_code == 401


def test_google_callback_provider_failure_redirects_to_login(app, monkeypatch):
    monkeypatch.setattr(auth_module, "google_client_from_config", lambda config, default: _FakeGoogle(fail=True))
    c = app.test_client()
    with c.session_transaction() as sess:
        sess["oauth_state"] = "st-3"
    r = c.get("/api/auth/callback/google?code=abc&state=st-3")
    assert r.status_code == 302
    assert "/auth/login?error=" in r.headers["Location"]
