from __future__ import annotations

import secrets
import time
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, g, jsonify, redirect, request, session, url_for
from werkzeug.security import check_password_hash, generate_password_hash

from app.fintrack.audit import record_event
from app.fintrack.db import db_session
from app.fintrack.errors import ApiError, Unauthorized, ValidationFailed, json_body
from app.fintrack.models import OAuthAccount, User, UserSession
from app.fintrack.modules.profile.service import serialize_user
from app.fintrack.oauth import GoogleOAuthError, google_client_from_config
from app.fintrack.security import ensure_csrf_token, rotate_csrf_token
from app.fintrack.utils import EMAIL_RE, field_error, iso, utcnow

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 8
_REFRESH_COOKIE_MAX_AGE = 60  # seconds


def _check_rate_limit(ip: str) -> bool:
    now = utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def _session_ttl() -> timedelta:
    return timedelta(days=int(current_app.config.get("SESSION_TTL_DAYS") or 7))


def load_current_user() -> None:
    """
    Loads g.current_user / g.current_session from the session token in the signed cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.current_session = None
    if request.path.startswith(("/static/", "/health", "/healthz")):
        return

    token = session.get("session_token")
    if not token:
        return

    try:
        s = db_session()
        us = s.query(UserSession).filter(UserSession.token == token).one_or_none()
        now = utcnow()
        if not us or us.expires_at <= now:
            session.pop("session_token", None)
            return
        user = s.get(User, us.user_id)
        if not user or not user.is_active:
            session.pop("session_token", None)
            return
        update_age = timedelta(hours=int(current_app.config.get("SESSION_UPDATE_AGE_HOURS") or 24))
        if now - us.updated_at >= update_age:
            us.updated_at = now
            us.expires_at = now + _session_ttl()
            s.commit()
        g.current_user = user
        g.current_session = us
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("session_token", None)
        g.current_user = None
        g.current_session = None


def start_session(s, user: User) -> UserSession:
    """Create a session row for `user` and bind it to the signed cookie."""
    now = utcnow()
    us = UserSession(
        token=secrets.token_urlsafe(48),
        user_id=user.id,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        expires_at=now + _session_ttl(),
        created_at=now,
        updated_at=now,
    )
    s.add(us)
    s.flush()
    session["session_token"] = us.token
    rotate_csrf_token()
    return us


def _session_payload(user: User, us: UserSession) -> dict:
    return {
        "user": serialize_user(user),
        "session": {"id": us.id, "expiresAt": iso(us.expires_at)},
        "csrfToken": ensure_csrf_token(),
    }


@bp.post("/sign-up")
def sign_up():
    body = json_body()
    email = str(body.get("email") or "").strip().lower()
    password = body.get("password") or ""
    name = str(body.get("name") or "").strip() or None

    errors = []
    if not EMAIL_RE.match(email):
        errors.append(field_error("email", "Invalid email"))
    if not isinstance(password, str) or len(password) < _MIN_PASSWORD_LENGTH:
        errors.append(field_error("password", f"Password must be at least {_MIN_PASSWORD_LENGTH} characters"))
    if errors:
        raise ValidationFailed(errors)

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        raise ApiError("An account with this email already exists")

    user = User(email=email, password_hash=generate_password_hash(password), name=name)
    s.add(user)
    s.flush()
    us = start_session(s, user)
    record_event(s, actor=user, action="auth.sign_up", entity_type="User", entity_id=user.id)
    s.commit()
    return jsonify(_session_payload(user, us)), 201


@bp.post("/sign-in")
def sign_in():
    body = json_body()
    email = str(body.get("email") or "").strip().lower()
    password = body.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise ApiError("Too many login attempts. Please wait 5 minutes.", 429)

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if (
            not user
            or not user.is_active
            or not user.password_hash
            or not isinstance(password, str)
            or not check_password_hash(user.password_hash, password)
        ):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email},
            )
            s.commit()
            raise Unauthorized("Invalid credentials")

        us = start_session(s, user)
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id)
        s.commit()
        return jsonify(_session_payload(user, us))
    except Unauthorized:
        raise
    except Exception:
        current_app.logger.exception("Sign-in crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.post("/sign-out")
def sign_out():
    s = db_session()
    user = getattr(g, "current_user", None)
    us = getattr(g, "current_session", None)
    if user and us:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=user.id)
        s.delete(us)
        s.commit()
    session.pop("session_token", None)
    return jsonify({"success": True})


@bp.get("/session")
def get_session():
    user = getattr(g, "current_user", None)
    us = getattr(g, "current_session", None)
    if not user or not us:
        raise Unauthorized()
    return jsonify(_session_payload(user, us))


@bp.get("/sign-in/google")
def google_sign_in():
    try:
        client = google_client_from_config(current_app.config, url_for("auth.google_callback", _external=True))
    except GoogleOAuthError as e:
        current_app.logger.error("Google sign-in unavailable: %s", e)
        raise ApiError("Google sign-in is not configured", 500) from e
    state = secrets.token_urlsafe(24)
    session["oauth_state"] = state
    return redirect(client.authorization_url(state))


def _link_google_account(s, profile: dict, tokens: dict) -> User:
    """Find the user behind a Google profile, creating/linking as needed."""
    sub = str(profile["sub"])
    email = str(profile["email"]).strip().lower()
    now = utcnow()

    link = (
        s.query(OAuthAccount)
        .filter(OAuthAccount.provider_id == "google", OAuthAccount.account_id == sub)
        .one_or_none()
    )
    if link:
        user = s.get(User, link.user_id)
    else:
        user = s.query(User).filter(User.email == email).one_or_none()
        if user is None:
            user = User(
                email=email,
                name=profile.get("name"),
                image=profile.get("picture"),
                email_verified=bool(profile.get("email_verified")),
            )
            s.add(user)
            s.flush()
        link = OAuthAccount(provider_id="google", account_id=sub, user_id=user.id, created_at=now)
        s.add(link)

    if user is None or not user.is_active:
        raise GoogleOAuthError("Linked user is missing or inactive")

    link.access_token = tokens.get("access_token")
    link.refresh_token = tokens.get("refresh_token") or link.refresh_token
    link.id_token = tokens.get("id_token")
    link.scope = tokens.get("scope")
    expires_in = tokens.get("expires_in")
    link.access_token_expires_at = now + timedelta(seconds=int(expires_in)) if expires_in else None
    link.updated_at = now
    if profile.get("email_verified") and not user.email_verified:
        user.email_verified = True
    return user


@bp.get("/callback/google")
def google_callback():
    current_app.logger.info("Google OAuth callback (request_id=%s)", getattr(g, "request_id", None))
    s = db_session()
    try:
        if request.args.get("error"):
            raise GoogleOAuthError(f"Provider returned error: {request.args.get('error')}")
        expected_state = session.pop("oauth_state", None)
        state = request.args.get("state")
        if not expected_state or not state or not secrets.compare_digest(state, expected_state):
            raise GoogleOAuthError("OAuth state mismatch")
        code = (request.args.get("code") or "").strip()
        if not code:
            raise GoogleOAuthError("Missing authorization code")

        client = google_client_from_config(current_app.config, url_for("auth.google_callback", _external=True))
        tokens = client.exchange_code(code)
        profile = client.fetch_userinfo(tokens["access_token"])
        user = _link_google_account(s, profile, tokens)
        start_session(s, user)
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=user.id, metadata={"provider": "google"})
        s.commit()
    except GoogleOAuthError as e:
        s.rollback()
        current_app.logger.warning("Google OAuth callback failed: %s", e)
        return redirect("/auth/login?error=Authentication+failed")

    resp = redirect("/dashboard")
    secure = bool(current_app.config.get("SESSION_COOKIE_SECURE"))
    # Short-lived markers telling the client to refresh its auth state.
    resp.set_cookie(
        "auth_refresh_required",
        "true",
        max_age=_REFRESH_COOKIE_MAX_AGE,
        path="/",
        samesite="Lax",
        secure=secure,
        httponly=False,
    )
    resp.set_cookie(
        "auth_timestamp",
        str(int(time.time() * 1000)),
        max_age=_REFRESH_COOKIE_MAX_AGE,
        path="/",
        samesite="Lax",
        secure=secure,
        httponly=False,
    )
    return resp
