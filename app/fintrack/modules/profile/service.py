from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.fintrack.audit import record_event
from app.fintrack.errors import ApiError, NotFound
from app.fintrack.utils import iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.models import User, UserSession


def serialize_user(user: "User") -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "image": user.image,
        "emailVerified": user.email_verified,
        "baseCurrency": user.base_currency,
        "country": user.country,
        "numberFormat": user.number_format,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


def update_profile(s: "Session", user: "User", payload: dict) -> dict[str, Any]:
    """
    Apply a partial profile update. Returns the changed fields (camelCase).
    firstName/lastName are joined into `name`.
    """
    changes: dict[str, Any] = {}

    first = payload.get("firstName")
    last = payload.get("lastName")
    if first or last:
        full_name = " ".join(p for p in (str(first or "").strip(), str(last or "").strip()) if p)
        if not full_name:
            raise ApiError("Name cannot be empty")
        user.name = full_name
        changes["name"] = full_name

    base_currency = payload.get("baseCurrency")
    if base_currency:
        user.base_currency = str(base_currency).strip().upper()
        changes["baseCurrency"] = user.base_currency

    country = payload.get("country")
    if country:
        user.country = str(country).strip()
        changes["country"] = user.country

    number_format = payload.get("numberFormat")
    if number_format is not None:
        if isinstance(number_format, bool) or not isinstance(number_format, int):
            raise ApiError("numberFormat must be an integer")
        user.number_format = number_format
        changes["numberFormat"] = number_format

    if not changes:
        raise ApiError("Nothing to update")

    user.updated_at = utcnow()
    changes["updatedAt"] = iso(user.updated_at)
    record_event(s, actor=user, action="profile.edit", entity_type="User", entity_id=user.id, metadata={"changes": changes})
    return changes


def describe_user_agent(user_agent: str | None) -> dict[str, str]:
    """Coarse device/browser/os detection for the sessions page."""
    ua = user_agent or ""

    device_type = "unknown"
    if "Mobile" in ua:
        device_type = "mobile"
    elif "Windows" in ua or "Mac" in ua or "Linux" in ua:
        device_type = "desktop"

    # Edge and Chrome both advertise "Chrome"/"Safari"; test the most specific token first.
    browser = "Unknown"
    if "Edg" in ua:
        browser = "Edge"
    elif "Chrome" in ua:
        browser = "Chrome"
    elif "Firefox" in ua:
        browser = "Firefox"
    elif "Safari" in ua:
        browser = "Safari"

    os_name = "Unknown"
    if "iPhone" in ua or "iPad" in ua or "iOS" in ua:
        os_name = "iOS"
    elif "Android" in ua:
        os_name = "Android"
    elif "Windows" in ua:
        os_name = "Windows"
    elif "Mac" in ua:
        os_name = "macOS"
    elif "Linux" in ua:
        os_name = "Linux"

    return {"deviceType": device_type, "browser": browser, "os": os_name}


def serialize_session(us: "UserSession", current_id: str | None) -> dict[str, Any]:
    return {
        "id": us.id,
        "createdAt": iso(us.created_at),
        "updatedAt": iso(us.updated_at),
        "expiresAt": iso(us.expires_at),
        "lastActive": iso(us.updated_at),
        "ipAddress": us.ip_address or "Unknown",
        "userAgent": us.user_agent,
        "isCurrent": us.id == current_id,
        **describe_user_agent(us.user_agent),
    }


def list_sessions(s: "Session", user: "User") -> list["UserSession"]:
    from app.fintrack.models import UserSession

    return (
        s.query(UserSession)
        .filter(UserSession.user_id == user.id)
        .order_by(UserSession.updated_at.desc())
        .all()
    )


def revoke_session(s: "Session", user: "User", session_id: str, current_id: str | None) -> None:
    from app.fintrack.models import UserSession

    us = (
        s.query(UserSession)
        .filter(UserSession.id == session_id, UserSession.user_id == user.id)
        .one_or_none()
    )
    if us is None:
        raise NotFound("Session not found")
    if us.id == current_id:
        raise ApiError("Cannot revoke your current session")
    s.delete(us)
    record_event(s, actor=user, action="session.revoke", entity_type="UserSession", entity_id=session_id)


def revoke_other_sessions(s: "Session", user: "User", current_id: str) -> int:
    from app.fintrack.models import UserSession

    revoked = (
        s.query(UserSession)
        .filter(UserSession.user_id == user.id, UserSession.id != current_id)
        .delete(synchronize_session=False)
    )
    record_event(
        s,
        actor=user,
        action="session.revoke_all",
        entity_type="User",
        entity_id=user.id,
        metadata={"revoked_count": revoked},
    )
    return revoked
