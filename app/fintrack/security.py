import secrets

from flask import Request, session

CSRF_HEADER = "X-CSRF-Token"


def ensure_csrf_token() -> str:
    """Return the session's CSRF token, issuing one if the session has none."""
    token = session.get("csrf_token")
    if not token:
        token = rotate_csrf_token()
    return token


def rotate_csrf_token() -> str:
    # Called whenever a new auth session is bound to the cookie.
    token = secrets.token_urlsafe(32)
    session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Check the X-CSRF-Token header (or `csrfToken` in a JSON body) against the session."""
    token = req.headers.get(CSRF_HEADER)
    if not token and req.is_json:
        body = req.get_json(silent=True)
        if isinstance(body, dict):
            token = body.get("csrfToken")
    expected = session.get("csrf_token") or ""
    return bool(token and expected and secrets.compare_digest(str(token), expected))
