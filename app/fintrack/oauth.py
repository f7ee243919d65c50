from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any


class GoogleOAuthError(RuntimeError):
    pass


@dataclass(frozen=True)
class GoogleOAuthClient:
    client_id: str
    client_secret: str
    redirect_uri: str
    auth_url: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url: str = "https://oauth2.googleapis.com/token"
    userinfo_url: str = "https://openidconnect.googleapis.com/v1/userinfo"
    timeout_seconds: int = 30

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "access_type": "offline",
            "prompt": "select_account",
        }
        return self.auth_url + "?" + urllib.parse.urlencode(params)

    def _request_json(self, req: urllib.request.Request, what: str) -> dict[str, Any]:
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            try:
                body = e.read().decode("utf-8", errors="ignore")
            except Exception:
                body = ""
            raise GoogleOAuthError(f"HTTP {e.code} from Google ({what}): {body[:300]}") from e
        except urllib.error.URLError as e:
            raise GoogleOAuthError(f"Google {what} request failed: {e.reason}") from e
        try:
            data = json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise GoogleOAuthError(f"Invalid JSON from Google ({what})") from e
        if not isinstance(data, dict):
            raise GoogleOAuthError(f"Unexpected response from Google ({what})")
        return data

    def exchange_code(self, code: str) -> dict[str, Any]:
        body = urllib.parse.urlencode(
            {
                "code": code,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            }
        ).encode("utf-8")
        req = urllib.request.Request(self.token_url, data=body, method="POST")
        req.add_header("Content-Type", "application/x-www-form-urlencoded")
        tokens = self._request_json(req, "token exchange")
        if not tokens.get("access_token"):
            raise GoogleOAuthError("Google token response has no access_token")
        return tokens

    def fetch_userinfo(self, access_token: str) -> dict[str, Any]:
        req = urllib.request.Request(self.userinfo_url, method="GET")
        req.add_header("Authorization", f"Bearer {access_token}")
        info = self._request_json(req, "userinfo")
        if not info.get("sub") or not info.get("email"):
            raise GoogleOAuthError("Google userinfo is missing sub/email")
        return info


def google_client_from_config(config: dict, default_redirect_uri: str) -> GoogleOAuthClient:
    client_id = (config.get("GOOGLE_CLIENT_ID") or "").strip()
    client_secret = (config.get("GOOGLE_CLIENT_SECRET") or "").strip()
    if not client_id or not client_secret:
        raise GoogleOAuthError("Google sign-in is not configured")
    return GoogleOAuthClient(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=(config.get("GOOGLE_REDIRECT_URI") or "").strip() or default_redirect_uri,
    )
