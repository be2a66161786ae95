"""Verification of interactive session tokens issued by the auth service.

Tokens are `<b64url(json payload)>.<hex hmac-sha256(body)>` with `sub` (the
owner id) and `exp` (unix seconds). They arrive as a cookie or a Bearer
header. This service never issues tokens outside of tests.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time

from fastapi import HTTPException, Request

from ..config import settings


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - (len(data) % 4)) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("utf-8"))


def _sign(secret: str, body: str) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def issue_session_token(owner_id: str, *, ttl_seconds: int = 3600, secret: str | None = None) -> str:
    secret = (secret if secret is not None else settings.session_secret).strip()
    if not secret:
        raise RuntimeError("session_secret is required to issue tokens")
    now = int(time.time())
    payload = {"sub": owner_id, "iat": now, "exp": now + ttl_seconds}
    body = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    return f"{body}.{_sign(secret, body)}"


def decode_session_token(token: str, *, secret: str | None = None) -> str | None:
    """Return the owner id carried by a valid, unexpired token."""
    secret = (secret if secret is not None else settings.session_secret).strip()
    if not secret or not token:
        return None

    try:
        body, provided_sig = token.split(".", 1)
    except ValueError:
        return None

    if not hmac.compare_digest(provided_sig, _sign(secret, body)):
        return None

    try:
        payload = json.loads(_b64url_decode(body))
    except (ValueError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None

    exp = payload.get("exp")
    sub = payload.get("sub")
    if not isinstance(exp, int) or exp <= int(time.time()):
        return None
    if not isinstance(sub, str) or not sub.strip():
        return None
    return sub.strip()


def _extract_token(request: Request) -> str:
    cookie_token = request.cookies.get(settings.session_cookie_name, "")
    if cookie_token:
        return cookie_token

    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return ""


def session_owner_id(request: Request) -> str | None:
    return decode_session_token(_extract_token(request))


def current_owner_id(request: Request) -> str:
    """FastAPI dependency for routes that require an interactive session."""
    owner_id = session_owner_id(request)
    if not owner_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return owner_id
