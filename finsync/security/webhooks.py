"""Shared-secret and webhook signature validation helpers."""

from __future__ import annotations

import hashlib
import hmac

from fastapi import HTTPException, Request

from ..config import settings

NOTION_SIGNATURE_HEADER = "x-notion-signature"


def has_valid_sync_secret(request: Request) -> bool:
    """True when the internal sync header matches the configured secret."""
    secret = settings.effective_sync_secret
    if not secret:
        return False
    provided = request.headers.get(settings.sync_secret_header, "").strip()
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))


def notion_expected_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_notion_signature(request: Request, body: bytes) -> None:
    """Verify the Notion change-notification signature when one is sent.

    Only checked when both a secret is configured and the delivery is signed.
    """
    provided = request.headers.get(NOTION_SIGNATURE_HEADER, "").strip()
    secret = settings.notion_webhook_secret
    if not provided or not secret:
        return

    expected = notion_expected_signature(body, secret)
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid Notion signature")
