"""Test session token verification."""

from __future__ import annotations

from finsync.security.session import decode_session_token, issue_session_token


def test_round_trip_returns_owner():
    token = issue_session_token("user_9", secret="k")
    assert decode_session_token(token, secret="k") == "user_9"


def test_tampered_or_foreign_tokens_are_rejected():
    token = issue_session_token("user_9", secret="k")
    body, sig = token.split(".", 1)
    assert decode_session_token(token, secret="other") is None
    assert decode_session_token(f"{body}x.{sig}", secret="k") is None
    assert decode_session_token("garbage", secret="k") is None


def test_expired_token_is_rejected():
    token = issue_session_token("user_9", ttl_seconds=-1, secret="k")
    assert decode_session_token(token, secret="k") is None


def test_no_secret_means_no_sessions():
    token = issue_session_token("user_9", secret="k")
    assert decode_session_token(token, secret="") is None
