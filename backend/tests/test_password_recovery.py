# backend/tests/test_password_recovery.py
from __future__ import annotations

import re
from datetime import datetime, timedelta

import pytest

from conftest import make_user
from crossborder.api.v1 import password_recovery as pwdrec
from crossborder.core.config import settings
from crossborder.core.rate_limit import login_attempts
from crossborder.core.security import hash_token, verify_password
from crossborder.models import PasswordResetToken, User
from crossborder.services.formatting import as_aware_utc


def _extract_reset_link(text: str) -> str:
    m = re.search(r"(https?://[^\s]+)", text)
    assert m, f"Could not find a reset link in email body:\n{text}"
    return m.group(1)


@pytest.fixture()
def sent(monkeypatch):
    """Capture outgoing mail instead of calling a real provider."""
    box = {"to": None, "subject": None, "text": None, "html": None}

    def _fake_send_email(*, to_email: str, subject: str, text_body: str, html_body=None):
        box["to"] = to_email
        box["subject"] = subject
        box["text"] = text_body
        box["html"] = html_body

    monkeypatch.setattr(pwdrec, "send_email", _fake_send_email)
    return box


def _store_token(db, user: User, raw: str, expires_at: datetime) -> None:
    db.add(
        PasswordResetToken(
            user_id=user.id,
            email=user.email,
            token_hash=hash_token(raw),
            expires_at=expires_at,
            used_at=None,
            request_ip="127.0.0.1",
            user_agent="pytest",
        )
    )
    db.commit()


def test_forgot_password_uses_frontend_url_in_email_link(client, db, sent, monkeypatch):
    monkeypatch.setattr(settings, "frontend_url", "https://crossborder.example.com", raising=False)
    make_user(db, "user@example.com")

    r = client.post("/api/v1/auth/password/forgot", json={"email": "User@Example.com"})
    assert r.status_code == 200, r.text
    assert r.json()["detail"] == "If the email exists, a password reset link has been sent."
    assert sent["to"] == "user@example.com"
    assert sent["subject"] == "Reset your CrossBorder password"

    link = _extract_reset_link(sent["text"])
    assert link.startswith("https://crossborder.example.com/reset-password?token=cb_pwd_"), link


def test_forgot_password_for_unknown_email_sends_nothing(client, sent):
    r = client.post("/api/v1/auth/password/forgot", json={"email": "ghost@example.com"})
    assert r.status_code == 200
    assert r.json()["detail"] == "If the email exists, a password reset link has been sent."
    assert sent["to"] is None


def test_reset_link_is_only_echoed_in_dev_with_debug(client, db, sent, monkeypatch):
    make_user(db, "user@example.com")
    url = "/api/v1/auth/password/forgot"

    by_default = client.post(url, json={"email": "user@example.com"})
    assert by_default.status_code == 200
    assert by_default.json().get("debug_reset_link") is None

    monkeypatch.setattr(settings, "debug", True, raising=False)
    monkeypatch.setattr(settings, "environment", "staging", raising=False)
    staging = client.post(url, json={"email": "user@example.com"})
    assert staging.json().get("debug_reset_link") is None

    monkeypatch.setattr(settings, "environment", "dev", raising=False)
    dev = client.post(url, json={"email": "user@example.com"})
    assert dev.json()["debug_reset_link"] == _extract_reset_link(sent["text"])


def test_reset_password_accepts_naive_expires_at_and_does_not_500(client, db, SessionLocal):
    """
    Regression: avoid 'can't compare offset-naive and offset-aware datetimes'.
    expires_at is stored NAIVE and reset must still work.
    """
    user = make_user(db, "naive@example.com")
    raw_token = pwdrec.RESET_TOKEN_PREFIX + "testtoken_naive_expires"
    _store_token(db, user, raw_token, datetime.utcnow() + timedelta(minutes=10))

    login_attempts.register_failure("naive@example.com")

    r = client.post("/api/v1/auth/password/reset", json={"token": raw_token, "new_password": "NewPassw0rd"})
    assert r.status_code == 200, r.text
    assert r.json()["detail"] == "Password updated. You can now sign in."

    check = SessionLocal()
    try:
        rec = check.query(PasswordResetToken).filter(PasswordResetToken.token_hash == hash_token(raw_token)).first()
        used = as_aware_utc(rec.used_at)
        assert used is not None
        assert used.tzinfo is not None

        fresh = check.query(User).filter(User.email == "naive@example.com").first()
        assert verify_password("NewPassw0rd", fresh.hashed_password)
    finally:
        check.close()

    # a fresh password clears earlier failures
    assert login_attempts.remaining_lockout("naive@example.com") == 0

    again = client.post("/api/v1/auth/password/reset", json={"token": raw_token, "new_password": "NewPassw0rd"})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "TOKEN_USED"


def test_reset_password_rejects_expired_token_even_if_naive(client, db):
    user = make_user(db, "expired@example.com")
    raw_token = pwdrec.RESET_TOKEN_PREFIX + "testtoken_expired_naive"
    _store_token(db, user, raw_token, datetime.utcnow() - timedelta(minutes=5))

    r = client.post("/api/v1/auth/password/reset", json={"token": raw_token, "new_password": "NewPassw0rd"})
    assert r.status_code == 410, r.text
    assert r.json()["detail"]["code"] == "TOKEN_EXPIRED"


def test_reset_password_rejects_weak_password_and_foreign_tokens(client):
    weak = client.post(
        "/api/v1/auth/password/reset",
        json={"token": pwdrec.RESET_TOKEN_PREFIX + "whatever", "new_password": "short"},
    )
    assert weak.status_code == 400
    assert weak.json()["detail"]["code"] == "WEAK_PASSWORD"

    foreign = client.post("/api/v1/auth/password/reset", json={"token": "abc", "new_password": "NewPassw0rd"})
    assert foreign.status_code == 400
    assert foreign.json()["detail"]["code"] == "BAD_TOKEN"
