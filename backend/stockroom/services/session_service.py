# Overview: Service-layer operations for bearer sessions.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes, hex encoded)
- Only the SHA-256 of a token is stored
- Absolute lifetime of SESSION_TTL_HOURS
- Revocable on logout
"""
from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError
from ..models import SessionToken, User
from ..time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """SHA-256 is sufficient: tokens are already high-entropy."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _session_ttl() -> timedelta:
    return timedelta(hours=int(current_app.config.get("SESSION_TTL_HOURS", 24)))


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a session for user_id.

    Returns (session_record, plaintext_token). The client receives the
    plaintext token; the database stores only its hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("user", user_id)

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + _session_ttl(),
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Return the session's user if the token is valid, else None.

    Invalid means unknown, revoked, expired, or owned by a deactivated user.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return None

    if session.expires_at < utcnow():
        return None

    user = session.user
    if not user or not user.is_active:
        return None

    return user


def revoke_session(token: str) -> bool:
    """Revoke a session. Returns False if the token is unknown or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
