# Overview: Service-layer operations for operator accounts and password checks.

"""
Authentication Service

Operators sign in with username (or email) and password. Passwords are
hashed with bcrypt; the plaintext is never stored or logged.

SECURITY NOTES:
- bcrypt cost factor 12
- Minimum 8 characters with at least one letter and one digit
- Session tokens are managed separately (see session_service.py)
"""
from __future__ import annotations

import logging
import re

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import ROLES, User
from ..time_utils import utcnow

logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one letter
    - At least one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Za-z]", password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt (cost 12)."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check; a malformed stored hash never matches."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(username: str, email: str, password: str, role: str = "staff") -> User:
    """
    Create an operator account.

    Raises:
        ValidationError: unknown role or weak password
        ConflictError: username or email already taken
    """
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", details={"role": role})

    username = (username or "").strip()
    email = (email or "").strip()
    if not username or not email:
        raise ValidationError("username and email are required")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists", details={"username": username})

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Username or email already exists", details={"username": username})

    logger.info("user created id=%s username=%s role=%s", user.id, user.username, user.role)
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Return the active user matching username/email and password, else None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        logger.info("login failed username=%s", username)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()
