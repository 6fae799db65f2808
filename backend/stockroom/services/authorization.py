# Overview: Capability checks that precede every mutating operation.

from __future__ import annotations

from ..errors import AuthorizationError
from ..models import User


def require_role(user: User | None, *roles: str) -> User:
    """Raise AuthorizationError unless user is active and holds one of roles."""
    if user is None or not user.is_active:
        raise AuthorizationError("Authentication required")
    if user.role not in roles:
        raise AuthorizationError(
            f"Role {user.role!r} may not perform this action",
            details={"role": user.role, "required": list(roles)},
        )
    return user
