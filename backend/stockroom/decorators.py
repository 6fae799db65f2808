# Overview: Request authentication and role decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .services import authorization, session_service


def _unauthorized(message: str):
    return jsonify({"error": {"code": "UNAUTHORIZED", "message": message, "details": {}}}), 401


def require_auth(f):
    """
    Require a valid bearer token.

    Sets g.current_user to the authenticated User. Returns 401 when the
    Authorization header is missing, or the token is unknown, expired,
    revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthorized("Authentication required")

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)
        if not user:
            return _unauthorized("Invalid or expired token")

        g.current_user = user
        g.auth_token = token
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of roles.

    Must be stacked under @require_auth. A failed check raises
    AuthorizationError, which the app error handler turns into a 403.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return _unauthorized("Authentication required")

            authorization.require_role(user, *roles)
            return f(*args, **kwargs)

        return decorated_function
    return decorator
