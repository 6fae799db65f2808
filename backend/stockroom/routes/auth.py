# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/stockroom/routes/auth.py
"""
Authentication API routes.

Accounts are created by an operator through the CLI (flask users create);
there is no self-registration endpoint.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    The token must be sent as "Authorization: Bearer <token>" on protected routes.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username") or data.get("email")
    password = data.get("password")

    if not username or not password:
        return jsonify({
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "username/email and password required",
                "details": {},
            }
        }), 400

    user = auth_service.authenticate(username, password)
    if not user:
        return jsonify({
            "error": {"code": "UNAUTHORIZED", "message": "Invalid credentials", "details": {}}
        }), 401

    session, token = session_service.create_session(user.id)
    return {
        "user": user.to_dict(),
        "token": token,
        "expires_at": session.to_dict()["expires_at"],
    }


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.auth_token)
    return {"ok": True}


@auth_bp.get("/me")
@require_auth
def me_route():
    return {"user": g.current_user.to_dict()}
