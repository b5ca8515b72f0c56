# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/pos_app/routes/auth.py
"""
Authentication API routes

- Users are created by administrators only (no self-registration)
- Token-based sessions; the token goes in "Authorization: Bearer <token>"
"""

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from ..errors import error_body
from ..services import auth_service
from ..services import session_service
from ..services import permission_service
from ..decorators import require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Returns user info, permissions and session token on success.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return jsonify(error_body("username and password required", "VALIDATION_ERROR")), 400

    try:
        user = auth_service.authenticate(str(username), str(password))

        if not user:
            return jsonify(error_body("Invalid credentials", "INVALID_CREDENTIALS")), 401

        session, token = session_service.create_session(user_id=user.id)
        permissions = sorted(permission_service.get_user_permissions(user.id))

        current_app.logger.info("user %s logged in", user.username)
        return jsonify({
            "user": user.to_dict(),
            "permissions": permissions,
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except SQLAlchemyError:
        current_app.logger.exception("Failed to login user")
        return jsonify(error_body("Login is temporarily unavailable", "PERSISTENCE_FAILURE")), 503


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Revoke the caller's session token."""
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with permissions (for UI filtering)."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
    }), 200
