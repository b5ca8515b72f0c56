# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/pos_app/routes/admin.py
"""
Admin routes for user and role management.

SECURITY:
- User routes require MANAGE_USERS
- Role and permission routes require MANAGE_ROLES
- A user cannot delete or deactivate their own account
"""

from flask import Blueprint, request, g

from ..errors import error_body, error_response, not_found
from ..services import auth_service, permission_service
from ..services.auth_service import PasswordValidationError
from ..validation import ConflictError, ValidationError
from ..decorators import require_auth, require_permission

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# -- users --

@admin_bp.get("/users")
@require_auth
@require_permission("MANAGE_USERS")
def list_users():
    users = auth_service.list_users()
    return {"items": [u.to_dict() for u in users], "count": len(users)}


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def get_user(user_id: int):
    user = auth_service.get_user(user_id)
    if user is None:
        return not_found("User")
    return {"user": user.to_dict()}


@admin_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user():
    """
    Body: {username, password, name?, role?}  (role defaults to cashier)
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return error_body("username and password required", "VALIDATION_ERROR"), 400

    try:
        user = auth_service.create_user(
            username=str(username),
            password=str(password),
            name=data.get("name"),
            role_name=data.get("role") or "cashier",
        )
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        return error_response(e)

    return {"user": user.to_dict()}, 201


@admin_bp.put("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def update_user(user_id: int):
    """Body: any of {name, role, is_active, password}."""
    data = request.get_json(silent=True) or {}

    if user_id == g.current_user.id and data.get("is_active") is False:
        return error_body("You cannot deactivate your own account", "CONFLICT"), 409

    try:
        user = auth_service.update_user(user_id, data)
    except (ValidationError, PasswordValidationError) as e:
        return error_response(e)

    if user is None:
        return not_found("User")
    return {"user": user.to_dict()}


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_permission("MANAGE_USERS")
def delete_user(user_id: int):
    if user_id == g.current_user.id:
        return error_body("You cannot delete your own account", "CONFLICT"), 409

    if not auth_service.delete_user(user_id):
        return not_found("User")
    return {"ok": True}, 200


# -- roles & permissions --

@admin_bp.get("/roles")
@require_auth
@require_permission("MANAGE_ROLES")
def list_roles():
    roles = permission_service.list_roles()
    return {"items": [r.to_dict() for r in roles], "count": len(roles)}


@admin_bp.post("/roles")
@require_auth
@require_permission("MANAGE_ROLES")
def create_role():
    """Body: {name, description?, permissions?: [code, ...]}"""
    data = request.get_json(silent=True) or {}
    permissions = data.get("permissions") or []
    if not isinstance(permissions, list):
        return error_body("permissions must be a list", "VALIDATION_ERROR"), 400

    try:
        role = permission_service.create_role(
            data.get("name"),
            description=data.get("description"),
            permission_codes=permissions,
        )
    except (ValidationError, ConflictError) as e:
        return error_response(e)

    return {"role": role.to_dict()}, 201


@admin_bp.put("/roles/<role_name>/permissions")
@require_auth
@require_permission("MANAGE_ROLES")
def set_role_permissions(role_name: str):
    """Body: {permissions: [code, ...]} replaces the role's permission set."""
    data = request.get_json(silent=True) or {}
    permissions = data.get("permissions")
    if not isinstance(permissions, list):
        return error_body("permissions must be a list", "VALIDATION_ERROR"), 400

    if permission_service.get_role(role_name) is None:
        return not_found("Role")

    try:
        role = permission_service.set_role_permissions(role_name, permissions)
    except (ValidationError, ConflictError) as e:
        return error_response(e)

    return {"role": role.to_dict()}


@admin_bp.delete("/roles/<role_name>")
@require_auth
@require_permission("MANAGE_ROLES")
def delete_role(role_name: str):
    if permission_service.get_role(role_name) is None:
        return not_found("Role")

    try:
        moved = permission_service.delete_role(role_name)
    except (ValidationError, ConflictError) as e:
        return error_response(e)

    return {"ok": True, "users_moved": moved}, 200


@admin_bp.get("/permissions")
@require_auth
@require_permission("MANAGE_ROLES")
def list_permissions():
    perms = permission_service.list_permissions()
    return {"items": [p.to_dict() for p in perms], "count": len(perms)}
