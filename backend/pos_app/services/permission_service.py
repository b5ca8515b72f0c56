# Overview: Service-layer operations for permission; encapsulates business logic and database work.

"""
Permission Checking and Role Administration

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- One role per user; permissions come only from that role
- Log denials only: Permission grants are not logged
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Permission, Role, RolePermission, User
from ..permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    FALLBACK_ROLE,
    PERMISSION_DEFINITIONS,
    PROTECTED_ROLES,
    validate_permission_code,
)
from ..validation import ConflictError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_ROLE_DESCRIPTIONS = {
    "admin": "Full system access",
    "manager": "Store management: catalog, inventory, reports, customers",
    "cashier": "POS sales only",
}


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    pass


def get_user_permissions(user_id: int) -> set[str]:
    """
    Get all permission codes for a user.

    Returns set of permission codes (e.g., {"CREATE_SALE", "VIEW_SALES"}).
    Inactive users have none.
    """
    rows = (
        db.session.query(Permission.code)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(User, User.role_id == RolePermission.role_id)
        .filter(User.id == user_id, User.is_active.is_(True))
        .all()
    )
    return {code for (code,) in rows}


def user_has_permission(user_id: int, permission_code: str) -> bool:
    return permission_code in get_user_permissions(user_id)


def require_permission(user_id: int, permission_code: str, resource: str | None = None) -> None:
    """
    Require user to have permission, raise PermissionDeniedError if not.

    Usage:
        require_permission(user.id, "CREATE_SALE", resource="/api/sales/checkout")
    """
    if not user_has_permission(user_id, permission_code):
        logger.warning(
            "permission denied user=%s permission=%s resource=%s",
            user_id, permission_code, resource,
        )
        raise PermissionDeniedError(f"Permission denied: {permission_code}")


def initialize_permissions() -> int:
    """
    Initialize all permission definitions in database.

    Creates Permission records for all codes in PERMISSION_DEFINITIONS.
    Idempotent: Safe to run multiple times.
    """
    created_count = 0

    for code, name, description, category in PERMISSION_DEFINITIONS:
        existing = db.session.query(Permission).filter_by(code=code).first()

        if not existing:
            permission = Permission(
                code=code,
                name=name,
                description=description,
                category=category
            )
            db.session.add(permission)
            created_count += 1

    db.session.commit()
    return created_count


def create_default_roles() -> int:
    """Create the built-in roles if they don't exist."""
    created_count = 0
    for name, desc in DEFAULT_ROLE_DESCRIPTIONS.items():
        existing = db.session.query(Role).filter_by(name=name).first()
        if not existing:
            db.session.add(Role(name=name, description=desc))
            created_count += 1

    db.session.commit()
    return created_count


def assign_default_role_permissions() -> int:
    """
    Assign default permissions to roles based on DEFAULT_ROLE_PERMISSIONS.

    Idempotent: Safe to run multiple times (skips existing).
    """
    created_count = 0

    for role_name, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.session.query(Role).filter_by(name=role_name).first()

        if not role:
            continue  # Role doesn't exist, skip

        for permission_code in permission_codes:
            permission = db.session.query(Permission).filter_by(code=permission_code).first()

            if not permission:
                continue  # Permission doesn't exist, skip

            existing = db.session.query(RolePermission).filter_by(
                role_id=role.id,
                permission_id=permission.id
            ).first()

            if not existing:
                db.session.add(RolePermission(role_id=role.id, permission_id=permission.id))
                created_count += 1

    db.session.commit()
    return created_count


def list_permissions() -> list[Permission]:
    return db.session.query(Permission).order_by(Permission.category.asc(), Permission.code.asc()).all()


def list_roles() -> list[Role]:
    return db.session.query(Role).order_by(Role.name.asc()).all()


def get_role(role_name: str) -> Role | None:
    return db.session.query(Role).filter_by(name=role_name).first()


def create_role(name: str, description: str | None = None, permission_codes=None) -> Role:
    """Create a custom role, optionally with an initial permission set."""
    name = (name or "").strip().lower()
    if not name:
        raise ValidationError("Role name is required")
    if len(name) > 64:
        raise ValidationError("Role name exceeds max length 64")
    if get_role(name) is not None:
        raise ConflictError(f"Role '{name}' already exists")

    role = Role(name=name, description=description)
    db.session.add(role)
    db.session.flush()

    if permission_codes:
        try:
            _replace_role_permissions(role, permission_codes)
        except ValidationError:
            db.session.rollback()
            raise

    db.session.commit()
    logger.info("role %s created", name)
    return role


def _replace_role_permissions(role: Role, permission_codes) -> None:
    codes = set(permission_codes)
    invalid = sorted(c for c in codes if not validate_permission_code(c))
    if invalid:
        raise ValidationError(f"Unknown permission codes: {', '.join(invalid)}")

    current = {rp.permission.code: rp for rp in role.role_permissions}
    for code, rp in current.items():
        if code not in codes:
            role.role_permissions.remove(rp)

    missing = codes - set(current)
    if missing:
        for permission in db.session.query(Permission).filter(Permission.code.in_(missing)).all():
            role.role_permissions.append(RolePermission(permission=permission))
    db.session.flush()


def set_role_permissions(role_name: str, permission_codes) -> Role:
    """
    Replace the role's whole permission set.

    The admin role always keeps every permission.
    """
    role = get_role(role_name)
    if role is None:
        raise ValidationError(f"Role '{role_name}' not found")
    if role.name == "admin":
        raise ConflictError("The admin role always has every permission")

    try:
        _replace_role_permissions(role, permission_codes or [])
        db.session.commit()
    except ValidationError:
        db.session.rollback()
        raise

    logger.info("role %s permissions set to %s", role.name, sorted(permission_codes or []))
    return role


def delete_role(role_name: str) -> int:
    """
    Delete a custom role. Its users move to the fallback role.

    Returns the number of users moved. Protected roles cannot be deleted.
    """
    if role_name in PROTECTED_ROLES:
        raise ConflictError(f"Role '{role_name}' cannot be deleted")

    role = get_role(role_name)
    if role is None:
        raise ValidationError(f"Role '{role_name}' not found")

    fallback = get_role(FALLBACK_ROLE)
    if fallback is None:
        raise ConflictError(f"Fallback role '{FALLBACK_ROLE}' is missing")

    moved = db.session.query(User).filter(User.role_id == role.id).update(
        {User.role_id: fallback.id}, synchronize_session=False
    )
    # Collection may predate the bulk move; reload it so delete sees no users
    db.session.expire(role, ["users"])
    db.session.delete(role)
    db.session.commit()
    db.session.expire_all()

    logger.info("role %s deleted; %s users moved to %s", role_name, moved, FALLBACK_ROLE)
    return moved
