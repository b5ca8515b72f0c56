# Overview: Permission catalogue and built-in role grants.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_CODES,
    PERMISSION_DEFINITIONS,
    validate_permission_code,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, PROTECTED_ROLES, FALLBACK_ROLE

__all__ = [
    "PermissionCategory",
    "PERMISSION_CODES",
    "PERMISSION_DEFINITIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "PROTECTED_ROLES",
    "FALLBACK_ROLE",
    "validate_permission_code",
]
