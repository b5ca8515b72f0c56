# Overview: Default permission sets for the built-in roles.

from .definitions import PERMISSION_DEFINITIONS


DEFAULT_ROLE_PERMISSIONS = {
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "manager": [
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_RETURNS",
        "MANAGE_CUSTOMERS",
        "VIEW_REPORTS",
    ],
    "cashier": [
        "VIEW_PRODUCTS",
        "CREATE_SALE",
        "VIEW_SALES",
    ],
}

# Roles that must always exist
PROTECTED_ROLES = {"admin", "cashier"}

# Where users land when their role is deleted
FALLBACK_ROLE = "cashier"
