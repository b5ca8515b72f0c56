# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "Browse the product catalog (needed to sell)",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and delete products",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View the inventory change log",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Record inbound, outbound and absolute stock adjustments",
        PermissionCategory.INVENTORY,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Check out a cart",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history and sale details",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_RETURNS",
        "View Returns",
        "View returns history and return details",
        PermissionCategory.SALES,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "View, create, edit and delete customers",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "View the daily sales summary",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create, edit and delete user accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_ROLES",
        "Manage Roles",
        "Create roles and change role permissions",
        PermissionCategory.USERS,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + SALES_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
)


PERMISSION_CODES = frozenset(perm[0] for perm in PERMISSION_DEFINITIONS)


def validate_permission_code(code) -> bool:
    return code in PERMISSION_CODES
