from .catalog import Product, InventoryLogEntry
from .sales import Sale, SaleLine, Return, ReturnLine
from .customers import Customer
from .auth import User, Role, Permission, RolePermission, SessionToken

__all__ = [
    'Product', 'InventoryLogEntry',
    'Sale', 'SaleLine', 'Return', 'ReturnLine',
    'Customer',
    'User', 'Role', 'Permission', 'RolePermission', 'SessionToken',
]
