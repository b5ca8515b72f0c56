# Overview: Groupings for the permission catalogue (admin screens list permissions by group).


class PermissionCategory:
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    CUSTOMERS = "CUSTOMERS"
    REPORTS = "REPORTS"
    USERS = "USERS"
