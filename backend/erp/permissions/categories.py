# Overview: Module and action constants for the access policy table.


class PermissionModule:
    """Application modules gated by the access policy."""
    DASHBOARD = "dashboard"
    SALES = "sales"
    CUSTOMERS = "customers"
    INVENTORY = "inventory"
    ACCOUNTING = "accounting"
    USERS = "users"
    REPORTS = "reports"


class PermissionAction:
    """Actions a role may perform within a module."""
    VIEW = "view"
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    EXPORT = "export"


ALL_MODULES = (
    PermissionModule.DASHBOARD,
    PermissionModule.SALES,
    PermissionModule.CUSTOMERS,
    PermissionModule.INVENTORY,
    PermissionModule.ACCOUNTING,
    PermissionModule.USERS,
    PermissionModule.REPORTS,
)

ALL_ACTIONS = (
    PermissionAction.VIEW,
    PermissionAction.ADD,
    PermissionAction.EDIT,
    PermissionAction.DELETE,
    PermissionAction.EXPORT,
)
