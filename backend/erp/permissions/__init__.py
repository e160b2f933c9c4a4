# Overview: Access policy package.
# Re-exports all public APIs for backwards-compatible imports.

from .categories import PermissionModule, PermissionAction, ALL_MODULES, ALL_ACTIONS
from .definitions import (
    ROLE_PERMISSIONS,
    ADMIN_PERMISSIONS,
    SUPERVISOR_PERMISSIONS,
    USER_PERMISSIONS,
)
from .helpers import (
    can,
    get_role_permissions,
    get_roles_with_permission,
    validate_permission,
)

__all__ = [
    "PermissionModule",
    "PermissionAction",
    "ALL_MODULES",
    "ALL_ACTIONS",
    "ROLE_PERMISSIONS",
    "ADMIN_PERMISSIONS",
    "SUPERVISOR_PERMISSIONS",
    "USER_PERMISSIONS",
    "can",
    "get_role_permissions",
    "get_roles_with_permission",
    "validate_permission",
]
