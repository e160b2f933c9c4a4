# Overview: Utility functions for permission lookups and validation.

from .categories import ALL_ACTIONS, ALL_MODULES
from .definitions import ROLE_PERMISSIONS


def can(role, module, action) -> bool:
    """Fail-closed lookup: unknown role, module, or action is denied."""
    modules = ROLE_PERMISSIONS.get(role)
    if modules is None:
        return False
    return action in modules.get(module, ())


def get_role_permissions(role):
    """Full permission config for a role as {module: {can_<action>: bool}}."""
    return {
        module: {f"can_{action}": can(role, module, action) for action in ALL_ACTIONS}
        for module in ALL_MODULES
    }


def get_roles_with_permission(module, action):
    """Roles granted an action in a module."""
    return [role for role in ROLE_PERMISSIONS if can(role, module, action)]


def validate_permission(module, action):
    """Check if a module/action pair exists in the policy."""
    return module in ALL_MODULES and action in ALL_ACTIONS
