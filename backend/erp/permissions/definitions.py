# Overview: Static role -> module -> allowed actions table.
# Each row lists the actions granted: view, add, edit, delete, export.

from .categories import PermissionModule as M, PermissionAction as A


_FULL = frozenset({A.VIEW, A.ADD, A.EDIT, A.DELETE, A.EXPORT})
_NO_DELETE = frozenset({A.VIEW, A.ADD, A.EDIT, A.EXPORT})
_VIEW_ADD = frozenset({A.VIEW, A.ADD})
_VIEW_ONLY = frozenset({A.VIEW})
_NONE = frozenset()


# -- ADMIN --

ADMIN_PERMISSIONS = {
    M.DASHBOARD: _FULL,
    M.SALES: _FULL,
    M.CUSTOMERS: _FULL,
    M.INVENTORY: _FULL,
    M.ACCOUNTING: _FULL,
    M.USERS: _FULL,
    M.REPORTS: _FULL,
}


# -- SUPERVISOR --
# Everything except deletes, and no access to user management.

SUPERVISOR_PERMISSIONS = {
    M.DASHBOARD: _NO_DELETE,
    M.SALES: _NO_DELETE,
    M.CUSTOMERS: _NO_DELETE,
    M.INVENTORY: _NO_DELETE,
    M.ACCOUNTING: _NO_DELETE,
    M.USERS: _NONE,
    M.REPORTS: _NO_DELETE,
}


# -- USER --
# View and add only; reports are view-only, no export.

USER_PERMISSIONS = {
    M.DASHBOARD: _VIEW_ADD,
    M.SALES: _VIEW_ADD,
    M.CUSTOMERS: _VIEW_ADD,
    M.INVENTORY: _VIEW_ADD,
    M.ACCOUNTING: _VIEW_ADD,
    M.USERS: _NONE,
    M.REPORTS: _VIEW_ONLY,
}


ROLE_PERMISSIONS = {
    "admin": ADMIN_PERMISSIONS,
    "supervisor": SUPERVISOR_PERMISSIONS,
    "user": USER_PERMISSIONS,
}
