# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app

from .permissions import can, get_roles_with_permission, validate_permission
from .services import user_service

ACTOR_HEADER = "X-User-Id"


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'actor')


def require_auth(f):
    """
    Resolve the acting user from the X-User-Id header.

    Sets the following Flask g attributes:
    - g.current_user: The User object
    - g.actor: display name stamped on created_by/updated_by

    Returns 401 if the header is missing or names no user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = request.headers.get(ACTOR_HEADER)
        if not user_id:
            return jsonify({"error": "Authentication required"}), 401

        user = user_service.find_user(user_id)
        if not user:
            return jsonify({"error": "Unknown user"}), 401

        g.current_user = user
        g.actor = user.display_name
        return f(*args, **kwargs)

    return decorated_function


def require_permission(module: str, action: str):
    """
    Require a (module, action) grant in the access policy for the user's role.
    """
    if not validate_permission(module, action):
        raise ValueError(f"Unknown permission: {module}.{action}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_auth was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            role = g.current_user.role
            if not can(role, module, action):
                current_app.logger.info(
                    "Permission denied: user=%s role=%s %s.%s %s",
                    g.current_user.id, role, module, action, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": f"{module}.{action}",
                    "message": f"Role {role} cannot {action} {module}",
                    "allowed_roles": get_roles_with_permission(module, action),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
