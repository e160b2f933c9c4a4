# Overview: Flask API routes for operator accounts and role permissions.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A, get_role_permissions
from ..services import user_service


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/me")
@require_auth
def current_user_route():
    """The acting user and the permission grid of their role."""
    user = g.current_user
    return jsonify({"user": user.to_dict(), "permissions": get_role_permissions(user.role)})


@users_bp.get("")
@require_auth
@require_permission(M.USERS, A.VIEW)
def list_users_route():
    users = user_service.list_users(role=request.args.get("role"))
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)})


@users_bp.post("")
@require_auth
@require_permission(M.USERS, A.ADD)
def create_user_route():
    """
    Request body:
    {
        "email": "clerk@example.com",   // required, unique
        "display_name": "Clerk",        // required
        "role": "user"                  // admin | supervisor | user
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = user_service.create_user(data, actor=g.actor)
        return jsonify(user.to_dict()), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@users_bp.patch("/<int:user_id>")
@require_auth
@require_permission(M.USERS, A.EDIT)
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(user_service.update_user(user_id, data, actor=g.actor).to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@users_bp.delete("/<int:user_id>")
@require_auth
@require_permission(M.USERS, A.DELETE)
def delete_user_route(user_id: int):
    try:
        user_service.delete_user(user_id, actor=g.actor)
        return jsonify({"deleted": True, "id": user_id})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
