# Overview: Flask API routes for products and stock alerts; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import products_service


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission(M.INVENTORY, A.VIEW)
def list_products_route():
    """
    Query parameters:
    - category: Structural | Exterior | Decorative
    - stock_status: low | out | in
    - search: name or batch code fragment
    """
    products = products_service.list_products(
        category=request.args.get("category"),
        stock_status=request.args.get("stock_status"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/alerts")
@require_auth
@require_permission(M.INVENTORY, A.VIEW)
def inventory_alerts_route():
    return jsonify(products_service.inventory_alerts())


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission(M.INVENTORY, A.VIEW)
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@products_bp.post("")
@require_auth
@require_permission(M.INVENTORY, A.ADD)
def create_product_route():
    data = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(data, actor=g.actor)
        return jsonify(product.to_dict()), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.patch("/<int:product_id>")
@require_auth
@require_permission(M.INVENTORY, A.EDIT)
def update_product_route(product_id: int):
    data = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, data, actor=g.actor)
        return jsonify(product.to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission(M.INVENTORY, A.DELETE)
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
        return jsonify({"deleted": True, "id": product_id})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
