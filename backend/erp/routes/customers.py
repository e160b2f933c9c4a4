# Overview: Flask API routes for customers, statements and balance reconciliation.

"""
Customer Routes

- CRUD requires customers.{view,add,edit,delete}
- Statement requires customers.view, its PDF customers.export
- Reconcile rewrites the cached balance, so it requires accounting.edit
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import customer_service, export_service, ledger_service
from ..validation import require_business_date


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission(M.CUSTOMERS, A.VIEW)
def list_customers_route():
    """
    Query parameters:
    - category: Institutions | Shops | Individuals
    - search: name or phone fragment
    """
    customers = customer_service.list_customers(
        category=request.args.get("category"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission(M.CUSTOMERS, A.VIEW)
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify(customer.to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@customers_bp.post("")
@require_auth
@require_permission(M.CUSTOMERS, A.ADD)
def create_customer_route():
    """
    Request body:
    {
        "full_name": "Nile Builders",     // required
        "phone": "...",
        "address": "...",
        "category": "Shops",
        "discount_rate_bps": 500          // 5.00%
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(data, actor=g.actor)
        return jsonify(customer.to_dict()), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission(M.CUSTOMERS, A.EDIT)
def update_customer_route(customer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, data, actor=g.actor)
        return jsonify(customer.to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_permission(M.CUSTOMERS, A.DELETE)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id, actor=g.actor)
        return jsonify({"deleted": True, "id": customer_id})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LEDGER VIEWS
# =============================================================================

@customers_bp.get("/<int:customer_id>/statement")
@require_auth
@require_permission(M.CUSTOMERS, A.VIEW)
def customer_statement_route(customer_id: int):
    """
    Customer statement with running balance.

    Query parameters:
    - start_date, end_date: YYYY-MM-DD, inclusive
    """
    try:
        return jsonify(_statement(customer_id))
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@customers_bp.get("/<int:customer_id>/statement/pdf")
@require_auth
@require_permission(M.CUSTOMERS, A.EXPORT)
def customer_statement_pdf_route(customer_id: int):
    """Printable statement; same query parameters as the JSON statement."""
    try:
        statement = _statement(customer_id)
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)

    return Response(
        export_service.statement_pdf(statement),
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=statement_{customer_id}.pdf"},
    )


def _statement(customer_id: int) -> dict:
    return ledger_service.get_statement(
        customer_id,
        start_date=require_business_date("start_date", request.args.get("start_date")),
        end_date=require_business_date("end_date", request.args.get("end_date")),
    )


@customers_bp.get("/<int:customer_id>/reconcile")
@require_auth
@require_permission(M.ACCOUNTING, A.VIEW)
def verify_customer_balance_route(customer_id: int):
    """Read-only drift check."""
    try:
        return jsonify(ledger_service.verify_customer_balance(customer_id))
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@customers_bp.post("/<int:customer_id>/reconcile")
@require_auth
@require_permission(M.ACCOUNTING, A.EDIT)
def reconcile_customer_balance_route(customer_id: int):
    """Reset the cached balance to the replayed ledger balance."""
    try:
        return jsonify(ledger_service.reconcile_customer_balance(customer_id, actor=g.actor))
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to reconcile customer balance")
        return jsonify({"error": "Internal server error"}), 500
