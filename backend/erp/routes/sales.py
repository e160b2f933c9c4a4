# Overview: Flask API routes for invoices (sales and returns); parses input and returns JSON responses.

"""
Invoice API Routes

SECURITY:
- sales.view for reads, sales.add to create
- sales.edit for edits and status changes, sales.delete to remove
- sales.export for the printable PDF

Creating an invoice posts it to the customer ledger in the same commit.
"""

from flask import Blueprint, Response, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import export_service, invoice_service


sales_bp = Blueprint("sales", __name__, url_prefix="/api/invoices")


@sales_bp.get("")
@require_auth
@require_permission(M.SALES, A.VIEW)
def list_invoices_route():
    """
    Query parameters:
    - status: pending | partial | paid | cancelled
    - customer_id
    - type: sale | return
    - search: order number or customer name fragment
    """
    try:
        invoices = invoice_service.list_invoices(
            status=request.args.get("status"),
            customer_id=request.args.get("customer_id", type=int),
            invoice_type=request.args.get("type"),
            search=request.args.get("search"),
        )
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    return jsonify({"items": [i.to_dict() for i in invoices], "count": len(invoices)})


@sales_bp.get("/<int:invoice_id>")
@require_auth
@require_permission(M.SALES, A.VIEW)
def get_invoice_route(invoice_id: int):
    try:
        return jsonify(invoice_service.get_invoice(invoice_id).to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@sales_bp.get("/<int:invoice_id>/pdf")
@require_auth
@require_permission(M.SALES, A.EXPORT)
def invoice_pdf_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)

    body = export_service.invoice_pdf(invoice.to_dict(), invoice.customer.to_dict())
    return Response(
        body,
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={invoice.order_number}.pdf"},
    )


@sales_bp.post("")
@require_auth
@require_permission(M.SALES, A.ADD)
def create_invoice_route():
    """
    Create a sale or return invoice.

    Returns:
        201: {invoice, customer_balance_cents}
        400: Invalid input
        404: Customer or product not found
        500: Ledger posting rolled back
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.create_invoice(data, actor=g.actor)
        return jsonify({
            "invoice": invoice.to_dict(),
            "customer_balance_cents": invoice.customer.balance_cents,
        }), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.patch("/<int:invoice_id>")
@require_auth
@require_permission(M.SALES, A.EDIT)
def update_invoice_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.update_invoice(invoice_id, data, actor=g.actor)
        return jsonify(invoice.to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to update invoice")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:invoice_id>/status")
@require_auth
@require_permission(M.SALES, A.EDIT)
def set_invoice_status_route(invoice_id: int):
    """Request body: {"status": "paid"}"""
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400
    try:
        invoice = invoice_service.set_invoice_status(invoice_id, status, actor=g.actor)
        return jsonify(invoice.to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)


@sales_bp.delete("/<int:invoice_id>")
@require_auth
@require_permission(M.SALES, A.DELETE)
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id, actor=g.actor)
        return jsonify({"deleted": True, "id": invoice_id})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to delete invoice")
        return jsonify({"error": "Internal server error"}), 500
