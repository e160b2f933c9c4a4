# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

"""
Payment API Routes

WHY: Money received from or refunded to a customer.

SECURITY:
- accounting.add required for recording payments and refunds
- accounting.view required for queries
- Every payment is posted to the customer ledger in the same commit
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import payment_service
from ..validation import require_business_date


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("")
@require_auth
@require_permission(M.ACCOUNTING, A.ADD)
def record_payment_route():
    """
    Record a payment or refund.

    Request body:
    {
        "customer_id": 1,
        "amount_cents": 25000,
        "method": "Cash",           (Cash | Vodafone Cash | Bank Transfer | Cheque)
        "type": "payment",          (payment | refund)
        "order_id": 7,              (optional)
        "date": "2026-10-19",       (optional)
        "notes": "..."
    }

    Returns:
        201: {payment, customer_balance_cents}
        400: Invalid input
        404: Customer or invoice not found
        500: Ledger posting rolled back
    """
    data = request.get_json(silent=True) or {}
    try:
        payment = payment_service.record_payment(data, actor=g.actor)
        return jsonify({
            "payment": payment.to_dict(),
            "customer_balance_cents": payment.customer.balance_cents,
        }), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@payments_bp.get("")
@require_auth
@require_permission(M.ACCOUNTING, A.VIEW)
def list_payments_route():
    """
    Query params:
    - customer_id, order_id
    - type: payment | refund
    - start_date, end_date: YYYY-MM-DD, inclusive
    """
    try:
        payments = payment_service.list_payments(
            customer_id=request.args.get("customer_id", type=int),
            order_id=request.args.get("order_id", type=int),
            payment_type=request.args.get("type"),
            start_date=require_business_date("start_date", request.args.get("start_date")),
            end_date=require_business_date("end_date", request.args.get("end_date")),
        )
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})


@payments_bp.get("/<int:payment_id>")
@require_auth
@require_permission(M.ACCOUNTING, A.VIEW)
def get_payment_route(payment_id: int):
    try:
        return jsonify(payment_service.get_payment(payment_id).to_dict())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
