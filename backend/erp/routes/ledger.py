# Overview: Flask API routes for customer ledger transactions; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import ledger_service
from ..validation import require_business_date, require_id

"""
Time semantics:
- start_date/end_date are YYYY-MM-DD business dates, both inclusive.
- A transaction's day is the UTC date of its occurred_at.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/transactions")


@ledger_bp.get("")
@require_auth
@require_permission(M.ACCOUNTING, A.VIEW)
def list_transactions_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))

    try:
        rows = ledger_service.list_transactions(
            customer_id=request.args.get("customer_id", type=int),
            kind=request.args.get("type"),
            reference_id=request.args.get("reference_id"),
            start_date=require_business_date("start_date", request.args.get("start_date")),
            end_date=require_business_date("end_date", request.args.get("end_date")),
            limit=limit,
        )
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)

    return jsonify({"items": [t.to_dict() for t in rows], "count": len(rows), "limit": limit})


@ledger_bp.post("")
@require_auth
@require_permission(M.ACCOUNTING, A.ADD)
def record_transaction_route():
    """
    Manual ledger entry (opening balances, corrections).

    Request body:
    {
        "customer_id": 1,
        "type": "invoice",           (invoice | payment | return)
        "description": "Opening balance",
        "debit_cents": 25000,
        "credit_cents": 0,
        "reference_id": "..."        (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        tx = ledger_service.record_transaction(
            customer_id=require_id("customer_id", data.get("customer_id")),
            kind=data.get("type"),
            description=data.get("description"),
            debit_cents=data.get("debit_cents", 0),
            credit_cents=data.get("credit_cents", 0),
            reference_id=data.get("reference_id"),
            actor=g.actor,
        )
        return jsonify(tx.to_dict()), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    except Exception:
        current_app.logger.exception("Failed to record transaction")
        return jsonify({"error": "Internal server error"}), 500
