# Overview: Flask API routes for reports, exports and the dashboard; parses input and returns JSON responses.

from flask import Blueprint, Response, request, jsonify

from ..decorators import require_auth, require_permission
from ..errors import SERVICE_ERRORS, status_for
from ..permissions import PermissionModule as M, PermissionAction as A
from ..services import export_service, reporting_service
from ..validation import require_business_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api")

FILTER_PARAMS = ("customer_id", "product_id", "category", "payment_method", "status", "type")

EXPORT_MIMETYPES = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def _report_args() -> dict:
    return {
        "start_date": require_business_date("start_date", request.args.get("start_date")),
        "end_date": require_business_date("end_date", request.args.get("end_date")),
        "filters": {k: request.args.get(k) for k in FILTER_PARAMS if request.args.get(k)},
    }


@reports_bp.get("/reports/<report_type>")
@require_auth
@require_permission(M.REPORTS, A.VIEW)
def report_route(report_type: str):
    """
    Report rows for sales | customers | inventory | payments | summary.

    Query params:
    - start_date, end_date: YYYY-MM-DD, inclusive
    - customer_id, product_id, category, payment_method, status, type
    """
    try:
        rows = reporting_service.run_report(report_type, **_report_args())
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)
    return jsonify({"report_type": report_type, "rows": rows, "count": len(rows)})


@reports_bp.get("/reports/<report_type>/export")
@require_auth
@require_permission(M.REPORTS, A.EXPORT)
def export_report_route(report_type: str):
    """Same query params as the report, plus format=csv|xlsx|pdf (default csv)."""
    fmt = request.args.get("format", "csv").lower()
    if fmt not in export_service.EXPORT_FORMATS:
        return jsonify({"error": f"format must be one of: {', '.join(export_service.EXPORT_FORMATS)}"}), 400

    try:
        rows = reporting_service.run_report(report_type, **_report_args())
        if fmt == "csv":
            body = export_service.to_csv(report_type, rows)
        elif fmt == "xlsx":
            body = export_service.to_xlsx(report_type, rows)
        else:
            body = export_service.to_pdf(report_type, rows)
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), status_for(e)

    filename = export_service.export_filename(report_type, fmt)
    return Response(
        body,
        mimetype=EXPORT_MIMETYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@reports_bp.get("/dashboard")
@require_auth
@require_permission(M.DASHBOARD, A.VIEW)
def dashboard_route():
    return jsonify(reporting_service.dashboard_stats())
