# Overview: Service-layer operations for reporting; read-only aggregation over record snapshots.

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ..extensions import db
from ..errors import ValidationError
from ..models import Customer, Invoice, Payment, Product
from erp.time_utils import current_month_iso, in_date_range, last_n_days, today_iso

# Report builders below take lists of to_dict() rows and never touch the
# session; the *_report loaders fetch one snapshot and hand it over.

REPORT_SALES = "sales"
REPORT_CUSTOMERS = "customers"
REPORT_INVENTORY = "inventory"
REPORT_PAYMENTS = "payments"
REPORT_SUMMARY = "summary"

DOMAIN_REPORTS = (REPORT_SALES, REPORT_CUSTOMERS, REPORT_INVENTORY, REPORT_PAYMENTS)
REPORT_TYPES = DOMAIN_REPORTS + (REPORT_SUMMARY,)

# filter name -> row key, per report
DOMAIN_FILTERS = {
    REPORT_SALES: {
        "customer_id": "customer_id",
        "status": "status",
        "payment_method": "payment_method",
        "type": "type",
    },
    REPORT_CUSTOMERS: {"customer_id": "id", "category": "category"},
    REPORT_INVENTORY: {"product_id": "id", "category": "category"},
    REPORT_PAYMENTS: {
        "customer_id": "customer_id",
        "payment_method": "method",
        "type": "type",
    },
}

TOP_PRODUCTS_LIMIT = 5
RECENT_ORDERS_LIMIT = 5
CHART_DAYS = 7


def format_cents(cents: int | None) -> str:
    """12345 -> '123.45'"""
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    whole, frac = divmod(abs(cents), 100)
    return f"{sign}{whole}.{frac:02d}"


def row_date(report_type: str, row: dict) -> str | None:
    """Business date a report row is filtered on."""
    if report_type in (REPORT_SALES, REPORT_PAYMENTS):
        return row.get("date")
    created = row.get("created_at")
    return created[:10] if created else None


# =============================================================================
# PER-DOMAIN REPORTS
# =============================================================================

def filter_rows(
    report_type: str,
    rows: Iterable[dict],
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    filters: dict | None = None,
) -> list[dict]:
    """
    Apply the inclusive date range and equality filters, newest first.

    Sales rows also accept product_id, matching when any line item
    references that product.
    """
    if report_type not in DOMAIN_REPORTS:
        raise ValidationError(f"Unknown report type: {report_type}")

    allowed = DOMAIN_FILTERS[report_type]
    active = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
    product_id = None
    if report_type == REPORT_SALES and "product_id" in active:
        product_id = str(active.pop("product_id"))
    for key in active:
        if key not in allowed:
            raise ValidationError(f"Filter not supported for {report_type} report: {key}")

    out = []
    for row in rows:
        if not in_date_range(row_date(report_type, row), start_date, end_date):
            continue
        if any(str(row.get(allowed[k])) != str(v) for k, v in active.items()):
            continue
        if product_id is not None and not any(
            str(item.get("product_id")) == product_id for item in row.get("items") or []
        ):
            continue
        out.append(row)

    # stable: rows with equal created_at keep snapshot order
    out.sort(key=lambda r: r.get("created_at") or "", reverse=True)
    return out


# =============================================================================
# SUMMARY REPORT
# =============================================================================

def build_summary(
    invoices: list[dict],
    customers: list[dict],
    products: list[dict],
    payments: list[dict],
    *,
    start_date: str | None = None,
    end_date: str | None = None,
) -> list[dict]:
    """
    Headline metrics.

    Invoices and payments are filtered by the inclusive date range;
    customer and product counts are always current.
    """
    invoices = [i for i in invoices if in_date_range(i.get("date"), start_date, end_date)]
    payments = [p for p in payments if in_date_range(p.get("date"), start_date, end_date)]
    pending = [i for i in invoices if i.get("status") == "pending"]

    filtered = bool(start_date or end_date)
    period = "Filtered Period" if filtered else "All Time"
    invoice_total = sum(i.get("total_cents") or 0 for i in invoices)
    pending_total = sum(i.get("total_cents") or 0 for i in pending)
    payment_total = sum(p.get("amount_cents") or 0 for p in payments)

    return [
        {"metric": "Total Sales", "value": len(invoices), "amount_cents": invoice_total, "period": period},
        {"metric": "Total Revenue", "value": format_cents(invoice_total), "amount_cents": invoice_total, "period": period},
        {"metric": "Total Customers", "value": len(customers), "amount_cents": 0, "period": "Current"},
        {"metric": "Total Products", "value": len(products), "amount_cents": 0, "period": "Current"},
        {"metric": "Total Payments", "value": len(payments), "amount_cents": payment_total, "period": period},
        {
            "metric": "Pending Orders",
            "value": len(pending),
            "amount_cents": pending_total,
            "period": "Filtered Period" if filtered else "Current",
        },
    ]


# =============================================================================
# DASHBOARD
# =============================================================================

def top_products(invoices: list[dict], limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    """
    Products ranked by summed line revenue across all invoices.

    sorted() is stable, so equal revenues keep first-seen order.
    """
    totals: dict[str, dict] = {}
    for invoice in invoices:
        for item in invoice.get("items") or []:
            key = str(item.get("product_id"))
            entry = totals.setdefault(
                key,
                {
                    "product_id": item.get("product_id"),
                    "name": item.get("product_name"),
                    "quantity": 0,
                    "revenue_cents": 0,
                },
            )
            entry["quantity"] += item.get("quantity") or 0
            entry["revenue_cents"] += item.get("total_cents") or 0

    ranked = sorted(totals.values(), key=lambda e: e["revenue_cents"], reverse=True)
    return ranked[:limit]


def sales_chart(invoices: list[dict], now: datetime | None = None, days: int = CHART_DAYS) -> list[dict]:
    """Invoice count and total per day for the trailing window, oldest first."""
    series = []
    for day in last_n_days(days, now):
        day_invoices = [i for i in invoices if (i.get("date") or "").startswith(day)]
        series.append({
            "date": day,
            "label": datetime.strptime(day, "%Y-%m-%d").strftime("%b %d"),
            "sales": len(day_invoices),
            "revenue_cents": sum(i.get("total_cents") or 0 for i in day_invoices),
        })
    return series


def build_dashboard(
    invoices: list[dict],
    customers: list[dict],
    products: list[dict],
    *,
    now: datetime | None = None,
) -> dict:
    today = today_iso(now)
    month = current_month_iso(now)

    paid = [i for i in invoices if i.get("status") == "paid"]
    recent = sorted(invoices, key=lambda i: i.get("created_at") or "", reverse=True)

    return {
        "total_sales": len(invoices),
        "total_customers": len(customers),
        "total_products": len(products),
        "low_stock_products": sum(
            1 for p in products if (p.get("stock") or 0) <= (p.get("low_stock_threshold") or 0)
        ),
        "pending_orders": sum(1 for i in invoices if i.get("status") == "pending"),
        "today_revenue_cents": sum(
            i.get("total_cents") or 0 for i in paid if (i.get("date") or "").startswith(today)
        ),
        "monthly_revenue_cents": sum(
            i.get("total_cents") or 0 for i in paid if (i.get("date") or "").startswith(month)
        ),
        "top_selling_products": top_products(invoices),
        "recent_orders": recent[:RECENT_ORDERS_LIMIT],
        "sales_chart": sales_chart(invoices, now),
    }


# =============================================================================
# SNAPSHOT LOADERS
# =============================================================================

def _snapshot(model) -> list[dict]:
    rows = db.session.query(model).order_by(model.created_at.asc(), model.id.asc()).all()
    return [r.to_dict() for r in rows]


def summary_report(*, start_date: str | None = None, end_date: str | None = None) -> list[dict]:
    return build_summary(
        _snapshot(Invoice),
        _snapshot(Customer),
        _snapshot(Product),
        _snapshot(Payment),
        start_date=start_date,
        end_date=end_date,
    )


_DOMAIN_MODELS = {
    REPORT_SALES: Invoice,
    REPORT_CUSTOMERS: Customer,
    REPORT_INVENTORY: Product,
    REPORT_PAYMENTS: Payment,
}


def domain_report(
    report_type: str,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    filters: dict | None = None,
) -> list[dict]:
    if report_type not in _DOMAIN_MODELS:
        raise ValidationError(f"Unknown report type: {report_type}")
    return filter_rows(
        report_type,
        _snapshot(_DOMAIN_MODELS[report_type]),
        start_date=start_date,
        end_date=end_date,
        filters=filters,
    )


def run_report(
    report_type: str,
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    filters: dict | None = None,
) -> list[dict]:
    """Dispatch by report type; summary ignores equality filters."""
    if report_type == REPORT_SUMMARY:
        return summary_report(start_date=start_date, end_date=end_date)
    return domain_report(report_type, start_date=start_date, end_date=end_date, filters=filters)


def dashboard_stats(now: datetime | None = None) -> dict:
    return build_dashboard(_snapshot(Invoice), _snapshot(Customer), _snapshot(Product), now=now)
