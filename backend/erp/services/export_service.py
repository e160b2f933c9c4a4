# Overview: Report export; projects report rows through a column spec into CSV, Excel or PDF files.

"""
Report Export

Every report type has a column spec: (header, row key, format).
Rows are projected through it into a header row plus value rows, which are
then rendered as CSV (stdlib csv), .xlsx (openpyxl) or PDF (reportlab).
Invoices and customer statements also have their own printable PDF layouts.
"""

from __future__ import annotations

import csv
import io
from xml.sax.saxutils import escape

from openpyxl import Workbook
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from ..errors import ValidationError
from erp.time_utils import today_iso
from .reporting_service import format_cents

MONEY = "money"
COUNT = "count"
DATE = "date"

REPORT_COLUMNS = {
    "sales": [
        ("Order Number", "order_number", None),
        ("Customer", "customer_name", None),
        ("Date", "date", None),
        ("Items", "items", COUNT),
        ("Total", "total_cents", MONEY),
        ("Status", "status", None),
        ("Type", "type", None),
    ],
    "customers": [
        ("Name", "full_name", None),
        ("Phone", "phone", None),
        ("Type", "category", None),
        ("Discount (bps)", "discount_rate_bps", None),
        ("Balance", "balance_cents", MONEY),
        ("Created", "created_at", DATE),
    ],
    "inventory": [
        ("Product", "name", None),
        ("Category", "category", None),
        ("Price", "price_cents", MONEY),
        ("Stock", "stock", None),
        ("Created", "created_at", DATE),
    ],
    "payments": [
        ("Date", "date", None),
        ("Customer", "customer_name", None),
        ("Amount", "amount_cents", MONEY),
        ("Method", "method", None),
        ("Type", "type", None),
        ("Created", "created_at", DATE),
    ],
    "summary": [
        ("Metric", "metric", None),
        ("Value", "value", None),
        ("Amount", "amount_cents", MONEY),
        ("Period", "period", None),
    ],
}

EXPORT_FORMATS = ("csv", "xlsx", "pdf")


def _format(value, kind):
    if kind == MONEY:
        return format_cents(value)
    if kind == COUNT:
        return len(value or [])
    if kind == DATE:
        return value[:10] if value else ""
    return "" if value is None else value


def project_rows(report_type: str, rows: list[dict]) -> tuple[list[str], list[list]]:
    """Return (headers, value rows) for a report."""
    columns = REPORT_COLUMNS.get(report_type)
    if columns is None:
        raise ValidationError(f"Unknown report type: {report_type}")
    headers = [header for header, _, _ in columns]
    values = [[_format(row.get(key), kind) for _, key, kind in columns] for row in rows]
    return headers, values


def to_csv(report_type: str, rows: list[dict]) -> str:
    headers, values = project_rows(report_type, rows)
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(values)
    return buf.getvalue()


def to_xlsx(report_type: str, rows: list[dict]) -> bytes:
    headers, values = project_rows(report_type, rows)
    wb = Workbook()
    sheet = wb.active
    sheet.title = f"{report_type.capitalize()} Report"
    sheet.append(headers)
    for row in values:
        sheet.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def export_filename(report_type: str, fmt: str) -> str:
    return f"{report_type}_report.{fmt}"


# =============================================================================
# PDF
# =============================================================================

HEADER_COLOR = colors.HexColor("#2563EB")
COMPANY_NAME = "HCP COMPANY"
COMPANY_TAGLINE = "Complete ERP Solutions"


def _table(data: list[list], *, header_color=HEADER_COLOR, col_widths=None) -> Table:
    table = Table(data, repeatRows=1, colWidths=col_widths)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), header_color),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
        ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ]))
    return table


def _build_pdf(story: list) -> bytes:
    buf = io.BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=A4, leftMargin=36, rightMargin=36, topMargin=48, bottomMargin=36)
    doc.build(story)
    return buf.getvalue()


def _money(cents) -> str:
    return f"${format_cents(cents)}"


def to_pdf(report_type: str, rows: list[dict], *, generated_on: str | None = None) -> bytes:
    """Report table as a PDF: title, generation date, one row per record."""
    headers, values = project_rows(report_type, rows)
    styles = getSampleStyleSheet()

    story = [
        Paragraph(f"<b>{escape(report_type.capitalize())} Report</b>", styles["Title"]),
        Paragraph(f"Generated on: {escape(generated_on or today_iso())}", styles["Italic"]),
        Spacer(1, 12),
    ]
    if values:
        story.append(_table([headers] + [[str(v) for v in row] for row in values]))
    else:
        story.append(Paragraph("No records match the selected filters.", styles["Normal"]))
    return _build_pdf(story)


def invoice_pdf(invoice: dict, customer: dict) -> bytes:
    """
    Printable invoice.

    Layout: company heading, invoice details, line table, totals,
    deposit (when taken) and notes.
    """
    styles = getSampleStyleSheet()
    title = "RETURN INVOICE" if invoice.get("type") == "return" else "INVOICE"

    details = [
        ["Invoice Number:", invoice.get("order_number") or ""],
        ["Date:", invoice.get("date") or ""],
        ["Customer:", customer.get("full_name") or ""],
        ["Phone:", customer.get("phone") or ""],
        ["Address:", customer.get("address") or ""],
        ["Payment Method:", invoice.get("payment_method") or ""],
    ]
    details_table = Table(details, colWidths=[110, 300], hAlign="LEFT")
    details_table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 10),
    ]))

    lines = [["Product", "Qty", "Unit Price", "Total"]]
    for item in invoice.get("items") or []:
        lines.append([
            item.get("product_name") or "",
            str(item.get("quantity") or 0),
            _money(item.get("unit_price_cents")),
            _money(item.get("total_cents")),
        ])

    totals = Table(
        [
            ["Subtotal:", _money(invoice.get("subtotal_cents"))],
            [f"Discount ({format_cents(invoice.get('discount_rate_bps'))}%):", _money(invoice.get("discount_amount_cents"))],
            ["Total:", _money(invoice.get("total_cents"))],
        ],
        colWidths=[140, 90],
        hAlign="RIGHT",
    )
    totals.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, -1), "RIGHT"),
        ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))

    story = [
        Paragraph(f"<b>{COMPANY_NAME}</b>", styles["Title"]),
        Paragraph(COMPANY_TAGLINE, styles["Normal"]),
        Spacer(1, 12),
        Paragraph(f"<b>{title}</b>", styles["Heading1"]),
        details_table,
        Spacer(1, 12),
        _table(lines, col_widths=[250, 50, 100, 100]),
        Spacer(1, 12),
        totals,
    ]

    deposit = invoice.get("deposit")
    if deposit:
        story.append(Spacer(1, 8))
        story.append(Paragraph(
            f"Deposit: {_money(deposit.get('amount_cents'))} ({escape(deposit.get('method') or '')})",
            styles["Normal"],
        ))
        story.append(Paragraph(f"Status: {'Paid' if deposit.get('paid') else 'Pending'}", styles["Normal"]))

    if invoice.get("notes"):
        story.append(Spacer(1, 8))
        story.append(Paragraph("<b>Notes:</b>", styles["Normal"]))
        story.append(Paragraph(escape(invoice["notes"]), styles["Normal"]))

    return _build_pdf(story)


def statement_pdf(statement: dict) -> bytes:
    """Customer statement as returned by ledger_service.get_statement."""
    styles = getSampleStyleSheet()
    customer = statement["customer"]

    story = [
        Paragraph("<b>CUSTOMER STATEMENT</b>", styles["Title"]),
        Paragraph(f"Customer: {escape(customer.get('full_name') or '')}", styles["Normal"]),
        Paragraph(f"Phone: {escape(customer.get('phone') or '')}", styles["Normal"]),
        Paragraph(f"Address: {escape(customer.get('address') or '')}", styles["Normal"]),
    ]
    if statement.get("start_date") or statement.get("end_date"):
        period = f"{statement.get('start_date') or '...'} - {statement.get('end_date') or '...'}"
        story.append(Paragraph(f"Period: {period}", styles["Normal"]))
        story.append(Paragraph(f"Opening balance: {_money(statement.get('opening_balance_cents'))}", styles["Normal"]))
    story.append(Spacer(1, 12))

    rows = [["Date", "Description", "Debit", "Credit", "Balance"]]
    for tx in statement["transactions"]:
        rows.append([
            (tx.get("date") or "")[:10],
            tx.get("description") or "",
            _money(tx["debit_cents"]) if tx.get("debit_cents") else "-",
            _money(tx["credit_cents"]) if tx.get("credit_cents") else "-",
            _money(tx.get("running_balance_cents")),
        ])
    story.append(_table(rows, col_widths=[70, 200, 80, 80, 90]))
    story.append(Spacer(1, 12))
    story.append(Paragraph(f"<b>Current Balance: {_money(customer.get('balance_cents'))}</b>", styles["Normal"]))
    return _build_pdf(story)
