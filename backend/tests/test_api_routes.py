"""
HTTP-level tests for the ERP API.

Verifies:
- Requests without a known X-User-Id return 401
- Role grants are enforced per (module, action) with 403
- Invoices and payments move the customer balance in one request
- Statement, reconcile, reports and exports are reachable with the right role
"""

import pytest

from erp.models import Customer, Transaction


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/customers"),
            ("POST", "/api/customers"),
            ("GET", "/api/products"),
            ("GET", "/api/invoices"),
            ("POST", "/api/invoices"),
            ("GET", "/api/payments"),
            ("POST", "/api/payments"),
            ("GET", "/api/transactions"),
            ("GET", "/api/reports/sales"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/users"),
            ("GET", "/api/users/me"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_user_id(self, client, db_session):
        resp = client.get("/api/customers", headers={"X-User-Id": "999"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Unknown user"

    def test_health_is_public(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


# =============================================================================
# ROLE DENIALS: 403
# =============================================================================


class TestRoleDenials:

    def test_clerk_cannot_delete_customer(self, client, clerk_headers, customer):
        resp = client.delete(f"/api/customers/{customer.id}", headers=clerk_headers)
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["required_permission"] == "customers.delete"
        assert body["allowed_roles"] == ["admin"]

    def test_supervisor_cannot_manage_users(self, client, supervisor_headers):
        assert client.get("/api/users", headers=supervisor_headers).status_code == 403
        resp = client.post(
            "/api/users",
            json={"email": "x@hcp.com", "display_name": "X"},
            headers=supervisor_headers,
        )
        assert resp.status_code == 403

    def test_clerk_cannot_export_reports(self, client, clerk_headers):
        resp = client.get("/api/reports/sales/export", headers=clerk_headers)
        assert resp.status_code == 403

    def test_clerk_cannot_print_invoices_or_statements(self, client, clerk_headers, customer, product):
        created = client.post(
            "/api/invoices",
            json={"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=clerk_headers,
        )
        invoice_id = created.get_json()["invoice"]["id"]

        resp = client.get(f"/api/invoices/{invoice_id}/pdf", headers=clerk_headers)
        assert resp.status_code == 403
        assert resp.get_json()["allowed_roles"] == ["admin", "supervisor"]
        resp = client.get(f"/api/customers/{customer.id}/statement/pdf", headers=clerk_headers)
        assert resp.status_code == 403

    def test_clerk_cannot_repair_balances(self, client, clerk_headers, customer):
        resp = client.post(f"/api/customers/{customer.id}/reconcile", headers=clerk_headers)
        assert resp.status_code == 403

    def test_supervisor_cannot_delete_invoice(self, client, supervisor_headers, customer, product):
        created = client.post(
            "/api/invoices",
            json={"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 1}]},
            headers=supervisor_headers,
        )
        assert created.status_code == 201
        invoice_id = created.get_json()["invoice"]["id"]
        assert client.delete(f"/api/invoices/{invoice_id}", headers=supervisor_headers).status_code == 403


# =============================================================================
# LEDGER FLOWS
# =============================================================================


@pytest.mark.ledger
class TestLedgerFlows:

    def test_create_customer_stamps_actor(self, client, clerk_headers, clerk_user):
        resp = client.post(
            "/api/customers",
            json={"full_name": "Nile Builders", "category": "Shops", "discount_rate_bps": 1000},
            headers=clerk_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["balance_cents"] == 0
        assert body["created_by"] == clerk_user.display_name

    def test_invalid_customer_is_400(self, client, admin_headers):
        resp = client.post("/api/customers", json={"full_name": ""}, headers=admin_headers)
        assert resp.status_code == 400
        assert "error" in resp.get_json()

    def test_invoice_then_payment(self, client, db_session, clerk_headers, customer, product):
        resp = client.post(
            "/api/invoices",
            json={"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 2}]},
            headers=clerk_headers,
        )
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["invoice"]["total_cents"] == 28_500
        assert body["customer_balance_cents"] == 28_500

        resp = client.post(
            "/api/payments",
            json={"customer_id": customer.id, "amount_cents": 10_000, "method": "Cheque"},
            headers=clerk_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["customer_balance_cents"] == 18_500

        db_session.expire_all()
        assert db_session.get(Customer, customer.id).balance_cents == 18_500
        assert db_session.query(Transaction).count() == 2

    def test_unknown_product_is_404(self, client, admin_headers, customer):
        resp = client.post(
            "/api/invoices",
            json={"customer_id": customer.id, "items": [{"product_id": 4242, "quantity": 1}]},
            headers=admin_headers,
        )
        assert resp.status_code == 404

    def test_statement_running_balance(self, client, admin_headers, customer):
        for body in (
            {"customer_id": customer.id, "type": "invoice", "description": "Opening balance", "debit_cents": 5_000},
            {"customer_id": customer.id, "type": "payment", "description": "Payment - Cash", "credit_cents": 2_000},
        ):
            assert client.post("/api/transactions", json=body, headers=admin_headers).status_code == 201

        resp = client.get(f"/api/customers/{customer.id}/statement", headers=admin_headers)
        assert resp.status_code == 200
        statement = resp.get_json()
        assert [r["running_balance_cents"] for r in statement["transactions"]] == [5_000, 3_000]
        assert statement["summary"]["net_balance_cents"] == 3_000

    def test_manual_entry_needs_customer_id(self, client, admin_headers):
        resp = client.post(
            "/api/transactions",
            json={"type": "invoice", "description": "x", "debit_cents": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_boolean_customer_id_is_400(self, client, db_session, admin_headers, customer):
        # True == 1 in Python; it must not post to customer 1
        resp = client.post(
            "/api/transactions",
            json={"customer_id": True, "type": "invoice", "description": "x", "debit_cents": 1},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert db_session.query(Transaction).count() == 0

    @pytest.mark.parametrize(
        "path",
        [
            "/api/customers/{id}/statement?start_date=2026-1-5",
            "/api/customers/{id}/statement?end_date=yesterday",
            "/api/customers/{id}/statement/pdf?start_date=2026-02-30",
            "/api/transactions?start_date=2026-1-5",
            "/api/payments?end_date=2026/10/19",
            "/api/reports/sales?start_date=2026-1-5",
            "/api/reports/sales/export?end_date=19-10-2026",
        ],
    )
    def test_bad_dates_are_400(self, client, admin_headers, customer, path):
        resp = client.get(path.format(id=customer.id), headers=admin_headers)
        assert resp.status_code == 400
        assert "YYYY-MM-DD" in resp.get_json()["error"]

    def test_reconcile_detects_and_repairs_drift(self, client, db_session, admin_headers, customer):
        client.post(
            "/api/transactions",
            json={"customer_id": customer.id, "type": "invoice", "description": "Opening balance", "debit_cents": 700},
            headers=admin_headers,
        )
        db_session.execute(
            Customer.__table__.update().where(Customer.id == customer.id).values(balance_cents=1)
        )
        db_session.commit()

        check = client.get(f"/api/customers/{customer.id}/reconcile", headers=admin_headers).get_json()
        assert check["in_sync"] is False
        assert check["drift_cents"] == -699

        repaired = client.post(f"/api/customers/{customer.id}/reconcile", headers=admin_headers).get_json()
        assert repaired["repaired"] is True
        assert repaired["balance_cents"] == 700

        check = client.get(f"/api/customers/{customer.id}/reconcile", headers=admin_headers).get_json()
        assert check["in_sync"] is True

    def test_transaction_listing_limit_is_clamped(self, client, admin_headers):
        resp = client.get("/api/transactions?limit=10000", headers=admin_headers)
        assert resp.get_json()["limit"] == 500


# =============================================================================
# REPORTS, DASHBOARD, USERS
# =============================================================================


@pytest.mark.reports
class TestReportRoutes:

    def test_summary_report(self, client, clerk_headers):
        resp = client.get("/api/reports/summary", headers=clerk_headers)
        assert resp.status_code == 200
        assert resp.get_json()["rows"][0]["metric"] == "Total Sales"

    def test_unknown_report_is_400(self, client, clerk_headers):
        assert client.get("/api/reports/vendors", headers=clerk_headers).status_code == 400

    def test_csv_export(self, client, supervisor_headers, customer):
        resp = client.get("/api/reports/customers/export?format=csv", headers=supervisor_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "text/csv"
        assert "attachment" in resp.headers["Content-Disposition"]
        assert customer.full_name in resp.get_data(as_text=True)

    def test_bad_export_format(self, client, supervisor_headers):
        resp = client.get("/api/reports/sales/export?format=docx", headers=supervisor_headers)
        assert resp.status_code == 400

    def test_pdf_export(self, client, supervisor_headers, customer):
        resp = client.get("/api/reports/customers/export?format=pdf", headers=supervisor_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.headers["Content-Disposition"].endswith("customers_report.pdf")
        assert resp.data.startswith(b"%PDF")

    def test_invoice_and_statement_pdfs(self, client, supervisor_headers, customer, product):
        created = client.post(
            "/api/invoices",
            json={"customer_id": customer.id, "items": [{"product_id": product.id, "quantity": 2}]},
            headers=supervisor_headers,
        ).get_json()["invoice"]

        resp = client.get(f"/api/invoices/{created['id']}/pdf", headers=supervisor_headers)
        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.headers["Content-Disposition"].endswith(f"{created['order_number']}.pdf")
        assert resp.data.startswith(b"%PDF")

        resp = client.get(
            f"/api/customers/{customer.id}/statement/pdf?start_date=2026-01-01",
            headers=supervisor_headers,
        )
        assert resp.status_code == 200
        assert resp.data.startswith(b"%PDF")

    def test_pdf_of_missing_invoice_is_404(self, client, supervisor_headers):
        assert client.get("/api/invoices/4242/pdf", headers=supervisor_headers).status_code == 404

    def test_id_filters_on_customer_and_inventory_reports(self, client, clerk_headers, make_customer, product):
        wanted = make_customer("Wanted Co")
        make_customer("Other Co")

        resp = client.get(f"/api/reports/customers?customer_id={wanted.id}", headers=clerk_headers)
        assert resp.status_code == 200
        assert [r["id"] for r in resp.get_json()["rows"]] == [wanted.id]

        resp = client.get(f"/api/reports/inventory?product_id={product.id}", headers=clerk_headers)
        assert resp.status_code == 200
        assert [r["id"] for r in resp.get_json()["rows"]] == [product.id]

    def test_dashboard(self, client, clerk_headers, product):
        resp = client.get("/api/dashboard", headers=clerk_headers)
        assert resp.status_code == 200
        stats = resp.get_json()
        assert stats["total_products"] == 1
        assert len(stats["sales_chart"]) == 7


class TestUserRoutes:

    def test_me_returns_permission_grid(self, client, clerk_headers, clerk_user):
        resp = client.get("/api/users/me", headers=clerk_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["user"]["id"] == clerk_user.id
        assert "last_login_at" not in body["user"]
        assert body["permissions"]["sales"]["can_add"] is True
        assert body["permissions"]["sales"]["can_delete"] is False

    def test_admin_creates_user(self, client, admin_headers):
        resp = client.post(
            "/api/users",
            json={"email": "new@hcp.com", "display_name": "New Clerk"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["role"] == "user"

    def test_duplicate_email_is_409(self, client, admin_headers, admin_user):
        resp = client.post(
            "/api/users",
            json={"email": admin_user.email, "display_name": "Dup"},
            headers=admin_headers,
        )
        assert resp.status_code == 409
