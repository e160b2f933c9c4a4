"""
Customer, product and user service tests.
"""

import pytest

from erp.errors import ConflictError, NotFoundError, ValidationError
from erp.models import Customer
from erp.services import (
    customer_service,
    ledger_service,
    products_service,
    store_service,
    user_service,
)


class TestCustomers:

    def test_create_starts_at_zero_balance(self, db_session):
        customer = customer_service.create_customer(
            {"full_name": "Nile Builders", "category": "Shops", "discount_rate_bps": 1000},
            actor="Jane User",
        )
        assert customer.balance_cents == 0
        assert customer.created_by == "Jane User"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"full_name": "X", "category": "Wholesale"},
            {"full_name": "X", "discount_rate_bps": 10_001},
            {"full_name": "X", "discount_rate_bps": 5.5},
            {"full_name": "X", "balance_cents": 500},
        ],
    )
    def test_create_validation(self, db_session, payload):
        with pytest.raises(ValidationError):
            customer_service.create_customer(payload)

    def test_balance_cannot_be_set_directly(self, db_session, customer):
        with pytest.raises(ValidationError):
            customer_service.update_customer(customer.id, {"balance_cents": 1})
        with pytest.raises(ValidationError):
            store_service.customers.update(customer.id, {"balance_cents": 1})

    def test_update_stamps_actor(self, db_session, customer):
        updated = customer_service.update_customer(customer.id, {"phone": "+20 100"}, actor="John Supervisor")
        assert updated.phone == "+20 100"
        assert updated.updated_by == "John Supervisor"
        assert updated.updated_at is not None

    def test_delete_without_history(self, db_session, customer):
        customer_id = customer.id
        customer_service.delete_customer(customer_id)
        assert db_session.get(Customer, customer_id) is None

    def test_delete_with_history_is_rejected(self, db_session, customer):
        ledger_service.record_transaction(
            customer_id=customer.id, kind="invoice", description="Opening balance", debit_cents=100
        )
        with pytest.raises(ConflictError):
            customer_service.delete_customer(customer.id)
        assert db_session.get(Customer, customer.id) is not None

    def test_delete_missing(self, db_session):
        with pytest.raises(NotFoundError):
            customer_service.delete_customer(404)

    def test_search_and_category(self, db_session, make_customer):
        make_customer("City Hardware Store", category="Shops")
        make_customer("Sarah Johnson")
        assert [c.full_name for c in customer_service.list_customers(search="hardware")] == ["City Hardware Store"]
        assert len(customer_service.list_customers(category="Individuals")) == 1
        assert customer_service.category_counts() == {"Institutions": 0, "Shops": 1, "Individuals": 1}


class TestStore:

    def test_transactions_are_append_only(self, db_session, customer):
        tx = ledger_service.record_transaction(
            customer_id=customer.id, kind="invoice", description="x", debit_cents=1
        )
        with pytest.raises(ValidationError):
            store_service.transactions.update(tx.id, {"description": "edited"})
        with pytest.raises(ValidationError):
            store_service.transactions.delete(tx.id)

    def test_get_all_equality_filters(self, db_session, make_customer):
        make_customer("A", category="Shops")
        make_customer("B")
        assert [c.full_name for c in store_service.customers.get_all({"category": "Shops"})] == ["A"]
        with pytest.raises(ValidationError):
            store_service.customers.get_all({"nickname": "A"})


class TestProducts:

    def test_stock_alerts(self, db_session, make_product):
        make_product("Beam", stock=45, low_stock_threshold=10)
        make_product("Tile", stock=5, low_stock_threshold=10)
        make_product("Molding", stock=0, low_stock_threshold=5, category="Decorative")

        alerts = products_service.inventory_alerts()
        assert [p["name"] for p in alerts["low_stock"]] == ["Tile"]
        assert [p["name"] for p in alerts["out_of_stock"]] == ["Molding"]
        assert alerts["alert_count"] == 2
        assert alerts["category_counts"]["Structural"] == 2

    def test_stock_status_filter(self, db_session, make_product):
        make_product("Beam", stock=45, low_stock_threshold=10)
        make_product("Tile", stock=5, low_stock_threshold=10)
        assert [p.name for p in products_service.list_products(stock_status="low")] == ["Tile"]
        assert [p.name for p in products_service.list_products(stock_status="in")] == ["Beam"]

    def test_negative_stock_rejected(self, db_session, product):
        with pytest.raises(ValidationError):
            products_service.update_product(product.id, {"stock": -1})


class TestUsers:

    def test_email_unique_case_insensitive(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            user_service.create_user({"email": "ADMIN@hcp.com", "display_name": "Dup"})

    def test_email_is_lowercased(self, db_session):
        user = user_service.create_user({"email": "Clerk@HCP.com", "display_name": "Clerk"})
        assert user.email == "clerk@hcp.com"
        assert user.role == "user"

    def test_last_admin_cannot_be_demoted_or_deleted(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            user_service.update_user(admin_user.id, {"role": "user"})
        with pytest.raises(ConflictError):
            user_service.delete_user(admin_user.id)

    def test_admin_can_be_removed_when_another_exists(self, db_session, admin_user):
        user_service.create_user({"email": "second@hcp.com", "display_name": "Second", "role": "admin"})
        admin_id = admin_user.id
        user_service.delete_user(admin_id)
        assert user_service.find_user(admin_id) is None

    def test_find_user_tolerates_junk(self, db_session):
        assert user_service.find_user("abc") is None
        assert user_service.find_user(None) is None
