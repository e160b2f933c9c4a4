"""
Pytest fixtures for the ERP backend tests.

Provides test database setup, users for each role, customers/products, and test client.
"""

import pytest
from erp import create_app
from erp.extensions import db
from erp.models import Customer, Product, User


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVOICE_EDIT_POLICY': 'metadata',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, email, display_name, role):
    user = User(email=email, display_name=display_name, role=role, created_by="System")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin@hcp.com", "System Administrator", "admin")


@pytest.fixture(scope='function')
def supervisor_user(db_session):
    return _make_user(db_session, "supervisor@hcp.com", "John Supervisor", "supervisor")


@pytest.fixture(scope='function')
def clerk_user(db_session):
    """Role 'user': view/add only."""
    return _make_user(db_session, "user@hcp.com", "Jane User", "user")


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: customers start at a zero balance unless a ledger entry moves it."""
    def _make(full_name="John Smith", discount_rate_bps=0, category="Individuals"):
        customer = Customer(
            full_name=full_name,
            phone="+1-555-0123",
            category=category,
            discount_rate_bps=discount_rate_bps,
            balance_cents=0,
            created_by="System",
        )
        db_session.add(customer)
        db_session.commit()
        return customer
    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    """Customer with a 5% discount."""
    return make_customer(discount_rate_bps=500)


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(name="Steel Beam 20ft", price_cents=15_000, stock=45, low_stock_threshold=10, category="Structural"):
        product = Product(
            name=name,
            category=category,
            price_cents=price_cents,
            stock=stock,
            low_stock_threshold=low_stock_threshold,
            created_by="System",
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    return make_product()


def auth_headers(user) -> dict:
    """Helper to create actor headers for a user."""
    return {'X-User-Id': str(user.id)}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(admin_user)


@pytest.fixture(scope='function')
def supervisor_headers(supervisor_user):
    return auth_headers(supervisor_user)


@pytest.fixture(scope='function')
def clerk_headers(clerk_user):
    return auth_headers(clerk_user)
