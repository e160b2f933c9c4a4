# Overview: Flask CLI command groups for bootstrap, ledger checks, and user management.

# backend/erp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Create the schema first: python -m flask db upgrade
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates the default admin user if no admin exists.
# - python -m flask system seed-demo
#   Load demo customers, products and users (skipped if customers exist).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger checks:
# - python -m flask ledger verify [--customer-id 3]
#   Replay every customer's transactions and report balance drift. Exit code 1 on drift.
# - python -m flask ledger reconcile --customer-id 3 | --all
#   Reset cached balances to the replayed ledger balance.
#
# Users:
# - python -m flask users create --email clerk@hcp.com --display-name "Clerk" --role user
# - python -m flask users list

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import SERVICE_ERRORS
from .models import Customer, Product, User
from .services import ledger_service, user_service
from .validation import USER_ROLES

SYSTEM_ACTOR = "System"

DEFAULT_ADMIN = {"email": "admin@hcp.com", "display_name": "System Administrator", "role": "admin"}

# (full_name, phone, address, category, discount_rate_bps, opening_balance_cents)
DEMO_CUSTOMERS = [
    ("John Smith", "+1-555-0123", "123 Main Street, City, State 12345", "Individuals", 500, 25_000),
    ("ABC Construction Corp", "+1-555-0456", "456 Business Ave, Industrial Zone, State 67890", "Institutions", 1500, -50_000),
    ("City Hardware Store", "+1-555-0789", "789 Commerce Street, Downtown, State 11111", "Shops", 1000, 12_550),
    ("Sarah Johnson", "+1-555-0321", "321 Oak Drive, Residential Area, State 22222", "Individuals", 0, 0),
    ("Metro Construction LLC", "+1-555-0654", "654 Industrial Park, Metro City, State 33333", "Institutions", 2000, 125_075),
]

# (name, category, batch_code, price_cents, stock, low_stock_threshold)
DEMO_PRODUCTS = [
    ("Steel Beam 20ft", "Structural", "SB20-2024", 15_000, 45, 10),
    ("Concrete Block", "Structural", "CB-2024", 850, 250, 50),
    ("Exterior Paint - White", "Exterior", "EP-WHT-2024", 4_599, 12, 15),
    ("Vinyl Siding", "Exterior", "VS-2024", 2_575, 89, 20),
    ("Decorative Stone Tile", "Decorative", None, 1_299, 5, 10),
    ("Crown Molding", "Decorative", "CM-2024", 1_850, 0, 5),
    ("Aluminum Window Frame", "Exterior", "AWF-2024", 12_500, 8, 15),
    ("Hardwood Flooring", "Decorative", "HF-OAK-2024", 8_599, 35, 10),
]

DEMO_USERS = [
    DEFAULT_ADMIN,
    {"email": "supervisor@hcp.com", "display_name": "John Supervisor", "role": "supervisor"},
    {"email": "user@hcp.com", "display_name": "Jane User", "role": "user"},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Ensure at least one admin exists.

    Safe to run repeatedly.
    """
    click.echo("START Initializing system...")
    admin = db.session.query(User).filter_by(role="admin").first()
    if admin:
        click.echo(f"PASS Using existing admin: {admin.email} (ID: {admin.id})")
        return

    existing = db.session.query(User).filter_by(email=DEFAULT_ADMIN["email"]).first()
    if existing:
        user_service.update_user(existing.id, {"role": "admin"}, actor=SYSTEM_ACTOR)
        click.echo(f"PASS Promoted {existing.email} to admin")
        return

    user = user_service.create_user(DEFAULT_ADMIN, actor=SYSTEM_ACTOR)
    click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")
    click.echo(f"     Send X-User-Id: {user.id} with API requests")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """
    Load demo customers, products and users.

    Opening balances are posted as ledger transactions so the
    cached balances replay cleanly.
    """
    if db.session.query(Customer).count() > 0:
        click.echo("SKIP Demo data already exists")
        return

    click.echo("USERS Creating demo users...")
    for data in DEMO_USERS:
        if db.session.query(User).filter_by(email=data["email"]).first():
            continue
        user_service.create_user(dict(data), actor=SYSTEM_ACTOR)

    click.echo("LIST Creating demo products...")
    for name, category, batch_code, price, stock, threshold in DEMO_PRODUCTS:
        db.session.add(Product(
            name=name,
            category=category,
            batch_code=batch_code,
            price_cents=price,
            stock=stock,
            low_stock_threshold=threshold,
            created_by=SYSTEM_ACTOR,
        ))
    db.session.commit()

    click.echo("LIST Creating demo customers...")
    for full_name, phone, address, category, rate, opening in DEMO_CUSTOMERS:
        customer = Customer(
            full_name=full_name,
            phone=phone,
            address=address,
            category=category,
            discount_rate_bps=rate,
            balance_cents=0,
            created_by=SYSTEM_ACTOR,
        )
        db.session.add(customer)
        db.session.commit()

        if opening > 0:
            ledger_service.record_transaction(
                customer_id=customer.id,
                kind=ledger_service.TX_INVOICE,
                description="Opening balance",
                debit_cents=opening,
                actor=SYSTEM_ACTOR,
            )
        elif opening < 0:
            ledger_service.record_transaction(
                customer_id=customer.id,
                kind=ledger_service.TX_PAYMENT,
                description="Opening credit",
                credit_cents=-opening,
                actor=SYSTEM_ACTOR,
            )

    click.echo(f"PASS Seeded {len(DEMO_CUSTOMERS)} customers, {len(DEMO_PRODUCTS)} products, {len(DEMO_USERS)} users")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# LEDGER
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Customer ledger verification and repair."""


def _format_cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


@ledger_group.command('verify')
@click.option('--customer-id', type=int, help='Check a single customer')
@with_appcontext
def verify_ledger(customer_id):
    """Replay transactions and compare against cached balances."""
    try:
        if customer_id is not None:
            results = [ledger_service.verify_customer_balance(customer_id)]
        else:
            results = ledger_service.verify_all_balances()
    except SERVICE_ERRORS as e:
        raise click.ClickException(str(e))

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<6} {'Cached':>16} {'Replayed':>16} {'Drift':>14}  {'Status'}")
    click.echo("=" * 80)
    drifted = 0
    for r in results:
        status = "OK" if r["in_sync"] else "DRIFT"
        if r["snapshot_mismatches"]:
            status += f" ({len(r['snapshot_mismatches'])} snapshot mismatches)"
        if not r["in_sync"]:
            drifted += 1
        click.echo(
            f"{r['customer_id']:<6} {_format_cents(r['cached_balance_cents']):>16} "
            f"{_format_cents(r['replayed_balance_cents']):>16} {_format_cents(r['drift_cents']):>14}  {status}"
        )
    click.echo("=" * 80)
    click.echo(f"{len(results)} customers checked, {drifted} out of sync\n")

    if drifted:
        raise SystemExit(1)


@ledger_group.command('reconcile')
@click.option('--customer-id', type=int, help='Repair a single customer')
@click.option('--all', 'all_customers', is_flag=True, help='Repair every drifted customer')
@with_appcontext
def reconcile_ledger(customer_id, all_customers):
    """Reset cached balances to the replayed ledger balance."""
    if customer_id is None and not all_customers:
        raise click.UsageError("Pass --customer-id or --all")

    if customer_id is not None:
        ids = [customer_id]
    else:
        ids = [r["customer_id"] for r in ledger_service.verify_all_balances() if not r["in_sync"]]

    repaired = 0
    for cid in ids:
        try:
            result = ledger_service.reconcile_customer_balance(cid, actor=SYSTEM_ACTOR)
        except SERVICE_ERRORS as e:
            raise click.ClickException(str(e))
        if result["repaired"]:
            repaired += 1
            click.echo(
                f"FIX  Customer {cid}: {_format_cents(result['cached_balance_cents'])} -> "
                f"{_format_cents(result['balance_cents'])}"
            )
        elif result["snapshot_mismatches"]:
            click.echo(f"WARN Customer {cid}: balance matches but {len(result['snapshot_mismatches'])} snapshots differ")
    click.echo(f"PASS {repaired} balances repaired")


# =============================================================================
# USERS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--display-name', prompt=True, help='Name stamped on records')
@click.option('--role', type=click.Choice(list(USER_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(email, display_name, role):
    """Create a new user."""
    try:
        user = user_service.create_user(
            {"email": email, "display_name": display_name, "role": role},
            actor=SYSTEM_ACTOR,
        )
    except SERVICE_ERRORS as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user: {user.display_name} ({user.email}) with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = user_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Role'}")
    click.echo("=" * 80)
    for user in users:
        click.echo(f"{user.id:<5} {user.display_name:<25} {user.email:<35} {user.role}")
    click.echo("=" * 80 + "\n")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(users_group)
