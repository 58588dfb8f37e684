# Overview: Flask CLI command groups for bootstrap, users and ledger checks.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory, FLASK_APP=wsgi.py):
#
# - flask db upgrade
#   Apply Alembic migrations (Flask-Migrate).
# - flask system init
#   Create tables if missing and the default admin/manager/cashier users.
# - flask users list
# - flask users create --username jane --email jane@shop.local --password "Password123!" --role cashier
# - flask ledger verify
#   Recompute every customer's outstanding balance from sales and payments.

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLE_MANAGER, VALID_ROLES
from .money import format_cents
from .services import credit_service
from .services.auth_service import create_user

DEFAULT_PASSWORD = "Password123!"


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init")
@with_appcontext
def init_system():
    """
    Create all tables and the default users (idempotent).

    Users: admin, manager, cashier; password "Password123!".
    Change them immediately outside development.
    """
    click.echo("START Initializing POS ledger...")
    db.create_all()
    click.echo("PASS Tables ready")

    default_users = [
        ("admin", "admin@posledger.local", ROLE_ADMIN, "Administrator"),
        ("manager", "manager@posledger.local", ROLE_MANAGER, "Store Manager"),
        ("cashier", "cashier@posledger.local", ROLE_CASHIER, "Cashier"),
    ]
    for username, email, role, full_name in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, email, DEFAULT_PASSWORD, role=role, full_name=full_name)
        except LedgerError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")

    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, _, _, _ in default_users:
        click.echo(f"   {username:<8} / {DEFAULT_PASSWORD}")


@click.group("users")
def users_group():
    """User inspection and bootstrap."""


@users_group.command("list")
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<8} {status}")


@users_group.command("create")
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(VALID_ROLES), default=ROLE_CASHIER, show_default=True)
@click.option("--full-name", default=None)
@with_appcontext
def create_user_command(username, email, password, role, full_name):
    """Create a user with a bcrypt-hashed password."""
    try:
        user = create_user(username, email, password, role=role, full_name=full_name)
    except LedgerError as e:
        db.session.rollback()
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group("ledger")
def ledger_group():
    """Credit ledger consistency checks."""


@ledger_group.command("verify")
@with_appcontext
def verify_ledger():
    """Exit non-zero if any stored balance disagrees with sales minus payments."""
    results = credit_service.verify_all_balances()
    bad = [r for r in results if not r["consistent"]]
    for r in bad:
        click.echo(
            f"FAIL customer {r['customer_id']}: stored {format_cents(r['stored_balance_cents'])}, "
            f"computed {format_cents(r['computed_balance_cents'])}"
        )
    click.echo(f"Checked {len(results)} customers, {len(bad)} inconsistent")
    if bad:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
