# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-password "Password123"]
#   Idempotent bootstrap: creates tables and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username ops --email ops@stockroom.local --password "Password123" --role staff
#
# Inspection:
# - python -m flask stock show [--product-id 1] [--warehouse-id 1]
# - python -m flask reports summary

import click
from flask.cli import with_appcontext

from .errors import StockroomError
from .extensions import db
from .models import ROLES, User
from .services import aggregation_service, auth_service, stock_ledger_service

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@stockroom.local"


def _cents(value: int) -> str:
    return f"${value / 100:,.2f}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-password', default='Password123', help='Password for the default admin user')
@with_appcontext
def init_system(admin_password):
    """Create tables and the default admin user (safe to re-run)."""
    click.echo("START Initializing stockroom...")
    db.create_all()
    click.echo("PASS Tables created")

    existing = db.session.query(User).filter_by(username=DEFAULT_ADMIN_USERNAME).first()
    if existing:
        click.echo(f"WARN  User '{DEFAULT_ADMIN_USERNAME}' already exists, skipping...")
    else:
        try:
            auth_service.create_user(
                DEFAULT_ADMIN_USERNAME,
                DEFAULT_ADMIN_EMAIL,
                admin_password,
                role="admin",
            )
        except StockroomError as e:
            raise click.ClickException(f"Failed to create admin user: {e.message}")
        click.echo(f"PASS Created user: {DEFAULT_ADMIN_USERNAME} ({DEFAULT_ADMIN_EMAIL}) with role 'admin'")

    click.echo("DONE stockroom initialized")


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), default='staff', show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        user = auth_service.create_user(username, email, password, role=role)
    except StockroomError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users_cli():
    """List all users with role and active status."""
    users = auth_service.list_users()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<8} {'Active'}")
    for u in users:
        click.echo(f"{u.id:<5} {u.username:<20} {u.email:<32} {u.role:<8} {'yes' if u.is_active else 'no'}")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('show')
@click.option('--product-id', type=int, default=None, help='Filter by product')
@click.option('--warehouse-id', type=int, default=None, help='Filter by warehouse')
@with_appcontext
def show_stock(product_id, warehouse_id):
    """Print stock entries, most recently changed first."""
    entries = stock_ledger_service.list_entries(product_id=product_id, warehouse_id=warehouse_id)
    if not entries:
        click.echo("No stock entries found.")
        return

    click.echo(f"{'Product':<30} {'Warehouse':<20} {'On hand':>8} {'Reserved':>9} {'Available':>10}")
    for e in entries:
        click.echo(
            f"{e.product.name[:30]:<30} {e.warehouse.name[:20]:<20} "
            f"{e.quantity_on_hand:>8} {e.quantity_reserved:>9} {e.quantity_available:>10}"
        )


@click.group('reports')
def reports_group():
    """Derived inventory figures."""


@reports_group.command('summary')
@with_appcontext
def summary_report():
    """Print dashboard totals and inventory valuation."""
    d = aggregation_service.dashboard()
    click.echo(f"Products:          {d['product_count']}")
    click.echo(f"Warehouses:        {d['warehouse_count']}")
    click.echo(f"Units on hand:     {d['total_on_hand']}")
    click.echo(f"Units reserved:    {d['total_reserved']}")
    click.echo(f"Units available:   {d['total_available']}")
    click.echo(f"Inventory cost:    {_cents(d['total_cost_cents'])}")
    click.echo(f"Retail value:      {_cents(d['total_retail_value_cents'])}")
    click.echo(f"Potential profit:  {_cents(d['potential_profit_cents'])}")
    click.echo(f"Profit margin:     {d['profit_margin']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(reports_group)
