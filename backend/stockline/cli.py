# Overview: Flask CLI command groups for bootstrap, store setup and stock operations.

# backend/stockline/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--create-tables]
#   Idempotent bootstrap: seeds the default sizes XS..XXL.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stores:
# - python -m flask stores list [--all]
# - python -m flask stores create --name "MG Road" --location "Bengaluru"
#
# Stock:
# - python -m flask stock show 5
#   Warehouse and per-store balances of one size-stock unit.
# - python -m flask stock distribute --store-id 1 --size-stock-id 5 --quantity 30
# - python -m flask stock adjust --size-stock-id 5 --quantity 120 --note "Cycle count"

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import StoreInventory
from .services import catalog_service, inventory_service, store_service
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--create-tables', is_flag=True, help='Create tables without migrations (dev only)')
@with_appcontext
def init_system(create_tables):
    """Seed reference data. Safe to run repeatedly."""
    click.echo("START Initializing stockline...")

    if create_tables:
        db.create_all()
        click.echo("PASS Tables created")

    created = catalog_service.ensure_default_sizes()
    click.echo(f"PASS Default sizes ready ({created} created)")
    click.echo("DONE")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed sizes.")


@click.group('stores')
def stores_group():
    """Store management commands."""


@stores_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive stores')
@with_appcontext
def list_stores(include_inactive):
    stores = store_service.list_stores(include_inactive=include_inactive)
    if not stores:
        click.echo("No stores found.")
        return
    for store in stores:
        status = "active" if store.is_active else "inactive"
        click.echo(f"{store.id:>4}  {store.name:<30} {store.location or '-':<25} {status}")


@stores_group.command('create')
@click.option('--name', prompt=True, help='Store name')
@click.option('--location', default='', help='Store location')
@with_appcontext
def create_store(name, location):
    try:
        store = store_service.create_store(name=name, location=location)
    except (ValidationError, ConflictError) as exc:
        raise click.ClickException(str(exc))
    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")


@click.group('stock')
def stock_group():
    """Inventory ledger commands."""


@stock_group.command('show')
@click.argument('size_stock_id', type=int)
@with_appcontext
def show_stock(size_stock_id):
    try:
        balance = inventory_service.unit_balance(size_stock_id)
    except LedgerError as exc:
        raise click.ClickException(exc.message)

    click.echo(f"Warehouse: {balance['warehouse_stock']}")
    rows = (
        db.session.query(StoreInventory)
        .filter_by(size_stock_id=size_stock_id)
        .order_by(StoreInventory.store_id.asc())
        .all()
    )
    for row in rows:
        click.echo(f"Store {row.store_id}: {row.quantity}")
    click.echo(f"Total: {balance['total']}")


@stock_group.command('distribute')
@click.option('--store-id', type=int, required=True)
@click.option('--size-stock-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@with_appcontext
def distribute_stock(store_id, size_stock_id, quantity):
    try:
        result = inventory_service.distribute(store_id, size_stock_id, quantity)
    except LedgerError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}")
    click.echo(
        f"PASS Distributed {quantity}: warehouse={result['warehouse_stock']} "
        f"store={result['store_quantity']}"
    )


@stock_group.command('adjust')
@click.option('--size-stock-id', type=int, required=True)
@click.option('--quantity', type=int, required=True, help='New warehouse quantity')
@click.option('--note', default=None)
@with_appcontext
def adjust_stock(size_stock_id, quantity, note):
    try:
        unit = inventory_service.adjust_warehouse_stock(size_stock_id, quantity, note=note)
    except LedgerError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}")
    click.echo(f"PASS Warehouse stock of unit {unit.id} is now {unit.warehouse_stock}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(stock_group)
