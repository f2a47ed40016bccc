# Overview: Flask CLI command groups for bootstrap, ledger verification, and maintenance.

# backend/hardware_pos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (prefer `flask db upgrade` on real deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Ledger verification/repair:
# - python -m flask ledger verify
#   Compare stored stock and balances against movements and payments. Exits 1 on drift.
# - python -m flask ledger rebuild-inventory
#   Overwrite drifted inventory rows with the sum of their stock movements.
# - python -m flask ledger recalculate-balances
#   Re-derive sale payment status and customer balances from payments.
#
# Catalog inspection:
# - python -m flask catalog low-stock
#   List active products at or below their minimum stock level.

import click
from flask.cli import with_appcontext

from .extensions import db
from .permissions import SYSTEM_ACTOR
from .services import inventory_service, payment_service
from .services.concurrency import acquire_write_lock, run_with_retry


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


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

    click.echo("PASS Database reset complete.")


@click.group('ledger')
def ledger_group():
    """Inventory ledger and credit balance verification."""


@ledger_group.command('verify')
@with_appcontext
def verify_ledger():
    """Report stock drift and balance drift; exit code 1 if any is found."""
    stock_drift = inventory_service.find_drift()
    balance_drift = payment_service.find_balance_drift()

    for entry in stock_drift:
        click.echo(
            f"FAIL product {entry['product_id']}: stored {entry['stored']}, movements {entry['movements']}"
        )
    for entry in balance_drift:
        click.echo(
            f"FAIL {entry['kind']} {entry['id']}: stored {entry['stored']}, expected {entry['expected']}"
        )

    if stock_drift or balance_drift:
        click.echo(f"\n{len(stock_drift)} stock and {len(balance_drift)} balance discrepancies found.")
        raise SystemExit(1)
    click.echo("PASS Inventory matches movements and balances match payments.")


@ledger_group.command('rebuild-inventory')
@with_appcontext
def rebuild_inventory():
    """Overwrite drifted inventory rows with movement sums."""
    def _op():
        acquire_write_lock()
        fixed = inventory_service.rebuild_from_movements(actor_id=SYSTEM_ACTOR.actor_id)
        db.session.commit()
        return fixed

    fixed = run_with_retry(_op)
    click.echo(f"PASS Rebuilt {fixed} inventory row(s).")


@ledger_group.command('recalculate-balances')
@with_appcontext
def recalculate_balances():
    """Re-derive credit sale status and customer balances."""
    result = payment_service.recalculate_all_balances()
    click.echo(
        f"PASS Updated {result['sales_fixed']} sale(s) and {result['customers_fixed']} customer balance(s)."
    )


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


@catalog_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below their minimum stock level."""
    rows = inventory_service.get_low_stock()
    if not rows:
        click.echo("No products are low on stock.")
        return

    click.echo(f"{'SKU':<20} {'Name':<40} {'Stock':>12} {'Min':>8}")
    click.echo("-" * 83)
    for row in rows:
        click.echo(
            f"{row['sku']:<20} {row['name'][:40]:<40} {row['quantity']:>12} {row['min_stock_level']:>8}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(catalog_group)
