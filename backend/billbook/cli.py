# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/billbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent; use `flask db upgrade` for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Invoices:
# - python -m flask invoices refresh-status
#   Recompute cached payment_status for every invoice (e.g. after due dates pass).
#
# Customers:
# - python -m flask customers ledger 9876543210
#   Print the running ledger for a customer phone number.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .money import format_currency
from .services import customer_service
from .services import invoice_service
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


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

    click.echo("PASS Database reset complete")


@click.group('invoices')
def invoices_group():
    """Invoice maintenance commands."""


@invoices_group.command('refresh-status')
@with_appcontext
def refresh_status():
    """Recompute the stored payment_status of every invoice."""
    changed = invoice_service.refresh_all_statuses()
    click.echo(f"PASS Updated status on {changed} invoice(s)")


@click.group('customers')
def customers_group():
    """Customer inspection commands."""


@customers_group.command('ledger')
@click.argument('phone')
@with_appcontext
def customer_ledger(phone):
    """Print the running ledger for a customer."""
    try:
        ledger = customer_service.build_customer_ledger(phone)
    except ValidationError as e:
        raise click.ClickException(str(e))

    symbol = current_app.config["CURRENCY_SYMBOL"]
    entries = ledger["entries"]
    if not entries:
        click.echo(f"No invoices for {ledger['customer_phone']}")
        return

    click.echo(f"\nLedger for {ledger['customer_phone']}")
    click.echo("-" * 96)
    click.echo(f"{'Date':<22} {'Description':<30} {'Debit':>14} {'Credit':>14} {'Balance':>14}")
    click.echo("-" * 96)
    for entry in entries:
        debit = format_currency(entry["debit_cents"], symbol) if entry["debit_cents"] else ""
        credit = format_currency(entry["credit_cents"], symbol) if entry["credit_cents"] else ""
        click.echo(
            f"{entry['timestamp']:<22} {entry['description'][:30]:<30} "
            f"{debit:>14} {credit:>14} {format_currency(entry['running_balance_cents'], symbol):>14}"
        )
    click.echo("-" * 96)
    click.echo(
        f"Debits {format_currency(ledger['total_debits_cents'], symbol)}  "
        f"Credits {format_currency(ledger['total_credits_cents'], symbol)}  "
        f"Balance {format_currency(ledger['final_balance_cents'], symbol)}"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(invoices_group)
    app.cli.add_command(customers_group)
