# Overview: Flask CLI command groups for bootstrap, backup and ledger maintenance.

# backend/hoor/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create missing tables and seed default settings (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Backup:
# - python -m flask backup export hoor-backup.json
#   Write every table to a JSON document.
# - python -m flask backup import hoor-backup.json --yes
#   Replace all data with the document's contents.
#
# Ledger:
# - python -m flask ledger check-balances
#   Compare cached customer/supplier balances against their statements.
#
# Shifts:
# - python -m flask shifts list --limit 10
#   List recent shifts with their cash variance.

import json

import click
from flask.cli import with_appcontext

from .errors import HoorError
from .extensions import db
from .services import backup_service, balance_service, shift_service
from .services.settings_service import ensure_defaults


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed default store settings."""
    click.echo("START Initializing Hoor...")
    db.create_all()
    created = ensure_defaults()
    click.echo(f"PASS Seeded {created} default setting(s)")
    click.echo("DONE Hoor initialized")


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
    ensure_defaults()

    click.echo("PASS Database reset complete")


@click.group('backup')
def backup_group():
    """Whole-store JSON backup and restore."""


@backup_group.command('export')
@click.argument('path', type=click.Path(dir_okay=False, writable=True))
@with_appcontext
def export_backup(path):
    document = backup_service.export_backup()
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(document, fh, ensure_ascii=False, indent=2)
    rows = sum(len(records) for records in document["data"].values())
    click.echo(f"PASS Exported {rows} rows to {path}")


@backup_group.command('import')
@click.argument('path', type=click.Path(exists=True, dir_okay=False))
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def import_backup(path, yes):
    """Replace ALL data with the contents of a backup document."""
    if not yes:
        click.confirm("WARN Importing replaces ALL DATA. Continue?", abort=True)
    with open(path, encoding="utf-8") as fh:
        try:
            document = json.load(fh)
        except json.JSONDecodeError as exc:
            raise click.ClickException(f"{path} is not valid JSON: {exc}")
    try:
        counts = backup_service.import_backup(document)
    except HoorError as exc:
        raise click.ClickException(exc.message)
    for table, count in counts.items():
        click.echo(f"  {table}: {count}")
    click.echo("PASS Backup imported")


@click.group('ledger')
def ledger_group():
    """Party balance consistency checks."""


@ledger_group.command('check-balances')
@with_appcontext
def check_balances():
    drifting = balance_service.reconcile_all()
    if not drifting:
        click.echo("PASS All cached balances match their statements")
        return
    for row in drifting:
        click.echo(
            f"FAIL {row['kind']} {row['id']} ({row['name']}): "
            f"cached={row['cached_cents']} ledger={row['ledger_cents']} drift={row['drift_cents']}"
        )
    raise SystemExit(1)


@click.group('shifts')
def shifts_group():
    """Cash drawer shift inspection."""


@shifts_group.command('list')
@click.option('--limit', default=20, show_default=True, type=int)
@with_appcontext
def list_shifts(limit):
    shifts = shift_service.list_shifts(limit=limit)
    if not shifts:
        click.echo("No shifts recorded")
        return
    for shift in shifts:
        difference = "-" if shift.difference_cents is None else shift.difference_cents
        click.echo(
            f"{shift.id:>5}  {shift.status:<6}  opened={shift.opened_at:%Y-%m-%d %H:%M}  "
            f"opening={shift.opening_cash_cents}  difference={difference}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(backup_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(shifts_group)
