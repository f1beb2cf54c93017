# Overview: Flask CLI command groups for bootstrap, provisioning and maintenance.

# backend/bistro/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP=bistro and DATABASE_URL to the target database.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables if missing, seed the chart of accounts (with VAT and payroll
#   accounts) and bootstrap the admin user from ADMIN_EMAIL/ADMIN_PASSWORD.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Chart of accounts (all idempotent):
# - python -m flask accounts seed
# - python -m flask accounts ensure-vat
# - python -m flask accounts ensure-payroll
# - python -m flask accounts fix-codes
# - python -m flask accounts tree
#   Print the tree and exit non-zero on orphans, cycles or duplicate codes.
#
# Users:
# - python -m flask users create --email a@b.c --password "..." --role cashier --branch china_town
# - python -m flask users bootstrap-admin
# - python -m flask users add-default-branch [--branch china_town]
# - python -m flask users grant cashier@b.c sales create [--branch place_india]
#
# Integrity:
# - python -m flask integrity check
#   Exit non-zero when a posted entry is unbalanced or the tree is broken.

import sys

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import Account, User
from .services import account_service, auth_service, integrity_service, permission_service


def _fail(exc: ServiceError):
    click.echo(f"FAIL {exc.code}: {exc.message}", err=True)
    sys.exit(1)


def _echo_results(results: dict) -> None:
    for code, action in results.items():
        if action != "unchanged":
            click.echo(f"PASS {code} {action}")
    unchanged = sum(1 for a in results.values() if a == "unchanged")
    click.echo(f"DONE {len(results) - unchanged} changed, {unchanged} unchanged")


# ---------------------------------------------------------------------------
# system
# ---------------------------------------------------------------------------

@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables, seed accounts and the admin user. Safe to rerun."""
    click.echo("START Initializing bistro backend...")
    db.create_all()
    try:
        _echo_results(account_service.seed_chart_of_accounts())
        _echo_results(account_service.ensure_vat_accounts())
        _echo_results(account_service.ensure_payroll_accounts())
    except ServiceError as e:
        _fail(e)

    password = current_app.config.get("ADMIN_PASSWORD")
    if password:
        try:
            user, created = auth_service.ensure_admin(current_app.config["ADMIN_EMAIL"], password)
        except ServiceError as e:
            _fail(e)
        click.echo(f"PASS Admin {user.email} {'created' if created else 'already present'}")
    else:
        click.echo("WARN ADMIN_PASSWORD not set; admin user not bootstrapped")
    click.echo("DONE System initialized")


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
    db.create_all()
    click.echo("PASS Schema recreated")


# ---------------------------------------------------------------------------
# accounts
# ---------------------------------------------------------------------------

@click.group('accounts')
def accounts_group():
    """Chart of accounts provisioning."""


@accounts_group.command('seed')
@with_appcontext
def seed_accounts():
    """Create any missing default accounts."""
    try:
        _echo_results(account_service.seed_chart_of_accounts())
    except ServiceError as e:
        _fail(e)


@accounts_group.command('ensure-vat')
@with_appcontext
def ensure_vat():
    """Ensure 2130 VAT Settlement and 2140 Non-recoverable VAT under 2100."""
    try:
        _echo_results(account_service.ensure_vat_accounts())
    except ServiceError as e:
        _fail(e)


@accounts_group.command('ensure-payroll')
@with_appcontext
def ensure_payroll():
    """Ensure 2400 Accounts Payable with 2430 Accrued Payroll and 2431 GOSI Payable."""
    try:
        _echo_results(account_service.ensure_payroll_accounts())
    except ServiceError as e:
        _fail(e)


@accounts_group.command('fix-codes')
@with_appcontext
def fix_codes():
    """Backfill account_code from account_number and vice versa."""
    changed = account_service.fix_account_codes()
    click.echo(f"DONE {changed} accounts updated")


@accounts_group.command('tree')
@with_appcontext
def print_tree():
    """Print the account tree and validate it."""
    def _walk(nodes, depth=0):
        for node in nodes:
            click.echo(f"{'  ' * depth}{node['account_code'] or '-'}  {node['name']}")
            _walk(node["children"], depth + 1)

    _walk(account_service.get_tree())
    report = account_service.validate_tree()
    if not report.ok:
        click.echo(f"FAIL {report.to_dict()}", err=True)
        sys.exit(1)
    click.echo(f"PASS {db.session.query(Account).count()} accounts, tree is valid")


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------

@click.group('users')
def users_group():
    """User bootstrap and permissions."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', default='user', show_default=True)
@click.option('--branch', default=None)
@with_appcontext
def create_user_cmd(email, password, role, branch):
    data = {"email": email, "password": password, "role": role}
    if branch:
        data["default_branch"] = branch
    try:
        user = auth_service.create_user(data)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('bootstrap-admin')
@click.option('--email', default=None, help='Defaults to ADMIN_EMAIL')
@click.option('--password', default=None, help='Defaults to ADMIN_PASSWORD')
@with_appcontext
def bootstrap_admin(email, password):
    email = email or current_app.config["ADMIN_EMAIL"]
    password = password or current_app.config.get("ADMIN_PASSWORD")
    if not password:
        click.echo("FAIL No password given and ADMIN_PASSWORD is not set", err=True)
        sys.exit(1)
    try:
        user, created = auth_service.ensure_admin(email, password)
    except ServiceError as e:
        _fail(e)
    click.echo(f"PASS Admin {user.email} {'created' if created else 'already present'}")


@users_group.command('add-default-branch')
@click.option('--branch', default=None, help='Defaults to DEFAULT_BRANCH')
@with_appcontext
def add_default_branch(branch):
    changed = auth_service.backfill_default_branch(branch)
    click.echo(f"DONE {changed} users updated")


@users_group.command('grant')
@click.argument('email')
@click.argument('screen')
@click.argument('action')
@click.option('--branch', default=None, help='Omit for a global grant')
@click.option('--deny', is_flag=True, help='Store an explicit deny instead')
@with_appcontext
def grant_cmd(email, screen, action, branch, deny):
    user = db.session.query(User).filter_by(email=auth_service.normalize_email(email)).first()
    if not user:
        click.echo(f"FAIL User {email} not found", err=True)
        sys.exit(1)
    permission_service.grant(user.id, screen, action, branch, allowed=not deny)
    scope = branch or "all branches"
    click.echo(f"PASS {'Denied' if deny else 'Granted'} {screen}.{action} for {user.email} ({scope})")


# ---------------------------------------------------------------------------
# integrity
# ---------------------------------------------------------------------------

@click.group('integrity')
def integrity_group():
    """Ledger consistency checks."""


@integrity_group.command('check')
@with_appcontext
def integrity_check():
    report = integrity_service.check()
    for entry in report.unbalanced_entries:
        click.echo(
            f"FAIL entry #{entry['entry_number']} debit {entry['total_debit']} != credit {entry['total_credit']}"
        )
    for order_id in report.issued_orders_without_invoice:
        click.echo(f"FAIL order {order_id} is ISSUED without an invoice")
    for number in report.posted_invoices_without_entry:
        click.echo(f"FAIL invoice {number} is posted without a journal entry")
    if not report.tree.get("ok", True):
        click.echo(f"FAIL account tree: {report.tree}")
    if not report.ok:
        sys.exit(1)
    click.echo("PASS Ledger and account tree are consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(users_group)
    app.cli.add_command(integrity_group)
