# Overview: Flask CLI command groups for bootstrap, user setup, and commission maintenance.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to posledger (PowerShell: $env:FLASK_APP="posledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migration-managed databases).
# - python -m flask system seed-commission-tiers [--replace]
#   Insert the default commission tiers (5000/300, 10000/700, 20000/1500).
#
# Users:
# - python -m flask users create --name "Jane" --email jane@example.com --role manager
#   Create a user and print its API token.
#
# Commissions:
# - python -m flask commissions reconcile [--manager-id 3]
#   Accrue pending commission into wallets (COMMISSION_CREDIT_MODE=deferred).
# - python -m flask commissions preview 12000
#   Show the breakdown for a sales amount against the active tiers.

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import CommissionTier, User
from .models.auth import ROLE_MANAGER, VALID_ROLES
from .money import format_amount, to_cents
from .services import commission_service, wallet_service

DEFAULT_TIERS = [
    (500000, 30000, "Base commission rate - 300 for every 5,000 in sales"),
    (1000000, 70000, "Tier 2 commission rate - 700 for every 10,000 in sales"),
    (2000000, 150000, "Tier 3 commission rate - 1,500 for every 20,000 in sales"),
]


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


@system_group.command('seed-commission-tiers')
@click.option('--replace', is_flag=True, help='Deactivate existing tiers first')
@with_appcontext
def seed_commission_tiers(replace):
    """Insert the default commission tiers (idempotent by threshold)."""
    if replace:
        for tier in db.session.query(CommissionTier).filter(CommissionTier.is_active.is_(True)):
            tier.is_active = False
        db.session.commit()

    created = 0
    for threshold, amount, description in DEFAULT_TIERS:
        exists = (
            db.session.query(CommissionTier)
            .filter_by(sales_threshold_cents=threshold, commission_amount_cents=amount, is_active=True)
            .first()
        )
        if exists:
            continue
        commission_service.create_tier(threshold, amount, description=description)
        created += 1
    click.echo(f"Created {created} commission tier(s).")


@click.group('users')
def users_group():
    """User setup commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(list(VALID_ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, role):
    """Create a user and print its API token."""
    if db.session.query(User).filter_by(email=email).first():
        raise click.ClickException(f"User with email {email} already exists")

    user = User(name=name, email=email, role=role)
    db.session.add(user)
    db.session.commit()

    if role == ROLE_MANAGER:
        wallet_service.ensure_wallet(user.id)

    click.echo(f"Created {role} {user.email} (id={user.id})")
    click.echo(f"API token: {user.api_token}")


@click.group('commissions')
def commissions_group():
    """Commission maintenance commands."""


@commissions_group.command('reconcile')
@click.option('--manager-id', type=int, help='Only this manager')
@with_appcontext
def reconcile_cli(manager_id):
    """Accrue pending commission into manager wallets."""
    try:
        credited = commission_service.reconcile_commissions(manager_id)
    except PosError as exc:
        raise click.ClickException(exc.message)

    for mid, cents in credited.items():
        click.echo(f"manager {mid}: credited {format_amount(cents)}")
    click.echo(f"Reconciled {len(credited)} manager(s).")


@commissions_group.command('preview')
@click.argument('sales_amount')
@with_appcontext
def preview_cli(sales_amount):
    """Show the commission breakdown for SALES_AMOUNT."""
    try:
        data = commission_service.preview(to_cents(sales_amount, field="sales_amount"))
    except PosError as exc:
        raise click.ClickException(exc.message)

    for line in data["breakdown"]:
        click.echo(
            f"{line['threshold']:>12} x{line['multiplier']:<4} "
            f"@ {line['commission_per_threshold']} = {line['commission_earned']}"
        )
    click.echo(f"Total commission: {data['total_commission']}")
    click.echo(f"Remaining sales: {data['remaining_sales']}")
    if data["next_threshold"] is not None:
        click.echo(f"Next threshold: {data['next_threshold']}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(commissions_group)
