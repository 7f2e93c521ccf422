# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/inventory_api/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Idempotent: creates all tables and the default admin user.
#
# Users:
# - python -m flask users list
# - python -m flask users create --username clerk --email clerk@example.com --password "Password123!" --role staff
#
# Counters:
# - python -m flask counters show R-250817
#   Show the current value of a document-number counter.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User, ROLES
from .services.auth_service import create_user
from .services.sequence_service import peek_counter


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and the default admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing inventory system...")
    db.create_all()
    click.echo("PASS Tables ready")

    username = current_app.config["DEFAULT_ADMIN_USERNAME"]
    if db.session.query(User).filter_by(username=username).first():
        click.echo(f"WARN  User '{username}' already exists, skipping...")
        return

    try:
        create_user(
            username=username,
            email=f"{username}@inventory.local",
            password=current_app.config["DEFAULT_ADMIN_PASSWORD"],
            role="admin",
            name="Administrator",
        )
    except ServiceError as e:
        raise click.ClickException(f"Failed to create '{username}': {e.message}")
    click.echo(f"PASS Created user: {username} with role 'admin'")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users.")
        return
    for user in users:
        state = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<8} {state}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='staff', show_default=True)
@click.option('--name', default=None)
@with_appcontext
def create_user_command(username, email, password, role, name):
    try:
        user = create_user(username=username, email=email, password=password, role=role, name=name)
    except ServiceError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@click.group('counters')
def counters_group():
    """Document-number counter inspection."""


@counters_group.command('show')
@click.argument('name')
@with_appcontext
def show_counter(name):
    counter = peek_counter(name)
    if counter is None:
        raise click.ClickException(f"No counter named {name}")
    click.echo(f"{counter.name}: {counter.seq} (updated {counter.updated_at})")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(counters_group)
