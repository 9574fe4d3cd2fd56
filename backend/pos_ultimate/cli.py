# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/pos_ultimate/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create the documents table if missing, start the collection listeners and
#   seed the bootstrap super-admin when there are no users.
#
# Location inspection/bootstrap:
# - python -m flask locales list
# - python -m flask locales create --name "Downtown" --address "Main St 1"
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --username ana --name "Ana" --role SELLER --local-id <id>
#   Create a user (prompts if options are omitted).

import click
from flask import current_app
from flask.cli import with_appcontext

from .constants import BOOTSTRAP_ADMIN_USERNAME, ROLES
from .errors import PosError
from .extensions import db
from .services.auth_service import PasswordValidationError
from .services.sync_store import get_store


def _started_store():
    store = get_store()
    store.ensure_listening()
    store.resync()
    return store


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the document store and the bootstrap super-admin.

    SECURITY: Change the bootstrap password immediately in production!
    """
    click.echo("START Initializing POS Ultimate...")

    db.create_all()
    click.echo("PASS Documents table ready")

    store = _started_store()
    click.echo(f"PASS Listening on {len(store.documents.subscribed_collections())} collections")

    users = store.users
    click.echo(f"PASS {len(users)} user(s) on record")

    click.echo("\n" + "="*60)
    click.echo("DONE POS Ultimate Initialized Successfully!")
    click.echo("="*60)
    if any(u.get("username") == BOOTSTRAP_ADMIN_USERNAME for u in users):
        click.echo("\nBootstrap Credentials (CHANGE IN PRODUCTION!):")
        click.echo(f"   {BOOTSTRAP_ADMIN_USERNAME} / {current_app.config['BOOTSTRAP_ADMIN_PASSWORD']}")
    click.echo("")


@click.group('locales')
def locales_group():
    """Location inspection and bootstrap commands."""


@locales_group.command('list')
@with_appcontext
def list_locales():
    locales = _started_store().locales

    if not locales:
        click.echo("No locations found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<38} {'Name':<25} {'Active':<8} {'Subscription':<12} {'Cash'}")
    click.echo("="*90)
    for local in locales:
        active_str = "Yes" if local.get("is_active", True) else "No"
        click.echo(
            f"{local['id']:<38} {local.get('name', '-'):<25} {active_str:<8} "
            f"{local.get('subscription_status', '-'):<12} {local.get('cash_in_register', 0)}"
        )
    click.echo("="*90 + "\n")


@locales_group.command('create')
@click.option('--name', prompt=True, help='Location name')
@click.option('--address', prompt=True, help='Street address')
@with_appcontext
def create_local_cli(name, address):
    try:
        local = _started_store().add_local({"name": name, "address": address})
        click.echo(f"PASS Created location: {local['name']} (ID: {local['id']})")
    except PosError as e:
        click.echo(f"FAIL Failed to create location: {e.message}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), prompt=True, help='Role')
@click.option('--local-id', default=None, help='Location ID (required for ADMIN and SELLER)')
@with_appcontext
def create_user_cli(username, name, email, password, role, local_id):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    data = {
        "username": username,
        "name": name,
        "email": email,
        "password": password,
        "role": role,
        "local_id": local_id,
    }
    try:
        user = _started_store().add_user({k: v for k, v in data.items() if v is not None})
        click.echo(f"PASS Created user: {username} with role '{role}' (ID: {user['id']})")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e.message}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
    except PosError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    users = _started_store().users

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<38} {'Username':<20} {'Name':<20} {'Role':<12} {'Location'}")
    click.echo("="*100)
    for user in users:
        click.echo(
            f"{user['id']:<38} {user.get('username', '-'):<20} {user.get('name', '-'):<20} "
            f"{user.get('role', '-'):<12} {user.get('local_id') or '-'}"
        )
    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(locales_group)
    app.cli.add_command(users_group)
