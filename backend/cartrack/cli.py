# Overview: Flask CLI command groups for bootstrap and user administration.

# backend/cartrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-username admin] [--admin-password ...]
#   Idempotent bootstrap: creates tables and the first ADMIN account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data, including the audit log).
#
# User inspection/bootstrap:
# - python -m flask users list [--role ADMIN]
#   List all users with role and enabled flag.
# - python -m flask users create --username jdoe --password "Passw0rd" --role WAREHOUSE_MANAGER
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services import user_service
from .services.auth_service import PasswordValidationError
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the first administrator')
@click.option('--admin-password', default='Admin12345', help='Password of the first administrator')
@with_appcontext
def init_system(admin_username, admin_password):
    """
    Create tables (if missing) and the first ADMIN account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing cartridge tracker...")

    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        return

    try:
        user_service.create_user(
            admin_username,
            admin_password,
            full_name="Administrator",
            role=ROLE_ADMIN,
        )
    except PasswordValidationError as e:
        raise click.ClickException(f"Password validation failed for '{admin_username}': {e}")

    click.echo(f"PASS Created user: {admin_username} with role '{ROLE_ADMIN}'")
    click.echo("\nSECURITY WARNING: change the administrator password in production!")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the operation log!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), prompt=True, help='Role')
@click.option('--full-name', default=None, help='Display name')
@with_appcontext
def create_user_cli(username, password, role, full_name):
    """
    Create a new user.

    Password must be at least 8 characters with at least one letter and one digit.
    """
    try:
        user = user_service.create_user(username, password, full_name=full_name, role=role)
    except (ValidationError, PasswordValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    users = user_service.list_users(role=role)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*72)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<20} {'Enabled':<8} {'Name'}")
    click.echo("="*72)

    for user in users:
        enabled = "yes" if user.is_enabled else "no"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<20} {enabled:<8} {user.full_name or ''}")

    click.echo("")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
