# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/casework/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to casework (PowerShell: $env:FLASK_APP="casework"); Flask finds create_app().
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: default site, finance department, administrator account.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list [--role director]
# - python -m flask users create --username jdoe --full-name "J Doe" --role azwk_staff --site-id 1
#
# API keys (plaintext is shown ONCE):
# - python -m flask apikeys create --name "Reporting" --permission generate:reports --permission read:all_checkin_data
# - python -m flask apikeys create-agent --name "Intake bot" --site-id 1
# - python -m flask apikeys revoke 3 [--agent]
# - python -m flask apikeys list [--agent] [--all]
# - python -m flask apikeys permissions
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions
# - python -m flask maintenance cleanup-security-events --retention-days 90

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Department, Site, User
from .permissions import roles, get_all_permission_codes, get_permissions_by_category, PermissionCategory
from .services.auth_service import create_user, PasswordValidationError
from .services import api_key_service
from .services import maintenance_service


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--site', 'site_name', default='Main Office', help='Default site name')
@click.option('--admin-username', default='admin', help='Administrator username')
@with_appcontext
def init_system(site_name, admin_username):
    """
    Initialize the system: default site, departments, administrator.

    Creates (when missing):
    - Site: --site (default "Main Office")
    - Departments: Finance (slug "finance"), Workforce (slug "workforce")
    - User: administrator account, password "Password123!"

    SECURITY: Change the administrator password immediately in production!
    """
    click.echo("START Initializing system...")

    site = db.session.query(Site).filter_by(name=site_name).first()
    if not site:
        site = Site(name=site_name, is_active=True)
        db.session.add(site)
        db.session.commit()
        click.echo(f"PASS Created site: {site.name} (ID: {site.id})")
    else:
        click.echo(f"PASS Using existing site: {site.name} (ID: {site.id})")

    for slug, name in ((roles.FINANCE_DEPT_SLUG, "Finance"), ("workforce", "Workforce")):
        department = db.session.query(Department).filter_by(slug=slug).first()
        if not department:
            db.session.add(Department(name=name, slug=slug))
            db.session.commit()
            click.echo(f"PASS Created department: {name}")

    admin = db.session.query(User).filter_by(username=admin_username).first()
    if not admin:
        try:
            admin = create_user(
                username=admin_username,
                full_name="Administrator",
                password=DEFAULT_PASSWORD,
                role=roles.ADMINISTRATOR,
            )
        except (ValueError, PasswordValidationError) as e:
            click.echo(f"FAIL Could not create administrator: {e}")
            return
        click.echo(f"PASS Created administrator: {admin.username} / {DEFAULT_PASSWORD}")
    else:
        click.echo(f"PASS Administrator exists: {admin.username}")

    click.echo("DONE System initialized.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--email', default=None, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(roles.ALL_ROLES)), prompt=True, help='Role')
@click.option('--site-id', type=int, default=None, help='Home site (omit for all sites)')
@click.option('--department-id', type=int, default=None, help='Department')
@click.option('--site-admin', is_flag=True, help='Mark as site administrator')
@with_appcontext
def create_user_cli(username, full_name, email, password, role, site_id, department_id, site_admin):
    """
    Create a staff user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            username=username,
            full_name=full_name,
            password=password,
            role=role,
            email=email,
            site_id=site_id,
            department_id=department_id,
            is_site_admin=site_admin,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(roles.ALL_ROLES)), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List staff users."""
    query = db.session.query(User).filter(User.deleted_at.is_(None))
    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Role':<16} {'Site':<6} {'Dept':<12} {'Active'}")
    click.echo("="*100)

    for user in users:
        site_str = str(user.site_id) if user.site_id else "all"
        dept_str = user.department_slug or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.role:<16} {site_str:<6} {dept_str:<12} {active_str}")

    click.echo("="*100 + "\n")


@click.group('apikeys')
def apikeys_group():
    """v1 API key and gateway agent key management."""


@apikeys_group.command('create')
@click.option('--name', required=True, help='Key name')
@click.option('--permission', 'permissions', multiple=True, required=True,
              type=click.Choice(get_all_permission_codes()), help='Permission code (repeatable)')
@click.option('--site-id', type=int, default=None, help='associated_site_id')
@click.option('--user-id', type=int, default=None, help='associated_user_id')
@with_appcontext
def create_api_key_cli(name, permissions, site_id, user_id):
    """Create a v1 API key. The plaintext key is printed once."""
    try:
        api_key, plaintext = api_key_service.create_api_key(
            name=name,
            permissions=list(permissions),
            associated_user_id=user_id,
            associated_site_id=site_id,
        )
    except api_key_service.ApiKeyError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created API key {api_key.id} ({api_key.key_prefix}...)")
    click.echo(f"     Permissions: {', '.join(api_key.permissions)}")
    click.echo(f"KEY  {plaintext}")
    click.echo("SECURITY Store this key now; it cannot be shown again.")


@apikeys_group.command('create-agent')
@click.option('--name', required=True, help='Agent name')
@click.option('--site-id', type=int, default=None, help='Pin agent to a site')
@click.option('--user-id', type=int, default=None, help='Pin agent to a user')
@with_appcontext
def create_agent_key_cli(name, site_id, user_id):
    """Create a gateway agent key. The plaintext key is printed once."""
    try:
        agent_key, plaintext = api_key_service.create_agent_key(
            agent_name=name,
            associated_user_id=user_id,
            associated_site_id=site_id,
        )
    except api_key_service.ApiKeyError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created agent key {agent_key.id} for '{agent_key.agent_name}'")
    click.echo(f"KEY  {plaintext}")
    click.echo("SECURITY Store this key now; it cannot be shown again.")


@apikeys_group.command('revoke')
@click.argument('key_id', type=int)
@click.option('--agent', is_flag=True, help='Revoke an agent key instead of a v1 key')
@with_appcontext
def revoke_api_key_cli(key_id, agent):
    """Revoke a key by ID."""
    if api_key_service.revoke_api_key(key_id, agent=agent):
        click.echo(f"PASS Revoked {'agent' if agent else 'API'} key {key_id}")
    else:
        click.echo(f"FAIL Key {key_id} not found or already revoked")


@apikeys_group.command('list')
@click.option('--agent', is_flag=True, help='List agent keys')
@click.option('--all', 'include_revoked', is_flag=True, help='Include revoked keys')
@with_appcontext
def list_api_keys_cli(agent, include_revoked):
    """List keys (prefix only, never the key itself)."""
    keys = api_key_service.list_api_keys(include_revoked=include_revoked, agent=agent)
    if not keys:
        click.echo("No keys found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<25} {'Prefix':<10} {'Site':<6} {'User':<6} {'Revoked':<8} {'Permissions'}")
    click.echo("="*100)

    for key in keys:
        name = key.agent_name if agent else key.name
        site_str = str(key.associated_site_id) if key.associated_site_id else "-"
        user_str = str(key.associated_user_id) if key.associated_user_id else "-"
        revoked_str = "Yes" if key.revoked_at else "No"
        perms = ", ".join(key.permissions) or "-"
        click.echo(f"{key.id:<5} {name[:25]:<25} {key.key_prefix:<10} {site_str:<6} {user_str:<6} {revoked_str:<8} {perms}")

    click.echo("="*100 + "\n")


@apikeys_group.command('permissions')
def list_permissions_cli():
    """List grantable permission codes by category."""
    for category in (
        PermissionCategory.CHECKINS,
        PermissionCategory.ALLOCATIONS,
        PermissionCategory.FORUM,
        PermissionCategory.REPORTS,
        PermissionCategory.CLIENTS,
    ):
        click.echo(f"\n[{category}]")
        for code, name, description, _ in get_permissions_by_category(category):
            click.echo(f"  {code:<28} {name}: {description}")
    click.echo("")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions_cli():
    """Delete expired or revoked sessions older than 30 days."""
    deleted = maintenance_service.cleanup_sessions()
    click.echo(f"Deleted {deleted} expired or revoked sessions.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = maintenance_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(apikeys_group)
    app.cli.add_command(maintenance_group)
