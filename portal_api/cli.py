"""CLI tools for portal administration."""

import click

from portal_api.core.security import create_session_token
from portal_api.db.enums import RoleName
from portal_api.db.models import User
from portal_api.db.session import SessionLocal
from portal_api.services import permission_service
from portal_api.utils.normalization import normalize_email

KNOWN_ROLES = [role.value for role in RoleName]


@click.group()
def cli():
    """Portal CLI tools."""
    pass


@cli.command()
def verify_calendar():
    """
    Check that the configured Google Calendar is reachable.

    Example:
        portal-api verify-calendar
    """
    from portal_api.services.calendar_service import GoogleCalendarClient
    from portal_api.services.consultation_service import verify_calendar_access

    client = GoogleCalendarClient.from_settings()
    click.echo(f"Auth mode: {client.auth_mode or 'not configured'}")
    access = verify_calendar_access(client)
    if access.ok:
        click.echo(f"✓ Calendar reachable: {access.summary or access.calendar_id}")
        click.echo(f"  Time zone: {access.time_zone}")
        click.echo(f"  Access role: {access.access_role or 'unknown'}")
        return
    click.echo(f"❌ Calendar check failed ({access.failure})")
    if access.hint:
        click.echo(f"→ {access.hint}")
    raise SystemExit(1)


@cli.command()
@click.option("--name", required=True, help="Role name (e.g. 'Higher Management')")
@click.option("--description", default=None, help="Optional description")
def create_role(name: str, description: str | None):
    """Create a role if it does not exist."""
    if name not in KNOWN_ROLES:
        click.echo(f"⚠ '{name}' is not consulted by the API (known: {', '.join(KNOWN_ROLES)})")
    db = SessionLocal()
    try:
        role = permission_service.get_or_create_role(db, name, description)
        db.commit()
        click.echo(f"✓ Role ready: {role.name} ({role.id})")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email")
@click.option("--name", required=True, help="Display name")
def create_user(email: str, name: str):
    """Create a user (no roles)."""
    db = SessionLocal()
    try:
        email = normalize_email(email)
        if db.query(User).filter(User.email == email).first():
            click.echo(f"❌ User {email} already exists")
            return
        user = User(email=email, name=name.strip())
        db.add(user)
        db.commit()
        click.echo(f"✓ Created user {email} ({user.id})")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email")
@click.option("--role", "role_name", required=True, help="Role name")
def grant_role(email: str, role_name: str):
    """Grant a role to a user (idempotent)."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user or user.is_deleted:
            click.echo(f"❌ User {email} not found")
            return
        permission_service.grant_role(db, user, role_name)
        db.commit()
        roles = sorted(permission_service.roles_of(db, user.id))
        click.echo(f"✓ {user.email} now holds: {', '.join(roles)}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email")
def issue_token(email: str):
    """Print a session token for a user (for API clients and scripts)."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == normalize_email(email)).first()
        if not user or user.is_deleted:
            click.echo(f"❌ User {email} not found")
            return
        roles = sorted(permission_service.roles_of(db, user.id))
        click.echo(create_session_token(user.id, roles))
    finally:
        db.close()


if __name__ == "__main__":
    cli()
