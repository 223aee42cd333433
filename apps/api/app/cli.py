"""CLI tools for Angel Eyes administration."""

import click

from app.core.security import create_session_token
from app.db.models import User
from app.db.session import SessionLocal


@click.group()
def cli():
    """Angel Eyes CLI tools."""
    pass


@cli.command()
@click.option("--email", required=True, help="User email address")
@click.option("--name", "display_name", required=True, help="Display name")
@click.option("--phone", default=None, help="Optional phone number")
def create_user(email: str, display_name: str, phone: str | None):
    """
    Create a user who can own or care for babies.

    Example:
        python -m app.cli create-user --email "parent@example.com" --name "Sam Parent"
    """
    db = SessionLocal()
    try:
        email = email.strip().lower()
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            click.echo(f"❌ User with email '{email}' already exists")
            return

        user = User(email=email, display_name=display_name.strip(), phone_number=phone)
        db.add(user)
        db.commit()

        click.echo(f"✓ Created user: {display_name}")
        click.echo(f"  ID: {user.id}")
        click.echo(f"  Email: {email}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to issue a session token for")
def issue_token(email: str):
    """
    Print a session JWT for a user (Bearer header or ?token= on the websocket).

    Example:
        python -m app.cli issue-token --email "parent@example.com"
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user or not user.is_active:
            click.echo(f"❌ Active user not found: {email}")
            return

        click.echo(create_session_token(user.id, user.token_version))
    finally:
        db.close()


@cli.command()
@click.option("--email", required=True, help="User email to revoke sessions for")
def revoke_sessions(email: str):
    """
    Revoke all sessions for a user by bumping their token_version.

    Example:
        python -m app.cli revoke-sessions --email "user@example.com"
    """
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            click.echo(f"❌ User not found: {email}")
            return

        old_version = user.token_version
        user.token_version += 1
        db.commit()

        click.echo(f"✓ Revoked all sessions for {email}")
        click.echo(f"  Token version: {old_version} → {user.token_version}")

    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
