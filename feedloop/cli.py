"""CLI tools for FeeDLooP administration."""

import click
from sqlalchemy.exc import SQLAlchemyError

from feedloop.core.security import hash_password
from feedloop.db.session import SessionLocal
from feedloop.services import auth_service, project_service


@click.group()
def cli():
    """FeeDLooP CLI tools."""
    pass


@cli.command(name="hash-password")
@click.argument("password")
def hash_password_cmd(password: str):
    """
    Print a password hash for seeding test credentials.

    Example:
        python -m feedloop.cli hash-password "Secret123"
    """
    click.echo(hash_password(password))


@cli.command()
@click.option("--email", required=True, help="Login email address")
@click.option("--password", required=True, help="Initial password")
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--company", default=None)
@click.option("--verified", is_flag=True, help="Mark the email as verified")
def create_user(email: str, password: str, first_name: str, last_name: str, company: str | None, verified: bool):
    """
    Create a user account.

    Example:
        python -m feedloop.cli create-user --email dev@acme.com --password Secret123 \\
            --first-name Dev --last-name User --verified
    """
    db = SessionLocal()
    try:
        if auth_service.get_user_by_email(db, email):
            click.echo(f"❌ User already exists: {email}")
            return
        user = auth_service.create_user(
            db,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            company=company,
            email_verified=verified,
        )
        db.commit()
        click.echo(f"✓ Created user: {user.email}")
        click.echo(f"  ID: {user.id}")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


@cli.command()
@click.option("--owner-email", required=True, help="Email of an existing user")
@click.option("--name", required=True, help="Project name")
def create_project(owner_email: str, name: str):
    """
    Create a project and print its widget integration key.

    Example:
        python -m feedloop.cli create-project --owner-email dev@acme.com --name "Acme"
    """
    db = SessionLocal()
    try:
        owner = auth_service.get_user_by_email(db, owner_email)
        if not owner:
            click.echo(f"❌ User not found: {owner_email}")
            return
        project = project_service.create_project(db, owner, name)
        click.echo(f"✓ Created project: {project.name}")
        click.echo(f"  ID: {project.id}")
        click.echo(f"  Integration key: {project.integration_key}")
    except SQLAlchemyError as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
    finally:
        db.close()


if __name__ == "__main__":
    cli()
