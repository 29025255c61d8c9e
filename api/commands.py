"""
Flask CLI commands:
- flask create-user USERNAME EMAIL --password ... --role ...
- flask purge-tokens [--retention SECONDS]   (run from cron)
"""
import click
from flask import current_app
from flask.cli import with_appcontext

from utils.exceptions import StorageError


@click.command("create-user")
@click.argument("username")
@click.argument("email")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--display-name", default=None)
@click.option("--role", "roles", multiple=True, help="Repeat for several roles.")
@with_appcontext
def create_user_command(username, email, password, display_name, roles):
    """Create a user that can log in through /token."""
    service = current_app.extensions["session_auth"]
    try:
        user = service.identity.create_user(username, email, password, display_name, list(roles) or None)
    except StorageError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Created user {user.username} (id={user.id})")


@click.command("purge-tokens")
@click.option("--retention", type=int, default=None,
              help="Keep rows that expired less than this many seconds ago.")
@with_appcontext
def purge_tokens_command(retention):
    """Delete expired refresh tokens."""
    service = current_app.extensions["session_auth"]
    try:
        deleted = service.clean_expired_tokens(retention)
    except StorageError as exc:
        raise click.ClickException(str(exc))
    click.echo(f"Deleted {deleted} expired refresh tokens")


def register_commands(app):
    app.cli.add_command(create_user_command)
    app.cli.add_command(purge_tokens_command)
