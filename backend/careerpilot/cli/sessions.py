"""Flask CLI commands for refresh token maintenance."""

from __future__ import annotations

import logging

import click
from flask.cli import with_appcontext

from careerpilot.core.security import make_auth_service
from careerpilot.services._shared.errors import NotFoundError

LOGGER = logging.getLogger(__name__)


@click.group("sessions")
def sessions_cli() -> None:
    """Inspect and revoke refresh token sessions."""


@sessions_cli.command("prune")
@with_appcontext
def prune_command() -> None:
    """Delete invalidated and expired refresh token records of every user."""
    pruned = make_auth_service().prune_sessions()
    click.echo(f"Pruned {pruned} refresh token record(s).")


@sessions_cli.command("revoke")
@click.argument("email")
@click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
@with_appcontext
def revoke_command(email: str, yes: bool) -> None:
    """Invalidate every refresh token of the account behind EMAIL."""
    if not yes:
        click.confirm(f"Log {email} out of every device?", abort=True)
    try:
        revoked = make_auth_service().revoke_all_sessions(email)
    except NotFoundError as exc:
        raise click.ClickException(str(exc)) from exc
    LOGGER.info("sessions.revoke", extra={"revoked": revoked})
    click.echo(f"Revoked {revoked} active refresh token(s) for {email}.")
