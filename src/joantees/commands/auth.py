"""Auth commands -- sign in to the admin backend and manage the stored token.

Provides the ``joantees auth`` sub-command group:

* ``login``  -- ``POST /auth/login`` and persist the returned token.
* ``logout`` -- forget the token for the active profile.
* ``whoami`` -- show which admin account the stored token belongs to.
"""

from __future__ import annotations

from typing import Any, Optional

import typer

from joantees.auth import TokenStore
from joantees.commands import open_client, run_async
from joantees.config import resolve_config
from joantees.exceptions import AuthError
from joantees.exit_codes import EXIT_AUTH_FAILURE
from joantees.output import format_response, info, success, suggest

auth_app = typer.Typer(no_args_is_help=True)

_TOKEN_FIELDS = ("token", "access_token", "accessToken")


def extract_token(data: Any) -> Optional[str]:
    """Find the bearer token in a login response body.

    Accepts the token at the top level or under a ``data`` envelope.
    """
    if not isinstance(data, dict):
        return None
    for field in _TOKEN_FIELDS:
        value = data.get(field)
        if isinstance(value, str) and value:
            return value
    nested = data.get("data")
    if isinstance(nested, dict):
        return extract_token(nested)
    return None


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Admin email."),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, help="Admin password."
    ),
) -> None:
    """Sign in and store the admin token for the active profile.

    Example::

        joantees auth login --email ops@joantees.com
    """

    async def _run() -> None:
        _, client = open_client(ctx.obj)
        async with client:
            result = await client.post(
                "/auth/login",
                json_body={"email": email, "password": password},
                retry_count=0,
            )
            result.raise_for_error()
            token = extract_token(result.data)
            if token is None:
                raise AuthError("Login response did not contain a token")
            client.set_token(token, email=email)
            success(f"Logged in as {email} on profile '{client.profile.name}'")

    run_async(_run())


@auth_app.command("logout")
def auth_logout(ctx: typer.Context) -> None:
    """Forget the stored admin token for the active profile."""
    _, client = open_client(ctx.obj)
    client.clear_token()
    success(f"Logged out of profile '{client.profile.name}'")


@auth_app.command("whoami")
def auth_whoami(ctx: typer.Context) -> None:
    """Show the admin account behind the stored token."""
    obj = ctx.obj or {}
    _, profile = resolve_config(cli_profile=obj.get("profile"), cli_base_url=obj.get("base_url"))
    entry = TokenStore(profile.name).load()
    if entry is None or not entry.is_valid():
        info(f"Not logged in on profile '{profile.name}'")
        suggest("Run: joantees auth login")
        raise typer.Exit(code=EXIT_AUTH_FAILURE)
    format_response(
        {
            "profile": profile.name,
            "base_url": profile.base_url,
            "email": entry.email,
            "expires_at": entry.expires_at.isoformat() if entry.expires_at else None,
        }
    )
