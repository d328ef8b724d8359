"""``joantees config``: global settings and backend profiles.

Global settings (output format, cache durations, the default profile) live
in :class:`~joantees.models.GlobalConfig`; each backend deployment is a
saved :class:`~joantees.models.Profile`.
"""

from __future__ import annotations

from typing import Any

import typer

from joantees.config import (
    get_config_dir,
    list_profiles,
    load_global_config,
    profile_exists,
    save_global_config,
    save_profile,
)
from joantees.exit_codes import EXIT_INVALID_USAGE
from joantees.models import DEFAULT_BASE_URL, GlobalConfig, Profile, RequestConfig
from joantees.output import error, format_response, info, print_table, success

config_app = typer.Typer(no_args_is_help=True)

_TRUE_WORDS = ("true", "1", "yes", "on")
_NONE_WORDS = ("none", "null", "")


def _usage_error(message: str) -> typer.Exit:
    error(message)
    return typer.Exit(code=EXIT_INVALID_USAGE)


def _coerce(key: str, current: Any, raw: str) -> Any:
    """Convert *raw* to the type of the value it replaces."""
    if isinstance(current, bool):
        return raw.lower() in _TRUE_WORDS
    if isinstance(current, (int, float)):
        try:
            return type(current)(raw)
        except ValueError:
            raise _usage_error(f"Expected {type(current).__name__} for {key}, got: {raw}") from None
    if raw.lower() in _NONE_WORDS:
        return None
    return raw


@config_app.command("show")
def config_show() -> None:
    """Print the global configuration.

    Example::

        joantees config show --json
    """
    info(f"Config directory: {get_config_dir()}")
    format_response(load_global_config().model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Dotted key, e.g. cache.stale_window."),
    value: str = typer.Argument(help="New value."),
) -> None:
    """Change one global setting.

    The value is converted to the type of the current one and the whole
    config is validated before it is saved; ``none`` clears optional
    settings such as ``cache.max_entries``.

    Example::

        joantees config set cache.cache_duration 120
        joantees config set default_profile staging
    """
    data = load_global_config().model_dump(mode="json")

    *parents, leaf = key.split(".")
    section = data
    for part in parents:
        section = section.get(part) if isinstance(section, dict) else None
        if not isinstance(section, dict):
            raise _usage_error(f"Invalid config key: {key}")
    if leaf not in section:
        raise _usage_error(f"Unknown config key: {key}")

    section[leaf] = _coerce(key, section[leaf], value)
    try:
        updated = GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise _usage_error(f"Validation error: {exc}") from None

    save_global_config(updated)
    success(f"Set {key} = {section[leaf]}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Restore the default global configuration. Profiles are kept."""
    if not force and not typer.confirm("Reset global config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()
    save_global_config(GlobalConfig())
    success("Global config reset to defaults.")


@config_app.command("profiles")
def config_profiles() -> None:
    """List saved backend profiles; ``*`` marks the default."""
    names = list_profiles()
    if not names:
        info("No profiles saved yet.")
        return
    default = load_global_config().default_profile
    rows = [[name, "*" if name == default else ""] for name in names]
    print_table(["profile", "default"], rows, title="Profiles")


@config_app.command("add-profile")
def config_add_profile(
    name: str = typer.Argument(help="Profile name, e.g. staging."),
    base_url: str = typer.Option(DEFAULT_BASE_URL, "--base-url", help="Admin API base URL."),
    timeout: float = typer.Option(10.0, "--timeout", help="Per-attempt timeout in seconds."),
    retry_count: int = typer.Option(3, "--retry-count", help="Retries after a failure."),
    retry_delay: float = typer.Option(1.0, "--retry-delay", help="Base backoff in seconds."),
    make_default: bool = typer.Option(False, "--default", help="Make this the default profile."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing profile."),
) -> None:
    """Save a backend profile.

    Example::

        joantees config add-profile staging --base-url https://staging.joantees.com/api --default
    """
    if profile_exists(name) and not force:
        raise _usage_error(f"Profile '{name}' already exists (use --force to overwrite)")

    try:
        request = RequestConfig(timeout=timeout, retry_count=retry_count, retry_delay=retry_delay)
    except ValueError as exc:
        raise _usage_error(f"Validation error: {exc}") from None

    save_profile(Profile(name=name, base_url=base_url, request=request))
    if make_default:
        config = load_global_config()
        config.default_profile = name
        save_global_config(config)
    success(f"Saved profile '{name}' ({base_url})")
