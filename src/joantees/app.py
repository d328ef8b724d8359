"""The ``joantees`` command line.

Commands::

    joantees get ENDPOINT       cached GET, optionally watched
    joantees post|put|patch|delete ENDPOINT [--body JSON]
    joantees auth login|logout|whoami
    joantees config show|set|reset|profiles|add-profile

:func:`main` is the console-script entry point. A
:class:`~joantees.exceptions.JoanteesError` that escapes a command ends
the process with its exit code; any other exception is written to a crash
log under the data directory.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from joantees import __version__
from joantees.commands.auth import auth_app
from joantees.commands.config import config_app
from joantees.commands.fetch import (
    delete_command,
    get_command,
    patch_command,
    post_command,
    put_command,
)
from joantees.exceptions import JoanteesError
from joantees.exit_codes import EXIT_GENERIC_FAILURE
from joantees.output import OutputFormat, OutputManager, error, set_output

_EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="joantees",
    help="Query and update the Joantees admin backend.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("get")(get_command)
for _method, _command in (
    ("post", post_command),
    ("put", put_command),
    ("patch", patch_command),
    ("delete", delete_command),
):
    app.command(_method)(_command)
app.add_typer(auth_app, name="auth", help="Sign in and manage the admin token.")
app.add_typer(config_app, name="config", help="Global settings and backend profiles.")


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"joantees {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit."
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", "-p", help="Backend profile to use."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the profile's API base URL."
    ),
    json_output: bool = typer.Option(False, "--json", help="Print payloads as JSON."),
    plain_output: bool = typer.Option(False, "--plain", help="Print payloads as plain text."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colour."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only print payloads and errors."),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show cache hits, retries and other debug output."
    ),
) -> None:
    """Install the output manager and record the backend selection in ``ctx.obj``."""
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN
    else:
        fmt = OutputFormat.AUTO
    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj.update(profile=profile, base_url=base_url, verbose=verbose)


def _setup_signal_handlers() -> None:
    """Exit quietly on Ctrl-C, e.g. to stop ``get --watch``."""

    def _on_sigint(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _on_sigint)


def _write_crash_log(exc: Exception) -> Path:
    from joantees.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / f"crash-{datetime.now():%Y%m%d-%H%M%S}.log"
    log_path.write_text("".join(traceback.format_exception(exc)), encoding="utf-8")
    return log_path


def main() -> None:
    """Console-script entry point."""
    _setup_signal_handlers()
    try:
        app()
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(_EXIT_INTERRUPTED)
    except JoanteesError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
