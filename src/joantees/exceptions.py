"""Errors raised by joantees, each tied to a process exit code.

:meth:`~joantees.client.AsyncClient.fetch_with_cache` does not raise for a
failed request; it returns a :class:`~joantees.client.FetchResult` whose
:meth:`~joantees.client.FetchResult.raise_for_error` turns the failure
into one of the classes below. :func:`joantees.app.main` prints the
message of any :class:`JoanteesError` that reaches it and exits with
``exc.exit_code``.

::

    JoanteesError            1
        InvalidUsageError    2   bad arguments, --body that is not JSON
        AuthError            3   401 / 403 from the backend
        NotFoundError        4   404 from the backend
        ServerError          5   5xx from the backend
        UnreachableError     6   no response at all
        ConfigError          1   unreadable config, profile or token file
"""

from joantees.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class JoanteesError(Exception):
    """Base class. ``exit_code`` may be overridden per instance.

    Args:
        message: Shown to the user after ``Error:``.
        exit_code: Replaces the class default when given.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(JoanteesError):
    exit_code = EXIT_INVALID_USAGE


class AuthError(JoanteesError):
    """The admin token is missing, expired or was rejected."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(JoanteesError):
    exit_code = EXIT_NOT_FOUND


class ServerError(JoanteesError):
    exit_code = EXIT_SERVER_ERROR


class UnreachableError(JoanteesError):
    """Every attempt failed before a response arrived (timeout, refused, DNS)."""

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(JoanteesError):
    exit_code = EXIT_GENERIC_FAILURE
