"""Process exit codes.

Scripts that call ``joantees`` can branch on these instead of parsing
stderr, e.g. to re-run ``joantees auth login`` on 3 but page someone on 6::

    joantees get /orders --json > orders.json
    case $? in
        3) joantees auth login ;;
        6) echo "admin backend unreachable" >&2 ;;
    esac
"""

EXIT_SUCCESS = 0

EXIT_GENERIC_FAILURE = 1
"""Anything without a more specific code, including config errors and crashes."""

EXIT_INVALID_USAGE = 2

EXIT_AUTH_FAILURE = 3
"""HTTP 401 or 403, or a login response without a token."""

EXIT_NOT_FOUND = 4

EXIT_SERVER_ERROR = 5

EXIT_CONNECTION_ERROR = 6
"""No response was received after all retries."""
