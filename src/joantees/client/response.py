"""Response decoding and the bridge from :class:`FetchResult` to the output system.

:func:`extract_response_data` turns an :class:`httpx.Response` into the
payload stored in the request cache; :func:`format_fetch_result` prints a
result the way the CLI presents it (status line and cache state on stderr,
payload on stdout).

See Also:
    :mod:`joantees.output` -- the output manager that renders data.
"""

from __future__ import annotations

from typing import Any

import httpx

from joantees.client.result import FetchResult
from joantees.output import get_output

RESPONSE_TYPES = ("json", "text", "bytes")


def extract_response_data(response: httpx.Response, response_type: str = "json") -> Any:
    """Decode the body of *response*.

    Args:
        response: The response to decode.
        response_type: ``"json"`` parses JSON and falls back to text when
            the body is not valid JSON; ``"text"`` returns the text;
            ``"bytes"`` returns the raw content (label PDFs, exports).

    Returns:
        The decoded payload, or ``None`` for an empty body.
    """
    if response_type == "bytes":
        return response.content
    if not response.content:
        return None
    if response_type == "text":
        return response.text

    try:
        return response.json()
    except ValueError:
        return response.text


def describe_error(response: httpx.Response) -> str:
    """Render a failed response as ``"HTTP <status>: <message>"``.

    The message is taken from the ``message``, ``error`` or ``detail`` field
    of a JSON error body, falling back to the first 200 characters of text.
    """
    status = response.status_code
    try:
        detail = response.json()
        if isinstance(detail, dict):
            msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
        else:
            msg = str(detail)
    except ValueError:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {status}"
    return f"{prefix}: {msg}" if msg else prefix


def format_fetch_result(result: FetchResult[Any]) -> None:
    """Print a successful result using the global output system.

    Writes a status line (``HTTP 200`` or ``cached``, with ``stale`` when
    applicable) to stderr, then renders the payload to stdout. Failed
    results are the caller's concern; see
    :meth:`~joantees.client.result.FetchResult.raise_for_error`.
    """
    output = get_output()

    if result.from_cache:
        output.info("cached (stale)" if result.stale else "cached")
    elif result.status_code is not None:
        output.info(f"HTTP {result.status_code}")

    if result.data is None:
        return
    if isinstance(result.data, bytes):
        output.print_data(f"<{len(result.data)} bytes>")
        return
    output.format_response(result.data)
