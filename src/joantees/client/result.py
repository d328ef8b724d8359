"""The value every :class:`~joantees.client.AsyncClient` request resolves to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

from joantees.exceptions import (
    AuthError,
    JoanteesError,
    NotFoundError,
    ServerError,
    UnreachableError,
)

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """Outcome of a request: either ``data`` or ``error``, never both.

    Attributes:
        data: Decoded response body on success.
        error: Human-readable failure message (``"HTTP 500: ..."`` or the
            transport error) once retries are exhausted or a terminal
            failure occurred.
        from_cache: ``True`` when served from the request cache without a
            network call.
        stale: ``True`` when a cached payload is older than the caller's
            stale window. Advisory only.
        status_code: HTTP status of the last attempt, ``None`` for cache
            hits that carried none and for network-level failures.
    """

    data: Optional[T] = None
    error: Optional[str] = None
    from_cache: bool = False
    stale: bool = False
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the typed :class:`~joantees.exceptions.JoanteesError` for a failed result.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On 5xx.
            UnreachableError: When no HTTP response was received.
            JoanteesError: For any other HTTP error status.
        """
        if self.error is None:
            return
        status = self.status_code
        if status is None:
            raise UnreachableError(self.error)
        if status in (401, 403):
            raise AuthError(self.error)
        if status == 404:
            raise NotFoundError(self.error)
        if status >= 500:
            raise ServerError(self.error)
        raise JoanteesError(self.error)
