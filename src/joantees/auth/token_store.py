"""Persistent admin token store scoped per profile.

Stores tokens in ``~/.local/share/joantees/tokens/<profile>.json`` (XDG)
or the platform-equivalent directory. Files are written atomically via
:func:`~joantees.config._atomic_write` with ``0o600`` permissions so that
tokens are never world-readable, even momentarily.

See Also:
    :func:`~joantees.config.resolve_token` -- the lookup used when a
    client is constructed.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from joantees.config import _atomic_write, get_data_dir


class TokenEntry(BaseModel):
    """A stored admin session token.

    Attributes:
        token: The bearer token returned by the login endpoint.
        email: The admin account the token belongs to, for ``whoami``.
        expires_at: Optional UTC expiry. ``None`` means the backend did
            not say, and the token is used until it is rejected.
    """

    token: str = Field(description="Bearer token returned by /auth/login")
    email: Optional[str] = Field(default=None, description="Admin account email")
    expires_at: Optional[datetime] = Field(
        default=None, description="When this token expires (None = unknown)"
    )

    def is_valid(self) -> bool:
        """Return ``True`` unless :attr:`expires_at` lies in the past."""
        if self.expires_at is None:
            return True
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) < expires


def _tokens_dir() -> Path:
    """Return the tokens directory, creating it if needed."""
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TokenStore:
    """Read/write the admin token for a single profile.

    Example::

        store = TokenStore("production")
        store.save(TokenEntry(token="eyJhbGciOi...", email="ops@joantees.com"))
        assert store.load().email == "ops@joantees.com"
    """

    def __init__(self, profile_name: str) -> None:
        self._profile_name = profile_name
        self._path = _tokens_dir() / f"{profile_name}.json"

    @property
    def path(self) -> Path:
        """The filesystem path to this profile's token file."""
        return self._path

    def save(self, entry: TokenEntry) -> None:
        """Persist *entry* atomically with ``0o600`` permissions."""
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        _atomic_write(self._path, text, mode=0o600)

    def load(self) -> Optional[TokenEntry]:
        """Load the stored token, or ``None`` if absent or unreadable."""
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return TokenEntry.model_validate(data)
        except (json.JSONDecodeError, ValueError, OSError):
            return None

    def is_valid(self) -> bool:
        """Check whether a non-expired token exists on disk."""
        entry = self.load()
        return entry is not None and entry.is_valid()

    def clear(self) -> None:
        """Delete the stored token file. No-op when already removed."""
        if self._path.is_file():
            self._path.unlink()
