"""Pydantic models for everything joantees keeps on disk.

Each of these is stored as JSON under the config directory:
:class:`RequestConfig`, :class:`CacheConfig`, :class:`OutputConfig`,
:class:`GlobalConfig`, and :class:`Profile`.

:class:`HTTPMethod` enumerates the verbs the admin backend accepts.

All durations are expressed in seconds (floats are accepted) so that they
can be handed straight to :func:`asyncio.sleep` and :func:`time.monotonic`
arithmetic.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "http://localhost:5000/api"


class HTTPMethod(str, enum.Enum):
    """HTTP methods accepted by the admin backend.

    Only ``GET`` participates in response caching and in-flight
    de-duplication; every other verb is a mutation.
    """

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class RequestConfig(BaseModel):
    """Timeout and retry settings for one backend."""

    timeout: float = Field(
        default=10.0, gt=0, description="Per-attempt timeout ceiling in seconds"
    )
    verify_ssl: bool = Field(default=True, description="Reject invalid TLS certificates")
    retry_count: int = Field(
        default=3, ge=0, description="Retries after the first failed attempt"
    )
    retry_delay: float = Field(
        default=1.0, ge=0, description="Base backoff delay in seconds (doubles per retry)"
    )


class CacheConfig(BaseModel):
    """In-memory request cache settings stored in :class:`GlobalConfig`."""

    enabled: bool = Field(default=True, description="Cache GET responses in memory")
    cache_duration: float = Field(
        default=300.0, ge=0, description="Seconds a cached GET response stays usable"
    )
    stale_window: float = Field(
        default=60.0, ge=0, description="Seconds after which a cached response is stale"
    )
    cleanup_interval: float = Field(
        default=300.0, gt=0, description="Seconds between expired-entry sweeps"
    )
    max_entries: Optional[int] = Field(
        default=None, gt=0, description="Upper bound on cached entries (None = unbounded)"
    )


class OutputConfig(BaseModel):
    format: str = Field(default="auto", description="auto, json, plain or rich")


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/joantees/config.json``.

    Loaded and saved by :func:`~joantees.config.load_global_config` and
    :func:`~joantees.config.save_global_config`. ``default_profile`` is the last
    choice :func:`~joantees.config.resolve_config` falls back to, after
    ``--profile``, ``JOANTEES_PROFILE`` and a project pin.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)


class Profile(BaseModel):
    """Per-backend profile stored as JSON under the ``profiles/`` config directory.

    A profile names one admin backend deployment (local, staging,
    production) and bundles the request settings used to talk to it. The
    admin token for a profile is kept separately in the
    :class:`~joantees.auth.TokenStore` so that profiles can be shared
    without leaking secrets.

    Unknown keys survive a load and save round trip.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: str = Field(
        default=DEFAULT_BASE_URL, description="Admin API base URL, including the /api prefix"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
