"""joantees -- async admin API client for the Joantees store backend.

The package talks to the admin REST backend (products, categories, orders,
customers, delivery zones, pickup locations) through an
:class:`~joantees.client.AsyncClient` whose GET path is backed by an
in-memory :class:`~joantees.cache.RequestCache`: TTL expiry, advisory
staleness, de-duplication of concurrent identical requests, and retry with
exponential backoff.

Typical use::

    joantees config add-profile staging --base-url https://staging.joantees.com/api --default
    joantees auth login --email ops@joantees.com
    joantees get /orders -P status=pending --watch 30

Modules:
    app: Typer application and CLI entry point.
    cache: Request cache, key derivation and the expiry sweeper.
    client: Async HTTP client and :class:`~joantees.client.FetchResult`.
    queries: Stateful :class:`~joantees.queries.Query` / :class:`~joantees.queries.Mutation` helpers.
    models: Pydantic configuration models.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
