"""Admin token persistence.

The admin backend issues a JWT on ``POST /auth/login``. This package keeps
that token between CLI invocations, one file per profile, in place of the
browser ``localStorage`` slot the web console uses.
"""

from joantees.auth.token_store import TokenEntry, TokenStore

__all__ = ["TokenEntry", "TokenStore"]
