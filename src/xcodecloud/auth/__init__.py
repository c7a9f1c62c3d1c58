"""Authentication for the App Store Connect API.

The package is split by concern:

- :class:`CredentialResolver` -- picks one complete credential set from
  flags, environment variables, and config files.
- :class:`TokenGenerator` -- signs short-lived ES256 bearer tokens.
- :class:`TokenCache` -- caches a token per client and refreshes it at most
  once at a time.

Typical usage::

    from xcodecloud.auth import CredentialResolver, TokenCache, TokenGenerator

    creds = CredentialResolver().resolve(options)
    cache = TokenCache(TokenGenerator(creds))
    token = await cache.get_token()
"""

from xcodecloud.auth.provider import CACHE_LIFETIME, REFRESH_MARGIN, TokenCache
from xcodecloud.auth.resolver import CredentialResolver, decode_inline_key
from xcodecloud.auth.token import (
    MAX_TOKEN_VALIDITY,
    TokenGenerator,
    decode_token,
    parse_private_key,
)

__all__ = [
    "CACHE_LIFETIME",
    "MAX_TOKEN_VALIDITY",
    "REFRESH_MARGIN",
    "CredentialResolver",
    "TokenCache",
    "TokenGenerator",
    "decode_inline_key",
    "decode_token",
    "parse_private_key",
]
