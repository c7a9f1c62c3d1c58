"""Per-client token cache with single-flight refresh.

:class:`TokenCache` wraps a :class:`~xcodecloud.auth.token.TokenGenerator`
and is owned by exactly one :class:`~xcodecloud.client.APIClient`. It has
two states:

* **Empty** -- nothing cached, or the cached token is within
  :data:`REFRESH_MARGIN` seconds of its cached expiry.
* **Valid** -- a cached token with more life left than the margin.

A token is cached for :data:`CACHE_LIFETIME` seconds, a minute short of
the 20 minutes it is actually signed for, to absorb clock skew. Combined
with the margin, a cached token is handed out for at most 18 minutes.

Refresh is single-flight: when many coroutines find the cache empty at the
same time, one signing task runs and every caller awaits its result. The
task is shielded, so cancelling one waiter never cancels a refresh that
other waiters depend on. All state is touched only from the event loop
thread, which makes the loop itself the single writer.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

CACHE_LIFETIME = 1140
"""Seconds a freshly signed token stays cached (19 of its 20 minutes)."""

REFRESH_MARGIN = 60
"""Seconds before the cached expiry at which a token is considered stale."""


class TokenSource(Protocol):
    """Anything that can sign a new token, e.g. a ``TokenGenerator``."""

    def generate(self) -> str: ...


class TokenCache:
    """Serve a cached bearer token, regenerating it when stale.

    Args:
        generator: Signs new tokens; called off the event loop thread.
        clock: Monotonic time source in seconds. Injectable for tests.
        lifetime: Seconds to keep a new token cached.
        margin: Seconds before expiry at which the token is refreshed.

    Example::

        cache = TokenCache(TokenGenerator(creds))
        token = await cache.get_token()
    """

    def __init__(
        self,
        generator: TokenSource,
        clock: Callable[[], float] = time.monotonic,
        lifetime: float = CACHE_LIFETIME,
        margin: float = REFRESH_MARGIN,
    ) -> None:
        self._generator = generator
        self._clock = clock
        self._lifetime = lifetime
        self._margin = margin
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._refresh: Optional[asyncio.Future[str]] = None

    @property
    def is_valid(self) -> bool:
        """Whether :meth:`get_token` would return without signing."""
        return self._current() is not None

    async def get_token(self) -> str:
        """Return a valid token, signing a new one if the cache is empty.

        Concurrent callers that find the cache empty share one refresh.

        Raises:
            InvalidPrivateKeyError: If signing fails. The cache stays empty.
        """
        token = self._current()
        if token is not None:
            return token

        if self._refresh is None:
            self._refresh = asyncio.ensure_future(self._regenerate())
            self._refresh.add_done_callback(_retrieve_exception)
        return await asyncio.shield(self._refresh)

    def invalidate(self) -> None:
        """Drop the cached token so the next :meth:`get_token` signs a new one."""
        if self._token is not None:
            logger.debug("Invalidating cached token")
        self._token = None
        self._expires_at = None

    def _current(self) -> Optional[str]:
        if self._token is None or self._expires_at is None:
            return None
        if self._expires_at - self._clock() <= self._margin:
            return None
        return self._token

    async def _regenerate(self) -> str:
        try:
            token = await asyncio.to_thread(self._generator.generate)
        finally:
            self._refresh = None
        self._token = token
        self._expires_at = self._clock() + self._lifetime
        logger.debug("Cached new token for %ds", self._lifetime)
        return token


def _retrieve_exception(task: asyncio.Future[str]) -> None:
    # Every waiter may have been cancelled; mark the failure as seen.
    if not task.cancelled():
        task.exception()
