"""HTTP client for the App Store Connect API.

Provides :class:`APIClient`, an async client that wraps :mod:`httpx` with
per-client token caching, typed error mapping and pagination, plus the
:mod:`~xcodecloud.client.endpoints` catalogue it executes.

Example::

    from xcodecloud.client import APIClient, call_with_reauth

    async with APIClient.from_options(options) as client:
        runs = await call_with_reauth(lambda: client.list_build_runs(limit=5))
"""

from xcodecloud.client.api_client import APIClient, call_with_reauth
from xcodecloud.client.endpoints import Endpoint

__all__ = ["APIClient", "Endpoint", "call_with_reauth"]
