"""Glue shared by the API-backed commands.

:func:`run_api` is the only place commands touch the event loop: it builds
a client from the global credential options, runs one coroutine inside
``async with client``, retries it once after a 401, and turns any
:class:`~xcodecloud.exceptions.XcodeCloudError` into an error message and
the matching exit code.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer

from xcodecloud.client import APIClient, call_with_reauth
from xcodecloud.exceptions import XcodeCloudError
from xcodecloud.models import CredentialOptions
from xcodecloud.output import error

T = TypeVar("T")

ClientFactory = Callable[[CredentialOptions], APIClient]

LIMIT_HELP = "Maximum number of results per page (API default: 25)."
ALL_HELP = "Follow every next-page link and return all results."


def credential_options(ctx: typer.Context) -> CredentialOptions:
    """Return the explicit credential options given to the root command."""
    obj = ctx.obj or {}
    return obj.get("credentials") or CredentialOptions()


def _client_factory(ctx: typer.Context) -> ClientFactory:
    obj = ctx.obj or {}
    return obj.get("client_factory") or APIClient.from_options


def run_api(ctx: typer.Context, operation: Callable[[APIClient], Awaitable[T]]) -> T:
    """Run *operation* against a fresh client and return its result.

    Raises:
        typer.Exit: With the error's exit code if anything fails.
    """
    try:
        client = _client_factory(ctx)(credential_options(ctx))
        return asyncio.run(_run(client, operation))
    except XcodeCloudError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


async def _run(client: APIClient, operation: Callable[[APIClient], Awaitable[T]]) -> T:
    async with client:
        return await call_with_reauth(lambda: operation(client))
