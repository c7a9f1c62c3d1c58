"""Asynchronous App Store Connect API client.

:class:`APIClient` wraps :class:`httpx.AsyncClient` and runs every call
through the same pipeline:

1. Resolve an :class:`~xcodecloud.client.endpoints.Endpoint`.
2. Take a bearer token from the client's own
   :class:`~xcodecloud.auth.TokenCache`.
3. Send the request with ``Authorization`` and ``Content-Type`` headers.
4. Classify the response: 2xx bodies are decoded into the expected Pydantic
   model, everything else becomes a typed
   :class:`~xcodecloud.exceptions.XcodeCloudError`.

A 401 drops the cached token before :class:`UnauthorizedError` is raised,
but the call itself is not retried. Callers that want one retry wrap the
operation in :func:`call_with_reauth`.

Transport failures never masquerade as HTTP errors or empty results; they
are raised as :class:`NetworkError` with the httpx exception chained. A body
that httpx cannot decompress is a :class:`DecodingError`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from typing import Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from xcodecloud.auth.provider import TokenCache
from xcodecloud.auth.resolver import CredentialResolver
from xcodecloud.auth.token import TokenGenerator
from xcodecloud.client import endpoints
from xcodecloud.client.endpoints import Endpoint
from xcodecloud.exceptions import (
    APIError,
    DecodingError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    UnauthorizedError,
)
from xcodecloud.models import (
    APIErrorResponse,
    APIListResponse,
    APIResponse,
    CiArtifact,
    CiBuildAction,
    CiBuildRun,
    CiBuildRunCreateRequest,
    CiIssue,
    CiProduct,
    CiTestResult,
    CiWorkflow,
    CredentialOptions,
    Credentials,
    GitReference,
    IncludedResource,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.appstoreconnect.apple.com"
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=30.0)

ModelT = TypeVar("ModelT", bound=BaseModel)
ItemT = TypeVar("ItemT")
ResultT = TypeVar("ResultT")

ProductList = APIListResponse[CiProduct]
WorkflowList = APIListResponse[CiWorkflow]
BuildRunList = APIListResponse[CiBuildRun]
BuildActionList = APIListResponse[CiBuildAction]
IssueList = APIListResponse[CiIssue]
TestResultList = APIListResponse[CiTestResult]
ArtifactList = APIListResponse[CiArtifact]


async def call_with_reauth(operation: Callable[[], Awaitable[ResultT]]) -> ResultT:
    """Run *operation*, retrying exactly once if it fails with a 401.

    The failed call has already invalidated the token cache, so the retry
    signs a fresh token. A second 401 propagates.
    """
    try:
        return await operation()
    except UnauthorizedError:
        logger.debug("Got 401, retrying once with a fresh token")
        return await operation()


class APIClient:
    """Async client for the Xcode Cloud endpoints of App Store Connect.

    Must be used as an async context manager. One instance may serve many
    concurrent calls; they share one token cache.

    Args:
        credentials: The credential set used to sign tokens.
        base_url: API root. Override only for tests.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`.
        token_cache: Optional pre-built cache. Defaults to a fresh
            :class:`~xcodecloud.auth.TokenCache` over *credentials*.
        timeout: httpx timeout configuration.

    Example::

        async with APIClient(creds) as client:
            page = await client.list_products(limit=10)
    """

    def __init__(
        self,
        credentials: Credentials,
        base_url: str = DEFAULT_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        token_cache: Optional[TokenCache] = None,
        timeout: httpx.Timeout = DEFAULT_TIMEOUT,
    ) -> None:
        self._credentials = credentials
        self._base_url = base_url
        self._transport = transport
        self._timeout = timeout
        self._tokens = token_cache or TokenCache(TokenGenerator(credentials))
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_options(
        cls,
        options: Optional[CredentialOptions] = None,
        resolver: Optional[CredentialResolver] = None,
        **kwargs: object,
    ) -> APIClient:
        """Resolve credentials once and build a client from them.

        Raises:
            MissingCredentialsError: If no source yields credentials.
        """
        credentials = (resolver or CredentialResolver()).resolve(options)
        return cls(credentials, **kwargs)  # type: ignore[arg-type]

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def token_cache(self) -> TokenCache:
        return self._tokens

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> APIClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Pipeline
    # ------------------------------------------------------------------ #

    async def execute(
        self,
        endpoint: Endpoint,
        model: Optional[type[ModelT]],
        body: Optional[BaseModel] = None,
    ) -> Optional[ModelT]:
        """Send *endpoint* and decode a 2xx body into *model*.

        Args:
            endpoint: The resolved operation.
            model: Expected response type, or ``None`` for calls whose body
                is ignored (e.g. ``DELETE``).
            body: Optional request body, serialised with camelCase keys.

        Raises:
            UnauthorizedError: On 401, after invalidating the token cache.
            ForbiddenError: On 403.
            NotFoundError: On 404.
            RateLimitedError: On 429.
            ServerError: On 5xx.
            APIError: On any other non-2xx status.
            DecodingError: If a 2xx body does not match *model*.
            NetworkError: On transport failures.
        """
        content = body.model_dump_json(by_alias=True, exclude_none=True) if body else None
        response = await self._send(
            endpoint.method, endpoint.path, params=endpoint.params, content=content
        )
        return self._handle(response, model)

    async def follow(self, next_url: str, model: type[ModelT]) -> ModelT:
        """Fetch a continuation link exactly as the API returned it."""
        response = await self._send("GET", next_url)
        result = self._handle(response, model)
        assert result is not None
        return result

    async def paginate(
        self, endpoint: Endpoint, model: type[ModelT]
    ) -> AsyncIterator[ModelT]:
        """Yield *endpoint*'s first page and every page after it, in order.

        Pages are fetched one at a time because each ``next`` link comes
        from the previous response. Iteration stops when a page has no
        ``next`` link, or when a link repeats one already followed.
        """
        page = await self.execute(endpoint, model)
        assert page is not None
        seen: set[str] = set()
        while True:
            yield page
            next_url = getattr(page, "next_cursor", None)
            if not next_url:
                return
            if next_url in seen:
                logger.warning("Stopping pagination: next link %s was already fetched", next_url)
                return
            seen.add(next_url)
            logger.debug("Following next page %s", next_url)
            page = await self.follow(next_url, model)

    async def fetch_all(
        self, endpoint: Endpoint, model: type[APIListResponse[ItemT]]
    ) -> APIListResponse[ItemT]:
        """Collect every page of *endpoint* into a single list response.

        ``data`` and ``included`` hold the items of all pages in arrival
        order; ``links`` is cleared because nothing is left to follow.
        """
        first: Optional[APIListResponse[ItemT]] = None
        items: list[ItemT] = []
        included: list[IncludedResource] = []
        pages = 0
        async for page in self.paginate(endpoint, model):
            pages += 1
            first = first or page
            items.extend(page.data)
            included.extend(page.included or [])
        assert first is not None
        logger.debug("Fetched %d items across %d pages", len(items), pages)
        return first.model_copy(
            update={"data": items, "included": included or None, "links": None}
        )

    # ------------------------------------------------------------------ #
    # Resources
    # ------------------------------------------------------------------ #

    async def list_products(
        self, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> ProductList:
        return await self._get(endpoints.list_products(limit, cursor), ProductList)

    async def get_product(self, product_id: str) -> APIResponse[CiProduct]:
        return await self._get(endpoints.get_product(product_id), APIResponse[CiProduct])

    async def list_workflows(
        self, product_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> WorkflowList:
        return await self._get(
            endpoints.list_workflows(product_id, limit, cursor), WorkflowList
        )

    async def get_workflow(self, workflow_id: str) -> APIResponse[CiWorkflow]:
        return await self._get(endpoints.get_workflow(workflow_id), APIResponse[CiWorkflow])

    async def list_build_runs(
        self,
        workflow_id: Optional[str] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> BuildRunList:
        return await self._get(
            endpoints.list_build_runs(workflow_id, limit, cursor), BuildRunList
        )

    async def get_build_run(self, build_run_id: str) -> APIResponse[CiBuildRun]:
        return await self._get(endpoints.get_build_run(build_run_id), APIResponse[CiBuildRun])

    async def start_build_run(
        self, workflow_id: str, git_reference: Optional[GitReference] = None
    ) -> APIResponse[CiBuildRun]:
        """Start a build of *workflow_id*, optionally on a branch or tag."""
        body = CiBuildRunCreateRequest.for_workflow(workflow_id, git_reference)
        result = await self.execute(
            endpoints.start_build_run(), APIResponse[CiBuildRun], body=body
        )
        assert result is not None
        return result

    async def cancel_build_run(self, build_run_id: str) -> None:
        await self.execute(endpoints.cancel_build_run(build_run_id), None)

    async def list_build_actions(
        self, build_run_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> BuildActionList:
        return await self._get(
            endpoints.list_build_actions(build_run_id, limit, cursor), BuildActionList
        )

    async def list_issues(
        self, build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> IssueList:
        return await self._get(
            endpoints.list_issues(build_action_id, limit, cursor), IssueList
        )

    async def get_issue(self, issue_id: str) -> APIResponse[CiIssue]:
        return await self._get(endpoints.get_issue(issue_id), APIResponse[CiIssue])

    async def list_test_results(
        self, build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> TestResultList:
        return await self._get(
            endpoints.list_test_results(build_action_id, limit, cursor), TestResultList
        )

    async def get_test_result(self, test_result_id: str) -> APIResponse[CiTestResult]:
        return await self._get(
            endpoints.get_test_result(test_result_id), APIResponse[CiTestResult]
        )

    async def list_artifacts(
        self, build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
    ) -> ArtifactList:
        return await self._get(
            endpoints.list_artifacts(build_action_id, limit, cursor), ArtifactList
        )

    async def get_artifact(self, artifact_id: str) -> APIResponse[CiArtifact]:
        return await self._get(endpoints.get_artifact(artifact_id), APIResponse[CiArtifact])

    async def download_artifact(self, url: str, destination: Union[str, Path]) -> Path:
        """Stream an artifact's pre-signed *url* to *destination*.

        The download URL carries its own authorisation, so no bearer token
        is sent and the body is written as raw bytes. The file appears at
        *destination* only once it is complete. Chunks are written from a
        worker thread so a slow disk does not stall the event loop.

        Raises:
            APIError: If the download responds with a non-2xx status.
            DecodingError: If a compressed body cannot be decoded.
            NetworkError: On transport failures and redirect loops.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"
        target = Path(destination).expanduser()
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as fh:
                try:
                    async with self._client.stream("GET", url) as response:
                        if not response.is_success:
                            raise APIError(response.status_code, "Failed to download artifact")
                        async for chunk in response.aiter_bytes():
                            await asyncio.to_thread(fh.write, chunk)
                except httpx.DecodingError as exc:
                    raise DecodingError(exc) from exc
                except httpx.RequestError as exc:
                    raise NetworkError(exc) from exc
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

        logger.debug("Downloaded artifact to %s", target)
        return target

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _get(self, endpoint: Endpoint, model: type[ModelT]) -> ModelT:
        result = await self.execute(endpoint, model)
        assert result is not None
        return result

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict[str, str]] = None,
        content: Optional[str] = None,
    ) -> httpx.Response:
        assert self._client is not None, "Client not initialised -- use as async context manager"

        token = await self._tokens.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.request(
                method, url, params=params or None, headers=headers, content=content
            )
        except httpx.DecodingError as exc:
            raise DecodingError(exc) from exc
        except httpx.RequestError as exc:
            raise NetworkError(exc) from exc

        logger.debug("%s %s -> %d", method, response.request.url, response.status_code)
        return response

    def _handle(
        self, response: httpx.Response, model: Optional[type[ModelT]]
    ) -> Optional[ModelT]:
        """Decode a 2xx response or raise the error its status maps to."""
        status = response.status_code

        if 200 <= status < 300:
            if model is None:
                return None
            try:
                return model.model_validate_json(response.content)
            except ValidationError as exc:
                raise DecodingError(exc) from exc

        if status == 401:
            self._tokens.invalidate()
            raise UnauthorizedError()
        if status == 403:
            raise ForbiddenError()
        if status == 404:
            raise NotFoundError()
        if status == 429:
            raise RateLimitedError()
        if 500 <= status < 600:
            raise ServerError(status)

        raise APIError(status, _error_message(response))


def _error_message(response: httpx.Response) -> str:
    """First error's ``detail`` (else ``title``) from a JSON:API error body."""
    try:
        errors = APIErrorResponse.model_validate_json(response.content).errors
    except ValidationError:
        return "Unknown error"
    if not errors:
        return "Unknown error"
    return errors[0].detail or errors[0].title
