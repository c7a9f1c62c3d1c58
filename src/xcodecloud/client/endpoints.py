"""Endpoint descriptors for the Xcode Cloud part of the App Store Connect API.

Each factory function resolves one logical operation to an :class:`Endpoint`
(path, HTTP method, query parameters). Nothing here performs I/O; the
descriptors are consumed by :meth:`~xcodecloud.client.APIClient.execute`.

``limit`` and ``cursor`` become query parameters only when they are set.
Continuation links returned by the API are *not* built here; they are used
verbatim by :meth:`~xcodecloud.client.APIClient.follow`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

Query = tuple[tuple[str, str], ...]


@dataclass(frozen=True)
class Endpoint:
    """A resolved API operation.

    Attributes:
        path: Absolute path below the API base URL, e.g. ``/v1/ciProducts``.
        method: HTTP method.
        query: Ordered ``(name, value)`` query pairs.
    """

    path: str
    method: str = "GET"
    query: Query = ()

    @property
    def params(self) -> dict[str, str]:
        """The query as a mapping, in the form httpx accepts."""
        return dict(self.query)


def _page_query(limit: Optional[int], cursor: Optional[str]) -> Query:
    pairs: list[tuple[str, str]] = []
    if limit is not None:
        pairs.append(("limit", str(limit)))
    if cursor is not None:
        pairs.append(("cursor", cursor))
    return tuple(pairs)


# --- Products ---


def list_products(limit: Optional[int] = None, cursor: Optional[str] = None) -> Endpoint:
    """List CI products, sideloading each product's app and bundle id."""
    query = (("include", "app,bundleId"),) + _page_query(limit, cursor)
    return Endpoint("/v1/ciProducts", query=query)


def get_product(product_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciProducts/{product_id}")


# --- Workflows ---


def list_workflows(
    product_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
) -> Endpoint:
    return Endpoint(
        f"/v1/ciProducts/{product_id}/workflows", query=_page_query(limit, cursor)
    )


def get_workflow(workflow_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciWorkflows/{workflow_id}")


# --- Build runs ---


def list_build_runs(
    workflow_id: Optional[str] = None,
    limit: Optional[int] = None,
    cursor: Optional[str] = None,
) -> Endpoint:
    """List build runs of one workflow, or across all workflows when no id is given."""
    path = f"/v1/ciWorkflows/{workflow_id}/buildRuns" if workflow_id else "/v1/ciBuildRuns"
    return Endpoint(path, query=_page_query(limit, cursor))


def get_build_run(build_run_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciBuildRuns/{build_run_id}")


def start_build_run() -> Endpoint:
    return Endpoint("/v1/ciBuildRuns", method="POST")


def cancel_build_run(build_run_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciBuildRuns/{build_run_id}", method="DELETE")


# --- Build actions and their children ---


def list_build_actions(
    build_run_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
) -> Endpoint:
    return Endpoint(
        f"/v1/ciBuildRuns/{build_run_id}/actions", query=_page_query(limit, cursor)
    )


def list_artifacts(
    build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
) -> Endpoint:
    return Endpoint(
        f"/v1/ciBuildActions/{build_action_id}/artifacts", query=_page_query(limit, cursor)
    )


def get_artifact(artifact_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciArtifacts/{artifact_id}")


def list_issues(
    build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
) -> Endpoint:
    return Endpoint(
        f"/v1/ciBuildActions/{build_action_id}/issues", query=_page_query(limit, cursor)
    )


def get_issue(issue_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciIssues/{issue_id}")


def list_test_results(
    build_action_id: str, limit: Optional[int] = None, cursor: Optional[str] = None
) -> Endpoint:
    return Endpoint(
        f"/v1/ciBuildActions/{build_action_id}/testResults", query=_page_query(limit, cursor)
    )


def get_test_result(test_result_id: str) -> Endpoint:
    return Endpoint(f"/v1/ciTestResults/{test_result_id}")
