"""Builds commands -- list, inspect, start and diagnose build runs.

Build status values:

* ``executionProgress``: PENDING, RUNNING, COMPLETE
* ``completionStatus``: SUCCEEDED, FAILED, ERRORED, CANCELED, SKIPPED

Examples::

    xcodecloud builds list --workflow <workflow-id>
    xcodecloud builds start <workflow-id> --branch main
    xcodecloud builds get <build-id> -o table
    xcodecloud builds errors <build-id>
"""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from xcodecloud.client import APIClient, endpoints
from xcodecloud.client.api_client import BuildRunList
from xcodecloud.commands._common import ALL_HELP, LIMIT_HELP, run_api
from xcodecloud.exceptions import InvalidInputError
from xcodecloud.models import (
    CamelModel,
    CiBuildAction,
    CiBuildRun,
    CiIssue,
    CiTestResult,
    GitReference,
)
from xcodecloud.output import OutputFormat, debug, error, get_output, success, suggest

builds_app = typer.Typer(no_args_is_help=True)


class BuildErrorReport(CamelModel):
    """JSON shape of ``builds errors``."""

    build_id: str
    failed_actions: list[CiBuildAction]
    issues: list[CiIssue]


@builds_app.command("list")
def builds_list(
    ctx: typer.Context,
    workflow: Optional[str] = typer.Option(None, "--workflow", help="Filter by workflow ID."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help=LIMIT_HELP),
    all_pages: bool = typer.Option(False, "--all", help=ALL_HELP),
) -> None:
    """List build runs, across all workflows or for one workflow."""

    async def _list(client: APIClient) -> BuildRunList:
        if all_pages:
            return await client.fetch_all(
                endpoints.list_build_runs(workflow, limit), BuildRunList
            )
        return await client.list_build_runs(workflow, limit=limit)

    debug(f"Fetching builds for workflow {workflow}..." if workflow else "Fetching all builds...")
    response = run_api(ctx, _list)
    get_output().render(response, CiBuildRun, response.data)


@builds_app.command("get")
def builds_get(
    ctx: typer.Context,
    build_id: str = typer.Argument(help="Build run ID."),
) -> None:
    """Get details for a build run."""
    debug(f"Fetching build {build_id}...")
    response = run_api(ctx, lambda client: client.get_build_run(build_id))
    get_output().render(response, CiBuildRun, [response.data])


@builds_app.command("start")
def builds_start(
    ctx: typer.Context,
    workflow_id: str = typer.Argument(help="Workflow ID."),
    branch: Optional[str] = typer.Option(None, "--branch", help="Branch name to build."),
    tag: Optional[str] = typer.Option(None, "--tag", help="Tag name to build."),
) -> None:
    """Start a new build run."""
    if branch and tag:
        exc = InvalidInputError("Cannot specify both --branch and --tag")
        error(str(exc))
        raise typer.Exit(code=exc.exit_code)

    reference: Optional[GitReference] = None
    if branch:
        reference = GitReference.branch(branch)
    elif tag:
        reference = GitReference.tag(tag)

    debug(f"Starting build for workflow {workflow_id}...")
    response = run_api(ctx, lambda client: client.start_build_run(workflow_id, reference))

    run = response.data
    number = run.attributes.number if run.attributes else None
    success(f"Build started: {run.id}" + (f" (#{number})" if number is not None else ""))
    get_output().render(response, CiBuildRun, [run])
    suggest(f"Check status: xcodecloud builds get {run.id}")


@builds_app.command("cancel")
def builds_cancel(
    ctx: typer.Context,
    build_id: str = typer.Argument(help="Build run ID."),
) -> None:
    """Cancel a running build."""
    debug(f"Cancelling build {build_id}...")
    run_api(ctx, lambda client: client.cancel_build_run(build_id))
    success(f"Build {build_id} cancelled")


@builds_app.command("actions")
def builds_actions(
    ctx: typer.Context,
    build_id: str = typer.Argument(help="Build run ID."),
) -> None:
    """List actions for a build run."""
    debug(f"Fetching actions for build {build_id}...")
    response = run_api(ctx, lambda client: client.list_build_actions(build_id))
    get_output().render(response, CiBuildAction, response.data)


@builds_app.command("errors")
def builds_errors(
    ctx: typer.Context,
    build_id: str = typer.Argument(help="Build run ID."),
) -> None:
    """Show failed actions of a build run and the issues they reported.

    Combines ``builds actions`` with ``builds issues`` for every action that
    completed as FAILED or ERRORED.
    """

    async def _collect(client: APIClient) -> BuildErrorReport:
        actions = await client.list_build_actions(build_id)
        failed = [action for action in actions.data if action.failed]
        pages = await asyncio.gather(*(client.list_issues(action.id) for action in failed))
        issues = [issue for page in pages for issue in page.data]
        return BuildErrorReport(build_id=build_id, failed_actions=failed, issues=issues)

    debug(f"Fetching actions for build {build_id}...")
    report = run_api(ctx, _collect)
    output = get_output()

    if output.format == OutputFormat.JSON:
        output.print_json(report)
        return

    if not report.failed_actions:
        output.print_data(f"No failed actions found for build {build_id}")
        return

    lines = [f"Build {build_id} - Failed Actions:", ""]
    for action in report.failed_actions:
        attrs = action.attributes
        name = (attrs and attrs.name) or "Unknown"
        lines.append(f"  {name} ({(attrs and attrs.action_type) or ''})")
        lines.append(f"    Status: {(attrs and attrs.completion_status) or 'Unknown'}")

    lines.append("")
    if report.issues:
        lines.extend([f"Issues ({len(report.issues)}):", ""])
        for issue in report.issues:
            lines.extend(_issue_lines(issue))
    else:
        lines.append("No detailed issues available.")
    output.print_data("\n".join(lines).rstrip())

    if not report.issues:
        suggest(f"Check build actions with: xcodecloud builds actions {build_id}")


def _issue_lines(issue: CiIssue) -> list[str]:
    attrs = issue.attributes
    issue_type = (attrs and attrs.issue_type) or "UNKNOWN"
    message = (attrs and attrs.message) or "No message"
    source = attrs.file_source if attrs else None

    location = ""
    if source and source.path:
        location = f" {source.path}"
        if source.line_number is not None:
            location += f":{source.line_number}"
    return [f"  [{issue_type}]{location}", f"    {message}", ""]


@builds_app.command("issues")
def builds_issues(
    ctx: typer.Context,
    action_id: str = typer.Argument(help="Build action ID."),
) -> None:
    """List issues (errors, warnings, analyzer findings) for a build action."""
    debug(f"Fetching issues for action {action_id}...")
    response = run_api(ctx, lambda client: client.list_issues(action_id))
    get_output().render(response, CiIssue, response.data)


@builds_app.command("tests")
def builds_tests(
    ctx: typer.Context,
    action_id: str = typer.Argument(help="Build action ID."),
) -> None:
    """List test results for a build action."""
    debug(f"Fetching test results for action {action_id}...")
    response = run_api(ctx, lambda client: client.list_test_results(action_id))
    get_output().render(response, CiTestResult, response.data)
