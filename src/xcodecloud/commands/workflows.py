"""Workflows commands -- the build, test and archive pipelines of a product.

Examples::

    xcodecloud workflows list <product-id>
    xcodecloud workflows get <workflow-id> -o table
"""

from __future__ import annotations

from typing import Optional

import typer

from xcodecloud.client import APIClient, endpoints
from xcodecloud.client.api_client import WorkflowList
from xcodecloud.commands._common import ALL_HELP, LIMIT_HELP, run_api
from xcodecloud.models import CiWorkflow
from xcodecloud.output import debug, get_output

workflows_app = typer.Typer(no_args_is_help=True)


@workflows_app.command("list")
def workflows_list(
    ctx: typer.Context,
    product_id: str = typer.Argument(help="Product ID."),
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help=LIMIT_HELP),
    all_pages: bool = typer.Option(False, "--all", help=ALL_HELP),
) -> None:
    """List workflows for a CI product."""

    async def _list(client: APIClient) -> WorkflowList:
        if all_pages:
            return await client.fetch_all(
                endpoints.list_workflows(product_id, limit), WorkflowList
            )
        return await client.list_workflows(product_id, limit=limit)

    debug(f"Fetching workflows for product {product_id}...")
    response = run_api(ctx, _list)
    get_output().render(response, CiWorkflow, response.data)


@workflows_app.command("get")
def workflows_get(
    ctx: typer.Context,
    workflow_id: str = typer.Argument(help="Workflow ID."),
) -> None:
    """Get details for a workflow."""
    debug(f"Fetching workflow {workflow_id}...")
    response = run_api(ctx, lambda client: client.get_workflow(workflow_id))
    get_output().render(response, CiWorkflow, [response.data])
