"""Products commands -- CI products represent apps and frameworks in Xcode Cloud.

Each product can have multiple workflows.

Examples::

    xcodecloud products list
    xcodecloud products list -o table --all
    xcodecloud products get <product-id>
"""

from __future__ import annotations

from typing import Optional

import typer

from xcodecloud.client import APIClient, endpoints
from xcodecloud.client.api_client import ProductList
from xcodecloud.commands._common import ALL_HELP, LIMIT_HELP, run_api
from xcodecloud.models import CiProduct
from xcodecloud.output import debug, get_output

products_app = typer.Typer(no_args_is_help=True)


@products_app.command("list")
def products_list(
    ctx: typer.Context,
    limit: Optional[int] = typer.Option(None, "--limit", min=1, help=LIMIT_HELP),
    all_pages: bool = typer.Option(False, "--all", help=ALL_HELP),
) -> None:
    """List all CI products."""

    async def _list(client: APIClient) -> ProductList:
        if all_pages:
            return await client.fetch_all(endpoints.list_products(limit), ProductList)
        return await client.list_products(limit=limit)

    debug("Fetching products...")
    response = run_api(ctx, _list)
    get_output().render(response, CiProduct, response.data)


@products_app.command("get")
def products_get(
    ctx: typer.Context,
    product_id: str = typer.Argument(help="Product ID."),
) -> None:
    """Get details for a CI product."""
    debug(f"Fetching product {product_id}...")
    response = run_api(ctx, lambda client: client.get_product(product_id))
    get_output().render(response, CiProduct, [response.data])
