"""Artifacts commands -- archives, logs and result bundles produced by build actions.

Examples::

    xcodecloud artifacts list <action-id> -o table
    xcodecloud artifacts download <artifact-id> --dir ./artifacts
"""

from __future__ import annotations

from pathlib import Path

import typer

from xcodecloud.client import APIClient
from xcodecloud.commands._common import run_api
from xcodecloud.exceptions import NotFoundError
from xcodecloud.models import CiArtifact
from xcodecloud.output import debug, format_file_size, get_output, info, success

artifacts_app = typer.Typer(no_args_is_help=True)


@artifacts_app.command("list")
def artifacts_list(
    ctx: typer.Context,
    action_id: str = typer.Argument(help="Build action ID."),
) -> None:
    """List artifacts for a build action."""
    debug(f"Fetching artifacts for action {action_id}...")
    response = run_api(ctx, lambda client: client.list_artifacts(action_id))
    get_output().render(response, CiArtifact, response.data)


@artifacts_app.command("download")
def artifacts_download(
    ctx: typer.Context,
    artifact_id: str = typer.Argument(help="Artifact ID."),
    output_dir: Path = typer.Option(
        Path("."), "--dir", "-d", help="Output directory (default: current directory)."
    ),
) -> None:
    """Download an artifact into a directory.

    The file keeps the artifact's own name; it only appears once the
    download has completed.
    """

    async def _download(client: APIClient) -> Path:
        debug(f"Fetching artifact info {artifact_id}...")
        artifact = (await client.get_artifact(artifact_id)).data
        attrs = artifact.attributes
        if attrs is None or not attrs.download_url:
            raise NotFoundError("Artifact has no download URL")

        file_name = attrs.file_name or f"{artifact_id}.zip"
        info(f"Downloading {file_name}...")
        if attrs.file_size is not None:
            info(f"  Size: {format_file_size(attrs.file_size)}")
        return await client.download_artifact(
            attrs.download_url, output_dir.expanduser() / file_name
        )

    destination = run_api(ctx, _download)
    success(f"Downloaded to {destination}")
