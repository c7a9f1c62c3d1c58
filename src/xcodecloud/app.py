"""Typer application and CLI entry point for xcodecloud.

This module wires together the top-level Typer application and registers
the command groups (``auth``, ``products``, ``workflows``, ``builds``,
``artifacts``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs a SIGINT handler and invokes the Typer app.
:class:`~xcodecloud.exceptions.XcodeCloudError` exits with the error's
``exit_code``; any other exception is written to a crash log under
``~/.xcodecloud/logs`` and exits with :data:`EXIT_GENERIC_FAILURE`.
"""

from __future__ import annotations

import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer

from xcodecloud import __version__
from xcodecloud.commands.artifacts import artifacts_app
from xcodecloud.commands.auth import auth_app
from xcodecloud.commands.builds import builds_app
from xcodecloud.commands.products import products_app
from xcodecloud.commands.workflows import workflows_app
from xcodecloud.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from xcodecloud.output import OutputFormat

app = typer.Typer(
    name="xcodecloud",
    help=(
        "A command-line interface for Xcode Cloud, via the App Store Connect API.\n\n"
        "Credentials are taken from, in order: command-line flags, environment "
        "variables (XCODE_CLOUD_KEY_ID, XCODE_CLOUD_ISSUER_ID, "
        "XCODE_CLOUD_PRIVATE_KEY_PATH, XCODE_CLOUD_PRIVATE_KEY), "
        "./.xcodecloud/config.json, then ~/.xcodecloud/config.json. "
        "Run 'xcodecloud auth init' to set them up."
    ),
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.add_typer(auth_app, name="auth", help="Manage authentication credentials.")
app.add_typer(products_app, name="products", help="Manage CI products.")
app.add_typer(workflows_app, name="workflows", help="Manage CI workflows.")
app.add_typer(builds_app, name="builds", help="Manage build runs.")
app.add_typer(artifacts_app, name="artifacts", help="Manage build artifacts.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"xcodecloud {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    profile: Optional[str] = typer.Option(
        None, "--profile", help="Use a named auth profile."
    ),
    key_id: Optional[str] = typer.Option(None, "--key-id", help="API key ID."),
    issuer_id: Optional[str] = typer.Option(None, "--issuer-id", help="Issuer ID."),
    private_key_path: Optional[str] = typer.Option(
        None, "--private-key-path", help="Path to the .p8 private key file."
    ),
    private_key: Optional[str] = typer.Option(
        None, "--private-key", help="Private key content (PEM or base64-encoded PEM)."
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.JSON, "--output", "-o", help="Output format.", case_sensitive=False
    ),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~xcodecloud.output.OutputManager`,
    configures logging, and stores the explicit credential options in
    ``ctx.obj`` for sub-commands to resolve.
    """
    from xcodecloud.logging_config import configure_cli_logging
    from xcodecloud.models import CredentialOptions
    from xcodecloud.output import OutputManager, set_output

    set_output(
        OutputManager(
            format=output_format,
            pretty=pretty,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    configure_cli_logging(verbose=verbose, no_color=no_color)

    ctx.ensure_object(dict)
    ctx.obj["credentials"] = CredentialOptions(
        key_id=key_id,
        issuer_id=issuer_id,
        private_key_path=private_key_path,
        private_key=private_key,
        profile=profile,
    )
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to ``~/.xcodecloud/logs`` and return its path."""
    from xcodecloud.config import get_logs_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_logs_dir() / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc(), encoding="utf-8")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``xcodecloud`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as exc:
        from xcodecloud.exceptions import XcodeCloudError
        from xcodecloud.output import error

        if isinstance(exc, XcodeCloudError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
