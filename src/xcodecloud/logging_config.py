"""Logging configuration for CLI usage.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves. The CLI calls :func:`configure_cli_logging`
once per invocation: ``--verbose`` shows everything under the
``xcodecloud`` logger at DEBUG through a Rich handler on stderr, otherwise
only warnings and errors are shown.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PACKAGE_LOGGER = "xcodecloud"

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")

_handler: Optional[logging.Handler] = None


def configure_cli_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Install a stderr Rich handler on the package logger.

    Calling it again replaces the handler installed by the previous call,
    so repeated invocations in one process do not duplicate output.

    Args:
        verbose: Show DEBUG records. Otherwise only WARNING and above.
        no_color: Render records without colour.
    """
    global _handler

    level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(PACKAGE_LOGGER)

    if _handler is not None:
        logger.removeHandler(_handler)

    _handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_time=verbose,
        show_path=False,
        markup=False,
    )
    _handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(_handler)
    logger.setLevel(level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
