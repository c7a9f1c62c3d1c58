"""Numeric process exit codes.

Each constant maps to an error category and is referenced by the
corresponding :class:`~xcodecloud.exceptions.XcodeCloudError` subclass.
Scripts wrapping the CLI can tell an authentication problem apart from
everything else without parsing stderr.

Example::

    $ xcodecloud products list
    $ echo $?
    2   # EXIT_AUTH_FAILURE -- no credentials, or the API rejected them
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""A configuration, network, or API error occurred."""

EXIT_AUTH_FAILURE = 2
"""Credentials are missing or invalid, or the API refused them."""

EXIT_INTERRUPTED = 130
"""The command was cancelled with Ctrl-C."""
