"""xcodecloud -- command-line client for Xcode Cloud via the App Store Connect API.

The package is split into a small authenticated-access core and a thin Typer
layer on top of it:

* credentials are resolved from CLI flags, the environment, or a
  project-local / global config file (:mod:`xcodecloud.auth.resolver`);
* short-lived ES256 tokens are signed from those credentials
  (:mod:`xcodecloud.auth.token`) and cached per client
  (:mod:`xcodecloud.auth.provider`);
* :class:`~xcodecloud.client.APIClient` sends the requests, maps HTTP
  outcomes to typed exceptions, and follows pagination links.

Typical workflow::

    xcodecloud auth init              # store a profile in ~/.xcodecloud
    xcodecloud products list -o table
    xcodecloud builds start <workflow-id> --branch main

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: Config file locations, loading, and atomic saves.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "1.0.0"
