"""CLI sub-commands for xcodecloud.

Each module exports one :class:`typer.Typer` sub-application, registered on
the root app in :mod:`xcodecloud.app`:

* :mod:`~xcodecloud.commands.auth` -- set up, verify, list and switch
  credential profiles.
* :mod:`~xcodecloud.commands.products` -- CI products.
* :mod:`~xcodecloud.commands.workflows` -- CI workflows.
* :mod:`~xcodecloud.commands.builds` -- build runs, their actions, issues
  and test results.
* :mod:`~xcodecloud.commands.artifacts` -- list and download artifacts.

Commands stay thin: they build an :class:`~xcodecloud.client.APIClient`
through :func:`~xcodecloud.commands._common.run_api` and hand the result to
the :mod:`~xcodecloud.output` layer.
"""
