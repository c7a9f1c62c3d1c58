"""Auth commands -- manage credential profiles.

Provides the ``xcodecloud auth`` sub-command group to create, verify, list
and switch the profiles stored in the global (``~/.xcodecloud/config.json``)
and project-local (``./.xcodecloud/config.json``) config files.

Typical workflow::

    xcodecloud auth init                 # interactive setup
    xcodecloud auth check                # verify credentials against the API
    xcodecloud auth use work --local     # pick the default for this project
"""

from __future__ import annotations

from pathlib import Path

import typer

from xcodecloud.auth.token import decode_token
from xcodecloud.client import APIClient
from xcodecloud.client.api_client import ProductList
from xcodecloud.commands._common import run_api
from xcodecloud.config import (
    display_path,
    global_config_path,
    load_config_file,
    local_config_path,
    save_config_file,
)
from xcodecloud.exceptions import (
    InvalidInputError,
    KeyFileNotFoundError,
    ProfileNotFoundError,
    XcodeCloudError,
)
from xcodecloud.models import ConfigFile, Profile
from xcodecloud.output import debug, error, get_output, info, success, suggest

auth_app = typer.Typer(no_args_is_help=True)

API_KEYS_URL = "https://appstoreconnect.apple.com/access/integrations/api"


def _exit_with(exc: XcodeCloudError) -> typer.Exit:
    error(str(exc))
    return typer.Exit(code=exc.exit_code)


def _config_path(local: bool) -> Path:
    return local_config_path() if local else global_config_path()


@auth_app.command("init")
def auth_init(
    profile_name: str = typer.Option("default", "--profile", help="Profile name."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing profile."),
    local: bool = typer.Option(
        False, "--local", help="Save to ./.xcodecloud/config.json instead of the global file."
    ),
) -> None:
    """Set up credentials interactively.

    Prompts for the key id, issuer id and ``.p8`` key path, then saves them
    as a profile. The first profile, or one named ``default``, becomes the
    default profile.
    """
    path = _config_path(local)
    try:
        config = load_config_file(path) or ConfigFile()
    except XcodeCloudError as exc:
        raise _exit_with(exc) from None

    if profile_name in config.profiles and not force:
        raise _exit_with(
            InvalidInputError(f"Profile '{profile_name}' already exists. Use --force to overwrite.")
        )

    info("Setting up Xcode Cloud CLI credentials")
    info("You'll need an App Store Connect API Team key (not Individual). Create one at:")
    info(f"  {API_KEYS_URL}")

    key_id = typer.prompt("Key ID (10-character alphanumeric, e.g. ABC123DEF4)").strip()
    issuer_id = typer.prompt("Issuer ID (UUID, e.g. 12345678-1234-1234-1234-123456789abc)").strip()
    key_path = typer.prompt("Path to .p8 private key file (e.g. ~/AuthKey_ABC123DEF4.p8)").strip()

    if not key_id or not issuer_id or not key_path:
        raise _exit_with(InvalidInputError("Key ID, issuer ID and key path are all required"))
    if not Path(key_path).expanduser().is_file():
        raise _exit_with(KeyFileNotFoundError(key_path))

    config.profiles[profile_name] = Profile(
        key_id=key_id, issuer_id=issuer_id, private_key_path=key_path
    )
    if config.default_profile is None or profile_name == "default":
        config.default_profile = profile_name

    save_config_file(config, path)

    success(f"Credentials saved to {display_path(path)}")
    info(f"  Profile: {profile_name}")
    if config.default_profile == profile_name:
        info("  (set as default)")
    suggest("Verify them: xcodecloud auth check")


@auth_app.command("check")
def auth_check(ctx: typer.Context) -> None:
    """Verify credentials by making a test API call."""

    async def _test_call(client: APIClient) -> ProductList:
        token = await client.token_cache.get_token()
        header, claims = decode_token(token)
        debug(
            f"Signed token for key {header['kid']}, valid for {claims['exp'] - claims['iat']}s"
        )
        return await client.list_products(limit=1)

    debug("Resolving credentials and making a test API call...")
    response = run_api(ctx, _test_call)

    output = get_output()
    output.print_data("Credentials are valid")
    output.print_data(f"  Found {len(response.data)} CI product(s)")
    if response.data:
        first = response.data[0]
        name = first.attributes.name if first.attributes and first.attributes.name else first.id
        output.print_data(f"  Example: {name}")


def _profile_lines(title: str, config: ConfigFile, show_issuer: bool) -> list[str]:
    lines = [title, f"  Default: {config.default_profile or '(none)'}", "  Profiles:"]
    for name in sorted(config.profiles):
        profile = config.profiles[name]
        marker = " *" if name == config.default_profile else ""
        lines.append(f"    - {name}{marker}")
        lines.append(f"      Key ID: {profile.key_id}")
        if show_issuer:
            lines.append(f"      Issuer ID: {profile.issuer_id}")
    return lines


@auth_app.command("profiles")
def auth_profiles() -> None:
    """List configured profiles in the global and project-local config files."""
    try:
        global_config = load_config_file(global_config_path())
        local_config = load_config_file(local_config_path())
    except XcodeCloudError as exc:
        raise _exit_with(exc) from None

    lines: list[str] = []
    if global_config is not None:
        lines += _profile_lines("Global config (~/.xcodecloud/config.json):", global_config, True)
    else:
        lines.append("No global config found at ~/.xcodecloud/config.json")

    if local_config is not None:
        lines.append("")
        lines += _profile_lines("Local config (.xcodecloud/config.json):", local_config, False)

    get_output().print_data("\n".join(lines))


@auth_app.command("use")
def auth_use(
    profile_name: str = typer.Argument(help="Profile name to set as default."),
    local: bool = typer.Option(False, "--local", help="Update the local config instead of global."),
) -> None:
    """Set the default profile."""
    path = _config_path(local)
    try:
        config = load_config_file(path)
    except XcodeCloudError as exc:
        raise _exit_with(exc) from None

    if config is None:
        raise _exit_with(InvalidInputError(f"No config file found at {display_path(path)}"))
    if profile_name not in config.profiles:
        raise _exit_with(
            ProfileNotFoundError(profile_name, [display_path(path)], list(config.profiles))
        )

    config.default_profile = profile_name
    save_config_file(config, path)
    success(f"Default profile set to '{profile_name}'")
