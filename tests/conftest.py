"""Shared test fixtures for xcodecloud.

Provides freshly generated P-256 keys, credential fixtures, an isolated
home/working directory, output-state management, and a CLI runner. These
fixtures are discovered by pytest and available to all test modules.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from xcodecloud.config import ENV_ISSUER_ID, ENV_KEY_ID, ENV_PRIVATE_KEY, ENV_PRIVATE_KEY_PATH
from xcodecloud.models import Credentials
from xcodecloud.output import OutputFormat, OutputManager, reset_output, set_output

KEY_ID = "ABC123DEF4"
ISSUER_ID = "69a6de70-0000-47e3-e053-5b8c7c11a4d1"


def generate_pem(curve: ec.EllipticCurve | None = None) -> str:
    """Return a new PKCS#8 PEM private key (P-256 unless *curve* is given)."""
    key = ec.generate_private_key(curve or ec.SECP256R1())
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def write_config(path: Path, profiles: dict[str, dict[str, Any]], default: Optional[str] = None) -> Path:
    """Write a config file in the on-disk JSON shape."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data: dict[str, Any] = {"profiles": profiles}
    if default is not None:
        data["default"] = default
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def json_response(data: Any, status_code: int = 200) -> httpx.Response:
    """Build an httpx.Response with a JSON body."""
    return httpx.Response(status_code=status_code, json=data)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When CliRunner redirects those streams the cached
    references go stale, so a fresh manager is created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Keys and credentials
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def pem_key() -> str:
    """A P-256 private key in PEM form, shared across the session."""
    return generate_pem()


@pytest.fixture
def pem_b64(pem_key: str) -> str:
    """The same key, base64-encoded as a whole (as passed in env vars)."""
    return base64.b64encode(pem_key.encode("utf-8")).decode("ascii")


@pytest.fixture
def credentials(pem_key: str) -> Credentials:
    return Credentials(key_id=KEY_ID, issuer_id=ISSUER_ID, private_key=pem_key)


@pytest.fixture
def key_file(tmp_path: Path, pem_key: str) -> Path:
    """A ``.p8`` key file on disk."""
    path = tmp_path / "keys" / f"AuthKey_{KEY_ID}.p8"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(pem_key, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate the home directory, working directory and credential env vars.

    ``HOME`` points at ``tmp_path/home`` and the working directory is
    ``tmp_path/project``, so the global config lives at
    ``tmp_path/home/.xcodecloud/config.json`` and the local one at
    ``tmp_path/project/.xcodecloud/config.json``.

    Returns:
        The tmp_path root directory.
    """
    home = tmp_path / "home"
    project = tmp_path / "project"
    home.mkdir()
    project.mkdir()

    monkeypatch.setenv("HOME", str(home))
    for var in (ENV_KEY_ID, ENV_ISSUER_ID, ENV_PRIVATE_KEY_PATH, ENV_PRIVATE_KEY):
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(project)
    return tmp_path


@pytest.fixture
def global_config(isolated_home: Path) -> Path:
    return isolated_home / "home" / ".xcodecloud" / "config.json"


@pytest.fixture
def local_config(isolated_home: Path) -> Path:
    return isolated_home / "project" / ".xcodecloud" / "config.json"


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, colourless JSON output manager."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner with stderr captured separately."""
    from typer.testing import CliRunner

    try:
        return CliRunner(mix_stderr=False)
    except TypeError:
        return CliRunner()
