"""Config file locations, loading, and atomic saves.

This module owns everything about the on-disk credential config files:

* **Locations** -- a global file at ``~/.xcodecloud/config.json`` and a
  project-local file at ``.xcodecloud/config.json`` relative to the working
  directory. See :func:`global_config_path` and :func:`local_config_path`.
* **Environment variables** -- the names of the four variables the
  credential resolver reads (:data:`ENV_KEY_ID` and friends).
* **Loading** -- :func:`load_config_file` returns ``None`` for a missing
  file and raises :class:`~xcodecloud.exceptions.ConfigError` for anything
  unreadable or malformed.
* **Saving** -- :func:`save_config_file` writes atomically with ``0o600``
  permissions; only the ``auth`` CLI commands call it.

Credential *resolution* (precedence between flags, environment, and these
files) lives in :mod:`xcodecloud.auth.resolver`.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from xcodecloud.exceptions import ConfigError
from xcodecloud.models import ConfigFile

_APP_DIR_NAME = ".xcodecloud"
_CONFIG_FILENAME = "config.json"

ENV_KEY_ID = "XCODE_CLOUD_KEY_ID"
"""App Store Connect API key id."""

ENV_ISSUER_ID = "XCODE_CLOUD_ISSUER_ID"
"""App Store Connect issuer id."""

ENV_PRIVATE_KEY_PATH = "XCODE_CLOUD_PRIVATE_KEY_PATH"
"""Path to the ``.p8`` private key file."""

ENV_PRIVATE_KEY = "XCODE_CLOUD_PRIVATE_KEY"
"""Inline private key, literal PEM or base64-encoded. Wins over the path."""


# --- Paths ---


def get_config_dir() -> Path:
    """Return ``~/.xcodecloud`` (not created)."""
    return Path.home() / _APP_DIR_NAME


def global_config_path() -> Path:
    """Path to the user-wide config file, ``~/.xcodecloud/config.json``."""
    return get_config_dir() / _CONFIG_FILENAME


def local_config_path() -> Path:
    """Path to the project-local config file, ``./.xcodecloud/config.json``."""
    return Path.cwd() / _APP_DIR_NAME / _CONFIG_FILENAME


def get_logs_dir() -> Path:
    """Return the crash-log directory, creating it if necessary."""
    path = get_config_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def display_path(path: Path) -> str:
    """Render *path* with the home directory abbreviated to ``~``."""
    try:
        return "~/" + str(path.relative_to(Path.home()))
    except ValueError:
        return str(path)


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str, mode: int = 0o600) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    Permissions are restricted to *mode* before any content is written.
    On any failure the temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def load_config_file(path: Path) -> Optional[ConfigFile]:
    """Load and validate a config file.

    Args:
        path: The file to read. ``~`` is expanded.

    Returns:
        The deserialised :class:`~xcodecloud.models.ConfigFile`, or ``None``
        if no file exists at *path*.

    Raises:
        ConfigError: If the file exists but cannot be read, is not valid
            JSON, or does not match the config file shape.
    """
    path = Path(path).expanduser()
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read {display_path(path)}: {exc}") from exc
    try:
        data = json.loads(text)
        return ConfigFile.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigError(f"Invalid JSON in {display_path(path)}: {exc}") from exc


def save_config_file(config: ConfigFile, path: Path) -> None:
    """Persist *config* atomically with owner-only permissions.

    Keys are sorted and unset optional fields omitted, so the file stays
    stable across saves.

    Args:
        config: The configuration to save.
        path: Destination file; parent directories are created.
    """
    data = config.model_dump(mode="json", by_alias=True, exclude_none=True)
    text = json.dumps(data, indent=2, sort_keys=True) + "\n"
    _atomic_write(Path(path).expanduser(), text)
