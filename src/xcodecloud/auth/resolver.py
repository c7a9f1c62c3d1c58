"""Credential resolution across flags, environment, and config files.

:class:`CredentialResolver` picks exactly one complete credential set, trying
sources in strict priority order and never merging fields across them:

1. Explicit options (command-line flags).
2. Environment variables (:data:`~xcodecloud.config.ENV_KEY_ID` and friends).
3. The project-local config file, ``./.xcodecloud/config.json``.
4. The global config file, ``~/.xcodecloud/config.json``.

A missing config file simply means "source absent". A malformed one, an
unreadable key file, or a requested profile that exists in none of the
config files is a hard error rather than a silent fall-through.

The resolver holds no state beyond its inputs and only reads files, so one
instance can be shared freely.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from xcodecloud.config import (
    ENV_ISSUER_ID,
    ENV_KEY_ID,
    ENV_PRIVATE_KEY,
    ENV_PRIVATE_KEY_PATH,
    display_path,
    global_config_path,
    load_config_file,
    local_config_path,
)
from xcodecloud.exceptions import (
    InvalidCredentialsError,
    InvalidInputError,
    MissingCredentialsError,
    ProfileNotFoundError,
)
from xcodecloud.models import CredentialOptions, Credentials

logger = logging.getLogger(__name__)

MISSING_CREDENTIALS_HELP = f"""No credentials configured.

Run 'xcodecloud auth init' to set up credentials interactively.

Credentials can also be provided via:
  - Command-line flags (--key-id, --issuer-id, --private-key-path or --private-key)
  - Environment variables ({ENV_KEY_ID}, {ENV_ISSUER_ID},
    {ENV_PRIVATE_KEY_PATH} or {ENV_PRIVATE_KEY})
  - Config file (~/.xcodecloud/config.json or ./.xcodecloud/config.json)"""


def decode_inline_key(value: str) -> str:
    """Return the PEM text behind an inline key value.

    Inline keys travel through flags and environment variables, where
    base64-encoding the whole PEM file is common. If *value* base64-decodes
    to UTF-8 text that looks like a private key, that text is returned;
    otherwise *value* is treated as literal key material and returned as is.
    """
    compact = "".join(value.split())
    try:
        decoded = base64.b64decode(compact, validate=True).decode("utf-8")
    except (binascii.Error, ValueError):
        return value
    if "PRIVATE KEY" in decoded:
        return decoded
    return value


class CredentialResolver:
    """Resolve :class:`~xcodecloud.models.Credentials` from all sources.

    Args:
        local_config_path: Override for the project-local config file.
            Defaults to ``./.xcodecloud/config.json``, evaluated per call.
        global_config_path: Override for the global config file. Defaults
            to ``~/.xcodecloud/config.json``.
        environ: Environment mapping to read. Defaults to ``os.environ``.
        strict: When ``True``, a partial set of explicit options (say a key
            id without an issuer id) raises
            :class:`~xcodecloud.exceptions.InvalidInputError` instead of
            falling through to the environment and config files.

    Example::

        resolver = CredentialResolver()
        creds = resolver.resolve(CredentialOptions(profile="work"))
    """

    def __init__(
        self,
        local_config_path: Optional[Path] = None,
        global_config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        strict: bool = False,
    ) -> None:
        self._local_config_path = local_config_path
        self._global_config_path = global_config_path
        self._environ = environ if environ is not None else os.environ
        self._strict = strict

    @property
    def config_paths(self) -> list[Path]:
        """Config files in the order they are consulted (local, then global)."""
        return [
            self._local_config_path or local_config_path(),
            self._global_config_path or global_config_path(),
        ]

    def resolve(self, options: Optional[CredentialOptions] = None) -> Credentials:
        """Return the highest-priority complete credential set.

        Args:
            options: Explicit inputs. ``options.profile`` selects a named
                profile in the config files; otherwise each file's default
                profile is used.

        Raises:
            MissingCredentialsError: If no source yields complete credentials.
            ProfileNotFoundError: If ``options.profile`` is in none of the
                existing config files.
            ConfigError: If a config file is unreadable or malformed.
            KeyFileNotFoundError: If a chosen source points at a missing key file.
            InvalidPrivateKeyError: If a chosen key file cannot be read.
            InvalidInputError: In strict mode, for partial explicit options.
            InvalidCredentialsError: If the chosen source holds a blank id or key.
        """
        options = options or CredentialOptions()
        try:
            return self._resolve(options)
        except ValidationError as exc:
            raise InvalidCredentialsError(_validation_detail(exc)) from exc

    def _resolve(self, options: CredentialOptions) -> Credentials:
        creds = self._from_options(options)
        if creds is not None:
            logger.debug("Using credentials from command-line options")
            return creds

        creds = self._from_environment()
        if creds is not None:
            logger.debug("Using credentials from environment variables")
            return creds

        creds = self._from_config_files(options.profile or None)
        if creds is not None:
            return creds

        raise MissingCredentialsError(MISSING_CREDENTIALS_HELP)

    # ------------------------------------------------------------------ #
    # Sources
    # ------------------------------------------------------------------ #

    def _from_options(self, options: CredentialOptions) -> Optional[Credentials]:
        key_id = _present(options.key_id)
        issuer_id = _present(options.issuer_id)
        private_key = _present(options.private_key)
        key_path = _present(options.private_key_path)

        if self._strict:
            self._check_complete(key_id, issuer_id, private_key, key_path)

        return self._build(key_id, issuer_id, private_key, key_path)

    def _from_environment(self) -> Optional[Credentials]:
        return self._build(
            _present(self._environ.get(ENV_KEY_ID)),
            _present(self._environ.get(ENV_ISSUER_ID)),
            _present(self._environ.get(ENV_PRIVATE_KEY)),
            _present(self._environ.get(ENV_PRIVATE_KEY_PATH)),
        )

    def _from_config_files(self, profile_name: Optional[str]) -> Optional[Credentials]:
        searched: list[str] = []
        available: list[str] = []

        for path in self.config_paths:
            config = load_config_file(path)
            if config is None:
                continue

            if profile_name is not None:
                searched.append(display_path(path))
                available.extend(config.profiles)
                profile = config.profiles.get(profile_name)
                if profile is not None:
                    logger.debug("Using profile '%s' from %s", profile_name, path)
                    return profile.to_credentials()
                continue

            default = config.default_profile
            if default is None:
                continue
            profile = config.profiles.get(default)
            if profile is None:
                logger.warning(
                    "Default profile '%s' is not defined in %s", default, display_path(path)
                )
                continue
            logger.debug("Using default profile '%s' from %s", default, path)
            return profile.to_credentials()

        if profile_name is not None and searched:
            raise ProfileNotFoundError(profile_name, searched, available)
        return None

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _build(
        key_id: Optional[str],
        issuer_id: Optional[str],
        private_key: Optional[str],
        key_path: Optional[str],
    ) -> Optional[Credentials]:
        """Build credentials when the ids and some key material are present."""
        if key_id is None or issuer_id is None:
            return None
        if private_key is not None:
            return Credentials(
                key_id=key_id,
                issuer_id=issuer_id,
                private_key=decode_inline_key(private_key),
            )
        if key_path is not None:
            return Credentials.from_key_file(key_id, issuer_id, key_path)
        return None

    @staticmethod
    def _check_complete(
        key_id: Optional[str],
        issuer_id: Optional[str],
        private_key: Optional[str],
        key_path: Optional[str],
    ) -> None:
        given = [v for v in (key_id, issuer_id, private_key, key_path) if v is not None]
        if not given:
            return
        missing = []
        if key_id is None:
            missing.append("--key-id")
        if issuer_id is None:
            missing.append("--issuer-id")
        if private_key is None and key_path is None:
            missing.append("--private-key-path or --private-key")
        if missing:
            raise InvalidInputError(
                f"Incomplete credentials on the command line; missing {', '.join(missing)}"
            )


def _present(value: Optional[str]) -> Optional[str]:
    """``None`` for unset or whitespace-only values, else *value* unchanged."""
    if value is None or not value.strip():
        return None
    return value


def _validation_detail(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    )
