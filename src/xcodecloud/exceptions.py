"""Exception hierarchy for xcodecloud.

All exceptions inherit from :class:`XcodeCloudError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`xcodecloud.exit_codes`.
The top-level error handler in :func:`xcodecloud.app.main` catches
``XcodeCloudError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Every failure the core can produce is a distinct class, so callers branch
with ``except`` clauses (or ``match``) instead of inspecting messages.

Subclass hierarchy::

    XcodeCloudError (exit 1)
    +-- AuthError                 (exit 2)
    |   +-- MissingCredentialsError
    |   +-- InvalidCredentialsError
    |   +-- InvalidPrivateKeyError
    |   +-- UnauthorizedError
    |   +-- ForbiddenError
    +-- ConfigError               (exit 1)
    |   +-- ProfileNotFoundError
    +-- KeyFileNotFoundError      (exit 1)
    +-- InvalidInputError         (exit 1)
    +-- NetworkError              (exit 1)
    +-- DecodingError             (exit 1)
    +-- NotFoundError             (exit 1)
    +-- RateLimitedError          (exit 1)
    +-- ServerError               (exit 1)
    +-- APIError                  (exit 1)
"""

from __future__ import annotations

from typing import Optional

from xcodecloud.exit_codes import EXIT_AUTH_FAILURE, EXIT_GENERIC_FAILURE


class XcodeCloudError(Exception):
    """Base exception for all xcodecloud errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`xcodecloud.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


# --- Credential / authentication errors ---


class AuthError(XcodeCloudError):
    """Base class for errors that mean "fix your credentials"."""

    exit_code = EXIT_AUTH_FAILURE


class MissingCredentialsError(AuthError):
    """Raised when no source yields a complete credential set."""

    def __init__(self, detail: str):
        super().__init__(f"Missing credentials: {detail}")
        self.detail = detail


class InvalidCredentialsError(AuthError):
    """Raised when a credential is structurally present but unusable."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid credentials: {detail}")
        self.detail = detail


class InvalidPrivateKeyError(AuthError):
    """Raised when private key material cannot be read, decoded, or parsed.

    The underlying exception, if any, is chained as ``__cause__``.
    """

    def __init__(self, detail: str):
        super().__init__(f"Invalid private key: {detail}")
        self.detail = detail


class UnauthorizedError(AuthError):
    """Raised when the API returns HTTP 401.

    The client invalidates its cached token before raising, so a retry
    signs a fresh one.
    """

    def __init__(self) -> None:
        super().__init__("Unauthorized: Check your API credentials")


class ForbiddenError(AuthError):
    """Raised when the API returns HTTP 403."""

    def __init__(self) -> None:
        super().__init__("Forbidden: You don't have permission for this action")


# --- Configuration errors ---


class ConfigError(XcodeCloudError):
    """Raised for config file problems (unreadable file, invalid JSON or shape)."""

    def __init__(self, detail: str):
        super().__init__(f"Configuration error: {detail}")
        self.detail = detail


class ProfileNotFoundError(ConfigError):
    """Raised when an explicitly requested profile exists in no config file.

    Args:
        profile: The requested profile name.
        searched: Config files that were read while looking for it.
        available: Profile names that do exist in those files.
    """

    def __init__(
        self,
        profile: str,
        searched: Optional[list[str]] = None,
        available: Optional[list[str]] = None,
    ):
        self.profile = profile
        self.searched = list(searched or [])
        self.available = sorted(set(available or []))
        detail = f"Profile '{profile}' not found"
        if self.searched:
            detail += f" in {', '.join(self.searched)}"
        if self.available:
            detail += f" (available: {', '.join(self.available)})"
        super().__init__(detail)


class KeyFileNotFoundError(XcodeCloudError):
    """Raised when a configured private key path does not exist."""

    def __init__(self, path: str):
        super().__init__(f"File not found: {path}")
        self.path = path


class InvalidInputError(XcodeCloudError):
    """Raised for invalid command arguments or option combinations."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid input: {detail}")
        self.detail = detail


# --- Transport errors ---


class NetworkError(XcodeCloudError):
    """Raised on transport failures (DNS, TLS, connection reset, timeout).

    The :mod:`httpx` exception is chained as ``__cause__``.
    """

    def __init__(self, cause: Exception):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class DecodingError(XcodeCloudError):
    """Raised when a successful response body does not match the expected shape."""

    def __init__(self, cause: Exception):
        super().__init__(f"Failed to decode response: {cause}")
        self.cause = cause


# --- HTTP status errors ---


class NotFoundError(XcodeCloudError):
    """Raised when the API returns HTTP 404."""

    def __init__(self, resource: str = "Resource not found"):
        super().__init__(f"Not found: {resource}")
        self.resource = resource


class RateLimitedError(XcodeCloudError):
    """Raised when the API returns HTTP 429."""

    def __init__(self) -> None:
        super().__init__("Rate limited: Too many requests, please wait")


class ServerError(XcodeCloudError):
    """Raised when the API returns an HTTP 5xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Server error ({status_code}): Please try again later")
        self.status_code = status_code


class APIError(XcodeCloudError):
    """Raised for any other non-2xx status.

    ``message`` is the first entry of the JSON:API ``errors`` array
    (``detail``, else ``title``) when the body carries one.
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(f"API error ({status_code}): {message}")
        self.status_code = status_code
        self.message = message
