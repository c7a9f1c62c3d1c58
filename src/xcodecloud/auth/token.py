"""ES256 token signing for App Store Connect API authentication.

Tokens are JWTs signed with PyJWT:

* header ``{"alg": "ES256", "kid": <key id>, "typ": "JWT"}``
* claims ``{"iss": <issuer id>, "iat": <now>, "exp": <now + validity>,
  "aud": "appstoreconnect-v1"}``
* an ECDSA P-256 / SHA-256 signature over ``header.claims``, encoded as
  the raw 64-byte ``r || s`` pair rather than DER.

Apple rejects tokens that live longer than 20 minutes, so the validity is
clamped to :data:`MAX_TOKEN_VALIDITY` whatever the caller asks for.

:class:`TokenGenerator` keeps no state between calls; caching lives in
:class:`~xcodecloud.auth.provider.TokenCache`.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from typing import Any, Optional

import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import load_der_private_key

from xcodecloud.exceptions import InvalidPrivateKeyError
from xcodecloud.models import Credentials

logger = logging.getLogger(__name__)

MAX_TOKEN_VALIDITY = 1200
"""Hard cap on token lifetime, in seconds (20 minutes)."""

AUDIENCE = "appstoreconnect-v1"
ALGORITHM = "ES256"

_PEM_MARKER = re.compile(r"-----(BEGIN|END)[A-Z ]*-----")


def parse_private_key(pem: str) -> ec.EllipticCurvePrivateKey:
    """Parse PEM-wrapped DER key material into a P-256 private key.

    The envelope markers and all whitespace are stripped, the remainder is
    base64-decoded and loaded as a DER private key (PKCS#8 as shipped in
    ``.p8`` files, or SEC1).

    Raises:
        InvalidPrivateKeyError: If the body is not base64, is not a DER
            private key, or is not a P-256 EC key. The parser's exception
            is chained as ``__cause__``.
    """
    body = "".join(_PEM_MARKER.sub("", pem).split())
    try:
        der = base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidPrivateKeyError("Could not decode base64 key data") from exc
    if not der:
        raise InvalidPrivateKeyError("Key data is empty")

    try:
        key = load_der_private_key(der, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise InvalidPrivateKeyError(f"Could not parse private key: {exc}") from exc

    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise InvalidPrivateKeyError("Expected a P-256 (prime256v1) EC private key")
    return key


def decode_token(token: str) -> tuple[dict[str, Any], dict[str, Any]]:
    """Decode a token's header and claims without verifying the signature.

    Useful for diagnostics (``auth check --verbose``) and tests.

    Raises:
        jwt.DecodeError: If *token* is not a well-formed JWT.
    """
    header = jwt.get_unverified_header(token)
    claims = jwt.decode(token, options={"verify_signature": False})
    return header, claims


class TokenGenerator:
    """Sign short-lived bearer tokens for one set of credentials.

    Args:
        credentials: Key id, issuer id, and PEM private key.
        validity: Requested lifetime in seconds; clamped to
            :data:`MAX_TOKEN_VALIDITY`.

    Example::

        token = TokenGenerator(creds).generate()
    """

    def __init__(self, credentials: Credentials, validity: int = MAX_TOKEN_VALIDITY) -> None:
        if validity <= 0:
            raise ValueError("validity must be positive")
        self._credentials = credentials
        self._validity = min(int(validity), MAX_TOKEN_VALIDITY)

    @property
    def validity(self) -> int:
        """The effective (clamped) token lifetime in seconds."""
        return self._validity

    @property
    def key_id(self) -> str:
        return self._credentials.key_id

    def generate(self, now: Optional[float] = None) -> str:
        """Build and sign a token.

        Args:
            now: Issue time as a Unix timestamp. Defaults to the current time.

        Raises:
            InvalidPrivateKeyError: If the credential's key cannot be parsed.
        """
        key = parse_private_key(self._credentials.private_key)
        issued_at = int(time.time() if now is None else now)
        claims = {
            "iss": self._credentials.issuer_id,
            "iat": issued_at,
            "exp": issued_at + self._validity,
            "aud": AUDIENCE,
        }

        token = jwt.encode(
            claims,
            key,
            algorithm=ALGORITHM,
            headers={"kid": self._credentials.key_id, "typ": "JWT"},
        )
        logger.debug(
            "Signed token for key %s (expires in %ds)", self._credentials.key_id, self._validity
        )
        return token
