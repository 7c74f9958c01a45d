"""MAuth request signing for the ICS REST service.

Every call carries an ``Authorization`` header of the form::

    MAuth realm=http://marte3.dit.upm.es,mauth_signature_method=HMAC_SHA256,
    mauth_serviceid=<id>,mauth_cnonce=<nonce>,mauth_timestamp=<ms>,mauth_signature=<sig>

(on one line). The server checks timestamp freshness and nonce uniqueness;
the client keeps no replay state of its own.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets
import time
from typing import Optional

from .exceptions import AuthError
from .types import AuthContext

AUTH_HEADER = "Authorization"
REALM = "http://marte3.dit.upm.es"
SIGNATURE_METHOD = "HMAC_SHA256"
CNONCE_BYTES = 8


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_base64(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"), validate=True)


def calculate_signature(to_sign: str, key: str) -> str:
    """Return ``base64(hex(HMAC-SHA256(to_sign, key)))``.

    The base64 step encodes the hex digest *text*, not the raw digest
    bytes. The server verifies this exact form.
    """
    digest = hmac.new(key.encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha256).hexdigest()
    return encode_base64(digest.encode("ascii"))


def new_cnonce() -> str:
    return secrets.token_hex(CNONCE_BYTES)


def current_timestamp() -> str:
    """Milliseconds since the epoch, as a decimal string."""
    return str(time.time_ns() // 1_000_000)


def create_auth_context(
    service: str,
    key: str,
    timestamp: Optional[str] = None,
    cnonce: Optional[str] = None,
) -> AuthContext:
    """Build the signing material for one call.

    ``timestamp`` and ``cnonce`` are generated when omitted; passing them
    makes the signature reproducible.
    """
    if not service or not key:
        raise AuthError("NOT_INITIALIZED", "ICS REST API is not initialized: service id and key are required", 401)

    ctx = AuthContext(
        service=service,
        key=key,
        timestamp=timestamp if timestamp is not None else current_timestamp(),
        cnonce=cnonce if cnonce is not None else new_cnonce(),
    )
    ctx.signature = calculate_signature(f"{ctx.timestamp},{ctx.cnonce}", key)
    return ctx


def format_auth_header(ctx: AuthContext) -> str:
    # Field order is fixed; the server parses positionally.
    return (
        f"MAuth realm={REALM},mauth_signature_method={SIGNATURE_METHOD}"
        f",mauth_serviceid={ctx.service}"
        f",mauth_cnonce={ctx.cnonce}"
        f",mauth_timestamp={ctx.timestamp}"
        f",mauth_signature={ctx.signature}"
    )


class AuthSigner:
    """Produces a fresh MAuth header per call for one service id/key pair."""

    def __init__(self, service: str, key: str) -> None:
        self._service = service
        self._key = key

    @property
    def service(self) -> str:
        return self._service

    def sign(self, timestamp: Optional[str] = None, cnonce: Optional[str] = None) -> str:
        """Return the ``Authorization`` header value for one outgoing call.

        Raises:
            AuthError: If the service id or key is empty.
        """
        return format_auth_header(create_auth_context(self._service, self._key, timestamp, cnonce))
