"""Shared access signature (SAS) tokens.

A SAS token is an HMAC-SHA256 signature over the URL-encoded resource URI
and an expiry timestamp, keyed with a base64 symmetric key::

    SharedAccessSignature sr=<uri>&sig=<signature>&se=<expiry>[&skn=<key name>]

Devices sign ``<idScope>/registrations/<registrationId>`` with their own
(or a derived) key; operators sign the service host name with a shared
access policy key.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import threading
import time
import urllib.parse

from iot_provisioning.core.constants import DEFAULT_SAS_TTL_S
from iot_provisioning.core.exceptions import ArgumentError

logger = logging.getLogger(__name__)

# Renew cached tokens this long before they expire.
_RENEWAL_MARGIN_S = 300


def decode_symmetric_key(key: str) -> bytes:
    """Return the raw bytes of a base64 symmetric key; raise ``ArgumentError`` if it is not base64."""
    try:
        return base64.b64decode(key, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ArgumentError("Symmetric key is not valid base64") from exc


def _sign(key: str, message: str) -> str:
    digest = hmac.new(decode_symmetric_key(key), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def generate_sas_token(
    resource_uri: str,
    key: str,
    key_name: str | None = None,
    *,
    ttl_s: int = DEFAULT_SAS_TTL_S,
    now: float | None = None,
) -> str:
    """Return a SAS token for *resource_uri* valid for *ttl_s* seconds.

    Args:
        resource_uri: Resource the token grants access to (not yet encoded).
        key: Base64 symmetric key.
        key_name: Shared access policy name (``skn``); omitted when ``None``.
        ttl_s: Lifetime in seconds.
        now: Current epoch time override (tests).

    Raises:
        ArgumentError: If *resource_uri* or *key* is empty, or *key* is not base64.
    """
    if not resource_uri:
        raise ArgumentError("resource_uri must not be empty")
    if not key:
        raise ArgumentError("key must not be empty")

    expiry = int((time.time() if now is None else now) + ttl_s)
    encoded_uri = urllib.parse.quote(resource_uri, safe="")
    signature = _sign(key, f"{encoded_uri}\n{expiry}")

    token = (
        f"SharedAccessSignature sr={encoded_uri}"
        f"&sig={urllib.parse.quote(signature, safe='')}"
        f"&se={expiry}"
    )
    if key_name:
        token += f"&skn={key_name}"
    return token


def derive_device_key(group_key: str, registration_id: str) -> str:
    """Derive a device's symmetric key from its enrollment group key.

    Devices enrolled through a symmetric-key enrollment group authenticate
    with ``HMAC-SHA256(group_key, registration_id)``.
    """
    if not registration_id:
        raise ArgumentError("registration_id must not be empty")
    return _sign(group_key, registration_id)


class SharedAccessKeyCredential:
    """Self-renewing SAS for a shared access policy.

    Tokens are cached and regenerated shortly before expiry so callers
    never send an expired signature.
    """

    def __init__(
        self,
        host: str,
        key_name: str,
        key: str,
        *,
        ttl_s: int = DEFAULT_SAS_TTL_S,
    ) -> None:
        if not host or not key_name or not key:
            raise ArgumentError("host, key_name and key are required")
        decode_symmetric_key(key)
        self._host = host
        self._key_name = key_name
        self._key = key
        self._ttl_s = ttl_s
        self._token = ""
        self._expires_at = 0.0
        self._lock = threading.Lock()

    @property
    def host(self) -> str:
        return self._host

    def get_token(self) -> str:
        """Return a valid SAS, generating a new one when the cached one is near expiry."""
        with self._lock:
            now = time.time()
            if self._token and now < self._expires_at - _RENEWAL_MARGIN_S:
                return self._token
            self._token = generate_sas_token(
                self._host, self._key, self._key_name, ttl_s=self._ttl_s, now=now
            )
            self._expires_at = now + self._ttl_s
            logger.debug("SAS token renewed | host=%s | ttl=%ds", self._host, self._ttl_s)
            return self._token


class StaticSasCredential:
    """A pre-generated SAS supplied by the caller; never renewed."""

    def __init__(self, host: str, shared_access_signature: str) -> None:
        if not host or not shared_access_signature:
            raise ArgumentError("host and shared_access_signature are required")
        self._host = host
        self._signature = shared_access_signature

    @property
    def host(self) -> str:
        return self._host

    def get_token(self) -> str:
        return self._signature
