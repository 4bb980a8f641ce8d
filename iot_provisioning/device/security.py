"""Device security clients.

A security client owns the device's credential and hands the registration
client what it needs to authenticate one attempt:

- ``X509SecurityClient``: the client certificate and the registration id
  the certificate was enrolled under.
- ``SymmetricKeySecurityClient``: a SAS signed with the device key over
  ``<idScope>/registrations/<registrationId>``.

Both report through ``callback(error, value)`` or return a ``Future`` when
no callback is given.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future

from iot_provisioning.core.constants import DEFAULT_SAS_TTL_S, DEVICE_SAS_KEY_NAME
from iot_provisioning.core.exceptions import ArgumentError
from iot_provisioning.models.registration import X509Certificate
from iot_provisioning.utils.callbacks import Callback, callback_to_future
from iot_provisioning.utils.sas import decode_symmetric_key, generate_sas_token

logger = logging.getLogger(__name__)


class X509SecurityClient:
    """Supplies an X.509 client certificate for registration.

    Args:
        certificate: The device certificate and private key.
        registration_id: Registration id of the enrollment (the certificate
            common name for individual enrollments).
    """

    def __init__(self, certificate: X509Certificate, registration_id: str) -> None:
        if not isinstance(certificate, X509Certificate):
            msg = "certificate must be an X509Certificate"
            raise ArgumentError(msg)
        if not registration_id:
            msg = "registration_id must not be empty"
            raise ArgumentError(msg)
        self._certificate = certificate
        self._registration_id = registration_id

    def get_certificate(self, callback: Callback | None = None) -> Future[X509Certificate] | None:
        """Return the device certificate through *callback* or a ``Future``."""
        return callback_to_future(lambda cb: cb(None, self._certificate), callback)

    def get_registration_id(self) -> str:
        return self._registration_id


class SymmetricKeySecurityClient:
    """Signs registration requests with a device symmetric key.

    Args:
        registration_id: Registration id of the enrollment.
        symmetric_key: Base64 device key (use ``derive_device_key`` for
            devices enrolled through a group).
        ttl_s: Lifetime of each generated signature.

    Raises:
        ArgumentError: If an argument is empty or the key is not base64.
    """

    def __init__(
        self,
        registration_id: str,
        symmetric_key: str,
        *,
        ttl_s: int = DEFAULT_SAS_TTL_S,
    ) -> None:
        if not registration_id:
            msg = "registration_id must not be empty"
            raise ArgumentError(msg)
        if not symmetric_key:
            msg = "symmetric_key must not be empty"
            raise ArgumentError(msg)
        decode_symmetric_key(symmetric_key)
        self._registration_id = registration_id
        self._symmetric_key = symmetric_key
        self._ttl_s = ttl_s

    def get_registration_id(self) -> str:
        return self._registration_id

    def create_shared_access_signature(
        self,
        id_scope: str,
        callback: Callback | None = None,
    ) -> Future[str] | None:
        """Sign ``<id_scope>/registrations/<registration_id>``.

        The signature is delivered through *callback* or a ``Future``;
        signing errors are reported the same way.
        """

        def _create(cb: Callback) -> None:
            try:
                if not id_scope:
                    msg = "id_scope must not be empty"
                    raise ArgumentError(msg)
                token = generate_sas_token(
                    f"{id_scope}/registrations/{self._registration_id}",
                    self._symmetric_key,
                    DEVICE_SAS_KEY_NAME,
                    ttl_s=self._ttl_s,
                )
            except ArgumentError as exc:
                cb(exc, None)
                return
            logger.debug("Device SAS created | registration_id=%s", self._registration_id)
            cb(None, token)

        return callback_to_future(_create, callback)
