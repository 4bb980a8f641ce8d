"""Device registration with X.509 client certificate authentication."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.device.registration import AuthenticatedCallback, RegistrationClient
from iot_provisioning.device.security import X509SecurityClient
from iot_provisioning.transport.factory import HTTP, get_transport

if TYPE_CHECKING:
    from iot_provisioning.device.polling import TimerFactory
    from iot_provisioning.models.registration import X509Certificate
    from iot_provisioning.transport.base import ProvisioningTransport

logger = logging.getLogger(__name__)


class X509Registration(RegistrationClient):
    """Registers a device that authenticates with a client certificate.

    Example::

        client = X509Registration.create_from_x509_certificate(
            "global.azure-devices-provisioning.net",
            "my-device",
            "0ne00000000",
            X509Certificate("device.pem", "device.key"),
        )
        state = client.register().result(timeout=120)
    """

    def __init__(
        self,
        provisioning_host: str,
        id_scope: str,
        transport: ProvisioningTransport,
        security_client: X509SecurityClient,
        *,
        polling_interval_s: float | None = None,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        super().__init__(
            provisioning_host,
            id_scope,
            transport,
            polling_interval_s=(
                polling_interval_s
                if polling_interval_s is not None
                else transport.config.default_polling_interval_s
            ),
            timer_factory=timer_factory,
        )
        self._security_client = security_client

    @classmethod
    def create_from_x509_certificate(
        cls,
        provisioning_host: str,
        registration_id: str,
        id_scope: str,
        certificate: X509Certificate,
        *,
        config: ProvisioningConfig | None = None,
        transport_name: str = HTTP,
    ) -> X509Registration:
        """Build a client with the named transport and an ``X509SecurityClient``."""
        config = config or ProvisioningConfig(provisioning_host=provisioning_host, id_scope=id_scope)
        return cls(
            provisioning_host,
            id_scope,
            get_transport(transport_name, config),
            X509SecurityClient(certificate, registration_id),
        )

    def _authenticate(self, callback: AuthenticatedCallback) -> None:
        def _on_certificate(error: BaseException | None, certificate: X509Certificate | None = None) -> None:
            if error is not None:
                logger.debug("Security client returned an error on certificate acquisition")
                callback(error, None)
                return
            self._transport.set_authentication(certificate)
            callback(None, self._security_client.get_registration_id())

        self._security_client.get_certificate(_on_certificate)
