"""Device registration with symmetric key (SAS) authentication."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.device.registration import AuthenticatedCallback, RegistrationClient
from iot_provisioning.device.security import SymmetricKeySecurityClient
from iot_provisioning.transport.factory import HTTP, get_transport

if TYPE_CHECKING:
    from iot_provisioning.device.polling import TimerFactory
    from iot_provisioning.transport.base import ProvisioningTransport

logger = logging.getLogger(__name__)


class SymmetricKeyRegistration(RegistrationClient):
    """Registers a device that authenticates with a SAS signed by its key.

    A fresh signature is created for every attempt.
    """

    def __init__(
        self,
        provisioning_host: str,
        id_scope: str,
        transport: ProvisioningTransport,
        security_client: SymmetricKeySecurityClient,
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
    def create_from_symmetric_key(
        cls,
        provisioning_host: str,
        registration_id: str,
        id_scope: str,
        symmetric_key: str,
        *,
        config: ProvisioningConfig | None = None,
        transport_name: str = HTTP,
    ) -> SymmetricKeyRegistration:
        """Build a client with the named transport and a ``SymmetricKeySecurityClient``."""
        config = config or ProvisioningConfig(provisioning_host=provisioning_host, id_scope=id_scope)
        return cls(
            provisioning_host,
            id_scope,
            get_transport(transport_name, config),
            SymmetricKeySecurityClient(registration_id, symmetric_key, ttl_s=config.sas_ttl_s),
        )

    def _authenticate(self, callback: AuthenticatedCallback) -> None:
        def _on_signature(error: BaseException | None, signature: str | None = None) -> None:
            if error is not None:
                logger.debug("Security client failed to create a shared access signature")
                callback(error, None)
                return
            self._transport.set_shared_access_signature(signature)
            callback(None, self._security_client.get_registration_id())

        self._security_client.create_shared_access_signature(self._id_scope, _on_signature)
