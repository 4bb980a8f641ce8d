"""ProvisioningTransport abstract base class.

Defines the contract that every device registration transport must
implement. The polling state machine interacts exclusively with this
interface — it never knows which wire protocol is behind it.

Lifecycle of one registration attempt:
    1. ``set_authentication(cert)`` or ``set_shared_access_signature(sas)``.
    2. ``register_request(request, callback)``         — initial register call.
    3. ``query_operation_status(request, op_id, cb)``  — zero or more status polls.
    4. ``disconnect(callback)``                         — tear down any session.

``cancel(callback)`` may be called at any point to abandon in-flight work.

All operations report completion through callbacks and must not block
the caller until the network round trip completes. Result callbacks are
invoked as ``callback(error, result)``; ``cancel``/``disconnect``
callbacks as ``callback(error)``.
"""

from __future__ import annotations

import abc
from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from iot_provisioning.core.config import ProvisioningConfig
    from iot_provisioning.models.registration import (
        RegistrationQueryResult,
        RegistrationRequest,
        X509Certificate,
    )

ResultCallback = Callable[[BaseException | None, "RegistrationQueryResult | None"], None]
DoneCallback = Callable[[BaseException | None], None]


class ProvisioningTransport(abc.ABC):
    """Abstract base class for device registration transports.

    The constructor receives a ``ProvisioningConfig`` which carries the
    API version, timeouts and default polling interval. Credentials are
    set per attempt by the registration clients.

    Example usage::

        transport = get_transport("http", config)
        transport.set_shared_access_signature(sas)
        transport.register_request(request, on_registered)
    """

    #: Registry name of the transport (e.g. ``"http"``).
    name: str = ""

    def __init__(self, config: ProvisioningConfig) -> None:
        self._config = config
        self._certificate: X509Certificate | None = None
        self._shared_access_signature: str | None = None

    @property
    def config(self) -> ProvisioningConfig:
        """Return the transport configuration (read-only)."""
        return self._config

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_authentication(self, certificate: X509Certificate) -> None:
        """Authenticate subsequent requests with an X.509 client certificate."""
        self._certificate = certificate

    def set_shared_access_signature(self, shared_access_signature: str) -> None:
        """Authenticate subsequent requests with a SAS token."""
        self._shared_access_signature = shared_access_signature

    # ------------------------------------------------------------------
    # Abstract methods
    # ------------------------------------------------------------------

    @abc.abstractmethod
    def register_request(self, request: RegistrationRequest, callback: ResultCallback) -> None:
        """Send the initial registration request.

        Args:
            request: Who is registering and where.
            callback: Receives ``(None, RegistrationQueryResult)`` on any
                2xx answer, or ``(error, None)`` on a transport or
                service error.
        """

    @abc.abstractmethod
    def query_operation_status(
        self,
        request: RegistrationRequest,
        operation_id: str,
        callback: ResultCallback,
    ) -> None:
        """Ask the service for the status of *operation_id*.

        Args:
            request: The request the operation belongs to.
            operation_id: Operation id from the most recent service response.
            callback: Same contract as ``register_request``.
        """

    @abc.abstractmethod
    def cancel(self, callback: DoneCallback) -> None:
        """Abandon any in-flight request; late responses must not be delivered as success."""

    @abc.abstractmethod
    def disconnect(self, callback: DoneCallback) -> None:
        """Release connections/sessions held by the transport."""
