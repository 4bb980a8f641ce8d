"""Device registration transports.

Implements the transport seam used by the polling state machine:
- ProvisioningTransport: Abstract base class defining the interface
- HttpProvisioningTransport: Device REST API over HTTPS (httpx)

The transport is selected by name through the factory, so additional
protocols can be plugged in without touching the registration clients.
"""

from iot_provisioning.transport.base import ProvisioningTransport
from iot_provisioning.transport.factory import (
    HTTP,
    get_transport,
    list_transports,
    register_transport,
)

__all__ = [
    "HTTP",
    "ProvisioningTransport",
    "get_transport",
    "list_transports",
    "register_transport",
]
