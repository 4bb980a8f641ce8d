"""Shared SDK constants — single source of truth.

Centralises API versions, endpoint defaults, header names and the
registration status vocabulary used by the device transports, the
polling state machine and the service client.

References:
    Device Provisioning Service REST API:
        https://learn.microsoft.com/rest/api/iot-dps/
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Endpoints and API versions
# ---------------------------------------------------------------------------

DEFAULT_PROVISIONING_HOST: str = "global.azure-devices-provisioning.net"
"""Global device endpoint of the provisioning service."""

DEVICE_API_VERSION: str = "2019-03-31"
"""API version sent by the device registration transports."""

SERVICE_API_VERSION: str = "2018-04-01"
"""API version sent by the enrollment management client."""

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_POLLING_INTERVAL_S: float = 2.0
"""Delay between status polls when the service does not send a retry hint."""

DEFAULT_REQUEST_TIMEOUT_S: float = 30.0
"""Per-request network timeout."""

DEFAULT_SAS_TTL_S: int = 3600
"""Lifetime of generated shared access signatures."""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

JSON_CONTENT_TYPE: str = "application/json; charset=utf-8"
HEADER_RETRY_AFTER: str = "retry-after"
HEADER_IF_MATCH: str = "If-Match"
HEADER_CONTINUATION: str = "x-ms-continuation"
HEADER_MAX_ITEM_COUNT: str = "x-ms-max-item-count"
HEADER_ITEM_TYPE: str = "x-ms-item-type"

# ---------------------------------------------------------------------------
# Package identity (user agent)
# ---------------------------------------------------------------------------

DEVICE_PACKAGE_NAME: str = "iot-provisioning-device"
SERVICE_PACKAGE_NAME: str = "iot-provisioning-service"

# ---------------------------------------------------------------------------
# Symmetric key SAS
# ---------------------------------------------------------------------------

DEVICE_SAS_KEY_NAME: str = "registration"
"""``skn`` value used by devices authenticating with a symmetric key."""
