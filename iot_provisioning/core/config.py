"""SDK configuration loaded from environment variables.

All configuration values have sensible defaults matching the public
provisioning service. Environment variables are the source of truth
for deployed devices and operator tooling.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any numeric
    value is out of its valid range, so bad configuration is caught
    before the first network call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from iot_provisioning.core.constants import (
    DEFAULT_POLLING_INTERVAL_S,
    DEFAULT_PROVISIONING_HOST,
    DEFAULT_REQUEST_TIMEOUT_S,
    DEFAULT_SAS_TTL_S,
    DEVICE_API_VERSION,
    SERVICE_API_VERSION,
)
from iot_provisioning.core.exceptions import ProvisioningError


class ConfigValidationError(ProvisioningError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ProvisioningConfig:
    """Immutable SDK configuration.

    Loaded once and handed to the transport factory and the clients.

    Attributes:
        provisioning_host: Device endpoint of the provisioning service.
        id_scope: Scope identifier of the provisioning service instance.
        device_api_version: API version used by device registration requests.
        service_api_version: API version used by enrollment management requests.
        default_polling_interval_s: Delay between status polls when the
            service does not send a ``Retry-After`` hint.
        request_timeout_s: Per-request network timeout in seconds.
        sas_ttl_s: Lifetime of generated shared access signatures in seconds.
    """

    provisioning_host: str = DEFAULT_PROVISIONING_HOST
    id_scope: str = ""
    device_api_version: str = DEVICE_API_VERSION
    service_api_version: str = SERVICE_API_VERSION
    default_polling_interval_s: float = DEFAULT_POLLING_INTERVAL_S
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    sas_ttl_s: int = DEFAULT_SAS_TTL_S

    @classmethod
    def from_env(cls) -> ProvisioningConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a numeric value is out of range
                or a required string value is empty.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``PROVISIONING_REQUEST_TIMEOUT_S=abc``).
        """
        config = cls(
            provisioning_host=os.getenv("PROVISIONING_HOST", DEFAULT_PROVISIONING_HOST),
            id_scope=os.getenv("PROVISIONING_IDSCOPE", ""),
            device_api_version=os.getenv("PROVISIONING_DEVICE_API_VERSION", DEVICE_API_VERSION),
            service_api_version=os.getenv("PROVISIONING_SERVICE_API_VERSION", SERVICE_API_VERSION),
            default_polling_interval_s=float(
                os.getenv("PROVISIONING_POLLING_INTERVAL_S", str(DEFAULT_POLLING_INTERVAL_S))
            ),
            request_timeout_s=float(
                os.getenv("PROVISIONING_REQUEST_TIMEOUT_S", str(DEFAULT_REQUEST_TIMEOUT_S))
            ),
            sas_ttl_s=int(os.getenv("PROVISIONING_SAS_TTL_S", str(DEFAULT_SAS_TTL_S))),
        )
        _validate(config)
        return config


def _validate(config: ProvisioningConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.provisioning_host:
        raise ConfigValidationError(
            "PROVISIONING_HOST",
            config.provisioning_host,
            "must not be empty",
        )

    if not config.device_api_version:
        raise ConfigValidationError(
            "PROVISIONING_DEVICE_API_VERSION",
            config.device_api_version,
            "must not be empty",
        )

    if not config.service_api_version:
        raise ConfigValidationError(
            "PROVISIONING_SERVICE_API_VERSION",
            config.service_api_version,
            "must not be empty",
        )

    if config.default_polling_interval_s <= 0:
        raise ConfigValidationError(
            "PROVISIONING_POLLING_INTERVAL_S",
            config.default_polling_interval_s,
            "must be > 0 (seconds)",
        )

    if config.request_timeout_s <= 0:
        raise ConfigValidationError(
            "PROVISIONING_REQUEST_TIMEOUT_S",
            config.request_timeout_s,
            "must be > 0 (seconds)",
        )

    if config.sas_ttl_s <= 0:
        raise ConfigValidationError(
            "PROVISIONING_SAS_TTL_S",
            config.sas_ttl_s,
            "must be > 0 (seconds)",
        )
