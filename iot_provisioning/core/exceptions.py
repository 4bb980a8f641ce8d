"""Unified SDK exception taxonomy.

Provides a shared base exception hierarchy for the device registration
clients, the transports and the service client. Every domain exception
inherits from ``ProvisioningError`` and carries structured context fields
that enable consistent retry decisions and operator diagnostics.

Taxonomy categories
-------------------
- ``ValidationError``   — argument/contract violations, never retryable.
- ``TransientError``    — temporary failures (network, throttle), retryable.
- ``PermanentError``    — unrecoverable failures (registration rejected), not retryable.
- ``ContractError``     — the service answered in a shape we do not understand.

Every exception exposes ``to_error_dict()`` for a stable structured
error payload suitable for logging.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from iot_provisioning.models.registration import RegistrationQueryResult


class ProvisioningError(Exception):
    """Base exception for all SDK errors.

    Attributes:
        message: Human-readable error description.
        stage: SDK stage where the error occurred
            (e.g. ``"register"``, ``"transport"``, ``"service"``).
        code: Machine-readable error code (e.g. ``"REGISTRATION_FAILED"``).
        retryable: Whether the caller may retry the operation.
        correlation_id: Request correlation identifier (registration id,
            operation id or service request id).
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(ProvisioningError):
    """Argument or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(ProvisioningError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(ProvisioningError):
    """Unrecoverable failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(ProvisioningError):
    """The service response does not match the expected contract. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Argument errors
# ---------------------------------------------------------------------------


class ArgumentError(ValueError, ValidationError):
    """A caller-supplied argument is missing or invalid."""

    default_stage = "arguments"
    default_code = "INVALID_ARGUMENT"

    def __init__(self, message: str = "", **kwargs: object) -> None:
        ValidationError.__init__(self, message, **kwargs)


class RegistrationInProgressError(ValidationError):
    """``register`` was called while a registration attempt is still active."""

    default_stage = "register"
    default_code = "REGISTRATION_IN_PROGRESS"


# ---------------------------------------------------------------------------
# Transport / service errors
# ---------------------------------------------------------------------------


class TransportError(TransientError):
    """Connection failure, timeout, or an unreadable response body."""

    default_stage = "transport"
    default_code = "TRANSPORT_FAILED"


class ServiceError(ProvisioningError):
    """The provisioning service answered with an HTTP error status.

    Attributes:
        status_code: HTTP status code returned by the service.
        response_body: Raw response body (truncated for logging by callers).
    """

    default_stage = "service"
    default_code = "SERVICE_ERROR"

    def __init__(
        self,
        status_code: int,
        message: str = "",
        *,
        response_body: str = "",
        retryable: bool | None = None,
        correlation_id: str = "",
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        if retryable is None:
            retryable = status_code == 429 or status_code >= 500
        super().__init__(
            message or f"HTTP {status_code}",
            retryable=retryable,
            correlation_id=correlation_id,
        )

    def __str__(self) -> str:
        return f"Service error {self.status_code}: {self.message}"


class UnauthorizedError(ServiceError):
    """Credentials were rejected (401)."""

    default_code = "UNAUTHORIZED"


class NotFoundError(ServiceError):
    """The addressed record does not exist (404)."""

    default_code = "NOT_FOUND"


class PreconditionFailedError(ServiceError):
    """The supplied etag no longer matches the stored record (412)."""

    default_code = "PRECONDITION_FAILED"


class ThrottlingError(ServiceError):
    """The service is throttling requests (429)."""

    default_code = "THROTTLED"


class ServiceUnavailableError(ServiceError):
    """The service is temporarily unavailable (503)."""

    default_code = "SERVICE_UNAVAILABLE"


# ---------------------------------------------------------------------------
# Registration outcomes
# ---------------------------------------------------------------------------


class RegistrationFailedError(PermanentError):
    """The service reported a terminal failure status for the registration.

    Attributes:
        registration_result: The final result returned by the service.
    """

    default_stage = "register"
    default_code = "REGISTRATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        registration_result: RegistrationQueryResult | None = None,
        correlation_id: str = "",
    ) -> None:
        self.registration_result = registration_result
        super().__init__(message, correlation_id=correlation_id)


class InvalidStatusError(ContractError):
    """The service reported a registration status this SDK does not know."""

    default_stage = "register"
    default_code = "INVALID_REGISTRATION_STATUS"


class OperationCancelledError(PermanentError):
    """The caller cancelled the registration before it completed."""

    default_stage = "register"
    default_code = "OPERATION_CANCELLED"
