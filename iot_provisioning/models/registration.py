"""Typed models for device registration.

Defines the data structures exchanged between the registration clients,
the polling state machine and the device transports:

- ``RegistrationStatus``: Registration lifecycle status reported by the service
- ``RegistrationRequest``: Who is registering, where, and with what payload
- ``RegistrationState``: The device's assignment as recorded by the service
- ``RegistrationQueryResult``: One response to a register or status-check call

Design notes:
- All models are frozen dataclasses for immutability.
- Wire payloads are camelCase JSON; ``from_dict`` constructors map them
  onto snake_case fields and tolerate missing optional keys.
- Status values arrive as free-form strings; unknown values are kept
  verbatim so the state machine can report them.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from iot_provisioning.core.exceptions import ValidationError

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ModelValidationError(ValueError, ValidationError):
    """Raised when a model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        formatted = f"{model}.{field_name}={value!r}: {message}"
        ValidationError.__init__(self, formatted)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RegistrationStatus(enum.Enum):
    """Lifecycle status of a device registration.

    Values:
        UNASSIGNED: Registration accepted, no hub chosen yet.
        ASSIGNING:  The service is still assigning the device.
        ASSIGNED:   The device was assigned to a hub (success).
        FAILED:     The service rejected the registration.
        DISABLED:   The enrollment or registration is disabled.
    """

    UNASSIGNED = "unassigned"
    ASSIGNING = "assigning"
    ASSIGNED = "assigned"
    FAILED = "failed"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value: str | None) -> RegistrationStatus | None:
        """Return the status matching *value* (case-insensitive), or ``None``."""
        if not value:
            return None
        try:
            return cls(value.lower())
        except ValueError:
            return None

    @property
    def is_terminal(self) -> bool:
        """Whether no further polling can change this status."""
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {RegistrationStatus.ASSIGNED, RegistrationStatus.FAILED, RegistrationStatus.DISABLED}
)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class X509Certificate:
    """Device client certificate used for TLS client authentication.

    Attributes:
        cert_file: Path to the PEM certificate (chain).
        key_file: Path to the PEM private key.
        pass_phrase: Pass phrase of the private key, if encrypted.
    """

    cert_file: str
    key_file: str
    pass_phrase: str | None = None

    def __post_init__(self) -> None:
        _check_non_empty("X509Certificate", "cert_file", self.cert_file)
        _check_non_empty("X509Certificate", "key_file", self.key_file)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegistrationRequest:
    """Parameters of a single registration attempt.

    Attributes:
        registration_id: Identity the device registers under.
        provisioning_host: Device endpoint of the provisioning service.
        id_scope: Scope identifier of the provisioning service instance.
        payload: Optional JSON-serialisable data forwarded to custom
            allocation policies.
    """

    registration_id: str
    provisioning_host: str
    id_scope: str
    payload: Any = None

    def __post_init__(self) -> None:
        _check_non_empty("RegistrationRequest", "registration_id", self.registration_id)
        _check_non_empty("RegistrationRequest", "provisioning_host", self.provisioning_host)
        _check_non_empty("RegistrationRequest", "id_scope", self.id_scope)

    def to_body(self) -> dict[str, Any]:
        """Return the JSON body of the register call."""
        body: dict[str, Any] = {"registrationId": self.registration_id}
        if self.payload is not None:
            body["payload"] = self.payload
        return body


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RegistrationState:
    """The device's registration record as reported to the device.

    Attributes:
        registration_id: Identity the device registered under.
        status: Raw registration status string.
        assigned_hub: Hub the device was assigned to (when assigned).
        device_id: Device identity created on the assigned hub.
        substatus: Why the device was (re)assigned, e.g. ``"initialAssignment"``.
        created_date_time_utc: ISO 8601 creation timestamp.
        last_updated_date_time_utc: ISO 8601 last-update timestamp.
        etag: Record etag.
        error_code: Service error code (on failure).
        error_message: Service error message (on failure).
        payload: Custom allocation payload returned to the device.
    """

    registration_id: str = ""
    status: str = ""
    assigned_hub: str = ""
    device_id: str = ""
    substatus: str = ""
    created_date_time_utc: str = ""
    last_updated_date_time_utc: str = ""
    etag: str = ""
    error_code: int | None = None
    error_message: str = ""
    payload: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistrationState:
        """Build from the ``registrationState`` object of a service response."""
        error_code = data.get("errorCode")
        return cls(
            registration_id=str(data.get("registrationId", "")),
            status=str(data.get("status", "")),
            assigned_hub=str(data.get("assignedHub", "")),
            device_id=str(data.get("deviceId", "")),
            substatus=str(data.get("substatus", "")),
            created_date_time_utc=str(data.get("createdDateTimeUtc", "")),
            last_updated_date_time_utc=str(data.get("lastUpdatedDateTimeUtc", "")),
            etag=str(data.get("etag", "")),
            error_code=int(error_code) if error_code is not None else None,
            error_message=str(data.get("errorMessage", "")),
            payload=data.get("payload"),
        )


@dataclass(frozen=True, slots=True)
class RegistrationQueryResult:
    """One response to a register or status-check call.

    Attributes:
        operation_id: Identifier of the asynchronous service operation; used
            by the next status poll.
        status: Raw registration status string.
        registration_state: Registration record, present once the service
            has one.
        retry_after: Seconds the service asks the client to wait before the
            next poll (``None`` when no hint was sent).
    """

    operation_id: str = ""
    status: str = ""
    registration_state: RegistrationState | None = None
    retry_after: float | None = None

    @property
    def registration_status(self) -> RegistrationStatus | None:
        """Parsed ``status`` or ``None`` if the service sent an unknown value."""
        return RegistrationStatus.parse(self.status)

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        *,
        retry_after: float | None = None,
    ) -> RegistrationQueryResult:
        """Build from a register/operation-status JSON body."""
        state = data.get("registrationState")
        return cls(
            operation_id=str(data.get("operationId", "")),
            status=str(data.get("status", "")),
            registration_state=RegistrationState.from_dict(state) if isinstance(state, dict) else None,
            retry_after=retry_after,
        )


# ---------------------------------------------------------------------------
# Validation helpers (module-private)
# ---------------------------------------------------------------------------


def _check_non_empty(model: str, field_name: str, value: str) -> None:
    """Raise `ModelValidationError` if *value* is empty or blank."""
    if not value or not value.strip():
        raise ModelValidationError(model, field_name, value, "must not be empty")
