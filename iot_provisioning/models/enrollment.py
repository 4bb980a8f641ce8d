"""Pydantic models for enrollment management records.

Defines the JSON documents exchanged with the enrollment management REST
API: individual enrollments, enrollment groups, device registration
states, bulk operations and query specifications.

The wire format is camelCase; every model accepts either the wire name or
the Python field name on input and serialises back to the wire name via
``to_wire()``. Unknown fields sent by newer service versions are kept, so
a get → modify → update round trip does not drop data.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ServiceModel(BaseModel):
    """Base for all service records: camelCase aliases, extra fields preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the JSON-ready dict sent to the service."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProvisioningStatus(enum.Enum):
    """Whether the enrollment may be used for registration."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class AttestationType(enum.Enum):
    """How devices covered by an enrollment prove their identity."""

    NONE = "none"
    TPM = "tpm"
    X509 = "x509"
    SYMMETRIC_KEY = "symmetricKey"


class AllocationPolicy(enum.Enum):
    """How the service picks a hub for a registering device."""

    HASHED = "hashed"
    GEO_LATENCY = "geoLatency"
    STATIC = "static"
    CUSTOM = "custom"


class BulkEnrollmentMode(enum.Enum):
    """Operation applied to every enrollment of a bulk request."""

    CREATE = "create"
    UPDATE = "update"
    UPDATE_IF_MATCH_ETAG = "updateIfMatchETag"
    DELETE = "delete"


# ---------------------------------------------------------------------------
# Attestation
# ---------------------------------------------------------------------------


class TpmAttestation(_ServiceModel):
    """TPM endorsement and storage root keys."""

    endorsement_key: str
    storage_root_key: str | None = None


class SymmetricKeyAttestation(_ServiceModel):
    """Primary/secondary symmetric keys (base64). Generated by the service when omitted."""

    primary_key: str | None = None
    secondary_key: str | None = None


class X509CertificateWithInfo(_ServiceModel):
    """A PEM/base64 certificate; ``info`` is filled in by the service."""

    certificate: str | None = None
    info: dict[str, Any] | None = None


class X509Certificates(_ServiceModel):
    primary: X509CertificateWithInfo | None = None
    secondary: X509CertificateWithInfo | None = None


class X509CAReferences(_ServiceModel):
    primary: str | None = None
    secondary: str | None = None


class X509Attestation(_ServiceModel):
    """Client certificates, signing certificates or CA references."""

    client_certificates: X509Certificates | None = None
    signing_certificates: X509Certificates | None = None
    ca_references: X509CAReferences | None = None


class AttestationMechanism(_ServiceModel):
    """Attestation of an enrollment; exactly the member matching ``type`` is set."""

    type: AttestationType
    tpm: TpmAttestation | None = None
    x509: X509Attestation | None = None
    symmetric_key: SymmetricKeyAttestation | None = None

    @classmethod
    def from_symmetric_key(
        cls,
        primary_key: str | None = None,
        secondary_key: str | None = None,
    ) -> AttestationMechanism:
        return cls(
            type=AttestationType.SYMMETRIC_KEY,
            symmetric_key=SymmetricKeyAttestation(
                primary_key=primary_key,
                secondary_key=secondary_key,
            ),
        )

    @classmethod
    def from_x509_client_certificate(
        cls,
        primary: str,
        secondary: str | None = None,
    ) -> AttestationMechanism:
        return cls(
            type=AttestationType.X509,
            x509=X509Attestation(
                client_certificates=X509Certificates(
                    primary=X509CertificateWithInfo(certificate=primary),
                    secondary=X509CertificateWithInfo(certificate=secondary) if secondary else None,
                )
            ),
        )

    @classmethod
    def from_x509_signing_certificate(
        cls,
        primary: str,
        secondary: str | None = None,
    ) -> AttestationMechanism:
        return cls(
            type=AttestationType.X509,
            x509=X509Attestation(
                signing_certificates=X509Certificates(
                    primary=X509CertificateWithInfo(certificate=primary),
                    secondary=X509CertificateWithInfo(certificate=secondary) if secondary else None,
                )
            ),
        )

    @classmethod
    def from_tpm(cls, endorsement_key: str, storage_root_key: str | None = None) -> AttestationMechanism:
        return cls(
            type=AttestationType.TPM,
            tpm=TpmAttestation(endorsement_key=endorsement_key, storage_root_key=storage_root_key),
        )


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class ReprovisionPolicy(_ServiceModel):
    update_hub_assignment: bool = True
    migrate_device_data: bool = True


class CustomAllocationDefinition(_ServiceModel):
    webhook_url: str
    api_version: str


class DeviceCapabilities(_ServiceModel):
    iot_edge: bool = False


class DeviceRegistrationState(_ServiceModel):
    """Registration record kept by the service for one device.

    Attributes:
        registration_id: Identity the device registered under.
        status: ``unassigned``, ``assigning``, ``assigned``, ``failed`` or ``disabled``.
        assigned_hub: Hub the device was assigned to.
        device_id: Device identity on the assigned hub.
        etag: Record etag; used as ``If-Match`` on delete.
    """

    registration_id: str
    created_date_time_utc: str | None = None
    assigned_hub: str | None = None
    device_id: str | None = None
    status: str | None = None
    substatus: str | None = None
    error_code: int | None = None
    error_message: str | None = None
    last_updated_date_time_utc: str | None = None
    etag: str | None = None


class IndividualEnrollment(_ServiceModel):
    """Enrollment record for a single device.

    Attributes:
        registration_id: Identity the device registers under; also the
            record key in the REST path.
        attestation: How the device proves its identity.
        device_id: Desired device identity on the hub.
        etag: Record etag; sent as ``If-Match`` on update and delete.
    """

    registration_id: str
    attestation: AttestationMechanism
    device_id: str | None = None
    registration_state: DeviceRegistrationState | None = None
    iot_hub_host_name: str | None = None
    initial_twin: dict[str, Any] | None = None
    etag: str | None = None
    provisioning_status: ProvisioningStatus | None = None
    reprovision_policy: ReprovisionPolicy | None = None
    created_date_time_utc: str | None = None
    last_updated_date_time_utc: str | None = None
    allocation_policy: AllocationPolicy | None = None
    iot_hubs: list[str] | None = None
    custom_allocation_definition: CustomAllocationDefinition | None = None
    capabilities: DeviceCapabilities | None = None


class EnrollmentGroup(_ServiceModel):
    """Enrollment record shared by every device that chains to the same attestation.

    Attributes:
        enrollment_group_id: Record key in the REST path.
        attestation: Signing certificate, CA reference or group symmetric key.
        etag: Record etag; sent as ``If-Match`` on update and delete.
    """

    enrollment_group_id: str
    attestation: AttestationMechanism
    iot_hub_host_name: str | None = None
    initial_twin: dict[str, Any] | None = None
    etag: str | None = None
    provisioning_status: ProvisioningStatus | None = None
    reprovision_policy: ReprovisionPolicy | None = None
    created_date_time_utc: str | None = None
    last_updated_date_time_utc: str | None = None
    allocation_policy: AllocationPolicy | None = None
    iot_hubs: list[str] | None = None
    custom_allocation_definition: CustomAllocationDefinition | None = None
    capabilities: DeviceCapabilities | None = None


# ---------------------------------------------------------------------------
# Bulk operations and queries
# ---------------------------------------------------------------------------


class BulkEnrollmentOperation(_ServiceModel):
    enrollments: list[IndividualEnrollment]
    mode: BulkEnrollmentMode


class BulkEnrollmentOperationError(_ServiceModel):
    registration_id: str
    error_code: int | None = None
    error_status: str | None = None


class BulkEnrollmentOperationResult(_ServiceModel):
    is_successful: bool
    errors: list[BulkEnrollmentOperationError] = Field(default_factory=list)


class QuerySpecification(_ServiceModel):
    """SQL-like query, e.g. ``SELECT * FROM enrollments``."""

    query: str
