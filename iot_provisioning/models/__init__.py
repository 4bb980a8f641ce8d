"""Data models.

- registration: Device-side request/response dataclasses and status enum
- enrollment: Service-side enrollment records (pydantic)
"""

from iot_provisioning.models.enrollment import (
    AttestationMechanism,
    BulkEnrollmentOperation,
    BulkEnrollmentOperationResult,
    DeviceRegistrationState,
    EnrollmentGroup,
    IndividualEnrollment,
    QuerySpecification,
)
from iot_provisioning.models.registration import (
    ModelValidationError,
    RegistrationQueryResult,
    RegistrationRequest,
    RegistrationState,
    RegistrationStatus,
    X509Certificate,
)

__all__ = [
    "AttestationMechanism",
    "BulkEnrollmentOperation",
    "BulkEnrollmentOperationResult",
    "DeviceRegistrationState",
    "EnrollmentGroup",
    "IndividualEnrollment",
    "ModelValidationError",
    "QuerySpecification",
    "RegistrationQueryResult",
    "RegistrationRequest",
    "RegistrationState",
    "RegistrationStatus",
    "X509Certificate",
]
