"""Enrollment management client.

CRUD operations on individual enrollments, enrollment groups and device
registration states, paged queries and bulk enrollment operations::

    PUT    /enrollments/{registrationId}          (If-Match: etag)
    GET    /enrollments/{registrationId}
    DELETE /enrollments/{registrationId}          (If-Match: etag)
    POST   /enrollments/query
    POST   /enrollments                           (bulk operation)
    PUT    /enrollmentGroups/{enrollmentGroupId}  (If-Match: etag)
    GET    /enrollmentGroups/{enrollmentGroupId}
    DELETE /enrollmentGroups/{enrollmentGroupId}  (If-Match: etag)
    POST   /enrollmentGroups/query
    GET    /registrations/{registrationId}
    DELETE /registrations/{registrationId}        (If-Match: etag)
    POST   /registrations/{enrollmentGroupId}/query

Every path carries ``?api-version=<service_api_version>`` and record ids
are URI-encoded.

Errors:
    - Missing or contradictory arguments → ``ArgumentError`` (raised
      before any request is sent).
    - HTTP status >= 300 → ``ServiceError`` subclasses.
    - Records that do not match the models → ``ContractError``.
    - Bodies that are not JSON → ``TransportError``.
"""

from __future__ import annotations

import logging
import urllib.parse
from typing import TYPE_CHECKING, Any, TypeVar

import pydantic

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.core.constants import (
    HEADER_CONTINUATION,
    HEADER_IF_MATCH,
    HEADER_ITEM_TYPE,
    HEADER_MAX_ITEM_COUNT,
)
from iot_provisioning.core.exceptions import ArgumentError, ContractError, TransportError
from iot_provisioning.models.enrollment import (
    BulkEnrollmentOperation,
    BulkEnrollmentOperationResult,
    DeviceRegistrationState,
    EnrollmentGroup,
    IndividualEnrollment,
    QuerySpecification,
)
from iot_provisioning.service.query import Query
from iot_provisioning.service.rest import Credential, RestApiClient
from iot_provisioning.utils.connection_string import parse_connection_string
from iot_provisioning.utils.sas import SharedAccessKeyCredential, StaticSasCredential

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

_ENROLLMENTS_PREFIX = "/enrollments/"
_ENROLLMENT_GROUPS_PREFIX = "/enrollmentGroups/"
_REGISTRATIONS_PREFIX = "/registrations/"


class ProvisioningServiceClient:
    """Manages enrollment records of one provisioning service instance.

    Args:
        host: Service host name.
        shared_access_signature: A pre-generated SAS with the required permissions.
        credential: Alternative to *host* / *shared_access_signature*; any
            object with a ``host`` and a ``get_token()`` method.
        config: SDK configuration (API version, timeout).
        http_client: Optional ``httpx.Client`` used for all requests.

    Raises:
        ArgumentError: If neither a credential nor both *host* and
            *shared_access_signature* are given.
    """

    def __init__(
        self,
        host: str | None = None,
        shared_access_signature: str | None = None,
        *,
        credential: Credential | None = None,
        config: ProvisioningConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        if credential is None:
            if not host or not shared_access_signature:
                msg = "Either a credential or both host and shared_access_signature are required"
                raise ArgumentError(msg)
            credential = StaticSasCredential(host, shared_access_signature)
        config = config or ProvisioningConfig()
        self._rest = RestApiClient(
            credential,
            api_version=config.service_api_version,
            timeout_s=config.request_timeout_s,
            http_client=http_client,
        )

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        *,
        config: ProvisioningConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> ProvisioningServiceClient:
        """Build a client whose SAS is generated (and renewed) from a shared access policy key.

        Raises:
            ArgumentError: If the connection string is empty or malformed.
        """
        parsed = parse_connection_string(connection_string)
        config = config or ProvisioningConfig()
        credential = SharedAccessKeyCredential(
            parsed.host_name,
            parsed.shared_access_key_name,
            parsed.shared_access_key,
            ttl_s=config.sas_ttl_s,
        )
        return cls(credential=credential, config=config, http_client=http_client)

    def close(self) -> None:
        self._rest.close()

    def __enter__(self) -> ProvisioningServiceClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Individual enrollments
    # ------------------------------------------------------------------

    def create_or_update_individual_enrollment(self, enrollment: IndividualEnrollment) -> IndividualEnrollment:
        """Create *enrollment*, or replace it when its etag matches."""
        if enrollment is None:
            raise ArgumentError("enrollment is required")
        return self._create_or_update(
            _ENROLLMENTS_PREFIX, enrollment.registration_id, enrollment, IndividualEnrollment
        )

    def get_individual_enrollment(self, registration_id: str) -> IndividualEnrollment:
        return self._get(_ENROLLMENTS_PREFIX, registration_id, IndividualEnrollment)

    def delete_individual_enrollment(
        self,
        enrollment_or_id: IndividualEnrollment | str,
        etag: str | None = None,
    ) -> None:
        """Delete by id (optionally guarded by *etag*) or by record (guarded by its own etag)."""
        self._delete(_ENROLLMENTS_PREFIX, enrollment_or_id, etag, "registration_id")

    def create_individual_enrollment_query(
        self,
        query_specification: QuerySpecification,
        page_size: int | None = None,
    ) -> Query:
        return self._query(_ENROLLMENTS_PREFIX, query_specification, page_size, IndividualEnrollment)

    # ------------------------------------------------------------------
    # Enrollment groups
    # ------------------------------------------------------------------

    def create_or_update_enrollment_group(self, enrollment_group: EnrollmentGroup) -> EnrollmentGroup:
        """Create *enrollment_group*, or replace it when its etag matches."""
        if enrollment_group is None:
            raise ArgumentError("enrollment_group is required")
        return self._create_or_update(
            _ENROLLMENT_GROUPS_PREFIX,
            enrollment_group.enrollment_group_id,
            enrollment_group,
            EnrollmentGroup,
        )

    def get_enrollment_group(self, enrollment_group_id: str) -> EnrollmentGroup:
        return self._get(_ENROLLMENT_GROUPS_PREFIX, enrollment_group_id, EnrollmentGroup)

    def delete_enrollment_group(
        self,
        enrollment_group_or_id: EnrollmentGroup | str,
        etag: str | None = None,
    ) -> None:
        self._delete(_ENROLLMENT_GROUPS_PREFIX, enrollment_group_or_id, etag, "enrollment_group_id")

    def create_enrollment_group_query(
        self,
        query_specification: QuerySpecification,
        page_size: int | None = None,
    ) -> Query:
        return self._query(_ENROLLMENT_GROUPS_PREFIX, query_specification, page_size, EnrollmentGroup)

    # ------------------------------------------------------------------
    # Device registration states
    # ------------------------------------------------------------------

    def get_device_registration_state(self, registration_id: str) -> DeviceRegistrationState:
        return self._get(_REGISTRATIONS_PREFIX, registration_id, DeviceRegistrationState)

    def delete_device_registration_state(
        self,
        state_or_id: DeviceRegistrationState | str,
        etag: str | None = None,
    ) -> None:
        self._delete(_REGISTRATIONS_PREFIX, state_or_id, etag, "registration_id")

    def create_enrollment_group_device_registration_state_query(
        self,
        query_specification: QuerySpecification,
        enrollment_group_id: str,
        page_size: int | None = None,
    ) -> Query:
        """Query the registration states of the devices of one enrollment group."""
        if not enrollment_group_id:
            raise ArgumentError("enrollment_group_id is required")
        prefix = f"{_REGISTRATIONS_PREFIX}{_quote(enrollment_group_id)}/"
        return self._query(prefix, query_specification, page_size, DeviceRegistrationState)

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    def run_bulk_enrollment_operation(
        self,
        bulk_enrollment_operation: BulkEnrollmentOperation,
    ) -> BulkEnrollmentOperationResult:
        """Apply one create/update/delete mode to many individual enrollments at once."""
        if bulk_enrollment_operation is None:
            raise ArgumentError("bulk_enrollment_operation is required")
        logger.info(
            "Bulk enrollment operation | mode=%s | count=%d",
            bulk_enrollment_operation.mode.value,
            len(bulk_enrollment_operation.enrollments),
        )
        data = self._rest.execute_json(
            "POST",
            _ENROLLMENTS_PREFIX.rstrip("/"),
            body=bulk_enrollment_operation.to_wire(),
        )
        return _parse(BulkEnrollmentOperationResult, data)

    # ------------------------------------------------------------------
    # Shared request shapes
    # ------------------------------------------------------------------

    def _create_or_update(
        self,
        prefix: str,
        record_id: str,
        record: pydantic.BaseModel,
        model: type[ModelT],
    ) -> ModelT:
        if not record_id:
            msg = "The record id is required to create or update a record"
            raise ArgumentError(msg)
        headers = {}
        etag = getattr(record, "etag", None)
        if etag:
            headers[HEADER_IF_MATCH] = etag
        logger.info("Create or update record | path=%s%s", prefix, record_id)
        data = self._rest.execute_json(
            "PUT",
            f"{prefix}{_quote(record_id)}",
            headers=headers,
            body=record.to_wire(),
        )
        return _parse(model, data)

    def _get(self, prefix: str, record_id: str, model: type[ModelT]) -> ModelT:
        if not record_id:
            raise ArgumentError("The record id is required")
        data = self._rest.execute_json("GET", f"{prefix}{_quote(record_id)}")
        return _parse(model, data)

    def _delete(
        self,
        prefix: str,
        record_or_id: pydantic.BaseModel | str,
        etag: str | None,
        id_field: str,
    ) -> None:
        if not record_or_id:
            raise ArgumentError("A record or record id is required")

        if isinstance(record_or_id, str):
            record_id = record_or_id
            if_match = etag
        else:
            if etag is not None:
                msg = "etag must not be passed separately when deleting by record; the record's etag is used"
                raise ArgumentError(msg)
            record_id = getattr(record_or_id, id_field, None)
            if not record_id:
                msg = f"Required property {id_field!r} is missing on the record"
                raise ArgumentError(msg)
            if_match = getattr(record_or_id, "etag", None)

        headers = {HEADER_IF_MATCH: if_match} if if_match else {}
        logger.info("Delete record | path=%s%s | conditional=%s", prefix, record_id, bool(if_match))
        self._rest.execute("DELETE", f"{prefix}{_quote(record_id)}", headers=headers)

    def _query(
        self,
        prefix: str,
        query_specification: QuerySpecification,
        page_size: int | None,
        model: type[ModelT],
    ) -> Query:
        if query_specification is None:
            raise ArgumentError("query_specification is required")
        if page_size is not None and page_size <= 0:
            raise ArgumentError("page_size must be a positive integer")
        body = query_specification.to_wire()

        def _fetch_page(continuation_token: str | None) -> tuple[list[Any], str | None, str | None]:
            headers = {}
            if continuation_token:
                headers[HEADER_CONTINUATION] = continuation_token
            if page_size:
                headers[HEADER_MAX_ITEM_COUNT] = str(page_size)
            resp = self._rest.execute("POST", f"{prefix}query", headers=headers, body=body)
            try:
                items = resp.json()
            except ValueError as exc:
                msg = f"Malformed query response from {prefix}query: body is not JSON"
                raise TransportError(msg, stage="service", retryable=False) from exc
            return items, resp.headers.get(HEADER_CONTINUATION), resp.headers.get(HEADER_ITEM_TYPE)

        return Query(_fetch_page, lambda item: _parse(model, item))


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


def _parse(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        msg = f"Service returned an invalid {model.__name__}: {exc.error_count()} validation error(s)"
        raise ContractError(msg, stage="service") from exc
