"""HTTP status → exception mapping shared by the device transport and the service client."""

from __future__ import annotations

from typing import TYPE_CHECKING

from iot_provisioning.core.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ServiceError,
    ServiceUnavailableError,
    ThrottlingError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    import httpx

_STATUS_ERRORS: dict[int, type[ServiceError]] = {
    401: UnauthorizedError,
    404: NotFoundError,
    412: PreconditionFailedError,
    429: ThrottlingError,
    503: ServiceUnavailableError,
}


def raise_for_status(resp: httpx.Response) -> None:
    """Raise the ``ServiceError`` subclass matching a status code >= 300.

    The service error body (``{"errorCode": ..., "trackingId": ...,
    "message": ...}``) supplies the message and the correlation id when
    it is JSON; otherwise the first 200 characters of the body are used.
    """
    if resp.status_code < 300:
        return

    body = resp.text
    message = body[:200] if body else f"HTTP {resp.status_code}"
    tracking_id = ""

    try:
        payload = resp.json()
        if isinstance(payload, dict):
            message = str(payload.get("message", payload.get("Message", message)))
            tracking_id = str(payload.get("trackingId", ""))
    except ValueError:
        pass

    error_cls = _STATUS_ERRORS.get(resp.status_code, ServiceError)
    raise error_cls(
        resp.status_code,
        message,
        response_body=body,
        correlation_id=tracking_id,
    )
