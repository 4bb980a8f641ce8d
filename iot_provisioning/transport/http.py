"""HTTPS device registration transport (httpx).

Concrete ``ProvisioningTransport`` speaking the device REST API:

- ``PUT  https://{host}/{idScope}/registrations/{registrationId}/register``
- ``GET  https://{host}/{idScope}/registrations/{registrationId}/operations/{operationId}``

both with ``?api-version=<device_api_version>``.

Each call runs on a short-lived daemon thread and reports through its
callback, so the polling state machine is never blocked by the network.
HTTP has no session; ``cancel`` and ``disconnect`` close the pooled
``httpx.Client`` so in-flight requests fail fast and later calls open a
fresh connection.

Errors:
    - Timeouts, connection failures and non-JSON bodies → ``TransportError``.
    - Status codes >= 300 → ``ServiceError`` subclasses (see ``core.http``).
    Neither is retried here.
"""

from __future__ import annotations

import logging
import ssl
import threading
import urllib.parse
from typing import TYPE_CHECKING, Any

import httpx

from iot_provisioning.core.constants import HEADER_RETRY_AFTER, JSON_CONTENT_TYPE
from iot_provisioning.core.exceptions import ArgumentError, TransportError
from iot_provisioning.core.http import raise_for_status
from iot_provisioning.models.registration import RegistrationQueryResult
from iot_provisioning.transport.base import ProvisioningTransport
from iot_provisioning.utils.user_agent import get_user_agent_string

if TYPE_CHECKING:
    from iot_provisioning.core.config import ProvisioningConfig
    from iot_provisioning.models.registration import RegistrationRequest, X509Certificate
    from iot_provisioning.transport.base import DoneCallback, ResultCallback

logger = logging.getLogger(__name__)


class HttpProvisioningTransport(ProvisioningTransport):
    """Device registration over HTTPS.

    Args:
        config: SDK configuration (API version, request timeout).
        http_transport: Optional ``httpx`` transport used for every client
            this instance creates (e.g. ``httpx.MockTransport`` in tests).
    """

    name = "http"

    def __init__(
        self,
        config: ProvisioningConfig,
        *,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config)
        self._http_transport = http_transport
        self._client: httpx.Client | None = None
        self._lock = threading.Lock()
        self._user_agent = get_user_agent_string() or ""

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def set_authentication(self, certificate: X509Certificate) -> None:
        super().set_authentication(certificate)
        # The TLS context is bound to the client; rebuild on next request.
        self._reset_client()

    # ------------------------------------------------------------------
    # ProvisioningTransport
    # ------------------------------------------------------------------

    def register_request(self, request: RegistrationRequest, callback: ResultCallback) -> None:
        url = f"{_registration_url(request)}/register"
        logger.debug("Sending register request | registration_id=%s", request.registration_id)
        self._dispatch("PUT", url, callback, body=request.to_body())

    def query_operation_status(
        self,
        request: RegistrationRequest,
        operation_id: str,
        callback: ResultCallback,
    ) -> None:
        url = f"{_registration_url(request)}/operations/{_quote(operation_id)}"
        logger.debug(
            "Sending operation status query | registration_id=%s | operation_id=%s",
            request.registration_id,
            operation_id,
        )
        self._dispatch("GET", url, callback)

    def cancel(self, callback: DoneCallback) -> None:
        self._reset_client()
        callback(None)

    def disconnect(self, callback: DoneCallback) -> None:
        self._reset_client()
        callback(None)

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------

    def execute(
        self,
        method: str,
        url: str,
        *,
        body: dict[str, Any] | None = None,
    ) -> RegistrationQueryResult:
        """Perform one request synchronously and parse the service answer.

        Raises:
            TransportError: On timeout, connection failure or a body that
                is not a JSON object.
            ServiceError: On status codes >= 300.
            ArgumentError: If the client certificate cannot be loaded.
        """
        client = self._get_client()
        try:
            resp = client.request(
                method,
                url,
                params={"api-version": self._config.device_api_version},
                headers=self._headers(),
                json=body,
                timeout=self._config.request_timeout_s,
            )
        except httpx.TimeoutException as exc:
            msg = f"{method} {url} timed out after {self._config.request_timeout_s}s"
            raise TransportError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"{method} {url} failed: {exc}"
            raise TransportError(msg) from exc

        raise_for_status(resp)

        try:
            payload = resp.json()
        except ValueError as exc:
            msg = f"Malformed response from {url}: body is not JSON"
            raise TransportError(msg, retryable=False) from exc
        if not isinstance(payload, dict):
            msg = f"Malformed response from {url}: expected an object, got {type(payload).__name__}"
            raise TransportError(msg, retryable=False)

        try:
            return RegistrationQueryResult.from_dict(
                payload,
                retry_after=_parse_retry_after(resp.headers.get(HEADER_RETRY_AFTER)),
            )
        except (TypeError, ValueError) as exc:
            msg = f"Malformed response from {url}: {exc}"
            raise TransportError(msg, retryable=False) from exc

    def _dispatch(
        self,
        method: str,
        url: str,
        callback: ResultCallback,
        *,
        body: dict[str, Any] | None = None,
    ) -> None:
        def _run() -> None:
            try:
                result = self.execute(method, url, body=body)
            except Exception as exc:
                callback(exc, None)
                return
            callback(None, result)

        threading.Thread(target=_run, name="dps-http-request", daemon=True).start()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": JSON_CONTENT_TYPE,
            "User-Agent": self._user_agent,
        }
        if self._shared_access_signature:
            headers["Authorization"] = self._shared_access_signature
        return headers

    # ------------------------------------------------------------------
    # Client lifecycle
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.Client:
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    transport=self._http_transport,
                    verify=self._ssl_context(),
                )
            return self._client

    def _reset_client(self) -> None:
        with self._lock:
            client, self._client = self._client, None
        if client is not None:
            client.close()

    def _ssl_context(self) -> ssl.SSLContext | bool:
        if self._certificate is None:
            return True
        context = ssl.create_default_context()
        try:
            context.load_cert_chain(
                certfile=self._certificate.cert_file,
                keyfile=self._certificate.key_file,
                password=self._certificate.pass_phrase,
            )
        except OSError as exc:
            msg = f"Unable to load client certificate {self._certificate.cert_file!r}: {exc}"
            raise ArgumentError(msg, stage="transport") from exc
        return context


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


def _registration_url(request: RegistrationRequest) -> str:
    return (
        f"https://{request.provisioning_host}/{_quote(request.id_scope)}"
        f"/registrations/{_quote(request.registration_id)}"
    )


def _parse_retry_after(value: str | None) -> float | None:
    """Return the ``Retry-After`` hint in seconds, or ``None`` if absent or unusable."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        logger.debug("Ignoring non-numeric Retry-After header: %r", value)
        return None
    return seconds if seconds >= 0 else None
