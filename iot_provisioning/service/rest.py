"""Authenticated REST calls against the enrollment management API.

Every request carries::

    Authorization: <shared access signature>
    User-Agent: iot-provisioning-service/<version> (<platform>)
    Accept: application/json

plus ``Content-Type: application/json; charset=utf-8`` when a body is
sent, and ``?api-version=<service_api_version>`` on the URL.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

from iot_provisioning.core.constants import (
    DEFAULT_REQUEST_TIMEOUT_S,
    JSON_CONTENT_TYPE,
    SERVICE_API_VERSION,
    SERVICE_PACKAGE_NAME,
)
from iot_provisioning.core.exceptions import TransportError
from iot_provisioning.core.http import raise_for_status
from iot_provisioning.utils.user_agent import get_user_agent_string

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


class Credential(Protocol):
    """Anything that yields a host and a current SAS token."""

    @property
    def host(self) -> str: ...

    def get_token(self) -> str: ...


class RestApiClient:
    """Thin httpx wrapper adding auth, user agent, API version and error mapping.

    Args:
        credential: Supplies the service host and SAS token.
        api_version: Value of the ``api-version`` query parameter.
        timeout_s: Per-request timeout.
        http_client: Optional pre-built ``httpx.Client`` (tests pass one
            backed by ``httpx.MockTransport``).
    """

    def __init__(
        self,
        credential: Credential,
        *,
        api_version: str = SERVICE_API_VERSION,
        timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._credential = credential
        self._api_version = api_version
        self._timeout = timeout_s
        self._base_url = f"https://{credential.host}"
        self._client = http_client or httpx.Client()
        self._user_agent = get_user_agent_string(package_name=SERVICE_PACKAGE_NAME) or ""

    @property
    def host(self) -> str:
        return self._credential.host

    def execute(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> httpx.Response:
        """Send one request and return the response.

        Raises:
            TransportError: On timeout or connection failure.
            ServiceError: On status codes >= 300.
        """
        request_headers = {
            "Authorization": self._credential.get_token(),
            "User-Agent": self._user_agent,
            "Accept": "application/json",
        }
        if body is not None:
            request_headers["Content-Type"] = JSON_CONTENT_TYPE
        if headers:
            request_headers.update(headers)

        url = f"{self._base_url}{path}"
        logger.debug("Service request | method=%s | path=%s", method, path)
        try:
            resp = self._client.request(
                method,
                url,
                params={"api-version": self._api_version},
                headers=request_headers,
                json=body,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            msg = f"{method} {path} timed out after {self._timeout}s"
            raise TransportError(msg, stage="service") from exc
        except httpx.HTTPError as exc:
            msg = f"{method} {path} failed: {exc}"
            raise TransportError(msg, stage="service") from exc

        raise_for_status(resp)
        return resp

    def execute_json(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        body: Any = None,
    ) -> Any:
        """Like ``execute`` but return the decoded JSON body.

        Raises:
            TransportError: If the body is not JSON.
        """
        resp = self.execute(method, path, headers=headers, body=body)
        try:
            return resp.json()
        except ValueError as exc:
            msg = f"Malformed response from {path}: body is not JSON"
            raise TransportError(msg, stage="service", retryable=False) from exc

    def close(self) -> None:
        self._client.close()
