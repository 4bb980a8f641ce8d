"""Shared pytest fixtures for the provisioning SDK test suite."""

from __future__ import annotations

import base64
from collections.abc import Callable
from typing import Any

import pytest

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.models.registration import (
    RegistrationQueryResult,
    RegistrationRequest,
    RegistrationState,
)
from iot_provisioning.transport.base import ProvisioningTransport

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ID_SCOPE = "0ne00000A0A"
REGISTRATION_ID = "device-001"
PROVISIONING_HOST = "global.azure-devices-provisioning.net"
SYMMETRIC_KEY = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode("ascii")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeTimer:
    """Timer that only fires when the test calls ``fire()``."""

    def __init__(self, interval: float, function: Callable[[], None]) -> None:
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return self.started and not self.cancelled and not self.fired

    def fire(self) -> None:
        self.fired = True
        if not self.cancelled:
            self.function()


class FakeTimerFactory:
    """Records every timer the polling machine creates."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def __call__(self, interval: float, function: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.active]

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


class FakeTransport(ProvisioningTransport):
    """Transport that records requests; tests answer them through the stored callbacks."""

    name = "fake"

    def __init__(self, config: ProvisioningConfig | None = None) -> None:
        super().__init__(config or ProvisioningConfig())
        self.register_calls: list[tuple[RegistrationRequest, Callable[..., None]]] = []
        self.query_calls: list[tuple[RegistrationRequest, str, Callable[..., None]]] = []
        self.cancel_count = 0
        self.disconnect_count = 0
        self.disconnect_error: BaseException | None = None

    @property
    def request_count(self) -> int:
        return len(self.register_calls) + len(self.query_calls)

    def register_request(self, request: RegistrationRequest, callback: Callable[..., None]) -> None:
        self.register_calls.append((request, callback))

    def query_operation_status(
        self,
        request: RegistrationRequest,
        operation_id: str,
        callback: Callable[..., None],
    ) -> None:
        self.query_calls.append((request, operation_id, callback))

    def cancel(self, callback: Callable[..., None]) -> None:
        self.cancel_count += 1
        callback(None)

    def disconnect(self, callback: Callable[..., None]) -> None:
        self.disconnect_count += 1
        callback(self.disconnect_error)

    def respond_register(self, error: BaseException | None = None, result: Any = None) -> None:
        self.register_calls[-1][1](error, result)

    def respond_query(self, error: BaseException | None = None, result: Any = None) -> None:
        self.query_calls[-1][2](error, result)


class CallbackRecorder:
    """Collects ``callback(error, result)`` invocations."""

    def __init__(self) -> None:
        self.calls: list[tuple[BaseException | None, Any]] = []

    def __call__(self, error: BaseException | None = None, result: Any = None) -> None:
        self.calls.append((error, result))

    @property
    def error(self) -> BaseException | None:
        return self.calls[-1][0]

    @property
    def result(self) -> Any:
        return self.calls[-1][1]


def make_result(
    status: str,
    operation_id: str = "op-1",
    *,
    retry_after: float | None = None,
    **state: Any,
) -> RegistrationQueryResult:
    """Build a service response with an optional registration state."""
    registration_state = RegistrationState(registration_id=REGISTRATION_ID, status=status, **state)
    return RegistrationQueryResult(
        operation_id=operation_id,
        status=status,
        registration_state=registration_state,
        retry_after=retry_after,
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> ProvisioningConfig:
    return ProvisioningConfig(id_scope=ID_SCOPE)


@pytest.fixture()
def fake_transport(config: ProvisioningConfig) -> FakeTransport:
    return FakeTransport(config)


@pytest.fixture()
def timer_factory() -> FakeTimerFactory:
    return FakeTimerFactory()


@pytest.fixture()
def recorder() -> CallbackRecorder:
    return CallbackRecorder()


@pytest.fixture()
def registration_request() -> RegistrationRequest:
    return RegistrationRequest(
        registration_id=REGISTRATION_ID,
        provisioning_host=PROVISIONING_HOST,
        id_scope=ID_SCOPE,
    )


@pytest.fixture(name="make_result")
def make_result_fixture() -> Callable[..., RegistrationQueryResult]:
    return make_result
