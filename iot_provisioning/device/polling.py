"""Registration polling state machine.

Drives one registration attempt to a terminal outcome by sending the
initial register request and then polling the operation status until the
service reports a terminal status.

States::

    IDLE ──register──► AWAITING_INITIAL_RESPONSE ──assigning──► POLLING ─┐
                              │                                  ▲       │
                              │ assigned / failed / error        └───────┘
                              ▼                                 assigning
                           TERMINAL ◄──────── assigned / failed / error

    AWAITING_INITIAL_RESPONSE / POLLING ──cancel──► CANCELLED

Rules:
    - The completion callback fires exactly once per attempt.
    - At most one poll timer exists per attempt.
    - Each poll uses the operation id of the most recent response.
    - Transport and service errors end the attempt; only non-terminal
      statuses lead to another poll.
    - Responses that arrive for a cancelled or superseded attempt are
      dropped.

The machine never blocks: network calls complete through transport
callbacks and the inter-poll delay is a timer created by
``timer_factory(interval_s, function)`` (``threading.Timer`` by default).
"""

from __future__ import annotations

import enum
import functools
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from iot_provisioning.core.constants import DEFAULT_POLLING_INTERVAL_S
from iot_provisioning.core.exceptions import (
    ContractError,
    InvalidStatusError,
    OperationCancelledError,
    RegistrationFailedError,
    RegistrationInProgressError,
)
from iot_provisioning.models.registration import RegistrationStatus

if TYPE_CHECKING:
    from iot_provisioning.models.registration import RegistrationQueryResult, RegistrationRequest
    from iot_provisioning.transport.base import DoneCallback, ProvisioningTransport

logger = logging.getLogger(__name__)

RegistrationCallback = Callable[[BaseException | None, "RegistrationQueryResult | None"], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


class PollingState(enum.Enum):
    """Lifecycle state of the current registration attempt."""

    IDLE = "idle"
    AWAITING_INITIAL_RESPONSE = "awaiting_initial_response"
    POLLING = "polling"
    TERMINAL = "terminal"
    CANCELLED = "cancelled"


_ACTIVE_STATES = frozenset({PollingState.AWAITING_INITIAL_RESPONSE, PollingState.POLLING})
_POLL_STATUSES = frozenset({RegistrationStatus.ASSIGNING, RegistrationStatus.UNASSIGNED})
_FAILED_STATUSES = frozenset({RegistrationStatus.FAILED, RegistrationStatus.DISABLED})


def _daemon_timer(interval_s: float, function: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval_s, function)
    timer.daemon = True
    return timer


class PollingStateMachine:
    """Runs registration attempts over a ``ProvisioningTransport``.

    Args:
        transport: Transport used for register/status requests.
        default_polling_interval: Seconds between polls when the service
            sends no usable ``Retry-After`` hint.
        timer_factory: Creates the inter-poll timer; the returned object
            must provide ``start()`` and ``cancel()``.
    """

    def __init__(
        self,
        transport: ProvisioningTransport,
        *,
        default_polling_interval: float = DEFAULT_POLLING_INTERVAL_S,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        self._transport = transport
        self._default_polling_interval = default_polling_interval
        self._timer_factory = timer_factory or _daemon_timer
        self._lock = threading.Lock()
        self._state = PollingState.IDLE
        self._attempt = 0
        self._request: RegistrationRequest | None = None
        self._callback: RegistrationCallback | None = None
        self._operation_id = ""
        self._timer: Any = None

    @property
    def state(self) -> PollingState:
        return self._state

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def register(self, request: RegistrationRequest, callback: RegistrationCallback) -> None:
        """Start a registration attempt.

        *callback* receives ``(None, RegistrationQueryResult)`` once the
        device is assigned, or ``(error, None)`` on failure or cancellation.

        Raises:
            RegistrationInProgressError: If an attempt is already active.
        """
        with self._lock:
            if self._state in _ACTIVE_STATES:
                msg = f"Registration already in progress for {self._request.registration_id!r}"
                raise RegistrationInProgressError(msg, correlation_id=request.registration_id)
            self._attempt += 1
            attempt = self._attempt
            self._state = PollingState.AWAITING_INITIAL_RESPONSE
            self._request = request
            self._callback = callback
            self._operation_id = ""
            self._timer = None

        logger.info(
            "Registration started | registration_id=%s | id_scope=%s",
            request.registration_id,
            request.id_scope,
        )
        try:
            self._transport.register_request(request, functools.partial(self._on_response, attempt))
        except Exception as exc:
            self._on_response(attempt, exc, None)

    def cancel(self, callback: DoneCallback | None = None) -> None:
        """Cancel the active attempt.

        The attempt's completion callback receives ``OperationCancelledError``
        and the transport is asked to abandon in-flight work. Cancelling when
        no attempt is active does nothing beyond calling *callback*.
        """
        with self._lock:
            active = self._state in _ACTIVE_STATES
            if active:
                self._state = PollingState.CANCELLED
                timer, self._timer = self._timer, None
                completion, self._callback = self._callback, None
                request = self._request

        if not active:
            logger.debug("Cancel ignored, no active registration | state=%s", self._state.value)
            if callback is not None:
                callback(None)
            return

        if timer is not None:
            timer.cancel()

        registration_id = request.registration_id if request else ""
        logger.info("Registration cancelled | registration_id=%s", registration_id)
        if completion is not None:
            completion(
                OperationCancelledError("Registration cancelled", correlation_id=registration_id),
                None,
            )

        def _on_transport_cancelled(error: BaseException | None = None) -> None:
            if error is not None:
                logger.warning("Transport cancel failed | error=%s", error)
            if callback is not None:
                callback(error)

        self._transport.cancel(_on_transport_cancelled)

    def disconnect(self, callback: DoneCallback | None = None) -> None:
        """Release the transport's connections."""
        self._transport.disconnect(callback or _log_disconnect_error)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _on_response(
        self,
        attempt: int,
        error: BaseException | None,
        result: RegistrationQueryResult | None,
    ) -> None:
        timer = None
        callback: RegistrationCallback | None = None
        outcome: tuple[BaseException | None, RegistrationQueryResult | None] | None = None

        with self._lock:
            if attempt != self._attempt or self._state not in _ACTIVE_STATES:
                logger.debug("Dropping response for inactive attempt | attempt=%d", attempt)
                return

            registration_id = self._request.registration_id if self._request else ""
            if error is not None:
                outcome = (error, None)
            elif result is None:
                outcome = (ContractError("Transport returned neither error nor result"), None)
            else:
                status = result.registration_status
                if status is RegistrationStatus.ASSIGNED:
                    outcome = (None, result)
                elif status in _FAILED_STATUSES:
                    outcome = (_registration_failed(result, registration_id), None)
                elif status in _POLL_STATUSES and not result.operation_id:
                    msg = f"Status {result.status!r} returned without an operation id"
                    outcome = (ContractError(msg, stage="register", correlation_id=registration_id), None)
                elif status in _POLL_STATUSES:
                    self._state = PollingState.POLLING
                    self._operation_id = result.operation_id
                    interval = self._interval_for(result)
                    timer = self._timer_factory(interval, functools.partial(self._poll, attempt))
                    self._timer = timer
                    logger.info(
                        "Registration poll scheduled | registration_id=%s | status=%s | retry_after=%.1fs",
                        registration_id,
                        result.status,
                        interval,
                    )
                else:
                    msg = f"Unknown registration status {result.status!r}"
                    outcome = (InvalidStatusError(msg, correlation_id=registration_id), None)

            if outcome is not None:
                self._state = PollingState.TERMINAL
                callback, self._callback = self._callback, None

        if timer is not None:
            timer.start()
            return

        self._complete(callback, *outcome)

    def _poll(self, attempt: int) -> None:
        with self._lock:
            if attempt != self._attempt or self._state is not PollingState.POLLING:
                return
            self._timer = None
            request = self._request
            operation_id = self._operation_id

        logger.debug(
            "Polling registration status | registration_id=%s | operation_id=%s",
            request.registration_id,
            operation_id,
        )
        try:
            self._transport.query_operation_status(
                request, operation_id, functools.partial(self._on_response, attempt)
            )
        except Exception as exc:
            self._on_response(attempt, exc, None)

    def _complete(
        self,
        callback: RegistrationCallback | None,
        error: BaseException | None,
        result: RegistrationQueryResult | None,
    ) -> None:
        if error is None:
            logger.info("Registration assigned | operation_id=%s", result.operation_id)
        else:
            logger.info("Registration failed | error=%s", error)
        try:
            if callback is not None:
                callback(error, result)
        finally:
            self._teardown()

    def _teardown(self) -> None:
        try:
            self._transport.disconnect(_log_disconnect_error)
        except Exception as exc:
            _log_disconnect_error(exc)

    def _interval_for(self, result: RegistrationQueryResult) -> float:
        if result.retry_after is None or result.retry_after < 0:
            return self._default_polling_interval
        return result.retry_after


def _registration_failed(result: RegistrationQueryResult, registration_id: str) -> RegistrationFailedError:
    state = result.registration_state
    detail = f": {state.error_message}" if state and state.error_message else ""
    return RegistrationFailedError(
        f"Registration {result.status}{detail}",
        registration_result=result,
        correlation_id=registration_id,
    )


def _log_disconnect_error(error: BaseException | None = None) -> None:
    if error is not None:
        logger.warning("Ignoring disconnect failure | error=%s", error)
