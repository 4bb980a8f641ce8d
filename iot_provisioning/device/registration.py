"""Registration client base class.

A registration client combines a security client (the device credential),
a transport and a ``PollingStateMachine``:

    1. ``_authenticate`` obtains the credential and sets it on the transport.
    2. The polling machine runs the attempt to a terminal outcome and
       disconnects the transport afterwards.
    3. The caller receives the device's ``RegistrationState``.

``register`` and ``cancel`` accept an optional callback and return a
``concurrent.futures.Future`` when none is given.
"""

from __future__ import annotations

import abc
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any

from iot_provisioning.core.constants import DEFAULT_POLLING_INTERVAL_S
from iot_provisioning.core.exceptions import (
    ArgumentError,
    OperationCancelledError,
    RegistrationInProgressError,
)
from iot_provisioning.device.polling import PollingStateMachine, TimerFactory
from iot_provisioning.models.registration import RegistrationRequest
from iot_provisioning.utils.callbacks import (
    Callback,
    ErrorCallback,
    callback_to_future,
    error_callback_to_future,
)

if TYPE_CHECKING:
    from iot_provisioning.models.registration import RegistrationQueryResult, RegistrationState
    from iot_provisioning.transport.base import ProvisioningTransport

logger = logging.getLogger(__name__)

AuthenticatedCallback = Callable[[BaseException | None, "str | None"], None]


class RegistrationClient(abc.ABC):
    """Registers one device with the provisioning service.

    Args:
        provisioning_host: Device endpoint of the provisioning service.
        id_scope: Scope identifier of the provisioning service instance.
        transport: Transport the registration runs over.
        polling_interval_s: Default delay between status polls.
        timer_factory: Timer factory handed to the polling machine.

    Raises:
        ArgumentError: If *provisioning_host* or *id_scope* is empty.
    """

    def __init__(
        self,
        provisioning_host: str,
        id_scope: str,
        transport: ProvisioningTransport,
        *,
        polling_interval_s: float = DEFAULT_POLLING_INTERVAL_S,
        timer_factory: TimerFactory | None = None,
    ) -> None:
        if not provisioning_host:
            msg = "provisioning_host must not be empty"
            raise ArgumentError(msg)
        if not id_scope:
            msg = "id_scope must not be empty"
            raise ArgumentError(msg)
        self._provisioning_host = provisioning_host
        self._id_scope = id_scope
        self._transport = transport
        self._polling_machine = PollingStateMachine(
            transport,
            default_polling_interval=polling_interval_s,
            timer_factory=timer_factory,
        )
        self._lock = threading.Lock()
        self._authenticating = False
        self._cancel_pending = False

    @property
    def polling_machine(self) -> PollingStateMachine:
        return self._polling_machine

    @abc.abstractmethod
    def _authenticate(self, callback: AuthenticatedCallback) -> None:
        """Set the device credential on the transport.

        Calls ``callback(None, registration_id)`` on success or
        ``callback(error, None)`` if the credential cannot be obtained.
        """

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def register(
        self,
        callback: Callback | None = None,
        *,
        payload: Any = None,
    ) -> Future[RegistrationState] | None:
        """Register the device.

        Args:
            callback: Receives ``(None, RegistrationState)`` or ``(error, None)``.
            payload: Optional JSON data forwarded to custom allocation.

        Returns:
            ``None`` with a callback, otherwise a ``Future`` of the
            ``RegistrationState``.
        """
        return callback_to_future(lambda cb: self._register(cb, payload), callback)

    def cancel(self, callback: ErrorCallback | None = None) -> Future[None] | None:
        """Cancel the registration in progress."""
        return error_callback_to_future(self._cancel, callback)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cancel(self, callback: ErrorCallback) -> None:
        with self._lock:
            pending = self._authenticating
            if pending:
                self._cancel_pending = True
        if not pending:
            self._polling_machine.cancel(callback)
            return
        logger.info("Registration cancelled during credential acquisition")
        self._transport.cancel(callback)

    def _register(self, callback: Callback, payload: Any) -> None:
        def _on_complete(error: BaseException | None, result: RegistrationQueryResult | None) -> None:
            if error is not None:
                callback(error, None)
            else:
                callback(None, result.registration_state)

        def _on_authenticated(error: BaseException | None, registration_id: str | None) -> None:
            with self._lock:
                self._authenticating = False
                cancelled, self._cancel_pending = self._cancel_pending, False
            if cancelled:
                error = OperationCancelledError("Registration cancelled", correlation_id=registration_id or "")
                callback(error, None)
                return
            if error is not None:
                logger.warning("Credential acquisition failed | error=%s", error)
                callback(error, None)
                return
            request = RegistrationRequest(
                registration_id=registration_id,
                provisioning_host=self._provisioning_host,
                id_scope=self._id_scope,
                payload=payload,
            )
            try:
                self._polling_machine.register(request, _on_complete)
            except RegistrationInProgressError as exc:
                callback(exc, None)

        with self._lock:
            if self._authenticating:
                busy = True
            else:
                busy = False
                self._authenticating = True
                self._cancel_pending = False
        if busy:
            callback(RegistrationInProgressError("Credential acquisition already in progress"), None)
            return
        try:
            self._authenticate(_on_authenticated)
        except Exception as exc:
            _on_authenticated(exc, None)
