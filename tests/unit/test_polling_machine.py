"""Tests for the registration polling state machine.

Covers:
- Terminal statuses resolve on the first response carrying them
- Non-terminal statuses schedule exactly one poll timed to the retry hint
- Operation id of the most recent response is used for each poll
- Transport and service errors end the attempt without a retry
- Cancellation before a response, with a pending timer, and twice
- Completion callback fires exactly once; teardown disconnects the transport
"""

from __future__ import annotations

import pytest

from iot_provisioning.core.exceptions import (
    ContractError,
    InvalidStatusError,
    OperationCancelledError,
    RegistrationFailedError,
    RegistrationInProgressError,
    ServiceError,
    TransportError,
)
from iot_provisioning.device.polling import PollingState, PollingStateMachine


@pytest.fixture()
def machine(fake_transport, timer_factory) -> PollingStateMachine:
    return PollingStateMachine(
        fake_transport,
        default_polling_interval=2.0,
        timer_factory=timer_factory,
    )


class TestTerminalOnFirstResponse:
    """A terminal status in the initial response completes the attempt."""

    def test_assigned_resolves_without_polling(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        result = make_result("assigned", assigned_hub="hub.example.net", device_id="device-001")
        fake_transport.respond_register(None, result)

        assert recorder.calls == [(None, result)]
        assert timer_factory.timers == []
        assert fake_transport.query_calls == []
        assert machine.state is PollingState.TERMINAL

    @pytest.mark.parametrize("status", ["failed", "disabled"])
    def test_failure_status_rejects(
        self, status, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        result = make_result(status, error_message="enrollment disabled")
        fake_transport.respond_register(None, result)

        assert len(recorder.calls) == 1
        assert isinstance(recorder.error, RegistrationFailedError)
        assert recorder.error.registration_result is result
        assert "enrollment disabled" in str(recorder.error)
        assert recorder.result is None
        assert timer_factory.timers == []

    def test_status_is_case_insensitive(
        self, machine, fake_transport, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("Assigned"))

        assert recorder.error is None

    def test_unknown_status_is_contract_error(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("exploded"))

        assert isinstance(recorder.error, InvalidStatusError)
        assert recorder.error.category == "contract"
        assert timer_factory.timers == []

    def test_assigning_without_operation_id_is_contract_error(
        self, machine, fake_transport, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", operation_id=""))

        assert isinstance(recorder.error, ContractError)

    def test_teardown_disconnects_after_callback(
        self, machine, fake_transport, registration_request, make_result
    ) -> None:
        seen_disconnects: list[int] = []

        def _callback(error, result) -> None:
            seen_disconnects.append(fake_transport.disconnect_count)

        machine.register(registration_request, _callback)
        fake_transport.respond_register(None, make_result("assigned"))

        assert seen_disconnects == [0]
        assert fake_transport.disconnect_count == 1

    def test_disconnect_failure_is_ignored(
        self, machine, fake_transport, recorder, registration_request, make_result
    ) -> None:
        fake_transport.disconnect_error = TransportError("socket already closed")
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigned"))

        assert recorder.error is None
        assert fake_transport.disconnect_count == 1


class TestPolling:
    """Non-terminal statuses are polled with the latest operation id."""

    def test_assigning_schedules_one_poll_with_default_interval(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", "op-1"))

        assert len(timer_factory.timers) == 1
        assert timer_factory.last.interval == 2.0
        assert timer_factory.last.started
        assert machine.state is PollingState.POLLING
        assert recorder.calls == []
        assert fake_transport.query_calls == []

    def test_retry_after_hint_is_respected(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", retry_after=7.0))

        assert timer_factory.last.interval == 7.0

    def test_negative_retry_after_falls_back_to_default(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", retry_after=-1.0))

        assert timer_factory.last.interval == 2.0

    def test_unassigned_is_polled(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("unassigned"))

        assert len(timer_factory.timers) == 1
        assert recorder.calls == []

    def test_timer_fire_queries_with_latest_operation_id(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", "op-1"))
        timer_factory.last.fire()

        assert len(fake_transport.query_calls) == 1
        request, operation_id, _ = fake_transport.query_calls[0]
        assert request is registration_request
        assert operation_id == "op-1"

        fake_transport.respond_query(None, make_result("assigning", "op-2", retry_after=3.0))
        assert timer_factory.last.interval == 3.0
        timer_factory.last.fire()

        assert fake_transport.query_calls[-1][1] == "op-2"

    def test_never_more_than_one_active_timer(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", "op-1"))
        for n in range(2, 6):
            assert len(timer_factory.active) == 1
            timer_factory.last.fire()
            assert timer_factory.active == []
            fake_transport.respond_query(None, make_result("assigning", f"op-{n}"))

        assert len(timer_factory.active) == 1
        assert len(timer_factory.timers) == 5

    def test_poll_reaches_assigned(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning"))
        timer_factory.last.fire()
        final = make_result("assigned", assigned_hub="hub.example.net")
        fake_transport.respond_query(None, final)

        assert recorder.calls == [(None, final)]
        assert len(timer_factory.timers) == 1
        assert machine.state is PollingState.TERMINAL

    def test_poll_reaches_failed(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning"))
        timer_factory.last.fire()
        fake_transport.respond_query(None, make_result("failed"))

        assert isinstance(recorder.error, RegistrationFailedError)
        assert len(recorder.calls) == 1


class TestErrorsAreNotRetried:
    """Transport and service errors end the attempt immediately."""

    def test_error_on_initial_request(
        self, machine, fake_transport, timer_factory, recorder, registration_request
    ) -> None:
        error = TransportError("connection refused")
        machine.register(registration_request, recorder)
        fake_transport.respond_register(error, None)

        assert recorder.calls == [(error, None)]
        assert timer_factory.timers == []
        assert fake_transport.request_count == 1
        assert machine.state is PollingState.TERMINAL

    def test_retryable_service_error_is_still_not_retried(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        error = ServiceError(503, "busy")
        assert error.retryable is True

        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning"))
        timer_factory.last.fire()
        fake_transport.respond_query(error, None)

        assert recorder.calls == [(error, None)]
        assert len(timer_factory.timers) == 1
        assert fake_transport.request_count == 2

    def test_synchronous_transport_failure_reported_through_callback(
        self, fake_transport, timer_factory, recorder, registration_request
    ) -> None:
        def _boom(request, callback) -> None:
            raise TransportError("no route to host")

        fake_transport.register_request = _boom
        machine = PollingStateMachine(fake_transport, timer_factory=timer_factory)
        machine.register(registration_request, recorder)

        assert isinstance(recorder.error, TransportError)
        assert machine.state is PollingState.TERMINAL


class TestCancel:
    """Cancellation semantics."""

    def test_cancel_before_response(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        done: list[object] = []
        machine.register(registration_request, recorder)
        machine.cancel(done.append)

        assert len(recorder.calls) == 1
        assert isinstance(recorder.error, OperationCancelledError)
        assert done == [None]
        assert fake_transport.cancel_count == 1
        assert machine.state is PollingState.CANCELLED

        # A late response is dropped: no second callback, no poll.
        fake_transport.respond_register(None, make_result("assigning"))
        assert len(recorder.calls) == 1
        assert timer_factory.timers == []
        assert fake_transport.request_count == 1

    def test_cancel_with_pending_timer_clears_it(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning"))
        timer = timer_factory.last

        machine.cancel()

        assert timer.cancelled
        assert isinstance(recorder.error, OperationCancelledError)
        timer.fire()
        assert fake_transport.query_calls == []

    def test_stale_timer_callback_does_not_poll(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning"))
        timer = timer_factory.last
        machine.cancel()

        # Simulate the timer thread having already passed its cancelled check.
        timer.function()

        assert fake_transport.query_calls == []

    def test_double_cancel_is_single_outcome(
        self, machine, fake_transport, recorder, registration_request
    ) -> None:
        second_done: list[object] = []
        machine.register(registration_request, recorder)
        machine.cancel()
        machine.cancel(second_done.append)

        assert len(recorder.calls) == 1
        assert fake_transport.cancel_count == 1
        assert second_done == [None]

    def test_cancel_after_terminal_is_noop(
        self, machine, fake_transport, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigned"))
        machine.cancel()

        assert len(recorder.calls) == 1
        assert recorder.error is None
        assert fake_transport.cancel_count == 0

    def test_cancel_when_idle_is_noop(self, machine, fake_transport) -> None:
        done: list[object] = []
        machine.cancel(done.append)

        assert done == [None]
        assert fake_transport.cancel_count == 0


class TestAttempts:
    """One attempt at a time; a finished machine can be reused."""

    def test_register_while_active_raises(self, machine, recorder, registration_request) -> None:
        machine.register(registration_request, recorder)
        with pytest.raises(RegistrationInProgressError):
            machine.register(registration_request, recorder)

    def test_reuse_after_terminal_starts_without_operation_id(
        self, machine, fake_transport, timer_factory, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        fake_transport.respond_register(None, make_result("assigning", "op-old"))
        machine.cancel()

        second = type(recorder)()
        machine.register(registration_request, second)
        assert machine.state is PollingState.AWAITING_INITIAL_RESPONSE
        assert len(fake_transport.register_calls) == 2

        fake_transport.respond_register(None, make_result("assigning", "op-new"))
        timer_factory.last.fire()
        assert fake_transport.query_calls[-1][1] == "op-new"

    def test_response_for_superseded_attempt_is_dropped(
        self, machine, fake_transport, recorder, registration_request, make_result
    ) -> None:
        machine.register(registration_request, recorder)
        stale_callback = fake_transport.register_calls[0][1]
        machine.cancel()

        second = type(recorder)()
        machine.register(registration_request, second)
        stale_callback(None, make_result("assigned"))

        assert second.calls == []
        assert machine.state is PollingState.AWAITING_INITIAL_RESPONSE
