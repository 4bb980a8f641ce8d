"""Tests for the X.509 and symmetric-key registration clients."""

from __future__ import annotations

import base64
import unittest
import urllib.parse
from concurrent.futures import Future
from unittest.mock import MagicMock, patch

import pytest

from iot_provisioning.core.config import ProvisioningConfig
from iot_provisioning.core.exceptions import (
    ArgumentError,
    OperationCancelledError,
    RegistrationFailedError,
    RegistrationInProgressError,
    TransportError,
)
from iot_provisioning.device.security import SymmetricKeySecurityClient, X509SecurityClient
from iot_provisioning.device.symmetric_key_registration import SymmetricKeyRegistration
from iot_provisioning.device.x509_registration import X509Registration
from iot_provisioning.models.registration import X509Certificate
from iot_provisioning.transport.http import HttpProvisioningTransport

KEY = base64.b64encode(b"0123456789abcdef0123456789abcdef").decode("ascii")
CERT = X509Certificate("device.pem", "device.key")


@pytest.fixture()
def x509_client(fake_transport, timer_factory) -> X509Registration:
    return X509Registration(
        "dps.example.net",
        "0ne00000A0A",
        fake_transport,
        X509SecurityClient(CERT, "device-001"),
        timer_factory=timer_factory,
    )


@pytest.fixture()
def sk_client(fake_transport, timer_factory) -> SymmetricKeyRegistration:
    return SymmetricKeyRegistration(
        "dps.example.net",
        "0ne00000A0A",
        fake_transport,
        SymmetricKeySecurityClient("device-001", KEY),
        timer_factory=timer_factory,
    )


class TestX509Registration:
    """X509Registration: certificate → transport → polling → registration state."""

    def test_sets_certificate_and_builds_request(self, x509_client, fake_transport) -> None:
        x509_client.register(MagicMock(), payload={"fw": "1.2"})

        assert fake_transport._certificate is CERT
        request = fake_transport.register_calls[0][0]
        assert request.registration_id == "device-001"
        assert request.provisioning_host == "dps.example.net"
        assert request.id_scope == "0ne00000A0A"
        assert request.payload == {"fw": "1.2"}

    def test_callback_receives_registration_state(
        self, x509_client, fake_transport, recorder, make_result
    ) -> None:
        result = make_result("assigned", assigned_hub="hub.example.net", device_id="device-001")
        assert x509_client.register(recorder) is None
        fake_transport.respond_register(None, result)

        assert recorder.calls == [(None, result.registration_state)]
        assert fake_transport.disconnect_count == 1

    def test_future_resolves_with_registration_state(
        self, x509_client, fake_transport, timer_factory, make_result
    ) -> None:
        future = x509_client.register()
        assert isinstance(future, Future)
        assert not future.done()

        fake_transport.respond_register(None, make_result("assigning"))
        timer_factory.last.fire()
        fake_transport.respond_query(None, make_result("assigned", assigned_hub="hub.example.net"))

        state = future.result(timeout=1)
        assert state.assigned_hub == "hub.example.net"

    def test_future_raises_registration_failure(self, x509_client, fake_transport, make_result) -> None:
        future = x509_client.register()
        fake_transport.respond_register(None, make_result("failed", error_code=400209))

        with pytest.raises(RegistrationFailedError):
            future.result(timeout=1)

    def test_certificate_error_is_reported(self, fake_transport, recorder) -> None:
        security = MagicMock()
        error = ArgumentError("certificate store locked")
        security.get_certificate.side_effect = lambda cb: cb(error, None)
        client = X509Registration("dps.example.net", "0ne00000A0A", fake_transport, security)

        client.register(recorder)

        assert recorder.calls == [(error, None)]
        assert fake_transport.register_calls == []

    def test_transport_error_is_reported(self, x509_client, fake_transport, recorder) -> None:
        error = TransportError("tls handshake failed")
        x509_client.register(recorder)
        fake_transport.respond_register(error, None)

        assert recorder.calls == [(error, None)]

    def test_second_register_while_active_fails_through_callback(self, x509_client, recorder) -> None:
        x509_client.register(MagicMock())
        x509_client.register(recorder)

        assert isinstance(recorder.error, RegistrationInProgressError)

    def test_cancel_rejects_registration(self, x509_client, fake_transport) -> None:
        registration = x509_client.register()
        cancelled = x509_client.cancel()

        assert cancelled.result(timeout=1) is None
        with pytest.raises(OperationCancelledError):
            registration.result(timeout=1)
        assert fake_transport.cancel_count == 1

    def test_cancel_with_callback(self, x509_client) -> None:
        callback = MagicMock()
        x509_client.register(MagicMock())
        assert x509_client.cancel(callback) is None
        callback.assert_called_once_with(None)

    def test_cancel_during_certificate_acquisition(self, fake_transport, timer_factory) -> None:
        pending: list = []
        security = MagicMock()
        security.get_certificate.side_effect = pending.append
        security.get_registration_id.return_value = "device-001"
        client = X509Registration(
            "dps.example.net", "0ne00000A0A", fake_transport, security, timer_factory=timer_factory
        )

        registration = client.register()
        cancelled = client.cancel()
        assert cancelled.result(timeout=1) is None
        assert fake_transport.cancel_count == 1

        pending[0](None, CERT)

        with pytest.raises(OperationCancelledError):
            registration.result(timeout=1)
        assert fake_transport.request_count == 0

    def test_register_during_certificate_acquisition_is_rejected(self, fake_transport, recorder) -> None:
        security = MagicMock()
        security.get_certificate.side_effect = lambda cb: None
        client = X509Registration("dps.example.net", "0ne00000A0A", fake_transport, security)

        client.register(MagicMock())
        client.register(recorder)

        assert isinstance(recorder.error, RegistrationInProgressError)

    def test_requires_host_and_scope(self, fake_transport) -> None:
        security = X509SecurityClient(CERT, "device-001")
        with pytest.raises(ArgumentError):
            X509Registration("", "0ne00000A0A", fake_transport, security)
        with pytest.raises(ArgumentError):
            X509Registration("dps.example.net", "", fake_transport, security)

    def test_create_from_x509_certificate(self) -> None:
        client = X509Registration.create_from_x509_certificate(
            "dps.example.net", "device-001", "0ne00000A0A", CERT
        )
        assert isinstance(client._transport, HttpProvisioningTransport)
        assert client._security_client.get_registration_id() == "device-001"
        assert client.polling_machine._default_polling_interval == 2.0

    def test_explicit_zero_polling_interval_is_kept(self, fake_transport) -> None:
        client = X509Registration(
            "dps.example.net",
            "0ne00000A0A",
            fake_transport,
            X509SecurityClient(CERT, "device-001"),
            polling_interval_s=0.0,
        )
        assert client.polling_machine._default_polling_interval == 0.0


class TestSymmetricKeyRegistration:
    """SymmetricKeyRegistration: SAS → transport → polling → registration state."""

    def test_sets_device_sas(self, sk_client, fake_transport) -> None:
        with patch("iot_provisioning.utils.sas.time.time", return_value=1_700_000_000):
            sk_client.register(MagicMock())

        sas = fake_transport._shared_access_signature
        assert sas.startswith("SharedAccessSignature sr=")
        fields = dict(part.split("=", 1) for part in sas.removeprefix("SharedAccessSignature ").split("&"))
        assert urllib.parse.unquote(fields["sr"]) == "0ne00000A0A/registrations/device-001"
        assert fields["skn"] == "registration"
        assert fields["se"] == str(1_700_000_000 + 3600)

    def test_registration_state_delivered(self, sk_client, fake_transport, make_result) -> None:
        future = sk_client.register()
        fake_transport.respond_register(None, make_result("assigned", device_id="device-001"))

        assert future.result(timeout=1).device_id == "device-001"

    def test_signing_error_is_reported(self, fake_transport, recorder) -> None:
        security = MagicMock()
        error = ArgumentError("key vault unavailable")
        security.create_shared_access_signature.side_effect = lambda scope, cb: cb(error, None)
        client = SymmetricKeyRegistration("dps.example.net", "0ne00000A0A", fake_transport, security)

        client.register(recorder)

        assert recorder.calls == [(error, None)]
        assert fake_transport.request_count == 0

    def test_create_from_symmetric_key_uses_config(self) -> None:
        config = ProvisioningConfig(default_polling_interval_s=5.0, sas_ttl_s=600)
        client = SymmetricKeyRegistration.create_from_symmetric_key(
            "dps.example.net", "device-001", "0ne00000A0A", KEY, config=config
        )
        assert client.polling_machine._default_polling_interval == 5.0
        assert client._security_client._ttl_s == 600


class TestSecurityClients(unittest.TestCase):
    """Credential validation of the security clients."""

    def test_x509_requires_registration_id(self) -> None:
        with self.assertRaises(ArgumentError):
            X509SecurityClient(CERT, "")

    def test_x509_requires_certificate_model(self) -> None:
        with self.assertRaises(ArgumentError):
            X509SecurityClient("device.pem", "device-001")  # type: ignore[arg-type]

    def test_x509_certificate_future(self) -> None:
        client = X509SecurityClient(CERT, "device-001")
        assert client.get_certificate().result(timeout=1) is CERT

    def test_symmetric_key_rejects_non_base64(self) -> None:
        with self.assertRaises(ArgumentError):
            SymmetricKeySecurityClient("device-001", "not base64!")

    def test_symmetric_key_rejects_empty_scope(self) -> None:
        client = SymmetricKeySecurityClient("device-001", KEY)
        with self.assertRaises(ArgumentError):
            client.create_shared_access_signature("").result(timeout=1)
