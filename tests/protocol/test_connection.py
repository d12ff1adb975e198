"""
Connect handshake state machine tests.

Socket, TLS and packet collaborators are mocks, so each test pins the exact
outcome of every step and checks the phase recorded on the session.
"""
from unittest.mock import Mock

import pytest

from mqtt_handshake import (
    ConnectionStateMachine,
    ConnectPhase,
    ProtocolVersion,
    StatusCode,
)


@pytest.fixture
def sockets(fake_socket):
    mock = Mock()
    mock.open.return_value = (StatusCode.SUCCESS, fake_socket(fd=6))
    mock.connect_complete.return_value = StatusCode.SUCCESS
    return mock


@pytest.fixture
def tls():
    mock = Mock()
    mock.wrap.return_value = True
    mock.handshake.return_value = StatusCode.SUCCESS
    return mock


@pytest.fixture
def packets():
    mock = Mock()
    mock.send_connect.return_value = StatusCode.SUCCESS
    return mock


@pytest.fixture
def machine(sockets, tls, packets):
    return ConnectionStateMachine(sockets, tls, packets)


@pytest.fixture
def fresh_session(make_session):
    return make_session(fd=None)


# ============================================================================
# CONNECT SCENARIOS
# ============================================================================


class TestConnect:

    def test_tls_endpoint_with_pending_tcp(self, machine, sockets, tls, packets, fresh_session, fake_socket):
        """A pending TCP connect stops the attempt before TLS or CONNECT."""
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))

        rc = machine.connect("broker.example.com:8883", fresh_session, use_tls=True)

        assert rc == StatusCode.TCP_IN_PROGRESS
        assert fresh_session.connect_phase is ConnectPhase.TCP_PENDING
        assert fresh_session.good is True
        sockets.open.assert_called_once_with("broker.example.com", 8883)
        tls.wrap.assert_not_called()
        tls.handshake.assert_not_called()
        packets.send_connect.assert_not_called()

    def test_plain_endpoint_connects_immediately(self, machine, sockets, tls, packets, fresh_session):
        rc = machine.connect("127.0.0.1", fresh_session, use_tls=False, mqtt_version=ProtocolVersion.MQTTv311)

        assert rc == StatusCode.SUCCESS
        assert fresh_session.connect_phase is ConnectPhase.MQTT_PENDING
        sockets.open.assert_called_once_with("127.0.0.1", 1883)
        tls.wrap.assert_not_called()
        packets.send_connect.assert_called_once_with(fresh_session, ProtocolVersion.MQTTv311, None, None)

    def test_properties_passed_to_connect(self, machine, packets, fresh_session):
        connect_properties, will_properties = object(), object()

        machine.connect(
            "127.0.0.1", fresh_session,
            mqtt_version=ProtocolVersion.MQTTv5,
            connect_properties=connect_properties,
            will_properties=will_properties,
        )

        packets.send_connect.assert_called_once_with(
            fresh_session, ProtocolVersion.MQTTv5, connect_properties, will_properties
        )
        assert fresh_session.mqtt_version is ProtocolVersion.MQTTv5

    def test_tls_handshake_completes_immediately(self, machine, tls, packets, fresh_session):
        fresh_session.advance = Mock(wraps=fresh_session.advance)

        rc = machine.connect("[::1]:8883", fresh_session, use_tls=True)

        assert rc == StatusCode.SUCCESS
        assert fresh_session.connect_phase is ConnectPhase.MQTT_PENDING
        assert [c.args[0] for c in fresh_session.advance.call_args_list] == [
            ConnectPhase.TCP_PENDING,
            ConnectPhase.TLS_PENDING,
            ConnectPhase.MQTT_PENDING,
        ]
        tls.wrap.assert_called_once_with(fresh_session.net, fresh_session.tls_options, "::1")
        packets.send_connect.assert_called_once()

    def test_tls_handshake_interrupted(self, machine, tls, packets, fresh_session):
        tls.handshake.return_value = StatusCode.TLS_INTERRUPTED
        fresh_session.advance = Mock(wraps=fresh_session.advance)

        rc = machine.connect("broker.example.com:8883", fresh_session, use_tls=True)

        assert rc == StatusCode.TLS_INTERRUPTED
        assert fresh_session.connect_phase is ConnectPhase.TLS_PENDING
        assert [c.args[0] for c in fresh_session.advance.call_args_list] == [
            ConnectPhase.TCP_PENDING,
            ConnectPhase.TLS_PENDING,
        ]
        packets.send_connect.assert_not_called()

    def test_handshake_context_recorded(self, machine, fresh_session):
        machine.connect("broker.example.com:8883", fresh_session, use_tls=True)

        context = fresh_session.handshake
        assert context.address.host == "broker.example.com"
        assert context.address.port == 8883
        assert context.use_tls is True


# ============================================================================
# CONNECT FAILURES
# ============================================================================


class TestConnectFailures:
    """Every failure leaves the session in INIT and unhealthy."""

    def test_tcp_error(self, machine, sockets, fresh_session):
        sockets.open.return_value = (StatusCode.SOCKET_ERROR, None)

        rc = machine.connect("127.0.0.1:1", fresh_session)

        assert rc == StatusCode.SOCKET_ERROR
        assert fresh_session.connect_phase is ConnectPhase.INIT
        assert fresh_session.good is False
        assert fresh_session.net.socket is None

    def test_tls_configuration_failure(self, machine, tls, packets, fresh_session):
        tls.wrap.return_value = False

        rc = machine.connect("broker.example.com:8883", fresh_session, use_tls=True)

        assert rc == StatusCode.SOCKET_ERROR
        assert fresh_session.connect_phase is ConnectPhase.INIT
        assert fresh_session.good is False
        tls.handshake.assert_not_called()
        packets.send_connect.assert_not_called()

    def test_tls_handshake_failure(self, machine, tls, packets, fresh_session):
        tls.handshake.return_value = StatusCode.SOCKET_ERROR

        rc = machine.connect("broker.example.com:8883", fresh_session, use_tls=True)

        assert rc == StatusCode.SOCKET_ERROR
        assert fresh_session.connect_phase is ConnectPhase.INIT
        packets.send_connect.assert_not_called()

    def test_connect_packet_failure(self, machine, packets, fresh_session):
        packets.send_connect.return_value = StatusCode.PACKET_SEND_ERROR

        rc = machine.connect("127.0.0.1", fresh_session)

        assert rc == StatusCode.PACKET_SEND_ERROR
        assert fresh_session.connect_phase is ConnectPhase.INIT
        assert fresh_session.good is False

    def test_empty_endpoint(self, machine, sockets, fresh_session):
        with pytest.raises(ValueError):
            machine.connect("", fresh_session)

        sockets.open.assert_not_called()

    def test_unknown_protocol_version(self, machine, sockets, fresh_session):
        with pytest.raises(ValueError):
            machine.connect("127.0.0.1", fresh_session, mqtt_version=7)

        sockets.open.assert_not_called()

    def test_connect_restarts_non_initial_session(self, machine, sockets, fresh_session, fake_socket):
        fresh_session.connect_phase = ConnectPhase.MQTT_PENDING
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))

        rc = machine.connect("127.0.0.1", fresh_session)

        assert rc == StatusCode.TCP_IN_PROGRESS
        assert fresh_session.connect_phase is ConnectPhase.TCP_PENDING


# ============================================================================
# RESUME
# ============================================================================


class TestResume:

    def test_full_tls_sequence(self, machine, sockets, tls, packets, fresh_session, fake_socket):
        """TCP_PENDING -> TLS_PENDING -> MQTT_PENDING across polls."""
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))
        sockets.connect_complete.return_value = StatusCode.TCP_IN_PROGRESS
        tls.handshake.return_value = StatusCode.TLS_INTERRUPTED
        phases = []

        rc = machine.connect("broker.example.com:8883", fresh_session, use_tls=True)
        phases.append(fresh_session.connect_phase)

        rc = machine.resume(fresh_session)
        assert rc == StatusCode.TCP_IN_PROGRESS
        phases.append(fresh_session.connect_phase)

        sockets.connect_complete.return_value = StatusCode.SUCCESS
        rc = machine.resume(fresh_session)
        assert rc == StatusCode.TLS_INTERRUPTED
        phases.append(fresh_session.connect_phase)

        rc = machine.resume(fresh_session)
        assert rc == StatusCode.TLS_INTERRUPTED
        phases.append(fresh_session.connect_phase)

        tls.handshake.return_value = StatusCode.SUCCESS
        rc = machine.resume(fresh_session)
        assert rc == StatusCode.SUCCESS
        phases.append(fresh_session.connect_phase)

        assert phases == [
            ConnectPhase.TCP_PENDING,
            ConnectPhase.TCP_PENDING,
            ConnectPhase.TLS_PENDING,
            ConnectPhase.TLS_PENDING,
            ConnectPhase.MQTT_PENDING,
        ]
        sockets.connect_complete.assert_called_with(fresh_session.net.socket)
        tls.wrap.assert_called_once()
        packets.send_connect.assert_called_once()

    def test_tls_never_skipped(self, machine, sockets, tls, packets, fresh_session, fake_socket):
        """With TLS requested, CONNECT is never sent before the handshake completes."""
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))
        tls.handshake.return_value = StatusCode.TLS_INTERRUPTED

        machine.connect("broker.example.com:8883", fresh_session, use_tls=True)
        for _ in range(5):
            machine.resume(fresh_session)

        assert fresh_session.connect_phase is ConnectPhase.TLS_PENDING
        packets.send_connect.assert_not_called()

    def test_tcp_completion_without_tls(self, machine, sockets, tls, packets, fresh_session, fake_socket):
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))
        machine.connect("127.0.0.1", fresh_session)

        rc = machine.resume(fresh_session)

        assert rc == StatusCode.SUCCESS
        assert fresh_session.connect_phase is ConnectPhase.MQTT_PENDING
        tls.wrap.assert_not_called()

    def test_tcp_failure_on_resume(self, machine, sockets, fresh_session, fake_socket):
        sockets.open.return_value = (StatusCode.TCP_IN_PROGRESS, fake_socket(fd=6))
        machine.connect("127.0.0.1", fresh_session)
        sockets.connect_complete.return_value = StatusCode.SOCKET_ERROR

        rc = machine.resume(fresh_session)

        assert rc == StatusCode.SOCKET_ERROR
        assert fresh_session.connect_phase is ConnectPhase.INIT
        assert fresh_session.good is False

    def test_resume_without_attempt(self, machine, sockets, fresh_session):
        assert machine.resume(fresh_session) == StatusCode.SOCKET_ERROR
        sockets.connect_complete.assert_not_called()

    def test_resume_after_connect_sent(self, machine, packets, fresh_session):
        machine.connect("127.0.0.1", fresh_session)

        assert machine.resume(fresh_session) == StatusCode.SUCCESS
        packets.send_connect.assert_called_once()

    def test_retry_after_failure(self, machine, sockets, packets, fresh_session):
        packets.send_connect.return_value = StatusCode.PACKET_SEND_ERROR
        machine.connect("127.0.0.1", fresh_session)

        packets.send_connect.return_value = StatusCode.SUCCESS
        rc = machine.connect("127.0.0.1", fresh_session)

        assert rc == StatusCode.SUCCESS
        assert fresh_session.connect_phase is ConnectPhase.MQTT_PENDING
        assert fresh_session.good is True
