"""
Keep-alive sender tests.
"""
from unittest.mock import Mock

import pytest

from mqtt_handshake import AckDispatcher, ConnectPhase, KeepAliveMonitor, StatusCode


@pytest.fixture
def clock():
    return Mock(return_value=100.0)


@pytest.fixture
def monitor(writer, clock):
    return KeepAliveMonitor(writer, clock=clock)


@pytest.fixture
def connected(make_session):
    session = make_session(keepalive_interval=60, connect_phase=ConnectPhase.MQTT_PENDING)
    session.last_sent = 0.0
    return session


class TestSendPing:

    def test_sets_ping_outstanding(self, monitor, transport, connected):
        rc = monitor.send_ping(connected)

        assert rc == StatusCode.SUCCESS
        assert connected.ping_outstanding is True
        assert connected.last_ping_sent == 100.0
        assert transport.packets == [b"\xc0\x00"]

    def test_failed_send_leaves_flag(self, monitor, transport, connected):
        transport.rc = StatusCode.SOCKET_ERROR

        rc = monitor.send_ping(connected)

        assert rc == StatusCode.PACKET_SEND_ERROR
        assert connected.ping_outstanding is False

    def test_pingresp_clears_flag(self, monitor, registry, connected):
        registry.register(connected)
        monitor.send_ping(connected)

        AckDispatcher(registry).handle_pingresp(connected.socket_handle)

        assert connected.ping_outstanding is False


class TestPingDue:

    def test_due_after_idle_interval(self, monitor, connected):
        assert monitor.ping_due(connected) is True

    def test_not_due_before_interval(self, monitor, connected):
        connected.last_sent = 50.0

        assert monitor.ping_due(connected) is False

    def test_not_due_while_outstanding(self, monitor, connected):
        connected.ping_outstanding = True

        assert monitor.ping_due(connected) is False

    def test_disabled_keepalive(self, monitor, connected):
        connected.keepalive_interval = 0

        assert monitor.ping_due(connected) is False

    @pytest.mark.parametrize("phase", [ConnectPhase.INIT, ConnectPhase.TCP_PENDING, ConnectPhase.TLS_PENDING])
    def test_not_due_before_connect_sent(self, monitor, connected, phase):
        connected.connect_phase = phase

        assert monitor.ping_due(connected) is False


class TestOverdue:

    def test_overdue(self, monitor, connected):
        connected.ping_outstanding = True
        connected.last_ping_sent = 30.0

        assert monitor.is_overdue(connected) is True

    def test_within_interval(self, monitor, connected):
        connected.ping_outstanding = True
        connected.last_ping_sent = 50.0

        assert monitor.is_overdue(connected) is False

    def test_no_ping_outstanding(self, monitor, connected):
        connected.last_ping_sent = 0.0

        assert monitor.is_overdue(connected) is False
