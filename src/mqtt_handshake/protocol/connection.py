"""
Connection Handshake State Machine.

Drives one session through TCP connect, optional TLS handshake and the MQTT
CONNECT send without ever blocking. Each step that cannot finish immediately
records its phase on the session and returns a pending status; the caller polls
the socket and calls resume() when it becomes ready.

Phases:
    INIT -> TCP_PENDING -> TLS_PENDING (TLS only) -> MQTT_PENDING

A step that completes at once still records its phase, so a TLS connect always
passes through TLS_PENDING before MQTT_PENDING.

MQTT_PENDING means CONNECT has been sent and the CONNACK is awaited; reading
the CONNACK is not part of this module. Every terminal failure puts the session
back in INIT so the whole sequence can be retried.

Example:
    >>> machine = ConnectionStateMachine(SocketTransport(), TLSTransport(), writer)
    >>> rc = machine.connect("broker.example.com:8883", session, use_tls=True)
    >>> while rc.is_pending:
    ...     wait_until_ready(session.net.stream)
    ...     rc = machine.resume(session)
"""
import logging
from typing import Optional

from paho.mqtt.properties import Properties

from ..core.address import parse_address
from ..core.log import session_logger
from ..core.models import ConnectPhase, HandshakeContext, ProtocolVersion, Session, StatusCode

logger = logging.getLogger(__name__)


class ConnectionStateMachine:
    """
    Resumable, non-blocking connect sequence.

    Args:
        sockets: TCP transport (open, connect_complete), e.g. SocketTransport
        tls: TLS transport (wrap, handshake), e.g. TLSTransport
        writer: Packet writer providing send_connect, e.g. PacketWriter
    """

    def __init__(self, sockets, tls, writer):
        self._sockets = sockets
        self._tls = tls
        self._writer = writer
        self._resumers = {
            ConnectPhase.INIT: self._resume_idle,
            ConnectPhase.TCP_PENDING: self._resume_tcp,
            ConnectPhase.TLS_PENDING: self._resume_tls,
            ConnectPhase.MQTT_PENDING: self._resume_mqtt,
        }

    def connect(
        self,
        endpoint: str,
        session: Session,
        use_tls: bool = False,
        mqtt_version: int = ProtocolVersion.MQTTv311,
        connect_properties: Optional[Properties] = None,
        will_properties: Optional[Properties] = None,
    ) -> StatusCode:
        """
        Start a connect attempt and advance it as far as possible.

        Args:
            endpoint: "host[:port]" or "[ipv6][:port]"
            session: Session to connect; its phase should be INIT
            use_tls: Run a TLS handshake after the TCP connect
            mqtt_version: Protocol level sent in CONNECT (3, 4 or 5)
            connect_properties: MQTT 5.0 CONNECT properties
            will_properties: MQTT 5.0 will properties

        Returns:
            SUCCESS when CONNECT was sent, TCP_IN_PROGRESS or TLS_INTERRUPTED
            when the attempt is waiting on the socket, SOCKET_ERROR or
            PACKET_SEND_ERROR on failure

        Raises:
            ValueError: If the endpoint is empty or the version is not 3, 4 or 5
        """
        log = session_logger(logger, session)
        if session.connect_phase is not ConnectPhase.INIT:
            log.warning(
                f"Connect requested while in phase {session.connect_phase.name}; restarting handshake"
            )
            session.reset_phase()

        session.good = True
        address = parse_address(endpoint)
        session.mqtt_version = ProtocolVersion(mqtt_version)
        session.handshake = HandshakeContext(
            address=address,
            use_tls=use_tls,
            mqtt_version=session.mqtt_version,
            connect_properties=connect_properties,
            will_properties=will_properties,
        )
        log.debug(f"Connecting to {address.host}:{address.port} (tls={use_tls}, version={int(mqtt_version)})")

        rc, sock = self._sockets.open(address.host, address.port)
        if rc == StatusCode.TCP_IN_PROGRESS:
            session.net.socket = sock
            self._enter(session, ConnectPhase.TCP_PENDING)
            return rc
        if rc != StatusCode.SUCCESS:
            session.good = False
            log.error(f"TCP connect to {address.host}:{address.port} failed ({rc!r})")
            return rc

        session.net.socket = sock
        self._enter(session, ConnectPhase.TCP_PENDING)
        return self._after_tcp(session)

    def resume(self, session: Session) -> StatusCode:
        """
        Continue a pending handshake once its socket is ready.

        Returns:
            The same codes as connect(); SUCCESS for a session already in
            MQTT_PENDING, SOCKET_ERROR for a session with no attempt in flight
        """
        return self._resumers[session.connect_phase](session)

    def _resume_idle(self, session: Session) -> StatusCode:
        session_logger(logger, session).warning("Resume requested with no connect attempt in flight")
        return StatusCode.SOCKET_ERROR

    def _resume_tcp(self, session: Session) -> StatusCode:
        rc = self._sockets.connect_complete(session.net.socket)
        if rc == StatusCode.TCP_IN_PROGRESS:
            return rc
        if rc != StatusCode.SUCCESS:
            return self._fail(session, rc, "TCP connect")
        return self._after_tcp(session)

    def _resume_tls(self, session: Session) -> StatusCode:
        return self._tls_handshake(session)

    def _resume_mqtt(self, session: Session) -> StatusCode:
        return StatusCode.SUCCESS

    def _after_tcp(self, session: Session) -> StatusCode:
        context = session.handshake
        if not context.use_tls:
            return self._send_connect(session)

        if not self._tls.wrap(session.net, session.tls_options, context.address.host):
            return self._fail(session, StatusCode.SOCKET_ERROR, "TLS configuration")
        self._enter(session, ConnectPhase.TLS_PENDING)
        return self._tls_handshake(session)

    def _tls_handshake(self, session: Session) -> StatusCode:
        rc = self._tls.handshake(session.net)
        if rc == StatusCode.TLS_INTERRUPTED:
            return rc
        if rc != StatusCode.SUCCESS:
            return self._fail(session, rc, "TLS handshake")
        return self._send_connect(session)

    def _send_connect(self, session: Session) -> StatusCode:
        context = session.handshake
        rc = self._writer.send_connect(
            session, context.mqtt_version, context.connect_properties, context.will_properties
        )
        if rc != StatusCode.SUCCESS:
            return self._fail(session, rc, "CONNECT send")
        self._enter(session, ConnectPhase.MQTT_PENDING)
        return StatusCode.SUCCESS

    def _enter(self, session: Session, phase: ConnectPhase) -> None:
        previous = session.connect_phase
        session.advance(phase)
        session_logger(logger, session).debug(f"Handshake phase {previous.name} -> {phase.name}")

    def _fail(self, session: Session, rc: StatusCode, step: str) -> StatusCode:
        session_logger(logger, session).error(
            f"{step} failed in phase {session.connect_phase.name} ({rc!r}); resetting handshake"
        )
        session.reset_phase()
        session.good = False
        return rc
