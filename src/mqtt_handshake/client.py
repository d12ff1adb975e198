"""
Protocol client wiring the handshake components together.

MQTTProtocolClient owns one registry, transport stack, packet writer and the
protocol components built on them. It is single-threaded and non-blocking:
the application runs its own poll loop and calls resume(), dispatch() and the
keep-alive helpers as sockets become ready.
"""
import logging
from typing import Any, Optional, Sequence

from paho.mqtt.properties import Properties
from paho.mqtt.subscribeoptions import SubscribeOptions

from .core.config import ConnectionConfig
from .core.log import MessageLogger
from .core.models import ProtocolVersion, Session, StatusCode, Suback, Unsuback
from .core.registry import ClientRegistry
from .packet.writer import MAX_MSG_ID, PacketWriter
from .protocol.connection import ConnectionStateMachine
from .protocol.dispatcher import AckDispatcher
from .protocol.keepalive import KeepAliveMonitor
from .protocol.subscription import SubscriptionRequestIssuer
from .transport.socket_transport import SocketTransport
from .transport.tls import TLSTransport


class MQTTProtocolClient:
    """
    Facade over the connect state machine, subscription issuer, ack dispatcher
    and keep-alive monitor.

    Every collaborator can be injected; defaults use the real socket and TLS
    transports.
    """

    def __init__(
        self,
        registry: Optional[ClientRegistry] = None,
        sockets: Optional[SocketTransport] = None,
        tls: Optional[TLSTransport] = None,
        writer: Optional[PacketWriter] = None,
        logger: Optional[logging.LoggerAdapter] = None,
    ):
        """
        Initialize the protocol client.

        Args:
            registry: Socket-to-session registry (new ClientRegistry if None)
            sockets: TCP transport (SocketTransport if None)
            tls: TLS transport (TLSTransport if None)
            writer: Packet writer (PacketWriter over sockets if None)
            logger: Custom logger adapter (creates default if None)
        """
        self.registry = registry if registry is not None else ClientRegistry()
        self.sockets = sockets or SocketTransport()
        self.tls = tls or TLSTransport()
        self.writer = writer or PacketWriter(self.sockets)

        self.connection = ConnectionStateMachine(self.sockets, self.tls, self.writer)
        self.subscriptions = SubscriptionRequestIssuer(self.writer)
        self.dispatcher = AckDispatcher(self.registry)
        self.keepalive = KeepAliveMonitor(self.writer)

        self.logger = logger or MessageLogger(
            logging.getLogger(__name__),
            extra={"component": "protocol_client"},
            merge_extra=True,
        )

    def connect(
        self,
        session: Session,
        endpoint: str,
        use_tls: bool = False,
        mqtt_version: int = ProtocolVersion.MQTTv311,
        connect_properties: Optional[Properties] = None,
        will_properties: Optional[Properties] = None,
    ) -> StatusCode:
        """
        Start connecting a session and register it once it has a socket.

        Returns:
            The state machine's status (see ConnectionStateMachine.connect)
        """
        if session.net.stream is not None:
            self.close(session)
        rc = self.connection.connect(
            endpoint, session, use_tls, mqtt_version, connect_properties, will_properties
        )
        if session.net.stream is not None and (rc == StatusCode.SUCCESS or rc.is_pending):
            self.registry.register(session)
        elif session.net.stream is not None:
            self.close(session)
        self.logger.info(
            f"Connect to {endpoint} returned {rc!r}",
            extra={"client_id": session.client_id, "phase": session.connect_phase.name},
        )
        return rc

    def connect_with_config(self, config: ConnectionConfig, session: Optional[Session] = None):
        """
        Connect using a ConnectionConfig.

        Returns:
            Tuple of (StatusCode, Session)
        """
        session = session or Session.from_config(config)
        rc = self.connect(session, config.endpoint, config.use_tls, config.mqtt_version)
        return rc, session

    def resume(self, session: Session) -> StatusCode:
        rc = self.connection.resume(session)
        if rc != StatusCode.SUCCESS and not rc.is_pending and session.net.stream is not None:
            self.close(session)
        return rc

    def subscribe(
        self,
        session: Session,
        topics: Sequence[str],
        qos_list: Sequence[int],
        msg_id: Optional[int] = None,
        options: Optional[Sequence[SubscribeOptions]] = None,
        properties: Optional[Properties] = None,
    ) -> StatusCode:
        """Send a SUBSCRIBE; a message id is allocated when none is given."""
        msg_id = msg_id if msg_id is not None else self.next_msg_id(session)
        return self.subscriptions.subscribe(session, topics, qos_list, msg_id, options, properties)

    def unsubscribe(
        self,
        session: Session,
        topics: Sequence[str],
        msg_id: Optional[int] = None,
        properties: Optional[Properties] = None,
    ) -> StatusCode:
        """Send an UNSUBSCRIBE; a message id is allocated when none is given."""
        msg_id = msg_id if msg_id is not None else self.next_msg_id(session)
        return self.subscriptions.unsubscribe(session, topics, msg_id, properties)

    def handle_pingresp(self, sock: int) -> StatusCode:
        return self.dispatcher.handle_pingresp(sock)

    def handle_suback(self, suback: Suback, sock: int) -> StatusCode:
        return self.dispatcher.handle_suback(suback, sock)

    def handle_unsuback(self, unsuback: Unsuback, sock: int) -> StatusCode:
        return self.dispatcher.handle_unsuback(unsuback, sock)

    def dispatch(self, packet_type: int, packet: Any, sock: int) -> StatusCode:
        return self.dispatcher.dispatch(packet_type, packet, sock)

    def service_keepalive(self, session: Session) -> StatusCode:
        """Send a PINGREQ if one is due; SUCCESS when nothing needed sending."""
        if self.keepalive.is_overdue(session):
            session.good = False
            return StatusCode.SOCKET_ERROR
        if self.keepalive.ping_due(session):
            return self.keepalive.send_ping(session)
        return StatusCode.SUCCESS

    def next_msg_id(self, session: Session) -> int:
        """Allocate the session's next packet identifier (1..65535, wrapping)."""
        session.msg_id = session.msg_id % MAX_MSG_ID + 1
        return session.msg_id

    def close(self, session: Session) -> None:
        """Deregister a session, close its socket and reset its handshake."""
        self.registry.deregister(session)
        self.sockets.close(session.net)
        session.reset_phase()
        session.good = False
        session.ping_outstanding = False
        self.logger.debug("Session closed", extra={"client_id": session.client_id})

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for session in self.registry.sessions():
            self.close(session)
