"""
Data Models for the MQTT Connection Handshake.

This module defines the enumerations and records shared by every layer of the
handshake core:

    - StatusCode: Return codes of every protocol operation
    - ConnectPhase: Handshake phases of a session (INIT -> TCP -> TLS -> MQTT)
    - ProtocolVersion: MQTT protocol levels understood by the packet writer
    - NetworkHandles: Socket, TLS socket and outbound buffer of a session
    - Session: Client-side record of one broker connection
    - Suback / Unsuback: Ephemeral acknowledgments handed over by the decoder

The session only records state. Phase changes go through Session.advance(),
which enforces that a handshake moves forward or falls back to INIT.
"""
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

from .address import ParsedAddress
from .exceptions import InvalidPhaseTransition


class StatusCode(IntEnum):
    SUCCESS = 0
    COMPLETE = 0
    SOCKET_ERROR = -1
    PACKET_SEND_ERROR = -2
    TCP_IN_PROGRESS = -3
    TLS_INTERRUPTED = -22

    @property
    def is_pending(self) -> bool:
        return self in (StatusCode.TCP_IN_PROGRESS, StatusCode.TLS_INTERRUPTED)


class ConnectPhase(IntEnum):
    INIT = 0
    TCP_PENDING = 1
    TLS_PENDING = 2
    MQTT_PENDING = 3


class ProtocolVersion(IntEnum):
    MQTTv31 = 3
    MQTTv311 = 4
    MQTTv5 = 5


@dataclass
class NetworkHandles:
    """Transport objects owned by a session while it is connected."""

    socket: Any = None
    tls: Any = None
    outbound: bytearray = field(default_factory=bytearray)

    @property
    def handle(self) -> Optional[int]:
        """File descriptor of the stream; wrapping detaches the raw socket."""
        stream = self.stream
        if stream is None:
            return None
        return stream.fileno()

    @property
    def stream(self) -> Any:
        """The object writes go through: the TLS socket once wrapped."""
        return self.tls if self.tls is not None else self.socket


@dataclass(frozen=True)
class WillMessage:
    topic: str
    payload: bytes = b""
    qos: int = 0
    retain: bool = False


@dataclass(frozen=True)
class HandshakeContext:
    """Parameters of the in-flight connect attempt, kept for resumption."""

    address: ParsedAddress
    use_tls: bool
    mqtt_version: ProtocolVersion
    connect_properties: Any = None
    will_properties: Any = None


@dataclass
class Session:
    """
    Client-side record of one broker connection.

    Attributes:
        client_id: MQTT client identifier sent in CONNECT
        net: Transport handles; the socket handle identifies the session in
             the registry while it is valid
        connect_phase: Current handshake phase, changed only via advance()
                       and reset_phase()
        good: Connection-healthy flag, set optimistically when a connect starts
        ping_outstanding: True while a PINGREQ awaits its PINGRESP
        tls_options: TLS settings used when a connect requests TLS
        handshake: Context of the current connect attempt
    """

    client_id: str
    net: NetworkHandles = field(default_factory=NetworkHandles)
    connect_phase: ConnectPhase = ConnectPhase.INIT
    good: bool = False
    ping_outstanding: bool = False
    tls_options: Any = None
    username: Optional[str] = None
    password: Optional[str] = None
    will: Optional[WillMessage] = None
    keepalive_interval: int = 60
    clean_session: bool = True
    mqtt_version: ProtocolVersion = ProtocolVersion.MQTTv311
    handshake: Optional[HandshakeContext] = None
    last_sent: float = field(default_factory=time.monotonic)
    last_ping_sent: Optional[float] = None
    msg_id: int = 0

    @classmethod
    def from_config(cls, config) -> "Session":
        """Build a session from a ConnectionConfig."""
        password = config.password.get_secret_value() if config.password else None
        return cls(
            client_id=config.client_id,
            tls_options=config.tls,
            username=config.username,
            password=password,
            keepalive_interval=config.keepalive,
            clean_session=config.clean_session,
            mqtt_version=ProtocolVersion(config.mqtt_version),
        )

    @property
    def socket_handle(self) -> Optional[int]:
        return self.net.handle

    def advance(self, phase: ConnectPhase) -> None:
        """
        Move the handshake to a later phase.

        Raises:
            InvalidPhaseTransition: If the phase is not strictly after the
                                    current one (use reset_phase() to go back),
                                    or would skip TLS_PENDING on a TLS connect
        """
        if phase <= self.connect_phase:
            raise InvalidPhaseTransition(
                f"cannot move from {self.connect_phase.name} to {phase.name}",
                client_id=self.client_id,
                socket=self.socket_handle,
            )
        if (
            phase > ConnectPhase.TLS_PENDING > self.connect_phase
            and self.handshake is not None
            and self.handshake.use_tls
        ):
            raise InvalidPhaseTransition(
                f"cannot skip TLS_PENDING when moving from {self.connect_phase.name} to {phase.name}",
                client_id=self.client_id,
                socket=self.socket_handle,
            )
        self.connect_phase = phase

    def reset_phase(self) -> None:
        self.connect_phase = ConnectPhase.INIT


class AckPacket:
    """
    Base for decoded acknowledgment packets.

    The decoding layer owns an ack until it hands it to the dispatcher, which
    releases it once processed. Releasing drops the payload; only the first
    call has any effect.
    """

    def __init__(self, msg_id: int, reason_codes: Optional[list[int]] = None, properties: Any = None):
        self.msg_id = msg_id
        self.reason_codes = list(reason_codes or [])
        self.properties = properties
        self.released = False

    def release(self) -> bool:
        if self.released:
            return False
        self.reason_codes = []
        self.properties = None
        self.released = True
        return True

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"msg_id={self.msg_id!r}, "
            f"reason_codes={self.reason_codes!r}, "
            f"released={self.released!r}"
            f")"
        )


class Suback(AckPacket):
    @property
    def granted_qos(self) -> list[int]:
        return [code for code in self.reason_codes if code < 0x80]

    @property
    def failures(self) -> list[int]:
        return [code for code in self.reason_codes if code >= 0x80]


class Unsuback(AckPacket):
    pass
