"""
Outbound Control Packet Encoding.

This module serializes the control packets the handshake core sends and hands
the bytes to the socket transport:

    - CONNECT (MQTT 3.1, 3.1.1 and 5.0, with will message and credentials)
    - SUBSCRIBE / UNSUBSCRIBE
    - PINGREQ

Fixed header, remaining length and length-prefixed strings are framed here.
MQTT 5.0 property blocks and subscription option bytes are produced by
paho-mqtt's Properties and SubscribeOptions classes.

Encoding problems raise PacketEncodingError inside the encoders; PacketWriter
turns them, and any transport failure, into StatusCode.PACKET_SEND_ERROR.
"""
import logging
import struct
import time
from typing import Optional, Sequence

from paho.mqtt.packettypes import PacketTypes
from paho.mqtt.properties import Properties
from paho.mqtt.subscribeoptions import SubscribeOptions

from ..core.exceptions import PacketEncodingError
from ..core.log import session_logger
from ..core.models import ProtocolVersion, Session, StatusCode

logger = logging.getLogger(__name__)

CONNECT = PacketTypes.CONNECT << 4
SUBSCRIBE = (PacketTypes.SUBSCRIBE << 4) | 0x02
UNSUBSCRIBE = (PacketTypes.UNSUBSCRIBE << 4) | 0x02
PINGREQ = PacketTypes.PINGREQ << 4

MAX_REMAINING_LENGTH = 268_435_455
MAX_MSG_ID = 65535


def pack_remaining_length(remaining_length: int) -> bytes:
    """Encode the fixed-header remaining length as a variable byte integer."""
    if not 0 <= remaining_length <= MAX_REMAINING_LENGTH:
        raise PacketEncodingError(f"remaining length {remaining_length} out of range")
    packet = bytearray()
    while True:
        byte = remaining_length % 128
        remaining_length = remaining_length // 128
        if remaining_length > 0:
            byte |= 0x80
        packet.append(byte)
        if remaining_length == 0:
            return bytes(packet)


def pack_str16(data: str | bytes) -> bytes:
    """Encode a string or binary field with its two-byte length prefix."""
    if isinstance(data, str):
        try:
            data = data.encode("utf-8")
        except UnicodeEncodeError as e:
            raise PacketEncodingError(f"string is not valid UTF-8: {e}")
    if len(data) > 65535:
        raise PacketEncodingError(f"field of {len(data)} bytes exceeds 65535")
    return struct.pack("!H", len(data)) + data


def _pack_properties(properties: Optional[Properties], version: int) -> bytes:
    if version < ProtocolVersion.MQTTv5:
        return b""
    if properties is None:
        return b"\x00"
    return properties.pack()


def _frame(command: int, body: bytes) -> bytes:
    return bytes([command]) + pack_remaining_length(len(body)) + body


def _check_qos(qos: int) -> None:
    if qos not in (0, 1, 2):
        raise PacketEncodingError(f"invalid QoS {qos!r}")


def _check_msg_id(msg_id: int) -> None:
    if not 1 <= msg_id <= MAX_MSG_ID:
        raise PacketEncodingError(f"message identifier {msg_id} out of range", msg_id=msg_id)


def encode_connect(
    session: Session,
    version: int,
    connect_properties: Optional[Properties] = None,
    will_properties: Optional[Properties] = None,
) -> bytes:
    """
    Serialize a CONNECT packet for a session.

    Args:
        session: Supplies client id, credentials, will, keep-alive and clean flag
        version: Protocol level (3, 4 or 5)
        connect_properties: MQTT 5.0 CONNECT properties (ignored before 5.0)
        will_properties: MQTT 5.0 will properties (ignored before 5.0)

    Returns:
        The complete packet

    Raises:
        PacketEncodingError: On invalid version, keep-alive, will QoS or field sizes
    """
    if version not in (ProtocolVersion.MQTTv31, ProtocolVersion.MQTTv311, ProtocolVersion.MQTTv5):
        raise PacketEncodingError(f"unsupported protocol version {version!r}", client_id=session.client_id)
    if not 0 <= session.keepalive_interval <= 65535:
        raise PacketEncodingError(
            f"keep-alive {session.keepalive_interval} out of range", client_id=session.client_id
        )

    protocol = b"MQIsdp" if version == ProtocolVersion.MQTTv31 else b"MQTT"

    connect_flags = 0
    if session.clean_session:
        connect_flags |= 0x02
    will = session.will
    if will is not None:
        _check_qos(will.qos)
        connect_flags |= 0x04 | ((will.qos & 0x03) << 3) | ((1 if will.retain else 0) << 5)
    if session.username is not None:
        connect_flags |= 0x80
    send_password = session.password is not None and (
        session.username is not None or version == ProtocolVersion.MQTTv5
    )
    if send_password:
        connect_flags |= 0x40

    body = bytearray()
    body += pack_str16(protocol)
    body += struct.pack("!BBH", version, connect_flags, session.keepalive_interval)
    body += _pack_properties(connect_properties, version)
    body += pack_str16(session.client_id)
    if will is not None:
        body += _pack_properties(will_properties, version)
        body += pack_str16(will.topic)
        body += pack_str16(will.payload)
    if session.username is not None:
        body += pack_str16(session.username)
    if send_password:
        body += pack_str16(session.password)

    return _frame(CONNECT, bytes(body))


def encode_subscribe(
    topics: Sequence[str],
    qos_list: Sequence[int],
    msg_id: int,
    version: int,
    options: Optional[Sequence[SubscribeOptions]] = None,
    properties: Optional[Properties] = None,
    dup: bool = False,
) -> bytes:
    """
    Serialize a SUBSCRIBE packet.

    For MQTT 5.0 each topic's option byte comes from the matching entry in
    options (no-local, retain-as-published, retain handling), with its QoS
    taken from qos_list. Earlier versions send the QoS byte alone.
    """
    if not topics:
        raise PacketEncodingError("SUBSCRIBE requires at least one topic filter", msg_id=msg_id)
    if len(topics) != len(qos_list):
        raise PacketEncodingError(
            f"{len(topics)} topic filters but {len(qos_list)} QoS values", msg_id=msg_id
        )
    if options is not None and len(options) != len(topics):
        raise PacketEncodingError(
            f"{len(topics)} topic filters but {len(options)} subscribe options", msg_id=msg_id
        )
    _check_msg_id(msg_id)

    body = bytearray(struct.pack("!H", msg_id))
    body += _pack_properties(properties, version)
    for i, (topic, qos) in enumerate(zip(topics, qos_list)):
        _check_qos(qos)
        body += pack_str16(topic)
        if version >= ProtocolVersion.MQTTv5 and options is not None:
            opts = options[i]
            body += SubscribeOptions(
                qos=qos,
                noLocal=opts.noLocal,
                retainAsPublished=opts.retainAsPublished,
                retainHandling=opts.retainHandling,
            ).pack()
        else:
            body.append(qos)

    return _frame(SUBSCRIBE | ((1 if dup else 0) << 3), bytes(body))


def encode_unsubscribe(
    topics: Sequence[str],
    msg_id: int,
    version: int,
    properties: Optional[Properties] = None,
    dup: bool = False,
) -> bytes:
    """Serialize an UNSUBSCRIBE packet."""
    if not topics:
        raise PacketEncodingError("UNSUBSCRIBE requires at least one topic filter", msg_id=msg_id)
    _check_msg_id(msg_id)

    body = bytearray(struct.pack("!H", msg_id))
    body += _pack_properties(properties, version)
    for topic in topics:
        body += pack_str16(topic)

    return _frame(UNSUBSCRIBE | ((1 if dup else 0) << 3), bytes(body))


def encode_pingreq() -> bytes:
    return _frame(PINGREQ, b"")


class PacketWriter:
    """
    Encodes control packets and writes them through a transport.

    Args:
        transport: Object with write(net, data) -> StatusCode, such as
                   SocketTransport
        clock: Time source stamped into session.last_sent after each send
    """

    def __init__(self, transport, clock=None):
        self._transport = transport
        self._clock = clock or time.monotonic

    def send_connect(
        self,
        session: Session,
        version: int,
        connect_properties: Optional[Properties] = None,
        will_properties: Optional[Properties] = None,
    ) -> StatusCode:
        try:
            packet = encode_connect(session, version, connect_properties, will_properties)
        except PacketEncodingError as e:
            return self._encoding_failed(session, "CONNECT", e)
        return self._send(session, packet, "CONNECT", version=version)

    def send_subscribe(
        self,
        session: Session,
        topics: Sequence[str],
        qos_list: Sequence[int],
        msg_id: int,
        options: Optional[Sequence[SubscribeOptions]] = None,
        properties: Optional[Properties] = None,
        dup: bool = False,
    ) -> StatusCode:
        try:
            packet = encode_subscribe(
                topics, qos_list, msg_id, session.mqtt_version, options, properties, dup
            )
        except PacketEncodingError as e:
            return self._encoding_failed(session, "SUBSCRIBE", e)
        return self._send(session, packet, "SUBSCRIBE", msg_id=msg_id, topics=list(topics))

    def send_unsubscribe(
        self,
        session: Session,
        topics: Sequence[str],
        msg_id: int,
        properties: Optional[Properties] = None,
        dup: bool = False,
    ) -> StatusCode:
        try:
            packet = encode_unsubscribe(topics, msg_id, session.mqtt_version, properties, dup)
        except PacketEncodingError as e:
            return self._encoding_failed(session, "UNSUBSCRIBE", e)
        return self._send(session, packet, "UNSUBSCRIBE", msg_id=msg_id, topics=list(topics))

    def send_pingreq(self, session: Session) -> StatusCode:
        return self._send(session, encode_pingreq(), "PINGREQ")

    def _encoding_failed(self, session: Session, name: str, error: PacketEncodingError) -> StatusCode:
        session_logger(logger, session).error(
            f"Failed to encode {name}: {error.detail}", extra={"msg_id": error.msg_id}
        )
        return StatusCode.PACKET_SEND_ERROR

    def _send(self, session: Session, packet: bytes, name: str, **context) -> StatusCode:
        log = session_logger(logger, session)
        rc = self._transport.write(session.net, packet)
        if rc != StatusCode.SUCCESS:
            log.error(f"Failed to send {name} ({rc!r})", extra=context)
            return StatusCode.PACKET_SEND_ERROR
        session.last_sent = self._clock()
        log.debug(f"Sending {name} ({len(packet)} bytes)", extra=context)
        return StatusCode.SUCCESS
