"""
Acknowledgment Dispatch.

The decoding layer hands complete PINGRESP, SUBACK and UNSUBACK packets to the
dispatcher together with the socket handle they arrived on. The socket is the
only link back to the session, so every handler starts with a registry lookup.
A missing session means the registry and the transport disagree; that is
reported at CRITICAL level and raised as SessionNotFoundError.

Acks are released by the dispatcher after processing, including when the lookup
fails. Dispatching the same ack instance again never releases it twice.
"""
import logging
from typing import Any

from paho.mqtt.packettypes import PacketTypes

from ..core.exceptions import SessionNotFoundError
from ..core.log import session_logger
from ..core.models import AckPacket, Session, StatusCode, Suback, Unsuback
from ..core.registry import SessionLookup

logger = logging.getLogger(__name__)


class AckDispatcher:
    """
    Routes decoded acknowledgments to their sessions.

    Args:
        registry: Lookup from socket handle to session, e.g. ClientRegistry
    """

    def __init__(self, registry: SessionLookup):
        self._registry = registry
        self._handlers = {
            PacketTypes.PINGRESP: self._dispatch_pingresp,
            PacketTypes.SUBACK: self.handle_suback,
            PacketTypes.UNSUBACK: self.handle_unsuback,
        }

    def dispatch(self, packet_type: int, packet: Any, sock: int) -> StatusCode:
        """
        Route a decoded packet by its MQTT control packet type.

        Raises:
            ValueError: If the packet type is not an acknowledgment handled here
            SessionNotFoundError: If no session owns the socket
        """
        handler = self._handlers.get(packet_type)
        if handler is None:
            raise ValueError(f"No acknowledgment handler for packet type {packet_type!r}")
        return handler(packet, sock)

    def _dispatch_pingresp(self, packet: Any, sock: int) -> StatusCode:
        return self.handle_pingresp(sock)

    def handle_pingresp(self, sock: int) -> StatusCode:
        session = self._resolve(sock, "PINGRESP")
        session_logger(logger, session).debug("Received PINGRESP")
        session.ping_outstanding = False
        return StatusCode.COMPLETE

    def handle_suback(self, suback: Suback, sock: int) -> StatusCode:
        try:
            session = self._resolve(sock, "SUBACK", suback)
            session_logger(logger, session).debug(
                f"Received SUBACK with reason codes {suback.reason_codes}",
                extra={"msg_id": suback.msg_id},
            )
            if suback.failures:
                session_logger(logger, session).warning(
                    f"SUBACK refused {len(suback.failures)} subscription(s)",
                    extra={"msg_id": suback.msg_id},
                )
        finally:
            self._release(suback, sock)
        return StatusCode.COMPLETE

    def handle_unsuback(self, unsuback: Unsuback, sock: int) -> StatusCode:
        try:
            session = self._resolve(sock, "UNSUBACK", unsuback)
            session_logger(logger, session).debug(
                "Received UNSUBACK", extra={"msg_id": unsuback.msg_id}
            )
        finally:
            self._release(unsuback, sock)
        return StatusCode.COMPLETE

    def _resolve(self, sock: int, packet_name: str, ack: AckPacket | None = None) -> Session:
        session = self._registry.find_by_socket(sock)
        if session is None:
            msg_id = ack.msg_id if ack is not None else None
            logger.critical(
                f"{packet_name} received on socket {sock} with no registered session",
                extra={"socket": sock, "msg_id": msg_id},
            )
            raise SessionNotFoundError(
                f"{packet_name} for unregistered socket", socket=sock, msg_id=msg_id
            )
        return session

    def _release(self, ack: AckPacket, sock: int) -> None:
        if not ack.release():
            logger.debug(
                f"{ack.__class__.__name__} already released",
                extra={"socket": sock, "msg_id": ack.msg_id},
            )
