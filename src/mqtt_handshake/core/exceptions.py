from typing import Optional


class ProtocolException(Exception):
    """
    Base for invariant violations in the handshake core. Carries:
      - status_code: the StatusCode value the failure corresponds to
      - detail: what went wrong
      - client_id: the session's MQTT client identifier, when known
      - socket: the socket handle involved, when known
      - msg_id: the packet identifier involved, when known

    Expected failures (pending handshakes, socket errors, send errors) are
    returned as status codes and never raised.
    """
    default_code: Optional[int] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        client_id: Optional[str] = None,
        socket: Optional[int] = None,
        msg_id: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code if status_code is not None else self.default_code
        self.detail = detail
        self.client_id = client_id
        self.socket = socket
        self.msg_id = msg_id

        parts = [f"code={self.status_code}"]
        if client_id:
            parts.append(f"client_id={client_id!r}")
        if socket is not None:
            parts.append(f"socket={socket!r}")
        if msg_id is not None:
            parts.append(f"msg_id={msg_id!r}")

        super().__init__(f"{detail!r} {self.__class__.__name__}: " + ", ".join(parts))

    def __repr__(self):
        return (
            f"{self.__class__.__name__}("
            f"status_code={self.status_code!r}, "
            f"detail={self.detail!r}, "
            f"client_id={self.client_id!r}, "
            f"socket={self.socket!r}, "
            f"msg_id={self.msg_id!r}"
            f")"
        )


class SessionNotFoundError(ProtocolException):
    """An acknowledgment arrived on a socket no session is registered for."""

    default_code = -1


class InvalidPhaseTransition(ProtocolException):
    """A handshake phase change that is neither forward nor a reset."""

    default_code = -1


class PacketEncodingError(ProtocolException):
    """An outbound control packet could not be serialized (-2)."""

    default_code = -2


__all__ = [
    "ProtocolException",
    "SessionNotFoundError",
    "InvalidPhaseTransition",
    "PacketEncodingError",
]
