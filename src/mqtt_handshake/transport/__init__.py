"""
Default socket and TLS transports used by the handshake state machine.
"""
from .socket_transport import SocketTransport
from .tls import TLSTransport

__all__ = [
    "SocketTransport",
    "TLSTransport",
]
