__version__ = "0.1.0"

# Core components
from .core import (
    DEFAULT_PORT,
    ParsedAddress,
    parse_address,
    ConnectionConfig,
    TLSOptions,
    load_config,
    ProtocolException,
    SessionNotFoundError,
    InvalidPhaseTransition,
    PacketEncodingError,
    ClientFormatter,
    MessageLogger,
    StatusCode,
    ConnectPhase,
    ProtocolVersion,
    NetworkHandles,
    WillMessage,
    HandshakeContext,
    Session,
    Suback,
    Unsuback,
    ClientRegistry,
    SessionLookup,
)

# Transports and packet writer
from .transport import SocketTransport, TLSTransport
from .packet import PacketWriter

# Protocol components
from .protocol import (
    ConnectionStateMachine,
    AckDispatcher,
    KeepAliveMonitor,
    SubscriptionRequestIssuer,
)

from .client import MQTTProtocolClient

__all__ = [
    # Address parsing
    "DEFAULT_PORT",
    "ParsedAddress",
    "parse_address",
    # Configuration
    "ConnectionConfig",
    "TLSOptions",
    "load_config",
    # Exceptions
    "ProtocolException",
    "SessionNotFoundError",
    "InvalidPhaseTransition",
    "PacketEncodingError",
    # Logging
    "ClientFormatter",
    "MessageLogger",
    # Models
    "StatusCode",
    "ConnectPhase",
    "ProtocolVersion",
    "NetworkHandles",
    "WillMessage",
    "HandshakeContext",
    "Session",
    "Suback",
    "Unsuback",
    # Registry
    "ClientRegistry",
    "SessionLookup",
    # Transports
    "SocketTransport",
    "TLSTransport",
    "PacketWriter",
    # Protocol
    "ConnectionStateMachine",
    "AckDispatcher",
    "KeepAliveMonitor",
    "SubscriptionRequestIssuer",
    # Client
    "MQTTProtocolClient",
]
