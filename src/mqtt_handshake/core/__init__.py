"""
Core components shared by the transport, packet and protocol layers.
"""
from .address import DEFAULT_PORT, ParsedAddress, parse_address
from .config import ConnectionConfig, TLSOptions, load_config
from .exceptions import (
    ProtocolException,
    SessionNotFoundError,
    InvalidPhaseTransition,
    PacketEncodingError,
)
from .log import ClientFormatter, MessageLogger, session_logger
from .models import (
    StatusCode,
    ConnectPhase,
    ProtocolVersion,
    NetworkHandles,
    WillMessage,
    HandshakeContext,
    Session,
    AckPacket,
    Suback,
    Unsuback,
)
from .registry import ClientRegistry, SessionLookup

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
    "session_logger",
    # Models
    "StatusCode",
    "ConnectPhase",
    "ProtocolVersion",
    "NetworkHandles",
    "WillMessage",
    "HandshakeContext",
    "Session",
    "AckPacket",
    "Suback",
    "Unsuback",
    # Registry
    "ClientRegistry",
    "SessionLookup",
]
