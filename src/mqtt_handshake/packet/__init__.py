"""
Encoding and sending of the outbound control packets.
"""
from .writer import (
    PacketWriter,
    encode_connect,
    encode_subscribe,
    encode_unsubscribe,
    encode_pingreq,
    pack_remaining_length,
    pack_str16,
)

__all__ = [
    "PacketWriter",
    "encode_connect",
    "encode_subscribe",
    "encode_unsubscribe",
    "encode_pingreq",
    "pack_remaining_length",
    "pack_str16",
]
