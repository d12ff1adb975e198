"""
Protocol exchanges: connect handshake, subscription requests, ack dispatch
and keep-alive.
"""
from .connection import ConnectionStateMachine
from .dispatcher import AckDispatcher
from .keepalive import KeepAliveMonitor
from .subscription import SubscriptionRequestIssuer

__all__ = [
    "ConnectionStateMachine",
    "AckDispatcher",
    "KeepAliveMonitor",
    "SubscriptionRequestIssuer",
]
