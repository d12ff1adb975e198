"""
Session Registry Keyed by Socket Handle.

Acknowledgments carry no client identity, only the socket they arrived on.
The registry maps each live socket handle to the one session that owns it.
Consumers depend on the SessionLookup protocol so a test fixture or another
mapping can stand in for ClientRegistry.
"""
import logging
import threading
from typing import TYPE_CHECKING, Iterator, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .models import Session

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionLookup(Protocol):
    def find_by_socket(self, sock: int) -> Optional["Session"]:
        ...


class ClientRegistry:
    """
    Thread-safe mapping of socket handle to session.

    A handle identifies exactly one session from register() until
    deregister(); registering a second session on a live handle is refused.
    """

    def __init__(self):
        self._sessions: dict[int, object] = {}
        self._lock = threading.Lock()

    def register(self, session) -> None:
        """
        Register a session under its current socket handle.

        Raises:
            ValueError: If the session has no socket, or the handle already
                        belongs to a different session
        """
        handle = session.socket_handle
        if handle is None or handle < 0:
            raise ValueError(f"Session '{session.client_id}' has no open socket to register")
        with self._lock:
            owner = self._sessions.get(handle)
            if owner is not None and owner is not session:
                raise ValueError(
                    f"Socket {handle} is already registered to '{owner.client_id}'"
                )
            self._sessions[handle] = session
        logger.debug(f"Registered session '{session.client_id}' on socket {handle}")

    def deregister(self, session_or_handle) -> Optional[object]:
        """Remove a session, given the session itself or its socket handle."""
        with self._lock:
            if isinstance(session_or_handle, int):
                removed = self._sessions.pop(session_or_handle, None)
            else:
                removed = None
                for handle, session in list(self._sessions.items()):
                    if session is session_or_handle:
                        removed = self._sessions.pop(handle)
                        break
        if removed is not None:
            logger.debug(f"Deregistered session '{removed.client_id}'")
        return removed

    def find_by_socket(self, sock: int) -> Optional["Session"]:
        with self._lock:
            return self._sessions.get(sock)

    def sessions(self) -> list:
        with self._lock:
            return list(self._sessions.values())

    def __contains__(self, sock: int) -> bool:
        with self._lock:
            return sock in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __iter__(self) -> Iterator:
        return iter(self.sessions())
