"""
TLS layer for non-blocking sockets.

wrap() attaches an SSLSocket to a connected TCP socket without starting the
handshake; handshake() drives it one step at a time. A handshake that needs
more network I/O reports TLS_INTERRUPTED and is retried on the next poll.
"""
import logging
import ssl

from ..core.config import TLSOptions
from ..core.models import NetworkHandles, StatusCode

logger = logging.getLogger(__name__)


class TLSTransport:
    """TLS operations returning StatusCode values."""

    def wrap(self, net: NetworkHandles, options: TLSOptions | None, host: str) -> bool:
        """
        Prepare a connected socket for TLS.

        Args:
            net: Session network handles; net.socket must be connected
            options: TLS settings (defaults apply when None)
            host: Server host name, used for SNI and certificate matching

        Returns:
            True if the socket was wrapped, False if TLS could not be configured
        """
        if net.socket is None:
            logger.error("Cannot configure TLS: no socket")
            return False
        options = options or TLSOptions()
        try:
            context = options.create_context()
            net.tls = context.wrap_socket(
                net.socket,
                server_hostname=host,
                do_handshake_on_connect=False,
            )
        except (ssl.SSLError, ValueError, OSError) as e:
            logger.error(f"Failed to configure TLS for host '{host}': {e}")
            return False
        logger.debug(f"Socket configured for TLS to host '{host}'")
        return True

    def handshake(self, net: NetworkHandles) -> StatusCode:
        """Advance the TLS handshake without blocking."""
        if net.tls is None:
            logger.error("TLS handshake requested on a socket that was not wrapped")
            return StatusCode.SOCKET_ERROR
        try:
            net.tls.do_handshake()
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            logger.debug("TLS handshake interrupted; waiting for socket readiness")
            return StatusCode.TLS_INTERRUPTED
        except ssl.SSLError as e:
            logger.error(f"TLS handshake failed: {e}")
            return StatusCode.SOCKET_ERROR
        except OSError as e:
            logger.error(f"TLS handshake failed on socket error: {e}")
            return StatusCode.SOCKET_ERROR
        logger.debug(f"TLS handshake complete ({net.tls.version()})")
        return StatusCode.SUCCESS
