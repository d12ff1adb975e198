"""
Non-blocking TCP transport.

Opens sockets in non-blocking mode, so a connect usually reports "in progress"
and completes on a later poll. Writes that the kernel cannot take immediately
are kept in the session's outbound buffer and flushed on the next write or
flush() call.
"""
import errno
import logging
import select
import socket
import ssl

from ..core.models import NetworkHandles, StatusCode

logger = logging.getLogger(__name__)

_IN_PROGRESS = {errno.EINPROGRESS, errno.EWOULDBLOCK, errno.EAGAIN, errno.EALREADY}


class SocketTransport:
    """TCP socket operations returning StatusCode values."""

    def __init__(self, resolver=socket.getaddrinfo):
        self._resolver = resolver

    def open(self, host: str, port: int):
        """
        Start a non-blocking connect to host:port.

        Returns:
            Tuple of (StatusCode, socket). The socket is None unless the code
            is SUCCESS or TCP_IN_PROGRESS.
        """
        try:
            resolutions = self._resolver(host, port, 0, socket.SOCK_STREAM)
        except OSError as e:
            logger.error(f"Failed to resolve {host}:{port}: {e}")
            return StatusCode.SOCKET_ERROR, None
        if not resolutions:
            logger.error(f"No addresses found for {host}:{port}")
            return StatusCode.SOCKET_ERROR, None

        family, socktype, proto, _, sockaddr = resolutions[0]
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as e:
            logger.error(f"Failed to create socket for {host}:{port}: {e}")
            return StatusCode.SOCKET_ERROR, None

        sock.setblocking(False)
        rc = sock.connect_ex(sockaddr)
        if rc == 0:
            logger.debug(f"TCP connect to {host}:{port} completed immediately")
            return StatusCode.SUCCESS, sock
        if rc in _IN_PROGRESS:
            logger.debug(f"TCP connect to {host}:{port} in progress")
            return StatusCode.TCP_IN_PROGRESS, sock

        logger.error(f"TCP connect to {host}:{port} failed: {errno.errorcode.get(rc, rc)}")
        sock.close()
        return StatusCode.SOCKET_ERROR, None

    def connect_complete(self, sock) -> StatusCode:
        """Check whether a pending connect has finished, without blocking."""
        try:
            _, writable, _ = select.select([], [sock], [], 0)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to poll socket: {e}")
            return StatusCode.SOCKET_ERROR
        if not writable:
            return StatusCode.TCP_IN_PROGRESS

        err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if err == 0:
            return StatusCode.SUCCESS
        if err in _IN_PROGRESS:
            return StatusCode.TCP_IN_PROGRESS
        logger.error(f"TCP connect failed: {errno.errorcode.get(err, err)}")
        return StatusCode.SOCKET_ERROR

    def write(self, net: NetworkHandles, data: bytes) -> StatusCode:
        """Queue data behind any pending bytes and write as much as possible."""
        if net.stream is None:
            logger.error("Cannot write: no socket")
            return StatusCode.SOCKET_ERROR
        net.outbound.extend(data)
        return self.flush(net)

    def flush(self, net: NetworkHandles) -> StatusCode:
        stream = net.stream
        if stream is None:
            return StatusCode.SOCKET_ERROR
        while net.outbound:
            try:
                sent = stream.send(net.outbound)
            except (BlockingIOError, InterruptedError, ssl.SSLWantReadError, ssl.SSLWantWriteError):
                break
            except OSError as e:
                logger.error(f"Socket write failed: {e}")
                return StatusCode.SOCKET_ERROR
            if sent == 0:
                break
            del net.outbound[:sent]
        if net.outbound:
            logger.debug(f"{len(net.outbound)} bytes pending on socket")
        return StatusCode.SUCCESS

    def close(self, net: NetworkHandles) -> None:
        stream = net.stream
        if stream is not None:
            try:
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing socket: {e}")
        net.socket = None
        net.tls = None
        net.outbound.clear()
