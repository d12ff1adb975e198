"""
Endpoint Address Parsing.

Splits a ``host[:port]`` or ``[ipv6-literal][:port]`` endpoint into a host and
a numeric port. IPv6 literals contain colons, so the port separator is the
last colon in the string, and only when it lies after the closing bracket.

Port suffixes are converted the way C's ``atoi`` does: leading digits are
used, anything non-numeric yields 0. Malformed ports are the caller's concern.

Example:
    >>> parse_address("[::1]:1883")
    ParsedAddress(host='::1', port=1883, borrowed=False)
    >>> parse_address("example.com")
    ParsedAddress(host='example.com', port=1883, borrowed=True)
"""
import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1883

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass(frozen=True)
class ParsedAddress:
    """
    Result of parsing an endpoint.

    Attributes:
        host: Host name or address, with IPv6 brackets removed
        port: Port number (DEFAULT_PORT when the endpoint has no port)
        borrowed: True when host is the input string unchanged, False when it
                  was produced by splitting off a port or stripping brackets
    """

    host: str
    port: int
    borrowed: bool


def _atoi(text: str) -> int:
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def parse_address(uri: str) -> ParsedAddress:
    """
    Separate an endpoint into host and port.

    Args:
        uri: Endpoint string, e.g. "broker:1883", "10.0.0.1", "[::1]:8883"

    Returns:
        ParsedAddress with the host, the port and the ownership tag

    Raises:
        ValueError: If uri is empty
    """
    if not uri:
        raise ValueError("Endpoint must not be empty")

    colon_pos = uri.rfind(":")
    if uri.startswith("[") and colon_pos < uri.rfind("]"):
        # the colon belongs to the IPv6 literal
        colon_pos = -1

    host = uri
    borrowed = True
    if colon_pos >= 0:
        host = uri[:colon_pos]
        port = _atoi(uri[colon_pos + 1:])
        borrowed = False
    else:
        port = DEFAULT_PORT

    if host.endswith("]"):
        host = host[:-1]
        if host.startswith("["):
            host = host[1:]
        borrowed = False

    logger.debug(f"Parsed endpoint '{uri}' into host '{host}' and port {port}")
    return ParsedAddress(host=host, port=port, borrowed=borrowed)
