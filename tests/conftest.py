import logging
import socket

import pytest
from dotenv import load_dotenv

from mqtt_handshake import (
    ClientRegistry,
    PacketWriter,
    Session,
    StatusCode,
)

# === Load Environment and Configure Logging ===
load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(levelname)-8s %(message)s")

MQTT_ENV_KEYS = [
    "MQTT_ENDPOINT",
    "MQTT_CLIENT_ID",
    "MQTT_USE_TLS",
    "MQTT_VERSION",
    "MQTT_KEEPALIVE",
    "MQTT_USERNAME",
    "MQTT_PASSWORD",
    "MQTT_CA_CERTS",
    "MQTT_CERTFILE",
    "MQTT_KEYFILE",
    "MQTT_TLS_VERIFY",
]


# === Test Doubles ===
class FakeSocket:
    """Socket stand-in that records sent bytes and can accept partial writes."""

    def __init__(self, fd: int = 5, send_limit: int | None = None, error: Exception | None = None):
        self.fd = fd
        self.send_limit = send_limit
        self.error = error
        self.sent = bytearray()
        self.closed = False

    def fileno(self) -> int:
        return -1 if self.closed else self.fd

    def send(self, data) -> int:
        if self.error is not None:
            raise self.error
        count = len(data) if self.send_limit is None else min(self.send_limit, len(data))
        if count == 0:
            raise BlockingIOError()
        self.sent += bytes(data[:count])
        return count

    def close(self):
        self.closed = True


class RecordingTransport:
    """Transport stand-in for PacketWriter: keeps every written packet."""

    def __init__(self, rc: StatusCode = StatusCode.SUCCESS):
        self.rc = rc
        self.packets: list[bytes] = []

    def write(self, net, data: bytes) -> StatusCode:
        self.packets.append(bytes(data))
        return self.rc


# === Fixtures ===
@pytest.fixture
def fake_socket():
    return FakeSocket


@pytest.fixture
def make_session():
    def _make(client_id: str = "test-client", fd: int | None = 5, **kwargs) -> Session:
        session = Session(client_id=client_id, **kwargs)
        if fd is not None:
            session.net.socket = FakeSocket(fd=fd)
        return session

    return _make


@pytest.fixture
def session(make_session):
    return make_session()


@pytest.fixture
def registry():
    return ClientRegistry()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def writer(transport):
    return PacketWriter(transport, clock=lambda: 100.0)


@pytest.fixture
def listener():
    """Listening socket on the loopback interface; it never writes to peers."""
    server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    server.bind(("127.0.0.1", 0))
    server.listen(1)
    yield server
    server.close()


@pytest.fixture
def clean_env(monkeypatch):
    # teardown restores every key, including ones load_dotenv() sets
    for key in MQTT_ENV_KEYS:
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return monkeypatch
