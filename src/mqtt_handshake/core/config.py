"""
Connection Configuration.

Pydantic models describing how a session connects to its broker, and a loader
that reads them from ``MQTT_*`` environment variables (optionally populated
from a ``.env`` file through python-dotenv).

Environment variables:
    MQTT_ENDPOINT          host[:port] or [ipv6][:port] (default "localhost:1883")
    MQTT_CLIENT_ID         client identifier (default "mqtt-handshake")
    MQTT_USE_TLS           "1"/"true"/"yes" enables TLS
    MQTT_VERSION           3, 4 or 5 (default 4)
    MQTT_KEEPALIVE         keep-alive interval in seconds (default 60)
    MQTT_USERNAME          optional user name
    MQTT_PASSWORD          optional password
    MQTT_CA_CERTS          CA bundle path, enables server certificate checks
    MQTT_CERTFILE          client certificate path
    MQTT_KEYFILE           client private key path
    MQTT_TLS_VERIFY        "0"/"false" disables host name verification
"""
import logging
import os
import ssl
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, SecretStr, field_validator

logger = logging.getLogger(__name__)


class TLSOptions(BaseModel):
    ca_certs: Optional[str] = None
    certfile: Optional[str] = None
    keyfile: Optional[str] = None
    key_password: Optional[SecretStr] = None
    ciphers: Optional[str] = None
    verify: bool = True
    enable_server_cert_auth: bool = True

    def create_context(self) -> ssl.SSLContext:
        """
        Build a client-side SSLContext from these options.

        Raises:
            ssl.SSLError, OSError: If certificates or ciphers cannot be loaded
        """
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=self.ca_certs)
        if not self.enable_server_cert_auth:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        else:
            context.check_hostname = self.verify
        if self.certfile:
            password = self.key_password.get_secret_value() if self.key_password else None
            context.load_cert_chain(self.certfile, self.keyfile, password=password)
        if self.ciphers:
            context.set_ciphers(self.ciphers)
        return context


class ConnectionConfig(BaseModel):
    endpoint: str = "localhost:1883"
    client_id: str = "mqtt-handshake"
    use_tls: bool = False
    mqtt_version: int = 4
    keepalive: int = 60
    clean_session: bool = True
    username: Optional[str] = None
    password: Optional[SecretStr] = None
    tls: Optional[TLSOptions] = None

    @field_validator("endpoint")
    def validate_endpoint(cls, v):
        if not v or not v.strip():
            raise ValueError("endpoint must not be empty")
        return v.strip()

    @field_validator("mqtt_version")
    def validate_mqtt_version(cls, v):
        if v not in (3, 4, 5):
            raise ValueError("mqtt_version must be 3 (3.1), 4 (3.1.1) or 5")
        return v

    @field_validator("keepalive")
    def validate_keepalive(cls, v):
        if not 0 <= v <= 65535:
            raise ValueError("keepalive must be between 0 and 65535 seconds")
        return v


def _env_flag(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(*, dotenv_enabled: bool = True) -> ConnectionConfig:
    """
    Load a ConnectionConfig from the environment.

    Args:
        dotenv_enabled: If True, variables from a .env file are loaded first
                        (process environment still wins)

    Returns:
        Validated ConnectionConfig

    Raises:
        pydantic.ValidationError: If any value is invalid
    """
    if dotenv_enabled:
        load_dotenv(find_dotenv(usecwd=True))

    tls = None
    use_tls = _env_flag("MQTT_USE_TLS", False)
    if use_tls or os.getenv("MQTT_CA_CERTS"):
        tls = TLSOptions(
            ca_certs=os.getenv("MQTT_CA_CERTS") or None,
            certfile=os.getenv("MQTT_CERTFILE") or None,
            keyfile=os.getenv("MQTT_KEYFILE") or None,
            verify=_env_flag("MQTT_TLS_VERIFY", True),
        )

    config = ConnectionConfig(
        endpoint=os.getenv("MQTT_ENDPOINT", "localhost:1883"),
        client_id=os.getenv("MQTT_CLIENT_ID", "mqtt-handshake"),
        use_tls=use_tls,
        mqtt_version=os.getenv("MQTT_VERSION", "4"),
        keepalive=os.getenv("MQTT_KEEPALIVE", "60"),
        username=os.getenv("MQTT_USERNAME") or None,
        password=os.getenv("MQTT_PASSWORD") or None,
        tls=tls,
    )
    logger.info(f"Loaded connection config for endpoint {config.endpoint} (tls={config.use_tls})")
    return config
