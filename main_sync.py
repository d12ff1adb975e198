import logging
import select
import time

from mqtt_handshake import (
    ClientFormatter,
    MQTTProtocolClient,
    Session,
    StatusCode,
    load_config,
)


handler = logging.StreamHandler()
handler.setFormatter(ClientFormatter("%(asctime)s - %(levelname)s - %(message)s"))
logging.basicConfig(level=logging.DEBUG, handlers=[handler])

TOPICS = ["sensors/+/temperature", "sensors/+/status"]
CONNECT_TIMEOUT = 10


def wait_for_socket(session: Session, timeout: float) -> None:
    # A pending TCP connect completes on writability; a TLS handshake may need either.
    sock = session.net.stream
    select.select([sock], [sock], [], timeout)


def main():
    config = load_config()

    with MQTTProtocolClient() as client:
        rc, session = client.connect_with_config(config)
        deadline = time.monotonic() + CONNECT_TIMEOUT
        while rc.is_pending and time.monotonic() < deadline:
            wait_for_socket(session, timeout=1)
            rc = client.resume(session)

        if rc != StatusCode.SUCCESS:
            logging.error(f"Could not connect to {config.endpoint}: {rc!r}")
            return

        logging.info(f"CONNECT sent on socket {session.socket_handle}; awaiting CONNACK")
        rc = client.subscribe(session, TOPICS, [1] * len(TOPICS))
        logging.info(f"SUBSCRIBE {session.msg_id} sent: {rc!r}")

        try:
            while session.good:
                client.sockets.flush(session.net)
                if client.service_keepalive(session) != StatusCode.SUCCESS:
                    logging.warning("Keep-alive failed, closing")
                    break
                time.sleep(1)
        except KeyboardInterrupt:
            logging.info("Exiting...")


if __name__ == "__main__":
    main()
