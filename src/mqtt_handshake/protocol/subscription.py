"""
SUBSCRIBE / UNSUBSCRIBE issuance.

Both operations serialize and send one request and return the send outcome.
Requests are not recorded for retry; matching a SUBACK or UNSUBACK to its
request by message identifier is left to the caller.
"""
import logging
from typing import Optional, Sequence

from paho.mqtt.properties import Properties
from paho.mqtt.subscribeoptions import SubscribeOptions

from ..core.log import session_logger
from ..core.models import Session, StatusCode

logger = logging.getLogger(__name__)


class SubscriptionRequestIssuer:
    """Sends subscription requests through a PacketWriter."""

    def __init__(self, writer):
        self._writer = writer

    def subscribe(
        self,
        session: Session,
        topics: Sequence[str],
        qos_list: Sequence[int],
        msg_id: int,
        options: Optional[Sequence[SubscribeOptions]] = None,
        properties: Optional[Properties] = None,
    ) -> StatusCode:
        """
        Send a SUBSCRIBE for the given topic filters.

        Args:
            session: Connected session
            topics: Topic filters, in request order
            qos_list: Requested QoS for each filter
            msg_id: Packet identifier the SUBACK will echo
            options: MQTT 5.0 subscription options, one per filter
            properties: MQTT 5.0 SUBSCRIBE properties

        Returns:
            SUCCESS, or PACKET_SEND_ERROR if the packet could not be built or written
        """
        rc = self._writer.send_subscribe(session, topics, qos_list, msg_id, options, properties)
        session_logger(logger, session).debug(
            f"SUBSCRIBE issued for {len(topics)} topic filter(s) ({rc!r})",
            extra={"msg_id": msg_id},
        )
        return rc

    def unsubscribe(
        self,
        session: Session,
        topics: Sequence[str],
        msg_id: int,
        properties: Optional[Properties] = None,
    ) -> StatusCode:
        """Send an UNSUBSCRIBE for the given topic filters."""
        rc = self._writer.send_unsubscribe(session, topics, msg_id, properties)
        session_logger(logger, session).debug(
            f"UNSUBSCRIBE issued for {len(topics)} topic filter(s) ({rc!r})",
            extra={"msg_id": msg_id},
        )
        return rc
