"""
Keep-alive PINGREQ sender.

Sets a session's ping_outstanding flag when a PINGREQ goes out; the flag is
cleared only by AckDispatcher.handle_pingresp(). The monitor reports whether a
ping is due or overdue but takes no action on an overdue session.
"""
import logging
import time

from ..core.log import session_logger
from ..core.models import ConnectPhase, Session, StatusCode

logger = logging.getLogger(__name__)


class KeepAliveMonitor:
    def __init__(self, writer, clock=time.monotonic):
        self._writer = writer
        self._clock = clock

    def send_ping(self, session: Session) -> StatusCode:
        rc = self._writer.send_pingreq(session)
        if rc == StatusCode.SUCCESS:
            session.ping_outstanding = True
            session.last_ping_sent = self._clock()
        else:
            session_logger(logger, session).warning(f"PINGREQ not sent ({rc!r})")
        return rc

    def ping_due(self, session: Session) -> bool:
        """True when the session has been idle for a full keep-alive interval."""
        if session.keepalive_interval <= 0 or session.ping_outstanding:
            return False
        if session.connect_phase is not ConnectPhase.MQTT_PENDING:
            return False
        return self._clock() - session.last_sent >= session.keepalive_interval

    def is_overdue(self, session: Session) -> bool:
        """True when a PINGREQ has waited longer than the keep-alive interval."""
        if not session.ping_outstanding or session.last_ping_sent is None:
            return False
        overdue = self._clock() - session.last_ping_sent > session.keepalive_interval
        if overdue:
            session_logger(logger, session).warning(
                f"No PINGRESP within {session.keepalive_interval}s"
            )
        return overdue
