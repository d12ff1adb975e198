"""
Logging Helpers for Session-Scoped Protocol Traces.

Key Components:
    - ClientFormatter: Formatter that appends the context fields as key=value pairs
    - MessageLogger: LoggerAdapter that injects session context into every record
    - session_logger(): Builds a MessageLogger bound to a session's identity

Handlers and levels are left to the application; the library only emits records
on module loggers.

Example:
    >>> handler = logging.StreamHandler()
    >>> handler.setFormatter(ClientFormatter("%(levelname)-8s %(message)s"))
    >>> log = session_logger(logging.getLogger("mqtt_handshake"), session)
    >>> log.debug("CONNECT sent", extra={"msg_id": 7})
    # Output: "DEBUG    CONNECT sent client_id=sensor-1 socket=5 msg_id=7"
"""
import logging
from typing import Any


class ClientFormatter(logging.Formatter):
    """
    Log formatter that appends the record's context fields to the message.

    Records produced through MessageLogger carry their merged context in
    ``record.extra``; records from plain loggers are formatted unchanged.
    """

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = getattr(record, "extra", None)
        if isinstance(context, dict) and context:
            extra_info = " ".join(f"{k}={v}" for k, v in context.items() if v is not None)
            if extra_info:
                return f"{message} {extra_info}"
        return message


class MessageLogger(logging.LoggerAdapter):
    """
    Logger adapter that attaches a base context to every record.

    Attributes:
        logger: The underlying Logger instance
        extra: Base context attached to all log records
        merge_extra: If True, per-call extras are merged over the base context;
                     if False, the base context is used as-is
        exclude_extras: Field names dropped from the context
    """

    def __init__(
        self,
        logger: logging.Logger,
        extra: dict[str, Any] | None = None,
        merge_extra: bool = True,
        exclude_extras: list[str] | None = None
    ):
        super().__init__(logger, extra or {})
        self.merge_extra = merge_extra
        self.exclude_extras = exclude_extras or []

    def process(self, msg, kwargs):
        if self.merge_extra and "extra" in kwargs:
            context = {**self.extra, **kwargs["extra"]}
        else:
            context = dict(self.extra)

        for key in self.exclude_extras:
            context.pop(key, None)

        kwargs["extra"] = {**context, "extra": context}
        return msg, kwargs


def session_logger(logger: logging.Logger, session) -> MessageLogger:
    """Return an adapter carrying the session's client id and socket handle."""
    return MessageLogger(
        logger,
        extra={"client_id": session.client_id, "socket": session.socket_handle},
    )
