"""Audit trail for reminder runs."""

from __future__ import annotations

import logging
import logging.handlers
from typing import Protocol

RUN_STARTED = 1000
RUN_COMPLETED = 1001
RUN_ABORTED = 1002

INFORMATION = "information"
WARNING = "warning"
ERROR = "error"

_LEVELS = {
    INFORMATION: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


class AuditSink(Protocol):
    def record(self, message: str, severity: str = INFORMATION, code: int = RUN_STARTED) -> None:
        ...


class LoggingAuditSink:
    """Write audit events to the ``pwreminder.audit`` logger.

    When ``syslog_address`` is given the events are also forwarded to syslog,
    either a local socket path (``/dev/log``) or ``host[:port]``. A logger
    carries at most one syslog handler per address; :meth:`close` detaches the
    handler this sink added.
    """

    def __init__(self, logger: logging.Logger | None = None, *, syslog_address: str | None = None) -> None:
        self._logger = logger or logging.getLogger("pwreminder.audit")
        self._handler: logging.handlers.SysLogHandler | None = None
        if syslog_address:
            address = _syslog_address(syslog_address)
            if not _has_syslog_handler(self._logger, address):
                handler = logging.handlers.SysLogHandler(address=address)
                handler.setFormatter(logging.Formatter("pwreminder[%(process)d]: %(message)s"))
                self._logger.addHandler(handler)
                self._handler = handler

    def record(self, message: str, severity: str = INFORMATION, code: int = RUN_STARTED) -> None:
        level = _LEVELS.get(severity, logging.INFO)
        self._logger.log(level, "[event %d] %s", code, message, extra={"event_code": code})

    def close(self) -> None:
        if self._handler is None:
            return
        self._logger.removeHandler(self._handler)
        self._handler.close()
        self._handler = None


def _has_syslog_handler(logger: logging.Logger, address: str | tuple[str, int]) -> bool:
    return any(
        isinstance(handler, logging.handlers.SysLogHandler) and handler.address == address
        for handler in logger.handlers
    )


def _syslog_address(value: str) -> str | tuple[str, int]:
    if value.startswith("/"):
        return value
    host, _, port = value.partition(":")
    return host, int(port) if port else logging.handlers.SYSLOG_UDP_PORT


__all__ = [
    "AuditSink",
    "ERROR",
    "INFORMATION",
    "LoggingAuditSink",
    "RUN_ABORTED",
    "RUN_COMPLETED",
    "RUN_STARTED",
    "WARNING",
]
