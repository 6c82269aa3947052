"""
Logging configuration for Captcha Relay.

One JSON object per log line, tagged with the inbound request id. Audit
events go through ``AuditLogger`` so every ticket decision has a typed
``event_type``. Ticket values are masked and the shared secret is never
passed to a logger.
"""

import json
import logging
import sys
import time
from contextvars import ContextVar
from typing import Optional

from .util import generate_id, mask_sensitive

request_id_var: ContextVar[str] = ContextVar('request_id', default='')

PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        entry.update(getattr(record, 'extra_fields', {}))
        return json.dumps(entry)


class AuditLogger:
    """
    Emits the relay's audit events.

    Each event is a record on the ``captcha_relay.audit`` logger whose
    ``extra_fields`` carry ``event_type``, ``request_id`` and the event data.
    """

    def __init__(self, name: str = "captcha_relay.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, message: str, **fields) -> None:
        record = self._logger.makeRecord(
            self._logger.name, level, "", 0, f"{event_type}: {message}", (), None
        )
        record.extra_fields = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **fields,
        }
        self._logger.handle(record)

    def ticket_issued(self, ticket_request_id: str, bound_ip: str, expires_at: int) -> None:
        self._log(
            logging.INFO,
            "TICKET_ISSUED",
            f"ticket issued for {bound_ip}",
            ticket_request_id=ticket_request_id,
            bound_ip=bound_ip,
            expires_at=expires_at,
        )

    def signal_rejected(self, reason_code: str, reason: str) -> None:
        """WAF result code present but not a pass."""
        self._log(
            logging.WARNING,
            "SIGNAL_REJECTED",
            f"WAF signal {reason_code} rejected",
            reason_code=reason_code,
            reason=reason,
        )

    def signal_missing(self, header: str) -> None:
        """WAF header absent; the WAF rule is not covering this route."""
        self._log(
            logging.ERROR,
            "SIGNAL_MISSING",
            f"header {header} not present",
            header=header,
        )

    def verification_decision(
        self,
        accepted: bool,
        reason: str,
        ticket: Optional[str] = None,
        ticket_request_id: Optional[str] = None
    ) -> None:
        self._log(
            logging.INFO if accepted else logging.WARNING,
            "VERIFICATION_DECISION",
            f"{'accepted' if accepted else 'rejected'} ({reason})",
            accepted=accepted,
            reason=reason,
            ticket=mask_sensitive(ticket) if ticket else None,
            ticket_request_id=ticket_request_id,
        )

    def security_event(self, event: str, **details) -> None:
        """Forged tickets and refused callers."""
        self._log(logging.WARNING, "SECURITY_EVENT", event, security_event=event, **details)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Replace the root handlers with a stdout handler.

    Args:
        level: Root log level name
        json_format: JSON lines when true, plain text otherwise
        log_file: Also append to this file when given
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id to the current context, generating one if absent."""
    if request_id is None:
        request_id = generate_id()
    request_id_var.set(request_id)
    return request_id


audit_log = AuditLogger()
