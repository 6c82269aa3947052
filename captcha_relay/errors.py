"""
Error taxonomy for Captcha Relay.

Every rejection the relay reports is a ``RelayError``. Each carries the
envelope ``code``, the HTTP status it is surfaced with, a message and optional
diagnostic data. None of them is retried.
"""

from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base class for errors rendered in the response envelope."""

    code = 500
    status_code = 500
    default_message = "internal error"

    def __init__(self, message: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def to_envelope(self) -> Dict[str, Any]:
        return {"code": self.code, "msg": self.message, "data": self.data}


class ConfigurationError(RelayError):
    """Shared secret or trusted WAF header missing on the server side."""
    code = 500
    status_code = 500
    default_message = "server configuration error"


class BadRequestBody(RelayError):
    """Verification body could not be parsed."""
    code = 500
    status_code = 500
    default_message = "request body could not be parsed"


class AccessDenied(RelayError):
    """Caller failed the access key or edge secret check."""
    code = 403
    status_code = 403
    default_message = "access denied"


class UntrustedSignal(RelayError):
    """WAF result code present but not the success code."""
    code = 400
    status_code = 400
    default_message = "verification failed"


class MissingParameter(RelayError):
    code = 400
    status_code = 400
    default_message = "missing parameter"


class MalformedTicket(RelayError):
    """Ticket failed to decode or its signature did not match."""
    code = 403
    status_code = 403
    default_message = "invalid signature"


class ExpiredTicket(RelayError):
    code = 401
    status_code = 401
    default_message = "expired"


class IdentityMismatch(RelayError):
    """Ticket presented from a different IP than the one it was issued to."""
    code = 403
    status_code = 403
    default_message = "ip mismatch"
