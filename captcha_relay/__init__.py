"""
Captcha Relay

Relays a WAF captcha verdict into a short-lived signed ticket bound to the
caller's IP, and verifies that ticket before a sensitive backend action.

Usage:
    from captcha_relay import RelayConfig, create_app

    config = RelayConfig.from_env()
    app = create_app(config)

Offline:
    from captcha_relay import issue, verify

    result = issue({"x-captcha-verify-code": "T001", "x-real-ip": "1.2.3.4"}, config)
    outcome = verify(result.ticket, "1.2.3.4", config.secret)
"""

__version__ = "1.0.0"

from .config import RelayConfig
from .errors import (
    AccessDenied,
    BadRequestBody,
    ConfigurationError,
    ExpiredTicket,
    IdentityMismatch,
    MalformedTicket,
    MissingParameter,
    RelayError,
    UntrustedSignal,
)
from .issuance import IssuedTicket, Rejection, RejectionKind, issue
from .main import create_app
from .result_codes import SUCCESS_CODE, Verdict, interpret
from .ticket import TicketClaims, decode, encode
from .verification import Accepted, Rejected, RejectReason, verify

__all__ = [
    "__version__",

    # Configuration
    "RelayConfig",

    # Result codes
    "SUCCESS_CODE",
    "Verdict",
    "interpret",

    # Ticket codec
    "TicketClaims",
    "encode",
    "decode",

    # Issuance
    "IssuedTicket",
    "Rejection",
    "RejectionKind",
    "issue",

    # Verification
    "Accepted",
    "Rejected",
    "RejectReason",
    "verify",

    # Errors
    "RelayError",
    "ConfigurationError",
    "AccessDenied",
    "UntrustedSignal",
    "MissingParameter",
    "MalformedTicket",
    "ExpiredTicket",
    "IdentityMismatch",
    "BadRequestBody",

    # HTTP
    "create_app",
]
