"""
Ticket issuance.

Turns a trusted WAF verdict into a signed ticket bound to the caller's IP.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional, Union

from .config import RelayConfig
from .errors import ConfigurationError
from .logging_config import audit_log
from .result_codes import interpret
from .security import extract_client_ip, sanitize_headers
from .ticket import TicketClaims, encode
from .util import generate_id, now_epoch


class RejectionKind(str, Enum):
    MISSING_SIGNAL = "MISSING_SIGNAL"
    UNTRUSTED = "UNTRUSTED"


@dataclass(frozen=True)
class IssuedTicket:
    ticket: str
    expire_in: int
    claims: TicketClaims


@dataclass(frozen=True)
class Rejection:
    """
    Issuance refused.

    ``received_headers`` is only populated in debug mode outside production.
    """
    kind: RejectionKind
    reason: str
    reason_code: Optional[str] = None
    received_headers: Optional[Dict[str, str]] = None


def build_claims(config: RelayConfig, bound_ip: str, now: int) -> TicketClaims:
    return TicketClaims(
        issuer=config.issuer,
        issued_at=now,
        expires_at=now + config.ticket_lifetime,
        bound_ip=bound_ip,
        request_id=generate_id(),
    )


def issue(
    headers: Mapping[str, str],
    config: RelayConfig,
    now: Optional[int] = None
) -> Union[IssuedTicket, Rejection]:
    """
    Issue a ticket if the WAF marked the request as passed.

    Args:
        headers: Inbound request headers (lower-cased names)
        config: Relay configuration holding secret and lifetime
        now: Issue time in Unix seconds (defaults to the clock)

    Returns:
        IssuedTicket on success, Rejection otherwise

    Raises:
        ConfigurationError: If no shared secret is configured
    """
    verdict = interpret(headers.get(config.verify_code_header))

    if not verdict.trusted:
        echo = None
        if config.echo_headers:
            echo = sanitize_headers(headers, secrets=(config.secret, config.access_key, config.edge_secret))

        if verdict.missing:
            audit_log.signal_missing(config.verify_code_header)
            return Rejection(RejectionKind.MISSING_SIGNAL, verdict.human_reason, received_headers=echo)

        audit_log.signal_rejected(verdict.code, verdict.human_reason)
        return Rejection(RejectionKind.UNTRUSTED, verdict.human_reason, reason_code=verdict.code, received_headers=echo)

    if not config.secret:
        raise ConfigurationError("SERVER_SECRET is not configured")

    if now is None:
        now = now_epoch()

    bound_ip = extract_client_ip(headers, config.client_ip_headers)
    claims = build_claims(config, bound_ip, now)
    ticket = encode(claims, config.secret)

    audit_log.ticket_issued(claims.request_id, bound_ip, claims.expires_at)
    return IssuedTicket(ticket=ticket, expire_in=config.ticket_lifetime, claims=claims)
