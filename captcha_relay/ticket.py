"""
Ticket codec for Captcha Relay.

A ticket is a compact, self-verifying credential with three dot-separated
segments, each unpadded URL-safe base64:

    header.payload.signature

The header is fixed, the payload holds the canonical JSON claims, and the
signature is HMAC-SHA256 over ``header + "." + payload`` keyed with the
shared secret. Tickets are never stored; verification needs only the secret.
"""

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .util import b64url_decode, b64url_encode, canonicalize, constant_time_compare

TICKET_HEADER = {"alg": "HS256", "typ": "JWT"}

_HEADER_SEGMENT = b64url_encode(canonicalize(TICKET_HEADER))

CLAIM_KEYS = ("issuer", "issuedAt", "expiresAt", "boundIp", "requestId")


@dataclass(frozen=True)
class TicketClaims:
    """Signed payload of a ticket."""
    issuer: str
    issued_at: int
    expires_at: int
    bound_ip: str
    request_id: str

    def __post_init__(self):
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issuer": self.issuer,
            "issuedAt": self.issued_at,
            "expiresAt": self.expires_at,
            "boundIp": self.bound_ip,
            "requestId": self.request_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TicketClaims':
        """
        Build claims from their wire form.

        Raises:
            ValueError: If a key is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("claims must be an object")

        missing = [k for k in CLAIM_KEYS if k not in data]
        if missing:
            raise ValueError(f"missing claims: {', '.join(missing)}")

        for key in ("issuedAt", "expiresAt"):
            # bool is an int subclass
            if not isinstance(data[key], int) or isinstance(data[key], bool):
                raise ValueError(f"{key} must be an integer")

        for key in ("issuer", "boundIp", "requestId"):
            if not isinstance(data[key], str):
                raise ValueError(f"{key} must be a string")

        return cls(
            issuer=data["issuer"],
            issued_at=data["issuedAt"],
            expires_at=data["expiresAt"],
            bound_ip=data["boundIp"],
            request_id=data["requestId"],
        )


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode('utf-8'), signing_input.encode('ascii'), hashlib.sha256).digest()
    return b64url_encode(digest)


def encode(claims: TicketClaims, secret: str) -> str:
    """
    Serialize and sign claims.

    Args:
        claims: Claims to embed
        secret: Shared HMAC secret (raw key)

    Returns:
        The ``header.payload.signature`` ticket string
    """
    payload_segment = b64url_encode(canonicalize(claims.to_dict()))
    signing_input = f"{_HEADER_SEGMENT}.{payload_segment}"
    return f"{signing_input}.{_sign(signing_input, secret)}"


def decode(ticket: Any, secret: str) -> Optional[TicketClaims]:
    """
    Validate a ticket's signature and return its claims.

    Signature is checked before the payload is parsed. Returns None for
    any malformed, tampered, or wrongly-keyed ticket; never raises.
    """
    if not isinstance(ticket, str) or not secret:
        return None

    segments = ticket.split(".")
    if len(segments) != 3 or not all(segments):
        return None

    header_segment, payload_segment, signature_segment = segments
    try:
        expected = _sign(f"{header_segment}.{payload_segment}", secret)
    except UnicodeEncodeError:
        return None

    if not constant_time_compare(expected, signature_segment):
        return None

    try:
        payload = json.loads(b64url_decode(payload_segment).decode('utf-8'))
        return TicketClaims.from_dict(payload)
    except (ValueError, UnicodeError):
        return None
