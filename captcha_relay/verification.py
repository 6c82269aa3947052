"""
Ticket verification.

Checks run strictly in order and the first failure wins:

1. ticket and claimed IP are present
2. signature is valid (no claim is read before this)
3. ticket has not expired
4. claimed IP equals the IP the ticket was bound to

A ticket stays valid for its whole lifetime no matter how many times it is
presented; nothing is recorded between calls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from .ticket import decode
from .util import now_epoch


class RejectReason(str, Enum):
    MISSING_PARAMETER = "missing parameter"
    INVALID_SIGNATURE = "invalid signature"
    EXPIRED = "expired"
    IP_MISMATCH = "ip mismatch"


@dataclass(frozen=True)
class Accepted:
    request_id: str
    bound_ip: str

    def to_dict(self) -> Dict[str, Any]:
        return {"requestId": self.request_id, "boundIp": self.bound_ip}


@dataclass(frozen=True)
class Rejected:
    reason: RejectReason
    registered_ip: Optional[str] = None
    current_ip: Optional[str] = None


def _present(value: Any) -> bool:
    return isinstance(value, str) and value != ""


def verify(
    ticket: Any,
    claimed_ip: Any,
    secret: str,
    now: Optional[int] = None
) -> Union[Accepted, Rejected]:
    """
    Verify a ticket presented by a client.

    Args:
        ticket: Ticket string as presented
        claimed_ip: IP the caller claims to be
        secret: Shared HMAC secret
        now: Verification time in Unix seconds (defaults to the clock)

    Returns:
        Accepted with the ticket's request id and bound IP, or Rejected
    """
    if not _present(ticket) or not _present(claimed_ip):
        return Rejected(RejectReason.MISSING_PARAMETER)

    claims = decode(ticket, secret)
    if claims is None:
        return Rejected(RejectReason.INVALID_SIGNATURE)

    if now is None:
        now = now_epoch()

    if claims.expires_at < now:
        return Rejected(RejectReason.EXPIRED)

    if claims.bound_ip != claimed_ip:
        return Rejected(RejectReason.IP_MISMATCH, registered_ip=claims.bound_ip, current_ip=claimed_ip)

    return Accepted(request_id=claims.request_id, bound_ip=claims.bound_ip)
