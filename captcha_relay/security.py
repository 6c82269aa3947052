"""
Security module for Captcha Relay.

Provides client identity extraction, header redaction for diagnostics, and
the optional caller access checks on the issuance endpoint.
"""

from typing import Dict, Iterable, List, Mapping, Optional

from .config import CLIENT_IP_HEADERS, EDGE_SECRET_HEADER, RelayConfig
from .errors import AccessDenied
from .util import constant_time_compare

UNKNOWN_IP = "unknown"

REDACTED = "[REDACTED]"

# Header names whose values are never echoed back
SENSITIVE_HEADERS = [
    "authorization",
    "cookie",
    "proxy-authorization",
    "x-api-key",
    EDGE_SECRET_HEADER,
]


# ============================================================
# Client Identity
# ============================================================

def extract_client_ip(
    headers: Mapping[str, str],
    candidates: Iterable[str] = CLIENT_IP_HEADERS
) -> str:
    """
    Extract the caller's IP from proxy headers.

    The first candidate header with a non-empty value wins. For
    ``x-forwarded-for`` the left-most (original client) entry is used.
    Falls back to ``"unknown"`` if no candidate is present.
    """
    for name in candidates:
        value = (headers.get(name) or "").strip()
        if not value:
            continue
        if name == "x-forwarded-for":
            value = value.split(",")[0].strip()
            if not value:
                continue
        return value

    return UNKNOWN_IP


# ============================================================
# Diagnostic Helpers
# ============================================================

def sanitize_headers(
    headers: Mapping[str, str],
    secrets: Iterable[Optional[str]] = (),
    sensitive_headers: List[str] = None
) -> Dict[str, str]:
    """
    Copy headers for diagnostic echo, masking sensitive values.

    Args:
        headers: Inbound request headers
        secrets: Configured secret values; any header carrying one is masked
        sensitive_headers: Header names to mask regardless of value

    Returns:
        Sanitized copy with lower-cased names
    """
    if sensitive_headers is None:
        sensitive_headers = SENSITIVE_HEADERS

    secret_values = [s for s in secrets if s]

    result = {}
    for key, value in headers.items():
        name = key.lower()
        if name in sensitive_headers or any(s in value for s in secret_values):
            result[name] = REDACTED
        else:
            result[name] = value

    return result


# ============================================================
# Caller Access Checks
# ============================================================

def check_caller_access(
    config: RelayConfig,
    query_secret: Optional[str],
    headers: Mapping[str, str]
) -> None:
    """
    Enforce the optional access key and edge secret.

    Raises:
        AccessDenied: If a configured check does not match
    """
    if config.access_key is not None:
        if not query_secret or not constant_time_compare(query_secret, config.access_key):
            raise AccessDenied("access key missing or incorrect")

    if config.edge_secret is not None:
        presented = headers.get(EDGE_SECRET_HEADER) or ""
        if not presented or not constant_time_compare(presented, config.edge_secret):
            raise AccessDenied(f"header {EDGE_SECRET_HEADER} missing or incorrect")
