"""
Utility functions for Captcha Relay.

Provides canonical JSON serialization, URL-safe encoding, and time utilities.
"""

import base64
import hmac
import json
import time
import uuid
from typing import Any


def canonicalize(obj: Any) -> bytes:
    """
    Convert object to canonical JSON bytes.

    Canonical JSON:
    - Lexicographically sorted keys
    - No whitespace
    - UTF-8 encoded
    """
    s = json.dumps(obj, sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return s.encode('utf-8')


def now_epoch() -> int:
    """Get current Unix timestamp as integer."""
    return int(time.time())


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def b64url_decode(s: str) -> bytes:
    """URL-safe base64 decode string to bytes (handles missing padding)."""
    padding = 4 - (len(s) % 4)
    if padding != 4:
        s += '=' * padding
    return base64.urlsafe_b64decode(s.encode('ascii'))


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time; non-ASCII input is allowed."""
    return hmac.compare_digest(a.encode('utf-8'), b.encode('utf-8'))


def generate_id() -> str:
    """Generate a random UUID4 string."""
    return str(uuid.uuid4())


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
