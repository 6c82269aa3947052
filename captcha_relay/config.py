"""
Configuration module for Captcha Relay.

Centralizes all configuration with environment variable support and
validation. The environment is read once, at process start, into an
immutable ``RelayConfig`` which is then passed explicitly to the services.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple

# ============================================================
# Defaults
# ============================================================

DEFAULT_TICKET_LIFETIME = 60
DEFAULT_ISSUER = "captcha-relay"
DEFAULT_CAPTCHA_PATH = "/api/captcha"
DEFAULT_VERIFY_PATH = "/api/verify"

VERIFY_CODE_HEADER = "x-captcha-verify-code"
EDGE_SECRET_HEADER = "x-esa-secret"

# First non-empty header wins
CLIENT_IP_HEADERS = ("x-client-ip", "x-real-ip", "x-forwarded-for")

SUPPORTED_CAPTCHA_METHODS = ("GET", "POST")

_TRUTHY = ("1", "true", "yes", "on")


def _flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUTHY


def _parse_methods(raw: str) -> Tuple[str, ...]:
    methods = tuple(m.strip().upper() for m in raw.split(",") if m.strip())
    if not methods:
        raise ValueError("RELAY_CAPTCHA_METHODS must name at least one method")
    unsupported = [m for m in methods if m not in SUPPORTED_CAPTCHA_METHODS]
    if unsupported:
        raise ValueError(f"Unsupported issuance method(s): {', '.join(unsupported)}")
    return methods


def _parse_lifetime(raw: Optional[str]) -> int:
    if raw is None or raw.strip() == "":
        return DEFAULT_TICKET_LIFETIME
    try:
        lifetime = int(raw)
    except ValueError:
        raise ValueError(f"TICKET_EXPIRE must be an integer, got {raw!r}")
    if lifetime <= 0:
        raise ValueError("TICKET_EXPIRE must be positive")
    return lifetime


# ============================================================
# Relay Configuration
# ============================================================

@dataclass(frozen=True)
class RelayConfig:
    """
    Process-wide relay configuration.

    Built once at start-up and shared by reference. The secret is excluded
    from ``repr`` so the object can be logged safely.
    """
    secret: Optional[str] = field(default=None, repr=False)
    ticket_lifetime: int = DEFAULT_TICKET_LIFETIME
    issuer: str = DEFAULT_ISSUER
    env: str = "dev"
    debug: bool = False
    captcha_path: str = DEFAULT_CAPTCHA_PATH
    captcha_methods: Tuple[str, ...] = ("GET",)
    verify_path: str = DEFAULT_VERIFY_PATH
    verify_code_header: str = VERIFY_CODE_HEADER
    client_ip_headers: Tuple[str, ...] = CLIENT_IP_HEADERS
    access_key: Optional[str] = field(default=None, repr=False)
    edge_secret: Optional[str] = field(default=None, repr=False)
    log_level: str = "INFO"
    log_json: bool = True
    log_file: Optional[str] = None

    def __post_init__(self):
        if self.ticket_lifetime <= 0:
            raise ValueError("ticket_lifetime must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RelayConfig':
        """
        Load configuration from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests)

        Raises:
            ValueError: If a value is present but invalid
        """
        env = os.environ if environ is None else environ
        return cls(
            secret=env.get("SERVER_SECRET") or None,
            ticket_lifetime=_parse_lifetime(env.get("TICKET_EXPIRE")),
            issuer=env.get("RELAY_ISSUER", DEFAULT_ISSUER),
            env=env.get("RELAY_ENV", "dev"),
            debug=_flag(env.get("RELAY_DEBUG")),
            captcha_path=env.get("RELAY_CAPTCHA_PATH", DEFAULT_CAPTCHA_PATH),
            captcha_methods=_parse_methods(env.get("RELAY_CAPTCHA_METHODS", "GET")),
            verify_path=env.get("RELAY_VERIFY_PATH", DEFAULT_VERIFY_PATH),
            access_key=env.get("RELAY_ACCESS_KEY") or None,
            edge_secret=env.get("RELAY_EDGE_SECRET") or None,
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_json=_flag(env.get("LOG_JSON"), default=True),
            log_file=env.get("LOG_FILE") or None,
        )

    # ============================================================
    # Validation
    # ============================================================

    def validate(self) -> Dict[str, bool]:
        """
        Report which required settings are present.
        Returns dict of setting -> ok.
        """
        return {
            "secret": bool(self.secret),
            "ticket_lifetime": self.ticket_lifetime > 0,
        }

    # ============================================================
    # Feature Flags
    # ============================================================

    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "prod"

    @property
    def echo_headers(self) -> bool:
        """Debug header echo on rejections; never in production."""
        return self.debug and not self.is_production()

    @property
    def cors_methods(self) -> Tuple[str, ...]:
        methods = list(self.captcha_methods)
        for m in ("POST", "OPTIONS"):
            if m not in methods:
                methods.append(m)
        return tuple(methods)
