#!/usr/bin/env python3
"""
Captcha Relay Command Line Interface

Usage:
    captcha-relay serve [--host HOST] [--port PORT]
    captcha-relay keygen [--bytes N]
    captcha-relay interpret CODE
    captcha-relay issue --ip IP [--lifetime SECONDS]
    captcha-relay verify --ticket TICKET --ip IP

The shared secret is read from SERVER_SECRET, like the service itself.
"""

import argparse
import json
import sys
from dataclasses import replace

from nacl.utils import random as random_bytes


def load_config():
    from captcha_relay.config import RelayConfig

    return RelayConfig.from_env()


def require_secret(config) -> bool:
    if not config.secret:
        print("SERVER_SECRET is not set", file=sys.stderr)
        return False
    return True


def cmd_serve(args):
    """Run the relay under uvicorn."""
    import uvicorn
    from captcha_relay.logging_config import configure_logging
    from captcha_relay.main import create_app

    config = load_config()
    configure_logging(level=config.log_level, json_format=config.log_json, log_file=config.log_file)
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_config=None)
    return 0


def cmd_keygen(args):
    """Print a fresh random shared secret."""
    from captcha_relay.util import b64url_encode

    print(b64url_encode(random_bytes(args.bytes)))
    return 0


def cmd_interpret(args):
    """Explain a WAF result code."""
    from captcha_relay.result_codes import interpret

    verdict = interpret(args.code)
    print(json.dumps({
        "code": verdict.code,
        "trusted": verdict.trusted,
        "reason": verdict.human_reason,
    }, indent=2))
    return 0 if verdict.trusted else 1


def cmd_issue(args):
    """Mint a ticket offline for the given IP."""
    from captcha_relay.issuance import build_claims
    from captcha_relay.ticket import encode
    from captcha_relay.util import now_epoch

    config = load_config()
    if not require_secret(config):
        return 2
    if args.lifetime is not None:
        if args.lifetime <= 0:
            print("--lifetime must be positive", file=sys.stderr)
            return 2
        config = replace(config, ticket_lifetime=args.lifetime)

    claims = build_claims(config, args.ip, now_epoch())
    print(json.dumps({
        "ticket": encode(claims, config.secret),
        "expire_in": config.ticket_lifetime,
        "claims": claims.to_dict(),
    }, indent=2))
    return 0


def cmd_verify(args):
    """Verify a ticket offline."""
    from captcha_relay.verification import Accepted, verify

    config = load_config()
    if not require_secret(config):
        return 2

    result = verify(args.ticket, args.ip, config.secret)
    if isinstance(result, Accepted):
        print("VALID")
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print(f"INVALID: {result.reason.value}")
    if result.registered_ip is not None:
        print(json.dumps({"registeredIp": result.registered_ip, "currentIp": result.current_ip}, indent=2))
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="captcha-relay",
        description="Captcha Relay CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  captcha-relay serve --port 8080
  captcha-relay keygen
  captcha-relay interpret F019
  captcha-relay issue --ip 1.2.3.4
  captcha-relay verify --ticket <ticket> --ip 1.2.3.4
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=3000, help="Bind port")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a shared secret")
    keygen_parser.add_argument("--bytes", type=int, default=32, help="Secret length in bytes")

    interpret_parser = subparsers.add_parser("interpret", help="Explain a WAF result code")
    interpret_parser.add_argument("code", help="Result code, e.g. T001")

    issue_parser = subparsers.add_parser("issue", help="Mint a ticket offline")
    issue_parser.add_argument("--ip", required=True, help="IP to bind the ticket to")
    issue_parser.add_argument("--lifetime", type=int, help="Lifetime in seconds")

    verify_parser = subparsers.add_parser("verify", help="Verify a ticket offline")
    verify_parser.add_argument("--ticket", required=True, help="Ticket string")
    verify_parser.add_argument("--ip", required=True, help="Client IP presenting the ticket")

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "keygen": cmd_keygen,
    "interpret": cmd_interpret,
    "issue": cmd_issue,
    "verify": cmd_verify,
}


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 2
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
