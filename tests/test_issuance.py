import pytest

from captcha_relay.config import RelayConfig
from captcha_relay.errors import ConfigurationError
from captcha_relay.issuance import IssuedTicket, Rejection, RejectionKind, issue
from captcha_relay.security import REDACTED
from captcha_relay.ticket import decode

SECRET = "issue-secret"
NOW = 1_700_000_000


def make_config(**overrides):
    overrides.setdefault("secret", SECRET)
    overrides.setdefault("ticket_lifetime", 90)
    return RelayConfig(**overrides)


def test_trusted_signal_issues_ticket():
    headers = {"x-captcha-verify-code": "T001", "x-real-ip": "1.2.3.4"}
    result = issue(headers, make_config(), now=NOW)

    assert isinstance(result, IssuedTicket)
    assert result.expire_in == 90

    claims = decode(result.ticket, SECRET)
    assert claims == result.claims
    assert claims.issued_at == NOW
    assert claims.expires_at == NOW + 90
    assert claims.bound_ip == "1.2.3.4"
    assert claims.issuer == "captcha-relay"


def test_request_ids_are_unique():
    headers = {"x-captcha-verify-code": "T001"}
    config = make_config()
    ids = {issue(headers, config, now=NOW).claims.request_id for _ in range(20)}
    assert len(ids) == 20


def test_client_ip_precedence():
    headers = {
        "x-captcha-verify-code": "T001",
        "x-client-ip": "10.0.0.1",
        "x-real-ip": "10.0.0.2",
        "x-forwarded-for": "10.0.0.3",
    }
    assert issue(headers, make_config(), now=NOW).claims.bound_ip == "10.0.0.1"

    del headers["x-client-ip"]
    assert issue(headers, make_config(), now=NOW).claims.bound_ip == "10.0.0.2"

    del headers["x-real-ip"]
    assert issue(headers, make_config(), now=NOW).claims.bound_ip == "10.0.0.3"


def test_unknown_ip_sentinel():
    result = issue({"x-captcha-verify-code": "T001"}, make_config(), now=NOW)
    assert result.claims.bound_ip == "unknown"


def test_untrusted_signal_rejected():
    result = issue({"x-captcha-verify-code": "F019"}, make_config(), now=NOW)
    assert result == Rejection(RejectionKind.UNTRUSTED, "verification timed out", reason_code="F019")


def test_missing_signal_rejected():
    result = issue({"x-real-ip": "1.2.3.4"}, make_config(), now=NOW)
    assert isinstance(result, Rejection)
    assert result.kind == RejectionKind.MISSING_SIGNAL
    assert result.received_headers is None


def test_debug_echoes_headers_without_secrets():
    config = make_config(debug=True, edge_secret="edge-value")
    headers = {
        "x-captcha-verify-code": "F017",
        "x-real-ip": "1.2.3.4",
        "x-esa-secret": "edge-value",
        "x-leak": f"prefix-{SECRET}",
    }
    result = issue(headers, config, now=NOW)

    echoed = result.received_headers
    assert echoed["x-real-ip"] == "1.2.3.4"
    assert echoed["x-esa-secret"] == REDACTED
    assert echoed["x-leak"] == REDACTED
    assert SECRET not in str(echoed)


def test_missing_secret_is_configuration_error():
    with pytest.raises(ConfigurationError):
        issue({"x-captcha-verify-code": "T001"}, make_config(secret=None), now=NOW)


def test_untrusted_signal_checked_before_secret():
    result = issue({"x-captcha-verify-code": "F003"}, make_config(secret=None), now=NOW)
    assert result.kind == RejectionKind.UNTRUSTED


def test_production_never_echoes_headers():
    config = make_config(debug=True, env="prod")
    result = issue({"x-captcha-verify-code": "F017", "x-real-ip": "1.2.3.4"}, config, now=NOW)
    assert result.kind == RejectionKind.UNTRUSTED
    assert result.received_headers is None

    result = issue({"x-real-ip": "1.2.3.4"}, config, now=NOW)
    assert result.kind == RejectionKind.MISSING_SIGNAL
    assert result.received_headers is None
