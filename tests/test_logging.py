import json
import logging

import pytest

from captcha_relay.logging_config import (
    StructuredFormatter,
    configure_logging,
    request_id_var,
    set_request_id,
)

SECRET = "unit-test-secret"

PASSED = {"x-captcha-verify-code": "T001"}


@pytest.fixture
def audit(caplog):
    caplog.set_level(logging.INFO)

    def _events():
        return [r.extra_fields for r in caplog.records if hasattr(r, "extra_fields")]
    return _events


def formatted_lines(caplog):
    formatter = StructuredFormatter()
    return [formatter.format(r) for r in caplog.records]


def test_issue_and_verify_events_carry_request_id(client, caplog, audit):
    r = client.get("/api/captcha", headers={**PASSED, "x-real-ip": "1.2.3.4", "X-Request-ID": "rid-1"})
    ticket = r.json()["data"]["ticket"]

    client.post(
        "/api/verify",
        json={"ticket": ticket, "client_ip": "1.2.3.4"},
        headers={"X-Request-ID": "rid-2"},
    )

    header, payload, _ = ticket.split(".")
    forged = f"{header}.{payload}.AAAA"
    client.post(
        "/api/verify",
        json={"ticket": forged, "client_ip": "1.2.3.4"},
        headers={"X-Request-ID": "rid-3"},
    )

    events = [(e["event_type"], e["request_id"]) for e in audit()]
    assert ("TICKET_ISSUED", "rid-1") in events
    assert ("VERIFICATION_DECISION", "rid-2") in events
    assert ("VERIFICATION_DECISION", "rid-3") in events
    assert ("SECURITY_EVENT", "rid-3") in events

    decisions = [e for e in audit() if e["event_type"] == "VERIFICATION_DECISION"]
    assert [d["accepted"] for d in decisions] == [True, False]
    assert decisions[1]["reason"] == "invalid signature"

    for line in formatted_lines(caplog):
        assert SECRET not in line
        assert ticket not in line
        assert forged not in line


def test_masked_ticket_keeps_only_tail(client, audit):
    ticket = client.get("/api/captcha", headers=PASSED).json()["data"]["ticket"]
    client.post("/api/verify", json={"ticket": ticket, "client_ip": "9.9.9.9"})

    decision = [e for e in audit() if e["event_type"] == "VERIFICATION_DECISION"][-1]
    assert decision["ticket"].endswith(ticket[-4:])
    assert decision["ticket"].startswith("****")
    assert len(decision["ticket"]) == len(ticket)


def test_rejected_and_missing_signals_logged(client, audit):
    client.get("/api/captcha", headers={"x-captcha-verify-code": "F019"})
    client.get("/api/captcha")

    by_type = {e["event_type"]: e for e in audit()}
    assert by_type["SIGNAL_REJECTED"]["reason_code"] == "F019"
    assert by_type["SIGNAL_REJECTED"]["reason"] == "verification timed out"
    assert by_type["SIGNAL_MISSING"]["header"] == "x-captcha-verify-code"
    assert "TICKET_ISSUED" not in by_type


def test_refused_caller_logged_without_key(make_client, caplog, audit):
    client = make_client(access_key="backend-key")
    client.get("/api/captcha?secret=wrong", headers=PASSED)

    events = [e for e in audit() if e["event_type"] == "SECURITY_EVENT"]
    assert events[0]["security_event"] == "caller_access_denied"
    for line in formatted_lines(caplog):
        assert "backend-key" not in line


def test_configure_logging_writes_json_to_file(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    path = tmp_path / "relay.log"

    try:
        configure_logging(level="INFO", json_format=True, log_file=str(path))
        set_request_id("rid-file")
        logging.getLogger("captcha_relay.test").info("written")
        logging.getLogger("captcha_relay.test").debug("filtered")
    finally:
        for handler in root.handlers[:]:
            root.removeHandler(handler)
            handler.close()
        for handler in saved_handlers:
            root.addHandler(handler)
        root.setLevel(saved_level)
        request_id_var.set("")

    lines = path.read_text().splitlines()
    assert len(lines) == 1
    entry = json.loads(lines[0])
    assert entry["message"] == "written"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "captcha_relay.test"
    assert entry["request_id"] == "rid-file"


def test_set_request_id_generates_when_absent():
    try:
        generated = set_request_id()
        assert generated
        assert request_id_var.get() == generated
    finally:
        request_id_var.set("")
