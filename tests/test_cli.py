import json

from captcha_relay.cli import main
from captcha_relay.util import b64url_decode


def run(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr()
    return code, out.out, out.err


def test_keygen_prints_random_secret(capsys):
    code, out, _ = run(capsys, "keygen", "--bytes", "24")
    assert code == 0
    assert len(b64url_decode(out.strip())) == 24
    _, again, _ = run(capsys, "keygen", "--bytes", "24")
    assert again != out


def test_interpret(capsys):
    code, out, _ = run(capsys, "interpret", "T001")
    assert code == 0
    assert json.loads(out)["trusted"] is True

    code, out, _ = run(capsys, "interpret", "F019")
    assert code == 1
    assert json.loads(out)["reason"] == "verification timed out"


def test_issue_then_verify(capsys, monkeypatch):
    monkeypatch.setenv("SERVER_SECRET", "cli-secret")
    code, out, _ = run(capsys, "issue", "--ip", "1.2.3.4", "--lifetime", "30")
    assert code == 0
    issued = json.loads(out)
    assert issued["expire_in"] == 30
    assert issued["claims"]["boundIp"] == "1.2.3.4"

    code, out, _ = run(capsys, "verify", "--ticket", issued["ticket"], "--ip", "1.2.3.4")
    assert code == 0
    assert out.startswith("VALID")

    code, out, _ = run(capsys, "verify", "--ticket", issued["ticket"], "--ip", "9.9.9.9")
    assert code == 1
    assert out.startswith("INVALID: ip mismatch")


def test_missing_secret(capsys, monkeypatch):
    monkeypatch.delenv("SERVER_SECRET", raising=False)
    code, _, err = run(capsys, "verify", "--ticket", "a.b.c", "--ip", "1.2.3.4")
    assert code == 2
    assert "SERVER_SECRET" in err


def test_no_command_prints_help(capsys):
    code, out, _ = run(capsys)
    assert code == 2
    assert "captcha-relay" in out
