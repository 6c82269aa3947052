"""
WAF result code interpretation.

The upstream WAF stamps its verdict onto every request it forwards as a short
code string. Only the success code is trusted; every other code maps to a
human-readable reason, and an absent code signals a WAF or routing
misconfiguration rather than a caller error.
"""

from dataclasses import dataclass
from typing import Dict, Optional

SUCCESS_CODE = "T001"

MISSING_SIGNAL_REASON = "missing verification signal"

RESULT_MESSAGES: Dict[str, str] = {
    "T001": "verification passed",
    "F003": "CaptchaVerifyParam could not be parsed",
    "F005": "scene id does not exist",
    "F017": "verify token was tampered with",
    "F018": "verification data was reused",
    "F019": "verification timed out",
    "F020": "ticket does not match the scene id or user",
    "F021": "scene id of the challenge does not match the scene id of the check",
}


@dataclass(frozen=True)
class Verdict:
    """Trust decision derived from a WAF result code."""
    trusted: bool
    human_reason: str
    code: Optional[str] = None
    missing: bool = False


def describe(code: str) -> str:
    """Return the human-readable message for a result code."""
    return RESULT_MESSAGES.get(code, f"unknown code: {code}")


def interpret(code: Optional[str]) -> Verdict:
    """Map a raw WAF result code to a trust decision."""
    if not code:
        return Verdict(trusted=False, human_reason=MISSING_SIGNAL_REASON, missing=True)

    if code == SUCCESS_CODE:
        return Verdict(trusted=True, human_reason=describe(code), code=code)

    return Verdict(trusted=False, human_reason=describe(code), code=code)
