from __future__ import annotations

import base64
import hashlib
import hmac
import re


SUPPORTED_CHALLENGE_METHOD = "S256"

# RFC 7636: 43-128 chars from the unreserved set.
_PKCE_VALUE_RE = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


def compute_code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def is_valid_pkce_value(value: str) -> bool:
    return bool(_PKCE_VALUE_RE.match(value or ""))


def verify_code_verifier(*, code_verifier: str, code_challenge: str) -> bool:
    if not is_valid_pkce_value(code_verifier):
        return False
    expected = compute_code_challenge(code_verifier)
    return hmac.compare_digest(expected, code_challenge)
