from __future__ import annotations

import hashlib
import hmac

from appeal_automation.infrastructure.http.hmac_auth import (
    compute_hmac_sha256,
    verify_hmac_signature,
)

SECRET = "whsec-test"
BODY = b'{"type":"checkout.session.completed"}'


def test_compute_matches_stdlib_hmac_hexdigest() -> None:
    expected = hmac.new(SECRET.encode("utf-8"), BODY, hashlib.sha256).hexdigest()

    assert compute_hmac_sha256(secret=SECRET, body=BODY) == expected


def test_valid_signature_is_accepted_with_or_without_prefix() -> None:
    signature = compute_hmac_sha256(secret=SECRET, body=BODY)

    assert verify_hmac_signature(secret=SECRET, body=BODY, provided_signature=signature)
    assert verify_hmac_signature(
        secret=SECRET,
        body=BODY,
        provided_signature=f"sha256={signature.upper()}",
    )


def test_signature_over_different_body_is_rejected() -> None:
    signature = compute_hmac_sha256(secret=SECRET, body=BODY)

    assert not verify_hmac_signature(
        secret=SECRET,
        body=BODY + b" ",
        provided_signature=signature,
    )


def test_signature_with_wrong_secret_is_rejected() -> None:
    signature = compute_hmac_sha256(secret="other-secret", body=BODY)

    assert not verify_hmac_signature(secret=SECRET, body=BODY, provided_signature=signature)


def test_missing_signature_is_rejected() -> None:
    assert not verify_hmac_signature(secret=SECRET, body=BODY, provided_signature=None)
    assert not verify_hmac_signature(secret=SECRET, body=BODY, provided_signature="")
