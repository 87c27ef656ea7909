"""HMAC-SHA256 signature helpers for inbound payment notifications."""

from __future__ import annotations

import hashlib
import hmac


def compute_hmac_sha256(*, secret: str, body: bytes) -> str:
    """Return the lowercase hex HMAC-SHA256 digest of the raw request body."""

    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_hmac_signature(*, secret: str, body: bytes, provided_signature: str | None) -> bool:
    """Compare a provided hex signature to the expected digest in constant time."""

    if not provided_signature:
        return False

    candidate = provided_signature.strip().lower()
    if candidate.startswith("sha256="):
        candidate = candidate.removeprefix("sha256=")

    expected = compute_hmac_sha256(secret=secret, body=body)
    return hmac.compare_digest(expected, candidate)
