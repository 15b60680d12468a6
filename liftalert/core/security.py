"""Shared-secret and HMAC signature checks for inbound webhooks."""

import hashlib
import hmac


def verify_secret(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def compute_hmac_sha256(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_hmac_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """
    Verify a hex HMAC-SHA256 of the raw body.

    Accepts both the bare hex digest and the "sha256=<hex>" form used by
    X-Hub-Signature-256.
    """
    if not signature or not secret:
        return False
    signature = signature.strip()
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = compute_hmac_sha256(payload, secret)
    return hmac.compare_digest(expected.encode(), signature.lower().encode())
