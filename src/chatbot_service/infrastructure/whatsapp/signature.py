from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature-256"


class SignatureVerificationError(Exception):
    """Raised when the webhook HMAC signature is missing or wrong."""


def verify_signature(payload_bytes: bytes, signature_header: str | None, app_secret: str) -> None:
    """Check a ``sha256=<hex>`` HMAC over the raw webhook body."""
    if not signature_header:
        raise SignatureVerificationError("missing signature header")
    if not signature_header.startswith("sha256="):
        raise SignatureVerificationError("invalid signature format")

    expected = signature_header.removeprefix("sha256=")
    computed = hmac.new(
        key=app_secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()

    if not hmac.compare_digest(computed, expected):
        raise SignatureVerificationError("signature mismatch")
