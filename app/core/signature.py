from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "x-paystack-signature"


def compute_webhook_signature(secret: str, raw_body: bytes) -> str:
    """Hex HMAC-SHA512 of the raw request body, as sent by the provider."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check the provider signature over the untouched request body.

    Returns False when the secret or signature is missing, or when the digest
    does not match.
    """
    if not secret or not signature:
        return False
    expected = compute_webhook_signature(secret, raw_body)
    return hmac.compare_digest(expected, signature.strip().lower())
