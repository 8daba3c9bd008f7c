"""Webhook signature verification."""

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def generate_signature(payload: bytes, secret: str) -> str:
    """Compute the ``X-Hub-Signature-256`` header value for ``payload``."""
    digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Check a GitHub webhook signature in constant time."""
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(generate_signature(payload, secret), signature)
