"""
Webhook signature validation - verify incoming Meta webhooks are authentic.

Meta signs every delivery with HMAC-SHA256 of the raw request body, keyed by
the app secret, and sends it as X-Hub-Signature-256: sha256=<hex digest>.
The digest MUST be computed over the exact bytes received, never over a
re-serialized JSON document.
"""
import hashlib
import hmac
import logging
from typing import Optional

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="
SHA256_HEX_LENGTH = hashlib.sha256().digest_size * 2


def _reject(reason: str) -> bool:
    # Reason category only - never the secret or either digest
    logger.warning("Meta webhook signature rejected: %s", reason, extra={"reason": reason})
    return False


def validate_meta_signature(
    secret: Optional[str],
    signature: Optional[str],
    body: bytes,
) -> bool:
    """
    Validate a Meta X-Hub-Signature-256 header against the raw body.
    Returns True only when the HMAC matches. Fails closed when no secret is
    configured. Malformed headers are rejected before any hashing.
    """
    if not signature:
        return _reject("missing_header")
    if not secret:
        return _reject("missing_secret")
    if not signature.startswith(SIGNATURE_PREFIX):
        return _reject("malformed_header")

    received = signature[len(SIGNATURE_PREFIX):]
    if not received:
        return _reject("malformed_header")
    # Digests reaching compare_digest are always equal length
    if len(received) != SHA256_HEX_LENGTH:
        return _reject("length_mismatch")

    expected = hmac.new(
        secret.encode("utf-8"),
        body,
        hashlib.sha256,
    ).hexdigest()

    if not hmac.compare_digest(expected.encode("ascii"), received.lower().encode("utf-8")):
        return _reject("hash_mismatch")
    return True


def compute_payload_hash(body: bytes) -> str:
    """Compute SHA-256 hash of raw payload for dedup and audit."""
    return hashlib.sha256(body).hexdigest()
