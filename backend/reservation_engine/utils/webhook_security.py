import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(secret: str, payload: bytes, signature: str | None) -> bool:
    """Constant-time check of a hex HMAC-SHA256 signature over the raw request body."""
    if not signature:
        logger.warning("payment callback rejected: missing signature")
        return False
    expected = compute_hmac_sha256(secret, payload)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        logger.warning("payment callback rejected: signature mismatch")
        return False
    return True
