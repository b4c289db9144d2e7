"""Gateway checkout signature verification.

The gateway signs `order_id|payment_id` with the merchant key secret using
HMAC-SHA256 and hands the hex digest to the browser. The server recomputes it
before trusting any client-reported payment.
"""

import hashlib
import hmac

from artpay.common.errors import ConfigurationError


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    message = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_signature(order_id, payment_id, signature, secret: str) -> bool:
    """Return True only when `signature` matches the expected digest.

    Missing or non-string fields are a plain mismatch, not an error.
    """

    if not secret:
        raise ConfigurationError("gateway key secret is not configured")
    if not all(isinstance(value, str) and value for value in (order_id, payment_id, signature)):
        return False
    expected = compute_signature(order_id, payment_id, secret)
    try:
        return hmac.compare_digest(expected, signature)
    except TypeError:
        # compare_digest refuses non-ASCII str input.
        return False


class SignatureVerifier:
    """Binds the key secret once at startup."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ConfigurationError("RAZORPAY_KEY_SECRET is required")
        self._secret = secret

    def verify(self, order_id, payment_id, signature) -> bool:
        return verify_signature(order_id, payment_id, signature, self._secret)
