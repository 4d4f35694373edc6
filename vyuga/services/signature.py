"""HMAC-SHA256 authenticity check for payment callbacks."""

import hashlib
import hmac


def sign_payment_reference(order_reference_id: str, payment_reference_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``"<order_reference_id>|<payment_reference_id>"`` keyed by ``secret``."""
    message = f"{order_reference_id}|{payment_reference_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(
    order_reference_id: str | None,
    payment_reference_id: str | None,
    signature: str | None,
    secret: str | None,
) -> bool:
    """Check a payment callback signature in constant time.

    Any missing input is a failed verification, never an exception.

    Args:
        order_reference_id: Gateway order/intent id from the callback.
        payment_reference_id: Gateway payment id from the callback.
        signature: Signature supplied by the caller.
        secret: Shared secret.

    Returns:
        bool: True only if the signature matches.
    """
    if not (order_reference_id and payment_reference_id and signature and secret):
        return False

    expected = sign_payment_reference(order_reference_id, payment_reference_id, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
