"""Razorpay payment signature verification"""
import hashlib
import hmac
import logging
from typing import Optional

from domain.exceptions import PaymentGatewayError
from domain.gateways import PaymentGateway

logger = logging.getLogger(__name__)


class RazorpayPaymentGateway(PaymentGateway):
    """Checks the checkout callback signature: HMAC-SHA256 of ``order_id|payment_id``"""

    def __init__(self, key_secret: Optional[str]):
        self._key_secret = key_secret

    @staticmethod
    def sign(key_secret: str, order_id: str, payment_id: str) -> str:
        payload = f"{order_id}|{payment_id}".encode("utf-8")
        return hmac.new(key_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self._key_secret:
            logger.error("Razorpay key secret is not configured, cannot verify payment %s", payment_id)
            raise PaymentGatewayError("Payment gateway is not configured")
        if not order_id or not payment_id or not signature:
            return False

        expected = self.sign(self._key_secret, order_id, payment_id)
        valid = hmac.compare_digest(expected, signature)
        if not valid:
            logger.warning("Signature mismatch for order %s payment %s", order_id, payment_id)
        return valid
