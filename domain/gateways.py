"""Domain ports for external services"""
from abc import ABC, abstractmethod
from typing import List

from domain.notifications import PushMessage, PushResult


class PaymentGateway(ABC):
    """Verifies callbacks from the online payment provider"""

    @abstractmethod
    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        pass


class PushSender(ABC):
    """Delivers push notifications to device tokens"""

    @abstractmethod
    async def send_multicast(self, tokens: List[str], message: PushMessage) -> PushResult:
        pass
