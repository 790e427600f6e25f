from abc import ABC, abstractmethod

from src.service.registration.app.dto.payment_dto import (
    PaymentIntent,
    PaymentRefund,
    PaymentWebhookEvent,
)


class IPaymentGateway(ABC):
    @abstractmethod
    async def create_intent(
        self, *, amount: int, currency: str, metadata: dict[str, str], idempotency_key: str
    ) -> PaymentIntent:
        """Idempotent by `idempotency_key` at the gateway"""
        pass

    @abstractmethod
    async def refund(self, *, payment_intent_id: str, amount: int) -> PaymentRefund:
        pass

    @abstractmethod
    def verify_webhook(self, *, raw_body: bytes, signature: str) -> PaymentWebhookEvent:
        """
        Raises:
            ValidationError: `invalid_signature` when the payload is not authentic
        """
        pass
