"""
Payment Gateway DTOs

Gateway-neutral shapes returned by IPaymentGateway implementations.
"""

from typing import Optional

import attrs


PAYMENT_INTENT_SUCCEEDED = 'payment_intent.succeeded'
PAYMENT_INTENT_FAILED = 'payment_intent.payment_failed'


@attrs.frozen
class PaymentIntent:
    id: str
    client_secret: str


@attrs.frozen
class PaymentRefund:
    id: str


@attrs.frozen
class PaymentWebhookEvent:
    id: str
    type: str
    payment_intent_id: Optional[str] = None
    metadata: dict[str, str] = attrs.field(factory=dict)

    @property
    def registration_id(self) -> Optional[str]:
        return self.metadata.get('registration_id') or self.metadata.get('registrationId')
