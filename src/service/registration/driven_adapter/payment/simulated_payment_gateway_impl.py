"""
Simulated Payment Gateway

Local stand-in for Stripe used when PAYMENT_SIMULATE is on. Ids mimic the
real shapes, and webhook signatures follow Stripe's `t=<ts>,v1=<hmac>` scheme
so the reconciler runs exactly as in production.
"""

import hashlib
import hmac
import secrets
import time

from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto import PaymentIntent, PaymentRefund, PaymentWebhookEvent
from src.service.registration.app.interface import IPaymentGateway
from src.service.registration.domain.enum import ErrorCode
from src.service.registration.driven_adapter.payment.webhook_payload import parse_webhook_payload


SIMULATED_VALID_SIGNATURE = 'sim_valid_signature'


def _sim_id(prefix: str) -> str:
    return f'{prefix}_sim_{int(time.time() * 1000)}_{secrets.token_hex(6)}'


def sign_payload(*, raw_body: bytes, secret: str, timestamp: int) -> str:
    signed = f'{timestamp}.'.encode() + raw_body
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f't={timestamp},v1={digest}'


class SimulatedPaymentGatewayImpl(IPaymentGateway):
    def __init__(self, *, webhook_secret: str) -> None:
        self.webhook_secret = webhook_secret
        # idempotency key → intent, mirrors the gateway's own replay behaviour
        self._intents: dict[str, PaymentIntent] = {}

    @Logger.io
    async def create_intent(
        self, *, amount: int, currency: str, metadata: dict[str, str], idempotency_key: str
    ) -> PaymentIntent:
        existing = self._intents.get(idempotency_key)
        if existing is not None:
            return existing
        intent_id = _sim_id('pi')
        intent = PaymentIntent(id=intent_id, client_secret=f'{intent_id}_secret_{secrets.token_hex(8)}')
        self._intents[idempotency_key] = intent
        Logger.base.info(f'🧪 [PAYMENT-SIM] Intent {intent.id} for {amount} {currency}')
        return intent

    @Logger.io
    async def refund(self, *, payment_intent_id: str, amount: int) -> PaymentRefund:
        return PaymentRefund(id=_sim_id('re'))

    def _signature_valid(self, *, raw_body: bytes, signature: str) -> bool:
        if signature == SIMULATED_VALID_SIGNATURE:
            return True
        parts = dict(item.split('=', 1) for item in signature.split(',') if '=' in item)
        timestamp, received = parts.get('t'), parts.get('v1')
        if not timestamp or not received or not timestamp.isdigit():
            return False
        expected = sign_payload(raw_body=raw_body, secret=self.webhook_secret, timestamp=int(timestamp))
        return hmac.compare_digest(expected.split('v1=', 1)[1], received)

    @Logger.io
    def verify_webhook(self, *, raw_body: bytes, signature: str) -> PaymentWebhookEvent:
        if not self._signature_valid(raw_body=raw_body, signature=signature):
            raise ValidationError(
                'Webhook signature verification failed', code=ErrorCode.INVALID_SIGNATURE
            )
        return parse_webhook_payload(raw_body)
