"""
Stripe Payment Gateway

The stripe SDK is synchronous; calls run in a worker thread so the event
loop is never blocked on the HTTP round-trip.
"""

import anyio
import stripe

from src.platform.exception.exceptions import PaymentGatewayError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto import PaymentIntent, PaymentRefund, PaymentWebhookEvent
from src.service.registration.app.interface import IPaymentGateway
from src.service.registration.domain.enum import ErrorCode
from src.service.registration.driven_adapter.payment.webhook_payload import parse_webhook_payload


class StripePaymentGatewayImpl(IPaymentGateway):
    def __init__(self, *, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    @Logger.io
    async def create_intent(
        self, *, amount: int, currency: str, metadata: dict[str, str], idempotency_key: str
    ) -> PaymentIntent:
        def _create() -> stripe.PaymentIntent:
            return stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={'enabled': True},
                idempotency_key=idempotency_key,
            )

        try:
            intent = await anyio.to_thread.run_sync(_create)
        except stripe.StripeError as e:
            raise PaymentGatewayError(e.user_message or str(e)) from e
        return PaymentIntent(id=intent.id, client_secret=intent.client_secret)

    @Logger.io
    async def refund(self, *, payment_intent_id: str, amount: int) -> PaymentRefund:
        def _refund() -> stripe.Refund:
            return stripe.Refund.create(
                api_key=self.api_key,
                payment_intent=payment_intent_id,
                amount=amount,
                idempotency_key=f'refund:{payment_intent_id}',
            )

        try:
            refund = await anyio.to_thread.run_sync(_refund)
        except stripe.StripeError as e:
            raise PaymentGatewayError(e.user_message or str(e)) from e
        return PaymentRefund(id=refund.id)

    @Logger.io
    def verify_webhook(self, *, raw_body: bytes, signature: str) -> PaymentWebhookEvent:
        try:
            stripe.WebhookSignature.verify_header(
                raw_body.decode('utf-8'), signature, self.webhook_secret
            )
        except (stripe.SignatureVerificationError, UnicodeDecodeError) as e:
            raise ValidationError(
                'Webhook signature verification failed', code=ErrorCode.INVALID_SIGNATURE
            ) from e
        return parse_webhook_payload(raw_body)
