from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from src.platform.logging.loguru_io import Logger
from src.service.registration.app.command.reconcile_payment_webhook_use_case import (
    ReconcilePaymentWebhookUseCase,
)


router = APIRouter()


@router.post('/stripe')
@Logger.io(truncate_content=True)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias='Stripe-Signature'),
    use_case: ReconcilePaymentWebhookUseCase = Depends(ReconcilePaymentWebhookUseCase.depends),
) -> dict[str, bool]:
    # Signature is computed over the exact bytes received
    raw_body = await request.body()
    return await use_case.handle(raw_body=raw_body, signature=stripe_signature)
