from typing import Any

import orjson

from src.platform.exception.exceptions import ValidationError
from src.service.registration.app.dto import PaymentWebhookEvent
from src.service.registration.domain.enum import ErrorCode


def parse_webhook_payload(raw_body: bytes) -> PaymentWebhookEvent:
    """Map a verified Stripe-shaped event body onto the gateway-neutral DTO"""
    try:
        payload: dict[str, Any] = orjson.loads(raw_body)
    except orjson.JSONDecodeError as e:
        raise ValidationError('Webhook body is not valid JSON', code=ErrorCode.INVALID_SIGNATURE) from e

    data_object = (payload.get('data') or {}).get('object') or {}
    metadata = data_object.get('metadata') or {}
    return PaymentWebhookEvent(
        id=str(payload.get('id', '')),
        type=str(payload.get('type', '')),
        payment_intent_id=data_object.get('id'),
        metadata={str(k): str(v) for k, v in metadata.items()},
    )
