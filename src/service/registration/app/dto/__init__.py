"""Registration Application DTOs"""

from src.service.registration.app.dto.notification_dto import (
    ConfirmationResendResult,
    NotificationMessage,
)
from src.service.registration.app.dto.payment_dto import (
    PAYMENT_INTENT_FAILED,
    PAYMENT_INTENT_SUCCEEDED,
    PaymentIntent,
    PaymentRefund,
    PaymentWebhookEvent,
)
from src.service.registration.app.dto.registration_dto import (
    AssignmentResult,
    CheckoutResult,
    ExpireSweepResult,
)

__all__ = [
    'PAYMENT_INTENT_FAILED',
    'PAYMENT_INTENT_SUCCEEDED',
    'AssignmentResult',
    'CheckoutResult',
    'ConfirmationResendResult',
    'ExpireSweepResult',
    'NotificationMessage',
    'PaymentIntent',
    'PaymentRefund',
    'PaymentWebhookEvent',
]
