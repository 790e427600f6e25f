from datetime import datetime, timezone
from typing import Any, Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.platform.metrics.registration_metrics import registration_metrics
from src.service.registration.app.dto import (
    PAYMENT_INTENT_FAILED,
    PAYMENT_INTENT_SUCCEEDED,
    PaymentWebhookEvent,
)
from src.service.registration.app.interface import (
    INotificationDispatcher,
    IPaymentGateway,
    IRegistrationRepo,
)
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.domain.check_in_readiness_domain import evaluate_registration
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import (
    ErrorCode,
    PaymentStatus,
    RegistrationStatus,
)
from src.service.registration.domain.value_object import HoldOwner, HoldScope


CONFIRMATION_EMAIL_TEMPLATE = 'registration.confirmed.email'
CONFIRMATION_SMS_TEMPLATE = 'registration.confirmed.sms'


def confirmation_template_vars(registration: Registration) -> dict[str, Any]:
    rv_fee = next((fee for fee in registration.fees if fee.code == 'rv'), None)
    return {
        'registrationId': registration.id,
        'paymentIntentId': registration.payment_intent_id,
        'rvQty': registration.rv_qty,
        'rvUnitAmount': rv_fee.unit_amount if rv_fee else 0,
        'rvAmount': rv_fee.amount if rv_fee else 0,
        'currency': registration.currency,
    }


class ReconcilePaymentWebhookUseCase:
    """
    Payment webhook reconciler

    Every branch is safe to replay: the gateway redelivers until it sees a 2xx.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        payment_gateway: IPaymentGateway,
        notification_dispatcher: INotificationDispatcher,
        hold_lifecycle_manager: HoldLifecycleManager,
    ) -> None:
        self.registration_repo = registration_repo
        self.payment_gateway = payment_gateway
        self.notification_dispatcher = notification_dispatcher
        self.hold_lifecycle_manager = hold_lifecycle_manager
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        payment_gateway: IPaymentGateway = Depends(Provide[Container.payment_gateway]),
        notification_dispatcher: INotificationDispatcher = Depends(
            Provide[Container.notification_dispatcher]
        ),
        hold_lifecycle_manager: HoldLifecycleManager = Depends(
            Provide[Container.hold_lifecycle_manager]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo,
            payment_gateway=payment_gateway,
            notification_dispatcher=notification_dispatcher,
            hold_lifecycle_manager=hold_lifecycle_manager,
        )

    @Logger.io
    async def handle(self, *, raw_body: bytes, signature: Optional[str]) -> dict[str, bool]:
        if not signature:
            raise ValidationError('Missing Stripe-Signature header', code=ErrorCode.MISSING_SIGNATURE)
        if not raw_body:
            raise ValidationError('Webhook body is empty', code=ErrorCode.MISSING_BODY)

        event = self.payment_gateway.verify_webhook(raw_body=raw_body, signature=signature)

        with self.tracer.start_as_current_span(
            'registration.payment_webhook',
            attributes={'webhook.event_id': event.id, 'webhook.event_type': event.type},
        ):
            if event.type == PAYMENT_INTENT_SUCCEEDED:
                result = await self._on_succeeded(event)
            elif event.type == PAYMENT_INTENT_FAILED:
                result = await self._on_failed(event)
            else:
                result = 'ignored'
            registration_metrics.webhook_events.labels(event_type=event.type, result=result).inc()
            Logger.base.info(f'💳 [WEBHOOK] {event.type} ({event.id}) → {result}')

        return {'received': True}

    async def _load(self, event: PaymentWebhookEvent) -> Optional[Registration]:
        registration_id = event.registration_id
        if not registration_id:
            Logger.base.warning(f'⚠️ [WEBHOOK] {event.id} carries no registration id')
            return None
        registration = await self.registration_repo.get_by_id(registration_id=registration_id)
        if registration is None:
            Logger.base.warning(f'⚠️ [WEBHOOK] {event.id}: registration {registration_id} not found')
        return registration

    async def _on_succeeded(self, event: PaymentWebhookEvent) -> str:
        registration = await self._load(event)
        if registration is None:
            return 'skipped'

        if registration.status is RegistrationStatus.CANCELLED:
            # Capacity was already given back (e.g. expiry); a late payment never revives it
            Logger.base.warning(
                f'⚠️ [WEBHOOK] Payment succeeded for cancelled registration {registration.id}, '
                f'needs manual refund'
            )
            return 'ignored'

        now = datetime.now(timezone.utc)
        result = 'skipped'
        if not (registration.payment_status is PaymentStatus.PAID and registration.confirmed_at):
            holds = await self.hold_lifecycle_manager.list_active_holds(
                owner=HoldOwner.registration(registration.id),
                scope=HoldScope.event(registration.event_id),
            )
            snapshot = evaluate_registration(
                registration,
                holds,
                status=RegistrationStatus.CONFIRMED,
                payment_status=PaymentStatus.PAID,
                now=now,
            )
            registration = await self.registration_repo.update(
                registration=registration.confirm_payment(
                    payment_intent_id=event.payment_intent_id or registration.payment_intent_id,
                    check_in_status=snapshot,
                    now=now,
                )
            )
            result = 'applied'

        # ========== Confirm holds ==========
        try:
            confirmed = await self.hold_lifecycle_manager.confirm_holds_for_owner(
                owner=HoldOwner.registration(registration.id)
            )
            if confirmed:
                Logger.base.info(f'🔒 [WEBHOOK] Confirmed {confirmed} hold(s) for {registration.id}')
        except Exception as e:
            Logger.base.exception(f'⚠️ [WEBHOOK] Hold confirmation failed for {registration.id}: {e}')

        await self._send_confirmations(registration, now=now)
        return result

    async def _send_confirmations(self, registration: Registration, *, now: datetime) -> None:
        template_vars = confirmation_template_vars(registration)
        email_id: Optional[str] = None
        sms_id: Optional[str] = None
        try:
            if registration.party_email and not registration.confirmation_message_id:
                email_id = await self.notification_dispatcher.enqueue_email(
                    to=registration.party_email,
                    template_key=CONFIRMATION_EMAIL_TEMPLATE,
                    template_vars=template_vars,
                )
            if registration.party_phone and not registration.confirmation_sms_message_id:
                sms_id = await self.notification_dispatcher.enqueue_sms(
                    to=registration.party_phone,
                    template_key=CONFIRMATION_SMS_TEMPLATE,
                    template_vars=template_vars,
                )
        except Exception as e:
            Logger.base.exception(f'⚠️ [WEBHOOK] Confirmation dispatch failed for {registration.id}: {e}')

        if email_id or sms_id:
            await self.registration_repo.update(
                registration=registration.with_confirmation_message_ids(
                    email_message_id=email_id, sms_message_id=sms_id, now=now
                )
            )

    async def _on_failed(self, event: PaymentWebhookEvent) -> str:
        registration = await self._load(event)
        if registration is None:
            return 'skipped'
        if registration.payment_status is PaymentStatus.FAILED:
            return 'skipped'

        now = datetime.now(timezone.utc)
        holds = await self.hold_lifecycle_manager.list_active_holds(
            owner=HoldOwner.registration(registration.id),
            scope=HoldScope.event(registration.event_id),
        )
        snapshot = evaluate_registration(
            registration, holds, payment_status=PaymentStatus.FAILED, now=now
        )
        await self.registration_repo.update(
            registration=registration.fail_payment(
                payment_intent_id=event.payment_intent_id or registration.payment_intent_id,
                check_in_status=snapshot,
                now=now,
            )
        )
        return 'applied'
