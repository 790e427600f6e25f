from datetime import datetime, timedelta, timezone
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError, StateConflictError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.dto import ConfirmationResendResult, NotificationMessage
from src.service.registration.app.interface import INotificationDispatcher, IRegistrationRepo
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import ErrorCode, NotificationChannel


_CAS_ATTEMPTS = 3


class ResendConfirmationUseCase:
    """
    Resend the payment confirmation through the stored outbox messages

    Only messages the outbox marked failed are retried; a queued or sent
    message is reported as-is. Resends are capped per registration and spaced
    by a minimum interval; a rate-limited call attempts nothing.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        notification_dispatcher: INotificationDispatcher,
    ) -> None:
        self.registration_repo = registration_repo
        self.notification_dispatcher = notification_dispatcher
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        notification_dispatcher: INotificationDispatcher = Depends(
            Provide[Container.notification_dispatcher]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo, notification_dispatcher=notification_dispatcher
        )

    async def _load(self, registration_id: str) -> Registration:
        registration = await self.registration_repo.get_by_id(registration_id=registration_id)
        if registration is None:
            raise NotFoundError(
                f'Registration {registration_id} not found',
                code=ErrorCode.REGISTRATION_NOT_FOUND,
            )
        return registration

    @staticmethod
    def _rate_limited(registration: Registration, *, now: datetime) -> bool:
        if registration.confirmation_resend_count >= settings.CONFIRMATION_RESEND_MAX:
            return True
        last = registration.confirmation_resent_at
        interval = timedelta(seconds=settings.CONFIRMATION_RESEND_MIN_INTERVAL_SECONDS)
        return last is not None and now - last < interval

    async def _retry_if_failed(
        self, message_id: Optional[str]
    ) -> tuple[bool, Optional[NotificationMessage]]:
        if not message_id:
            return False, None
        message = await self.notification_dispatcher.get_message(message_id=message_id)
        if message is None or not message.failed:
            return False, message
        return True, await self.notification_dispatcher.retry_message(message_id=message_id)

    @Logger.io
    async def resend(
        self, *, registration_id: str, channel: Optional[str] = None
    ) -> ConfirmationResendResult:
        requested = channel or NotificationChannel.BOTH
        if requested not in NotificationChannel:
            raise ValidationError(
                f'channel must be one of {"|".join(NotificationChannel)}; got {requested!r}',
                code=ErrorCode.INVALID_CHANNEL,
            )
        selected = NotificationChannel(requested)

        with self.tracer.start_as_current_span(
            'registration.resend_confirmation',
            attributes={'registration.id': registration_id, 'notification.channel': str(selected)},
        ):
            registration = await self._load(registration_id)
            now = datetime.now(timezone.utc)
            if self._rate_limited(registration, now=now):
                Logger.base.info(f'⏳ [RESEND] {registration.id} rate limited')
                return ConfirmationResendResult(registration_id=registration.id, rate_limited=True)

            # ========== Step 1: Retry failed messages ==========
            attempted_email, email = False, None
            attempted_sms, sms = False, None
            if selected in (NotificationChannel.BOTH, NotificationChannel.EMAIL):
                attempted_email, email = await self._retry_if_failed(
                    registration.confirmation_message_id
                )
            if selected in (NotificationChannel.BOTH, NotificationChannel.SMS):
                attempted_sms, sms = await self._retry_if_failed(
                    registration.confirmation_sms_message_id
                )

            # ========== Step 2: Count the attempt ==========
            if attempted_email or attempted_sms:
                await self._record_resend(registration, now=now)
                Logger.base.info(
                    f'📨 [RESEND] {registration.id} email={attempted_email} sms={attempted_sms}'
                )

            return ConfirmationResendResult(
                registration_id=registration.id,
                rate_limited=False,
                attempted_email=attempted_email,
                attempted_sms=attempted_sms,
                email=email,
                sms=sms,
            )

    async def _record_resend(self, registration: Registration, *, now: datetime) -> None:
        for _ in range(_CAS_ATTEMPTS):
            stored = await self.registration_repo.update_if_version(
                registration=registration.record_confirmation_resend(now=now),
                expected_version=registration.version,
            )
            if stored is not None:
                return
            registration = await self._load(registration.id)
        raise StateConflictError(
            f'Registration {registration.id} kept changing while recording a resend',
            code=ErrorCode.CONCURRENT_UPDATE,
        )
