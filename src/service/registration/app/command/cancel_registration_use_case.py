from datetime import datetime, timezone
from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError, StateConflictError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IPaymentGateway, IRegistrationRepo
from src.service.registration.app.service.registration_release_service import (
    RegistrationReleaseService,
)
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import (
    ErrorCode,
    PaymentStatus,
    RegistrationStatus,
    ReleaseReason,
)


# Compare-and-swap rounds before giving up on a hot registration
_CAS_ATTEMPTS = 3


class CancelRegistrationUseCase:
    """
    Operator cancel and cancel+refund

    Status is persisted with a compare-and-swap before capacity is given back,
    so only the writer that actually moved the registration releases counters.
    Release failures are logged and left for reconciliation; the cancel itself
    still succeeds.
    """

    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        payment_gateway: IPaymentGateway,
        registration_release_service: RegistrationReleaseService,
    ) -> None:
        self.registration_repo = registration_repo
        self.payment_gateway = payment_gateway
        self.registration_release_service = registration_release_service
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        payment_gateway: IPaymentGateway = Depends(Provide[Container.payment_gateway]),
        registration_release_service: RegistrationReleaseService = Depends(
            Provide[Container.registration_release_service]
        ),
    ) -> Self:
        return cls(
            registration_repo=registration_repo,
            payment_gateway=payment_gateway,
            registration_release_service=registration_release_service,
        )

    async def _load(self, registration_id: str) -> Registration:
        registration = await self.registration_repo.get_by_id(registration_id=registration_id)
        if registration is None:
            raise NotFoundError(
                f'Registration {registration_id} not found',
                code=ErrorCode.REGISTRATION_NOT_FOUND,
            )
        return registration

    @Logger.io
    async def cancel(self, *, registration_id: str) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.cancel', attributes={'registration.id': registration_id}
        ):
            for _ in range(_CAS_ATTEMPTS):
                registration = await self._load(registration_id)
                if registration.status is RegistrationStatus.CANCELLED:
                    # Whoever cancelled first (sweep, refund, another operator) released capacity
                    return registration

                now = datetime.now(timezone.utc)
                cancelled = await self.registration_repo.update_if_version(
                    registration=registration.cancel(now=now),
                    expected_version=registration.version,
                )
                if cancelled is None:
                    Logger.base.info(f'🔁 [CANCEL] {registration_id} changed underneath, re-reading')
                    continue

                await self.registration_release_service.release_registration(
                    registration=cancelled, reason=ReleaseReason.OPERATOR_CANCEL
                )
                Logger.base.info(f'🛑 [CANCEL] Registration {cancelled.id} cancelled by operator')
                return cancelled

            raise StateConflictError(
                f'Registration {registration_id} kept changing during cancel',
                code=ErrorCode.CONCURRENT_UPDATE,
            )

    @Logger.io
    async def cancel_and_refund(self, *, registration_id: str) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.cancel_and_refund', attributes={'registration.id': registration_id}
        ):
            registration = await self._load(registration_id)
            if registration.payment_status is PaymentStatus.REFUNDED:
                return registration

            registration.ensure_refundable()

            # Gateway errors propagate unchanged; nothing has been written yet
            refund = await self.payment_gateway.refund(
                payment_intent_id=registration.payment_intent_id,  # type: ignore[arg-type]
                amount=registration.total_amount,
            )

            # The money has moved: record it on whatever paid state the row is in now
            for _ in range(_CAS_ATTEMPTS):
                now = datetime.now(timezone.utc)
                refunded = await self.registration_repo.update_if_version(
                    registration=registration.refund(refund_id=refund.id, now=now),
                    expected_version=registration.version,
                )
                if refunded is not None:
                    # An operator cancel that won the race already gave capacity back
                    if registration.status is not RegistrationStatus.CANCELLED:
                        await self.registration_release_service.release_registration(
                            registration=refunded, reason=ReleaseReason.REFUND
                        )
                    Logger.base.info(
                        f'💸 [REFUND] Registration {refunded.id} refunded ({refund.id}, '
                        f'{refunded.total_amount} {refunded.currency})'
                    )
                    return refunded

                registration = await self._load(registration_id)
                if registration.payment_status is PaymentStatus.REFUNDED:
                    Logger.base.info(
                        f'🔁 [REFUND] {registration_id} already refunded by a concurrent request'
                    )
                    return registration
                if registration.payment_status is not PaymentStatus.PAID:
                    break

            raise StateConflictError(
                f'Registration {registration_id} changed while recording refund {refund.id}',
                code=ErrorCode.CONCURRENT_UPDATE,
                details={'refund_id': refund.id},
            )
