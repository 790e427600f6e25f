from datetime import datetime, timezone
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError, StateConflictError, ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.domain.check_in_readiness_domain import evaluate_registration
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import ErrorCode
from src.service.registration.domain.value_object import CheckInStatus, HoldOwner, HoldScope


class CheckInRegistrationUseCase:
    def __init__(
        self,
        *,
        registration_repo: IRegistrationRepo,
        hold_lifecycle_manager: HoldLifecycleManager,
    ) -> None:
        self.registration_repo = registration_repo
        self.hold_lifecycle_manager = hold_lifecycle_manager
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        hold_lifecycle_manager: HoldLifecycleManager = Depends(
            Provide[Container.hold_lifecycle_manager]
        ),
    ) -> Self:
        return cls(registration_repo=registration_repo, hold_lifecycle_manager=hold_lifecycle_manager)

    async def _load(self, registration_id: str) -> Registration:
        registration = await self.registration_repo.get_by_id(registration_id=registration_id)
        if registration is None:
            raise NotFoundError(
                f'Registration {registration_id} not found',
                code=ErrorCode.REGISTRATION_NOT_FOUND,
            )
        return registration

    async def _evaluate(self, registration: Registration, *, now: datetime) -> CheckInStatus:
        holds = await self.hold_lifecycle_manager.list_active_holds(
            owner=HoldOwner.registration(registration.id),
            scope=HoldScope.event(registration.event_id),
        )
        return evaluate_registration(registration, holds, now=now)

    @Logger.io
    async def recompute_status(
        self, *, registration_id: str, idempotency_key: Optional[str] = None
    ) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.recompute_check_in_status',
            attributes={'registration.id': registration_id},
        ):
            registration = await self._load(registration_id)
            if idempotency_key and idempotency_key == registration.check_in_status_idempotency_key:
                return registration

            now = datetime.now(timezone.utc)
            snapshot = await self._evaluate(registration, now=now)
            return await self.registration_repo.update(
                registration=registration.record_check_in_status(
                    check_in_status=snapshot, idempotency_key=idempotency_key, now=now
                )
            )

    @Logger.io
    async def check_in(
        self,
        *,
        registration_id: str,
        idempotency_key: Optional[str],
        actor: Optional[str] = None,
    ) -> Registration:
        if not idempotency_key:
            raise ValidationError(
                'Idempotency-Key header is required for check-in',
                code=ErrorCode.MISSING_IDEMPOTENCY_KEY,
            )

        with self.tracer.start_as_current_span(
            'registration.check_in', attributes={'registration.id': registration_id}
        ):
            registration = await self._load(registration_id)
            if registration.checked_in_at is not None:
                return registration

            now = datetime.now(timezone.utc)
            snapshot = await self._evaluate(registration, now=now)
            if not snapshot.ready:
                raise StateConflictError(
                    f'Registration {registration.id} is not ready for check-in: '
                    f'{", ".join(snapshot.blocker_codes)}',
                    code=ErrorCode.CHECKIN_BLOCKED,
                    details={'check_in_status': snapshot.to_dict()},
                )

            checked_in = await self.registration_repo.update_if_version(
                registration=registration.check_in(
                    check_in_status=snapshot,
                    idempotency_key=idempotency_key,
                    checked_in_by=actor,
                    now=now,
                ),
                expected_version=registration.version,
            )
            if checked_in is not None:
                Logger.base.info(f'🎟️ [CHECKIN] {registration.id} checked in by {actor or "-"}')
                return checked_in

            # Lost the race; a concurrent check-in is an idempotent success
            current = await self._load(registration_id)
            if current.checked_in_at is not None:
                return current
            raise StateConflictError(
                f'Registration {registration_id} changed during check-in',
                code=ErrorCode.CONCURRENT_UPDATE,
            )
