from datetime import datetime, timezone
from typing import Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.app.service.hold_lifecycle_manager import HoldLifecycleManager
from src.service.registration.domain.check_in_readiness_domain import evaluate_registration
from src.service.registration.domain.enum import ErrorCode
from src.service.registration.domain.value_object import CheckInStatus, HoldOwner, HoldScope


class GetCheckInReadinessUseCase:
    """Read-only readiness evaluation; nothing is persisted"""

    def __init__(
        self, *, registration_repo: IRegistrationRepo, hold_lifecycle_manager: HoldLifecycleManager
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

    @Logger.io
    async def evaluate(self, *, registration_id: str) -> CheckInStatus:
        with self.tracer.start_as_current_span(
            'registration.check_in_readiness', attributes={'registration.id': registration_id}
        ):
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )
            holds = await self.hold_lifecycle_manager.list_active_holds(
                owner=HoldOwner.registration(registration.id),
                scope=HoldScope.event(registration.event_id),
            )
            return evaluate_registration(registration, holds, now=datetime.now(timezone.utc))
