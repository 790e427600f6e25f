from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import (
    HoldFilter,
    IRegistrationRepo,
    IReservationHoldRepo,
)
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.entity.reservation_hold_entity import ReservationHold
from src.service.registration.domain.enum import ErrorCode, ItemType
from src.service.registration.domain.value_object import HoldOwner


class GetRegistrationUseCase:
    def __init__(
        self, *, registration_repo: IRegistrationRepo, reservation_hold_repo: IReservationHoldRepo
    ) -> None:
        self.registration_repo = registration_repo
        self.reservation_hold_repo = reservation_hold_repo
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        reservation_hold_repo: IReservationHoldRepo = Depends(
            Provide[Container.reservation_hold_repo]
        ),
    ) -> Self:
        return cls(registration_repo=registration_repo, reservation_hold_repo=reservation_hold_repo)

    @Logger.io
    async def get(self, *, registration_id: str) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.get', attributes={'registration.id': registration_id}
        ):
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )
            return registration

    @Logger.io
    async def list_holds(
        self, *, registration_id: str, item_type: Optional[ItemType] = None, limit: int = 200
    ) -> list[ReservationHold]:
        """Every hold the registration owns, terminal ones included, newest first"""
        registration = await self.get(registration_id=registration_id)
        return await self.reservation_hold_repo.list_holds(
            hold_filter=HoldFilter(owner=HoldOwner.registration(registration.id), item_type=item_type),
            limit=limit,
        )
