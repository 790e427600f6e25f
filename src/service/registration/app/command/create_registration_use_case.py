from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IEventQueryRepo, IRegistrationRepo
from src.service.registration.domain.entity.registration_entity import (
    Registration,
    RegistrationLine,
)
from src.service.registration.domain.enum import ErrorCode


class CreateRegistrationUseCase:
    def __init__(
        self, *, registration_repo: IRegistrationRepo, event_query_repo: IEventQueryRepo
    ) -> None:
        self.registration_repo = registration_repo
        self.event_query_repo = event_query_repo
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
        event_query_repo: IEventQueryRepo = Depends(Provide[Container.event_query_repo]),
    ) -> Self:
        return cls(registration_repo=registration_repo, event_query_repo=event_query_repo)

    @Logger.io
    async def create(
        self,
        *,
        event_id: str,
        lines: list[RegistrationLine],
        stall_qty: int = 0,
        rv_qty: int = 0,
        party_email: Optional[str] = None,
        party_phone: Optional[str] = None,
    ) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.create', attributes={'event.id': event_id}
        ):
            event = await self.event_query_repo.get_by_id(event_id=event_id)
            if event is None:
                raise NotFoundError(f'Event {event_id} not found', code=ErrorCode.EVENT_NOT_FOUND)

            registration = Registration.create(
                event_id=event.id,
                lines=lines,
                stall_qty=stall_qty,
                rv_qty=rv_qty,
                party_email=party_email,
                party_phone=party_phone,
            )
            created = await self.registration_repo.create(registration=registration)
            Logger.base.info(f'📝 [CREATE] Draft registration {created.id} for event {event.id}')
            return created
