from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.core_setting import settings
from src.platform.config.di import Container
from src.platform.exception.exceptions import ValidationError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.domain.entity.registration_entity import Registration
from src.service.registration.domain.enum import ErrorCode, RegistrationStatus


def clamp_list_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.REGISTRATION_LIST_DEFAULT_LIMIT
    return max(1, min(limit, settings.REGISTRATION_LIST_MAX_LIMIT))


class ListRegistrationsUseCase:
    def __init__(self, *, registration_repo: IRegistrationRepo) -> None:
        self.registration_repo = registration_repo
        self.tracer = trace.get_tracer(__name__)

    @classmethod
    @inject
    def depends(
        cls,
        registration_repo: IRegistrationRepo = Depends(Provide[Container.registration_repo]),
    ) -> Self:
        return cls(registration_repo=registration_repo)

    @Logger.io(truncate_content=True)
    async def list_by_event(
        self, *, event_id: str, status: Optional[str] = None, limit: Optional[int] = None
    ) -> list[Registration]:
        """Registrations of one event, newest first, optionally narrowed to one status"""
        if status is not None and status not in RegistrationStatus:
            raise ValidationError(
                f'status must be one of {", ".join(RegistrationStatus)}; got {status!r}',
                code=ErrorCode.INVALID_STATUS,
            )
        bounded = clamp_list_limit(limit)
        with self.tracer.start_as_current_span(
            'registration.list', attributes={'event.id': event_id, 'list.limit': bounded}
        ):
            return await self.registration_repo.list_by_event(
                event_id=event_id,
                status=RegistrationStatus(status) if status is not None else None,
                limit=bounded,
            )
