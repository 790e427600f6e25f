from datetime import datetime, timezone
from typing import Optional, Self

from dependency_injector.wiring import Provide, inject
from fastapi import Depends
from opentelemetry import trace

from src.platform.config.di import Container
from src.platform.exception.exceptions import NotFoundError, StateConflictError
from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface import IRegistrationRepo
from src.service.registration.domain.entity.registration_entity import (
    Registration,
    RegistrationLine,
)
from src.service.registration.domain.enum import ErrorCode


class UpdateRegistrationUseCase:
    """
    Edit a draft before checkout

    The write is conditional on the row version, so an edit racing a checkout
    either lands before the submission or is refused; it never rewrites the
    quantities of a registration that already holds capacity.
    """

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

    @Logger.io
    async def update(
        self,
        *,
        registration_id: str,
        lines: Optional[list[RegistrationLine]] = None,
        stall_qty: Optional[int] = None,
        rv_qty: Optional[int] = None,
        party_email: Optional[str] = None,
        party_phone: Optional[str] = None,
    ) -> Registration:
        with self.tracer.start_as_current_span(
            'registration.update', attributes={'registration.id': registration_id}
        ):
            registration = await self.registration_repo.get_by_id(registration_id=registration_id)
            if registration is None:
                raise NotFoundError(
                    f'Registration {registration_id} not found',
                    code=ErrorCode.REGISTRATION_NOT_FOUND,
                )

            revised = registration.revise(
                lines=lines,
                stall_qty=stall_qty,
                rv_qty=rv_qty,
                party_email=party_email,
                party_phone=party_phone,
                now=datetime.now(timezone.utc),
            )
            stored = await self.registration_repo.update_if_version(
                registration=revised, expected_version=registration.version
            )
            if stored is None:
                raise StateConflictError(
                    f'Registration {registration_id} changed during the edit',
                    code=ErrorCode.CONCURRENT_UPDATE,
                )
            Logger.base.info(f'✏️ [UPDATE] Draft registration {stored.id} revised')
            return stored
